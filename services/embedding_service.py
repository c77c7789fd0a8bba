import asyncio
from abc import ABC, abstractmethod

from models.error_model import EmbeddingFailure, ProviderError
from services.gemini_client import GeminiClient


class EmbeddingProvider(ABC):
    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for ``text``.

        Raises EmbeddingFailure when the vector cannot be produced.
        """


class GeminiEmbeddingProvider(EmbeddingProvider):
    def __init__(self, client: GeminiClient, model: str = "text-embedding-004"):
        self.client = client
        self.model = model

    async def embed(self, text: str) -> list[float]:
        try:
            return await self.client.embed_content(self.model, text)
        except ProviderError as e:
            raise EmbeddingFailure(str(e)) from e


class CachedEmbeddingProvider(EmbeddingProvider):
    """Memoizes another provider by exact text for the lifetime of one run.

    Concurrent requests for the same text share a single in-flight call.
    Failed or cancelled calls are evicted so a later request may retry.
    """

    def __init__(self, provider: EmbeddingProvider):
        self.provider = provider
        self._pending: dict[str, asyncio.Future] = {}

    async def embed(self, text: str) -> list[float]:
        future = self._pending.get(text)
        if future is None:
            future = asyncio.ensure_future(self.provider.embed(text))
            self._pending[text] = future
        try:
            vector = await future
        except BaseException:
            if self._pending.get(text) is future:
                del self._pending[text]
            raise
        return list(vector)

    def cancel(self) -> None:
        """Abandon every call that is still in flight."""
        for future in self._pending.values():
            if not future.done():
                future.cancel()
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)
