import logging
import math
from typing import Any, Optional

import httpx

from models.error_model import MalformedProviderResponse, ProviderError


class GeminiClient:
    """Thin async wrapper around the Gemini REST API.

    HTTP and transport failures are raised as ``ProviderError``; payloads that
    do not have the documented shape are raised as
    ``MalformedProviderResponse``.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout), transport=self._transport
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, model: str, method: str, body: dict) -> dict:
        if not self.api_key:
            raise ProviderError("GEMINI_API_KEY not configured")

        url = f"{self.base_url}/models/{model}:{method}"
        try:
            response = await self.client.post(
                url, params={"key": self.api_key}, json=body
            )
        except httpx.TimeoutException as e:
            raise ProviderError(f"{model}:{method} timed out") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{model}:{method} request failed: {e}") from e

        if response.status_code != 200:
            logging.error(
                "Gemini %s:%s failed with %s: %s",
                model,
                method,
                response.status_code,
                response.text,
            )
            raise ProviderError(f"{model}:{method} failed: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedProviderResponse(
                f"{model}:{method} returned a non-JSON body"
            ) from e
        if not isinstance(data, dict):
            raise MalformedProviderResponse(f"{model}:{method} returned {type(data).__name__}")
        return data

    async def generate_content(
        self, model: str, parts: list[dict[str, Any]], temperature: float
    ) -> str:
        """Run ``generateContent`` and return the first candidate's text."""
        data = await self._post(
            model,
            "generateContent",
            {
                "contents": [{"role": "user", "parts": parts}],
                "generationConfig": {"temperature": temperature},
            },
        )
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedProviderResponse(
                f"{model}:generateContent returned no candidate text"
            ) from e
        if not isinstance(text, str):
            raise MalformedProviderResponse(
                f"{model}:generateContent candidate text is not a string"
            )
        return text.strip()

    async def embed_content(self, model: str, text: str) -> list[float]:
        data = await self._post(
            model, "embedContent", {"content": {"parts": [{"text": text}]}}
        )
        try:
            values = data["embedding"]["values"]
        except (KeyError, TypeError) as e:
            raise MalformedProviderResponse(
                f"{model}:embedContent returned no embedding values"
            ) from e
        if not isinstance(values, list) or not values:
            raise MalformedProviderResponse(
                f"{model}:embedContent returned an empty embedding"
            )
        try:
            vector = [float(v) for v in values]
        except (TypeError, ValueError) as e:
            raise MalformedProviderResponse(
                f"{model}:embedContent returned non-numeric values"
            ) from e
        if not all(math.isfinite(v) for v in vector):
            raise MalformedProviderResponse(
                f"{model}:embedContent returned non-finite values"
            )
        return vector
