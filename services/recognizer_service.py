import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

from models.character_model import ImageInput
from models.error_model import (
    MalformedProviderResponse,
    ProviderError,
    RecognitionFailure,
)
from services.gemini_client import GeminiClient

RECOGNITION_PROMPT = (
    "You are an expert anime character recognition system. Analyze images and "
    "identify all anime characters present. Return ONLY a JSON array of "
    'character names, nothing else. Format: ["Character Name 1", "Character '
    'Name 2"]. If no anime characters are detected, return an empty array [].'
)
RECOGNITION_REQUEST = (
    "Identify all anime characters in this image. "
    "Return only a JSON array of their full names."
)

FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
JSON_ARRAY = re.compile(r"\[.*\]", re.DOTALL)


class RecognitionProvider(ABC):
    @abstractmethod
    async def recognize(self, image: ImageInput) -> list[str]:
        """Return the names of the characters found in ``image``, in order."""


def _names_from_items(items: Any) -> list[str]:
    if not isinstance(items, list):
        raise MalformedProviderResponse(
            f"Expected a JSON array of characters, got {type(items).__name__}"
        )
    names = []
    for item in items:
        if isinstance(item, dict):
            item = item.get("name")
        if not isinstance(item, str):
            raise MalformedProviderResponse(f"Unexpected character entry: {item!r}")
        if item.strip():
            names.append(item.strip())
    return names


def parse_character_names(text: str) -> list[str]:
    """Extract character names from a model's free-text answer.

    Accepts a bare JSON array, one wrapped in a Markdown code fence, or an
    array embedded in surrounding prose. Entries may be strings or objects
    with a ``name`` field.
    """
    fenced = FENCED_BLOCK.search(text)
    if fenced:
        text = fenced.group(1)
    try:
        return _names_from_items(json.loads(text))
    except json.JSONDecodeError:
        pass

    match = JSON_ARRAY.search(text)
    if match is None:
        raise MalformedProviderResponse(
            f"No character list in recognition answer: {text[:200]!r}"
        )
    try:
        return _names_from_items(json.loads(match.group(0)))
    except json.JSONDecodeError as e:
        raise MalformedProviderResponse(
            f"Unparseable character list: {match.group(0)[:200]!r}"
        ) from e


class GeminiRecognitionProvider(RecognitionProvider):
    def __init__(
        self,
        client: GeminiClient,
        model: str = "gemini-2.5-flash",
        temperature: float = 0.3,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature

    def _image_part(self, image: ImageInput) -> dict:
        if image.data is not None:
            return {
                "inlineData": {"data": image.base64_data(), "mimeType": image.mime_type}
            }
        return {"fileData": {"fileUri": image.url, "mimeType": image.mime_type}}

    async def recognize(self, image: ImageInput) -> list[str]:
        parts = [
            {"text": RECOGNITION_PROMPT},
            {"text": RECOGNITION_REQUEST},
            self._image_part(image),
        ]
        try:
            text = await self.client.generate_content(
                self.model, parts, self.temperature
            )
        except MalformedProviderResponse:
            raise
        except ProviderError as e:
            raise RecognitionFailure(f"Character identification failed: {e}") from e

        logging.info("Identified characters text: %s", text)
        return parse_character_names(text)


class KerasRecognitionProvider(RecognitionProvider):
    """Recognizes characters with a locally trained Keras classifier."""

    def __init__(self, recognizer, top_k: int = 5, min_confidence: float = 0.0):
        self.recognizer = recognizer
        self.top_k = top_k
        self.min_confidence = min_confidence

    async def recognize(self, image: ImageInput) -> list[str]:
        if image.data is None:
            raise RecognitionFailure("Local recognition needs inline image data")
        try:
            predictions = await asyncio.to_thread(
                self.recognizer.predict_characters, image.data, self.top_k
            )
        except ValueError as e:
            raise RecognitionFailure(str(e)) from e
        return [
            name for name, confidence in predictions if confidence >= self.min_confidence
        ]


def build_recognition_provider(
    backend: str,
    client: Optional[GeminiClient] = None,
    model: str = "gemini-2.5-flash",
    model_dir: Optional[str] = None,
    top_k: int = 5,
    min_confidence: float = 0.0,
) -> RecognitionProvider:
    if backend == "local":
        from models.recognizer_model import CharacterClassifier, ClassifierConfig

        classifier = CharacterClassifier(ClassifierConfig(model_dir=model_dir))
        return KerasRecognitionProvider(classifier, top_k, min_confidence)
    if client is None:
        raise ValueError("Gemini recognition needs a GeminiClient")
    return GeminiRecognitionProvider(client, model)
