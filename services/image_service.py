import logging
from abc import ABC, abstractmethod

from services.gemini_client import GeminiClient


class ImageProvider(ABC):
    @abstractmethod
    async def generate(self, name: str, description: str) -> str:
        """Return an image URL for the character, or "" when none is available."""


class GeminiImageProvider(ImageProvider):
    def __init__(self, client: GeminiClient, model: str = "gemini-2.5-flash"):
        self.client = client
        self.model = model

    async def generate(self, name: str, description: str) -> str:
        logging.info("Generating image for %s...", name)
        prompt = (
            f"Generate a high-quality anime character portrait image URL of {name}. "
            f"{description}. Return ONLY the direct URL of the generated image "
            "and nothing else."
        )
        try:
            return await self.client.generate_content(
                self.model, [{"text": prompt}], temperature=0.7
            )
        except Exception as e:
            logging.warning("Image generation failed for %s: %s", name, e)
            return ""
