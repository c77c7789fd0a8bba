"""Pytest configuration and fixtures."""

import pytest

from models.character_model import ImageInput
from provider_stubs import (
    StubEmbeddingProvider,
    StubRecognitionProvider,
    make_record,
)
from services.knowledge_service import KnowledgeBase
from services.pipeline_service import AnalysisPipeline


@pytest.fixture
def knowledge_base():
    """Small fixture dataset with two anime titles."""
    return KnowledgeBase(
        [
            make_record(
                "Naruto Uzumaki",
                "Naruto",
                related=["Sasuke Uchiha", "Sakura Haruno", "Kakashi Hatake", "Jiraiya"],
                genres=["Action", "Adventure"],
            ),
            make_record(
                "Sasuke Uchiha",
                "Naruto",
                related=["Naruto Uzumaki", "Itachi Uchiha", "Sakura Haruno"],
                genres=["Action", "Drama"],
            ),
            make_record("Sakura Haruno", "Naruto", related=["Naruto Uzumaki"]),
            make_record("Kakashi Hatake", "Naruto", related=["Naruto Uzumaki"]),
            make_record(
                "Monkey D. Luffy",
                "One Piece",
                related=["Roronoa Zoro", "Nami"],
                genres=["Adventure"],
            ),
            make_record("Roronoa Zoro", "One Piece", related=["Monkey D. Luffy"]),
        ]
    )


@pytest.fixture
def embedder():
    return StubEmbeddingProvider()


@pytest.fixture
def image():
    return ImageInput(data=b"\x89PNG fake image bytes", mime_type="image/png")


@pytest.fixture
def make_pipeline(knowledge_base, embedder):
    def _make(names=(), error=None, **kwargs):
        recognizer = StubRecognitionProvider(names, error=error)
        return AnalysisPipeline(
            recognizer=recognizer,
            knowledge_base=knowledge_base,
            embedder=kwargs.pop("embedder", embedder),
            **kwargs,
        )

    return _make
