import asyncio
import logging
from typing import Sequence

from models.character_model import AnalysisResult, CharacterComparison, CharacterResult
from models.error_model import EmbeddingFailure
from services.embedding_service import CachedEmbeddingProvider, EmbeddingProvider
from services.similarity_service import cosine_similarity


async def _similarity(
    embedder: EmbeddingProvider, left: CharacterResult, right: CharacterResult
) -> float:
    try:
        left_vector, right_vector = await asyncio.gather(
            embedder.embed(left.embedding_text), embedder.embed(right.embedding_text)
        )
        return cosine_similarity(left_vector, right_vector)
    except (EmbeddingFailure, ValueError) as e:
        logging.warning(
            "Similarity calculation error for %s / %s: %s", left.name, right.name, e
        )
        return 0.0


async def compare_characters(
    analyses: Sequence[AnalysisResult], embedder: EmbeddingProvider
) -> list[CharacterComparison]:
    """Score every pair of characters found in two different images."""
    embedder = CachedEmbeddingProvider(embedder)
    pairs = [
        (i, left, j, right)
        for i, first in enumerate(analyses)
        for j, second in enumerate(analyses)
        if i < j
        for left in first.characters
        for right in second.characters
    ]
    try:
        scores = await asyncio.gather(
            *(_similarity(embedder, left, right) for _, left, _, right in pairs)
        )
    finally:
        embedder.cancel()

    comparisons = [
        CharacterComparison(
            left_image=i,
            left=left.name,
            right_image=j,
            right=right.name,
            similarity=score,
        )
        for (i, left, j, right), score in zip(pairs, scores)
    ]
    comparisons.sort(key=lambda comparison: comparison.similarity, reverse=True)
    return comparisons
