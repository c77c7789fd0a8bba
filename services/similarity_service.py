import asyncio
import logging
from typing import Optional, Sequence

import numpy as np

from models.character_model import CharacterRecord, RankedRelation
from models.error_model import EmbeddingFailure
from services.embedding_service import EmbeddingProvider
from services.knowledge_service import KnowledgeBase

DEFAULT_TOP_K = 5


def is_degenerate(vector: Sequence[float]) -> bool:
    """True when the vector has zero magnitude and no direction to compare."""
    return not np.any(np.asarray(vector, dtype=float))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    A zero-magnitude vector scores 0.0 rather than NaN.
    """
    vec_a = np.asarray(a, dtype=float)
    vec_b = np.asarray(b, dtype=float)
    if vec_a.shape != vec_b.shape:
        raise ValueError(
            f"Vectors must have the same length: {vec_a.size} != {vec_b.size}"
        )
    magnitude = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if magnitude == 0:
        return 0.0
    return float(np.clip(np.dot(vec_a, vec_b) / magnitude, -1.0, 1.0))


class SimilarityRanker:
    def __init__(self, knowledge_base: KnowledgeBase, embedder: EmbeddingProvider):
        self.knowledge_base = knowledge_base
        self.embedder = embedder

    async def _embed(self, text: str) -> Optional[list[float]]:
        try:
            return await self.embedder.embed(text)
        except EmbeddingFailure as e:
            logging.warning("Skipping embedding for %r: %s", text[:60], e)
            return None

    def _candidates(
        self, subject: CharacterRecord, candidate_names: Sequence[str]
    ) -> list[CharacterRecord]:
        seen = {subject.name}
        candidates = []
        for name in candidate_names:
            if name in seen:
                continue
            seen.add(name)
            record = self.knowledge_base.resolve(name)
            if record is None:
                logging.debug("Related character %s not in knowledge base", name)
                continue
            candidates.append(record)
        return candidates

    async def rank(
        self,
        subject: CharacterRecord,
        candidate_names: Sequence[str],
        top_k: int = DEFAULT_TOP_K,
    ) -> list[RankedRelation]:
        """Rank candidates by cosine similarity to the subject, best first.

        Unknown names, duplicates and the subject itself are dropped, as is any
        candidate whose embedding fails. The result holds at most ``top_k``
        relations, sorted descending with ties kept in candidate order.
        """
        if top_k <= 0:
            return []
        candidates = self._candidates(subject, candidate_names)
        if not candidates:
            return []

        subject_vector, *candidate_vectors = await asyncio.gather(
            self._embed(subject.embedding_text),
            *(self._embed(c.embedding_text) for c in candidates),
        )
        if subject_vector is None:
            logging.warning("No embedding for %s, skipping ranking", subject.name)
            return []
        if is_degenerate(subject_vector):
            logging.warning("Degenerate embedding for %s", subject.name)

        relations = []
        for candidate, vector in zip(candidates, candidate_vectors):
            if vector is None:
                continue
            if len(vector) != len(subject_vector):
                logging.warning(
                    "Embedding size mismatch for %s: %d != %d",
                    candidate.name,
                    len(vector),
                    len(subject_vector),
                )
                continue
            relations.append(
                RankedRelation(
                    name=candidate.name,
                    similarity=cosine_similarity(subject_vector, vector),
                )
            )

        relations.sort(key=lambda relation: relation.similarity, reverse=True)
        return relations[:top_k]
