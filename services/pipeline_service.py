import asyncio
import logging
from typing import Callable, Optional

from models.character_model import (
    AnalysisPhase,
    AnalysisResult,
    CharacterRecord,
    CharacterResult,
    ImageInput,
    ProgressEvent,
    RankedRelation,
)
from services.embedding_service import CachedEmbeddingProvider, EmbeddingProvider
from services.image_service import ImageProvider
from services.knowledge_service import KnowledgeBase
from services.recognizer_service import RecognitionProvider
from services.similarity_service import DEFAULT_TOP_K, SimilarityRanker
from services.suggestion_service import synthesize

ProgressCallback = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Tracks the current phase of one analysis and forwards transitions."""

    def __init__(self, on_progress: Optional[ProgressCallback] = None):
        self.on_progress = on_progress
        self.phase = AnalysisPhase.IDLE

    def emit(self, phase: AnalysisPhase, detail: str = "") -> None:
        self.phase = phase
        logging.debug("Analysis phase %s: %s", phase.value, detail)
        if self.on_progress is None:
            return
        try:
            self.on_progress(ProgressEvent(phase=phase, detail=detail))
        except Exception:
            logging.exception("Progress callback failed")


def _unique(names: list[str]) -> list[str]:
    return list(dict.fromkeys(names))


class AnalysisPipeline:
    """Recognize, resolve, rank and synthesize for a single image.

    The pipeline itself holds no per-request state: every call to
    ``analyze`` gets its own progress tracker and embedding cache, so one
    instance can serve concurrent requests.
    """

    def __init__(
        self,
        recognizer: RecognitionProvider,
        knowledge_base: KnowledgeBase,
        embedder: EmbeddingProvider,
        image_provider: Optional[ImageProvider] = None,
        top_k: int = DEFAULT_TOP_K,
    ):
        self.recognizer = recognizer
        self.knowledge_base = knowledge_base
        self.embedder = embedder
        self.image_provider = image_provider
        self.top_k = top_k

    async def analyze(
        self, image: ImageInput, on_progress: Optional[ProgressCallback] = None
    ) -> AnalysisResult:
        progress = ProgressReporter(on_progress)
        embedder = CachedEmbeddingProvider(self.embedder)
        try:
            return await self._run(image, progress, embedder)
        except asyncio.CancelledError:
            logging.info("Analysis cancelled while %s", progress.phase.value)
            raise
        except Exception as e:
            logging.error("Analysis failed while %s: %s", progress.phase.value, e)
            progress.emit(AnalysisPhase.FAILED, str(e))
            raise
        finally:
            embedder.cancel()

    async def _run(
        self,
        image: ImageInput,
        progress: ProgressReporter,
        embedder: EmbeddingProvider,
    ) -> AnalysisResult:
        progress.emit(AnalysisPhase.RECOGNIZING, "Recognizing characters...")
        names = _unique(await self.recognizer.recognize(image))
        if not names:
            logging.info("No characters identified")
            progress.emit(AnalysisPhase.DONE, "No characters found")
            return AnalysisResult()
        logging.info("Characters identified: %s", names)

        progress.emit(AnalysisPhase.RESOLVING, "Gathering character details...")
        records = []
        for name in names:
            record = self.knowledge_base.resolve(name)
            if record is None:
                logging.info("No knowledge record for %s, dropping it", name)
                continue
            records.append(record)

        progress.emit(AnalysisPhase.RANKING, "Finding similar characters...")
        ranker = SimilarityRanker(self.knowledge_base, embedder)
        relations = await asyncio.gather(
            *(self._rank(ranker, record, progress) for record in records)
        )
        characters = [
            CharacterResult.from_record(record, ranked)
            for record, ranked in zip(records, relations)
        ]
        if self.image_provider is not None:
            await self._attach_images(characters)

        progress.emit(AnalysisPhase.SYNTHESIZING, "Generating suggestions...")
        suggestions = synthesize(characters, self.knowledge_base.genres_by_title())

        progress.emit(AnalysisPhase.DONE, f"Found {len(characters)} character(s)")
        return AnalysisResult(characters=characters, suggestions=suggestions)

    async def _rank(
        self,
        ranker: SimilarityRanker,
        record: CharacterRecord,
        progress: ProgressReporter,
    ) -> list[RankedRelation]:
        progress.emit(
            AnalysisPhase.RANKING, f"Finding similar characters for {record.name}..."
        )
        return await ranker.rank(record, record.related_characters, self.top_k)

    async def _attach_images(self, characters: list[CharacterResult]) -> None:
        async def character_image(character: CharacterResult):
            character.image = (
                await self.image_provider.generate(character.name, character.description)
                or None
            )

        async def relation_image(relation: RankedRelation):
            record = self.knowledge_base.resolve(relation.name)
            description = record.description if record else ""
            relation.image = (
                await self.image_provider.generate(relation.name, description) or None
            )

        await asyncio.gather(
            *(character_image(c) for c in characters),
            *(relation_image(r) for c in characters for r in c.related_characters),
        )
