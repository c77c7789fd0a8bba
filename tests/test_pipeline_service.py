"""Tests for the end-to-end analysis pipeline."""

import asyncio

import pytest

from models.character_model import AnalysisPhase
from models.error_model import MalformedProviderResponse, RecognitionFailure
from provider_stubs import StubEmbeddingProvider, StubImageProvider


def recorder():
    events = []
    return events, events.append


class TestAnalysisPipeline:
    @pytest.mark.asyncio
    async def test_naruto_scenario(self, make_pipeline, image):
        pipeline = make_pipeline(["Naruto Uzumaki"])

        result = await pipeline.analyze(image)

        assert [c.name for c in result.characters] == ["Naruto Uzumaki"]
        naruto = result.characters[0]
        names = [r.name for r in naruto.related_characters]
        # Jiraiya is not in the knowledge base
        assert names == ["Sasuke Uchiha", "Sakura Haruno", "Kakashi Hatake"]
        scores = [r.similarity for r in naruto.related_characters]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_unresolved_names_dropped(self, make_pipeline, image):
        pipeline = make_pipeline(["Naruto Uzumaki", "Hinata Hyuga"])

        result = await pipeline.analyze(image)

        assert [c.name for c in result.characters] == ["Naruto Uzumaki"]

    @pytest.mark.asyncio
    async def test_recognition_order_preserved(self, make_pipeline, image):
        pipeline = make_pipeline(
            ["Roronoa Zoro", "Naruto Uzumaki", "Monkey D. Luffy", "Naruto Uzumaki"]
        )

        result = await pipeline.analyze(image)

        assert [c.name for c in result.characters] == [
            "Roronoa Zoro",
            "Naruto Uzumaki",
            "Monkey D. Luffy",
        ]
        assert [a.title for a in result.suggestions.recommended_anime] == [
            "One Piece",
            "Naruto",
        ]
        assert result.suggestions.recommended_anime[0].genres == ["Adventure"]

    @pytest.mark.asyncio
    async def test_zero_characters_is_done(self, make_pipeline, image):
        events, on_progress = recorder()
        pipeline = make_pipeline([])

        result = await pipeline.analyze(image, on_progress)

        assert result.characters == []
        assert result.suggestions.recommended_anime == []
        assert [e.phase for e in events] == [
            AnalysisPhase.RECOGNIZING,
            AnalysisPhase.DONE,
        ]

    @pytest.mark.asyncio
    async def test_phases_in_order(self, make_pipeline, image):
        events, on_progress = recorder()
        pipeline = make_pipeline(["Naruto Uzumaki", "Roronoa Zoro"])

        await pipeline.analyze(image, on_progress)

        phases = [e.phase for e in events]
        assert phases[0] == AnalysisPhase.RECOGNIZING
        assert phases[1] == AnalysisPhase.RESOLVING
        assert phases[-2:] == [AnalysisPhase.SYNTHESIZING, AnalysisPhase.DONE]
        assert set(phases[2:-2]) == {AnalysisPhase.RANKING}
        details = [e.detail for e in events]
        assert "Finding similar characters for Naruto Uzumaki..." in details
        assert "Finding similar characters for Roronoa Zoro..." in details
        assert events[-1].detail == "Found 2 character(s)"

    @pytest.mark.asyncio
    async def test_recognition_failure_aborts(self, make_pipeline, image):
        events, on_progress = recorder()
        pipeline = make_pipeline(error=RecognitionFailure("provider down"))

        with pytest.raises(RecognitionFailure, match="provider down"):
            await pipeline.analyze(image, on_progress)

        assert events[-1].phase == AnalysisPhase.FAILED
        assert events[-1].detail == "provider down"

    @pytest.mark.asyncio
    async def test_malformed_response_aborts(self, make_pipeline, image):
        pipeline = make_pipeline(error=MalformedProviderResponse("bad payload"))
        with pytest.raises(MalformedProviderResponse):
            await pipeline.analyze(image)

    @pytest.mark.asyncio
    async def test_embedding_failures_degrade(self, make_pipeline, image):
        embedder = StubEmbeddingProvider(failing={"Sasuke Uchiha", "Monkey D. Luffy"})
        pipeline = make_pipeline(["Naruto Uzumaki", "Roronoa Zoro"], embedder=embedder)

        result = await pipeline.analyze(image)

        naruto, zoro = result.characters
        assert "Sasuke Uchiha" not in [r.name for r in naruto.related_characters]
        assert zoro.related_characters == []

    @pytest.mark.asyncio
    async def test_each_run_embeds_subject_once(self, make_pipeline, image, embedder):
        pipeline = make_pipeline(["Naruto Uzumaki", "Sasuke Uchiha"])

        await pipeline.analyze(image)

        # Naruto and Sasuke are each other's related characters
        assert len(embedder.calls) == len(set(embedder.calls))

        await pipeline.analyze(image)
        assert len(embedder.calls) == 2 * len(set(embedder.calls))

    @pytest.mark.asyncio
    async def test_top_k_applied(self, make_pipeline, image):
        pipeline = make_pipeline(["Naruto Uzumaki"], top_k=1)
        result = await pipeline.analyze(image)
        assert [r.name for r in result.characters[0].related_characters] == [
            "Sasuke Uchiha"
        ]

    @pytest.mark.asyncio
    async def test_images_attached_when_enabled(self, make_pipeline, image):
        pipeline = make_pipeline(
            ["Naruto Uzumaki"],
            image_provider=StubImageProvider(missing={"Sakura Haruno"}),
        )

        result = await pipeline.analyze(image)

        naruto = result.characters[0]
        assert naruto.image == "https://images.example/Naruto_Uzumaki.png"
        images = {r.name: r.image for r in naruto.related_characters}
        assert images["Sasuke Uchiha"] == "https://images.example/Sasuke_Uchiha.png"
        assert images["Sakura Haruno"] is None

    @pytest.mark.asyncio
    async def test_failing_progress_callback_is_ignored(self, make_pipeline, image):
        def on_progress(event):
            raise RuntimeError("ui went away")

        result = await make_pipeline(["Naruto Uzumaki"]).analyze(image, on_progress)
        assert len(result.characters) == 1

    @pytest.mark.asyncio
    async def test_cancellation_discards_run(self, make_pipeline, image):
        events, on_progress = recorder()
        embedder = StubEmbeddingProvider(delay=10)
        pipeline = make_pipeline(["Naruto Uzumaki"], embedder=embedder)

        task = asyncio.create_task(pipeline.analyze(image, on_progress))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert AnalysisPhase.FAILED not in [e.phase for e in events]
        assert AnalysisPhase.DONE not in [e.phase for e in events]
