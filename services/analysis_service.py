import asyncio
import json
import logging

from fastapi import HTTPException, UploadFile, status
from fastapi.responses import StreamingResponse

from constants.app_constant import Config, Embedder, Knowledge, Pipeline
from models.character_model import (
    AnalysisResult,
    AnalyzeImageRequest,
    CharacterRecord,
    ComparisonResult,
    ImageInput,
)
from models.error_model import ProviderError
from services.comparison_service import compare_characters
from services.knowledge_service import KnowledgeBase
from services.pipeline_service import AnalysisPipeline


def _require_pipeline() -> AnalysisPipeline:
    if Pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Analysis pipeline not initialized. Please check logs.",
        )
    return Pipeline


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, ProviderError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
    )


async def _read_image(file: UploadFile) -> ImageInput:
    if file.content_type is None or not file.content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an image"
        )
    data = await file.read()
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Image file is empty"
        )
    return ImageInput(data=data, mime_type=file.content_type)


async def _analyze(pipeline: AnalysisPipeline, image: ImageInput) -> AnalysisResult:
    logging.info("Received image analysis request (%s)", image.mime_type)
    try:
        return await pipeline.analyze(image)
    except Exception as e:
        raise _http_error(e) from e


async def analyze_image_service(file: UploadFile) -> AnalysisResult:
    pipeline = _require_pipeline()
    image = await _read_image(file)
    return await _analyze(pipeline, image)


async def analyze_base64_service(request: AnalyzeImageRequest) -> AnalysisResult:
    pipeline = _require_pipeline()
    try:
        image = ImageInput.from_data_uri(request.image_base64)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid base64 image"
        ) from e
    if not image.data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Image data is empty"
        )
    return await _analyze(pipeline, image)


def _event_line(event: str, payload: dict) -> str:
    return json.dumps({"event": event, **payload}) + "\n"


async def _analysis_events(pipeline: AnalysisPipeline, image: ImageInput):
    queue: asyncio.Queue = asyncio.Queue()
    task = asyncio.create_task(pipeline.analyze(image, on_progress=queue.put_nowait))
    getter = None
    try:
        while True:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait(
                {getter, task}, return_when=asyncio.FIRST_COMPLETED
            )
            if getter not in done:
                getter.cancel()
                break
            yield _event_line("progress", getter.result().model_dump(mode="json"))

        while not queue.empty():
            yield _event_line("progress", queue.get_nowait().model_dump(mode="json"))

        try:
            result = task.result()
        except Exception as e:
            yield _event_line("error", {"detail": str(e)})
            return
        yield _event_line("result", result.model_dump(mode="json"))
    finally:
        pending = [f for f in (getter, task) if f is not None and not f.done()]
        if not task.done():
            logging.info("Client went away, cancelling analysis")
        for future in pending:
            future.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


async def stream_analysis_service(file: UploadFile) -> StreamingResponse:
    pipeline = _require_pipeline()
    image = await _read_image(file)
    return StreamingResponse(
        _analysis_events(pipeline, image), media_type="application/x-ndjson"
    )


async def _analyze_all(
    pipeline: AnalysisPipeline, images: list[ImageInput]
) -> list[AnalysisResult]:
    tasks = [asyncio.create_task(pipeline.analyze(image)) for image in images]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def compare_images_service(files: list[UploadFile]) -> ComparisonResult:
    pipeline = _require_pipeline()
    if not 2 <= len(files) <= Config.max_compare_images:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Compare between 2 and {Config.max_compare_images} images",
        )
    images = [await _read_image(file) for file in files]
    try:
        analyses = await _analyze_all(pipeline, images)
        comparisons = await compare_characters(analyses, Embedder)
    except Exception as e:
        raise _http_error(e) from e
    return ComparisonResult(analyses=analyses, comparisons=comparisons)


def _require_knowledge() -> KnowledgeBase:
    if Knowledge is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Knowledge base not loaded. Please check logs.",
        )
    return Knowledge


async def get_characters_service() -> list[CharacterRecord]:
    return _require_knowledge().records()


async def get_character_service(name: str) -> CharacterRecord:
    record = _require_knowledge().resolve(name)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Character not found: {name}",
        )
    return record
