from fastapi import APIRouter, File, UploadFile, status

from models.character_model import (
    AnalysisResult,
    AnalyzeImageRequest,
    CharacterRecord,
    ComparisonResult,
)
from services.analysis_service import (
    analyze_base64_service,
    analyze_image_service,
    compare_images_service,
    get_character_service,
    get_characters_service,
    stream_analysis_service,
)

analysis_controller = APIRouter(
    tags=["Analysis"],
)


@analysis_controller.post(
    "/analyze",
    summary="Analyze an image",
    description="Identify anime characters in an uploaded image, rank their related "
    "characters by similarity and suggest what to watch.",
    response_model=AnalysisResult,
    responses={
        status.HTTP_200_OK: {"description": "Image analyzed successfully"},
        status.HTTP_400_BAD_REQUEST: {"description": "Bad request"},
        status.HTTP_502_BAD_GATEWAY: {"description": "Recognition provider failed"},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "Internal server error"},
    },
)
async def analyze_image_controller(file: UploadFile = File(...)):
    return await analyze_image_service(file)


@analysis_controller.post(
    "/analyze/base64",
    summary="Analyze a base64 image",
    description="Same as /analyze, for an image sent as a base64 string or a "
    "data:image/...;base64, URI in a JSON body.",
    response_model=AnalysisResult,
    responses={
        status.HTTP_200_OK: {"description": "Image analyzed successfully"},
        status.HTTP_400_BAD_REQUEST: {"description": "Bad request"},
        status.HTTP_502_BAD_GATEWAY: {"description": "Recognition provider failed"},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "Internal server error"},
    },
)
async def analyze_base64_controller(request: AnalyzeImageRequest):
    return await analyze_base64_service(request)


@analysis_controller.post(
    "/analyze/stream",
    summary="Analyze an image with progress",
    description="Same as /analyze, streamed as newline-delimited JSON progress "
    "events followed by the result or an error.",
    responses={
        status.HTTP_200_OK: {"description": "Analysis stream started"},
        status.HTTP_400_BAD_REQUEST: {"description": "Bad request"},
    },
)
async def stream_analysis_controller(file: UploadFile = File(...)):
    return await stream_analysis_service(file)


@analysis_controller.post(
    "/compare",
    summary="Compare characters across images",
    description="Analyze several images and score every pair of characters found "
    "in different images.",
    response_model=ComparisonResult,
    responses={
        status.HTTP_200_OK: {"description": "Images compared successfully"},
        status.HTTP_400_BAD_REQUEST: {"description": "Bad request"},
        status.HTTP_502_BAD_GATEWAY: {"description": "Recognition provider failed"},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "Internal server error"},
    },
)
async def compare_images_controller(files: list[UploadFile] = File(...)):
    return await compare_images_service(files)


@analysis_controller.get(
    "/characters",
    summary="Get all characters",
    description="Get all characters from the knowledge base.",
    responses={
        status.HTTP_200_OK: {"description": "Characters retrieved successfully"},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "Internal server error"},
    },
    response_model=list[CharacterRecord],
)
async def get_characters_controller():
    return await get_characters_service()


@analysis_controller.get(
    "/characters/{name}",
    summary="Get a character",
    description="Get one character from the knowledge base by its exact name.",
    responses={
        status.HTTP_200_OK: {"description": "Character retrieved successfully"},
        status.HTTP_404_NOT_FOUND: {"description": "Character not found"},
    },
    response_model=CharacterRecord,
)
async def get_character_controller(name: str):
    return await get_character_service(name)
