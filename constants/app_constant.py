import logging

from constants.env_constant import (
    EMBEDDING_MODEL,
    GEMINI_API_KEY,
    GEMINI_BASE_URL,
    GENERATE_IMAGES,
    RECOGNITION_BACKEND,
    REQUEST_TIMEOUT,
    TOP_K,
    VISION_MODEL,
)
from constants.file_constant import KNOWLEDGE_BASE_PATH, MODEL_DIR
from models.config_model import AppConfig
from services.embedding_service import GeminiEmbeddingProvider
from services.gemini_client import GeminiClient
from services.image_service import GeminiImageProvider
from services.knowledge_service import KnowledgeBase
from services.pipeline_service import AnalysisPipeline
from services.recognizer_service import build_recognition_provider

Config = AppConfig(
    knowledge_base_path=KNOWLEDGE_BASE_PATH,
    model_dir=MODEL_DIR,
    gemini_api_key=GEMINI_API_KEY,
    gemini_base_url=GEMINI_BASE_URL,
    vision_model=VISION_MODEL,
    embedding_model=EMBEDDING_MODEL,
    recognition_backend=RECOGNITION_BACKEND,
    top_k=TOP_K,
    request_timeout=REQUEST_TIMEOUT,
    generate_images=GENERATE_IMAGES,
)

Gemini = GeminiClient(
    Config.gemini_api_key, Config.gemini_base_url, timeout=Config.request_timeout
)
if not Config.gemini_api_key:
    logging.warning("GEMINI_API_KEY not configured, remote providers will fail")

Knowledge = None
Embedder = None
Pipeline = None
try:
    Knowledge = KnowledgeBase.from_file(Config.knowledge_base_path)
    Embedder = GeminiEmbeddingProvider(Gemini, Config.embedding_model)
    Pipeline = AnalysisPipeline(
        recognizer=build_recognition_provider(
            Config.recognition_backend,
            client=Gemini,
            model=Config.vision_model,
            model_dir=Config.model_dir,
            top_k=Config.local_top_k,
            min_confidence=Config.local_min_confidence,
        ),
        knowledge_base=Knowledge,
        embedder=Embedder,
        image_provider=(
            GeminiImageProvider(Gemini, Config.vision_model)
            if Config.generate_images
            else None
        ),
        top_k=Config.top_k,
    )
    logging.info("Analysis pipeline initialized (%s).", Config.recognition_backend)
except Exception as e:
    logging.error("Error initializing analysis pipeline: %s", str(e))
    raise e
