from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


class AppConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    knowledge_base_path: str
    model_dir: str
    gemini_api_key: Optional[str] = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    vision_model: str = "gemini-2.5-flash"
    embedding_model: str = "text-embedding-004"
    recognition_backend: Literal["gemini", "local"] = "gemini"
    top_k: int = 5
    request_timeout: float = 30.0
    generate_images: bool = False
    max_compare_images: int = 4
    local_top_k: int = 5
    local_min_confidence: float = 0.0
