import os

BASE_PATH = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

KNOWLEDGE_BASE_PATH = os.getenv(
    "KNOWLEDGE_BASE_PATH", os.path.join(BASE_PATH, "data", "knowledge_base.json")
)
MODEL_DIR = os.getenv("MODEL_DIR", os.path.join(BASE_PATH, "data", "model"))
