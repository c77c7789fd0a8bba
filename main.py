import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from constants.env_constant import LOG_LEVEL

logging.basicConfig(
    level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

from constants.app_constant import Gemini  # noqa: E402
from controllers.analysis_controller import analysis_controller  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await Gemini.aclose()


app = FastAPI(
    title="Anime Character Analysis",
    version="1.0.0",
    description="API for identifying anime characters in images and finding similar ones",
    swagger_ui_parameters={"defaultModelsExpandDepth": -1},
    lifespan=lifespan,
)

app.include_router(analysis_controller)
