import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import Settings
from pipeline import CompressionPipeline
from routers.compression import router as compression_router
from services import FFmpegTranscoder
from storage import build_publisher

# --------------------------------------------------------------------------
# --- Configuration & Setup ---
# --------------------------------------------------------------------------


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def create_app(settings: Optional[Settings] = None, transcoder=None, publisher=None) -> FastAPI:
    """
    Build the application. Settings and collaborators are created once here
    and shared through app.state; tests pass fakes in.
    """
    settings = settings or Settings.from_env()
    settings.ensure_directories()

    app = FastAPI(
        title="Video Relay",
        description="Upload relay that compresses videos and publishes them to object storage.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.pipeline = CompressionPipeline(
        transcoder or FFmpegTranscoder(settings),
        publisher or build_publisher(settings),
    )
    app.include_router(compression_router)
    return app


def get_application() -> FastAPI:
    """Factory used by uvicorn; reads the environment once at startup."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return create_app(settings)
