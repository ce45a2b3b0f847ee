"""Application factory for the narration service."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from .config import Settings, get_settings
from .ollama import OllamaClient
from .routers.narration import router as narration_router
from .voicevox import VoicevoxClient

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    handlers: list[logging.Handler] = []
    formatter = logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger("narrator").setLevel(log_level)
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # Quiet per-request transport logs unless debugging
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(settings: Settings | None = None) -> FastAPI:
    _configure_logging()

    settings = settings or get_settings()
    ollama_client = OllamaClient(settings)
    voicevox_client = VoicevoxClient(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            try:
                await OllamaClient.aclose_shared()
                await VoicevoxClient.close_http_client()
            except Exception as exc:
                logging.warning("Error closing HTTP clients: %s", exc)

    app = FastAPI(
        title="Streaming Narration Service",
        version="0.1.0",
        description="Narrates streamed model output sentence by sentence with VOICEVOX.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.ollama_client = ollama_client
    app.state.voicevox_client = voicevox_client

    app.include_router(narration_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        return {
            "status": "ok",
            "model": settings.ollama_model,
            "voicevox_url": str(settings.voicevox_base_url),
        }

    return app


__all__ = ["create_app"]
