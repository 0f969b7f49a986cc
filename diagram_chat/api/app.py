"""FastAPI application factory.

Registers the chat router, CORS for the separately served chat page, and a
health probe. The composition service is built at startup so a missing API
key shows up in the log before the first request.
"""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from diagram_chat import __version__
from diagram_chat.agent.chat_agent import get_composition_service
from diagram_chat.api.chat import router as chat_router

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Warm up the composition service, then run the app."""
    logger.info("Starting Diagram Chat API...")
    try:
        service = get_composition_service()
        logger.info(f"Composition service ready (model {service.model_name})")
    except ValueError as e:
        # Requests to /api/chat will fail until the key is configured
        logger.warning(f"Composition service not configured: {e}")
    yield
    logger.info("Shutting down Diagram Chat API...")


def create_app() -> FastAPI:
    """Create the API application.

    Returns:
        FastAPI app with /api/chat and /health.
    """
    application = FastAPI(
        title="Diagram Chat API",
        description=(
            "Multimodal chat with a system-design assistant. Accepts conversations "
            "with image and PDF attachments and streams the reply as Server-Sent Events."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    origins = _cors_origins()
    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    application.include_router(chat_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "diagram-chat"}

    return application


app = create_app()
