"""
Internal prediction service entry point.

Creates the FastAPI application and wires together:
- Prediction and health routers
- Error handlers (centralized domain-to-HTTP mapping)
- Logging configuration
- Process-wide HTTP clients, quote source and completion client

No business logic belongs here.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI

from hk_assistant.application.prediction.predict import PredictionService
from hk_assistant.core.config import Settings, describe, load_settings
from hk_assistant.infrastructure.prediction.completion_client import (
    OpenAICompatibleCompletionClient,
    build_http_client,
)
from hk_assistant.infrastructure.prediction.quote_source import EastmoneyQuoteSource
from hk_assistant.interfaces.health import router as health_router
from hk_assistant.interfaces.prediction.router import router as prediction_router
from hk_assistant.shared.errors.handlers import register_error_handlers
from hk_assistant.shared.logging import configure_logging

logger = logging.getLogger(__name__)

# Detached LLM calls get this long to finish before the client is closed.
SHUTDOWN_DRAIN_SEC = 5.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared clients on startup and close them on shutdown."""
    settings: Settings = app.state.settings
    config = settings.completion_config()

    llm_http = build_http_client(config)
    quote_http = httpx.AsyncClient(timeout=httpx.Timeout(settings.quote_timeout_sec))
    completion = OpenAICompatibleCompletionClient(config, llm_http)

    app.state.completion_client = completion
    app.state.prediction_service = PredictionService(
        quote_source=EastmoneyQuoteSource(quote_http),
        completion=completion,
        config=config,
    )
    if config.has_credentials:
        logger.info("LLM provider configured: %s", describe(config))
    else:
        logger.warning(
            "ZHIPU_API_KEY / LLM_API_KEY not set; predictions return placeholders"
        )

    yield

    await completion.drain(timeout=SHUTDOWN_DRAIN_SEC)
    await llm_http.aclose()
    await quote_http.aclose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the internal prediction service.

    This is the composition root of the service.

    Args:
        settings: Explicit settings; loaded from the environment when omitted.

    Returns:
        A fully configured FastAPI application instance.
    """
    settings = settings or load_settings()
    configure_logging(level=settings.log_level)

    app = FastAPI(
        title=f"{settings.project_name} (prediction)",
        version=settings.version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # --- Error Handlers ---
    register_error_handlers(app)

    # --- Routers ---
    app.include_router(prediction_router)
    app.include_router(health_router, prefix="/api/v1")

    return app


app = create_app()
