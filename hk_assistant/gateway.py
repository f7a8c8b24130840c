"""
Edge gateway entry point.

Creates the FastAPI application facing end clients and wires together:
- Gateway router (prediction proxy, realtime quote, market summary, ping)
- Error handlers (centralized domain-to-HTTP mapping)
- Security middleware (headers, rate limiting)
- Logging configuration
- HTTP client bound to the internal prediction service

No business logic belongs here.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from hk_assistant.core.config import Settings, load_settings
from hk_assistant.infrastructure.prediction.quote_source import EastmoneyQuoteSource
from hk_assistant.interfaces.gateway.router import (
    api_router,
    build_prediction_router,
    router as gateway_router,
)
from hk_assistant.shared.errors.handlers import register_error_handlers
from hk_assistant.shared.logging import configure_logging
from hk_assistant.shared.security.headers import SecurityHeadersMiddleware
from hk_assistant.shared.security.rate_limiting import (
    build_limiter,
    rate_limit_exceeded_handler,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the backend and quote clients on startup, close them on shutdown."""
    settings: Settings = app.state.settings

    backend_client = httpx.AsyncClient(
        base_url=settings.stream_backend_url,
        timeout=httpx.Timeout(
            settings.gateway_timeout_sec, connect=settings.gateway_connect_timeout_sec
        ),
    )
    quote_http = httpx.AsyncClient(timeout=httpx.Timeout(settings.quote_timeout_sec))

    app.state.backend_client = backend_client
    app.state.quote_source = EastmoneyQuoteSource(quote_http)
    logger.info("Gateway forwarding predictions to %s", settings.stream_backend_url)

    yield

    await backend_client.aclose()
    await quote_http.aclose()


def create_gateway_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the edge gateway.

    Registers routers, error handlers, and security middleware.
    This is the composition root of the gateway.

    Args:
        settings: Explicit settings; loaded from the environment when omitted.

    Returns:
        A fully configured FastAPI application instance.
    """
    settings = settings or load_settings()
    configure_logging(level=settings.log_level)

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # --- Rate Limiting ---
    limiter = build_limiter(enabled=settings.rate_limit_enabled)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # --- Security Middleware ---
    app.add_middleware(SecurityHeadersMiddleware)

    # --- Error Handlers ---
    register_error_handlers(app)

    # --- Routers ---
    app.include_router(gateway_router)
    app.include_router(api_router)
    app.include_router(build_prediction_router(limiter, settings.rate_limit_heavy))

    return app


app = create_gateway_app()
