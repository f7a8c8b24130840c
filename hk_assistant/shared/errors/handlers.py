"""
Centralized error handlers for FastAPI.

Maps prediction domain errors to HTTP responses.
No stack traces are exposed to clients; provider messages are kept
because they are the only actionable hint (rate limits, content policy).
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hk_assistant.domain.prediction.errors import (
    BackendUnavailableError,
    CompletionError,
    CredentialsMissingError,
    InvalidCodeError,
    PredictionDomainError,
    QuoteFetchError,
)

logger = logging.getLogger(__name__)

HTTP_400 = 400
HTTP_500 = 500
HTTP_502 = 502
HTTP_503 = 503


def _error_response(status_code: int, error: str, detail: str | None = None) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: dict[str, str | None] = {"error": error}
    if detail:
        body["detail"] = detail
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    """Register all domain error handlers on the FastAPI application.

    Args:
        app: The FastAPI application instance.
    """

    @app.exception_handler(InvalidCodeError)
    async def handle_invalid_code(
        _request: Request, exc: InvalidCodeError
    ) -> JSONResponse:
        """Handle requests without a usable instrument code."""
        logger.warning("Invalid code: %r", exc.code)
        return _error_response(HTTP_400, exc.message)

    @app.exception_handler(CredentialsMissingError)
    async def handle_credentials_missing(
        _request: Request, exc: CredentialsMissingError
    ) -> JSONResponse:
        """Handle calls that need an LLM key when none is configured."""
        logger.warning("LLM credentials missing")
        return _error_response(HTTP_503, "LLM not configured", exc.message)

    @app.exception_handler(CompletionError)
    async def handle_completion(
        _request: Request, exc: CompletionError
    ) -> JSONResponse:
        """Handle provider failures (transport, timeout, status, envelope)."""
        logger.error("Completion failed: %s", exc.message)
        return _error_response(HTTP_502, "LLM request failed", exc.message)

    @app.exception_handler(QuoteFetchError)
    async def handle_quote_fetch(
        _request: Request, exc: QuoteFetchError
    ) -> JSONResponse:
        """Handle quote provider failures on quote-only endpoints."""
        logger.warning("Quote fetch failed: %s (%s)", exc.target, exc.reason)
        return _error_response(HTTP_502, "Quote fetch failed", exc.message)

    @app.exception_handler(BackendUnavailableError)
    async def handle_backend_unavailable(
        _request: Request, exc: BackendUnavailableError
    ) -> JSONResponse:
        """Handle gateway failures to reach the internal prediction service."""
        logger.error("Prediction backend unavailable: %s", exc.reason)
        return _error_response(HTTP_502, "Prediction backend unavailable", exc.message)

    @app.exception_handler(PredictionDomainError)
    async def handle_prediction_domain(
        _request: Request, exc: PredictionDomainError
    ) -> JSONResponse:
        """Catch-all for unhandled prediction domain errors."""
        logger.error("Unhandled prediction domain error: %s", exc.message)
        return _error_response(HTTP_500, "Internal server error")

    @app.exception_handler(Exception)
    async def handle_unexpected(
        _request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all for unexpected errors. Never exposes internals."""
        logger.exception("Unexpected error: %s", type(exc).__name__)
        return _error_response(HTTP_500, "Internal server error")
