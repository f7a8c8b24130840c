"""
Dependency injection for the edge gateway.

Clients are built once in the gateway lifespan and read from ``app.state``.
"""

import httpx
from fastapi import Request

from hk_assistant.domain.prediction.ports import QuoteSource


def get_backend_client(request: Request) -> httpx.AsyncClient:
    """Return the HTTP client bound to the internal prediction service."""
    return request.app.state.backend_client


def get_quote_source(request: Request) -> QuoteSource:
    """Return the quote source used by the realtime and market routes."""
    return request.app.state.quote_source
