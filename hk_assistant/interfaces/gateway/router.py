"""
FastAPI router for the edge gateway.

Prediction routes are forwarded to the internal prediction service;
quote routes call the quote source directly. Codes are normalized to
``hk`` plus five digits before anything else happens.
Error mapping is handled by centralized error handlers.
"""

import logging

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from pydantic import ValidationError
from slowapi import Limiter

from hk_assistant.application.prediction.dtos import normalize_days
from hk_assistant.domain.prediction.codes import normalize_hk_code
from hk_assistant.domain.prediction.ports import QuoteSource
from hk_assistant.interfaces.gateway.dependencies import (
    get_backend_client,
    get_quote_source,
)
from hk_assistant.interfaces.gateway.proxy import (
    open_stream,
    passthrough,
    post_json,
    relay_bytes,
)
from hk_assistant.interfaces.gateway.schemas import (
    IndexItem,
    MarketSummaryResponse,
    PredictionBody,
    RealtimeQuoteResponse,
)
from hk_assistant.interfaces.prediction.router import SSE_HEADERS
from hk_assistant.interfaces.prediction.schemas import ErrorResponse, PredictResponse
from hk_assistant.shared.security.rate_limiting import HEAVY_RATE_LIMIT

logger = logging.getLogger(__name__)

PREDICT_PATH = "/predict"
STREAM_PATH = "/stream"

router = APIRouter(tags=["gateway"])
api_router = APIRouter(prefix="/api", tags=["gateway"])


async def _read_body(request: Request) -> PredictionBody:
    """Parse the prediction body; an unreadable body counts as empty."""
    raw = await request.body()
    if not raw:
        return PredictionBody()
    try:
        return PredictionBody.model_validate_json(raw)
    except ValidationError:
        logger.debug("Unreadable prediction body treated as empty")
        return PredictionBody()


def _forward_payload(code: str, body: PredictionBody) -> dict:
    return {
        "code": code,
        "days": normalize_days(body.days),
        "include_news": body.include_news,
        "model": body.model,
    }


@router.get(
    "/ping",
    response_class=PlainTextResponse,
    summary="Liveness probe",
    description="Returns the literal text ``pong``.",
)
def ping() -> str:
    """Answer liveness probes."""
    return "pong"


@api_router.get(
    "/stocks/{code}/realtime",
    response_model=RealtimeQuoteResponse,
    responses={502: {"model": ErrorResponse}},
    summary="Realtime stock quote",
    description="Return the latest snapshot of an HK stock.",
)
async def get_realtime(
    code: str,
    quote_source: QuoteSource = Depends(get_quote_source),
) -> RealtimeQuoteResponse:
    """Fetch one stock snapshot."""
    snapshot = await quote_source.fetch_stock(normalize_hk_code(code))
    return RealtimeQuoteResponse(
        code=snapshot.code,
        name=snapshot.name,
        current_price=snapshot.current_price,
        change_percent=snapshot.change_percent,
        volume=snapshot.volume,
        timestamp=snapshot.timestamp,
    )


@api_router.get(
    "/market/summary",
    response_model=MarketSummaryResponse,
    responses={502: {"model": ErrorResponse}},
    summary="Market summary",
    description="Return the Hang Seng and Hang Seng Tech index readings.",
)
async def get_market_summary(
    quote_source: QuoteSource = Depends(get_quote_source),
) -> MarketSummaryResponse:
    """Fetch the headline HK indices."""
    indices = await quote_source.fetch_market()
    return MarketSummaryResponse(
        indices=[
            IndexItem(
                name=i.name,
                value=i.value,
                change=i.change,
                change_percent=i.change_percent,
            )
            for i in indices
        ]
    )

async def _predict(request: Request, code: str, client: httpx.AsyncClient):
    code = code.strip()
    if not code:
        return PlainTextResponse("missing code", status_code=400)
    code = normalize_hk_code(code)
    body = await _read_body(request)

    upstream = await post_json(client, PREDICT_PATH, _forward_payload(code, body))
    if upstream.status_code != httpx.codes.OK:
        logger.warning("Prediction backend returned %d for %s", upstream.status_code, code)
        return await passthrough(upstream)
    return PredictResponse.model_validate(upstream.json())


async def _predict_stream(request: Request, code: str, client: httpx.AsyncClient) -> Response:
    code = code.strip()
    if not code:
        return PlainTextResponse("missing code", status_code=400)
    code = normalize_hk_code(code)
    body = await _read_body(request)

    payload = _forward_payload(code, body)
    payload.pop("include_news")
    upstream = await open_stream(client, STREAM_PATH, payload)
    if upstream.status_code != httpx.codes.OK:
        logger.warning("Stream backend returned %d for %s", upstream.status_code, code)
        return await passthrough(upstream)

    return StreamingResponse(
        relay_bytes(upstream), media_type="text/event-stream", headers=SSE_HEADERS
    )


def build_prediction_router(
    limiter: Limiter, heavy_limit: str = HEAVY_RATE_LIMIT
) -> APIRouter:
    """Build the prediction proxy routes, rate limited by ``limiter``."""
    prediction_router = APIRouter(prefix="/api", tags=["gateway"])

    @prediction_router.post(
        "/prediction/{code}",
        response_model=PredictResponse,
        responses={502: {"model": ErrorResponse}},
        summary="Predict stock direction",
        description=(
            "Forward a blocking prediction to the internal service. "
            "Non-success answers are returned with the same status and body."
        ),
    )
    @limiter.limit(heavy_limit)
    async def get_prediction(
        request: Request,
        code: str,
        client: httpx.AsyncClient = Depends(get_backend_client),
    ):
        """Blocking prediction through the internal service."""
        return await _predict(request, code, client)

    @prediction_router.post(
        "/prediction/{code}/stream",
        summary="Stream a prediction",
        description=(
            "Re-stream the internal service's Server-Sent Events unchanged. "
            "Non-success answers are returned with the same status and body."
        ),
    )
    @limiter.limit(heavy_limit)
    async def get_prediction_stream(
        request: Request,
        code: str,
        client: httpx.AsyncClient = Depends(get_backend_client),
    ) -> Response:
        """Transparent SSE relay from the internal service."""
        return await _predict_stream(request, code, client)

    return prediction_router
