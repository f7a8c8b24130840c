"""
FastAPI router for the internal prediction service.

All routes delegate to PredictionService. No business logic here.
Streaming routes answer ``text/event-stream``; every completion fragment
is written as its own SSE frame as soon as it is produced.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, StreamingResponse
from pydantic import ValidationError

from hk_assistant.application.prediction.chunk_relay import ChunkRelay
from hk_assistant.application.prediction.dtos import PredictCommand
from hk_assistant.application.prediction.predict import PredictionService
from hk_assistant.interfaces.prediction.dependencies import get_prediction_service
from hk_assistant.interfaces.prediction.schemas import (
    ErrorResponse,
    PredictRequest,
    PredictResponse,
    StreamRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["prediction"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
MISSING_CODE = "missing code"


def _missing_code() -> PlainTextResponse:
    return PlainTextResponse(MISSING_CODE, status_code=400)


def _query_days(raw: str) -> int:
    """Query ``days`` as an int; anything unparsable means the default."""
    try:
        return int(raw.strip())
    except ValueError:
        return 0


def _stream_response(service: PredictionService, command: PredictCommand) -> StreamingResponse:
    """Start the prediction on its own task and stream its SSE frames."""
    relay = ChunkRelay()
    relay.start(service.stream_predict(command, relay.emit))
    return StreamingResponse(
        relay.frames(), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.get(
    "/stream",
    summary="Stream a prediction (query parameters)",
    description="Stream the LLM analysis for an HK stock as Server-Sent Events.",
)
async def stream_prediction_get(
    code: str = "",
    days: str = "",
    model: str = "",
    service: PredictionService = Depends(get_prediction_service),
):
    """Stream a prediction for ``?code=...``."""
    command = PredictCommand(code=code, days=_query_days(days), model_override=model)
    if not command.code:
        return _missing_code()
    return _stream_response(service, command)


@router.post(
    "/stream",
    summary="Stream a prediction (JSON body)",
    description=(
        "Stream the LLM analysis for an HK stock as Server-Sent Events. "
        "An unreadable body is treated as an empty one."
    ),
)
async def stream_prediction_post(
    request: Request,
    service: PredictionService = Depends(get_prediction_service),
):
    """Stream a prediction for ``{"code", "days", "model"}``."""
    raw = await request.body()
    try:
        body = StreamRequest.model_validate_json(raw) if raw else StreamRequest()
    except ValidationError:
        logger.debug("Unreadable /stream body treated as empty")
        body = StreamRequest()

    command = PredictCommand(code=body.code, days=body.days, model_override=body.model)
    if not command.code:
        return _missing_code()
    return _stream_response(service, command)


@router.post(
    "/predict",
    response_model=PredictResponse,
    responses={
        400: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Predict stock direction",
    description="Run a blocking LLM prediction for an HK stock.",
)
async def predict(
    request: PredictRequest,
    service: PredictionService = Depends(get_prediction_service),
) -> PredictResponse:
    """Return the full analysis once the completion has finished."""
    command = PredictCommand(
        code=request.code,
        days=request.days,
        model_override=request.model,
        include_news=request.include_news,
    )
    result = await service.predict(command)
    return PredictResponse(
        code=result.code,
        confidence=result.confidence,
        analysis=result.analysis,
        news_summary=result.news_summary,
    )
