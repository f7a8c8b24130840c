"""
Pydantic schemas for the internal prediction service.

These schemas define the contract between the edge gateway and the
internal service. Request fields are lenient: a missing ``days`` or a
non-positive one falls back to the default horizon downstream.
No business logic belongs here.
"""

from pydantic import BaseModel, Field


class StreamRequest(BaseModel):
    """Request body for ``POST /stream``.

    Attributes:
        code: Instrument code. Required, but validated by the route so a
            missing code answers ``400 missing code`` in plain text.
        days: Prediction horizon in days.
        model: Per-request model override.
    """

    code: str = ""
    days: int = 0
    model: str = ""


class PredictRequest(BaseModel):
    """Request body for ``POST /predict``."""

    code: str = ""
    days: int = 0
    include_news: bool = False
    model: str = ""


class PredictResponse(BaseModel):
    """Blocking prediction result."""

    code: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    analysis: str
    news_summary: str


class HealthResponse(BaseModel):
    """Response schema for health check endpoint."""

    status: str
    version: str


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
