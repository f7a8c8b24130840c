"""
Pydantic schemas for the edge gateway API.

The gateway is the only surface exposed to browsers. Prediction bodies
are forwarded to the internal service; quote responses are built from
the quote source directly.
"""

from pydantic import BaseModel


class PredictionBody(BaseModel):
    """Request body for ``POST /api/prediction/{code}`` and its stream variant.

    Attributes:
        days: Prediction horizon; missing or non-positive means 3.
        include_news: Forwarded for compatibility; news is not fetched.
        model: Per-request model override.
    """

    days: int = 0
    include_news: bool = False
    model: str = ""


class RealtimeQuoteResponse(BaseModel):
    """Realtime snapshot of one HK stock."""

    code: str
    name: str
    current_price: float
    change_percent: float
    volume: int
    timestamp: str


class IndexItem(BaseModel):
    """A single market index reading."""

    name: str
    value: float
    change: float
    change_percent: float


class MarketSummaryResponse(BaseModel):
    """Headline HK market indices."""

    indices: list[IndexItem]
