"""
Domain entities for the prediction bounded context.

Entities are immutable value objects produced and consumed within a
single request. They contain no framework imports and no IO operations.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class TradingRegime(Enum):
    """HKEX trading-hours classification used to steer prompt framing."""

    TRADING = "trading"
    CLOSED = "closed"

    @property
    def label(self) -> str:
        """Human-readable label embedded in the prompt."""
        if self is TradingRegime.TRADING:
            return "港股盘中（9:30-12:00, 13:00-16:00 香港时间）"
        return "港股休市"


class StreamEventType(Enum):
    """SSE event names written on the wire."""

    MESSAGE = "message"
    ERROR = "error"
    DONE = "done"


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time quote for a single HKEX-listed stock."""

    code: str
    name: str
    current_price: float
    change_percent: float
    volume: int
    timestamp: str = ""


@dataclass(frozen=True)
class IndexSnapshot:
    """Point-in-time reading of a market index (Hang Seng, HS Tech...)."""

    name: str
    value: float
    change: float
    change_percent: float


@dataclass(frozen=True)
class StreamEvent:
    """One event of a prediction stream.

    A stream is zero or more MESSAGE events followed by exactly one
    terminal event (ERROR or DONE).
    """

    event_type: StreamEventType
    data: str = ""

    @classmethod
    def chunk(cls, text: str) -> "StreamEvent":
        return cls(StreamEventType.MESSAGE, text)

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(StreamEventType.ERROR, message)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(StreamEventType.DONE, "")

    @property
    def is_terminal(self) -> bool:
        return self.event_type is not StreamEventType.MESSAGE


@dataclass(frozen=True)
class PredictionContext:
    """Request-scoped aggregate built once before the completion call.

    The prompt is derived from the other fields only; the context is
    never stored or shared across requests.
    """

    code: str
    requested_days: int
    model_override: str
    regime: TradingRegime
    generated_at: datetime
    stock_text: str
    market_text: str
    prompt: str
    focus: str
    model: str
    snapshot: Optional[Snapshot] = None
    indices: tuple[IndexSnapshot, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PredictionResult:
    """Terminal value of a blocking prediction."""

    code: str
    analysis: str
    confidence: float
    news_summary: str
