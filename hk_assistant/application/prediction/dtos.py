"""
Data Transfer Objects for the prediction application layer.

DTOs carry data between the interface and application layers.
They are plain dataclasses with no behavior beyond normalization.
"""

from dataclasses import dataclass

DEFAULT_DAYS = 3


def normalize_days(days: int | None) -> int:
    """Missing or non-positive horizons default to three days."""
    if days is None or days <= 0:
        return DEFAULT_DAYS
    return days


@dataclass(frozen=True)
class PredictCommand:
    """Input DTO for a blocking or streamed prediction.

    Attributes:
        code: Instrument code (required, non-blank).
        days: Prediction horizon in days.
        model_override: Per-request model name; blank uses the configured model.
        include_news: Accepted for API compatibility; news is not fetched.
    """

    code: str
    days: int = DEFAULT_DAYS
    model_override: str = ""
    include_news: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", self.code.strip())
        object.__setattr__(self, "days", normalize_days(self.days))
        object.__setattr__(self, "model_override", (self.model_override or "").strip())
