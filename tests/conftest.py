"""
Shared fixtures for the prediction pipeline tests.

Provides in-memory quote and completion fakes so the service, relay and
HTTP layers can be exercised without network access.
"""

from datetime import datetime, timezone
from typing import Optional

import pytest

from hk_assistant.core.config import CompletionConfig, Settings
from hk_assistant.domain.prediction.entities import IndexSnapshot, Snapshot, StreamEvent
from hk_assistant.domain.prediction.ports import CompletionPort, EventSink, QuoteSource

# Tuesday 10:00 in Hong Kong.
TRADING_NOW = datetime(2024, 1, 2, 2, 0, tzinfo=timezone.utc)
# Saturday 10:00 in Hong Kong.
WEEKEND_NOW = datetime(2024, 1, 6, 2, 0, tzinfo=timezone.utc)

SNAPSHOT = Snapshot(
    code="hk00700",
    name="腾讯控股",
    current_price=320.5,
    change_percent=1.42,
    volume=12345678,
)
INDICES = [
    IndexSnapshot(name="恒生指数", value=17000.12, change=123.45, change_percent=0.73),
    IndexSnapshot(name="恒生科技指数", value=3800.5, change=-20.1, change_percent=-0.53),
]


class FakeQuoteSource(QuoteSource):
    """QuoteSource returning fixed snapshots, or raising configured errors."""

    def __init__(
        self,
        snapshot: Snapshot = SNAPSHOT,
        indices: Optional[list[IndexSnapshot]] = None,
        stock_error: Optional[Exception] = None,
        market_error: Optional[Exception] = None,
    ) -> None:
        self.snapshot = snapshot
        self.indices = list(INDICES) if indices is None else indices
        self.stock_error = stock_error
        self.market_error = market_error
        self.requested: list[str] = []

    async def fetch_stock(self, code: str) -> Snapshot:
        self.requested.append(code)
        if self.stock_error is not None:
            raise self.stock_error
        return self.snapshot

    async def fetch_market(self) -> list[IndexSnapshot]:
        if self.market_error is not None:
            raise self.market_error
        return self.indices


class FakeCompletion(CompletionPort):
    """CompletionPort recording prompts and replaying canned output."""

    def __init__(
        self,
        analysis: str = "看多",
        fragments: tuple[str, ...] = ("看", "多"),
        error: Optional[Exception] = None,
    ) -> None:
        self.analysis = analysis
        self.fragments = fragments
        self.error = error
        self.calls: list[tuple[str, str, str]] = []

    async def complete(self, prompt: str, model: str) -> str:
        self.calls.append(("complete", prompt, model))
        if self.error is not None:
            raise self.error
        return self.analysis

    async def stream(self, prompt: str, model: str, on_event: EventSink) -> None:
        self.calls.append(("stream", prompt, model))
        for fragment in self.fragments:
            await on_event(StreamEvent.chunk(fragment))
        if self.error is not None:
            raise self.error


@pytest.fixture
def completion_config() -> CompletionConfig:
    """Config with credentials pointing at a fake provider."""
    return CompletionConfig(
        provider="openai-compatible",
        api_key="sk-test",
        base_url="https://llm.test/v1",
        model="test-model",
        timeout_seconds=5,
    )


@pytest.fixture
def no_key_config() -> CompletionConfig:
    """Config without credentials."""
    return CompletionConfig(
        provider="",
        api_key="",
        base_url="https://llm.test/v1",
        model="test-model",
    )


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        zhipu_api_key="",
        llm_api_key="",
        rate_limit_enabled=False,
        stream_backend_url="http://backend",
    )
