"""
Port interfaces (ABCs) for the prediction bounded context.

Ports define the contracts that the domain requires from the outside world.
Infrastructure adapters implement these interfaces.
The domain layer never depends on concrete implementations.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from hk_assistant.domain.prediction.entities import IndexSnapshot, Snapshot, StreamEvent

EventSink = Callable[[StreamEvent], Awaitable[None]]


class QuoteSource(ABC):
    """Port for live quote snapshots."""

    @abstractmethod
    async def fetch_stock(self, code: str) -> Snapshot:
        """Return the current snapshot for a stock.

        Raises:
            QuoteFetchError: If the provider has no usable data.
        """
        raise NotImplementedError

    @abstractmethod
    async def fetch_market(self) -> list[IndexSnapshot]:
        """Return the current readings of the tracked market indices.

        Raises:
            QuoteFetchError: If no index could be fetched.
        """
        raise NotImplementedError


class CompletionPort(ABC):
    """Port for an LLM chat-completion provider."""

    @abstractmethod
    async def complete(self, prompt: str, model: str) -> str:
        """Return the full answer text for a single-message prompt."""
        raise NotImplementedError

    @abstractmethod
    async def stream(self, prompt: str, model: str, on_event: EventSink) -> None:
        """Deliver the answer incrementally as MESSAGE events.

        Args:
            prompt: User-role message content.
            model: Provider model name.
            on_event: Awaited once per fragment, in provider order. An
                exception raised by it aborts the stream and propagates.
        """
        raise NotImplementedError
