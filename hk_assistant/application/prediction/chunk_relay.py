"""
Origin-side relay from completion events to a Server-Sent Events body.

Architecture:
    CompletionClient ──emit()──▶ ChunkRelay queue ──frames()──▶ StreamingResponse
                                     ▲
                               pump(producer)
                        (adds exactly one terminal event)

Wire format, one frame per event, written as soon as it is produced:

    event: <message|error|done>
    data: "<fragment encoded as one JSON string>"
    <blank line>

The producer never observes the HTTP connection directly. When the
consumer goes away the relay is closed and the next ``emit`` raises
RelayClosedError, which ends the upstream read.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Optional

from hk_assistant.domain.prediction.entities import StreamEvent
from hk_assistant.domain.prediction.errors import PredictionDomainError, RelayClosedError

logger = logging.getLogger(__name__)


def format_sse(event: StreamEvent) -> str:
    """Encode one event as an SSE frame."""
    data = json.dumps(event.data, ensure_ascii=False)
    return f"event: {event.event_type.value}\ndata: {data}\n\n"


class ChunkRelay:
    """Single-use bridge between one producer and one response body."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[StreamEvent] = asyncio.Queue()
        self._closed = False
        self._finished = False
        self._pump_task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: StreamEvent) -> None:
        """Queue one event for the consumer.

        Raises:
            RelayClosedError: If the consumer has gone away.
        """
        if self._closed:
            raise RelayClosedError()
        if self._finished:
            return
        self._queue.put_nowait(event)

    def _finish(self, event: StreamEvent) -> None:
        if self._finished:
            return
        self._finished = True
        self._queue.put_nowait(event)

    async def pump(self, producer: Awaitable[None]) -> None:
        """Await the producer and append the terminal event.

        Success appends ``done``; any failure appends a single ``error``
        carrying the failure message.
        """
        try:
            await producer
        except RelayClosedError:
            logger.info("Stream consumer disconnected; upstream read stopped")
            return
        except PredictionDomainError as exc:
            logger.warning("Prediction stream failed: %s", exc.message)
            self._finish(StreamEvent.error(exc.message))
            return
        except Exception as exc:
            logger.exception("Unexpected prediction stream failure")
            self._finish(StreamEvent.error(str(exc) or type(exc).__name__))
            return
        self._finish(StreamEvent.done())

    def start(self, producer: Awaitable[None]) -> asyncio.Task:
        """Run ``pump(producer)`` in its own task."""
        self._pump_task = asyncio.create_task(self.pump(producer))
        return self._pump_task

    async def frames(self) -> AsyncIterator[str]:
        """Yield SSE frames in production order, ending after the terminal one."""
        try:
            while True:
                event = await self._queue.get()
                yield format_sse(event)
                if event.is_terminal:
                    return
        finally:
            self.close()

    def close(self) -> None:
        """Mark the consumer gone and stop work still on the inbound side."""
        self._closed = True
        if self._pump_task is not None and not self._pump_task.done():
            self._pump_task.cancel()
