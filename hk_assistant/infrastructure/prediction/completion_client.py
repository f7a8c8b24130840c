"""
OpenAI-compatible chat-completion adapter.

Implements CompletionPort over a shared ``httpx.AsyncClient`` in two modes:
    complete()  one request, one JSON envelope
    stream()    one request, a ``text/event-stream`` of delta envelopes

Timeout domains:
    Every outbound call runs in its own task, bounded by its own deadline
    (``CompletionConfig.timeout_seconds``), and the caller awaits it through
    ``asyncio.shield``. Cancelling the inbound request raises in the caller
    but never in the outbound task: the generation runs to completion or to
    its own deadline. An abandoned client therefore does not stop the
    provider call.

Failures are raised once. There is no retry.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Optional, TypeVar

import httpx
from pydantic import ValidationError

from hk_assistant.core.config import CompletionConfig
from hk_assistant.domain.prediction.entities import StreamEvent
from hk_assistant.domain.prediction.errors import (
    CompletionHTTPError,
    CompletionResponseError,
    CompletionTimeoutError,
    CompletionTransportError,
    EmptyCompletionError,
)
from hk_assistant.domain.prediction.ports import CompletionPort, EventSink
from hk_assistant.infrastructure.prediction.completion_schemas import (
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    delta_text,
    message_text,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"
RAW_LOG_LIMIT = 500


def truncate(text: str, limit: int) -> str:
    """Shorten text for log lines."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def parse_completion(raw: str) -> str:
    """Extract the answer text from a non-streamed completion body.

    Falls back to ``reasoning_content`` when the answer channel is empty.

    Raises:
        CompletionResponseError: Unparsable body, provider error object, or no choices.
        EmptyCompletionError: Neither channel carries text.
    """
    try:
        envelope = ChatCompletionResponse.model_validate_json(raw)
    except ValidationError as exc:
        raise CompletionResponseError(f"Failed to parse LLM response: {exc}") from exc

    if envelope.error is not None and envelope.error.message:
        raise CompletionResponseError(f"LLM error: {envelope.error.message}")
    if not envelope.choices:
        logger.warning("LLM response has no choices, raw: %s", truncate(raw, RAW_LOG_LIMIT))
        raise CompletionResponseError("LLM returned no choices")

    choice = envelope.choices[0]
    analysis = message_text(choice.message.content).strip()
    if not analysis:
        analysis = (choice.message.reasoning_content or "").strip()
    if not analysis:
        logger.warning(
            "LLM returned empty content, finish_reason=%s, raw: %s",
            choice.finish_reason,
            truncate(raw, RAW_LOG_LIMIT),
        )
        raise EmptyCompletionError(choice.finish_reason or "")
    return analysis


async def iter_fragments(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield text fragments from the lines of a streamed completion.

    Only ``data:`` lines are read; ``[DONE]`` ends the stream. Malformed
    payloads and envelopes without choices are skipped.
    """
    async for raw_line in lines:
        line = raw_line.strip()
        if not line or not line.startswith(DATA_PREFIX):
            continue
        payload = line[len(DATA_PREFIX):].strip()
        if payload == DONE_SENTINEL:
            return
        try:
            chunk = ChatCompletionChunk.model_validate_json(payload)
        except ValidationError:
            logger.debug("Skipping malformed stream fragment: %s", truncate(payload, 200))
            continue
        if not chunk.choices:
            continue
        text = delta_text(chunk.choices[0].delta)
        if text:
            yield text


class OpenAICompatibleCompletionClient(CompletionPort):
    """Completion adapter for Zhipu / OpenAI-compatible ``/chat/completions``.

    Args:
        config: Resolved provider configuration.
        http_client: Process-wide client, built once at startup.
    """

    def __init__(self, config: CompletionConfig, http_client: httpx.AsyncClient) -> None:
        self._config = config
        self._http = http_client
        self._inflight: set[asyncio.Task] = set()

    @property
    def endpoint(self) -> str:
        return self._config.base_url.rstrip("/") + "/chat/completions"

    @property
    def inflight(self) -> int:
        """Number of outbound calls still running."""
        return len(self._inflight)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
        }

    # ------------------------------------------------------------------
    # Port implementation
    # ------------------------------------------------------------------

    async def complete(self, prompt: str, model: str) -> str:
        request = ChatCompletionRequest.for_prompt(prompt, model, self._config.max_tokens)
        logger.info(
            "Calling LLM model=%s (timeout=%gs)", model, self._config.timeout_seconds
        )
        return await self._detached(self._complete(request))

    async def stream(self, prompt: str, model: str, on_event: EventSink) -> None:
        request = ChatCompletionRequest.for_prompt(
            prompt, model, self._config.max_tokens, stream=True
        )
        logger.info(
            "Calling LLM model=%s stream=true (timeout=%gs)",
            model,
            self._config.timeout_seconds,
        )
        await self._detached(self._stream(request, on_event))

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for detached outbound calls, e.g. before closing the HTTP client."""
        if self._inflight:
            await asyncio.wait(set(self._inflight), timeout=timeout)

    # ------------------------------------------------------------------
    # Timeout domain
    # ------------------------------------------------------------------

    async def _detached(self, call: Awaitable[T]) -> T:
        """Run an outbound call in its own task under its own deadline."""
        task = asyncio.create_task(self._with_deadline(call))
        self._inflight.add(task)
        task.add_done_callback(self._on_outbound_done)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                logger.info("Inbound request cancelled; LLM call continues in background")
            raise

    async def _with_deadline(self, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self._config.timeout_seconds)
        except asyncio.TimeoutError:
            raise CompletionTimeoutError(self._config.timeout_seconds) from None

    def _on_outbound_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("Outbound LLM call ended with %s", type(exc).__name__)

    # ------------------------------------------------------------------
    # Wire calls
    # ------------------------------------------------------------------

    async def _complete(self, request: ChatCompletionRequest) -> str:
        try:
            response = await self._http.post(
                self.endpoint, json=request.to_payload(), headers=self._headers()
            )
        except httpx.TimeoutException:
            raise CompletionTimeoutError(self._config.timeout_seconds) from None
        except httpx.HTTPError as exc:
            logger.error("LLM request error: %s", exc)
            raise CompletionTransportError(str(exc) or type(exc).__name__) from exc

        logger.info("LLM response status=%d", response.status_code)
        if response.status_code != httpx.codes.OK:
            raise CompletionHTTPError(response.status_code, response.text)
        return parse_completion(response.text)

    async def _stream(self, request: ChatCompletionRequest, on_event: EventSink) -> None:
        fragments = 0
        try:
            async with self._http.stream(
                "POST", self.endpoint, json=request.to_payload(), headers=self._headers()
            ) as response:
                if response.status_code != httpx.codes.OK:
                    body = await response.aread()
                    raise CompletionHTTPError(
                        response.status_code, body.decode("utf-8", errors="replace")
                    )
                async for text in iter_fragments(response.aiter_lines()):
                    fragments += 1
                    await on_event(StreamEvent.chunk(text))
        except httpx.TimeoutException:
            raise CompletionTimeoutError(self._config.timeout_seconds) from None
        except httpx.HTTPError as exc:
            logger.error("LLM stream error after %d fragments: %s", fragments, exc)
            raise CompletionTransportError(str(exc) or type(exc).__name__) from exc
        logger.info("LLM stream finished, fragments=%d", fragments)


def build_http_client(config: CompletionConfig, **kwargs: Any) -> httpx.AsyncClient:
    """Process-wide HTTP client for the completion provider."""
    return httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_seconds), **kwargs)
