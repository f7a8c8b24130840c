"""
Use case: Predict the short-term direction of an HK stock.

Input: PredictCommand (code, days, model_override)
Output: PredictionResult (blocking) or MESSAGE events (streaming)
Side effects: Outbound quote and LLM calls. Nothing is persisted.
Failure cases:
    - Quote failures never fail the request; they are written into the prompt.
    - No credentials: placeholder result (blocking), CredentialsMissingError (streaming).
    - Provider failures propagate as CompletionError subclasses.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from hk_assistant.application.prediction.dtos import PredictCommand
from hk_assistant.core.config import CompletionConfig
from hk_assistant.domain.prediction.entities import (
    IndexSnapshot,
    PredictionContext,
    PredictionResult,
)
from hk_assistant.domain.prediction.errors import (
    CredentialsMissingError,
    InvalidCodeError,
    QuoteFetchError,
)
from hk_assistant.domain.prediction.ports import CompletionPort, EventSink, QuoteSource
from hk_assistant.domain.prediction.prompt_builder import (
    MARKET_FETCH_FAILED,
    STOCK_FETCH_FAILED,
    PromptBuilder,
    render_indices,
    render_snapshot,
    resolve_model,
)
from hk_assistant.domain.prediction.trading_window import classify

logger = logging.getLogger(__name__)

PLACEHOLDER_CONFIDENCE = 0.5
# Fixed; the model's own confidence number is left inside the analysis text.
LLM_CONFIDENCE = 0.85


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PredictionService:
    """Facade over quote prefetch, prompt building and completion.

    Both call shapes go through ``prepare`` so they always send the same
    prompt for the same inputs.

    Args:
        quote_source: Port for stock and index snapshots.
        completion: Port for the LLM provider.
        config: Resolved provider configuration (key presence, default model).
        prompt_builder: Prompt scaffolding; defaults to the packaged templates.
        clock: Source of the current instant.
    """

    def __init__(
        self,
        quote_source: QuoteSource,
        completion: CompletionPort,
        config: CompletionConfig,
        prompt_builder: Optional[PromptBuilder] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._quotes = quote_source
        self._completion = completion
        self._config = config
        self._prompts = prompt_builder or PromptBuilder()
        self._clock = clock

    @property
    def has_credentials(self) -> bool:
        return self._config.has_credentials

    async def prepare(
        self, command: PredictCommand, now: Optional[datetime] = None
    ) -> PredictionContext:
        """Prefetch quotes and build the request context.

        Runs on the caller's task: inbound cancellation is honored here.

        Raises:
            InvalidCodeError: If the command carries no code.
        """
        if not command.code:
            raise InvalidCodeError()
        now = now or self._clock()

        snapshot = None
        try:
            snapshot = await self._quotes.fetch_stock(command.code)
            stock_text = render_snapshot(snapshot)
        except QuoteFetchError as exc:
            stock_text = STOCK_FETCH_FAILED.format(reason=exc.message)

        indices: list[IndexSnapshot] = []
        try:
            indices = await self._quotes.fetch_market()
            market_text = render_indices(indices)
        except QuoteFetchError as exc:
            market_text = MARKET_FETCH_FAILED.format(reason=exc.message)

        logger.info("Quotes fetched for code=%s: %s", command.code, stock_text[:80])

        regime = classify(now)
        prompt, focus = self._prompts.build(
            command.code, command.days, regime, stock_text, market_text, now
        )
        return PredictionContext(
            code=command.code,
            requested_days=command.days,
            model_override=command.model_override,
            regime=regime,
            generated_at=now,
            stock_text=stock_text,
            market_text=market_text,
            prompt=prompt,
            focus=focus,
            model=resolve_model(command.model_override, self._config.model),
            snapshot=snapshot,
            indices=tuple(indices),
        )

    async def predict(self, command: PredictCommand) -> PredictionResult:
        """Run a blocking prediction.

        Returns:
            The LLM analysis with a fixed 0.85 confidence, or a placeholder
            with 0.5 confidence when no credentials are configured.
        """
        logger.info("Predict start code=%s days=%d", command.code, command.days)
        context = await self.prepare(command)

        if not self.has_credentials:
            logger.info("No LLM credentials configured, returning placeholder")
            return PredictionResult(
                code=context.code,
                analysis=self._prompts.placeholder(
                    context.code, context.stock_text, context.market_text
                ),
                confidence=PLACEHOLDER_CONFIDENCE,
                news_summary=self._prompts.news_summary,
            )

        analysis = await self._completion.complete(context.prompt, context.model)
        return PredictionResult(
            code=context.code,
            analysis=analysis,
            confidence=LLM_CONFIDENCE,
            news_summary=self._prompts.news_summary,
        )

    async def stream_predict(self, command: PredictCommand, on_event: EventSink) -> None:
        """Stream a prediction as MESSAGE events through ``on_event``.

        Raises:
            CredentialsMissingError: If no LLM key is configured.
        """
        logger.info("StreamPredict start code=%s days=%d", command.code, command.days)
        context = await self.prepare(command)
        if not self.has_credentials:
            raise CredentialsMissingError()
        await self._completion.stream(context.prompt, context.model, on_event)
