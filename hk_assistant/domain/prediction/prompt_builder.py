"""
Prompt construction for HK stock predictions.

The prompt is constant scaffolding (loaded from ``prompts.yaml``) with
variable slots for the instrument code, timestamp, regime label, stock
block, index block, focus phrase and regime instruction. The regime is
the only input that selects between scaffolding variants.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml

from hk_assistant.domain.prediction.entities import IndexSnapshot, Snapshot, TradingRegime
from hk_assistant.domain.prediction.trading_window import to_hk_time

logger = logging.getLogger(__name__)

DEFAULT_PROMPTS_PATH = Path(__file__).parent / "prompts.yaml"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_STOCK_DATA = "无行情数据"
NO_MARKET_DATA = "无大盘数据"
STOCK_FETCH_FAILED = "获取行情失败: {reason}"
MARKET_FETCH_FAILED = "获取大盘失败: {reason}"


def render_snapshot(snapshot: Optional[Snapshot]) -> str:
    """Render a stock snapshot as a single prompt line."""
    if snapshot is None:
        return NO_STOCK_DATA
    return (
        f"名称={snapshot.name}, 代码={snapshot.code}, 现价={snapshot.current_price:.2f}, "
        f"涨跌幅={snapshot.change_percent:.2f}%, 成交量={snapshot.volume}"
    )


def render_indices(indices: list[IndexSnapshot]) -> str:
    """Render index readings, one line per index."""
    if not indices:
        return NO_MARKET_DATA
    return "\n".join(
        f"{idx.name}: {idx.value:.2f}, 涨跌{idx.change_percent:.2f}%, 变动{idx.change:.2f}"
        for idx in indices
    )


def resolve_model(model_override: str, default_model: str) -> str:
    """Return the per-request override when given, else the configured model."""
    override = (model_override or "").strip()
    return override or default_model


@dataclass(frozen=True)
class RegimeScaffold:
    """Regime-dependent focus phrase and instruction block."""

    focus: str
    instruction: str


@dataclass(frozen=True)
class PromptTemplates:
    """Parsed contents of ``prompts.yaml``."""

    template: str
    regimes: dict[TradingRegime, RegimeScaffold]
    placeholder: str
    news_summary: str

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> "PromptTemplates":
        """Load prompt scaffolding from a YAML file.

        Args:
            path: Path to the YAML file. Defaults to the packaged prompts.yaml.

        Raises:
            OSError: If the file cannot be read.
            KeyError: If a required section is missing.
        """
        path = Path(path) if path else DEFAULT_PROMPTS_PATH
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        regimes = {
            regime: RegimeScaffold(
                focus=data["regimes"][regime.value]["focus"],
                instruction=data["regimes"][regime.value]["instruction"].strip(),
            )
            for regime in TradingRegime
        }
        logger.debug("Loaded prompt templates from %s", path)
        return cls(
            template=data["template"],
            regimes=regimes,
            placeholder=data["placeholder"],
            news_summary=data["news_summary"],
        )


class PromptBuilder:
    """Builds the prediction prompt. Pure: same inputs, same bytes."""

    def __init__(self, templates: Optional[PromptTemplates] = None) -> None:
        self._templates = templates or PromptTemplates.from_yaml()

    @property
    def news_summary(self) -> str:
        return self._templates.news_summary

    def build(
        self,
        code: str,
        days: int,
        regime: TradingRegime,
        stock_text: str,
        market_text: str,
        now: datetime,
    ) -> tuple[str, str]:
        """Return ``(prompt, focus)`` for one prediction request.

        Args:
            code: Instrument code as requested.
            days: Prediction horizon in days.
            regime: Trading regime at ``now``.
            stock_text: Rendered stock snapshot, or a degraded-data message.
            market_text: Rendered index lines, or a degraded-data message.
            now: Instant used for the prompt timestamp.
        """
        scaffold = self._templates.regimes[regime]
        focus = scaffold.focus.format(days=days)
        prompt = self._templates.template.format(
            code=code,
            timestamp=to_hk_time(now).strftime(TIMESTAMP_FORMAT),
            status=regime.label,
            stock=stock_text,
            market=market_text,
            focus=focus,
            instruction=scaffold.instruction,
        )
        return prompt, focus

    def placeholder(self, code: str, stock_text: str, market_text: str) -> str:
        """Analysis returned when no LLM credentials are configured."""
        return self._templates.placeholder.format(
            code=code, stock=stock_text, market=market_text
        )
