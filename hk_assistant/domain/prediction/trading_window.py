"""
HKEX trading-window classification.

Sessions (Hong Kong time, Monday to Friday):
    morning    09:30 - 12:00
    afternoon  13:00 - 16:00

Windows are half-open: the start minute is inclusive, the end exclusive.
"""

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from hk_assistant.domain.prediction.entities import TradingRegime

logger = logging.getLogger(__name__)

HK_FIXED_OFFSET = timezone(timedelta(hours=8), "HKT")

SESSIONS = (
    (9 * 60 + 30, 12 * 60),
    (13 * 60, 16 * 60),
)

SATURDAY = 5


def _load_hk_zone() -> tzinfo:
    try:
        return ZoneInfo("Asia/Hong_Kong")
    except ZoneInfoNotFoundError:
        logger.warning("Timezone data unavailable, using fixed UTC+8 for Hong Kong")
        return HK_FIXED_OFFSET


HK_TZ = _load_hk_zone()


def to_hk_time(now: datetime) -> datetime:
    """Convert an instant to Hong Kong local time.

    Naive datetimes are interpreted as UTC.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(HK_TZ)


def classify(now: datetime) -> TradingRegime:
    """Return the trading regime in force at ``now``."""
    local = to_hk_time(now)
    if local.weekday() >= SATURDAY:
        return TradingRegime.CLOSED
    minute_of_day = local.hour * 60 + local.minute
    for start, end in SESSIONS:
        if start <= minute_of_day < end:
            return TradingRegime.TRADING
    return TradingRegime.CLOSED
