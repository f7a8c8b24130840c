"""
HK quote adapter over public market-data endpoints.

Stock snapshots come from Eastmoney push2 (same feed as most HK brokers).
Index readings: Hang Seng from Eastmoney ``100.HSI`` with a Sina
``int_hangseng`` fallback, Hang Seng Tech from Eastmoney ``124.HSTECH``.

Eastmoney scales prices: stocks by 1000, indices by 100.
"""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from hk_assistant.domain.prediction.codes import normalize_hk_code, to_eastmoney_secid
from hk_assistant.domain.prediction.entities import IndexSnapshot, Snapshot
from hk_assistant.domain.prediction.errors import QuoteFetchError
from hk_assistant.domain.prediction.ports import QuoteSource

logger = logging.getLogger(__name__)

PUSH2_URL = "http://push2.eastmoney.com/api/qt/stock/get"
PUSH2_UT = "fa5fd1943c7b386f172d6893dbfba10b"
STOCK_FIELDS = "f43,f44,f45,f46,f47,f48,f57,f58,f60"
INDEX_FIELDS = "f43,f58,f60,f169,f170"
SINA_URL = "http://hq.sinajs.cn/list={code}"

HSI_SECID = "100.HSI"
HSTECH_SECID = "124.HSTECH"
HSI_SINA_CODE = "int_hangseng"
HSI_NAME = "恒生指数"

STOCK_PRICE_SCALE = 1000
INDEX_PRICE_SCALE = 100

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
}
SINA_HEADERS = {**BROWSER_HEADERS, "Referer": "https://finance.sina.com.cn/"}


class _Push2Stock(BaseModel):
    model_config = ConfigDict(extra="ignore")

    f43: int = 0
    f47: int = 0
    f57: str = ""
    f58: str = ""
    f60: int = 0


class _Push2Index(BaseModel):
    model_config = ConfigDict(extra="ignore")

    f43: int = 0
    f58: str = ""
    f169: int = 0
    f170: int = 0


def parse_push2_stock(payload: dict, code: str) -> Snapshot:
    """Build a Snapshot from a push2 stock response body."""
    data = payload.get("data")
    if not data:
        raise QuoteFetchError(code, "invalid code or no data")
    try:
        quote = _Push2Stock.model_validate(data)
    except ValidationError as exc:
        raise QuoteFetchError(code, f"unexpected payload: {exc}") from exc
    if not quote.f57 and not quote.f58:
        raise QuoteFetchError(code, "invalid code or no data")

    current = quote.f43 / STOCK_PRICE_SCALE
    prev_close = quote.f60 / STOCK_PRICE_SCALE
    change_percent = (current - prev_close) / prev_close * 100 if prev_close > 0 else 0.0
    return Snapshot(
        code=code,
        name=quote.f58 or code,
        current_price=current,
        change_percent=change_percent,
        volume=quote.f47,
    )


def parse_push2_index(payload: dict, secid: str) -> IndexSnapshot:
    """Build an IndexSnapshot from a push2 index response body."""
    data = payload.get("data")
    if not data:
        raise QuoteFetchError(secid, "invalid index response")
    try:
        quote = _Push2Index.model_validate(data)
    except ValidationError as exc:
        raise QuoteFetchError(secid, f"unexpected payload: {exc}") from exc
    return IndexSnapshot(
        name=quote.f58 or HSI_NAME,
        value=quote.f43 / INDEX_PRICE_SCALE,
        change=quote.f169 / INDEX_PRICE_SCALE,
        change_percent=quote.f170 / INDEX_PRICE_SCALE,
    )


def parse_sina_index(content: str, list_code: str) -> IndexSnapshot:
    """Parse ``var hq_str_int_hangseng="恒生指数,value,change,pct";``."""
    if '="' not in content:
        raise QuoteFetchError(list_code, "invalid response")
    body = content.split('="', 1)[1].strip().rstrip(";").rstrip('"')
    fields = [f.strip() for f in body.split(",")]
    if len(fields) < 3:
        raise QuoteFetchError(list_code, "not enough fields")
    try:
        value = float(fields[1])
        if len(fields) >= 4:
            change, change_percent = float(fields[2]), float(fields[3])
        else:
            change, change_percent = 0.0, float(fields[2])
    except ValueError as exc:
        raise QuoteFetchError(list_code, f"bad number: {exc}") from exc
    return IndexSnapshot(
        name=fields[0] or HSI_NAME,
        value=value,
        change=change,
        change_percent=change_percent,
    )


class EastmoneyQuoteSource(QuoteSource):
    """QuoteSource backed by Eastmoney push2, with a Sina index fallback.

    Args:
        http_client: Shared client; its timeout bounds every quote call.
    """

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http = http_client

    async def fetch_stock(self, code: str) -> Snapshot:
        code = normalize_hk_code(code)
        payload = await self._get_json(
            to_eastmoney_secid(code), STOCK_FIELDS, target=code
        )
        return parse_push2_stock(payload, code)

    async def fetch_market(self) -> list[IndexSnapshot]:
        indices: list[IndexSnapshot] = []

        hsi = await self._fetch_push2_index(HSI_SECID)
        if hsi is None:
            hsi = await self._fetch_sina_index(HSI_SINA_CODE)
        if hsi is not None:
            indices.append(hsi)

        hstech = await self._fetch_push2_index(HSTECH_SECID)
        if hstech is not None:
            indices.append(hstech)

        if not indices:
            raise QuoteFetchError("market", "failed to fetch any HK market indices")
        return indices

    async def _fetch_push2_index(self, secid: str) -> Optional[IndexSnapshot]:
        try:
            payload = await self._get_json(secid, INDEX_FIELDS, target=secid)
            return parse_push2_index(payload, secid)
        except QuoteFetchError as exc:
            logger.warning("Eastmoney index fetch failed: %s", exc.message)
            return None

    async def _fetch_sina_index(self, list_code: str) -> Optional[IndexSnapshot]:
        try:
            response = await self._http.get(
                SINA_URL.format(code=list_code), headers=SINA_HEADERS
            )
        except httpx.HTTPError as exc:
            logger.warning("Sina index fetch failed: %s", exc)
            return None
        content = response.content.decode("gbk", errors="replace")
        try:
            return parse_sina_index(content, list_code)
        except QuoteFetchError as exc:
            logger.warning("Sina index parse failed: %s", exc.message)
            return None

    async def _get_json(self, secid: str, fields: str, target: str) -> dict:
        params = {"secid": secid, "fields": fields, "ut": PUSH2_UT}
        try:
            response = await self._http.get(PUSH2_URL, params=params, headers=BROWSER_HEADERS)
        except httpx.HTTPError as exc:
            raise QuoteFetchError(target, str(exc) or type(exc).__name__) from exc
        if response.status_code != httpx.codes.OK:
            raise QuoteFetchError(target, f"HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise QuoteFetchError(target, f"parse response: {exc}") from exc
        if not isinstance(payload, dict):
            raise QuoteFetchError(target, "unexpected payload")
        return payload
