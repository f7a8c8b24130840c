"""
Tests for the edge gateway.

The gateway talks to a real internal service app through
``httpx.ASGITransport``; failure modes of the internal hop are faked with
``httpx.MockTransport``. Validates byte-for-byte relaying, status
passthrough, code normalization, quote routes, security headers and
rate limiting.
"""

import json

import httpx
import pytest

from hk_assistant.application.prediction.predict import PredictionService
from hk_assistant.domain.prediction.errors import CompletionHTTPError, QuoteFetchError
from hk_assistant.gateway import create_gateway_app
from hk_assistant.interfaces.gateway.proxy import RELAY_BUFFER_SIZE, relay_bytes
from hk_assistant.interfaces.prediction.dependencies import get_prediction_service
from hk_assistant.main import create_app
from tests.conftest import TRADING_NOW, FakeCompletion, FakeQuoteSource

GATEWAY_URL = "http://gateway"


def _internal_app(settings, config, completion: FakeCompletion, quotes: FakeQuoteSource):
    app = create_app(settings)
    service = PredictionService(
        quote_source=quotes,
        completion=completion,
        config=config,
        clock=lambda: TRADING_NOW,
    )
    app.dependency_overrides[get_prediction_service] = lambda: service
    return app


def _gateway(settings, backend: httpx.AsyncClient, quotes=None):
    app = create_gateway_app(settings)
    app.state.backend_client = backend
    app.state.quote_source = quotes or FakeQuoteSource()
    return app


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=GATEWAY_URL)


@pytest.fixture
def internal_quotes() -> FakeQuoteSource:
    return FakeQuoteSource()


@pytest.fixture
def internal(settings, completion_config, internal_quotes):
    return _internal_app(settings, completion_config, FakeCompletion(), internal_quotes)


@pytest.fixture
def backend(internal) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=internal), base_url="http://backend"
    )


@pytest.fixture
def gateway(settings, backend):
    return _gateway(settings, backend)


def _mock_backend(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://backend"
    )


# ===========================================================================
# Streaming relay
# ===========================================================================


class TestPredictionStream:
    """Tests for POST /api/prediction/{code}/stream."""

    @pytest.mark.asyncio
    async def test_byte_identical_relay(self, gateway, backend, internal_quotes) -> None:
        direct = await backend.post("/stream", json={"code": "hk00700", "days": 3, "model": ""})

        async with _client(gateway) as client:
            relayed = await client.post("/api/prediction/700/stream", json={"days": 3})

        assert relayed.status_code == 200
        assert relayed.headers["content-type"].startswith("text/event-stream")
        assert relayed.headers["cache-control"] == "no-cache"
        assert relayed.headers["x-accel-buffering"] == "no"
        assert relayed.content == direct.content
        assert relayed.content.endswith(b'event: done\ndata: ""\n\n')
        assert internal_quotes.requested[-1] == "hk00700"

    @pytest.mark.asyncio
    async def test_forwarded_body(self, settings) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b'event: done\ndata: ""\n\n')

        app = _gateway(settings, _mock_backend(handler))
        async with _client(app) as client:
            await client.post(
                "/api/prediction/hk0700/stream", json={"days": -1, "model": "glm-4-plus"}
            )

        assert seen[0].url.path == "/stream"
        assert json.loads(seen[0].content) == {
            "code": "hk00700",
            "days": 3,
            "model": "glm-4-plus",
        }

    @pytest.mark.asyncio
    async def test_unreadable_body_uses_defaults(self, settings) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"")

        app = _gateway(settings, _mock_backend(handler))
        async with _client(app) as client:
            response = await client.post("/api/prediction/700/stream", content=b"not json")

        assert response.status_code == 200
        assert b'"days":3' in seen[0].content.replace(b" ", b"")

    @pytest.mark.asyncio
    async def test_non_200_passthrough(self, settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="busy")

        app = _gateway(settings, _mock_backend(handler))
        async with _client(app) as client:
            response = await client.post("/api/prediction/700/stream")

        assert response.status_code == 503
        assert response.text == "busy"

    @pytest.mark.asyncio
    async def test_backend_unreachable(self, settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        app = _gateway(settings, _mock_backend(handler))
        async with _client(app) as client:
            response = await client.post("/api/prediction/700/stream")

        assert response.status_code == 502
        assert response.json()["error"] == "Prediction backend unavailable"


class TestRelayBytes:
    """Tests for the byte copy loop."""

    @pytest.mark.asyncio
    async def test_large_chunk_split_into_buffers(self) -> None:
        async def body():
            yield b"x" * 10000

        upstream = httpx.Response(200, content=body())
        pieces = [piece async for piece in relay_bytes(upstream)]

        assert [len(p) for p in pieces] == [RELAY_BUFFER_SIZE, RELAY_BUFFER_SIZE, 1808]
        assert b"".join(pieces) == b"x" * 10000
        assert upstream.is_closed

    @pytest.mark.asyncio
    async def test_read_error_ends_relay(self) -> None:
        async def body():
            yield b"event: message\n"
            raise httpx.ReadError("connection reset")

        upstream = httpx.Response(200, content=body())
        pieces = [piece async for piece in relay_bytes(upstream)]

        assert pieces == [b"event: message\n"]
        assert upstream.is_closed


# ===========================================================================
# Blocking prediction
# ===========================================================================


class TestPrediction:
    """Tests for POST /api/prediction/{code}."""

    @pytest.mark.asyncio
    async def test_prediction(self, gateway) -> None:
        async with _client(gateway) as client:
            response = await client.post("/api/prediction/700", json={"days": 5})

        assert response.status_code == 200
        assert response.json() == {
            "code": "hk00700",
            "confidence": 0.85,
            "analysis": "看多",
            "news_summary": "参见分析内容。",
        }

    @pytest.mark.asyncio
    async def test_error_passthrough(self, settings, completion_config) -> None:
        internal = _internal_app(
            settings,
            completion_config,
            FakeCompletion(error=CompletionHTTPError(429, "rate limited")),
            FakeQuoteSource(),
        )
        backend = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=internal), base_url="http://backend"
        )
        async with _client(_gateway(settings, backend)) as client:
            response = await client.post("/api/prediction/700")

        assert response.status_code == 502
        assert response.json()["detail"] == "LLM returned 429: rate limited"

    @pytest.mark.asyncio
    async def test_backend_timeout(self, settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        app = _gateway(settings, _mock_backend(handler))
        async with _client(app) as client:
            response = await client.post("/api/prediction/700")

        assert response.status_code == 502


# ===========================================================================
# Quotes, ping, security
# ===========================================================================


class TestQuoteRoutes:
    """Tests for realtime quote and market summary routes."""

    @pytest.mark.asyncio
    async def test_realtime(self, settings, backend) -> None:
        quotes = FakeQuoteSource()
        async with _client(_gateway(settings, backend, quotes)) as client:
            response = await client.get("/api/stocks/700/realtime")

        assert response.status_code == 200
        assert response.json() == {
            "code": "hk00700",
            "name": "腾讯控股",
            "current_price": 320.5,
            "change_percent": 1.42,
            "volume": 12345678,
            "timestamp": "",
        }
        assert quotes.requested == ["hk00700"]

    @pytest.mark.asyncio
    async def test_realtime_provider_failure(self, settings, backend) -> None:
        quotes = FakeQuoteSource(stock_error=QuoteFetchError("hk00700", "HTTP 503"))
        async with _client(_gateway(settings, backend, quotes)) as client:
            response = await client.get("/api/stocks/700/realtime")

        assert response.status_code == 502
        assert response.json()["error"] == "Quote fetch failed"

    @pytest.mark.asyncio
    async def test_market_summary(self, gateway) -> None:
        async with _client(gateway) as client:
            response = await client.get("/api/market/summary")

        indices = response.json()["indices"]
        assert [i["name"] for i in indices] == ["恒生指数", "恒生科技指数"]
        assert indices[0] == {
            "name": "恒生指数",
            "value": 17000.12,
            "change": 123.45,
            "change_percent": 0.73,
        }


class TestEdge:
    """Tests for ping, security headers and rate limiting."""

    @pytest.mark.asyncio
    async def test_ping(self, gateway) -> None:
        async with _client(gateway) as client:
            response = await client.get("/ping")
        assert response.text == "pong"

    @pytest.mark.asyncio
    async def test_security_headers_present(self, gateway) -> None:
        async with _client(gateway) as client:
            response = await client.get("/ping")
        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "DENY"
        assert "referrer-policy" in response.headers

    @pytest.mark.asyncio
    async def test_rate_limit_returns_429(self, settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"")

        limited = settings.model_copy(
            update={"rate_limit_enabled": True, "rate_limit_heavy": "1/minute"}
        )
        app = _gateway(limited, _mock_backend(handler))
        async with _client(app) as client:
            first = await client.post("/api/prediction/700/stream")
            second = await client.post("/api/prediction/700/stream")

        assert first.status_code == 200
        assert second.status_code == 429
        assert second.json()["error"] == "Rate limit exceeded"

    @pytest.mark.asyncio
    async def test_apps_keep_their_own_limits(self, settings) -> None:
        """A second gateway app does not change the first one's limiter."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"")

        limited = settings.model_copy(
            update={"rate_limit_enabled": True, "rate_limit_heavy": "1/minute"}
        )
        strict = _gateway(limited, _mock_backend(handler))
        relaxed = _gateway(settings, _mock_backend(handler))

        assert strict.state.limiter is not relaxed.state.limiter
        assert strict.state.limiter.enabled
        assert not relaxed.state.limiter.enabled

        async with _client(relaxed) as client:
            for _ in range(3):
                assert (await client.post("/api/prediction/700/stream")).status_code == 200
        async with _client(strict) as client:
            assert (await client.post("/api/prediction/700/stream")).status_code == 200
            assert (await client.post("/api/prediction/700/stream")).status_code == 429
