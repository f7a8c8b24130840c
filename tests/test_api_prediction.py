"""
Tests for the internal prediction service endpoints.

Tests FastAPI routes with the PredictionService wired to in-memory fakes.
Validates request parsing, SSE framing and headers, and error mapping.
"""

import pytest
from fastapi.testclient import TestClient

from hk_assistant.application.prediction.predict import PredictionService
from hk_assistant.domain.prediction.errors import CompletionHTTPError
from hk_assistant.interfaces.prediction.dependencies import get_prediction_service
from hk_assistant.main import create_app
from tests.conftest import TRADING_NOW, FakeCompletion, FakeQuoteSource

EXPECTED_FRAMES = (
    'event: message\ndata: "看"\n\n'
    'event: message\ndata: "多"\n\n'
    'event: done\ndata: ""\n\n'
)


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def client(settings, completion_config, completion) -> TestClient:
    app = create_app(settings)
    service = PredictionService(
        quote_source=FakeQuoteSource(),
        completion=completion,
        config=completion_config,
        clock=lambda: TRADING_NOW,
    )
    app.dependency_overrides[get_prediction_service] = lambda: service
    return TestClient(app)


@pytest.fixture
def no_key_client(settings, no_key_config) -> TestClient:
    app = create_app(settings)
    service = PredictionService(
        quote_source=FakeQuoteSource(),
        completion=FakeCompletion(),
        config=no_key_config,
        clock=lambda: TRADING_NOW,
    )
    app.dependency_overrides[get_prediction_service] = lambda: service
    return TestClient(app)


# ===========================================================================
# /stream
# ===========================================================================


class TestStreamEndpoint:
    """Tests for GET/POST /stream."""

    def test_get_streams_frames(self, client) -> None:
        response = client.get("/stream", params={"code": "hk00700"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"
        assert response.text == EXPECTED_FRAMES

    def test_post_streams_frames(self, client, completion) -> None:
        response = client.post(
            "/stream", json={"code": "hk00700", "days": 5, "model": "glm-4-plus"}
        )
        assert response.status_code == 200
        assert response.text == EXPECTED_FRAMES
        _, prompt, model = completion.calls[0]
        assert model == "glm-4-plus"
        assert "未来 5 天" in prompt

    def test_post_non_positive_days_defaults(self, client, completion) -> None:
        client.post("/stream", json={"code": "hk00700", "days": 0})
        assert "未来 3 天" in completion.calls[0][1]

    def test_get_days_from_query(self, client, completion) -> None:
        client.get("/stream", params={"code": "hk00700", "days": "5"})
        assert "未来 5 天" in completion.calls[0][1]

    def test_get_unparsable_days_defaults(self, client, completion) -> None:
        response = client.get("/stream", params={"code": "hk00700", "days": "abc"})
        assert response.status_code == 200
        assert response.text == EXPECTED_FRAMES
        assert "未来 3 天" in completion.calls[0][1]

    def test_get_without_code(self, client) -> None:
        response = client.get("/stream")
        assert response.status_code == 400
        assert response.text == "missing code"

    def test_post_without_code(self, client) -> None:
        response = client.post("/stream", json={"days": 3})
        assert response.status_code == 400
        assert response.text == "missing code"

    def test_post_unreadable_body_treated_as_empty(self, client) -> None:
        response = client.post(
            "/stream", content=b"{oops", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert response.text == "missing code"

    def test_no_credentials_single_error_event(self, no_key_client) -> None:
        response = no_key_client.get("/stream", params={"code": "hk00700"})
        assert response.status_code == 200
        assert response.text.startswith("event: error\n")
        assert "ZHIPU_API_KEY" in response.text
        assert response.text.count("event: ") == 1

    def test_upstream_failure_after_fragments(self, settings, completion_config) -> None:
        app = create_app(settings)
        service = PredictionService(
            quote_source=FakeQuoteSource(),
            completion=FakeCompletion(
                fragments=("看",), error=CompletionHTTPError(500, "internal")
            ),
            config=completion_config,
        )
        app.dependency_overrides[get_prediction_service] = lambda: service

        response = TestClient(app).get("/stream", params={"code": "hk00700"})

        assert response.text == (
            'event: message\ndata: "看"\n\n'
            'event: error\ndata: "LLM returned 500: internal"\n\n'
        )


# ===========================================================================
# /predict
# ===========================================================================


class TestPredictEndpoint:
    """Tests for POST /predict."""

    def test_prediction(self, client) -> None:
        response = client.post("/predict", json={"code": "hk00700", "days": 3})
        assert response.status_code == 200
        assert response.json() == {
            "code": "hk00700",
            "confidence": 0.85,
            "analysis": "看多",
            "news_summary": "参见分析内容。",
        }

    def test_placeholder_without_credentials(self, no_key_client) -> None:
        response = no_key_client.post("/predict", json={"code": "00700"})
        body = response.json()
        assert response.status_code == 200
        assert body["confidence"] == 0.5
        assert "00700" in body["analysis"]

    def test_missing_code(self, client) -> None:
        response = client.post("/predict", json={"days": 3})
        assert response.status_code == 400
        assert response.json() == {"error": "missing code"}

    def test_provider_error_is_502(self, settings, completion_config) -> None:
        app = create_app(settings)
        service = PredictionService(
            quote_source=FakeQuoteSource(),
            completion=FakeCompletion(error=CompletionHTTPError(429, "rate limited")),
            config=completion_config,
        )
        app.dependency_overrides[get_prediction_service] = lambda: service

        response = TestClient(app).post("/predict", json={"code": "hk00700"})

        assert response.status_code == 502
        assert response.json()["detail"] == "LLM returned 429: rate limited"


class TestHealth:
    """Tests for GET /api/v1/health."""

    def test_health(self, client) -> None:
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": "0.1.0"}
