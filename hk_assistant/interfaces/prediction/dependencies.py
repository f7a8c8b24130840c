"""
Dependency injection for the internal prediction service.

The service and its adapters are built once in the application lifespan
and stored on ``app.state``; these functions only hand them to routes,
which keeps them overridable in tests.
"""

from fastapi import Request

from hk_assistant.application.prediction.predict import PredictionService


def get_prediction_service(request: Request) -> PredictionService:
    """Return the process-wide PredictionService."""
    return request.app.state.prediction_service
