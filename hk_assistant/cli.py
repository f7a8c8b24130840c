"""
CLI entry point for the HK stock assistant.

Usage:
    # Run the internal prediction service (port 8890)
    python -m hk_assistant.cli serve

    # Run the edge gateway (port 8080)
    python -m hk_assistant.cli gateway

    # Run one prediction in-process
    python -m hk_assistant.cli predict --code 700 --days 3

    # Stream the analysis as it is generated
    python -m hk_assistant.cli predict --code 700 --stream
"""

import argparse
import asyncio
import logging
import sys

import httpx

from hk_assistant.application.prediction.dtos import DEFAULT_DAYS, PredictCommand
from hk_assistant.application.prediction.predict import PredictionService
from hk_assistant.core.config import load_settings
from hk_assistant.domain.prediction.entities import StreamEvent
from hk_assistant.domain.prediction.errors import PredictionDomainError
from hk_assistant.infrastructure.prediction.completion_client import (
    OpenAICompatibleCompletionClient,
    build_http_client,
)
from hk_assistant.infrastructure.prediction.quote_source import EastmoneyQuoteSource
from hk_assistant.shared.logging import configure_logging

logger = logging.getLogger(__name__)

SERVICE_PORT = 8890
GATEWAY_PORT = 8080


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the internal prediction service."""
    import uvicorn

    logger.info("Starting prediction service at http://%s:%d", args.host, args.port)
    uvicorn.run("hk_assistant.main:app", host=args.host, port=args.port, reload=False)


def cmd_gateway(args: argparse.Namespace) -> None:
    """Start the edge gateway."""
    import uvicorn

    logger.info("Starting gateway at http://%s:%d", args.host, args.port)
    uvicorn.run("hk_assistant.gateway:app", host=args.host, port=args.port, reload=False)


async def _run_prediction(args: argparse.Namespace) -> None:
    settings = load_settings()
    config = settings.completion_config()
    command = PredictCommand(code=args.code, days=args.days, model_override=args.model)

    async with build_http_client(config) as llm_http, httpx.AsyncClient(
        timeout=httpx.Timeout(settings.quote_timeout_sec)
    ) as quote_http:
        service = PredictionService(
            quote_source=EastmoneyQuoteSource(quote_http),
            completion=OpenAICompatibleCompletionClient(config, llm_http),
            config=config,
        )
        if not args.stream:
            result = await service.predict(command)
            print(result.analysis)
            print(f"\nconfidence={result.confidence:.2f}")
            return

        async def write_fragment(event: StreamEvent) -> None:
            sys.stdout.write(event.data)
            sys.stdout.flush()

        await service.stream_predict(command, write_fragment)
        print()


def cmd_predict(args: argparse.Namespace) -> None:
    """Run one prediction and print the analysis."""
    try:
        asyncio.run(_run_prediction(args))
    except PredictionDomainError as exc:
        logger.error("Prediction failed: %s", exc.message)
        sys.exit(1)


def main() -> None:
    parser = argparse.ArgumentParser(description="HK Stock Assistant CLI")
    parser.add_argument(
        "--log-level", default="INFO", dest="log_level",
        help="Log level (default INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Internal prediction service
    serve_parser = subparsers.add_parser("serve", help="Start the prediction service")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument(
        "--port", type=int, default=SERVICE_PORT,
        help=f"Port for the prediction service (default {SERVICE_PORT})",
    )
    serve_parser.set_defaults(func=cmd_serve)

    # Edge gateway
    gateway_parser = subparsers.add_parser("gateway", help="Start the edge gateway")
    gateway_parser.add_argument("--host", default="0.0.0.0")
    gateway_parser.add_argument(
        "--port", type=int, default=GATEWAY_PORT,
        help=f"Port for the gateway (default {GATEWAY_PORT})",
    )
    gateway_parser.set_defaults(func=cmd_gateway)

    # One-shot prediction
    predict_parser = subparsers.add_parser("predict", help="Run one prediction")
    predict_parser.add_argument("--code", required=True, help="HK code, e.g. 700 or hk00700")
    predict_parser.add_argument("--days", type=int, default=DEFAULT_DAYS)
    predict_parser.add_argument("--model", default="", help="Model override")
    predict_parser.add_argument(
        "--stream", action="store_true",
        help="Print fragments as they are generated",
    )
    predict_parser.set_defaults(func=cmd_predict)

    args = parser.parse_args()
    configure_logging(level=args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
