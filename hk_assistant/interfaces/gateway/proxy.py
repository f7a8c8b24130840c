"""
Gateway-side hop of the prediction relay.

The gateway issues its own request to the internal service and copies
the upstream body to the caller byte for byte, in pieces of at most
RELAY_BUFFER_SIZE bytes, handing each piece to the server as soon as it
is read. SSE framing is never reinterpreted here.

Closing the downstream response closes the upstream one, so a browser
that goes away also disconnects the internal stream.
"""

import logging
from typing import Any, AsyncIterator

import httpx
from fastapi.responses import Response

from hk_assistant.domain.prediction.errors import BackendUnavailableError

logger = logging.getLogger(__name__)

RELAY_BUFFER_SIZE = 4096


async def open_stream(
    client: httpx.AsyncClient, path: str, payload: dict[str, Any]
) -> httpx.Response:
    """Send a POST and return the response with its body still unread.

    Raises:
        BackendUnavailableError: If the internal service cannot be reached.
    """
    request = client.build_request("POST", path, json=payload)
    try:
        return await client.send(request, stream=True)
    except httpx.HTTPError as exc:
        raise BackendUnavailableError(str(exc) or type(exc).__name__) from exc


async def post_json(
    client: httpx.AsyncClient, path: str, payload: dict[str, Any]
) -> httpx.Response:
    """Send a blocking POST to the internal service.

    Raises:
        BackendUnavailableError: On connect failure or gateway-side timeout.
    """
    try:
        return await client.post(path, json=payload)
    except httpx.HTTPError as exc:
        raise BackendUnavailableError(str(exc) or type(exc).__name__) from exc


async def relay_bytes(
    upstream: httpx.Response, buffer_size: int = RELAY_BUFFER_SIZE
) -> AsyncIterator[bytes]:
    """Yield the upstream body unchanged until end of stream or a read error."""
    copied = 0
    try:
        async for chunk in upstream.aiter_raw():
            for start in range(0, len(chunk), buffer_size):
                piece = chunk[start:start + buffer_size]
                copied += len(piece)
                yield piece
    except httpx.HTTPError as exc:
        logger.warning("Upstream read failed after %d bytes: %s", copied, exc)
    finally:
        await upstream.aclose()
        logger.info("Relay finished, bytes=%d", copied)


async def passthrough(upstream: httpx.Response) -> Response:
    """Answer with the upstream status code and body, unchanged."""
    try:
        body = await upstream.aread()
    finally:
        await upstream.aclose()
    return Response(
        content=body,
        status_code=upstream.status_code,
        media_type=upstream.headers.get("content-type", "text/plain"),
    )
