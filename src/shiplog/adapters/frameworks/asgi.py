"""ASGI adapter for the archive's intake endpoint.

This adapter provides a framework-agnostic ASGI application that can be used
with any ASGI server (uvicorn, hypercorn, daphne) without requiring FastAPI
as a dependency.
"""

import json
import logging
from collections.abc import Callable, Coroutine
from typing import Any
from urllib.parse import unquote

from shiplog.core.accumulator import DEFAULT_GRACE_PERIOD
from shiplog.core.errors import (
    AccumulatorClosedError,
    OversizedEntryError,
    SerializationError,
    UnknownCategoryError,
)
from shiplog.core.intake import IntakeService

logger = logging.getLogger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

DEFAULT_MAX_BODY_SIZE = 65536

_UPLOAD_PREFIX = "/upload/"


class BodyTooLargeError(Exception):
    """Raised when a request body grows past the configured cap."""


class ClientDisconnectedError(Exception):
    """Raised when the client goes away before the body is complete."""


def _parse_upload_path(scope: Scope) -> tuple[str, str] | None:
    """Extract (category, stream_id) from an upload path.

    Uses ``raw_path`` when the server provides it so percent-encoded
    slashes inside a segment survive.

    Returns:
        The two decoded path segments, or None if the path doesn't match
        ``/upload/{category}/{stream_id}``.
    """
    raw_path: bytes | None = scope.get("raw_path")
    if raw_path:
        path = raw_path.decode("latin-1").split("?", 1)[0]
        decode = unquote
    else:
        path = scope["path"]

        def decode(segment: str) -> str:
            return segment

    if not path.startswith(_UPLOAD_PREFIX):
        return None
    segments = path[len(_UPLOAD_PREFIX) :].split("/")
    if len(segments) != 2 or not all(segments):
        return None
    return decode(segments[0]), decode(segments[1])


def _content_length(scope: Scope) -> int | None:
    """Return the declared Content-Length, or None if absent or invalid."""
    headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
    for name, value in headers:
        if name.lower() == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


async def _read_body(receive: Receive, max_size: int) -> bytes:
    """Read the full request body, refusing to buffer more than max_size.

    Raises:
        BodyTooLargeError: As soon as the body exceeds max_size.
        ClientDisconnectedError: If the client disconnects mid-body.
    """
    chunks: list[bytes] = []
    size = 0
    more_body = True
    while more_body:
        message = await receive()
        if message["type"] == "http.disconnect":
            raise ClientDisconnectedError(f"client disconnected after {size} bytes")
        chunk = message.get("body", b"")
        size += len(chunk)
        if size > max_size:
            raise BodyTooLargeError(f"body exceeds {max_size} bytes")
        chunks.append(chunk)
        more_body = message.get("more_body", False)
    return b"".join(chunks)


async def _send_response(send: Send, status: int, content_type: str, body: str) -> None:
    """Send an HTTP response with headers and body.

    Args:
        send: ASGI send callable for writing response.
        status: HTTP status code.
        content_type: Content-Type header value.
        body: Response body as string (will be encoded to bytes).
    """
    headers = [(b"content-type", content_type.encode())]
    await send({"type": "http.response.start", "status": status, "headers": headers})
    await send({"type": "http.response.body", "body": body.encode()})


async def _handle_upload(
    intake: IntakeService,
    scope: Scope,
    receive: Receive,
    send: Send,
    category: str,
    stream_id: str,
    max_body_size: int,
) -> None:
    """Validate, read and submit one upload."""
    logger.info("got upload", extra={"category": category, "stream_id": stream_id})

    if not intake.accepts(category):
        logger.error("unknown category", extra={"category": category})
        await _send_response(send, 404, "text/plain", "unknown category\n")
        return

    declared = _content_length(scope)
    if declared is not None and declared > max_body_size:
        logger.error(
            "upload too large",
            extra={"category": category, "size": declared, "limit": max_body_size},
        )
        await _send_response(send, 413, "text/plain", "request body too large\n")
        return

    try:
        payload = await _read_body(receive, max_body_size)
    except BodyTooLargeError:
        logger.error("upload too large", extra={"category": category, "limit": max_body_size})
        await _send_response(send, 413, "text/plain", "request body too large\n")
        return
    except ClientDisconnectedError as e:
        logger.error(
            "can't read from client",
            extra={"category": category, "stream_id": stream_id, "err": str(e)},
        )
        return

    try:
        await intake.submit(category, stream_id, payload)
    except UnknownCategoryError:
        await _send_response(send, 404, "text/plain", "unknown category\n")
    except OversizedEntryError as e:
        logger.error("can't publish logs", extra={"category": category, "err": str(e)})
        await _send_response(send, 413, "text/plain", "entry too large\n")
    except SerializationError as e:
        logger.error("can't publish logs", extra={"category": category, "err": str(e)})
        await _send_response(send, 400, "text/plain", "can't serialize entry\n")
    except AccumulatorClosedError:
        logger.warning("upload rejected during shutdown", extra={"category": category})
        await _send_response(send, 503, "text/plain", "shutting down\n")
    else:
        await _send_response(send, 200, "text/plain", "")


async def _handle_lifespan(
    intake: IntakeService, receive: Receive, send: Send, grace_period: float
) -> None:
    """Answer lifespan events; shutdown drains every accumulator."""
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            logger.info("archive intake ready", extra={"categories": ",".join(intake.categories)})
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            try:
                await intake.close(grace_period)
            except Exception as e:
                logger.exception("failed to drain accumulators")
                await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                return
            await send({"type": "lifespan.shutdown.complete"})
            return


def create_asgi_app(
    intake: IntakeService,
    max_body_size: int = DEFAULT_MAX_BODY_SIZE,
    grace_period: float = DEFAULT_GRACE_PERIOD,
) -> ASGIApp:
    """Create an ASGI app with the upload and health endpoints.

    Routes:
        ``PUT /upload/{category}/{stream_id}`` hands the body to intake.
        ``GET /healthz`` returns ``OK``.

    Args:
        intake: Service the uploads are submitted to.
        max_body_size: Largest accepted request body in bytes.
        grace_period: Seconds each accumulator gets to finish committing on
            lifespan shutdown.

    Returns:
        ASGI application callable.
    """

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await _handle_lifespan(intake, receive, send, grace_period)
            return
        if scope["type"] != "http":
            return

        path = scope["path"]
        method = scope["method"]

        if path == "/healthz":
            if method not in ("GET", "HEAD"):
                await _send_response(send, 405, "text/plain", "Method Not Allowed")
                return
            await _send_response(send, 200, "text/plain", "OK\n")
            return

        target = _parse_upload_path(scope)
        if target is None:
            await _send_response(send, 404, "text/plain", "Not Found")
            return
        if method != "PUT":
            await _send_response(send, 405, "text/plain", "Method Not Allowed")
            return

        try:
            await _handle_upload(intake, scope, receive, send, *target, max_body_size)
        except Exception:
            logger.exception("error handling upload")
            error_body = json.dumps({"error": "Internal Server Error"})
            await _send_response(send, 500, "application/json", error_body)

    return app
