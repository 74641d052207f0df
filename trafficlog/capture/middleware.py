"""ASGI capture middleware.

Wraps every non-static HTTP request: the request body is buffered, the
response is held in a sink and replayed verbatim to the client, and a
capture record is forwarded to the collector once the request is done.
Static assets are passed through untouched.

Usage::

    from trafficlog.capture import CaptureMiddleware

    app.add_middleware(CaptureMiddleware, settings=settings)
"""

import logging
import traceback
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Union

from starlette.types import ASGIApp, Receive, Scope, Send

from trafficlog.settings import CaptureSettings, get_settings

from .body import RequestBodyBuffer, ResponseSink
from .forwarder import SERVER_ERROR, Forwarder
from .record import CaptureRecord, new_record, record_fault, record_request, record_response

logger = logging.getLogger(__name__)

# Requests for these never get captured
STATIC_ASSET_EXTENSIONS: tuple[str, ...] = (
    ".js", ".css", ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico", ".woff2",
)

# Status a response has before the app sets one
DEFAULT_STATUS = 200


def is_static_asset(path: str) -> bool:
    return path.lower().endswith(STATIC_ASSET_EXTENSIONS)


@dataclass(frozen=True)
class Completed:
    """The app returned normally."""


@dataclass(frozen=True)
class Faulted:
    """The app raised; the exception is kept for re-raising at the boundary."""

    error: Exception
    traceback_text: str


HandlerOutcome = Union[Completed, Faulted]


def fault_status(status_code: Optional[int]) -> int:
    """Status to record for a faulted request.

    A response that never started, or still carries the default success
    status, is recorded as a server error.
    """
    if status_code is None or status_code == DEFAULT_STATUS:
        return SERVER_ERROR
    return status_code


async def run_handler(app: ASGIApp, scope: Scope, receive: Receive, send: Send) -> HandlerOutcome:
    try:
        await app(scope, receive, send)
    except Exception as exc:
        return Faulted(exc, "".join(traceback.format_tb(exc.__traceback__)))
    return Completed()


@asynccontextmanager
async def capture_scope(forwarder: Forwarder, project_id: str) -> AsyncIterator[CaptureRecord]:
    """Yield a fresh record and forward it on every exit path."""
    record = new_record(project_id)
    try:
        yield record
    except BaseException as exc:
        # Failures outside the handler (body drain, cancellation) still get a status
        if record.status_code is None:
            record_fault(
                record,
                SERVER_ERROR,
                exc,
                "".join(traceback.format_tb(exc.__traceback__)),
            )
        raise
    finally:
        await forwarder.forward(record)


class CaptureMiddleware:
    """Middleware that records API traffic and ships it to the collector."""

    def __init__(
        self,
        app: ASGIApp,
        settings: Optional[CaptureSettings] = None,
        forwarder: Optional[Forwarder] = None,
    ) -> None:
        self.app = app
        self.settings = settings or get_settings()
        self.forwarder = forwarder or Forwarder(self.settings)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or is_static_asset(scope.get("path", "")):
            await self.app(scope, receive, send)
            return

        async with capture_scope(self.forwarder, self.settings.project_id) as record:
            await self._capture(record, scope, receive, send)

    async def _capture(
        self,
        record: CaptureRecord,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        body = RequestBodyBuffer()
        sink = ResponseSink()
        try:
            record_request(record, scope, "", self.settings.redact_headers_set)
            body = await RequestBodyBuffer.drain(receive)
            record.raw_request = body.text

            outcome = await run_handler(self.app, scope, body.receive, sink.send)

            if isinstance(outcome, Faulted):
                # Partial output is dropped; the host's error handler answers the client
                record_fault(
                    record,
                    fault_status(sink.status_code),
                    outcome.error,
                    outcome.traceback_text,
                )
                logger.debug("Captured fault for %s %s", record.method, record.path)
                raise outcome.error

            await sink.replay(send)
            # An app that never started a response leaves the server to send a 500
            record_response(record, sink.status_code or SERVER_ERROR, sink.text)
        finally:
            body.release()
            sink.clear()
