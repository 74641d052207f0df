"""Capture record assembly.

A CaptureRecord is created per request and filled in stages: request
metadata before the app runs, then either response metadata or fault
metadata. The functions here only move data into the record; all body I/O
happens in ``body.py``.
"""

import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from starlette.types import Scope


def host_directory() -> str:
    """Directory of the running application.

    Uses the file of the ``__main__`` module, or the working directory when
    there is none (interactive sessions, embedded interpreters).
    """
    main_file = getattr(sys.modules.get("__main__"), "__file__", None)
    if main_file:
        return str(Path(main_file).resolve().parent)
    return str(Path.cwd())


# Static for the life of the process
EXECUTABLE_PATH = host_directory()

REDACTED = "***"


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 timestamp with milliseconds and an explicit UTC offset."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds")


@dataclass
class CaptureRecord:
    """Structured description of one request/response exchange."""

    request_time: str
    project_id: str
    method: str = ""
    path: str = ""
    query_string: str = ""
    request_headers: str = ""
    raw_request: str = ""
    executable_path: str = field(default=EXECUTABLE_PATH)
    response_time: Optional[str] = None
    raw_response: Optional[str] = None
    status_code: Optional[int] = None
    exception_message: Optional[str] = None
    traceback: Optional[str] = None

    @property
    def faulted(self) -> bool:
        return self.exception_message is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation, leaving out unset fields."""
        return {k: v for k, v in asdict(self).items() if v is not None}


def new_record(project_id: str, now: Optional[datetime] = None) -> CaptureRecord:
    return CaptureRecord(request_time=utc_timestamp(now), project_id=project_id)


def format_raw_headers(
    headers: Iterable[tuple[bytes, bytes]],
    redact: frozenset[str] = frozenset(),
) -> str:
    """Flatten header pairs into ``Key: Value`` lines, one per value.

    Order and casing are kept as the server delivered them, and repeated
    keys stay on separate lines.
    """
    lines = []
    for raw_key, raw_value in headers:
        key = raw_key.decode("latin-1")
        value = raw_value.decode("latin-1")
        if key.lower() in redact:
            value = REDACTED
        lines.append(f"{key}: {value}\n")
    return "".join(lines)


def format_query_string(raw: bytes | str) -> str:
    """Render the query string with its leading ``?``, or ``""`` when empty."""
    if isinstance(raw, bytes):
        raw = raw.decode("latin-1")
    return f"?{raw}" if raw else ""


def record_request(
    record: CaptureRecord,
    scope: Scope,
    body_text: str,
    redact: frozenset[str] = frozenset(),
) -> None:
    """Fill method, path, query string, headers and body from an ASGI scope."""
    record.method = scope.get("method", "")
    record.path = scope.get("path") or ""
    record.query_string = format_query_string(scope.get("query_string", b""))
    record.request_headers = format_raw_headers(scope.get("headers", []), redact)
    record.raw_request = body_text or ""


def record_response(
    record: CaptureRecord,
    status_code: int,
    body_text: str,
    now: Optional[datetime] = None,
) -> None:
    record.response_time = utc_timestamp(now)
    record.raw_response = body_text or ""
    record.status_code = status_code


def record_fault(
    record: CaptureRecord,
    status_code: int,
    error: BaseException,
    traceback_text: str,
) -> None:
    record.status_code = status_code
    record.exception_message = str(error) or type(error).__name__
    record.traceback = traceback_text
