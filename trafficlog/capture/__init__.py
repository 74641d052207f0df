"""Capture middleware for forwarding API traffic to an ingestion endpoint.

Usage::

    from trafficlog.capture import CaptureMiddleware
    from trafficlog.settings import CaptureSettings

    settings = CaptureSettings(api_key="...", project_id="...")
    app.add_middleware(CaptureMiddleware, settings=settings)

By default only 5xx responses are forwarded; set
``TRAFFIC_CAPTURE_CAPTURE_ALL=true`` to forward every request.
"""

from .body import RequestBodyBuffer, ResponseSink
from .forwarder import Forwarder
from .middleware import STATIC_ASSET_EXTENSIONS, CaptureMiddleware, is_static_asset
from .record import CaptureRecord

__all__ = [
    "CaptureMiddleware",
    "CaptureRecord",
    "Forwarder",
    "RequestBodyBuffer",
    "ResponseSink",
    "STATIC_ASSET_EXTENSIONS",
    "is_static_asset",
]
