"""HTTP traffic capture for FastAPI/Starlette applications."""

from trafficlog.capture import CaptureMiddleware, CaptureRecord, Forwarder
from trafficlog.main import install_capture
from trafficlog.settings import CaptureSettings, get_settings

__all__ = [
    "CaptureMiddleware",
    "CaptureRecord",
    "CaptureSettings",
    "Forwarder",
    "get_settings",
    "install_capture",
]
