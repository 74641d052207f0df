"""
Host wiring for the capture middleware.

Usage:
    from fastapi import FastAPI
    from trafficlog.main import install_capture

    app = FastAPI()
    forwarder = install_capture(app)  # settings from TRAFFIC_CAPTURE_* env vars

    # Or with explicit settings
    install_capture(app, CaptureSettings(api_key="key", project_id="proj"))
"""

import logging
from typing import Optional

from starlette.applications import Starlette

from trafficlog.capture import CaptureMiddleware, Forwarder
from trafficlog.settings import CaptureSettings, get_settings

logger = logging.getLogger(__name__)


def install_capture(
    app: Starlette,
    settings: Optional[CaptureSettings] = None,
    forwarder: Optional[Forwarder] = None,
) -> Optional[Forwarder]:
    """
    Add the capture middleware to an application.

    Must be called before the application starts serving. The forwarder is
    shared by every request; close it from the app lifespan with
    ``async with forwarder:`` or ``await forwarder.aclose()``.

    Args:
        app: FastAPI or Starlette application
        settings: Optional CaptureSettings. Defaults to get_settings().
        forwarder: Optional pre-built Forwarder (e.g. with a test client)

    Returns:
        The shared Forwarder, or None when capture is disabled.
    """
    if settings is None:
        settings = get_settings()

    if not settings.enabled:
        logger.info("Traffic capture disabled")
        return None

    if forwarder is None:
        forwarder = Forwarder(settings)

    app.add_middleware(CaptureMiddleware, settings=settings, forwarder=forwarder)

    logger.info(
        "Traffic capture enabled → %s (capture_all=%s)",
        settings.endpoint_url,
        settings.capture_all,
    )
    return forwarder
