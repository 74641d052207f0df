"""
Shared fixtures for trafficlog tests.

The collector is faked with httpx.MockTransport so no test touches the
network.
"""

from typing import Any, Callable

import httpx
import pytest

from tests.fakes import TEST_API_KEY, TEST_ENDPOINT, TEST_PROJECT_ID, FakeCollector
from trafficlog.capture import Forwarder
from trafficlog.settings import CaptureSettings


@pytest.fixture
def collector() -> FakeCollector:
    return FakeCollector()


@pytest.fixture
def make_settings() -> Callable[..., CaptureSettings]:
    """Build CaptureSettings isolated from the environment."""

    def _make(**overrides: Any) -> CaptureSettings:
        values = {
            "api_key": TEST_API_KEY,
            "project_id": TEST_PROJECT_ID,
            "endpoint_url": TEST_ENDPOINT,
        }
        values.update(overrides)
        return CaptureSettings(_env_file=None, **values)

    return _make


@pytest.fixture
def make_forwarder(collector: FakeCollector) -> Callable[[CaptureSettings], Forwarder]:
    """Build a Forwarder that talks to the fake collector."""

    def _make(settings: CaptureSettings) -> Forwarder:
        client = httpx.AsyncClient(transport=httpx.MockTransport(collector.handler))
        return Forwarder(settings, client=client)

    return _make
