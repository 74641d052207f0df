"""
Delivery of capture records to the ingestion endpoint.

Records are wrapped as ``{"log": <record>}`` and POSTed once. There is no
retry and no queue: a record that cannot be delivered is logged and dropped.
Nothing raised here ever reaches the request being captured.
"""

import json
import logging
from typing import Any, Optional

import httpx

from trafficlog.settings import CaptureSettings

from .record import CaptureRecord

logger = logging.getLogger(__name__)

API_KEY_HEADER = "Api-Key"
SERVER_ERROR = 500


class Forwarder:
    """
    Sends capture records to the collector.

    One instance is shared by all requests. The underlying httpx.AsyncClient
    pools connections and is safe for concurrent use.
    """

    def __init__(
        self,
        settings: CaptureSettings,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the forwarder.

        Args:
            settings: Capture settings (API key, endpoint, sampling policy)
            client: Optional pre-built client, e.g. with a mock transport.
                    It gets the Api-Key header but is not closed by aclose().
        """
        self._settings = settings
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=settings.timeout)
        client.headers[API_KEY_HEADER] = settings.api_key
        self._client = client

    @property
    def settings(self) -> CaptureSettings:
        return self._settings

    @property
    def endpoint_url(self) -> str:
        return self._settings.endpoint_url

    def should_forward(self, record: CaptureRecord) -> bool:
        """Apply the sampling policy: everything with capture_all, else only 5xx."""
        if self._settings.capture_all:
            return True
        if record.status_code is not None and record.status_code < SERVER_ERROR:
            return False
        return True

    @staticmethod
    def build_envelope(record: CaptureRecord) -> dict[str, Any]:
        return {"log": record.to_dict()}

    async def forward(self, record: CaptureRecord) -> bool:
        """
        Send a record if the sampling policy allows it.

        Returns:
            True when the collector accepted the record, False when it was
            sampled out or delivery failed.
        """
        if not self.should_forward(record):
            logger.debug(
                "Skipping capture of %s %s (status %s)",
                record.method, record.path, record.status_code,
            )
            return False

        try:
            content = json.dumps(self.build_envelope(record))
            response = await self._client.post(
                self.endpoint_url,
                content=content,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Error sending capture to {self.endpoint_url}: {e}")
            return False
        except Exception:
            logger.exception("Failed to forward capture for %s %s", record.method, record.path)
            return False

        if not response.is_success:
            logger.warning(
                f"Failed to log capture: {response.status_code} - {response.text}"
            )
            return False

        logger.debug("Forwarded capture for %s %s", record.method, record.path)
        return True

    async def aclose(self) -> None:
        """Close the HTTP client if this forwarder created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "Forwarder":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
