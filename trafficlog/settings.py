"""
Capture settings using Pydantic BaseSettings.

All options can be set through environment variables prefixed with
``TRAFFIC_CAPTURE_`` (or a ``.env`` file). Settings are frozen once built so
a single instance can be shared by every in-flight request.

Usage:
    from trafficlog.settings import CaptureSettings, get_settings

    # Loaded from the environment (cached)
    settings = get_settings()

    # Explicit values, e.g. in tests
    settings = CaptureSettings(api_key="key", project_id="proj", _env_file=None)
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ENDPOINT_URL = (
    "http://app.codecomet.io/api/trafficconsumer.TrafficService/IngestTrafficLog"
)


class CaptureSettings(BaseSettings):
    """Interceptor configuration, immutable after construction."""

    model_config = SettingsConfigDict(
        env_prefix="TRAFFIC_CAPTURE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # -------------------------------------------------------------------------
    # Collector
    # -------------------------------------------------------------------------
    api_key: str = Field(
        default="",
        description="Opaque key sent in the Api-Key header of every forwarded record",
    )
    project_id: str = Field(
        default="",
        description="Tenant identifier embedded in every capture record",
    )
    endpoint_url: str = Field(
        default=DEFAULT_ENDPOINT_URL,
        description="Ingestion endpoint receiving forwarded records",
    )
    timeout: float = Field(
        default=10.0,
        description="Timeout in seconds for the outbound collector request",
    )

    # -------------------------------------------------------------------------
    # Capture policy
    # -------------------------------------------------------------------------
    capture_all: bool = Field(
        default=False,
        description="Forward every request instead of only 5xx responses",
    )
    enabled: bool = Field(
        default=True,
        description="Install the capture middleware at all",
    )
    redact_headers: str = Field(
        default="",
        description="Comma-separated request header names masked in captured headers",
    )

    @property
    def redact_headers_set(self) -> frozenset[str]:
        """Lower-cased header names to mask."""
        return frozenset(
            h.strip().lower() for h in self.redact_headers.split(",") if h.strip()
        )

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("endpoint_url")
    @classmethod
    def validate_endpoint_url(cls, v: str) -> str:
        """Ensure the endpoint is an http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid endpoint_url '{v}'. Must start with http:// or https://")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v


@lru_cache
def get_settings() -> CaptureSettings:
    """
    Get cached settings instance.

    For testing, clear the cache with get_settings.cache_clear().
    """
    return CaptureSettings()
