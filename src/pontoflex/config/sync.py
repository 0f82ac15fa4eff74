"""Offline sync configuration.

All settings can be overridden via environment variables with the
PONTOFLEX_ prefix.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pontoflex.core.constants import (
    DEFAULT_GEOFENCE_RADIUS_M,
    DEFAULT_PROBE_HOST,
    DEFAULT_PROBE_INTERVAL_S,
    DEFAULT_PROBE_PORT,
    DEFAULT_PROBE_TIMEOUT_S,
    DEFAULT_REQUEST_TIMEOUT_S,
    REGISTRATIONS_TABLE,
)


@dataclass
class SyncConfig:
    """Offline queue and remote store configuration."""

    # Local store
    store_dir: Path = Path.home() / ".pontoflex"

    # Remote REST endpoint (PostgREST / Supabase)
    rest_url: str = ""
    api_key: str = ""
    table: str = REGISTRATIONS_TABLE
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S

    # Connectivity probe
    probe_host: str = DEFAULT_PROBE_HOST
    probe_port: int = DEFAULT_PROBE_PORT
    probe_timeout_s: float = DEFAULT_PROBE_TIMEOUT_S
    probe_interval_s: float = DEFAULT_PROBE_INTERVAL_S

    # Retry policy: None keeps transient failures forever
    max_attempts: Optional[int] = None

    # Geofence
    default_radius_m: float = DEFAULT_GEOFENCE_RADIUS_M

    @classmethod
    def from_env(cls) -> "SyncConfig":
        """Load configuration from environment variables."""
        config = cls()

        if "PONTOFLEX_STORE_DIR" in os.environ:
            config.store_dir = Path(os.environ["PONTOFLEX_STORE_DIR"])

        # Remote
        if "PONTOFLEX_REST_URL" in os.environ:
            config.rest_url = os.environ["PONTOFLEX_REST_URL"].rstrip("/")
        if "PONTOFLEX_API_KEY" in os.environ:
            config.api_key = os.environ["PONTOFLEX_API_KEY"]
        if "PONTOFLEX_TABLE" in os.environ:
            config.table = os.environ["PONTOFLEX_TABLE"]
        if "PONTOFLEX_REQUEST_TIMEOUT" in os.environ:
            config.request_timeout_s = float(os.environ["PONTOFLEX_REQUEST_TIMEOUT"])

        # Probe
        if "PONTOFLEX_PROBE_HOST" in os.environ:
            config.probe_host = os.environ["PONTOFLEX_PROBE_HOST"]
        if "PONTOFLEX_PROBE_PORT" in os.environ:
            config.probe_port = int(os.environ["PONTOFLEX_PROBE_PORT"])
        if "PONTOFLEX_PROBE_INTERVAL" in os.environ:
            config.probe_interval_s = float(os.environ["PONTOFLEX_PROBE_INTERVAL"])

        if "PONTOFLEX_MAX_ATTEMPTS" in os.environ:
            raw = os.environ["PONTOFLEX_MAX_ATTEMPTS"].strip()
            config.max_attempts = int(raw) if raw else None

        if "PONTOFLEX_DEFAULT_RADIUS" in os.environ:
            config.default_radius_m = float(os.environ["PONTOFLEX_DEFAULT_RADIUS"])

        return config

    def validate(self) -> list[str]:
        """Validate configuration. Returns list of errors."""
        errors = []

        if self.rest_url and not self.rest_url.startswith(("http://", "https://")):
            errors.append(f"rest_url must be http(s), got {self.rest_url}")

        if self.rest_url and not self.api_key:
            errors.append("rest_url configured but no api_key")

        if self.request_timeout_s <= 0:
            errors.append(f"request_timeout_s must be > 0, got {self.request_timeout_s}")

        if self.probe_port < 1 or self.probe_port > 65535:
            errors.append(f"Invalid probe_port: {self.probe_port}")

        if self.probe_interval_s <= 0:
            errors.append(f"probe_interval_s must be > 0, got {self.probe_interval_s}")

        if self.max_attempts is not None and self.max_attempts < 1:
            errors.append(f"max_attempts must be >= 1, got {self.max_attempts}")

        if self.default_radius_m <= 0:
            errors.append(f"default_radius_m must be > 0, got {self.default_radius_m}")

        return errors
