"""Settings Management Module.

Loads relay configuration from the process environment, optionally
seeded from a ``.env`` file. Values already present in the environment
win over the file.
"""

import os
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator

# Constants
ENV_FILE = Path(".env")


class BusSettings(BaseModel):
    """NATS connection configuration."""
    url: str = "nats://localhost:4222"
    user: Optional[str] = None
    password: Optional[str] = None
    reconnect_wait: float = Field(2.0, gt=0)
    max_reconnects: int = Field(10, ge=0)
    request_timeout: float = Field(5.0, gt=0)


class BridgeSettings(BaseModel):
    """Request/reply bridge configuration."""
    subject: str = "magic-mix.app"
    channel: str = "noma2"
    log_bodies: bool = False


class RelaySettings(BaseModel):
    """Global relay settings."""
    # Logging & metrics
    log_level: str = "info"
    log_output_paths: str = "stdout"
    metrics_port: Optional[int] = 9090
    service_name: str = "my-go-service"

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 8080

    # Bus
    bus: BusSettings = Field(default_factory=BusSettings)
    bridge: BridgeSettings = Field(default_factory=BridgeSettings)

    # Event forwarding
    relay_source: str = "koksmat-emit"
    token_display_name: str = "koksmat-emit"
    jwt_signing_key: Optional[str] = None
    graph_forward_notifications: bool = False

    # GitHub
    github_webhook_secret: Optional[str] = None
    github_pat: Optional[str] = None

    class Config:
        validate_assignment = True

    @field_validator("metrics_port", mode="before")
    @classmethod
    def _blank_port_disables(cls, value):
        if value in ("", "0", 0, None):
            return None
        return value

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        env_file: Optional[Union[str, Path]] = ENV_FILE,
    ) -> "RelaySettings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``).
            env_file: Optional dotenv file consulted for keys missing
                from ``environ``. Pass ``None`` to skip it.

        Returns:
            RelaySettings: The resolved configuration.
        """
        values = {}
        if env_file is not None and Path(env_file).exists():
            values.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        values.update(os.environ if environ is None else environ)

        def get(key: str, default: Optional[str] = None) -> Optional[str]:
            value = values.get(key)
            return default if value is None else value

        return cls(
            log_level=get("LOG_LEVEL", "info"),
            log_output_paths=get("LOG_OUTPUT_PATHS", "stdout"),
            metrics_port=get("METRICS_PORT", "9090"),
            service_name=get("SERVICE_NAME", "my-go-service"),
            host=get("HOST", "0.0.0.0"),
            port=get("PORT", "8080"),
            bus=BusSettings(
                url=get("NATS_URL", "nats://localhost:4222"),
                user=get("NATS_USER") or None,
                password=get("NATS_PASSWORD") or None,
                reconnect_wait=get("NATS_RECONNECT_WAIT", "2"),
                max_reconnects=get("NATS_MAX_RECONNECTS", "10"),
                request_timeout=get("BUS_REQUEST_TIMEOUT", "5"),
            ),
            bridge=BridgeSettings(
                subject=get("BRIDGE_SUBJECT", "magic-mix.app"),
                channel=get("BRIDGE_CHANNEL", "noma2"),
                log_bodies=get("BRIDGE_LOG_BODIES") or False,
            ),
            relay_source=get("RELAY_SOURCE", "koksmat-emit"),
            token_display_name=get("TOKEN_DISPLAY_NAME", "koksmat-emit"),
            jwt_signing_key=get("JWT_SIGNING_KEY") or None,
            graph_forward_notifications=get("GRAPH_FORWARD_NOTIFICATIONS") or False,
            github_webhook_secret=get("GITHUB_WEBHOOK_SECRET") or None,
            github_pat=get("GITHUB_PAT") or None,
        )
