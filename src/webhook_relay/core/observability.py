"""Observability - Structured event logging, metrics and health.

Wraps every HTTP handler with a request counter, exposes Prometheus
metrics for the bus bridge, and turns bus connection events into
structured log lines and a health flag an orchestrator can probe.
"""

from typing import Any, Optional, Tuple
from datetime import datetime
import json
import logging
import threading

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from ..bus.connection import ConnectionObserver


# Configure base logger
logger = logging.getLogger("observability")

BODY_PREVIEW_LIMIT = 256


def truncate(body: Any, limit: int = BODY_PREVIEW_LIMIT) -> str:
    """Shorten a body for inclusion in log lines."""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    text = str(body)
    if len(text) <= limit:
        return text
    return f"{text[:limit]}...({len(text) - limit} more)"


class EventLogger:
    """Structured event logging for observability.

    Outputs JSON-formatted logs for easy parsing and analysis.

    Example:
        >>> EventLogger.info("bus.reconnected", url="nats://bus:4222")
        >>> EventLogger.error("webhook.forward.failed", endpoint="github")
    """

    _logger = logging.getLogger("webhook_relay.events")

    @classmethod
    def _log(cls, level: str, event: str, **kwargs) -> None:
        """Internal logging method."""
        log_data = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **kwargs,
        }

        # Log as JSON
        json_str = json.dumps(log_data, default=str)

        log_method = getattr(cls._logger, level.lower(), cls._logger.info)
        log_method(json_str)

    @classmethod
    def debug(cls, event: str, **kwargs) -> None:
        """Log debug event."""
        cls._log("DEBUG", event, **kwargs)

    @classmethod
    def info(cls, event: str, **kwargs) -> None:
        """Log info event."""
        cls._log("INFO", event, **kwargs)

    @classmethod
    def warning(cls, event: str, **kwargs) -> None:
        """Log warning event."""
        cls._log("WARNING", event, **kwargs)

    @classmethod
    def error(cls, event: str, **kwargs) -> None:
        """Log error event."""
        cls._log("ERROR", event, **kwargs)


class HealthState:
    """Process health flag flipped by bus connection events."""

    def __init__(self):
        self._healthy = True
        self._reason: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def healthy(self) -> bool:
        return self._healthy

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def mark_healthy(self) -> None:
        with self._lock:
            self._healthy = True
            self._reason = None

    def mark_unhealthy(self, reason: str) -> None:
        with self._lock:
            self._healthy = False
            self._reason = reason


class Observability:
    """Metrics registry and health state for one application instance.

    Each instance owns its own ``CollectorRegistry`` so several apps
    (e.g. in tests) never collide on metric names.

    Example:
        >>> obs = Observability("webhook-relay")
        >>> obs.record_http_request("/health")
        >>> body, content_type = obs.render()
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()
        self.health = HealthState()

        self.http_requests = Counter(
            "http_requests_total",
            "Total number of HTTP requests",
            ["path"],
            registry=self.registry,
        )
        self.bus_requests = Counter(
            "bus_requests_total",
            "Total number of bus requests by outcome",
            ["subject", "outcome"],
            registry=self.registry,
        )
        self.bus_latency = Histogram(
            "bus_request_duration_seconds",
            "Bus request/reply latency in seconds",
            ["subject"],
            buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
            registry=self.registry,
        )

    def record_http_request(self, path: str) -> None:
        self.http_requests.labels(path=path).inc()

    def record_bus_request(self, subject: str, outcome: str, seconds: float) -> None:
        self.bus_requests.labels(subject=subject, outcome=outcome).inc()
        self.bus_latency.labels(subject=subject).observe(seconds)

    def render(self) -> Tuple[bytes, str]:
        """Render the registry in Prometheus exposition format."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST


class BusHealthObserver(ConnectionObserver):
    """Logs bus lifecycle events and flips process health."""

    def __init__(self, health: HealthState):
        self.health = health

    def on_connected(self, url: Optional[str]) -> None:
        self.health.mark_healthy()
        EventLogger.info("bus.connected", url=url)

    def on_disconnected(self, error: Optional[BaseException]) -> None:
        EventLogger.warning(
            "bus.disconnected",
            error=str(error) if error else None,
            message="will attempt reconnects",
        )

    def on_reconnected(self, url: Optional[str]) -> None:
        self.health.mark_healthy()
        EventLogger.info("bus.reconnected", url=url)

    def on_closed(self, lost: bool) -> None:
        if lost:
            self.health.mark_unhealthy("bus connection lost")
            EventLogger.error("bus.closed", reason="reconnect attempts exhausted")
        else:
            EventLogger.info("bus.closed", reason="closed by relay")

    def on_error(self, error: BaseException) -> None:
        EventLogger.error("bus.error", error=str(error))
