"""Core module for the webhook relay.

Contains configuration, logging setup, the error taxonomy and the
observability shim.
"""

from .errors import (
    RelayError, PayloadValidationError, SigningError, SerializationFailed,
    TransportError, UpstreamUnavailable, ConnectionFailed, NotConnected,
    ConnectionLost, UpstreamTimeout, RequestTimeout,
)
from .settings import RelaySettings, BusSettings, BridgeSettings

__all__ = [
    # Errors
    "RelayError",
    "PayloadValidationError",
    "SigningError",
    "SerializationFailed",
    "TransportError",
    "UpstreamUnavailable",
    "ConnectionFailed",
    "NotConnected",
    "ConnectionLost",
    "UpstreamTimeout",
    "RequestTimeout",

    # Settings
    "RelaySettings",
    "BusSettings",
    "BridgeSettings",
]
