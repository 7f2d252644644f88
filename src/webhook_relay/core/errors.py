"""Relay error taxonomy.

Every failure the relay can surface to an HTTP caller derives from
``RelayError`` and carries the status code it maps to. The FastAPI
exception handler in ``webhook_relay.main`` turns these into plain-text
responses.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for all relay errors."""

    status_code: int = 500

    def __init__(self, message: str, *, subject: Optional[str] = None):
        self.subject = subject
        super().__init__(message)


class PayloadValidationError(RelayError):
    """Inbound payload is malformed."""

    status_code = 400


class SigningError(RelayError):
    """Token issuance failed."""

    status_code = 500


class SerializationFailed(RelayError):
    """A bridge request could not be encoded for the wire."""

    status_code = 500


class TransportError(RelayError):
    """Transport-level failure talking to the bus."""

    status_code = 502


class UpstreamUnavailable(RelayError):
    """The bus is not usable."""

    status_code = 503


class ConnectionFailed(UpstreamUnavailable):
    """Initial connection to the bus could not be established."""


class NotConnected(UpstreamUnavailable):
    """Operation attempted while the connection is not open."""


class ConnectionLost(UpstreamUnavailable):
    """Reconnect attempts are exhausted; the connection is gone for good."""


class UpstreamTimeout(RelayError):
    """The bus did not reply before the deadline."""

    status_code = 504


RequestTimeout = UpstreamTimeout
