"""Bus Connection - A single logical NATS connection with reconnection.

Wraps a ``nats-py`` client, tracks connection state, and surfaces
connection lifecycle events to registered observers. Reconnection is
delegated to the client library; this module only reflects it in
``ConnectionState`` and converts library errors into the relay taxonomy.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

import nats
from nats import errors as nats_errors

from ..core.errors import (
    ConnectionFailed,
    ConnectionLost,
    NotConnected,
    RequestTimeout,
    TransportError,
)

logger = logging.getLogger(__name__)

Connector = Callable[..., Awaitable[Any]]


class ConnectionState(Enum):
    """Bus connection states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


@dataclass
class BusConfig:
    """Configuration for a bus connection."""

    url: str = "nats://localhost:4222"
    user: Optional[str] = None
    password: Optional[str] = None
    reconnect_wait: float = 2.0  # Seconds between reconnect attempts
    max_reconnects: int = 10     # Attempts before giving up
    name: str = "webhook-relay"


class ConnectionObserver:
    """Receives connection lifecycle notifications.

    All methods are no-ops by default; subclasses override what they need.
    """

    def on_connected(self, url: Optional[str]) -> None:
        pass

    def on_disconnected(self, error: Optional[BaseException]) -> None:
        pass

    def on_reconnected(self, url: Optional[str]) -> None:
        pass

    def on_closed(self, lost: bool) -> None:
        pass

    def on_error(self, error: BaseException) -> None:
        pass


def _check_timeout(timeout: float) -> None:
    if timeout is None or not math.isfinite(timeout) or timeout <= 0:
        raise ValueError(f"timeout must be a finite positive number, got {timeout!r}")


def _consume_result(task: "asyncio.Future") -> None:
    # Marks the failure of an abandoned request as retrieved
    if not task.cancelled():
        task.exception()


class BusConnection:
    """Owns one connection to the message bus.

    Example:
        >>> connection = BusConnection(BusConfig(url="nats://localhost:4222"))
        >>> await connection.connect()
        >>> reply = await connection.request("magic-mix.app", b"{}", timeout=5)
        >>> await connection.close()
    """

    def __init__(
        self,
        config: Optional[BusConfig] = None,
        connector: Optional[Connector] = None,
    ):
        """Initialize the connection.

        Args:
            config: Connection configuration.
            connector: Coroutine function establishing the transport.
                Defaults to ``nats.connect``.
        """
        self.config = config or BusConfig()
        self._connector = connector or nats.connect
        self._client: Any = None
        self._state = ConnectionState.DISCONNECTED
        self._observers: List[ConnectionObserver] = []
        self._closing = False
        self._lost = asyncio.Event()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def is_lost(self) -> bool:
        """True once reconnect attempts were exhausted."""
        return self._lost.is_set()

    def add_observer(self, observer: ConnectionObserver) -> None:
        """Register an observer for lifecycle events."""
        self._observers.append(observer)

    def _notify(self, event: str, *args) -> None:
        for observer in self._observers:
            try:
                getattr(observer, event)(*args)
            except Exception as e:
                logger.error(f"Connection observer {type(observer).__name__}.{event} failed: {e}")

    def _connected_url(self) -> Optional[str]:
        url = getattr(self._client, "connected_url", None)
        if url is None:
            return None
        return getattr(url, "netloc", None) or str(url)

    # ------------------------------------------------------------------
    # Library callbacks
    # ------------------------------------------------------------------

    async def _on_disconnected(self) -> None:
        if self._closing or self._state == ConnectionState.CLOSED:
            return
        self._state = ConnectionState.RECONNECTING
        self._notify("on_disconnected", getattr(self._client, "last_error", None))

    async def _on_reconnected(self) -> None:
        if self._state == ConnectionState.CLOSED:
            return
        self._state = ConnectionState.CONNECTED
        self._notify("on_reconnected", self._connected_url())

    async def _on_closed(self) -> None:
        self._mark_closed(lost=not self._closing)

    async def _on_error(self, error: BaseException) -> None:
        self._notify("on_error", error)

    def _mark_closed(self, lost: bool) -> None:
        if self._state == ConnectionState.CLOSED:
            return
        self._state = ConnectionState.CLOSED
        if lost:
            self._lost.set()
        self._notify("on_closed", lost)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def connect(self) -> "BusConnection":
        """Establish the transport.

        Raises:
            ConnectionFailed: If the bus cannot be reached.
        """
        if self._state in (ConnectionState.CONNECTED, ConnectionState.RECONNECTING):
            return self
        if self._state == ConnectionState.CLOSED:
            raise NotConnected("connection already closed")

        options = {
            "servers": [self.config.url],
            "name": self.config.name,
            "allow_reconnect": True,
            "reconnect_time_wait": self.config.reconnect_wait,
            "max_reconnect_attempts": self.config.max_reconnects,
            "disconnected_cb": self._on_disconnected,
            "reconnected_cb": self._on_reconnected,
            "closed_cb": self._on_closed,
            "error_cb": self._on_error,
        }
        if self.config.user and self.config.password:
            options["user"] = self.config.user
            options["password"] = self.config.password

        self._state = ConnectionState.CONNECTING
        try:
            self._client = await self._connector(**options)
        except Exception as e:
            self._state = ConnectionState.DISCONNECTED
            raise ConnectionFailed(f"failed to connect to {self.config.url}: {e}") from e

        self._state = ConnectionState.CONNECTED
        self._notify("on_connected", self._connected_url() or self.config.url)
        return self

    def _require_client(self) -> Any:
        if self._lost.is_set():
            raise ConnectionLost("bus connection lost, reconnect attempts exhausted")
        if self._client is None or self._state in (
            ConnectionState.DISCONNECTED,
            ConnectionState.CONNECTING,
            ConnectionState.CLOSED,
        ):
            raise NotConnected(f"bus connection is {self._state.value}")
        return self._client

    def _translate(self, error: Exception, subject: str) -> Exception:
        if isinstance(error, nats_errors.ConnectionClosedError):
            if self._lost.is_set():
                return ConnectionLost(f"connection lost during call to {subject}", subject=subject)
            return NotConnected(f"connection closed during call to {subject}", subject=subject)
        return TransportError(f"bus call to {subject} failed: {error}", subject=subject)

    async def publish(self, subject: str, data: bytes) -> None:
        """Fire-and-forget send.

        Raises:
            NotConnected, ConnectionLost, TransportError
        """
        client = self._require_client()
        try:
            await client.publish(subject, data)
        except (nats_errors.Error, OSError) as e:
            raise self._translate(e, subject) from e

    async def request(self, subject: str, data: bytes, timeout: float) -> bytes:
        """Send a correlated request and wait for its reply.

        The reply future is raced against connection loss and the deadline;
        the caller never waits longer than ``timeout`` seconds.

        Args:
            subject: Bus subject.
            data: Request payload.
            timeout: Deadline in seconds. Must be finite and positive.

        Returns:
            bytes: The raw reply payload.

        Raises:
            RequestTimeout, NotConnected, ConnectionLost, TransportError
        """
        _check_timeout(timeout)
        client = self._require_client()

        pending = asyncio.ensure_future(client.request(subject, data, timeout=timeout))
        pending.add_done_callback(_consume_result)
        lost = asyncio.ensure_future(self._lost.wait())
        try:
            done, _ = await asyncio.wait(
                {pending, lost},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            pending.cancel()
            raise
        finally:
            lost.cancel()

        if pending not in done:
            pending.cancel()
            if lost in done:
                raise ConnectionLost(
                    f"connection lost while waiting for reply on {subject}", subject=subject
                )
            raise RequestTimeout(f"no reply on {subject} within {timeout}s", subject=subject)

        try:
            msg = pending.result()
        except asyncio.TimeoutError as e:
            raise RequestTimeout(f"no reply on {subject} within {timeout}s", subject=subject) from e
        except (nats_errors.Error, OSError) as e:
            raise self._translate(e, subject) from e
        return msg.data

    async def close(self) -> None:
        """Close the connection. Calling it again has no effect."""
        if self._state == ConnectionState.CLOSED:
            return
        self._closing = True
        client, self._client = self._client, None
        try:
            if client is not None and not getattr(client, "is_closed", False):
                await client.close()
        finally:
            self._mark_closed(lost=False)
