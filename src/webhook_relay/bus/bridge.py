"""Request/Reply Bridge.

The only place application code talks to the bus. Turns a typed call
(subject, args, body) into the wire envelope, delegates to the bus
connection and hands back the raw reply text.
"""

import logging
import time
from typing import TYPE_CHECKING, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from ..core.errors import RelayError, SerializationFailed, TransportError
from .connection import BusConnection

if TYPE_CHECKING:
    from ..core.observability import Observability

logger = logging.getLogger(__name__)


class BridgeRequest(BaseModel):
    """Wire-level envelope sent to the bus."""

    args: List[str] = Field(..., min_length=1)
    body: str = ""
    channel: str


class RequestReplyBridge:
    """Synchronous-looking request/reply over the bus.

    Example:
        >>> bridge = RequestReplyBridge(connection, channel="noma2")
        >>> reply = await bridge.request(
        ...     "magic-mix.app", ["query", "mix", "select 1"], "", timeout=5
        ... )
    """

    def __init__(
        self,
        connection: BusConnection,
        channel: str,
        log_bodies: bool = False,
        metrics: Optional["Observability"] = None,
    ):
        """Initialize bridge.

        Args:
            connection: The shared bus connection.
            channel: Logical routing channel stamped on every request.
            log_bodies: Log full request and reply bodies at DEBUG.
                Bodies may contain secrets; keep off in production.
            metrics: Optional observability shim for bus counters.
        """
        self.connection = connection
        self.channel = channel
        self.log_bodies = log_bodies
        self.metrics = metrics

    def encode(self, args: Sequence[str], body: str) -> bytes:
        """Serialize ``{args, body, channel}`` into the wire envelope.

        Raises:
            SerializationFailed: If the envelope cannot be built.
        """
        try:
            envelope = BridgeRequest(args=list(args), body=body, channel=self.channel)
            return envelope.model_dump_json().encode("utf-8")
        except (ValidationError, TypeError, UnicodeEncodeError) as e:
            raise SerializationFailed(f"failed to marshal request: {e}") from e

    def _record(self, subject: str, outcome: str, started: float) -> None:
        if self.metrics is not None:
            self.metrics.record_bus_request(subject, outcome, time.perf_counter() - started)

    async def request(
        self,
        subject: str,
        args: Sequence[str],
        body: str,
        timeout: float,
    ) -> str:
        """Publish a request and wait for the correlated reply.

        Args:
            subject: Bus subject to address.
            args: Operation name, sub-operation and parameters.
            body: Request body, typically a serialized EventRecord.
            timeout: Reply deadline in seconds.

        Returns:
            str: The reply payload, unmodified.

        Raises:
            SerializationFailed, RequestTimeout, NotConnected,
            ConnectionLost, TransportError
        """
        data = self.encode(args, body)
        if self.log_bodies:
            logger.debug("Sending request %s %s", subject, data.decode("utf-8"))
        else:
            logger.debug("Sending request %s (%d bytes)", subject, len(data))

        started = time.perf_counter()
        try:
            reply = await self.connection.request(subject, data, timeout)
        except RelayError as e:
            self._record(subject, type(e).__name__, started)
            raise

        try:
            text = reply.decode("utf-8")
        except UnicodeDecodeError as e:
            self._record(subject, "TransportError", started)
            raise TransportError(f"reply on {subject} is not valid UTF-8", subject=subject) from e

        self._record(subject, "success", started)
        if self.log_bodies:
            logger.debug("Received response %s", text)
        else:
            logger.debug("Received response on %s (%d bytes)", subject, len(reply))
        return text

    async def publish(self, subject: str, args: Sequence[str], body: str) -> None:
        """Fire-and-forget variant of ``request``."""
        data = self.encode(args, body)
        if self.log_bodies:
            logger.debug("Publishing %s %s", subject, data.decode("utf-8"))
        await self.connection.publish(subject, data)
