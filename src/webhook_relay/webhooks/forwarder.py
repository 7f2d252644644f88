"""Event forwarder.

Wraps an inbound webhook body in an ``EventRecord``, mints a credential
and sends it to the automation backend through the request/reply bridge.
"""

import logging
from typing import List, Sequence

from ..bus.bridge import RequestReplyBridge
from ..core.errors import RelayError
from ..core.observability import EventLogger, truncate
from ..security.tokens import TokenIssuer
from .models import EventRecord

logger = logging.getLogger(__name__)

CREATE_EVENT_PROCEDURE = "create_event"


class EventForwarder:
    """Forwards webhook bodies to the bus.

    Example:
        >>> forwarder = EventForwarder(bridge, issuer, subject="magic-mix.app")
        >>> reply = await forwarder.forward("github", '{"action": "opened"}')
    """

    def __init__(
        self,
        bridge: RequestReplyBridge,
        issuer: TokenIssuer,
        subject: str,
        source: str = "koksmat-emit",
        display_name: str = "koksmat-emit",
        timeout: float = 5.0,
    ):
        """Initialize forwarder.

        Args:
            bridge: Request/reply bridge to the bus.
            issuer: Token issuer for the outbound credential.
            subject: Bus subject of the automation backend.
            source: Value of ``EventRecord.source``.
            display_name: Name the credential is issued for.
            timeout: Reply deadline in seconds.
        """
        self.bridge = bridge
        self.issuer = issuer
        self.subject = subject
        self.source = source
        self.display_name = display_name
        self.timeout = timeout

    def build_args(self, token: str, body: str) -> List[str]:
        return ["execute", "mix", CREATE_EVENT_PROCEDURE, token, body]

    async def forward(self, endpoint: str, body: str) -> str:
        """Forward one webhook body.

        Args:
            endpoint: Endpoint name, stored as the record tag.
            body: Raw JSON body.

        Returns:
            str: The backend reply.

        Raises:
            PayloadValidationError: If ``body`` is not valid JSON.
            SigningError: If the credential cannot be minted.
            RelayError: Any bridge failure.
        """
        logger.debug("Saving webhook for endpoint %s", endpoint)
        try:
            record = EventRecord.build(
                body,
                name="webhook",
                description="webhook",
                source=self.source,
                tag=endpoint,
            )
            token = self.issuer.issue(self.display_name)
            result = await self.bridge.request(
                self.subject,
                self.build_args(token, body),
                record.to_json(),
                self.timeout,
            )
        except RelayError as e:
            EventLogger.error(
                "webhook.forward.failed",
                endpoint=endpoint,
                subject=self.subject,
                error_type=type(e).__name__,
                error=str(e),
                body=truncate(body),
            )
            raise

        EventLogger.info("webhook.saved", endpoint=endpoint, result=truncate(result))
        return result

    async def forward_each(self, endpoint: str, bodies: Sequence[str]) -> List[bool]:
        """Forward bodies one at a time, in order.

        A failure on one body is logged and does not stop the rest.

        Returns:
            List[bool]: Per-body success flags, in input order.
        """
        outcomes = []
        for body in bodies:
            try:
                await self.forward(endpoint, body)
                outcomes.append(True)
            except RelayError:
                outcomes.append(False)
        return outcomes
