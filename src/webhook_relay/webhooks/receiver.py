"""Inbound webhook receiver.

Handles incoming webhook requests: provider handshakes, signature
checks, payload validation and the provider response.
"""

import logging
from typing import Optional

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import PlainTextResponse

from ..core.errors import PayloadValidationError
from ..core.observability import EventLogger, truncate
from .handlers import WebhookAuthError
from .registry import WebhookRegistry

logger = logging.getLogger(__name__)


class WebhookReceiver:
    """Receives and processes inbound webhook requests.

    Features:
    - Synchronous provider handshakes (e.g. Graph subscription validation)
    - Optional signature verification
    - Malformed payloads answered with 400 and the decode error

    Bridge failures raised while responding are ``RelayError`` instances
    and propagate to the application's exception handler.

    Example:
        receiver = WebhookReceiver(registry)
        response = await receiver.process("github", request)
    """

    def __init__(self, registry: WebhookRegistry):
        self.registry = registry

    async def process(self, provider: str, request: Request) -> Response:
        """Process an incoming webhook request.

        Args:
            provider: Name of the registered handler.
            request: The inbound HTTP request.

        Returns:
            The HTTP response for the caller.

        Raises:
            HTTPException: 404 for an unknown provider, 401 on failed authentication.
        """
        handler = self.registry.get(provider)
        if handler is None:
            logger.warning(f"No handler for webhook provider: {provider}")
            raise HTTPException(status_code=404, detail=f"Unknown webhook provider: {provider}")

        response: Optional[Response] = handler.handshake(request)
        if response is not None:
            return response

        raw_body = await request.body()

        try:
            handler.authenticate(request, raw_body)
        except WebhookAuthError as e:
            logger.warning(f"Rejected {provider} webhook: {e}")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

        try:
            event = handler.parse(raw_body, request.path_params)
        except PayloadValidationError as e:
            EventLogger.error(
                "webhook.invalid_payload",
                provider=provider,
                endpoint=request.url.path,
                error=str(e),
                body=truncate(raw_body),
            )
            return PlainTextResponse(str(e), status_code=status.HTTP_400_BAD_REQUEST)

        return await handler.respond(event)
