"""Webhook handler registry.

Stores the provider handlers the relay serves and provides lookup by
provider name. In-memory; the set of handlers is fixed at startup.
"""

from typing import Dict, List, Optional
import logging

from .handlers import WebhookHandler
from .models import WebhookEndpoint

logger = logging.getLogger(__name__)


class WebhookRegistry:
    """In-memory registry of webhook handlers.

    Example:
        registry = WebhookRegistry()
        registry.register(GitHubWebhookHandler())

        handler = registry.get("github")
    """

    def __init__(self):
        """Initialize empty registry."""
        self._handlers: Dict[str, WebhookHandler] = {}

    def register(self, handler: WebhookHandler) -> WebhookHandler:
        """Register a handler under its provider name.

        Args:
            handler: The handler to register.

        Returns:
            The registered handler.

        Raises:
            ValueError: If the provider name is already taken.
        """
        if handler.provider in self._handlers:
            raise ValueError(f"Handler already registered for provider: {handler.provider}")
        self._handlers[handler.provider] = handler
        logger.info(f"Registered webhook handler '{handler.provider}' at {handler.path}")
        return handler

    def get(self, provider: str) -> Optional[WebhookHandler]:
        return self._handlers.get(provider)

    def endpoints(self) -> List[WebhookEndpoint]:
        """Describe every registered handler."""
        return [
            WebhookEndpoint(provider=h.provider, path=h.path, description=h.description)
            for h in self._handlers.values()
        ]
