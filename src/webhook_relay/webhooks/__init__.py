"""Webhooks module for inbound webhook handling.

Provides a provider-agnostic webhooks framework with:
- Inbound receivers with handshake and signature verification
- Polymorphic per-provider handlers
- Forwarding of canonical event records to the automation bus
"""

from .router import router
from .models import EventRecord, GitHubWebhookInput, GitHubWebhookOutput, GraphCallback
from .handlers import (
    WebhookHandler,
    GitHubWebhookHandler,
    MicrosoftGraphWebhookHandler,
    GenericEventHandler,
    summarize_github_event,
)
from .forwarder import EventForwarder
from .receiver import WebhookReceiver
from .registry import WebhookRegistry

__all__ = [
    "router",
    "EventRecord",
    "GitHubWebhookInput",
    "GitHubWebhookOutput",
    "GraphCallback",
    "WebhookHandler",
    "GitHubWebhookHandler",
    "MicrosoftGraphWebhookHandler",
    "GenericEventHandler",
    "summarize_github_event",
    "EventForwarder",
    "WebhookReceiver",
    "WebhookRegistry",
]
