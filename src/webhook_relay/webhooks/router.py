"""Webhook API routes.

FastAPI router providing the inbound webhook endpoints and the
authenticated webhook listing.
"""

from fastapi import APIRouter, Depends, Request

from .models import GitHubWebhookOutput, WebhookListResponse
from .receiver import WebhookReceiver
from .registry import WebhookRegistry
from .security import require_bearer

router = APIRouter(tags=["Webhooks"])


def get_receiver(request: Request) -> WebhookReceiver:
    """Get the application's webhook receiver."""
    return request.app.state.receiver


def get_registry(request: Request) -> WebhookRegistry:
    """Get the application's webhook registry."""
    return request.app.state.registry


# ============================================================================
# Inbound Webhook Endpoints
# ============================================================================

@router.post("/api/v1/github", response_model=GitHubWebhookOutput)
async def github_webhook(request: Request, receiver: WebhookReceiver = Depends(get_receiver)):
    """Receive a GitHub issue or pull request event."""
    return await receiver.process("github", request)


@router.post("/api/v1/officegraph/notify")
async def officegraph_webhook(request: Request, receiver: WebhookReceiver = Depends(get_receiver)):
    """Receive a Microsoft Graph change notification.

    A ``validationToken`` query parameter is echoed back as plain text to
    confirm the subscription.
    """
    return await receiver.process("officegraph", request)


@router.post("/api/v1/events/{endpoint}")
async def event_webhook(
    endpoint: str,
    request: Request,
    receiver: WebhookReceiver = Depends(get_receiver),
):
    """Forward any JSON payload to the automation bus.

    Args:
        endpoint: Name recorded as the event tag.
    """
    return await receiver.process("events", request)


# ============================================================================
# Admin Endpoints
# ============================================================================

@router.get(
    "/v1/webhooks",
    response_model=WebhookListResponse,
    dependencies=[Depends(require_bearer)],
)
async def list_webhooks(registry: WebhookRegistry = Depends(get_registry)):
    """List the webhook endpoints this relay serves."""
    endpoints = registry.endpoints()
    return WebhookListResponse(webhooks=endpoints, total=len(endpoints))
