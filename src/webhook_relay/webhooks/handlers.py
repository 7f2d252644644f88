"""Provider-specific webhook handlers.

Each handler knows how to validate one provider's inbound shape and how
to answer it. ``WebhookReceiver`` drives them through the same
handshake -> authenticate -> parse -> respond sequence.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from ..core.errors import PayloadValidationError
from ..core.observability import EventLogger
from .forwarder import EventForwarder
from .models import (
    ForwardResponse,
    GitHubWebhookInput,
    GitHubWebhookOutput,
    GraphCallback,
)
from .security import GITHUB_SIGNATURE_HEADER, verify_signature

logger = logging.getLogger(__name__)


class WebhookAuthError(Exception):
    """Inbound request failed provider authentication."""


class WebhookHandler(ABC):
    """Base class for provider handlers."""

    provider: str = ""
    path: str = ""
    description: str = ""

    def handshake(self, request: Request) -> Optional[Response]:
        """Answer a provider handshake directly, bypassing parse/respond."""
        return None

    def authenticate(self, request: Request, raw: bytes) -> None:
        """Reject the request by raising ``WebhookAuthError``."""

    @abstractmethod
    def parse(self, raw: bytes, params: Mapping[str, str]) -> Any:
        """Validate the raw body.

        Raises:
            PayloadValidationError: If the body does not have the expected shape.
        """

    @abstractmethod
    async def respond(self, event: Any) -> Response:
        """Build the HTTP response for a parsed event."""


# ============================================================================
# GitHub
# ============================================================================

OPENED_ACTIONS = frozenset({"created", "opened"})


def summarize_github_event(event: GitHubWebhookInput) -> GitHubWebhookOutput:
    """Map a GitHub event to a status message."""
    repo = event.repository.name
    if event.action in OPENED_ACTIONS:
        return GitHubWebhookOutput(
            message=f"A new issue or PR was opened in {repo}", status="success"
        )
    if event.action == "closed":
        return GitHubWebhookOutput(
            message=f"An issue or PR was closed in {repo}", status="success"
        )
    return GitHubWebhookOutput(message=f"Action not handled: {event.action}", status="ignored")


class GitHubWebhookHandler(WebhookHandler):
    """Summarizes GitHub issue and pull request events."""

    provider = "github"
    path = "/api/v1/github"
    description = "GitHub issue and pull request events"

    def __init__(self, secret: Optional[str] = None):
        self.secret = secret

    def authenticate(self, request: Request, raw: bytes) -> None:
        if not self.secret:
            return
        if not verify_signature(raw, request.headers.get(GITHUB_SIGNATURE_HEADER), self.secret):
            raise WebhookAuthError("Invalid webhook signature")

    def parse(self, raw: bytes, params: Mapping[str, str]) -> GitHubWebhookInput:
        try:
            return GitHubWebhookInput.model_validate_json(raw)
        except ValidationError as e:
            raise PayloadValidationError(str(e)) from e

    async def respond(self, event: GitHubWebhookInput) -> Response:
        output = summarize_github_event(event)
        logger.info(f"GitHub {event.action} on {event.repository.name}: {output.status}")
        return JSONResponse(output.model_dump())


# ============================================================================
# Microsoft Graph
# ============================================================================

class MicrosoftGraphWebhookHandler(WebhookHandler):
    """Microsoft Graph change notifications.

    Answers the subscription validation handshake by echoing the token.
    Notifications are logged in array order and, when a forwarder is
    configured, forwarded one at a time.
    """

    provider = "officegraph"
    path = "/api/v1/officegraph/notify"
    description = "Microsoft Graph change notifications"

    def __init__(self, forwarder: Optional[EventForwarder] = None):
        self.forwarder = forwarder

    def handshake(self, request: Request) -> Optional[Response]:
        token = request.query_params.get("validationToken")
        if not token:
            return None
        logger.info("Confirming subscription")
        return PlainTextResponse(
            token,
            status_code=200,
            headers={"X-Content-Type-Options": "nosniff"},
        )

    def parse(self, raw: bytes, params: Mapping[str, str]) -> GraphCallback:
        try:
            return GraphCallback.model_validate_json(raw)
        except ValidationError as e:
            raise PayloadValidationError(str(e)) from e

    async def respond(self, event: GraphCallback) -> Response:
        bodies = []
        for item in event.value:
            EventLogger.info(
                "officegraph.notification",
                subscription_id=item.subscription_id,
                change_type=item.change_type,
                resource=item.resource,
                tenant_id=item.tenant_id,
            )
            bodies.append(item.model_dump_json(by_alias=True))

        if self.forwarder is not None and bodies:
            outcomes = await self.forwarder.forward_each(self.provider, bodies)
            failed = outcomes.count(False)
            if failed:
                logger.warning(f"{failed} of {len(outcomes)} Graph notifications were not forwarded")

        return PlainTextResponse("received", status_code=200)


# ============================================================================
# Generic events
# ============================================================================

@dataclass(frozen=True)
class GenericEvent:
    endpoint: str
    body: str


class GenericEventHandler(WebhookHandler):
    """Forwards any JSON body to the bus, tagged with the endpoint name."""

    provider = "events"
    path = "/api/v1/events/{endpoint}"
    description = "Any JSON payload, forwarded to the automation bus"

    def __init__(self, forwarder: EventForwarder):
        self.forwarder = forwarder

    def parse(self, raw: bytes, params: Mapping[str, str]) -> GenericEvent:
        try:
            body = raw.decode("utf-8")
            json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PayloadValidationError(f"invalid json: {e}") from e
        return GenericEvent(endpoint=params.get("endpoint", self.provider), body=body)

    async def respond(self, event: GenericEvent) -> Response:
        result = await self.forwarder.forward(event.endpoint, event.body)
        return JSONResponse(
            ForwardResponse(endpoint=event.endpoint, result=result).model_dump()
        )
