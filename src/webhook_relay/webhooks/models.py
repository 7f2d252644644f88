"""Webhook data models.

Defines Pydantic schemas for inbound provider payloads, the canonical
event envelope forwarded to the bus, and response models used by the
webhook routes.
"""

import json
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..core.errors import PayloadValidationError


# ============================================================================
# Canonical event envelope
# ============================================================================

def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON
    raise ValueError(f"invalid literal {name}")


class EventRecord(BaseModel):
    """Canonical envelope wrapping any inbound webhook payload.

    ``payload`` must be valid JSON text. It is kept verbatim and embedded
    as a raw JSON value when the record is serialized, so number literals
    and key order reach the bus untouched.
    """

    model_config = ConfigDict(frozen=True)

    tenant: str = ""
    searchindex: str = ""
    name: str = Field(..., min_length=1)
    description: str = ""
    source: str = ""
    tag: str = ""
    payload: str

    @field_validator("payload")
    @classmethod
    def _payload_is_json(cls, value: str) -> str:
        try:
            json.loads(value, parse_constant=_reject_constant)
        except ValueError as e:
            raise ValueError(f"payload is not valid JSON: {e}") from e
        return value

    @classmethod
    def build(cls, payload: str, **fields) -> "EventRecord":
        """Construct a record, failing if ``payload`` is not valid JSON.

        Raises:
            PayloadValidationError: If the payload or a field is invalid.
        """
        try:
            return cls(payload=payload, **fields)
        except ValidationError as e:
            raise PayloadValidationError(f"invalid event record: {e}") from e

    def to_json(self) -> str:
        head = self.model_dump_json(exclude={"payload"})
        return f'{head[:-1]},"payload":{self.payload.strip()}}}'


# ============================================================================
# GitHub
# ============================================================================

class GitHubOwner(BaseModel):
    login: str = ""


class GitHubRepository(BaseModel):
    name: str
    owner: GitHubOwner = Field(default_factory=GitHubOwner)


class GitHubWebhookInput(BaseModel):
    """Subset of a GitHub issue / pull request event."""

    action: str
    repository: GitHubRepository


class GitHubWebhookOutput(BaseModel):
    message: str
    status: str


# ============================================================================
# Microsoft Graph
# ============================================================================

class GraphResourceData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    odata_type: str = Field("", alias="@odata.type")
    odata_id: str = Field("", alias="@odata.id")
    odata_etag: str = Field("", alias="@odata.etag")
    id: str = ""


class GraphNotification(BaseModel):
    """A single Microsoft Graph change notification."""

    model_config = ConfigDict(populate_by_name=True)

    subscription_id: str = Field("", alias="subscriptionId")
    subscription_expiration: Optional[datetime] = Field(
        None, alias="subscriptionExpirationDateTime"
    )
    change_type: str = Field("", alias="changeType")
    resource: str = ""
    resource_data: GraphResourceData = Field(
        default_factory=GraphResourceData, alias="resourceData"
    )
    client_state: str = Field("", alias="clientState")
    tenant_id: str = Field("", alias="tenantId")


class GraphCallback(BaseModel):
    """Body of a Microsoft Graph notification callback.

    A ``null`` body or ``null`` value decodes to an empty list.
    """

    value: List[GraphNotification] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _null_body(cls, data: Any) -> Any:
        return {} if data is None else data

    @field_validator("value", mode="before")
    @classmethod
    def _null_value(cls, value: Any) -> Any:
        return [] if value is None else value


# ============================================================================
# Responses
# ============================================================================

class WebhookEndpoint(BaseModel):
    """A webhook endpoint exposed by the relay."""

    provider: str
    path: str
    description: str = ""


class WebhookListResponse(BaseModel):
    """Response containing the list of webhook endpoints."""

    webhooks: List[WebhookEndpoint]
    total: int


class ForwardResponse(BaseModel):
    """Result of forwarding an event through the bridge."""

    status: str = "success"
    endpoint: str
    result: str
