"""Tests for the webhooks module.

Covers provider handlers, signature verification, the registry, the
receiver and the HTTP routes.
"""

import json

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from nats import errors as nats_errors

from webhook_relay.bus.connection import BusConfig, BusConnection
from webhook_relay.main import create_app
from webhook_relay.security.tokens import TokenIssuer, TokenIssuerConfig
from webhook_relay.webhooks.handlers import (
    GenericEventHandler,
    GitHubWebhookHandler,
    MicrosoftGraphWebhookHandler,
    summarize_github_event,
)
from webhook_relay.webhooks.models import GitHubWebhookInput, GraphCallback
from webhook_relay.webhooks.registry import WebhookRegistry
from webhook_relay.webhooks.security import (
    GITHUB_SIGNATURE_HEADER,
    generate_signature,
    verify_bearer,
    verify_signature,
)

from conftest import SIGNING_KEY, FakeConnector

GRAPH_NOTIFICATION = {
    "subscriptionId": "sub-1",
    "subscriptionExpirationDateTime": "2026-11-01T10:00:00Z",
    "changeType": "created",
    "resource": "Users/abc/messages/1",
    "resourceData": {
        "@odata.type": "#Microsoft.Graph.Message",
        "@odata.id": "Users/abc/messages/1",
        "@odata.etag": "W/\"1\"",
        "id": "1",
    },
    "clientState": "secret",
    "tenantId": "tenant-1",
}


def github_event(action, repo="relay"):
    return {"action": action, "repository": {"name": repo, "owner": {"login": "koksmat"}}}


def make_client(settings, connector=None):
    connector = connector or FakeConnector()
    app = create_app(settings, connection=BusConnection(BusConfig(), connector=connector))
    return app, connector


# ============================================================================
# Model Tests
# ============================================================================

class TestWebhookModels:
    """Tests for webhook Pydantic models."""

    def test_graph_aliases(self):
        callback = GraphCallback.model_validate({"value": [GRAPH_NOTIFICATION]})

        item = callback.value[0]
        assert item.subscription_id == "sub-1"
        assert item.resource_data.odata_type == "#Microsoft.Graph.Message"
        assert item.subscription_expiration.year == 2026

        dumped = json.loads(item.model_dump_json(by_alias=True))
        assert dumped["resourceData"]["@odata.id"] == "Users/abc/messages/1"

    def test_graph_empty_callback(self):
        assert GraphCallback.model_validate_json("{}").value == []

    @pytest.mark.parametrize("body", ["null", '{"value": null}'])
    def test_graph_null_callback(self, body):
        assert GraphCallback.model_validate_json(body).value == []

    @pytest.mark.parametrize(
        "action,message,status",
        [
            ("opened", "A new issue or PR was opened in relay", "success"),
            ("created", "A new issue or PR was opened in relay", "success"),
            ("closed", "An issue or PR was closed in relay", "success"),
            ("labeled", "Action not handled: labeled", "ignored"),
        ],
    )
    def test_github_summary(self, action, message, status):
        output = summarize_github_event(GitHubWebhookInput.model_validate(github_event(action)))

        assert output.message == message
        assert output.status == status


# ============================================================================
# Security Tests
# ============================================================================

class TestWebhookSecurity:
    """Tests for signature and bearer verification."""

    def test_signature_roundtrip(self):
        payload = b'{"action": "opened"}'
        signature = generate_signature(payload, "s3cret")

        assert signature.startswith("sha256=")
        assert verify_signature(payload, signature, "s3cret")

    @pytest.mark.parametrize("signature", [None, "", "sha1=abc", "sha256=deadbeef"])
    def test_signature_rejected(self, signature):
        assert not verify_signature(b"{}", signature, "s3cret")

    def test_signature_tampered_payload(self):
        signature = generate_signature(b'{"a": 1}', "s3cret")

        assert not verify_signature(b'{"a": 2}', signature, "s3cret")

    def test_bearer_accepts_issued_token(self):
        token = TokenIssuer(TokenIssuerConfig(signing_key=SIGNING_KEY)).issue("admin")

        claims = verify_bearer(f"Bearer {token}", SIGNING_KEY)

        assert claims["app_displayname"] == "admin"

    @pytest.mark.parametrize(
        "header,key,detail",
        [
            (None, SIGNING_KEY, "Missing bearer token"),
            ("Basic abc", SIGNING_KEY, "Missing bearer token"),
            ("Bearer abc", None, "Token verification is not configured"),
            ("Bearer not-a-jwt", SIGNING_KEY, "Invalid bearer token"),
        ],
    )
    def test_bearer_rejected(self, header, key, detail):
        with pytest.raises(HTTPException) as exc_info:
            verify_bearer(header, key)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == detail


# ============================================================================
# Registry Tests
# ============================================================================

class TestWebhookRegistry:
    """Tests for the handler registry."""

    def test_register_and_get(self):
        registry = WebhookRegistry()
        handler = GitHubWebhookHandler()

        registry.register(handler)

        assert registry.get("github") is handler
        assert registry.get("missing") is None
        assert [e.path for e in registry.endpoints()] == ["/api/v1/github"]

    def test_duplicate_provider(self):
        registry = WebhookRegistry()
        registry.register(MicrosoftGraphWebhookHandler())

        with pytest.raises(ValueError):
            registry.register(MicrosoftGraphWebhookHandler())

    def test_endpoints_in_registration_order(self):
        registry = WebhookRegistry()
        registry.register(MicrosoftGraphWebhookHandler())
        registry.register(GitHubWebhookHandler())

        assert [e.provider for e in registry.endpoints()] == ["officegraph", "github"]
        assert not hasattr(registry, "unregister")


# ============================================================================
# GitHub Route Tests
# ============================================================================

class TestGitHubWebhook:
    """Tests for POST /api/v1/github."""

    @pytest.mark.parametrize(
        "action,status",
        [("opened", "success"), ("closed", "success"), ("reopened", "ignored")],
    )
    def test_event_summarized(self, settings, action, status):
        app, _ = make_client(settings)
        client = TestClient(app)

        response = client.post("/api/v1/github", json=github_event(action))

        assert response.status_code == 200
        assert response.json()["status"] == status

    def test_malformed_body(self, settings):
        app, _ = make_client(settings)
        client = TestClient(app)

        response = client.post("/api/v1/github", content=b"{not json")

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("text/plain")

    def test_missing_repository(self, settings):
        app, _ = make_client(settings)

        response = TestClient(app).post("/api/v1/github", json={"action": "opened"})

        assert response.status_code == 400

    def test_signature_enforced_when_secret_set(self, settings):
        settings.github_webhook_secret = "hook-secret"
        app, _ = make_client(settings)
        client = TestClient(app)
        body = json.dumps(github_event("opened")).encode()

        unsigned = client.post("/api/v1/github", content=body)
        signed = client.post(
            "/api/v1/github",
            content=body,
            headers={GITHUB_SIGNATURE_HEADER: generate_signature(body, "hook-secret")},
        )

        assert unsigned.status_code == 401
        assert signed.status_code == 200


# ============================================================================
# Microsoft Graph Route Tests
# ============================================================================

class TestGraphWebhook:
    """Tests for POST /api/v1/officegraph/notify."""

    def test_validation_token_echoed(self, settings):
        app, _ = make_client(settings)
        client = TestClient(app)

        response = client.post("/api/v1/officegraph/notify?validationToken=abc123")

        assert response.status_code == 200
        assert response.text == "abc123"
        assert response.headers["content-type"] == "text/plain; charset=utf-8"
        assert response.headers["x-content-type-options"] == "nosniff"

    def test_validation_token_wins_over_body(self, settings):
        app, _ = make_client(settings)

        response = TestClient(app).post(
            "/api/v1/officegraph/notify?validationToken=tok", content=b"garbage"
        )

        assert response.text == "tok"

    def test_notifications_received(self, settings):
        app, connector = make_client(settings)

        with TestClient(app) as client:
            response = client.post("/api/v1/officegraph/notify", json={"value": [GRAPH_NOTIFICATION]})

        assert response.status_code == 200
        assert response.text == "received"
        assert connector.client.requests == []

    @pytest.mark.parametrize("body", [b"null", b'{"value": null}'])
    def test_null_body_received(self, settings, body):
        app, _ = make_client(settings)

        response = TestClient(app).post("/api/v1/officegraph/notify", content=body)

        assert response.status_code == 200
        assert response.text == "received"

    def test_invalid_body(self, settings):
        app, _ = make_client(settings)

        response = TestClient(app).post("/api/v1/officegraph/notify", content=b"{oops")

        assert response.status_code == 400
        assert "Invalid JSON" in response.text

    def test_forwarding_in_order_past_failures(self, settings):
        settings.graph_forward_notifications = True
        app, connector = make_client(settings)
        first = dict(GRAPH_NOTIFICATION, subscriptionId="sub-1")
        second = dict(GRAPH_NOTIFICATION, subscriptionId="sub-2")

        with TestClient(app) as client:
            connector.client.errors = [nats_errors.NoRespondersError(), None]
            response = client.post("/api/v1/officegraph/notify", json={"value": [first, second]})

        assert response.status_code == 200
        assert response.text == "received"

        forwarded = [json.loads(data) for _, data, _ in connector.client.requests]
        assert [json.loads(f["args"][4])["subscriptionId"] for f in forwarded] == ["sub-1", "sub-2"]
        assert all(f["channel"] == "noma2" for f in forwarded)


# ============================================================================
# Generic Event Route Tests
# ============================================================================

class TestEventWebhook:
    """Tests for POST /api/v1/events/{endpoint}."""

    def test_forwarded_to_bus(self, settings):
        app, connector = make_client(settings)

        with TestClient(app) as client:
            response = client.post("/api/v1/events/deploy", json={"env": "prod"})

        assert response.status_code == 200
        assert response.json() == {"status": "success", "endpoint": "deploy", "result": '{"status": "ok"}'}

        subject, data, timeout = connector.client.requests[0]
        envelope = json.loads(data)
        assert subject == "magic-mix.app"
        assert timeout == 1.0
        assert envelope["args"][:3] == ["execute", "mix", "create_event"]
        assert json.loads(envelope["body"])["tag"] == "deploy"

    def test_invalid_json(self, settings):
        app, connector = make_client(settings)

        with TestClient(app) as client:
            response = client.post("/api/v1/events/deploy", content=b"nope")

        assert response.status_code == 400
        assert connector.client.requests == []

    def test_bus_not_connected(self, settings):
        app, _ = make_client(settings)

        response = TestClient(app).post("/api/v1/events/deploy", json={})

        assert response.status_code == 503

    def test_bus_timeout(self, settings):
        app, connector = make_client(settings)

        with TestClient(app) as client:
            connector.client.errors = [nats_errors.TimeoutError()]
            response = client.post("/api/v1/events/deploy", json={})

        assert response.status_code == 504

    def test_no_responders(self, settings):
        app, connector = make_client(settings)

        with TestClient(app) as client:
            connector.client.errors = [nats_errors.NoRespondersError()]
            response = client.post("/api/v1/events/deploy", json={})

        assert response.status_code == 502

    def test_missing_signing_key(self, settings):
        settings.jwt_signing_key = None
        app, connector = make_client(settings)

        with TestClient(app) as client:
            response = client.post("/api/v1/events/deploy", json={})

        assert response.status_code == 500
        assert connector.client.requests == []


# ============================================================================
# Listing Route Tests
# ============================================================================

class TestListWebhooks:
    """Tests for GET /v1/webhooks."""

    def test_requires_bearer(self, settings):
        app, _ = make_client(settings)

        response = TestClient(app).get("/v1/webhooks")

        assert response.status_code == 401

    def test_lists_registered_endpoints(self, settings):
        app, _ = make_client(settings)
        token = TokenIssuer(TokenIssuerConfig(signing_key=SIGNING_KEY)).issue("admin")

        response = TestClient(app).get("/v1/webhooks", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert {w["provider"] for w in data["webhooks"]} == {"github", "officegraph", "events"}

    def test_handlers_registered(self, settings):
        app, _ = make_client(settings)
        registry = app.state.registry

        assert isinstance(registry.get("github"), GitHubWebhookHandler)
        assert isinstance(registry.get("officegraph"), MicrosoftGraphWebhookHandler)
        assert isinstance(registry.get("events"), GenericEventHandler)
        assert registry.get("officegraph").forwarder is None
