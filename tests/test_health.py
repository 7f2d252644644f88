"""Tests for the service endpoints: hello, verbose, health and metrics."""

import logging

import pytest
from fastapi.testclient import TestClient

from webhook_relay.bus.connection import BusConfig, BusConnection
from webhook_relay.core.errors import ConnectionFailed
from webhook_relay.main import create_app

from conftest import FakeConnector


@pytest.fixture
def app(settings):
    return create_app(settings, connection=BusConnection(BusConfig(), connector=FakeConnector()))


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def test_hello(client):
    """Test hello endpoint returns the greeting."""
    response = client.get("/hello")
    assert response.status_code == 200
    assert response.text == "Hello, World!"


def test_verbose_logs_at_debug(client, caplog):
    """Test verbose endpoint body and its debug log line."""
    with caplog.at_level(logging.DEBUG, logger="webhook_relay.main"):
        response = client.get("/verbose")

    assert response.status_code == 200
    assert response.text == "This is a verbose message"
    assert any(
        r.levelno == logging.DEBUG and "Verbose endpoint hit" in r.getMessage()
        for r in caplog.records
    )


def test_health(client):
    """Test health endpoint while the bus is up."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "OK"


def test_health_reports_lost_bus(app, client):
    app.state.observability.health.mark_unhealthy("bus connection lost")

    response = client.get("/health")

    assert response.status_code == 503
    assert response.text == "bus connection lost"


def test_metrics_count_requests(client):
    client.get("/hello")
    client.get("/hello")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert 'http_requests_total{path="/hello"} 2.0' in response.text


def test_bus_closed_on_shutdown(app):
    with TestClient(app):
        assert app.state.bus.is_connected
    assert not app.state.bus.is_connected
    assert app.state.observability.health.healthy


def test_startup_fails_without_bus(settings):
    app = create_app(
        settings, connection=BusConnection(BusConfig(), connector=FakeConnector(fail=True))
    )

    with pytest.raises(ConnectionFailed):
        with TestClient(app):
            pass
