"""Shared fixtures: a fake NATS client and relay settings."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import pytest

from webhook_relay.core.settings import BridgeSettings, BusSettings, RelaySettings

SIGNING_KEY = "test-signing-key"


class FakeMsg:
    def __init__(self, data: bytes):
        self.data = data


class FakeNatsClient:
    """Stands in for ``nats.aio.client.Client``."""

    def __init__(
        self,
        options: Dict[str, Any],
        reply: bytes = b'{"status": "ok"}',
        delay: float = 0.0,
        error_on_cancel: Optional[Exception] = None,
    ):
        self.options = options
        self.reply = reply
        self.delay = delay
        self.error_on_cancel = error_on_cancel
        self.cancelled = 0
        self.errors: List[Optional[Exception]] = []
        self.published: List[tuple] = []
        self.requests: List[tuple] = []
        self.close_calls = 0
        self.is_closed = False
        self.connected_url = None
        self.last_error = None

    async def publish(self, subject: str, data: bytes) -> None:
        self.published.append((subject, data))

    async def request(self, subject: str, data: bytes, timeout: float) -> FakeMsg:
        self.requests.append((subject, data, timeout))
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled += 1
                if self.error_on_cancel is not None:
                    raise self.error_on_cancel
                raise
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        return FakeMsg(self.reply)

    async def close(self) -> None:
        self.close_calls += 1
        self.is_closed = True
        # The real client fires closed_cb when it shuts down
        await self.options["closed_cb"]()


class FakeConnector:
    """Replacement for ``nats.connect`` recording the options it was given."""

    def __init__(self, fail: bool = False, **client_kwargs):
        self.fail = fail
        self.client_kwargs = client_kwargs
        self.client: Optional[FakeNatsClient] = None
        self.calls = 0

    async def __call__(self, **options) -> FakeNatsClient:
        self.calls += 1
        if self.fail:
            raise OSError("Connect call failed ('127.0.0.1', 4222)")
        self.client = FakeNatsClient(options, **self.client_kwargs)
        return self.client

    @property
    def options(self) -> Dict[str, Any]:
        return self.client.options


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def settings():
    return RelaySettings(
        service_name="webhook-relay-test",
        metrics_port=None,
        bus=BusSettings(url="nats://bus.test:4222", request_timeout=1.0),
        bridge=BridgeSettings(subject="magic-mix.app", channel="noma2"),
        jwt_signing_key=SIGNING_KEY,
    )


@pytest.fixture
def restore_root_logger():
    """Undo ``setup_logging`` changes to the root logger."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
