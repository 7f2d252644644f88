"""Webhook Relay - FastAPI application.

Receives external callbacks, validates and wraps them, and relays them
to the automation bus. Also serves health and Prometheus endpoints.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse

from . import __version__
from .bus import BusConfig, BusConnection, RequestReplyBridge
from .core.errors import RelayError
from .core.observability import BusHealthObserver, EventLogger, Observability
from .core.settings import RelaySettings
from .security import TokenIssuer, TokenIssuerConfig
from .webhooks import (
    EventForwarder,
    GenericEventHandler,
    GitHubWebhookHandler,
    MicrosoftGraphWebhookHandler,
    WebhookReceiver,
    WebhookRegistry,
    router as webhooks_router,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect the bus on startup, close it after in-flight requests drain."""
    connection: BusConnection = app.state.bus
    await connection.connect()
    logger.info(f"Connected to bus at {app.state.settings.bus.url}")
    try:
        yield
    finally:
        logger.info("Stopping webhooks service")
        await connection.close()


def create_app(
    settings: Optional[RelaySettings] = None,
    connection: Optional[BusConnection] = None,
) -> FastAPI:
    """Build the relay application.

    Args:
        settings: Relay configuration (defaults to the environment).
        connection: Bus connection to use; built from ``settings`` if omitted.

    Returns:
        FastAPI: The configured application.
    """
    settings = settings or RelaySettings.from_env()

    app = FastAPI(
        title="Koksmat Webhooks API",
        description="This service provides API to expose web hooks",
        version=__version__,
        lifespan=lifespan,
    )

    obs = Observability(settings.service_name)
    if connection is None:
        connection = BusConnection(
            BusConfig(
                url=settings.bus.url,
                user=settings.bus.user,
                password=settings.bus.password,
                reconnect_wait=settings.bus.reconnect_wait,
                max_reconnects=settings.bus.max_reconnects,
                name=settings.service_name,
            )
        )
    connection.add_observer(BusHealthObserver(obs.health))

    bridge = RequestReplyBridge(
        connection,
        channel=settings.bridge.channel,
        log_bodies=settings.bridge.log_bodies,
        metrics=obs,
    )
    issuer = TokenIssuer(TokenIssuerConfig(signing_key=settings.jwt_signing_key))
    forwarder = EventForwarder(
        bridge,
        issuer,
        subject=settings.bridge.subject,
        source=settings.relay_source,
        display_name=settings.token_display_name,
        timeout=settings.bus.request_timeout,
    )

    registry = WebhookRegistry()
    registry.register(GitHubWebhookHandler(secret=settings.github_webhook_secret))
    registry.register(
        MicrosoftGraphWebhookHandler(
            forwarder=forwarder if settings.graph_forward_notifications else None
        )
    )
    registry.register(GenericEventHandler(forwarder))

    app.state.settings = settings
    app.state.observability = obs
    app.state.bus = connection
    app.state.bridge = bridge
    app.state.forwarder = forwarder
    app.state.registry = registry
    app.state.receiver = WebhookReceiver(registry)

    @app.middleware("http")
    async def instrument(request: Request, call_next):
        """Count and log every request."""
        response = await call_next(request)
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        obs.record_http_request(path)
        logger.info(
            "Handling request method=%s path=%s remote_addr=%s status=%s",
            request.method,
            request.url.path,
            request.client.host if request.client else "-",
            response.status_code,
        )
        return response

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        EventLogger.error(
            "request.failed",
            path=request.url.path,
            subject=exc.subject,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return PlainTextResponse(str(exc), status_code=exc.status_code)

    app.include_router(webhooks_router)

    @app.get("/hello", response_class=PlainTextResponse)
    def hello() -> str:
        logger.info("Processing /hello request")
        return "Hello, World!"

    @app.get("/verbose", response_class=PlainTextResponse)
    def verbose() -> str:
        logger.debug("Verbose endpoint hit")
        return "This is a verbose message"

    @app.get("/health", response_class=PlainTextResponse)
    def health() -> Response:
        """Health check endpoint for monitoring and load balancers.

        Returns 503 once the bus connection is lost for good.
        """
        logger.info("Health check endpoint hit")
        if not obs.health.healthy:
            return PlainTextResponse(obs.health.reason or "unhealthy", status_code=503)
        return PlainTextResponse("OK")

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        """Serve Prometheus metrics."""
        body, content_type = obs.render()
        return Response(content=body, media_type=content_type)

    return app
