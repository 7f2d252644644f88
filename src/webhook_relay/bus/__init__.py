"""Message bus access: connection management and the request/reply bridge."""

from .connection import BusConfig, BusConnection, ConnectionObserver, ConnectionState
from .bridge import BridgeRequest, RequestReplyBridge

__all__ = [
    "BusConfig",
    "BusConnection",
    "ConnectionObserver",
    "ConnectionState",
    "BridgeRequest",
    "RequestReplyBridge",
]
