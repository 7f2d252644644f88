"""Webhook relay.

Receives GitHub and Microsoft Graph webhooks, wraps them in a canonical
event envelope and forwards them over a NATS request/reply bridge.
"""

__version__ = "0.1.0"
