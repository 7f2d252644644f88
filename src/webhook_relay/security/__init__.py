"""Credentials attached to outbound bus calls."""

from .tokens import TokenIssuer, TokenIssuerConfig, TOKEN_LIFETIME

__all__ = ["TokenIssuer", "TokenIssuerConfig", "TOKEN_LIFETIME"]
