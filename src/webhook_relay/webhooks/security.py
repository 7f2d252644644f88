"""Webhook security utilities.

Provides GitHub HMAC signature generation and verification, and bearer
token checks for the admin endpoints.
"""

import hmac
import hashlib
from typing import Any, Dict, Optional, Union

from fastapi import HTTPException, Request, status
from jose import jwt
from jose.exceptions import JOSEError

from ..security.tokens import ALGORITHM

GITHUB_SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="


def generate_signature(payload: Union[bytes, str], secret: str) -> str:
    """Generate a GitHub-style HMAC-SHA256 signature.

    Args:
        payload: The raw request body.
        secret: The shared webhook secret.

    Returns:
        Header value of the form ``sha256=<hexdigest>``.
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")

    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: Union[bytes, str], signature: Optional[str], secret: str) -> bool:
    """Verify a GitHub ``X-Hub-Signature-256`` header.

    Args:
        payload: The raw request body.
        signature: The header value, possibly missing.
        secret: The shared webhook secret.

    Returns:
        True if the signature matches.
    """
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False

    expected = generate_signature(payload, secret)

    # Constant-time comparison to prevent timing attacks
    return hmac.compare_digest(signature, expected)


def verify_bearer(authorization: Optional[str], signing_key: Optional[str]) -> Dict[str, Any]:
    """Validate an ``Authorization: Bearer`` header.

    Raises:
        HTTPException: 401 if the header is missing or the token is invalid.
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not signing_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token verification is not configured",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return jwt.decode(token.strip(), signing_key, algorithms=[ALGORITHM])
    except JOSEError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_bearer(request: Request) -> Dict[str, Any]:
    """FastAPI dependency guarding admin routes."""
    settings = request.app.state.settings
    return verify_bearer(request.headers.get("Authorization"), settings.jwt_signing_key)
