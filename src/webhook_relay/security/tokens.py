"""Token Issuer - short-lived credentials for outbound bus calls.

Mints an HS256 JWT naming the relay so the backend can attribute the
caller. The relay never verifies the tokens it issues.
"""

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from jose import jwt
from jose.exceptions import JOSEError

from ..core.errors import SigningError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_LIFETIME = timedelta(hours=72)


@dataclass(frozen=True)
class TokenIssuerConfig:
    """Signing configuration for the token issuer."""

    signing_key: Optional[str]
    algorithm: str = ALGORITHM
    lifetime: timedelta = TOKEN_LIFETIME


class TokenIssuer:
    """Issues signed credentials.

    Example:
        >>> issuer = TokenIssuer(TokenIssuerConfig(signing_key="s3cret"))
        >>> token = issuer.issue("koksmat-emit")
    """

    def __init__(self, config: TokenIssuerConfig, clock: Callable[[], float] = time.time):
        self.config = config
        self._clock = clock

    def issue(self, display_name: str) -> str:
        """Mint a token for ``display_name``.

        Args:
            display_name: Value of the ``app_displayname`` claim; may be empty.

        Returns:
            str: The encoded token.

        Raises:
            SigningError: If no key is configured or signing fails.
        """
        if not self.config.signing_key:
            raise SigningError("no signing key configured")

        issued_at = int(self._clock())
        claims = {
            "app_displayname": display_name,
            "iat": issued_at,
            "exp": issued_at + int(self.config.lifetime.total_seconds()),
        }
        try:
            return jwt.encode(claims, self.config.signing_key, algorithm=self.config.algorithm)
        except (JOSEError, TypeError, ValueError) as e:
            logger.error(f"Failed to create JWT: {e}")
            raise SigningError(f"failed to sign token: {e}") from e
