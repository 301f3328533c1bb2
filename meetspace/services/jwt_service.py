"""
JWT service for Meetspace.
Validates access tokens issued by the identity provider.
"""

from typing import Optional, Dict, Any
from jose import JWTError, jwt
import logging

from ..core.config import config

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("user_id", "email")


class JWTService:
    """
    HS256 access-token verifier. The secret and algorithm are loaded once
    from configuration.
    """

    def __init__(self):
        self.secret_key: Optional[str] = None
        self.algorithm: Optional[str] = None
        self._initialized = False

    async def initialize(self):
        self.secret_key = await config.get_jwt_secret()
        self.algorithm = await config.get_jwt_algorithm()
        self._initialized = True

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify and decode an access token.

        Args:
            token: Bearer token

        Returns:
            Token payload (user_id, email, name, role) if valid, None otherwise
        """
        if not self._initialized:
            logger.error("Token verifier used before initialize()")
            return None

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning(f"Rejected access token: {e}")
            return None

        if not all(payload.get(claim) is not None for claim in REQUIRED_CLAIMS):
            return None

        try:
            payload["user_id"] = int(payload["user_id"])
        except (TypeError, ValueError):
            logger.warning(f"Rejected access token with non-numeric user_id {payload['user_id']!r}")
            return None
        return payload

    def create_token(self, payload: Dict[str, Any]) -> str:
        """Sign ``payload`` with the service secret (used by tooling and tests)."""
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)


# Global JWT service instance
jwt_service = JWTService()
