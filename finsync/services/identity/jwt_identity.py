"""
Bearer Token Identity Provider

Turns a raw request's headers into an opaque caller identity (the
user's id) or None. Core operations never look at tokens themselves;
they receive whatever this provider returned and refuse to run on None.

Passwords are only ever stored as bcrypt hashes.
"""

from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional
from uuid import UUID

import bcrypt
import structlog
from jose import JWTError, jwt

from finsync.config import AuthSettings, get_settings


logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "


class UnauthenticatedError(Exception):
    """Caller identity missing or invalid. Raised before any work is done."""
    pass


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


class JWTIdentityProvider:
    """
    Issues and verifies HS256 access tokens whose subject is the user id.

    Usage:
        provider = JWTIdentityProvider()
        token = provider.issue_token(user.id)
        identity = provider.identify({"Authorization": f"Bearer {token}"})
    """

    def __init__(self, settings: Optional[AuthSettings] = None):
        self._settings = settings or get_settings().auth

    def issue_token(
        self,
        user_id: UUID,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        expires_delta = expires_delta or timedelta(minutes=self._settings.token_ttl_minutes)
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + expires_delta).timestamp()),
        }
        return jwt.encode(
            claims,
            self._settings.jwt_secret,
            algorithm=self._settings.jwt_algorithm,
        )

    def identify_token(self, token: str) -> Optional[UUID]:
        """Return the user id a valid token names, else None."""
        try:
            claims = jwt.decode(
                token,
                self._settings.jwt_secret,
                algorithms=[self._settings.jwt_algorithm],
            )
        except JWTError as e:
            logger.info("token_rejected", reason=str(e))
            return None

        subject = claims.get("sub")
        if not subject:
            return None
        try:
            return UUID(subject)
        except ValueError:
            logger.info("token_rejected", reason="subject is not a user id")
            return None

    def identify(self, headers: Mapping[str, str]) -> Optional[UUID]:
        """Read the Authorization header; None when absent or invalid."""
        header = None
        for name, value in headers.items():
            if name.lower() == "authorization":
                header = value
                break
        if not header or not header.startswith(BEARER_PREFIX):
            return None
        return self.identify_token(header[len(BEARER_PREFIX):].strip())


def require_identity(identity: Optional[UUID], operation: str) -> UUID:
    """Gate for every core operation."""
    if identity is None:
        raise UnauthenticatedError(f"Not authenticated: {operation} requires a valid token")
    return identity
