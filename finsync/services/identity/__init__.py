"""Identity services package."""

from finsync.services.identity.jwt_identity import (
    JWTIdentityProvider,
    UnauthenticatedError,
    hash_password,
    require_identity,
)

__all__ = [
    "JWTIdentityProvider",
    "UnauthenticatedError",
    "hash_password",
    "require_identity",
]
