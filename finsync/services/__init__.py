"""Services package."""

from finsync.services.identity import (
    JWTIdentityProvider,
    UnauthenticatedError,
)
from finsync.services.storage import (
    AuditStorageInterface,
    AuthorizationError,
    ConnectionError,
    DuplicateError,
    EntityStoreInterface,
    NotFoundError,
    SqlAuditStorage,
    SqlEntityStore,
    StorageError,
    StoreSession,
)

__all__ = [
    # Identity
    "JWTIdentityProvider",
    "UnauthenticatedError",
    # Storage services
    "AuditStorageInterface",
    "AuthorizationError",
    "ConnectionError",
    "DuplicateError",
    "EntityStoreInterface",
    "NotFoundError",
    "SqlAuditStorage",
    "SqlEntityStore",
    "StorageError",
    "StoreSession",
]
