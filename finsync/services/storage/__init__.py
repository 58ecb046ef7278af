"""
Storage Services Package

Provides abstract interfaces and the SQL implementation of the
transactional store and the audit log.
"""

from finsync.services.storage.interface import (
    AuditStorageInterface,
    AuthorizationError,
    ConnectionError,
    DuplicateError,
    EntityStoreInterface,
    NotFoundError,
    StorageError,
    StoreSession,
)
from finsync.services.storage.sql import (
    SqlAuditStorage,
    SqlEntityStore,
    create_engine_from_settings,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "EntityStoreInterface",
    "StoreSession",
    # Exceptions
    "AuthorizationError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # SQL implementation
    "SqlAuditStorage",
    "SqlEntityStore",
    "create_engine_from_settings",
]
