"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run the same coordinator against PostgreSQL in production and SQLite in tests
2. Keep merge logic decoupled from SQL
3. Make the unit-of-work boundary explicit in every caller

Every operation is owner-scoped: it takes the owner's id and never
reads or writes another user's rows. An entity that exists but belongs
to someone else is reported exactly like one that does not exist.

The store is the only source of truth. There is no in-process cache.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from decimal import Decimal
from typing import Optional
from uuid import UUID

from finsync.models.entities import (
    Budget,
    BudgetCandidate,
    Category,
    EntityKind,
    Transaction,
    TransactionCandidate,
    TransactionFilter,
    TransactionType,
    User,
    UserSettings,
)
from finsync.models.audit import AuditEvent
from finsync.models.sync import SyncAttempt


class StoreSession(ABC):
    """
    Operations available inside one database transaction.

    Obtained from `EntityStoreInterface.begin()`. Everything done through
    a session is committed together when the block exits cleanly and
    rolled back together when it raises.
    """

    # -------------------------------------------------------------------------
    # Owners and versions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def lock_owner(self, owner_id: UUID) -> User:
        """
        Lock the owner's row for the rest of the transaction.

        Concurrent units of work for the same owner queue behind this lock,
        so two sync calls can never both pass the checkpoint test against
        the same pre-write version.

        Raises:
            NotFoundError: If the owner does not exist
        """
        pass

    @abstractmethod
    async def next_version(self, owner_id: UUID) -> int:
        """
        Take the owner's next version marker.

        Strictly greater than every marker handed out before for this
        owner. Locks the owner row if not already locked.
        """
        pass

    @abstractmethod
    async def add_user(self, user: User) -> UserSettings:
        """
        Insert a user together with default settings.

        Raises:
            DuplicateError: If the email is already registered
        """
        pass

    @abstractmethod
    async def get_user_settings(self, owner_id: UUID) -> UserSettings:
        pass

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_category(self, category: Category) -> Category:
        pass

    @abstractmethod
    async def get_category(self, owner_id: UUID, category_id: UUID) -> Category:
        """
        Get a category the owner can see (their own or a shared one).

        Raises:
            NotFoundError: If absent or owned by another user
        """
        pass

    @abstractmethod
    async def visible_category_ids(
        self,
        owner_id: UUID,
        category_ids: set[UUID],
    ) -> set[UUID]:
        """Return the subset of `category_ids` visible to the owner."""
        pass

    @abstractmethod
    async def list_categories(self, owner_id: UUID) -> list[Category]:
        """Own and shared categories, by order_index then name."""
        pass

    # -------------------------------------------------------------------------
    # Versioned entities
    # -------------------------------------------------------------------------

    @abstractmethod
    async def find_entity(
        self,
        kind: EntityKind,
        owner_id: UUID,
        entity_id: UUID,
        for_update: bool = False,
    ) -> Optional[Transaction | Budget]:
        """
        Look up an entity within the owner's scope.

        Returns None when absent or owned by someone else.
        """
        pass

    @abstractmethod
    async def get_entity(
        self,
        kind: EntityKind,
        owner_id: UUID,
        entity_id: UUID,
    ) -> Transaction | Budget:
        """
        Raises:
            NotFoundError: If absent or owned by another user
        """
        pass

    @abstractmethod
    async def write_entity(
        self,
        kind: EntityKind,
        owner_id: UUID,
        candidate: TransactionCandidate | BudgetCandidate,
    ) -> Transaction | Budget:
        """
        Insert or overwrite by id, stamping a fresh version and update time.

        Raises:
            AuthorizationError: If the id belongs to another owner
        """
        pass

    @abstractmethod
    async def delete_entity(
        self,
        kind: EntityKind,
        owner_id: UUID,
        entity_id: UUID,
    ) -> None:
        """
        Explicitly remove an entity. The only removal path.

        Raises:
            NotFoundError: If absent or owned by another user
        """
        pass

    @abstractmethod
    async def changed_since(
        self,
        kind: EntityKind,
        owner_id: UUID,
        version: int,
    ) -> list[Transaction | Budget]:
        """Owner's entities whose version is greater than `version`, oldest first."""
        pass

    # -------------------------------------------------------------------------
    # Reads for listing and aggregation
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_transactions(
        self,
        owner_id: UUID,
        filters: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        """Owner's transactions, newest first (date, then creation time)."""
        pass

    @abstractmethod
    async def recent_transactions(self, owner_id: UUID, limit: int) -> list[Transaction]:
        pass

    @abstractmethod
    async def transaction_amounts(
        self,
        owner_id: UUID,
    ) -> list[tuple[TransactionType, Decimal]]:
        """Every (type, amount) pair of the owner's transactions."""
        pass

    @abstractmethod
    async def list_budgets_with_category(
        self,
        owner_id: UUID,
    ) -> list[tuple[Budget, str]]:
        """Owner's budgets paired with their category's name."""
        pass

    # -------------------------------------------------------------------------
    # Sync attempt log
    # -------------------------------------------------------------------------

    @abstractmethod
    async def append_sync_attempt(self, attempt: SyncAttempt) -> SyncAttempt:
        pass

    @abstractmethod
    async def last_sync_attempt(self, owner_id: UUID) -> Optional[SyncAttempt]:
        pass


class EntityStoreInterface(ABC):
    """
    Abstract transactional store.

    Any storage implementation (PostgreSQL, SQLite, etc.)
    must implement these methods.
    """

    @abstractmethod
    def begin(self) -> AbstractAsyncContextManager[StoreSession]:
        """
        Open a unit of work.

        Usage:
            async with store.begin() as session:
                await session.lock_owner(owner_id)
                ...

        Raises (on exit):
            DuplicateError: On a uniqueness/foreign-key violation
            ConnectionError: If the backend is unreachable
            StorageError: For any other backend failure
        """
        pass

    @abstractmethod
    async def create_schema(self) -> None:
        """Create all tables if they do not exist."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events of one call (e.g., one sync), in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Events about one entity, in chronological order."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class AuthorizationError(NotFoundError):
    """
    Entity exists but belongs to another owner.

    Subclasses NotFoundError and carries the same message, so callers
    cannot learn that the entity exists.
    """
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


def not_found_message(kind: str, entity_id: UUID) -> str:
    """Shared by NotFoundError and AuthorizationError so they read the same."""
    return f"{kind.capitalize()} not found: {entity_id}"
