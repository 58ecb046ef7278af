"""
Main Orchestrator for finsync

This module ties together all the components and defines the
end-to-end flows for:
1. Sync (identity → parse → validate → merge → audit)
2. Dashboard (identity → aggregate)
3. Explicit mutations (identity → validate → write → audit)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No operation runs without a caller identity
- No core component sees a token or a header, only an owner id
- Every outcome is audited, after the unit of work has finished

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from typing import Any, Optional
from uuid import UUID, uuid4

import pydantic
import structlog

from finsync.audit import AuditLogger, create_correlation_id
from finsync.config import Settings, get_settings
from finsync.models.audit import AuditEventType
from finsync.models.entities import (
    Budget,
    BudgetCandidate,
    Category,
    EntityKind,
    Transaction,
    TransactionCandidate,
    TransactionFilter,
    User,
)
from finsync.models.sync import DashboardOverview, SyncRequest, SyncResult
from finsync.queries import DashboardAggregator
from finsync.services.identity import (
    JWTIdentityProvider,
    hash_password,
    require_identity,
)
from finsync.services.storage import (
    DuplicateError,
    EntityStoreInterface,
    SqlAuditStorage,
    SqlEntityStore,
    StorageError,
)
from finsync.sync import SyncCoordinator
from finsync.validation import (
    CandidateValidationError,
    CandidateValidator,
    issues_from_pydantic,
)


logger = structlog.get_logger(__name__)

_CANDIDATES: dict[EntityKind, type[TransactionCandidate] | type[BudgetCandidate]] = {
    EntityKind.TRANSACTION: TransactionCandidate,
    EntityKind.BUDGET: BudgetCandidate,
}


async def _authenticate(
    audit_logger: AuditLogger,
    identity: Optional[UUID],
    operation: str,
) -> UUID:
    if identity is None:
        await audit_logger.log_unauthenticated(operation)
    return require_identity(identity, operation)


class SyncFlow:
    """
    Orchestrates one sync call.

    Flow:
    1. Identity → refuse anonymous callers before touching the store
    2. Parse → wire dict to SyncRequest
    3. Merge → SyncCoordinator (validation, merge, attempt log; atomic)
    4. Audit → started / completed (+ one event per conflict) / rejected / failed

    The audit events are written after the merge has committed or
    rolled back, never inside it.
    """

    def __init__(
        self,
        store: EntityStoreInterface,
        coordinator: Optional[SyncCoordinator] = None,
        validator: Optional[CandidateValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._validator = validator or CandidateValidator()
        self._coordinator = coordinator or SyncCoordinator(store, self._validator)
        self._audit_logger = audit_logger or AuditLogger()

    async def sync_data(
        self,
        identity: Optional[UUID],
        request: SyncRequest | dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> SyncResult:
        """
        Merge a device's batch into the caller's data.

        Returns:
            The merged view, including any conflicts

        Raises:
            UnauthenticatedError: No caller identity; nothing read or written
            CandidateValidationError: Malformed batch; nothing written
            NotFoundError: An id belongs to another owner; nothing written
            StorageError: Backend failure; nothing written
        """
        correlation_id = correlation_id or create_correlation_id()
        owner_id = await _authenticate(self._audit_logger, identity, "sync_data")

        try:
            parsed = self._validator.parse_request(request)
        except CandidateValidationError as e:
            await self._audit_logger.log_sync_rejected(owner_id, e.issue_dicts(), correlation_id)
            raise

        await self._audit_logger.log_sync_started(
            user_id=owner_id,
            checkpoint=parsed.last_sync_version,
            transaction_count=len(parsed.transactions),
            budget_count=len(parsed.budgets),
            correlation_id=correlation_id,
        )

        try:
            result = await self._coordinator.sync(owner_id, parsed)
        except CandidateValidationError as e:
            await self._audit_logger.log_sync_rejected(owner_id, e.issue_dicts(), correlation_id)
            raise
        except StorageError as e:
            await self._audit_logger.log_sync_failed(owner_id, e, correlation_id)
            raise

        await self._audit_logger.log_sync_completed(
            user_id=owner_id,
            attempt_id=result.attempt_id,
            status=result.status.value,
            checkpoint=result.checkpoint,
            conflicts=result.conflicts,
            last_sync_version=parsed.last_sync_version,
            correlation_id=correlation_id,
        )
        return result


class DashboardFlow:
    """Read-only overview for the authenticated caller."""

    def __init__(
        self,
        store: EntityStoreInterface,
        aggregator: Optional[DashboardAggregator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._aggregator = aggregator or DashboardAggregator(store)
        self._audit_logger = audit_logger or AuditLogger()

    async def dashboard(self, identity: Optional[UUID]) -> DashboardOverview:
        owner_id = await _authenticate(self._audit_logger, identity, "dashboard")
        return await self._aggregator.overview(owner_id)


class EntityFlow:
    """
    Explicit, single-entity operations outside of sync.

    Every write goes through the same owner lock and version counter as
    a sync batch, so an entity edited here is seen as newer by any
    device whose checkpoint predates the edit.
    """

    def __init__(
        self,
        store: EntityStoreInterface,
        validator: Optional[CandidateValidator] = None,
        identity_provider: Optional[JWTIdentityProvider] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or CandidateValidator()
        self._identity_provider = identity_provider
        self._audit_logger = audit_logger or AuditLogger()

    # -------------------------------------------------------------------------
    # Users and categories
    # -------------------------------------------------------------------------

    async def register_user(self, email: str, password: str) -> tuple[User, str]:
        """
        Create a user with default settings and issue an access token.

        Raises:
            DuplicateError: If the email is already registered
        """
        if self._identity_provider is None:
            raise RuntimeError("Registration needs an identity provider")
        try:
            user = User(email=email, password_hash=hash_password(password))
        except pydantic.ValidationError as e:
            raise CandidateValidationError(issues_from_pydantic(e)) from e

        async with self._store.begin() as session:
            await session.add_user(user)

        await self._audit_logger.log_user_registered(user.id, user.auth_provider)
        return user, self._identity_provider.issue_token(user.id)

    async def add_category(
        self,
        identity: Optional[UUID],
        name: str,
        description: Optional[str] = None,
        order_index: int = 0,
    ) -> Category:
        owner_id = await _authenticate(self._audit_logger, identity, "add_category")
        category = Category(
            user_id=owner_id,
            name=name,
            description=description,
            order_index=order_index,
        )
        async with self._store.begin() as session:
            return await session.add_category(category)

    async def list_categories(self, identity: Optional[UUID]) -> list[Category]:
        """Own categories plus shared system ones."""
        owner_id = await _authenticate(self._audit_logger, identity, "list_categories")
        async with self._store.begin() as session:
            return await session.list_categories(owner_id)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def create_transaction(
        self,
        identity: Optional[UUID],
        data: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        return await self._create(EntityKind.TRANSACTION, identity, data, correlation_id)

    async def update_transaction(
        self,
        identity: Optional[UUID],
        transaction_id: UUID,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        return await self._update(EntityKind.TRANSACTION, identity, transaction_id, changes, correlation_id)

    async def delete_transaction(
        self,
        identity: Optional[UUID],
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self._delete(EntityKind.TRANSACTION, identity, transaction_id, correlation_id)

    async def get_transaction(self, identity: Optional[UUID], transaction_id: UUID) -> Transaction:
        return await self._get(EntityKind.TRANSACTION, identity, transaction_id)

    async def list_transactions(
        self,
        identity: Optional[UUID],
        filters: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        owner_id = await _authenticate(self._audit_logger, identity, "list_transactions")
        async with self._store.begin() as session:
            return await session.list_transactions(owner_id, filters)

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def create_budget(
        self,
        identity: Optional[UUID],
        data: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        return await self._create(EntityKind.BUDGET, identity, data, correlation_id)

    async def update_budget(
        self,
        identity: Optional[UUID],
        budget_id: UUID,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        return await self._update(EntityKind.BUDGET, identity, budget_id, changes, correlation_id)

    async def delete_budget(
        self,
        identity: Optional[UUID],
        budget_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self._delete(EntityKind.BUDGET, identity, budget_id, correlation_id)

    async def get_budget(self, identity: Optional[UUID], budget_id: UUID) -> Budget:
        return await self._get(EntityKind.BUDGET, identity, budget_id)

    async def list_budgets(self, identity: Optional[UUID]) -> list[Budget]:
        owner_id = await _authenticate(self._audit_logger, identity, "list_budgets")
        async with self._store.begin() as session:
            rows = await session.list_budgets_with_category(owner_id)
        return [budget for budget, _ in rows]

    # -------------------------------------------------------------------------
    # Shared implementation
    # -------------------------------------------------------------------------

    @staticmethod
    def _candidate(
        kind: EntityKind,
        entity_id: UUID,
        data: dict[str, Any],
    ) -> TransactionCandidate | BudgetCandidate:
        try:
            return _CANDIDATES[kind].model_validate({**data, "id": entity_id})
        except pydantic.ValidationError as e:
            raise CandidateValidationError(issues_from_pydantic(e)) from e

    async def _create(
        self,
        kind: EntityKind,
        identity: Optional[UUID],
        data: dict[str, Any],
        correlation_id: Optional[UUID],
    ) -> Transaction | Budget:
        correlation_id = correlation_id or create_correlation_id()
        owner_id = await _authenticate(self._audit_logger, identity, f"create_{kind.value}")
        candidate = self._candidate(kind, data.get("id") or uuid4(), data)

        async with self._store.begin() as session:
            await session.lock_owner(owner_id)
            await self._validator.validate_category(
                session, owner_id, kind, candidate.id, candidate.category_id
            )
            if await session.find_entity(kind, owner_id, candidate.id) is not None:
                raise DuplicateError(f"{kind.value.capitalize()} already exists: {candidate.id}")
            entity = await session.write_entity(kind, owner_id, candidate)

        await self._audit_logger.log_entity_changed(
            AuditEventType.ENTITY_CREATED, owner_id, kind.value, entity.id, entity.version, correlation_id
        )
        return entity

    async def _update(
        self,
        kind: EntityKind,
        identity: Optional[UUID],
        entity_id: UUID,
        changes: dict[str, Any],
        correlation_id: Optional[UUID],
    ) -> Transaction | Budget:
        correlation_id = correlation_id or create_correlation_id()
        owner_id = await _authenticate(self._audit_logger, identity, f"update_{kind.value}")

        async with self._store.begin() as session:
            await session.lock_owner(owner_id)
            existing = await session.get_entity(kind, owner_id, entity_id)
            # Unmentioned fields keep their stored values
            candidate = self._candidate(kind, entity_id, {**existing.payload(), **changes})
            await self._validator.validate_category(
                session, owner_id, kind, entity_id, candidate.category_id
            )
            entity = await session.write_entity(kind, owner_id, candidate)

        await self._audit_logger.log_entity_changed(
            AuditEventType.ENTITY_UPDATED, owner_id, kind.value, entity.id, entity.version, correlation_id
        )
        return entity

    async def _delete(
        self,
        kind: EntityKind,
        identity: Optional[UUID],
        entity_id: UUID,
        correlation_id: Optional[UUID],
    ) -> None:
        correlation_id = correlation_id or create_correlation_id()
        owner_id = await _authenticate(self._audit_logger, identity, f"delete_{kind.value}")

        async with self._store.begin() as session:
            await session.lock_owner(owner_id)
            await session.delete_entity(kind, owner_id, entity_id)

        await self._audit_logger.log_entity_changed(
            AuditEventType.ENTITY_DELETED, owner_id, kind.value, entity_id, None, correlation_id
        )

    async def _get(
        self,
        kind: EntityKind,
        identity: Optional[UUID],
        entity_id: UUID,
    ) -> Transaction | Budget:
        owner_id = await _authenticate(self._audit_logger, identity, f"get_{kind.value}")
        async with self._store.begin() as session:
            return await session.get_entity(kind, owner_id, entity_id)


def create_app_components(
    settings: Optional[Settings] = None,
    store: Optional[EntityStoreInterface] = None,
    persist_audit: bool = True,
) -> tuple[SyncFlow, DashboardFlow, EntityFlow, JWTIdentityProvider, EntityStoreInterface]:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from (defaults to get_settings())
        store: Pre-built store. Audit events are persisted only when
               the store is SQL-backed.
        persist_audit: Whether to write audit events to the database.
                       Set to False for local-only audit logging.

    Returns:
        (sync_flow, dashboard_flow, entity_flow, identity_provider, store)

    The caller still owns schema creation: `await store.create_schema()`.
    """
    settings = settings or get_settings()
    store = store or SqlEntityStore(settings=settings.database)

    if persist_audit and isinstance(store, SqlEntityStore):
        audit_logger = AuditLogger(SqlAuditStorage(store.engine))
    else:
        audit_logger = AuditLogger()  # Local-only logging

    validator = CandidateValidator(settings.sync)
    identity_provider = JWTIdentityProvider(settings.auth)

    sync_flow = SyncFlow(
        store,
        validator=validator,
        audit_logger=audit_logger,
    )
    dashboard_flow = DashboardFlow(
        store,
        aggregator=DashboardAggregator(store, settings.sync),
        audit_logger=audit_logger,
    )
    entity_flow = EntityFlow(
        store,
        validator=validator,
        identity_provider=identity_provider,
        audit_logger=audit_logger,
    )

    logger.info(
        "app_components_ready",
        environment=settings.app.app_environment,
        persist_audit=persist_audit,
    )
    return sync_flow, dashboard_flow, entity_flow, identity_provider, store
