"""
Tests for the orchestration flows

Identity gating, audit trail and the explicit single-entity operations,
run against a real SQLite store with persisted audit events.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import text

from finsync.audit import AuditLogger, create_correlation_id
from finsync.models.audit import AuditEventType
from finsync.models.entities import TransactionFilter, TransactionType
from finsync.models.sync import SyncRequest, SyncStatus
from finsync.orchestrator import (
    DashboardFlow,
    EntityFlow,
    SyncFlow,
    create_app_components,
)
from finsync.services.identity import JWTIdentityProvider, UnauthenticatedError
from finsync.services.storage import (
    DuplicateError,
    EntityStoreInterface,
    NotFoundError,
    SqlAuditStorage,
)
from finsync.validation import CandidateValidationError


class UntouchableStore(EntityStoreInterface):
    """Fails the test if anything opens a unit of work."""

    def begin(self):
        raise AssertionError("store was touched")

    async def create_schema(self) -> None:
        raise AssertionError("store was touched")

    async def close(self) -> None:
        pass


@pytest.fixture
def audit_storage(store):
    return SqlAuditStorage(store.engine)


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def sync_flow(store, audit_logger):
    return SyncFlow(store, audit_logger=audit_logger)


@pytest.fixture
def entity_flow(store, audit_logger):
    return EntityFlow(store, identity_provider=JWTIdentityProvider(), audit_logger=audit_logger)


def _wire_transaction(category_id, **overrides) -> dict:
    data = {
        "id": str(uuid4()),
        "type": "EXPENSE",
        "amount": "42.10",
        "category_id": str(category_id),
        "date": "2024-04-01",
    }
    data.update(overrides)
    return data


async def _event_types(audit_storage, correlation_id) -> list[AuditEventType]:
    events = await audit_storage.get_events_by_correlation_id(correlation_id)
    return [e.event_type for e in events]


class TestIdentityGate:
    """Anonymous calls are refused before any work."""

    async def test_unauthenticated_sync_never_touches_store(self):
        flow = SyncFlow(UntouchableStore())
        with pytest.raises(UnauthenticatedError):
            await flow.sync_data(None, {"last_sync_version": 0})

    async def test_unauthenticated_dashboard(self):
        flow = DashboardFlow(UntouchableStore())
        with pytest.raises(UnauthenticatedError):
            await flow.dashboard(None)

    async def test_unauthenticated_entity_operations(self):
        flow = EntityFlow(UntouchableStore())
        with pytest.raises(UnauthenticatedError):
            await flow.create_transaction(None, {})
        with pytest.raises(UnauthenticatedError):
            await flow.delete_budget(None, uuid4())
        with pytest.raises(UnauthenticatedError):
            await flow.list_categories(None)


class TestSyncFlow:
    """Sync through the orchestrator, with its audit trail."""

    async def test_wire_dict_request(self, sync_flow, audit_storage, owner, category):
        """Test that a JSON-shaped batch is parsed, merged and audited."""
        correlation_id = create_correlation_id()
        raw = {
            "last_sync_version": 0,
            "transactions": [_wire_transaction(category.id)],
        }

        result = await sync_flow.sync_data(owner.id, raw, correlation_id)

        assert result.status == SyncStatus.SYNCED
        assert result.transactions[0].amount == Decimal("42.10")
        assert await _event_types(audit_storage, correlation_id) == [
            AuditEventType.SYNC_STARTED,
            AuditEventType.SYNC_COMPLETED,
        ]

    async def test_conflicts_are_audited(self, sync_flow, audit_storage, owner, make_transaction):
        x = make_transaction()
        first = await sync_flow.sync_data(owner.id, SyncRequest(last_sync_version=0, transactions=[x]))
        await sync_flow.sync_data(
            owner.id,
            SyncRequest(
                last_sync_version=first.checkpoint,
                transactions=[x.model_copy(update={"notes": "server"})],
            ),
        )

        correlation_id = create_correlation_id()
        result = await sync_flow.sync_data(
            owner.id,
            SyncRequest(
                last_sync_version=first.checkpoint,
                transactions=[x.model_copy(update={"notes": "client"})],
            ),
            correlation_id,
        )

        assert result.has_conflicts
        assert await _event_types(audit_storage, correlation_id) == [
            AuditEventType.SYNC_STARTED,
            AuditEventType.SYNC_CONFLICT_DETECTED,
            AuditEventType.SYNC_COMPLETED,
        ]
        conflict_events = await audit_storage.get_events_by_entity("transaction", x.id)
        assert conflict_events[0].details["server_version"] == result.transactions[0].version

    async def test_float_amount_rejected(self, sync_flow, audit_storage, owner, category):
        """Test that binary floats never reach the store."""
        correlation_id = create_correlation_id()
        raw = {
            "last_sync_version": 0,
            "transactions": [_wire_transaction(category.id, amount=0.1)],
        }

        with pytest.raises(CandidateValidationError):
            await sync_flow.sync_data(owner.id, raw, correlation_id)

        assert await _event_types(audit_storage, correlation_id) == [AuditEventType.SYNC_REJECTED]

    async def test_rollback_is_audited_as_failure(
        self, sync_flow, audit_storage, owner, other_owner, other_category, make_transaction
    ):
        x = make_transaction()
        await sync_flow.sync_data(owner.id, SyncRequest(last_sync_version=0, transactions=[x]))

        correlation_id = create_correlation_id()
        with pytest.raises(NotFoundError):
            await sync_flow.sync_data(
                other_owner.id,
                SyncRequest(
                    last_sync_version=0,
                    transactions=[x.model_copy(update={"category_id": other_category.id})],
                ),
                correlation_id,
            )

        assert await _event_types(audit_storage, correlation_id) == [
            AuditEventType.SYNC_STARTED,
            AuditEventType.SYNC_FAILED,
        ]


class TestEntityFlow:
    """Explicit create, update, delete and reads."""

    async def test_register_user(self, entity_flow, store):
        """Test that registration creates default settings and a usable token."""
        user, token = await entity_flow.register_user("New.User@Example.com", "hunter22")

        assert user.email == "new.user@example.com"
        assert JWTIdentityProvider().identify_token(token) == user.id
        async with store.begin() as session:
            settings = await session.get_user_settings(user.id)
        assert settings.sync_options == {"autoSync": True, "syncInterval": 300}

    async def test_register_duplicate_email(self, entity_flow):
        await entity_flow.register_user("dup@example.com", "first-password")
        with pytest.raises(DuplicateError):
            await entity_flow.register_user("DUP@example.com", "second-password")

    async def test_create_update_get(self, entity_flow, owner, category):
        created = await entity_flow.create_transaction(owner.id, _wire_transaction(category.id))
        assert created.version >= 1

        updated = await entity_flow.update_transaction(owner.id, created.id, {"amount": "50.00"})

        assert updated.amount == Decimal("50.00")
        assert updated.date == created.date
        assert updated.version > created.version
        assert await entity_flow.get_transaction(owner.id, created.id) == updated

    async def test_explicit_edit_conflicts_with_stale_device(
        self, entity_flow, sync_flow, owner, make_transaction
    ):
        """Test that an edit made outside sync wins over a stale device edit."""
        x = make_transaction()
        first = await sync_flow.sync_data(owner.id, SyncRequest(last_sync_version=0, transactions=[x]))
        await entity_flow.update_transaction(owner.id, x.id, {"notes": "edited on the web"})

        result = await sync_flow.sync_data(
            owner.id,
            SyncRequest(
                last_sync_version=first.checkpoint,
                transactions=[x.model_copy(update={"notes": "edited offline"})],
            ),
        )

        assert result.has_conflicts
        assert result.transactions[0].notes == "edited on the web"

    async def test_create_with_unknown_category(self, entity_flow, owner, other_category):
        with pytest.raises(CandidateValidationError):
            await entity_flow.create_transaction(owner.id, _wire_transaction(other_category.id))

    async def test_create_with_existing_id(self, entity_flow, owner, category):
        data = _wire_transaction(category.id)
        await entity_flow.create_transaction(owner.id, data)
        with pytest.raises(DuplicateError):
            await entity_flow.create_transaction(owner.id, data)

    async def test_delete_is_owner_scoped(self, entity_flow, owner, other_owner, category):
        created = await entity_flow.create_transaction(owner.id, _wire_transaction(category.id))

        with pytest.raises(NotFoundError):
            await entity_flow.delete_transaction(other_owner.id, created.id)
        assert await entity_flow.get_transaction(owner.id, created.id) is not None

        await entity_flow.delete_transaction(owner.id, created.id)
        with pytest.raises(NotFoundError):
            await entity_flow.get_transaction(owner.id, created.id)

    async def test_entity_changes_are_audited(self, entity_flow, audit_storage, owner, category):
        created = await entity_flow.create_transaction(owner.id, _wire_transaction(category.id))
        await entity_flow.delete_transaction(owner.id, created.id)

        events = await audit_storage.get_events_by_entity("transaction", created.id)
        assert [e.event_type for e in events] == [
            AuditEventType.ENTITY_CREATED,
            AuditEventType.ENTITY_DELETED,
        ]

    async def test_budget_lifecycle(self, entity_flow, owner, category):
        created = await entity_flow.create_budget(owner.id, {
            "category_id": str(category.id),
            "monthly_limit": "250.00",
            "start_date": "2024-01-01",
        })
        updated = await entity_flow.update_budget(owner.id, created.id, {"end_date": "2024-12-31"})

        assert updated.end_date == date(2024, 12, 31)
        assert [b.id for b in await entity_flow.list_budgets(owner.id)] == [created.id]

        with pytest.raises(CandidateValidationError):
            await entity_flow.update_budget(owner.id, created.id, {"end_date": "2023-12-31"})

    async def test_list_transactions_with_filter(self, entity_flow, owner, category):
        await entity_flow.create_transaction(owner.id, _wire_transaction(category.id, date="2024-01-10"))
        await entity_flow.create_transaction(owner.id, _wire_transaction(category.id, date="2024-02-10"))
        await entity_flow.create_transaction(
            owner.id, _wire_transaction(category.id, date="2024-02-20", type="INCOME")
        )

        february = await entity_flow.list_transactions(
            owner.id, TransactionFilter(from_date=date(2024, 2, 1), to_date=date(2024, 2, 29))
        )
        expenses = await entity_flow.list_transactions(
            owner.id, TransactionFilter(type=TransactionType.EXPENSE)
        )

        assert [t.date for t in february] == [date(2024, 2, 20), date(2024, 2, 10)]
        assert len(expenses) == 2

    async def test_categories_visible_to_owner(
        self, entity_flow, owner, category, other_category, shared_category
    ):
        added = await entity_flow.add_category(owner.id, "Rent", order_index=1)

        names = {c.name for c in await entity_flow.list_categories(owner.id)}

        assert names == {category.name, shared_category.name, added.name}


class TestAppComponents:

    async def test_factory_wires_flows(self, store, owner, category):
        sync_flow, dashboard_flow, entity_flow, identity_provider, same_store = create_app_components(
            store=store
        )
        token = identity_provider.issue_token(owner.id)
        identity = identity_provider.identify({"Authorization": f"Bearer {token}"})

        await sync_flow.sync_data(identity, {
            "last_sync_version": 0,
            "transactions": [_wire_transaction(category.id, type="INCOME", amount="7.25")],
        })
        overview = await dashboard_flow.dashboard(identity)

        assert same_store is store
        assert overview.total_income == Decimal("7.25")
        assert len(await entity_flow.list_transactions(identity)) == 1

    async def test_anonymous_calls_leave_no_audit_rows(self, store):
        """Test that refused anonymous calls are logged locally but never written to the store."""
        sync_flow, dashboard_flow, entity_flow, _, _ = create_app_components(store=store)

        for _ in range(3):
            with pytest.raises(UnauthenticatedError):
                await sync_flow.sync_data(None, {"last_sync_version": 0})
        with pytest.raises(UnauthenticatedError):
            await dashboard_flow.dashboard(None)
        with pytest.raises(UnauthenticatedError):
            await entity_flow.list_categories(None)

        async with store.engine.connect() as conn:
            count = (await conn.execute(text("SELECT COUNT(*) FROM audit_events"))).scalar_one()
        assert count == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
