"""
Tests for the SQL entity store

Version markers, owner scoping, decimal storage and unit-of-work
rollback, exercised directly through StoreSession.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import text

from finsync.models.entities import Category, EntityKind, Theme, TransactionCandidate
from finsync.services.storage import AuthorizationError, DuplicateError, NotFoundError


class TestVersionMarkers:
    """The owner sequence behind every version."""

    async def test_versions_strictly_increase(self, store, owner, make_transaction):
        versions = []
        for _ in range(3):
            async with store.begin() as session:
                entity = await session.write_entity(EntityKind.TRANSACTION, owner.id, make_transaction())
                versions.append(entity.version)

        assert versions == sorted(versions)
        assert len(set(versions)) == 3

    async def test_delete_advances_sequence(self, store, owner, make_transaction):
        candidate = make_transaction()
        async with store.begin() as session:
            written = await session.write_entity(EntityKind.TRANSACTION, owner.id, candidate)

        async with store.begin() as session:
            await session.delete_entity(EntityKind.TRANSACTION, owner.id, candidate.id)

        async with store.begin() as session:
            user = await session.lock_owner(owner.id)
        assert user.sync_sequence > written.version

    async def test_sequences_are_per_owner(self, store, owner, other_owner, other_category, make_transaction):
        async with store.begin() as session:
            await session.write_entity(EntityKind.TRANSACTION, owner.id, make_transaction())
            await session.write_entity(EntityKind.TRANSACTION, owner.id, make_transaction())
            theirs = await session.write_entity(
                EntityKind.TRANSACTION, other_owner.id, make_transaction(category_id=other_category.id)
            )

        assert theirs.version == 1

    async def test_versions_distinct_within_one_unit(self, store, owner):
        async with store.begin() as session:
            first = await session.next_version(owner.id)
            second = await session.next_version(owner.id)
            user = await session.lock_owner(owner.id)

        assert (first, second) == (1, 2)
        assert user.sync_sequence == 2

    async def test_changed_since(self, store, owner, other_owner, other_category, make_transaction):
        """Test that only the owner's entities newer than the version are read, oldest first."""
        candidates = [make_transaction() for _ in range(3)]
        async with store.begin() as session:
            written = [
                await session.write_entity(EntityKind.TRANSACTION, owner.id, c) for c in candidates
            ]
            await session.write_entity(
                EntityKind.TRANSACTION, other_owner.id, make_transaction(category_id=other_category.id)
            )

        async with store.begin() as session:
            changed = await session.changed_since(EntityKind.TRANSACTION, owner.id, written[0].version)
            budgets = await session.changed_since(EntityKind.BUDGET, owner.id, 0)

        assert [t.id for t in changed] == [candidates[1].id, candidates[2].id]
        assert budgets == []


class TestOwnerScoping:
    """Another owner's entity reads exactly like a missing one."""

    async def test_fetch_other_owners_entity(self, store, owner, other_owner, make_transaction):
        candidate = make_transaction()
        async with store.begin() as session:
            await session.write_entity(EntityKind.TRANSACTION, owner.id, candidate)

        async with store.begin() as session:
            assert await session.find_entity(EntityKind.TRANSACTION, other_owner.id, candidate.id) is None
            with pytest.raises(NotFoundError) as foreign:
                await session.get_entity(EntityKind.TRANSACTION, other_owner.id, candidate.id)

        missing_id = uuid4()
        async with store.begin() as session:
            with pytest.raises(NotFoundError) as missing:
                await session.get_entity(EntityKind.TRANSACTION, owner.id, missing_id)

        assert str(foreign.value) == f"Transaction not found: {candidate.id}"
        assert str(missing.value) == f"Transaction not found: {missing_id}"

    async def test_write_over_other_owners_id(self, store, owner, other_owner, other_category, make_transaction):
        candidate = make_transaction()
        async with store.begin() as session:
            await session.write_entity(EntityKind.TRANSACTION, owner.id, candidate)

        with pytest.raises(AuthorizationError):
            async with store.begin() as session:
                await session.write_entity(
                    EntityKind.TRANSACTION,
                    other_owner.id,
                    candidate.model_copy(update={"category_id": other_category.id}),
                )

    async def test_delete_missing(self, store, owner):
        with pytest.raises(NotFoundError):
            async with store.begin() as session:
                await session.delete_entity(EntityKind.BUDGET, owner.id, uuid4())


class TestUnitOfWork:
    """Commit on clean exit, roll back on error."""

    async def test_rollback_on_error(self, store, owner, make_transaction):
        candidate = make_transaction()

        with pytest.raises(RuntimeError):
            async with store.begin() as session:
                await session.write_entity(EntityKind.TRANSACTION, owner.id, candidate)
                raise RuntimeError("abort")

        async with store.begin() as session:
            assert await session.find_entity(EntityKind.TRANSACTION, owner.id, candidate.id) is None
            assert (await session.lock_owner(owner.id)).sync_sequence == 0

    async def test_foreign_key_violation(self, store, owner):
        """Test that a dangling category reference is refused by the database."""
        candidate = TransactionCandidate(
            id=uuid4(),
            type="EXPENSE",
            amount=Decimal("1.00"),
            category_id=uuid4(),
            date=date(2024, 1, 1),
        )
        with pytest.raises(DuplicateError):
            async with store.begin() as session:
                await session.write_entity(EntityKind.TRANSACTION, owner.id, candidate)


class TestExactDecimalColumn:
    """Amounts are stored without binary floating point."""

    async def test_amount_stored_as_decimal_text(self, store, owner, make_transaction):
        async with store.begin() as session:
            await session.write_entity(EntityKind.TRANSACTION, owner.id, make_transaction(amount="0.10"))

        async with store.engine.connect() as conn:
            raw = (await conn.execute(text("SELECT amount FROM transactions"))).scalar_one()

        assert raw == "0.10"

    async def test_amount_round_trip(self, store, owner, make_transaction):
        candidate = make_transaction(amount="1234567.89")
        async with store.begin() as session:
            await session.write_entity(EntityKind.TRANSACTION, owner.id, candidate)

        async with store.begin() as session:
            stored = await session.get_entity(EntityKind.TRANSACTION, owner.id, candidate.id)

        assert stored.amount == Decimal("1234567.89")
        assert isinstance(stored.amount, Decimal)


class TestUsersAndCategories:

    async def test_default_settings(self, store, owner):
        async with store.begin() as session:
            settings = await session.get_user_settings(owner.id)

        assert settings.theme == Theme.LIGHT
        assert settings.notification_preferences == {"emails": True, "push": True}

    async def test_category_names_unique_per_owner(self, store, owner, category):
        with pytest.raises(DuplicateError):
            async with store.begin() as session:
                await session.add_category(Category(user_id=owner.id, name=category.name))

    async def test_other_owners_category_hidden(self, store, owner, other_category):
        async with store.begin() as session:
            assert await session.visible_category_ids(owner.id, {other_category.id}) == set()
            with pytest.raises(NotFoundError):
                await session.get_category(owner.id, other_category.id)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
