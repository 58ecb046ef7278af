"""
Shared fixtures.

Every test gets its own SQLite database file under tmp_path, so tests
never share state and never touch the network.
"""

from datetime import date
from uuid import uuid4

import pytest

from finsync.config import DatabaseSettings, get_settings
from finsync.models.entities import (
    BudgetCandidate,
    Category,
    TransactionCandidate,
    User,
)
from finsync.services.storage import SqlEntityStore


TEST_JWT_SECRET = "test-secret-0123456789abcdef"


@pytest.fixture(autouse=True)
def test_environment(monkeypatch):
    """Known settings for every test; cache cleared on both sides."""
    monkeypatch.setenv("AUTH_JWT_SECRET", TEST_JWT_SECRET)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
async def store(tmp_path):
    store = SqlEntityStore(
        settings=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path}/test.db")
    )
    await store.create_schema()
    yield store
    await store.close()


async def _add_user(store, email: str) -> User:
    user = User(email=email, password_hash="not-a-real-hash")
    async with store.begin() as session:
        await session.add_user(user)
    return user


async def _add_category(store, name: str, owner: User = None) -> Category:
    category = Category(name=name, user_id=owner.id if owner else None)
    async with store.begin() as session:
        await session.add_category(category)
    return category


@pytest.fixture
async def owner(store) -> User:
    return await _add_user(store, "owner@example.com")


@pytest.fixture
async def other_owner(store) -> User:
    return await _add_user(store, "someone-else@example.com")


@pytest.fixture
async def category(store, owner) -> Category:
    return await _add_category(store, "Groceries", owner)


@pytest.fixture
async def other_category(store, other_owner) -> Category:
    return await _add_category(store, "Travel", other_owner)


@pytest.fixture
async def shared_category(store) -> Category:
    return await _add_category(store, "Salary")


@pytest.fixture
def make_transaction(category):
    """Factory for transaction candidates in the owner's category."""
    def _make(**overrides) -> TransactionCandidate:
        data = {
            "id": uuid4(),
            "type": "EXPENSE",
            "amount": "10.00",
            "category_id": category.id,
            "date": date(2024, 3, 1),
        }
        data.update(overrides)
        return TransactionCandidate.model_validate(data)
    return _make


@pytest.fixture
def make_budget(category):
    """Factory for budget candidates in the owner's category."""
    def _make(**overrides) -> BudgetCandidate:
        data = {
            "id": uuid4(),
            "category_id": category.id,
            "monthly_limit": "500.00",
            "start_date": date(2024, 1, 1),
        }
        data.update(overrides)
        return BudgetCandidate.model_validate(data)
    return _make
