"""
Dashboard Aggregation

DESIGN DECISION: Aggregation is EXACT.
Totals are summed as Decimal starting from Decimal("0"); amounts never
pass through float on the way from the table to the overview, so
0.10 + 0.20 + 0.30 is 0.60 and not 0.6000000000000001.

All three reads (totals, budgets, recent transactions) run in one
unit of work, so they describe the same snapshot of the owner's data.
Read-only: nothing here takes a version marker or locks the owner.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from finsync.config import SyncSettings, get_settings
from finsync.models.entities import TransactionType
from finsync.models.sync import BudgetSummary, DashboardOverview
from finsync.services.storage import EntityStoreInterface


logger = structlog.get_logger(__name__)


class DashboardAggregator:
    """
    Builds the owner's overview from stored data only.

    GUARANTEES:
    - Only the owner's rows are read
    - An owner with no data gets zero totals and empty lists
    - Recent transactions are ordered by date, then creation time,
      both descending
    """

    def __init__(
        self,
        store: EntityStoreInterface,
        settings: Optional[SyncSettings] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().sync

    async def overview(
        self,
        owner_id: UUID,
        today: Optional[date] = None,
    ) -> DashboardOverview:
        today = today or date.today()

        async with self._store.begin() as session:
            amounts = await session.transaction_amounts(owner_id)
            budgets = await session.list_budgets_with_category(owner_id)
            recent = await session.recent_transactions(
                owner_id,
                self._settings.recent_transactions_limit,
            )

        total_income = Decimal("0")
        total_expenses = Decimal("0")
        for txn_type, amount in amounts:
            if txn_type == TransactionType.INCOME:
                total_income += amount
            else:
                total_expenses += amount

        overview = DashboardOverview(
            total_income=total_income,
            total_expenses=total_expenses,
            budgets=[
                BudgetSummary(
                    budget=budget,
                    category_name=name,
                    is_active=budget.is_active_on(today),
                )
                for budget, name in budgets
            ],
            recent_transactions=recent,
        )

        logger.debug(
            "dashboard_built",
            owner_id=str(owner_id),
            transactions=len(amounts),
            budgets=len(budgets),
        )
        return overview
