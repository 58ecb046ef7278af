"""
Sync and Dashboard Models

Request/response shapes for the batch merge and the dashboard,
plus the records the coordinator produces along the way.

DESIGN DECISION: The checkpoint is an integer, not a wall-clock time.
It is the owner's version counter as last returned to the client, so it
compares exactly with the version stamped on every entity regardless of
clock skew between servers or devices.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from finsync.models.entities import (
    Budget,
    BudgetCandidate,
    EntityKind,
    Transaction,
    TransactionCandidate,
    utcnow,
)


class SyncStatus(str, Enum):
    """Outcome of one sync call."""
    PENDING = "PENDING"
    SYNCED = "SYNCED"
    CONFLICT = "CONFLICT"


SYNC_SCOPE_ALL = "ALL"


class Conflict(BaseModel):
    """
    A client edit the server refused because the server had a newer
    edit the client never saw.

    Snapshots are JSON-mode dumps, so amounts travel as decimal strings.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    kind: EntityKind
    server_value: dict[str, Any]
    client_value: dict[str, Any]
    detected_at: datetime = Field(default_factory=utcnow)


class SyncAttempt(BaseModel):
    """Append-only record of one full sync call."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    scope: str = SYNC_SCOPE_ALL
    sequence: int = Field(..., ge=0)
    status: SyncStatus
    conflict_count: int = Field(default=0, ge=0)
    last_attempt: datetime = Field(default_factory=utcnow)

    @model_validator(mode='after')
    def validate_status(self) -> 'SyncAttempt':
        if self.status == SyncStatus.CONFLICT and self.conflict_count == 0:
            raise ValueError("A CONFLICT attempt must report at least one conflict")
        if self.status == SyncStatus.SYNCED and self.conflict_count > 0:
            raise ValueError("A SYNCED attempt cannot report conflicts")
        return self


class SyncRequest(BaseModel):
    """
    One batch pushed by a device.

    `last_sync_version` is the `checkpoint` of the previous SyncResult
    the device received (0 for a device that has never synced).
    """

    last_sync_version: int = Field(..., ge=0)
    transactions: list[TransactionCandidate] = Field(default_factory=list)
    budgets: list[BudgetCandidate] = Field(default_factory=list)

    @property
    def candidate_count(self) -> int:
        return len(self.transactions) + len(self.budgets)


class SyncResult(BaseModel):
    """
    Merged view returned to the device.

    Each merged entity is either the accepted candidate (freshly
    versioned) or, for a conflict, the server's current value.

    server_transactions and server_budgets hold every other entity of
    the owner changed after the request's checkpoint, so a device that
    applies them has seen everything up to `checkpoint`. Deletions are
    not reported.
    """
    model_config = ConfigDict(frozen=True)

    transactions: list[Transaction] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    server_transactions: list[Transaction] = Field(default_factory=list)
    server_budgets: list[Budget] = Field(default_factory=list)
    conflicts: tuple[Conflict, ...] = ()
    checkpoint: int = Field(..., ge=0)
    status: SyncStatus
    attempt_id: UUID

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicts) > 0


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in a sync batch."""

    kind: Optional[EntityKind] = Field(
        default=None,
        description="Entity kind the issue belongs to (None for batch-level issues)"
    )
    entity_id: Optional[UUID] = None
    field: str = Field(..., description="Field with the issue")
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'duplicate_id', 'unknown_category', 'batch_too_large')"
    )
    message: str = Field(..., description="Human-readable description of the issue")


# =============================================================================
# DASHBOARD MODELS
# =============================================================================

class BudgetSummary(BaseModel):
    """A budget joined with its category's display name."""

    budget: Budget
    category_name: str
    is_active: bool


class DashboardOverview(BaseModel):
    """Totals and recent activity for one owner."""

    total_income: Decimal
    total_expenses: Decimal
    budgets: list[BudgetSummary] = Field(default_factory=list)
    recent_transactions: list[Transaction] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utcnow)

    @property
    def net_balance(self) -> Decimal:
        return self.total_income - self.total_expenses
