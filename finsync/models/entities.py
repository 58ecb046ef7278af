"""
Core Entity Models for finsync

These models define the strict schemas for the versioned entities the
sync engine merges and the dashboard reads. They are designed to:
1. Enforce type safety at runtime
2. Keep money as exact decimals from the wire to the database
3. Be serializable for conflict snapshots and the audit trail

DESIGN DECISION: Each entity kind is split in three layers:
- *Fields: the client-editable payload
- *Candidate: payload plus the client-generated id (what a device sends)
- the stored entity: candidate plus owner, version and timestamps
Comparing payloads is how the coordinator recognises a resubmission.
"""

from datetime import date, datetime, timezone
from datetime import date as date_type
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every table column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _reject_binary_float(v: Any) -> Any:
    if isinstance(v, float):
        raise ValueError(
            "Monetary amounts must be sent as decimal strings, not floats"
        )
    return v


Money = Annotated[
    Decimal,
    Field(gt=0, max_digits=18, decimal_places=2),
]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money movement."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransactionSource(str, Enum):
    """How the transaction entered the system."""
    MANUAL = "MANUAL"
    SMS_IMPORT = "SMS_IMPORT"


class Theme(str, Enum):
    LIGHT = "LIGHT"
    DARK = "DARK"


class EntityKind(str, Enum):
    """Entity kinds that carry a version marker and take part in sync."""
    TRANSACTION = "transaction"
    BUDGET = "budget"


# =============================================================================
# USERS, SETTINGS AND CATEGORIES
# =============================================================================

class User(BaseModel):
    """
    An account. The owner of every transaction and budget.

    `sync_sequence` is the owner's version counter: each write to one of
    the owner's entities takes the next value.
    """
    model_config = ConfigDict(str_strip_whitespace=True, from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    email: str = Field(..., min_length=3, max_length=320)
    password_hash: str = Field(..., min_length=1)
    auth_provider: str = Field(default="email", max_length=50)
    sync_sequence: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError(f"Not an email address: {v}")
        return v.lower()


def _default_notification_preferences() -> dict[str, Any]:
    return {"emails": True, "push": True}


def _default_sync_options() -> dict[str, Any]:
    return {"autoSync": True, "syncInterval": 300}


class UserSettings(BaseModel):
    """Per-user preferences, created with defaults alongside the user."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    theme: Theme = Theme.LIGHT
    notification_preferences: dict[str, Any] = Field(
        default_factory=_default_notification_preferences
    )
    sync_options: dict[str, Any] = Field(default_factory=_default_sync_options)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Category(BaseModel):
    """
    A spending/income category.

    A category with no `user_id` is a shared system category, visible
    to every user. Names are unique per owner.
    """
    model_config = ConfigDict(str_strip_whitespace=True, from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: Optional[UUID] = None
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    order_index: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionFields(BaseModel):
    """Client-editable transaction payload."""
    model_config = ConfigDict(str_strip_whitespace=True, from_attributes=True)

    type: TransactionType
    amount: Money
    category_id: UUID
    sub_category_id: Optional[UUID] = None
    date: date_type
    notes: Optional[str] = Field(default=None, max_length=1000)
    attachment_url: Optional[str] = Field(default=None, max_length=2048)
    source: TransactionSource = TransactionSource.MANUAL
    sms_id: Optional[UUID] = None

    @field_validator('amount', mode='before')
    @classmethod
    def reject_float_amount(cls, v: Any) -> Any:
        return _reject_binary_float(v)

    def payload(self) -> dict[str, Any]:
        """The editable fields only; equal payloads mean identical content."""
        return self.model_dump(include=set(TransactionFields.model_fields))


class TransactionCandidate(TransactionFields):
    """
    A transaction as sent by a device.

    The id is generated on the client so the server can tell
    "new" from "update" without a round trip.
    """
    id: UUID


class Transaction(TransactionCandidate):
    """A stored, owned and versioned transaction."""
    user_id: UUID
    version: int = Field(..., ge=1)
    created_at: datetime
    updated_at: datetime


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetFields(BaseModel):
    """Client-editable budget payload."""
    model_config = ConfigDict(from_attributes=True)

    category_id: UUID
    monthly_limit: Money
    start_date: date
    end_date: Optional[date] = None

    @field_validator('monthly_limit', mode='before')
    @classmethod
    def reject_float_limit(cls, v: Any) -> Any:
        return _reject_binary_float(v)

    @model_validator(mode='after')
    def validate_dates(self) -> 'BudgetFields':
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("Budget end date cannot be before start date")
        return self

    def payload(self) -> dict[str, Any]:
        return self.model_dump(include=set(BudgetFields.model_fields))

    def is_active_on(self, day: date) -> bool:
        if day < self.start_date:
            return False
        return self.end_date is None or day <= self.end_date


class BudgetCandidate(BudgetFields):
    """A budget as sent by a device (client-generated id)."""
    id: UUID


class Budget(BudgetCandidate):
    """A stored, owned and versioned budget."""
    user_id: UUID
    version: int = Field(..., ge=1)
    created_at: datetime
    updated_at: datetime


# =============================================================================
# READ FILTERS
# =============================================================================

class TransactionFilter(BaseModel):
    """Optional filters for listing an owner's transactions."""

    from_date: Optional[date] = None
    to_date: Optional[date] = None
    category_ids: Optional[list[UUID]] = None
    sources: Optional[list[TransactionSource]] = None
    type: Optional[TransactionType] = None
    limit: int = Field(default=100, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)

    @model_validator(mode='after')
    def validate_range(self) -> 'TransactionFilter':
        if self.from_date and self.to_date and self.to_date < self.from_date:
            raise ValueError("to_date cannot be before from_date")
        return self
