"""
Data Models Package

This package contains all Pydantic models used in finsync.
All data flowing through the system must conform to these schemas.
"""

from finsync.models.entities import (
    Budget,
    BudgetCandidate,
    BudgetFields,
    Category,
    EntityKind,
    Theme,
    Transaction,
    TransactionCandidate,
    TransactionFields,
    TransactionFilter,
    TransactionSource,
    TransactionType,
    User,
    UserSettings,
    utcnow,
)
from finsync.models.sync import (
    BudgetSummary,
    Conflict,
    DashboardOverview,
    SyncAttempt,
    SyncRequest,
    SyncResult,
    SyncStatus,
    ValidationIssue,
)
from finsync.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entity models
    "Budget",
    "BudgetCandidate",
    "BudgetFields",
    "Category",
    "EntityKind",
    "Theme",
    "Transaction",
    "TransactionCandidate",
    "TransactionFields",
    "TransactionFilter",
    "TransactionSource",
    "TransactionType",
    "User",
    "UserSettings",
    "utcnow",
    # Sync models
    "BudgetSummary",
    "Conflict",
    "DashboardOverview",
    "SyncAttempt",
    "SyncRequest",
    "SyncResult",
    "SyncStatus",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
