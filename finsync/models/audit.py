"""
Audit Models for finsync

Every sync call, detected conflict and explicit mutation is logged for
audit purposes. This provides:
1. Traceability of which device call changed what
2. A durable record of conflicts after the response is gone
3. Debugging information when a batch is rolled back

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finsync.models.entities import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Sync
    SYNC_STARTED = "sync_started"
    SYNC_COMPLETED = "sync_completed"
    SYNC_CONFLICT_DETECTED = "sync_conflict_detected"
    SYNC_REJECTED = "sync_rejected"
    SYNC_FAILED = "sync_failed"

    # Explicit mutations
    ENTITY_CREATED = "entity_created"
    ENTITY_UPDATED = "entity_updated"
    ENTITY_DELETED = "entity_deleted"

    # Access
    UNAUTHENTICATED_REQUEST = "unauthenticated_request"
    USER_REGISTERED = "user_registered"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who
    user_id: Optional[UUID] = Field(
        default=None,
        description="Owner the event concerns (None when unauthenticated)"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'budget', 'sync_attempt')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one sync call)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": str(self.user_id) if self.user_id else None,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.sync_completed(user_id, attempt_id, ...)
        event = AuditEventBuilder.conflict_detected(user_id, "transaction", entity_id, ...)
    """

    @staticmethod
    def sync_started(
        user_id: UUID,
        checkpoint: int,
        transaction_count: int,
        budget_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_STARTED,
            user_id=user_id,
            correlation_id=correlation_id,
            description=(
                f"Sync started from checkpoint {checkpoint} with "
                f"{transaction_count + budget_count} candidates"
            ),
            details={
                "checkpoint": checkpoint,
                "transaction_count": transaction_count,
                "budget_count": budget_count,
            },
        )

    @staticmethod
    def sync_completed(
        user_id: UUID,
        attempt_id: UUID,
        status: str,
        checkpoint: int,
        conflict_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_COMPLETED,
            user_id=user_id,
            entity_type="sync_attempt",
            entity_id=attempt_id,
            correlation_id=correlation_id,
            description=f"Sync committed with status {status}",
            details={
                "status": status,
                "checkpoint": checkpoint,
                "conflict_count": conflict_count,
            },
        )

    @staticmethod
    def conflict_detected(
        user_id: UUID,
        entity_type: str,
        entity_id: UUID,
        server_version: int,
        checkpoint: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_CONFLICT_DETECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=(
                f"Client edit of {entity_type} rejected: server version "
                f"{server_version} is newer than checkpoint {checkpoint}"
            ),
            details={
                "server_version": server_version,
                "checkpoint": checkpoint,
            },
        )

    @staticmethod
    def sync_rejected(
        user_id: UUID,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Sync batch rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def sync_failed(
        user_id: UUID,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Sync rolled back: {error_type}",
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        user_id: UUID,
        entity_type: str,
        entity_id: UUID,
        version: Optional[int],
        correlation_id: UUID,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} {verb}",
            details={"version": version} if version is not None else {},
        )

    @staticmethod
    def user_registered(user_id: UUID, auth_provider: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            description="User registered",
            details={"auth_provider": auth_provider},
        )

    @staticmethod
    def unauthenticated_request(operation: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNAUTHENTICATED_REQUEST,
            severity=AuditSeverity.WARNING,
            description=f"Unauthenticated call to {operation} rejected",
            details={"operation": operation},
        )

