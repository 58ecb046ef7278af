"""
Audit Logger

DESIGN DECISION: Every sync outcome and explicit mutation is logged.
This provides:
1. Complete traceability of what each device call changed
2. A durable record of conflicts after the response is gone
3. Debugging capability for rolled-back batches

The audit logger:
- Writes after the audited unit of work, never inside it
- Gracefully handles failures (a lost audit row never fails a sync)
- Supports correlation IDs to trace the events of one call
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finsync.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from finsync.models.sync import Conflict
from finsync.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit table (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("finsync.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        self._log_local(event)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def _log_local(self, event: AuditEvent) -> None:
        log_dict = event.to_log_dict()
        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    async def log_sync_started(
        self,
        user_id: UUID,
        checkpoint: int,
        transaction_count: int,
        budget_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log the arrival of a sync batch."""
        await self.log(AuditEventBuilder.sync_started(
            user_id=user_id,
            checkpoint=checkpoint,
            transaction_count=transaction_count,
            budget_count=budget_count,
            correlation_id=correlation_id,
        ))

    async def log_sync_completed(
        self,
        user_id: UUID,
        attempt_id: UUID,
        status: str,
        checkpoint: int,
        conflicts: tuple[Conflict, ...],
        last_sync_version: int,
        correlation_id: UUID,
    ) -> None:
        """Log a committed sync and one event per conflict it reported."""
        for conflict in conflicts:
            await self.log(AuditEventBuilder.conflict_detected(
                user_id=user_id,
                entity_type=conflict.kind.value,
                entity_id=conflict.id,
                server_version=conflict.server_value.get("version", 0),
                checkpoint=last_sync_version,
                correlation_id=correlation_id,
            ))
        await self.log(AuditEventBuilder.sync_completed(
            user_id=user_id,
            attempt_id=attempt_id,
            status=status,
            checkpoint=checkpoint,
            conflict_count=len(conflicts),
            correlation_id=correlation_id,
        ))

    async def log_sync_rejected(
        self,
        user_id: UUID,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log a batch refused by validation."""
        await self.log(AuditEventBuilder.sync_rejected(
            user_id=user_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_sync_failed(
        self,
        user_id: UUID,
        error: Exception,
        correlation_id: UUID,
    ) -> None:
        """Log a batch rolled back by an error."""
        await self.log(AuditEventBuilder.sync_failed(
            user_id=user_id,
            error_type=type(error).__name__,
            error_message=str(error),
            correlation_id=correlation_id,
        ))

    async def log_entity_changed(
        self,
        event_type: AuditEventType,
        user_id: UUID,
        entity_type: str,
        entity_id: UUID,
        version: Optional[int],
        correlation_id: UUID,
    ) -> None:
        """Log an explicit create, update or delete."""
        await self.log(AuditEventBuilder.entity_changed(
            event_type=event_type,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            version=version,
            correlation_id=correlation_id,
        ))

    async def log_user_registered(self, user_id: UUID, auth_provider: str) -> None:
        await self.log(AuditEventBuilder.user_registered(user_id, auth_provider))

    async def log_unauthenticated(self, operation: str) -> None:
        """Log an anonymous call locally. Nothing is written to storage."""
        self._log_local(AuditEventBuilder.unauthenticated_request(operation))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a call (e.g., one sync).
    Pass it through all subsequent operations.
    """
    return uuid4()
