"""
Sync Coordinator

Merges one batch of offline edits into server state.

For each candidate, within the caller's scope:
- unknown id: insert it, owned by the caller, with a fresh version
- known id, stored version <= checkpoint: the client saw the latest
  state, so its edit overwrites it with a fresh version
- known id, stored version > checkpoint: the server changed it after the
  client last synced. The client edit is refused, a conflict is
  recorded, and the server's value is returned in its place. Nothing is
  merged automatically. A resubmission of content identical to what is
  stored is not a divergence and returns the stored entity unchanged.

Entities the device did not send but that changed after its checkpoint
are returned alongside the merge, so the new checkpoint never covers an
edit the device has not received.

The whole batch, plus exactly one SyncAttempt row, commits in one
transaction or not at all. The owner row is locked first, so concurrent
syncs for the same owner run one after another; the version comparison
sits on top of that isolation, it does not replace it.
"""

from typing import Optional
from uuid import UUID

import structlog

from finsync.models.entities import (
    Budget,
    BudgetCandidate,
    EntityKind,
    Transaction,
    TransactionCandidate,
)
from finsync.models.sync import SyncAttempt, SyncRequest, SyncResult, SyncStatus
from finsync.services.storage import EntityStoreInterface, StoreSession
from finsync.sync.ledger import ConflictLedger
from finsync.validation import CandidateValidator


logger = structlog.get_logger(__name__)


class SyncCoordinator:
    """Atomic batch merge with optimistic concurrency."""

    def __init__(
        self,
        store: EntityStoreInterface,
        validator: Optional[CandidateValidator] = None,
    ):
        self._store = store
        self._validator = validator or CandidateValidator()

    async def sync(self, owner_id: UUID, request: SyncRequest) -> SyncResult:
        """
        Merge `request` for `owner_id`.

        Raises:
            CandidateValidationError: Malformed batch; nothing written
            NotFoundError: A candidate id belongs to another owner
                (reported as not found); nothing written
            StorageError: Backend failure; nothing written
        """
        self._validator.ensure_valid(self._validator.validate_structure(request))
        checkpoint = request.last_sync_version

        async with self._store.begin() as session:
            await session.lock_owner(owner_id)
            self._validator.ensure_valid(
                await self._validator.validate_references(session, owner_id, request)
            )

            ledger = ConflictLedger()
            transactions = [
                await self._merge(session, EntityKind.TRANSACTION, owner_id, candidate, checkpoint, ledger)
                for candidate in request.transactions
            ]
            budgets = [
                await self._merge(session, EntityKind.BUDGET, owner_id, candidate, checkpoint, ledger)
                for candidate in request.budgets
            ]

            server_transactions = await self._changed_since(
                session, EntityKind.TRANSACTION, owner_id, checkpoint, request.transactions
            )
            server_budgets = await self._changed_since(
                session, EntityKind.BUDGET, owner_id, checkpoint, request.budgets
            )

            owner = await session.lock_owner(owner_id)
            conflicts = ledger.freeze()
            attempt = await session.append_sync_attempt(SyncAttempt(
                user_id=owner_id,
                sequence=owner.sync_sequence,
                status=SyncStatus.CONFLICT if conflicts else SyncStatus.SYNCED,
                conflict_count=len(conflicts),
            ))

        logger.info(
            "sync_committed",
            owner_id=str(owner_id),
            checkpoint=checkpoint,
            new_checkpoint=attempt.sequence,
            transactions=len(transactions),
            budgets=len(budgets),
            server_changes=len(server_transactions) + len(server_budgets),
            conflicts=len(conflicts),
        )

        return SyncResult(
            transactions=transactions,
            budgets=budgets,
            server_transactions=server_transactions,
            server_budgets=server_budgets,
            conflicts=conflicts,
            checkpoint=attempt.sequence,
            status=attempt.status,
            attempt_id=attempt.id,
        )

    async def _merge(
        self,
        session: StoreSession,
        kind: EntityKind,
        owner_id: UUID,
        candidate: TransactionCandidate | BudgetCandidate,
        checkpoint: int,
        ledger: ConflictLedger,
    ) -> Transaction | Budget:
        existing = await session.find_entity(kind, owner_id, candidate.id, for_update=True)

        if existing is None:
            # write_entity refuses ids held by another owner
            return await session.write_entity(kind, owner_id, candidate)

        if existing.version > checkpoint:
            if existing.payload() == candidate.payload():
                return existing
            ledger.record(kind, existing, candidate)
            logger.info(
                "sync_conflict",
                kind=kind.value,
                entity_id=str(candidate.id),
                server_version=existing.version,
                checkpoint=checkpoint,
            )
            return existing

        return await session.write_entity(kind, owner_id, candidate)

    async def _changed_since(
        self,
        session: StoreSession,
        kind: EntityKind,
        owner_id: UUID,
        checkpoint: int,
        sent: list[TransactionCandidate] | list[BudgetCandidate],
    ) -> list[Transaction | Budget]:
        sent_ids = {candidate.id for candidate in sent}
        changed = await session.changed_since(kind, owner_id, checkpoint)
        return [entity for entity in changed if entity.id not in sent_ids]

    async def last_attempt(self, owner_id: UUID) -> Optional[SyncAttempt]:
        """Did the owner's last sync succeed? None if they never synced."""
        async with self._store.begin() as session:
            return await session.last_sync_attempt(owner_id)
