"""
Conflict Ledger

Collects the conflicts detected during one sync call. Lives exactly as
long as the call; what leaves it is an immutable tuple placed on the
SyncResult (and, separately, one audit event per conflict).
"""

from typing import Iterator

from finsync.models.entities import (
    Budget,
    BudgetCandidate,
    EntityKind,
    Transaction,
    TransactionCandidate,
)
from finsync.models.sync import Conflict


class ConflictLedger:
    """Call-scoped, append-only list of conflicts."""

    def __init__(self):
        self._conflicts: list[Conflict] = []
        self._frozen = False

    def record(
        self,
        kind: EntityKind,
        server: Transaction | Budget,
        client: TransactionCandidate | BudgetCandidate,
    ) -> Conflict:
        """Snapshot both sides of a refused client edit."""
        if self._frozen:
            raise RuntimeError("Conflict ledger is closed")
        conflict = Conflict(
            id=server.id,
            kind=kind,
            server_value=server.model_dump(mode="json"),
            client_value=client.model_dump(mode="json"),
        )
        self._conflicts.append(conflict)
        return conflict

    def freeze(self) -> tuple[Conflict, ...]:
        """Close the ledger and hand out its contents."""
        self._frozen = True
        return tuple(self._conflicts)

    def __len__(self) -> int:
        return len(self._conflicts)

    def __iter__(self) -> Iterator[Conflict]:
        return iter(self._conflicts)

    def __bool__(self) -> bool:
        return bool(self._conflicts)
