"""Sync engine package."""

from finsync.sync.coordinator import SyncCoordinator
from finsync.sync.ledger import ConflictLedger

__all__ = ["ConflictLedger", "SyncCoordinator"]
