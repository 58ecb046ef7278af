"""
finsync - Source Package

Offline-first personal finance data API. Devices record transactions
and budgets while disconnected and push them in batches; the server
merges them without silently losing anyone's edits.

DESIGN PRINCIPLES:
1. The transactional store is the only source of truth
2. A batch is committed entirely or not at all
3. Server state wins a conflict; the client is told, never overruled silently
4. Money is an exact decimal everywhere
5. Every sync outcome is auditable
"""

__version__ = "1.0.0"
__author__ = "finsync Team"
