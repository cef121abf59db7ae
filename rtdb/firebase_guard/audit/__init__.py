"""
Audit module - the append-only history of guarded writes.

This module handles:
- Operation kinds and audit entry types
- Timestamp-derived correlation ids shared with snapshot filenames
- The JSON-lines ledger and its filtered, newest-first listing

Invariants:
    - One entry per guarded write when the ledger is enabled
    - Entries are never mutated or deleted after append

How to change safely:
    - Keep the line format backward compatible; old ledgers must still list
"""

from .entry import (
    AuditEntry,
    AuditStatus,
    OperationKind,
    make_correlation_id,
    now_iso,
    path_matches,
)
from .ledger import AuditLedger

__all__ = [
    "AuditEntry",
    "AuditStatus",
    "OperationKind",
    "AuditLedger",
    "make_correlation_id",
    "now_iso",
    "path_matches",
]
