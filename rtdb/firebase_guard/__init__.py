"""
Firebase Guard - safe agent access to a Firebase Realtime Database.

This package exposes a remote hierarchical key-value database (a tree of
JSON-like nodes addressed by slash-delimited paths) to automated agents and
wraps every mutating operation in a safety net:
- A best-effort YAML snapshot of the affected subtree before the write
- An append-only JSON-lines audit ledger entry after the write
- Restore of any snapshot back into the tree

Architecture:
    ┌──────────────┐     ┌──────────────┐     ┌──────────────┐
    │  MCP / HTTP  │────▶│   Servicer   │────▶│  WriteGuard  │
    │   / CLI      │     │              │     │              │
    └──────────────┘     └──────┬───────┘     └──┬────────┬──┘
                                │                │        │
                                ▼                ▼        ▼
                        ┌──────────────┐  ┌──────────┐ ┌──────────┐
                        │  RtdbClient  │◀─│ Snapshot │ │  Audit   │
                        │  (Firebase)  │  │  Store   │ │  Ledger  │
                        └──────────────┘  └──────────┘ └──────────┘

Invariants:
    - Exactly one ledger entry per guarded write when auditing is enabled
    - A failed snapshot never blocks the write it precedes
    - A failed write is recorded before its error reaches the caller
    - Snapshot metadata is recoverable from the filename alone

How to change safely:
    - Keep the ledger line format and snapshot filename grammar stable
    - Add new operation kinds at the end of OperationKind
    - Test restore against snapshots written by older versions

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
