"""
CLI tools for Firebase Guard administration.

This module provides command-line tools for:
- serve: Run the MCP or HTTP server
- audit/backup: Inspect the ledger and list, take or restore snapshots

Invariants:
    - Listing works offline (no running server required)
    - Restores are recorded in the audit ledger
"""

from .guard_cli import GuardCLI

__all__ = ["GuardCLI"]
