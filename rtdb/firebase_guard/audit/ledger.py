"""
Append-only audit ledger.

The ledger is a JSON-lines file: one AuditEntry per line, oldest first.
Readers parse the whole file on every query and return entries newest first.

Invariants:
    - Entries are only ever appended, never rewritten or removed
    - The file is opened in append mode for every write, so writers in one
      process never overwrite each other's lines
    - A line that fails to parse fails the whole listing

How to change safely:
    - Add new optional keys to AuditEntry.to_dict, never rename existing ones
    - Keep list() tolerant of a missing file (fresh installs)
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from ..errors import CorruptLedgerError
from .entry import AuditEntry, OperationKind, make_correlation_id

logger = logging.getLogger(__name__)


class AuditLedger:
    """Durable record of every guarded write attempt.

    Attributes:
        log_file: Absolute path of the JSON-lines file
        enabled: Whether the write guard should append to this ledger

    Example:
        >>> ledger = AuditLedger(".mcp-firebase/audit/audit.jsonl")
        >>> await ledger.append(entry)
        >>> recent = await ledger.list(op=OperationKind.DELETE, limit=10)
    """

    def __init__(self, log_file: str, enabled: bool = True) -> None:
        """Initialize the ledger, creating its directory if needed.

        Args:
            log_file: Path of the ledger file
            enabled: Whether writes are recorded
        """
        self.log_file = Path(log_file).resolve()
        self.enabled = enabled
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

    def make_id(self) -> str:
        """Generate a sortable, timestamp-based correlation id."""
        return make_correlation_id()

    async def append(self, entry: AuditEntry) -> None:
        """Append one entry as a single line and flush it to disk."""
        line = json.dumps(entry.to_dict(), separators=(",", ":")) + "\n"
        await asyncio.get_event_loop().run_in_executor(None, self._write_line, line)
        logger.debug(
            "Audit entry appended",
            extra={"audit_id": entry.id, "op": entry.op.value, "status": entry.status.value},
        )

    def _write_line(self, line: str) -> None:
        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write(line)
            f.flush()
            os.fsync(f.fileno())

    async def list(
        self,
        op: Optional[OperationKind] = None,
        path: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[AuditEntry]:
        """Read entries, newest first.

        Args:
            op: Only entries of this operation kind
            path: Only entries at this path or below it
            limit: Maximum number of entries returned

        Returns:
            Matching entries, most recent first (empty if no ledger yet)

        Raises:
            CorruptLedgerError: If any line cannot be parsed
        """
        if not self.log_file.exists():
            return []

        content = await asyncio.get_event_loop().run_in_executor(
            None, self.log_file.read_text, "utf-8"
        )
        entries = self._parse(content)

        if op is not None:
            entries = [e for e in entries if e.op == op]
        if path:
            entries = [e for e in entries if e.matches_path(path)]
        entries.reverse()
        if limit:
            entries = entries[:limit]
        return entries

    def _parse(self, content: str) -> List[AuditEntry]:
        entries = []
        for number, line in enumerate(content.split("\n"), start=1):
            if not line.strip():
                continue
            try:
                entries.append(AuditEntry.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
                raise CorruptLedgerError(
                    f"Unparseable ledger line {number} in {self.log_file}: {e}",
                    line_number=number,
                ) from e
        return entries
