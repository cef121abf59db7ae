"""
Audit entry types and timestamp-derived correlation ids.

Ledger line format (one JSON object per line, optional keys omitted):
    {"id":"2026-02-18T12-00-00-000Z","ts":"2026-02-18T12:00:00.000Z",
     "op":"delete","path":"users/abc","status":"ok",
     "backupFile":"delete_users.abc_2026-02-18T12-00-00-000Z.yaml","durationMs":42}

Invariants:
    - Correlation ids sort lexicographically in time order
    - Correlation ids contain no ':' or '.' so they are safe in filenames
    - Entries are immutable once built
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class OperationKind(Enum):
    """Kinds of write operation.

    Declaration order is the fixed priority used when decoding snapshot
    filename prefixes.
    """

    PUT = "put"
    PATCH = "patch"
    DELETE = "delete"
    PUSH = "push"
    LOAD = "load"


class AuditStatus(Enum):
    """Outcome of a guarded write."""

    OK = "ok"
    ERROR = "error"


def now_iso(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with milliseconds and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def make_correlation_id(now: Optional[datetime] = None) -> str:
    """Filesystem-safe form of now_iso(): ':' and '.' become '-'."""
    return now_iso(now).replace(":", "-").replace(".", "-")


@dataclass(frozen=True)
class AuditEntry:
    """One record per guarded write attempt.

    Attributes:
        id: Correlation id shared with the triggering snapshot
        ts: When the entry was recorded (ISO-8601)
        op: Operation kind
        path: Target database path
        status: ok or error
        backup_file: Snapshot filename taken before the write, if any
        error: Failure message, present iff status is error
        duration_ms: Wall-clock time of the wrapped action only
    """

    id: str
    ts: str
    op: OperationKind
    path: str
    status: AuditStatus
    backup_file: Optional[str] = None
    error: Optional[str] = None
    duration_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the ledger line mapping."""
        data: Dict[str, Any] = {
            "id": self.id,
            "ts": self.ts,
            "op": self.op.value,
            "path": self.path,
            "status": self.status.value,
        }
        if self.backup_file:
            data["backupFile"] = self.backup_file
        if self.error is not None:
            data["error"] = self.error
        if self.duration_ms is not None:
            data["durationMs"] = self.duration_ms
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AuditEntry:
        """Create from a ledger line mapping.

        Raises:
            KeyError: If a required key is missing
            ValueError: If op or status is unknown
        """
        return cls(
            id=data["id"],
            ts=data["ts"],
            op=OperationKind(data["op"]),
            path=data["path"],
            status=AuditStatus(data["status"]),
            backup_file=data.get("backupFile"),
            error=data.get("error"),
            duration_ms=data.get("durationMs"),
        )

    def matches_path(self, path: str) -> bool:
        """Exact match or descendant of `path`."""
        return path_matches(self.path, path)


def path_matches(candidate: str, path: str) -> bool:
    """Whether `candidate` equals `path` or lies under it.

    Leading and trailing slashes are ignored, so "/" (like "") is the root
    and matches every path.
    """
    prefix = path.strip("/")
    if not prefix:
        return True
    candidate = candidate.strip("/")
    return candidate == prefix or candidate.startswith(prefix + "/")
