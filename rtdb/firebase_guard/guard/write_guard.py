"""
Write guard - the audit/backup orchestrator.

Every mutating operation runs through WriteGuard.run(), which:
1. Generates a correlation id
2. Attempts a snapshot of the target path (if the operation kind is in the
   backup allow-list)
3. Executes the write action, timing only this step
4. Appends exactly one ledger entry, whether the action succeeded or raised

Invariants:
    - Snapshot attempt, then action, then ledger append, in that order
    - A snapshot failure never prevents the action from running
    - An action failure (cancellation included) is recorded, then the
      original exception propagates, even if recording it fails
    - The ledger entry and the snapshot share the correlation id

How to change safely:
    - Record on both the success and the failure path before returning
    - Keep backup failures inside BackupOutcome; never let them raise
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from ..audit.entry import AuditEntry, AuditStatus, OperationKind, make_correlation_id, now_iso
from ..audit.ledger import AuditLedger
from ..errors import BackupFailedError
from ..snapshot.store import SnapshotStore

logger = logging.getLogger(__name__)

WriteAction = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class BackupOutcome:
    """Result of the pre-write snapshot attempt.

    Attributes:
        file: Snapshot filename if one was written
        error: Failure if the attempt failed
        attempted: Whether a snapshot was attempted at all
    """

    file: Optional[str] = None
    error: Optional[BackupFailedError] = None
    attempted: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class GuardResult:
    """What a guarded write returns to its caller.

    Attributes:
        result: Return value of the write action
        correlation_id: Id shared by the ledger entry and the snapshot
        backup_file: Snapshot filename, if a snapshot was taken
    """

    result: Any
    correlation_id: str
    backup_file: Optional[str] = None

    def to_dict(self) -> dict:
        """Correlation record as reported to agents."""
        data = {"id": self.correlation_id}
        if self.backup_file:
            data["backupFile"] = self.backup_file
        return data


class WriteGuard:
    """Wraps write actions with snapshot and audit.

    Attributes:
        ledger: AuditLedger to record attempts in (optional)
        store: SnapshotStore for pre-write snapshots (optional)

    Example:
        >>> guard = WriteGuard(ledger, store)
        >>> outcome = await guard.run(
        ...     OperationKind.DELETE, "users/abc", lambda: client.delete("users/abc")
        ... )
        >>> outcome.backup_file
        'delete_users.abc_2026-02-18T12-00-00-000Z.yaml'
    """

    def __init__(
        self,
        ledger: Optional[AuditLedger] = None,
        store: Optional[SnapshotStore] = None,
    ) -> None:
        self.ledger = ledger
        self.store = store

    def _next_id(self) -> str:
        if self.ledger is not None:
            return self.ledger.make_id()
        return make_correlation_id()

    async def _attempt_backup(
        self,
        op: OperationKind,
        path: str,
        correlation_id: str,
    ) -> BackupOutcome:
        if self.store is None or not self.store.should_backup(op):
            return BackupOutcome()
        try:
            file_path = await self.store.backup(path, op, correlation_id)
        except Exception as e:
            return BackupOutcome(
                error=BackupFailedError(f"backup failed for {op.value} {path}: {e}", path=path),
                attempted=True,
            )
        return BackupOutcome(file=Path(file_path).name, attempted=True)

    async def run(
        self,
        op: OperationKind,
        path: str,
        action: WriteAction,
        reference_file: Optional[str] = None,
    ) -> GuardResult:
        """Run a write action under snapshot and audit.

        Args:
            op: Operation kind
            path: Target database path
            action: Zero-argument coroutine function performing the write
            reference_file: Recorded as the entry's backupFile when no
                pre-write snapshot was taken (e.g. the snapshot being restored)

        Returns:
            GuardResult with the action's result and the correlation id

        Raises:
            BaseException: Whatever the action raised, after it was recorded
        """
        correlation_id = self._next_id()

        backup = await self._attempt_backup(op, path, correlation_id)
        if backup.failed:
            logger.warning(
                backup.error.message,
                extra={"audit_id": correlation_id, "op": op.value, "path": path},
            )
        backup_file = backup.file or reference_file

        started = time.monotonic()
        try:
            result = await action()
        except BaseException as e:
            entry = self._entry(
                correlation_id, op, path, started,
                status=AuditStatus.ERROR,
                backup_file=backup_file,
                error=str(e) or type(e).__name__,
            )
            try:
                await self._record(entry)
            except Exception as ledger_error:
                logger.error(
                    f"Failed to record {op.value} {path or '/'}: {ledger_error}",
                    extra={"audit_id": correlation_id},
                )
                raise e from ledger_error
            raise

        await self._record(
            self._entry(
                correlation_id, op, path, started,
                status=AuditStatus.OK,
                backup_file=backup_file,
            )
        )
        return GuardResult(result=result, correlation_id=correlation_id, backup_file=backup.file)

    @staticmethod
    def _entry(
        correlation_id: str,
        op: OperationKind,
        path: str,
        started: float,
        status: AuditStatus,
        backup_file: Optional[str],
        error: Optional[str] = None,
    ) -> AuditEntry:
        return AuditEntry(
            id=correlation_id,
            ts=now_iso(),
            op=op,
            path=path,
            status=status,
            backup_file=backup_file,
            error=error,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    async def _record(self, entry: AuditEntry) -> None:
        if self.ledger is not None and self.ledger.enabled:
            await self.ledger.append(entry)
