"""
Error types for the write-safety subsystem.

This module defines all exception types raised by the ledger, the snapshot
codec/store and the write guard:
- GuardError: Base exception
- NotFoundError: Missing snapshot file or absent database path
- MalformedSnapshotError: Snapshot document that is not valid YAML or has no restore target
- CorruptLedgerError: Unparseable ledger line
- NotConfiguredError: Snapshot store used without a codec
- BackupFailedError: Pre-write snapshot failure (never raised to callers)
- FeatureDisabledError: Audit or backup turned off in configuration

Invariants:
    - All errors inherit from GuardError
    - Errors carry a stable code for surfaces to map onto status codes
    - A failed write action is re-raised as-is, never wrapped
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class GuardError(Exception):
    """Base exception for all write-safety errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "GUARD_ERROR"
        self.details = details or {}


class NotFoundError(GuardError):
    """A snapshot file or a database path does not exist.

    Raised when:
    - Dumping a path that holds no data
    - Loading or reading a snapshot file that is missing
    """

    def __init__(self, message: str, target: Optional[str] = None) -> None:
        super().__init__(message, code="NOT_FOUND", details={"target": target})
        self.target = target


class MalformedSnapshotError(GuardError):
    """Snapshot document is not valid YAML or has no `_path` to restore it to."""

    def __init__(self, message: str, filename: Optional[str] = None) -> None:
        super().__init__(message, code="MALFORMED_SNAPSHOT", details={"filename": filename})
        self.filename = filename


class CorruptLedgerError(GuardError):
    """A ledger line could not be parsed.

    Attributes:
        line_number: 1-based line number of the offending line
    """

    def __init__(self, message: str, line_number: Optional[int] = None) -> None:
        super().__init__(message, code="CORRUPT_LEDGER", details={"line": line_number})
        self.line_number = line_number


class NotConfiguredError(GuardError):
    """Component used before its collaborator was attached."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="NOT_CONFIGURED")


class BackupFailedError(GuardError):
    """Pre-write snapshot failed.

    Only ever carried inside a BackupOutcome; the write guard logs it and
    continues with the write.
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, code="BACKUP_FAILED", details={"path": path})
        self.path = path


class FeatureDisabledError(GuardError):
    """Audit or backup was requested while disabled by configuration."""

    def __init__(self, feature: str) -> None:
        super().__init__(f"{feature} is disabled", code="FEATURE_DISABLED", details={"feature": feature})
        self.feature = feature
