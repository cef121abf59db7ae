"""
Snapshot store (backup manager).

Creates named snapshots of database paths, lists them from their filenames,
and restores them. No index is kept next to the files: the filename grammar
in filenames.py is the metadata, so the listing can never disagree with the
directory contents.

Invariants:
    - Snapshots are only ever added to the directory, never rewritten
    - Files that do not decode are ignored by list(), never an error
    - Listings are newest first

How to change safely:
    - Keep parse_filename able to read every name build_filename produced
    - Add new filters to list() without changing the defaults
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional

from ..audit.entry import OperationKind, path_matches
from ..errors import NotConfiguredError
from .codec import SNAPSHOT_EXTENSIONS, ProgressCallback, SnapshotCodec
from .filenames import DEFAULT_SEPARATOR, SnapshotMeta, build_filename, parse_filename

logger = logging.getLogger(__name__)

DEFAULT_OPERATIONS = (OperationKind.PUT, OperationKind.PATCH, OperationKind.DELETE)


class SnapshotStore:
    """Named, self-describing snapshots of database paths.

    Attributes:
        directory: Absolute snapshot directory
        codec: SnapshotCodec used to dump and load (required for writes)
        enabled: Whether guarded writes take snapshots
        operations: Operation kinds that trigger a pre-write snapshot

    Example:
        >>> store = SnapshotStore(".mcp-firebase/backups/", codec)
        >>> file_path = await store.backup("users/abc", OperationKind.DELETE, audit_id)
        >>> store.list(op=OperationKind.DELETE, path="users")
    """

    def __init__(
        self,
        directory: str,
        codec: Optional[SnapshotCodec] = None,
        enabled: bool = True,
        operations: Iterable[OperationKind] = DEFAULT_OPERATIONS,
        separator: str = DEFAULT_SEPARATOR,
    ) -> None:
        self.directory = Path(directory).resolve()
        self.codec = codec
        self.enabled = enabled
        self.operations = tuple(operations)
        self.separator = separator

    def should_backup(self, op: OperationKind) -> bool:
        """Whether a guarded write of this kind takes a snapshot first."""
        return self.enabled and op in self.operations

    def _require_codec(self) -> SnapshotCodec:
        if self.codec is None:
            raise NotConfiguredError("SnapshotStore: codec not initialized")
        return self.codec

    async def backup(
        self,
        path: str,
        op: Optional[OperationKind] = None,
        correlation_id: Optional[str] = None,
    ) -> str:
        """Snapshot a database path.

        Args:
            path: Database path to snapshot
            op: Operation that triggered the snapshot (None for manual)
            correlation_id: Audit id to embed (defaults to the current time)

        Returns:
            Full path of the snapshot file

        Raises:
            NotConfiguredError: If no codec is attached
            NotFoundError: If nothing exists at the path
        """
        codec = self._require_codec()
        filename = build_filename(path, op, correlation_id, separator=self.separator)
        file_path = await codec.dump(path, filename, str(self.directory))
        logger.info(
            "Created snapshot",
            extra={"path": path, "op": op.value if op else None, "file": filename},
        )
        return file_path

    def list(
        self,
        op: Optional[OperationKind] = None,
        path: Optional[str] = None,
    ) -> List[SnapshotMeta]:
        """Snapshots decoded from filenames, newest first.

        Args:
            op: Only snapshots taken for this operation kind
            path: Only snapshots of this path or below it
        """
        if not self.directory.exists():
            return []

        metas = []
        for entry in self.directory.iterdir():
            if not entry.is_file() or entry.suffix not in SNAPSHOT_EXTENSIONS:
                continue
            meta = parse_filename(entry.name, self.separator)
            if meta is not None:
                metas.append(meta)

        if op is not None:
            metas = [m for m in metas if m.op == op]
        if path:
            metas = [m for m in metas if path_matches(m.path, path)]
        metas.sort(key=lambda m: (m.correlation_id, m.file))
        metas.reverse()
        return metas

    async def read(self, filename: str) -> Any:
        """Parsed content of a snapshot file.

        Raises:
            NotFoundError: If the file does not exist
        """
        return await self._require_codec().read_file(filename, str(self.directory))

    async def target_of(self, filename: str) -> str:
        """Database path a snapshot restores to."""
        return await self._require_codec().read_target(filename, str(self.directory))

    async def restore(self, filename: str, progress: Optional[ProgressCallback] = None) -> str:
        """Replay a snapshot into the database.

        Returns:
            The database path restored to

        Raises:
            NotConfiguredError: If no codec is attached
            NotFoundError: If the snapshot does not exist
            MalformedSnapshotError: If the snapshot has no `_path`
        """
        restored = await self._require_codec().load(filename, str(self.directory), progress)
        logger.info("Restored snapshot", extra={"file": filename, "path": restored})
        return restored
