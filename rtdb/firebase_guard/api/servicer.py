"""
Service layer shared by the HTTP API, the MCP server and the CLI.

The servicer owns no state of its own. It routes reads straight to the
database client (summarized or cached), and every write through the
WriteGuard so it is snapshotted and audited.

Invariants:
    - put, patch, delete, push, load and restore are always guarded
    - Reads never write to the ledger or the snapshot directory
    - Disabled features raise FeatureDisabledError, never fail silently

How to change safely:
    - New write operations must go through self.guard.run()
    - Keep return shapes stable; agents parse them
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..audit.entry import OperationKind
from ..audit.ledger import AuditLedger
from ..cache.file_cache import FileCache
from ..cache.summary import shallow_summary
from ..db.base import QueryOptions, RtdbClient, join_path
from ..db.values import child_items
from ..errors import FeatureDisabledError, NotFoundError
from ..guard.write_guard import WriteGuard
from ..snapshot.codec import SnapshotCodec
from ..snapshot.store import SnapshotStore
from .._version import __version__

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_LIMIT = 50
RULES_FILENAME = "database.rules.json"


def parse_operation(op: Optional[str]) -> Optional[OperationKind]:
    """Operation kind from a request parameter (empty means no filter).

    Raises:
        ValueError: If the value is not a known operation kind
    """
    if not op:
        return None
    try:
        return OperationKind(op)
    except ValueError:
        known = ", ".join(kind.value for kind in OperationKind)
        raise ValueError(f"Unknown op '{op}'. Must be one of: {known}")


class RtdbServicer:
    """Database operations with the write-safety net applied.

    Attributes:
        client: Database client
        codec: YAML codec for manual dumps and loads
        cache: File cache for large reads
        ledger: Audit ledger (None when auditing is disabled)
        store: Snapshot store (None when backups are disabled)
        guard: Write guard over ledger and store

    Example:
        >>> servicer = RtdbServicer(client, codec, cache, ledger, store)
        >>> await servicer.delete("users/abc")
        {'ok': True, 'deleted': 'users/abc', 'id': '...', 'backupFile': '...'}
    """

    def __init__(
        self,
        client: RtdbClient,
        codec: SnapshotCodec,
        cache: FileCache,
        ledger: Optional[AuditLedger] = None,
        store: Optional[SnapshotStore] = None,
        runtime_info: Optional[Dict[str, Any]] = None,
        rules_path: str = RULES_FILENAME,
    ) -> None:
        self.client = client
        self.codec = codec
        self.cache = cache
        self.ledger = ledger
        self.store = store
        self.guard = WriteGuard(ledger, store)
        self._runtime_info = runtime_info or {}
        self.rules_path = rules_path

    def _require_store(self) -> SnapshotStore:
        if self.store is None:
            raise FeatureDisabledError("backup")
        return self.store

    def _require_ledger(self) -> AuditLedger:
        if self.ledger is None:
            raise FeatureDisabledError("audit")
        return self.ledger

    # Reads

    async def get(self, path: str, shallow: bool = True) -> Any:
        """Shallow summary of a path, or the full value cached to a file."""
        data = await self.client.get(path)
        if shallow:
            return shallow_summary(data)
        return self.cache.write("get_db", path, data)

    async def list_children(self, path: str) -> Dict[str, Any]:
        """All children of a path as an array, cached to a file."""
        data = await self.client.get(path)
        return self.cache.write("list_db", path, [child for _, child in child_items(data)])

    async def child_keys(self, path: str) -> List[str]:
        """Child keys of a path, without downloading the children."""
        data = await self.client.get(path, shallow=True)
        return [key for key, _ in child_items(data)]

    async def query(self, path: str, options: QueryOptions) -> Dict[str, Any]:
        """Ordered, filtered query; the result is cached to a file."""
        data = await self.client.query(path, options)
        return self.cache.write("query_db", path, data)

    async def structure(self) -> Any:
        """Top-level keys of the database."""
        keys = await self.client.get("", shallow=True)
        if not isinstance(keys, dict):
            return keys
        return {key: True for key in keys}

    # Guarded writes

    async def put(self, path: str, value: Any) -> Dict[str, Any]:
        """Replace the value at a path."""
        outcome = await self.guard.run(
            OperationKind.PUT, path, lambda: self.client.set(path, value)
        )
        return {"ok": True, "path": path, **outcome.to_dict()}

    async def patch(self, path: str, value: Dict[str, Any]) -> Dict[str, Any]:
        """Merge children into the value at a path."""
        outcome = await self.guard.run(
            OperationKind.PATCH, path, lambda: self.client.update(path, value)
        )
        return {"ok": True, "path": path, **outcome.to_dict()}

    async def delete(self, path: str) -> Dict[str, Any]:
        """Remove the value at a path."""
        outcome = await self.guard.run(
            OperationKind.DELETE, path, lambda: self.client.delete(path)
        )
        return {"ok": True, "deleted": path, **outcome.to_dict()}

    async def push(self, path: str, value: Any) -> Dict[str, Any]:
        """Append a child with a generated key."""
        outcome = await self.guard.run(
            OperationKind.PUSH, path, lambda: self.client.push(path, value)
        )
        key = outcome.result
        return {"ok": True, "key": key, "path": join_path(path, key), **outcome.to_dict()}

    # Local YAML files

    async def dump(self, path: str, filename: Optional[str] = None) -> Dict[str, Any]:
        """Dump a path to a YAML file in the dumps directory."""
        file_path = await self.codec.dump(path, filename)
        return {"ok": True, "file": file_path}

    async def load_file(self, filename: str) -> Dict[str, Any]:
        """Load a YAML file from the dumps directory into the database."""
        target = await self.codec.read_target(filename)
        outcome = await self.guard.run(
            OperationKind.LOAD,
            target,
            lambda: self.codec.load(filename),
            reference_file=filename,
        )
        return {"ok": True, "path": outcome.result, "filename": filename, **outcome.to_dict()}

    def list_files(self) -> List[str]:
        return self.codec.list_files()

    async def read_file(self, filename: str) -> Any:
        return await self.codec.read_file(filename)

    # Snapshots

    async def create_backup(self, path: str = "") -> Dict[str, Any]:
        """Manual snapshot of a path (root when empty)."""
        file_path = await self._require_store().backup(path)
        return {"ok": True, "file": file_path, "path": path}

    def list_backups(self, op: Optional[str] = None, path: Optional[str] = None) -> List[Dict[str, Any]]:
        metas = self._require_store().list(op=parse_operation(op), path=path or None)
        return [meta.to_dict() for meta in metas]

    async def read_backup(self, filename: str) -> Any:
        return await self._require_store().read(filename)

    async def restore_backup(self, filename: str) -> Dict[str, Any]:
        """Replay a snapshot into the database, recorded as a `load`."""
        store = self._require_store()
        target = await store.target_of(filename)
        outcome = await self.guard.run(
            OperationKind.LOAD,
            target,
            lambda: store.restore(filename),
            reference_file=filename,
        )
        return {"ok": True, "restoredPath": outcome.result, "filename": filename, **outcome.to_dict()}

    # Audit

    async def list_audit(
        self,
        op: Optional[str] = None,
        path: Optional[str] = None,
        limit: Optional[int] = DEFAULT_AUDIT_LIMIT,
    ) -> List[Dict[str, Any]]:
        entries = await self._require_ledger().list(
            op=parse_operation(op), path=path or None, limit=limit
        )
        return [entry.to_dict() for entry in entries]

    # Project and runtime

    def rules(self) -> Any:
        """Security rules file from the working directory."""
        rules = Path(self.rules_path)
        if not rules.exists():
            raise NotFoundError(f"{self.rules_path} not found in cwd", target=self.rules_path)
        return json.loads(rules.read_text(encoding="utf-8"))

    def runtime_info(self) -> Dict[str, Any]:
        return dict(self._runtime_info)

    async def health(self) -> Dict[str, Any]:
        return {
            "healthy": True,
            "version": __version__,
            "audit": self.ledger is not None and self.ledger.enabled,
            "backup": self.store is not None and self.store.enabled,
        }
