"""
YAML snapshot codec.

Serializes a subtree fetched from the database into a self-describing YAML
document, and replays a document back into the database.

Document format:
    _path: users/abc          # reserved: where the subtree came from
    name: Ada                 # the subtree's own top-level children...
    roles: {admin: true}
    # ...or, for a scalar subtree:
    _value: 42

Invariants:
    - Every document carries `_path`; documents without it cannot be loaded
    - Reserved keys (`_path`, `_value`) are never written to the database
    - Multi-key documents are replayed one top-level key at a time, with a
      progress notification after each key

How to change safely:
    - Add new reserved keys with a leading underscore only
    - Test load() against documents written by older versions
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml

from ..db.base import RtdbClient, join_path
from ..db.values import ValueKind, child_items, kind_of
from ..errors import MalformedSnapshotError, NotFoundError
from .filenames import encode_path, timestamp_token

logger = logging.getLogger(__name__)

PATH_KEY = "_path"
VALUE_KEY = "_value"
SNAPSHOT_EXTENSIONS = (".yaml", ".yml")


@dataclass(frozen=True)
class LoadProgress:
    """Progress of a chunked load.

    Attributes:
        filename: Document being loaded
        done: Keys written so far
        total: Keys to write
        key: Key just written
    """

    filename: str
    done: int
    total: int
    key: str

    def __str__(self) -> str:
        return f"load {self.filename}: {self.done}/{self.total} ({self.key})"


ProgressCallback = Callable[[LoadProgress], None]


def log_progress(progress: LoadProgress) -> None:
    """Default progress sink: one INFO line per key."""
    logger.info(str(progress), extra={"done": progress.done, "total": progress.total})


def build_document(path: str, value: Any) -> Dict[str, Any]:
    """Wrap a fetched value into a snapshot document."""
    document: Dict[str, Any] = {PATH_KEY: path}
    if kind_of(value).is_structured:
        document.update(child_items(value))
    else:
        document[VALUE_KEY] = value
    return document


class SnapshotCodec:
    """Dumps subtrees to YAML files and loads them back.

    Attributes:
        client: Database client used for reads and writes
        local_dir: Default directory for dumps

    Example:
        >>> codec = SnapshotCodec(client, ".mcp-firebase/dumps/")
        >>> file_path = await codec.dump("users/abc")
        >>> await codec.load(Path(file_path).name)
        'users/abc'
    """

    def __init__(self, client: RtdbClient, local_dir: str = ".mcp-firebase/dumps/") -> None:
        self.client = client
        self.local_dir = local_dir

    def _directory(self, directory: Optional[str]) -> Path:
        return Path(directory or self.local_dir)

    async def dump(
        self,
        path: str,
        filename: Optional[str] = None,
        directory: Optional[str] = None,
    ) -> str:
        """Dump a database path to a YAML file.

        Args:
            path: Database path to fetch
            filename: Target filename (generated from path and time if omitted)
            directory: Target directory (defaults to local_dir)

        Returns:
            Full path of the written file

        Raises:
            NotFoundError: If nothing exists at the path
        """
        value = await self.client.get(path)
        if kind_of(value) == ValueKind.NULL:
            raise NotFoundError(f"No data at {path or '/'}", target=path)

        if not filename:
            filename = f"{encode_path(path)}_{timestamp_token()}.yaml"

        target_dir = self._directory(directory)
        file_path = target_dir / filename
        text = yaml.safe_dump(
            build_document(path, value),
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
            width=float("inf"),
        )
        await asyncio.get_event_loop().run_in_executor(None, self._write, file_path, text)

        logger.info("Dumped snapshot", extra={"path": path, "file": str(file_path)})
        return str(file_path)

    @staticmethod
    def _write(file_path: Path, text: str) -> None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(text, encoding="utf-8")

    async def read_file(self, filename: str, directory: Optional[str] = None) -> Any:
        """Read and parse a YAML document.

        Raises:
            NotFoundError: If the file does not exist
            MalformedSnapshotError: If the file is not valid YAML
        """
        file_path = self._directory(directory) / filename
        if not file_path.exists():
            raise NotFoundError(f"File not found: {file_path}", target=str(file_path))
        text = await asyncio.get_event_loop().run_in_executor(
            None, file_path.read_text, "utf-8"
        )
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise MalformedSnapshotError(f"Invalid YAML in {filename}: {e}", filename=filename) from e

    async def read_target(self, filename: str, directory: Optional[str] = None) -> str:
        """Path a document would be restored to.

        Raises:
            NotFoundError: If the file does not exist
            MalformedSnapshotError: If the document has no `_path`
        """
        return self._split(await self.read_file(filename, directory), filename)[0]

    @staticmethod
    def _split(document: Any, filename: str) -> tuple[str, Dict[str, Any]]:
        if kind_of(document) != ValueKind.OBJECT or PATH_KEY not in document:
            raise MalformedSnapshotError(f"No {PATH_KEY} found in {filename}", filename=filename)
        # YAML may parse numeric keys (array indices) as ints
        data = {str(key): value for key, value in document.items()}
        path = data.pop(PATH_KEY)
        if path is None:
            raise MalformedSnapshotError(f"No {PATH_KEY} found in {filename}", filename=filename)
        return str(path), data

    async def load(
        self,
        filename: str,
        directory: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Load a YAML document back into the database at its `_path`.

        Documents with more than one top-level key are written one key at a
        time so a large import shows progress and a stalled write loses at
        most one key's worth of work.

        Args:
            filename: Document filename
            directory: Source directory (defaults to local_dir)
            progress: Called after each key of a chunked load

        Returns:
            The database path that was restored

        Raises:
            NotFoundError: If the file does not exist
            MalformedSnapshotError: If the document has no `_path`
        """
        path, data = self._split(await self.read_file(filename, directory), filename)

        if VALUE_KEY in data:
            await self.client.set(path, data[VALUE_KEY])
            return path

        keys: List[str] = list(data)
        if len(keys) <= 1:
            if data:
                await self.client.update(path, data)
            return path

        notify = progress or log_progress
        for done, key in enumerate(keys, start=1):
            value = data[key]
            if kind_of(value) == ValueKind.OBJECT and value:
                await self.client.update(join_path(path, key), value)
            else:
                await self.client.update(path, {key: value})
            notify(LoadProgress(filename=filename, done=done, total=len(keys), key=key))
        return path

    def list_files(self, directory: Optional[str] = None) -> List[str]:
        """YAML files in a directory, sorted by name."""
        target_dir = self._directory(directory)
        if not target_dir.exists():
            return []
        return sorted(
            entry.name
            for entry in target_dir.iterdir()
            if entry.is_file() and entry.suffix in SNAPSHOT_EXTENSIONS
        )

