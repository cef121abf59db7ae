"""
Snapshot filename grammar.

    [{op}_]{encodedPath}_{YYYY-MM-DDTHH-mm-ss-SSSZ}.{ext}

The filename is the snapshot's only metadata: listing never opens a file.
The encoded path strips leading/trailing slashes and replaces the remaining
ones with a separator ('.' by default); the root path encodes as `root`.

Known limitations (decoding is best-effort and deliberately not stricter):
    - An encoded path that starts with an operation token (e.g. a node named
      `push_events`) is read as having that operation prefix
    - A path segment that itself contains the separator decodes as two
      segments
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from ..audit.entry import OperationKind, make_correlation_id

ROOT_TOKEN = "root"
DEFAULT_SEPARATOR = "."

_TIMESTAMP_SUFFIX = re.compile(r"(_(\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z))$")
_TOKEN_TIME = re.compile(r"T(\d{2})-(\d{2})-(\d{2})-(\d{3})Z$")


@dataclass(frozen=True)
class SnapshotMeta:
    """Metadata decoded from a snapshot filename.

    Attributes:
        file: Stored filename
        path: Database path the snapshot covers
        ts: Standard ISO timestamp recovered from the suffix
        correlation_id: Raw suffix, equal to the triggering audit entry's id
        op: Operation that triggered the snapshot (None for manual ones)
    """

    file: str
    path: str
    ts: str
    correlation_id: str
    op: Optional[OperationKind] = None

    def to_dict(self) -> dict:
        data = {"file": self.file, "path": self.path, "ts": self.ts, "auditId": self.correlation_id}
        if self.op is not None:
            data["op"] = self.op.value
        return data


def timestamp_token() -> str:
    """Filesystem-safe timestamp for the current instant."""
    return make_correlation_id()


def encode_path(path: str, separator: str = DEFAULT_SEPARATOR) -> str:
    """Filesystem-safe encoding of a database path."""
    trimmed = (path or "").strip("/")
    if not trimmed:
        return ROOT_TOKEN
    return trimmed.replace("/", separator)


def decode_path(encoded: str, separator: str = DEFAULT_SEPARATOR) -> str:
    """Inverse of encode_path for paths without the separator."""
    if not encoded or encoded == ROOT_TOKEN:
        return "/"
    return encoded.replace(separator, "/")


def build_filename(
    path: str,
    op: Optional[OperationKind] = None,
    correlation_id: Optional[str] = None,
    extension: str = "yaml",
    separator: str = DEFAULT_SEPARATOR,
) -> str:
    """Snapshot filename for a path, operation and correlation id."""
    prefix = f"{op.value}_" if op is not None else ""
    token = correlation_id or timestamp_token()
    return f"{prefix}{encode_path(path, separator)}_{token}.{extension}"


def parse_filename(filename: str, separator: str = DEFAULT_SEPARATOR) -> Optional[SnapshotMeta]:
    """Decode a snapshot filename.

    Returns:
        SnapshotMeta, or None if the name has no timestamp suffix
    """
    base = re.sub(r"\.ya?ml$", "", filename)

    op: Optional[OperationKind] = None
    rest = base
    for kind in OperationKind:
        if base.startswith(kind.value + "_"):
            op = kind
            rest = base[len(kind.value) + 1 :]
            break

    match = _TIMESTAMP_SUFFIX.search(rest)
    if not match:
        return None

    correlation_id = match.group(2)
    ts = _TOKEN_TIME.sub(r"T\1:\2:\3.\4Z", correlation_id)
    encoded = rest[: len(rest) - len(match.group(1))]
    return SnapshotMeta(
        file=filename,
        path=decode_path(encoded, separator),
        ts=ts,
        correlation_id=correlation_id,
        op=op,
    )
