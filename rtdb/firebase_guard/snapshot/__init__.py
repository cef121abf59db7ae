"""
Snapshot module - point-in-time copies of database subtrees.

This module handles:
- YAML (de)serialization of subtrees with reserved `_path`/`_value` keys
- The self-describing snapshot filename grammar
- Creating, listing and restoring snapshots

Invariants:
    - Snapshot metadata is recoverable from the filename alone
    - Restores of multi-key documents are chunked per top-level key
    - Restoring the same snapshot twice leaves the same state

How to change safely:
    - Test restore with old snapshots before format changes
    - Maintain backward compatibility in parse_filename
"""

from .codec import LoadProgress, SnapshotCodec, build_document
from .filenames import SnapshotMeta, build_filename, decode_path, encode_path, parse_filename
from .store import SnapshotStore

__all__ = [
    "SnapshotCodec",
    "SnapshotStore",
    "SnapshotMeta",
    "LoadProgress",
    "build_document",
    "build_filename",
    "parse_filename",
    "encode_path",
    "decode_path",
]
