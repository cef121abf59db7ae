"""
Remote database client abstraction.

This module provides a pluggable client for the Realtime Database:
- Firebase Admin SDK (production)
- In-memory tree (testing and local development)

Invariants:
    - get() returns None for absent paths, never raises for them
    - Writes of None delete
    - Both backends order push keys chronologically

How to change safely:
    - New backends must implement the RtdbClient protocol
    - Run the in-memory test suite against any semantic change
"""

from .base import (
    DatabaseConnectionError,
    DatabaseError,
    QueryOptions,
    RtdbClient,
    create_client,
    generate_push_key,
    join_path,
    split_path,
)
from .memory import InMemoryRtdbClient
from .repository import CollectionRepository
from .values import JsonValue, ValueKind, child_items, kind_of

__all__ = [
    # Protocol and types
    "RtdbClient",
    "QueryOptions",
    "DatabaseError",
    "DatabaseConnectionError",
    "JsonValue",
    "ValueKind",
    # Helpers
    "create_client",
    "generate_push_key",
    "join_path",
    "split_path",
    "kind_of",
    "child_items",
    # Implementations
    "InMemoryRtdbClient",
    "CollectionRepository",
]
