"""
Base protocol and types for the remote database client.

This module defines the RtdbClient protocol that all backends implement,
along with query options, path helpers and client errors.

Invariants:
    - Paths are slash-delimited and resolved against a base path
    - get() returns None when nothing exists at a path
    - Writing None to a path deletes it
    - update() merges top-level keys and never removes unlisted children

How to change safely:
    - Protocol changes require updating all implementations
    - Keep the in-memory backend semantically aligned with Firebase
"""

from __future__ import annotations

import random
import time
from abc import abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..config import FirebaseConfig

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


class DatabaseError(Exception):
    """Base exception for database client operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Client could not be initialized or reach the database."""

    pass


@dataclass(frozen=True)
class QueryOptions:
    """Filters for an ordered query.

    Attributes:
        order_by: Child key to order by ("$key" and "$value" are special)
        equal_to: Only children whose ordered value equals this
        start_at: Lower bound on the ordered value
        end_at: Upper bound on the ordered value
        limit_to_first: Keep the first N children
        limit_to_last: Keep the last N children
    """

    order_by: Optional[str] = None
    equal_to: Any = None
    start_at: Any = None
    end_at: Any = None
    limit_to_first: Optional[int] = None
    limit_to_last: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Non-empty options, for logging."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def split_path(path: str) -> list[str]:
    """Split a path into its segments, ignoring empty ones."""
    return [segment for segment in (path or "").split("/") if segment]


def join_path(*parts: str) -> str:
    """Join path fragments with single slashes."""
    segments: list[str] = []
    for part in parts:
        segments.extend(split_path(part))
    return "/".join(segments)


def generate_push_key(now_ms: Optional[int] = None) -> str:
    """Generate a chronologically ordered 20-character push key."""
    now = int(time.time() * 1000) if now_ms is None else now_ms
    time_chars = []
    for _ in range(8):
        time_chars.append(PUSH_CHARS[now % 64])
        now //= 64
    random_chars = [random.choice(PUSH_CHARS) for _ in range(12)]
    return "".join(reversed(time_chars)) + "".join(random_chars)


@runtime_checkable
class RtdbClient(Protocol):
    """Protocol for remote database backends.

    Example:
        >>> client = InMemoryRtdbClient()
        >>> await client.set("users/abc", {"name": "Ada"})
        >>> await client.get("users/abc")
        {'name': 'Ada'}
    """

    @abstractmethod
    async def get(self, path: str, shallow: bool = False) -> Any:
        """Read the value at a path.

        Args:
            path: Database path (empty for root)
            shallow: If True, children are replaced by True

        Returns:
            The value, or None if nothing exists at the path
        """
        ...

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Replace the value at a path."""
        ...

    @abstractmethod
    async def update(self, path: str, value: Dict[str, Any]) -> None:
        """Merge the given children into the value at a path."""
        ...

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the value at a path."""
        ...

    @abstractmethod
    async def push(self, path: str, value: Any) -> str:
        """Append a child under a generated key.

        Returns:
            The generated key
        """
        ...

    @abstractmethod
    async def query(self, path: str, options: QueryOptions) -> Any:
        """Run an ordered, filtered query against the children of a path."""
        ...


def create_client(config: "FirebaseConfig") -> RtdbClient:
    """Factory function to create a database client from configuration.

    Args:
        config: Firebase configuration

    Returns:
        FirebaseRtdbClient connected to the configured database
    """
    from .firebase import FirebaseRtdbClient

    return FirebaseRtdbClient(config)
