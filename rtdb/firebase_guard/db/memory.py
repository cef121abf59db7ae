"""
In-memory database client for testing.

This module provides a dict-backed RtdbClient for:
- Unit tests
- Integration tests of the servicer and surfaces
- Local development without a Firebase project

Invariants:
    - All data is lost on process exit
    - Follows Firebase write semantics (None deletes, empty objects vanish)
    - Returned values are deep copies; callers cannot mutate the tree

How to change safely:
    - This is test-support code, changes don't affect production
    - Keep interface compatible with the RtdbClient protocol
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Optional, Tuple

from .base import QueryOptions, generate_push_key, join_path, split_path
from .values import ValueKind, child_items, kind_of

logger = logging.getLogger(__name__)


def _prune(value: Any) -> Any:
    """Drop None children and empty objects, recursively."""
    kind = kind_of(value)
    if kind == ValueKind.OBJECT:
        pruned = {}
        for key, child in value.items():
            child = _prune(child)
            if child is not None:
                pruned[str(key)] = child
        return pruned or None
    if kind == ValueKind.ARRAY:
        items = [_prune(child) for child in value]
        return items if any(item is not None for item in items) else None
    return value


def _sort_rank(value: Any) -> Tuple[int, Any]:
    """Ordering key matching Firebase's cross-type ordering."""
    kind = kind_of(value)
    if kind == ValueKind.NULL:
        return (0, 0)
    if kind == ValueKind.BOOLEAN:
        return (1, value)
    if kind == ValueKind.NUMBER:
        return (2, value)
    if kind == ValueKind.STRING:
        return (3, value)
    return (4, 0)


class InMemoryRtdbClient:
    """In-memory implementation of RtdbClient for testing.

    Attributes:
        calls: Log of (method, path, value) tuples, in call order

    Example:
        >>> client = InMemoryRtdbClient({"users": {"abc": {"name": "Ada"}}})
        >>> await client.get("users/abc/name")
        'Ada'
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the in-memory tree.

        Args:
            initial: Optional initial root value
        """
        self._root: Any = _prune(copy.deepcopy(initial)) if initial else None
        self._lock = asyncio.Lock()
        self._failures: Dict[str, Deque[Exception]] = defaultdict(deque)
        self.calls: List[Tuple[str, str, Any]] = []

    async def get(self, path: str, shallow: bool = False) -> Any:
        """Read the value at a path (deep copy)."""
        self._record("get", path, None)
        value = self._lookup(split_path(path))
        if shallow and kind_of(value) == ValueKind.OBJECT:
            return {
                key: (True if kind_of(child).is_structured else child)
                for key, child in value.items()
            }
        return copy.deepcopy(value)

    async def set(self, path: str, value: Any) -> None:
        """Replace the value at a path."""
        self._record("set", path, value)
        async with self._lock:
            self._write(split_path(path), value)

    async def update(self, path: str, value: Dict[str, Any]) -> None:
        """Merge children into a path; keys may be multi-segment paths."""
        self._record("update", path, value)
        if kind_of(value) != ValueKind.OBJECT or not value:
            raise ValueError("update() requires a non-empty object")
        async with self._lock:
            for key, child in value.items():
                self._write(split_path(join_path(path, key)), child)

    async def delete(self, path: str) -> None:
        """Remove the value at a path."""
        self._record("delete", path, None)
        async with self._lock:
            self._write(split_path(path), None)

    async def push(self, path: str, value: Any) -> str:
        """Append a child under a generated key."""
        self._record("push", path, value)
        key = generate_push_key()
        async with self._lock:
            self._write(split_path(join_path(path, key)), value)
        return key

    async def query(self, path: str, options: QueryOptions) -> Any:
        """Order, filter and limit the children of a path."""
        self._record("query", path, options.to_dict())
        items = child_items(self._lookup(split_path(path)))

        def ordered_value(item: Tuple[str, Any]) -> Any:
            key, child = item
            if options.order_by in (None, "$key"):
                return key
            if options.order_by == "$value":
                return child
            if kind_of(child) == ValueKind.OBJECT:
                return child.get(options.order_by)
            return None

        items.sort(key=lambda item: (_sort_rank(ordered_value(item)), item[0]))

        if options.equal_to is not None:
            items = [i for i in items if ordered_value(i) == options.equal_to]
        if options.start_at is not None:
            low = _sort_rank(options.start_at)
            items = [i for i in items if _sort_rank(ordered_value(i)) >= low]
        if options.end_at is not None:
            high = _sort_rank(options.end_at)
            items = [i for i in items if _sort_rank(ordered_value(i)) <= high]
        if options.limit_to_first is not None:
            items = items[: options.limit_to_first]
        if options.limit_to_last is not None:
            items = items[-options.limit_to_last :] if options.limit_to_last else []

        if not items:
            return None
        return {key: copy.deepcopy(child) for key, child in items}

    def _lookup(self, segments: List[str]) -> Any:
        node = self._root
        for segment in segments:
            if kind_of(node) == ValueKind.OBJECT:
                node = node.get(segment)
            elif kind_of(node) == ValueKind.ARRAY and segment.isdigit():
                index = int(segment)
                node = node[index] if index < len(node) else None
            else:
                return None
        return node

    def _write(self, segments: List[str], value: Any) -> None:
        value = _prune(copy.deepcopy(value))
        if not segments:
            self._root = value
            return

        if kind_of(self._root) != ValueKind.OBJECT:
            self._root = dict(child_items(self._root))
        parents = [self._root]
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if kind_of(child) != ValueKind.OBJECT:
                child = dict(child_items(child))
                node[segment] = child
            node = child
            parents.append(node)

        if value is None:
            node.pop(segments[-1], None)
        else:
            node[segments[-1]] = value

        # Empty objects do not exist in the database
        for depth in range(len(parents) - 1, 0, -1):
            if parents[depth]:
                break
            parents[depth - 1].pop(segments[depth - 1], None)
        if not self._root:
            self._root = None

    def _record(self, method: str, path: str, value: Any) -> None:
        self.calls.append((method, path, copy.deepcopy(value)))
        if self._failures[method]:
            error = self._failures[method].popleft()
            logger.debug("Injected failure", extra={"method": method, "path": path})
            raise error

    # Testing helpers

    def fail_next(self, method: str, error: Exception) -> None:
        """Make the next call of `method` raise `error`."""
        self._failures[method].append(error)

    def calls_to(self, method: str) -> List[Tuple[str, str, Any]]:
        """Logged calls of one method."""
        return [call for call in self.calls if call[0] == method]

    def snapshot(self) -> Any:
        """Deep copy of the whole tree."""
        return copy.deepcopy(self._root)
