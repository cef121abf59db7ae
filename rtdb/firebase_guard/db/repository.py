"""
Typed CRUD repository over one collection path.
"""

from __future__ import annotations

from typing import Any, Dict, Generic, List, Optional, TypeVar

from .base import RtdbClient, join_path
from .values import ValueKind, child_items, kind_of

T = TypeVar("T")


class CollectionRepository(Generic[T]):
    """CRUD helper for the children of a single collection path.

    Example:
        >>> users = CollectionRepository(client, "users")
        >>> await users.create("abc", {"name": "Ada"})
        >>> await users.keys()
        ['abc']
    """

    def __init__(self, client: RtdbClient, collection_path: str) -> None:
        self.client = client
        self.collection_path = collection_path

    def _child(self, item_id: str) -> str:
        return join_path(self.collection_path, item_id)

    async def get_by_id(self, item_id: str) -> Optional[T]:
        return await self.client.get(self._child(item_id))

    async def get_all(self) -> List[T]:
        data = await self.client.get(self.collection_path)
        return [child for _, child in child_items(data)]

    async def keys(self) -> List[str]:
        data = await self.client.get(self.collection_path, shallow=True)
        return [key for key, _ in child_items(data)]

    async def create(self, item_id: str, data: T) -> None:
        await self.client.set(self._child(item_id), data)

    async def update(self, item_id: str, data: Dict[str, Any]) -> None:
        await self.client.update(self._child(item_id), data)

    async def remove(self, item_id: str) -> None:
        await self.client.delete(self._child(item_id))

    async def push(self, data: T) -> str:
        return await self.client.push(self.collection_path, data)

    async def exists(self, item_id: str) -> bool:
        return kind_of(await self.get_by_id(item_id)) != ValueKind.NULL
