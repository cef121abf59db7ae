"""
Firebase Admin SDK backend for the database client.

Wraps firebase_admin's Realtime Database references behind the RtdbClient
protocol. The SDK is blocking, so every call is run in the default executor
to keep the event loop responsive.

Invariants:
    - One firebase_admin App per configured app name, reused if it exists
    - All paths are resolved against the configured base path
    - SDK failures surface as DatabaseError

How to change safely:
    - Keep QueryOptions translation in sync with the in-memory backend
    - Never log service account contents
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict

import firebase_admin
from firebase_admin import credentials, db
from firebase_admin.exceptions import FirebaseError

from ..config import FirebaseConfig
from .base import DatabaseConnectionError, DatabaseError, QueryOptions, join_path

logger = logging.getLogger(__name__)


class FirebaseRtdbClient:
    """RtdbClient backed by firebase-admin.

    Attributes:
        config: Firebase configuration
        app: Initialized firebase_admin App

    Example:
        >>> client = FirebaseRtdbClient(FirebaseConfig.from_env())
        >>> keys = await client.get("users", shallow=True)
    """

    def __init__(self, config: FirebaseConfig) -> None:
        """Initialize the client and its firebase_admin App.

        Raises:
            DatabaseConnectionError: If credentials or database URL are missing
        """
        self.config = config
        self.app = self._initialize_app()

    def _initialize_app(self) -> firebase_admin.App:
        source = self.config.service_account
        if not source:
            raise DatabaseConnectionError(
                "FIREBASE_SERVICE_ACCOUNT env var is required (file path or JSON string)"
            )
        if not self.config.database_url:
            raise DatabaseConnectionError(
                "FIREBASE_DATABASE_URL env var or databaseURL option is required"
            )

        try:
            return firebase_admin.get_app(self.config.app_name)
        except ValueError:
            pass

        if source.lstrip().startswith("{"):
            account = json.loads(source)
        else:
            account = json.loads(Path(source).read_text(encoding="utf-8"))

        logger.info(
            "Initializing Firebase app",
            extra={"app_name": self.config.app_name, "database_url": self.config.database_url},
        )
        return firebase_admin.initialize_app(
            credentials.Certificate(account),
            {"databaseURL": self.config.database_url},
            name=self.config.app_name,
        )

    def resolve(self, path: str) -> str:
        """Absolute database path for a path relative to the base path."""
        return "/" + join_path(self.config.base_path, path)

    def _ref(self, path: str) -> db.Reference:
        return db.reference(self.resolve(path), app=self.app)

    async def _run(self, operation: str, path: str, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(fn, *args))
        except FirebaseError as e:
            raise DatabaseError(f"{operation} {path or '/'} failed: {e}") from e

    async def get(self, path: str, shallow: bool = False) -> Any:
        """Read the value at a path."""
        ref = self._ref(path)
        return await self._run("get", path, functools.partial(ref.get, shallow=shallow))

    async def set(self, path: str, value: Any) -> None:
        """Replace the value at a path."""
        await self._run("set", path, self._ref(path).set, value)

    async def update(self, path: str, value: Dict[str, Any]) -> None:
        """Merge children into the value at a path."""
        await self._run("update", path, self._ref(path).update, value)

    async def delete(self, path: str) -> None:
        """Remove the value at a path."""
        await self._run("delete", path, self._ref(path).delete)

    async def push(self, path: str, value: Any) -> str:
        """Append a child under a generated key."""
        new_ref = await self._run("push", path, self._ref(path).push, value)
        return new_ref.key

    async def query(self, path: str, options: QueryOptions) -> Any:
        """Run an ordered query; limits without order_by order by key."""
        ref = self._ref(path)
        if options.order_by in (None, "$key"):
            query = ref.order_by_key()
        elif options.order_by == "$value":
            query = ref.order_by_value()
        else:
            query = ref.order_by_child(options.order_by)

        if options.equal_to is not None:
            query = query.equal_to(options.equal_to)
        if options.start_at is not None:
            query = query.start_at(options.start_at)
        if options.end_at is not None:
            query = query.end_at(options.end_at)
        if options.limit_to_first is not None:
            query = query.limit_to_first(options.limit_to_first)
        if options.limit_to_last is not None:
            query = query.limit_to_last(options.limit_to_last)

        logger.debug("Running query", extra={"path": path, **options.to_dict()})
        return await self._run("query", path, query.get)
