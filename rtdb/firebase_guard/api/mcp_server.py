"""
MCP server for Firebase Guard.

Exposes every servicer operation as an MCP tool so an agent can browse the
database, write through the safety net, and recover with the snapshot and
audit tools. Tools return JSON text.

Invariants:
    - Tool names and semantics match the HTTP endpoints one to one
    - Write tools are guarded by the servicer, never call the client directly
    - Errors surface to the agent as tool errors with the original message

How to change safely:
    - Add new tools, don't rename existing ones (agents remember names)
    - Keep descriptions explicit about cost: agents decide from them
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from ..db.base import QueryOptions
from .._version import __version__
from .servicer import DEFAULT_AUDIT_LIMIT, RtdbServicer

logger = logging.getLogger(__name__)

SERVER_NAME = "rtdb-guard"

AGENT_INSTRUCTIONS = """You are connected to a Firebase Realtime Database (RTDB) via rtdb-guard.

Best practices, follow these always:
- NEVER fetch a path with shallow=false or use get_db_list without first checking its size.
  Call get_db_keys or get_db (shallow=true, the default) first to see how many children exist.
- For large collections (>20 children), use get_db_query with orderBy plus limitToFirst or
  limitToLast instead of fetching everything.
- Use get_structure to explore the top-level layout of the database. It is fast and cheap.
- Write tools (put_db, patch_db, delete_db) snapshot the path first and append an audit entry.
  Confirm destructive changes with the user first.
- To undo a write, find its entry with audit_list, then pass its backupFile to backup_restore.
- When looking for a specific record, use get_db_query with equalTo instead of downloading
  the whole collection."""


def to_text(payload: Any) -> str:
    """Serialize a tool result."""
    return json.dumps(payload, ensure_ascii=False, indent=2)


def create_mcp_server(servicer: RtdbServicer, name: str = SERVER_NAME) -> FastMCP:
    """Create the MCP server with one tool per servicer operation.

    Args:
        servicer: RtdbServicer instance
        name: Server name reported to clients

    Returns:
        FastMCP server (run with .run("stdio"))
    """
    mcp = FastMCP(name, instructions=AGENT_INSTRUCTIONS)

    @mcp.tool(
        name="get_db",
        description=(
            "Read data at any RTDB path. Default shallow=true returns keys with a type/count "
            "summary inline. shallow=false fetches the full data into a cache file and returns "
            "metadata plus the file path. Check size with get_db_keys before using shallow=false."
        ),
    )
    async def get_db(path: str = "", shallow: bool = True) -> str:
        return to_text(await servicer.get(path, shallow=shallow))

    @mcp.tool(
        name="put_db",
        description=(
            "Set (replace) data at an RTDB path. Snapshots the path before writing and "
            "appends an audit entry."
        ),
    )
    async def put_db(path: str, value: Any) -> str:
        return to_text(await servicer.put(path, value))

    @mcp.tool(
        name="patch_db",
        description=(
            "Merge-update data at an RTDB path (shallow merge). Snapshots the path before "
            "writing and appends an audit entry."
        ),
    )
    async def patch_db(path: str, value: Dict[str, Any]) -> str:
        return to_text(await servicer.patch(path, value))

    @mcp.tool(
        name="delete_db",
        description=(
            "Remove data at an RTDB path. Snapshots the path before deleting and appends "
            "an audit entry."
        ),
    )
    async def delete_db(path: str) -> str:
        return to_text(await servicer.delete(path))

    @mcp.tool(
        name="get_db_list",
        description=(
            "List children at an RTDB path as an array, cached to a file. Downloads all "
            "child data: check the count with get_db_keys first."
        ),
    )
    async def get_db_list(path: str = "") -> str:
        return to_text(await servicer.list_children(path))

    @mcp.tool(
        name="get_db_keys",
        description=(
            "List child keys at an RTDB path. Use this to check the size of a collection "
            "before fetching full data."
        ),
    )
    async def get_db_keys(path: str = "") -> str:
        return to_text(await servicer.child_keys(path))

    @mcp.tool(
        name="push_db",
        description="Push a new child with an auto-generated key at an RTDB path. Appends an audit entry.",
    )
    async def push_db(path: str, value: Any) -> str:
        return to_text(await servicer.push(path, value))

    @mcp.tool(
        name="get_db_query",
        description=(
            "Query RTDB with orderBy, equalTo, startAt, endAt, limitToFirst, limitToLast. "
            "The result is cached to a file; returns metadata plus the file path."
        ),
    )
    async def get_db_query(
        path: str = "",
        orderBy: Optional[str] = None,
        equalTo: Any = None,
        startAt: Any = None,
        endAt: Any = None,
        limitToFirst: Optional[int] = None,
        limitToLast: Optional[int] = None,
    ) -> str:
        options = QueryOptions(
            order_by=orderBy,
            equal_to=equalTo,
            start_at=startAt,
            end_at=endAt,
            limit_to_first=limitToFirst,
            limit_to_last=limitToLast,
        )
        return to_text(await servicer.query(path, options))

    @mcp.tool(name="dump_file", description="Dump an RTDB path to a local YAML file for inspection.")
    async def dump_file(path: str, filename: Optional[str] = None) -> str:
        return to_text(await servicer.dump(path, filename))

    @mcp.tool(
        name="load_file",
        description=(
            "Load a local YAML file back into RTDB at the file's _path. Appends an audit entry."
        ),
    )
    async def load_file(filename: str) -> str:
        return to_text(await servicer.load_file(filename))

    @mcp.tool(name="list_files", description="List local YAML dump files.")
    async def list_files() -> str:
        return to_text(servicer.list_files())

    @mcp.tool(name="read_file", description="Read and return the contents of a local YAML dump file.")
    async def read_file(filename: str) -> str:
        return to_text(await servicer.read_file(filename))

    @mcp.tool(
        name="backup_create",
        description=(
            "Create a manual snapshot of an RTDB path (the whole database if path is empty)."
        ),
    )
    async def backup_create(path: str = "") -> str:
        return to_text(await servicer.create_backup(path))

    @mcp.tool(
        name="backup_list",
        description=(
            "List snapshots, newest first. Optionally filter by op "
            "(put/patch/delete/push/load) and by path prefix."
        ),
    )
    async def backup_list(op: Optional[str] = None, path: Optional[str] = None) -> str:
        return to_text(servicer.list_backups(op=op, path=path))

    @mcp.tool(name="backup_read", description="Read the contents of a snapshot file.")
    async def backup_read(filename: str) -> str:
        return to_text(await servicer.read_backup(filename))

    @mcp.tool(
        name="backup_restore",
        description=(
            "Restore a snapshot file into RTDB to recover from a failed or unwanted write. "
            "The snapshot's _path decides where data is written."
        ),
    )
    async def backup_restore(filename: str) -> str:
        return to_text(await servicer.restore_backup(filename))

    @mcp.tool(
        name="audit_list",
        description=(
            "List recent audit entries for write operations, most recent first. "
            "Filter by op and path prefix."
        ),
    )
    async def audit_list(
        op: Optional[str] = None,
        path: Optional[str] = None,
        limit: int = DEFAULT_AUDIT_LIMIT,
    ) -> str:
        return to_text(await servicer.list_audit(op=op, path=path, limit=limit))

    @mcp.tool(name="get_structure", description="Show the top-level keys of the database.")
    async def get_structure() -> str:
        return to_text(await servicer.structure())

    @mcp.tool(name="get_rules", description="Read database.rules.json from the working directory.")
    async def get_rules() -> str:
        return to_text(servicer.rules())

    @mcp.tool(
        name="get_config",
        description=(
            "Show resolved runtime config: cwd, base path, working directories, "
            "audit and backup settings, database URL. Use it to troubleshoot setup."
        ),
    )
    async def get_config() -> str:
        return to_text(servicer.runtime_info())

    logger.debug(f"MCP server {name} {__version__} created")
    return mcp
