"""
HTTP server implementation for Firebase Guard.

This module provides a REST API that mirrors the MCP tools.
It's useful for:
- Manual testing and debugging with curl
- Clients that cannot speak MCP
- Dashboards over the audit ledger and snapshot list

Invariants:
    - HTTP endpoints have the same semantics as the MCP tools
    - Writes are always guarded (snapshot + audit) by the servicer
    - JSON request/response format; errors are {"error", "error_code"}

How to change safely:
    - Keep endpoints in sync with the MCP tool list
    - Add new request fields as optional
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any, Optional

from aiohttp import web
from pydantic import BaseModel, ValidationError

from ..config import HttpConfig
from ..db.base import DatabaseError, QueryOptions
from ..errors import (
    FeatureDisabledError,
    GuardError,
    MalformedSnapshotError,
    NotConfiguredError,
    NotFoundError,
)
from .servicer import DEFAULT_AUDIT_LIMIT, RtdbServicer

logger = logging.getLogger(__name__)


class DumpRequest(BaseModel):
    """Body of POST /api/files/dump."""

    path: str
    filename: Optional[str] = None


class FileRequest(BaseModel):
    """Body of POST /api/files/load and POST /api/backup/restore."""

    filename: str


class BackupRequest(BaseModel):
    """Body of POST /api/backup."""

    path: str = ""


def status_for(error: Exception) -> int:
    """HTTP status for an error raised by the servicer."""
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, MalformedSnapshotError):
        return 422
    if isinstance(error, (FeatureDisabledError, NotConfiguredError)):
        return 503
    if isinstance(error, DatabaseError):
        return 502
    return 500


def create_http_app(
    servicer: RtdbServicer,
    config: HttpConfig | None = None,
) -> web.Application:
    """Create an HTTP application for Firebase Guard.

    Args:
        servicer: RtdbServicer instance
        config: HTTP server configuration

    Returns:
        aiohttp Application instance
    """
    config = config or HttpConfig()
    app = web.Application()

    # Add routes
    app.router.add_get("/api/db", lambda r: handle_get_db(r, servicer))
    app.router.add_put("/api/db", lambda r: handle_put_db(r, servicer))
    app.router.add_patch("/api/db", lambda r: handle_patch_db(r, servicer))
    app.router.add_delete("/api/db", lambda r: handle_delete_db(r, servicer))
    app.router.add_get("/api/db/list", lambda r: handle_list_db(r, servicer))
    app.router.add_get("/api/db/keys", lambda r: handle_keys_db(r, servicer))
    app.router.add_post("/api/db/push", lambda r: handle_push_db(r, servicer))
    app.router.add_get("/api/db/query", lambda r: handle_query_db(r, servicer))
    app.router.add_post("/api/files/dump", lambda r: handle_dump_file(r, servicer))
    app.router.add_post("/api/files/load", lambda r: handle_load_file(r, servicer))
    app.router.add_get("/api/files/list", lambda r: handle_list_files(r, servicer))
    app.router.add_get("/api/files/read", lambda r: handle_read_file(r, servicer))
    app.router.add_post("/api/backup", lambda r: handle_create_backup(r, servicer))
    app.router.add_get("/api/backup/list", lambda r: handle_list_backups(r, servicer))
    app.router.add_get("/api/backup/read", lambda r: handle_read_backup(r, servicer))
    app.router.add_post("/api/backup/restore", lambda r: handle_restore_backup(r, servicer))
    app.router.add_get("/api/audit/list", lambda r: handle_list_audit(r, servicer))
    app.router.add_get("/api/structure", lambda r: handle_structure(r, servicer))
    app.router.add_get("/api/rules", lambda r: handle_rules(r, servicer))
    app.router.add_get("/api/config", lambda r: handle_config(r, servicer))
    app.router.add_get("/api/health", lambda r: handle_health(r, servicer))

    # Add CORS middleware
    @web.middleware
    async def cors_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        if request.method == "OPTIONS":
            response = web.Response()
        else:
            try:
                response = await handler(request)
            except web.HTTPException as e:
                response = e

        origin = request.headers.get("Origin", "*")
        if "*" in config.cors_origins or origin in config.cors_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"

        return response

    app.middlewares.append(cors_middleware)

    # Add error handler
    @web.middleware
    async def error_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except ValidationError as e:
            return web.json_response(
                {"error": e.errors(include_url=False), "error_code": "INVALID_REQUEST"},
                status=400,
            )
        except json.JSONDecodeError:
            return web.json_response(
                {"error": "Invalid JSON body", "error_code": "INVALID_REQUEST"}, status=400
            )
        except ValueError as e:
            return web.json_response({"error": str(e), "error_code": "INVALID_REQUEST"}, status=400)
        except GuardError as e:
            status = status_for(e)
            if status >= 500:
                logger.error(f"HTTP handler error: {e.message}", extra={"code": e.code})
            return web.json_response(
                {"error": e.message, "error_code": e.code, "details": e.details}, status=status
            )
        except Exception as e:
            logger.error(f"HTTP handler error: {e}", exc_info=True)
            return web.json_response(
                {"error": str(e), "error_code": "INTERNAL"},
                status=status_for(e),
            )

    app.middlewares.insert(0, error_middleware)

    return app


def query_value(raw: Optional[str]) -> Any:
    """Query parameter as JSON when it parses (numbers, booleans), else the raw string."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def query_int(request: web.Request, name: str) -> Optional[int]:
    raw = request.query.get(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer")


def required_query(request: web.Request, name: str) -> str:
    value = request.query.get(name)
    if not value:
        raise ValueError(f"{name} query param is required")
    return value


async def handle_get_db(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle GET /api/db - Shallow summary, or full read cached to a file."""
    shallow = request.query.get("shallow", "true") != "false"
    result = await servicer.get(request.query.get("path", ""), shallow=shallow)
    return web.json_response(result)


async def handle_put_db(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle PUT /api/db - Replace the value at a path."""
    body = await request.json()
    result = await servicer.put(request.query.get("path", ""), body)
    return web.json_response(result)


async def handle_patch_db(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle PATCH /api/db - Merge children into a path."""
    body = await request.json()
    if not isinstance(body, dict) or not body:
        raise ValueError("PATCH body must be a non-empty JSON object")
    result = await servicer.patch(request.query.get("path", ""), body)
    return web.json_response(result)


async def handle_delete_db(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle DELETE /api/db - Remove the value at a path."""
    result = await servicer.delete(request.query.get("path", ""))
    return web.json_response(result)


async def handle_list_db(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle GET /api/db/list - Children as an array, cached to a file."""
    result = await servicer.list_children(request.query.get("path", ""))
    return web.json_response(result)


async def handle_keys_db(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle GET /api/db/keys - Child keys."""
    result = await servicer.child_keys(request.query.get("path", ""))
    return web.json_response(result)


async def handle_push_db(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle POST /api/db/push - Append a child under a generated key."""
    body = await request.json()
    result = await servicer.push(request.query.get("path", ""), body)
    return web.json_response(result)


async def handle_query_db(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle GET /api/db/query - Ordered, filtered query."""
    options = QueryOptions(
        order_by=request.query.get("orderBy") or None,
        equal_to=query_value(request.query.get("equalTo")),
        start_at=query_value(request.query.get("startAt")),
        end_at=query_value(request.query.get("endAt")),
        limit_to_first=query_int(request, "limitToFirst"),
        limit_to_last=query_int(request, "limitToLast"),
    )
    result = await servicer.query(request.query.get("path", ""), options)
    return web.json_response(result)


async def handle_dump_file(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle POST /api/files/dump - Dump a path to a local YAML file."""
    body = DumpRequest.model_validate(await request.json())
    result = await servicer.dump(body.path, body.filename)
    return web.json_response(result)


async def handle_load_file(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle POST /api/files/load - Load a local YAML file into the database."""
    body = FileRequest.model_validate(await request.json())
    result = await servicer.load_file(body.filename)
    return web.json_response(result)


async def handle_list_files(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle GET /api/files/list - Local YAML dump files."""
    return web.json_response(servicer.list_files())


async def handle_read_file(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle GET /api/files/read - Parsed content of a dump file."""
    result = await servicer.read_file(required_query(request, "filename"))
    return web.json_response(result)


async def handle_create_backup(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle POST /api/backup - Manual snapshot of a path (root when empty)."""
    raw = await request.json() if request.can_read_body else None
    body = BackupRequest.model_validate(raw or {})
    result = await servicer.create_backup(body.path)
    return web.json_response(result)


async def handle_list_backups(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle GET /api/backup/list - Snapshots, newest first."""
    result = servicer.list_backups(op=request.query.get("op"), path=request.query.get("path"))
    return web.json_response(result)


async def handle_read_backup(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle GET /api/backup/read - Parsed content of a snapshot."""
    result = await servicer.read_backup(required_query(request, "filename"))
    return web.json_response(result)


async def handle_restore_backup(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle POST /api/backup/restore - Replay a snapshot into the database."""
    body = FileRequest.model_validate(await request.json())
    result = await servicer.restore_backup(body.filename)
    return web.json_response(result)


async def handle_list_audit(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle GET /api/audit/list - Ledger entries, newest first."""
    limit = query_int(request, "limit")
    result = await servicer.list_audit(
        op=request.query.get("op"),
        path=request.query.get("path"),
        limit=limit if limit is not None else DEFAULT_AUDIT_LIMIT,
    )
    return web.json_response(result)


async def handle_structure(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle GET /api/structure - Top-level keys."""
    return web.json_response(await servicer.structure())


async def handle_rules(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle GET /api/rules - Security rules file."""
    return web.json_response(servicer.rules())


async def handle_config(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle GET /api/config - Resolved runtime configuration."""
    return web.json_response(servicer.runtime_info())


async def handle_health(request: web.Request, servicer: RtdbServicer) -> web.Response:
    """Handle GET /api/health - Health check."""
    result = await servicer.health()
    status = 200 if result.get("healthy") else 503
    return web.json_response(result, status=status)


async def run_http_server(
    servicer: RtdbServicer,
    config: HttpConfig | None = None,
) -> None:
    """Run the HTTP server until cancelled.

    Args:
        servicer: RtdbServicer instance
        config: HTTP server configuration (bind address and CORS origins)
    """
    config = config or HttpConfig()
    app = create_http_app(servicer, config)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, config.host, config.port)
    await site.start()

    logger.info(f"HTTP server running on http://{config.host}:{config.port}/api")

    # Keep running until cancelled
    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await runner.cleanup()
