"""
Firebase Guard - Main entry point.

This module wires all components together and serves them:
- MCP server over stdio (for agents), or
- HTTP REST API (default, port 3456)

Usage:
    python -m rtdb.firebase_guard.main [--stdio] [--env-path PATH]

Configuration comes from environment variables, an optional .env file and
an optional `mcp-firebase.json` in the working directory. See config.py.

Invariants:
    - Logs go to stderr so stdout stays a clean MCP channel
    - The .env file is loaded before configuration is read
    - Every surface shares one servicer, one ledger and one snapshot store

How to change safely:
    - Add new components with enable/disable flags
    - Keep build_servicer() free of I/O other than directory creation
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import json_log_formatter

from .api.http_server import run_http_server
from .api.mcp_server import create_mcp_server
from .api.servicer import RtdbServicer
from .audit.entry import OperationKind
from .audit.ledger import AuditLedger
from .cache.file_cache import FileCache
from .config import ServerConfig, load_env_file, load_local_config
from .db.base import RtdbClient, create_client
from .snapshot.codec import SnapshotCodec
from .snapshot.store import SnapshotStore

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("mcp").setLevel(logging.WARNING)


def load_config(env_path: Optional[str] = None, cwd: Optional[str] = None) -> ServerConfig:
    """Read local config, load the .env file, then build ServerConfig.

    Raises:
        ValueError: If configuration is invalid.
    """
    local, local_path = load_local_config(cwd)
    loaded_env = load_env_file(env_path, local, cwd)
    return ServerConfig.from_env(
        local,
        local_config_path=str(local_path) if local_path else None,
        env_path=loaded_env,
    )


def build_servicer(config: ServerConfig, client: Optional[RtdbClient] = None) -> RtdbServicer:
    """Assemble the servicer and its collaborators from configuration.

    Args:
        config: Server configuration
        client: Database client (a Firebase client is created if omitted)

    Returns:
        RtdbServicer with ledger and store attached when enabled
    """
    if client is None:
        client = create_client(config.firebase)

    codec = SnapshotCodec(client, config.workspace.dumps_dir)
    cache = FileCache(config.workspace.cache_dir)

    ledger = (
        AuditLedger(config.audit.log_file, enabled=True) if config.audit.enabled else None
    )
    store = (
        SnapshotStore(
            config.backup.dir,
            codec=SnapshotCodec(client, config.backup.dir),
            operations=[OperationKind(op) for op in config.backup.operations],
        )
        if config.backup.enabled
        else None
    )

    return RtdbServicer(
        client=client,
        codec=codec,
        cache=cache,
        ledger=ledger,
        store=store,
        runtime_info=config.runtime_info(),
    )


def serve(config: ServerConfig, stdio: bool = False) -> None:
    """Serve MCP over stdio or the HTTP API until interrupted."""
    servicer = build_servicer(config)

    if stdio:
        logger.info("Serving MCP over stdio")
        create_mcp_server(servicer).run("stdio")
        return

    try:
        asyncio.run(run_http_server(servicer, config.http))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Guarded Firebase RTDB access for agents")
    parser.add_argument("--stdio", action="store_true", help="Serve MCP over stdio")
    parser.add_argument("--env-path", help="Path of the .env file to load")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.env_path)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()
    serve(config, stdio=args.stdio)


if __name__ == "__main__":
    main()
