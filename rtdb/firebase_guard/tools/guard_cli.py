"""
Command-line tool for Firebase Guard.

Commands:
- serve: Run the MCP (stdio) or HTTP server
- audit list: Show recent ledger entries
- backup list: Show snapshots decoded from their filenames
- backup create: Take a manual snapshot of a path
- backup restore: Replay a snapshot into the database

Usage:
    rtdb-guard serve [--stdio]
    rtdb-guard audit list [--op delete] [--path users] [--limit 20]
    rtdb-guard backup list [--op put] [--path users]
    rtdb-guard backup create --path users/abc
    rtdb-guard backup restore delete_users.abc_2026-02-18T12-00-00-000Z.yaml

Invariants:
    - `audit list` and `backup list` work offline (no database credentials)
    - Restores are guarded exactly like restores from the servers
    - Output is JSON on stdout; logs go to stderr

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for scripts
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, List, Optional

from ..api.servicer import DEFAULT_AUDIT_LIMIT, RtdbServicer, parse_operation
from ..audit.ledger import AuditLedger
from ..config import ServerConfig
from ..db.base import DatabaseError, RtdbClient
from ..errors import FeatureDisabledError, GuardError
from ..main import build_servicer, load_config, serve, setup_logging
from ..snapshot.store import SnapshotStore

logger = logging.getLogger(__name__)


class GuardCLI:
    """Administrative commands over the ledger and snapshot store.

    Example:
        >>> cli = GuardCLI(ServerConfig.from_env())
        >>> print(await cli.audit_list(op="delete", limit=5))
    """

    def __init__(self, config: ServerConfig, client: Optional[RtdbClient] = None) -> None:
        self.config = config
        self._client = client
        self._servicer: Optional[RtdbServicer] = None

    @property
    def servicer(self) -> RtdbServicer:
        """Servicer built on first use (connects to the database)."""
        if self._servicer is None:
            self._servicer = build_servicer(self.config, self._client)
        return self._servicer

    @staticmethod
    def _render(payload: Any) -> str:
        return json.dumps(payload, indent=2, ensure_ascii=False)

    async def audit_list(
        self,
        op: Optional[str] = None,
        path: Optional[str] = None,
        limit: Optional[int] = DEFAULT_AUDIT_LIMIT,
    ) -> str:
        """Recent ledger entries, newest first.

        Raises:
            FeatureDisabledError: If auditing is disabled
        """
        if not self.config.audit.enabled:
            raise FeatureDisabledError("audit")
        ledger = AuditLedger(self.config.audit.log_file)
        entries = await ledger.list(op=parse_operation(op), path=path or None, limit=limit)
        return self._render([entry.to_dict() for entry in entries])

    def backup_list(self, op: Optional[str] = None, path: Optional[str] = None) -> str:
        """Snapshots in the backup directory, newest first.

        Raises:
            FeatureDisabledError: If backups are disabled
        """
        if not self.config.backup.enabled:
            raise FeatureDisabledError("backup")
        store = SnapshotStore(self.config.backup.dir)
        metas = store.list(op=parse_operation(op), path=path or None)
        return self._render([meta.to_dict() for meta in metas])

    async def backup_create(self, path: str = "") -> str:
        return self._render(await self.servicer.create_backup(path))

    async def backup_restore(self, filename: str) -> str:
        return self._render(await self.servicer.restore_backup(filename))


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for all commands."""
    parser = argparse.ArgumentParser(
        prog="rtdb-guard", description="Guarded Firebase RTDB access for agents"
    )
    parser.add_argument("--env-path", help="Path of the .env file to load")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the MCP or HTTP server")
    serve_parser.add_argument("--stdio", action="store_true", help="Serve MCP over stdio")

    # audit commands
    audit_parser = subparsers.add_parser("audit", help="Audit ledger commands")
    audit_sub = audit_parser.add_subparsers(dest="action", required=True)
    audit_list = audit_sub.add_parser("list", help="List ledger entries, newest first")
    audit_list.add_argument("--op", help="Filter by operation: put, patch, delete, push, load")
    audit_list.add_argument("--path", help="Filter by path prefix")
    audit_list.add_argument("--limit", type=int, default=DEFAULT_AUDIT_LIMIT, help="Max entries")

    # backup commands
    backup_parser = subparsers.add_parser("backup", help="Snapshot commands")
    backup_sub = backup_parser.add_subparsers(dest="action", required=True)
    backup_list = backup_sub.add_parser("list", help="List snapshots, newest first")
    backup_list.add_argument("--op", help="Filter by operation: put, patch, delete, push, load")
    backup_list.add_argument("--path", help="Filter by path prefix")
    backup_create = backup_sub.add_parser("create", help="Snapshot a path")
    backup_create.add_argument("--path", default="", help="Path to snapshot (default: root)")
    backup_restore = backup_sub.add_parser("restore", help="Restore a snapshot file")
    backup_restore.add_argument("filename", help="Snapshot filename from `backup list`")

    return parser


def run_command(cli: GuardCLI, args: argparse.Namespace) -> str:
    """Dispatch a parsed non-serve command and return its output."""
    if args.command == "audit":
        return asyncio.run(cli.audit_list(op=args.op, path=args.path, limit=args.limit))
    if args.action == "list":
        return cli.backup_list(op=args.op, path=args.path)
    if args.action == "create":
        return asyncio.run(cli.backup_create(args.path))
    return asyncio.run(cli.backup_restore(args.filename))


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.env_path)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command == "serve":
        config.log_config()
        serve(config, stdio=args.stdio)
        return

    try:
        output = run_command(GuardCLI(config), args)
    except (GuardError, DatabaseError, ValueError) as e:
        print(f"{args.command} {args.action} failed: {e}", file=sys.stderr)
        sys.exit(1)
    print(output)


if __name__ == "__main__":
    main()
