"""
API module for Firebase Guard.

This module provides the external interfaces:
- MCP server (primary interface for agents, stdio)
- HTTP server (REST API)

Both surfaces share the same RtdbServicer.

Invariants:
    - Every write goes through the servicer's WriteGuard
    - HTTP endpoints match MCP tool semantics

How to change safely:
    - Add new operations to the servicer first, then to both surfaces
"""

from .http_server import create_http_app, run_http_server
from .mcp_server import create_mcp_server
from .servicer import RtdbServicer

__all__ = [
    "RtdbServicer",
    "create_http_app",
    "create_mcp_server",
    "run_http_server",
]
