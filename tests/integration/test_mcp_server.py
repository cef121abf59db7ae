"""
Integration tests for the MCP server.

Tests cover:
- Tool registration
- Calling read and write tools through the server
"""

import json

import pytest

from rtdb.firebase_guard.api.mcp_server import AGENT_INSTRUCTIONS, create_mcp_server

EXPECTED_TOOLS = {
    "get_db",
    "put_db",
    "patch_db",
    "delete_db",
    "get_db_list",
    "get_db_keys",
    "push_db",
    "get_db_query",
    "dump_file",
    "load_file",
    "list_files",
    "read_file",
    "backup_create",
    "backup_list",
    "backup_read",
    "backup_restore",
    "audit_list",
    "get_structure",
    "get_rules",
    "get_config",
}


async def call_json(server, name, arguments):
    """Call a tool and decode its JSON text result."""
    result = await server.call_tool(name, arguments)
    # Newer SDK versions return (content, structured_content)
    content = result[0] if isinstance(result, tuple) else result
    return json.loads(content[0].text)


class TestMcpServer:
    """Tests for create_mcp_server."""

    @pytest.mark.asyncio
    async def test_registers_every_tool(self, servicer):
        server = create_mcp_server(servicer)

        tools = await server.list_tools()

        assert {tool.name for tool in tools} == EXPECTED_TOOLS
        assert all(tool.description for tool in tools)

    def test_instructions_mention_recovery(self):
        assert "backup_restore" in AGENT_INSTRUCTIONS
        assert "get_db_keys" in AGENT_INSTRUCTIONS

    @pytest.mark.asyncio
    async def test_read_tool(self, servicer):
        server = create_mcp_server(servicer)

        keys = await call_json(server, "get_db_keys", {"path": "users"})

        assert keys == ["abc", "def"]

    @pytest.mark.asyncio
    async def test_write_tool_is_guarded(self, servicer, db):
        server = create_mcp_server(servicer)

        result = await call_json(server, "delete_db", {"path": "orders/o1"})
        entries = await call_json(server, "audit_list", {"op": "delete"})

        assert await db.get("orders/o1") is None
        assert entries[0]["id"] == result["id"]
        assert entries[0]["backupFile"] == result["backupFile"]
