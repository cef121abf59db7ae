"""
Integration tests for RtdbServicer over the in-memory database.

Tests cover:
- Reads (shallow summaries, cached full reads, keys, queries, structure)
- Guarded writes and their ledger entries and snapshots
- Recovering from a delete via the audit trail and snapshot restore
- Local YAML dump/load files
- Disabled audit/backup features
- Rules file and runtime info
"""

import json
from pathlib import Path

import pytest

from rtdb.firebase_guard.db.base import QueryOptions
from rtdb.firebase_guard.errors import FeatureDisabledError, NotFoundError


class TestRtdbServicer:
    """Integration tests for RtdbServicer."""

    # Reads

    @pytest.mark.asyncio
    async def test_get_shallow_summary(self, servicer):
        assert await servicer.get("users") == {
            "abc": {"type": "object", "childCount": 2},
            "def": {"type": "object", "childCount": 2},
        }

    @pytest.mark.asyncio
    async def test_get_full_is_cached_to_file(self, servicer, work_dir, seed):
        summary = await servicer.get("users/abc", shallow=False)

        assert Path(summary["file"]).parent == (work_dir / "cache").resolve()
        assert json.loads(Path(summary["file"]).read_text()) == seed["users"]["abc"]
        assert summary["childCount"] == 2

    @pytest.mark.asyncio
    async def test_list_children_and_keys(self, servicer):
        listing = await servicer.list_children("users")

        assert listing["type"] == "array"
        assert listing["length"] == 2
        assert await servicer.child_keys("users") == ["abc", "def"]

    @pytest.mark.asyncio
    async def test_query_is_cached(self, servicer, seed):
        summary = await servicer.query("users", QueryOptions(order_by="age", limit_to_last=1))

        assert json.loads(Path(summary["file"]).read_text()) == {"def": seed["users"]["def"]}

    @pytest.mark.asyncio
    async def test_structure(self, servicer):
        assert await servicer.structure() == {"users": True, "orders": True}

    # Guarded writes

    @pytest.mark.asyncio
    async def test_put_is_snapshotted_and_audited(self, servicer, db):
        result = await servicer.put("users/abc", {"name": "Ana"})

        assert result["ok"] is True
        assert result["backupFile"].startswith("put_users.abc_")
        assert await db.get("users/abc") == {"name": "Ana"}

        entries = await servicer.list_audit()
        assert len(entries) == 1
        assert entries[0]["id"] == result["id"]
        assert entries[0]["backupFile"] == result["backupFile"]

    @pytest.mark.asyncio
    async def test_patch(self, servicer, db):
        await servicer.patch("users/abc", {"age": 37})
        assert await db.get("users/abc") == {"name": "Ada", "age": 37}

    @pytest.mark.asyncio
    async def test_push_has_no_snapshot(self, servicer, db):
        result = await servicer.push("orders", {"total": 5})

        assert "backupFile" not in result
        assert result["path"] == f"orders/{result['key']}"
        assert await db.get(result["path"]) == {"total": 5}
        assert servicer.list_backups() == []

    @pytest.mark.asyncio
    async def test_recover_from_delete(self, servicer, db, seed):
        deleted = await servicer.delete("users/abc")
        assert await db.get("users/abc") is None

        entry = (await servicer.list_audit(op="delete", path="users"))[0]
        restored = await servicer.restore_backup(entry["backupFile"])

        assert deleted["deleted"] == "users/abc"
        assert restored["restoredPath"] == "users/abc"
        assert await db.get("users/abc") == seed["users"]["abc"]

        latest = (await servicer.list_audit(limit=1))[0]
        assert latest["op"] == "load"
        assert latest["status"] == "ok"
        assert latest["backupFile"] == entry["backupFile"]

    @pytest.mark.asyncio
    async def test_list_backups_filters(self, servicer):
        await servicer.delete("orders/o1")
        await servicer.put("users/abc/age", 40)

        backups = servicer.list_backups(op="put", path="users")

        assert len(backups) == 1
        assert backups[0]["op"] == "put"
        assert backups[0]["path"] == "users/abc/age"

    @pytest.mark.asyncio
    async def test_unknown_op_filter_is_rejected(self, servicer):
        with pytest.raises(ValueError, match="Unknown op"):
            await servicer.list_audit(op="rename")

    @pytest.mark.asyncio
    async def test_manual_backup_and_read(self, servicer):
        created = await servicer.create_backup("orders")
        filename = Path(created["file"]).name

        assert servicer.list_backups()[0]["file"] == filename
        assert "op" not in servicer.list_backups()[0]
        assert await servicer.read_backup(filename) == {"_path": "orders", "o1": {"total": 10}}

    # Local files

    @pytest.mark.asyncio
    async def test_dump_and_load_file(self, servicer, db):
        dumped = await servicer.dump("users/def", "grace.yaml")
        assert servicer.list_files() == ["grace.yaml"]
        assert (await servicer.read_file("grace.yaml"))["_path"] == "users/def"

        await db.set("users/def/name", "Changed")
        loaded = await servicer.load_file("grace.yaml")

        assert dumped["file"].endswith("grace.yaml")
        assert loaded["path"] == "users/def"
        assert await db.get("users/def/name") == "Grace"
        assert (await servicer.list_audit(op="load"))[0]["backupFile"] == "grace.yaml"

    @pytest.mark.asyncio
    async def test_load_missing_file(self, servicer):
        with pytest.raises(NotFoundError):
            await servicer.load_file("missing.yaml")

    # Disabled features

    @pytest.mark.asyncio
    async def test_disabled_audit_and_backup(self, make_servicer):
        servicer = make_servicer(audit=False, backup=False)

        result = await servicer.delete("users/abc")

        assert result == {"ok": True, "deleted": "users/abc", "id": result["id"]}
        with pytest.raises(FeatureDisabledError):
            await servicer.list_audit()
        with pytest.raises(FeatureDisabledError):
            servicer.list_backups()
        with pytest.raises(FeatureDisabledError):
            await servicer.restore_backup("x.yaml")

    # Project and runtime

    def test_rules(self, servicer, work_dir):
        rules_file = work_dir / "database.rules.json"
        servicer.rules_path = str(rules_file)

        with pytest.raises(NotFoundError):
            servicer.rules()

        rules_file.write_text(json.dumps({"rules": {".read": False}}))
        assert servicer.rules() == {"rules": {".read": False}}

    def test_runtime_info(self, servicer, work_dir):
        info = servicer.runtime_info()
        assert info["backup"]["dir"] == str(work_dir / "backups")
        assert info["audit"]["enabled"] is True

    @pytest.mark.asyncio
    async def test_health(self, servicer):
        health = await servicer.health()
        assert health["healthy"] is True
        assert health["audit"] is True
        assert health["backup"] is True
