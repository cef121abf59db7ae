"""
Unit tests for the YAML snapshot codec.

Tests cover:
- Dumping objects, arrays and scalars
- Loading documents back (single write, chunked writes, scalar documents)
- Progress notifications for chunked loads
- Malformed and missing documents
- Listing dump files
"""

import tempfile
from pathlib import Path

import pytest
import yaml

from rtdb.firebase_guard.db.memory import InMemoryRtdbClient
from rtdb.firebase_guard.errors import MalformedSnapshotError, NotFoundError
from rtdb.firebase_guard.snapshot.codec import (
    PATH_KEY,
    VALUE_KEY,
    LoadProgress,
    SnapshotCodec,
    build_document,
)

USERS = {
    "users": {
        "abc": {"name": "Ada", "age": 36, "roles": {"admin": True}},
        "def": {"name": "Grace"},
    },
    "settings": {"theme": "dark"},
}


class TestBuildDocument:
    """Tests for build_document."""

    def test_object_children_are_top_level(self):
        doc = build_document("users/abc", {"name": "Ada"})
        assert doc == {PATH_KEY: "users/abc", "name": "Ada"}

    def test_scalar_uses_value_key(self):
        assert build_document("count", 42) == {PATH_KEY: "count", VALUE_KEY: 42}

    def test_array_is_keyed_by_index(self):
        doc = build_document("tags", ["a", None, "c"])
        assert doc == {PATH_KEY: "tags", "0": "a", "2": "c"}


class TestSnapshotCodec:
    """Tests for SnapshotCodec."""

    @pytest.fixture
    def dump_dir(self):
        """Create temporary dump directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def client(self):
        return InMemoryRtdbClient(USERS)

    @pytest.fixture
    def codec(self, client, dump_dir):
        return SnapshotCodec(client, dump_dir)

    def _write_doc(self, dump_dir, filename, doc):
        (Path(dump_dir) / filename).write_text(yaml.safe_dump(doc))

    @pytest.mark.asyncio
    async def test_dump_writes_self_describing_yaml(self, codec):
        file_path = await codec.dump("users/abc", "abc.yaml")

        doc = yaml.safe_load(Path(file_path).read_text())
        assert doc == {
            "_path": "users/abc",
            "name": "Ada",
            "age": 36,
            "roles": {"admin": True},
        }
        assert list(doc)[0] == "_path"

    @pytest.mark.asyncio
    async def test_dump_generates_filename(self, codec):
        file_path = await codec.dump("users/abc")
        assert Path(file_path).name.startswith("users.abc_")
        assert file_path.endswith(".yaml")

    @pytest.mark.asyncio
    async def test_dump_into_other_directory(self, codec, dump_dir):
        target = Path(dump_dir) / "nested" / "backups"

        file_path = await codec.dump("settings", "s.yaml", str(target))

        assert Path(file_path).parent == target
        assert Path(file_path).exists()

    @pytest.mark.asyncio
    async def test_dump_missing_path_raises(self, codec):
        with pytest.raises(NotFoundError):
            await codec.dump("nothing/here")

    @pytest.mark.asyncio
    async def test_load_restores_dumped_subtree(self, codec, client):
        file_path = await codec.dump("users/abc")
        await client.delete("users/abc")

        restored = await codec.load(Path(file_path).name)

        assert restored == "users/abc"
        assert await client.get("users/abc") == USERS["users"]["abc"]

    @pytest.mark.asyncio
    async def test_reserved_keys_never_reach_database(self, codec, client):
        file_path = await codec.dump("users")
        await client.delete("users")

        await codec.load(Path(file_path).name)

        users = await client.get("users")
        assert PATH_KEY not in users
        assert VALUE_KEY not in users
        assert users == USERS["users"]

    @pytest.mark.asyncio
    async def test_restoring_twice_is_idempotent(self, codec, client):
        file_path = await codec.dump("users")
        await client.set("users/abc/name", "Changed")

        await codec.load(Path(file_path).name)
        once = client.snapshot()
        await codec.load(Path(file_path).name)

        assert client.snapshot() == once
        assert once["users"]["abc"]["name"] == "Ada"

    @pytest.mark.asyncio
    async def test_scalar_document_is_set(self, codec, client, dump_dir):
        self._write_doc(dump_dir, "count.yaml", {"_path": "stats/count", "_value": 7})

        await codec.load("count.yaml")

        assert client.calls_to("set") == [("set", "stats/count", 7)]
        assert await client.get("stats/count") == 7

    @pytest.mark.asyncio
    async def test_single_key_document_is_one_merge(self, codec, client, dump_dir):
        self._write_doc(dump_dir, "one.yaml", {"_path": "settings", "lang": "en"})

        await codec.load("one.yaml")

        assert client.calls_to("update") == [("update", "settings", {"lang": "en"})]
        assert await client.get("settings") == {"theme": "dark", "lang": "en"}

    @pytest.mark.asyncio
    async def test_document_with_only_path_writes_nothing(self, codec, client, dump_dir):
        self._write_doc(dump_dir, "empty.yaml", {"_path": "settings"})

        assert await codec.load("empty.yaml") == "settings"
        assert client.calls_to("update") == []
        assert client.calls_to("set") == []

    @pytest.mark.asyncio
    async def test_five_key_document_loads_in_chunks(self, codec, client, dump_dir):
        doc = {
            "_path": "catalog",
            "a": 1,
            "b": {"x": 1},
            "c": "text",
            "d": True,
            "e": {"y": {"z": 2}},
        }
        self._write_doc(dump_dir, "catalog.yaml", doc)
        seen = []

        await codec.load("catalog.yaml", progress=seen.append)

        assert client.calls_to("update") == [
            ("update", "catalog", {"a": 1}),
            ("update", "catalog/b", {"x": 1}),
            ("update", "catalog", {"c": "text"}),
            ("update", "catalog", {"d": True}),
            ("update", "catalog/e", {"y": {"z": 2}}),
        ]
        assert [str(p) for p in seen] == [
            "load catalog.yaml: 1/5 (a)",
            "load catalog.yaml: 2/5 (b)",
            "load catalog.yaml: 3/5 (c)",
            "load catalog.yaml: 4/5 (d)",
            "load catalog.yaml: 5/5 (e)",
        ]
        assert await client.get("catalog") == {
            "a": 1,
            "b": {"x": 1},
            "c": "text",
            "d": True,
            "e": {"y": {"z": 2}},
        }

    @pytest.mark.asyncio
    async def test_chunked_load_logs_progress_by_default(self, codec, dump_dir, caplog):
        self._write_doc(dump_dir, "two.yaml", {"_path": "x", "a": 1, "b": 2})

        with caplog.at_level("INFO", logger="rtdb.firebase_guard.snapshot.codec"):
            await codec.load("two.yaml")

        assert "load two.yaml: 2/2 (b)" in caplog.text

    @pytest.mark.asyncio
    async def test_array_dump_round_trips_as_object(self, codec, client):
        await client.set("tags", ["a", "b"])
        file_path = await codec.dump("tags")
        await client.delete("tags")

        await codec.load(Path(file_path).name)

        assert await client.get("tags") == {"0": "a", "1": "b"}

    @pytest.mark.asyncio
    async def test_document_without_path_is_malformed(self, codec, dump_dir):
        self._write_doc(dump_dir, "bad.yaml", {"name": "Ada"})

        with pytest.raises(MalformedSnapshotError) as exc_info:
            await codec.load("bad.yaml")

        assert exc_info.value.filename == "bad.yaml"

    @pytest.mark.asyncio
    async def test_non_mapping_document_is_malformed(self, codec, dump_dir):
        (Path(dump_dir) / "list.yaml").write_text("- a\n- b\n")

        with pytest.raises(MalformedSnapshotError):
            await codec.load("list.yaml")

    @pytest.mark.asyncio
    async def test_invalid_yaml_is_malformed(self, codec, dump_dir):
        (Path(dump_dir) / "broken.yaml").write_text("_path: users\nroles: [admin\n")

        with pytest.raises(MalformedSnapshotError) as exc_info:
            await codec.read_file("broken.yaml")

        assert exc_info.value.filename == "broken.yaml"
        assert exc_info.value.code == "MALFORMED_SNAPSHOT"

    @pytest.mark.asyncio
    async def test_missing_file_raises_not_found(self, codec):
        with pytest.raises(NotFoundError):
            await codec.load("nope.yaml")

    @pytest.mark.asyncio
    async def test_read_target(self, codec):
        file_path = await codec.dump("users/def")
        assert await codec.read_target(Path(file_path).name) == "users/def"

    def test_list_files_sorted_yaml_only(self, codec, dump_dir):
        for name in ("b.yaml", "a.yml", "notes.txt", "c.yaml"):
            (Path(dump_dir) / name).write_text("_path: x\n")

        assert codec.list_files() == ["a.yml", "b.yaml", "c.yaml"]

    def test_list_files_missing_directory(self, client, dump_dir):
        codec = SnapshotCodec(client, str(Path(dump_dir) / "absent"))
        assert codec.list_files() == []


class TestLoadProgress:
    """Tests for LoadProgress."""

    def test_str(self):
        progress = LoadProgress(filename="f.yaml", done=3, total=5, key="k")
        assert str(progress) == "load f.yaml: 3/5 (k)"
