"""
Unit tests for configuration loading.

Tests cover:
- Defaults
- Environment variables
- Local config file overrides
- FIREBASE_CONFIG database URL fallback
- .env loading
- Validation and runtime info
"""

import json
import os
import tempfile
from pathlib import Path

import pytest

from rtdb.firebase_guard.config import (
    AuditConfig,
    BackupConfig,
    FirebaseConfig,
    ServerConfig,
    WorkspaceConfig,
    load_env_file,
    load_local_config,
)

ENV_VARS = [
    "FIREBASE_SERVICE_ACCOUNT",
    "FIREBASE_SERVICE_ACCOUNT_JSON",
    "FIREBASE_DATABASE_URL",
    "FIREBASE_CONFIG",
    "RTDB_BASE_PATH",
    "RTDB_WORK_DIR",
    "RTDB_LOCAL_DIR",
    "RTDB_CACHE_DIR",
    "AUDIT_ENABLED",
    "AUDIT_LOG_FILE",
    "BACKUP_ENABLED",
    "BACKUP_DIR",
    "BACKUP_OPERATIONS",
    "PORT",
    "HOST",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from an empty configuration environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Registered so values loaded from .env files are removed afterwards
    monkeypatch.setenv("GUARD_TEST_VALUE", "")
    monkeypatch.delenv("GUARD_TEST_VALUE")


@pytest.fixture
def project_dir():
    """Create temporary project directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class TestServerConfig:
    """Tests for ServerConfig and its sections."""

    def test_defaults(self):
        config = ServerConfig.from_env()

        assert config.firebase.base_path == "/"
        assert config.workspace.work_dir == ".mcp-firebase"
        assert config.workspace.dumps_dir == ".mcp-firebase/dumps/"
        assert config.audit.enabled
        assert config.audit.log_file == ".mcp-firebase/audit/audit.jsonl"
        assert config.backup.enabled
        assert config.backup.dir == ".mcp-firebase/backups/"
        assert config.backup.operations == ("put", "patch", "delete")
        assert config.http.port == 3456

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("FIREBASE_DATABASE_URL", "https://demo.firebaseio.com")
        monkeypatch.setenv("RTDB_WORK_DIR", "/tmp/guard")
        monkeypatch.setenv("AUDIT_ENABLED", "false")
        monkeypatch.setenv("BACKUP_OPERATIONS", "delete, push")
        monkeypatch.setenv("PORT", "8080")

        config = ServerConfig.from_env()

        assert config.firebase.database_url == "https://demo.firebaseio.com"
        assert config.workspace.cache_dir == "/tmp/guard/cache"
        assert not config.audit.enabled
        assert config.backup.dir == "/tmp/guard/backups/"
        assert config.backup.operations == ("delete", "push")
        assert config.http.port == 8080

    def test_firebase_config_fallback(self, monkeypatch):
        monkeypatch.setenv("FIREBASE_CONFIG", json.dumps({"databaseURL": "https://x.firebaseio.com"}))
        assert FirebaseConfig.from_env().database_url == "https://x.firebaseio.com"

    def test_firebase_config_not_json_is_ignored(self, monkeypatch):
        monkeypatch.setenv("FIREBASE_CONFIG", "not json")
        assert FirebaseConfig.from_env().database_url == ""

    def test_local_config_wins(self, monkeypatch):
        monkeypatch.setenv("RTDB_BASE_PATH", "/env")
        local = {
            "basePath": "/orgs/acme",
            "workDir": "work",
            "audit": {"enabled": False},
            "backup": {"dir": "snaps/", "operations": ["delete"]},
        }

        config = ServerConfig.from_env(local, local_config_path="/p/mcp-firebase.json")

        assert config.firebase.base_path == "/orgs/acme"
        assert config.workspace.dumps_dir == "work/dumps/"
        assert not config.audit.enabled
        assert config.backup.dir == "snaps/"
        assert config.backup.operations == ("delete",)
        assert config.local_config_path == "/p/mcp-firebase.json"

    def test_section_defaults_follow_work_dir(self):
        assert AuditConfig.from_env("w").log_file == "w/audit/audit.jsonl"
        assert BackupConfig.from_env("w").dir == "w/backups/"
        assert WorkspaceConfig.from_env({"workDir": "w"}).cache_dir == "w/cache"

    def test_unknown_backup_operation_is_rejected(self):
        with pytest.raises(ValueError, match="Unknown backup operations"):
            ServerConfig.from_env({"backup": {"operations": ["rename"]}})

    def test_invalid_log_format_is_rejected(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")
        with pytest.raises(ValueError):
            ServerConfig.from_env()

    def test_runtime_info_hides_secrets(self, monkeypatch):
        monkeypatch.setenv("FIREBASE_SERVICE_ACCOUNT", '{"private_key": "secret"}')
        monkeypatch.setenv("BACKUP_ENABLED", "false")

        info = ServerConfig.from_env().runtime_info()

        assert "secret" not in json.dumps(info)
        assert info["backup"] == {"enabled": False}
        assert info["audit"]["enabled"] is True
        assert info["dumps"] == ".mcp-firebase/dumps/"
        assert set(info) >= {"cwd", "localConfigPath", "envPath", "basePath", "databaseURL"}


class TestLocalFiles:
    """Tests for load_local_config and load_env_file."""

    def test_missing_local_config(self, project_dir):
        assert load_local_config(str(project_dir)) == ({}, None)

    def test_local_config(self, project_dir):
        path = project_dir / "mcp-firebase.json"
        path.write_text(json.dumps({"basePath": "/x"}))

        data, found = load_local_config(str(project_dir))

        assert data == {"basePath": "/x"}
        assert found == path

    def test_local_config_must_be_object(self, project_dir):
        (project_dir / "mcp-firebase.json").write_text("[1, 2]")
        with pytest.raises(ValueError):
            load_local_config(str(project_dir))

    def test_loads_default_env_file(self, project_dir, monkeypatch):
        (project_dir / ".env").write_text("GUARD_TEST_VALUE=from-dotenv\n")

        loaded = load_env_file(cwd=str(project_dir))

        assert loaded == str(project_dir / ".env")
        assert os.environ["GUARD_TEST_VALUE"] == "from-dotenv"

    def test_local_env_path_preferred(self, project_dir):
        (project_dir / ".env").write_text("GUARD_TEST_VALUE=default\n")
        (project_dir / "custom.env").write_text("GUARD_TEST_VALUE=custom\n")

        loaded = load_env_file(local={"envPath": "custom.env"}, cwd=str(project_dir))

        assert loaded == str(project_dir / "custom.env")
        assert os.environ["GUARD_TEST_VALUE"] == "custom"

    def test_explicit_env_path_must_exist(self, project_dir):
        with pytest.raises(ValueError, match="env file not found"):
            load_env_file("missing.env", cwd=str(project_dir))

    def test_no_env_file(self, project_dir):
        assert load_env_file(cwd=str(project_dir)) is None
