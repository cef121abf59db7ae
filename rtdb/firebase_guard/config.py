"""
Configuration management for Firebase Guard.

Settings come from environment variables (optionally seeded from a .env file)
and can be overridden per project by a local `mcp-firebase.json` in the
working directory. This module provides typed configuration classes with
validation.

Invariants:
    - All settings have sensible defaults for local development
    - Local config file values win over environment variables
    - All working directories default under `.mcp-firebase/`
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep the local config keys camelCase, matching existing project files
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

LOCAL_CONFIG_FILENAME = "mcp-firebase.json"
DEFAULT_WORK_DIR = ".mcp-firebase"
DEFAULT_BACKUP_OPERATIONS = ("put", "patch", "delete")


def load_local_config(cwd: Optional[str] = None) -> Tuple[Dict[str, Any], Optional[Path]]:
    """Read the project's local config file, if present.

    Args:
        cwd: Directory to look in (defaults to the process cwd)

    Returns:
        Tuple of (config dict, path of the file or None)

    Raises:
        ValueError: If the file exists but is not a JSON object
    """
    path = Path(cwd or os.getcwd()) / LOCAL_CONFIG_FILENAME
    if not path.exists():
        return {}, None
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return data, path


def load_env_file(
    env_path: Optional[str] = None,
    local: Optional[Dict[str, Any]] = None,
    cwd: Optional[str] = None,
) -> Optional[str]:
    """Load a .env file into the process environment.

    The first candidate wins: an explicit path, the local config's `envPath`,
    then `.env` in the working directory. Variables already set in the
    environment are not overridden.

    Returns:
        Path of the file that was loaded, or None

    Raises:
        ValueError: If an explicit env_path does not exist
    """
    base = Path(cwd or os.getcwd())
    if env_path and not (base / env_path).is_file():
        raise ValueError(f"env file not found: {base / env_path}")

    for candidate in (env_path, (local or {}).get("envPath"), ".env"):
        if not candidate:
            continue
        path = base / candidate
        if path.is_file():
            load_dotenv(path)
            logger.debug(f"Loaded environment from {path}")
            return str(path)
    return None


def _database_url_from_env() -> str:
    url = os.getenv("FIREBASE_DATABASE_URL", "")
    if url:
        return url
    # Fall back to the web SDK config blob
    raw = os.getenv("FIREBASE_CONFIG")
    if raw:
        try:
            return json.loads(raw).get("databaseURL", "") or ""
        except (json.JSONDecodeError, AttributeError):
            logger.warning("FIREBASE_CONFIG is not a JSON object, ignoring")
    return ""


@dataclass(frozen=True)
class FirebaseConfig:
    """Firebase connection configuration.

    Attributes:
        service_account: Service account JSON string or path to a JSON file
        database_url: Realtime Database URL
        base_path: Path prefix all client paths are resolved against
        app_name: firebase_admin App name
    """

    service_account: Optional[str] = None
    database_url: str = ""
    base_path: str = "/"
    app_name: str = "[DEFAULT]"

    @classmethod
    def from_env(cls, local: Optional[Dict[str, Any]] = None) -> FirebaseConfig:
        """Load configuration from environment variables."""
        local = local or {}
        return cls(
            service_account=local.get("serviceAccountPath")
            or os.getenv("FIREBASE_SERVICE_ACCOUNT")
            or os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON"),
            database_url=local.get("databaseURL") or _database_url_from_env(),
            base_path=local.get("basePath") or os.getenv("RTDB_BASE_PATH", "/"),
            app_name=local.get("appName") or os.getenv("FIREBASE_APP_NAME", "[DEFAULT]"),
        )


@dataclass(frozen=True)
class WorkspaceConfig:
    """Local working directories.

    Attributes:
        work_dir: Root of all local state
        dumps_dir: Directory for manual YAML dumps
        cache_dir: Directory for large read results
    """

    work_dir: str = DEFAULT_WORK_DIR
    dumps_dir: str = f"{DEFAULT_WORK_DIR}/dumps/"
    cache_dir: str = f"{DEFAULT_WORK_DIR}/cache"

    @classmethod
    def from_env(cls, local: Optional[Dict[str, Any]] = None) -> WorkspaceConfig:
        """Load configuration from environment variables."""
        local = local or {}
        work_dir = local.get("workDir") or os.getenv("RTDB_WORK_DIR", DEFAULT_WORK_DIR)
        return cls(
            work_dir=work_dir,
            dumps_dir=local.get("localDir") or os.getenv("RTDB_LOCAL_DIR", f"{work_dir}/dumps/"),
            cache_dir=local.get("cacheDir") or os.getenv("RTDB_CACHE_DIR", f"{work_dir}/cache"),
        )


@dataclass(frozen=True)
class AuditConfig:
    """Audit ledger configuration.

    Attributes:
        enabled: Whether guarded writes are recorded
        log_file: JSON-lines ledger file
    """

    enabled: bool = True
    log_file: str = f"{DEFAULT_WORK_DIR}/audit/audit.jsonl"

    @classmethod
    def from_env(cls, work_dir: str, local: Optional[Dict[str, Any]] = None) -> AuditConfig:
        """Load configuration from environment variables."""
        section = (local or {}).get("audit") or {}
        enabled = section.get("enabled")
        if enabled is None:
            enabled = os.getenv("AUDIT_ENABLED", "true").lower() == "true"
        return cls(
            enabled=bool(enabled),
            log_file=section.get("logFile")
            or os.getenv("AUDIT_LOG_FILE", f"{work_dir}/audit/audit.jsonl"),
        )


@dataclass(frozen=True)
class BackupConfig:
    """Snapshot store configuration.

    Attributes:
        enabled: Whether snapshots are taken and can be listed/restored
        dir: Snapshot directory
        operations: Operation kinds that trigger a pre-write snapshot
    """

    enabled: bool = True
    dir: str = f"{DEFAULT_WORK_DIR}/backups/"
    operations: Tuple[str, ...] = DEFAULT_BACKUP_OPERATIONS

    @classmethod
    def from_env(cls, work_dir: str, local: Optional[Dict[str, Any]] = None) -> BackupConfig:
        """Load configuration from environment variables."""
        section = (local or {}).get("backup") or {}
        enabled = section.get("enabled")
        if enabled is None:
            enabled = os.getenv("BACKUP_ENABLED", "true").lower() == "true"
        operations = section.get("operations")
        if operations is None:
            raw = os.getenv("BACKUP_OPERATIONS")
            operations = (
                [op.strip() for op in raw.split(",") if op.strip()]
                if raw is not None
                else DEFAULT_BACKUP_OPERATIONS
            )
        return cls(
            enabled=bool(enabled),
            dir=section.get("dir") or os.getenv("BACKUP_DIR", f"{work_dir}/backups/"),
            operations=tuple(operations),
        )


@dataclass(frozen=True)
class HttpConfig:
    """HTTP server configuration.

    Attributes:
        host: Bind host
        port: Bind port
        cors_origins: Allowed CORS origins
    """

    host: str = "0.0.0.0"
    port: int = 3456
    cors_origins: Tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3456")),
            cors_origins=tuple(
                origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
            ),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class ServerConfig:
    """Complete configuration.

    Attributes:
        firebase: Firebase connection configuration
        workspace: Local working directories
        audit: Audit ledger configuration
        backup: Snapshot store configuration
        http: HTTP server configuration
        observability: Logging configuration
        local_config_path: Local config file that was applied, if any
        env_path: .env file that was loaded, if any
    """

    firebase: FirebaseConfig = field(default_factory=FirebaseConfig)
    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)
    local_config_path: Optional[str] = None
    env_path: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        local: Optional[Dict[str, Any]] = None,
        local_config_path: Optional[str] = None,
        env_path: Optional[str] = None,
    ) -> ServerConfig:
        """Load complete configuration.

        Args:
            local: Parsed local config file (overrides environment)
            local_config_path: Where the local config came from
            env_path: Which .env file was loaded

        Returns:
            ServerConfig with all sections populated.

        Raises:
            ValueError: If configuration is invalid.
        """
        workspace = WorkspaceConfig.from_env(local)
        config = cls(
            firebase=FirebaseConfig.from_env(local),
            workspace=workspace,
            audit=AuditConfig.from_env(workspace.work_dir, local),
            backup=BackupConfig.from_env(workspace.work_dir, local),
            http=HttpConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
            local_config_path=local_config_path,
            env_path=env_path,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        from .audit.entry import OperationKind

        known = {kind.value for kind in OperationKind}
        unknown = [op for op in self.backup.operations if op not in known]
        if unknown:
            raise ValueError(
                f"Unknown backup operations {unknown}. Must be among: {', '.join(sorted(known))}"
            )
        if self.observability.log_format not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        if not 0 < self.http.port < 65536:
            raise ValueError(f"Invalid PORT {self.http.port}")

    def runtime_info(self) -> Dict[str, Any]:
        """Resolved settings as reported to agents (no secrets)."""
        return {
            "cwd": os.getcwd(),
            "localConfigPath": self.local_config_path,
            "envPath": self.env_path,
            "basePath": self.firebase.base_path,
            "workDir": self.workspace.work_dir,
            "dumps": self.workspace.dumps_dir,
            "cache": str(Path(self.workspace.cache_dir).resolve()),
            "audit": (
                {"enabled": True, "logFile": self.audit.log_file}
                if self.audit.enabled
                else {"enabled": False}
            ),
            "backup": (
                {"enabled": True, "dir": self.backup.dir, "operations": list(self.backup.operations)}
                if self.backup.enabled
                else {"enabled": False}
            ),
            "databaseURL": self.firebase.database_url or None,
        }

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Configuration loaded",
            extra={
                "database_url": self.firebase.database_url or None,
                "base_path": self.firebase.base_path,
                "service_account_set": bool(self.firebase.service_account),
                "work_dir": self.workspace.work_dir,
                "audit_enabled": self.audit.enabled,
                "backup_enabled": self.backup.enabled,
                "backup_operations": list(self.backup.operations),
                "log_level": self.observability.log_level,
            },
        )
