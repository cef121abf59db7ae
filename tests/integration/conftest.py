"""
Shared fixtures for integration tests.

Provides a temporary working directory, an in-memory database seeded with
SEED_DATA, and a factory for fully wired servicers.
"""

import copy
import tempfile
from pathlib import Path

import pytest

from rtdb.firebase_guard.config import AuditConfig, BackupConfig, ServerConfig, WorkspaceConfig
from rtdb.firebase_guard.db.memory import InMemoryRtdbClient
from rtdb.firebase_guard.main import build_servicer

SEED_DATA = {
    "users": {
        "abc": {"name": "Ada", "age": 36},
        "def": {"name": "Grace", "age": 45},
    },
    "orders": {"o1": {"total": 10}},
}


def make_config(work_dir: Path, audit: bool = True, backup: bool = True) -> ServerConfig:
    """Configuration with every local directory under work_dir."""
    return ServerConfig(
        workspace=WorkspaceConfig(
            work_dir=str(work_dir),
            dumps_dir=str(work_dir / "dumps"),
            cache_dir=str(work_dir / "cache"),
        ),
        audit=AuditConfig(enabled=audit, log_file=str(work_dir / "audit" / "audit.jsonl")),
        backup=BackupConfig(enabled=backup, dir=str(work_dir / "backups")),
    )


@pytest.fixture
def seed():
    """Copy of the data the database starts with."""
    return copy.deepcopy(SEED_DATA)


@pytest.fixture
def work_dir():
    """Create temporary working directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def db():
    """In-memory database seeded with SEED_DATA."""
    return InMemoryRtdbClient(SEED_DATA)


@pytest.fixture
def config_factory(work_dir):
    """Factory for configurations rooted at work_dir."""

    def factory(audit: bool = True, backup: bool = True) -> ServerConfig:
        return make_config(work_dir, audit=audit, backup=backup)

    return factory


@pytest.fixture
def config(config_factory):
    return config_factory()


@pytest.fixture
def make_servicer(config_factory, db):
    """Factory for servicers over the shared database and work dir."""

    def factory(audit: bool = True, backup: bool = True):
        return build_servicer(config_factory(audit=audit, backup=backup), client=db)

    return factory


@pytest.fixture
def servicer(make_servicer):
    return make_servicer()
