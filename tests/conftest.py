"""
DocFlow Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


# ---------------------------------------------------------------------------
# Global singletons: reset between tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_globals():
    """Reset config, log queue and DB singletons between tests."""
    import docflow.engine.config as cfg_mod
    import docflow.engine.logging as log_mod
    from docflow.db.session import close_all_sessions

    cfg_mod._config = None
    log_mod._global_queue = None
    yield
    log_mod.shutdown_logging()
    close_all_sessions()
    cfg_mod._config = None


@pytest.fixture
def project_root(tmp_path):
    """A directory holding a minimal docflow.yaml backed by a file SQLite store."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "docflow.yaml").write_text(
        "docflow:\n"
        "  name: TestFlow\n"
        "  version: '2.0.0'\n"
        "  environment: dev\n"
        "database:\n"
        f"  url: sqlite:///{(root / 'docflow.db').as_posix()}\n"
        "logging:\n"
        "  level: DEBUG\n"
        f"  directory: {(root / 'logs').as_posix()}\n",
        encoding="utf-8",
    )
    return root


# ---------------------------------------------------------------------------
# Store and services
# ---------------------------------------------------------------------------

@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{(tmp_path / 'workflow.db').as_posix()}"


@pytest.fixture
def session_factory(db_url):
    from docflow.db.session import init_workflow_db

    return init_workflow_db(db_url, create_tables=True)


@pytest.fixture
def lifecycle(session_factory):
    from docflow.documents.service import DocumentLifecycle

    return DocumentLifecycle(session_factory)


@pytest.fixture
def ledger(lifecycle):
    from docflow.approvals.service import ApprovalLedger

    return ApprovalLedger(lifecycle)


@pytest.fixture
def log_dir(tmp_path) -> Path:
    return tmp_path / "logs"


@pytest.fixture
def log_queue(log_dir):
    """Start the global structured log queue against a temp directory."""
    from docflow.engine.logging import init_logging

    return init_logging(log_dir=str(log_dir), flush_interval_ms=10)


def read_log(log_dir: Path, object_type: str, category: str, **filters):
    """Flush the global queue and read today's entries."""
    from docflow.engine.logging import FileLogger, shutdown_logging

    shutdown_logging()
    return FileLogger(str(log_dir)).read_day(object_type, category, filters=filters or None)


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------

ALICE = "user-alice"          # author
BOB = "approver-bob"
CAROL = "approver-carol"
ROOT = "admin-root"
MALLORY = "user-mallory"      # unrelated user


@pytest.fixture
def draft(lifecycle):
    """A draft document authored by ALICE."""
    return lifecycle.create("Quarterly report", "Revenue grew in every region.", ALICE)


@pytest.fixture
def pending(lifecycle, draft):
    """ALICE's document, submitted for review."""
    return lifecycle.submit(draft.id, ALICE)


def backdate(session_factory, record_cls, record_id: str, minutes: int) -> None:
    """Set created_at to a fixed offset in the past so ordering is deterministic."""
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    session = session_factory()
    try:
        row = session.get(record_cls, record_id)
        row.created_at = base + timedelta(minutes=minutes)
        session.commit()
    finally:
        session.close()
