"""Unit tests for docflow.db — engine registry, session scope, document locks."""

import threading
import time
from unittest.mock import MagicMock

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError, OperationalError

from docflow.db.base import EngineRegistry, engine_registry
from docflow.db.models import ApprovalRecord, DocumentRecord
from docflow.db.session import (
    CORE_ENGINE,
    DocumentLockRegistry,
    document_locks,
    document_transaction,
    get_session_factory,
    init_workflow_db,
    session_scope,
)
from docflow.engine.errors import DocFlowConflictError, DocFlowUnavailableError


class TestEngineRegistry:
    def test_register_sqlite(self, db_url):
        registry = EngineRegistry()
        engine = registry.register("t", db_url)
        assert registry.get("t") is engine
        assert registry.registered_names == ["t"]
        assert registry.health_check("t") is True
        registry.dispose()
        assert registry.registered_names == []

    def test_unknown_engine(self):
        registry = EngineRegistry()
        with pytest.raises(KeyError):
            registry.get("missing")
        assert registry.health_check("missing") is False


class TestInitWorkflowDb:
    def test_creates_tables(self, session_factory):
        tables = set(inspect(engine_registry.get(CORE_ENGINE)).get_table_names())
        assert {"documents", "approvals"} <= tables
        assert get_session_factory() is session_factory

    def test_uninitialised(self):
        with pytest.raises(RuntimeError):
            get_session_factory()

    def test_foreign_keys_enforced(self, session_factory):
        with pytest.raises(DocFlowConflictError):
            with session_scope(session_factory) as session:
                session.add(ApprovalRecord(
                    document_id="no-such-doc", approver_id="b", action="approved"
                ))


class TestSessionScope:
    def _factory(self, exc):
        session = MagicMock()
        session.commit.side_effect = exc
        return MagicMock(return_value=session), session

    def test_commit_and_close(self):
        factory, session = self._factory(None)
        with session_scope(factory):
            pass
        session.commit.assert_called_once()
        session.close.assert_called_once()

    def test_integrity_error_becomes_conflict(self):
        factory, session = self._factory(IntegrityError("INSERT", {}, Exception("UNIQUE")))
        with pytest.raises(DocFlowConflictError) as exc:
            with session_scope(factory):
                pass
        session.rollback.assert_called_once()
        assert exc.value.retryable is True
        assert "UNIQUE" in exc.value.constraint

    def test_operational_error_becomes_unavailable(self):
        factory, session = self._factory(OperationalError("SELECT", {}, Exception("gone")))
        with pytest.raises(DocFlowUnavailableError):
            with session_scope(factory):
                pass
        session.rollback.assert_called_once()

    def test_other_errors_propagate(self):
        factory, session = self._factory(None)
        with pytest.raises(ValueError):
            with session_scope(factory):
                raise ValueError("boom")
        session.rollback.assert_called_once()
        session.commit.assert_not_called()

    def test_rollback_discards_writes(self, session_factory):
        with pytest.raises(ValueError):
            with session_scope(session_factory) as session:
                session.add(DocumentRecord(
                    title="Lost", content="never committed", status="draft", creator_id="a"
                ))
                session.flush()
                raise ValueError("abort")
        with session_scope(session_factory) as session:
            assert session.query(DocumentRecord).count() == 0


class TestDocumentLockRegistry:
    def test_slots_released(self):
        registry = DocumentLockRegistry()
        with registry.hold("d1"):
            assert registry.active_keys == ["d1"]
        assert registry.active_keys == []

    def test_same_key_serialises(self):
        registry = DocumentLockRegistry()
        events = []

        def worker(name):
            with registry.hold("d1"):
                events.append(f"{name}-in")
                time.sleep(0.05)
                events.append(f"{name}-out")

        threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # No interleaving: every "in" is immediately followed by its own "out"
        assert events[0][0] == events[1][0]
        assert events[2][0] == events[3][0]

    def test_different_keys_do_not_block(self):
        registry = DocumentLockRegistry()
        with registry.hold("d1"):
            acquired = threading.Event()

            def other():
                with registry.hold("d2"):
                    acquired.set()

            t = threading.Thread(target=other)
            t.start()
            assert acquired.wait(timeout=1.0)
            t.join()

    def test_released_on_error(self, session_factory):
        with pytest.raises(ValueError):
            with document_transaction("d1", session_factory):
                raise ValueError("x")
        assert "d1" not in document_locks.active_keys
