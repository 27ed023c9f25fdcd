"""Unit tests for docflow.engine.logging — FileLogger, AsyncLogQueue, LogRetentionManager."""

import gzip
import json
import time
from datetime import date, timedelta

from docflow.engine.logging import (
    DEFAULT_RETENTION,
    OBJECT_TYPE_CATEGORIES,
    AsyncLogQueue,
    FileLogger,
    LogEntry,
    LogRetentionManager,
    get_log_queue,
    init_logging,
    log,
    log_decision_recorded,
    log_document_event,
    log_security_event,
    log_system_event,
    shutdown_logging,
)


class TestObjectTypeCategories:
    def test_types(self):
        assert set(OBJECT_TYPE_CATEGORIES) == {"documents", "approvals", "system"}

    def test_every_type_has_execution_and_security(self):
        for cats in OBJECT_TYPE_CATEGORIES.values():
            assert set(cats) == {"execution", "security"}

    def test_default_retention(self):
        assert DEFAULT_RETENTION == {"execution": 90, "security": 365}


class TestLogEntry:
    def test_to_json_compact(self):
        entry = LogEntry("documents", "execution", {"a": 1, "b": "x"})
        assert entry.to_json() == '{"a":1,"b":"x"}'

    def test_to_json_non_serializable_falls_back_to_str(self):
        entry = LogEntry("system", "execution", {"day": date(2026, 1, 2)})
        assert json.loads(entry.to_json())["day"] == "2026-01-02"


class TestFileLogger:
    def test_creates_directory_tree(self, log_dir):
        FileLogger(str(log_dir))
        for obj_type, cats in OBJECT_TYPE_CATEGORIES.items():
            for cat in cats:
                assert (log_dir / obj_type / cat).is_dir()

    def test_write_and_read(self, log_dir):
        fl = FileLogger(str(log_dir))
        fl.write_batch([
            LogEntry("documents", "execution", {"event": "document_created", "n": 1}),
            LogEntry("documents", "execution", {"event": "document_updated", "n": 2}),
        ])

        entries = fl.read_day("documents", "execution")
        assert [e["n"] for e in entries] == [1, 2]

    def test_read_with_filters(self, log_dir):
        fl = FileLogger(str(log_dir))
        fl.write_batch([
            LogEntry("approvals", "execution", {"event": "decision_recorded", "actor_id": "a"}),
            LogEntry("approvals", "execution", {"event": "decision_recorded", "actor_id": "b"}),
        ])
        assert len(fl.read_day("approvals", "execution", filters={"actor_id": "b"})) == 1

    def test_read_missing_day(self, log_dir):
        fl = FileLogger(str(log_dir))
        assert fl.read_day("system", "execution", day=date(2001, 1, 1)) == []

    def test_read_skips_corrupt_lines(self, log_dir):
        fl = FileLogger(str(log_dir))
        path = log_dir / "system" / "execution" / f"{date.today().isoformat()}.jsonl"
        path.write_text('{"ok":1}\nnot json\n\n{"ok":2}\n', encoding="utf-8")
        assert [e["ok"] for e in fl.read_day("system", "execution")] == [1, 2]


class TestAsyncLogQueue:
    def test_push_and_drain_on_stop(self, log_dir):
        fl = FileLogger(str(log_dir))
        queue = AsyncLogQueue(fl, flush_interval_ms=10)
        queue.start()
        for i in range(5):
            assert queue.push(LogEntry("system", "execution", {"i": i}))
        queue.stop()
        assert len(fl.read_day("system", "execution")) == 5

    def test_full_batch_flushes_before_interval(self, log_dir):
        fl = FileLogger(str(log_dir))
        queue = AsyncLogQueue(fl, flush_interval_ms=60_000, flush_batch_size=3)
        queue.start()
        try:
            for i in range(3):
                queue.push(LogEntry("system", "execution", {"i": i}))
            deadline = time.monotonic() + 5
            while queue.pending_count and time.monotonic() < deadline:
                time.sleep(0.01)
            assert queue.pending_count == 0
        finally:
            queue.stop()
        assert [e["i"] for e in fl.read_day("system", "execution")] == [0, 1, 2]

    def test_drops_when_full(self, log_dir):
        queue = AsyncLogQueue(FileLogger(str(log_dir)), max_queue_size=1)
        assert queue.push(LogEntry("system", "execution", {})) is True
        assert queue.push(LogEntry("system", "execution", {})) is False
        assert queue.dropped_count == 1
        assert queue.pending_count == 1


class TestGlobalQueue:
    def test_log_without_queue_is_noop(self):
        assert get_log_queue() is None
        assert log(log_system_event("x")) is False

    def test_init_and_shutdown(self, log_dir):
        queue = init_logging(str(log_dir), flush_interval_ms=10)
        assert get_log_queue() is queue
        assert log(log_system_event("runtime_started")) is True
        shutdown_logging()
        assert get_log_queue() is None
        entries = FileLogger(str(log_dir)).read_day("system", "execution")
        assert entries[0]["event"] == "runtime_started"


class TestBuilders:
    def test_document_event(self):
        entry = log_document_event(
            "updated", "doc-1", "u1", "draft",
            actor_role="user", fields_changed=["title"],
        )
        assert entry.object_type == "documents"
        assert entry.category == "execution"
        assert entry.data["event"] == "document_updated"
        assert entry.data["document_id"] == "doc-1"
        assert entry.data["fields_changed"] == ["title"]
        assert "previous_status" not in entry.data

    def test_document_event_without_actor(self):
        entry = log_document_event("status_changed", "doc-1", None, "approved")
        assert "actor_id" not in entry.data

    def test_decision_recorded(self):
        entry = log_decision_recorded("ap-1", "doc-1", "b", "approver", "approved", "approved", True)
        assert entry.object_type == "approvals"
        assert entry.data["approval_id"] == "ap-1"
        assert entry.data["resulting_status"] == "approved"
        assert entry.data["has_comment"] is True

    def test_security_event(self):
        entry = log_security_event(
            "access_denied", "approvals", "decide", "u1", "user",
            document_id="doc-1", required_capability="decide", reason="no",
        )
        assert (entry.object_type, entry.category) == ("approvals", "security")
        assert entry.data["level"] == "WARNING"
        assert entry.data["required_capability"] == "decide"

    def test_security_event_unknown_type_goes_to_system(self):
        entry = log_security_event("access_denied", "widgets", "x", None, None)
        assert entry.object_type == "system"

    def test_system_event(self):
        entry = log_system_event("log_cleanup", details={"deleted": 1})
        assert entry.data["details"] == {"deleted": 1}


class TestLogRetentionManager:
    def _touch(self, log_dir, obj_type, cat, day):
        path = log_dir / obj_type / cat / f"{day.isoformat()}.jsonl"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text('{"x":1}\n', encoding="utf-8")
        return path

    def test_deletes_expired_and_compresses_old(self, log_dir):
        today = date(2026, 6, 1)
        expired = self._touch(log_dir, "documents", "execution", today - timedelta(days=91))
        old = self._touch(log_dir, "documents", "execution", today - timedelta(days=10))
        fresh = self._touch(log_dir, "documents", "execution", today - timedelta(days=1))
        kept_security = self._touch(log_dir, "documents", "security", today - timedelta(days=200))

        result = LogRetentionManager(str(log_dir), compress_after_days=7).cleanup(today=today)

        assert not expired.exists()
        assert not old.exists()
        assert fresh.exists()
        assert result["deleted"] == 1
        # 200-day-old security file is retained but compressed
        assert not kept_security.exists()
        assert result["compressed"] == 2
        gz = old.with_suffix(".jsonl.gz")
        with gzip.open(gz, "rt", encoding="utf-8") as f:
            assert f.read() == '{"x":1}\n'

    def test_ignores_unparseable_names(self, log_dir):
        path = log_dir / "system" / "execution" / "notes.txt"
        path.parent.mkdir(parents=True)
        path.write_text("x")
        assert LogRetentionManager(str(log_dir)).cleanup() == {"deleted": 0, "compressed": 0}
        assert path.exists()

    def test_custom_retention(self, log_dir):
        today = date(2026, 6, 1)
        path = self._touch(log_dir, "approvals", "execution", today - timedelta(days=5))
        LogRetentionManager(
            str(log_dir), retention_days={"execution": 3, "security": 3}
        ).cleanup(today=today)
        assert not path.exists()
