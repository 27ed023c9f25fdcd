"""
DocFlow Logging System — Structured JSONL audit trail.

Layout: {log_dir}/{object_type}/{category}/{YYYY-MM-DD}.jsonl

Services build entries with the ``log_*`` builders below and hand them to
``log()``, which pushes onto a bounded in-memory queue. A daemon thread
appends queued entries to the day's file every flush interval, or sooner
once a full batch is waiting. ``LogRetentionManager`` gzips and expires
old day files.
"""

from __future__ import annotations

import gzip
import json
import logging
import shutil
import threading
from collections import defaultdict
from datetime import date, datetime, timezone
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger("docflow.engine.logging")

OBJECT_TYPE_CATEGORIES = {
    "documents": ["execution", "security"],
    "approvals": ["execution", "security"],
    "system": ["execution", "security"],
}

# Days a day file is kept, per category
DEFAULT_RETENTION = {
    "execution": 90,
    "security": 365,
}


class LogEntry:
    """One JSON line bound for ``{object_type}/{category}``."""

    __slots__ = ("object_type", "category", "data")

    def __init__(self, object_type: str, category: str, data: Dict[str, Any]):
        self.object_type = object_type
        self.category = category
        self.data = data

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


def _day_file(log_dir: Path, object_type: str, category: str, day: date) -> Path:
    return log_dir / object_type / category / f"{day.isoformat()}.jsonl"


class FileLogger:
    """Appends entries to today's file for their object type and category."""

    def __init__(self, log_dir: str = "logs"):
        self._log_dir = Path(log_dir)
        self._write_lock = threading.Lock()
        for obj_type, categories in OBJECT_TYPE_CATEGORIES.items():
            for cat in categories:
                (self._log_dir / obj_type / cat).mkdir(parents=True, exist_ok=True)

    def write_batch(self, entries: List[LogEntry]) -> None:
        """Write entries in order, opening each target file once."""
        today = date.today()
        grouped: Dict[Path, List[str]] = defaultdict(list)
        for entry in entries:
            path = _day_file(self._log_dir, entry.object_type, entry.category, today)
            grouped[path].append(entry.to_json())

        with self._write_lock:
            for path, lines in grouped.items():
                with open(path, "a", encoding="utf-8") as f:
                    f.write("\n".join(lines) + "\n")

    def read_day(
        self,
        object_type: str,
        category: str,
        day: Optional[date] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Entries for one day (default today) in write order. ``filters``
        matches top-level keys by equality. Unparseable lines are skipped.
        """
        path = _day_file(self._log_dir, object_type, category, day or date.today())
        if not path.exists():
            return []

        entries: List[Dict[str, Any]] = []
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if filters and any(data.get(k) != v for k, v in filters.items()):
                    continue
                entries.append(data)
        return entries


class AsyncLogQueue:
    """
    Bounded queue drained by a background thread.

    ``push`` never blocks; when the queue is full the entry is dropped and
    counted. ``stop`` writes whatever is still queued.
    """

    def __init__(
        self,
        file_logger: FileLogger,
        flush_interval_ms: int = 100,
        flush_batch_size: int = 50,
        max_queue_size: int = 10000,
    ):
        self._writer = file_logger
        self._flush_interval = flush_interval_ms / 1000.0
        self._flush_batch_size = flush_batch_size
        self._queue: Queue[LogEntry] = Queue(maxsize=max_queue_size)
        self._wake = threading.Event()
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._dropped_count = 0

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._run, name="docflow-log-flush", daemon=True)
        self._thread.start()
        logger.info("Async log queue started")

    def stop(self, timeout: float = 5.0) -> None:
        self._running = False
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        self._flush()
        logger.info(f"Async log queue stopped (dropped: {self._dropped_count})")

    def push(self, entry: LogEntry) -> bool:
        """Queue an entry. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(entry)
        except Full:
            self._dropped_count += 1
            return False
        if self._queue.qsize() >= self._flush_batch_size:
            self._wake.set()
        return True

    def _run(self) -> None:
        while self._running:
            self._wake.wait(self._flush_interval)
            self._wake.clear()
            self._flush()

    def _flush(self) -> None:
        """Write everything queued, one batch at a time."""
        while True:
            batch: List[LogEntry] = []
            while len(batch) < self._flush_batch_size:
                try:
                    batch.append(self._queue.get_nowait())
                except Empty:
                    break
            if not batch:
                return
            try:
                self._writer.write_batch(batch)
            except OSError as e:
                logger.error(f"Log flush failed, {len(batch)} entries lost: {e}")

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        return self._dropped_count


# ---------------------------------------------------------------------------
# Log Entry Builders
# ---------------------------------------------------------------------------

def _base_entry(
    event: str,
    level: str,
    document_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build a base log entry with common fields."""
    entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
    }
    if document_id is not None:
        entry["document_id"] = document_id
    if actor_id is not None:
        entry["actor_id"] = actor_id
    entry.update(extra)
    return entry


def log_document_event(
    event: str,
    document_id: str,
    actor_id: Optional[str],
    status: str,
    actor_role: Optional[str] = None,
    fields_changed: Optional[List[str]] = None,
    previous_status: Optional[str] = None,
) -> LogEntry:
    """Build a document lifecycle entry (created/updated/deleted/submitted/status_changed)."""
    data = _base_entry(
        event=f"document_{event}",
        level="INFO",
        document_id=document_id,
        actor_id=actor_id,
        status=status,
    )
    if actor_role:
        data["actor_role"] = actor_role
    if fields_changed:
        data["fields_changed"] = fields_changed
    if previous_status:
        data["previous_status"] = previous_status
    return LogEntry("documents", "execution", data)


def log_decision_recorded(
    approval_id: str,
    document_id: str,
    approver_id: str,
    approver_role: str,
    action: str,
    resulting_status: str,
    has_comment: bool = False,
) -> LogEntry:
    """Build an approval decision entry."""
    data = _base_entry(
        event="decision_recorded",
        level="INFO",
        document_id=document_id,
        actor_id=approver_id,
        approval_id=approval_id,
        actor_role=approver_role,
        action=action,
        resulting_status=resulting_status,
        has_comment=has_comment,
    )
    return LogEntry("approvals", "execution", data)


def log_security_event(
    event: str,
    object_type: str,
    operation: str,
    actor_id: Optional[str],
    actor_role: Optional[str],
    document_id: Optional[str] = None,
    required_capability: Optional[str] = None,
    reason: Optional[str] = None,
    level: str = "WARNING",
) -> LogEntry:
    """Build a security event entry (denied access)."""
    data = _base_entry(
        event=event,
        level=level,
        document_id=document_id,
        actor_id=actor_id,
        actor_role=actor_role,
        operation=operation,
    )
    if required_capability:
        data["required_capability"] = required_capability
    if reason:
        data["reason"] = reason
    target = object_type if object_type in OBJECT_TYPE_CATEGORIES else "system"
    return LogEntry(target, "security", data)


def log_system_event(
    event: str,
    level: str = "INFO",
    details: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    """Build a system event entry (init, config, cleanup)."""
    data = _base_entry(event=event, level=level)
    if details:
        data["details"] = details
    return LogEntry("system", "execution", data)




# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------

class LogRetentionManager:
    """
    Deletes day files older than their category's retention and gzips
    plain files older than ``compress_after_days``.
    """

    def __init__(
        self,
        log_dir: str = "logs",
        retention_days: Optional[Dict[str, int]] = None,
        compress_after_days: int = 7,
    ):
        self._log_dir = Path(log_dir)
        self._retention = retention_days or DEFAULT_RETENTION.copy()
        self._compress_after = compress_after_days

    def cleanup(self, today: Optional[date] = None) -> Dict[str, int]:
        """Returns {"deleted": N, "compressed": M}."""
        today = today or date.today()
        result = {"deleted": 0, "compressed": 0}

        for category, path, day in self._day_files():
            age = (today - day).days
            if age > self._retention.get(category, DEFAULT_RETENTION["execution"]):
                path.unlink()
                result["deleted"] += 1
            elif age > self._compress_after and path.suffix == ".jsonl":
                if self._compress(path):
                    result["compressed"] += 1

        logger.info(f"Log cleanup: {result}")
        return result

    def _day_files(self) -> Iterator[Tuple[str, Path, date]]:
        """(category, path, day) for every file named after a date."""
        for obj_type, categories in OBJECT_TYPE_CATEGORIES.items():
            for category in categories:
                cat_dir = self._log_dir / obj_type / category
                if not cat_dir.is_dir():
                    continue
                for path in cat_dir.iterdir():
                    try:
                        day = date.fromisoformat(path.name.split(".")[0])
                    except ValueError:
                        continue
                    if path.is_file():
                        yield category, path, day

    @staticmethod
    def _compress(path: Path) -> bool:
        gz_path = path.with_name(path.name + ".gz")
        try:
            with open(path, "rb") as f_in, gzip.open(gz_path, "wb") as f_out:
                shutil.copyfileobj(f_in, f_out)
        except OSError as e:
            logger.error(f"Failed to compress {path}: {e}")
            gz_path.unlink(missing_ok=True)
            return False
        path.unlink()
        return True


# ---------------------------------------------------------------------------
# Global queue
# ---------------------------------------------------------------------------

_global_queue: Optional[AsyncLogQueue] = None


def init_logging(
    log_dir: str = "logs",
    flush_interval_ms: int = 100,
    flush_batch_size: int = 50,
    max_queue_size: int = 10000,
) -> AsyncLogQueue:
    """Start the process-wide queue that ``log()`` pushes to."""
    global _global_queue
    if _global_queue is not None:
        _global_queue.stop()
    _global_queue = AsyncLogQueue(
        FileLogger(log_dir=log_dir),
        flush_interval_ms=flush_interval_ms,
        flush_batch_size=flush_batch_size,
        max_queue_size=max_queue_size,
    )
    _global_queue.start()
    return _global_queue


def get_log_queue() -> Optional[AsyncLogQueue]:
    return _global_queue


def log(entry: LogEntry) -> bool:
    """Push to the global queue; a no-op returning False before init_logging()."""
    if _global_queue is None:
        logger.debug(f"Log queue not initialized, dropped {entry.data.get('event')}")
        return False
    return _global_queue.push(entry)


def shutdown_logging() -> None:
    """Flush and stop the global queue."""
    global _global_queue
    if _global_queue is not None:
        _global_queue.stop()
        _global_queue = None
