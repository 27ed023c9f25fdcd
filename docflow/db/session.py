"""
DocFlow Database Session Management.

Provides the single entry point for workflow DB initialisation, the
commit/rollback session scope, and the per-document transactional region
used by every check-then-act operation.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Generator, List, Optional

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from docflow.db.base import Base, engine_registry
from docflow.engine.errors import DocFlowConflictError, DocFlowUnavailableError

logger = logging.getLogger("docflow.db.session")

CORE_ENGINE = "docflow_core"

_session_factory: Optional[sessionmaker] = None


def init_workflow_db(
    db_url: str,
    create_tables: bool = False,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    pool_pre_ping: bool = True,
    echo: bool = False,
) -> sessionmaker:
    """
    Single entry point for workflow database initialisation.

    1. Registers the "docflow_core" engine in the EngineRegistry.
    2. On SQLite, turns on foreign key enforcement for every connection so
       that ON DELETE CASCADE from documents to approvals is honoured.
    3. Optionally runs Base.metadata.create_all() (dev / ``docflow init``).
    4. Stores the sessionmaker as the module-level default.

    Returns:
        The sessionmaker bound to the engine. Pass it to DocumentLifecycle
        and ApprovalLedger.
    """
    global _session_factory

    engine = engine_registry.register(
        CORE_ENGINE, db_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=pool_pre_ping,
        echo=echo,
    )

    if db_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def enable_foreign_keys(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    if create_tables:
        Base.metadata.create_all(engine)

    _session_factory = engine_registry.get_session_factory(CORE_ENGINE)
    logger.info(f"Workflow DB initialised ({engine.url.get_backend_name()})")
    return _session_factory


def get_session_factory() -> sessionmaker:
    """Return the sessionmaker set up by init_workflow_db()."""
    if _session_factory is None:
        raise RuntimeError("Workflow DB not initialized. Call init_workflow_db() first.")
    return _session_factory


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Context manager for a unit of work with auto-commit/rollback.

    Storage failures are translated after rollback:
        IntegrityError   → DocFlowConflictError
        OperationalError → DocFlowUnavailableError
    Everything else is re-raised unchanged.
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Integrity violation, transaction rolled back: {e.orig}")
        raise DocFlowConflictError(
            "The store rejected the write due to a conflicting record",
            constraint=str(e.orig),
        ) from e
    except OperationalError as e:
        session.rollback()
        logger.error(f"Store unavailable, transaction rolled back: {e.orig}")
        raise DocFlowUnavailableError(
            "The document store is unavailable",
            detail=str(e.orig),
        ) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Per-document locking
# ---------------------------------------------------------------------------

class _LockSlot:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


class DocumentLockRegistry:
    """
    In-process keyed locks, one per document id.

    Slots are created on first use and dropped once no thread holds or
    waits on them, so the registry does not grow with the document count.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._slots: Dict[str, _LockSlot] = {}

    @contextmanager
    def hold(self, key: str) -> Generator[None, None, None]:
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = _LockSlot()
            slot.holders += 1

        slot.lock.acquire()
        try:
            yield
        finally:
            slot.lock.release()
            with self._guard:
                slot.holders -= 1
                if slot.holders == 0:
                    del self._slots[key]

    @property
    def active_keys(self) -> List[str]:
        with self._guard:
            return list(self._slots.keys())


document_locks = DocumentLockRegistry()


@contextmanager
def document_transaction(
    document_id: str,
    factory: Optional[sessionmaker] = None,
) -> Generator[Session, None, None]:
    """
    Transactional region for one document.

    The document lock is taken before the session opens and released only
    after commit or rollback, so reads, checks and writes made through the
    yielded session form a single serialized unit per document. Callers
    load the row with ``with_for_update()`` so that the row lock also holds
    across processes on databases that support it.
    """
    with document_locks.hold(document_id):
        with session_scope(factory) as session:
            yield session


def close_all_sessions() -> None:
    """Dispose all engines. Used during shutdown."""
    global _session_factory
    _session_factory = None
    engine_registry.dispose()
