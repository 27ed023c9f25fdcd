"""
DocFlow Runtime — Wires configuration, storage, logging and the two
workflow services together.

Lifecycle:
    runtime = WorkflowRuntime(config)
    runtime.startup()          # DB engine, log queue, services
    runtime.documents.create(...)
    runtime.approvals.decide(...)
    runtime.shutdown()         # flush logs, dispose engines
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from docflow.approvals.service import ApprovalLedger
from docflow.db.base import engine_registry
from docflow.db.session import CORE_ENGINE, close_all_sessions, init_workflow_db
from docflow.documents.service import DocumentLifecycle
from docflow.engine.config import DocFlowConfig, get_config
from docflow.engine.logging import (
    AsyncLogQueue,
    LogRetentionManager,
    init_logging,
    log,
    log_system_event,
    shutdown_logging,
)

logger = logging.getLogger("docflow.engine.runtime")


class WorkflowRuntime:
    """Single entry point the API layer holds on to."""

    def __init__(
        self,
        config: Optional[DocFlowConfig] = None,
        create_tables: bool = False,
        enable_file_logging: bool = True,
    ):
        self.config = config or get_config()
        self._create_tables = create_tables
        self._enable_file_logging = enable_file_logging

        self.documents: Optional[DocumentLifecycle] = None
        self.approvals: Optional[ApprovalLedger] = None
        self.log_queue: Optional[AsyncLogQueue] = None
        self.retention_manager: Optional[LogRetentionManager] = None

        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def startup(self) -> None:
        """Initialize all subsystems."""
        if self._started:
            logger.warning("Runtime already started")
            return

        logging.getLogger("docflow").setLevel(self.config.logging.level)
        logger.info("Starting DocFlow runtime...")

        # 1. Storage
        db = self.config.database
        factory = init_workflow_db(
            db.url,
            create_tables=self._create_tables,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            pool_recycle=db.pool_recycle,
            pool_pre_ping=db.pool_pre_ping,
            echo=db.echo,
        )

        # 2. Structured logging
        log_cfg = self.config.logging
        if self._enable_file_logging:
            self.log_queue = init_logging(
                log_dir=log_cfg.directory,
                flush_interval_ms=log_cfg.async_queue.flush_interval_ms,
                flush_batch_size=log_cfg.async_queue.flush_batch_size,
                max_queue_size=log_cfg.async_queue.max_queue_size,
            )
        self.retention_manager = LogRetentionManager(
            log_dir=log_cfg.directory,
            retention_days={
                "execution": log_cfg.retention.execution_days,
                "security": log_cfg.retention.security_days,
            },
            compress_after_days=log_cfg.compress_after_days,
        )

        # 3. Services share one session factory
        self.documents = DocumentLifecycle(factory)
        self.approvals = ApprovalLedger(self.documents, factory)

        self._started = True
        log(log_system_event("runtime_started", details=self.status()))
        logger.info("DocFlow runtime started")

    def shutdown(self) -> None:
        """Flush logs and close connections."""
        if not self._started:
            return

        log(log_system_event("runtime_shutdown"))
        shutdown_logging()
        self.log_queue = None
        close_all_sessions()

        self.documents = None
        self.approvals = None
        self._started = False
        logger.info("DocFlow runtime shut down")

    def cleanup_logs(self) -> Dict[str, int]:
        """Apply log retention. Usable without startup()."""
        manager = self.retention_manager or LogRetentionManager(
            log_dir=self.config.logging.directory,
            retention_days={
                "execution": self.config.logging.retention.execution_days,
                "security": self.config.logging.retention.security_days,
            },
            compress_after_days=self.config.logging.compress_after_days,
        )
        result = manager.cleanup()
        log(log_system_event("log_cleanup", details=result))
        return result

    def status(self) -> Dict[str, Any]:
        return {
            "environment": self.config.environment,
            "database": engine_registry.health_check(CORE_ENGINE),
            "file_logging": self.log_queue is not None,
        }

    def __enter__(self) -> "WorkflowRuntime":
        self.startup()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()
