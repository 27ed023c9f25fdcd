"""
DocFlow Database Base — SQLAlchemy declarative base, mixins, and engine registry.

Provides:
- Base: SQLAlchemy declarative base for all workflow models
- TimestampMixin: created_at, updated_at
- EngineRegistry: Named engine registry (one per configured store)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, create_engine, text
from sqlalchemy.types import TypeDecorator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, sessionmaker


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamps on every backend.

    SQLite stores DateTime without an offset; values read back are naive
    and are tagged as UTC here so they compare equal to what was written.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all DocFlow models."""
    pass


class TimestampMixin:
    """Adds created_at and updated_at columns."""
    created_at = Column(UTCDateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)


class EngineRegistry:
    """
    Registry of named SQLAlchemy engines.

    Usage:
        registry = EngineRegistry()
        registry.register("docflow_core", "postgresql://...")
        factory = registry.get_session_factory("docflow_core")
    """

    def __init__(self):
        self._engines: Dict[str, Any] = {}
        self._session_factories: Dict[str, sessionmaker] = {}

    def register(
        self,
        name: str,
        url: str,
        pool_size: int = 10,
        max_overflow: int = 20,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
        pool_pre_ping: bool = True,
        **kwargs: Any,
    ) -> Any:
        """Register (or replace) a database engine. Pool options are skipped for SQLite."""
        if name in self._engines:
            self._engines[name].dispose()

        if url.startswith("sqlite"):
            connect_args = dict(kwargs.pop("connect_args", {}))
            connect_args.setdefault("check_same_thread", False)
            engine = create_engine(url, connect_args=connect_args, **kwargs)
        else:
            engine = create_engine(
                url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                pool_pre_ping=pool_pre_ping,
                **kwargs,
            )
        self._engines[name] = engine
        self._session_factories[name] = sessionmaker(bind=engine, expire_on_commit=False)
        return engine

    def get(self, name: str) -> Any:
        """Get a registered engine by name."""
        if name not in self._engines:
            raise KeyError(f"Engine '{name}' not registered. Available: {list(self._engines.keys())}")
        return self._engines[name]

    def get_session_factory(self, name: str) -> sessionmaker:
        if name not in self._session_factories:
            raise KeyError(
                f"Session factory '{name}' not found. Available: {list(self._session_factories.keys())}"
            )
        return self._session_factories[name]

    def dispose(self, name: Optional[str] = None) -> None:
        """Dispose one or all engines (close connection pools)."""
        if name:
            engine = self._engines.pop(name, None)
            self._session_factories.pop(name, None)
            if engine is not None:
                engine.dispose()
        else:
            for engine in self._engines.values():
                engine.dispose()
            self._engines.clear()
            self._session_factories.clear()

    @property
    def registered_names(self) -> list:
        return list(self._engines.keys())

    def health_check(self, name: str) -> bool:
        """Check if an engine can connect."""
        try:
            with self.get(name).connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except (KeyError, SQLAlchemyError):
            return False


# Global engine registry singleton
engine_registry = EngineRegistry()
