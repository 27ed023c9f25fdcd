"""
DocFlow Configuration — Load and validate docflow.yaml at startup.

Usage:
    from docflow.engine.config import load_config, get_config
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from docflow.engine.errors import DocFlowConfigError

CONFIG_FILE_NAME = "docflow.yaml"


# ---------------------------------------------------------------------------
# Pydantic models for docflow.yaml
# ---------------------------------------------------------------------------

class DatabaseConfig(BaseModel):
    url: str = "sqlite:///docflow.db"
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 1800
    pool_pre_ping: bool = True
    echo: bool = False


class LogRetentionConfig(BaseModel):
    execution_days: int = 90
    security_days: int = 365


class LogAsyncQueueConfig(BaseModel):
    flush_interval_ms: int = 100
    flush_batch_size: int = 50
    max_queue_size: int = 10000


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = ".docflow/logs"
    compress_after_days: int = 7
    retention: LogRetentionConfig = LogRetentionConfig()
    async_queue: LogAsyncQueueConfig = LogAsyncQueueConfig()

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"logging.level must be a standard level name, got '{v}'")
        return v


class DocFlowConfig(BaseModel):
    """Root model for docflow.yaml."""
    name: str = "DocFlow"
    version: str = "1.0.0"
    environment: str = "dev"

    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if v not in ("dev", "staging", "prod"):
            raise ValueError(f"environment must be dev/staging/prod, got '{v}'")
        return v


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_config: Optional[DocFlowConfig] = None


def _find_project_root() -> Path:
    """Find the project root by looking for docflow.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILE_NAME).exists():
            return parent
    return current


def load_config(config_path: Optional[str] = None) -> DocFlowConfig:
    """
    Load and validate docflow.yaml.

    Args:
        config_path: Explicit path to docflow.yaml. If None, auto-discovers.

    Returns:
        Validated DocFlowConfig instance. Defaults if no file exists.
    """
    global _config

    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILE_NAME)

    path = Path(config_path)
    if not path.exists():
        _config = DocFlowConfig()
        return _config

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise DocFlowConfigError(f"Cannot parse {path}: {e}", config_path=str(path)) from e

    if not isinstance(raw, dict):
        raise DocFlowConfigError(
            f"{path} must contain a mapping at the top level",
            config_path=str(path),
        )

    # Top-level "docflow:" block carries name/version/environment
    meta = raw.get("docflow", {}) or {}
    config_data = {
        "name": meta.get("name", raw.get("name", "DocFlow")),
        "version": str(meta.get("version", raw.get("version", "1.0.0"))),
        "environment": meta.get("environment", raw.get("environment", "dev")),
        "database": raw.get("database", {}) or {},
        "logging": raw.get("logging", {}) or {},
    }

    try:
        _config = DocFlowConfig(**config_data)
    except ValidationError as e:
        raise DocFlowConfigError(
            f"Invalid configuration in {path}",
            config_path=str(path),
            validation_errors=e.errors(),
        ) from e
    return _config


def get_config() -> DocFlowConfig:
    """Get the currently loaded config, loading if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config
