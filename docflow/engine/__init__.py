"""DocFlow Engine — Config, errors, structured logging, runtime wiring."""

from docflow.engine.errors import (  # noqa: F401
    DocFlowConfigError,
    DocFlowConflictError,
    DocFlowError,
    DocFlowNotFoundError,
    DocFlowSecurityError,
    DocFlowStateError,
    DocFlowStorageError,
    DocFlowUnavailableError,
    DocFlowValidationError,
)

__all__ = [
    "DocFlowError",
    "DocFlowNotFoundError",
    "DocFlowSecurityError",
    "DocFlowStateError",
    "DocFlowValidationError",
    "DocFlowStorageError",
    "DocFlowConflictError",
    "DocFlowUnavailableError",
    "DocFlowConfigError",
]
