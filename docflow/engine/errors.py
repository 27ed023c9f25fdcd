"""
DocFlow Error Hierarchy — Structured exceptions for the review workflow.

Every error carries a context dict that serializes to JSON, so a failure
can be written to the structured log or handed to the API layer as-is.

Hierarchy:
    DocFlowError
    ├── DocFlowNotFoundError      — Document or approval does not exist
    ├── DocFlowSecurityError      — Actor lacks role or ownership (Forbidden)
    ├── DocFlowStateError         — Not allowed in the current status (InvalidState)
    ├── DocFlowValidationError    — Malformed primitive input
    ├── DocFlowStorageError       — Store failure, retryable at the transaction boundary
    │   ├── DocFlowConflictError     — Constraint violation (e.g. duplicate decision race)
    │   └── DocFlowUnavailableError  — Connection / operational failure
    └── DocFlowConfigError        — Invalid docflow.yaml
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class DocFlowError(Exception):
    """
    Base error for all DocFlow failures.

    Business-rule errors are final: retrying the same call yields the same
    outcome. Only storage errors set ``retryable``.
    """

    retryable: bool = False

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.error_type: str = self.__class__.__name__
        self.document_id: Optional[str] = context.get("document_id")
        self.operation: Optional[str] = context.get("operation")
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to JSON-compatible dict for logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "document_id": self.document_id,
            "operation": self.operation,
            "retryable": self.retryable,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k not in ("document_id", "operation")
            },
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.operation:
            parts.append(f"operation={self.operation}")
        if self.document_id:
            parts.append(f"document_id={self.document_id}")
        return " | ".join(parts)


class DocFlowNotFoundError(DocFlowError):
    """Referenced document or approval does not exist."""

    def __init__(self, message: str, **context: Any):
        self.entity: Optional[str] = context.get("entity")
        self.entity_id: Optional[str] = context.get("entity_id")
        super().__init__(message, **context)


class DocFlowSecurityError(DocFlowError):
    """
    Forbidden. The actor's role or ownership does not allow the operation.
    Logged to the security category.
    """

    def __init__(self, message: str, **context: Any):
        self.actor_id: Optional[str] = context.get("actor_id")
        self.actor_role: Optional[str] = context.get("actor_role")
        self.required_capability: Optional[str] = context.get("required_capability")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["actor_id"] = self.actor_id
        d["actor_role"] = self.actor_role
        d["required_capability"] = self.required_capability
        return d


class DocFlowStateError(DocFlowError):
    """
    InvalidState. The document's status or a workflow invariant (self-approval,
    duplicate decision, editing a locked document) forbids the operation.
    """

    def __init__(self, message: str, **context: Any):
        self.status: Optional[str] = context.get("status")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["status"] = self.status
        return d


class DocFlowValidationError(DocFlowError):
    """
    Input validation failed (field length, enum membership).
    Includes field-level error details.
    """

    def __init__(self, message: str, **context: Any):
        self.validation_errors: Optional[List[Dict[str, Any]]] = context.get("validation_errors")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["validation_errors"] = self.validation_errors
        return d


class DocFlowStorageError(DocFlowError):
    """Durable store failure. The whole unit of work was rolled back."""

    retryable = True


class DocFlowConflictError(DocFlowStorageError):
    """A storage constraint rejected the write (e.g. unique document/approver pair)."""

    def __init__(self, message: str, **context: Any):
        self.constraint: Optional[str] = context.get("constraint")
        super().__init__(message, **context)


class DocFlowUnavailableError(DocFlowStorageError):
    """The store could not be reached or aborted the transaction."""
    pass


class DocFlowConfigError(DocFlowError):
    """Configuration error — invalid docflow.yaml."""
    pass
