"""Document status transitions."""

from docflow.workflow.state_machine import (  # noqa: F401
    ApprovalAction,
    DocumentStatus,
    WorkflowEvent,
    next_status,
)

__all__ = ["ApprovalAction", "DocumentStatus", "WorkflowEvent", "next_status"]
