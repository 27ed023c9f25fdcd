"""
DocFlow Workflow State Machine — the single transition function for Document.status.

    draft    --submit-->  pending
    rejected --submit-->  pending
    pending  --approve--> approved
    pending  --reject-->  rejected

Approved has no outgoing edge. Admin edits of an approved document leave
the status untouched.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple

from docflow.engine.errors import DocFlowStateError


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalAction(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkflowEvent(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"


TRANSITIONS: Dict[Tuple[DocumentStatus, WorkflowEvent], DocumentStatus] = {
    (DocumentStatus.DRAFT, WorkflowEvent.SUBMIT): DocumentStatus.PENDING,
    (DocumentStatus.REJECTED, WorkflowEvent.SUBMIT): DocumentStatus.PENDING,
    (DocumentStatus.PENDING, WorkflowEvent.APPROVE): DocumentStatus.APPROVED,
    (DocumentStatus.PENDING, WorkflowEvent.REJECT): DocumentStatus.REJECTED,
}

_REFUSALS = {
    WorkflowEvent.SUBMIT: "Only draft or rejected documents can be submitted for approval",
    WorkflowEvent.APPROVE: "Only pending documents can be decided",
    WorkflowEvent.REJECT: "Only pending documents can be decided",
}

# Statuses in which a non-privileged actor may not edit / delete
EDIT_LOCKED_STATUSES = frozenset({DocumentStatus.PENDING, DocumentStatus.APPROVED})
DELETE_LOCKED_STATUSES = frozenset({DocumentStatus.APPROVED})


def event_for_action(action: ApprovalAction) -> WorkflowEvent:
    """Map a decision to the workflow event it fires."""
    return WorkflowEvent.APPROVE if action == ApprovalAction.APPROVED else WorkflowEvent.REJECT


def next_status(current: DocumentStatus, event: WorkflowEvent, **context) -> DocumentStatus:
    """
    Return the status reached by firing ``event`` from ``current``.

    Raises DocFlowStateError when the edge does not exist.
    """
    current = DocumentStatus(current)
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise DocFlowStateError(
            _REFUSALS[event],
            status=current.value,
            event=event.value,
            **context,
        ) from None
