"""Unit tests for docflow.workflow.state_machine."""

import pytest

from docflow.engine.errors import DocFlowStateError
from docflow.workflow.state_machine import (
    TRANSITIONS,
    ApprovalAction,
    DocumentStatus,
    WorkflowEvent,
    event_for_action,
    next_status,
)


class TestTransitions:
    @pytest.mark.parametrize("current,event,expected", [
        (DocumentStatus.DRAFT, WorkflowEvent.SUBMIT, DocumentStatus.PENDING),
        (DocumentStatus.REJECTED, WorkflowEvent.SUBMIT, DocumentStatus.PENDING),
        (DocumentStatus.PENDING, WorkflowEvent.APPROVE, DocumentStatus.APPROVED),
        (DocumentStatus.PENDING, WorkflowEvent.REJECT, DocumentStatus.REJECTED),
    ])
    def test_allowed_edges(self, current, event, expected):
        assert next_status(current, event) is expected

    def test_only_four_edges(self):
        assert len(TRANSITIONS) == 4

    def test_approved_is_terminal(self):
        for event in WorkflowEvent:
            assert (DocumentStatus.APPROVED, event) not in TRANSITIONS
            with pytest.raises(DocFlowStateError):
                next_status(DocumentStatus.APPROVED, event)

    def test_accepts_string_status(self):
        assert next_status("draft", WorkflowEvent.SUBMIT) is DocumentStatus.PENDING

    @pytest.mark.parametrize("current", ["pending", "approved"])
    def test_submit_refused(self, current):
        with pytest.raises(DocFlowStateError, match="Only draft or rejected") as exc:
            next_status(current, WorkflowEvent.SUBMIT, document_id="d1")
        assert exc.value.status == current
        assert exc.value.document_id == "d1"

    @pytest.mark.parametrize("current", ["draft", "approved", "rejected"])
    def test_decide_refused_unless_pending(self, current):
        with pytest.raises(DocFlowStateError, match="Only pending"):
            next_status(current, WorkflowEvent.APPROVE)


class TestEventForAction:
    def test_mapping(self):
        assert event_for_action(ApprovalAction.APPROVED) is WorkflowEvent.APPROVE
        assert event_for_action(ApprovalAction.REJECTED) is WorkflowEvent.REJECT
