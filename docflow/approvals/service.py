"""
DocFlow Approval Ledger — Record decisions and drive the terminal transition.

decide() checks, in order:
    1. role may decide                       → DocFlowSecurityError
    2. document exists                       → DocFlowNotFoundError
    3. document is pending                   → DocFlowStateError
    4. approver is not the creator           → DocFlowStateError
    5. approver has not decided this before  → DocFlowStateError

Checks 2-5, the approval insert and the status change run in one
document transaction. The UNIQUE(document_id, approver_id) constraint
backs check 5 and surfaces as DocFlowConflictError if it ever fires.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from docflow.approvals.models import (
    Approval,
    ApprovalCreate,
    ApprovalFilter,
    ApprovalStats,
    DocumentDetail,
)
from docflow.db.models import ApprovalRecord
from docflow.db.session import document_transaction, session_scope
from docflow.documents.service import DocumentLifecycle, require_actor_id
from docflow.engine.errors import DocFlowNotFoundError, DocFlowStateError
from docflow.engine.logging import log, log_decision_recorded
from docflow.engine.validation import validate_input
from docflow.security.permissions import Capability, Role, coerce_role, require_capability
from docflow.workflow.state_machine import ApprovalAction, event_for_action, next_status

logger = logging.getLogger("docflow.approvals.service")


class ApprovalLedger:
    """
    Append-only store of approval decisions.

    Shares the session factory with the DocumentLifecycle it drives so the
    decision and the status change commit in the same transaction.
    """

    def __init__(
        self,
        documents: DocumentLifecycle,
        session_factory: Optional[sessionmaker] = None,
    ):
        self._documents = documents
        self._session_factory = session_factory or documents.session_factory

    # -------------------------------------------------------------------
    # Decide
    # -------------------------------------------------------------------

    def decide(
        self,
        document_id: str,
        action: Union[ApprovalAction, str],
        comment: Optional[str],
        approver_id: str,
        approver_role: Union[Role, str],
    ) -> Approval:
        """Record one decision and move the document to approved/rejected."""
        require_actor_id(approver_id, "decide")
        payload = validate_input(
            ApprovalCreate, {"action": action, "comment": comment}, operation="decide"
        )
        role = coerce_role(approver_role)
        require_capability(
            role,
            Capability.DECIDE,
            "Only approvers and admins can approve or reject documents",
            actor_id=approver_id,
            object_type="approvals",
            operation="decide",
            document_id=document_id,
        )

        with document_transaction(document_id, self._session_factory) as session:
            document = self._documents.load_locked(session, document_id)

            new_status = next_status(
                document.status,
                event_for_action(payload.action),
                document_id=document_id,
                operation="decide",
            )

            if document.creator_id == approver_id:
                raise DocFlowStateError(
                    "Self-approval is forbidden: you cannot decide on your own document",
                    document_id=document_id,
                    status=document.status,
                    operation="decide",
                )

            existing = session.execute(
                select(ApprovalRecord.id).where(
                    ApprovalRecord.document_id == document_id,
                    ApprovalRecord.approver_id == approver_id,
                )
            ).first()
            if existing is not None:
                raise DocFlowStateError(
                    "Duplicate decision forbidden: you have already decided on this document",
                    document_id=document_id,
                    status=document.status,
                    operation="decide",
                )

            record = ApprovalRecord(
                document_id=document_id,
                approver_id=approver_id,
                action=payload.action.value,
                comment=payload.comment,
            )
            session.add(record)
            session.flush()

            self._documents.apply_decision_outcome(document_id, new_status, session=session)
            approval = Approval.model_validate(record)

        logger.info(
            f"Decision recorded: {approval.action.value} on {document_id} "
            f"by {approver_id} -> {new_status.value}"
        )
        log(log_decision_recorded(
            approval_id=approval.id,
            document_id=document_id,
            approver_id=approver_id,
            approver_role=role.value,
            action=approval.action.value,
            resulting_status=new_status.value,
            has_comment=approval.comment is not None,
        ))
        return approval

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------

    def get_approval(self, approval_id: str) -> Approval:
        with session_scope(self._session_factory) as session:
            record = session.get(ApprovalRecord, approval_id)
            if record is None:
                raise DocFlowNotFoundError(
                    "Approval not found", entity="approval", entity_id=approval_id
                )
            return Approval.model_validate(record)

    def get_with_approvals(self, document_id: str) -> DocumentDetail:
        """The document and every decision recorded on it, read in one session."""
        with session_scope(self._session_factory) as session:
            row = self._documents.load(session, document_id)
            return DocumentDetail.model_validate(row)

    def list_approvals(
        self,
        document_id: Optional[str] = None,
        approver_id: Optional[str] = None,
        action: Optional[Union[ApprovalAction, str]] = None,
    ) -> List[Approval]:
        """All approvals matching every given filter, newest first."""
        filters = validate_input(
            ApprovalFilter,
            {"document_id": document_id, "approver_id": approver_id, "action": action},
            operation="list_approvals",
        )
        stmt = select(ApprovalRecord)
        if filters.document_id is not None:
            stmt = stmt.where(ApprovalRecord.document_id == filters.document_id)
        if filters.approver_id is not None:
            stmt = stmt.where(ApprovalRecord.approver_id == filters.approver_id)
        if filters.action is not None:
            stmt = stmt.where(ApprovalRecord.action == filters.action.value)
        stmt = stmt.order_by(ApprovalRecord.created_at.desc(), ApprovalRecord.id.desc())

        with session_scope(self._session_factory) as session:
            return [Approval.model_validate(r) for r in session.execute(stmt).scalars()]

    def list_by_document(self, document_id: str) -> List[Approval]:
        return self.list_approvals(document_id=document_id)

    def list_by_approver(self, approver_id: str) -> List[Approval]:
        return self.list_approvals(approver_id=approver_id)

    def stats(self, approver_id: Optional[str] = None) -> ApprovalStats:
        """Counts of decisions, optionally for a single approver."""
        stmt = select(ApprovalRecord.action, func.count(ApprovalRecord.id)).group_by(
            ApprovalRecord.action
        )
        if approver_id is not None:
            stmt = stmt.where(ApprovalRecord.approver_id == approver_id)

        with session_scope(self._session_factory) as session:
            counts = {action: count for action, count in session.execute(stmt).all()}

        approved = counts.get(ApprovalAction.APPROVED.value, 0)
        rejected = counts.get(ApprovalAction.REJECTED.value, 0)
        return ApprovalStats(total=approved + rejected, approved=approved, rejected=rejected)

    def stats_for_actor(
        self,
        actor_id: str,
        actor_role: Union[Role, str],
        all_approvers: bool = False,
    ) -> ApprovalStats:
        """
        Stats as seen by an actor: own decisions for approvers,
        system-wide totals only with VIEW_ALL_STATS.
        """
        role = coerce_role(actor_role)
        if all_approvers:
            require_capability(
                role,
                Capability.VIEW_ALL_STATS,
                "Only admins can view statistics for all approvers",
                actor_id=actor_id,
                object_type="approvals",
                operation="stats",
            )
            return self.stats()

        require_capability(
            role,
            Capability.DECIDE,
            "Only approvers and admins have decision statistics",
            actor_id=actor_id,
            object_type="approvals",
            operation="stats",
        )
        return self.stats(approver_id=actor_id)

    def __repr__(self) -> str:
        return f"<ApprovalLedger documents={self._documents!r}>"
