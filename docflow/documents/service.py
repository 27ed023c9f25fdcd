"""
DocFlow Document Lifecycle — Create, edit, delete and submit documents.

Handles:
- Creation (status always starts as draft)
- Whitelisted partial updates (title, content)
- Deletion with cascade to the document's approvals
- Submission for review (draft/rejected → pending, creator only)
- Applying a decision outcome inside the ledger's transaction

Rules:
    update  — creator or MANAGE_ANY_DOCUMENT; pending/approved need EDIT_LOCKED_DOCUMENT
    delete  — creator or MANAGE_ANY_DOCUMENT; approved needs DELETE_APPROVED_DOCUMENT
    submit  — creator only, no override
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from docflow.db.base import utcnow
from docflow.db.models import DocumentRecord
from docflow.db.session import document_transaction, session_scope
from docflow.documents.models import (
    MUTABLE_FIELDS,
    Document,
    DocumentCreate,
    DocumentFilter,
    DocumentUpdate,
)
from docflow.engine.errors import (
    DocFlowNotFoundError,
    DocFlowStateError,
    DocFlowValidationError,
)
from docflow.engine.logging import log, log_document_event
from docflow.engine.validation import validate_input
from docflow.security.permissions import Capability, Role, coerce_role, deny, has_capability
from docflow.workflow.state_machine import (
    DELETE_LOCKED_STATUSES,
    EDIT_LOCKED_STATUSES,
    DocumentStatus,
    WorkflowEvent,
    next_status,
)

logger = logging.getLogger("docflow.documents.service")

TERMINAL_STATUSES = (DocumentStatus.APPROVED, DocumentStatus.REJECTED)


def require_actor_id(actor_id: Optional[str], operation: str) -> str:
    if not actor_id:
        raise DocFlowValidationError(
            "An authenticated actor id is required",
            operation=operation,
            validation_errors=[{"field": "actor_id", "error": "missing"}],
        )
    return actor_id


class DocumentLifecycle:
    """
    Owns document rows and their status field.

    Every mutating call runs inside ``document_transaction`` so that the
    status read, the rule checks and the write happen as one unit per
    document.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory

    @property
    def session_factory(self) -> Optional[sessionmaker]:
        return self._session_factory

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------

    def get(self, document_id: str) -> Document:
        """Return the document or raise DocFlowNotFoundError."""
        with session_scope(self._session_factory) as session:
            return Document.model_validate(self.load(session, document_id))

    def list_documents(
        self,
        status: Optional[Union[DocumentStatus, str]] = None,
        creator_id: Optional[str] = None,
    ) -> List[Document]:
        """All documents, optionally filtered by status and/or creator, newest first."""
        filters = validate_input(
            DocumentFilter,
            {"status": status, "creator_id": creator_id},
            operation="list_documents",
        )
        stmt = select(DocumentRecord)
        if filters.status is not None:
            stmt = stmt.where(DocumentRecord.status == filters.status.value)
        if filters.creator_id is not None:
            stmt = stmt.where(DocumentRecord.creator_id == filters.creator_id)
        stmt = stmt.order_by(DocumentRecord.created_at.desc(), DocumentRecord.id.desc())

        with session_scope(self._session_factory) as session:
            return [Document.model_validate(row) for row in session.execute(stmt).scalars()]

    def list_by_creator(self, creator_id: str) -> List[Document]:
        """Documents authored by one actor, newest first."""
        return self.list_documents(creator_id=creator_id)

    @staticmethod
    def load(session: Session, document_id: str, for_update: bool = False) -> DocumentRecord:
        """Load a row in the caller's session; raises DocFlowNotFoundError."""
        stmt = select(DocumentRecord).where(DocumentRecord.id == document_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise DocFlowNotFoundError(
                "Document not found",
                entity="document",
                entity_id=document_id,
                document_id=document_id,
            )
        return row

    def load_locked(self, session: Session, document_id: str) -> DocumentRecord:
        """Row-locked load for use inside a ``document_transaction``."""
        return self.load(session, document_id, for_update=True)

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------

    def create(self, title: str, content: str, creator_id: str) -> Document:
        """Create a draft document owned by ``creator_id``."""
        require_actor_id(creator_id, "create")
        data = validate_input(DocumentCreate, {"title": title, "content": content}, operation="create")

        with session_scope(self._session_factory) as session:
            row = DocumentRecord(
                title=data.title,
                content=data.content,
                status=DocumentStatus.DRAFT.value,
                creator_id=creator_id,
            )
            session.add(row)
            session.flush()
            document = Document.model_validate(row)

        logger.info(f"Document created: {document.id} by {creator_id}")
        log(log_document_event("created", document.id, creator_id, document.status.value))
        return document

    def update(
        self,
        document_id: str,
        fields: Union[DocumentUpdate, Mapping[str, Any]],
        actor_id: str,
        actor_role: Union[Role, str],
    ) -> Document:
        """
        Apply title/content changes. Status and creator never change here.

        Raises:
            DocFlowNotFoundError, DocFlowSecurityError, DocFlowStateError,
            DocFlowValidationError
        """
        require_actor_id(actor_id, "update")
        role = coerce_role(actor_role)
        changes = validate_input(DocumentUpdate, fields, operation="update")

        with document_transaction(document_id, self._session_factory) as session:
            row = self.load_locked(session, document_id)
            self._check_ownership(
                row, actor_id, role, "update", "You can only update your own documents"
            )

            status = DocumentStatus(row.status)
            if status in EDIT_LOCKED_STATUSES and not has_capability(role, Capability.EDIT_LOCKED_DOCUMENT):
                if status == DocumentStatus.PENDING:
                    message = "Cannot update document while it is pending review"
                else:
                    message = "Cannot update approved document"
                raise DocFlowStateError(
                    message, document_id=document_id, status=status.value, operation="update"
                )

            changed = []
            for name in MUTABLE_FIELDS:
                value = getattr(changes, name)
                if value is None:
                    continue
                setattr(row, name, value)
                changed.append(name)
            row.updated_at = utcnow()
            session.flush()
            document = Document.model_validate(row)

        logger.info(f"Document updated: {document_id} by {actor_id} ({', '.join(changed) or 'no fields'})")
        log(log_document_event(
            "updated", document_id, actor_id, document.status.value,
            actor_role=role.value, fields_changed=changed,
        ))
        return document

    def delete(self, document_id: str, actor_id: str, actor_role: Union[Role, str]) -> None:
        """Remove the document and, by cascade, all of its approvals."""
        require_actor_id(actor_id, "delete")
        role = coerce_role(actor_role)

        with document_transaction(document_id, self._session_factory) as session:
            row = self.load_locked(session, document_id)
            self._check_ownership(
                row, actor_id, role, "delete", "You can only delete your own documents"
            )

            status = DocumentStatus(row.status)
            if status in DELETE_LOCKED_STATUSES and not has_capability(
                role, Capability.DELETE_APPROVED_DOCUMENT
            ):
                raise DocFlowStateError(
                    "Cannot delete approved document",
                    document_id=document_id,
                    status=status.value,
                    operation="delete",
                )

            removed_approvals = len(row.approvals)
            session.delete(row)

        logger.info(
            f"Document deleted: {document_id} by {actor_id} "
            f"({removed_approvals} approval(s) removed)"
        )
        log(log_document_event("deleted", document_id, actor_id, status.value, actor_role=role.value))

    def submit(self, document_id: str, actor_id: str) -> Document:
        """Send a draft or rejected document to review. Only the creator may submit."""
        require_actor_id(actor_id, "submit")
        with document_transaction(document_id, self._session_factory) as session:
            row = self.load_locked(session, document_id)
            if row.creator_id != actor_id:
                deny(
                    "You can only submit your own documents for approval",
                    actor_id=actor_id,
                    actor_role=None,
                    object_type="documents",
                    operation="submit",
                    document_id=document_id,
                )

            previous = DocumentStatus(row.status)
            row.status = next_status(
                previous, WorkflowEvent.SUBMIT, document_id=document_id, operation="submit"
            ).value
            row.updated_at = utcnow()
            session.flush()
            document = Document.model_validate(row)

        logger.info(f"Document submitted: {document_id} ({previous.value} -> {document.status.value})")
        log(log_document_event(
            "submitted", document_id, actor_id, document.status.value,
            previous_status=previous.value,
        ))
        return document

    def apply_decision_outcome(
        self,
        document_id: str,
        new_status: Union[DocumentStatus, str],
        session: Optional[Session] = None,
    ) -> Document:
        """
        Set a terminal status unconditionally.

        Called by ApprovalLedger with its own session, after it has checked
        that the document is pending and written the approval, so both
        writes commit together. Without a session a new document
        transaction is opened.
        """
        status = DocumentStatus(new_status)
        if status not in TERMINAL_STATUSES:
            raise DocFlowValidationError(
                f"Decision outcome must be approved or rejected, got '{status.value}'",
                document_id=document_id,
                operation="apply_decision_outcome",
            )

        if session is not None:
            return self._set_status(session, document_id, status)

        with document_transaction(document_id, self._session_factory) as own_session:
            document = self._set_status(own_session, document_id, status)
        log(log_document_event("status_changed", document_id, None, status.value))
        return document

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------

    def _set_status(self, session: Session, document_id: str, status: DocumentStatus) -> Document:
        row = self.load_locked(session, document_id)
        row.status = status.value
        row.updated_at = utcnow()
        session.flush()
        return Document.model_validate(row)

    @staticmethod
    def _check_ownership(
        row: DocumentRecord,
        actor_id: str,
        role: Role,
        operation: str,
        message: str,
    ) -> None:
        if row.creator_id == actor_id or has_capability(role, Capability.MANAGE_ANY_DOCUMENT):
            return
        deny(
            message,
            actor_id=actor_id,
            actor_role=role.value,
            object_type="documents",
            operation=operation,
            required_capability=Capability.MANAGE_ANY_DOCUMENT.value,
            document_id=row.id,
        )

    def __repr__(self) -> str:
        return f"<DocumentLifecycle factory={self._session_factory!r}>"
