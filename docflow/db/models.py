"""
DocFlow Storage Models — SQLAlchemy tables for the review workflow.

Tables:
1. documents  — Authored documents and their workflow status
2. approvals  — Append-only decisions, one per (document, approver)

Approvals are removed only by cascade when their document is deleted.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from docflow.db.base import Base, TimestampMixin, UTCDateTime, utcnow


def new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# 1. Documents
# ---------------------------------------------------------------------------

class DocumentRecord(Base, TimestampMixin):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    status = Column(String(20), default="draft", nullable=False, index=True)
    creator_id = Column(String(64), nullable=False, index=True)

    approvals = relationship(
        "ApprovalRecord",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by=lambda: [ApprovalRecord.created_at.desc(), ApprovalRecord.id.desc()],
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'pending', 'approved', 'rejected')",
            name="ck_documents_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<DocumentRecord(id={self.id}, title='{self.title}', status='{self.status}')>"


# ---------------------------------------------------------------------------
# 2. Approvals
# ---------------------------------------------------------------------------

class ApprovalRecord(Base):
    __tablename__ = "approvals"

    id = Column(String(36), primary_key=True, default=new_id)
    document_id = Column(
        String(36),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )
    approver_id = Column(String(64), nullable=False)
    action = Column(String(20), nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    document = relationship("DocumentRecord", back_populates="approvals")

    __table_args__ = (
        UniqueConstraint("document_id", "approver_id", name="uq_approval_document_approver"),
        CheckConstraint("action IN ('approved', 'rejected')", name="ck_approvals_action"),
        Index("idx_approvals_document_id", "document_id"),
        Index("idx_approvals_approver_id", "approver_id"),
        Index("idx_approvals_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ApprovalRecord(id={self.id}, document_id={self.document_id}, action='{self.action}')>"
