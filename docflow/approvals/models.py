"""
DocFlow Approval Models — Pydantic views and inputs for decisions.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from docflow.documents.models import Document
from docflow.workflow.state_machine import ApprovalAction

COMMENT_MIN_LENGTH = 3


class Approval(BaseModel):
    """An immutable decision record."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    document_id: str
    approver_id: str
    action: ApprovalAction
    comment: Optional[str] = None
    created_at: datetime


class DocumentDetail(Document):
    """A document together with its decisions, newest first."""

    approvals: List[Approval] = []


class ApprovalCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: ApprovalAction
    comment: Optional[str] = Field(default=None, min_length=COMMENT_MIN_LENGTH)

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("must not be blank")
        return v


class ApprovalFilter(BaseModel):
    model_config = ConfigDict(extra="forbid")

    document_id: Optional[str] = None
    approver_id: Optional[str] = None
    action: Optional[ApprovalAction] = None


class ApprovalStats(BaseModel):
    total: int = 0
    approved: int = 0
    rejected: int = 0
