"""
DocFlow Document Models — Pydantic views and inputs for documents.

Document: Read model returned by DocumentLifecycle (snapshot of a row).
DocumentCreate / DocumentUpdate: Validated inputs.
DocumentFilter: Listing filter.

Only the fields named in MUTABLE_FIELDS can ever be changed by an update;
status and creator_id are owned by the lifecycle.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from docflow.workflow.state_machine import DocumentStatus

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 255
CONTENT_MIN_LENGTH = 10

MUTABLE_FIELDS = ("title", "content")


class Document(BaseModel):
    """Document snapshot as seen by callers."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    content: str
    status: DocumentStatus
    creator_id: str
    created_at: datetime
    updated_at: datetime

    @property
    def is_locked(self) -> bool:
        """True while pending or approved (only an admin may edit)."""
        return self.status in (DocumentStatus.PENDING, DocumentStatus.APPROVED)


class DocumentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=TITLE_MIN_LENGTH, max_length=TITLE_MAX_LENGTH)
    content: str = Field(min_length=CONTENT_MIN_LENGTH)

    @field_validator("title", "content")
    @classmethod
    def validate_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("must not be blank")
        return v


class DocumentUpdate(BaseModel):
    """Partial update. Unknown keys (status, creator_id, ...) are rejected."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=TITLE_MIN_LENGTH, max_length=TITLE_MAX_LENGTH)
    content: Optional[str] = Field(default=None, min_length=CONTENT_MIN_LENGTH)

    @field_validator("title", "content")
    @classmethod
    def validate_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("must not be blank")
        return v


class DocumentFilter(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Optional[DocumentStatus] = None
    creator_id: Optional[str] = None
