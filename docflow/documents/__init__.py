"""
DocFlow Documents.

Authored documents and their lifecycle: drafting, whitelisted edits,
deletion with cascade, and submission for review.
"""

from docflow.documents.models import Document, DocumentCreate, DocumentUpdate
from docflow.documents.service import DocumentLifecycle

__all__ = [
    "Document",
    "DocumentCreate",
    "DocumentUpdate",
    "DocumentLifecycle",
]
