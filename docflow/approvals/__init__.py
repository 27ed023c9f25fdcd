"""
DocFlow Approvals.

Append-only decisions on pending documents and the statistics derived
from them.
"""

from docflow.approvals.models import Approval, ApprovalCreate, ApprovalStats, DocumentDetail
from docflow.approvals.service import ApprovalLedger

__all__ = [
    "Approval",
    "ApprovalCreate",
    "ApprovalStats",
    "DocumentDetail",
    "ApprovalLedger",
]
