"""
DocFlow — Document review workflow engine.

Documents are drafted by their creators, submitted for review and decided
by approvers. Each approver decides at most once per document and never
on their own document.

Entry points:
    docflow.engine.runtime.WorkflowRuntime   — wires config, store, logging
    docflow.documents.DocumentLifecycle      — create / update / delete / submit
    docflow.approvals.ApprovalLedger         — decide / query / stats
"""

__version__ = "1.0.0"
__all__ = ["engine", "db", "security", "workflow", "documents", "approvals"]
