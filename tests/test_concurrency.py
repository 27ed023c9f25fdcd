"""Concurrent callers racing on the same document."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import ALICE, BOB, CAROL
from docflow.engine.errors import DocFlowError, DocFlowStateError
from docflow.workflow.state_machine import DocumentStatus


def _race(*calls):
    """Run callables at the same moment; return (results, errors)."""
    barrier = threading.Barrier(len(calls))

    def run(fn):
        barrier.wait()
        try:
            return fn(), None
        except DocFlowError as e:
            return None, e

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        outcomes = list(pool.map(run, calls))
    return [r for r, _ in outcomes if r is not None], [e for _, e in outcomes if e is not None]


class TestDecisionRaces:
    @pytest.mark.parametrize("attempt", range(5))
    def test_two_approvers_one_wins(self, ledger, lifecycle, pending, attempt):
        results, errors = _race(
            lambda: ledger.decide(pending.id, "approved", None, BOB, "approver"),
            lambda: ledger.decide(pending.id, "rejected", None, CAROL, "approver"),
        )
        assert len(results) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], DocFlowStateError)

        winner = results[0]
        expected = (
            DocumentStatus.APPROVED if winner.action.value == "approved" else DocumentStatus.REJECTED
        )
        assert lifecycle.get(pending.id).status is expected
        assert [a.id for a in ledger.list_by_document(pending.id)] == [winner.id]

    def test_same_approver_at_most_one_row(self, ledger, pending):
        results, errors = _race(
            *[lambda: ledger.decide(pending.id, "approved", None, BOB, "approver")] * 4
        )
        assert len(results) == 1
        assert len(errors) == 3
        assert len(ledger.list_by_approver(BOB)) == 1


class TestEditRaces:
    def test_update_vs_submit(self, lifecycle, draft):
        results, errors = _race(
            lambda: lifecycle.update(draft.id, {"title": "Last minute"}, ALICE, "user"),
            lambda: lifecycle.submit(draft.id, ALICE),
        )
        doc = lifecycle.get(draft.id)
        assert doc.status is DocumentStatus.PENDING
        if errors:
            # submit won, so the edit hit a locked document
            assert isinstance(errors[0], DocFlowStateError)
            assert doc.title == draft.title
        else:
            assert doc.title == "Last minute"
