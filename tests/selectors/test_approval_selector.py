"""
Tests for pending / processed queries over the reference store.

Tests cover:
- Pending: no row for the stage, or a row that is not approved (flagged included)
- Processed facets: approved, flagged, responded, all
- Totals count every match while items honour the limit
- Most recently updated first
- Roles without a stage yield an empty page
"""

import pytest

from records_kernel.domain.approval import ApprovalEntry, ProcessedStatus
from records_kernel.selectors.approval_selector import ApprovalSelector
from records_kernel.services.metrics_approval_service import MetricsApprovalService


@pytest.fixture
def seeded(session, registry, clock, make_record):
    service = MetricsApprovalService(session, registry, clock)
    rows = [
        ("m-1", {}),
        ("m-2", {"hod": ApprovalEntry(approved=True)}),
        ("m-3", {"hod": ApprovalEntry(flagged=True, note="check")}),
        ("m-4", {"hod": ApprovalEntry(response="fixed", response_by="Dean")}),
        ("m-5", {"ceo": ApprovalEntry(approved=True)}),
    ]
    for metrics_id, approvals in rows:
        service.register(make_record(metrics_id, approvals=approvals))
        clock.advance(10)
    return ApprovalSelector(session, registry)


def ids(page):
    return [r.metrics_id for r in page.items]


class TestPending:
    def test_pending_for_stage(self, seeded):
        page = seeded.pending("HOD")
        assert set(ids(page)) == {"m-1", "m-3", "m-4", "m-5"}
        assert page.total == 4

    def test_most_recent_first(self, seeded):
        assert ids(seeded.pending("HOD")) == ["m-5", "m-4", "m-3", "m-1"]

    def test_limit_keeps_total(self, seeded):
        page = seeded.pending("HOD", limit=2)
        assert ids(page) == ["m-5", "m-4"]
        assert page.total == 4

    def test_other_stage(self, seeded):
        assert set(ids(seeded.pending("COLLEGE_OFFICER"))) == {"m-1", "m-2", "m-3", "m-4"}

    def test_update_moves_record_up(self, seeded, session, registry, clock):
        clock.advance(100)
        MetricsApprovalService(session, registry, clock).update_approval(
            "m-1", {"hodNote": "seen"},
        )
        assert ids(seeded.pending("HOD"))[0] == "m-1"

    def test_role_without_stage(self, seeded):
        page = seeded.pending("ADMIN")
        assert page.items == ()
        assert page.total == 0


class TestProcessed:
    @pytest.mark.parametrize("status,expected", [
        (ProcessedStatus.APPROVED, {"m-2"}),
        (ProcessedStatus.FLAGGED, {"m-3"}),
        (ProcessedStatus.RESPONDED, {"m-4"}),
        (ProcessedStatus.ALL, {"m-2", "m-3", "m-4"}),
    ])
    def test_status_facets(self, seeded, status, expected):
        page = seeded.processed("HOD", status)
        assert set(ids(page)) == expected
        assert page.total == len(expected)

    def test_status_accepts_plain_string(self, seeded):
        assert ids(seeded.processed("HOD", "flagged")) == ["m-3"]

    def test_unknown_role(self, seeded):
        assert seeded.processed("EXAM_OFFICER").total == 0


class TestGet:
    def test_get(self, seeded):
        record = seeded.get("m-3")
        assert record.entry("hod").note == "check"

    def test_get_missing(self, seeded):
        assert seeded.get("m-404") is None
