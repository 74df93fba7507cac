"""
Tests for the reference academic-metrics store (write side).

Tests cover:
- Registering records with their approval trail
- Partial updates touch only the named stage keys
- Server-side timestamps: updatedAt, responseAt, flagClearedAt
- Unknown field keys reject the whole update
- Missing records raise MetricsNotFoundError
- The updatedMetrics document shape
- Atomicity through SqlApprovalDataSource / session_scope
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from records_kernel.db.engine import session_scope
from records_kernel.domain.approval import ApprovalEntry
from records_kernel.exceptions import InvalidApprovalFieldError, MetricsNotFoundError
from records_kernel.models import StageApprovalModel
from records_kernel.services.metrics_approval_service import MetricsApprovalService
from records_services.sql_gateway import SqlApprovalDataSource


@pytest.fixture
def service(session, registry, clock):
    return MetricsApprovalService(session, registry, clock)


class TestRegister:
    def test_register_round_trips_record(self, service, make_record):
        record = make_record(
            "m-1", approvals={"ceo": ApprovalEntry(approved=True, name="Dr A", title="Doctor")},
        )
        stored = service.register(record)

        assert stored.metrics_id == "m-1"
        assert stored.student.reg_no == "CSC/2020/001"
        assert stored.current_metrics.GPA == 3.5
        assert stored.cumulative.CGPA == 3.22
        assert stored.entry("ceo").approved is True
        assert stored.entry("ceo").title == "Doctor"

    def test_register_logs(self, service, make_record, captured_logs):
        service.register(make_record("m-1"))
        logs = [r for r in captured_logs() if r["message"] == "academic_metrics_registered"]
        assert logs[0]["reg_no"] == "CSC/2020/001"


class TestUpdateApproval:
    def test_creates_stage_row_on_first_update(self, service, session, make_record, clock):
        service.register(make_record("m-1"))

        doc = service.update_approval("m-1", {"hodApproved": True, "hodName": "Dr B"})

        assert doc["hodApproval"]["approved"] is True
        assert doc["hodApproval"]["name"] == "Dr B"
        assert doc["hodApproval"]["updatedAt"] == clock.now().isoformat()
        rows = session.scalars(select(StageApprovalModel)).all()
        assert [(r.stage_key, r.approved) for r in rows] == [("hod", True)]

    def test_untouched_stages_unchanged(self, service, make_record):
        service.register(make_record(
            "m-1", approvals={"ceo": ApprovalEntry(approved=True, note="fine")},
        ))

        doc = service.update_approval("m-1", {"hodFlagged": True, "hodNote": "check"})

        assert doc["ceoApproval"]["approved"] is True
        assert doc["ceoApproval"]["note"] == "fine"
        assert doc["deanApproval"]["approved"] is False

    def test_response_sets_response_at(self, service, make_record, clock):
        service.register(make_record(
            "m-1", approvals={"hod": ApprovalEntry(flagged=True, note="n")},
        ))
        clock.advance(60)

        doc = service.update_approval(
            "m-1", {"hodFlagged": False, "hodResponse": "fixed", "hodResponseBy": "Dean X"},
        )

        assert doc["hodApproval"]["responseAt"] == clock.now().isoformat()
        assert doc["hodApproval"]["flagClearedAt"] == clock.now().isoformat()
        assert doc["hodApproval"]["responseBy"] == "Dean X"
        assert doc["hodApproval"]["note"] == "n"

    def test_blank_response_does_not_stamp(self, service, make_record):
        service.register(make_record("m-1"))
        doc = service.update_approval("m-1", {"ceoResponse": "  "})
        assert doc["ceoApproval"]["responseAt"] is None

    def test_flag_cleared_only_on_transition(self, service, make_record):
        service.register(make_record("m-1"))
        doc = service.update_approval("m-1", {"ceoFlagged": False, "ceoApproved": True})
        assert doc["ceoApproval"]["flagClearedAt"] is None

    def test_null_note_clears_note(self, service, make_record):
        service.register(make_record(
            "m-1", approvals={"dean": ApprovalEntry(approved=True, note="old")},
        ))
        doc = service.update_approval(
            "m-1", {"deanApproved": False, "deanFlagged": False, "deanNote": None},
        )
        assert doc["deanApproval"]["note"] is None
        assert doc["deanApproval"]["approved"] is False

    def test_record_updated_at_stamped(self, service, session, make_record, clock):
        service.register(make_record("m-1"))
        clock.advance(300)
        service.update_approval("m-1", {"ceoApproved": True})
        row = session.scalars(select(StageApprovalModel)).one()
        assert row.record.updated_at == clock.now()

    def test_unknown_field_rejects_whole_update(self, service, session, make_record):
        service.register(make_record("m-1"))

        with pytest.raises(InvalidApprovalFieldError) as exc_info:
            service.update_approval("m-1", {"hodApproved": True, "gpa": 5.0, "hodApproval": {}})

        assert exc_info.value.fields == ("gpa", "hodApproval")
        assert exc_info.value.code == "INVALID_APPROVAL_FIELD"
        assert session.scalars(select(StageApprovalModel)).all() == []

    def test_missing_record(self, service):
        with pytest.raises(MetricsNotFoundError) as exc_info:
            service.update_approval("m-404", {"hodApproved": True})
        assert exc_info.value.metrics_id == "m-404"


class TestUpdatedMetricsDocument:
    def test_document_shape(self, service, make_record):
        service.register(make_record("m-1", gpa=3.75))
        doc = service.update_approval("m-1", {"ceoApproved": True})

        assert doc["metricsId"] == "m-1"
        assert doc["currentMetrics"]["GPA"] == 3.75
        assert doc["previousMetrics"]["CGPA"] == 3.33
        assert doc["metrics"]["CGPA"] == 3.22
        assert {k for k in doc if k.endswith("Approval")} == {
            "ceoApproval", "hodApproval", "deanApproval",
        }


# =========================================================================
# Through the data-source adapter
# =========================================================================


class TestSqlDataSource:
    @pytest.fixture
    def source(self, session_factory, registry, clock, make_record):
        with session_scope(session_factory) as s:
            service = MetricsApprovalService(s, registry, clock)
            service.register(make_record("m-1"))
            service.register(make_record(
                "m-2", reg_no="CSC/2020/002",
                approvals={"hod": ApprovalEntry(approved=True)},
            ))
        return SqlApprovalDataSource(session_factory, registry, clock)

    def test_update_committed(self, source):
        source.update_approval("m-1", {"hodApproved": True})
        assert source.fetch_pending("HOD").items == ()

    def test_failed_update_rolled_back(self, source, captured_logs):
        with pytest.raises(InvalidApprovalFieldError):
            source.update_approval("m-1", {"hodApproved": True, "bogus": 1})

        pending = source.fetch_pending("HOD")
        assert [r.metrics_id for r in pending.items] == ["m-1"]
        assert any(r["message"] == "transaction_rolled_back" for r in captured_logs())

    def test_timestamps_read_back_as_utc(self, source, clock):
        source.update_approval("m-2", {"hodFlagged": True, "hodApproved": False, "hodNote": "x"})
        source.update_approval("m-2", {"hodFlagged": False, "hodResponse": "ok"})

        record = source.fetch_processed("HOD", "responded").items[0]
        entry = record.entry("hod")
        assert entry.response_at == clock.now()
        assert entry.response_at.tzinfo is not None
        assert entry.flag_cleared_at == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
