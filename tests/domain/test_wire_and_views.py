"""
Tests for academic-metrics document mapping and list views.

Tests cover:
- Numeric coercion of metric figures (missing / NaN / invalid -> fallback)
- Approval entries read from list documents and updatedMetrics documents
- Pending / processed predicates and status facets
- Grouping by session / level / semester / department with natural regNo order
- Officer display names
"""

from datetime import datetime, timezone

import pytest

from records_kernel.domain.approval import (
    Actor,
    ApprovalEntry,
    OfficerProfile,
    ProcessedStatus,
    coerce_number,
)
from records_kernel.domain.views import (
    group_records,
    is_pending_for,
    is_processed_for,
    level_key,
    matches_status,
    natural_key,
    session_key,
)
from records_kernel.domain.wire import (
    approvals_from_document,
    entry_from_wire,
    parse_timestamp,
    record_from_wire,
)


# =========================================================================
# Numeric coercion
# =========================================================================


class TestCoerceNumber:
    @pytest.mark.parametrize("value,expected", [
        (3.5, 3.5),
        ("4.25", 4.25),
        (0, 0.0),
        (None, 0.0),
        ("", 0.0),
        ("abc", 0.0),
        (float("nan"), 0.0),
        (True, 0.0),
    ])
    def test_default_fallback(self, value, expected):
        assert coerce_number(value) == expected

    def test_fallback_used_when_missing(self):
        assert coerce_number(None, 2.75) == 2.75
        assert coerce_number(float("nan"), 2.75) == 2.75

    def test_nan_fallback_becomes_zero(self):
        assert coerce_number(None, float("nan")) == 0.0


# =========================================================================
# Wire mapping
# =========================================================================


class TestWire:
    def test_entry_defaults_when_missing(self):
        entry = entry_from_wire(None)
        assert entry == ApprovalEntry()

    def test_entry_fields(self):
        entry = entry_from_wire({
            "approved": False,
            "flagged": True,
            "note": "Check GPA",
            "responseBy": "Dr A",
            "updatedAt": "2024-03-01T10:00:00Z",
        })
        assert entry.flagged is True
        assert entry.note == "Check GPA"
        assert entry.response_by == "Dr A"
        assert entry.updated_at == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)

    def test_unparseable_timestamp(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp("") is None

    def test_approvals_prefer_stage_documents(self, registry):
        doc = {
            "hodApproval": {"approved": True},
            "approvals": {"hod": {"approved": False}, "ceo": {"flagged": True}},
        }
        approvals = approvals_from_document(doc, registry)
        assert approvals["hod"].approved is True
        assert approvals["ceo"].flagged is True
        assert approvals["dean"] == ApprovalEntry()

    def test_record_from_list_document(self, registry):
        record = record_from_wire(
            {
                "metricsId": "m-9",
                "student": {"regNo": "CSC/2020/009", "fullName": "Chidi Eze"},
                "session": "2023/2024",
                "level": "300",
                "semester": "First",
                "currentMetrics": {"TCC": 18, "GPA": "NaN"},
                "cumulative": {"CGPA": 3.1},
                "courses": [{"courseCode": "CSC301", "unit": 3, "score": 71, "grade": "A"}],
            },
            registry,
        )
        assert record.metrics_id == "m-9"
        assert record.student.reg_no == "CSC/2020/009"
        assert record.current_metrics.TCC == 18.0
        assert record.current_metrics.GPA == 0.0
        assert record.cumulative.CGPA == 3.1
        assert record.courses[0].course_code == "CSC301"
        assert set(record.approvals) == {"ceo", "hod", "dean"}


# =========================================================================
# Views
# =========================================================================


class TestViews:
    def test_pending_until_stage_approves(self, make_record):
        record = make_record(approvals={"ceo": ApprovalEntry(approved=True)})
        assert not is_pending_for(record, "ceo")
        assert is_pending_for(record, "hod")

    def test_flagged_record_is_still_pending(self, make_record):
        record = make_record(approvals={"hod": ApprovalEntry(flagged=True, note="x")})
        assert is_pending_for(record, "hod")
        assert is_processed_for(record, "hod", ProcessedStatus.FLAGGED)

    @pytest.mark.parametrize("entry,status,expected", [
        (ApprovalEntry(approved=True), ProcessedStatus.APPROVED, True),
        (ApprovalEntry(approved=True), ProcessedStatus.FLAGGED, False),
        (ApprovalEntry(flagged=True), ProcessedStatus.FLAGGED, True),
        (ApprovalEntry(response="fixed"), ProcessedStatus.RESPONDED, True),
        (ApprovalEntry(response="   "), ProcessedStatus.RESPONDED, False),
        (ApprovalEntry(response="fixed"), ProcessedStatus.ALL, True),
        (ApprovalEntry(), ProcessedStatus.ALL, False),
    ])
    def test_status_facets(self, entry, status, expected):
        assert matches_status(entry, status) is expected


class TestGrouping:
    def test_natural_regno_order(self):
        regs = ["CSC/2020/10", "CSC/2020/9", "CSC/2020/100"]
        assert sorted(regs, key=natural_key) == ["CSC/2020/9", "CSC/2020/10", "CSC/2020/100"]

    def test_sessions_ordered_by_year(self):
        sessions = ["2023/2024", "Legacy", "2019/2020"]
        assert sorted(sessions, key=session_key) == ["2019/2020", "2023/2024", "Legacy"]

    def test_unknown_session_after_dated(self):
        assert sorted(["Unknown Session", "2020/2021"], key=session_key) == [
            "2020/2021", "Unknown Session",
        ]

    def test_levels_numeric_then_text(self):
        assert sorted(["1000", "Spill", "200", "100"], key=level_key) == [
            "100", "200", "1000", "Spill",
        ]

    def test_blank_values_get_placeholder_labels(self, make_record):
        records = [
            make_record("m-1", session="", level="", semester="", department=""),
            make_record("m-2", session="2020/2021"),
        ]
        groups = group_records(records)
        assert [g.session for g in groups] == ["2020/2021", "Unknown Session"]
        assert (groups[1].level, groups[1].semester, groups[1].department) == (
            "Unknown", "Unknown", "Unknown Department",
        )

    def test_group_records(self, make_record):
        records = [
            make_record("m-1", reg_no="CSC/2020/10", session="2023/2024"),
            make_record("m-2", reg_no="CSC/2020/9", session="2023/2024"),
            make_record("m-3", reg_no="CSC/2019/1", session="2022/2023", level="400"),
        ]
        groups = group_records(records)
        assert [(g.session, g.level) for g in groups] == [("2022/2023", "400"), ("2023/2024", "300")]
        assert [r.metrics_id for r in groups[1].records] == ["m-2", "m-1"]

    def test_empty(self):
        assert group_records([]) == ()


# =========================================================================
# Identity
# =========================================================================


class TestIdentity:
    def test_profile_completeness(self):
        profile = OfficerProfile(title="Mr", surname="Bello", firstname="Sani")
        assert profile.missing_fields() == ("department", "college")
        assert not profile.is_complete

    def test_display_name(self):
        profile = OfficerProfile(title="Professor", surname="Obi", firstname="Ngozi", middlename="A")
        assert profile.display_name() == "Professor Ngozi A Obi"

    def test_actor_display_name_fallbacks(self):
        assert Actor(pf_no="PF-100", email="x@uni.edu").display_name() == "PF-100"
        assert Actor(email="x@uni.edu").display_name() == "x@uni.edu"

    def test_from_mapping(self):
        profile = OfficerProfile.from_mapping({"title": "Mrs", "surname": None, "college": "Arts"})
        assert profile.title == "Mrs"
        assert profile.surname == ""
        assert profile.college == "Arts"
