"""
Wire mapping for academic-metrics documents.

The academic-metrics service owns the document schema; this module only
reads the parts the approval engine needs and writes back the approval
trail.  Documents use camelCase keys (``metricsId``, ``currentMetrics``)
and carry one nested approval document per stage, either under
``approvals.<stage>`` (list endpoints) or under ``<stage>Approval``
(the ``updatedMetrics`` document returned by a mutation).
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from records_kernel.domain.approval import (
    ApprovalEntry,
    ApprovalRecord,
    CourseResult,
    CumulativeMetrics,
    CurrentMetrics,
    StudentRef,
    coerce_number,
)
from records_kernel.domain.officers import OfficerRegistry


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _optional_text(value: Any) -> str | None:
    return None if value is None or value == "" else str(value)


# ---------------------------------------------------------------------------
# Approval entries
# ---------------------------------------------------------------------------


def entry_from_wire(doc: Mapping[str, Any] | None) -> ApprovalEntry:
    """Normalize a per-stage approval document; absent fields become empty."""
    doc = doc or {}
    return ApprovalEntry(
        approved=bool(doc.get("approved")),
        flagged=bool(doc.get("flagged")),
        name=_text(doc.get("name")),
        title=_text(doc.get("title")),
        surname=_text(doc.get("surname")),
        firstname=_text(doc.get("firstname")),
        middlename=_text(doc.get("middlename")),
        department=_text(doc.get("department")),
        college=_text(doc.get("college")),
        note=_optional_text(doc.get("note")),
        response=_optional_text(doc.get("response")),
        response_by=_optional_text(doc.get("responseBy")),
        response_at=parse_timestamp(doc.get("responseAt")),
        flag_cleared_at=parse_timestamp(doc.get("flagClearedAt")),
        updated_at=parse_timestamp(doc.get("updatedAt")),
    )


def entry_to_wire(entry: ApprovalEntry) -> dict[str, Any]:
    return {
        "approved": entry.approved,
        "flagged": entry.flagged,
        "name": entry.name,
        "title": entry.title,
        "surname": entry.surname,
        "firstname": entry.firstname,
        "middlename": entry.middlename,
        "department": entry.department,
        "college": entry.college,
        "note": entry.note,
        "response": entry.response,
        "responseBy": entry.response_by,
        "responseAt": format_timestamp(entry.response_at),
        "flagClearedAt": format_timestamp(entry.flag_cleared_at),
        "updatedAt": format_timestamp(entry.updated_at),
    }


def approvals_from_document(
    doc: Mapping[str, Any],
    registry: OfficerRegistry,
) -> dict[str, ApprovalEntry]:
    """Per-stage entries from ``approvals.<key>`` or ``<key>Approval`` documents."""
    nested = doc.get("approvals") or {}
    approvals: dict[str, ApprovalEntry] = {}
    for stage in registry:
        source = doc.get(stage.fields.approval)
        if source is None:
            source = nested.get(stage.key)
        approvals[stage.key] = entry_from_wire(source)
    return approvals


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def current_metrics_from_wire(
    doc: Mapping[str, Any] | None,
    existing: CurrentMetrics | None = None,
) -> CurrentMetrics:
    doc = doc or {}
    existing = existing or CurrentMetrics()
    return CurrentMetrics(
        TCC=coerce_number(doc.get("TCC"), existing.TCC),
        TCE=coerce_number(doc.get("TCE"), existing.TCE),
        TPE=coerce_number(doc.get("TPE"), existing.TPE),
        GPA=coerce_number(doc.get("GPA"), existing.GPA),
    )


def cumulative_metrics_from_wire(
    doc: Mapping[str, Any] | None,
    existing: CumulativeMetrics | None = None,
) -> CumulativeMetrics:
    doc = doc or {}
    existing = existing or CumulativeMetrics()
    return CumulativeMetrics(
        CCC=coerce_number(doc.get("CCC"), existing.CCC),
        CCE=coerce_number(doc.get("CCE"), existing.CCE),
        CPE=coerce_number(doc.get("CPE"), existing.CPE),
        CGPA=coerce_number(doc.get("CGPA"), existing.CGPA),
    )


def course_from_wire(doc: Mapping[str, Any]) -> CourseResult:
    score = doc.get("score")
    return CourseResult(
        course_code=_text(doc.get("courseCode") or doc.get("code")),
        title=_text(doc.get("title") or doc.get("courseTitle")),
        unit=coerce_number(doc.get("unit") or doc.get("courseUnit")),
        score=None if score is None else coerce_number(score),
        grade=_text(doc.get("grade")),
    )


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


def record_from_wire(doc: Mapping[str, Any], registry: OfficerRegistry) -> ApprovalRecord:
    student = doc.get("student") or {}
    return ApprovalRecord(
        metrics_id=_text(doc.get("metricsId") or doc.get("_id") or doc.get("id")),
        student=StudentRef(
            reg_no=_text(student.get("regNo")),
            full_name=_text(student.get("fullName")),
        ),
        department=_text(doc.get("department")),
        session=_text(doc.get("session")),
        level=_text(doc.get("level")),
        semester=_text(doc.get("semester")),
        current_metrics=current_metrics_from_wire(doc.get("currentMetrics")),
        previous_metrics=cumulative_metrics_from_wire(doc.get("previousMetrics")),
        cumulative=cumulative_metrics_from_wire(
            doc.get("cumulative") or doc.get("metrics")
        ),
        courses=tuple(course_from_wire(c) for c in doc.get("courses") or ()),
        approvals=approvals_from_document(doc, registry),
    )


def record_to_wire(record: ApprovalRecord) -> dict[str, Any]:
    return {
        "metricsId": record.metrics_id,
        "student": {
            "regNo": record.student.reg_no,
            "fullName": record.student.full_name,
        },
        "department": record.department,
        "session": record.session,
        "level": record.level,
        "semester": record.semester,
        "currentMetrics": vars(record.current_metrics).copy(),
        "previousMetrics": vars(record.previous_metrics).copy(),
        "cumulative": vars(record.cumulative).copy(),
        "courses": [
            {
                "courseCode": c.course_code,
                "title": c.title,
                "unit": c.unit,
                "score": c.score,
                "grade": c.grade,
            }
            for c in record.courses
        ],
        "approvals": {
            key: entry_to_wire(entry) for key, entry in record.approvals.items()
        },
    }
