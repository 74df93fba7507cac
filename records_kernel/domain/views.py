"""
View predicates and grouping for approval lists.

A record is *pending* for a stage while that stage's entry is not approved,
and *processed* once the stage has approved, flagged or responded.  Lists
are presented grouped by session, level, semester and department, with
registration numbers in natural order (``CSC/2/10`` after ``CSC/2/9``).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import cmp_to_key

from records_kernel.domain.approval import (
    ApprovalEntry,
    ApprovalRecord,
    ProcessedStatus,
)

_DIGITS = re.compile(r"(\d+)")
_SESSION_YEAR = re.compile(r"^(\d{4})")

UNKNOWN_SESSION = "Unknown Session"
UNKNOWN = "Unknown"
UNKNOWN_DEPARTMENT = "Unknown Department"


def is_pending_for(record: ApprovalRecord, stage_key: str) -> bool:
    return not record.entry(stage_key).approved


def matches_status(entry: ApprovalEntry, status: ProcessedStatus) -> bool:
    if status is ProcessedStatus.APPROVED:
        return entry.approved
    if status is ProcessedStatus.FLAGGED:
        return entry.flagged
    if status is ProcessedStatus.RESPONDED:
        return entry.responded
    return entry.approved or entry.flagged or entry.responded


def is_processed_for(
    record: ApprovalRecord,
    stage_key: str,
    status: ProcessedStatus = ProcessedStatus.ALL,
) -> bool:
    return matches_status(record.entry(stage_key), status)


def natural_key(text: str) -> tuple:
    """Sort key splitting digit runs so they compare numerically."""
    parts = _DIGITS.split(text or "")
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part.lower())
        for part in parts
        if part
    )


def _compare_text(a: str, b: str) -> int:
    left, right = (a.casefold(), a), (b.casefold(), b)
    return (left > right) - (left < right)


def compare_sessions(a: str, b: str) -> int:
    """Different leading years compare numerically; anything else by text."""
    match_a = _SESSION_YEAR.match(a)
    match_b = _SESSION_YEAR.match(b)
    if match_a and match_b and match_a.group(1) != match_b.group(1):
        return int(match_a.group(1)) - int(match_b.group(1))
    return _compare_text(a, b)


def compare_levels(a: str, b: str) -> int:
    if a.isdigit() and b.isdigit():
        return int(a) - int(b)
    return _compare_text(a, b)


session_key = cmp_to_key(compare_sessions)
level_key = cmp_to_key(compare_levels)


@dataclass(frozen=True)
class RecordGroup:
    session: str
    level: str
    semester: str
    department: str
    records: tuple[ApprovalRecord, ...]


def group_key(record: ApprovalRecord) -> tuple[str, str, str, str]:
    """Grouping labels, with placeholders for blank values."""
    return (
        record.session or UNKNOWN_SESSION,
        record.level or UNKNOWN,
        record.semester or UNKNOWN,
        record.department or UNKNOWN_DEPARTMENT,
    )


def group_records(records: Iterable[ApprovalRecord]) -> tuple[RecordGroup, ...]:
    buckets: dict[tuple[str, str, str, str], list[ApprovalRecord]] = {}
    for record in records:
        buckets.setdefault(group_key(record), []).append(record)

    ordered = sorted(
        buckets,
        key=lambda k: (
            session_key(k[0]), level_key(k[1]), natural_key(k[2]), k[3].casefold(),
        ),
    )
    return tuple(
        RecordGroup(
            session=key[0],
            level=key[1],
            semester=key[2],
            department=key[3],
            records=tuple(
                sorted(buckets[key], key=lambda r: natural_key(r.student.reg_no))
            ),
        )
        for key in ordered
    )
