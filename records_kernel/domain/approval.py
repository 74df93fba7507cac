"""
Approval domain types (``records_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the approval workflow: per-stage approval entries,
the academic-metrics record they hang off, the acting officer's identity,
the partial-update payload, fetched pages, and the protocols the engine
uses to reach the external academic-metrics service.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import only
from ``domain/officers`` and ``domain/clock``.

Invariants enforced
-------------------
* An ``ApprovalEntry`` produced by a successful transition is never both
  ``approved`` and ``flagged``.
* Metric figures are plain numbers; missing or NaN values coerce to a
  fallback (0 by default).
* Records are never mutated; updates produce new instances.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


# =========================================================================
# Enumerations
# =========================================================================


class ApprovalAction(str, Enum):
    """Actions an officer can take on a stage entry."""

    APPROVE = "approve"
    FLAG = "flag"
    RESOLVE = "resolve"
    UNAPPROVE = "unapprove"


class ApprovalView(str, Enum):
    """Derived partitions of the record store."""

    PENDING = "pending"
    PROCESSED = "processed"


class ProcessedStatus(str, Enum):
    """Status facet of the processed view."""

    APPROVED = "approved"
    FLAGGED = "flagged"
    RESPONDED = "responded"
    ALL = "all"


# =========================================================================
# Numeric coercion
# =========================================================================


def coerce_number(value: Any, fallback: float | None = None) -> float:
    """Coerce ``value`` to a float.

    Missing, blank, non-numeric and NaN values yield ``fallback``; a missing
    or unusable fallback yields 0.
    """
    number = _as_number(value)
    if number is not None:
        return number
    number = _as_number(fallback)
    return number if number is not None else 0.0


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


# =========================================================================
# Record components
# =========================================================================


@dataclass(frozen=True)
class StudentRef:
    reg_no: str = ""
    full_name: str = ""


@dataclass(frozen=True)
class CurrentMetrics:
    """Term figures: courses carried, taken, passed, grade point average."""

    TCC: float = 0.0
    TCE: float = 0.0
    TPE: float = 0.0
    GPA: float = 0.0


@dataclass(frozen=True)
class CumulativeMetrics:
    """Running totals (used for both previous and cumulative figures)."""

    CCC: float = 0.0
    CCE: float = 0.0
    CPE: float = 0.0
    CGPA: float = 0.0


@dataclass(frozen=True)
class CourseResult:
    """Read-only per-course snapshot carried on a record."""

    course_code: str = ""
    title: str = ""
    unit: float = 0.0
    score: float | None = None
    grade: str = ""


@dataclass(frozen=True)
class ApprovalEntry:
    """State of one stage on one record."""

    approved: bool = False
    flagged: bool = False
    name: str = ""
    title: str = ""
    surname: str = ""
    firstname: str = ""
    middlename: str = ""
    department: str = ""
    college: str = ""
    note: str | None = None
    response: str | None = None
    response_by: str | None = None
    response_at: datetime | None = None
    flag_cleared_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def responded(self) -> bool:
        return bool(self.response and self.response.strip())

    def with_changes(self, **changes: Any) -> ApprovalEntry:
        return replace(self, **changes)


EMPTY_ENTRY = ApprovalEntry()


@dataclass(frozen=True)
class ApprovalRecord:
    """Academic metrics for one student-term plus its approval trail."""

    metrics_id: str
    student: StudentRef = field(default_factory=StudentRef)
    department: str = ""
    session: str = ""
    level: str = ""
    semester: str = ""
    current_metrics: CurrentMetrics = field(default_factory=CurrentMetrics)
    previous_metrics: CumulativeMetrics = field(default_factory=CumulativeMetrics)
    cumulative: CumulativeMetrics = field(default_factory=CumulativeMetrics)
    courses: tuple[CourseResult, ...] = ()
    approvals: Mapping[str, ApprovalEntry] = field(default_factory=dict)

    def entry(self, stage_key: str) -> ApprovalEntry:
        """Entry for ``stage_key``; an empty entry when none is recorded."""
        return self.approvals.get(stage_key, EMPTY_ENTRY)

    def with_entry(self, stage_key: str, entry: ApprovalEntry) -> ApprovalRecord:
        approvals = dict(self.approvals)
        approvals[stage_key] = entry
        return replace(self, approvals=approvals)

    def any_flagged(self) -> bool:
        return any(e.flagged for e in self.approvals.values())


# =========================================================================
# Actor
# =========================================================================


@dataclass(frozen=True)
class OfficerProfile:
    """Identity an officer stamps onto the records they approve."""

    title: str = ""
    surname: str = ""
    firstname: str = ""
    middlename: str = ""
    department: str = ""
    college: str = ""

    REQUIRED_FIELDS = ("title", "surname", "firstname", "department", "college")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> OfficerProfile:
        data = data or {}
        return cls(**{
            name: str(data.get(name) or "")
            for name in ("title", "surname", "firstname", "middlename", "department", "college")
        })

    def missing_fields(self) -> tuple[str, ...]:
        return tuple(
            name for name in self.REQUIRED_FIELDS
            if not getattr(self, name).strip()
        )

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    def display_name(self) -> str:
        """``Title Firstname Middlename Surname`` with blanks dropped."""
        names = " ".join(
            part.strip()
            for part in (self.firstname, self.middlename, self.surname)
            if part and part.strip()
        )
        return " ".join(p for p in (self.title.strip(), names) if p)


@dataclass(frozen=True)
class Actor:
    """The signed-in user, as supplied by the session provider."""

    roles: tuple[str, ...] = ()
    profile: OfficerProfile = field(default_factory=OfficerProfile)
    user_id: str | None = None
    pf_no: str | None = None
    email: str | None = None

    def has_any_role(self, roles) -> bool:
        return bool(set(self.roles) & set(roles))

    def display_name(self) -> str:
        """Profile name, else staff number, else email."""
        return self.profile.display_name() or self.pf_no or self.email or ""


# =========================================================================
# Payloads and pages
# =========================================================================


@dataclass(frozen=True)
class ApprovalUpdate:
    """Partial update for one record: only the keys the action touches."""

    metrics_id: str
    stage_key: str
    action: ApprovalAction
    fields: Mapping[str, Any]


@dataclass(frozen=True)
class ApprovalPage:
    items: tuple[ApprovalRecord, ...] = ()
    total: int = 0


@dataclass(frozen=True)
class EnvironmentState:
    """Deployment mode as reported by the environment endpoint."""

    mode: str = "UNKNOWN"
    read_only: bool = False
    status: str = "idle"
    error: str | None = None


# =========================================================================
# External collaborators
# =========================================================================


class ApprovalDataSource(Protocol):
    """The academic-metrics service the engine reads from and writes to."""

    def fetch_pending(self, role: str, limit: int | None = None) -> ApprovalPage:
        """Records whose stage for ``role`` is not approved, newest first."""
        ...

    def fetch_processed(
        self,
        role: str,
        status: ProcessedStatus,
        limit: int | None = None,
    ) -> ApprovalPage:
        """Records the stage for ``role`` has acted on, filtered by status."""
        ...

    def update_approval(self, metrics_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Apply a partial update atomically; return the updated document."""
        ...


class EnvironmentProvider(Protocol):
    def current(self) -> EnvironmentState:
        """Current deployment mode (read-only replica or primary)."""
        ...
