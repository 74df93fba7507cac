"""
Module: records_kernel.models.academic_metrics
Responsibility: ORM persistence for academic-metrics records and their
    per-stage approval entries (reference academic-metrics store).

Architecture position: Kernel > Models.  May import from db/base.py only
    (domain DTOs are imported lazily inside ``to_dto``).

Invariants enforced:
    - One approval row per record per stage: UNIQUE(metrics_id, stage_key).
    - Metric snapshots are owned upstream and stored as opaque JSON.
    - Timestamps read back from databases without timezone support are
      interpreted as UTC.

Failure modes:
    - IntegrityError on a duplicate (metrics_id, stage_key) row.
    - IntegrityError on a duplicate metrics_id.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from records_kernel.db.base import Base

if TYPE_CHECKING:
    from records_kernel.domain.approval import ApprovalEntry, ApprovalRecord


def _utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AcademicMetricsModel(Base):
    """One student's computed metrics for one session/level/semester."""

    __tablename__ = "academic_metrics"

    __table_args__ = (
        Index("ix_academic_metrics_term", "session", "level", "semester", "department"),
        Index("ix_academic_metrics_updated", "updated_at"),
    )

    metrics_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    reg_no: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    department: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    session: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    level: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    semester: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    current_metrics: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    previous_metrics: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    cumulative: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    courses: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    approvals: Mapped[list["StageApprovalModel"]] = relationship(
        "StageApprovalModel",
        back_populates="record",
        primaryjoin="AcademicMetricsModel.metrics_id == StageApprovalModel.metrics_id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<AcademicMetrics {self.metrics_id} {self.reg_no} "
            f"{self.session}/{self.level}/{self.semester}>"
        )

    def approval_for(self, stage_key: str) -> StageApprovalModel | None:
        for row in self.approvals:
            if row.stage_key == stage_key:
                return row
        return None

    def to_dto(self) -> ApprovalRecord:
        """Convert ORM model to frozen domain DTO."""
        from records_kernel.domain.approval import ApprovalRecord, StudentRef
        from records_kernel.domain.wire import (
            course_from_wire,
            cumulative_metrics_from_wire,
            current_metrics_from_wire,
        )

        return ApprovalRecord(
            metrics_id=self.metrics_id,
            student=StudentRef(reg_no=self.reg_no, full_name=self.full_name),
            department=self.department,
            session=self.session,
            level=self.level,
            semester=self.semester,
            current_metrics=current_metrics_from_wire(self.current_metrics),
            previous_metrics=cumulative_metrics_from_wire(self.previous_metrics),
            cumulative=cumulative_metrics_from_wire(self.cumulative),
            courses=tuple(course_from_wire(c) for c in self.courses or ()),
            approvals={row.stage_key: row.to_dto() for row in self.approvals},
        )

    @classmethod
    def from_dto(cls, record: ApprovalRecord, now: datetime) -> AcademicMetricsModel:
        """Create ORM model (with its approval rows) from a domain DTO."""
        from records_kernel.domain.wire import record_to_wire

        doc = record_to_wire(record)
        model = cls(
            metrics_id=record.metrics_id,
            reg_no=record.student.reg_no,
            full_name=record.student.full_name,
            department=record.department,
            session=record.session,
            level=record.level,
            semester=record.semester,
            current_metrics=doc["currentMetrics"],
            previous_metrics=doc["previousMetrics"],
            cumulative=doc["cumulative"],
            courses=doc["courses"],
            created_at=now,
            updated_at=now,
        )
        for stage_key, entry in record.approvals.items():
            model.approvals.append(StageApprovalModel.from_dto(stage_key, entry))
        return model


class StageApprovalModel(Base):
    """Approval entry for one stage on one academic-metrics record."""

    __tablename__ = "stage_approvals"

    __table_args__ = (
        UniqueConstraint("metrics_id", "stage_key", name="uq_stage_approvals_metrics_stage"),
        Index("ix_stage_approvals_stage_status", "stage_key", "approved", "flagged"),
    )

    metrics_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("academic_metrics.metrics_id"), nullable=False,
    )
    stage_key: Mapped[str] = mapped_column(String(32), nullable=False)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    flagged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    title: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    surname: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    firstname: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    middlename: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    department: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    college: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    response: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    response_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    flag_cleared_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    record: Mapped[AcademicMetricsModel] = relationship(
        "AcademicMetricsModel",
        back_populates="approvals",
        primaryjoin="AcademicMetricsModel.metrics_id == StageApprovalModel.metrics_id",
    )

    def __repr__(self) -> str:
        return (
            f"<StageApproval {self.metrics_id}/{self.stage_key} "
            f"approved={self.approved} flagged={self.flagged}>"
        )

    def to_dto(self) -> ApprovalEntry:
        """Convert ORM model to frozen domain DTO."""
        from records_kernel.domain.approval import ApprovalEntry

        return ApprovalEntry(
            approved=bool(self.approved),
            flagged=bool(self.flagged),
            name=self.name or "",
            title=self.title or "",
            surname=self.surname or "",
            firstname=self.firstname or "",
            middlename=self.middlename or "",
            department=self.department or "",
            college=self.college or "",
            note=self.note,
            response=self.response,
            response_by=self.response_by,
            response_at=_utc(self.response_at),
            flag_cleared_at=_utc(self.flag_cleared_at),
            updated_at=_utc(self.updated_at),
        )

    @classmethod
    def from_dto(cls, stage_key: str, entry: ApprovalEntry) -> StageApprovalModel:
        """Create ORM model from domain DTO."""
        return cls(
            stage_key=stage_key,
            approved=entry.approved,
            flagged=entry.flagged,
            name=entry.name,
            title=entry.title,
            surname=entry.surname,
            firstname=entry.firstname,
            middlename=entry.middlename,
            department=entry.department,
            college=entry.college,
            note=entry.note,
            response=entry.response,
            response_by=entry.response_by,
            response_at=entry.response_at,
            flag_cleared_at=entry.flag_cleared_at,
            updated_at=entry.updated_at,
        )
