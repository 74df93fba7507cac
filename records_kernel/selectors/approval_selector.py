"""
Module: records_kernel.selectors.approval_selector
Responsibility: Read-only pending/processed queries over academic-metrics
    records for one officer stage.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.

Invariants enforced:
    - Pending for a stage: the stage has no approval row, or its row is not
      approved.
    - Processed for a stage: the stage's row is approved, flagged, or carries
      a non-empty response (narrowed by the requested status facet).
    - Ordering is most recently updated first, then metrics id for
      determinism.
    - ``total`` counts every match; ``items`` honours ``limit``.

Failure modes:
    - A role with no stage yields an empty page (never raises).
"""

from __future__ import annotations

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from records_kernel.domain.approval import ApprovalPage, ProcessedStatus
from records_kernel.domain.officers import OfficerRegistry
from records_kernel.logging_config import get_logger
from records_kernel.models.academic_metrics import (
    AcademicMetricsModel,
    StageApprovalModel,
)
from records_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.approval")


def _status_clause(status: ProcessedStatus):
    responded = and_(
        StageApprovalModel.response.is_not(None),
        func.trim(StageApprovalModel.response) != "",
    )
    if status is ProcessedStatus.APPROVED:
        return StageApprovalModel.approved.is_(True)
    if status is ProcessedStatus.FLAGGED:
        return StageApprovalModel.flagged.is_(True)
    if status is ProcessedStatus.RESPONDED:
        return responded
    return or_(
        StageApprovalModel.approved.is_(True),
        StageApprovalModel.flagged.is_(True),
        responded,
    )


class ApprovalSelector(BaseSelector[AcademicMetricsModel]):
    """Pending and processed approval lists, per officer role."""

    def __init__(self, session: Session, registry: OfficerRegistry):
        super().__init__(session)
        self._registry = registry

    def get(self, metrics_id: str):
        model = self.session.scalar(
            select(AcademicMetricsModel).where(
                AcademicMetricsModel.metrics_id == metrics_id
            )
        )
        return model.to_dto() if model is not None else None

    def pending(self, role: str, limit: int | None = None) -> ApprovalPage:
        stage = self._registry.stage_for(role)
        if stage is None:
            logger.debug("no_stage_for_role", extra={"role": role})
            return ApprovalPage()

        join_on = and_(
            StageApprovalModel.metrics_id == AcademicMetricsModel.metrics_id,
            StageApprovalModel.stage_key == stage.key,
        )
        condition = or_(
            StageApprovalModel.id.is_(None),
            StageApprovalModel.approved.is_(False),
        )
        base = (
            select(AcademicMetricsModel)
            .outerjoin(StageApprovalModel, join_on)
            .where(condition)
        )
        return self._page(base, limit)

    def processed(
        self,
        role: str,
        status: ProcessedStatus = ProcessedStatus.ALL,
        limit: int | None = None,
    ) -> ApprovalPage:
        stage = self._registry.stage_for(role)
        if stage is None:
            logger.debug("no_stage_for_role", extra={"role": role})
            return ApprovalPage()

        base = (
            select(AcademicMetricsModel)
            .join(
                StageApprovalModel,
                StageApprovalModel.metrics_id == AcademicMetricsModel.metrics_id,
            )
            .where(StageApprovalModel.stage_key == stage.key)
            .where(_status_clause(ProcessedStatus(status)))
        )
        return self._page(base, limit)

    def _page(self, base, limit: int | None) -> ApprovalPage:
        total = self.session.scalar(
            select(func.count()).select_from(base.subquery())
        ) or 0
        stmt = base.order_by(
            AcademicMetricsModel.updated_at.desc(),
            AcademicMetricsModel.metrics_id,
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        models = self.session.scalars(stmt).all()
        return ApprovalPage(
            items=tuple(m.to_dto() for m in models),
            total=int(total),
        )
