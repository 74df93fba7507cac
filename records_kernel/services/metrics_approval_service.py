"""
MetricsApprovalService -- write side of the reference academic-metrics store.

Responsibility:
    Apply a partial approval update to one academic-metrics record and
    return the authoritative ``updatedMetrics`` document, the same shape the
    remote academic-metrics service returns.  Also registers new records
    (records are created upstream; this is the upstream for the reference
    store).

Architecture position:
    Kernel > Services -- stateful, owns no session.  The caller owns the
    transaction (``session_scope``); a failure anywhere leaves no partial
    update.

Invariants enforced:
    - Every key in an update must be owned by a registry stage; otherwise
      the whole update is rejected before anything is written.
    - Each touched stage's ``updatedAt`` is stamped with the injected clock,
      as is the record's own ``updated_at`` (pending lists order on it).
    - ``responseAt`` is set whenever a non-empty response is written.
    - ``flagClearedAt`` is set when a stage's flag goes from true to false.
    - Last writer wins; no optimistic concurrency tokens.

Failure modes:
    - MetricsNotFoundError -- no record with the given metrics id.
    - InvalidApprovalFieldError -- an update names keys no stage owns.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from records_kernel.domain.approval import ApprovalRecord
from records_kernel.domain.clock import Clock, SystemClock
from records_kernel.domain.officers import IDENTITY_ATTRIBUTES, OfficerRegistry
from records_kernel.domain.wire import entry_to_wire
from records_kernel.exceptions import (
    InvalidApprovalFieldError,
    MetricsNotFoundError,
)
from records_kernel.logging_config import get_logger
from records_kernel.models.academic_metrics import (
    AcademicMetricsModel,
    StageApprovalModel,
)

logger = get_logger("services.metrics_approval")

_FLAG_ATTRIBUTES = frozenset({"approved", "flagged"})
_OPTIONAL_TEXT_ATTRIBUTES = frozenset({"note", "response", "response_by"})


def _coerce(attr: str, value: Any) -> Any:
    if attr in _FLAG_ATTRIBUTES:
        return bool(value)
    if attr in _OPTIONAL_TEXT_ATTRIBUTES:
        return None if value is None else str(value)
    return "" if value is None else str(value)


class MetricsApprovalService:
    """Applies partial approval updates to persisted academic metrics."""

    def __init__(
        self,
        session: Session,
        registry: OfficerRegistry,
        clock: Clock | None = None,
    ):
        self._session = session
        self._registry = registry
        self._clock = clock or SystemClock()

    def register(self, record: ApprovalRecord) -> ApprovalRecord:
        """Persist a new academic-metrics record with its approval trail."""
        model = AcademicMetricsModel.from_dto(record, self._clock.now())
        self._session.add(model)
        self._session.flush()
        logger.info(
            "academic_metrics_registered",
            extra={"metrics_id": record.metrics_id, "reg_no": record.student.reg_no},
        )
        return model.to_dto()

    def update_approval(
        self,
        metrics_id: str,
        fields: Mapping[str, Any],
    ) -> dict[str, Any]:
        model = self._load(metrics_id)

        grouped: dict[str, dict[str, Any]] = {}
        unknown: list[str] = []
        for wire_key, value in fields.items():
            owner = self._registry.owner_of_field(wire_key)
            if owner is None:
                unknown.append(wire_key)
                continue
            stage, attr = owner
            grouped.setdefault(stage.key, {})[attr] = value
        if unknown:
            logger.warning(
                "approval_update_rejected",
                extra={"metrics_id": metrics_id, "fields": tuple(unknown)},
            )
            raise InvalidApprovalFieldError(metrics_id, tuple(unknown))

        now = self._clock.now()
        for stage_key, changes in grouped.items():
            row = model.approval_for(stage_key)
            if row is None:
                row = StageApprovalModel(
                    stage_key=stage_key,
                    approved=False,
                    flagged=False,
                    **{attr: "" for attr in IDENTITY_ATTRIBUTES},
                )
                model.approvals.append(row)
            was_flagged = bool(row.flagged)

            for attr, value in changes.items():
                setattr(row, attr, _coerce(attr, value))

            if "response" in changes and row.response and row.response.strip():
                row.response_at = now
            if was_flagged and not row.flagged:
                row.flag_cleared_at = now
            row.updated_at = now

        model.updated_at = now
        self._session.flush()

        logger.info(
            "approval_update_applied",
            extra={
                "metrics_id": metrics_id,
                "stages": tuple(grouped),
                "fields": tuple(fields),
            },
        )
        return self.updated_metrics_document(model)

    def updated_metrics_document(self, model: AcademicMetricsModel) -> dict[str, Any]:
        """The ``updatedMetrics`` document: figures plus one approval per stage."""
        record = model.to_dto()
        doc: dict[str, Any] = {
            "metricsId": model.metrics_id,
            "currentMetrics": dict(model.current_metrics or {}),
            "previousMetrics": dict(model.previous_metrics or {}),
            "metrics": dict(model.cumulative or {}),
        }
        for stage in self._registry:
            doc[stage.fields.approval] = entry_to_wire(record.entry(stage.key))
        return doc

    def _load(self, metrics_id: str) -> AcademicMetricsModel:
        model = self._session.scalar(
            select(AcademicMetricsModel).where(
                AcademicMetricsModel.metrics_id == metrics_id
            )
        )
        if model is None:
            logger.warning("academic_metrics_not_found", extra={"metrics_id": metrics_id})
            raise MetricsNotFoundError(metrics_id)
        return model
