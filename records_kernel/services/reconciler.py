"""
records_kernel.services.reconciler -- Apply mutation responses to the store.

Responsibility:
    After the academic-metrics service accepts an approval update, fold its
    authoritative ``updatedMetrics`` document back into the session's
    record store, then mark the affected lists stale so the next read
    re-synchronizes counts.

Architecture position:
    Kernel > Services.  Operates on ``ApprovalRecordStore`` only.

Invariants enforced:
    - A record leaves the acting role's pending list the moment the acting
      stage's own entry is approved (it has cleared that desk).
    - Otherwise the cached record is patched in place: metric figures are
      merged field by field (server value, else cached value, else 0) and
      the approvals map is replaced wholesale.
    - Only successful responses are reconciled; callers never invoke the
      reconciler for a failed mutation, so the store keeps its last
      known-good state.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from records_kernel.domain.approval import (
    ApprovalEntry,
    ApprovalRecord,
    ApprovalView,
    ProcessedStatus,
)
from records_kernel.domain.officers import OfficerRegistry
from records_kernel.domain.wire import (
    approvals_from_document,
    cumulative_metrics_from_wire,
    current_metrics_from_wire,
)
from records_kernel.logging_config import get_logger
from records_kernel.services.record_store import ApprovalRecordStore, QueryKey

logger = get_logger("services.reconciler")


@dataclass(frozen=True)
class ReconcileOutcome:
    removed: bool = False
    patched: bool = False
    acting_stage_approved: bool = False
    invalidated: tuple[QueryKey, ...] = ()


def merge_updated_metrics(
    existing: ApprovalRecord,
    updated: Mapping[str, Any],
    approvals: Mapping[str, ApprovalEntry],
) -> ApprovalRecord:
    """Cached record with the server's figures and approval trail merged in."""
    return replace(
        existing,
        current_metrics=current_metrics_from_wire(
            updated.get("currentMetrics"), existing.current_metrics,
        ),
        previous_metrics=cumulative_metrics_from_wire(
            updated.get("previousMetrics"), existing.previous_metrics,
        ),
        cumulative=cumulative_metrics_from_wire(
            updated.get("metrics") or updated.get("cumulative"), existing.cumulative,
        ),
        approvals=dict(approvals),
    )


class CacheReconciler:
    """Folds successful mutation responses into an ``ApprovalRecordStore``."""

    def __init__(self, registry: OfficerRegistry, store: ApprovalRecordStore) -> None:
        self._registry = registry
        self._store = store

    def reconcile(
        self,
        *,
        role: str,
        acting_stage: str,
        metrics_id: str,
        updated_metrics: Mapping[str, Any] | None,
        processed_status: ProcessedStatus | None = None,
    ) -> ReconcileOutcome:
        removed = False
        patched = False
        approved = False

        if updated_metrics:
            approvals = approvals_from_document(updated_metrics, self._registry)
            entry = approvals.get(acting_stage)
            approved = bool(entry and entry.approved)

            for key in self._store.keys_for_role(role):
                if key.view is ApprovalView.PENDING and approved:
                    removed = self._store.remove(key, metrics_id) or removed
                    continue
                patched = self._store.patch(
                    key,
                    metrics_id,
                    lambda existing: merge_updated_metrics(
                        existing, updated_metrics, approvals,
                    ),
                ) or patched

        invalidated = [QueryKey.pending(role)]
        if processed_status is not None:
            invalidated.append(QueryKey.processed(role, processed_status))
        for key in invalidated:
            self._store.invalidate(key)

        logger.info(
            "approval_reconciled",
            extra={
                "metrics_id": metrics_id,
                "acting_stage": acting_stage,
                "removed": removed,
                "patched": patched,
            },
        )
        return ReconcileOutcome(
            removed=removed,
            patched=patched,
            acting_stage_approved=approved,
            invalidated=tuple(invalidated),
        )
