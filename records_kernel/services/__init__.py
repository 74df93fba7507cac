"""Services for the records kernel."""

from records_kernel.services.metrics_approval_service import MetricsApprovalService
from records_kernel.services.reconciler import (
    CacheReconciler,
    ReconcileOutcome,
    merge_updated_metrics,
)
from records_kernel.services.record_store import (
    ApprovalRecordStore,
    CachedPage,
    QueryKey,
)

__all__ = [
    "ApprovalRecordStore",
    "CacheReconciler",
    "CachedPage",
    "MetricsApprovalService",
    "QueryKey",
    "ReconcileOutcome",
    "merge_updated_metrics",
]
