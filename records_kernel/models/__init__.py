"""ORM models for the reference academic-metrics store."""

from records_kernel.models.academic_metrics import (
    AcademicMetricsModel,
    StageApprovalModel,
)

__all__ = [
    "AcademicMetricsModel",
    "StageApprovalModel",
]
