"""
Pure domain layer.

Data transfer objects and registry logic with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- HTTP transport
- Wall-clock time (the Clock is injected)

All domain objects are immutable and deterministic.
"""

from records_kernel.domain.approval import (
    Actor,
    ApprovalAction,
    ApprovalDataSource,
    ApprovalEntry,
    ApprovalPage,
    ApprovalRecord,
    ApprovalUpdate,
    ApprovalView,
    CourseResult,
    CumulativeMetrics,
    CurrentMetrics,
    EnvironmentProvider,
    EnvironmentState,
    OfficerProfile,
    ProcessedStatus,
    StudentRef,
    coerce_number,
)
from records_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from records_kernel.domain.officers import (
    DEFAULT_OFFICER_REGISTRY,
    OVERRIDE_ROLE,
    OfficerRegistry,
    OfficerStage,
    StageFields,
    build_stage,
)
from records_kernel.domain.views import (
    RecordGroup,
    group_records,
    is_pending_for,
    is_processed_for,
    matches_status,
)

__all__ = [
    "Actor",
    "ApprovalAction",
    "ApprovalDataSource",
    "ApprovalEntry",
    "ApprovalPage",
    "ApprovalRecord",
    "ApprovalUpdate",
    "ApprovalView",
    "Clock",
    "CourseResult",
    "CumulativeMetrics",
    "CurrentMetrics",
    "DEFAULT_OFFICER_REGISTRY",
    "DeterministicClock",
    "EnvironmentProvider",
    "EnvironmentState",
    "OVERRIDE_ROLE",
    "OfficerProfile",
    "OfficerRegistry",
    "OfficerStage",
    "ProcessedStatus",
    "RecordGroup",
    "StageFields",
    "StudentRef",
    "SystemClock",
    "build_stage",
    "coerce_number",
    "group_records",
    "is_pending_for",
    "is_processed_for",
    "matches_status",
]
