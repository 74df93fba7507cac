"""
records_services -- Package init and public API.

Responsibility:
    Stateful orchestration that composes the pure approval engines
    (records_engines/) with the record store, the academic-metrics data
    sources and the deployment environment.  This is the only layer that
    performs network or database I/O on behalf of the workflow.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        records_services/ -> records_engines/  (allowed)
        records_services/ -> records_kernel/   (allowed)
        records_services/ -> records_config/   (allowed)
        records_engines/  -> records_services/ (FORBIDDEN)
        records_kernel/   -> records_services/ (FORBIDDEN)
"""

from records_services.approval_workflow import (
    DUPLICATE_SUBMISSION,
    RECORD_NOT_LOADED,
    ActionResult,
    ApprovalWorkflowService,
    build_approval_workflow,
)
from records_services.environment import StaticEnvironment
from records_services.http_gateway import HttpApprovalDataSource, HttpEnvironmentProvider
from records_services.sql_gateway import SqlApprovalDataSource

__all__ = [
    "ActionResult",
    "ApprovalWorkflowService",
    "DUPLICATE_SUBMISSION",
    "HttpApprovalDataSource",
    "HttpEnvironmentProvider",
    "RECORD_NOT_LOADED",
    "SqlApprovalDataSource",
    "StaticEnvironment",
    "build_approval_workflow",
]
