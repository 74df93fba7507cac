"""
records_services.sql_gateway -- ``ApprovalDataSource`` over the reference store.

Responsibility:
    Serves the approval workflow directly from the SQLAlchemy-backed
    academic-metrics store.  Each call runs in its own ``session_scope``:
    reads see a consistent snapshot and each update is atomic.

Architecture position:
    Services -- wires kernel selectors (read side) and the
    ``MetricsApprovalService`` (write side) behind the data-source protocol.

Failure modes:
    - MetricsNotFoundError / InvalidApprovalFieldError propagate from the
      write service after the transaction is rolled back.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from records_kernel.db.engine import session_scope
from records_kernel.domain.approval import ApprovalPage, ProcessedStatus
from records_kernel.domain.clock import Clock, SystemClock
from records_kernel.domain.officers import OfficerRegistry
from records_kernel.selectors.approval_selector import ApprovalSelector
from records_kernel.services.metrics_approval_service import MetricsApprovalService


class SqlApprovalDataSource:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        registry: OfficerRegistry,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._registry = registry
        self._clock = clock or SystemClock()

    def fetch_pending(self, role: str, limit: int | None = None) -> ApprovalPage:
        with session_scope(self._session_factory) as session:
            return ApprovalSelector(session, self._registry).pending(role, limit)

    def fetch_processed(
        self,
        role: str,
        status: ProcessedStatus,
        limit: int | None = None,
    ) -> ApprovalPage:
        with session_scope(self._session_factory) as session:
            return ApprovalSelector(session, self._registry).processed(role, status, limit)

    def update_approval(
        self,
        metrics_id: str,
        fields: Mapping[str, Any],
    ) -> dict[str, Any]:
        with session_scope(self._session_factory) as session:
            service = MetricsApprovalService(session, self._registry, self._clock)
            return service.update_approval(metrics_id, fields)
