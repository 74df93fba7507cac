"""
Pytest fixtures for the approval workflow test suite.

Provides:
- Structured logging setup and a log-capturing fixture
- The default officer registry and a deterministic clock
- Record and actor factories
- An in-memory academic-metrics data source that applies partial updates
- In-memory SQLite sessions for persistence tests
"""

import json
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from io import StringIO
from typing import Any

import pytest

from records_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from records_kernel.domain.approval import (
    Actor,
    ApprovalEntry,
    ApprovalPage,
    ApprovalRecord,
    CumulativeMetrics,
    CurrentMetrics,
    OfficerProfile,
    ProcessedStatus,
    StudentRef,
)
from records_kernel.domain.clock import DeterministicClock
from records_kernel.domain.officers import DEFAULT_OFFICER_REGISTRY
from records_kernel.domain.views import is_pending_for, is_processed_for
from records_kernel.domain.wire import entry_to_wire
from records_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

COMPLETE_PROFILE = OfficerProfile(
    title="Doctor",
    surname="Okafor",
    firstname="Adaeze",
    middlename="Nkem",
    department="Computer Science",
    college="Physical Sciences",
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture records_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow):
            workflow.approve(...)
            logs = captured_logs()
            assert any(r["message"] == "approval_submitted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("records_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def registry():
    return DEFAULT_OFFICER_REGISTRY


@pytest.fixture
def clock():
    return DeterministicClock()


def _make_record(
    metrics_id: str = "m-1",
    reg_no: str = "CSC/2020/001",
    approvals: Mapping[str, ApprovalEntry] | None = None,
    session: str = "2023/2024",
    level: str = "300",
    semester: str = "First",
    department: str = "Computer Science",
    gpa: float = 3.5,
) -> ApprovalRecord:
    return ApprovalRecord(
        metrics_id=metrics_id,
        student=StudentRef(reg_no=reg_no, full_name=f"Student {reg_no}"),
        department=department,
        session=session,
        level=level,
        semester=semester,
        current_metrics=CurrentMetrics(TCC=18, TCE=18, TPE=54, GPA=gpa),
        previous_metrics=CumulativeMetrics(CCC=36, CCE=36, CPE=120, CGPA=3.33),
        cumulative=CumulativeMetrics(CCC=54, CCE=54, CPE=174, CGPA=3.22),
        approvals=dict(approvals or {}),
    )


def _make_actor(
    *roles: str,
    profile: OfficerProfile = COMPLETE_PROFILE,
    user_id: str = "u-1",
    pf_no: str | None = None,
    email: str | None = None,
) -> Actor:
    return Actor(
        roles=tuple(roles),
        profile=profile,
        user_id=user_id,
        pf_no=pf_no,
        email=email,
    )


@pytest.fixture
def make_record():
    return _make_record


@pytest.fixture
def make_actor():
    return _make_actor


# =============================================================================
# In-memory academic-metrics service
# =============================================================================


class FakeApprovalDataSource:
    """Applies partial updates to in-memory records and records every call."""

    def __init__(self, registry, records=()):
        self.registry = registry
        self.records: dict[str, ApprovalRecord] = {r.metrics_id: r for r in records}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.error: Exception | None = None
        self.response_override: dict[str, Any] | None = None
        self.on_update = None
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def add(self, record: ApprovalRecord) -> None:
        self.records[record.metrics_id] = record

    def fetch_pending(self, role, limit=None):
        stage = self.registry.stage_for(role)
        items = [
            r for r in self.records.values()
            if stage is not None and is_pending_for(r, stage.key)
        ]
        return ApprovalPage(items=tuple(items[:limit] if limit else items), total=len(items))

    def fetch_processed(self, role, status=ProcessedStatus.ALL, limit=None):
        stage = self.registry.stage_for(role)
        items = [
            r for r in self.records.values()
            if stage is not None and is_processed_for(r, stage.key, status)
        ]
        return ApprovalPage(items=tuple(items[:limit] if limit else items), total=len(items))

    def update_approval(self, metrics_id, fields):
        self.calls.append((metrics_id, dict(fields)))
        if self.on_update is not None:
            self.on_update(metrics_id, fields)
        if self.error is not None:
            raise self.error
        if self.response_override is not None:
            return self.response_override

        record = self.records[metrics_id]
        for key, value in fields.items():
            stage, attr = self.registry.owner_of_field(key)
            before = record.entry(stage.key)
            changes = {attr: value, "updated_at": self.now}
            if attr == "response" and value:
                changes["response_at"] = self.now
            if attr == "flagged" and before.flagged and not value:
                changes["flag_cleared_at"] = self.now
            record = record.with_entry(stage.key, before.with_changes(**changes))
        self.records[metrics_id] = record

        doc: dict[str, Any] = {
            "metricsId": metrics_id,
            "currentMetrics": vars(record.current_metrics).copy(),
            "previousMetrics": vars(record.previous_metrics).copy(),
            "metrics": vars(record.cumulative).copy(),
        }
        for stage in self.registry:
            doc[stage.fields.approval] = entry_to_wire(record.entry(stage.key))
        return doc


@pytest.fixture
def data_source(registry):
    return FakeApprovalDataSource(registry)


# =============================================================================
# SQLite persistence
# =============================================================================


@pytest.fixture
def db_engine():
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    s = session_factory()
    yield s
    s.rollback()
    s.close()
