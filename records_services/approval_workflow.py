"""
records_services.approval_workflow -- Approval workflow coordinator.

Responsibility:
    The single entry point for officer actions.  Every approve / flag /
    resolve / unapprove request flows through ``submit``:

        1. Locate the record in the session store.
        2. Evaluate the gating policy (read-only, stage authority, profile,
           existing flags, resolve authority).
        3. Run the pure state machine to build the partial update.
        4. Send the update to the academic-metrics data source.
        5. Reconcile the returned ``updatedMetrics`` into the store.

Architecture position:
    Services -- stateful orchestration over engines + kernel.  Depends on
    records_engines (pure), records_kernel (store, reconciler, domain) and
    records_config (settings).

Invariants enforced:
    - Read-only mode vetoes every mutation before anything is sent.
    - At most one outstanding mutation per (metrics id, stage, action).
    - A failed mutation leaves the store untouched; nothing is retried.
    - A successful mutation is reconciled even when the caller has already
      abandoned its dialog.

Failure modes:
    - Vetoes, state-machine rejections and service errors are returned as
      ``ActionResult(success=False)``; nothing is raised to the caller.
      Loader errors from ``load_pending`` / ``load_processed`` propagate.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

import httpx

from records_config.schema import WorkflowSettings
from records_engines.approval import TransitionRequest, apply_transition
from records_engines.gating import GatingContext, Veto, evaluate_gates
from records_kernel.domain.approval import (
    Actor,
    ApprovalAction,
    ApprovalDataSource,
    ApprovalRecord,
    ApprovalUpdate,
    EnvironmentProvider,
    ProcessedStatus,
)
from records_kernel.domain.clock import Clock, SystemClock
from records_kernel.domain.dialog import (
    DialogState,
    begin_submit,
    can_submit,
    submit_failed,
    submit_succeeded,
)
from records_kernel.domain.officers import OfficerRegistry, OfficerStage
from records_kernel.domain.views import RecordGroup, group_records
from records_kernel.domain.wire import approvals_from_document
from records_kernel.exceptions import (
    ApprovalError,
    ApprovalRejectedError,
    ApprovalTransportError,
)
from records_kernel.logging_config import LogContext, get_logger
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
from records_services.environment import StaticEnvironment

logger = get_logger("services.approval_workflow")

RECORD_NOT_LOADED = "record_not_loaded"
DUPLICATE_SUBMISSION = "duplicate_submission"


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one officer action, as shown to the user."""

    success: bool
    action: ApprovalAction
    metrics_id: str
    stage_key: str
    code: str | None = None
    message: str = ""
    record: ApprovalRecord | None = None
    update: ApprovalUpdate | None = None
    vetoes: tuple[Veto, ...] = ()
    reconcile: ReconcileOutcome | None = None


class ApprovalWorkflowService:
    """Coordinates gating, transitions, the data source and the store."""

    def __init__(
        self,
        registry: OfficerRegistry,
        data_source: ApprovalDataSource,
        store: ApprovalRecordStore | None = None,
        environment: EnvironmentProvider | None = None,
        settings: WorkflowSettings | None = None,
        clock: Clock | None = None,
    ):
        self._registry = registry
        self._data_source = data_source
        self._clock = clock or SystemClock()
        self._store = store or ApprovalRecordStore(self._clock)
        self._environment = environment or StaticEnvironment()
        self._settings = settings or WorkflowSettings()
        self._reconciler = CacheReconciler(registry, self._store)
        self._selected_status: dict[str, ProcessedStatus] = {}
        self._in_flight: set[tuple[str, str, ApprovalAction]] = set()
        self._lock = threading.Lock()

    @property
    def store(self) -> ApprovalRecordStore:
        return self._store

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def load_pending(
        self,
        actor: Actor,
        role: str,
        limit: int | None = None,
    ) -> CachedPage:
        limit = limit if limit is not None else self._settings.default_limit
        with LogContext.bind(actor_id=actor.user_id, role=role):
            page = self._store.refresh(
                QueryKey.pending(role),
                lambda: self._data_source.fetch_pending(role, limit),
            )
            logger.info(
                "pending_loaded",
                extra={"count": len(page.items), "total": page.total},
            )
        return page

    def load_processed(
        self,
        actor: Actor,
        role: str,
        status: ProcessedStatus = ProcessedStatus.ALL,
        limit: int | None = None,
    ) -> CachedPage:
        status = ProcessedStatus(status)
        limit = limit if limit is not None else self._settings.default_limit
        self._selected_status[role] = status
        with LogContext.bind(actor_id=actor.user_id, role=role):
            page = self._store.refresh(
                QueryKey.processed(role, status),
                lambda: self._data_source.fetch_processed(role, status, limit),
            )
            logger.info(
                "processed_loaded",
                extra={"status": status, "count": len(page.items), "total": page.total},
            )
        return page

    def grouped_pending(self, role: str) -> tuple[RecordGroup, ...]:
        """Cached pending records grouped by session, level, semester, department."""
        cached = self._store.get(QueryKey.pending(role))
        return group_records(cached.items) if cached else ()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def approve(self, actor: Actor, metrics_id: str, stage_key: str) -> ActionResult:
        return self.submit(actor, ApprovalAction.APPROVE, metrics_id, stage_key, stage_key)

    def flag(
        self,
        actor: Actor,
        metrics_id: str,
        target_stage: str,
        note: str,
        acting_stage: str | None = None,
    ) -> ActionResult:
        acting = acting_stage or self._default_acting_stage(actor, target_stage)
        return self.submit(
            actor, ApprovalAction.FLAG, metrics_id, target_stage, acting, text=note,
        )

    def resolve(
        self,
        actor: Actor,
        metrics_id: str,
        target_stage: str,
        response: str,
        acting_stage: str | None = None,
    ) -> ActionResult:
        acting = acting_stage or self._default_acting_stage(actor, target_stage)
        return self.submit(
            actor, ApprovalAction.RESOLVE, metrics_id, target_stage, acting, text=response,
        )

    def unapprove(
        self,
        actor: Actor,
        metrics_id: str,
        stage_key: str,
        note: str | None = None,
    ) -> ActionResult:
        return self.submit(
            actor, ApprovalAction.UNAPPROVE, metrics_id, stage_key, stage_key, text=note,
        )

    def submit_dialog(
        self,
        actor: Actor,
        state: DialogState,
        acting_stage: str | None = None,
    ) -> tuple[DialogState, ActionResult | None]:
        """Submit a composed note; the dialog closes on success, shows the error otherwise."""
        if not can_submit(state):
            return state, None
        submitting = begin_submit(state)
        acting = acting_stage or self._default_acting_stage(actor, submitting.stage_key)
        result = self.submit(
            actor,
            submitting.action,
            submitting.metrics_id,
            submitting.stage_key,
            acting,
            text=submitting.text,
        )
        if result.success:
            return submit_succeeded(submitting), result
        return submit_failed(submitting, result.message), result

    def submit(
        self,
        actor: Actor,
        action: ApprovalAction,
        metrics_id: str,
        target_stage: str,
        acting_stage: str,
        text: str | None = None,
    ) -> ActionResult:
        stage = self._registry.get(acting_stage)
        role = stage.role if stage else None

        with LogContext.bind(
            actor_id=actor.user_id, role=role, stage=target_stage, metrics_id=metrics_id,
        ):
            record = self._store.find(metrics_id, role) or self._store.find(metrics_id)
            if record is None:
                return self._refuse(
                    action, metrics_id, target_stage,
                    RECORD_NOT_LOADED, "This record is not loaded; refresh the list.",
                )

            ctx = GatingContext(
                actor=actor,
                record=record,
                action=action,
                acting_stage=acting_stage,
                target_stage=target_stage,
                read_only=self._environment.current().read_only,
                override_roles=tuple(self._settings.override_roles),
                read_only_message=self._settings.read_only_message,
            )
            decision = evaluate_gates(self._registry, ctx)
            if not decision.allowed:
                first = decision.first
                return self._refuse(
                    action, metrics_id, target_stage,
                    first.code.value, first.message,
                    record=record, vetoes=decision.vetoes,
                )

            transition = apply_transition(
                self._registry,
                TransitionRequest(
                    record=record,
                    acting_stage=acting_stage,
                    target_stage=target_stage,
                    action=action,
                    text=text,
                    actor_name=actor.display_name(),
                    profile=actor.profile,
                    has_override=ctx.has_override,
                ),
                self._clock.now(),
            )
            if not transition.success:
                return self._refuse(
                    action, metrics_id, target_stage,
                    transition.code.value, transition.reason, record=record,
                )

            key = (metrics_id, target_stage, action)
            with self._lock:
                if key in self._in_flight:
                    return self._refuse(
                        action, metrics_id, target_stage,
                        DUPLICATE_SUBMISSION, "This action is already being submitted.",
                        record=record,
                    )
                self._in_flight.add(key)

            update = transition.update
            try:
                updated = self._data_source.update_approval(metrics_id, update.fields)
            except ApprovalRejectedError as exc:
                message = exc.server_message or self._settings.generic_error_message
                logger.warning(
                    "approval_update_failed",
                    extra={"action": action, "code": exc.code, "status_code": exc.status_code},
                )
                return ActionResult(
                    success=False, action=action, metrics_id=metrics_id,
                    stage_key=target_stage, code=exc.code, message=message,
                    record=record, update=update,
                )
            except ApprovalTransportError as exc:
                logger.warning(
                    "approval_update_failed",
                    extra={"action": action, "code": exc.code, "reason": exc.reason},
                )
                return ActionResult(
                    success=False, action=action, metrics_id=metrics_id,
                    stage_key=target_stage, code=exc.code,
                    message=self._settings.generic_error_message,
                    record=record, update=update,
                )
            except ApprovalError as exc:
                logger.warning(
                    "approval_update_failed",
                    extra={"action": action, "code": exc.code, "reason": str(exc)},
                )
                return ActionResult(
                    success=False, action=action, metrics_id=metrics_id,
                    stage_key=target_stage, code=exc.code,
                    message=self._settings.generic_error_message,
                    record=record, update=update,
                )
            finally:
                with self._lock:
                    self._in_flight.discard(key)

            outcome = self._reconciler.reconcile(
                role=role,
                acting_stage=acting_stage,
                metrics_id=metrics_id,
                updated_metrics=updated,
                processed_status=self._selected_status.get(role),
            )
            if updated:
                reconciled = merge_updated_metrics(
                    record, updated, approvals_from_document(updated, self._registry),
                )
            else:
                reconciled = record.with_entry(target_stage, transition.entry)

            logger.info(
                "approval_submitted",
                extra={"action": action, "acting_stage": acting_stage},
            )
            return ActionResult(
                success=True,
                action=action,
                metrics_id=metrics_id,
                stage_key=target_stage,
                record=reconciled,
                update=update,
                reconcile=outcome,
            )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _default_acting_stage(self, actor: Actor, target_stage: str) -> str:
        """The target itself when permitted, else the actor's highest stage."""
        permitted = self._permitted_stages(actor.roles)
        if any(s.key == target_stage for s in permitted):
            return target_stage
        return permitted[-1].key if permitted else target_stage

    def _permitted_stages(self, roles: Iterable[str]) -> tuple[OfficerStage, ...]:
        return tuple(
            self._registry.stages_for_roles(roles, tuple(self._settings.override_roles))
        )

    def _refuse(
        self,
        action: ApprovalAction,
        metrics_id: str,
        stage_key: str,
        code: str,
        message: str,
        record: ApprovalRecord | None = None,
        vetoes: tuple[Veto, ...] = (),
    ) -> ActionResult:
        logger.info(
            "approval_action_vetoed",
            extra={"action": action, "code": code, "reason": message},
        )
        return ActionResult(
            success=False,
            action=action,
            metrics_id=metrics_id,
            stage_key=stage_key,
            code=code,
            message=message,
            record=record,
            vetoes=vetoes,
        )


def build_approval_workflow(
    token_provider: Callable[[], str | None] | None = None,
    on_unauthorized: Callable[[], None] | None = None,
    config_dir: Path | None = None,
    set_name: str = "default",
    data_source: ApprovalDataSource | None = None,
    environment: EnvironmentProvider | None = None,
    clock: Clock | None = None,
    transport: httpx.BaseTransport | None = None,
) -> ApprovalWorkflowService:
    """Build an ApprovalWorkflowService from config (single entrypoint for production).

    Loads the officer hierarchy and settings via get_active_config().  Unless
    supplied, the data source and environment provider talk to
    ``settings.api_base_url`` with ``settings.request_timeout_seconds``.
    A default environment provider reads ``GET /env`` once before the
    workflow is returned, so read-only mode is known before the first action.

    Args:
        token_provider: Returns the current bearer token, or None.
        on_unauthorized: Called when the service answers 401 (logout).
        config_dir: Optional path to config sets directory.
        set_name: Configuration set to load.
        data_source: Optional data source; default HttpApprovalDataSource.
        environment: Optional environment provider; default HttpEnvironmentProvider.
        clock: Optional clock; default SystemClock.
        transport: Optional httpx transport for the default HTTP clients.
    """
    from records_config import get_active_config
    from records_services.http_gateway import (
        HttpApprovalDataSource,
        HttpEnvironmentProvider,
    )

    config = get_active_config(config_dir=config_dir, set_name=set_name)
    settings = config.settings
    if data_source is None:
        data_source = HttpApprovalDataSource(
            config.registry,
            settings.api_base_url,
            token_provider=token_provider,
            on_unauthorized=on_unauthorized,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )
    if environment is None:
        environment = HttpEnvironmentProvider(
            settings.api_base_url,
            token_provider=token_provider,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )
        environment.refresh()
    return ApprovalWorkflowService(
        registry=config.registry,
        data_source=data_source,
        environment=environment,
        settings=settings,
        clock=clock,
    )
