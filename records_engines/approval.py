"""
records_engines.approval -- Pure approval state machine.

Responsibility:
    Decide whether an approve / flag / resolve / unapprove action is legal
    for one stage of one record, compute the resulting ``ApprovalEntry``,
    and build the partial-update payload carrying only the target stage's
    keys relevant to the action.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import records_kernel/domain/ types.

Transition table (target stage entry):

    current       action      precondition                              result
    -----------   ---------   ---------------------------------------   -----------------------------
    not flagged   APPROVE     acting == target                          approved, identity stamped
    any           FLAG        non-empty note                            flagged, not approved, note
    flagged       RESOLVE     non-empty response; acting == target,     flag cleared, response
                              acting downstream of target, or override
    not flagged   UNAPPROVE   acting == target                          not approved, not flagged

Invariants enforced:
    - A successful transition never yields ``approved and flagged``.
    - UNAPPROVE is idempotent on an unapproved, unflagged entry.
    - Purity: ``now`` is a parameter; the engine never reads a clock.

Failure modes:
    - Illegal actions return ``TransitionResult(success=False)`` with a
      ``RejectionCode`` and a user-facing reason.  Nothing is raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from records_kernel.domain.approval import (
    ApprovalAction,
    ApprovalEntry,
    ApprovalRecord,
    ApprovalUpdate,
    OfficerProfile,
)
from records_kernel.domain.officers import OfficerRegistry, OfficerStage


class RejectionCode(str, Enum):
    """Why the state machine refused an action."""

    UNKNOWN_STAGE = "unknown_stage"
    NOTE_REQUIRED = "note_required"
    RESPONSE_REQUIRED = "response_required"
    STAGE_MISMATCH = "stage_mismatch"
    STAGE_FLAGGED = "stage_flagged"
    NOT_FLAGGED = "not_flagged"
    NOT_DOWNSTREAM = "not_downstream"


@dataclass(frozen=True)
class TransitionRequest:
    """One requested action against one stage of one record."""

    record: ApprovalRecord
    acting_stage: str
    target_stage: str
    action: ApprovalAction
    text: str | None = None
    actor_name: str = ""
    profile: OfficerProfile = field(default_factory=OfficerProfile)
    has_override: bool = False


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of evaluating a transition."""

    success: bool
    action: ApprovalAction
    target_stage: str
    entry: ApprovalEntry | None = None
    update: ApprovalUpdate | None = None
    code: RejectionCode | None = None
    reason: str = ""


def may_resolve(
    registry: OfficerRegistry,
    acting_stage: str,
    target_stage: str,
    has_override: bool = False,
) -> bool:
    """The flagged stage itself, any strictly later stage, or an override holder."""
    if has_override:
        return True
    if acting_stage == target_stage and acting_stage in registry:
        return True
    return registry.is_downstream_of(acting_stage, target_stage)


def apply_transition(
    registry: OfficerRegistry,
    request: TransitionRequest,
    now: datetime,
) -> TransitionResult:
    """Evaluate ``request`` and return the resulting entry and payload."""
    target = registry.get(request.target_stage)
    acting = registry.get(request.acting_stage)
    if target is None or acting is None:
        unknown = request.target_stage if target is None else request.acting_stage
        return _reject(
            request, RejectionCode.UNKNOWN_STAGE,
            f"Unknown approval stage '{unknown}'.",
        )

    current = request.record.entry(target.key)
    handler = _HANDLERS[request.action]
    return handler(registry, request, acting, target, current, now)


# ---------------------------------------------------------------------------
# Per-action handlers
# ---------------------------------------------------------------------------


def _approve(registry, request, acting, target, current, now) -> TransitionResult:
    if acting.key != target.key:
        return _reject(
            request, RejectionCode.STAGE_MISMATCH,
            f"Only the {target.display_label} can approve this stage.",
        )
    if current.flagged:
        return _reject(
            request, RejectionCode.STAGE_FLAGGED,
            f"Resolve the flag on {target.display_label} before approving.",
        )

    profile = request.profile
    identity = {
        "name": request.actor_name.strip(),
        "title": profile.title.strip(),
        "surname": profile.surname.strip(),
        "firstname": profile.firstname.strip(),
        "middlename": profile.middlename.strip(),
        "department": profile.department.strip(),
        "college": profile.college.strip(),
    }
    entry = current.with_changes(
        approved=True, flagged=False, updated_at=now, **identity,
    )
    fields: dict[str, Any] = {
        target.fields.approved: True,
        target.fields.flagged: False,
    }
    for attr, wire_key in target.fields.identity_keys().items():
        fields[wire_key] = identity[attr]
    return _accept(request, target, entry, fields)


def _flag(registry, request, acting, target, current, now) -> TransitionResult:
    note = (request.text or "").strip()
    if not note:
        return _reject(
            request, RejectionCode.NOTE_REQUIRED,
            "Provide a note explaining why this record requires attention.",
        )
    entry = current.with_changes(
        approved=False, flagged=True, note=note, updated_at=now,
    )
    fields = {
        target.fields.approved: False,
        target.fields.flagged: True,
        target.fields.note: note,
    }
    return _accept(request, target, entry, fields)


def _resolve(registry, request, acting, target, current, now) -> TransitionResult:
    response = (request.text or "").strip()
    if not response:
        return _reject(
            request, RejectionCode.RESPONSE_REQUIRED,
            "Provide a response describing how the flag was resolved.",
        )
    if not current.flagged:
        return _reject(
            request, RejectionCode.NOT_FLAGGED,
            f"{target.display_label} has no open flag to resolve.",
        )
    if not may_resolve(registry, acting.key, target.key, request.has_override):
        return _reject(
            request, RejectionCode.NOT_DOWNSTREAM,
            f"Only the {target.display_label} or a later approver can resolve this flag.",
        )
    responder = request.actor_name.strip()
    entry = current.with_changes(
        flagged=False,
        response=response,
        response_by=responder,
        response_at=now,
        flag_cleared_at=now,
        updated_at=now,
    )
    fields = {
        target.fields.flagged: False,
        target.fields.response: response,
        target.fields.response_by: responder,
    }
    return _accept(request, target, entry, fields)


def _unapprove(registry, request, acting, target, current, now) -> TransitionResult:
    if acting.key != target.key:
        return _reject(
            request, RejectionCode.STAGE_MISMATCH,
            f"Only the {target.display_label} can withdraw this approval.",
        )
    if current.flagged:
        return _reject(
            request, RejectionCode.STAGE_FLAGGED,
            f"{target.display_label} is flagged; resolve the flag instead.",
        )
    note = (request.text or "").strip() or None
    entry = current.with_changes(
        approved=False, flagged=False, note=note, updated_at=now,
    )
    fields = {
        target.fields.approved: False,
        target.fields.flagged: False,
        target.fields.note: note,
    }
    return _accept(request, target, entry, fields)


_HANDLERS = {
    ApprovalAction.APPROVE: _approve,
    ApprovalAction.FLAG: _flag,
    ApprovalAction.RESOLVE: _resolve,
    ApprovalAction.UNAPPROVE: _unapprove,
}


def _accept(
    request: TransitionRequest,
    target: OfficerStage,
    entry: ApprovalEntry,
    fields: dict[str, Any],
) -> TransitionResult:
    return TransitionResult(
        success=True,
        action=request.action,
        target_stage=target.key,
        entry=entry,
        update=ApprovalUpdate(
            metrics_id=request.record.metrics_id,
            stage_key=target.key,
            action=request.action,
            fields=fields,
        ),
    )


def _reject(
    request: TransitionRequest,
    code: RejectionCode,
    reason: str,
) -> TransitionResult:
    return TransitionResult(
        success=False,
        action=request.action,
        target_stage=request.target_stage,
        code=code,
        reason=reason,
    )
