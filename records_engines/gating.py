"""
records_engines.gating -- Cross-cutting vetoes applied before any transition.

Responsibility:
    Independent boolean checks that block an action regardless of what the
    state machine would decide.  Every veto is evaluated; the action may
    proceed only when none fires.  The first veto (in declaration order) is
    the one surfaced to the user.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Vetoes:
    READ_ONLY             any action while connected to a read-only replica
    STAGE_NOT_ASSIGNED    actor may not act as the acting stage
    PROFILE_INCOMPLETE    APPROVE with title/surname/firstname/department/college missing
    STAGE_FLAGGED         APPROVE while the acting stage is flagged
    RECORD_FLAGGED        APPROVE while any stage on the record is flagged
    RESOLVE_NOT_PERMITTED RESOLVE by an upstream stage without an override role
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from records_engines.approval import may_resolve
from records_kernel.domain.approval import Actor, ApprovalAction, ApprovalRecord
from records_kernel.domain.officers import OVERRIDE_ROLE, OfficerRegistry

READ_ONLY_MESSAGE = (
    "Approvals are disabled while you are connected to the read-only replica."
)


class VetoCode(str, Enum):
    READ_ONLY = "read_only"
    STAGE_NOT_ASSIGNED = "stage_not_assigned"
    PROFILE_INCOMPLETE = "profile_incomplete"
    STAGE_FLAGGED = "stage_flagged"
    RECORD_FLAGGED = "record_flagged"
    RESOLVE_NOT_PERMITTED = "resolve_not_permitted"


@dataclass(frozen=True)
class Veto:
    code: VetoCode
    message: str


@dataclass(frozen=True)
class GateDecision:
    """All vetoes that fired for one attempted action."""

    vetoes: tuple[Veto, ...] = ()

    @property
    def allowed(self) -> bool:
        return not self.vetoes

    @property
    def first(self) -> Veto | None:
        return self.vetoes[0] if self.vetoes else None

    def codes(self) -> tuple[VetoCode, ...]:
        return tuple(v.code for v in self.vetoes)


@dataclass(frozen=True)
class GatingContext:
    actor: Actor
    record: ApprovalRecord
    action: ApprovalAction
    acting_stage: str
    target_stage: str
    read_only: bool = False
    override_roles: tuple[str, ...] = (OVERRIDE_ROLE,)
    read_only_message: str = READ_ONLY_MESSAGE

    @property
    def has_override(self) -> bool:
        return self.actor.has_any_role(self.override_roles)


VetoCheck = Callable[[OfficerRegistry, GatingContext], Veto | None]


def read_only_veto(registry: OfficerRegistry, ctx: GatingContext) -> Veto | None:
    if ctx.read_only:
        return Veto(VetoCode.READ_ONLY, ctx.read_only_message)
    return None


def stage_authority_veto(registry: OfficerRegistry, ctx: GatingContext) -> Veto | None:
    permitted = registry.stages_for_roles(ctx.actor.roles, ctx.override_roles)
    if any(stage.key == ctx.acting_stage for stage in permitted):
        return None
    stage = registry.get(ctx.acting_stage)
    label = stage.display_label if stage else ctx.acting_stage
    return Veto(
        VetoCode.STAGE_NOT_ASSIGNED,
        f"You are not assigned to act as {label}.",
    )


def profile_veto(registry: OfficerRegistry, ctx: GatingContext) -> Veto | None:
    if ctx.action is not ApprovalAction.APPROVE:
        return None
    missing = ctx.actor.profile.missing_fields()
    if not missing:
        return None
    return Veto(
        VetoCode.PROFILE_INCOMPLETE,
        "Complete all required identity fields to enable approvals "
        f"(missing: {', '.join(missing)}).",
    )


def existing_flag_veto(registry: OfficerRegistry, ctx: GatingContext) -> Veto | None:
    if ctx.action is not ApprovalAction.APPROVE:
        return None
    if ctx.record.entry(ctx.acting_stage).flagged:
        stage = registry.get(ctx.acting_stage)
        label = stage.display_label if stage else ctx.acting_stage
        return Veto(
            VetoCode.STAGE_FLAGGED,
            f"This record is flagged at {label}; resolve the flag before approving.",
        )
    primary = registry.primary_flag(ctx.record)
    if primary is not None:
        return Veto(
            VetoCode.RECORD_FLAGGED,
            f"This record is flagged by the {primary.display_label}; "
            "approval is halted until the flag is resolved.",
        )
    return None


def resolve_authority_veto(registry: OfficerRegistry, ctx: GatingContext) -> Veto | None:
    if ctx.action is not ApprovalAction.RESOLVE:
        return None
    if may_resolve(registry, ctx.acting_stage, ctx.target_stage, ctx.has_override):
        return None
    target = registry.get(ctx.target_stage)
    label = target.display_label if target else ctx.target_stage
    return Veto(
        VetoCode.RESOLVE_NOT_PERMITTED,
        f"Only the {label} or a later approver can resolve this flag.",
    )


GATE_CHECKS: tuple[VetoCheck, ...] = (
    read_only_veto,
    stage_authority_veto,
    profile_veto,
    existing_flag_veto,
    resolve_authority_veto,
)


def evaluate_gates(
    registry: OfficerRegistry,
    ctx: GatingContext,
    checks: tuple[VetoCheck, ...] = GATE_CHECKS,
) -> GateDecision:
    """Run every check; the action is allowed only if none vetoes."""
    vetoes = []
    for check in checks:
        veto = check(registry, ctx)
        if veto is not None:
            vetoes.append(veto)
    return GateDecision(vetoes=tuple(vetoes))
