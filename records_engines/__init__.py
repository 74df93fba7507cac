"""
Module: records_engines
Responsibility:
    Package entrypoint that re-exports the pure approval engines: the
    per-stage transition state machine and the gating policy.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import records_kernel/domain.
    MUST NOT import records_services.

Invariants enforced:
    - Purity: engines never read the clock; ``now`` is passed in.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from records_engines import apply_transition, evaluate_gates
"""

from records_engines.approval import (
    RejectionCode,
    TransitionRequest,
    TransitionResult,
    apply_transition,
    may_resolve,
)
from records_engines.gating import (
    READ_ONLY_MESSAGE,
    GateDecision,
    GatingContext,
    Veto,
    VetoCode,
    evaluate_gates,
)

__all__ = [
    "GateDecision",
    "GatingContext",
    "READ_ONLY_MESSAGE",
    "RejectionCode",
    "TransitionRequest",
    "TransitionResult",
    "Veto",
    "VetoCode",
    "apply_transition",
    "evaluate_gates",
    "may_resolve",
]
