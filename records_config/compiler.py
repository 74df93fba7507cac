"""
Approval configuration compiler (``records_config.compiler``).

Responsibility
--------------
Validates an ``ApprovalConfigurationSet`` and compiles it into the runtime
artifact: a ``CompiledApprovalConfig`` holding the ``OfficerRegistry`` the
engines consume and the frozen ``WorkflowSettings``.

Invariants enforced
-------------------
* Stage ordinals follow declaration order in the YAML.
* Stage keys, roles and ordinals are unique; dependencies name earlier
  stages (enforced by ``OfficerRegistry``).
* Field overrides name real stage attributes.
* ``default_limit`` (when set) and ``request_timeout_seconds`` are positive.

Failure modes
-------------
* ``ValueError`` -- settings or field-override validation failures, and an
  empty stage list.
* ``RegistryError`` subclasses -- duplicate stages or bad dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, fields

from records_config.schema import ApprovalConfigurationSet, WorkflowSettings
from records_kernel.domain.officers import (
    OfficerRegistry,
    OfficerStage,
    StageFields,
    build_stage,
)

_STAGE_FIELD_NAMES = frozenset(f.name for f in fields(StageFields))


@dataclass(frozen=True)
class CompiledApprovalConfig:
    """The runtime artifact produced by ``compile_approval_config``."""

    config_id: str
    version: int
    registry: OfficerRegistry
    settings: WorkflowSettings
    checksum: str


def _validate_settings(settings: WorkflowSettings) -> list[str]:
    errors = []
    if settings.default_limit is not None and settings.default_limit <= 0:
        errors.append(f"default_limit must be positive, got {settings.default_limit}")
    if settings.request_timeout_seconds <= 0:
        errors.append(
            "request_timeout_seconds must be positive, "
            f"got {settings.request_timeout_seconds}"
        )
    if not settings.override_roles:
        errors.append("override_roles must name at least one role")
    return errors


def _compile_stages(config: ApprovalConfigurationSet) -> tuple[OfficerStage, ...]:
    stages = []
    for ordinal, stage_def in enumerate(config.stages):
        unknown = [a for a, _ in stage_def.field_overrides if a not in _STAGE_FIELD_NAMES]
        if unknown:
            raise ValueError(
                f"Stage {stage_def.key!r} overrides unknown fields: {', '.join(unknown)}"
            )
        stages.append(
            build_stage(
                stage_def.key,
                stage_def.role,
                stage_def.label,
                ordinal,
                dependencies=stage_def.dependencies,
                short_label=stage_def.short_label or None,
                field_overrides=dict(stage_def.field_overrides),
            )
        )
    return tuple(stages)


def compile_approval_config(config: ApprovalConfigurationSet) -> CompiledApprovalConfig:
    if not config.stages:
        raise ValueError(f"Configuration {config.config_id!r} declares no stages")

    errors = _validate_settings(config.settings)
    if errors:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    registry = OfficerRegistry(
        _compile_stages(config),
        role_labels=config.settings.role_label_map,
    )
    return CompiledApprovalConfig(
        config_id=config.config_id,
        version=config.version,
        registry=registry,
        settings=config.settings,
        checksum=config.checksum,
    )
