"""
records_config -- single public entrypoint for approval configuration.

Responsibility:
    Provides the ONLY way to obtain workflow configuration at runtime
    through ``get_active_config()``.  Returns a ``CompiledApprovalConfig``
    holding the officer registry and workflow settings.  YAML loading is
    internal build/test tooling.

Architecture position:
    Configuration -- sits above ``records_kernel`` and below
    ``records_services``.  The kernel MUST NEVER import from
    ``records_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic compilation: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration set does not exist.
    - ``ValueError`` -- settings or stage validation failures.
    - ``RegistryError`` -- duplicate stages or invalid dependencies.
"""

from __future__ import annotations

from pathlib import Path

from records_config.compiler import CompiledApprovalConfig, compile_approval_config
from records_config.loader import APPROVALS_FILE, load_configuration_set
from records_config.schema import (
    ApprovalConfigurationSet,
    StageDef,
    WorkflowSettings,
)
from records_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    config_dir: Path | None = None,
    set_name: str = "default",
) -> CompiledApprovalConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_dir: Override path to the configuration sets directory.
            Defaults to records_config/sets/.
        set_name: Name of the configuration set subdirectory.

    Raises:
        FileNotFoundError: If the configuration set is missing.
        ValueError: If validation fails.
    """
    set_dir = Path(config_dir or _DEFAULT_CONFIG_DIR) / set_name
    if not (set_dir / APPROVALS_FILE).exists():
        raise FileNotFoundError(
            f"No configuration set {set_name!r} found in {set_dir.parent}"
        )

    compiled = compile_approval_config(load_configuration_set(set_dir))

    _logger.info(
        "RECORDS_CONFIG_TRACE",
        extra={
            "trace_type": "RECORDS_CONFIG_TRACE",
            "config_set_id": compiled.config_id,
            "config_set_version": compiled.version,
            "checksum": compiled.checksum,
            "stage_count": len(compiled.registry),
            "stages": compiled.registry.keys,
        },
    )
    return compiled


__all__ = [
    "ApprovalConfigurationSet",
    "CompiledApprovalConfig",
    "StageDef",
    "WorkflowSettings",
    "compile_approval_config",
    "get_active_config",
    "load_configuration_set",
]
