"""
ApprovalConfigurationSet schema.

Defines the human-authored, reviewable source artifact for the approval
workflow: the ordered officer stages and the workflow settings.  YAML is
parsed into these types by the loader and compiled into a
``CompiledApprovalConfig`` by the compiler.

Key distinction:
  ApprovalConfigurationSet = source artifact (human-authored, versioned)
  CompiledApprovalConfig   = runtime artifact (validated registry, frozen)
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_READ_ONLY_MESSAGE = (
    "Approvals are disabled while you are connected to the read-only replica."
)
DEFAULT_GENERIC_ERROR_MESSAGE = "Unable to update approval."


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StageDef:
    """One officer stage, in hierarchy order."""

    key: str
    role: str
    label: str
    short_label: str = ""
    dependencies: tuple[str, ...] = ()
    # (attribute, wire key) pairs replacing the ``<key>Xxx`` convention
    field_overrides: tuple[tuple[str, str], ...] = ()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowSettings:
    """Behavioural settings shared by the coordinator and transports."""

    override_roles: tuple[str, ...] = ("ADMIN",)
    read_only_message: str = DEFAULT_READ_ONLY_MESSAGE
    generic_error_message: str = DEFAULT_GENERIC_ERROR_MESSAGE
    default_limit: int | None = None
    api_base_url: str = "http://localhost:10000/api"
    request_timeout_seconds: float = 10.0
    role_labels: tuple[tuple[str, str], ...] = ()
    title_options: tuple[str, ...] = ("Professor", "Doctor", "Mr", "Mrs")

    @property
    def role_label_map(self) -> dict[str, str]:
        return dict(self.role_labels)


# ---------------------------------------------------------------------------
# Configuration set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApprovalConfigurationSet:
    """The complete source artifact for one configuration set."""

    config_id: str
    version: int
    stages: tuple[StageDef, ...]
    settings: WorkflowSettings = WorkflowSettings()
    checksum: str = ""
