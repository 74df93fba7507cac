"""
Configuration Loader (``records_config.loader``).

Responsibility
--------------
Loads a configuration set's ``approvals.yaml`` and parses it into typed
``records_config.schema`` dataclasses.  This is build/test tooling; the
runtime entrypoint is ``records_config.get_active_config()``.

Invariants enforced
-------------------
* Required keys raise ``KeyError``; there are no silent defaults for a
  stage's key, role or label.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` is a deterministic SHA-256 of the parsed source.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from records_config.schema import (
    ApprovalConfigurationSet,
    StageDef,
    WorkflowSettings,
)

APPROVALS_FILE = "approvals.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_stage(data: dict[str, Any]) -> StageDef:
    """
    Parse a ``StageDef`` from a dict.

    Raises:
        KeyError: if ``key``, ``role`` or ``label`` is missing.
    """
    overrides = data.get("fields") or {}
    return StageDef(
        key=str(data["key"]),
        role=str(data["role"]),
        label=str(data["label"]),
        short_label=str(data.get("short_label") or ""),
        dependencies=tuple(str(d) for d in data.get("dependencies") or ()),
        field_overrides=tuple(sorted((str(k), str(v)) for k, v in overrides.items())),
    )


def parse_settings(data: dict[str, Any] | None) -> WorkflowSettings:
    data = data or {}
    defaults = WorkflowSettings()
    limit = data.get("default_limit", defaults.default_limit)
    return WorkflowSettings(
        override_roles=tuple(data.get("override_roles") or defaults.override_roles),
        read_only_message=data.get("read_only_message") or defaults.read_only_message,
        generic_error_message=(
            data.get("generic_error_message") or defaults.generic_error_message
        ),
        default_limit=None if limit is None else int(limit),
        api_base_url=data.get("api_base_url") or defaults.api_base_url,
        request_timeout_seconds=float(
            data.get("request_timeout_seconds", defaults.request_timeout_seconds)
        ),
        role_labels=tuple(sorted((data.get("role_labels") or {}).items())),
        title_options=tuple(data.get("title_options") or defaults.title_options),
    )


def load_configuration_set(set_dir: Path) -> ApprovalConfigurationSet:
    """Parse ``<set_dir>/approvals.yaml`` into an ``ApprovalConfigurationSet``."""
    raw = load_yaml_file(set_dir / APPROVALS_FILE)
    return ApprovalConfigurationSet(
        config_id=str(raw.get("config_id") or set_dir.name),
        version=int(raw.get("version", 1)),
        stages=tuple(parse_stage(s) for s in raw.get("stages") or ()),
        settings=parse_settings(raw.get("settings")),
        checksum=compute_checksum(raw),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
