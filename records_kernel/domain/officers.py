"""
Officer hierarchy registry (``records_kernel.domain.officers``).

Responsibility
--------------
Immutable definition of the approval stages (College Exam Officer, Head of
Department, Dean of College), the access role each stage requires, the
order in which stages sign off, and the explicit per-stage field-mapping
table used when building mutation payloads.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``services/``, ``selectors/`` or outer layers.  The registry is
compiled once (by ``records_config``) and passed around by value.

Invariants enforced
-------------------
* Stage keys and roles are unique.
* Ordinals are unique; iteration order is ordinal order.
* Declared dependencies name strictly earlier stages.  Dependencies are
  informational: sequencing is not enforced beyond the flag veto.
* ``is_downstream_of(a, b)`` is ``ordinal(a) > ordinal(b)`` and is False
  (never raises) when either key is unknown.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from records_kernel.exceptions import (
    DuplicateStageError,
    InvalidStageDependencyError,
    UnknownStageError,
)

if TYPE_CHECKING:
    from records_kernel.domain.approval import ApprovalRecord


OVERRIDE_ROLE = "ADMIN"

DEFAULT_ROLE_LABELS: dict[str, str] = {
    "ADMIN": "Admin",
    "EXAM_OFFICER": "Exam Officer",
    "COLLEGE_OFFICER": "College Exam Officer",
    "HOD": "Head of Department",
    "DEAN": "Dean of College",
}

IDENTITY_ATTRIBUTES: tuple[str, ...] = (
    "name",
    "title",
    "surname",
    "firstname",
    "middlename",
    "department",
    "college",
)


@dataclass(frozen=True)
class StageFields:
    """Wire attribute names owned by one stage.

    ``approval`` names the nested per-stage document returned by the
    academic-metrics service (``ceoApproval``); every other attribute names
    a flat key accepted by the partial-update mutation.
    """

    approval: str
    approved: str
    flagged: str
    name: str
    note: str
    response: str
    response_by: str
    title: str
    surname: str
    firstname: str
    middlename: str
    department: str
    college: str

    @classmethod
    def for_prefix(cls, prefix: str, **overrides: str) -> StageFields:
        """Conventional mapping: ``<prefix>Approved``, ``<prefix>Note``, ..."""
        names = {
            "approval": f"{prefix}Approval",
            "approved": f"{prefix}Approved",
            "flagged": f"{prefix}Flagged",
            "name": f"{prefix}Name",
            "note": f"{prefix}Note",
            "response": f"{prefix}Response",
            "response_by": f"{prefix}ResponseBy",
            "title": f"{prefix}Title",
            "surname": f"{prefix}Surname",
            "firstname": f"{prefix}Firstname",
            "middlename": f"{prefix}Middlename",
            "department": f"{prefix}Department",
            "college": f"{prefix}College",
        }
        names.update(overrides)
        return cls(**names)

    def identity_keys(self) -> dict[str, str]:
        """Identity attribute -> wire key."""
        return {attr: getattr(self, attr) for attr in IDENTITY_ATTRIBUTES}

    def update_keys(self) -> dict[str, str]:
        """Every flat wire key this stage accepts, mapped to its attribute."""
        attrs = (
            "approved", "flagged", "note", "response", "response_by",
            *IDENTITY_ATTRIBUTES,
        )
        return {getattr(self, attr): attr for attr in attrs}


@dataclass(frozen=True)
class OfficerStage:
    """One tier of the approval chain."""

    key: str
    role: str
    label: str
    ordinal: int
    fields: StageFields
    short_label: str = ""
    dependencies: frozenset[str] = field(default_factory=frozenset)

    @property
    def display_label(self) -> str:
        return self.short_label or self.label


class OfficerRegistry:
    """Ordered, immutable collection of officer stages.

    Contract:
        Constructed once from stage definitions.  All lookups are total:
        unknown keys or roles yield ``None`` / ``False``; only ``require``
        raises.
    """

    def __init__(
        self,
        stages: Iterable[OfficerStage],
        role_labels: Mapping[str, str] | None = None,
    ) -> None:
        ordered = tuple(sorted(stages, key=lambda s: s.ordinal))
        by_key: dict[str, OfficerStage] = {}
        by_role: dict[str, OfficerStage] = {}
        seen_ordinals: set[int] = set()

        for stage in ordered:
            if stage.key in by_key:
                raise DuplicateStageError("key", stage.key)
            if stage.role in by_role:
                raise DuplicateStageError("role", stage.role)
            if stage.ordinal in seen_ordinals:
                raise DuplicateStageError("ordinal", str(stage.ordinal))
            for dependency in sorted(stage.dependencies):
                # Only stages already seen (strictly earlier) qualify
                if dependency not in by_key:
                    raise InvalidStageDependencyError(stage.key, dependency)
            by_key[stage.key] = stage
            by_role[stage.role] = stage
            seen_ordinals.add(stage.ordinal)

        self._stages = ordered
        self._by_key = by_key
        self._by_role = by_role
        labels = dict(DEFAULT_ROLE_LABELS)
        labels.update({s.role: s.label for s in ordered})
        if role_labels:
            labels.update(role_labels)
        self._role_labels = labels

    # ------------------------------------------------------------------
    # Collection protocol
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[OfficerStage]:
        return iter(self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __repr__(self) -> str:
        chain = " -> ".join(s.key for s in self._stages)
        return f"<OfficerRegistry {chain}>"

    @property
    def stages(self) -> tuple[OfficerStage, ...]:
        return self._stages

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(s.key for s in self._stages)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, key: str | None) -> OfficerStage | None:
        if key is None:
            return None
        return self._by_key.get(key)

    def require(self, key: str) -> OfficerStage:
        """Return the stage for ``key`` or raise UnknownStageError."""
        stage = self._by_key.get(key)
        if stage is None:
            raise UnknownStageError(key)
        return stage

    def stage_for(self, role: str | None) -> OfficerStage | None:
        """Stage whose access role is ``role``; None for non-officer roles."""
        if role is None:
            return None
        return self._by_role.get(role)

    def ordinal_of(self, key: str | None) -> int | None:
        stage = self.get(key)
        return stage.ordinal if stage is not None else None

    def is_downstream_of(self, actor_key: str | None, target_key: str | None) -> bool:
        """True iff the actor stage signs off strictly after the target stage."""
        actor = self.ordinal_of(actor_key)
        target = self.ordinal_of(target_key)
        if actor is None or target is None:
            return False
        return actor > target

    def role_label(self, role: str) -> str:
        return self._role_labels.get(role, role)

    def stages_for_roles(
        self,
        roles: Iterable[str],
        override_roles: Iterable[str] = (OVERRIDE_ROLE,),
    ) -> tuple[OfficerStage, ...]:
        """Stages an actor holding ``roles`` may act as, in ordinal order.

        Holders of an override role may act as every stage.
        """
        role_set = set(roles)
        if role_set & set(override_roles):
            return self._stages
        return tuple(s for s in self._stages if s.role in role_set)

    def owner_of_field(self, wire_key: str) -> tuple[OfficerStage, str] | None:
        """(stage, attribute) owning a flat update key, or None."""
        for stage in self._stages:
            attr = stage.fields.update_keys().get(wire_key)
            if attr is not None:
                return stage, attr
        return None

    # ------------------------------------------------------------------
    # Record-level queries
    # ------------------------------------------------------------------

    def flagged_stages(self, record: ApprovalRecord) -> tuple[OfficerStage, ...]:
        return tuple(s for s in self._stages if record.entry(s.key).flagged)

    def primary_flag(self, record: ApprovalRecord) -> OfficerStage | None:
        """First flagged stage by ordinal."""
        flagged = self.flagged_stages(record)
        return flagged[0] if flagged else None


def build_stage(
    key: str,
    role: str,
    label: str,
    ordinal: int,
    dependencies: Iterable[str] = (),
    short_label: str | None = None,
    field_overrides: Mapping[str, str] | None = None,
) -> OfficerStage:
    """Build a stage whose field names follow the ``<key>Xxx`` convention."""
    return OfficerStage(
        key=key,
        role=role,
        label=label,
        short_label=short_label or label,
        ordinal=ordinal,
        fields=StageFields.for_prefix(key, **dict(field_overrides or {})),
        dependencies=frozenset(dependencies),
    )


DEFAULT_STAGES: tuple[OfficerStage, ...] = (
    build_stage("ceo", "COLLEGE_OFFICER", "College Exam Officer", 0),
    build_stage("hod", "HOD", "Head of Department", 1, dependencies=("ceo",)),
    build_stage("dean", "DEAN", "Dean of College", 2, dependencies=("ceo", "hod")),
)

DEFAULT_OFFICER_REGISTRY = OfficerRegistry(DEFAULT_STAGES)
