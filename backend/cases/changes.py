"""
Structured field-level diffs for case mutations.

``CaseDiff`` is computed once per update and then read by everything
downstream: the lifecycle service picks the activity entries and
events from it, the activity log stores its old/new snapshots, and the
report exporter turns those snapshots back into readable lines.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

#: Case fields a caller may change through an update.
EDITABLE_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "case_type",
    "status",
    "priority",
    "assigned_to",
    "subject_name",
    "date_of_birth",
    "contact_info",
    "last_known_location",
)

#: Foreign keys are compared and snapshotted by primary key.
_FK_FIELDS = frozenset({"assigned_to"})


def _snapshot_value(field_name: str, value: Any) -> Any:
    if field_name in _FK_FIELDS:
        return getattr(value, "pk", value)
    return value


def current_value(case: Any, field_name: str) -> Any:
    """Read ``field_name`` off ``case`` in snapshot form."""
    if field_name in _FK_FIELDS:
        return getattr(case, f"{field_name}_id")
    return getattr(case, field_name)


@dataclass(frozen=True)
class FieldChange:
    old: Any
    new: Any


@dataclass(frozen=True)
class CaseDiff:
    """Mapping of field name to ``FieldChange`` for fields that really changed."""

    changes: dict[str, FieldChange] = field(default_factory=dict)

    # ── Construction ────────────────────────────────────────────────

    @classmethod
    def compute(cls, case: Any, patch: Mapping[str, Any]) -> "CaseDiff":
        """
        Compare ``patch`` against the current state of ``case``.

        Keys outside ``EDITABLE_FIELDS`` are ignored.  Values equal to
        the stored ones produce no entry, so a patch that restates the
        current state yields an empty diff.
        """
        changes: dict[str, FieldChange] = {}
        for name in EDITABLE_FIELDS:
            if name not in patch:
                continue
            old = current_value(case, name)
            new = _snapshot_value(name, patch[name])
            if old != new:
                changes[name] = FieldChange(old=old, new=new)
        return cls(changes)

    @classmethod
    def from_snapshots(
        cls,
        old_values: Mapping[str, Any] | None,
        new_values: Mapping[str, Any] | None,
    ) -> "CaseDiff":
        old_values = old_values or {}
        new_values = new_values or {}
        names = set(old_values) | set(new_values)
        return cls({
            name: FieldChange(old=old_values.get(name), new=new_values.get(name))
            for name in names
        })

    # ── Queries ─────────────────────────────────────────────────────

    def __bool__(self) -> bool:
        return bool(self.changes)

    def __contains__(self, name: object) -> bool:
        return name in self.changes

    def __getitem__(self, name: str) -> FieldChange:
        return self.changes[name]

    @property
    def is_empty(self) -> bool:
        return not self.changes

    @property
    def fields(self) -> list[str]:
        return sorted(self.changes)

    def only(self, names: Iterable[str]) -> "CaseDiff":
        wanted = set(names)
        return CaseDiff({k: v for k, v in self.changes.items() if k in wanted})

    def without(self, names: Iterable[str]) -> "CaseDiff":
        unwanted = set(names)
        return CaseDiff({k: v for k, v in self.changes.items() if k not in unwanted})

    # ── Snapshots ───────────────────────────────────────────────────

    def old_values(self) -> dict[str, Any]:
        return {name: self.changes[name].old for name in self.fields}

    def new_values(self) -> dict[str, Any]:
        return {name: self.changes[name].new for name in self.fields}


def snapshot_lines(snapshot: Mapping[str, Any] | None) -> list[str]:
    """Render a snapshot as ``key: value`` lines sorted by key."""
    if not snapshot:
        return []
    return [f"{key}: {_display(snapshot[key])}" for key in sorted(snapshot)]


def _display(value: Any) -> str:
    if value is None:
        return "(none)"
    return str(value)
