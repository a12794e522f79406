"""
Pure case filtering and aggregation.

Nothing in this module touches the database: every function takes an
already-loaded sequence of cases (anything exposing the ``Case``
attributes) and returns plain Python values.  Access scoping happens
before the cases get here, in ``CaseQueryService``.
"""

from __future__ import annotations

import datetime
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from django.utils import timezone

from .models import CasePriority, CaseStatus

ASSIGNMENT_ASSIGNED = "assigned"
ASSIGNMENT_UNASSIGNED = "unassigned"
ASSIGNMENT_MINE = "mine"
ASSIGNMENT_CHOICES = (ASSIGNMENT_ASSIGNED, ASSIGNMENT_UNASSIGNED, ASSIGNMENT_MINE)

HIGH_PRIORITIES = frozenset({CasePriority.HIGH, CasePriority.URGENT})

_SEARCH_FIELDS = ("title", "case_number", "subject_name", "description")


@dataclass(frozen=True)
class CaseFilterCriteria:
    """
    Explicit filter record.  ``None`` (or an empty string) means
    "do not filter on this dimension"; all given dimensions are ANDed.
    """

    search: str | None = None
    status: str | None = None
    case_type: str | None = None
    priority: str | None = None
    assignment: str | None = None
    created_from: datetime.date | None = None
    created_to: datetime.date | None = None

    @property
    def is_empty(self) -> bool:
        return not any((
            self.search, self.status, self.case_type, self.priority,
            self.assignment, self.created_from, self.created_to,
        ))


def created_date(case: Any) -> datetime.date:
    """Calendar date (UTC) of ``case.created_at``."""
    created_at = case.created_at
    if timezone.is_aware(created_at):
        created_at = created_at.astimezone(datetime.timezone.utc)
    return created_at.date()


def _matches_search(case: Any, needle: str) -> bool:
    needle = needle.lower()
    for name in _SEARCH_FIELDS:
        value = getattr(case, name, None) or ""
        if needle in value.lower():
            return True
    return False


def _matches_assignment(case: Any, assignment: str, user_id: Any) -> bool:
    if assignment == ASSIGNMENT_ASSIGNED:
        return case.assigned_to_id is not None
    if assignment == ASSIGNMENT_UNASSIGNED:
        return case.assigned_to_id is None
    if assignment == ASSIGNMENT_MINE:
        return user_id is not None and case.assigned_to_id == user_id
    return True


def matches(case: Any, criteria: CaseFilterCriteria, *, user_id: Any = None) -> bool:
    if criteria.search and not _matches_search(case, criteria.search.strip()):
        return False
    if criteria.status and case.status != criteria.status:
        return False
    if criteria.case_type and case.case_type != criteria.case_type:
        return False
    if criteria.priority and case.priority != criteria.priority:
        return False
    if criteria.assignment and not _matches_assignment(case, criteria.assignment, user_id):
        return False
    if criteria.created_from or criteria.created_to:
        day = created_date(case)
        if criteria.created_from and day < criteria.created_from:
            return False
        if criteria.created_to and day > criteria.created_to:
            return False
    return True


def filter_cases(
    cases: Iterable[Any],
    criteria: CaseFilterCriteria | None,
    *,
    user_id: Any = None,
) -> list[Any]:
    """
    Return the cases matching every dimension of ``criteria``.

    Input order is preserved.  ``user_id`` is only consulted for the
    ``assignment="mine"`` dimension.
    """
    cases = list(cases)
    if criteria is None or criteria.is_empty:
        return cases
    return [case for case in cases if matches(case, criteria, user_id=user_id)]


# ═══════════════════════════════════════════════════════════════════
#  Aggregations
# ═══════════════════════════════════════════════════════════════════


def resolution_rate(cases: Sequence[Any]) -> float:
    """Fraction of cases in ``closed`` status; ``0.0`` for an empty set."""
    if not cases:
        return 0.0
    closed = sum(1 for case in cases if case.status == CaseStatus.CLOSED)
    return closed / len(cases)


def high_priority_rate(cases: Sequence[Any]) -> float:
    """Fraction of cases with ``high`` or ``urgent`` priority."""
    if not cases:
        return 0.0
    high = sum(1 for case in cases if case.priority in HIGH_PRIORITIES)
    return high / len(cases)


def as_percentage(rate: float) -> int:
    return round(rate * 100)


def count_by(cases: Iterable[Any], attribute: str) -> dict[str, int]:
    """Occurrences of each value of ``attribute``, keys sorted."""
    counts = Counter(getattr(case, attribute) for case in cases)
    return {key: counts[key] for key in sorted(counts)}


def monthly_creation_counts(cases: Iterable[Any], months: int = 6) -> list[dict[str, Any]]:
    """
    Creation counts bucketed by ``YYYY-MM``.

    Only months that contain at least one case appear; buckets are in
    ascending order and only the latest ``months`` are kept.
    """
    counts = Counter(created_date(case).strftime("%Y-%m") for case in cases)
    buckets = sorted(counts.items())
    if months > 0:
        buckets = buckets[-months:]
    return [{"month": month, "count": count} for month, count in buckets]
