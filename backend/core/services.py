"""
Core app services — **Service Layer**.

Contains cross-app aggregation logic.  Views delegate all business
logic to the service classes defined here, keeping views thin and
ensuring testability.

╔══════════════════════════════════════════════════════════════════════╗
║  CROSS-APP IMPORT RULEBOOK                                         ║
║                                                                    ║
║  The core app must not import models from other apps at module     ║
║  level.  Use ``apps.get_model`` or a function-local import so the  ║
║  core package stays importable before the other apps are loaded.   ║
║  (``core.domain`` is imported *by* every app.)                     ║
╚══════════════════════════════════════════════════════════════════════╝
"""

from __future__ import annotations

import datetime
import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from django.apps import apps
from django.db.models import Count, Q, QuerySet
from django.utils import timezone

from core.domain.access import scope_case_queryset

if TYPE_CHECKING:
    from accounts.models import User
    from cases.filters import CaseFilterCriteria

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
#  Dashboard Aggregation Service
# ════════════════════════════════════════════════════════════════════

class DashboardAggregationService:
    """
    Produces the headline counters consumed by ``DashboardStatsSerializer``.

    Every count is taken over the cases the requesting user may view,
    so a volunteer only sees numbers for their own cases.
    """

    #: Window for the "recently updated" counter.
    RECENT_ACTIVITY_DAYS: int = 7

    def __init__(self, user: User, *, now: datetime.datetime | None = None) -> None:
        self.user = user
        self.now = now or timezone.now()

    # ── Public API ──────────────────────────────────────────────────

    def get_stats(self) -> dict[str, Any]:
        """Return the dashboard statistics dictionary."""
        from cases.filters import HIGH_PRIORITIES
        from cases.models import CaseStatus

        case_qs = self._get_case_queryset()
        month_start = self.now.astimezone(datetime.timezone.utc).replace(
            day=1, hour=0, minute=0, second=0, microsecond=0,
        )

        # Single aggregate query for scalar counts
        aggregates = case_qs.aggregate(
            total_cases=Count("id"),
            open_cases=Count("id", filter=Q(status=CaseStatus.OPEN)),
            in_progress_cases=Count("id", filter=Q(status=CaseStatus.IN_PROGRESS)),
            closed_cases=Count("id", filter=Q(status=CaseStatus.CLOSED)),
            high_priority_cases=Count("id", filter=Q(priority__in=list(HIGH_PRIORITIES))),
            assigned_to_me=Count("id", filter=Q(assigned_to=self.user)),
            recent_activity=Count(
                "id",
                filter=Q(updated_at__gt=self.now - timedelta(days=self.RECENT_ACTIVITY_DAYS)),
            ),
            monthly_new_cases=Count("id", filter=Q(created_at__gte=month_start)),
        )
        return aggregates

    # ── Private helpers ─────────────────────────────────────────────

    def _get_case_queryset(self) -> QuerySet:
        """Return a ``Case`` queryset scoped to the requesting user's role."""
        Case = apps.get_model("cases", "Case")
        return scope_case_queryset(Case.objects.all(), self.user)


# ════════════════════════════════════════════════════════════════════
#  Case Analytics Service
# ════════════════════════════════════════════════════════════════════

class CaseAnalyticsService:
    """
    Breakdown figures for the analytics screen.

    Works on the same visible-and-filtered case list as ``GET /api/cases/``
    and delegates the arithmetic to the pure helpers in ``cases.filters``.
    """

    def __init__(self, user: User) -> None:
        self.user = user

    def get_analytics(self, criteria: CaseFilterCriteria | None = None) -> dict[str, Any]:
        from cases.filters import (
            as_percentage,
            count_by,
            high_priority_rate,
            monthly_creation_counts,
            resolution_rate,
        )
        from cases.services import CaseQueryService

        cases = CaseQueryService.list_cases(self.user, criteria)
        resolution = resolution_rate(cases)
        high_priority = high_priority_rate(cases)
        return {
            "total_cases": len(cases),
            "by_status": count_by(cases, "status"),
            "by_priority": count_by(cases, "priority"),
            "by_type": count_by(cases, "case_type"),
            "resolution_rate": resolution,
            "resolution_rate_percent": as_percentage(resolution),
            "high_priority_rate": high_priority,
            "high_priority_rate_percent": as_percentage(high_priority),
            "monthly_trend": monthly_creation_counts(cases),
        }


# ════════════════════════════════════════════════════════════════════
#  System Constants Service
# ════════════════════════════════════════════════════════════════════

class SystemConstantsService:
    """
    Gathers all system-wide choice enumerations into a single dict for
    the frontend.

    This service is **stateless** — it does not depend on the requesting
    user.  All constants are public information needed by the frontend
    to render dropdowns and labels.
    """

    @staticmethod
    def get_constants() -> dict[str, Any]:
        """Return all system constants as a dict."""
        from accounts.models import UserRole
        from cases.filters import ASSIGNMENT_CHOICES
        from cases.models import ActivityType, CasePriority, CaseStatus

        to_list = SystemConstantsService._choices_to_list

        return {
            "case_statuses": to_list(CaseStatus),
            "case_priorities": to_list(CasePriority),
            "activity_types": to_list(ActivityType),
            "user_roles": to_list(UserRole),
            "assignment_filters": [
                {"value": value, "label": value.capitalize()}
                for value in ASSIGNMENT_CHOICES
            ],
        }

    @staticmethod
    def _choices_to_list(
        choices_class: type,
    ) -> list[dict[str, str]]:
        """
        Convert a Django ``TextChoices`` class to a list of
        ``{"value": ..., "label": ...}`` dicts.
        """
        return [
            {"value": str(value), "label": str(label)}
            for value, label in choices_class.choices
        ]
