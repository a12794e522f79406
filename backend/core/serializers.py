"""
Core app serializers.

**Response-only** serializers for the aggregated endpoints served by the
core app.  These serializers define the *output schema* for the
dashboard, analytics and system constants views.  They do **not** accept
input data; filtering is handled via ``cases.serializers.CaseFilterSerializer``.

Architectural note
------------------
These serializers work exclusively with plain Python dicts / lists
produced by the service layer, keeping the core app decoupled from
concrete model implementations in ``cases`` and ``accounts``.
"""

from __future__ import annotations

from rest_framework import serializers


# ════════════════════════════════════════════════════════════════════
#  Dashboard Statistics
# ════════════════════════════════════════════════════════════════════

class DashboardStatsSerializer(serializers.Serializer):
    """
    Response serializer for ``GET /api/core/dashboard/``.

    All counts are over the cases visible to the requesting user.

    Response shape::

        {
            "total_cases": 42,
            "open_cases": 10,
            "in_progress_cases": 12,
            "closed_cases": 18,
            "high_priority_cases": 7,
            "assigned_to_me": 4,
            "recent_activity": 9,
            "monthly_new_cases": 3
        }
    """

    total_cases = serializers.IntegerField(help_text="Visible cases.")
    open_cases = serializers.IntegerField(help_text="Cases in 'open' status.")
    in_progress_cases = serializers.IntegerField(help_text="Cases in 'in_progress' status.")
    closed_cases = serializers.IntegerField(help_text="Cases in 'closed' status.")
    high_priority_cases = serializers.IntegerField(
        help_text="Cases with 'high' or 'urgent' priority.",
    )
    assigned_to_me = serializers.IntegerField(
        help_text="Cases whose assignee is the requesting user.",
    )
    recent_activity = serializers.IntegerField(
        help_text="Cases updated during the last 7 days.",
    )
    monthly_new_cases = serializers.IntegerField(
        help_text="Cases created since the start of the current month (UTC).",
    )


# ════════════════════════════════════════════════════════════════════
#  Analytics
# ════════════════════════════════════════════════════════════════════

class MonthlyCountSerializer(serializers.Serializer):
    """
    Example::

        {"month": "2024-05", "count": 12}
    """

    month = serializers.CharField(help_text="Year and month, 'YYYY-MM'.")
    count = serializers.IntegerField()


class CaseAnalyticsSerializer(serializers.Serializer):
    """Response serializer for ``GET /api/core/analytics/``."""

    total_cases = serializers.IntegerField()
    by_status = serializers.DictField(child=serializers.IntegerField())
    by_priority = serializers.DictField(child=serializers.IntegerField())
    by_type = serializers.DictField(child=serializers.IntegerField())
    resolution_rate = serializers.FloatField(
        help_text="Closed cases divided by total cases, 0 when there are none.",
    )
    resolution_rate_percent = serializers.IntegerField()
    high_priority_rate = serializers.FloatField(
        help_text="High and urgent cases divided by total cases.",
    )
    high_priority_rate_percent = serializers.IntegerField()
    monthly_trend = MonthlyCountSerializer(
        many=True,
        help_text="Creation counts for the latest six months that have cases.",
    )


# ════════════════════════════════════════════════════════════════════
#  System Constants / Enums
# ════════════════════════════════════════════════════════════════════

class ChoiceItemSerializer(serializers.Serializer):
    """
    A single key-label pair representing one choice/enum option.

    Example::

        {"value": "open", "label": "Open"}
    """

    value = serializers.CharField(
        help_text="Machine-readable value to send in API requests.",
    )
    label = serializers.CharField(
        help_text="Human-readable display label for the UI.",
    )


class SystemConstantsSerializer(serializers.Serializer):
    """
    Response serializer for ``GET /api/core/constants/``.

    Provides all system-wide choice enumerations so the frontend can
    build dropdowns, filters, and labels **without** hardcoding values.
    """

    case_statuses = ChoiceItemSerializer(many=True)
    case_priorities = ChoiceItemSerializer(many=True)
    activity_types = ChoiceItemSerializer(many=True)
    user_roles = ChoiceItemSerializer(many=True)
    assignment_filters = ChoiceItemSerializer(many=True)
