"""
Core app URL configuration.

Provides cross-app aggregation endpoints that serve the frontend
dashboard, the analytics screen and system-wide constants/enums.

URL prefix (registered in ``backend/urls.py``)::

    path('api/core/', include('core.urls'))

Endpoint summary
----------------
GET  /api/core/dashboard/    — Counters over the user's visible cases.
GET  /api/core/analytics/    — Breakdowns, rates and monthly trend.
GET  /api/core/constants/    — Choice enumerations for frontend dropdowns.
"""

from django.urls import path

from . import views

app_name = "core"

urlpatterns = [
    # ── Dashboard ────────────────────────────────────────────────────
    path(
        "dashboard/",
        views.DashboardStatsView.as_view(),
        name="dashboard-stats",
    ),

    # ── Analytics ────────────────────────────────────────────────────
    path(
        "analytics/",
        views.CaseAnalyticsView.as_view(),
        name="case-analytics",
    ),

    # ── System Constants / Enums ─────────────────────────────────────
    path(
        "constants/",
        views.SystemConstantsView.as_view(),
        name="system-constants",
    ),
]
