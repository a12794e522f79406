"""
Tests for the aggregation endpoints served by the core app:
dashboard counters, analytics breakdowns and system constants.
"""

from __future__ import annotations

import datetime

import pytest
from django.urls import reverse
from django.utils import timezone

from cases.models import Case
from cases.services import CaseLifecycleService
from core.services import DashboardAggregationService

pytestmark = pytest.mark.django_db


@pytest.fixture()
def staff(create_user):
    return create_user(role="investigator")


@pytest.fixture()
def seeded_cases(make_case, staff):
    open_high = make_case(created_by=staff, priority="high", assigned_to=staff.pk)
    progressing = make_case(created_by=staff, priority="urgent", case_type="fraud")
    CaseLifecycleService.update(progressing.pk, {"status": "in_progress"}, staff)
    closed = make_case(created_by=staff, priority="low", case_type="fraud")
    CaseLifecycleService.update(closed.pk, {"status": "closed"}, staff)
    stale = make_case(created_by=staff)
    Case.objects.filter(pk=stale.pk).update(
        created_at=timezone.now() - datetime.timedelta(days=400),
        updated_at=timezone.now() - datetime.timedelta(days=400),
    )
    return [open_high, progressing, closed, stale]


class TestDashboard:

    def test_counters(self, staff, seeded_cases):
        stats = DashboardAggregationService(staff).get_stats()

        assert stats["total_cases"] == 4
        assert stats["open_cases"] == 2
        assert stats["in_progress_cases"] == 1
        assert stats["closed_cases"] == 1
        assert stats["high_priority_cases"] == 2
        assert stats["assigned_to_me"] == 1
        assert stats["recent_activity"] == 3

    def test_monthly_new_cases_uses_month_start(self, staff, seeded_cases):
        stats = DashboardAggregationService(staff).get_stats()
        assert stats["monthly_new_cases"] == 3

    def test_volunteer_counts_only_own_cases(self, auth_client, create_user, seeded_cases):
        volunteer = create_user(role="volunteer")
        Case.objects.filter(pk=seeded_cases[0].pk).update(assigned_to=volunteer)

        resp = auth_client(volunteer).get(reverse("core:dashboard-stats"))

        assert resp.status_code == 200
        assert resp.data["total_cases"] == 1
        assert resp.data["assigned_to_me"] == 1

    def test_requires_authentication(self, api_client):
        assert api_client.get(reverse("core:dashboard-stats")).status_code == 401


class TestAnalytics:

    def test_breakdowns_and_rates(self, auth_client, staff, seeded_cases):
        resp = auth_client(staff).get(reverse("core:case-analytics"))

        assert resp.status_code == 200
        data = resp.data
        assert data["total_cases"] == 4
        assert data["by_status"] == {"closed": 1, "in_progress": 1, "open": 2}
        assert data["by_type"] == {"fraud": 2, "missing_person": 2}
        assert data["resolution_rate"] == 0.25
        assert data["resolution_rate_percent"] == 25
        assert data["high_priority_rate"] == 0.5
        assert data["high_priority_rate_percent"] == 50
        assert sum(bucket["count"] for bucket in data["monthly_trend"]) == 4

    def test_filters_apply(self, auth_client, staff, seeded_cases):
        resp = auth_client(staff).get(reverse("core:case-analytics"), {"case_type": "fraud"})

        assert resp.data["total_cases"] == 2
        assert resp.data["resolution_rate_percent"] == 50

    def test_empty_set_has_zero_rates(self, auth_client):
        resp = auth_client(role="readonly").get(reverse("core:case-analytics"))

        assert resp.data["total_cases"] == 0
        assert resp.data["resolution_rate"] == 0.0
        assert resp.data["monthly_trend"] == []


def test_constants_are_public(api_client):
    resp = api_client.get(reverse("core:system-constants"))

    assert resp.status_code == 200
    statuses = [item["value"] for item in resp.data["case_statuses"]]
    assert statuses == ["open", "in_progress", "closed", "archived"]
    roles = [item["value"] for item in resp.data["user_roles"]]
    assert roles == ["admin", "investigator", "volunteer", "readonly"]
    assert [item["value"] for item in resp.data["assignment_filters"]] == [
        "assigned", "unassigned", "mine",
    ]
