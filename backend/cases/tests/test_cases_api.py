"""
Integration tests for the cases HTTP API, executed through real
endpoints with ``APIClient``.

Routes under test:
- /api/cases/                       list / create
- /api/cases/{id}/                  retrieve / partial_update / destroy
- /api/cases/{id}/activity/
- /api/cases/{id}/export/, /api/cases/export-csv/
- /api/cases/{case_pk}/notes/       (nested router)
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from cases.models import ActivityLog, Case, CaseStatus
from cases.services import CaseLifecycleService

User = get_user_model()


class CaseApiTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.admin = User.objects.create_user(
            username="admin_user", email="admin_user@example.com",
            password="Admin!Pass42", role="admin", full_name="Ada Admin",
        )
        cls.investigator = User.objects.create_user(
            username="investigator_user", email="investigator_user@example.com",
            password="Invest!Pass42", role="investigator", full_name="Ivan Investigator",
        )
        cls.volunteer = User.objects.create_user(
            username="volunteer_user", email="volunteer_user@example.com",
            password="Volunteer!Pass42", role="volunteer",
        )
        cls.readonly = User.objects.create_user(
            username="readonly_user", email="readonly_user@example.com",
            password="Readonly!Pass42", role="readonly",
        )

    def setUp(self):
        self.client = APIClient()
        self.list_url = reverse("case-list")

    def as_user(self, user):
        self.client.force_authenticate(user=user)

    def create_case(self, user=None, **fields):
        data = {"title": "Missing hiker", "case_type": "missing_person", **fields}
        return CaseLifecycleService.create(data, user or self.investigator).case

    def detail_url(self, case):
        return reverse("case-detail", kwargs={"pk": case.pk})


class TestCaseCrud(CaseApiTestCase):

    def test_requires_authentication(self):
        resp = self.client.get(self.list_url)
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_investigator_creates_open_case(self):
        self.as_user(self.investigator)
        payload = {
            "title": "Stolen van",
            "case_type": "theft",
            "priority": "urgent",
            "assigned_to": self.volunteer.pk,
        }

        resp = self.client.post(self.list_url, payload, format="json")

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, msg=resp.data)
        self.assertEqual(resp.data["status"], CaseStatus.OPEN)
        self.assertRegex(resp.data["case_number"], r"^SI-\d{6}-\d{3}$")
        self.assertEqual(resp.data["created_by"]["id"], self.investigator.pk)
        self.assertEqual(resp.data["assigned_to"]["id"], self.volunteer.pk)
        self.assertTrue(resp.data["capabilities"]["edit"])

    def test_volunteer_cannot_create(self):
        self.as_user(self.volunteer)
        resp = self.client.post(self.list_url, {"title": "x", "case_type": "y"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Case.objects.exists())

    def test_missing_title_is_400(self):
        self.as_user(self.investigator)
        resp = self.client.post(self.list_url, {"case_type": "theft"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_is_scoped_for_volunteer(self):
        mine = self.create_case(assigned_to=self.volunteer.pk)
        self.create_case()

        self.as_user(self.volunteer)
        resp = self.client.get(self.list_url)

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([row["id"] for row in resp.data], [mine.pk])

    def test_list_filters(self):
        self.create_case(title="Bank fraud", case_type="fraud", priority="high")
        self.create_case(title="Lost dog")

        self.as_user(self.readonly)
        resp = self.client.get(self.list_url, {"case_type": "fraud", "search": "bank"})

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([row["title"] for row in resp.data], ["Bank fraud"])

    def test_invalid_filter_is_400(self):
        self.as_user(self.readonly)
        resp = self.client.get(
            self.list_url, {"created_from": "2024-05-10", "created_to": "2024-05-01"},
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_foreign_case_is_404_for_volunteer(self):
        case = self.create_case()
        self.as_user(self.volunteer)
        resp = self.client.get(self.detail_url(case))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_readonly_detail_reports_no_edit_capability(self):
        case = self.create_case()
        self.as_user(self.readonly)
        resp = self.client.get(self.detail_url(case))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(resp.data["capabilities"]["view"])
        self.assertFalse(resp.data["capabilities"]["edit"])


class TestCaseUpdateApi(CaseApiTestCase):

    def test_status_transition(self):
        case = self.create_case()
        self.as_user(self.investigator)

        resp = self.client.patch(self.detail_url(case), {"status": "closed"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["status"], CaseStatus.CLOSED)
        self.assertIsNotNone(resp.data["closed_at"])

    def test_invalid_transition_is_409(self):
        case = self.create_case()
        self.as_user(self.investigator)

        resp = self.client.patch(self.detail_url(case), {"status": "archived"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        case.refresh_from_db()
        self.assertEqual(case.status, CaseStatus.OPEN)

    def test_readonly_patch_is_403(self):
        case = self.create_case()
        self.as_user(self.readonly)
        resp = self.client.patch(self.detail_url(case), {"title": "x"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_empty_body_is_400(self):
        case = self.create_case()
        self.as_user(self.investigator)
        resp = self.client.patch(self.detail_url(case), {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_noop_patch_adds_no_activity(self):
        case = self.create_case()
        self.as_user(self.investigator)

        resp = self.client.patch(self.detail_url(case), {"status": "open"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(ActivityLog.objects.filter(case=case).count(), 1)

    def test_activity_endpoint(self):
        case = self.create_case()
        self.as_user(self.investigator)
        self.client.patch(self.detail_url(case), {"priority": "high"}, format="json")

        resp = self.client.get(reverse("case-activity", kwargs={"pk": case.pk}))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([e["activity_type"] for e in resp.data], ["updated", "created"])
        self.assertEqual(resp.data[0]["new_values"], {"priority": "high"})

    def test_delete_is_admin_only(self):
        case = self.create_case()

        self.as_user(self.investigator)
        self.assertEqual(
            self.client.delete(self.detail_url(case)).status_code,
            status.HTTP_403_FORBIDDEN,
        )

        self.as_user(self.admin)
        self.assertEqual(
            self.client.delete(self.detail_url(case)).status_code,
            status.HTTP_204_NO_CONTENT,
        )
        self.assertFalse(Case.objects.filter(pk=case.pk).exists())


class TestCaseNotesApi(CaseApiTestCase):

    def notes_url(self, case):
        return reverse("case-note-list", kwargs={"case_pk": case.pk})

    def test_add_and_list_notes(self):
        case = self.create_case()
        self.as_user(self.investigator)

        created = self.client.post(
            self.notes_url(case), {"note": "secret", "is_private": True}, format="json",
        )
        self.client.post(self.notes_url(case), {"note": "public"}, format="json")

        self.assertEqual(created.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(self.client.get(self.notes_url(case)).data), 2)

        self.as_user(self.readonly)
        notes = self.client.get(self.notes_url(case)).data
        self.assertEqual([n["note"] for n in notes], ["public"])

    def test_notes_of_invisible_case_are_404(self):
        case = self.create_case()
        self.as_user(self.volunteer)
        resp = self.client.get(self.notes_url(case))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)


class TestCaseExportApi(CaseApiTestCase):

    def test_dossier_download(self):
        case = self.create_case()
        self.as_user(self.investigator)

        resp = self.client.get(reverse("case-export", kwargs={"pk": case.pk}))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertIn(
            f'filename="Case_{case.case_number}_Export.txt"',
            resp["Content-Disposition"],
        )
        self.assertIn("CASE EXPORT REPORT", resp.content.decode())

    def test_volunteer_cannot_export_own_case(self):
        case = self.create_case(assigned_to=self.volunteer.pk)
        self.as_user(self.volunteer)
        resp = self.client.get(reverse("case-export", kwargs={"pk": case.pk}))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_csv_export(self):
        self.create_case(title="Smith, John")
        self.as_user(self.admin)

        resp = self.client.get(reverse("case-export-csv"))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(resp["Content-Type"].startswith("text/csv"))
        lines = resp.content.decode().splitlines()
        self.assertEqual(len(lines), 2)
        self.assertIn('"Smith, John"', lines[1])
