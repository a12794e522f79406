"""
Integration tests for the accounts API: identifier login, the "me"
endpoint and administrator user management.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from accounts.models import UserRole
from accounts.services import UserManagementService
from core.domain.exceptions import DomainError, PermissionDenied

User = get_user_model()


class AccountsTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.admin_password = "Admin!Pass42"
        cls.admin = User.objects.create_user(
            username="chief", email="chief@example.com",
            password=cls.admin_password, role=UserRole.ADMIN, full_name="Chief Admin",
        )
        cls.investigator_password = "Invest!Pass42"
        cls.investigator = User.objects.create_user(
            username="detective", email="detective@example.com",
            password=cls.investigator_password, role=UserRole.INVESTIGATOR,
        )
        cls.newcomer = User.objects.create_user(
            username="newcomer", email="newcomer@example.com", password="Newbie!Pass42",
        )

    def setUp(self):
        self.client = APIClient()

    def login(self, identifier: str, password: str):
        return self.client.post(
            reverse("accounts:login"),
            {"identifier": identifier, "password": password},
            format="json",
        )


class TestLogin(AccountsTestCase):

    def test_login_with_username(self):
        resp = self.login("detective", self.investigator_password)

        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertIn("access", resp.data)
        self.assertIn("refresh", resp.data)
        self.assertEqual(resp.data["user"]["role"], UserRole.INVESTIGATOR)
        self.assertTrue(resp.data["user"]["capabilities"]["create_cases"])

    def test_login_with_email_case_insensitive(self):
        resp = self.login("Detective@Example.com", self.investigator_password)
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

    def test_wrong_password(self):
        resp = self.login("detective", "nope")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inactive_user_cannot_log_in(self):
        self.investigator.is_active = False
        self.investigator.save(update_fields=["is_active"])
        resp = self.login("detective", self.investigator_password)
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_token_grants_access(self):
        token = self.login("detective", self.investigator_password).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

        resp = self.client.get(reverse("accounts:me"))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["username"], "detective")

    def test_refresh(self):
        refresh = self.login("detective", self.investigator_password).data["refresh"]
        resp = self.client.post(
            reverse("accounts:token-refresh"), {"refresh": refresh}, format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertIn("access", resp.data)


class TestMe(AccountsTestCase):

    def test_new_accounts_are_readonly(self):
        self.client.force_authenticate(self.newcomer)
        resp = self.client.get(reverse("accounts:me"))
        self.assertEqual(resp.data["role"], UserRole.READONLY)
        self.assertFalse(resp.data["capabilities"]["edit_cases"])

    def test_update_own_profile(self):
        self.client.force_authenticate(self.newcomer)
        resp = self.client.patch(
            reverse("accounts:me"), {"full_name": "New Comer"}, format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["full_name"], "New Comer")

    def test_role_cannot_be_self_assigned(self):
        self.client.force_authenticate(self.newcomer)
        self.client.patch(reverse("accounts:me"), {"role": "admin"}, format="json")
        self.newcomer.refresh_from_db()
        self.assertEqual(self.newcomer.role, UserRole.READONLY)

    def test_duplicate_email_rejected(self):
        self.client.force_authenticate(self.newcomer)
        resp = self.client.patch(
            reverse("accounts:me"), {"email": "CHIEF@example.com"}, format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)


class TestUserManagementApi(AccountsTestCase):

    def test_admin_lists_users(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.get(reverse("accounts:user-list"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [u["username"] for u in resp.data], ["chief", "detective", "newcomer"],
        )

    def test_list_filters(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.get(reverse("accounts:user-list"), {"role": "readonly"})
        self.assertEqual([u["username"] for u in resp.data], ["newcomer"])

    def test_non_admin_is_forbidden(self):
        self.client.force_authenticate(self.investigator)
        resp = self.client.get(reverse("accounts:user-list"))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_change_role(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.patch(
            reverse("accounts:user-role", kwargs={"pk": self.newcomer.pk}),
            {"role": "volunteer"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.newcomer.refresh_from_db()
        self.assertEqual(self.newcomer.role, UserRole.VOLUNTEER)

    def test_unknown_role_is_400(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.patch(
            reverse("accounts:user-role", kwargs={"pk": self.newcomer.pk}),
            {"role": "superhero"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_deactivate_and_activate(self):
        self.client.force_authenticate(self.admin)

        resp = self.client.post(reverse("accounts:user-deactivate", kwargs={"pk": self.investigator.pk}))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertFalse(resp.data["is_active"])

        resp = self.client.post(reverse("accounts:user-activate", kwargs={"pk": self.investigator.pk}))
        self.assertTrue(resp.data["is_active"])

    def test_missing_user_is_404(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.get(reverse("accounts:user-detail", kwargs={"pk": 424242}))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)


class TestUserManagementService(AccountsTestCase):

    def test_admin_cannot_deactivate_self(self):
        with self.assertRaises(DomainError):
            UserManagementService.deactivate_user(self.admin.pk, performed_by=self.admin)

    def test_admin_cannot_demote_self(self):
        with self.assertRaises(DomainError):
            UserManagementService.assign_role(
                user_id=self.admin.pk, role=UserRole.INVESTIGATOR, performed_by=self.admin,
            )
        self.admin.refresh_from_db()
        self.assertEqual(self.admin.role, UserRole.ADMIN)

    def test_investigator_cannot_manage(self):
        with self.assertRaises(PermissionDenied):
            UserManagementService.activate_user(self.newcomer.pk, performed_by=self.investigator)

    def test_deactivated_admin_loses_rights(self):
        other_admin = User.objects.create_user(
            username="deputy", email="deputy@example.com", password="x", role=UserRole.ADMIN,
        )
        UserManagementService.deactivate_user(other_admin.pk, performed_by=self.admin)
        other_admin.refresh_from_db()
        with self.assertRaises(PermissionDenied):
            UserManagementService.list_users(other_admin)
