"""
Root conftest.py — shared fixtures for the entire test suite.

Provides:
  - ``api_client`` fixture returning a DRF ``APIClient``.
  - ``create_user`` factory fixture for creating test users.
  - ``auth_client`` factory returning a client authenticated as a user.
  - ``auth_header`` fixture for authenticated requests (JWT).
  - ``make_case`` factory creating cases through the lifecycle service.
"""

from __future__ import annotations

import pytest
from rest_framework.test import APIClient


@pytest.fixture(autouse=True)
def _inline_notifications(settings, tmp_path):
    """Deliver notifications on the test thread and keep blobs in a temp dir."""
    settings.NOTIFICATIONS = {
        "MAX_WORKERS": 4,
        "SEND_TIMEOUT": 5.0,
        "RUN_IN_BACKGROUND": False,
    }
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    settings.MEDIA_ROOT = str(tmp_path / "media")


@pytest.fixture()
def api_client() -> APIClient:
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture()
def create_user(db):
    """
    Factory fixture that creates a user with sensible defaults.

    Usage::

        def test_something(create_user):
            user = create_user(username="alice")
            # or with all fields:
            user = create_user(
                username="bob",
                password="Str0ng!Pass",
                email="bob@example.com",
                role="investigator",
            )
    """
    from accounts.models import User, UserRole

    _counter = 0

    def _factory(
        *,
        username: str | None = None,
        password: str = "TestPass123!",
        email: str | None = None,
        role: str = UserRole.INVESTIGATOR,
        is_active: bool = True,
        **kwargs,
    ) -> User:
        nonlocal _counter
        _counter += 1
        if username is None:
            username = f"{role}{_counter}"
        if email is None:
            email = f"{username}@test.local"
        kwargs.setdefault("full_name", username.title())

        return User.objects.create_user(
            username=username,
            password=password,
            email=email,
            role=role,
            is_active=is_active,
            **kwargs,
        )

    return _factory


@pytest.fixture()
def auth_client(create_user):
    """
    Returns a helper that builds an ``APIClient`` force-authenticated
    as ``user`` (or as a freshly created user of ``role``).

    Usage::

        def test_list(auth_client):
            client = auth_client(role="admin")
            resp = client.get("/api/cases/")
    """

    def _make(user=None, *, role: str = "investigator", **user_kwargs) -> APIClient:
        if user is None:
            user = create_user(role=role, **user_kwargs)
        client = APIClient()
        client.force_authenticate(user=user)
        client.user = user
        return client

    return _make


@pytest.fixture()
def auth_header(create_user):
    """
    Returns a helper function that creates a user and returns an
    ``Authorization`` header dict with a valid JWT access token.

    The returned dict looks like::

        {"Authorization": "Bearer eyJ..."}
    """
    from rest_framework_simplejwt.tokens import AccessToken

    def _make(*, username: str | None = None, role: str = "investigator", **user_kwargs) -> dict[str, str]:
        user = create_user(username=username, role=role, **user_kwargs)
        token = AccessToken.for_user(user)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def make_case(create_user):
    """
    Factory creating a case via ``CaseLifecycleService.create``.

    ``created_by`` defaults to a new investigator.  Extra keyword
    arguments are passed as case fields.
    """
    from cases.services import CaseLifecycleService

    def _make(created_by=None, **fields):
        if created_by is None:
            created_by = create_user(role="investigator")
        data = {"title": "Missing hiker", "case_type": "missing_person", **fields}
        return CaseLifecycleService.create(data, created_by).case

    return _make
