"""
Accounts Service Layer.

This module is the **single source of truth** for all business logic
within the ``accounts`` app.  Views must remain *thin*: they validate
input through serializers, call a service method, and return the
result wrapped in a DRF ``Response``.

Architecture
------------
- ``UserManagementService``    — listing, role changes, activate / deactivate.
- ``CurrentUserService``       — "Me" endpoint helpers.
"""

from __future__ import annotations

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q, QuerySet

from core.domain.access import can_manage_users, require_capability, role_of
from core.domain.exceptions import DomainError, NotFound

from .models import UserRole

User = get_user_model()

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  User Management Service
# ═══════════════════════════════════════════════════════════════════


class UserManagementService:
    """
    Administrative operations on users: listing, role assignment,
    activation, and deactivation.

    Every method requires the ``admin`` role.  An administrator can
    neither demote nor deactivate their own account, so the system
    always keeps at least the administrator who is doing the work.
    """

    @staticmethod
    def list_users(
        performed_by: User,
        *,
        role: str | None = None,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> QuerySet[User]:
        """
        Return a filtered queryset of users.

        Parameters
        ----------
        performed_by : User
            The requesting administrator.
        role : str, optional
            Exact ``UserRole`` value.
        is_active : bool, optional
            Filter by ``is_active`` status.
        search : str, optional
            Case-insensitive search across ``username``, ``email`` and
            ``full_name``.
        """
        _require_admin(performed_by)
        qs = User.objects.all()

        if role:
            qs = qs.filter(role=role)
        if is_active is not None:
            qs = qs.filter(is_active=is_active)
        if search:
            qs = qs.filter(
                Q(username__icontains=search)
                | Q(email__icontains=search)
                | Q(full_name__icontains=search)
            )

        return qs.order_by("username")

    @staticmethod
    def get_user(user_id: int, performed_by: User) -> User:
        """
        Retrieve a single user by PK.

        Raises
        ------
        NotFound
            If no such user exists.
        """
        _require_admin(performed_by)
        return _get_user_or_404(user_id)

    @staticmethod
    @transaction.atomic
    def assign_role(*, user_id: int, role: str, performed_by: User) -> User:
        """
        Change a user's role.

        Parameters
        ----------
        user_id : int
            PK of the target user.
        role : str
            One of ``UserRole.values``.
        performed_by : User
            The requesting administrator.

        Raises
        ------
        PermissionDenied
            If the requester is not an administrator.
        DomainError
            Unknown role, or an administrator demoting themselves.
        NotFound
            If the target user does not exist.
        """
        _require_admin(performed_by)
        if role not in UserRole.values:
            raise DomainError(f"Unknown role '{role}'.")

        target_user = _get_user_or_404(user_id, lock=True)
        if target_user.pk == performed_by.pk and role != UserRole.ADMIN:
            raise DomainError("You cannot remove your own administrator role.")

        if target_user.role != role:
            previous = target_user.role
            target_user.role = role
            target_user.save(update_fields=["role"])
            logger.info(
                "User %s role changed %s -> %s by %s",
                target_user.pk, previous, role, performed_by.pk,
            )
        return target_user

    @staticmethod
    def activate_user(user_id: int, performed_by: User) -> User:
        """Set ``is_active=True`` on the target user."""
        _require_admin(performed_by)
        target_user = _get_user_or_404(user_id)

        if not target_user.is_active:
            target_user.is_active = True
            target_user.save(update_fields=["is_active"])
            logger.info("User %s activated by %s", target_user.pk, performed_by.pk)
        return target_user

    @staticmethod
    def deactivate_user(user_id: int, performed_by: User) -> User:
        """
        Set ``is_active=False`` on the target user.

        A deactivated user keeps their cases, notes and activity rows but
        loses every capability (see ``core.domain.access.role_of``).

        Raises
        ------
        DomainError
            If the administrator targets their own account.
        """
        _require_admin(performed_by)
        target_user = _get_user_or_404(user_id)

        if target_user.pk == performed_by.pk:
            raise DomainError("You cannot deactivate your own account.")

        if target_user.is_active:
            target_user.is_active = False
            target_user.save(update_fields=["is_active"])
            logger.info("User %s deactivated by %s", target_user.pk, performed_by.pk)
        return target_user


# ═══════════════════════════════════════════════════════════════════
#  Current User (Me) Service
# ═══════════════════════════════════════════════════════════════════


class CurrentUserService:
    """
    Helpers for the "Me" endpoint.

    The frontend uses it to discover who is logged in, which role they
    hold and which top-level capabilities the UI should expose.
    """

    @staticmethod
    def get_profile(user: User) -> User:
        """Re-fetch the authenticated user so the payload is never stale."""
        return User.objects.get(pk=user.pk)

    @staticmethod
    def update_profile(user: User, validated_data: dict[str, Any]) -> User:
        """
        Update the authenticated user's own profile fields.

        Only ``full_name`` and ``email`` reach this method; ``role``,
        ``is_active`` and ``username`` cannot be self-modified.
        """
        if not validated_data:
            return user
        for field, value in validated_data.items():
            setattr(user, field, value)
        user.save(update_fields=list(validated_data.keys()))
        return User.objects.get(pk=user.pk)


# ── Helpers ─────────────────────────────────────────────────────────


def _require_admin(user: User) -> None:
    require_capability(
        can_manage_users(role_of(user)),
        "Only administrators can manage users.",
    )


def _get_user_or_404(user_id: int, *, lock: bool = False) -> User:
    qs = User.objects.select_for_update() if lock else User.objects.all()
    try:
        return qs.get(pk=user_id)
    except User.DoesNotExist:
        raise NotFound(f"User with id {user_id} not found.")
