"""
core.domain.access — Centralised role-based access policy.

Every "can this user see / change this case?" decision in the system is
answered here, by pure functions over ``(role, user_id, case)``.  The
case store, notes, documents, exporter and analytics all consult this
module instead of re-implementing the rules.

╔══════════════════════════════════════════════════════════════════╗
║  role          view   edit   assign  create  delete  users       ║
║  ──────────    ─────  ─────  ──────  ──────  ──────  ─────       ║
║  admin         all    all    yes     yes     yes     yes         ║
║  investigator  all    all    yes     yes     no      no          ║
║  volunteer     own    own    no      no      no      no          ║
║  readonly      all    none   no      no      no      no          ║
╚══════════════════════════════════════════════════════════════════╝

"own" means the user created the case or is its current assignee.
Inactive or anonymous users get no capabilities at all.

Usage in a service::

    from core.domain.access import can_edit, require_capability, role_of

    require_capability(
        can_edit(role_of(user), user.pk, case),
        "You cannot edit this case.",
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.db.models import Q, QuerySet

from core.domain.exceptions import PermissionDenied

if TYPE_CHECKING:
    from accounts.models import User

# Role values mirror ``accounts.models.UserRole``; kept as plain strings
# so this module never imports app models.
ADMIN = "admin"
INVESTIGATOR = "investigator"
VOLUNTEER = "volunteer"
READONLY = "readonly"

#: Roles that see every case.
_GLOBAL_VIEW_ROLES = frozenset({ADMIN, INVESTIGATOR, READONLY})

#: Roles that may edit every case.
_GLOBAL_EDIT_ROLES = frozenset({ADMIN, INVESTIGATOR})

#: Roles allowed to appear in a case's ``assigned_to`` field.
ASSIGNABLE_ROLES = frozenset({ADMIN, INVESTIGATOR, VOLUNTEER})


@dataclass(frozen=True)
class CaseCapabilities:
    """What one user may do with one case (or with cases in general)."""

    view: bool
    edit: bool
    assign: bool
    create: bool
    manage_users: bool


def role_of(user: User | None) -> str | None:
    """
    Return the effective role of ``user``.

    ``None`` for anonymous or deactivated accounts, which makes every
    ``can_*`` predicate below evaluate to ``False``.
    """
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    if not user.is_active:
        return None
    return getattr(user, "role", None)


def is_own_case(user_id: Any, case: Any) -> bool:
    """``True`` when the user created ``case`` or is its assignee."""
    if user_id is None:
        return False
    return case.created_by_id == user_id or case.assigned_to_id == user_id


# ── Case predicates ─────────────────────────────────────────────────


def can_view(role: str | None, user_id: Any, case: Any) -> bool:
    if role in _GLOBAL_VIEW_ROLES:
        return True
    if role == VOLUNTEER:
        return is_own_case(user_id, case)
    return False


def can_edit(role: str | None, user_id: Any, case: Any) -> bool:
    if role in _GLOBAL_EDIT_ROLES:
        return True
    if role == VOLUNTEER:
        return is_own_case(user_id, case)
    return False


def can_assign(role: str | None) -> bool:
    """Whether the role may change a case's assignee."""
    return role in _GLOBAL_EDIT_ROLES


def can_create(role: str | None) -> bool:
    return role in _GLOBAL_EDIT_ROLES


def can_delete(role: str | None) -> bool:
    return role == ADMIN


def can_reopen_archived(role: str | None) -> bool:
    """Only administrators may pull a case back out of the archive."""
    return role == ADMIN


def can_export(role: str | None, user_id: Any, case: Any) -> bool:
    """Dossier and CSV exports are limited to staff who can see the case."""
    return role in _GLOBAL_EDIT_ROLES and can_view(role, user_id, case)


def can_bulk_export(role: str | None) -> bool:
    """CSV listing export; rows are still limited to visible cases."""
    return role in _GLOBAL_EDIT_ROLES


def can_manage_users(role: str | None) -> bool:
    return role == ADMIN


def can_view_note(role: str | None, user_id: Any, note: Any) -> bool:
    """Private notes are visible to their author and to administrators."""
    if role is None:
        return False
    if not note.is_private:
        return True
    return role == ADMIN or (user_id is not None and note.user_id == user_id)


def case_capabilities(user: User | None, case: Any = None) -> CaseCapabilities:
    """
    Bundle every capability of ``user`` for ``case``.

    With ``case=None`` only the case-independent capabilities are
    meaningful (``create`` / ``manage_users`` / ``assign``); ``view``
    and ``edit`` then report whether the role can view or edit *some*
    cases at all.
    """
    role = role_of(user)
    user_id = getattr(user, "pk", None)
    if case is None:
        view = role is not None
        edit = role in _GLOBAL_EDIT_ROLES or role == VOLUNTEER
    else:
        view = can_view(role, user_id, case)
        edit = can_edit(role, user_id, case)
    return CaseCapabilities(
        view=view,
        edit=edit,
        assign=can_assign(role),
        create=can_create(role),
        manage_users=can_manage_users(role),
    )


# ── Queryset scoping ────────────────────────────────────────────────


def scope_case_queryset(queryset: QuerySet, user: User | None, *, prefix: str = "") -> QuerySet:
    """
    Restrict ``queryset`` to the rows ``user`` may view.

    The database-side mirror of ``can_view``.  ``prefix`` lets related
    models reuse the rule (e.g. ``prefix="case__"`` on a note or
    document queryset).
    """
    role = role_of(user)
    if role in _GLOBAL_VIEW_ROLES:
        return queryset
    if role == VOLUNTEER:
        return queryset.filter(
            Q(**{f"{prefix}created_by": user}) | Q(**{f"{prefix}assigned_to": user})
        )
    return queryset.none()


def scope_note_queryset(queryset: QuerySet, user: User | None) -> QuerySet:
    """Hide other people's private notes unless ``user`` is an administrator."""
    role = role_of(user)
    if role is None:
        return queryset.none()
    if role == ADMIN:
        return queryset
    return queryset.filter(Q(is_private=False) | Q(user=user))


def require_capability(allowed: bool, message: str = "") -> None:
    """
    Guard that raises ``PermissionDenied`` when ``allowed`` is false.

    Args:
        allowed: Result of one of the ``can_*`` predicates.
        message: Optional custom error message.

    Raises:
        core.domain.exceptions.PermissionDenied
    """
    if not allowed:
        raise PermissionDenied(
            message or "You do not have permission to perform this action."
        )
