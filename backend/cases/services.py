"""
Cases app Service Layer.

This module is the **single source of truth** for all business logic
in the ``cases`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``ActivityRecorder``        — Append-only audit trail per case.
- ``CaseQueryService``        — Role-scoped reads (list / detail / history).
- ``CaseLifecycleService``    — Create, update (diff + state machine), delete.
- ``CaseNoteService``         — Notes with private/public visibility.

Every mutating method returns (or builds) a ``CaseMutation`` carrying
the notification events it produced; the same events are handed to
``NotificationOutbox`` so they are dispatched only after the primary
transaction commits.

Status State-Machine Overview
-----------------------------
  open ──────► in_progress ──────► closed ──────► archived
    │  ◄──────      │                 │
    │               └──► open         └──► open   (reopen)
    └──────────────────────────► closed

  archived ──► open   administrators only

Setting the status to its current value is not a transition: the
field simply does not appear in the diff.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from core.domain.access import (
    ASSIGNABLE_ROLES,
    can_assign,
    can_create,
    can_delete,
    can_edit,
    can_reopen_archived,
    require_capability,
    role_of,
    scope_case_queryset,
    scope_note_queryset,
)
from core.domain.exceptions import DomainError, InvalidTransition, NotFound
from core.domain.notifications import (
    CASE_ASSIGNED,
    CASE_CREATED,
    CASE_STATUS_CHANGED,
    CASE_UPDATED,
    NotificationEvent,
    NotificationOutbox,
)
from core.domain.transactions import best_effort, lock_for_update

from .changes import EDITABLE_FIELDS, CaseDiff
from .filters import CaseFilterCriteria, filter_cases
from .models import ActivityLog, ActivityType, Case, CaseNote, CasePriority, CaseStatus
from .numbering import generate_case_number

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Valid transition map
# ═══════════════════════════════════════════════════════════════════

#: Maps from_status → statuses it may move to.  Anything missing here
#: is rejected with ``InvalidTransition``.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    CaseStatus.OPEN: frozenset({CaseStatus.IN_PROGRESS, CaseStatus.CLOSED}),
    CaseStatus.IN_PROGRESS: frozenset({CaseStatus.CLOSED, CaseStatus.OPEN}),
    CaseStatus.CLOSED: frozenset({CaseStatus.ARCHIVED, CaseStatus.OPEN}),
    CaseStatus.ARCHIVED: frozenset({CaseStatus.OPEN}),
}

#: Transitions that additionally require ``can_reopen_archived``.
ADMIN_ONLY_TRANSITIONS: frozenset[tuple[str, str]] = frozenset({
    (CaseStatus.ARCHIVED, CaseStatus.OPEN),
})

#: Fields that must never be blank once set.
REQUIRED_TEXT_FIELDS: tuple[str, ...] = ("title", "case_type")

#: Free-text fields stored as ``""`` when empty; ``None`` means cleared.
OPTIONAL_TEXT_FIELDS: tuple[str, ...] = (
    "description",
    "subject_name",
    "date_of_birth",
    "contact_info",
    "last_known_location",
)

_REOPENED_STATES = frozenset({CaseStatus.OPEN, CaseStatus.IN_PROGRESS})


def validate_transition(current: str, target: str, role: str | None) -> None:
    """
    Raise ``InvalidTransition`` unless ``current → target`` is allowed
    for ``role``.
    """
    if target not in CaseStatus.values:
        raise InvalidTransition(
            current=current,
            target=target,
            reason=f"'{target}' is not a case status.",
        )
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(current=current, target=target)
    if (current, target) in ADMIN_ONLY_TRANSITIONS and not can_reopen_archived(role):
        raise InvalidTransition(
            current=current,
            target=target,
            reason="Only administrators may reopen archived cases.",
        )


@dataclass
class CaseMutation:
    """
    Result of a lifecycle operation.

    ``events`` are the notifications the mutation produced; they have
    already been queued on the outbox.  ``diff`` is ``None`` for
    creations.
    """

    case: Case
    events: list[NotificationEvent] = field(default_factory=list)
    activity: list[ActivityLog] = field(default_factory=list)
    diff: CaseDiff | None = None

    @property
    def changed(self) -> bool:
        return self.diff is None or not self.diff.is_empty


# ═══════════════════════════════════════════════════════════════════
#  Activity Recorder
# ═══════════════════════════════════════════════════════════════════


class ActivityRecorder:
    """Writes and reads the append-only ``ActivityLog``."""

    @staticmethod
    def record(
        case: Case,
        actor: Any,
        activity_type: str,
        description: str,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> ActivityLog:
        """
        Append one entry to ``case``'s log.

        Raises
        ------
        DomainError
            If ``description`` is blank or ``activity_type`` unknown.
        """
        if not description or not description.strip():
            raise DomainError("Activity description must not be blank.")
        if activity_type not in ActivityType.values:
            raise DomainError(f"Unknown activity type '{activity_type}'.")
        return ActivityLog.objects.create(
            case=case,
            user=actor if getattr(actor, "pk", None) is not None else None,
            activity_type=activity_type,
            description=description.strip(),
            old_values=old_values or None,
            new_values=new_values or None,
        )

    @staticmethod
    def record_safely(
        case: Case,
        actor: Any,
        activity_type: str,
        description: str,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> ActivityLog | None:
        """
        Same as ``record`` but inside a savepoint: a failed write is
        logged and the surrounding mutation carries on.
        """
        return best_effort(
            lambda: ActivityRecorder.record(
                case, actor, activity_type, description, old_values, new_values
            ),
            description=f"{activity_type} activity for case {case.case_number}",
        )

    @staticmethod
    def history(case: Case) -> list[ActivityLog]:
        """Entries for ``case``, newest first."""
        return list(
            ActivityLog.objects.filter(case=case)
            .select_related("user")
            .order_by("-created_at", "-id")
        )


# ═══════════════════════════════════════════════════════════════════
#  Case Query Service
# ═══════════════════════════════════════════════════════════════════


class CaseQueryService:
    """
    Role-scoped case reads.

    Visibility is decided by ``core.domain.access.scope_case_queryset``;
    a case the user may not view is reported as missing, never as
    forbidden.
    """

    @staticmethod
    def visible_queryset(requesting_user: Any):
        return scope_case_queryset(
            Case.objects.select_related("created_by", "assigned_to"),
            requesting_user,
        )

    @staticmethod
    def list_cases(
        requesting_user: Any,
        criteria: CaseFilterCriteria | None = None,
    ) -> list[Case]:
        """
        Return the cases ``requesting_user`` may view, newest first,
        narrowed by ``criteria`` when given.
        """
        cases = CaseQueryService.visible_queryset(requesting_user).order_by("-created_at", "-id")
        return filter_cases(cases, criteria, user_id=getattr(requesting_user, "pk", None))

    @staticmethod
    def get_case_detail(requesting_user: Any, case_id: Any) -> Case:
        """
        Raises
        ------
        NotFound
            If the case does not exist or is outside the user's scope.
        """
        try:
            return CaseQueryService.visible_queryset(requesting_user).get(pk=case_id)
        except (Case.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Case with id {case_id} was not found.")

    @staticmethod
    def get_activity(requesting_user: Any, case_id: Any) -> list[ActivityLog]:
        case = CaseQueryService.get_case_detail(requesting_user, case_id)
        return ActivityRecorder.history(case)


# ═══════════════════════════════════════════════════════════════════
#  Case Lifecycle Service
# ═══════════════════════════════════════════════════════════════════


class CaseLifecycleService:
    """
    Create / update / delete with all invariants enforced.

    Primary writes run inside ``transaction.atomic``; activity entries
    are written in savepoints and notifications leave through the
    outbox after commit, so neither can undo a committed mutation.
    """

    @staticmethod
    @transaction.atomic
    def create(
        validated_data: Mapping[str, Any],
        requesting_user: Any,
        *,
        number_generator: Callable[[], str] = generate_case_number,
    ) -> CaseMutation:
        """
        Create a case in ``open`` status.

        Parameters
        ----------
        validated_data : dict
            Case fields.  ``status`` and ``case_number`` are ignored:
            the former is forced to ``open`` and the latter comes from
            ``number_generator``.
        requesting_user : User
            Becomes ``created_by``.
        number_generator : callable
            Zero-argument callable returning a fresh case number.

        Returns
        -------
        CaseMutation
            With one ``case_created`` event, plus ``case_assigned`` when
            the case starts with an assignee.

        Raises
        ------
        PermissionDenied
            If the role may not create cases.
        DomainError
            Blank title / case type, unknown priority or an assignee
            that cannot hold cases.
        """
        role = role_of(requesting_user)
        require_capability(can_create(role), "Your role cannot create cases.")

        fields = {
            name: validated_data[name]
            for name in EDITABLE_FIELDS
            if name in validated_data and name != "status"
        }
        for name in REQUIRED_TEXT_FIELDS:
            fields[name] = _required_text(fields.get(name), name)
        priority = fields.get("priority") or CasePriority.MEDIUM
        if priority not in CasePriority.values:
            raise DomainError(f"Unknown priority '{priority}'.")
        fields["priority"] = priority
        fields["assigned_to"] = _resolve_assignee(fields.get("assigned_to"))
        for name in OPTIONAL_TEXT_FIELDS:
            if fields.get(name) is None:
                fields.pop(name, None)

        case = Case.objects.create(
            case_number=number_generator(),
            status=CaseStatus.OPEN,
            created_by=requesting_user,
            **fields,
        )

        snapshot = {
            "title": case.title,
            "case_type": case.case_type,
            "status": case.status,
            "priority": case.priority,
        }
        if case.assigned_to_id is not None:
            snapshot["assigned_to"] = case.assigned_to_id
        entry = ActivityRecorder.record_safely(
            case,
            requesting_user,
            ActivityType.CREATED,
            f"Case {case.case_number} created",
            new_values=snapshot,
        )

        events = [NotificationEvent(CASE_CREATED, case.pk, actor_id=requesting_user.pk)]
        if case.assigned_to_id is not None:
            events.append(NotificationEvent(CASE_ASSIGNED, case.pk, actor_id=requesting_user.pk))
        NotificationOutbox.publish(events)

        logger.info("Case %s created by user %s.", case.case_number, requesting_user.pk)
        return CaseMutation(case=case, events=events, activity=[entry] if entry else [])

    @staticmethod
    @transaction.atomic
    def update(
        case_id: Any,
        patch: Mapping[str, Any],
        requesting_user: Any,
    ) -> CaseMutation:
        """
        Apply ``patch`` to a case.

        The row is locked for the duration of the transaction.  Only
        fields whose value really changes are written, logged and
        announced; a patch without effective changes returns an empty
        mutation and touches nothing.

        Raises
        ------
        NotFound
            Case missing or invisible to the user.
        PermissionDenied
            No edit rights, or an assignee change without assign rights.
        InvalidTransition
            The status change is not in ``ALLOWED_TRANSITIONS``.
        DomainError
            Blanked required field or invalid assignee / priority.
        """
        role = role_of(requesting_user)
        scoped = scope_case_queryset(Case.objects.all(), requesting_user)
        case = lock_for_update(Case, case_id, queryset=scoped)
        require_capability(
            can_edit(role, requesting_user.pk, case),
            "You cannot edit this case.",
        )

        patch = dict(patch)
        for name in OPTIONAL_TEXT_FIELDS:
            if name in patch and patch[name] is None:
                patch[name] = ""
        assignee = None
        if "assigned_to" in patch:
            raw = patch["assigned_to"]
            if getattr(raw, "pk", raw) != case.assigned_to_id:
                assignee = _resolve_assignee(raw)
                patch["assigned_to"] = assignee

        diff = CaseDiff.compute(case, patch)
        if diff.is_empty:
            return CaseMutation(case=case, diff=diff)

        if "assigned_to" in diff:
            require_capability(can_assign(role), "Your role cannot assign cases.")
        for name in REQUIRED_TEXT_FIELDS:
            if name in diff:
                patch[name] = _required_text(diff[name].new, name)
                diff = CaseDiff.compute(case, patch)
        if "priority" in diff and diff["priority"].new not in CasePriority.values:
            raise DomainError(f"Unknown priority '{diff['priority'].new}'.")
        if "status" in diff:
            validate_transition(diff["status"].old, diff["status"].new, role)

        update_fields = ["updated_at"]
        for name in diff.fields:
            setattr(case, name, assignee if name == "assigned_to" else patch[name])
            update_fields.append(name)

        if "status" in diff:
            new_status = diff["status"].new
            now = timezone.now()
            if new_status == CaseStatus.CLOSED:
                case.closed_at = now
            elif new_status == CaseStatus.ARCHIVED:
                case.archived_at = now
            elif new_status in _REOPENED_STATES:
                case.closed_at = None
                case.archived_at = None
            update_fields += ["closed_at", "archived_at"]

        case.save(update_fields=update_fields)

        activity, events = _record_update(case, diff, requesting_user)
        NotificationOutbox.publish(events)

        logger.info(
            "Case %s updated by user %s: %s",
            case.case_number,
            requesting_user.pk,
            ", ".join(diff.fields),
        )
        return CaseMutation(case=case, events=events, activity=activity, diff=diff)

    @staticmethod
    def delete(case_id: Any, requesting_user: Any, *, document_service: Any = None) -> None:
        """
        Hard-delete a case with its notes, activity and documents.

        Document blobs are removed first on a best-effort basis; a blob
        that cannot be removed is logged and left behind.

        Raises
        ------
        PermissionDenied
            Unless the user is an administrator.
        NotFound
            If the case does not exist.
        """
        require_capability(
            can_delete(role_of(requesting_user)),
            "Only administrators can delete cases.",
        )
        case = CaseQueryService.get_case_detail(requesting_user, case_id)

        if document_service is None:
            from documents.services import DocumentService

            document_service = DocumentService()
        document_service.purge_case_blobs(case)

        case_number = case.case_number
        with transaction.atomic():
            case.delete()
        logger.info("Case %s deleted by user %s.", case_number, requesting_user.pk)


# ═══════════════════════════════════════════════════════════════════
#  Case Note Service
# ═══════════════════════════════════════════════════════════════════


class CaseNoteService:
    """Free-text notes; private ones are visible to author and admins."""

    @staticmethod
    def list_notes(requesting_user: Any, case_id: Any) -> list[CaseNote]:
        case = CaseQueryService.get_case_detail(requesting_user, case_id)
        notes = CaseNote.objects.filter(case=case).select_related("user")
        return list(scope_note_queryset(notes, requesting_user).order_by("-created_at", "-id"))

    @staticmethod
    @transaction.atomic
    def add_note(
        case_id: Any,
        validated_data: Mapping[str, Any],
        requesting_user: Any,
    ) -> CaseNote:
        """
        Attach a note to a case and log a ``note_added`` entry.

        Raises
        ------
        NotFound
            Case missing or invisible.
        PermissionDenied
            User may not edit the case.
        DomainError
            Blank note text.
        """
        case = CaseQueryService.get_case_detail(requesting_user, case_id)
        require_capability(
            can_edit(role_of(requesting_user), requesting_user.pk, case),
            "You cannot add notes to this case.",
        )
        text = _required_text(validated_data.get("note"), "note")
        is_private = bool(validated_data.get("is_private", False))

        note = CaseNote.objects.create(
            case=case,
            user=requesting_user,
            note=text,
            is_private=is_private,
        )
        ActivityRecorder.record_safely(
            case,
            requesting_user,
            ActivityType.NOTE_ADDED,
            "Private note added" if is_private else "Note added",
        )
        return note


# ═══════════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════════


def _required_text(value: Any, name: str) -> str:
    if value is None or not str(value).strip():
        raise DomainError(f"'{name}' is required and must not be blank.")
    return str(value).strip()


def _resolve_assignee(value: Any) -> Any:
    """
    Turn a user instance or primary key into an assignable ``User``.

    ``None`` means unassigned.  The user must be active and hold a role
    in ``ASSIGNABLE_ROLES``.
    """
    if value is None or value == "":
        return None
    User = get_user_model()
    if isinstance(value, User):
        user = value
    else:
        user = User.objects.filter(pk=value).first()
        if user is None:
            raise DomainError(f"User with id {value} does not exist.")
    if not user.is_active:
        raise DomainError("Cases cannot be assigned to a deactivated user.")
    if user.role not in ASSIGNABLE_ROLES:
        raise DomainError("Read-only users cannot be assigned to cases.")
    return user


def _status_label(value: str) -> str:
    return CaseStatus(value).label if value in CaseStatus.values else value


def _record_update(
    case: Case,
    diff: CaseDiff,
    actor: Any,
) -> tuple[list[ActivityLog], list[NotificationEvent]]:
    """Activity entries and events for one effective update."""
    entries: list[ActivityLog | None] = []
    events: list[NotificationEvent] = []

    if "status" in diff:
        change = diff["status"]
        description = (
            f"Status changed from {_status_label(change.old)} "
            f"to {_status_label(change.new)}"
        )
        if change.new == CaseStatus.CLOSED:
            activity_type = ActivityType.CLOSED
        elif change.new == CaseStatus.ARCHIVED:
            activity_type = ActivityType.ARCHIVED
        else:
            activity_type = ActivityType.STATUS_CHANGED
        status_diff = diff.only(["status"])
        entries.append(ActivityRecorder.record_safely(
            case, actor, activity_type, description,
            status_diff.old_values(), status_diff.new_values(),
        ))
        events.append(NotificationEvent(
            CASE_STATUS_CHANGED, case.pk, actor_id=actor.pk, message=description,
        ))

    if "assigned_to" in diff:
        assignee = case.assigned_to
        description = (
            f"Case assigned to {assignee.display_name}" if assignee is not None
            else "Case unassigned"
        )
        assign_diff = diff.only(["assigned_to"])
        entries.append(ActivityRecorder.record_safely(
            case, actor, ActivityType.ASSIGNED, description,
            assign_diff.old_values(), assign_diff.new_values(),
        ))
        if assignee is not None:
            events.append(NotificationEvent(
                CASE_ASSIGNED, case.pk, actor_id=actor.pk, message=description,
            ))

    rest = diff.without(["status", "assigned_to"])
    if rest:
        description = f"Updated {', '.join(rest.fields)}"
        entries.append(ActivityRecorder.record_safely(
            case, actor, ActivityType.UPDATED, description,
            rest.old_values(), rest.new_values(),
        ))
        events.append(NotificationEvent(
            CASE_UPDATED, case.pk, actor_id=actor.pk, message=description,
        ))

    return [entry for entry in entries if entry is not None], events
