"""
Service-level tests for ``CaseLifecycleService`` and ``ActivityRecorder``.

Covers create invariants, the status state machine, no-op updates,
activity entries and the events each mutation produces.
"""

from __future__ import annotations

import pytest
from django.db import DatabaseError

from cases.models import ActivityLog, ActivityType, Case, CaseNote, CaseStatus
from cases.services import (
    ActivityRecorder,
    CaseLifecycleService,
    validate_transition,
)
from core.domain.exceptions import (
    Conflict,
    DomainError,
    InvalidTransition,
    NotFound,
    PermissionDenied,
)
from core.domain.notifications import (
    CASE_ASSIGNED,
    CASE_CREATED,
    CASE_STATUS_CHANGED,
    CASE_UPDATED,
)

pytestmark = pytest.mark.django_db


def _event_types(mutation):
    return [event.event_type for event in mutation.events]


# ═══════════════════════════════════════════════════════════════════
#  Create
# ═══════════════════════════════════════════════════════════════════


class TestCreate:

    def test_create_forces_open_status_and_creator(self, create_user):
        investigator = create_user(role="investigator")
        mutation = CaseLifecycleService.create(
            {"title": " Missing hiker ", "case_type": "missing_person", "status": "closed"},
            investigator,
            number_generator=lambda: "SI-TEST-001",
        )
        case = mutation.case

        assert case.status == CaseStatus.OPEN
        assert case.created_by == investigator
        assert case.case_number == "SI-TEST-001"
        assert case.title == "Missing hiker"
        assert case.priority == "medium"
        assert case.closed_at is None and case.archived_at is None

    def test_create_writes_exactly_one_created_entry(self, create_user):
        investigator = create_user(role="investigator")
        case = CaseLifecycleService.create(
            {"title": "Fraud", "case_type": "fraud"}, investigator,
        ).case

        entries = ActivityLog.objects.filter(case=case)
        assert entries.count() == 1
        entry = entries.get()
        assert entry.activity_type == ActivityType.CREATED
        assert entry.user == investigator
        assert entry.new_values["status"] == "open"

    def test_create_emits_created_event(self, create_user):
        mutation = CaseLifecycleService.create(
            {"title": "Fraud", "case_type": "fraud"}, create_user(role="admin"),
        )
        assert _event_types(mutation) == [CASE_CREATED]

    def test_create_with_assignee_also_emits_assigned(self, create_user):
        volunteer = create_user(role="volunteer")
        mutation = CaseLifecycleService.create(
            {"title": "Fraud", "case_type": "fraud", "assigned_to": volunteer.pk},
            create_user(role="investigator"),
        )
        assert mutation.case.assigned_to == volunteer
        assert _event_types(mutation) == [CASE_CREATED, CASE_ASSIGNED]

    def test_case_numbers_are_unique(self, make_case):
        numbers = {make_case().case_number for _ in range(5)}
        assert len(numbers) == 5

    @pytest.mark.parametrize("role", ["volunteer", "readonly"])
    def test_roles_without_create_right_are_rejected(self, create_user, role):
        with pytest.raises(PermissionDenied):
            CaseLifecycleService.create(
                {"title": "Fraud", "case_type": "fraud"}, create_user(role=role),
            )
        assert not Case.objects.exists()

    @pytest.mark.parametrize("data", [
        {"title": "   ", "case_type": "fraud"},
        {"title": "Fraud", "case_type": ""},
        {"case_type": "fraud"},
    ])
    def test_blank_required_fields_are_rejected(self, create_user, data):
        with pytest.raises(DomainError):
            CaseLifecycleService.create(data, create_user(role="investigator"))

    def test_readonly_user_cannot_be_assignee(self, create_user):
        readonly = create_user(role="readonly")
        with pytest.raises(DomainError):
            CaseLifecycleService.create(
                {"title": "Fraud", "case_type": "fraud", "assigned_to": readonly.pk},
                create_user(role="investigator"),
            )

    def test_inactive_user_cannot_be_assignee(self, create_user):
        inactive = create_user(role="investigator", is_active=False)
        with pytest.raises(DomainError):
            CaseLifecycleService.create(
                {"title": "Fraud", "case_type": "fraud", "assigned_to": inactive},
                create_user(role="investigator"),
            )


# ═══════════════════════════════════════════════════════════════════
#  Transitions
# ═══════════════════════════════════════════════════════════════════


class TestValidateTransition:

    @pytest.mark.parametrize("current,target", [
        ("open", "in_progress"),
        ("open", "closed"),
        ("in_progress", "closed"),
        ("in_progress", "open"),
        ("closed", "archived"),
        ("closed", "open"),
    ])
    def test_allowed(self, current, target):
        validate_transition(current, target, "investigator")

    @pytest.mark.parametrize("current,target", [
        ("open", "archived"),
        ("in_progress", "archived"),
        ("closed", "in_progress"),
        ("archived", "closed"),
        ("archived", "in_progress"),
        ("open", "deleted"),
    ])
    def test_rejected(self, current, target):
        with pytest.raises(InvalidTransition):
            validate_transition(current, target, "admin")

    def test_reopening_archived_is_admin_only(self):
        validate_transition("archived", "open", "admin")
        with pytest.raises(InvalidTransition):
            validate_transition("archived", "open", "investigator")

    def test_invalid_transition_is_a_conflict(self):
        with pytest.raises(Conflict):
            validate_transition("open", "archived", "admin")


# ═══════════════════════════════════════════════════════════════════
#  Update
# ═══════════════════════════════════════════════════════════════════


class TestUpdate:

    def test_status_change_logs_and_emits(self, make_case, create_user):
        investigator = create_user(role="investigator")
        case = make_case(created_by=investigator)

        mutation = CaseLifecycleService.update(case.pk, {"status": "in_progress"}, investigator)

        assert mutation.changed
        assert _event_types(mutation) == [CASE_STATUS_CHANGED]
        assert [e.activity_type for e in mutation.activity] == [ActivityType.STATUS_CHANGED]
        entry = mutation.activity[0]
        assert entry.old_values == {"status": "open"}
        assert entry.new_values == {"status": "in_progress"}
        assert entry.description == "Status changed from Open to In Progress"

    def test_closing_stamps_closed_at(self, make_case, create_user):
        investigator = create_user(role="investigator")
        case = make_case(created_by=investigator)

        mutation = CaseLifecycleService.update(case.pk, {"status": "closed"}, investigator)

        case.refresh_from_db()
        assert case.status == CaseStatus.CLOSED
        assert case.closed_at is not None
        assert mutation.activity[0].activity_type == ActivityType.CLOSED

    def test_archive_then_admin_reopen_clears_stamps(self, make_case, create_user):
        admin = create_user(role="admin")
        case = make_case(created_by=admin)
        CaseLifecycleService.update(case.pk, {"status": "closed"}, admin)
        archived = CaseLifecycleService.update(case.pk, {"status": "archived"}, admin)
        assert archived.activity[0].activity_type == ActivityType.ARCHIVED

        CaseLifecycleService.update(case.pk, {"status": "open"}, admin)

        case.refresh_from_db()
        assert case.status == CaseStatus.OPEN
        assert case.closed_at is None
        assert case.archived_at is None

    def test_investigator_cannot_reopen_archived(self, make_case, create_user):
        admin = create_user(role="admin")
        investigator = create_user(role="investigator")
        case = make_case(created_by=admin)
        CaseLifecycleService.update(case.pk, {"status": "closed"}, admin)
        CaseLifecycleService.update(case.pk, {"status": "archived"}, admin)

        with pytest.raises(InvalidTransition):
            CaseLifecycleService.update(case.pk, {"status": "open"}, investigator)
        case.refresh_from_db()
        assert case.status == CaseStatus.ARCHIVED

    def test_invalid_transition_leaves_case_untouched(self, make_case, create_user):
        investigator = create_user(role="investigator")
        case = make_case(created_by=investigator)

        with pytest.raises(InvalidTransition):
            CaseLifecycleService.update(
                case.pk, {"status": "archived", "title": "Renamed"}, investigator,
            )

        case.refresh_from_db()
        assert case.status == CaseStatus.OPEN
        assert case.title == "Missing hiker"
        assert ActivityLog.objects.filter(case=case).count() == 1

    def test_noop_update_writes_nothing(self, make_case, create_user):
        investigator = create_user(role="investigator")
        case = make_case(created_by=investigator, priority="high")
        updated_at = case.updated_at

        mutation = CaseLifecycleService.update(
            case.pk,
            {"status": "open", "title": "Missing hiker", "priority": "high"},
            investigator,
        )

        assert not mutation.changed
        assert mutation.events == []
        assert mutation.activity == []
        case.refresh_from_db()
        assert case.updated_at == updated_at
        assert ActivityLog.objects.filter(case=case).count() == 1

    def test_field_edit_records_only_changed_fields(self, make_case, create_user):
        investigator = create_user(role="investigator")
        case = make_case(created_by=investigator, description="old")

        mutation = CaseLifecycleService.update(
            case.pk,
            {"description": "new", "title": "Missing hiker", "subject_name": "J. Doe"},
            investigator,
        )

        assert mutation.diff.fields == ["description", "subject_name"]
        assert _event_types(mutation) == [CASE_UPDATED]
        entry = mutation.activity[0]
        assert entry.activity_type == ActivityType.UPDATED
        assert entry.old_values == {"description": "old", "subject_name": ""}
        assert entry.new_values == {"description": "new", "subject_name": "J. Doe"}

    def test_assignment_logs_and_notifies_assignee(self, make_case, create_user):
        investigator = create_user(role="investigator")
        volunteer = create_user(role="volunteer")
        case = make_case(created_by=investigator)

        mutation = CaseLifecycleService.update(case.pk, {"assigned_to": volunteer.pk}, investigator)

        assert _event_types(mutation) == [CASE_ASSIGNED]
        entry = mutation.activity[0]
        assert entry.activity_type == ActivityType.ASSIGNED
        assert entry.old_values == {"assigned_to": None}
        assert entry.new_values == {"assigned_to": volunteer.pk}

    def test_unassignment_is_logged_without_event(self, make_case, create_user):
        investigator = create_user(role="investigator")
        case = make_case(created_by=investigator, assigned_to=investigator.pk)

        mutation = CaseLifecycleService.update(case.pk, {"assigned_to": None}, investigator)

        assert mutation.events == []
        assert mutation.activity[0].description == "Case unassigned"

    def test_combined_patch_produces_one_entry_per_concern(self, make_case, create_user):
        investigator = create_user(role="investigator")
        case = make_case(created_by=investigator)

        mutation = CaseLifecycleService.update(
            case.pk,
            {"status": "in_progress", "assigned_to": investigator.pk, "priority": "urgent"},
            investigator,
        )

        assert _event_types(mutation) == [CASE_STATUS_CHANGED, CASE_ASSIGNED, CASE_UPDATED]
        assert [e.activity_type for e in mutation.activity] == [
            ActivityType.STATUS_CHANGED,
            ActivityType.ASSIGNED,
            ActivityType.UPDATED,
        ]

    def test_volunteer_cannot_reassign(self, make_case, create_user):
        investigator = create_user(role="investigator")
        volunteer = create_user(role="volunteer")
        case = make_case(created_by=investigator, assigned_to=volunteer.pk)

        with pytest.raises(PermissionDenied):
            CaseLifecycleService.update(case.pk, {"assigned_to": investigator.pk}, volunteer)

    def test_volunteer_can_edit_assigned_case(self, make_case, create_user):
        volunteer = create_user(role="volunteer")
        case = make_case(assigned_to=volunteer.pk)

        mutation = CaseLifecycleService.update(case.pk, {"status": "in_progress"}, volunteer)
        assert mutation.case.status == CaseStatus.IN_PROGRESS

    def test_readonly_cannot_edit(self, make_case, create_user):
        case = make_case()
        with pytest.raises(PermissionDenied):
            CaseLifecycleService.update(case.pk, {"title": "x"}, create_user(role="readonly"))

    def test_blanking_title_is_rejected(self, make_case, create_user):
        investigator = create_user(role="investigator")
        case = make_case(created_by=investigator)
        with pytest.raises(DomainError):
            CaseLifecycleService.update(case.pk, {"title": "  "}, investigator)

    @pytest.mark.parametrize("field", [
        "description", "subject_name", "date_of_birth", "contact_info", "last_known_location",
    ])
    def test_clearing_optional_text_with_none_stores_blank(self, make_case, create_user, field):
        investigator = create_user(role="investigator")
        case = make_case(created_by=investigator, **{field: "something"})

        mutation = CaseLifecycleService.update(case.pk, {field: None}, investigator)

        case.refresh_from_db()
        assert getattr(case, field) == ""
        assert mutation.activity[0].new_values == {field: ""}

    def test_none_for_already_blank_field_is_a_noop(self, make_case, create_user):
        investigator = create_user(role="investigator")
        case = make_case(created_by=investigator)

        mutation = CaseLifecycleService.update(case.pk, {"subject_name": None}, investigator)

        assert not mutation.changed

    def test_failed_activity_write_keeps_the_update(self, make_case, create_user, monkeypatch):
        investigator = create_user(role="investigator")
        case = make_case(created_by=investigator)

        def broken_create(**kwargs):
            raise DatabaseError("activity table unavailable")

        monkeypatch.setattr(ActivityLog.objects, "create", broken_create)
        mutation = CaseLifecycleService.update(case.pk, {"status": "in_progress"}, investigator)

        case.refresh_from_db()
        assert case.status == CaseStatus.IN_PROGRESS
        assert mutation.activity == []
        assert _event_types(mutation) == [CASE_STATUS_CHANGED]

    def test_volunteer_cannot_see_foreign_case(self, make_case, create_user):
        case = make_case()
        with pytest.raises(NotFound):
            CaseLifecycleService.update(case.pk, {"title": "x"}, create_user(role="volunteer"))


# ═══════════════════════════════════════════════════════════════════
#  Delete & activity log
# ═══════════════════════════════════════════════════════════════════


class TestDeleteAndActivity:

    def test_admin_delete_cascades(self, make_case, create_user):
        admin = create_user(role="admin")
        case = make_case(created_by=admin)
        CaseNote.objects.create(case=case, user=admin, note="n")

        CaseLifecycleService.delete(case.pk, admin)

        assert not Case.objects.filter(pk=case.pk).exists()
        assert not ActivityLog.objects.filter(case_id=case.pk).exists()
        assert not CaseNote.objects.filter(case_id=case.pk).exists()

    def test_investigator_cannot_delete(self, make_case, create_user):
        case = make_case()
        with pytest.raises(PermissionDenied):
            CaseLifecycleService.delete(case.pk, create_user(role="investigator"))

    def test_delete_missing_case(self, create_user):
        with pytest.raises(NotFound):
            CaseLifecycleService.delete(123456, create_user(role="admin"))

    def test_activity_entries_are_immutable(self, make_case):
        entry = ActivityLog.objects.get(case=make_case())
        entry.description = "rewritten"
        with pytest.raises(Conflict):
            entry.save()
        with pytest.raises(Conflict):
            entry.delete()

    def test_blank_activity_description_rejected(self, make_case):
        with pytest.raises(DomainError):
            ActivityRecorder.record(make_case(), None, ActivityType.UPDATED, "   ")

    def test_history_is_newest_first(self, make_case, create_user):
        investigator = create_user(role="investigator")
        case = make_case(created_by=investigator)
        CaseLifecycleService.update(case.pk, {"status": "in_progress"}, investigator)

        history = ActivityRecorder.history(case)
        assert [e.activity_type for e in history] == [
            ActivityType.STATUS_CHANGED,
            ActivityType.CREATED,
        ]
