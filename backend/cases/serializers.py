"""
Cases app serializers.

Contains all Request and Response serializers for the Cases API.
Serializers handle field definitions, read/write constraints, and field-level
validation only.  **No business logic, state transitions or access
decisions live here** — those belong in ``services.py`` and
``core.domain.access``.

Structure
---------
1. Filter / query-param serializers
2. Case read serializers (list, detail)
3. Case write serializers (create, update)
4. Sub-resource serializers (activity, notes)
"""

from __future__ import annotations

from typing import Any

from django.contrib.auth import get_user_model
from rest_framework import serializers

from core.domain.access import case_capabilities

from .filters import ASSIGNMENT_CHOICES, CaseFilterCriteria
from .models import ActivityLog, Case, CaseNote, CasePriority, CaseStatus

User = get_user_model()


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseFilterSerializer(serializers.Serializer):
    """
    Validates query-parameter filters for ``GET /api/cases/`` and the
    export / analytics endpoints.

    All fields are optional.  ``to_criteria`` turns the validated data
    into a ``CaseFilterCriteria``.

    Query Parameters
    ----------------
    ``search``        : str   — case-insensitive substring of title,
                                case number, subject name or description
    ``status``        : str   — one of ``CaseStatus`` values
    ``case_type``     : str   — exact case type
    ``priority``      : str   — one of ``CasePriority`` values
    ``assignment``    : str   — ``assigned`` / ``unassigned`` / ``mine``
    ``created_from``  : date  — inclusive lower bound
    ``created_to``    : date  — inclusive upper bound
    """

    search = serializers.CharField(required=False, max_length=255, allow_blank=True)
    status = serializers.ChoiceField(choices=CaseStatus.choices, required=False)
    case_type = serializers.CharField(required=False, max_length=100, allow_blank=True)
    priority = serializers.ChoiceField(choices=CasePriority.choices, required=False)
    assignment = serializers.ChoiceField(
        choices=[(value, value.capitalize()) for value in ASSIGNMENT_CHOICES],
        required=False,
    )
    created_from = serializers.DateField(required=False)
    created_to = serializers.DateField(required=False)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        start = attrs.get("created_from")
        end = attrs.get("created_to")
        if start and end and start > end:
            raise serializers.ValidationError(
                "created_from must not be later than created_to."
            )
        return attrs

    def to_criteria(self) -> CaseFilterCriteria:
        data = self.validated_data
        return CaseFilterCriteria(
            search=data.get("search") or None,
            status=data.get("status"),
            case_type=data.get("case_type") or None,
            priority=data.get("priority"),
            assignment=data.get("assignment"),
            created_from=data.get("created_from"),
            created_to=data.get("created_to"),
        )


# ═══════════════════════════════════════════════════════════════════
#  2. Case Read Serializers
# ═══════════════════════════════════════════════════════════════════


class _UserSummarySerializer(serializers.Serializer):
    """Compact user representation used inside case payloads."""

    id = serializers.IntegerField(read_only=True)
    username = serializers.CharField(read_only=True)
    full_name = serializers.CharField(source="display_name", read_only=True)
    email = serializers.EmailField(read_only=True)
    role = serializers.CharField(read_only=True)


class CaseListSerializer(serializers.ModelSerializer):
    """Compact representation for the list endpoint."""

    status_display = serializers.CharField(source="get_status_display", read_only=True)
    priority_display = serializers.CharField(source="get_priority_display", read_only=True)
    assigned_to_name = serializers.SerializerMethodField()

    class Meta:
        model = Case
        fields = [
            "id",
            "case_number",
            "title",
            "case_type",
            "status",
            "status_display",
            "priority",
            "priority_display",
            "subject_name",
            "assigned_to",
            "assigned_to_name",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_assigned_to_name(self, obj: Case) -> str | None:
        if obj.assigned_to is None:
            return None
        return obj.assigned_to.display_name


class CaseDetailSerializer(serializers.ModelSerializer):
    """
    **Full case detail serializer.**

    Adds the personnel summaries and the requesting user's capabilities
    on this case so clients can show or hide edit controls.
    """

    created_by = _UserSummarySerializer(read_only=True)
    assigned_to = _UserSummarySerializer(read_only=True, allow_null=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    priority_display = serializers.CharField(source="get_priority_display", read_only=True)
    capabilities = serializers.SerializerMethodField()

    class Meta:
        model = Case
        fields = [
            "id",
            "case_number",
            "title",
            "description",
            "case_type",
            "status",
            "status_display",
            "priority",
            "priority_display",
            "created_by",
            "assigned_to",
            "subject_name",
            "date_of_birth",
            "contact_info",
            "last_known_location",
            "capabilities",
            "created_at",
            "updated_at",
            "closed_at",
            "archived_at",
        ]
        read_only_fields = fields

    def get_capabilities(self, obj: Case) -> dict[str, bool]:
        request = self.context.get("request")
        user = getattr(request, "user", None)
        caps = case_capabilities(user, obj)
        return {
            "view": caps.view,
            "edit": caps.edit,
            "assign": caps.assign,
            "create": caps.create,
            "manage_users": caps.manage_users,
        }


# ═══════════════════════════════════════════════════════════════════
#  3. Case Write Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseCreateSerializer(serializers.Serializer):
    """
    Validates input for ``POST /api/cases/``.

    ``case_number``, ``status`` and ``created_by`` are not accepted from
    the client; the service assigns them.
    """

    title = serializers.CharField(max_length=255)
    case_type = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    priority = serializers.ChoiceField(
        choices=CasePriority.choices,
        required=False,
        default=CasePriority.MEDIUM,
    )
    assigned_to = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.all(),
        required=False,
        allow_null=True,
    )
    subject_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    date_of_birth = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    contact_info = serializers.CharField(required=False, allow_blank=True, default="")
    last_known_location = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class CaseUpdateSerializer(serializers.Serializer):
    """
    Validates ``PATCH /api/cases/{id}/``.

    Every field is optional; only the keys present in the request body
    reach the service.  ``status`` is checked against the transition
    table by the service, not here.
    """

    title = serializers.CharField(max_length=255, required=False, allow_blank=True)
    case_type = serializers.CharField(max_length=100, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=CaseStatus.choices, required=False)
    priority = serializers.ChoiceField(choices=CasePriority.choices, required=False)
    assigned_to = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.all(),
        required=False,
        allow_null=True,
    )
    subject_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    date_of_birth = serializers.CharField(max_length=50, required=False, allow_blank=True)
    contact_info = serializers.CharField(required=False, allow_blank=True)
    last_known_location = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if not attrs:
            raise serializers.ValidationError("At least one field must be provided.")
        return attrs


# ═══════════════════════════════════════════════════════════════════
#  4. Sub-resource Serializers
# ═══════════════════════════════════════════════════════════════════


class ActivityLogSerializer(serializers.ModelSerializer):
    """Read-only serializer for the case audit trail."""

    user_name = serializers.SerializerMethodField()
    activity_type_display = serializers.CharField(
        source="get_activity_type_display",
        read_only=True,
    )

    class Meta:
        model = ActivityLog
        fields = [
            "id",
            "case",
            "user",
            "user_name",
            "activity_type",
            "activity_type_display",
            "description",
            "old_values",
            "new_values",
            "created_at",
        ]
        read_only_fields = fields

    def get_user_name(self, obj: ActivityLog) -> str | None:
        if obj.user is None:
            return None
        return obj.user.display_name


class CaseNoteSerializer(serializers.ModelSerializer):
    """Read representation of a ``CaseNote``."""

    user_name = serializers.SerializerMethodField()

    class Meta:
        model = CaseNote
        fields = [
            "id",
            "case",
            "user",
            "user_name",
            "note",
            "is_private",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_user_name(self, obj: CaseNote) -> str | None:
        if obj.user is None:
            return None
        return obj.user.display_name


class CaseNoteCreateSerializer(serializers.Serializer):
    note = serializers.CharField()
    is_private = serializers.BooleanField(required=False, default=False)
