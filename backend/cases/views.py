"""
Cases app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

No database queries, transition rules, or access decisions live here.

ViewSets
--------
- ``CaseViewSet``     — CRUD plus the activity / export @actions.
- ``CaseNoteViewSet`` — Notes nested under ``/api/cases/{case_pk}/notes/``.
"""

from __future__ import annotations

import logging

from django.http import HttpResponse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from .models import Case, CaseNote
from .reports import CaseExportService
from .serializers import (
    ActivityLogSerializer,
    CaseCreateSerializer,
    CaseDetailSerializer,
    CaseFilterSerializer,
    CaseListSerializer,
    CaseNoteCreateSerializer,
    CaseNoteSerializer,
    CaseUpdateSerializer,
)
from .services import CaseLifecycleService, CaseNoteService, CaseQueryService

logger = logging.getLogger(__name__)

_FILTER_PARAMETERS = [
    OpenApiParameter(name="search", type=str, location=OpenApiParameter.QUERY, description="Substring of title, case number, subject name or description."),
    OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY, description="Filter by case status."),
    OpenApiParameter(name="case_type", type=str, location=OpenApiParameter.QUERY, description="Filter by case type."),
    OpenApiParameter(name="priority", type=str, location=OpenApiParameter.QUERY, description="Filter by priority."),
    OpenApiParameter(name="assignment", type=str, location=OpenApiParameter.QUERY, description="'assigned', 'unassigned' or 'mine'."),
    OpenApiParameter(name="created_from", type=str, location=OpenApiParameter.QUERY, description="ISO 8601 date. Cases created on or after."),
    OpenApiParameter(name="created_to", type=str, location=OpenApiParameter.QUERY, description="ISO 8601 date. Cases created on or before."),
]


def _criteria_from(request: Request):
    filter_serializer = CaseFilterSerializer(data=request.query_params)
    filter_serializer.is_valid(raise_exception=True)
    return filter_serializer.to_criteria()


class CaseViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the cases app.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined.

    Permission Strategy
    -------------------
    The base permission is ``IsAuthenticated``.  Role and ownership
    checks are enforced exclusively inside the service layer.
    """

    permission_classes = [IsAuthenticated]
    queryset = Case.objects.none()

    # ── Standard CRUD ────────────────────────────────────────────────

    @extend_schema(
        summary="List cases",
        description="List cases visible to the authenticated user, newest first, with optional filtering.",
        parameters=_FILTER_PARAMETERS,
        responses={
            200: OpenApiResponse(response=CaseListSerializer(many=True), description="Filtered list of cases."),
            400: OpenApiResponse(description="Invalid filter value."),
        },
        tags=["Cases"],
    )
    def list(self, request: Request) -> Response:
        """GET /api/cases/"""
        cases = CaseQueryService.list_cases(request.user, _criteria_from(request))
        serializer = CaseListSerializer(cases, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Create a new case",
        description=(
            "Create a case in 'open' status.  The case number is allocated by "
            "the server.  Requires the admin or investigator role."
        ),
        request=CaseCreateSerializer,
        responses={
            201: OpenApiResponse(response=CaseDetailSerializer, description="Case created successfully."),
            400: OpenApiResponse(description="Validation error."),
            403: OpenApiResponse(description="Role cannot create cases."),
        },
        tags=["Cases"],
    )
    def create(self, request: Request) -> Response:
        """POST /api/cases/"""
        serializer = CaseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        mutation = CaseLifecycleService.create(serializer.validated_data, request.user)
        out = CaseDetailSerializer(mutation.case, context={"request": request})
        return Response(out.data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve case details",
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Full case detail."),
            404: OpenApiResponse(description="Case not found or not visible."),
        },
        tags=["Cases"],
    )
    def retrieve(self, request: Request, pk: int = None) -> Response:
        """GET /api/cases/{id}/"""
        case = CaseQueryService.get_case_detail(request.user, pk)
        serializer = CaseDetailSerializer(case, context={"request": request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Partially update case",
        description=(
            "Change any editable field, including status and assignee.  "
            "Status changes must follow the lifecycle state machine; "
            "changing the assignee requires the admin or investigator role."
        ),
        request=CaseUpdateSerializer,
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Case updated (or unchanged)."),
            400: OpenApiResponse(description="Validation error."),
            403: OpenApiResponse(description="Permission denied."),
            404: OpenApiResponse(description="Case not found."),
            409: OpenApiResponse(description="Invalid status transition."),
        },
        tags=["Cases"],
    )
    def partial_update(self, request: Request, pk: int = None) -> Response:
        """PATCH /api/cases/{id}/"""
        serializer = CaseUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        mutation = CaseLifecycleService.update(pk, serializer.validated_data, request.user)
        case = CaseQueryService.get_case_detail(request.user, mutation.case.pk)
        out = CaseDetailSerializer(case, context={"request": request})
        return Response(out.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Delete a case",
        description="Hard-delete a case with its notes, activity and documents. Admin only.",
        responses={
            204: OpenApiResponse(description="Case deleted."),
            403: OpenApiResponse(description="Permission denied. Requires Admin."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases"],
    )
    def destroy(self, request: Request, pk: int = None) -> Response:
        """DELETE /api/cases/{id}/"""
        CaseLifecycleService.delete(pk, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ── Sub-resource @actions ────────────────────────────────────────

    @action(detail=True, methods=["get"], url_path="activity")
    @extend_schema(
        summary="Case activity log",
        description="Activity entries for the case, newest first.",
        responses={
            200: OpenApiResponse(response=ActivityLogSerializer(many=True), description="Activity log."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases – Activity"],
    )
    def activity(self, request: Request, pk: int = None) -> Response:
        """GET /api/cases/{id}/activity/"""
        entries = CaseQueryService.get_activity(request.user, pk)
        serializer = ActivityLogSerializer(entries, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    # ── Export @actions ──────────────────────────────────────────────

    @action(detail=True, methods=["get"], url_path="export")
    @extend_schema(
        summary="Export case dossier",
        description=(
            "Download the full case report as a plain-text attachment named "
            "Case_<case_number>_Export.txt.  Requires the admin or investigator role."
        ),
        responses={
            (200, "text/plain"): OpenApiTypes.STR,
            403: OpenApiResponse(description="Role cannot export."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases – Export"],
    )
    def export(self, request: Request, pk: int = None) -> HttpResponse:
        """GET /api/cases/{id}/export/"""
        filename, content = CaseExportService.export_case(request.user, pk)
        response = HttpResponse(content, content_type="text/plain; charset=utf-8")
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response

    @action(detail=False, methods=["get"], url_path="export-csv")
    @extend_schema(
        summary="Export case list as CSV",
        parameters=_FILTER_PARAMETERS,
        responses={
            (200, "text/csv"): OpenApiTypes.STR,
            403: OpenApiResponse(description="Role cannot export."),
        },
        tags=["Cases – Export"],
    )
    def export_csv(self, request: Request) -> HttpResponse:
        """GET /api/cases/export-csv/"""
        content = CaseExportService.export_csv(request.user, _criteria_from(request))
        response = HttpResponse(content, content_type="text/csv; charset=utf-8")
        response["Content-Disposition"] = 'attachment; filename="cases.csv"'
        return response


class CaseNoteViewSet(viewsets.ViewSet):
    """
    Notes of one case, routed through ``NestedDefaultRouter``.

    Private notes of other users are filtered out by the service unless
    the requester is an administrator.
    """

    permission_classes = [IsAuthenticated]
    queryset = CaseNote.objects.none()

    @extend_schema(
        summary="List case notes",
        responses={
            200: OpenApiResponse(response=CaseNoteSerializer(many=True), description="Visible notes, newest first."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases – Notes"],
    )
    def list(self, request: Request, case_pk: int = None) -> Response:
        """GET /api/cases/{case_pk}/notes/"""
        notes = CaseNoteService.list_notes(request.user, case_pk)
        serializer = CaseNoteSerializer(notes, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Add a note",
        request=CaseNoteCreateSerializer,
        responses={
            201: OpenApiResponse(response=CaseNoteSerializer, description="Note created."),
            400: OpenApiResponse(description="Blank note."),
            403: OpenApiResponse(description="Cannot edit this case."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases – Notes"],
    )
    def create(self, request: Request, case_pk: int = None) -> Response:
        """POST /api/cases/{case_pk}/notes/"""
        serializer = CaseNoteCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        note = CaseNoteService.add_note(case_pk, serializer.validated_data, request.user)
        return Response(CaseNoteSerializer(note).data, status=status.HTTP_201_CREATED)
