"""
Documents app ViewSets.

``CaseDocumentViewSet`` is nested under ``/api/cases/{case_pk}/`` and
delegates every decision to ``DocumentService``.
"""

from __future__ import annotations

from django.http import FileResponse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from .models import CaseDocument
from .serializers import CaseDocumentSerializer, CaseDocumentUploadSerializer
from .services import DocumentService


class CaseDocumentViewSet(viewsets.ViewSet):
    """
    Documents of one case.

    Listing and download need view access to the case; upload and
    delete need edit access.
    """

    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]
    queryset = CaseDocument.objects.none()

    def get_service(self) -> DocumentService:
        return DocumentService()

    @extend_schema(
        summary="List case documents",
        responses={
            200: OpenApiResponse(response=CaseDocumentSerializer(many=True), description="Documents, newest first."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Documents"],
    )
    def list(self, request: Request, case_pk: int = None) -> Response:
        """GET /api/cases/{case_pk}/documents/"""
        documents = self.get_service().list_documents(request.user, case_pk)
        return Response(CaseDocumentSerializer(documents, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Upload a document",
        request={"multipart/form-data": CaseDocumentUploadSerializer},
        responses={
            201: OpenApiResponse(response=CaseDocumentSerializer, description="Document stored."),
            400: OpenApiResponse(description="Missing, empty or oversized file."),
            403: OpenApiResponse(description="Cannot edit this case."),
            404: OpenApiResponse(description="Case not found."),
            502: OpenApiResponse(description="Blob storage failure."),
        },
        tags=["Documents"],
    )
    def create(self, request: Request, case_pk: int = None) -> Response:
        """POST /api/cases/{case_pk}/documents/"""
        serializer = CaseDocumentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        document = self.get_service().upload(
            case_pk, serializer.validated_data["file"], request.user,
        )
        return Response(CaseDocumentSerializer(document).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Delete a document",
        description="Removes the stored blob, then the metadata row.  If the blob cannot be removed the document is kept.",
        responses={
            204: OpenApiResponse(description="Document deleted."),
            403: OpenApiResponse(description="Cannot edit this case."),
            404: OpenApiResponse(description="Document not found."),
            502: OpenApiResponse(description="Blob storage failure; document kept."),
        },
        tags=["Documents"],
    )
    def destroy(self, request: Request, case_pk: int = None, pk: int = None) -> Response:
        """DELETE /api/cases/{case_pk}/documents/{id}/"""
        self.get_service().delete(request.user, case_pk, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get"], url_path="download")
    @extend_schema(
        summary="Download a document",
        responses={
            (200, "application/octet-stream"): OpenApiTypes.BINARY,
            404: OpenApiResponse(description="Document not found."),
            502: OpenApiResponse(description="Blob storage failure."),
        },
        tags=["Documents"],
    )
    def download(self, request: Request, case_pk: int = None, pk: int = None) -> FileResponse:
        """GET /api/cases/{case_pk}/documents/{id}/download/"""
        document, handle = self.get_service().download(request.user, case_pk, pk)
        return FileResponse(
            handle,
            as_attachment=True,
            filename=document.file_name,
            content_type=document.mime_type or "application/octet-stream",
        )
