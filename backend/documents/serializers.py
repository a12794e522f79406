"""
Documents app serializers.
"""

from __future__ import annotations

from rest_framework import serializers

from .models import CaseDocument


class CaseDocumentSerializer(serializers.ModelSerializer):
    """Read-only representation of a ``CaseDocument``."""

    uploaded_by_name = serializers.SerializerMethodField()

    class Meta:
        model = CaseDocument
        fields = [
            "id",
            "case",
            "file_name",
            "file_path",
            "file_size",
            "mime_type",
            "uploaded_by",
            "uploaded_by_name",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_uploaded_by_name(self, obj: CaseDocument) -> str | None:
        if obj.uploaded_by is None:
            return None
        return obj.uploaded_by.display_name


class CaseDocumentUploadSerializer(serializers.Serializer):
    """
    Validates ``POST /api/cases/{case_pk}/documents/`` (multipart).

    Size limits are enforced by the service so that the same rule applies
    to every caller.
    """

    file = serializers.FileField(allow_empty_file=False)
