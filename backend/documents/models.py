"""
Documents app models.

A ``CaseDocument`` row is the metadata half of an uploaded file; the
bytes live in blob storage under ``file_path``.  The two are created
and removed by ``documents.services.DocumentService`` so they never
drift apart silently.
"""

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


class CaseDocument(TimeStampedModel):
    """File attached to a case."""

    case = models.ForeignKey(
        "cases.Case",
        on_delete=models.CASCADE,
        related_name="documents",
        verbose_name="Case",
    )
    file_name = models.CharField(
        max_length=255,
        verbose_name="Original File Name",
    )
    file_path = models.CharField(
        max_length=500,
        unique=True,
        verbose_name="Storage Key",
        help_text="Opaque key in blob storage, e.g. '12/1718000000000.pdf'.",
    )
    file_size = models.PositiveBigIntegerField(
        verbose_name="Size (bytes)",
    )
    mime_type = models.CharField(
        max_length=255,
        blank=True,
        default="",
        verbose_name="MIME Type",
    )
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="uploaded_documents",
        verbose_name="Uploaded By",
    )

    class Meta:
        verbose_name = "Case Document"
        verbose_name_plural = "Case Documents"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.file_name} (case {self.case_id})"
