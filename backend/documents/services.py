"""
Documents app Service Layer.

Architecture
------------
- ``DocumentService`` — upload / list / download / delete of case
  documents, plus the blob purge used when a whole case is deleted.

Blob and metadata row are kept consistent with a two-phase protocol:

* upload:  blob first, then row; if the row cannot be written the blob
  is removed again.
* delete:  blob first, then row; if the blob cannot be removed the row
  is kept and ``StorageFailure`` is raised, so nothing ever points at a
  missing object.
"""

from __future__ import annotations

import logging
import os
import time
from typing import IO, Any

from django.conf import settings
from django.db import transaction

from cases.services import CaseQueryService
from core.domain.access import can_edit, require_capability, role_of
from core.domain.exceptions import DomainError, NotFound, StorageFailure

from .models import CaseDocument
from .storage import BlobStorage

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_SIZE = 50 * 1024 * 1024


def build_storage_key(user_id: Any, file_name: str, *, now: float | None = None) -> str:
    """``<user_id>/<epoch millis><ext>``, e.g. ``12/1718000000000.pdf``."""
    millis = int((time.time() if now is None else now) * 1000)
    _, ext = os.path.splitext(file_name or "")
    return f"{user_id}/{millis}{ext.lower()}"


class DocumentService:
    """
    Case document operations.

    Instantiated (rather than all-static like the other services) so a
    different ``BlobStorage`` can be injected.
    """

    def __init__(self, storage: BlobStorage | None = None) -> None:
        self.storage = storage or BlobStorage()

    # ── Reads ───────────────────────────────────────────────────────

    def list_documents(self, requesting_user: Any, case_id: Any) -> list[CaseDocument]:
        case = CaseQueryService.get_case_detail(requesting_user, case_id)
        return list(
            CaseDocument.objects.filter(case=case)
            .select_related("uploaded_by")
            .order_by("-created_at", "-id")
        )

    def get_document(self, requesting_user: Any, case_id: Any, document_id: Any) -> CaseDocument:
        case = CaseQueryService.get_case_detail(requesting_user, case_id)
        try:
            return CaseDocument.objects.select_related("case", "uploaded_by").get(
                pk=document_id, case=case,
            )
        except (CaseDocument.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Document with id {document_id} was not found.")

    def download(
        self,
        requesting_user: Any,
        case_id: Any,
        document_id: Any,
    ) -> tuple[CaseDocument, IO]:
        """
        Open the blob of a document the user may view.

        Returns
        -------
        tuple[CaseDocument, file]
            The metadata row and a binary file handle; the caller closes it.
        """
        document = self.get_document(requesting_user, case_id, document_id)
        return document, self.storage.open(document.file_path)

    # ── Writes ──────────────────────────────────────────────────────

    def upload(self, case_id: Any, uploaded_file: Any, requesting_user: Any) -> CaseDocument:
        """
        Store ``uploaded_file`` and attach it to the case.

        Raises
        ------
        NotFound
            Case missing or invisible.
        PermissionDenied
            User may not edit the case.
        DomainError
            Empty file or file above ``DOCUMENT_MAX_UPLOAD_SIZE``.
        StorageFailure
            The blob store rejected the upload.
        """
        case = CaseQueryService.get_case_detail(requesting_user, case_id)
        require_capability(
            can_edit(role_of(requesting_user), requesting_user.pk, case),
            "You cannot upload documents to this case.",
        )

        size = getattr(uploaded_file, "size", None) or 0
        max_size = getattr(settings, "DOCUMENT_MAX_UPLOAD_SIZE", DEFAULT_MAX_UPLOAD_SIZE)
        if size <= 0:
            raise DomainError("Uploaded file is empty.")
        if size > max_size:
            raise DomainError(f"File exceeds the maximum upload size of {max_size} bytes.")

        file_name = os.path.basename(getattr(uploaded_file, "name", "") or "document")
        key = self.storage.put(build_storage_key(requesting_user.pk, file_name), uploaded_file)

        try:
            with transaction.atomic():
                document = CaseDocument.objects.create(
                    case=case,
                    file_name=file_name,
                    file_path=key,
                    file_size=size,
                    mime_type=getattr(uploaded_file, "content_type", "") or "",
                    uploaded_by=requesting_user,
                )
        except Exception:
            logger.exception("Document row for %s could not be saved; removing blob.", key)
            try:
                self.storage.delete(key)
            except StorageFailure:
                logger.error("Orphaned blob left behind: %s", key)
            raise

        logger.info(
            "Document #%d (%s) uploaded to case %s by user %s",
            document.pk, file_name, case.case_number, requesting_user.pk,
        )
        return document

    def delete(self, requesting_user: Any, case_id: Any, document_id: Any) -> None:
        """
        Remove a document: blob first, then the row.

        Raises
        ------
        StorageFailure
            Blob deletion failed; the row is left untouched.
        """
        document = self.get_document(requesting_user, case_id, document_id)
        require_capability(
            can_edit(role_of(requesting_user), requesting_user.pk, document.case),
            "You cannot delete documents from this case.",
        )

        self.storage.delete(document.file_path)
        document_pk = document.pk
        document.delete()
        logger.info(
            "Document #%d deleted from case %s by user %s",
            document_pk, document.case.case_number, requesting_user.pk,
        )

    def purge_case_blobs(self, case: Any) -> int:
        """
        Best-effort removal of every blob of ``case`` before the case
        itself is deleted.  Failures are logged; returns the number of
        blobs removed.
        """
        removed = 0
        for key in CaseDocument.objects.filter(case=case).values_list("file_path", flat=True):
            try:
                self.storage.delete(key)
            except StorageFailure:
                logger.warning("Could not remove blob %s of case %s.", key, case.case_number)
                continue
            removed += 1
        return removed
