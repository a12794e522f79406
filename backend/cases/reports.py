"""
Case dossier and CSV exports.

``CaseReportExporter`` rebuilds the full picture of one case (record,
activity, notes, documents) as a fixed-layout plain-text report.  The
output depends only on the data passed in: timestamps are rendered in
UTC and the "Generated on" line appears only when the caller supplies
``generated_at``, so identical data always yields identical bytes.

The "password" printed in the footer is the case number.  It is a
label carried over from the paper dossier format, not encryption.
"""

from __future__ import annotations

import csv
import datetime
import io
import logging
from typing import Any, Iterable, Sequence

from django.utils import timezone

from core.domain.access import can_bulk_export, can_export, require_capability, role_of

from .changes import snapshot_lines
from .filters import CaseFilterCriteria
from .services import CaseQueryService

logger = logging.getLogger(__name__)

RULE = "=" * 80
DIVIDER = "-" * 80
LABEL_WIDTH = 20

CSV_HEADER = ("Case Number", "Title", "Type", "Status", "Priority", "Created Date")


def format_timestamp(value: datetime.datetime | None) -> str:
    """``YYYY-MM-DD HH:MM:SS UTC``; naive values are taken as UTC."""
    if value is None:
        return "N/A"
    if timezone.is_aware(value):
        value = value.astimezone(datetime.timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


def report_filename(case: Any) -> str:
    return f"Case_{case.case_number}_Export.txt"


def _field(label: str, value: Any) -> str:
    return f"{label + ':':<{LABEL_WIDTH}}{value}"


def _person(user: Any) -> str:
    if user is None:
        return "Unknown User"
    return user.display_name or "Unknown User"


def _section(title: str) -> list[str]:
    return ["", f"{title}:", DIVIDER]


def _centered(text: str) -> str:
    return text.center(80).rstrip()


# ═══════════════════════════════════════════════════════════════════
#  Dossier
# ═══════════════════════════════════════════════════════════════════


class CaseReportExporter:
    """
    Renders the plain-text case dossier.

    ``render`` is pure; ``export`` loads the related rows from the
    database first.
    """

    @staticmethod
    def export(case: Any, *, generated_at: datetime.datetime | None = None) -> str:
        activity = list(case.activity.select_related("user").order_by("-created_at", "-id"))
        notes = list(case.notes.select_related("user").order_by("-created_at", "-id"))
        documents = list(case.documents.order_by("-created_at", "-id"))
        return CaseReportExporter.render(
            case, activity, notes, documents, generated_at=generated_at
        )

    @staticmethod
    def render(
        case: Any,
        activity: Sequence[Any],
        notes: Sequence[Any],
        documents: Sequence[Any],
        *,
        generated_at: datetime.datetime | None = None,
    ) -> str:
        """
        Build the report text.

        ``activity``, ``notes`` and ``documents`` are rendered in the
        order given; callers pass them newest first.
        """
        lines: list[str] = [
            RULE,
            _centered("CASE EXPORT REPORT"),
            RULE,
        ]

        # ── Case information ────────────────────────────────────────
        lines += _section("CASE INFORMATION")
        lines += [
            _field("Case Number", case.case_number),
            _field("Title", case.title),
            _field("Case Type", case.case_type),
            _field("Status", case.status),
            _field("Priority", case.priority or "medium"),
            _field("Created", format_timestamp(case.created_at)),
            _field("Last Updated", format_timestamp(case.updated_at)),
        ]
        if case.closed_at:
            lines.append(_field("Closed", format_timestamp(case.closed_at)))
        if case.archived_at:
            lines.append(_field("Archived", format_timestamp(case.archived_at)))

        # ── Personnel ───────────────────────────────────────────────
        lines += _section("PERSONNEL")
        creator = case.created_by
        lines.append(_field(
            "Created By",
            f"{_person(creator)} ({getattr(creator, 'email', '') or 'N/A'})",
        ))
        if case.assigned_to is not None:
            assignee = case.assigned_to
            lines.append(_field(
                "Assigned To",
                f"{_person(assignee)} ({assignee.email or 'N/A'})",
            ))
        else:
            lines.append("Not Assigned")

        # ── Subject ─────────────────────────────────────────────────
        lines += _section("SUBJECT INFORMATION")
        for label, value, missing in (
            ("Subject Name", case.subject_name, "No subject name provided"),
            ("Date of Birth", case.date_of_birth, "No date of birth provided"),
            ("Contact Info", case.contact_info, "No contact information provided"),
            ("Last Known Location", case.last_known_location, "No location information provided"),
        ):
            lines.append(_field(label, value) if value else missing)

        lines += _section("CASE DESCRIPTION")
        lines.append(case.description or "No description provided")

        # ── Documents ───────────────────────────────────────────────
        lines += _section(f"CASE DOCUMENTS ({len(documents)})")
        if documents:
            for doc in documents:
                size_mb = doc.file_size / 1024 / 1024
                lines.append(
                    f"- {doc.file_name} ({size_mb:.2f} MB) - "
                    f"Uploaded: {format_timestamp(doc.created_at)}"
                )
        else:
            lines.append("No documents attached")

        # ── Activity ────────────────────────────────────────────────
        lines += _section(f"ACTIVITY LOG ({len(activity)} entries)")
        if activity:
            for index, entry in enumerate(activity):
                if index:
                    lines.append(DIVIDER)
                lines.append(f"{format_timestamp(entry.created_at)} - {_person(entry.user)}")
                lines.append(f"Type: {entry.activity_type.upper()}")
                lines.append(entry.description)
                if entry.old_values:
                    lines.append("Previous:")
                    lines += [f"  {line}" for line in snapshot_lines(entry.old_values)]
                if entry.new_values:
                    lines.append("New:")
                    lines += [f"  {line}" for line in snapshot_lines(entry.new_values)]
        else:
            lines.append("No activity recorded")

        # ── Notes ───────────────────────────────────────────────────
        lines += _section(f"CASE NOTES ({len(notes)} entries)")
        if notes:
            for index, note in enumerate(notes):
                if index:
                    lines.append(DIVIDER)
                visibility = "(PRIVATE)" if note.is_private else "(PUBLIC)"
                lines.append(f"{format_timestamp(note.created_at)} - {_person(note.user)} {visibility}")
                lines.append(note.note)
        else:
            lines.append("No notes recorded")

        # ── Footer ──────────────────────────────────────────────────
        lines += [
            "",
            RULE,
            _centered("END OF CASE EXPORT REPORT"),
            _centered(f"Password: {case.case_number}"),
            RULE,
            "",
            "IMPORTANT SECURITY NOTICE:",
            "This file contains sensitive case information. The password for this export is",
            f"the case number: {case.case_number}",
            "",
        ]
        if generated_at is not None:
            lines.append(f"Generated on: {format_timestamp(generated_at)}")
        lines += [
            "Export Type: Complete Case Data Export",
            "Confidentiality: RESTRICTED",
        ]
        return "\n".join(lines) + "\n"


# ═══════════════════════════════════════════════════════════════════
#  CSV
# ═══════════════════════════════════════════════════════════════════


CSV_DANGEROUS_PREFIXES = ("=", "+", "-", "@")


def _csv_safe(value: Any) -> str:
    text = "" if value is None else str(value)
    if text.startswith(CSV_DANGEROUS_PREFIXES):
        return f"'{text}"
    return text


def _csv_line(values: Sequence[Any], *, quoting: int = csv.QUOTE_MINIMAL) -> str:
    """One CSV record without its terminator."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=quoting)
    writer.writerow(values)
    return output.getvalue().removesuffix("\r\n")


def export_cases_csv(cases: Iterable[Any]) -> str:
    """
    One row per case under ``CSV_HEADER``.

    The title is always quoted; other cells only when they contain a
    comma, a quote or a line break.  Cells a spreadsheet would read as
    a formula get a leading apostrophe.
    """
    rows = [_csv_line(CSV_HEADER)]
    for case in cases:
        created = case.created_at
        if timezone.is_aware(created):
            created = created.astimezone(datetime.timezone.utc)
        rows.append(",".join([
            _csv_line([_csv_safe(case.case_number)]),
            _csv_line([_csv_safe(case.title)], quoting=csv.QUOTE_ALL),
            _csv_line([
                _csv_safe(case.case_type),
                _csv_safe(case.status),
                _csv_safe(case.priority),
                created.strftime("%Y-%m-%d"),
            ]),
        ]))
    return "\n".join(rows) + "\n"


# ═══════════════════════════════════════════════════════════════════
#  Export Service
# ═══════════════════════════════════════════════════════════════════


class CaseExportService:
    """Access-checked entry points used by the views."""

    @staticmethod
    def export_case(
        requesting_user: Any,
        case_id: Any,
        *,
        generated_at: datetime.datetime | None = None,
    ) -> tuple[str, str]:
        """
        Returns
        -------
        tuple[str, str]
            ``(filename, report_text)``.

        Raises
        ------
        NotFound
            Case missing or invisible.
        PermissionDenied
            Role may not export.
        """
        case = CaseQueryService.get_case_detail(requesting_user, case_id)
        require_capability(
            can_export(role_of(requesting_user), requesting_user.pk, case),
            "Your role cannot export cases.",
        )
        content = CaseReportExporter.export(case, generated_at=generated_at)
        logger.info("Case %s exported by user %s.", case.case_number, requesting_user.pk)
        return report_filename(case), content

    @staticmethod
    def export_csv(
        requesting_user: Any,
        criteria: CaseFilterCriteria | None = None,
    ) -> str:
        """CSV of the user's visible cases, filtered by ``criteria``."""
        require_capability(
            can_bulk_export(role_of(requesting_user)),
            "Your role cannot export cases.",
        )
        return export_cases_csv(CaseQueryService.list_cases(requesting_user, criteria))
