"""
Cases app models.

Covers the case lifecycle: the case record itself, the per-month
case-number sequence, the append-only activity log and free-text
case notes.
"""

from django.conf import settings
from django.db import models

from core.domain.exceptions import Conflict
from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class CaseStatus(models.TextChoices):
    """Lifecycle states.  Allowed moves live in ``cases.services``."""

    OPEN = "open", "Open"
    IN_PROGRESS = "in_progress", "In Progress"
    CLOSED = "closed", "Closed"
    ARCHIVED = "archived", "Archived"


class CasePriority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    URGENT = "urgent", "Urgent"


class ActivityType(models.TextChoices):
    CREATED = "created", "Created"
    UPDATED = "updated", "Updated"
    ASSIGNED = "assigned", "Assigned"
    STATUS_CHANGED = "status_changed", "Status Changed"
    NOTE_ADDED = "note_added", "Note Added"
    CLOSED = "closed", "Closed"
    ARCHIVED = "archived", "Archived"


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Case(TimeStampedModel):
    """
    Central entity of the system — an investigation case.

    * ``case_number`` is allocated once, at creation, from
      ``CaseNumberSequence`` and never recomputed.
    * ``closed_at`` / ``archived_at`` are stamped by the lifecycle
      service when the status enters ``closed`` / ``archived``.
    """

    case_number = models.CharField(
        max_length=32,
        unique=True,
        editable=False,
        verbose_name="Case Number",
    )
    title = models.CharField(
        max_length=255,
        verbose_name="Case Title",
    )
    description = models.TextField(
        blank=True,
        default="",
        verbose_name="Description",
    )
    case_type = models.CharField(
        max_length=100,
        db_index=True,
        verbose_name="Case Type",
        help_text="Free-form category, e.g. 'missing_person' or 'fraud'.",
    )
    status = models.CharField(
        max_length=20,
        choices=CaseStatus.choices,
        default=CaseStatus.OPEN,
        db_index=True,
        verbose_name="Current Status",
    )
    priority = models.CharField(
        max_length=10,
        choices=CasePriority.choices,
        default=CasePriority.MEDIUM,
        db_index=True,
        verbose_name="Priority",
    )

    # ── Personnel ───────────────────────────────────────────────────
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_cases",
        verbose_name="Created By",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_cases",
        verbose_name="Assigned To",
    )

    # ── Subject information ─────────────────────────────────────────
    subject_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        verbose_name="Subject Name",
    )
    date_of_birth = models.CharField(
        max_length=50,
        blank=True,
        default="",
        verbose_name="Date of Birth",
    )
    contact_info = models.TextField(
        blank=True,
        default="",
        verbose_name="Contact Information",
    )
    last_known_location = models.CharField(
        max_length=500,
        blank=True,
        default="",
        verbose_name="Last Known Location",
    )

    # ── Lifecycle stamps ────────────────────────────────────────────
    closed_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Closed At",
    )
    archived_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Archived At",
    )

    class Meta:
        verbose_name = "Case"
        verbose_name_plural = "Cases"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.case_number}: {self.title}"


class CaseNumberSequence(models.Model):
    """
    Monotonic counter per ``YYYYMM`` period.

    The row is locked with ``select_for_update`` while the next value
    is taken, so concurrent creators never receive the same number.
    """

    period = models.CharField(
        max_length=6,
        unique=True,
        verbose_name="Period (YYYYMM)",
    )
    last_value = models.PositiveIntegerField(
        default=0,
        verbose_name="Last Issued Value",
    )

    class Meta:
        verbose_name = "Case Number Sequence"
        verbose_name_plural = "Case Number Sequences"

    def __str__(self):
        return f"{self.period}: {self.last_value}"


class ActivityLog(models.Model):
    """
    Append-only audit entry for a case.

    ``old_values`` / ``new_values`` hold snapshots of only the fields
    that changed.  Existing rows cannot be saved again or deleted one
    by one; they disappear only when their case is deleted.
    """

    case = models.ForeignKey(
        Case,
        on_delete=models.CASCADE,
        related_name="activity",
        verbose_name="Case",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="case_activity",
        verbose_name="Actor",
    )
    activity_type = models.CharField(
        max_length=20,
        choices=ActivityType.choices,
        db_index=True,
        verbose_name="Activity Type",
    )
    description = models.TextField(
        verbose_name="Description",
    )
    old_values = models.JSONField(
        null=True,
        blank=True,
        verbose_name="Previous Values",
    )
    new_values = models.JSONField(
        null=True,
        blank=True,
        verbose_name="New Values",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        verbose_name="Created At",
    )

    class Meta:
        verbose_name = "Activity Log Entry"
        verbose_name_plural = "Activity Log"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"[{self.case_id}] {self.get_activity_type_display()}: {self.description}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise Conflict("Activity log entries are immutable.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise Conflict("Activity log entries cannot be deleted individually.")


class CaseNote(TimeStampedModel):
    """Free-text annotation on a case.  Private notes are author/admin only."""

    case = models.ForeignKey(
        Case,
        on_delete=models.CASCADE,
        related_name="notes",
        verbose_name="Case",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="case_notes",
        verbose_name="Author",
    )
    note = models.TextField(verbose_name="Note")
    is_private = models.BooleanField(
        default=False,
        verbose_name="Private",
    )

    class Meta:
        verbose_name = "Case Note"
        verbose_name_plural = "Case Notes"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        visibility = "private" if self.is_private else "public"
        return f"Note on {self.case_id} ({visibility})"
