import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CaseNumberSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("period", models.CharField(max_length=6, unique=True, verbose_name="Period (YYYYMM)")),
                ("last_value", models.PositiveIntegerField(default=0, verbose_name="Last Issued Value")),
            ],
            options={
                "verbose_name": "Case Number Sequence",
                "verbose_name_plural": "Case Number Sequences",
            },
        ),
        migrations.CreateModel(
            name="Case",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("case_number", models.CharField(editable=False, max_length=32, unique=True, verbose_name="Case Number")),
                ("title", models.CharField(max_length=255, verbose_name="Case Title")),
                ("description", models.TextField(blank=True, default="", verbose_name="Description")),
                (
                    "case_type",
                    models.CharField(
                        db_index=True,
                        help_text="Free-form category, e.g. 'missing_person' or 'fraud'.",
                        max_length=100,
                        verbose_name="Case Type",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("open", "Open"),
                            ("in_progress", "In Progress"),
                            ("closed", "Closed"),
                            ("archived", "Archived"),
                        ],
                        db_index=True,
                        default="open",
                        max_length=20,
                        verbose_name="Current Status",
                    ),
                ),
                (
                    "priority",
                    models.CharField(
                        choices=[
                            ("low", "Low"),
                            ("medium", "Medium"),
                            ("high", "High"),
                            ("urgent", "Urgent"),
                        ],
                        db_index=True,
                        default="medium",
                        max_length=10,
                        verbose_name="Priority",
                    ),
                ),
                ("subject_name", models.CharField(blank=True, default="", max_length=255, verbose_name="Subject Name")),
                ("date_of_birth", models.CharField(blank=True, default="", max_length=50, verbose_name="Date of Birth")),
                ("contact_info", models.TextField(blank=True, default="", verbose_name="Contact Information")),
                (
                    "last_known_location",
                    models.CharField(blank=True, default="", max_length=500, verbose_name="Last Known Location"),
                ),
                ("closed_at", models.DateTimeField(blank=True, null=True, verbose_name="Closed At")),
                ("archived_at", models.DateTimeField(blank=True, null=True, verbose_name="Archived At")),
                (
                    "assigned_to",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="assigned_cases",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Assigned To",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="created_cases",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Created By",
                    ),
                ),
            ],
            options={
                "verbose_name": "Case",
                "verbose_name_plural": "Cases",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ActivityLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "activity_type",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("updated", "Updated"),
                            ("assigned", "Assigned"),
                            ("status_changed", "Status Changed"),
                            ("note_added", "Note Added"),
                            ("closed", "Closed"),
                            ("archived", "Archived"),
                        ],
                        db_index=True,
                        max_length=20,
                        verbose_name="Activity Type",
                    ),
                ),
                ("description", models.TextField(verbose_name="Description")),
                ("old_values", models.JSONField(blank=True, null=True, verbose_name="Previous Values")),
                ("new_values", models.JSONField(blank=True, null=True, verbose_name="New Values")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="Created At")),
                (
                    "case",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="activity",
                        to="cases.case",
                        verbose_name="Case",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="case_activity",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Actor",
                    ),
                ),
            ],
            options={
                "verbose_name": "Activity Log Entry",
                "verbose_name_plural": "Activity Log",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="CaseNote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("note", models.TextField(verbose_name="Note")),
                ("is_private", models.BooleanField(default=False, verbose_name="Private")),
                (
                    "case",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notes",
                        to="cases.case",
                        verbose_name="Case",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="case_notes",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Author",
                    ),
                ),
            ],
            options={
                "verbose_name": "Case Note",
                "verbose_name_plural": "Case Notes",
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
