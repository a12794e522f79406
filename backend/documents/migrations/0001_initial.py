import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("cases", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CaseDocument",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("file_name", models.CharField(max_length=255, verbose_name="Original File Name")),
                (
                    "file_path",
                    models.CharField(
                        help_text="Opaque key in blob storage, e.g. '12/1718000000000.pdf'.",
                        max_length=500,
                        unique=True,
                        verbose_name="Storage Key",
                    ),
                ),
                ("file_size", models.PositiveBigIntegerField(verbose_name="Size (bytes)")),
                ("mime_type", models.CharField(blank=True, default="", max_length=255, verbose_name="MIME Type")),
                (
                    "case",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="documents",
                        to="cases.case",
                        verbose_name="Case",
                    ),
                ),
                (
                    "uploaded_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="uploaded_documents",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Uploaded By",
                    ),
                ),
            ],
            options={
                "verbose_name": "Case Document",
                "verbose_name_plural": "Case Documents",
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
