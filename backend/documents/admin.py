from django.contrib import admin

from .models import CaseDocument


@admin.register(CaseDocument)
class CaseDocumentAdmin(admin.ModelAdmin):
    list_display = ("file_name", "case", "file_size", "mime_type",
                    "uploaded_by", "created_at")
    search_fields = ("file_name", "file_path")
    readonly_fields = ("file_path", "file_size")
