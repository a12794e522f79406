from django.contrib import admin

from .models import ActivityLog, Case, CaseNote, CaseNumberSequence


class CaseNoteInline(admin.TabularInline):
    model = CaseNote
    extra = 0


class ActivityLogInline(admin.TabularInline):
    model = ActivityLog
    extra = 0
    can_delete = False
    readonly_fields = ("activity_type", "user", "description",
                       "old_values", "new_values", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Case)
class CaseAdmin(admin.ModelAdmin):
    list_display = ("case_number", "title", "case_type", "status",
                    "priority", "assigned_to", "created_at")
    list_filter = ("status", "priority", "case_type")
    search_fields = ("case_number", "title", "subject_name", "description")
    readonly_fields = ("case_number", "closed_at", "archived_at")
    inlines = [CaseNoteInline, ActivityLogInline]


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ("case", "activity_type", "user", "created_at")
    list_filter = ("activity_type",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CaseNote)
class CaseNoteAdmin(admin.ModelAdmin):
    list_display = ("case", "user", "is_private", "created_at")
    list_filter = ("is_private",)


@admin.register(CaseNumberSequence)
class CaseNumberSequenceAdmin(admin.ModelAdmin):
    list_display = ("period", "last_value")
