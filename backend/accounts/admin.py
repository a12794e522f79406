from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "full_name", "role", "is_active")
    search_fields = ("username", "email", "full_name")
    list_filter = ("role", "is_active", "is_staff")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Case Access", {"fields": ("full_name", "role")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Case Access", {"fields": ("email", "full_name", "role")}),
    )
