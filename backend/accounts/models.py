"""
Accounts app models.

Defines the custom ``User`` model.  The four fixed roles of the
case-management system (admin, investigator, volunteer, readonly) are
the sole authorization axis; the rules that interpret them live in
``core.domain.access``.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models


class UserRole(models.TextChoices):
    """Fixed authorization roles."""

    ADMIN = "admin", "Administrator"
    INVESTIGATOR = "investigator", "Investigator"
    VOLUNTEER = "volunteer", "Volunteer"
    READONLY = "readonly", "Read Only"


class User(AbstractUser):
    """
    Custom user model for the SageIntel case-management system.

    Login is supported via either ``username`` or ``email`` together
    with the password.  New accounts start as ``readonly``; an
    administrator then assigns the working role.
    """

    email = models.EmailField(
        unique=True,
        verbose_name="Email Address",
    )
    full_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        verbose_name="Full Name",
    )
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.READONLY,
        db_index=True,
        verbose_name="Role",
    )

    # Fields required when creating a superuser via CLI
    REQUIRED_FIELDS = ["email"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        ordering = ["username"]

    def __str__(self):
        return f"{self.username} ({self.display_name}) - {self.get_role_display()}"

    @property
    def display_name(self) -> str:
        """Best human-readable name: full name, then first/last, then username."""
        return self.full_name or self.get_full_name() or self.username

    def has_role(self, *roles: str) -> bool:
        """Check whether the user's role is one of ``roles``."""
        return self.role in roles
