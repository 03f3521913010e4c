"""
Authentication models.

This module defines the marketplace's user model:
- User: Custom user model with email-based authentication and a
  marketplace role (USER, PROVIDER, ADMIN)

Related files:
    - managers.py: Custom user manager for email-based creation
    - permissions.py: DRF permission classes keyed on the role

Security:
    - User passwords hashed with Django's PBKDF2
    - Role is never writable through the public API
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class UserRole(models.TextChoices):
    """
    Marketplace roles.

    USER: patient paying deposits toward quotations
    PROVIDER: clinic/doctor receiving payouts
    ADMIN: operator approving releases, refunds and payout runs
    """

    USER = "USER", "User"
    PROVIDER = "PROVIDER", "Provider"
    ADMIN = "ADMIN", "Admin"


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        role: Marketplace role driving API authorization
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        patient = User.objects.create_user(email="p@example.com", password="...")
        clinic = User.objects.create_user(
            email="c@example.com", password="...", role=UserRole.PROVIDER
        )
        operator = User.objects.create_superuser(email="a@example.com", password="...")
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    role = models.CharField(
        max_length=16,
        choices=UserRole.choices,
        default=UserRole.USER,
        db_index=True,
        help_text="Marketplace role used for API authorization",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    @property
    def is_admin_role(self) -> bool:
        """True for marketplace operators."""
        return self.role == UserRole.ADMIN

    @property
    def is_provider_role(self) -> bool:
        return self.role == UserRole.PROVIDER
