"""
CORE App - Custom User Model for SHIPEASE

Handles: Users (Customers, Couriers, Dispatchers, Admins)
"""

import uuid
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models


class UserRole(models.TextChoices):
    """User role enumeration."""
    CUSTOMER = 'customer', 'Customer'
    COURIER = 'courier', 'Courier'
    DISPATCHER = 'dispatcher', 'Dispatcher'
    ADMIN = 'admin', 'Administrator'


class UserManager(BaseUserManager):
    """Custom user manager for email-based authentication."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('An email address is required')

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', UserRole.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as primary identifier.

    The role drives what a user may do with shipments:
    - customers create and follow their own shipments
    - couriers accept jobs, update status and stream their position
    - dispatchers assign couriers and watch every shipment
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True, verbose_name="Email")

    # Profile
    full_name = models.CharField(max_length=150, blank=True, verbose_name="Full name")
    phone = models.CharField(max_length=30, blank=True, verbose_name="Phone")
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.CUSTOMER,
        verbose_name="Role"
    )

    # Django Auth Fields
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    date_joined = models.DateTimeField(auto_now_add=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        ordering = ['-date_joined']

    def __str__(self):
        return f"{self.full_name or self.email} ({self.role})"

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.CUSTOMER

    @property
    def is_courier(self) -> bool:
        return self.role == UserRole.COURIER

    @property
    def is_dispatcher(self) -> bool:
        """Dispatchers and admins share the operations view."""
        return self.role in (UserRole.DISPATCHER, UserRole.ADMIN)
