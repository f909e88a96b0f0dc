"""
User Account Models
Handles user identity, tenant membership and the role used for approval authorization.
"""
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager
from django.db import models
from django.core.exceptions import PermissionDenied


class UserRole(models.TextChoices):
    """Roles known to the workspace, lowest privilege first."""
    MEMBER = 'member', 'Member'
    MANAGER = 'manager', 'Manager'
    HR = 'hr', 'HR'
    ADMIN = 'admin', 'Admin'


class Organization(models.Model):
    """A tenant. Users, approval chains and delegations belong to exactly one."""
    name = models.CharField(max_length=255, unique=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'organizations'
        ordering = ['name']

    def __str__(self):
        return self.name


class CustomUserManager(BaseUserManager):
    """
    Custom user manager for CustomUser model.
    """

    def create_user(self, email, name, password=None, role=UserRole.MEMBER, **extra_fields):
        """
        Create and save a user.

        Args:
            email: User's email address (used for authentication)
            name: User's full name
            password: User's password (will be hashed)
            role: One of UserRole values
            **extra_fields: Additional fields to set on the user

        Returns:
            CustomUser: The created user instance
        """
        if not email:
            raise ValueError('Email is required')
        if not name:
            raise ValueError('Name is required')
        if role not in UserRole.values:
            raise ValueError(f"Unknown role '{role}'")

        user = self.model(
            email=self.normalize_email(email),
            name=name,
            role=role,
            **extra_fields
        )
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, name, password=None, **extra_fields):
        """Required by Django for the createsuperuser management command."""
        return self.create_user(
            email=email,
            name=name,
            password=password,
            role=UserRole.ADMIN,
            **extra_fields
        )


class CustomUser(AbstractBaseUser):
    """Custom user model with email authentication and a single workspace role."""
    email = models.EmailField(unique=True, db_index=True)
    name = models.CharField(max_length=255)
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.MEMBER,
        db_index=True,
        help_text="Workspace role; approval steps may require a specific role"
    )
    organization = models.ForeignKey(
        Organization,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name='members',
        help_text="Tenant the user works in; null only for platform operators"
    )
    is_active = models.BooleanField(default=True)
    date_joined = models.DateTimeField(auto_now_add=True)

    objects = CustomUserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    class Meta:
        db_table = 'custom_users'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.email})"

    def has_role(self, role):
        return self.role == role

    def is_admin(self):
        return self.role == UserRole.ADMIN

    # Django admin site hooks
    @property
    def is_staff(self):
        return self.is_admin()

    def has_perm(self, perm, obj=None):
        return self.is_active and self.is_admin()

    def has_module_perms(self, app_label):
        return self.is_active and self.is_admin()

    def delete(self, *args, **kwargs):
        """
        Prevent deletion of the last remaining admin of an organization.
        """
        if self.is_admin() and not CustomUser.objects.filter(
            role=UserRole.ADMIN,
            organization_id=self.organization_id
        ).exclude(pk=self.pk).exists():
            raise PermissionDenied("Cannot delete the last admin user.")
        return super().delete(*args, **kwargs)
