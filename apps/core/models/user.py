"""
User Model

One table for all four roles. Staff sign in with email and password;
students sign in with a one-time code sent to their phone.
"""

from django.db import models
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin

from shared.common.constants import UserRole
from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin


class UserManager(BaseUserManager):
    """Manager for User model."""

    def create_user(self, name, email=None, phone_number=None, password=None, **extra_fields):
        """Create and save a user. Students get an unusable password."""
        if not email and not phone_number:
            raise ValueError('Users must have an email or a phone number')

        user = self.model(
            name=name,
            email=self.normalize_email(email) or None,
            phone_number=phone_number or None,
            **extra_fields
        )
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, name, password=None, **extra_fields):
        """Create a super admin with Django admin access."""
        extra_fields.setdefault('role', User.Role.SUPER_ADMIN)
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        return self.create_user(name, email=email, password=password, **extra_fields)


class User(UUIDPrimaryKeyMixin, TimestampMixin, AbstractBaseUser, PermissionsMixin):
    """
    Platform user.

    BRANCH_ADMIN and TEACHER users belong to a branch. STUDENT users may
    carry a home branch, SUPER_ADMIN users never do.
    """

    class Role(models.TextChoices):
        SUPER_ADMIN = UserRole.SUPER_ADMIN.value, 'Super Admin'
        BRANCH_ADMIN = UserRole.BRANCH_ADMIN.value, 'Branch Admin'
        TEACHER = UserRole.TEACHER.value, 'Teacher'
        STUDENT = UserRole.STUDENT.value, 'Student'

    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True, blank=True, null=True)
    phone_number = models.CharField(max_length=20, unique=True, blank=True, null=True)
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.STUDENT,
        db_index=True
    )
    branch = models.ForeignKey(
        'core.Branch',
        on_delete=models.PROTECT,
        related_name='users',
        blank=True,
        null=True
    )

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    class Meta:
        db_table = 'users'
        ordering = ['name']
        indexes = [
            models.Index(fields=['role', 'branch']),
        ]

    def __str__(self):
        return f"{self.name} ({self.role})"

    @property
    def is_super_admin(self) -> bool:
        return self.role == self.Role.SUPER_ADMIN

    @property
    def is_branch_admin(self) -> bool:
        return self.role == self.Role.BRANCH_ADMIN

    @property
    def is_teacher(self) -> bool:
        return self.role == self.Role.TEACHER

    @property
    def is_student(self) -> bool:
        return self.role == self.Role.STUDENT

    def deactivate(self):
        self.is_active = False
        self.save(update_fields=['is_active', 'updated_at'])
