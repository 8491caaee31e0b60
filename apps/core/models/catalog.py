"""
Catalog Models

Service types (what is being tested) and rooms (where).
"""

from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models

from shared.common.constants import MIN_SLOT_CAPACITY, MAX_SLOT_CAPACITY
from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin, ActiveMixin


class ServiceType(UUIDPrimaryKeyMixin, TimestampMixin, ActiveMixin):
    """A kind of session that can be scheduled, e.g. a mock speaking test."""

    class Category(models.TextChoices):
        PAID = 'paid', 'Paid'
        FREE = 'free', 'Free'

    name = models.CharField(max_length=255)
    code = models.SlugField(max_length=50, unique=True)
    description = models.TextField(blank=True, default='')
    category = models.CharField(
        max_length=10,
        choices=Category.choices,
        default=Category.FREE
    )
    default_capacity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(MIN_SLOT_CAPACITY), MaxValueValidator(MAX_SLOT_CAPACITY)]
    )
    duration_minutes = models.PositiveIntegerField(default=15)

    class Meta:
        db_table = 'service_types'
        ordering = ['name']

    def __str__(self):
        return self.name


class Room(UUIDPrimaryKeyMixin, TimestampMixin, ActiveMixin):
    """Room inside a branch."""

    class RoomType(models.TextChoices):
        GENERAL = 'general', 'General'
        COMPUTER_LAB = 'computer_lab', 'Computer Lab'
        COUNSELLING = 'counselling', 'Counselling'
        EXAM_HALL = 'exam_hall', 'Exam Hall'

    branch = models.ForeignKey(
        'core.Branch',
        on_delete=models.CASCADE,
        related_name='rooms'
    )
    room_number = models.CharField(max_length=50)
    room_type = models.CharField(
        max_length=20,
        choices=RoomType.choices,
        default=RoomType.GENERAL
    )
    capacity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(MIN_SLOT_CAPACITY), MaxValueValidator(MAX_SLOT_CAPACITY)]
    )

    class Meta:
        db_table = 'rooms'
        ordering = ['branch__name', 'room_number']
        constraints = [
            models.UniqueConstraint(
                fields=['branch', 'room_number'],
                name='unique_room_number_per_branch'
            ),
        ]

    def __str__(self):
        return f"{self.branch.name} / {self.room_number}"
