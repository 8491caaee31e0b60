"""
Booking Model

A student's reservation of a slot.
"""

from django.db import models
from django.utils import timezone

from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin


class Booking(UUIDPrimaryKeyMixin, TimestampMixin):
    """
    Booking of one slot by one student.

    Status workflow:
        CONFIRMED -> CANCELLED
        CONFIRMED -> COMPLETED (attended)
        CONFIRMED -> NO_SHOW   (did not attend)
    """

    class Status(models.TextChoices):
        CONFIRMED = 'CONFIRMED', 'Confirmed'
        CANCELLED = 'CANCELLED', 'Cancelled'
        COMPLETED = 'COMPLETED', 'Completed'
        NO_SHOW = 'NO_SHOW', 'No Show'

    student = models.ForeignKey(
        'core.User',
        on_delete=models.PROTECT,
        related_name='bookings'
    )
    slot = models.ForeignKey(
        'core.Slot',
        on_delete=models.PROTECT,
        related_name='bookings'
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.CONFIRMED,
        db_index=True
    )
    attended = models.BooleanField(blank=True, null=True)
    attendance_marked_at = models.DateTimeField(blank=True, null=True)

    # Cancellation
    cancelled_at = models.DateTimeField(blank=True, null=True)
    cancelled_by = models.ForeignKey(
        'core.User',
        on_delete=models.SET_NULL,
        related_name='+',
        blank=True,
        null=True
    )
    cancellation_reason = models.TextField(blank=True, default='')
    is_late_cancellation = models.BooleanField(default=False)

    created_by = models.ForeignKey(
        'core.User',
        on_delete=models.SET_NULL,
        related_name='+',
        blank=True,
        null=True
    )

    class Meta:
        db_table = 'bookings'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['student', 'status']),
            models.Index(fields=['slot', 'status']),
        ]

    def __str__(self):
        return f"Booking {self.id} ({self.status})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def can_cancel(self) -> bool:
        return self.status == self.Status.CONFIRMED

    @property
    def can_mark_attendance(self) -> bool:
        return self.status == self.Status.CONFIRMED

    @property
    def hours_until_start(self) -> float:
        return self.slot.hours_until_start

    # ==========================================================================
    # Status Transitions
    # ==========================================================================

    def cancel(self, cancelled_by=None, reason: str = '', late: bool = False):
        """Cancel the booking, releasing its seat."""
        if not self.can_cancel:
            raise ValueError(f"Cannot cancel booking in {self.status} status")

        self.status = self.Status.CANCELLED
        self.cancelled_at = timezone.now()
        self.cancelled_by = cancelled_by
        self.cancellation_reason = reason
        self.is_late_cancellation = late
        self.save()

    def mark_attendance(self, attended: bool):
        """Record attendance: COMPLETED if attended, otherwise NO_SHOW."""
        if not self.can_mark_attendance:
            raise ValueError(f"Cannot mark attendance for booking in {self.status} status")

        self.attended = attended
        self.attendance_marked_at = timezone.now()
        self.status = self.Status.COMPLETED if attended else self.Status.NO_SHOW
        self.save()

    # ==========================================================================
    # Class Methods
    # ==========================================================================

    @classmethod
    def get_seat_holding_statuses(cls) -> list:
        """Statuses that count against slot capacity and the monthly limit."""
        return [cls.Status.CONFIRMED, cls.Status.COMPLETED]
