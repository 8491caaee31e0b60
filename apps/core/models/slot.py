"""
Slot Model

A bookable time interval taught by one teacher at one branch.
"""

from datetime import datetime, timedelta

from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.db.models import Count, Q, F
from django.utils import timezone

from shared.common.constants import MIN_SLOT_CAPACITY, MAX_SLOT_CAPACITY
from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin

# Booking statuses that hold a seat
SEAT_HOLDING_STATUSES = ('CONFIRMED', 'COMPLETED')


class SlotQuerySet(models.QuerySet):

    def with_booking_counts(self):
        """Annotate booked_count_value and available_spots_value."""
        return self.annotate(
            booked_count_value=Count(
                'bookings',
                filter=Q(bookings__status__in=SEAT_HOLDING_STATUSES)
            )
        ).annotate(
            available_spots_value=F('capacity') - F('booked_count_value')
        )

    def upcoming(self, now=None):
        """Slots that have not started yet."""
        now = timezone.localtime(now or timezone.now())
        return self.filter(
            Q(date__gt=now.date()) |
            Q(date=now.date(), start_time__gt=now.time())
        )

    def bookable(self, now=None):
        """Upcoming, unblocked slots with at least one free seat."""
        return self.upcoming(now).filter(is_blocked=False).with_booking_counts().filter(
            available_spots_value__gt=0
        )


class Slot(UUIDPrimaryKeyMixin, TimestampMixin):
    """
    A teacher's session at a branch.

    Capacity is the number of students that can hold a CONFIRMED or
    COMPLETED booking on the slot at once.
    """

    branch = models.ForeignKey(
        'core.Branch',
        on_delete=models.PROTECT,
        related_name='slots'
    )
    teacher = models.ForeignKey(
        'core.User',
        on_delete=models.PROTECT,
        related_name='teaching_slots'
    )
    service_type = models.ForeignKey(
        'core.ServiceType',
        on_delete=models.SET_NULL,
        related_name='slots',
        blank=True,
        null=True
    )
    room = models.ForeignKey(
        'core.Room',
        on_delete=models.SET_NULL,
        related_name='slots',
        blank=True,
        null=True
    )

    date = models.DateField(db_index=True)
    start_time = models.TimeField()
    end_time = models.TimeField()
    capacity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(MIN_SLOT_CAPACITY), MaxValueValidator(MAX_SLOT_CAPACITY)]
    )
    price = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)

    is_blocked = models.BooleanField(default=False)
    block_reason = models.CharField(max_length=255, blank=True, default='')

    created_by = models.ForeignKey(
        'core.User',
        on_delete=models.SET_NULL,
        related_name='created_slots',
        blank=True,
        null=True
    )

    objects = SlotQuerySet.as_manager()

    class Meta:
        db_table = 'slots'
        ordering = ['date', 'start_time']
        indexes = [
            models.Index(fields=['branch', 'date']),
            models.Index(fields=['teacher', 'date']),
        ]

    def __str__(self):
        return f"{self.date} {self.start_time:%H:%M}-{self.end_time:%H:%M} ({self.teacher_id})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def starts_at(self) -> datetime:
        """Slot start as an aware datetime in the project timezone."""
        return timezone.make_aware(datetime.combine(self.date, self.start_time))

    @property
    def ends_at(self) -> datetime:
        return timezone.make_aware(datetime.combine(self.date, self.end_time))

    @property
    def duration(self) -> timedelta:
        return self.ends_at - self.starts_at

    @property
    def booked_count(self) -> int:
        """Seats held by CONFIRMED or COMPLETED bookings."""
        annotated = getattr(self, 'booked_count_value', None)
        if annotated is not None:
            return annotated
        return self.bookings.filter(status__in=SEAT_HOLDING_STATUSES).count()

    @property
    def available_spots(self) -> int:
        return max(self.capacity - self.booked_count, 0)

    @property
    def is_past(self) -> bool:
        return self.starts_at <= timezone.now()

    @property
    def is_available(self) -> bool:
        return not self.is_blocked and not self.is_past and self.available_spots > 0

    @property
    def hours_until_start(self) -> float:
        return (self.starts_at - timezone.now()).total_seconds() / 3600

    # ==========================================================================
    # State
    # ==========================================================================

    def block(self, reason: str = ''):
        self.is_blocked = True
        self.block_reason = reason
        self.save(update_fields=['is_blocked', 'block_reason', 'updated_at'])

    def unblock(self):
        self.is_blocked = False
        self.block_reason = ''
        self.save(update_fields=['is_blocked', 'block_reason', 'updated_at'])
