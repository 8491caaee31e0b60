"""
Notification Model
"""

from django.db import models
from django.utils import timezone

from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin


class Notification(UUIDPrimaryKeyMixin, TimestampMixin):
    """In-app or SMS message sent to a user."""

    class Type(models.TextChoices):
        BOOKING_CONFIRMED = 'BOOKING_CONFIRMED', 'Booking Confirmed'
        BOOKING_REMINDER = 'BOOKING_REMINDER', 'Booking Reminder'
        BOOKING_CANCELLED = 'BOOKING_CANCELLED', 'Booking Cancelled'
        SYSTEM_ALERT = 'SYSTEM_ALERT', 'System Alert'
        ANNOUNCEMENT = 'ANNOUNCEMENT', 'Announcement'
        REMINDER = 'REMINDER', 'Reminder'
        URGENT = 'URGENT', 'Urgent'
        MAINTENANCE = 'MAINTENANCE', 'Maintenance'

    class Channel(models.TextChoices):
        IN_APP = 'in_app', 'In-App'
        SMS = 'sms', 'SMS'

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        SENT = 'SENT', 'Sent'
        FAILED = 'FAILED', 'Failed'

    user = models.ForeignKey(
        'core.User',
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    type = models.CharField(max_length=30, choices=Type.choices, db_index=True)
    channel = models.CharField(max_length=10, choices=Channel.choices, default=Channel.IN_APP)
    title = models.CharField(max_length=255)
    message = models.TextField()

    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    failure_reason = models.TextField(blank=True, default='')
    external_id = models.CharField(max_length=255, blank=True, default='')

    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(blank=True, null=True)

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read']),
        ]

    def __str__(self):
        return f"{self.type} -> {self.user_id}"

    def mark_read(self):
        if self.is_read:
            return
        self.is_read = True
        self.read_at = timezone.now()
        self.save(update_fields=['is_read', 'read_at', 'updated_at'])

    def mark_sent(self, external_id: str = ''):
        self.status = self.Status.SENT
        self.external_id = external_id or ''
        self.save(update_fields=['status', 'external_id', 'updated_at'])

    def mark_failed(self, reason: str):
        self.status = self.Status.FAILED
        self.failure_reason = reason
        self.save(update_fields=['status', 'failure_reason', 'updated_at'])
