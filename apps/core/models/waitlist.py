"""
Waiting List Model

Queue of students waiting for a seat on a full slot.
"""

from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin


class WaitingListQuerySet(models.QuerySet):

    def active(self, now=None):
        return self.filter(expires_at__gt=now or timezone.now())

    def expired(self, now=None):
        return self.filter(expires_at__lte=now or timezone.now())


class WaitingListEntry(UUIDPrimaryKeyMixin, TimestampMixin):
    """
    A student's place in the queue for a slot.

    Priority is the 1-based queue position; it is renumbered whenever an
    entry leaves the queue.
    """

    student = models.ForeignKey(
        'core.User',
        on_delete=models.CASCADE,
        related_name='waiting_list_entries'
    )
    slot = models.ForeignKey(
        'core.Slot',
        on_delete=models.CASCADE,
        related_name='waiting_list'
    )
    priority = models.PositiveIntegerField()
    expires_at = models.DateTimeField(db_index=True)

    objects = WaitingListQuerySet.as_manager()

    class Meta:
        db_table = 'waiting_list'
        ordering = ['slot', 'priority']
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'slot'],
                name='unique_waiting_list_student_slot'
            ),
        ]

    def __str__(self):
        return f"#{self.priority} {self.student_id} for {self.slot_id}"

    @staticmethod
    def expiry_from(now=None):
        hours = getattr(settings, 'WAITING_LIST_EXPIRY_HOURS', 24)
        return (now or timezone.now()) + timedelta(hours=hours)

    def save(self, *args, **kwargs):
        if not self.expires_at:
            self.expires_at = self.expiry_from()
        super().save(*args, **kwargs)

    def is_expired(self, now=None) -> bool:
        return self.expires_at <= (now or timezone.now())
