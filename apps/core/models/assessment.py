"""
Assessment Model

IELTS band score recorded for a completed booking.
"""

from django.core.exceptions import ValidationError
from django.db import models

from shared.common.constants import MAX_REMARKS_LENGTH
from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin
from shared.common.validators import validate_ielts_score


def ielts_score_validator(value):
    validate_ielts_score(value)


class Assessment(UUIDPrimaryKeyMixin, TimestampMixin):
    """One assessment per completed booking."""

    booking = models.OneToOneField(
        'core.Booking',
        on_delete=models.CASCADE,
        related_name='assessment'
    )
    teacher = models.ForeignKey(
        'core.User',
        on_delete=models.PROTECT,
        related_name='given_assessments'
    )
    score = models.DecimalField(
        max_digits=3,
        decimal_places=1,
        validators=[ielts_score_validator]
    )
    remarks = models.TextField(max_length=MAX_REMARKS_LENGTH, blank=True, default='')
    assessed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'assessments'
        ordering = ['-assessed_at']

    def __str__(self):
        return f"Assessment {self.score} for booking {self.booking_id}"

    def clean(self):
        if self.remarks and len(self.remarks) > MAX_REMARKS_LENGTH:
            raise ValidationError({'remarks': f"Remarks cannot exceed {MAX_REMARKS_LENGTH} characters"})

    @property
    def student(self):
        return self.booking.student
