"""
Assessment Service

IELTS band scores for completed bookings.
"""

import uuid
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Avg

from apps.core.models import Assessment, Booking, User
from shared.common.constants import MAX_REMARKS_LENGTH

from . import (
    AccessDeniedError,
    BookingConflictError,
    BookingStateError,
    BookingValidationError,
    ResourceNotFoundError,
)
from .access import ensure_can_assess, scope_assessments
from .booking_service import BookingService
from .rules import validate_score

logger = logging.getLogger(__name__)


class AssessmentService:
    """Record and read assessments."""

    def __init__(self):
        self.booking_service = BookingService()

    def get_assessment(self, assessment_id: uuid.UUID, user: Optional[User] = None) -> Assessment:
        queryset = Assessment.objects.select_related(
            'booking', 'booking__student', 'booking__slot', 'booking__slot__branch', 'teacher'
        )
        if user is not None:
            queryset = scope_assessments(user, queryset)

        try:
            return queryset.get(id=assessment_id)
        except (Assessment.DoesNotExist, ValueError, DjangoValidationError):
            raise ResourceNotFoundError(f"Assessment {assessment_id} not found")

    @transaction.atomic
    def create_assessment(
        self,
        booking_id: uuid.UUID,
        score,
        user: User,
        remarks: str = '',
    ) -> Assessment:
        """Only COMPLETED bookings can be assessed, once."""
        booking = self.booking_service.get_booking(booking_id)
        ensure_can_assess(user, booking)

        booking = Booking.objects.select_for_update(of=('self',)).select_related('slot').get(pk=booking.pk)

        if booking.status != Booking.Status.COMPLETED:
            raise BookingStateError(
                "Only completed bookings can be assessed",
                details={'status': booking.status}
            )
        if Assessment.objects.filter(booking=booking).exists():
            raise BookingConflictError("Booking already has an assessment")

        score = validate_score(score)
        self._validate_remarks(remarks)

        # Admins recording on behalf of the teacher credit the slot's teacher
        teacher = user if user.is_teacher else booking.slot.teacher

        assessment = Assessment.objects.create(
            booking=booking,
            teacher=teacher,
            score=score,
            remarks=remarks or '',
        )

        logger.info(f"Recorded assessment {score} for booking {booking.id} by {user.id}")
        return assessment

    @transaction.atomic
    def update_assessment(
        self,
        assessment_id: uuid.UUID,
        user: User,
        score=None,
        remarks: Optional[str] = None,
    ) -> Assessment:
        assessment = self.get_assessment(assessment_id)
        if user.is_student:
            raise AccessDeniedError("Students cannot change assessments")
        ensure_can_assess(user, assessment.booking)

        update_fields = ['updated_at']
        if score is not None:
            assessment.score = validate_score(score)
            update_fields.append('score')
        if remarks is not None:
            self._validate_remarks(remarks)
            assessment.remarks = remarks
            update_fields.append('remarks')

        assessment.save(update_fields=update_fields)

        logger.info(f"Updated assessment {assessment.id} by {user.id}")
        return assessment

    def my_scores(self, student: User) -> Dict[str, Any]:
        """A student's assessments with their average band."""
        assessments = Assessment.objects.filter(booking__student=student).select_related(
            'booking__student', 'booking__slot', 'booking__slot__branch', 'teacher'
        )
        average = assessments.aggregate(avg=Avg('score'))['avg']

        return {
            'assessments': assessments,
            'average_score': Decimal(str(average)).quantize(Decimal('0.1')) if average is not None else None,
            'total': assessments.count(),
        }

    @staticmethod
    def _validate_remarks(remarks: Optional[str]) -> None:
        if remarks and len(remarks) > MAX_REMARKS_LENGTH:
            raise BookingValidationError(
                f"Remarks cannot exceed {MAX_REMARKS_LENGTH} characters",
                details={'remarks': len(remarks)}
            )
