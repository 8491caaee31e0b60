"""
Booking Service

Core business logic for student bookings.

Every write locks the slot row (and the student row) with
select_for_update() before counting, so capacity, duplicate and monthly
checks cannot race each other.
"""

import uuid
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from apps.core.models import Booking, Slot, User

from . import (
    AccessDeniedError,
    BookingNotFoundError,
    BookingStateError,
    BookingValidationError,
    DuplicateBookingError,
    PastSlotError,
    RuleViolationError,
    SlotNotFoundError,
)
from .access import ensure_can_manage_booking, scope_bookings
from .notification_service import NotificationService
from .rules import (
    ensure_capacity,
    ensure_monthly_limit,
    ensure_outside_cancellation_window,
    is_within_cancellation_window,
    monthly_booking_count,
)
from .settings_service import SystemSettingsService
from .waitlist_service import WaitlistService

logger = logging.getLogger(__name__)

STUDENT_CANCELLATION_REASON = 'Student cancellation'
STAFF_CANCELLATION_REASON = 'Cancelled by staff'


class BookingService:
    """
    Service for managing bookings.

    Handles:
    - Booking creation with rule checks
    - Cancellation and rescheduling
    - Attendance
    - Monthly limit lookups
    """

    def __init__(self):
        self.settings_service = SystemSettingsService()
        self.notification_service = NotificationService()
        self.waitlist_service = WaitlistService()

    # ==========================================================================
    # Lookup
    # ==========================================================================

    def get_booking(self, booking_id: uuid.UUID, user: Optional[User] = None) -> Booking:
        queryset = Booking.objects.select_related(
            'student', 'slot', 'slot__branch', 'slot__teacher'
        )
        if user is not None:
            queryset = scope_bookings(user, queryset)

        try:
            return queryset.get(id=booking_id)
        except (Booking.DoesNotExist, ValueError, DjangoValidationError):
            raise BookingNotFoundError(f"Booking {booking_id} not found")

    def resolve_student(
        self,
        requester: User,
        student_id: Optional[uuid.UUID] = None,
        student_phone_number: Optional[str] = None,
    ) -> User:
        """
        Students always book for themselves. Staff name the student by id
        or phone number.
        """
        if requester.is_student:
            return requester

        if not student_id and not student_phone_number:
            raise BookingValidationError(
                "student_id or student_phone_number is required for staff bookings",
                details={'student_id': 'This field is required'}
            )

        lookup = {'id': student_id} if student_id else {'phone_number': student_phone_number}
        student = User.objects.filter(role=User.Role.STUDENT, **lookup).first()
        if student is None:
            raise BookingValidationError(
                "Student not found",
                details={key: str(value) for key, value in lookup.items()}
            )

        if requester.is_branch_admin and student.branch_id not in (None, requester.branch_id):
            raise AccessDeniedError("Student belongs to another branch")

        return student

    # ==========================================================================
    # Create
    # ==========================================================================

    @transaction.atomic
    def create_booking(
        self,
        slot_id: uuid.UUID,
        student: User,
        created_by: Optional[User] = None,
        now: Optional[datetime] = None,
        notify: bool = True,
    ) -> Booking:
        """Book `student` onto the slot after running every booking rule."""
        slot = self._lock_slot(slot_id)

        if created_by is not None and created_by.is_branch_admin and slot.branch_id != created_by.branch_id:
            raise AccessDeniedError("You can only book slots in your own branch")
        if created_by is not None and created_by.is_teacher and slot.teacher_id != created_by.id:
            raise AccessDeniedError("Teachers can only book students onto their own slots")

        student = self._lock_student(student)
        self._check_bookable(slot, student, now=now)

        booking = Booking.objects.create(
            student=student,
            slot=slot,
            status=Booking.Status.CONFIRMED,
            created_by=created_by or student,
        )
        self.waitlist_service.remove_student(slot, student)

        logger.info(
            f"Created booking {booking.id} for student {student.id} on slot {slot.id} "
            f"({slot.date} {slot.start_time:%H:%M})"
        )

        if notify:
            self.notification_service.send_booking_confirmation(booking)

        return booking

    def _check_bookable(
        self,
        slot: Slot,
        student: User,
        now: Optional[datetime] = None,
        exclude_booking: Optional[Booking] = None,
    ) -> None:
        """
        Checks in order: blocked, past, student active, duplicate,
        capacity, monthly limit, cross-branch rule.
        """
        now = now or timezone.now()

        if slot.is_blocked:
            raise RuleViolationError(
                "Slot is blocked",
                details={'slot_id': str(slot.id), 'reason': slot.block_reason}
            )

        if slot.starts_at <= now:
            raise PastSlotError("Cannot book slots in the past", details={'slot_id': str(slot.id)})

        if not student.is_active or not student.is_student:
            raise BookingValidationError(
                "Bookings can only be made for active students",
                details={'student_id': str(student.id)}
            )

        duplicate = Booking.objects.filter(
            student=student,
            slot=slot,
            status__in=Booking.get_seat_holding_statuses(),
        )
        if exclude_booking is not None:
            duplicate = duplicate.exclude(id=exclude_booking.id)
        if duplicate.exists():
            raise DuplicateBookingError(
                "Student already has a booking for this slot",
                details={'slot_id': str(slot.id)}
            )

        ensure_capacity(slot)

        rules = self.settings_service.get_booking_rules()
        ensure_monthly_limit(
            student,
            slot.date,
            rules['max_bookings_per_month'],
            exclude_booking_id=exclude_booking.id if exclude_booking else None,
        )

        if (
            not rules['allow_cross_branch_booking']
            and student.branch_id is not None
            and student.branch_id != slot.branch_id
        ):
            raise RuleViolationError(
                "Cross-branch booking is disabled",
                details={'student_branch': str(student.branch_id), 'slot_branch': str(slot.branch_id)}
            )

    # ==========================================================================
    # Cancel
    # ==========================================================================

    @transaction.atomic
    def cancel_booking(
        self,
        booking_id: uuid.UUID,
        user: User,
        reason: str = '',
        now: Optional[datetime] = None,
    ) -> Tuple[Booking, bool, Optional[Booking]]:
        """
        Cancel a CONFIRMED booking.

        Students cannot cancel inside the cancellation window; staff can.
        Returns (booking, slot_freed, promoted_booking).
        """
        now = now or timezone.now()
        booking = self.get_booking(booking_id)
        ensure_can_manage_booking(user, booking)

        slot = self._lock_slot(booking.slot_id)
        booking = Booking.objects.select_for_update().get(pk=booking.pk)

        if not booking.can_cancel:
            raise BookingStateError(
                f"Cannot cancel booking in {booking.status} status",
                details={'status': booking.status}
            )

        hours = self.settings_service.get_booking_rules()['cancellation_hours']
        late = is_within_cancellation_window(slot, hours, now=now)
        if user.is_student:
            ensure_outside_cancellation_window(slot, hours, now=now)

        by_staff = not user.is_student
        reason = reason or (STAFF_CANCELLATION_REASON if by_staff else STUDENT_CANCELLATION_REASON)

        booking.cancel(cancelled_by=user, reason=reason, late=late)

        logger.info(
            f"Cancelled booking {booking.id} by {user.role} {user.id}"
            f"{' (late)' if late else ''}"
        )

        self.notification_service.send_booking_cancellation(booking, reason=reason, by_staff=by_staff)

        slot_freed = slot.starts_at > now
        promoted = self.waitlist_service.promote_next(slot, now=now) if slot_freed else None

        return booking, slot_freed, promoted

    # ==========================================================================
    # Reschedule
    # ==========================================================================

    @transaction.atomic
    def reschedule_booking(
        self,
        booking_id: uuid.UUID,
        new_slot_id: uuid.UUID,
        user: User,
        now: Optional[datetime] = None,
    ) -> Tuple[Booking, Optional[Booking]]:
        """
        Move a CONFIRMED booking to another slot.

        The monthly limit ignores the booking being moved, so a move within
        the same month is always allowed. Returns (booking, promoted_booking)
        where promoted_booking filled the seat released on the old slot.
        """
        now = now or timezone.now()
        booking = self.get_booking(booking_id)
        ensure_can_manage_booking(user, booking)

        if str(booking.slot_id) == str(new_slot_id):
            raise BookingValidationError("Booking is already on this slot")

        # Lock both slots in a stable order
        for locked_id in sorted([str(booking.slot_id), str(new_slot_id)]):
            self._lock_slot(locked_id)
        old_slot = Slot.objects.select_related('branch', 'teacher').get(pk=booking.slot_id)
        new_slot = self._lock_slot(new_slot_id)

        booking = Booking.objects.select_for_update().get(pk=booking.pk)
        if booking.status != Booking.Status.CONFIRMED:
            raise BookingStateError(
                f"Cannot reschedule booking in {booking.status} status",
                details={'status': booking.status}
            )

        if user.is_branch_admin and new_slot.branch_id != user.branch_id:
            raise AccessDeniedError("You can only move bookings to slots in your own branch")

        if user.is_student:
            hours = self.settings_service.get_booking_rules()['cancellation_hours']
            ensure_outside_cancellation_window(old_slot, hours, now=now)

        student = self._lock_student(booking.student)
        self._check_bookable(new_slot, student, now=now, exclude_booking=booking)

        booking.slot = new_slot
        booking.save(update_fields=['slot', 'updated_at'])
        self.waitlist_service.remove_student(new_slot, student)

        logger.info(f"Rescheduled booking {booking.id} from slot {old_slot.id} to {new_slot.id}")

        self.notification_service.send_booking_confirmation(booking)

        promoted = None
        if old_slot.starts_at > now:
            promoted = self.waitlist_service.promote_next(old_slot, now=now)

        return booking, promoted

    # ==========================================================================
    # Attendance
    # ==========================================================================

    @transaction.atomic
    def mark_attendance(
        self,
        booking_id: uuid.UUID,
        attended: bool,
        user: User,
        now: Optional[datetime] = None,
    ) -> Booking:
        """CONFIRMED -> COMPLETED (attended) or NO_SHOW, once the slot has started."""
        now = now or timezone.now()
        booking = self.get_booking(booking_id)

        if user.is_student:
            raise AccessDeniedError("Students cannot mark attendance")
        ensure_can_manage_booking(user, booking)

        booking = Booking.objects.select_for_update(of=('self',)).select_related('slot').get(pk=booking.pk)

        if not booking.can_mark_attendance:
            raise BookingStateError(
                f"Cannot mark attendance for booking in {booking.status} status",
                details={'status': booking.status}
            )
        if booking.slot.starts_at > now:
            raise BookingStateError(
                "Attendance can only be marked after the slot has started",
                details={'starts_at': booking.slot.starts_at.isoformat()}
            )

        booking.mark_attendance(attended)

        logger.info(f"Marked booking {booking.id} as {booking.status} by {user.id}")
        return booking

    # ==========================================================================
    # Monthly limit
    # ==========================================================================

    def monthly_check(self, student: User, on_date: date) -> Dict[str, Any]:
        limit = self.settings_service.get_booking_rules()['max_bookings_per_month']
        count = monthly_booking_count(student, on_date)
        return {
            'student_id': str(student.id),
            'month': on_date.strftime('%Y-%m'),
            'count': count,
            'limit': limit,
            'can_book': count < limit,
        }

    # ==========================================================================
    # Locking
    # ==========================================================================

    @staticmethod
    def _lock_slot(slot_id) -> Slot:
        try:
            return Slot.objects.select_for_update(of=('self',)).select_related(
                'branch', 'teacher'
            ).get(pk=slot_id)
        except (Slot.DoesNotExist, ValueError, DjangoValidationError):
            raise SlotNotFoundError(f"Slot {slot_id} not found")

    @staticmethod
    def _lock_student(student: User) -> User:
        return User.objects.select_for_update().get(pk=student.pk)
