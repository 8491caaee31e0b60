"""
Waitlist Service

Queue of students waiting for a seat on a full slot. When a booking on
the slot is cancelled the first eligible entry is turned into a booking.
"""

import uuid
import logging
from datetime import datetime
from typing import Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Max, QuerySet
from django.utils import timezone

from apps.core.models import Booking, Slot, User, WaitingListEntry

from . import (
    AccessDeniedError,
    BookingServiceError,
    CapacityExceededError,
    ResourceNotFoundError,
    SlotNotFoundError,
    WaitlistError,
)
from .access import ensure_branch_access, scope_slots
from .notification_service import NotificationService
from .rules import available_spots

logger = logging.getLogger(__name__)


class WaitlistService:
    """
    Service for managing the waiting list.

    Handles:
    - Joining and leaving the queue
    - Promotion on cancellation
    - Expiry
    """

    def __init__(self):
        self.notification_service = NotificationService()

    # ==========================================================================
    # Queue
    # ==========================================================================

    @transaction.atomic
    def join(self, slot_id: uuid.UUID, student: User, now: Optional[datetime] = None) -> WaitingListEntry:
        """Queue a student for a full, future slot."""
        now = now or timezone.now()

        try:
            slot = Slot.objects.select_for_update().get(pk=slot_id)
        except (Slot.DoesNotExist, ValueError, DjangoValidationError):
            raise SlotNotFoundError(f"Slot {slot_id} not found")

        if slot.is_blocked or slot.starts_at <= now:
            raise WaitlistError("Slot is not open for booking")

        if available_spots(slot) > 0:
            raise WaitlistError(
                "Slot still has free seats; book it directly",
                details={'available_spots': available_spots(slot)}
            )

        if Booking.objects.filter(
            student=student,
            slot=slot,
            status__in=Booking.get_seat_holding_statuses()
        ).exists():
            raise WaitlistError("You already have a booking for this slot")

        existing = WaitingListEntry.objects.filter(student=student, slot=slot).first()
        if existing is not None:
            if not existing.is_expired(now):
                raise WaitlistError(
                    "You are already on the waiting list for this slot",
                    details={'priority': existing.priority}
                )
            existing.delete()

        last = slot.waiting_list.active(now).aggregate(last=Max('priority'))['last'] or 0
        entry = WaitingListEntry.objects.create(
            student=student,
            slot=slot,
            priority=last + 1,
            expires_at=WaitingListEntry.expiry_from(now),
        )

        logger.info(f"Student {student.id} joined waiting list for slot {slot.id} at #{entry.priority}")
        return entry

    @transaction.atomic
    def leave(self, entry_id: uuid.UUID, user: User) -> None:
        entry = self.get_entry(entry_id)

        if user.is_student and entry.student_id != user.id:
            raise AccessDeniedError("You can only leave your own waiting list entries")
        if user.is_teacher and entry.slot.teacher_id != user.id:
            raise AccessDeniedError("You can only manage waiting lists of your own slots")
        if user.is_branch_admin:
            ensure_branch_access(user, entry.slot.branch_id)

        slot = entry.slot
        entry.delete()
        self.renumber(slot)

        logger.info(f"Removed waiting list entry {entry_id} for slot {slot.id}")

    def get_entry(self, entry_id: uuid.UUID) -> WaitingListEntry:
        try:
            return WaitingListEntry.objects.select_related('slot', 'student').get(id=entry_id)
        except (WaitingListEntry.DoesNotExist, ValueError, DjangoValidationError):
            raise ResourceNotFoundError(f"Waiting list entry {entry_id} not found")

    def list_entries(self, user: User, slot_id: Optional[uuid.UUID] = None) -> QuerySet:
        """Students see their own entries; staff see entries on slots they can access."""
        queryset = WaitingListEntry.objects.active().select_related(
            'student', 'slot', 'slot__branch', 'slot__teacher'
        )

        if user.is_student:
            queryset = queryset.filter(student=user)
        elif user.is_teacher:
            queryset = queryset.filter(slot__teacher=user)
        else:
            queryset = queryset.filter(slot__in=scope_slots(user, Slot.objects.all()))

        if slot_id:
            queryset = queryset.filter(slot_id=slot_id)

        return queryset.order_by('slot__date', 'slot__start_time', 'priority')

    def remove_student(self, slot: Slot, student: User) -> bool:
        """Drop the student's entry for the slot, if any."""
        deleted, _ = WaitingListEntry.objects.filter(slot=slot, student=student).delete()
        if deleted:
            self.renumber(slot)
        return bool(deleted)

    def renumber(self, slot: Slot) -> None:
        """Close gaps so priorities run 1..n in queue order."""
        entries = WaitingListEntry.objects.filter(slot=slot).order_by('priority', 'created_at')
        for position, entry in enumerate(entries, start=1):
            if entry.priority != position:
                entry.priority = position
                entry.save(update_fields=['priority', 'updated_at'])

    # ==========================================================================
    # Promotion
    # ==========================================================================

    def promote_next(self, slot: Slot, now: Optional[datetime] = None) -> Optional[Booking]:
        """
        Book the first eligible, unexpired entry onto the slot.

        Entries whose student can no longer book (monthly limit, inactive,
        already booked) are removed. Stops when the slot has no free seat.
        """
        from .booking_service import BookingService

        now = now or timezone.now()
        booking_service = BookingService()

        for entry in list(slot.waiting_list.active(now).select_related('student').order_by('priority')):
            try:
                with transaction.atomic():
                    booking = booking_service.create_booking(
                        slot.id, entry.student, now=now, notify=False
                    )
            except CapacityExceededError:
                return None
            except BookingServiceError as e:
                logger.info(
                    f"Skipping waiting list entry {entry.id} for slot {slot.id}: {e.message}"
                )
                entry.delete()
                continue

            logger.info(
                f"Promoted student {entry.student_id} from waiting list to booking {booking.id}"
            )
            self.notification_service.send_waiting_list_promoted(booking)
            return booking

        self.renumber(slot)
        return None

    # ==========================================================================
    # Expiry
    # ==========================================================================

    @transaction.atomic
    def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        expired = WaitingListEntry.objects.expired(now)
        slot_ids = set(expired.values_list('slot_id', flat=True))

        deleted, _ = expired.delete()
        for slot in Slot.objects.filter(id__in=slot_ids):
            self.renumber(slot)

        if deleted:
            logger.info(f"Removed {deleted} expired waiting list entries")
        return deleted
