"""
Booking Rules

Decisions on whether a slot or booking is legal:
time-range validity, slot overlap, capacity, monthly limit,
cancellation cutoff and IELTS score validity.

The ensure_* functions raise service exceptions; the rest return values.
Callers that write must hold the relevant row locks (see SlotService and
BookingService) so the counts here cannot go stale before the write.
"""

import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from django.core.exceptions import ValidationError
from django.db.models import Q
from django.utils import timezone

from apps.core.models import Booking, Slot
from shared.common.validators import (
    validate_time_slot as _validate_time_slot,
    validate_ielts_score,
)

from . import (
    SlotValidationError,
    SlotConflictError,
    CapacityExceededError,
    MonthlyLimitError,
    CancellationWindowError,
    ScoreValidationError,
)

logger = logging.getLogger(__name__)

# Any date works; only the time-of-day difference matters
_REFERENCE_DATE = date(2000, 1, 1)


# =============================================================================
# Time ranges
# =============================================================================

def validate_time_slot(start_time: time, end_time: time) -> None:
    """
    Reject a slot whose end is not after its start, or whose duration is
    under 15 minutes or over 180 minutes.
    """
    try:
        _validate_time_slot(
            datetime.combine(_REFERENCE_DATE, start_time),
            datetime.combine(_REFERENCE_DATE, end_time),
        )
    except ValidationError as e:
        raise SlotValidationError(
            e.messages[0],
            details={'start_time': start_time.strftime('%H:%M'), 'end_time': end_time.strftime('%H:%M')}
        )


def intervals_overlap(start_a, end_a, start_b, end_b) -> bool:
    """
    Half-open interval overlap.

    Covers a new interval starting inside an existing one, ending inside
    it, or containing it. Touching intervals (10:00-10:30, 10:30-11:00)
    do not overlap.
    """
    return start_a < end_b and start_b < end_a


# =============================================================================
# Slot conflicts
# =============================================================================

def find_conflicting_slots(
    branch,
    teacher,
    slot_date: date,
    start_time: time,
    end_time: time,
    exclude_id=None,
    room=None,
):
    """
    Slots on the same date that overlap the interval and share the teacher
    or the room.

    The teacher check spans all branches: a teacher cannot be in two
    places at once. `branch` scopes nothing further but is accepted so
    callers pass the full slot identity.
    """
    clash = Q(teacher=teacher)
    if room is not None:
        clash |= Q(room=room)

    queryset = Slot.objects.filter(
        clash,
        date=slot_date,
        start_time__lt=end_time,
        end_time__gt=start_time,
    )

    if exclude_id:
        queryset = queryset.exclude(id=exclude_id)

    return queryset.select_related('branch', 'teacher', 'room')


def check_slot_conflicts(branch, teacher, slot_date, start_time, end_time, exclude_id=None, room=None) -> bool:
    """True if any existing slot would overlap the proposed one."""
    return find_conflicting_slots(
        branch, teacher, slot_date, start_time, end_time, exclude_id=exclude_id, room=room
    ).exists()


def ensure_no_slot_conflicts(branch, teacher, slot_date, start_time, end_time, exclude_id=None, room=None) -> None:
    conflicts = list(find_conflicting_slots(
        branch, teacher, slot_date, start_time, end_time, exclude_id=exclude_id, room=room
    )[:5])

    if conflicts:
        first = conflicts[0]
        logger.warning(
            f"Slot conflict for teacher {teacher.pk} on {slot_date} "
            f"{start_time:%H:%M}-{end_time:%H:%M}"
        )
        raise SlotConflictError(
            f"Slot overlaps an existing slot at {first.branch.name} "
            f"{first.start_time:%H:%M}-{first.end_time:%H:%M}",
            details={
                'conflicting_slots': [
                    {
                        'id': str(s.id),
                        'branch': s.branch.name,
                        'teacher': s.teacher.name,
                        'room': s.room.room_number if s.room else None,
                        'start_time': s.start_time.strftime('%H:%M'),
                        'end_time': s.end_time.strftime('%H:%M'),
                    }
                    for s in conflicts
                ]
            }
        )


# =============================================================================
# Capacity
# =============================================================================

def booked_count(slot: Slot) -> int:
    """Bookings holding a seat (CONFIRMED or COMPLETED)."""
    return Booking.objects.filter(
        slot=slot,
        status__in=Booking.get_seat_holding_statuses()
    ).count()


def available_spots(slot: Slot) -> int:
    """capacity - booked; may be <= 0 when the slot is full."""
    return slot.capacity - booked_count(slot)


def ensure_capacity(slot: Slot) -> None:
    booked = booked_count(slot)
    if slot.capacity - booked <= 0:
        logger.warning(f"Slot {slot.id} is fully booked ({booked}/{slot.capacity})")
        raise CapacityExceededError(
            "Slot is fully booked",
            details={'capacity': slot.capacity, 'booked': booked}
        )


# =============================================================================
# Monthly limit
# =============================================================================

def monthly_booking_count(student, on_date: date, exclude_booking_id=None) -> int:
    """
    Non-cancelled bookings whose slot date falls in the calendar month of
    `on_date`, across all branches.
    """
    queryset = Booking.objects.filter(
        student=student,
        status__in=Booking.get_seat_holding_statuses(),
        slot__date__year=on_date.year,
        slot__date__month=on_date.month,
    )
    if exclude_booking_id:
        queryset = queryset.exclude(id=exclude_booking_id)
    return queryset.count()


def ensure_monthly_limit(student, on_date: date, limit: int, exclude_booking_id=None) -> None:
    count = monthly_booking_count(student, on_date, exclude_booking_id=exclude_booking_id)
    if count >= limit:
        logger.warning(
            f"Student {student.pk} reached monthly limit ({count}/{limit}) for {on_date:%Y-%m}"
        )
        raise MonthlyLimitError(
            f"Monthly booking limit reached: at most {limit} booking(s) per month",
            details={'month': on_date.strftime('%Y-%m'), 'count': count, 'limit': limit}
        )


# =============================================================================
# Cancellation window
# =============================================================================

def hours_until_start(slot: Slot, now: Optional[datetime] = None) -> float:
    now = now or timezone.now()
    return (slot.starts_at - now).total_seconds() / 3600


def is_within_cancellation_window(slot: Slot, hours: int, now: Optional[datetime] = None) -> bool:
    """True when the slot starts less than `hours` from now."""
    return hours_until_start(slot, now) < hours


def ensure_outside_cancellation_window(slot: Slot, hours: int, now: Optional[datetime] = None) -> None:
    remaining = hours_until_start(slot, now)
    if remaining < hours:
        raise CancellationWindowError(
            f"Bookings cannot be changed less than {hours} hours before the slot starts",
            details={
                'cancellation_hours': hours,
                'hours_until_start': round(max(remaining, 0), 2),
            }
        )


# =============================================================================
# Assessment score
# =============================================================================

def validate_score(score) -> Decimal:
    """Return the score as a Decimal if it is an IELTS band (0-9 in 0.5 steps)."""
    try:
        return validate_ielts_score(score)
    except ValidationError as e:
        raise ScoreValidationError(e.messages[0], details={'score': str(score)})
