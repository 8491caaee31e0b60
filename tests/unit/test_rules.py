"""
Unit Tests for Booking Rules
"""

from datetime import time, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.core.models import Booking
from apps.core.services import (
    CancellationWindowError,
    CapacityExceededError,
    MonthlyLimitError,
    ScoreValidationError,
    SlotConflictError,
    SlotValidationError,
)
from apps.core.services.rules import (
    available_spots,
    booked_count,
    check_slot_conflicts,
    ensure_capacity,
    ensure_monthly_limit,
    ensure_no_slot_conflicts,
    ensure_outside_cancellation_window,
    intervals_overlap,
    is_within_cancellation_window,
    monthly_booking_count,
    validate_score,
    validate_time_slot,
)


class TestValidateTimeSlot:
    """Tests for slot duration rules."""

    @pytest.mark.parametrize('start, end', [
        (time(10, 0), time(10, 15)),
        (time(10, 0), time(11, 0)),
        (time(9, 0), time(12, 0)),
    ])
    def test_valid_windows(self, start, end):
        validate_time_slot(start, end)

    def test_end_before_start(self):
        with pytest.raises(SlotValidationError) as exc:
            validate_time_slot(time(11, 0), time(10, 0))
        assert 'before' in exc.value.message

    def test_equal_times(self):
        with pytest.raises(SlotValidationError):
            validate_time_slot(time(10, 0), time(10, 0))

    def test_too_short(self):
        with pytest.raises(SlotValidationError) as exc:
            validate_time_slot(time(10, 0), time(10, 14))
        assert '15 minutes' in exc.value.message

    def test_too_long(self):
        with pytest.raises(SlotValidationError) as exc:
            validate_time_slot(time(9, 0), time(12, 1))
        assert '180 minutes' in exc.value.message


class TestIntervalsOverlap:

    def test_start_inside(self):
        assert intervals_overlap(time(10, 15), time(10, 45), time(10, 0), time(10, 30))

    def test_end_inside(self):
        assert intervals_overlap(time(9, 45), time(10, 15), time(10, 0), time(10, 30))

    def test_containing(self):
        assert intervals_overlap(time(9, 0), time(11, 0), time(10, 0), time(10, 30))

    def test_touching_does_not_overlap(self):
        assert not intervals_overlap(time(10, 30), time(11, 0), time(10, 0), time(10, 30))
        assert not intervals_overlap(time(9, 30), time(10, 0), time(10, 0), time(10, 30))


class TestValidateScore:
    """IELTS band validation."""

    @pytest.mark.parametrize('score', [x / 2 for x in range(0, 19)])
    def test_half_steps_accepted(self, score):
        assert validate_score(score) == Decimal(str(score)).quantize(Decimal('0.1'))

    def test_string_input(self):
        assert validate_score('7.5') == Decimal('7.5')

    @pytest.mark.parametrize('score', [7.3, -1, 9.5, 10, 6.25])
    def test_invalid_scores_rejected(self, score):
        with pytest.raises(ScoreValidationError):
            validate_score(score)

    @pytest.mark.parametrize('score', ['abc', None, True, 'nan'])
    def test_non_numbers_rejected(self, score):
        with pytest.raises(ScoreValidationError):
            validate_score(score)


@pytest.mark.django_db
class TestSlotConflicts:

    def test_same_teacher_overlap(self, branch, teacher, create_slot):
        existing = create_slot(start_time=time(10, 0), end_time=time(10, 30))

        assert check_slot_conflicts(branch, teacher, existing.date, time(10, 15), time(10, 45))
        with pytest.raises(SlotConflictError) as exc:
            ensure_no_slot_conflicts(branch, teacher, existing.date, time(10, 15), time(10, 45))
        assert exc.value.details['conflicting_slots'][0]['id'] == str(existing.id)

    def test_adjacent_slots_allowed(self, branch, teacher, create_slot):
        existing = create_slot(start_time=time(10, 0), end_time=time(10, 30))

        assert not check_slot_conflicts(branch, teacher, existing.date, time(10, 30), time(11, 0))

    def test_other_teacher_no_conflict(self, branch, create_user, create_slot):
        existing = create_slot()
        other_teacher = create_user('TEACHER')

        assert not check_slot_conflicts(branch, other_teacher, existing.date, time(10, 0), time(10, 30))

    def test_teacher_conflict_across_branches(self, other_branch, teacher, create_slot):
        existing = create_slot()

        assert check_slot_conflicts(other_branch, teacher, existing.date, time(10, 0), time(10, 30))

    def test_room_conflict(self, branch, create_user, create_room, create_slot):
        room = create_room()
        existing = create_slot(room=room)
        other_teacher = create_user('TEACHER')

        assert check_slot_conflicts(
            branch, other_teacher, existing.date, time(10, 0), time(10, 30), room=room
        )

    def test_exclude_self(self, branch, teacher, create_slot):
        existing = create_slot()

        assert not check_slot_conflicts(
            branch, teacher, existing.date, time(10, 0), time(10, 30), exclude_id=existing.id
        )


@pytest.mark.django_db
class TestCapacity:

    def test_counts_confirmed_and_completed_only(self, slot, create_user, create_booking):
        create_booking(create_user(), slot)
        create_booking(create_user(), slot, status=Booking.Status.COMPLETED)
        create_booking(create_user(), slot, status=Booking.Status.CANCELLED)
        create_booking(create_user(), slot, status=Booking.Status.NO_SHOW)

        assert booked_count(slot) == 2
        assert available_spots(slot) == 0

    def test_full_slot_rejected(self, slot, create_user, create_booking):
        create_booking(create_user(), slot)
        ensure_capacity(slot)

        create_booking(create_user(), slot)
        with pytest.raises(CapacityExceededError) as exc:
            ensure_capacity(slot)
        assert exc.value.details == {'capacity': 2, 'booked': 2}


@pytest.mark.django_db
class TestMonthlyLimit:

    def test_counts_calendar_month_of_slot(self, student, create_slot, create_booking):
        slot = create_slot()
        create_booking(student, slot)

        assert monthly_booking_count(student, slot.date) == 1
        assert monthly_booking_count(student, slot.date + timedelta(days=40)) == 0

    def test_cancelled_bookings_ignored(self, student, slot, create_booking):
        create_booking(student, slot, status=Booking.Status.CANCELLED)

        ensure_monthly_limit(student, slot.date, limit=1)

    def test_limit_reached(self, student, slot, create_booking):
        create_booking(student, slot)

        with pytest.raises(MonthlyLimitError) as exc:
            ensure_monthly_limit(student, slot.date, limit=1)
        assert exc.value.details['count'] == 1
        assert exc.value.details['limit'] == 1

    def test_exclude_booking_being_moved(self, student, slot, create_booking):
        booking = create_booking(student, slot)

        ensure_monthly_limit(student, slot.date, limit=1, exclude_booking_id=booking.id)


@pytest.mark.django_db
class TestCancellationWindow:

    def test_inside_window(self, create_slot):
        slot = create_slot(starts_at=timezone.now() + timedelta(hours=5))

        assert is_within_cancellation_window(slot, 24)
        with pytest.raises(CancellationWindowError) as exc:
            ensure_outside_cancellation_window(slot, 24)
        assert exc.value.details['cancellation_hours'] == 24

    def test_outside_window(self, create_slot):
        slot = create_slot(starts_at=timezone.now() + timedelta(hours=30))

        assert not is_within_cancellation_window(slot, 24)
        ensure_outside_cancellation_window(slot, 24)

    def test_zero_hours_never_blocks_future_slot(self, create_slot):
        slot = create_slot(starts_at=timezone.now() + timedelta(hours=1))

        ensure_outside_cancellation_window(slot, 0)
