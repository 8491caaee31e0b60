"""
Unit Tests for Booking, Waiting List and Assessment Services
"""

from datetime import time, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.core.models import Booking, Notification, WaitingListEntry
from apps.core.services import (
    AccessDeniedError,
    AssessmentService,
    BookingConflictError,
    BookingNotFoundError,
    BookingService,
    BookingStateError,
    BookingValidationError,
    CancellationWindowError,
    CapacityExceededError,
    DuplicateBookingError,
    MonthlyLimitError,
    PastSlotError,
    RuleViolationError,
    ScoreValidationError,
    SlotNotFoundError,
    WaitlistError,
    WaitlistService,
)


@pytest.mark.django_db
class TestBookingService:
    """Tests for BookingService."""

    def setup_method(self):
        self.service = BookingService()

    def test_create_booking(self, student, slot):
        booking = self.service.create_booking(slot.id, student)

        assert booking.status == Booking.Status.CONFIRMED
        assert booking.created_by == student
        assert Notification.objects.filter(
            user=student,
            type=Notification.Type.BOOKING_CONFIRMED,
            channel=Notification.Channel.IN_APP,
        ).exists()

    def test_sms_sent_after_commit(self, student, slot, monkeypatch, django_capture_on_commit_callbacks):
        sent = []
        monkeypatch.setattr(
            'apps.core.services.sms.send_sms',
            lambda phone_number, message: sent.append(phone_number) or 'gw-1'
        )

        with django_capture_on_commit_callbacks(execute=True):
            self.service.create_booking(slot.id, student)
            assert sent == []
            assert Notification.objects.get(
                user=student, channel=Notification.Channel.SMS
            ).status == Notification.Status.PENDING

        assert sent == [student.phone_number]
        sms = Notification.objects.get(user=student, channel=Notification.Channel.SMS)
        assert sms.status == Notification.Status.SENT
        assert sms.external_id == 'gw-1'

    def test_staff_booking_records_creator(self, branch_admin, student, slot):
        booking = self.service.create_booking(slot.id, student, created_by=branch_admin)

        assert booking.created_by == branch_admin

    def test_unknown_slot(self, student):
        with pytest.raises(SlotNotFoundError):
            self.service.create_booking('00000000-0000-0000-0000-000000000000', student)

    def test_capacity_enforced(self, slot, create_user):
        self.service.create_booking(slot.id, create_user())
        self.service.create_booking(slot.id, create_user())

        with pytest.raises(CapacityExceededError):
            self.service.create_booking(slot.id, create_user())

        assert slot.bookings.filter(status=Booking.Status.CONFIRMED).count() == 2

    def test_duplicate_booking(self, student, slot):
        self.service.create_booking(slot.id, student)

        with pytest.raises(DuplicateBookingError):
            self.service.create_booking(slot.id, student)

    def test_monthly_limit(self, student, create_slot):
        first = create_slot()
        second = create_slot(start_time=time(11, 0), end_time=time(11, 30))
        self.service.create_booking(first.id, student)

        with pytest.raises(MonthlyLimitError):
            self.service.create_booking(second.id, student)

    def test_monthly_limit_from_settings(self, student, create_slot, set_booking_rules):
        set_booking_rules(max_bookings_per_month=2)
        first = create_slot()
        second = create_slot(start_time=time(11, 0), end_time=time(11, 30))

        self.service.create_booking(first.id, student)
        self.service.create_booking(second.id, student)

        assert self.service.monthly_check(student, first.date)['count'] == 2

    def test_blocked_slot(self, student, slot):
        slot.block('Teacher unavailable')

        with pytest.raises(RuleViolationError) as exc:
            self.service.create_booking(slot.id, student)
        assert exc.value.details['reason'] == 'Teacher unavailable'

    def test_past_slot(self, student, past_slot):
        with pytest.raises(PastSlotError):
            self.service.create_booking(past_slot.id, student)

    def test_inactive_student(self, student, slot):
        student.deactivate()

        with pytest.raises(BookingValidationError):
            self.service.create_booking(slot.id, student)

    def test_cross_branch_disabled(self, create_user, other_branch, slot, set_booking_rules):
        set_booking_rules(allow_cross_branch_booking=False)
        outsider = create_user(branch=other_branch)

        with pytest.raises(RuleViolationError):
            self.service.create_booking(slot.id, outsider)

    def test_branch_admin_other_branch(self, create_user, other_branch, student, slot):
        admin = create_user('BRANCH_ADMIN', branch=other_branch)

        with pytest.raises(AccessDeniedError):
            self.service.create_booking(slot.id, student, created_by=admin)

    def test_teacher_only_own_slots(self, create_user, student, slot):
        other_teacher = create_user('TEACHER')

        with pytest.raises(AccessDeniedError):
            self.service.create_booking(slot.id, student, created_by=other_teacher)

    # ==================== resolve_student ====================

    def test_resolve_student_self(self, student):
        assert self.service.resolve_student(student) == student

    def test_resolve_student_by_phone(self, branch_admin, student):
        resolved = self.service.resolve_student(branch_admin, student_phone_number=student.phone_number)

        assert resolved == student

    def test_resolve_student_required_for_staff(self, branch_admin):
        with pytest.raises(BookingValidationError):
            self.service.resolve_student(branch_admin)

    # ==================== cancel ====================

    def test_student_cancels_outside_window(self, student, slot, create_booking):
        booking = create_booking(student, slot)

        cancelled, slot_freed, promoted = self.service.cancel_booking(booking.id, student)

        assert cancelled.status == Booking.Status.CANCELLED
        assert cancelled.cancelled_by == student
        assert cancelled.is_late_cancellation is False
        assert slot_freed is True
        assert promoted is None

    def test_student_cannot_cancel_inside_window(self, student, create_slot, create_booking):
        slot = create_slot(starts_at=timezone.now() + timedelta(hours=3))
        booking = create_booking(student, slot)

        with pytest.raises(CancellationWindowError):
            self.service.cancel_booking(booking.id, student)

        booking.refresh_from_db()
        assert booking.status == Booking.Status.CONFIRMED

    def test_staff_late_cancellation(self, branch_admin, student, create_slot, create_booking):
        slot = create_slot(starts_at=timezone.now() + timedelta(hours=3))
        booking = create_booking(student, slot)

        cancelled, _, _ = self.service.cancel_booking(booking.id, branch_admin, reason='Room flooded')

        assert cancelled.status == Booking.Status.CANCELLED
        assert cancelled.is_late_cancellation is True
        assert cancelled.cancellation_reason == 'Room flooded'

    def test_cancel_twice(self, student, slot, create_booking):
        booking = create_booking(student, slot)
        self.service.cancel_booking(booking.id, student)

        with pytest.raises(BookingStateError):
            self.service.cancel_booking(booking.id, student)

    def test_cancel_other_students_booking(self, student, create_user, slot, create_booking):
        booking = create_booking(student, slot)

        with pytest.raises(AccessDeniedError):
            self.service.cancel_booking(booking.id, create_user())

    def test_cancel_promotes_waiting_list(self, student, create_user, create_slot, create_booking):
        slot = create_slot(capacity=1)
        booking = create_booking(student, slot)
        waiting = create_user()
        WaitlistService().join(slot.id, waiting)

        _, slot_freed, promoted = self.service.cancel_booking(booking.id, student)

        assert slot_freed is True
        assert promoted is not None
        assert promoted.student == waiting
        assert not WaitingListEntry.objects.filter(slot=slot).exists()

    # ==================== reschedule ====================

    def test_reschedule_within_month(self, student, create_slot, create_booking):
        old = create_slot()
        new = create_slot(start_time=time(11, 0), end_time=time(11, 30))
        booking = create_booking(student, old)

        moved, promoted = self.service.reschedule_booking(booking.id, new.id, student)

        assert moved.slot_id == new.id
        assert moved.status == Booking.Status.CONFIRMED
        assert promoted is None

    def test_reschedule_to_same_slot(self, student, slot, create_booking):
        booking = create_booking(student, slot)

        with pytest.raises(BookingValidationError):
            self.service.reschedule_booking(booking.id, slot.id, student)

    def test_reschedule_to_full_slot(self, student, create_user, create_slot, create_booking):
        old = create_slot()
        full = create_slot(date=old.date + timedelta(days=1), capacity=1)
        create_booking(create_user(), full)
        booking = create_booking(student, old)

        with pytest.raises(CapacityExceededError):
            self.service.reschedule_booking(booking.id, full.id, student)

    # ==================== attendance ====================

    def test_mark_attended(self, teacher, student, past_slot, create_booking):
        booking = create_booking(student, past_slot)

        marked = self.service.mark_attendance(booking.id, True, teacher)

        assert marked.status == Booking.Status.COMPLETED
        assert marked.attended is True
        assert marked.attendance_marked_at is not None

    def test_mark_no_show(self, teacher, student, past_slot, create_booking):
        booking = create_booking(student, past_slot)

        marked = self.service.mark_attendance(booking.id, False, teacher)

        assert marked.status == Booking.Status.NO_SHOW
        assert marked.attended is False

    def test_attendance_before_start(self, teacher, student, slot, create_booking):
        booking = create_booking(student, slot)

        with pytest.raises(BookingStateError):
            self.service.mark_attendance(booking.id, True, teacher)

    def test_student_cannot_mark_attendance(self, student, past_slot, create_booking):
        booking = create_booking(student, past_slot)

        with pytest.raises(AccessDeniedError):
            self.service.mark_attendance(booking.id, True, student)

    def test_get_booking_scoped(self, student, create_user, slot, create_booking):
        booking = create_booking(student, slot)

        assert self.service.get_booking(booking.id, student) == booking
        with pytest.raises(BookingNotFoundError):
            self.service.get_booking(booking.id, create_user())

    def test_monthly_check(self, student, slot, create_booking):
        create_booking(student, slot)

        result = self.service.monthly_check(student, slot.date)

        assert result['count'] == 1
        assert result['limit'] == 1
        assert result['can_book'] is False
        assert result['month'] == slot.date.strftime('%Y-%m')


@pytest.mark.django_db
class TestWaitlistService:
    """Tests for WaitlistService."""

    def setup_method(self):
        self.service = WaitlistService()

    def test_join_full_slot(self, create_user, create_slot, create_booking):
        slot = create_slot(capacity=1)
        create_booking(create_user(), slot)

        first = self.service.join(slot.id, create_user())
        second = self.service.join(slot.id, create_user())

        assert first.priority == 1
        assert second.priority == 2
        assert first.expires_at > timezone.now()

    def test_join_slot_with_free_seats(self, student, slot):
        with pytest.raises(WaitlistError):
            self.service.join(slot.id, student)

    def test_join_twice(self, student, create_user, create_slot, create_booking):
        slot = create_slot(capacity=1)
        create_booking(create_user(), slot)
        self.service.join(slot.id, student)

        with pytest.raises(WaitlistError):
            self.service.join(slot.id, student)

    def test_expiry_follows_given_clock(self, settings, student, create_user, create_slot, create_booking):
        settings.WAITING_LIST_EXPIRY_HOURS = 24
        slot = create_slot(capacity=1)
        create_booking(create_user(), slot)
        now = timezone.now() - timedelta(hours=2)

        entry = self.service.join(slot.id, student, now=now)
        assert entry.expires_at == now + timedelta(hours=24)

        rejoined = self.service.join(slot.id, student, now=now + timedelta(hours=25))
        assert rejoined.id != entry.id
        assert rejoined.expires_at == now + timedelta(hours=49)

    def test_leave_renumbers(self, create_user, create_slot, create_booking):
        slot = create_slot(capacity=1)
        create_booking(create_user(), slot)
        first_student, second_student = create_user(), create_user()
        first = self.service.join(slot.id, first_student)
        second = self.service.join(slot.id, second_student)

        self.service.leave(first.id, first_student)

        second.refresh_from_db()
        assert second.priority == 1

    def test_leave_other_students_entry(self, create_user, create_slot, create_booking):
        slot = create_slot(capacity=1)
        create_booking(create_user(), slot)
        entry = self.service.join(slot.id, create_user())

        with pytest.raises(AccessDeniedError):
            self.service.leave(entry.id, create_user())

    def test_promotion_skips_ineligible(self, create_user, create_slot, create_booking):
        slot = create_slot(capacity=1)
        holder = create_user()
        booking = create_booking(holder, slot)

        at_limit = create_user()
        create_booking(at_limit, create_slot(start_time=time(11, 0), end_time=time(11, 30)))
        eligible = create_user()
        self.service.join(slot.id, at_limit)
        self.service.join(slot.id, eligible)

        booking.cancel(cancelled_by=holder)
        promoted = self.service.promote_next(slot)

        assert promoted.student == eligible
        assert not WaitingListEntry.objects.filter(slot=slot, student=at_limit).exists()

    def test_cleanup_expired(self, create_user, create_slot, create_booking):
        slot = create_slot(capacity=1)
        create_booking(create_user(), slot)
        entry = self.service.join(slot.id, create_user())
        WaitingListEntry.objects.filter(id=entry.id).update(expires_at=timezone.now() - timedelta(minutes=1))

        assert self.service.cleanup_expired() == 1
        assert not WaitingListEntry.objects.exists()


@pytest.mark.django_db
class TestAssessmentService:
    """Tests for AssessmentService."""

    def setup_method(self):
        self.service = AssessmentService()

    def test_create_assessment(self, teacher, student, past_slot, create_booking):
        booking = create_booking(student, past_slot, status=Booking.Status.COMPLETED)

        assessment = self.service.create_assessment(booking.id, 7.5, teacher, remarks='Fluent')

        assert assessment.score == Decimal('7.5')
        assert assessment.teacher == teacher
        assert assessment.remarks == 'Fluent'

    def test_admin_records_for_slot_teacher(self, branch_admin, teacher, student, past_slot, create_booking):
        booking = create_booking(student, past_slot, status=Booking.Status.COMPLETED)

        assessment = self.service.create_assessment(booking.id, '6', branch_admin)

        assert assessment.teacher == teacher

    def test_only_completed_bookings(self, teacher, student, past_slot, create_booking):
        booking = create_booking(student, past_slot)

        with pytest.raises(BookingStateError):
            self.service.create_assessment(booking.id, 7, teacher)

    def test_one_assessment_per_booking(self, teacher, student, past_slot, create_booking):
        booking = create_booking(student, past_slot, status=Booking.Status.COMPLETED)
        self.service.create_assessment(booking.id, 7, teacher)

        with pytest.raises(BookingConflictError):
            self.service.create_assessment(booking.id, 8, teacher)

    @pytest.mark.parametrize('score', [7.3, -1, 9.5])
    def test_invalid_score(self, score, teacher, student, past_slot, create_booking):
        booking = create_booking(student, past_slot, status=Booking.Status.COMPLETED)

        with pytest.raises(ScoreValidationError):
            self.service.create_assessment(booking.id, score, teacher)

    def test_other_teacher_cannot_assess(self, create_user, student, past_slot, create_booking):
        booking = create_booking(student, past_slot, status=Booking.Status.COMPLETED)

        with pytest.raises(AccessDeniedError):
            self.service.create_assessment(booking.id, 7, create_user('TEACHER'))

    def test_update_assessment(self, teacher, student, past_slot, create_booking, create_assessment):
        booking = create_booking(student, past_slot, status=Booking.Status.COMPLETED)
        assessment = create_assessment(booking)

        updated = self.service.update_assessment(assessment.id, teacher, score='8.0')

        assert updated.score == Decimal('8.0')
        assert updated.remarks == assessment.remarks

    def test_my_scores(self, student, create_slot, create_booking, create_assessment):
        first = create_booking(student, create_slot(starts_at=timezone.now() - timedelta(days=40)),
                               status=Booking.Status.COMPLETED)
        second = create_booking(student, create_slot(starts_at=timezone.now() - timedelta(hours=3)),
                                status=Booking.Status.COMPLETED)
        create_assessment(first, score='6.0')
        create_assessment(second, score='7.0')

        result = self.service.my_scores(student)

        assert result['total'] == 2
        assert result['average_score'] == Decimal('6.5')
