"""
Unit Tests for User, Branch and Authentication Services
"""

from datetime import timedelta

import pytest
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.utils import timezone

from apps.core.models import AuditLog, Booking, User, WaitingListEntry
from apps.core.services import (
    AccessDeniedError,
    AuthenticationError,
    AuthService,
    BookingConflictError,
    BookingValidationError,
    BranchService,
    InvalidCredentialsError,
    InvalidOTPError,
    UserNotFoundError,
    UserService,
)
from apps.core.services.audit_service import redact
from shared.common.authentication import JWTTokenGenerator
from shared.common.validators import validate_phone_number


class TestPhoneNumbers:

    @pytest.mark.parametrize('raw, expected', [
        ('+8801712345678', '+8801712345678'),
        ('01712345678', '+8801712345678'),
        ('8801912345678', '+8801912345678'),
        ('017-1234-5678', '+8801712345678'),
    ])
    def test_normalized(self, raw, expected):
        assert validate_phone_number(raw) == expected

    @pytest.mark.parametrize('raw', ['', '+8801212345678', '+880171234567', '+447700900123'])
    def test_rejected(self, raw):
        with pytest.raises(ValidationError):
            validate_phone_number(raw)


class TestRedact:

    def test_nested_secrets_hidden(self):
        data = {'name': 'Rahim', 'password': 'x', 'meta': {'otp_code': '123456'}}

        assert redact(data) == {
            'name': 'Rahim',
            'password': '[REDACTED]',
            'meta': {'otp_code': '[REDACTED]'},
        }


@pytest.mark.django_db
class TestUserService:
    """Tests for UserService."""

    def setup_method(self):
        self.service = UserService()

    def test_create_student(self, branch_admin):
        student = self.service.create_user(
            branch_admin, 'Karim Ahmed', phone_number='01812345678'
        )

        assert student.role == User.Role.STUDENT
        assert student.phone_number == '+8801812345678'
        assert student.branch == branch_admin.branch
        assert not student.has_usable_password()

    def test_create_teacher(self, super_admin, branch):
        teacher = self.service.create_user(
            super_admin, 'Sadia Islam', role=User.Role.TEACHER,
            email='Sadia@Example.com', password='longpassword', branch=branch,
        )

        assert teacher.email == 'sadia@example.com'
        assert teacher.check_password('longpassword')

    def test_staff_requires_email_and_password(self, super_admin, branch):
        with pytest.raises(BookingValidationError) as exc:
            self.service.create_user(super_admin, 'No Email', role=User.Role.TEACHER, branch=branch)

        assert set(exc.value.details) == {'email', 'password'}

    def test_short_password(self, super_admin, branch):
        with pytest.raises(BookingValidationError) as exc:
            self.service.create_user(
                super_admin, 'Short Pass', role=User.Role.TEACHER,
                email='short@example.com', password='abc', branch=branch,
            )
        assert 'password' in exc.value.details

    def test_student_requires_phone(self, branch_admin):
        with pytest.raises(BookingValidationError):
            self.service.create_user(branch_admin, 'No Phone')

    def test_teacher_requires_branch(self, super_admin):
        with pytest.raises(BookingValidationError) as exc:
            self.service.create_user(
                super_admin, 'Floating Teacher', role=User.Role.TEACHER,
                email='floating@example.com', password='longpassword',
            )
        assert 'branch' in exc.value.details

    def test_branch_admin_cannot_create_admins(self, branch_admin):
        with pytest.raises(AccessDeniedError):
            self.service.create_user(
                branch_admin, 'Another Admin', role=User.Role.BRANCH_ADMIN,
                email='another@example.com', password='longpassword',
            )

    def test_duplicate_phone(self, branch_admin, student):
        with pytest.raises(BookingConflictError):
            self.service.create_user(branch_admin, 'Copy Cat', phone_number=student.phone_number)

    def test_update_returns_old_values(self, branch_admin, student):
        user, old_values = self.service.update_user(student, branch_admin, name='Rahim Hossain')

        assert user.name == 'Rahim Hossain'
        assert old_values['name'] == 'Rahim Uddin'

    def test_branch_admin_other_branch_user(self, create_user, other_branch, branch_admin):
        outsider = create_user(branch=other_branch)

        with pytest.raises(AccessDeniedError):
            self.service.update_user(outsider, branch_admin, name='Changed Name')

    def test_branch_admin_cannot_update_peer_admin(self, create_user, branch_admin):
        peer = create_user(User.Role.BRANCH_ADMIN)

        with pytest.raises(AccessDeniedError):
            self.service.update_user(peer, branch_admin, password='hijacked123')

        peer.refresh_from_db()
        assert not peer.check_password('hijacked123')

    def test_branch_admin_cannot_deactivate_peer_admin(self, create_user, branch_admin):
        peer = create_user(User.Role.BRANCH_ADMIN)

        with pytest.raises(AccessDeniedError):
            self.service.deactivate_user(peer, branch_admin)

    def test_cannot_deactivate_self(self, super_admin):
        with pytest.raises(BookingValidationError):
            self.service.deactivate_user(super_admin, super_admin)

    def test_deactivate_student_cancels_future_bookings(
        self, branch_admin, student, create_user, create_slot, create_booking
    ):
        slot = create_slot(capacity=1)
        create_booking(student, slot)
        waiting = create_user()
        WaitingListEntry.objects.create(student=waiting, slot=slot, priority=1)

        cancelled = self.service.deactivate_user(student, branch_admin)

        student.refresh_from_db()
        assert cancelled == 1
        assert student.is_active is False
        assert Booking.objects.get(student=student).status == Booking.Status.CANCELLED
        assert Booking.objects.get(student=waiting).status == Booking.Status.CONFIRMED

    def test_deactivate_teacher_cancels_their_slots(
        self, super_admin, teacher, student, slot, past_slot, create_booking
    ):
        upcoming = create_booking(student, slot)
        finished = create_booking(student, past_slot)

        cancelled = self.service.deactivate_user(teacher, super_admin)

        upcoming.refresh_from_db()
        finished.refresh_from_db()
        assert cancelled == 1
        assert upcoming.status == Booking.Status.CANCELLED
        assert upcoming.cancellation_reason == 'Account deactivated'
        assert finished.status == Booking.Status.CONFIRMED

    def test_get_user_scoped(self, create_user, other_branch, branch_admin):
        outsider = create_user(branch=other_branch)

        with pytest.raises(UserNotFoundError):
            self.service.get_user(outsider.id, requester=branch_admin)


@pytest.mark.django_db
class TestBranchService:

    def setup_method(self):
        self.service = BranchService()

    def test_delete_empty_branch(self, create_branch):
        empty = create_branch()

        self.service.delete_branch(empty)

        empty.refresh_from_db()
        assert empty.is_active is False

    def test_delete_branch_in_use(self, branch, teacher):
        with pytest.raises(BookingConflictError) as exc:
            self.service.delete_branch(branch)
        assert exc.value.details['users'] == 1

    def test_stats(self, branch, student, slot, past_slot, create_booking, create_assessment):
        create_booking(student, slot)
        done = create_booking(student, past_slot, status=Booking.Status.COMPLETED)
        create_assessment(done, score='7.0')

        stats = self.service.get_stats(branch)

        assert stats['teachers'] == 1
        assert stats['students'] == 1
        assert stats['slots'] == 2
        assert stats['upcoming_slots'] == 1
        assert stats['bookings']['total'] == 2
        assert stats['bookings']['by_status']['COMPLETED'] == 1
        assert stats['average_score'] == 7.0


@pytest.mark.django_db
class TestAuthService:
    """Tests for AuthService."""

    def setup_method(self):
        self.service = AuthService()

    def test_staff_login(self, teacher):
        result = self.service.login(teacher.email, 'password123')

        assert result['user'] == teacher
        assert result['token_type'] == 'Bearer'
        payload = JWTTokenGenerator.decode_token(result['access_token'])
        assert payload['sub'] == str(teacher.id)
        assert AuditLog.objects.filter(action=AuditLog.Action.LOGIN, user=teacher).exists()

    def test_wrong_password(self, teacher):
        with pytest.raises(InvalidCredentialsError):
            self.service.login(teacher.email, 'wrong-password')

    def test_inactive_staff(self, teacher):
        teacher.deactivate()

        with pytest.raises(AuthenticationError):
            self.service.login(teacher.email, 'password123')

    def test_student_cannot_use_password(self, create_user):
        student = create_user(email='student@example.com', password='password123')

        with pytest.raises(AuthenticationError):
            self.service.login('student@example.com', 'password123')
        assert student.is_student

    def test_otp_flow(self, student):
        local = '0' + student.phone_number[4:]

        issued = self.service.request_otp(local)
        code = cache.get(f'otp:{student.phone_number}')['code']
        result = self.service.verify_otp(student.phone_number, code)

        assert issued == {'phone_number': student.phone_number, 'expires_in': 300}
        assert result['user'] == student
        assert cache.get(f'otp:{student.phone_number}') is None

    def test_otp_unknown_phone(self, db):
        with pytest.raises(UserNotFoundError):
            self.service.request_otp('+8801999999999')

    def test_otp_invalid_phone(self, db):
        with pytest.raises(BookingValidationError):
            self.service.request_otp('12345')

    def test_otp_without_request(self, student):
        with pytest.raises(InvalidOTPError):
            self.service.verify_otp(student.phone_number, '123456')

    def test_otp_attempts_exhausted(self, student):
        self.service.request_otp(student.phone_number)
        code = cache.get(f'otp:{student.phone_number}')['code']
        wrong = '000000' if code != '000000' else '111111'

        with pytest.raises(InvalidOTPError) as exc:
            self.service.verify_otp(student.phone_number, wrong)
        assert exc.value.details['attempts_remaining'] == 2

        with pytest.raises(InvalidOTPError):
            self.service.verify_otp(student.phone_number, wrong)
        with pytest.raises(InvalidOTPError):
            self.service.verify_otp(student.phone_number, wrong)

        with pytest.raises(InvalidOTPError):
            self.service.verify_otp(student.phone_number, code)

    def test_wrong_guess_keeps_original_expiry(self, student):
        issued_at = timezone.now()
        self.service.request_otp(student.phone_number, now=issued_at)
        code = cache.get(f'otp:{student.phone_number}')['code']
        wrong = '000000' if code != '000000' else '111111'

        with pytest.raises(InvalidOTPError) as exc:
            self.service.verify_otp(student.phone_number, wrong, now=issued_at + timedelta(minutes=4))
        assert exc.value.details['attempts_remaining'] == 2

        with pytest.raises(InvalidOTPError) as exc:
            self.service.verify_otp(student.phone_number, code, now=issued_at + timedelta(minutes=6))
        assert 'expired' in exc.value.message
        assert cache.get(f'otp:{student.phone_number}') is None

    def test_refresh(self, teacher):
        tokens = JWTTokenGenerator.generate_token_pair(teacher)

        refreshed = self.service.refresh(tokens['refresh_token'])

        assert 'access_token' in refreshed

    def test_refresh_rejects_access_token(self, teacher):
        token = JWTTokenGenerator.generate_access_token(teacher)

        with pytest.raises(AuthenticationError):
            self.service.refresh(token)

    def test_refresh_garbage(self, db):
        with pytest.raises(AuthenticationError):
            self.service.refresh('not-a-token')
