"""
Unit Tests for Settings, Notifications, Import, Reports and Periodic Tasks
"""

from datetime import timedelta

import httpx
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone

from apps.core.models import AuditLog, Booking, Notification, User, WaitingListEntry
from apps.core.services import (
    BookingValidationError,
    ImportValidationError,
    NotificationService,
    ReportService,
    ResourceNotFoundError,
    SettingsValidationError,
    StudentImportService,
    SystemSettingsService,
)
from apps.core.services.notification_service import render_template
from apps.core.services.sms import SMSDeliveryError, send_sms
from apps.core.tasks import daily_cleanup, deliver_sms, send_booking_reminders


def csv_upload(content, name='students.csv'):
    return SimpleUploadedFile(name, content.encode('utf-8'), content_type='text/csv')


@pytest.mark.django_db
class TestSystemSettingsService:

    def setup_method(self):
        self.service = SystemSettingsService()

    def test_defaults(self):
        rules = self.service.get_booking_rules()

        assert rules == {
            'max_bookings_per_month': 1,
            'cancellation_hours': 24,
            'allow_cross_branch_booking': True,
            'auto_reminder_hours': 24,
        }
        assert self.service.get_section('system_limits')['max_slots_per_day'] == 20

    def test_partial_update_keeps_other_keys(self, super_admin):
        old, new = self.service.update_config(
            {'booking_rules': {'cancellation_hours': 12}}, updated_by=super_admin
        )

        assert old['booking_rules']['cancellation_hours'] == 24
        assert new['booking_rules']['cancellation_hours'] == 12
        assert self.service.get_booking_rules()['max_bookings_per_month'] == 1
        assert self.service.get_booking_rules()['cancellation_hours'] == 12

    def test_unknown_key_rejected(self):
        with pytest.raises(SettingsValidationError) as exc:
            self.service.update_config({'booking_rules': {'max_bookings_per_week': 3}})
        assert 'booking_rules.max_bookings_per_week' in exc.value.details

    def test_unknown_section_rejected(self):
        with pytest.raises(SettingsValidationError):
            self.service.update_config({'payments': {'enabled': True}})

    @pytest.mark.parametrize('changes, field', [
        ({'booking_rules': {'max_bookings_per_month': 0}}, 'booking_rules.max_bookings_per_month'),
        ({'booking_rules': {'cancellation_hours': -1}}, 'booking_rules.cancellation_hours'),
        ({'booking_rules': {'allow_cross_branch_booking': 'yes'}}, 'booking_rules.allow_cross_branch_booking'),
        ({'system_limits': {'max_students_per_slot': 150}}, 'system_limits.max_students_per_slot'),
        ({'audit_settings': {'log_level': 'verbose'}}, 'audit_settings.log_level'),
    ])
    def test_invalid_values(self, changes, field):
        with pytest.raises(SettingsValidationError) as exc:
            self.service.update_config(changes)
        assert field in exc.value.details

    def test_custom_template(self):
        self.service.update_config({'notification_templates': {
            'booking_confirmed': {'sms': 'See you {date}', 'title': 'Booked', 'message': 'Booked for {date}'},
        }})

        assert self.service.get_template('booking_confirmed')['sms'] == 'See you {date}'


class TestRenderTemplate:

    def test_unknown_placeholders_kept(self):
        assert render_template('{date} at {time} {room}', {'date': '2025-01-10', 'time': '10:00'}) == \
            '2025-01-10 at 10:00 {room}'


@pytest.mark.django_db
class TestNotificationService:

    def setup_method(self):
        self.service = NotificationService()

    def test_booking_confirmation_with_sms(self, student, slot, create_booking, django_capture_on_commit_callbacks):
        booking = create_booking(student, slot)

        with django_capture_on_commit_callbacks() as callbacks:
            notification = self.service.send_booking_confirmation(booking)

        assert notification.channel == Notification.Channel.IN_APP
        assert slot.teacher.name in notification.message
        sms = Notification.objects.get(user=student, channel=Notification.Channel.SMS)
        assert sms.status == Notification.Status.PENDING
        assert len(callbacks) == 1

        callbacks[0]()

        sms.refresh_from_db()
        assert sms.status == Notification.Status.SENT
        assert sms.external_id.startswith('console-')

    def test_sms_failure_recorded(self, settings, student):
        settings.SMS_BACKEND = 'http'
        settings.SMS_API_URL = ''

        self.service.notify(student, Notification.Type.ANNOUNCEMENT, 'Hello', 'Hi there', sms_message='Hi')
        sms = Notification.objects.get(user=student, channel=Notification.Channel.SMS)

        result = deliver_sms.apply(args=[str(sms.id)], retries=deliver_sms.max_retries).get()

        sms.refresh_from_db()
        assert result['success'] is False
        assert sms.status == Notification.Status.FAILED
        assert 'SMS_API_URL' in sms.failure_reason

    def test_send_bulk_by_role(self, student, create_user, teacher):
        create_user()
        create_user(is_active=False)

        sent = self.service.send_bulk('Closure', 'Centre closed Friday', role=User.Role.STUDENT)

        assert len(sent) == 2
        assert not Notification.objects.filter(user=teacher).exists()

    def test_send_bulk_requires_recipients(self, db):
        with pytest.raises(BookingValidationError):
            self.service.send_bulk('Closure', 'Centre closed Friday')

    def test_read_state(self, student, create_user):
        first = self.service.notify(student, Notification.Type.REMINDER, 'One', 'First')
        self.service.notify(student, Notification.Type.REMINDER, 'Two', 'Second')

        assert self.service.unread_count(student) == 2
        self.service.mark_read(first.id, student)
        assert self.service.unread_count(student) == 1
        assert self.service.mark_all_read(student) == 1
        assert self.service.unread_count(student) == 0

        with pytest.raises(ResourceNotFoundError):
            self.service.mark_read(first.id, create_user())


class TestSendSMS:

    def test_http_backend(self, settings, monkeypatch):
        settings.SMS_BACKEND = 'http'
        settings.SMS_API_URL = 'https://sms.example.com/send'
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={'message_id': 'abc123'})

        real_client = httpx.Client
        monkeypatch.setattr(
            httpx, 'Client',
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs)
        )

        assert send_sms('+8801712345678', 'Hello') == 'abc123'
        assert requests[0].headers['Authorization'].startswith('Bearer')

    def test_http_error(self, settings, monkeypatch):
        settings.SMS_BACKEND = 'http'
        settings.SMS_API_URL = 'https://sms.example.com/send'

        real_client = httpx.Client
        monkeypatch.setattr(
            httpx, 'Client',
            lambda **kwargs: real_client(
                transport=httpx.MockTransport(lambda request: httpx.Response(503)), **kwargs
            )
        )

        with pytest.raises(SMSDeliveryError) as exc:
            send_sms('+8801712345678', 'Hello')
        assert '503' in str(exc.value)


@pytest.mark.django_db
class TestStudentImportService:

    def setup_method(self):
        self.service = StudentImportService()

    def test_template(self):
        assert self.service.get_template().splitlines()[0] == 'name,phoneNumber,email'

    def test_preview(self, student):
        upload = csv_upload(
            'name,phoneNumber,email\n'
            'Karim Ahmed,01812345678,karim@example.com\n'
            f'Existing,{student.phone_number},\n'
            'Bad Phone,12345,\n'
            'Twin,01812345678,\n'
        )

        preview = self.service.preview(upload)

        assert preview['total'] == 4
        assert preview['valid'] == 1
        errors = {row['row']: row['errors'] for row in preview['rows']}
        assert errors[2] == {}
        assert errors[3]['phone_number'] == 'Phone number is already registered'
        assert 'phone_number' in errors[4]
        assert errors[5]['phone_number'] == 'Duplicate phone number in file'

    def test_import_without_header(self, branch, branch_admin):
        upload = csv_upload('Karim Ahmed,01812345678,karim@example.com\nSalma Khatun,+8801912345678,\n')

        result = self.service.import_students(upload, branch=branch, imported_by=branch_admin)

        assert len(result['created']) == 2
        assert result['skipped'] == 0
        karim = User.objects.get(phone_number='+8801812345678')
        assert karim.role == User.Role.STUDENT
        assert karim.branch == branch
        assert karim.email == 'karim@example.com'

    def test_taken_email_skipped(self, teacher):
        upload = csv_upload(f'Karim Ahmed,01812345678,{teacher.email}\n')

        result = self.service.import_students(upload)

        assert result['created'] == []
        assert result['errors'][0]['errors']['email'] == 'Email is already registered'

    @pytest.mark.parametrize('upload', [
        None,
        SimpleUploadedFile('students.xlsx', b'name\n'),
        SimpleUploadedFile('students.csv', b'name,phoneNumber,email\n'),
    ])
    def test_bad_files(self, upload):
        with pytest.raises(ImportValidationError):
            self.service.preview(upload)


@pytest.mark.django_db
class TestReportService:

    def setup_method(self):
        self.service = ReportService()

    @pytest.fixture
    def history(self, create_user, create_slot, create_booking, create_assessment):
        day = timezone.now() - timedelta(days=2)
        slot = create_slot(starts_at=day, capacity=4)
        attended = create_booking(create_user(), slot, status=Booking.Status.COMPLETED, attended=True)
        create_booking(create_user(), slot, status=Booking.Status.NO_SHOW, attended=False)
        create_booking(create_user(), slot, status=Booking.Status.CANCELLED)
        create_assessment(attended, score='7.5')
        return slot

    def test_overview(self, history, branch):
        report = self.service.overview(branch_id=branch.id)

        assert report['total_bookings'] == 3
        assert report['bookings_by_status']['NO_SHOW'] == 1
        assert report['attendance_rate'] == 50.0
        assert report['utilization_rate'] == 25.0
        assert report['average_score'] == 7.5
        assert [b['name'] for b in report['branches']] == ['Dhanmondi']

    def test_attendance(self, history, teacher):
        report = self.service.attendance()

        assert report['summary']['attended'] == 1
        assert report['summary']['no_show'] == 1
        assert report['by_teacher'][0]['teacher'] == teacher.name
        assert len(report['rows']) == 2

    def test_utilization(self, history):
        report = self.service.utilization()

        assert report['summary']['capacity'] == 4
        assert report['summary']['booked'] == 1
        assert report['by_date'][0]['utilization_rate'] == 25.0

    def test_assessments(self, history):
        report = self.service.assessments()

        assert report['summary']['total'] == 1
        assert report['summary']['highest_score'] == 7.5

    def test_export_csv(self, history):
        filename, content = self.service.export_csv('attendance')

        assert filename.startswith('attendance-report-')
        lines = content.splitlines()
        assert lines[0].startswith('Date,Time,Student')
        assert len(lines) == 3

    def test_export_empty(self, db):
        with pytest.raises(ResourceNotFoundError):
            self.service.export_csv('assessments')

    def test_export_unknown_type(self, db):
        with pytest.raises(BookingValidationError):
            self.service.export_csv('revenue')

    def test_system_metrics(self, history, super_admin):
        metrics = self.service.system_metrics()

        assert metrics['users']['by_role']['SUPER_ADMIN'] == 1
        assert metrics['bookings']['total'] == 3
        assert metrics['slots']['total'] == 1


@pytest.mark.django_db
class TestPeriodicTasks:

    def test_reminders_sent_once(self, student, create_slot, create_booking):
        slot = create_slot(starts_at=timezone.now() + timedelta(hours=24))
        create_booking(student, slot)
        create_booking(student, create_slot(starts_at=timezone.now() + timedelta(hours=72)))

        assert send_booking_reminders() == {'sent': 1}
        assert send_booking_reminders() == {'sent': 0}
        assert Notification.objects.filter(
            user=student, type=Notification.Type.BOOKING_REMINDER, channel=Notification.Channel.IN_APP
        ).count() == 1

    def test_reminders_accept_naive_now(self, student, create_slot, create_booking):
        slot = create_slot(starts_at=timezone.now() + timedelta(hours=24))
        create_booking(student, slot)
        naive_now = timezone.localtime().replace(tzinfo=None).isoformat()

        assert send_booking_reminders(now=naive_now) == {'sent': 1}

    def test_daily_cleanup(self, student, create_user, create_slot, create_booking, slot):
        stale = create_booking(student, create_slot(starts_at=timezone.now() - timedelta(days=2)))
        WaitingListEntry.objects.create(
            student=create_user(), slot=slot, priority=1,
            expires_at=timezone.now() - timedelta(hours=1),
        )
        old = Notification.objects.create(
            user=student, type=Notification.Type.ANNOUNCEMENT, title='Old', message='Old', is_read=True
        )
        Notification.objects.filter(id=old.id).update(created_at=timezone.now() - timedelta(days=120))
        AuditLog.objects.create(
            action=AuditLog.Action.UPDATE, entity_type='slot',
            timestamp=timezone.now() - timedelta(days=400),
        )

        result = daily_cleanup()

        stale.refresh_from_db()
        assert result == {'notifications': 1, 'waiting_list_entries': 1, 'audit_logs': 1, 'no_shows': 1}
        assert stale.status == Booking.Status.NO_SHOW
        assert stale.attended is False
