"""
Celery Tasks

SMS delivery, queued once the triggering transaction commits.

Periodic jobs scheduled by CELERY_BEAT_SCHEDULE:
- Booking reminders (hourly)
- Daily cleanup (02:00)
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from celery import shared_task
from django.conf import settings
from django.db.models import Q
from django.utils import timezone

logger = logging.getLogger(__name__)


def _resolve_now(now: Optional[str]) -> datetime:
    if not now:
        return timezone.now()
    parsed = datetime.fromisoformat(now)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def deliver_sms(self, notification_id: str) -> Dict[str, Any]:
    """
    Deliver a PENDING SMS notification through the configured gateway.

    Gateway errors are retried; the record is marked FAILED once retries
    run out.
    """
    from apps.core.models import Notification
    from apps.core.services.sms import SMSDeliveryError, send_sms

    try:
        notification = Notification.objects.select_related('user').get(id=notification_id)
    except Notification.DoesNotExist:
        logger.error(f"Notification not found: {notification_id}")
        return {'success': False, 'error': 'Notification not found'}

    if notification.status != Notification.Status.PENDING:
        logger.info(f"Notification {notification_id} already {notification.status}")
        return {'success': notification.status == Notification.Status.SENT}

    try:
        external_id = send_sms(notification.user.phone_number, notification.message)
    except SMSDeliveryError as e:
        if self.request.retries < self.max_retries:
            logger.warning(f"SMS notification {notification_id} failed, retrying: {e}")
            raise self.retry(exc=e)

        logger.error(f"SMS notification {notification_id} failed: {e}")
        notification.mark_failed(str(e))
        return {'success': False, 'error': str(e)}

    notification.mark_sent(external_id)
    return {'success': True, 'external_id': external_id}


@shared_task
def send_booking_reminders(now: Optional[str] = None) -> Dict[str, Any]:
    """
    Remind students of CONFIRMED bookings starting about
    `auto_reminder_hours` from now (+/- 1 hour). Each booking is reminded
    at most once.
    """
    from apps.core.models import Booking
    from apps.core.services import NotificationService, SystemSettingsService

    now = _resolve_now(now)
    hours = SystemSettingsService().get_booking_rules()['auto_reminder_hours']

    window_start = timezone.localtime(now + timedelta(hours=hours - 1))
    window_end = timezone.localtime(now + timedelta(hours=hours + 1))

    candidates = Booking.objects.filter(
        status=Booking.Status.CONFIRMED,
        slot__date__gte=window_start.date(),
        slot__date__lte=window_end.date(),
    ).select_related('student', 'slot', 'slot__teacher', 'slot__branch')

    notification_service = NotificationService()
    sent = 0
    for booking in candidates:
        if not window_start <= booking.slot.starts_at <= window_end:
            continue
        if notification_service.has_reminder(booking):
            continue
        if notification_service.send_booking_reminder(booking) is not None:
            sent += 1

    logger.info(f"Sent {sent} booking reminders for the next {hours}h")
    return {'sent': sent}


@shared_task
def daily_cleanup(now: Optional[str] = None) -> Dict[str, int]:
    """
    - Delete read notifications older than NOTIFICATION_RETENTION_DAYS
    - Delete expired waiting list entries
    - Purge audit logs older than the configured retention
    - Mark CONFIRMED bookings whose slot ended over a day ago as NO_SHOW
    """
    from apps.core.models import Booking
    from apps.core.services import (
        AuditService,
        NotificationService,
        SystemSettingsService,
        WaitlistService,
    )

    now = _resolve_now(now)

    notifications = NotificationService().purge_read(
        getattr(settings, 'NOTIFICATION_RETENTION_DAYS', 90)
    )
    waiting_list = WaitlistService().cleanup_expired(now)

    retention_days = SystemSettingsService().get_section('audit_settings')['retention_days']
    audit_logs = AuditService().purge_older_than(retention_days)

    cutoff = timezone.localtime(now - timedelta(days=1))
    no_shows = Booking.objects.filter(
        Q(slot__date__lt=cutoff.date()) | Q(slot__date=cutoff.date(), slot__end_time__lte=cutoff.time()),
        status=Booking.Status.CONFIRMED,
    ).update(
        status=Booking.Status.NO_SHOW,
        attended=False,
        attendance_marked_at=now,
        updated_at=now,
    )

    result = {
        'notifications': notifications,
        'waiting_list_entries': waiting_list,
        'audit_logs': audit_logs,
        'no_shows': no_shows,
    }
    logger.info("Daily cleanup finished", extra=result)
    return result
