"""
Notification Service

In-app notifications plus optional SMS copies. Message text for booking
events comes from the notification_templates section of system settings.
"""

import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from apps.core.models import Booking, Notification, User
from apps.core.tasks import deliver_sms

from . import ResourceNotFoundError, BookingValidationError
from .settings_service import SystemSettingsService

logger = logging.getLogger(__name__)


class _TemplateContext(dict):
    """Leaves unknown placeholders as-is instead of raising KeyError."""

    def __missing__(self, key):
        return '{' + key + '}'


def render_template(text: str, context: Dict[str, Any]) -> str:
    return text.format_map(_TemplateContext(context))


def booking_context(booking: Booking, reason: str = '') -> Dict[str, str]:
    slot = booking.slot
    return {
        'student': booking.student.name,
        'date': slot.date.strftime('%Y-%m-%d'),
        'time': slot.start_time.strftime('%H:%M'),
        'end_time': slot.end_time.strftime('%H:%M'),
        'teacher': slot.teacher.name,
        'branch': slot.branch.name,
        'reason': reason or 'Not specified',
    }


class NotificationService:
    """
    Service for user notifications.

    Handles:
    - Booking event messages (confirmation, reminder, cancellation)
    - Admin broadcasts
    - Read state
    """

    def __init__(self):
        self.settings_service = SystemSettingsService()

    # ==========================================================================
    # Sending
    # ==========================================================================

    def notify(
        self,
        user: User,
        notification_type: str,
        title: str,
        message: str,
        sms_message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """
        Store an in-app notification and, when `sms_message` is given and
        the user has a phone number, queue an SMS copy.
        """
        notification = Notification.objects.create(
            user=user,
            type=notification_type,
            channel=Notification.Channel.IN_APP,
            title=title,
            message=message,
            status=Notification.Status.SENT,
            metadata=metadata or {},
        )

        if sms_message and user.phone_number:
            self.send_sms_notification(user, notification_type, title, sms_message, metadata)

        return notification

    def send_sms_notification(
        self,
        user: User,
        notification_type: str,
        title: str,
        sms_message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """Record a PENDING SMS and queue its delivery once the current transaction commits."""
        notification = Notification.objects.create(
            user=user,
            type=notification_type,
            channel=Notification.Channel.SMS,
            title=title,
            message=sms_message,
            status=Notification.Status.PENDING,
            is_read=True,
            metadata=metadata or {},
        )

        notification_id = str(notification.id)
        transaction.on_commit(lambda: self._queue_sms(notification_id))

        return notification

    def _queue_sms(self, notification_id: str) -> None:
        try:
            deliver_sms.delay(notification_id)
        except Exception as e:
            logger.error(f"Failed to queue SMS notification {notification_id}: {e}")
            Notification.objects.filter(id=notification_id).update(
                status=Notification.Status.FAILED,
                failure_reason=str(e),
                updated_at=timezone.now(),
            )

    def send_booking_confirmation(self, booking: Booking) -> Optional[Notification]:
        return self._notify_booking(
            booking, 'booking_confirmed', Notification.Type.BOOKING_CONFIRMED
        )

    def send_booking_reminder(self, booking: Booking) -> Optional[Notification]:
        return self._notify_booking(
            booking, 'booking_reminder', Notification.Type.BOOKING_REMINDER
        )

    def send_booking_cancellation(
        self,
        booking: Booking,
        reason: str = '',
        by_staff: bool = False,
    ) -> Optional[Notification]:
        template = 'teacher_cancellation' if by_staff else 'booking_cancelled'
        return self._notify_booking(
            booking, template, Notification.Type.BOOKING_CANCELLED, reason=reason
        )

    def send_waiting_list_promoted(self, booking: Booking) -> Optional[Notification]:
        return self._notify_booking(
            booking, 'waiting_list_promoted', Notification.Type.BOOKING_CONFIRMED
        )

    def _notify_booking(
        self,
        booking: Booking,
        template_name: str,
        notification_type: str,
        reason: str = '',
    ) -> Optional[Notification]:
        """
        Render a booking template and notify the student.

        Notification failures are logged and never propagate, so they
        cannot undo the booking change that triggered them.
        """
        try:
            template = self.settings_service.get_template(template_name)
            context = booking_context(booking, reason)
            with transaction.atomic():
                return self.notify(
                    booking.student,
                    notification_type,
                    title=render_template(template['title'], context),
                    message=render_template(template['message'], context),
                    sms_message=render_template(template['sms'], context),
                    metadata={
                        'booking_id': str(booking.id),
                        'slot_id': str(booking.slot_id),
                        'template': template_name,
                    },
                )
        except Exception as e:
            logger.error(
                f"Failed to send {template_name} notification for booking {booking.id}: {e}",
                exc_info=True
            )
            return None

    @transaction.atomic
    def send_bulk(
        self,
        title: str,
        message: str,
        notification_type: str = Notification.Type.ANNOUNCEMENT,
        user_ids: Optional[Iterable[uuid.UUID]] = None,
        role: Optional[str] = None,
        branch_id: Optional[uuid.UUID] = None,
        with_sms: bool = False,
        sender: Optional[User] = None,
    ) -> List[Notification]:
        """
        Notify explicit users, or every active user matching role and/or
        branch. At least one targeting option is required.
        """
        if not user_ids and not role and not branch_id:
            raise BookingValidationError(
                "Specify user_ids, role or branch_id",
                details={'recipients': 'No recipients selected'}
            )

        recipients = User.objects.filter(is_active=True)
        if user_ids:
            recipients = recipients.filter(id__in=list(user_ids))
        if role:
            recipients = recipients.filter(role=role)
        if branch_id:
            recipients = recipients.filter(branch_id=branch_id)

        metadata = {'sent_by': str(sender.id)} if sender else {}
        notifications = [
            self.notify(
                user,
                notification_type,
                title,
                message,
                sms_message=message if with_sms else None,
                metadata=metadata,
            )
            for user in recipients
        ]

        logger.info(
            f"Sent {notification_type} notification to {len(notifications)} users",
            extra={'sender_id': str(sender.id) if sender else None}
        )
        return notifications

    # ==========================================================================
    # Read state
    # ==========================================================================

    def get_user_notifications(self, user: User) -> QuerySet:
        return Notification.objects.filter(user=user, channel=Notification.Channel.IN_APP)

    def get_notification(self, notification_id: uuid.UUID, user: User) -> Notification:
        try:
            return self.get_user_notifications(user).get(id=notification_id)
        except (Notification.DoesNotExist, ValueError, DjangoValidationError):
            raise ResourceNotFoundError(f"Notification {notification_id} not found")

    def mark_read(self, notification_id: uuid.UUID, user: User) -> Notification:
        notification = self.get_notification(notification_id, user)
        notification.mark_read()
        return notification

    def mark_all_read(self, user: User) -> int:
        return self.get_user_notifications(user).filter(is_read=False).update(
            is_read=True,
            read_at=timezone.now(),
            updated_at=timezone.now(),
        )

    def unread_count(self, user: User) -> int:
        return self.get_user_notifications(user).filter(is_read=False).count()

    def delete(self, notification_id: uuid.UUID, user: User) -> None:
        self.get_notification(notification_id, user).delete()

    def has_reminder(self, booking: Booking) -> bool:
        return Notification.objects.filter(
            user_id=booking.student_id,
            type=Notification.Type.BOOKING_REMINDER,
            metadata__booking_id=str(booking.id),
        ).exists()

    def purge_read(self, older_than_days: int) -> int:
        cutoff = timezone.now() - timedelta(days=older_than_days)
        deleted, _ = Notification.objects.filter(is_read=True, created_at__lt=cutoff).delete()
        return deleted
