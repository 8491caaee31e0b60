"""
SMS Delivery

Outbound text messages through the configured gateway.

SMS_BACKEND='http' posts to SMS_API_URL with a bearer SMS_API_KEY.
SMS_BACKEND='console' writes the message to the log instead and is the
default outside production.
"""

import logging
import uuid

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)


class SMSDeliveryError(Exception):
    """Gateway rejected the message or could not be reached."""
    pass


def send_sms(phone_number: str, message: str) -> str:
    """Send one message; returns the gateway's message id."""
    backend = getattr(settings, 'SMS_BACKEND', 'console')

    if backend == 'console':
        return _send_console(phone_number, message)
    if backend == 'http':
        return _send_http(phone_number, message)

    raise SMSDeliveryError(f"Unknown SMS backend: {backend}")


def _send_console(phone_number: str, message: str) -> str:
    message_id = f"console-{uuid.uuid4().hex[:12]}"
    logger.info(
        f"SMS to {phone_number}: {message}",
        extra={'message_id': message_id}
    )
    return message_id


def _send_http(phone_number: str, message: str) -> str:
    url = settings.SMS_API_URL
    if not url:
        raise SMSDeliveryError("SMS_API_URL is not configured")

    try:
        with httpx.Client(timeout=settings.SMS_TIMEOUT_SECONDS) as client:
            response = client.post(
                url,
                json={
                    'to': phone_number,
                    'message': message,
                    'sender_id': settings.SMS_SENDER_ID,
                },
                headers={
                    'Authorization': f"Bearer {settings.SMS_API_KEY}",
                    'Accept': 'application/json',
                }
            )
            response.raise_for_status()
            data = response.json() if response.content else {}

    except httpx.TimeoutException:
        logger.error(f"Timeout sending SMS to {phone_number}")
        raise SMSDeliveryError("SMS gateway timed out")
    except httpx.HTTPStatusError as e:
        logger.error(f"SMS gateway returned {e.response.status_code} for {phone_number}")
        raise SMSDeliveryError(f"SMS gateway error: {e.response.status_code}")
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Error sending SMS to {phone_number}: {e}")
        raise SMSDeliveryError(str(e))

    message_id = str(data.get('message_id') or data.get('id') or '')
    logger.info(f"SMS sent to {phone_number}", extra={'message_id': message_id})
    return message_id
