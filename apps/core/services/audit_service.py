"""
Audit Service

Explicit audit entries written by the service layer. The request-level
trail is recorded by apps.core.middleware.AuditMiddleware.
"""

import json
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, Optional

from django.core.serializers.json import DjangoJSONEncoder
from django.db.models import QuerySet
from django.forms.models import model_to_dict
from django.utils import timezone

from apps.core.models import AuditLog
from shared.common.middleware import get_client_ip

logger = logging.getLogger(__name__)

REDACTED_FIELDS = ('password', 'otp', 'token', 'secret', 'api_key')


def to_json_safe(data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Round-trip through DjangoJSONEncoder so UUIDs, dates and decimals fit a JSONField."""
    if data is None:
        return None
    return json.loads(json.dumps(data, cls=DjangoJSONEncoder))


def redact(data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not isinstance(data, dict):
        return data

    redacted = {}
    for key, value in data.items():
        if any(field in str(key).lower() for field in REDACTED_FIELDS):
            redacted[key] = '[REDACTED]'
        elif isinstance(value, dict):
            redacted[key] = redact(value)
        else:
            redacted[key] = value
    return redacted


def snapshot(instance, fields: Iterable[str] = None) -> Dict[str, Any]:
    """JSON-safe dict of a model instance's field values."""
    return to_json_safe(redact(model_to_dict(instance, fields=fields)))


class AuditService:
    """Write and query audit log entries."""

    def log(
        self,
        action: str,
        entity_type: str,
        entity_id: Any = '',
        user=None,
        old_values: Optional[Dict] = None,
        new_values: Optional[Dict] = None,
        request=None,
    ) -> AuditLog:
        entry = AuditLog(
            user=user if getattr(user, 'is_authenticated', False) else None,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id or ''),
            old_values=to_json_safe(redact(old_values)),
            new_values=to_json_safe(redact(new_values)),
        )

        if request is not None:
            entry.ip_address = get_client_ip(request) or None
            entry.user_agent = request.META.get('HTTP_USER_AGENT', '')[:500]
            entry.request_id = getattr(request, 'request_id', '') or ''
            # AuditMiddleware skips requests that already have an explicit entry
            getattr(request, '_request', request)._audit_logged = True

        entry.save()

        logger.debug(f"Audit {action} {entity_type}:{entry.entity_id} by {entry.user_id}")
        return entry

    def get_logs(
        self,
        user_id=None,
        action: str = None,
        entity_type: str = None,
        date_from: date = None,
        date_to: date = None,
    ) -> QuerySet:
        queryset = AuditLog.objects.select_related('user')

        if user_id:
            queryset = queryset.filter(user_id=user_id)
        if action:
            queryset = queryset.filter(action=action)
        if entity_type:
            queryset = queryset.filter(entity_type=entity_type)
        if date_from:
            queryset = queryset.filter(
                timestamp__gte=timezone.make_aware(datetime.combine(date_from, time.min))
            )
        if date_to:
            queryset = queryset.filter(
                timestamp__lte=timezone.make_aware(datetime.combine(date_to, time.max))
            )

        return queryset

    def purge_older_than(self, days: int) -> int:
        """Delete entries older than `days`; returns the number removed."""
        cutoff = timezone.now() - timedelta(days=days)
        deleted, _ = AuditLog.objects.filter(timestamp__lt=cutoff).delete()

        if deleted:
            logger.info(f"Purged {deleted} audit log entries older than {days} days")
        return deleted
