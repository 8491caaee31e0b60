"""
Audit Middleware

Records successful write requests under /api/ to the audit log.
"""

import json
import logging
import re
from typing import Optional, Tuple

from django.utils.deprecation import MiddlewareMixin

from apps.core.models import AuditLog

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
    re.IGNORECASE
)


class AuditMiddleware(MiddlewareMixin):
    """
    Logs POST, PUT, PATCH and DELETE requests that returned 2xx.

    The entity type is the first path segment after /api/v1/, the entity
    id the UUID segment following it (or the `id` of a created object).
    Secrets in the request body are redacted.
    """

    AUDITED_METHODS = ['POST', 'PUT', 'PATCH', 'DELETE']

    API_PREFIX = '/api/v1/'

    # Logins are logged by AuthService; previews change nothing
    EXCLUDED_PREFIXES = [
        '/api/v1/auth/',
        '/api/v1/import/preview/',
    ]

    def process_view(self, request, view_func, view_args, view_kwargs):
        if request.method not in self.AUDITED_METHODS:
            return None
        if not request.path.startswith(self.API_PREFIX) or self._is_excluded(request.path):
            return None

        request._audit_request_body = self._get_safe_request_body(request)
        return None

    def process_response(self, request, response):
        if not hasattr(request, '_audit_request_body'):
            return response
        if not 200 <= response.status_code < 300:
            return response
        if getattr(request, '_audit_logged', False):
            return response

        try:
            self._create_audit_log(request, response)
        except Exception as e:
            logger.error(f"Failed to create audit log: {e}")

        return response

    def _is_excluded(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.EXCLUDED_PREFIXES)

    def _get_safe_request_body(self, request) -> Optional[dict]:
        from apps.core.services.audit_service import redact

        if request.content_type != 'application/json':
            return None
        try:
            body = json.loads(request.body.decode('utf-8') or '{}')
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        return redact(body) if isinstance(body, dict) else None

    def _resolve_entity(self, request, response) -> Tuple[str, str, str]:
        """(action, entity_type, entity_id) derived from the URL."""
        segments = [s for s in request.path[len(self.API_PREFIX):].split('/') if s]
        entity_type = segments[0] if segments else 'unknown'
        entity_id = next((s for s in segments[1:] if UUID_PATTERN.match(s)), '')

        if request.method == 'DELETE':
            action = AuditLog.Action.DELETE
        elif request.method == 'POST' and not entity_id:
            action = AuditLog.Action.CREATE
            entity_id = self._created_id(response)
        else:
            action = AuditLog.Action.UPDATE

        return action, entity_type, entity_id

    @staticmethod
    def _created_id(response) -> str:
        data = getattr(response, 'data', None)
        if not isinstance(data, dict):
            return ''
        return str(data.get('id', ''))

    def _create_audit_log(self, request, response):
        from apps.core.services import AuditService

        user = getattr(request, 'user', None)
        action, entity_type, entity_id = self._resolve_entity(request, response)

        new_values = request._audit_request_body or {}
        # Custom actions such as /bookings/<id>/cancel/ or /slots/bulk/
        last_segment = [s for s in request.path.split('/') if s][-1]
        if last_segment not in (entity_id, entity_type):
            new_values = {'operation': last_segment, **new_values}

        AuditService().log(
            action,
            entity_type,
            entity_id,
            user=user,
            new_values=new_values or None,
            request=request,
        )
