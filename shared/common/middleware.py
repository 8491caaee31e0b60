"""
Request Tracing and Logging Middleware
"""

import uuid
import time
import logging
from typing import Callable
from django.http import HttpRequest, HttpResponse
from django.conf import settings

logger = logging.getLogger(__name__)

QUIET_PATH_PREFIXES = ('/health/', '/static/')


def get_client_ip(request: HttpRequest) -> str:
    """Extract client IP from request"""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', '')


class RequestIDMiddleware:
    """
    Adds a request ID to each request and echoes it in the response.
    A client-supplied X-Request-ID is kept so traces can span the frontend.
    """

    def __init__(self, get_response: Callable):
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        request.request_id = request_id

        response = self.get_response(request)
        response['X-Request-ID'] = request_id

        return response


class LoggingMiddleware:
    """
    Logs request start and completion with timing.
    """

    def __init__(self, get_response: Callable):
        self.get_response = get_response
        self.quiet_prefixes = getattr(settings, 'LOGGING_QUIET_PATHS', QUIET_PATH_PREFIXES)

    def __call__(self, request: HttpRequest) -> HttpResponse:
        if request.path.startswith(tuple(self.quiet_prefixes)):
            return self.get_response(request)

        start_time = time.perf_counter()

        logger.info(
            f"Request started: {request.method} {request.path}",
            extra={
                'request_id': getattr(request, 'request_id', None),
                'method': request.method,
                'path': request.path,
                'ip_address': get_client_ip(request),
            }
        )

        response = self.get_response(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        # request.user is set by DRF once the view has authenticated
        user = getattr(request, 'user', None)
        log_method = logger.warning if response.status_code >= 400 else logger.info
        log_method(
            f"Request completed: {request.method} {request.path} - {response.status_code}",
            extra={
                'request_id': getattr(request, 'request_id', None),
                'method': request.method,
                'path': request.path,
                'status_code': response.status_code,
                'duration_ms': round(duration_ms, 2),
                'user_id': str(getattr(user, 'id', None)),
                'role': getattr(user, 'role', None),
            }
        )

        response['X-Response-Time'] = f"{duration_ms:.2f}ms"

        return response
