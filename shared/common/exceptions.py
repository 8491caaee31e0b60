"""
Custom Exception Classes and Exception Handler

Every error leaving the API has the same body:

    {"error": <title>, "message": <text>, "code": <CODE>,
     "details": {...}, "request_id": <id>}
"""

import logging
import traceback
from typing import Dict, Any, Optional
from rest_framework import status
from rest_framework import exceptions as drf_exceptions
from rest_framework.views import exception_handler
from rest_framework.response import Response
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from django.conf import settings
from django.http import Http404

logger = logging.getLogger(__name__)


# =============================================================================
# DOMAIN ERRORS
# =============================================================================

class DomainError(Exception):
    """
    Base class for errors raised by the service layer.

    Service code raises these without knowing about HTTP. The exception
    handler turns them into API responses using the class attributes.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = 'BAD_REQUEST'
    title = 'Bad Request'

    def __init__(self, message: str = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.title
        self.details = details or {}
        super().__init__(self.message)


# DRF exceptions -> (code, title)
DRF_ERROR_MAP = {
    drf_exceptions.ValidationError: ('VALIDATION_ERROR', 'Validation Error'),
    drf_exceptions.ParseError: ('VALIDATION_ERROR', 'Validation Error'),
    drf_exceptions.NotAuthenticated: ('AUTHENTICATION_ERROR', 'Authentication Error'),
    drf_exceptions.AuthenticationFailed: ('AUTHENTICATION_ERROR', 'Authentication Error'),
    drf_exceptions.PermissionDenied: ('AUTHORIZATION_ERROR', 'Authorization Error'),
    drf_exceptions.NotFound: ('NOT_FOUND', 'Not Found'),
    drf_exceptions.MethodNotAllowed: ('METHOD_NOT_ALLOWED', 'Method Not Allowed'),
    drf_exceptions.UnsupportedMediaType: ('UNSUPPORTED_MEDIA_TYPE', 'Unsupported Media Type'),
    drf_exceptions.Throttled: ('RATE_LIMIT_ERROR', 'Rate Limit Exceeded'),
}


# =============================================================================
# EXCEPTION HANDLER
# =============================================================================

def custom_exception_handler(exc, context) -> Optional[Response]:
    """
    Custom exception handler for DRF.
    Provides consistent error response format across all endpoints.
    """

    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, DomainError):
        logger.warning(
            f"{type(exc).__name__}: {exc.message}",
            extra={'request_id': request_id, 'error_code': exc.error_code}
        )
        return Response(
            build_error_body(exc.title, exc.message, exc.error_code, exc.details, request_id),
            status=exc.status_code
        )

    if isinstance(exc, DjangoValidationError):
        errors = exc.message_dict if hasattr(exc, 'message_dict') else {'detail': exc.messages}
        return Response(
            build_error_body(
                'Validation Error', 'Validation failed', 'VALIDATION_ERROR', errors, request_id
            ),
            status=status.HTTP_400_BAD_REQUEST
        )

    if isinstance(exc, Http404):
        exc = drf_exceptions.NotFound()
    elif isinstance(exc, DjangoPermissionDenied):
        exc = drf_exceptions.PermissionDenied()

    response = exception_handler(exc, context)

    if response is not None:
        return format_error_response(exc, response, request_id)

    logger.exception(
        f"Unhandled exception: {exc}",
        extra={
            'request_id': request_id,
            'exception_type': type(exc).__name__,
        }
    )

    message = 'An unexpected error occurred. Please try again later.'
    details = None
    if settings.DEBUG:
        message = str(exc)
        details = {
            'type': type(exc).__name__,
            'traceback': traceback.format_exc().split('\n'),
        }

    return Response(
        build_error_body('Internal Server Error', message, 'INTERNAL_ERROR', details, request_id),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def build_error_body(
    title: str,
    message: str,
    code: str,
    details: Optional[Dict] = None,
    request_id: str = None
) -> Dict[str, Any]:
    body = {
        'error': title,
        'message': message,
        'code': code,
    }
    if details:
        body['details'] = details
    if request_id:
        body['request_id'] = request_id
    return body


def format_error_response(exc, response: Response, request_id: str = None) -> Response:
    """Format error response in consistent structure"""

    code, title = _lookup_drf_error(exc)

    details = None
    if isinstance(response.data, dict) and 'detail' not in response.data:
        # Field-level validation errors from serializers
        details = response.data
    elif isinstance(response.data, list):
        details = {'non_field_errors': response.data}

    if isinstance(exc, drf_exceptions.ValidationError):
        message = 'Validation failed'
    else:
        message = get_error_message(exc, response)

    response.data = build_error_body(title, message, code, details, request_id)
    return response


def _lookup_drf_error(exc):
    for exc_class, mapping in DRF_ERROR_MAP.items():
        if isinstance(exc, exc_class):
            return mapping
    return ('ERROR', 'Error')


def get_error_message(exc, response: Response) -> str:
    """Extract error message from exception or response"""

    if hasattr(exc, 'detail'):
        if isinstance(exc.detail, str):
            return str(exc.detail)
        if isinstance(exc.detail, list) and exc.detail:
            return str(exc.detail[0])
        if isinstance(exc.detail, dict):
            return str(exc.detail.get('detail', exc.detail))

    if isinstance(response.data, dict):
        return str(response.data.get('detail', response.data))

    return str(response.data)
