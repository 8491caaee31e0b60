"""
Authentication Service

Handles:
- Staff login with email and password
- Student login with a one-time code sent by SMS
- Token refresh
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import jwt
from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone
from django.utils.crypto import constant_time_compare, get_random_string

from apps.core.models import AuditLog, User
from shared.common.authentication import JWTTokenGenerator, REFRESH_TOKEN_TYPE
from shared.common.validators import validate_phone_number

from . import (
    AuthenticationError,
    BookingServiceError,
    BookingValidationError,
    InvalidCredentialsError,
    InvalidOTPError,
    UserNotFoundError,
)
from .audit_service import AuditService
from .sms import SMSDeliveryError, send_sms

logger = logging.getLogger(__name__)

OTP_CACHE_PREFIX = 'otp'
OTP_MESSAGE = 'Your speaking test login code is {code}. It expires in {minutes} minutes.'


class AuthService:
    """Authentication and token issuance."""

    def __init__(self):
        self.audit_service = AuditService()
        self._load_settings()

    def _load_settings(self):
        self.otp_length = getattr(settings, 'OTP_LENGTH', 6)
        self.otp_expiry_seconds = getattr(settings, 'OTP_EXPIRY_SECONDS', 300)
        self.otp_max_attempts = getattr(settings, 'OTP_MAX_ATTEMPTS', 3)

    # ==========================================================================
    # Staff login
    # ==========================================================================

    def login(self, email: str, password: str, request=None) -> Dict[str, Any]:
        user = User.objects.select_related('branch').filter(email__iexact=(email or '').strip()).first()

        if user is None or not user.check_password(password or ''):
            logger.warning(f"Failed login for {email}")
            raise InvalidCredentialsError("Invalid email or password")

        if not user.is_active:
            raise AuthenticationError("Account is inactive")

        if user.is_student:
            raise AuthenticationError("Students sign in with a one-time code")

        return self._complete_login(user, request, method='password')

    # ==========================================================================
    # Student OTP login
    # ==========================================================================

    def request_otp(self, phone_number: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Generate a code, keep it in the cache and text it to the student."""
        phone_number = self._normalize_phone(phone_number)
        now = now or timezone.now()

        student = User.objects.filter(
            phone_number=phone_number,
            role=User.Role.STUDENT,
            is_active=True,
        ).first()
        if student is None:
            raise UserNotFoundError("No active student is registered with this phone number")

        code = get_random_string(self.otp_length, allowed_chars='0123456789')
        cache.set(
            self._otp_key(phone_number),
            {
                'code': code,
                'attempts': 0,
                'expires_at': now.timestamp() + self.otp_expiry_seconds,
            },
            self.otp_expiry_seconds
        )

        message = OTP_MESSAGE.format(code=code, minutes=self.otp_expiry_seconds // 60)
        try:
            send_sms(phone_number, message)
        except SMSDeliveryError as e:
            cache.delete(self._otp_key(phone_number))
            logger.error(f"Could not send OTP to student {student.id}: {e}")
            raise BookingServiceError("Could not send the verification code, please try again")

        logger.info(f"OTP issued for student {student.id}")
        return {
            'phone_number': phone_number,
            'expires_in': self.otp_expiry_seconds,
        }

    def verify_otp(
        self, phone_number: str, code: str, request=None, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Check the code. After OTP_MAX_ATTEMPTS wrong guesses the code is
        discarded and a new one must be requested.
        """
        phone_number = self._normalize_phone(phone_number)
        now = now or timezone.now()
        key = self._otp_key(phone_number)
        record = cache.get(key)

        remaining_seconds = int(record['expires_at'] - now.timestamp()) if record else 0
        if remaining_seconds <= 0:
            cache.delete(key)
            raise InvalidOTPError("Verification code has expired or was not requested")

        if not constant_time_compare(str(code or ''), record['code']):
            record['attempts'] += 1
            remaining = self.otp_max_attempts - record['attempts']

            if remaining <= 0:
                cache.delete(key)
                logger.warning(f"OTP for {phone_number} discarded after too many attempts")
                raise InvalidOTPError("Too many failed attempts, request a new code")

            cache.set(key, record, remaining_seconds)
            raise InvalidOTPError(
                "Invalid verification code",
                details={'attempts_remaining': remaining}
            )

        cache.delete(key)

        student = User.objects.select_related('branch').filter(
            phone_number=phone_number,
            role=User.Role.STUDENT,
            is_active=True,
        ).first()
        if student is None:
            raise InvalidOTPError("Account is no longer active")

        return self._complete_login(student, request, method='otp')

    # ==========================================================================
    # Tokens
    # ==========================================================================

    def refresh(self, refresh_token: str) -> Dict[str, Any]:
        try:
            payload = JWTTokenGenerator.decode_token(refresh_token)
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Refresh token has expired")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid refresh token")

        if payload.get('type') != REFRESH_TOKEN_TYPE:
            raise AuthenticationError("Invalid token type")

        user = User.objects.filter(id=payload['sub'], is_active=True).first()
        if user is None:
            raise AuthenticationError("User not found or inactive")

        return JWTTokenGenerator.generate_token_pair(user)

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _complete_login(self, user: User, request=None, method: str = 'password') -> Dict[str, Any]:
        user.last_login = timezone.now()
        user.save(update_fields=['last_login'])

        self.audit_service.log(
            AuditLog.Action.LOGIN,
            'user',
            user.id,
            user=user,
            new_values={'method': method, 'role': user.role},
            request=request,
        )

        logger.info(f"User {user.id} logged in via {method}")
        return {
            **JWTTokenGenerator.generate_token_pair(user),
            'user': user,
        }

    @staticmethod
    def _normalize_phone(phone_number: Optional[str]) -> str:
        try:
            return validate_phone_number(phone_number or '')
        except DjangoValidationError as e:
            raise BookingValidationError(e.messages[0], details={'phone_number': e.messages[0]})

    @staticmethod
    def _otp_key(phone_number: str) -> str:
        return f"{OTP_CACHE_PREFIX}:{phone_number}"
