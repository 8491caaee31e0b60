"""
JWT Authentication
"""

import uuid
import jwt
import logging
from typing import Optional, Dict, Any, Tuple
from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework import authentication, exceptions
from rest_framework.request import Request

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = 'access'
REFRESH_TOKEN_TYPE = 'refresh'


class JWTAuthentication(authentication.BaseAuthentication):
    """
    JWT Bearer token authentication for API requests.

    The token subject is the user id. The user is loaded from the database
    on every request so that role changes and deactivation apply at once.
    """

    keyword = 'Bearer'

    def authenticate(self, request: Request) -> Optional[Tuple[Any, Dict]]:
        auth_header = authentication.get_authorization_header(request)

        if not auth_header:
            return None

        try:
            auth_parts = auth_header.decode('utf-8').split()
        except UnicodeDecodeError:
            raise exceptions.AuthenticationFailed('Invalid token header encoding')

        if not auth_parts or auth_parts[0].lower() != self.keyword.lower():
            return None

        if len(auth_parts) != 2:
            raise exceptions.AuthenticationFailed('Invalid token header format')

        return self.authenticate_token(auth_parts[1])

    def authenticate_token(self, token: str) -> Tuple[Any, Dict]:
        """Validate and decode JWT token"""
        try:
            payload = JWTTokenGenerator.decode_token(token)
        except jwt.ExpiredSignatureError:
            raise exceptions.AuthenticationFailed('Token has expired')
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            raise exceptions.AuthenticationFailed('Invalid token')

        if payload.get('type') != ACCESS_TOKEN_TYPE:
            raise exceptions.AuthenticationFailed('Invalid token type')

        user = self._get_user_from_payload(payload)
        return (user, payload)

    def _get_user_from_payload(self, payload: Dict):
        User = get_user_model()
        try:
            user_id = uuid.UUID(str(payload['sub']))
        except (KeyError, ValueError):
            raise exceptions.AuthenticationFailed('Invalid token subject')

        user = User.objects.select_related('branch').filter(id=user_id).first()
        if user is None or not user.is_active:
            raise exceptions.AuthenticationFailed('User not found or inactive')
        return user

    def authenticate_header(self, request: Request) -> str:
        return self.keyword


class JWTTokenGenerator:
    """
    Generate and verify JWT tokens.
    """

    @staticmethod
    def generate_access_token(user, extra_claims: Dict = None) -> str:
        """Generate an access token"""
        now = timezone.now()

        payload = {
            'sub': str(user.id),
            'role': user.role,
            'branch_id': str(user.branch_id) if user.branch_id else None,
            'iat': now,
            'exp': now + settings.JWT_SETTINGS['ACCESS_TOKEN_LIFETIME'],
            'iss': settings.JWT_SETTINGS['ISSUER'],
            'type': ACCESS_TOKEN_TYPE,
        }

        if extra_claims:
            payload.update(extra_claims)

        return jwt.encode(
            payload,
            settings.JWT_SETTINGS['SIGNING_KEY'],
            algorithm=settings.JWT_SETTINGS['ALGORITHM']
        )

    @staticmethod
    def generate_refresh_token(user, token_id: str = None) -> str:
        """Generate a refresh token"""
        now = timezone.now()

        payload = {
            'sub': str(user.id),
            'jti': token_id or str(uuid.uuid4()),
            'iat': now,
            'exp': now + settings.JWT_SETTINGS['REFRESH_TOKEN_LIFETIME'],
            'iss': settings.JWT_SETTINGS['ISSUER'],
            'type': REFRESH_TOKEN_TYPE,
        }

        return jwt.encode(
            payload,
            settings.JWT_SETTINGS['SIGNING_KEY'],
            algorithm=settings.JWT_SETTINGS['ALGORITHM']
        )

    @classmethod
    def generate_token_pair(cls, user) -> Dict[str, Any]:
        lifetime = settings.JWT_SETTINGS['ACCESS_TOKEN_LIFETIME']
        return {
            'access_token': cls.generate_access_token(user),
            'refresh_token': cls.generate_refresh_token(user),
            'token_type': 'Bearer',
            'expires_in': int(lifetime.total_seconds()),
        }

    @staticmethod
    def decode_token(token: str, verify_exp: bool = True) -> Dict:
        """Decode and verify a token"""
        return jwt.decode(
            token,
            settings.JWT_SETTINGS['VERIFYING_KEY'],
            algorithms=[settings.JWT_SETTINGS['ALGORITHM']],
            issuer=settings.JWT_SETTINGS['ISSUER'],
            options={
                'require': ['exp', 'iat', 'sub', 'iss'],
                'verify_exp': verify_exp,
            }
        )
