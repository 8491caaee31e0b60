"""
Authentication API Views

Endpoints:
- POST /auth/login/        staff login (email + password)
- POST /auth/otp/request/  student asks for a login code
- POST /auth/otp/verify/   student exchanges the code for tokens
- POST /auth/refresh/      new token pair from a refresh token
- GET  /auth/me/           current user
"""

import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle

from apps.core.services import AuthService
from apps.api.serializers import (
    LoginSerializer,
    OTPRequestSerializer,
    OTPVerifySerializer,
    RefreshTokenSerializer,
    UserSerializer,
)

logger = logging.getLogger(__name__)


class AuthViewSet(viewsets.ViewSet):
    """ViewSet for authentication operations."""

    permission_classes = [AllowAny]
    throttle_scope = 'otp'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.auth_service = AuthService()

    def _token_response(self, result) -> Response:
        user = result.pop('user')
        return Response({
            **result,
            'user': UserSerializer(user).data,
        })

    # ==================== STAFF LOGIN ====================

    @action(detail=False, methods=['post'])
    def login(self, request):
        """Staff login; students use the OTP flow."""
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.auth_service.login(
            email=serializer.validated_data['email'],
            password=serializer.validated_data['password'],
            request=request,
        )
        return self._token_response(result)

    # ==================== STUDENT OTP ====================

    @action(
        detail=False,
        methods=['post'],
        url_path='otp/request',
        throttle_classes=[ScopedRateThrottle]
    )
    def otp_request(self, request):
        serializer = OTPRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.auth_service.request_otp(serializer.validated_data['phone_number'])
        return Response({
            **result,
            'message': 'Verification code sent',
        }, status=status.HTTP_200_OK)

    @action(
        detail=False,
        methods=['post'],
        url_path='otp/verify',
        throttle_classes=[ScopedRateThrottle]
    )
    def otp_verify(self, request):
        serializer = OTPVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.auth_service.verify_otp(
            serializer.validated_data['phone_number'],
            serializer.validated_data['otp'],
            request=request,
        )
        return self._token_response(result)

    # ==================== TOKENS ====================

    @action(detail=False, methods=['post'])
    def refresh(self, request):
        serializer = RefreshTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        tokens = self.auth_service.refresh(serializer.validated_data['refresh_token'])
        return Response(tokens)

    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated])
    def me(self, request):
        return Response(UserSerializer(request.user).data)
