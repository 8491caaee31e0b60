"""
Authentication Serializers

Staff password login, student OTP login and token refresh.
"""

from rest_framework import serializers

from .user_serializers import UserSerializer


class LoginSerializer(serializers.Serializer):
    """
    Serializer for staff login request.
    """

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_email(self, value):
        """Normalize email to lowercase."""
        return value.lower().strip()


class OTPRequestSerializer(serializers.Serializer):
    """Student asks for a one-time code."""

    phone_number = serializers.CharField(required=True, max_length=20)


class OTPVerifySerializer(serializers.Serializer):
    """Student submits the one-time code."""

    phone_number = serializers.CharField(required=True, max_length=20)
    otp = serializers.RegexField(
        r'^\d{4,8}$',
        required=True,
        error_messages={'invalid': 'Code must be 4-8 digits'}
    )


class RefreshTokenSerializer(serializers.Serializer):
    """
    Serializer for token refresh request.
    """

    refresh_token = serializers.CharField(required=True)


class TokenResponseSerializer(serializers.Serializer):
    """
    Serializer for authentication token response.
    """

    access_token = serializers.CharField()
    refresh_token = serializers.CharField()
    token_type = serializers.CharField(default='Bearer')
    expires_in = serializers.IntegerField()
    user = UserSerializer()
