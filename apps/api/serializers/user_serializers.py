"""
User and Branch Serializers
"""

from rest_framework import serializers

from apps.core.models import Branch, User


class BranchSerializer(serializers.ModelSerializer):
    """Branch serializer."""

    class Meta:
        model = Branch
        fields = [
            'id', 'name', 'address', 'contact_number', 'is_active',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'is_active', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError("Name must be at least 2 characters")
        return value


class UserSerializer(serializers.ModelSerializer):
    """User representation returned by the API."""

    role_display = serializers.CharField(source='get_role_display', read_only=True)
    branch_id = serializers.UUIDField(read_only=True, allow_null=True)
    branch_name = serializers.CharField(source='branch.name', read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            'id', 'name', 'email', 'phone_number',
            'role', 'role_display', 'branch_id', 'branch_name',
            'is_active', 'last_login', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class UserListSerializer(UserSerializer):
    """Compact serializer for user lists."""

    class Meta(UserSerializer.Meta):
        fields = [
            'id', 'name', 'email', 'phone_number',
            'role', 'branch_id', 'branch_name', 'is_active',
        ]
        read_only_fields = fields


class UserCreateSerializer(serializers.Serializer):
    """
    Input for creating a user. Role-specific rules (students need a phone
    number, staff an email and password) are enforced by UserService.
    """

    name = serializers.CharField(max_length=255)
    email = serializers.EmailField(required=False, allow_null=True, allow_blank=True)
    phone_number = serializers.CharField(max_length=20, required=False, allow_null=True, allow_blank=True)
    password = serializers.CharField(
        required=False,
        allow_blank=True,
        write_only=True,
        style={'input_type': 'password'}
    )
    role = serializers.ChoiceField(choices=User.Role.choices, default=User.Role.STUDENT)
    branch_id = serializers.PrimaryKeyRelatedField(
        source='branch',
        queryset=Branch.objects.filter(is_active=True),
        required=False,
        allow_null=True
    )
    is_active = serializers.BooleanField(default=True)


class UserUpdateSerializer(serializers.Serializer):
    """Partial update of a user; every field is optional."""

    name = serializers.CharField(max_length=255, required=False)
    email = serializers.EmailField(required=False, allow_null=True, allow_blank=True)
    phone_number = serializers.CharField(max_length=20, required=False, allow_null=True, allow_blank=True)
    password = serializers.CharField(
        required=False,
        allow_blank=True,
        write_only=True,
        style={'input_type': 'password'}
    )
    role = serializers.ChoiceField(choices=User.Role.choices, required=False)
    branch_id = serializers.PrimaryKeyRelatedField(
        source='branch',
        queryset=Branch.objects.filter(is_active=True),
        required=False,
        allow_null=True
    )
    is_active = serializers.BooleanField(required=False)
