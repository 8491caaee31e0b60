"""
Notification Serializers
"""

from rest_framework import serializers

from apps.core.models import Notification, User


class NotificationSerializer(serializers.ModelSerializer):
    """In-app notification."""

    type_display = serializers.CharField(source='get_type_display', read_only=True)

    class Meta:
        model = Notification
        fields = [
            'id', 'type', 'type_display', 'title', 'message',
            'is_read', 'read_at', 'metadata', 'created_at',
        ]
        read_only_fields = fields


class NotificationSendSerializer(serializers.Serializer):
    """
    Admin broadcast. Recipients are explicit user ids, or every active
    user of a role and/or branch.
    """

    title = serializers.CharField(max_length=255)
    message = serializers.CharField(max_length=2000)
    type = serializers.ChoiceField(
        choices=Notification.Type.choices,
        default=Notification.Type.ANNOUNCEMENT
    )
    user_ids = serializers.ListField(
        child=serializers.UUIDField(),
        required=False,
        allow_empty=True
    )
    role = serializers.ChoiceField(choices=User.Role.choices, required=False, allow_null=True)
    branch_id = serializers.UUIDField(required=False, allow_null=True)
    send_sms = serializers.BooleanField(default=False)

    def validate(self, attrs):
        if not attrs.get('user_ids') and not attrs.get('role') and not attrs.get('branch_id'):
            raise serializers.ValidationError({
                'user_ids': "Specify user_ids, role or branch_id"
            })
        return attrs
