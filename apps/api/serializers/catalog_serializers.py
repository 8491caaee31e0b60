"""
Service Type and Room Serializers
"""

from rest_framework import serializers

from apps.core.models import Branch, Room, ServiceType
from shared.common.constants import MIN_SLOT_CAPACITY, MAX_SLOT_CAPACITY


class ServiceTypeSerializer(serializers.ModelSerializer):
    """Service type serializer."""

    category_display = serializers.CharField(source='get_category_display', read_only=True)
    default_capacity = serializers.IntegerField(
        min_value=MIN_SLOT_CAPACITY,
        max_value=MAX_SLOT_CAPACITY,
        required=False
    )
    duration_minutes = serializers.IntegerField(min_value=15, max_value=180, required=False)

    class Meta:
        model = ServiceType
        fields = [
            'id', 'name', 'code', 'description',
            'category', 'category_display',
            'default_capacity', 'duration_minutes', 'is_active',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class RoomSerializer(serializers.ModelSerializer):
    """Room serializer. Room numbers are unique within a branch."""

    branch_id = serializers.PrimaryKeyRelatedField(
        source='branch',
        queryset=Branch.objects.filter(is_active=True)
    )
    branch_name = serializers.CharField(source='branch.name', read_only=True)
    room_type_display = serializers.CharField(source='get_room_type_display', read_only=True)
    capacity = serializers.IntegerField(
        min_value=MIN_SLOT_CAPACITY,
        max_value=MAX_SLOT_CAPACITY,
        required=False
    )

    class Meta:
        model = Room
        fields = [
            'id', 'branch_id', 'branch_name', 'room_number',
            'room_type', 'room_type_display', 'capacity', 'is_active',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']
        # Checked in validate() so the error names room_number
        validators = []

    def validate_room_number(self, value):
        return value.strip()

    def validate(self, attrs):
        branch = attrs.get('branch', getattr(self.instance, 'branch', None))
        room_number = attrs.get('room_number', getattr(self.instance, 'room_number', None))

        duplicates = Room.objects.filter(branch=branch, room_number=room_number)
        if self.instance is not None:
            duplicates = duplicates.exclude(pk=self.instance.pk)
        if duplicates.exists():
            raise serializers.ValidationError({
                'room_number': "A room with this number already exists in the branch"
            })

        return attrs
