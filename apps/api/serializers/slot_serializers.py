"""
Slot Serializers
"""

from rest_framework import serializers

from apps.core.models import Branch, Room, ServiceType, Slot, User
from apps.core.services import SlotValidationError
from apps.core.services.rules import validate_time_slot
from shared.common.constants import DATE_FORMAT, TIME_FORMAT, MIN_SLOT_CAPACITY, MAX_SLOT_CAPACITY


def date_field(**kwargs):
    return serializers.DateField(format=DATE_FORMAT, input_formats=[DATE_FORMAT], **kwargs)


def time_field(**kwargs):
    return serializers.TimeField(format=TIME_FORMAT, input_formats=[TIME_FORMAT], **kwargs)


def check_time_window(start_time, end_time):
    """Apply the slot duration rules, reported against end_time."""
    try:
        validate_time_slot(start_time, end_time)
    except SlotValidationError as e:
        raise serializers.ValidationError({'end_time': e.message})


class SlotSerializer(serializers.ModelSerializer):
    """Slot with occupancy."""

    branch_id = serializers.UUIDField(read_only=True)
    branch_name = serializers.CharField(source='branch.name', read_only=True)
    teacher_id = serializers.UUIDField(read_only=True)
    teacher_name = serializers.CharField(source='teacher.name', read_only=True)
    service_type_id = serializers.UUIDField(read_only=True, allow_null=True)
    service_type_name = serializers.CharField(source='service_type.name', read_only=True, default=None)
    room_id = serializers.UUIDField(read_only=True, allow_null=True)
    room_number = serializers.CharField(source='room.room_number', read_only=True, default=None)
    date = serializers.DateField(format=DATE_FORMAT, read_only=True)
    start_time = serializers.TimeField(format=TIME_FORMAT, read_only=True)
    end_time = serializers.TimeField(format=TIME_FORMAT, read_only=True)
    booked_count = serializers.IntegerField(read_only=True)
    available_spots = serializers.IntegerField(read_only=True)
    is_available = serializers.BooleanField(read_only=True)

    class Meta:
        model = Slot
        fields = [
            'id', 'branch_id', 'branch_name', 'teacher_id', 'teacher_name',
            'service_type_id', 'service_type_name', 'room_id', 'room_number',
            'date', 'start_time', 'end_time',
            'capacity', 'booked_count', 'available_spots', 'is_available',
            'price', 'is_blocked', 'block_reason',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class SlotCreateSerializer(serializers.Serializer):
    """Input for creating a slot."""

    branch_id = serializers.PrimaryKeyRelatedField(source='branch', queryset=Branch.objects.all())
    teacher_id = serializers.PrimaryKeyRelatedField(source='teacher', queryset=User.objects.all())
    service_type_id = serializers.PrimaryKeyRelatedField(
        source='service_type',
        queryset=ServiceType.objects.filter(is_active=True),
        required=False,
        allow_null=True
    )
    room_id = serializers.PrimaryKeyRelatedField(
        source='room',
        queryset=Room.objects.filter(is_active=True),
        required=False,
        allow_null=True
    )
    date = date_field()
    start_time = time_field()
    end_time = time_field()
    capacity = serializers.IntegerField(
        min_value=MIN_SLOT_CAPACITY,
        max_value=MAX_SLOT_CAPACITY,
        required=False,
        allow_null=True
    )
    price = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=0,
        required=False,
        allow_null=True
    )

    def validate(self, attrs):
        check_time_window(attrs['start_time'], attrs['end_time'])
        return attrs


class SlotUpdateSerializer(serializers.Serializer):
    """Partial slot update. The branch of a slot cannot change."""

    teacher_id = serializers.PrimaryKeyRelatedField(
        source='teacher',
        queryset=User.objects.all(),
        required=False
    )
    service_type_id = serializers.PrimaryKeyRelatedField(
        source='service_type',
        queryset=ServiceType.objects.filter(is_active=True),
        required=False,
        allow_null=True
    )
    room_id = serializers.PrimaryKeyRelatedField(
        source='room',
        queryset=Room.objects.filter(is_active=True),
        required=False,
        allow_null=True
    )
    date = date_field(required=False)
    start_time = time_field(required=False)
    end_time = time_field(required=False)
    capacity = serializers.IntegerField(
        min_value=MIN_SLOT_CAPACITY,
        max_value=MAX_SLOT_CAPACITY,
        required=False
    )
    price = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=0,
        required=False,
        allow_null=True
    )

    def validate(self, attrs):
        if 'start_time' in attrs or 'end_time' in attrs:
            slot = self.context['slot']
            check_time_window(
                attrs.get('start_time', slot.start_time),
                attrs.get('end_time', slot.end_time),
            )
        return attrs


class SlotBulkCreateSerializer(SlotCreateSerializer):
    """Same window on several dates."""

    date = None
    dates = serializers.ListField(
        child=date_field(),
        min_length=1,
        max_length=62
    )


class SlotBlockSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
