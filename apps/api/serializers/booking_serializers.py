"""
Booking Serializers
"""

from rest_framework import serializers

from apps.core.models import Booking
from shared.common.constants import DATE_FORMAT

from .slot_serializers import SlotSerializer


class BookingSerializer(serializers.ModelSerializer):
    """Base booking serializer."""

    status_display = serializers.CharField(source='get_status_display', read_only=True)
    student_id = serializers.UUIDField(read_only=True)
    student_name = serializers.CharField(source='student.name', read_only=True)
    student_phone_number = serializers.CharField(source='student.phone_number', read_only=True, default=None)
    slot_id = serializers.UUIDField(read_only=True)
    cancelled_by_id = serializers.UUIDField(read_only=True, allow_null=True)
    created_by_id = serializers.UUIDField(read_only=True, allow_null=True)
    can_cancel = serializers.BooleanField(read_only=True)

    class Meta:
        model = Booking
        fields = [
            'id', 'status', 'status_display',
            'student_id', 'student_name', 'student_phone_number',
            'slot_id', 'attended', 'attendance_marked_at',
            'cancelled_at', 'cancelled_by_id', 'cancellation_reason', 'is_late_cancellation',
            'can_cancel', 'created_by_id', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class BookingDetailSerializer(BookingSerializer):
    """Booking with its slot."""

    slot = SlotSerializer(read_only=True)
    hours_until_start = serializers.SerializerMethodField()
    has_assessment = serializers.SerializerMethodField()

    class Meta(BookingSerializer.Meta):
        fields = BookingSerializer.Meta.fields + ['slot', 'hours_until_start', 'has_assessment']
        read_only_fields = fields

    def get_hours_until_start(self, obj) -> float:
        return round(obj.hours_until_start, 2)

    def get_has_assessment(self, obj) -> bool:
        return hasattr(obj, 'assessment')


class BookingCreateSerializer(serializers.Serializer):
    """
    Students book for themselves. Staff name the student by id or phone
    number.
    """

    slot_id = serializers.UUIDField()
    student_id = serializers.UUIDField(required=False, allow_null=True)
    student_phone_number = serializers.CharField(max_length=20, required=False, allow_blank=True)


class BookingCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class BookingRescheduleSerializer(serializers.Serializer):
    new_slot_id = serializers.UUIDField()


class AttendanceSerializer(serializers.Serializer):
    attended = serializers.BooleanField()


class MonthlyCheckSerializer(serializers.Serializer):
    """Query parameters of the monthly limit check."""

    student_id = serializers.UUIDField(required=False)
    date = serializers.DateField(input_formats=[DATE_FORMAT], required=False)
