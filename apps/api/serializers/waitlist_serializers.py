"""
Waiting List Serializers
"""

from rest_framework import serializers

from apps.core.models import WaitingListEntry
from shared.common.constants import DATE_FORMAT, TIME_FORMAT


class WaitingListEntrySerializer(serializers.ModelSerializer):
    """Waiting list entry with its slot summary."""

    student_id = serializers.UUIDField(read_only=True)
    student_name = serializers.CharField(source='student.name', read_only=True)
    slot_id = serializers.UUIDField(read_only=True)
    slot_date = serializers.DateField(source='slot.date', format=DATE_FORMAT, read_only=True)
    slot_start_time = serializers.TimeField(source='slot.start_time', format=TIME_FORMAT, read_only=True)
    branch_name = serializers.CharField(source='slot.branch.name', read_only=True)
    teacher_name = serializers.CharField(source='slot.teacher.name', read_only=True)

    class Meta:
        model = WaitingListEntry
        fields = [
            'id', 'student_id', 'student_name',
            'slot_id', 'slot_date', 'slot_start_time', 'branch_name', 'teacher_name',
            'priority', 'expires_at', 'created_at',
        ]
        read_only_fields = fields


class WaitingListJoinSerializer(serializers.Serializer):
    slot_id = serializers.UUIDField()
