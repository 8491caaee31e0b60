"""
Assessment Serializers
"""

from rest_framework import serializers

from apps.core.models import Assessment
from apps.core.services import ScoreValidationError
from apps.core.services.rules import validate_score
from shared.common.constants import DATE_FORMAT, TIME_FORMAT, MAX_REMARKS_LENGTH


class ScoreField(serializers.Field):
    """IELTS band: 0 to 9 in steps of 0.5."""

    default_error_messages = {
        'invalid': 'Score must be between 0 and 9 in increments of 0.5',
    }

    def to_internal_value(self, data):
        try:
            return validate_score(data)
        except ScoreValidationError as e:
            raise serializers.ValidationError(e.message)

    def to_representation(self, value):
        return float(value)


class AssessmentSerializer(serializers.ModelSerializer):
    """Assessment with the booking context a reader needs."""

    score = ScoreField(read_only=True)
    booking_id = serializers.UUIDField(read_only=True)
    teacher_id = serializers.UUIDField(read_only=True)
    teacher_name = serializers.CharField(source='teacher.name', read_only=True)
    student_id = serializers.UUIDField(source='booking.student_id', read_only=True)
    student_name = serializers.CharField(source='booking.student.name', read_only=True)
    branch_name = serializers.CharField(source='booking.slot.branch.name', read_only=True)
    slot_date = serializers.DateField(source='booking.slot.date', format=DATE_FORMAT, read_only=True)
    slot_time = serializers.TimeField(source='booking.slot.start_time', format=TIME_FORMAT, read_only=True)

    class Meta:
        model = Assessment
        fields = [
            'id', 'booking_id', 'score', 'remarks',
            'teacher_id', 'teacher_name', 'student_id', 'student_name',
            'branch_name', 'slot_date', 'slot_time',
            'assessed_at', 'updated_at',
        ]
        read_only_fields = fields


class AssessmentCreateSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    score = ScoreField()
    remarks = serializers.CharField(
        max_length=MAX_REMARKS_LENGTH,
        required=False,
        allow_blank=True,
        default=''
    )


class AssessmentUpdateSerializer(serializers.Serializer):
    score = ScoreField(required=False)
    remarks = serializers.CharField(
        max_length=MAX_REMARKS_LENGTH,
        required=False,
        allow_blank=True
    )

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide score or remarks")
        return attrs


class MyScoresSerializer(serializers.Serializer):
    assessments = AssessmentSerializer(many=True)
    average_score = serializers.DecimalField(max_digits=3, decimal_places=1, allow_null=True, coerce_to_string=False)
    total = serializers.IntegerField()
