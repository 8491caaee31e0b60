"""
System, Report and Import Serializers
"""

from rest_framework import serializers

from apps.core.models import AuditLog
from apps.core.services.report_service import EXPORT_COLUMNS
from shared.common.constants import DATE_FORMAT


class SystemSettingsSerializer(serializers.Serializer):
    """
    Partial system configuration. Each section is merged into the stored
    document; keys are checked by SystemSettingsService.
    """

    booking_rules = serializers.DictField(required=False)
    notification_templates = serializers.DictField(required=False)
    system_limits = serializers.DictField(required=False)
    audit_settings = serializers.DictField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("No settings sections supplied")
        return attrs


class AuditLogSerializer(serializers.ModelSerializer):
    user_id = serializers.UUIDField(read_only=True, allow_null=True)
    user_name = serializers.CharField(source='user.name', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'user_id', 'user_name', 'action', 'entity_type', 'entity_id',
            'old_values', 'new_values', 'ip_address', 'user_agent', 'request_id',
            'timestamp',
        ]
        read_only_fields = fields


class AuditLogFilterSerializer(serializers.Serializer):
    user = serializers.UUIDField(required=False)
    action = serializers.ChoiceField(choices=AuditLog.Action.choices, required=False)
    entity_type = serializers.CharField(max_length=50, required=False)
    date_from = serializers.DateField(input_formats=[DATE_FORMAT], required=False)
    date_to = serializers.DateField(input_formats=[DATE_FORMAT], required=False)


class ReportFilterSerializer(serializers.Serializer):
    """Query parameters shared by every report."""

    date_from = serializers.DateField(input_formats=[DATE_FORMAT], required=False)
    date_to = serializers.DateField(input_formats=[DATE_FORMAT], required=False)
    branch = serializers.UUIDField(required=False)
    teacher = serializers.UUIDField(required=False)

    def validate(self, attrs):
        date_from, date_to = attrs.get('date_from'), attrs.get('date_to')
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({'date_to': "date_to must not be before date_from"})
        return attrs

    def to_filters(self) -> dict:
        """Keyword arguments for ReportService."""
        data = self.validated_data
        return {
            'date_from': data.get('date_from'),
            'date_to': data.get('date_to'),
            'branch_id': data.get('branch'),
            'teacher_id': data.get('teacher'),
        }


class ReportExportSerializer(ReportFilterSerializer):
    report_type = serializers.ChoiceField(choices=sorted(EXPORT_COLUMNS))


class StudentImportSerializer(serializers.Serializer):
    """Multipart upload of a student CSV."""

    file = serializers.FileField()
    branch_id = serializers.UUIDField(required=False, allow_null=True)
