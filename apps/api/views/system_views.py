"""
System API Views

Super admin only: configuration, platform metrics and the audit trail.
"""

import logging

from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.models import AuditLog
from apps.core.services import AuditService, ReportService, SystemSettingsService
from apps.core.services.settings_service import SYSTEM_CONFIG_KEY
from apps.api.serializers import (
    SystemSettingsSerializer,
    AuditLogSerializer,
    AuditLogFilterSerializer,
)
from shared.common.pagination import LargeResultsSetPagination
from shared.common.permissions import IsSuperAdmin

logger = logging.getLogger(__name__)


class SystemViewSet(viewsets.ViewSet):
    """System configuration and metrics."""

    permission_classes = [IsSuperAdmin]

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.settings_service = SystemSettingsService()
        self.report_service = ReportService()
        self.audit_service = AuditService()

    @action(detail=False, methods=['get', 'put'], url_path='settings')
    def system_settings(self, request):
        if request.method == 'GET':
            return Response(self.settings_service.get_config())

        serializer = SystemSettingsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        old_config, new_config = self.settings_service.update_config(
            serializer.validated_data,
            updated_by=request.user,
        )
        self.audit_service.log(
            AuditLog.Action.UPDATE,
            'system_settings',
            SYSTEM_CONFIG_KEY,
            user=request.user,
            old_values=old_config,
            new_values=new_config,
            request=request,
        )
        return Response(new_config)

    @action(detail=False, methods=['get'])
    def metrics(self, request):
        return Response(self.report_service.system_metrics())


class AuditLogViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Read-only audit trail.

    Filters: ?user, ?action, ?entity_type, ?date_from, ?date_to.
    """

    serializer_class = AuditLogSerializer
    permission_classes = [IsSuperAdmin]
    pagination_class = LargeResultsSetPagination
    filter_backends = []

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.audit_service = AuditService()

    def get_queryset(self):
        if self.action != 'list':
            return AuditLog.objects.select_related('user')

        serializer = AuditLogFilterSerializer(data=self.request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        return self.audit_service.get_logs(
            user_id=data.get('user'),
            action=data.get('action'),
            entity_type=data.get('entity_type'),
            date_from=data.get('date_from'),
            date_to=data.get('date_to'),
        ).order_by('-timestamp')
