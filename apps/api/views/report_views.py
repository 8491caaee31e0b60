"""
Report API Views

All reports accept ?date_from, ?date_to (YYYY-MM-DD), ?branch and
?teacher. Branch admins always get their own branch.
"""

import logging

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.services import ReportService
from apps.api.serializers import ReportFilterSerializer, ReportExportSerializer
from shared.common.api_mixins import BranchScopeMixin, csv_response
from shared.common.permissions import IsAdmin

logger = logging.getLogger(__name__)


class ReportViewSet(BranchScopeMixin, viewsets.ViewSet):
    """Aggregated booking, attendance, utilization and score reports."""

    permission_classes = [IsAdmin]

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.report_service = ReportService()

    def _filters(self, serializer_class=ReportFilterSerializer):
        serializer = serializer_class(data=self.request.query_params)
        serializer.is_valid(raise_exception=True)

        filters = serializer.to_filters()
        if self.request.user.is_branch_admin:
            filters['branch_id'] = self.get_branch_id()
        return serializer, filters

    @action(detail=False, methods=['get'])
    def overview(self, request):
        _, filters = self._filters()
        return Response(self.report_service.overview(**filters))

    @action(detail=False, methods=['get'])
    def attendance(self, request):
        _, filters = self._filters()
        return Response(self.report_service.attendance(**filters))

    @action(detail=False, methods=['get'])
    def utilization(self, request):
        _, filters = self._filters()
        return Response(self.report_service.utilization(**filters))

    @action(detail=False, methods=['get'])
    def assessments(self, request):
        _, filters = self._filters()
        return Response(self.report_service.assessments(**filters))

    @action(detail=False, methods=['get'])
    def export(self, request):
        """CSV download of a report's rows."""
        serializer, filters = self._filters(ReportExportSerializer)
        report_type = serializer.validated_data['report_type']

        filename, content = self.report_service.export_csv(report_type, **filters)
        logger.info(f"Exported {report_type} report for {request.user.id}")
        return csv_response(filename, content)
