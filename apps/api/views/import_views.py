"""
Student Import API Views

Endpoints:
- GET  /import/template/   CSV template
- POST /import/preview/    validate an upload without saving
- POST /import/students/   create the valid rows as students
"""

import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from apps.core.models import Branch
from apps.core.services import ImportValidationError, StudentImportService
from apps.api.serializers import StudentImportSerializer
from shared.common.api_mixins import csv_response
from shared.common.permissions import IsAdmin

logger = logging.getLogger(__name__)


class ImportViewSet(viewsets.ViewSet):
    """Bulk student registration from CSV."""

    permission_classes = [IsAdmin]
    parser_classes = [MultiPartParser, FormParser]

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.import_service = StudentImportService()

    def _resolve_branch(self, branch_id):
        """Branch admins always import into their own branch."""
        if self.request.user.is_branch_admin:
            return self.request.user.branch
        if not branch_id:
            return None

        branch = Branch.objects.filter(id=branch_id, is_active=True).first()
        if branch is None:
            raise ImportValidationError("Branch not found", details={'branch_id': str(branch_id)})
        return branch

    @action(detail=False, methods=['get'])
    def template(self, request):
        return csv_response('student_import_template.csv', self.import_service.get_template())

    @action(detail=False, methods=['post'])
    def preview(self, request):
        serializer = StudentImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        return Response(self.import_service.preview(serializer.validated_data['file']))

    @action(detail=False, methods=['post'])
    def students(self, request):
        serializer = StudentImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        branch = self._resolve_branch(serializer.validated_data.get('branch_id'))
        result = self.import_service.import_students(
            serializer.validated_data['file'],
            branch=branch,
            imported_by=request.user,
        )
        return Response(result, status=status.HTTP_201_CREATED)
