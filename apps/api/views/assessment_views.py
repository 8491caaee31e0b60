"""
Assessment API Views
"""

import logging

from rest_framework import filters, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from apps.core.models import Assessment
from apps.core.services import AssessmentService
from apps.core.services.access import scope_assessments
from apps.api.serializers import (
    AssessmentSerializer,
    AssessmentCreateSerializer,
    AssessmentUpdateSerializer,
    MyScoresSerializer,
)
from shared.common.api_mixins import ActionPermissionMixin
from shared.common.permissions import IsStaff, IsStudent
from .filters import AssessmentFilter

logger = logging.getLogger(__name__)


class AssessmentViewSet(
    ActionPermissionMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet
):
    """
    Scores recorded on completed bookings.

    The slot's teacher or an admin of its branch records and edits
    scores; students read their own.
    """

    queryset = Assessment.objects.select_related(
        'teacher', 'booking', 'booking__student', 'booking__slot', 'booking__slot__branch'
    )
    serializer_class = AssessmentSerializer
    action_permissions = {
        ('create', 'update', 'partial_update'): [IsStaff],
        'my_scores': [IsStudent],
    }
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = AssessmentFilter
    ordering_fields = ['assessed_at', 'score']
    ordering = ['-assessed_at']

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.assessment_service = AssessmentService()

    def get_queryset(self):
        return scope_assessments(self.request.user, super().get_queryset())

    def create(self, request, *args, **kwargs):
        serializer = AssessmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        assessment = self.assessment_service.create_assessment(
            data['booking_id'],
            data['score'],
            request.user,
            remarks=data['remarks'],
        )
        assessment = self.assessment_service.get_assessment(assessment.id)
        return Response(AssessmentSerializer(assessment).data, status=status.HTTP_201_CREATED)

    def update(self, request, pk=None, **kwargs):
        serializer = AssessmentUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        # 404 for assessments outside the caller's scope
        self.assessment_service.get_assessment(pk, user=request.user)

        assessment = self.assessment_service.update_assessment(
            pk,
            request.user,
            score=serializer.validated_data.get('score'),
            remarks=serializer.validated_data.get('remarks'),
        )
        return Response(AssessmentSerializer(assessment).data)

    partial_update = update

    @action(detail=False, methods=['get'], url_path='my-scores')
    def my_scores(self, request):
        result = self.assessment_service.my_scores(request.user)
        return Response(MyScoresSerializer(result).data)
