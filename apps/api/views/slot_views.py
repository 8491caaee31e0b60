"""
Slot API Views
"""

import logging

from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from apps.core.models import Slot
from apps.core.services import BookingValidationError, SlotService
from apps.core.services.access import ensure_branch_access, scope_slots
from apps.api.serializers import (
    SlotSerializer,
    SlotCreateSerializer,
    SlotUpdateSerializer,
    SlotBulkCreateSerializer,
    SlotBlockSerializer,
)
from shared.common.permissions import IsAdminOrReadOnly
from .filters import SlotFilter

logger = logging.getLogger(__name__)


class SlotViewSet(viewsets.ModelViewSet):
    """
    ViewSet for slot scheduling.

    Admins create, update, block and delete slots in their scope. Every
    role can read; students only see upcoming, unblocked slots.
    """

    queryset = Slot.objects.with_booking_counts().select_related(
        'branch', 'teacher', 'room', 'service_type'
    )
    serializer_class = SlotSerializer
    permission_classes = [IsAdminOrReadOnly]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = SlotFilter
    ordering_fields = ['date', 'start_time', 'capacity', 'created_at']
    ordering = ['date', 'start_time']

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.slot_service = SlotService()

    def get_queryset(self):
        user = self.request.user
        queryset = scope_slots(user, super().get_queryset())
        if user.is_student:
            queryset = queryset.upcoming().filter(is_blocked=False)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = SlotCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        ensure_branch_access(request.user, data['branch'].id)

        slot = self.slot_service.create_slot(created_by=request.user, **data)
        return Response(SlotSerializer(slot).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        slot = self.get_object()
        ensure_branch_access(request.user, slot.branch_id)

        serializer = SlotUpdateSerializer(data=request.data, partial=True, context={'slot': slot})
        serializer.is_valid(raise_exception=True)

        slot = self.slot_service.update_slot(slot, **serializer.validated_data)
        return Response(SlotSerializer(slot).data)

    def destroy(self, request, *args, **kwargs):
        slot = self.get_object()
        ensure_branch_access(request.user, slot.branch_id)

        self.slot_service.delete_slot(slot)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'])
    def available(self, request):
        """Upcoming, unblocked slots with at least one free seat."""
        queryset = scope_slots(request.user, self.slot_service.list_available())
        queryset = self.filter_queryset(queryset)

        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(SlotSerializer(page, many=True).data)
        return Response(SlotSerializer(queryset, many=True).data)

    @action(detail=False, methods=['post'])
    def bulk(self, request):
        """Create the same time window on each of the given dates."""
        serializer = SlotBulkCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = dict(serializer.validated_data)
        ensure_branch_access(request.user, data['branch'].id)

        created, errors = self.slot_service.bulk_create(
            data.pop('branch'),
            data.pop('teacher'),
            data.pop('dates'),
            data.pop('start_time'),
            data.pop('end_time'),
            created_by=request.user,
            **data
        )
        if not created:
            raise BookingValidationError("No slots were created", details={'errors': errors})

        return Response({
            'created': SlotSerializer(created, many=True).data,
            'errors': errors,
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def block(self, request, pk=None):
        slot = self.get_object()
        ensure_branch_access(request.user, slot.branch_id)

        serializer = SlotBlockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        slot = self.slot_service.block_slot(slot, serializer.validated_data['reason'])
        return Response(SlotSerializer(slot).data)

    @action(detail=True, methods=['post'])
    def unblock(self, request, pk=None):
        slot = self.get_object()
        ensure_branch_access(request.user, slot.branch_id)

        slot = self.slot_service.unblock_slot(slot)
        return Response(SlotSerializer(slot).data)
