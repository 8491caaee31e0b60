"""
Service Type and Room API Views
"""

import logging

from rest_framework import filters, status, viewsets
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from apps.core.models import Room, ServiceType, Slot
from apps.core.services import BookingConflictError
from apps.core.services.access import ensure_branch_access
from apps.api.serializers import RoomSerializer, ServiceTypeSerializer
from shared.common.api_mixins import BranchScopeMixin
from shared.common.permissions import IsAdminOrReadOnly, IsSuperAdminOrReadOnly
from .filters import RoomFilter

logger = logging.getLogger(__name__)


class ServiceTypeViewSet(viewsets.ModelViewSet):
    """Service types; super admins write."""

    queryset = ServiceType.objects.all()
    serializer_class = ServiceTypeSerializer
    permission_classes = [IsSuperAdminOrReadOnly]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['category', 'is_active']
    search_fields = ['name', 'code']
    ordering = ['name']

    def destroy(self, request, *args, **kwargs):
        """Service types referenced by slots are deactivated, others deleted."""
        service_type = self.get_object()
        if service_type.slots.exists():
            service_type.deactivate()
            logger.info(f"Deactivated service type {service_type.code}")
        else:
            service_type.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


class RoomViewSet(BranchScopeMixin, viewsets.ModelViewSet):
    """Rooms; super admins and the owning branch admin write."""

    queryset = Room.objects.select_related('branch')
    serializer_class = RoomSerializer
    permission_classes = [IsAdminOrReadOnly]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = RoomFilter
    search_fields = ['room_number']
    ordering = ['branch__name', 'room_number']

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.request.method not in ('GET', 'HEAD', 'OPTIONS'):
            queryset = self.scope_to_branch(queryset)
        return queryset

    def perform_create(self, serializer):
        ensure_branch_access(self.request.user, serializer.validated_data['branch'].id)
        room = serializer.save()
        logger.info(f"Created room {room.room_number} in branch {room.branch_id}")

    def perform_update(self, serializer):
        if 'branch' in serializer.validated_data:
            ensure_branch_access(self.request.user, serializer.validated_data['branch'].id)
        serializer.save()

    def perform_destroy(self, instance):
        in_use = Slot.objects.upcoming().filter(room=instance).count()
        if in_use:
            raise BookingConflictError(
                "Room is assigned to upcoming slots",
                details={'upcoming_slots': in_use}
            )
        instance.delete()
        logger.info(f"Deleted room {instance.room_number} in branch {instance.branch_id}")
