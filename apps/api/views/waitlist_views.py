"""
Waiting List API Views
"""

import logging
from uuid import UUID

from rest_framework import status, viewsets
from rest_framework.response import Response

from apps.core.services import BookingValidationError, WaitlistService
from apps.api.serializers import WaitingListEntrySerializer, WaitingListJoinSerializer
from shared.common.api_mixins import ActionPermissionMixin
from shared.common.permissions import IsStudent

logger = logging.getLogger(__name__)


class WaitingListViewSet(ActionPermissionMixin, viewsets.GenericViewSet):
    """Queue for full slots. Students join and leave; staff read and remove."""

    serializer_class = WaitingListEntrySerializer
    action_permissions = {
        'create': [IsStudent],
    }

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.waitlist_service = WaitlistService()

    def get_queryset(self):
        slot_id = self.request.query_params.get('slot')
        if slot_id:
            try:
                slot_id = UUID(slot_id)
            except ValueError:
                raise BookingValidationError("Invalid slot id", details={'slot': slot_id})
        return self.waitlist_service.list_entries(self.request.user, slot_id=slot_id)

    def list(self, request):
        queryset = self.get_queryset()
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(WaitingListEntrySerializer(page, many=True).data)
        return Response(WaitingListEntrySerializer(queryset, many=True).data)

    def create(self, request):
        serializer = WaitingListJoinSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        entry = self.waitlist_service.join(serializer.validated_data['slot_id'], request.user)
        entry = self.waitlist_service.get_entry(entry.id)
        return Response(WaitingListEntrySerializer(entry).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        self.waitlist_service.leave(pk, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
