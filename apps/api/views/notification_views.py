"""
Notification API Views
"""

import logging

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from apps.core.models import Notification
from apps.core.services import NotificationService
from apps.api.serializers import NotificationSerializer, NotificationSendSerializer
from shared.common.api_mixins import ActionPermissionMixin
from shared.common.permissions import IsAdmin
from .filters import NotificationFilter

logger = logging.getLogger(__name__)


class NotificationViewSet(
    ActionPermissionMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet
):
    """The current user's in-app notifications, plus admin broadcast."""

    queryset = Notification.objects.all()
    serializer_class = NotificationSerializer
    action_permissions = {
        'send': [IsAdmin],
    }
    filter_backends = [DjangoFilterBackend]
    filterset_class = NotificationFilter

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.notification_service = NotificationService()

    def get_queryset(self):
        return self.notification_service.get_user_notifications(self.request.user).order_by('-created_at')

    @action(detail=True, methods=['post'])
    def read(self, request, pk=None):
        notification = self.notification_service.mark_read(pk, request.user)
        return Response(NotificationSerializer(notification).data)

    @action(detail=False, methods=['post'], url_path='mark-all-read')
    def mark_all_read(self, request):
        updated = self.notification_service.mark_all_read(request.user)
        return Response({'updated': updated})

    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        return Response({'unread_count': self.notification_service.unread_count(request.user)})

    @action(detail=False, methods=['post'])
    def send(self, request):
        """Broadcast; branch admins can only reach their own branch."""
        serializer = NotificationSendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        branch_id = data.get('branch_id')
        if request.user.is_branch_admin:
            branch_id = request.user.branch_id

        notifications = self.notification_service.send_bulk(
            data['title'],
            data['message'],
            notification_type=data['type'],
            user_ids=data.get('user_ids'),
            role=data.get('role'),
            branch_id=branch_id,
            with_sms=data['send_sms'],
            sender=request.user,
        )
        sent = len([n for n in notifications if n is not None])
        return Response({'sent': sent}, status=status.HTTP_201_CREATED)
