"""
User and Branch API Views
"""

import logging

from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from apps.core.models import AuditLog, Branch, User
from apps.core.services import AuditService, BranchService, UserService
from apps.core.services.access import ensure_branch_access, scope_users
from apps.core.services.audit_service import snapshot
from apps.core.services.user_service import USER_AUDIT_FIELDS
from apps.api.serializers import (
    BranchSerializer,
    UserSerializer,
    UserListSerializer,
    UserCreateSerializer,
    UserUpdateSerializer,
)
from shared.common.api_mixins import ActionPermissionMixin
from shared.common.constants import UserRole
from shared.common.permissions import IsAdmin, IsSuperAdminOrReadOnly, create_role_permission
from .filters import UserFilter

logger = logging.getLogger(__name__)


class BranchViewSet(ActionPermissionMixin, viewsets.ModelViewSet):
    """
    Branches. Super admins manage them; every authenticated user can read
    the active ones.
    """

    queryset = Branch.objects.all()
    serializer_class = BranchSerializer
    permission_classes = [IsSuperAdminOrReadOnly]
    action_permissions = {
        'stats': [IsAdmin],
    }
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['name', 'address']
    ordering_fields = ['name', 'created_at']
    ordering = ['name']

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.branch_service = BranchService()

    def get_queryset(self):
        queryset = super().get_queryset()
        if not self.request.user.is_super_admin:
            queryset = queryset.filter(is_active=True)
        return queryset

    def perform_create(self, serializer):
        branch = serializer.save()
        logger.info(f"Created branch {branch.id} ({branch.name})")

    def destroy(self, request, *args, **kwargs):
        """Deactivates the branch; refused while it has users or slots."""
        self.branch_service.delete_branch(self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get'])
    def stats(self, request, pk=None):
        branch = self.get_object()
        ensure_branch_access(request.user, branch.id)
        return Response(self.branch_service.get_stats(branch))


class UserViewSet(ActionPermissionMixin, viewsets.ModelViewSet):
    """
    Users, scoped by role: branch admins see their branch, teachers see
    students.
    """

    queryset = User.objects.select_related('branch')
    serializer_class = UserSerializer
    permission_classes = [
        create_role_permission(
            UserRole.SUPER_ADMIN,
            UserRole.BRANCH_ADMIN,
            read_only_roles=(UserRole.TEACHER,)
        )
    ]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = UserFilter
    search_fields = ['name', 'email', 'phone_number']
    ordering_fields = ['name', 'role', 'created_at', 'last_login']
    ordering = ['name']

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.user_service = UserService()
        self.audit_service = AuditService()

    def get_queryset(self):
        return scope_users(self.request.user, super().get_queryset())

    def get_serializer_class(self):
        if self.action == 'list':
            return UserListSerializer
        return UserSerializer

    def create(self, request, *args, **kwargs):
        serializer = UserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = self.user_service.create_user(request.user, **serializer.validated_data)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        instance = self.get_object()
        serializer = UserUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        user, old_values = self.user_service.update_user(
            instance, request.user, **serializer.validated_data
        )
        self.audit_service.log(
            AuditLog.Action.UPDATE,
            'user',
            user.id,
            user=request.user,
            old_values=old_values,
            new_values=snapshot(user, USER_AUDIT_FIELDS),
            request=request,
        )
        return Response(UserSerializer(user).data)

    def destroy(self, request, *args, **kwargs):
        """Deactivate the user and cancel their future bookings."""
        user = self.get_object()
        cancelled = self.user_service.deactivate_user(user, request.user)

        return Response({
            'id': str(user.id),
            'is_active': False,
            'cancelled_bookings': cancelled,
        })
