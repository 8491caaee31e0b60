"""
Shared API Mixins Module.

Provides standardized mixins for ViewSets across the booking API.
"""
import logging
from typing import Dict, Optional
from uuid import UUID

from django.http import HttpResponse
from django.db.models import QuerySet

logger = logging.getLogger(__name__)


# =============================================================================
# PERMISSION MIXIN
# =============================================================================

class ActionPermissionMixin:
    """
    Mixin that selects permission classes per ViewSet action.

    Usage:
        permission_classes = [IsAuthenticated]
        action_permissions = {
            'create': [IsAdmin],
            ('update', 'partial_update'): [IsAdmin],
        }
    """

    action_permissions: Dict = {}

    def get_permissions(self):
        for actions, permission_classes in self.action_permissions.items():
            names = actions if isinstance(actions, tuple) else (actions,)
            if self.action in names:
                return [permission() for permission in permission_classes]
        return super().get_permissions()


# =============================================================================
# BRANCH MIXIN
# =============================================================================

class BranchScopeMixin:
    """
    Mixin that limits branch admins to their own branch.

    Super admins may narrow results with ?branch=<id>; branch admins are
    always pinned to their branch whatever they pass.
    """

    branch_field = 'branch_id'
    branch_query_param = 'branch'

    def get_branch_id(self) -> Optional[UUID]:
        user = self.request.user
        if getattr(user, 'is_branch_admin', False):
            return user.branch_id

        branch_id = self.request.query_params.get(self.branch_query_param)
        if branch_id:
            try:
                return UUID(branch_id)
            except (ValueError, TypeError):
                pass

        return None

    def scope_to_branch(self, queryset: QuerySet) -> QuerySet:
        user = self.request.user
        if getattr(user, 'is_branch_admin', False):
            return queryset.filter(**{self.branch_field: user.branch_id})
        return queryset


# =============================================================================
# EXPORT
# =============================================================================

def csv_response(filename: str, content: str) -> HttpResponse:
    """CSV download response."""
    response = HttpResponse(content, content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response
