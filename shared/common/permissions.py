"""
Role-Based Access Control (RBAC) Permission Classes

Roles are flat: each route lists the roles it allows. Row-level scoping
(own bookings, own branch) is done by the views' querysets.
"""

from typing import List, Optional
from rest_framework import permissions
from rest_framework.request import Request
from rest_framework.views import APIView
import logging

from .constants import UserRole, ADMIN_ROLES, STAFF_ROLES

logger = logging.getLogger(__name__)


class BasePermission(permissions.BasePermission):
    """Base permission class with utility methods"""

    def get_user_role(self, request: Request) -> Optional[str]:
        """Get role from user object or JWT payload"""
        role = getattr(request.user, 'role', None)
        if role:
            return role
        if isinstance(getattr(request, 'auth', None), dict):
            return request.auth.get('role')
        return None

    def is_authenticated(self, request: Request) -> bool:
        return bool(
            request.user and
            getattr(request.user, 'is_authenticated', False)
        )


class HasRole(BasePermission):
    """Check if user has one of the required roles"""

    required_roles: List[str] = []
    read_only_roles: List[str] = []

    def has_permission(self, request: Request, view: APIView) -> bool:
        if not self.is_authenticated(request):
            return False

        role = self.get_user_role(request)
        if role in self.required_roles:
            return True

        if request.method in permissions.SAFE_METHODS and role in self.read_only_roles:
            return True

        logger.info(
            f"Role {role} denied for {request.method} {request.path}",
            extra={'user_id': str(getattr(request.user, 'id', None))}
        )
        return False


# =============================================================================
# ROLE-SPECIFIC PERMISSIONS
# =============================================================================

class IsSuperAdmin(HasRole):
    """Super administrators only"""
    required_roles = [UserRole.SUPER_ADMIN.value]


class IsAdmin(HasRole):
    """Super administrators and branch administrators"""
    required_roles = list(ADMIN_ROLES)


class IsStaff(HasRole):
    """Administrators and teachers"""
    required_roles = list(STAFF_ROLES)


class IsStudent(HasRole):
    """Students"""
    required_roles = [UserRole.STUDENT.value]


class IsAdminOrReadOnly(HasRole):
    """Full access for admins, read-only for any authenticated role"""
    required_roles = list(ADMIN_ROLES)
    read_only_roles = [role.value for role in UserRole]


class IsSuperAdminOrReadOnly(HasRole):
    """Full access for super admins, read-only for any authenticated role"""
    required_roles = [UserRole.SUPER_ADMIN.value]
    read_only_roles = [role.value for role in UserRole]


# =============================================================================
# DYNAMIC PERMISSION FACTORY
# =============================================================================

def create_role_permission(*roles: str, read_only_roles=()):
    """
    Factory function to create role-based permission classes dynamically.

    Usage:
        permission_classes = [create_role_permission('TEACHER', 'SUPER_ADMIN')]
    """

    class DynamicRolePermission(HasRole):
        required_roles = [getattr(role, 'value', role) for role in roles]

    DynamicRolePermission.read_only_roles = [
        getattr(role, 'value', role) for role in read_only_roles
    ]
    return DynamicRolePermission
