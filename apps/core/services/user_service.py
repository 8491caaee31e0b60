"""
User and Branch Services

User management with role scoping, plus branch lifecycle and statistics.
"""

import uuid
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Avg, Count, Q
from django.utils import timezone

from apps.core.models import Assessment, Booking, Branch, Slot, User, WaitingListEntry
from shared.common.validators import validate_email, validate_name, validate_phone_number

from . import (
    AccessDeniedError,
    BookingConflictError,
    BookingValidationError,
    ResourceNotFoundError,
    UserNotFoundError,
)
from .access import scope_users
from .audit_service import snapshot
from .notification_service import NotificationService
from .waitlist_service import WaitlistService

logger = logging.getLogger(__name__)

DEACTIVATION_REASON = 'Account deactivated'

USER_AUDIT_FIELDS = ['name', 'email', 'phone_number', 'role', 'branch', 'is_active']


class UserService:
    """
    User management.

    Handles:
    - User CRUD with role rules
    - Deactivation (cancels future bookings)
    """

    UPDATABLE_FIELDS = ['name', 'email', 'phone_number', 'role', 'branch', 'is_active']

    def __init__(self):
        self.waitlist_service = WaitlistService()
        self.notification_service = NotificationService()

    # ==========================================================================
    # Lookup
    # ==========================================================================

    def get_user(self, user_id: uuid.UUID, requester: Optional[User] = None) -> User:
        queryset = User.objects.select_related('branch')
        if requester is not None:
            queryset = scope_users(requester, queryset)

        try:
            return queryset.get(id=user_id)
        except (User.DoesNotExist, ValueError, DjangoValidationError):
            raise UserNotFoundError(f"User {user_id} not found")

    # ==========================================================================
    # Create / Update
    # ==========================================================================

    @transaction.atomic
    def create_user(
        self,
        requester: User,
        name: str,
        role: str = User.Role.STUDENT,
        email: Optional[str] = None,
        phone_number: Optional[str] = None,
        password: Optional[str] = None,
        branch: Optional[Branch] = None,
        is_active: bool = True,
    ) -> User:
        if requester.is_branch_admin:
            branch = requester.branch

        self._check_role_assignment(requester, role)
        data = self._clean_user_data(
            name=name,
            role=role,
            email=email,
            phone_number=phone_number,
            password=password,
            branch=branch,
            creating=True,
        )
        self._check_unique(data.get('email'), data.get('phone_number'))

        user = User.objects.create_user(
            data['name'],
            email=data.get('email'),
            phone_number=data.get('phone_number'),
            password=password if role != User.Role.STUDENT else None,
            role=role,
            branch=data.get('branch'),
            is_active=is_active,
        )

        logger.info(f"Created {role} user {user.id} by {requester.id}")
        return user

    @transaction.atomic
    def update_user(self, user: User, requester: User, **changes) -> Tuple[User, Dict[str, Any]]:
        """Returns (user, old_values)."""
        old_values = snapshot(user, USER_AUDIT_FIELDS)

        self._check_manageable(user, requester)
        if requester.is_branch_admin:
            changes.pop('branch', None)
        if user.id == requester.id and changes.get('is_active') is False:
            raise BookingValidationError("You cannot deactivate your own account")

        role = changes.get('role', user.role)
        if 'role' in changes:
            self._check_role_assignment(requester, role)

        password = changes.pop('password', None)
        merged = {
            'name': changes.get('name', user.name),
            'email': changes.get('email', user.email),
            'phone_number': changes.get('phone_number', user.phone_number),
            'branch': changes.get('branch', user.branch),
        }
        data = self._clean_user_data(role=role, password=password, creating=False, **merged)
        self._check_unique(data.get('email'), data.get('phone_number'), exclude_id=user.id)

        for field in self.UPDATABLE_FIELDS:
            if field in data:
                setattr(user, field, data[field])
        user.role = role
        if 'is_active' in changes:
            user.is_active = changes['is_active']
        if password and role != User.Role.STUDENT:
            user.set_password(password)

        user.save()

        if changes.get('is_active') is False:
            self._cancel_future_bookings(user, requester)

        logger.info(f"Updated user {user.id} by {requester.id}: {', '.join(sorted(changes.keys()))}")
        return user, old_values

    @transaction.atomic
    def deactivate_user(self, user: User, requester: User, now: Optional[datetime] = None) -> int:
        """Deactivate the account and cancel its future bookings; returns the number cancelled."""
        if user.id == requester.id:
            raise BookingValidationError("You cannot deactivate your own account")
        self._check_manageable(user, requester)

        user.deactivate()
        cancelled = self._cancel_future_bookings(user, requester, now=now)

        logger.info(f"Deactivated user {user.id} by {requester.id}; cancelled {cancelled} booking(s)")
        return cancelled

    def _check_manageable(self, user: User, requester: User) -> None:
        """Branch admins manage their own branch and never another admin account."""
        if not requester.is_branch_admin:
            return
        if user.branch_id != requester.branch_id:
            raise AccessDeniedError("You can only manage users in your own branch")
        if user.id != requester.id and user.role in (User.Role.SUPER_ADMIN, User.Role.BRANCH_ADMIN):
            raise AccessDeniedError("Branch admins cannot manage admin accounts")

    def _cancel_future_bookings(self, user: User, requester: User, now: Optional[datetime] = None) -> int:
        now = timezone.localtime(now or timezone.now())
        future = Q(slot__date__gt=now.date()) | Q(slot__date=now.date(), slot__start_time__gt=now.time())

        owned = Q(student=user)
        if user.is_teacher:
            owned |= Q(slot__teacher=user)

        bookings = Booking.objects.filter(
            future, owned, status=Booking.Status.CONFIRMED
        ).select_related('slot', 'slot__branch', 'slot__teacher', 'student')

        cancelled = 0
        for booking in bookings:
            booking.cancel(cancelled_by=requester, reason=DEACTIVATION_REASON)
            cancelled += 1
            if booking.student_id == user.id:
                self.waitlist_service.promote_next(booking.slot, now=now)
            else:
                self.notification_service.send_booking_cancellation(
                    booking, reason=DEACTIVATION_REASON, by_staff=True
                )

        WaitingListEntry.objects.filter(student=user).delete()
        return cancelled

    # ==========================================================================
    # Validation
    # ==========================================================================

    @staticmethod
    def _check_role_assignment(requester: User, role: str) -> None:
        if requester.is_super_admin:
            return
        if requester.is_branch_admin and role in (User.Role.TEACHER, User.Role.STUDENT):
            return
        raise AccessDeniedError(f"You cannot assign the {role} role")

    @staticmethod
    def _clean_user_data(
        name: str,
        role: str,
        email: Optional[str],
        phone_number: Optional[str],
        password: Optional[str],
        branch: Optional[Branch],
        creating: bool,
    ) -> Dict[str, Any]:
        errors = {}
        data: Dict[str, Any] = {'branch': branch}

        try:
            data['name'] = validate_name(name or '')
        except DjangoValidationError as e:
            errors['name'] = e.messages[0]

        if email:
            try:
                data['email'] = validate_email(email)
            except DjangoValidationError as e:
                errors['email'] = e.messages[0]
        else:
            data['email'] = None

        if phone_number:
            try:
                data['phone_number'] = validate_phone_number(phone_number)
            except DjangoValidationError as e:
                errors['phone_number'] = e.messages[0]
        else:
            data['phone_number'] = None

        if role == User.Role.STUDENT:
            if not phone_number:
                errors['phone_number'] = 'Students require a phone number'
        else:
            if not email:
                errors['email'] = 'Staff accounts require an email address'
            if creating and not password:
                errors['password'] = 'Staff accounts require a password'
            if password and len(password) < 8:
                errors['password'] = 'Password must be at least 8 characters'

        if role in (User.Role.BRANCH_ADMIN, User.Role.TEACHER) and branch is None:
            errors['branch'] = f"{role} users must belong to a branch"
        if role == User.Role.SUPER_ADMIN:
            data['branch'] = None

        if errors:
            raise BookingValidationError("Invalid user data", details=errors)
        return data

    @staticmethod
    def _check_unique(email: Optional[str], phone_number: Optional[str], exclude_id=None) -> None:
        users = User.objects.all()
        if exclude_id:
            users = users.exclude(id=exclude_id)

        if email and users.filter(email__iexact=email).exists():
            raise BookingConflictError(
                "A user with this email already exists",
                details={'email': email}
            )
        if phone_number and users.filter(phone_number=phone_number).exists():
            raise BookingConflictError(
                "A user with this phone number already exists",
                details={'phone_number': phone_number}
            )


class BranchService:
    """Branch lifecycle and statistics."""

    @transaction.atomic
    def delete_branch(self, branch: Branch) -> Branch:
        """Deactivate a branch that has no users and no slots."""
        users = branch.users.count()
        slots = branch.slots.count()

        if users or slots:
            raise BookingConflictError(
                "Branch still has users or slots",
                details={'users': users, 'slots': slots}
            )

        branch.deactivate()
        logger.info(f"Deactivated branch {branch.id} ({branch.name})")
        return branch

    def get_stats(self, branch: Branch) -> Dict[str, Any]:
        users = branch.users.aggregate(
            teachers=Count('id', filter=Q(role=User.Role.TEACHER, is_active=True)),
            students=Count('id', filter=Q(role=User.Role.STUDENT, is_active=True)),
        )
        bookings = Booking.objects.filter(slot__branch=branch)
        by_status = {status: 0 for status in Booking.Status.values}
        for row in bookings.order_by().values('status').annotate(total=Count('id')):
            by_status[row['status']] = row['total']

        average = Assessment.objects.filter(
            booking__slot__branch=branch
        ).aggregate(avg=Avg('score'))['avg']

        return {
            'branch_id': str(branch.id),
            'name': branch.name,
            'teachers': users['teachers'],
            'students': users['students'],
            'slots': Slot.objects.filter(branch=branch).count(),
            'upcoming_slots': Slot.objects.filter(branch=branch).upcoming().count(),
            'bookings': {
                'total': sum(by_status.values()),
                'by_status': by_status,
            },
            'average_score': round(float(average), 1) if average is not None else None,
        }
