"""
Role Scoping

Which rows each role may see, and ownership checks for writes.

    SUPER_ADMIN   everything
    BRANCH_ADMIN  rows of their branch
    TEACHER       slots they teach and the bookings/assessments on them
    STUDENT       their own bookings and assessments
"""

from django.db.models import QuerySet

from apps.core.models import User

from . import AccessDeniedError


def scope_slots(user: User, queryset: QuerySet) -> QuerySet:
    """Branch admins are limited to their branch; everyone else reads all slots."""
    if user.is_branch_admin:
        return queryset.filter(branch_id=user.branch_id)
    return queryset


def scope_bookings(user: User, queryset: QuerySet) -> QuerySet:
    if user.is_super_admin:
        return queryset
    if user.is_branch_admin:
        return queryset.filter(slot__branch_id=user.branch_id)
    if user.is_teacher:
        return queryset.filter(slot__teacher_id=user.id)
    return queryset.filter(student_id=user.id)


def scope_assessments(user: User, queryset: QuerySet) -> QuerySet:
    if user.is_super_admin:
        return queryset
    if user.is_branch_admin:
        return queryset.filter(booking__slot__branch_id=user.branch_id)
    if user.is_teacher:
        return queryset.filter(booking__slot__teacher_id=user.id)
    return queryset.filter(booking__student_id=user.id)


def scope_users(user: User, queryset: QuerySet) -> QuerySet:
    if user.is_super_admin:
        return queryset
    if user.is_branch_admin:
        return queryset.filter(branch_id=user.branch_id)
    if user.is_teacher:
        return queryset.filter(role=User.Role.STUDENT)
    return queryset.filter(id=user.id)


def ensure_branch_access(user: User, branch_id) -> None:
    """Branch admins and teachers may only act inside their own branch."""
    if user.is_super_admin:
        return
    if user.branch_id is None or str(user.branch_id) != str(branch_id):
        raise AccessDeniedError("You can only manage resources in your own branch")


def ensure_can_manage_booking(user: User, booking) -> None:
    """STUDENT owns the booking, TEACHER owns the slot, BRANCH_ADMIN same branch."""
    slot = booking.slot

    if user.is_super_admin:
        return
    if user.is_branch_admin and slot.branch_id == user.branch_id:
        return
    if user.is_teacher and slot.teacher_id == user.id:
        return
    if user.is_student and booking.student_id == user.id:
        return

    raise AccessDeniedError("You do not have access to this booking")


def ensure_can_assess(user: User, booking) -> None:
    """Only the slot's teacher or an admin of the branch records scores."""
    slot = booking.slot

    if user.is_super_admin:
        return
    if user.is_branch_admin and slot.branch_id == user.branch_id:
        return
    if user.is_teacher and slot.teacher_id == user.id:
        return

    raise AccessDeniedError("Only the slot's teacher or a branch admin can assess this booking")
