"""
Slot Service

Scheduling of teacher slots.
"""

import uuid
import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from apps.core.models import Booking, Branch, Room, ServiceType, Slot, User
from shared.common.constants import MIN_SLOT_CAPACITY, MAX_SLOT_CAPACITY

from . import (
    BookingServiceError,
    BookingConflictError,
    RuleViolationError,
    SlotNotFoundError,
    SlotValidationError,
)
from .rules import booked_count, ensure_no_slot_conflicts, validate_time_slot
from .settings_service import SystemSettingsService

logger = logging.getLogger(__name__)


class SlotService:
    """
    Service for managing slots.

    Handles:
    - Slot CRUD with overlap and daily-limit checks
    - Bulk creation across dates
    - Blocking
    """

    UPDATABLE_FIELDS = [
        'date', 'start_time', 'end_time', 'capacity', 'teacher',
        'room', 'service_type', 'price',
    ]

    def __init__(self):
        self.settings_service = SystemSettingsService()

    # ==========================================================================
    # Slot CRUD
    # ==========================================================================

    def get_slot(self, slot_id: uuid.UUID) -> Slot:
        try:
            return Slot.objects.select_related(
                'branch', 'teacher', 'room', 'service_type'
            ).get(id=slot_id)
        except (Slot.DoesNotExist, ValueError, DjangoValidationError):
            raise SlotNotFoundError(f"Slot {slot_id} not found")

    @transaction.atomic
    def create_slot(
        self,
        branch: Branch,
        teacher: User,
        date: date,
        start_time: time,
        end_time: time,
        capacity: Optional[int] = None,
        service_type: Optional[ServiceType] = None,
        room: Optional[Room] = None,
        price: Optional[Decimal] = None,
        created_by: Optional[User] = None,
        now: Optional[datetime] = None,
    ) -> Slot:
        """Create a slot after validating time, ownership, capacity and overlaps."""
        capacity = self._resolve_capacity(capacity, room, service_type)

        self._validate_slot(branch, teacher, date, start_time, end_time, capacity, room, now=now)

        # Serialize slot writes per teacher so overlap checks cannot race
        User.objects.select_for_update().filter(pk=teacher.pk).first()

        ensure_no_slot_conflicts(branch, teacher, date, start_time, end_time, room=room)
        self._check_daily_limit(branch, date)

        slot = Slot.objects.create(
            branch=branch,
            teacher=teacher,
            date=date,
            start_time=start_time,
            end_time=end_time,
            capacity=capacity,
            service_type=service_type,
            room=room,
            price=price,
            created_by=created_by,
        )

        logger.info(
            f"Created slot {slot.id} for teacher {teacher.id} at {branch.name} "
            f"on {date} {start_time:%H:%M}-{end_time:%H:%M}"
        )
        return slot

    @transaction.atomic
    def update_slot(self, slot: Slot, now: Optional[datetime] = None, **changes) -> Slot:
        """Apply changes and re-run every creation check against the result."""
        slot = Slot.objects.select_for_update().get(pk=slot.pk)
        original_date = slot.date

        for field, value in changes.items():
            if field in self.UPDATABLE_FIELDS:
                setattr(slot, field, value)

        schedule_changed = any(
            field in changes for field in ('date', 'start_time', 'end_time', 'teacher', 'room')
        )
        if schedule_changed:
            self._validate_slot(
                slot.branch, slot.teacher, slot.date, slot.start_time, slot.end_time,
                slot.capacity, slot.room, now=now
            )
            User.objects.select_for_update().filter(pk=slot.teacher_id).first()
            ensure_no_slot_conflicts(
                slot.branch, slot.teacher, slot.date, slot.start_time, slot.end_time,
                exclude_id=slot.id, room=slot.room
            )
            if slot.date != original_date:
                self._check_daily_limit(slot.branch, slot.date, exclude_id=slot.id)
        else:
            self._validate_capacity(slot.capacity)

        booked = booked_count(slot)
        if slot.capacity < booked:
            raise SlotValidationError(
                f"Capacity cannot be lower than the {booked} seat(s) already booked",
                details={'capacity': slot.capacity, 'booked': booked}
            )

        slot.save()

        logger.info(f"Updated slot {slot.id}: {', '.join(sorted(changes.keys()))}")
        return slot

    @transaction.atomic
    def delete_slot(self, slot: Slot) -> None:
        """Delete a slot that has never been booked."""
        slot = Slot.objects.select_for_update().get(pk=slot.pk)

        active = slot.bookings.filter(status=Booking.Status.CONFIRMED).count()
        if active:
            raise BookingConflictError(
                f"Slot has {active} active booking(s); cancel them first",
                details={'active_bookings': active}
            )
        if slot.bookings.exists():
            raise BookingConflictError("Slot has booking history; block it instead of deleting")

        slot_id = slot.id
        slot.delete()
        logger.info(f"Deleted slot {slot_id}")

    def bulk_create(
        self,
        branch: Branch,
        teacher: User,
        dates: List[date],
        start_time: time,
        end_time: time,
        **kwargs
    ) -> Tuple[List[Slot], List[Dict[str, Any]]]:
        """
        Create the same time window on each date.

        Each date is created in its own transaction; failures are reported
        per date and do not stop the others.
        """
        created, errors = [], []

        for slot_date in sorted(set(dates)):
            try:
                created.append(
                    self.create_slot(branch, teacher, slot_date, start_time, end_time, **kwargs)
                )
            except BookingServiceError as e:
                errors.append({
                    'date': slot_date.isoformat(),
                    'code': e.error_code,
                    'message': e.message,
                })

        logger.info(
            f"Bulk slot creation for teacher {teacher.id}: "
            f"{len(created)} created, {len(errors)} failed"
        )
        return created, errors

    # ==========================================================================
    # Blocking
    # ==========================================================================

    def block_slot(self, slot: Slot, reason: str = '') -> Slot:
        slot.block(reason)
        logger.info(f"Blocked slot {slot.id}: {reason}")
        return slot

    def unblock_slot(self, slot: Slot) -> Slot:
        slot.unblock()
        logger.info(f"Unblocked slot {slot.id}")
        return slot

    # ==========================================================================
    # Queries
    # ==========================================================================

    def list_available(self, now: Optional[datetime] = None, **filters):
        """Future, unblocked slots with at least one free seat."""
        queryset = Slot.objects.bookable(now).select_related(
            'branch', 'teacher', 'room', 'service_type'
        )
        for field in ('branch_id', 'teacher_id', 'service_type_id', 'date'):
            if filters.get(field):
                queryset = queryset.filter(**{field: filters[field]})
        return queryset

    # ==========================================================================
    # Validation
    # ==========================================================================

    def _validate_slot(self, branch, teacher, slot_date, start_time, end_time, capacity, room, now=None):
        now = timezone.localtime(now or timezone.now())
        starts_at = timezone.make_aware(datetime.combine(slot_date, start_time))
        if starts_at <= now:
            raise SlotValidationError(
                "Cannot schedule a slot in the past",
                details={'date': slot_date.isoformat(), 'start_time': start_time.strftime('%H:%M')}
            )

        validate_time_slot(start_time, end_time)

        if not branch.is_active:
            raise SlotValidationError(f"Branch {branch.name} is inactive")

        if teacher.role != User.Role.TEACHER or not teacher.is_active:
            raise SlotValidationError(
                "Slots must be assigned to an active teacher",
                details={'teacher_id': str(teacher.id)}
            )
        if teacher.branch_id != branch.id:
            raise SlotValidationError(
                "Teacher does not belong to this branch",
                details={'teacher_id': str(teacher.id), 'branch_id': str(branch.id)}
            )

        if room is not None and room.branch_id != branch.id:
            raise SlotValidationError(
                "Room does not belong to this branch",
                details={'room_id': str(room.id)}
            )

        self._validate_capacity(capacity)

    def _validate_capacity(self, capacity: int) -> None:
        limit = min(
            self.settings_service.get_section('system_limits')['max_students_per_slot'],
            MAX_SLOT_CAPACITY,
        )
        if capacity < MIN_SLOT_CAPACITY or capacity > limit:
            raise SlotValidationError(
                f"Capacity must be between {MIN_SLOT_CAPACITY} and {limit}",
                details={'capacity': capacity}
            )

    @staticmethod
    def _resolve_capacity(capacity, room, service_type) -> int:
        if capacity:
            return capacity
        if room is not None:
            return room.capacity
        if service_type is not None:
            return service_type.default_capacity
        return 1

    def _check_daily_limit(
        self, branch: Branch, slot_date: date, exclude_id: Optional[uuid.UUID] = None
    ) -> None:
        limit = self.settings_service.get_section('system_limits')['max_slots_per_day']
        existing = Slot.objects.filter(branch=branch, date=slot_date)
        if exclude_id:
            existing = existing.exclude(id=exclude_id)
        existing = existing.count()

        if existing >= limit:
            raise RuleViolationError(
                f"Branch already has the maximum of {limit} slots on {slot_date}",
                details={'date': slot_date.isoformat(), 'limit': limit}
            )
