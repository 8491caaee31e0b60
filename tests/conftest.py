"""
Pytest Configuration and Fixtures

Provides common fixtures for booking service tests.
"""

import itertools
from datetime import time, timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from shared.common.authentication import JWTTokenGenerator

_sequence = itertools.count(1)


@pytest.fixture(autouse=True)
def clear_cache():
    """System settings and OTP codes live in the cache."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Provide API client for testing."""
    return APIClient()


@pytest.fixture
def auth_client():
    """Factory fixture for API clients authenticated as a user."""

    def _auth_client(user):
        client = APIClient()
        token = JWTTokenGenerator.generate_access_token(user)
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        return client

    return _auth_client


# =============================================================================
# Branches and users
# =============================================================================

@pytest.fixture
def create_branch():
    """Factory fixture for creating branches."""
    from apps.core.models import Branch

    def _create_branch(**kwargs):
        defaults = {
            'name': f'Branch {next(_sequence)}',
            'address': 'House 12, Road 5, Dhanmondi',
            'contact_number': '+8801700000000',
        }
        defaults.update(kwargs)
        return Branch.objects.create(**defaults)

    return _create_branch


@pytest.fixture
def branch(create_branch):
    return create_branch(name='Dhanmondi')


@pytest.fixture
def other_branch(create_branch):
    return create_branch(name='Uttara')


@pytest.fixture
def create_user(branch):
    """Factory fixture for creating users. Staff get an email and password."""
    from apps.core.models import User

    def _create_user(role=User.Role.STUDENT, **kwargs):
        n = next(_sequence)
        defaults = {
            'name': f'{role.title()} {n}',
            'phone_number': f'+88017{n:08d}',
            'role': role,
        }
        if role != User.Role.STUDENT:
            defaults['email'] = f'{role.lower()}{n}@example.com'
            defaults['password'] = 'password123'
        if role != User.Role.SUPER_ADMIN:
            defaults['branch'] = branch
        defaults.update(kwargs)

        name = defaults.pop('name')
        return User.objects.create_user(name, **defaults)

    return _create_user


@pytest.fixture
def super_admin(create_user):
    from apps.core.models import User
    return create_user(User.Role.SUPER_ADMIN, name='Super Admin')


@pytest.fixture
def branch_admin(create_user):
    from apps.core.models import User
    return create_user(User.Role.BRANCH_ADMIN, name='Branch Admin')


@pytest.fixture
def teacher(create_user):
    from apps.core.models import User
    return create_user(User.Role.TEACHER, name='Nadia Rahman')


@pytest.fixture
def student(create_user):
    from apps.core.models import User
    return create_user(User.Role.STUDENT, name='Rahim Uddin')


# =============================================================================
# Catalog and schedule
# =============================================================================

@pytest.fixture
def create_service_type():
    from apps.core.models import ServiceType

    def _create_service_type(**kwargs):
        n = next(_sequence)
        defaults = {
            'name': f'Mock Speaking Test {n}',
            'code': f'mock-speaking-{n}',
            'default_capacity': 1,
            'duration_minutes': 15,
        }
        defaults.update(kwargs)
        return ServiceType.objects.create(**defaults)

    return _create_service_type


@pytest.fixture
def create_room(branch):
    from apps.core.models import Room

    def _create_room(**kwargs):
        defaults = {
            'branch': branch,
            'room_number': f'R-{next(_sequence)}',
            'capacity': 4,
        }
        defaults.update(kwargs)
        return Room.objects.create(**defaults)

    return _create_room


def future_date(days: int = 3):
    return timezone.localdate() + timedelta(days=days)


@pytest.fixture
def create_slot(branch, teacher):
    """
    Factory fixture for creating slots directly, bypassing SlotService.

    Pass `starts_at` (aware datetime) to place the slot relative to now;
    otherwise it is 10:00-10:30 three days ahead.
    """
    from apps.core.models import Slot

    def _create_slot(starts_at=None, duration_minutes=30, **kwargs):
        defaults = {
            'branch': branch,
            'teacher': teacher,
            'date': future_date(3),
            'start_time': time(10, 0),
            'end_time': time(10, 30),
            'capacity': 1,
        }
        if starts_at is not None:
            local = timezone.localtime(starts_at).replace(second=0, microsecond=0)
            defaults['date'] = local.date()
            defaults['start_time'] = local.time()
            defaults['end_time'] = (local + timedelta(minutes=duration_minutes)).time()
        defaults.update(kwargs)
        return Slot.objects.create(**defaults)

    return _create_slot


@pytest.fixture
def slot(create_slot):
    return create_slot(capacity=2)


@pytest.fixture
def past_slot(create_slot):
    return create_slot(starts_at=timezone.now() - timedelta(hours=2))


@pytest.fixture
def create_booking():
    """Factory fixture for creating bookings directly."""
    from apps.core.models import Booking

    def _create_booking(student, slot, **kwargs):
        defaults = {
            'student': student,
            'slot': slot,
            'status': Booking.Status.CONFIRMED,
        }
        defaults.update(kwargs)
        return Booking.objects.create(**defaults)

    return _create_booking


@pytest.fixture
def create_assessment():
    from apps.core.models import Assessment

    def _create_assessment(booking, score='6.5', **kwargs):
        defaults = {
            'booking': booking,
            'teacher': booking.slot.teacher,
            'score': Decimal(score),
        }
        defaults.update(kwargs)
        return Assessment.objects.create(**defaults)

    return _create_assessment


@pytest.fixture
def set_booking_rules():
    """Override booking rules in the stored system settings."""
    from apps.core.services import SystemSettingsService

    def _set_booking_rules(**rules):
        SystemSettingsService().update_config({'booking_rules': rules})

    return _set_booking_rules
