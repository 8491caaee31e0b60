"""
API Filters

Django Filter classes for the booking API.
"""

import django_filters
from django.db.models import Q

from apps.core.models import Assessment, Booking, Notification, Room, Slot, User


class UserFilter(django_filters.FilterSet):
    """Filter for user queries."""

    role = django_filters.ChoiceFilter(choices=User.Role.choices)
    branch = django_filters.UUIDFilter(field_name='branch_id')
    is_active = django_filters.BooleanFilter()

    class Meta:
        model = User
        fields = ['role', 'branch', 'is_active']


class RoomFilter(django_filters.FilterSet):
    branch = django_filters.UUIDFilter(field_name='branch_id')
    room_type = django_filters.ChoiceFilter(choices=Room.RoomType.choices)
    is_active = django_filters.BooleanFilter()

    class Meta:
        model = Room
        fields = ['branch', 'room_type', 'is_active']


class SlotFilter(django_filters.FilterSet):
    """
    Filter for slot queries.

    Expects a queryset annotated by SlotQuerySet.with_booking_counts().
    """

    branch = django_filters.UUIDFilter(field_name='branch_id')
    teacher = django_filters.UUIDFilter(field_name='teacher_id')
    service_type = django_filters.UUIDFilter(field_name='service_type_id')
    room = django_filters.UUIDFilter(field_name='room_id')

    # Date filters
    date = django_filters.DateFilter(field_name='date')
    date_from = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='date', lookup_expr='lte')

    is_blocked = django_filters.BooleanFilter()
    available_only = django_filters.BooleanFilter(method='filter_available_only')

    class Meta:
        model = Slot
        fields = ['branch', 'teacher', 'service_type', 'room', 'date', 'is_blocked']

    def filter_available_only(self, queryset, name, value):
        """Future, unblocked slots with a free seat."""
        if not value:
            return queryset
        return queryset.upcoming().filter(is_blocked=False, available_spots_value__gt=0)


class BookingFilter(django_filters.FilterSet):
    """Filter for booking queries."""

    status = django_filters.ChoiceFilter(choices=Booking.Status.choices)
    status_in = django_filters.BaseInFilter(field_name='status')

    # Resource filters
    branch = django_filters.UUIDFilter(field_name='slot__branch_id')
    teacher = django_filters.UUIDFilter(field_name='slot__teacher_id')
    student = django_filters.UUIDFilter(field_name='student_id')
    slot = django_filters.UUIDFilter(field_name='slot_id')

    # Date filters on the slot date
    date_from = django_filters.DateFilter(field_name='slot__date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='slot__date', lookup_expr='lte')

    upcoming = django_filters.BooleanFilter(method='filter_upcoming')

    class Meta:
        model = Booking
        fields = ['status', 'branch', 'teacher', 'student', 'slot']

    def filter_upcoming(self, queryset, name, value):
        upcoming_slots = Slot.objects.upcoming().values('id')
        if value:
            return queryset.filter(slot__in=upcoming_slots)
        return queryset.exclude(slot__in=upcoming_slots)


class AssessmentFilter(django_filters.FilterSet):
    """Filter for assessment queries."""

    branch = django_filters.UUIDFilter(field_name='booking__slot__branch_id')
    teacher = django_filters.UUIDFilter(field_name='teacher_id')
    student = django_filters.UUIDFilter(field_name='booking__student_id')

    date_from = django_filters.DateFilter(field_name='booking__slot__date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='booking__slot__date', lookup_expr='lte')

    min_score = django_filters.NumberFilter(field_name='score', lookup_expr='gte')
    max_score = django_filters.NumberFilter(field_name='score', lookup_expr='lte')

    class Meta:
        model = Assessment
        fields = ['branch', 'teacher', 'student']


class NotificationFilter(django_filters.FilterSet):
    is_read = django_filters.BooleanFilter()
    type = django_filters.ChoiceFilter(choices=Notification.Type.choices)
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Notification
        fields = ['is_read', 'type']

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(title__icontains=value) | Q(message__icontains=value))
