"""
Booking API Views

Endpoints:
- GET  /bookings/                      list (role scoped)
- POST /bookings/                      book a slot
- GET  /bookings/{id}/                 booking with its slot
- POST /bookings/{id}/cancel/          cancel; may promote the waiting list
- POST /bookings/{id}/reschedule/      move to another slot
- POST /bookings/{id}/attendance/      COMPLETED or NO_SHOW (staff)
- GET  /bookings/monthly-check/        monthly limit status
"""

import logging

from django.utils import timezone
from rest_framework import filters, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from apps.core.models import AuditLog, Booking
from apps.core.services import AuditService, BookingService, BookingValidationError
from apps.core.services.access import scope_bookings
from apps.api.serializers import (
    BookingSerializer,
    BookingDetailSerializer,
    BookingCreateSerializer,
    BookingCancelSerializer,
    BookingRescheduleSerializer,
    AttendanceSerializer,
    MonthlyCheckSerializer,
)
from shared.common.api_mixins import ActionPermissionMixin
from shared.common.permissions import IsStaff
from .filters import BookingFilter

logger = logging.getLogger(__name__)


class BookingViewSet(
    ActionPermissionMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet
):
    """
    ViewSet for bookings.

    Students see and manage their own bookings, teachers the bookings on
    their slots, branch admins those of their branch.
    """

    queryset = Booking.objects.select_related(
        'student', 'slot', 'slot__branch', 'slot__teacher', 'slot__room', 'slot__service_type'
    )
    serializer_class = BookingSerializer
    action_permissions = {
        'attendance': [IsStaff],
    }
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = BookingFilter
    search_fields = ['student__name', 'student__phone_number']
    ordering_fields = ['created_at', 'slot__date', 'status']
    ordering = ['-created_at']

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.booking_service = BookingService()
        self.audit_service = AuditService()

    def get_queryset(self):
        return scope_bookings(self.request.user, super().get_queryset())

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return BookingDetailSerializer
        return BookingSerializer

    def create(self, request, *args, **kwargs):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        student = self.booking_service.resolve_student(
            request.user,
            student_id=data.get('student_id'),
            student_phone_number=data.get('student_phone_number'),
        )
        booking = self.booking_service.create_booking(
            data['slot_id'],
            student,
            created_by=request.user,
        )
        return Response(BookingDetailSerializer(booking).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        serializer = BookingCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        booking, slot_freed, promoted = self.booking_service.cancel_booking(
            pk,
            request.user,
            reason=serializer.validated_data['reason'],
        )
        self.audit_service.log(
            AuditLog.Action.UPDATE,
            'booking',
            booking.id,
            user=request.user,
            old_values={'status': Booking.Status.CONFIRMED},
            new_values={
                'status': booking.status,
                'cancellation_reason': booking.cancellation_reason,
                'promoted_booking': str(promoted.id) if promoted else None,
            },
            request=request,
        )
        return Response({
            'booking': BookingSerializer(booking).data,
            'slot_freed': slot_freed,
            'promoted': BookingSerializer(promoted).data if promoted else None,
        })

    @action(detail=True, methods=['post'])
    def reschedule(self, request, pk=None):
        serializer = BookingRescheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        booking, promoted = self.booking_service.reschedule_booking(
            pk,
            serializer.validated_data['new_slot_id'],
            request.user,
        )
        return Response({
            'booking': BookingDetailSerializer(booking).data,
            'promoted': BookingSerializer(promoted).data if promoted else None,
        })

    @action(detail=True, methods=['post'])
    def attendance(self, request, pk=None):
        serializer = AttendanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        booking = self.booking_service.mark_attendance(
            pk,
            serializer.validated_data['attended'],
            request.user,
        )
        return Response(BookingSerializer(booking).data)

    @action(detail=False, methods=['get'], url_path='monthly-check')
    def monthly_check(self, request):
        """How many bookings the student holds this month against the limit."""
        serializer = MonthlyCheckSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if request.user.is_student:
            student = request.user
        elif data.get('student_id'):
            student = self.booking_service.resolve_student(request.user, student_id=data['student_id'])
        else:
            raise BookingValidationError(
                "student_id is required",
                details={'student_id': 'This field is required'}
            )

        on_date = data.get('date') or timezone.localdate()
        return Response(self.booking_service.monthly_check(student, on_date))
