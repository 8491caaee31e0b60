"""
Booking API URL Configuration
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from apps.api.views import (
    AuthViewSet,
    BranchViewSet,
    UserViewSet,
    ServiceTypeViewSet,
    RoomViewSet,
    SlotViewSet,
    BookingViewSet,
    AssessmentViewSet,
    NotificationViewSet,
    WaitingListViewSet,
    ReportViewSet,
    ImportViewSet,
    SystemViewSet,
    AuditLogViewSet,
)

app_name = 'api'

router = DefaultRouter()
router.register(r'auth', AuthViewSet, basename='auth')
router.register(r'branches', BranchViewSet, basename='branch')
router.register(r'users', UserViewSet, basename='user')
router.register(r'service-types', ServiceTypeViewSet, basename='service-type')
router.register(r'rooms', RoomViewSet, basename='room')
router.register(r'slots', SlotViewSet, basename='slot')
router.register(r'bookings', BookingViewSet, basename='booking')
router.register(r'assessments', AssessmentViewSet, basename='assessment')
router.register(r'notifications', NotificationViewSet, basename='notification')
router.register(r'waiting-list', WaitingListViewSet, basename='waiting-list')
router.register(r'reports', ReportViewSet, basename='report')
router.register(r'import', ImportViewSet, basename='import')
router.register(r'system/audit-logs', AuditLogViewSet, basename='audit-log')
router.register(r'system', SystemViewSet, basename='system')

urlpatterns = [
    path('', include(router.urls)),
]

# =============================================================================
# API Endpoint Summary
# =============================================================================
#
# Auth:
#   POST   /api/v1/auth/login/                     - Staff login
#   POST   /api/v1/auth/otp/request/               - Send student OTP
#   POST   /api/v1/auth/otp/verify/                - Verify student OTP
#   POST   /api/v1/auth/refresh/                   - Refresh tokens
#   GET    /api/v1/auth/me/                        - Current user
#
# Slots:
#   GET    /api/v1/slots/                          - List slots
#   POST   /api/v1/slots/                          - Create slot
#   PATCH  /api/v1/slots/{id}/                     - Update slot
#   DELETE /api/v1/slots/{id}/                     - Delete unbooked slot
#   GET    /api/v1/slots/available/                - Bookable slots
#   POST   /api/v1/slots/bulk/                     - Same window on many dates
#   POST   /api/v1/slots/{id}/block/               - Block
#   POST   /api/v1/slots/{id}/unblock/             - Unblock
#
# Bookings:
#   GET    /api/v1/bookings/                       - List bookings
#   POST   /api/v1/bookings/                       - Book a slot
#   GET    /api/v1/bookings/{id}/                  - Booking details
#   POST   /api/v1/bookings/{id}/cancel/           - Cancel
#   POST   /api/v1/bookings/{id}/reschedule/       - Move to another slot
#   POST   /api/v1/bookings/{id}/attendance/       - Mark attendance
#   GET    /api/v1/bookings/monthly-check/         - Monthly limit status
#
# Assessments:
#   GET    /api/v1/assessments/                    - List assessments
#   POST   /api/v1/assessments/                    - Record a score
#   PATCH  /api/v1/assessments/{id}/               - Edit score or remarks
#   GET    /api/v1/assessments/my-scores/          - Student's own scores
#
# Notifications:
#   GET    /api/v1/notifications/                  - Own notifications
#   POST   /api/v1/notifications/{id}/read/        - Mark read
#   POST   /api/v1/notifications/mark-all-read/    - Mark all read
#   GET    /api/v1/notifications/unread-count/     - Unread count
#   POST   /api/v1/notifications/send/             - Admin broadcast
#
# Waiting list:
#   GET    /api/v1/waiting-list/                   - Entries (?slot=)
#   POST   /api/v1/waiting-list/                   - Join
#   DELETE /api/v1/waiting-list/{id}/              - Leave
#
# Reports:
#   GET    /api/v1/reports/overview/               - Booking overview
#   GET    /api/v1/reports/attendance/             - Attendance rates
#   GET    /api/v1/reports/utilization/            - Seat utilization
#   GET    /api/v1/reports/assessments/            - Score statistics
#   GET    /api/v1/reports/export/                 - CSV export
#
# Import:
#   GET    /api/v1/import/template/                - CSV template
#   POST   /api/v1/import/preview/                 - Validate upload
#   POST   /api/v1/import/students/                - Import students
#
# System:
#   GET    /api/v1/system/settings/                - Configuration
#   PUT    /api/v1/system/settings/                - Update configuration
#   GET    /api/v1/system/metrics/                 - Platform metrics
#   GET    /api/v1/system/audit-logs/              - Audit trail
#
# =============================================================================
