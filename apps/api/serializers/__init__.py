"""
Speaking Test Booking API Serializers
"""

from .user_serializers import (
    BranchSerializer,
    UserSerializer,
    UserListSerializer,
    UserCreateSerializer,
    UserUpdateSerializer,
)

from .auth_serializers import (
    LoginSerializer,
    OTPRequestSerializer,
    OTPVerifySerializer,
    RefreshTokenSerializer,
    TokenResponseSerializer,
)

from .catalog_serializers import (
    ServiceTypeSerializer,
    RoomSerializer,
)

from .slot_serializers import (
    SlotSerializer,
    SlotCreateSerializer,
    SlotUpdateSerializer,
    SlotBulkCreateSerializer,
    SlotBlockSerializer,
)

from .booking_serializers import (
    BookingSerializer,
    BookingDetailSerializer,
    BookingCreateSerializer,
    BookingCancelSerializer,
    BookingRescheduleSerializer,
    AttendanceSerializer,
    MonthlyCheckSerializer,
)

from .assessment_serializers import (
    AssessmentSerializer,
    AssessmentCreateSerializer,
    AssessmentUpdateSerializer,
    MyScoresSerializer,
)

from .notification_serializers import (
    NotificationSerializer,
    NotificationSendSerializer,
)

from .waitlist_serializers import (
    WaitingListEntrySerializer,
    WaitingListJoinSerializer,
)

from .system_serializers import (
    SystemSettingsSerializer,
    AuditLogSerializer,
    AuditLogFilterSerializer,
    ReportFilterSerializer,
    ReportExportSerializer,
    StudentImportSerializer,
)


__all__ = [
    # Users and branches
    'BranchSerializer',
    'UserSerializer',
    'UserListSerializer',
    'UserCreateSerializer',
    'UserUpdateSerializer',
    # Auth
    'LoginSerializer',
    'OTPRequestSerializer',
    'OTPVerifySerializer',
    'RefreshTokenSerializer',
    'TokenResponseSerializer',
    # Catalog
    'ServiceTypeSerializer',
    'RoomSerializer',
    # Slots
    'SlotSerializer',
    'SlotCreateSerializer',
    'SlotUpdateSerializer',
    'SlotBulkCreateSerializer',
    'SlotBlockSerializer',
    # Bookings
    'BookingSerializer',
    'BookingDetailSerializer',
    'BookingCreateSerializer',
    'BookingCancelSerializer',
    'BookingRescheduleSerializer',
    'AttendanceSerializer',
    'MonthlyCheckSerializer',
    # Assessments
    'AssessmentSerializer',
    'AssessmentCreateSerializer',
    'AssessmentUpdateSerializer',
    'MyScoresSerializer',
    # Notifications
    'NotificationSerializer',
    'NotificationSendSerializer',
    # Waiting list
    'WaitingListEntrySerializer',
    'WaitingListJoinSerializer',
    # System
    'SystemSettingsSerializer',
    'AuditLogSerializer',
    'AuditLogFilterSerializer',
    'ReportFilterSerializer',
    'ReportExportSerializer',
    'StudentImportSerializer',
]
