"""
API Views
"""

from .auth_views import AuthViewSet
from .user_views import BranchViewSet, UserViewSet
from .catalog_views import ServiceTypeViewSet, RoomViewSet
from .slot_views import SlotViewSet
from .booking_views import BookingViewSet
from .assessment_views import AssessmentViewSet
from .notification_views import NotificationViewSet
from .waitlist_views import WaitingListViewSet
from .report_views import ReportViewSet
from .import_views import ImportViewSet
from .system_views import SystemViewSet, AuditLogViewSet

__all__ = [
    'AuthViewSet',
    'BranchViewSet',
    'UserViewSet',
    'ServiceTypeViewSet',
    'RoomViewSet',
    'SlotViewSet',
    'BookingViewSet',
    'AssessmentViewSet',
    'NotificationViewSet',
    'WaitingListViewSet',
    'ReportViewSet',
    'ImportViewSet',
    'SystemViewSet',
    'AuditLogViewSet',
]
