"""
Speaking Test Booking Models
"""

from .branch import Branch
from .user import User
from .catalog import ServiceType, Room
from .slot import Slot, SEAT_HOLDING_STATUSES
from .booking import Booking
from .assessment import Assessment
from .notification import Notification
from .waitlist import WaitingListEntry
from .audit import AuditLog
from .system import SystemSetting

__all__ = [
    'Branch',
    'User',
    'ServiceType',
    'Room',
    'Slot',
    'SEAT_HOLDING_STATUSES',
    'Booking',
    'Assessment',
    'Notification',
    'WaitingListEntry',
    'AuditLog',
    'SystemSetting',
]
