"""
Shared Constants

Enumerations and formats shared by models, services and serializers.
"""

from enum import Enum


# =============================================================================
# USER ROLES
# =============================================================================

class UserRole(str, Enum):
    """User roles. The set is flat: no role inherits from another."""
    SUPER_ADMIN = "SUPER_ADMIN"
    BRANCH_ADMIN = "BRANCH_ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"


ADMIN_ROLES = (UserRole.SUPER_ADMIN.value, UserRole.BRANCH_ADMIN.value)
STAFF_ROLES = ADMIN_ROLES + (UserRole.TEACHER.value,)


# =============================================================================
# FORMATS
# =============================================================================

DATE_FORMAT = '%Y-%m-%d'
TIME_FORMAT = '%H:%M'

# Bangladesh mobile numbers: +880 1[3-9] followed by eight digits
PHONE_NUMBER_REGEX = r'^\+8801[3-9]\d{8}$'


# =============================================================================
# SLOT LIMITS
# =============================================================================

MIN_SLOT_DURATION_MINUTES = 15
MAX_SLOT_DURATION_MINUTES = 180
MIN_SLOT_CAPACITY = 1
MAX_SLOT_CAPACITY = 100


# =============================================================================
# IELTS
# =============================================================================

IELTS_MIN_SCORE = 0
IELTS_MAX_SCORE = 9
IELTS_SCORE_STEP = '0.5'
MAX_REMARKS_LENGTH = 1000
