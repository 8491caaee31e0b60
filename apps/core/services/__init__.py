"""
Speaking Test Booking Business Logic

Exceptions are defined before the services are imported so that service
modules can import them at module level.
"""

from rest_framework import status

from shared.common.exceptions import DomainError


# Custom Exceptions
class BookingServiceError(DomainError):
    """Base exception for booking service errors."""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = 'BAD_REQUEST'
    title = 'Bad Request'


class BookingValidationError(BookingServiceError):
    """Input failed validation."""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = 'VALIDATION_ERROR'
    title = 'Validation Error'


class SlotValidationError(BookingValidationError):
    """Slot date, time or capacity is invalid."""
    pass


class PastSlotError(BookingValidationError):
    """Slot has already started."""
    pass


class ScoreValidationError(BookingValidationError):
    """IELTS score is not a valid band."""
    pass


class SettingsValidationError(BookingValidationError):
    """System settings document is invalid."""
    pass


class ImportValidationError(BookingValidationError):
    """Uploaded file could not be parsed."""
    pass


class ResourceNotFoundError(BookingServiceError):
    """Requested object does not exist or is not visible to the user."""
    status_code = status.HTTP_404_NOT_FOUND
    error_code = 'NOT_FOUND'
    title = 'Not Found'


class BookingNotFoundError(ResourceNotFoundError):
    """Booking not found."""
    pass


class SlotNotFoundError(ResourceNotFoundError):
    """Slot not found."""
    pass


class UserNotFoundError(ResourceNotFoundError):
    """User not found."""
    pass


class RuleViolationError(BookingServiceError):
    """Booking rule violation."""
    status_code = status.HTTP_409_CONFLICT
    error_code = 'BUSINESS_RULE_ERROR'
    title = 'Business Rule Violation'


class CapacityExceededError(RuleViolationError):
    """Slot has no free seats."""
    pass


class MonthlyLimitError(RuleViolationError):
    """Student reached the monthly booking limit."""
    pass


class CancellationWindowError(RuleViolationError):
    """Cancellation requested too close to the slot start."""
    pass


class BookingStateError(RuleViolationError):
    """Invalid booking state transition."""
    pass


class WaitlistError(RuleViolationError):
    """Waiting list operation error."""
    pass


class BookingConflictError(BookingServiceError):
    """Request conflicts with an existing record."""
    status_code = status.HTTP_409_CONFLICT
    error_code = 'CONFLICT_ERROR'
    title = 'Conflict'


class SlotConflictError(BookingConflictError):
    """Slot overlaps another slot of the same teacher or room."""
    pass


class DuplicateBookingError(BookingConflictError):
    """Student already holds a booking on the slot."""
    pass


class AccessDeniedError(BookingServiceError):
    """User's role or scope does not allow the operation."""
    status_code = status.HTTP_403_FORBIDDEN
    error_code = 'AUTHORIZATION_ERROR'
    title = 'Authorization Error'


class AuthenticationError(BookingServiceError):
    """Login failed."""
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = 'AUTHENTICATION_ERROR'
    title = 'Authentication Error'


class InvalidCredentialsError(AuthenticationError):
    """Invalid email or password."""
    pass


class InvalidOTPError(AuthenticationError):
    """One-time code is wrong, expired or used up."""
    pass


from .settings_service import SystemSettingsService  # noqa: E402
from .audit_service import AuditService  # noqa: E402
from .notification_service import NotificationService  # noqa: E402
from .slot_service import SlotService  # noqa: E402
from .booking_service import BookingService  # noqa: E402
from .waitlist_service import WaitlistService  # noqa: E402
from .assessment_service import AssessmentService  # noqa: E402
from .user_service import UserService, BranchService  # noqa: E402
from .auth_service import AuthService  # noqa: E402
from .report_service import ReportService  # noqa: E402
from .import_service import StudentImportService  # noqa: E402


__all__ = [
    # Services
    'SystemSettingsService',
    'AuditService',
    'NotificationService',
    'SlotService',
    'BookingService',
    'WaitlistService',
    'AssessmentService',
    'UserService',
    'BranchService',
    'AuthService',
    'ReportService',
    'StudentImportService',

    # Exceptions
    'BookingServiceError',
    'BookingValidationError',
    'SlotValidationError',
    'PastSlotError',
    'ScoreValidationError',
    'SettingsValidationError',
    'ImportValidationError',
    'ResourceNotFoundError',
    'BookingNotFoundError',
    'SlotNotFoundError',
    'UserNotFoundError',
    'RuleViolationError',
    'CapacityExceededError',
    'MonthlyLimitError',
    'CancellationWindowError',
    'BookingStateError',
    'WaitlistError',
    'BookingConflictError',
    'SlotConflictError',
    'DuplicateBookingError',
    'AccessDeniedError',
    'AuthenticationError',
    'InvalidCredentialsError',
    'InvalidOTPError',
]
