"""
Shared Validators Module.

Validation utilities used by models, serializers and the CSV importer.
All validators raise django.core.exceptions.ValidationError.
"""
import re
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from django.core.exceptions import ValidationError
from django.core.validators import validate_email as django_validate_email

from .constants import (
    PHONE_NUMBER_REGEX,
    MIN_SLOT_DURATION_MINUTES,
    MAX_SLOT_DURATION_MINUTES,
    IELTS_MIN_SCORE,
    IELTS_MAX_SCORE,
    IELTS_SCORE_STEP,
)


# =============================================================================
# DATE/TIME VALIDATORS
# =============================================================================

def validate_time_slot(
    start_time: datetime,
    end_time: datetime,
    min_duration_minutes: int = MIN_SLOT_DURATION_MINUTES,
    max_duration_minutes: int = MAX_SLOT_DURATION_MINUTES,
) -> None:
    """
    Validate a time slot.

    Accepts datetimes. Rejects an end at or before the start, and durations
    outside [min_duration_minutes, max_duration_minutes].
    """
    if start_time >= end_time:
        raise ValidationError("Start time must be before end time")

    duration = end_time - start_time

    if duration < timedelta(minutes=min_duration_minutes):
        raise ValidationError(f"Duration must be at least {min_duration_minutes} minutes")

    if duration > timedelta(minutes=max_duration_minutes):
        raise ValidationError(f"Duration cannot exceed {max_duration_minutes} minutes")


# =============================================================================
# STRING VALIDATORS
# =============================================================================

def normalize_phone_number(value: str) -> str:
    """Strip spaces and dashes; turn a local 01XXXXXXXXX number into +8801XXXXXXXXX."""
    cleaned = re.sub(r'[\s\-()]', '', value or '')
    if cleaned.startswith('01') and len(cleaned) == 11:
        cleaned = f"+88{cleaned}"
    elif cleaned.startswith('8801'):
        cleaned = f"+{cleaned}"
    return cleaned


def validate_phone_number(value: str, field_name: str = "phone number") -> str:
    """Validate a Bangladesh mobile number and return it normalized."""
    cleaned = normalize_phone_number(value)

    if not cleaned:
        raise ValidationError(f"{field_name} is required")

    if not re.match(PHONE_NUMBER_REGEX, cleaned):
        raise ValidationError(
            f"Invalid {field_name}. Expected a Bangladesh mobile number like +8801712345678"
        )

    return cleaned


def validate_email(value: str, field_name: str = "email") -> str:
    """Validate email format and return it lower-cased."""
    value = (value or '').strip().lower()
    try:
        django_validate_email(value)
    except ValidationError:
        raise ValidationError(f"Invalid {field_name} format")
    return value


def validate_name(value: str, min_length: int = 2, max_length: int = 255) -> str:
    value = (value or '').strip()
    if len(value) < min_length:
        raise ValidationError(f"Name must be at least {min_length} characters")
    if len(value) > max_length:
        raise ValidationError(f"Name cannot exceed {max_length} characters")
    return value


# =============================================================================
# SCORE VALIDATORS
# =============================================================================

def validate_ielts_score(value: Any) -> Decimal:
    """
    Validate an IELTS band score: 0 to 9 in steps of 0.5.

    Returns the score as a Decimal with one decimal place.
    """
    if isinstance(value, bool):
        raise ValidationError("Score must be a number")
    try:
        score = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError("Score must be a number")

    if not score.is_finite():
        raise ValidationError("Score must be a number")

    if score < IELTS_MIN_SCORE or score > IELTS_MAX_SCORE:
        raise ValidationError(f"Score must be between {IELTS_MIN_SCORE} and {IELTS_MAX_SCORE}")

    if score % Decimal(IELTS_SCORE_STEP) != 0:
        raise ValidationError(f"Score must be in increments of {IELTS_SCORE_STEP}")

    return score.quantize(Decimal('0.1'))
