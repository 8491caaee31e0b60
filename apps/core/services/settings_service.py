"""
System Settings Service

Runtime configuration stored as one JSON document (key `system_config`).
Missing keys fall back to DEFAULT_SYSTEM_CONFIG, so older documents keep
working when new settings are added.
"""

import copy
import logging
from datetime import datetime
from typing import Any, Dict, Tuple

from django.conf import settings
from django.core.cache import cache
from django.db import transaction

from apps.core.models import SystemSetting

from . import SettingsValidationError

logger = logging.getLogger(__name__)

SYSTEM_CONFIG_KEY = 'system_config'
CACHE_KEY = 'system_settings:system_config'

DEFAULT_SYSTEM_CONFIG: Dict[str, Dict[str, Any]] = {
    'booking_rules': {
        'max_bookings_per_month': 1,
        'cancellation_hours': 24,
        'allow_cross_branch_booking': True,
        'auto_reminder_hours': 24,
    },
    'notification_templates': {
        'booking_confirmed': {
            'sms': 'Booking confirmed! Date: {date}, Time: {time}, Teacher: {teacher}, Branch: {branch}.',
            'title': 'Booking Confirmed',
            'message': 'Your speaking test on {date} at {time} with {teacher} at {branch} is confirmed.',
        },
        'booking_reminder': {
            'sms': 'Reminder: your speaking test is on {date} at {time} with {teacher} at {branch}.',
            'title': 'Upcoming Speaking Test',
            'message': 'Reminder: your speaking test is on {date} at {time} with {teacher} at {branch}.',
        },
        'booking_cancelled': {
            'sms': 'Your booking on {date} at {time} has been cancelled. Reason: {reason}.',
            'title': 'Booking Cancelled',
            'message': 'Your booking on {date} at {time} at {branch} has been cancelled. Reason: {reason}.',
        },
        'teacher_cancellation': {
            'sms': 'Your session on {date} at {time} was cancelled by the centre. Please book another slot.',
            'title': 'Session Cancelled',
            'message': 'Your session on {date} at {time} at {branch} was cancelled by the centre. Please book another slot.',
        },
        'waiting_list_promoted': {
            'sms': 'A seat opened up! You are booked for {date} at {time} at {branch}.',
            'title': 'Waiting List: Booking Confirmed',
            'message': 'A seat opened up and you are now booked for {date} at {time} with {teacher} at {branch}.',
        },
    },
    'system_limits': {
        'max_slots_per_day': 20,
        'max_students_per_slot': 100,
        'working_hours_start': '09:00',
        'working_hours_end': '18:00',
    },
    'audit_settings': {
        'retention_days': 365,
        'log_level': 'info',
    },
}

POSITIVE_INT_SETTINGS = {
    'booking_rules': ['max_bookings_per_month', 'auto_reminder_hours'],
    'system_limits': ['max_slots_per_day', 'max_students_per_slot'],
    'audit_settings': ['retention_days'],
}

LOG_LEVELS = ['debug', 'info', 'warning', 'error']


class SystemSettingsService:
    """Read and update the system configuration document."""

    def get_config(self) -> Dict[str, Any]:
        """Full configuration with defaults merged in."""
        config = cache.get(CACHE_KEY)
        if config is not None:
            return config

        stored = (
            SystemSetting.objects.filter(key=SYSTEM_CONFIG_KEY)
            .values_list('value', flat=True)
            .first()
        ) or {}
        config = self._merge(self.get_defaults(), stored)

        cache.set(CACHE_KEY, config, getattr(settings, 'SYSTEM_SETTINGS_CACHE_TIMEOUT', 300))
        return config

    def get_defaults(self) -> Dict[str, Any]:
        """Built-in defaults with deployment overrides from BOOKING_DEFAULTS."""
        defaults = copy.deepcopy(DEFAULT_SYSTEM_CONFIG)
        defaults['booking_rules'].update(getattr(settings, 'BOOKING_DEFAULTS', {}))
        return defaults

    def get_section(self, section: str) -> Dict[str, Any]:
        return self.get_config()[section]

    def get_booking_rules(self) -> Dict[str, Any]:
        return self.get_section('booking_rules')

    def get_template(self, name: str) -> Dict[str, str]:
        templates = self.get_section('notification_templates')
        return templates.get(name) or DEFAULT_SYSTEM_CONFIG['notification_templates'][name]

    @transaction.atomic
    def update_config(self, changes: Dict[str, Any], updated_by=None) -> Tuple[Dict, Dict]:
        """
        Apply a partial update. Unknown sections or keys are rejected.

        Returns (old_config, new_config) for auditing.
        """
        old_config = self.get_config()
        new_config = self._merge(old_config, changes, strict=True)
        self.validate_config(new_config)

        SystemSetting.objects.update_or_create(
            key=SYSTEM_CONFIG_KEY,
            defaults={'value': new_config, 'updated_by': updated_by},
        )
        transaction.on_commit(lambda: cache.delete(CACHE_KEY))
        cache.delete(CACHE_KEY)

        logger.info(
            f"System settings updated by {getattr(updated_by, 'id', None)}: "
            f"{', '.join(sorted(changes.keys()))}"
        )
        return old_config, new_config

    # ==========================================================================
    # Validation
    # ==========================================================================

    def validate_config(self, config: Dict[str, Any]) -> None:
        errors = {}

        for section, keys in POSITIVE_INT_SETTINGS.items():
            for key in keys:
                value = config[section].get(key)
                if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                    errors[f"{section}.{key}"] = 'Must be a positive integer'

        hours = config['booking_rules'].get('cancellation_hours')
        if isinstance(hours, bool) or not isinstance(hours, int) or hours < 0:
            errors['booking_rules.cancellation_hours'] = 'Must be zero or a positive integer'

        if not isinstance(config['booking_rules'].get('allow_cross_branch_booking'), bool):
            errors['booking_rules.allow_cross_branch_booking'] = 'Must be true or false'

        if config['system_limits'].get('max_students_per_slot', 0) > 100:
            errors['system_limits.max_students_per_slot'] = 'Cannot exceed 100'

        limits = config['system_limits']
        try:
            start = datetime.strptime(limits['working_hours_start'], '%H:%M').time()
            end = datetime.strptime(limits['working_hours_end'], '%H:%M').time()
            if start >= end:
                errors['system_limits.working_hours_start'] = 'Working hours start must be before end'
        except (TypeError, ValueError):
            errors['system_limits.working_hours'] = 'Working hours must be in HH:MM format'

        if config['audit_settings'].get('log_level') not in LOG_LEVELS:
            errors['audit_settings.log_level'] = f"Must be one of: {', '.join(LOG_LEVELS)}"

        for name, template in config['notification_templates'].items():
            if not isinstance(template, dict) or not all(
                isinstance(template.get(field), str) and template.get(field)
                for field in ('sms', 'title', 'message')
            ):
                errors[f"notification_templates.{name}"] = 'Template needs non-empty sms, title and message'

        if errors:
            raise SettingsValidationError('Invalid system settings', details=errors)

    @staticmethod
    def _merge(base: Dict[str, Any], override: Dict[str, Any], strict: bool = False) -> Dict[str, Any]:
        """Two-level merge of sections and keys."""
        merged = copy.deepcopy(base)
        unknown = []

        for section, values in (override or {}).items():
            if section not in merged:
                if strict:
                    unknown.append(section)
                continue
            if not isinstance(values, dict):
                if strict:
                    raise SettingsValidationError(
                        'Invalid system settings',
                        details={section: 'Must be an object'}
                    )
                continue
            for key, value in values.items():
                if strict and key not in merged[section] and section != 'notification_templates':
                    unknown.append(f"{section}.{key}")
                    continue
                merged[section][key] = value

        if unknown:
            raise SettingsValidationError(
                'Unknown settings',
                details={key: 'Unknown setting' for key in unknown}
            )
        return merged
