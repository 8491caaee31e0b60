"""
System Setting Model

Key/value store for runtime configuration edited by super admins.
"""

from django.db import models

from shared.common.mixins import TimestampMixin


class SystemSetting(TimestampMixin):
    """A JSON document stored under a unique key."""

    key = models.CharField(max_length=100, primary_key=True)
    value = models.JSONField(default=dict)
    updated_by = models.ForeignKey(
        'core.User',
        on_delete=models.SET_NULL,
        related_name='+',
        blank=True,
        null=True
    )

    class Meta:
        db_table = 'system_settings'

    def __str__(self):
        return self.key
