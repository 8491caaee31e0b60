"""
Audit Log Model
"""

import uuid

from django.db import models
from django.utils import timezone


class AuditLog(models.Model):
    """
    Record of a change made through the API.

    Entries are append-only. Old entries are purged after the retention
    period configured in system settings.
    """

    class Action(models.TextChoices):
        CREATE = 'CREATE', 'Create'
        UPDATE = 'UPDATE', 'Update'
        DELETE = 'DELETE', 'Delete'
        LOGIN = 'LOGIN', 'Login'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        'core.User',
        on_delete=models.SET_NULL,
        related_name='audit_logs',
        blank=True,
        null=True
    )
    action = models.CharField(max_length=10, choices=Action.choices, db_index=True)
    entity_type = models.CharField(max_length=50, db_index=True)
    entity_id = models.CharField(max_length=64, blank=True, default='')

    old_values = models.JSONField(blank=True, null=True)
    new_values = models.JSONField(blank=True, null=True)

    ip_address = models.GenericIPAddressField(blank=True, null=True)
    user_agent = models.CharField(max_length=500, blank=True, default='')
    request_id = models.CharField(max_length=64, blank=True, default='')

    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id']),
        ]

    def __str__(self):
        return f"{self.action} {self.entity_type}:{self.entity_id}"
