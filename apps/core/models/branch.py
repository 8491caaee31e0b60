"""
Branch Model

A physical test centre. Slots, rooms, teachers and branch admins belong to one.
"""

from django.db import models

from shared.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin, ActiveMixin


class Branch(UUIDPrimaryKeyMixin, TimestampMixin, ActiveMixin):
    """Test centre branch."""

    name = models.CharField(max_length=255, unique=True)
    address = models.TextField(blank=True, default='')
    contact_number = models.CharField(max_length=20, blank=True, default='')

    class Meta:
        db_table = 'branches'
        ordering = ['name']

    def __str__(self):
        return self.name
