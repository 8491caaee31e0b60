"""
Celery application.

Reads CELERY_* keys from Django settings and discovers tasks in installed apps.
"""

import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

app = Celery('speaking_booking')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
