"""
Development settings for the Speaking-Test Booking Service
"""

from .base import *

DEBUG = True

ALLOWED_HOSTS = ['*']

# SQLite unless a Postgres host is given
if not os.environ.get('DB_HOST'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

# CORS - Allow all in development
CORS_ALLOW_ALL_ORIGINS = True

# SMS messages are logged, never sent
SMS_BACKEND = 'console'

# Simplified logging
LOGGING['handlers']['console']['formatter'] = 'standard'
LOGGING['root']['level'] = 'DEBUG'

# Disable throttling in development
REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []
