# Shared Common Library for the Speaking-Test Booking Platform
# Authentication, permissions, error handling and other components
# shared by the Django apps.

__version__ = "1.0.0"
