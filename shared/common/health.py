"""
Health Check Module.

Liveness and readiness endpoints for load balancers and process managers.
"""
import logging
import time
from typing import Dict, Any

from django.db import connection
from django.core.cache import cache
from django.conf import settings
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class HealthStatus:
    """Health check status constants."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


def check_database() -> Dict[str, Any]:
    """Check database connectivity."""
    start = time.time()
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        return {
            "name": "database",
            "status": HealthStatus.HEALTHY,
            "latency_ms": round((time.time() - start) * 1000, 2),
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "name": "database",
            "status": HealthStatus.UNHEALTHY,
            "error": str(e),
        }


def check_cache() -> Dict[str, Any]:
    """Check cache connectivity. A cache outage degrades but does not stop the service."""
    start = time.time()
    try:
        cache.set("health_check", "ok", 10)
        value = cache.get("health_check")
        if value != "ok":
            raise RuntimeError("cache read-back mismatch")
        return {
            "name": "cache",
            "status": HealthStatus.HEALTHY,
            "latency_ms": round((time.time() - start) * 1000, 2),
        }
    except Exception as e:
        logger.warning(f"Cache health check failed: {e}")
        return {
            "name": "cache",
            "status": HealthStatus.DEGRADED,
            "error": str(e),
        }


def run_checks() -> Dict[str, Any]:
    checks = [check_database(), check_cache()]

    statuses = [c["status"] for c in checks]
    if HealthStatus.UNHEALTHY in statuses:
        overall_status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        overall_status = HealthStatus.DEGRADED
    else:
        overall_status = HealthStatus.HEALTHY

    return {
        "status": overall_status,
        "service": getattr(settings, 'SERVICE_NAME', 'unknown'),
        "version": getattr(settings, 'VERSION', '1.0.0'),
        "checks": checks,
        "timestamp": timezone.now().isoformat(),
    }


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def health_check(request):
    """Returns 200 while the process is serving requests."""
    return Response({
        "status": HealthStatus.HEALTHY,
        "timestamp": timezone.now().isoformat(),
    })


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def liveness_check(request):
    return Response({
        "status": "alive",
        "timestamp": timezone.now().isoformat(),
    })


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def readiness_check(request):
    """
    Returns 200 if the service can accept traffic, 503 if the database
    is unreachable.
    """
    result = run_checks()
    status_code = 503 if result["status"] == HealthStatus.UNHEALTHY else 200
    return Response(result, status=status_code)


def get_health_urlpatterns():
    """
    Returns URL patterns for health check endpoints.

    Usage in urls.py:
        from shared.common.health import get_health_urlpatterns
        urlpatterns += get_health_urlpatterns()
    """
    from django.urls import path

    return [
        path('health/', health_check, name='health'),
        path('health/live/', liveness_check, name='liveness'),
        path('health/ready/', readiness_check, name='readiness'),
    ]
