"""
SHIPEASE Monitoring & Health Check Endpoints
=============================================

Provides:
1. /health/ - Basic liveness check (for load balancers/Docker)
2. /health/ready/ - Readiness check (DB, cache, channel layer, Celery)
"""

import time
import logging
from asgiref.sync import async_to_sync
from django.http import JsonResponse
from django.db import connection
from django.core.cache import cache
from django.views.decorators.http import require_GET
from django.views.decorators.csrf import csrf_exempt
from django.utils import timezone

logger = logging.getLogger('shipease.monitoring')


@csrf_exempt
@require_GET
def health_check(request):
    """
    Basic liveness probe.
    Returns 200 if the Django process is alive.
    """
    return JsonResponse({
        'status': 'ok',
        'service': 'shipease',
        'timestamp': timezone.now().isoformat(),
    })


def _timed(probe):
    start = time.time()
    probe()
    return round((time.time() - start) * 1000, 2)


def _check_database():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()


def _check_cache():
    cache.set('_healthcheck_ping', 'pong', 10)
    if cache.get('_healthcheck_ping') != 'pong':
        raise RuntimeError("Cache read/write mismatch")


def _check_channel_layer():
    from channels.layers import get_channel_layer

    layer = get_channel_layer()
    if layer is None:
        raise RuntimeError("No channel layer configured")
    channel = async_to_sync(layer.new_channel)()
    async_to_sync(layer.send)(channel, {'type': 'health.ping'})
    message = async_to_sync(layer.receive)(channel)
    if message.get('type') != 'health.ping':
        raise RuntimeError("Channel layer round-trip mismatch")


@csrf_exempt
@require_GET
def readiness_check(request):
    """
    Readiness probe - checks all critical dependencies.
    Returns 200 only if the database, cache and channel layer are healthy.
    Celery being down is reported as degraded, not critical.
    """
    checks = {}
    all_healthy = True

    for name, probe in (
        ('database', _check_database),
        ('cache', _check_cache),
        ('channel_layer', _check_channel_layer),
    ):
        try:
            checks[name] = {'status': 'healthy', 'response_time_ms': _timed(probe)}
        except Exception as e:
            checks[name] = {'status': 'unhealthy', 'error': str(e)}
            all_healthy = False
            logger.error(f"Health check - {name} unhealthy: {e}")

    # Celery Check (via inspect ping)
    try:
        from shipease_core.celery import app as celery_app
        start = time.time()
        ping_result = celery_app.control.inspect(timeout=3.0).ping()
        celery_time = round((time.time() - start) * 1000, 2)

        if ping_result:
            checks['celery'] = {
                'status': 'healthy',
                'workers': len(ping_result),
                'response_time_ms': celery_time,
            }
        else:
            checks['celery'] = {
                'status': 'degraded',
                'error': 'No workers responding',
                'response_time_ms': celery_time,
            }
            logger.warning("Health check - No Celery workers responding")
    except Exception as e:
        checks['celery'] = {'status': 'degraded', 'error': str(e)}
        logger.warning(f"Health check - Celery unreachable: {e}")

    return JsonResponse({
        'status': 'healthy' if all_healthy else 'unhealthy',
        'service': 'shipease',
        'timestamp': timezone.now().isoformat(),
        'checks': checks,
    }, status=200 if all_healthy else 503)
