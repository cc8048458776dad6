"""
Report views: fleet analytics, system statistics and health checks

Analytics and system statistics are cached through cached_query and
invalidated by the cache signals whenever users, drones, requests or
activity logs change.
"""
import logging
import time
import uuid
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import connection
from django.db.models import Count, Q
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from dronehub.borrowing.models import BorrowRequest
from dronehub.core.access import IsAdminRole, IsSuperAdminRole
from dronehub.core.cache_utils import (
    cached_query, ANALYTICS_CACHE_TTL, SYSTEM_STATS_CACHE_TTL,
    ANALYTICS_KEY_PREFIX, SYSTEM_STATS_KEY_PREFIX,
)
from dronehub.core.models import ActivityLog
from dronehub.core.serializers import ActivityLogSerializer
from dronehub.fleet.models import Drone

User = get_user_model()

logger = logging.getLogger('dronehub.reports')

# Range key -> days back from today; the window starts at midnight of that day
ANALYTICS_RANGES = {
    '1d': 0,
    '7d': 7,
    '30d': 30,
    '90d': 90,
}
DEFAULT_RANGE = '7d'
RECENT_LOG_LIMIT = 10


def analytics_window(range_key, now=None):
    """Return (start, end) datetimes covering the given range"""
    now = timezone.localtime(now or timezone.now())
    days = ANALYTICS_RANGES.get(range_key, ANALYTICS_RANGES[DEFAULT_RANGE])
    start = (now - timedelta(days=days)).replace(hour=0, minute=0, second=0, microsecond=0)
    end = now.replace(hour=23, minute=59, second=59, microsecond=999999)
    return start, end


def _recent_logs(queryset):
    logs = queryset.select_related('user').order_by('-created_at', '-id')[:RECENT_LOG_LIMIT]
    return [dict(row) for row in ActivityLogSerializer(logs, many=True).data]


def _request_counts(queryset):
    return queryset.aggregate(
        total=Count('id'),
        pending=Count('id', filter=Q(status=BorrowRequest.STATUS_PENDING)),
        approved=Count('id', filter=Q(status=BorrowRequest.STATUS_APPROVED)),
        rejected=Count('id', filter=Q(status=BorrowRequest.STATUS_REJECTED)),
        returned=Count('id', filter=Q(status=BorrowRequest.STATUS_RETURNED)),
    )


@cached_query(cache_ttl=ANALYTICS_CACHE_TTL, key_prefix=ANALYTICS_KEY_PREFIX)
def build_analytics(range_key):
    start, end = analytics_window(range_key)

    users = User.objects.aggregate(
        total=Count('id'),
        new_users=Count('id', filter=Q(created_at__gte=start, created_at__lte=end)),
        admins=Count('id', filter=Q(role=User.ROLE_ADMIN)),
        superadmins=Count('id', filter=Q(role=User.ROLE_SUPERADMIN)),
    )
    requests = _request_counts(BorrowRequest.objects.filter(created_at__gte=start, created_at__lte=end))
    drones = Drone.objects.aggregate(
        total=Count('id'),
        available=Count('id', filter=Q(status=Drone.STATUS_AVAILABLE)),
        borrowed=Count('id', filter=Q(status=Drone.STATUS_BORROWED)),
        maintenance=Count('id', filter=Q(status=Drone.STATUS_MAINTENANCE)),
        damaged=Count('id', filter=Q(status=Drone.STATUS_DAMAGED)),
    )
    logs = ActivityLog.objects.filter(created_at__gte=start, created_at__lte=end)

    return {
        'range': range_key,
        'period': {'from': start.isoformat(), 'to': end.isoformat()},
        'users': users,
        'requests': requests,
        'drones': drones,
        'activity': {
            'total_logs': logs.count(),
            'recent_activity': _recent_logs(logs),
        },
    }


@cached_query(cache_ttl=SYSTEM_STATS_CACHE_TTL, key_prefix=SYSTEM_STATS_KEY_PREFIX)
def build_system_stats():
    return {
        'total_drones': Drone.objects.count(),
        'active_drones': Drone.objects.filter(status=Drone.STATUS_AVAILABLE).count(),
        'total_requests': BorrowRequest.objects.count(),
        'pending_requests': BorrowRequest.objects.filter(status=BorrowRequest.STATUS_PENDING).count(),
        'total_users': User.objects.count(),
        'admin_users': User.objects.filter(role=User.ROLE_ADMIN).count(),
        'recent_logs': _recent_logs(ActivityLog.objects.all()),
    }


def check_database():
    started = time.perf_counter()
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}", exc_info=True)
        return {'status': 'error', 'error': str(e)}
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    return {'status': 'healthy', 'response_time_ms': elapsed_ms, 'vendor': connection.vendor}


def check_cache():
    key = f"health_check:{uuid.uuid4().hex}"
    started = time.perf_counter()
    try:
        cache.set(key, 'ok', 10)
        value = cache.get(key)
        cache.delete(key)
    except Exception as e:
        logger.error(f"Cache health check failed: {str(e)}", exc_info=True)
        return {'status': 'error', 'error': str(e)}
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    if value != 'ok':
        logger.warning("Cache health check read back a different value")
        return {'status': 'error', 'error': 'Cache round-trip failed', 'response_time_ms': elapsed_ms}
    return {'status': 'healthy', 'response_time_ms': elapsed_ms}


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def analytics(request):
    """
    Fleet analytics for a time range

    Query params:
        range: 1d, 7d, 30d or 90d (default 7d; unknown values fall back to 7d)
    """
    range_key = request.query_params.get('range', DEFAULT_RANGE)
    if range_key not in ANALYTICS_RANGES:
        logger.info(f"Unknown analytics range '{range_key}', using {DEFAULT_RANGE}")
        range_key = DEFAULT_RANGE
    return Response(build_analytics(range_key))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSuperAdminRole])
def system_stats(request):
    return Response(build_system_stats())


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSuperAdminRole])
def system_health(request):
    """Measured database and cache checks; 503 when any check fails"""
    checks = {
        'database': check_database(),
        'cache': check_cache(),
    }
    healthy = all(check['status'] == 'healthy' for check in checks.values())
    payload = {
        'status': 'healthy' if healthy else 'error',
        'checked_at': timezone.now().isoformat(),
        **checks,
    }
    return Response(payload, status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard(request):
    """The caller's own request counts and how many drones can be borrowed now"""
    counts = _request_counts(BorrowRequest.objects.filter(user=request.user))
    return Response({
        'requests': counts,
        'available_drones': Drone.objects.filter(status=Drone.STATUS_AVAILABLE).count(),
    })
