"""
Caching utilities for report queries
Uses Redis when configured, the local memory cache otherwise
"""
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
ANALYTICS_CACHE_TTL = 300  # 5 minutes
SYSTEM_STATS_CACHE_TTL = 60  # 1 minute

ANALYTICS_KEY_PREFIX = 'analytics'
SYSTEM_STATS_KEY_PREFIX = 'system_stats'
REPORT_KEY_PREFIXES = (ANALYTICS_KEY_PREFIX, SYSTEM_STATS_KEY_PREFIX)


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=120, key_prefix="analytics")
        def build_analytics(range_key):
            return data
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)
            cache.set(cache_key, result, cache_ttl)
            return result
        return wrapper
    return decorator


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern

    Uses Redis SCAN when the default cache is django-redis. Other backends
    cannot enumerate keys, so the whole cache is cleared instead.
    """
    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")
    except Exception as e:
        logger.debug(f"Pattern invalidation unavailable ({str(e)}), clearing cache for {pattern}")
        try:
            cache.clear()
        except Exception as clear_error:
            logger.warning(f"Could not clear cache for pattern {pattern}: {str(clear_error)}")
        return

    try:
        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break

        if keys:
            redis_conn.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def invalidate_report_cache():
    """Invalidate analytics and system statistics caches"""
    for prefix in REPORT_KEY_PREFIXES:
        invalidate_cache_pattern(prefix)
    logger.debug("Invalidated report cache")
