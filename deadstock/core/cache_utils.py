"""
Caching utilities for dashboard aggregations.

Keys are versioned per prefix so invalidation works on any cache backend;
with Redis the stale keys are also deleted through SCAN.
"""
from django.conf import settings
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

DASHBOARD_PREFIX = 'dashboard'


def _version_key(prefix):
    return f"{prefix}:__version__"


def get_prefix_version(prefix):
    return cache.get(_version_key(prefix)) or 1


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:v{get_prefix_version(prefix)}:{key_hash}"


def cached_query(cache_ttl=None, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(key_prefix="dashboard")
        def admin_stats():
            return {...}

    ``cache_ttl`` defaults to settings.DASHBOARD_CACHE_TTL, read per call.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            ttl = cache_ttl if cache_ttl is not None else getattr(settings, 'DASHBOARD_CACHE_TTL', 300)
            if not ttl:
                return func(*args, **kwargs)

            cache_key = make_cache_key(key_prefix, func.__name__, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)
            cache.set(cache_key, result, ttl)
            return result
        return wrapper
    return decorator


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys under the ``pattern`` prefix.

    Bumps the version used by make_cache_key, then removes the old keys
    from Redis when django-redis is the configured backend.
    """
    try:
        cache.incr(_version_key(pattern))
    except ValueError:
        cache.set(_version_key(pattern), 2, None)

    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")

        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}:v*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break

        if keys:
            redis_conn.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")
    except Exception as e:
        logger.debug(f"Redis pattern delete unavailable for {pattern}: {str(e)}")


def invalidate_dashboard_cache():
    """Invalidate dashboard aggregates"""
    invalidate_cache_pattern(DASHBOARD_PREFIX)
    logger.info("Invalidated dashboard cache")
