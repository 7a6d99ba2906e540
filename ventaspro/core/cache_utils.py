"""
Caching utilities for expensive queries
Uses the configured Django cache (Redis in production, local memory otherwise)
"""
from django.core.cache import cache
from functools import wraps
import hashlib
import logging
import time

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
DASHBOARD_KPI_CACHE_TTL = 300  # 5 minutes
REPORTS_CACHE_TTL = 600  # 10 minutes

# Generation counters let a whole family of keys be dropped at once
# without scanning the cache backend.
GENERATION_KEY = "cache_generation:{prefix}"


def get_generation(prefix):
    """Current generation number for a key prefix"""
    generation = cache.get(GENERATION_KEY.format(prefix=prefix))
    if generation is None:
        generation = 1
        cache.add(GENERATION_KEY.format(prefix=prefix), generation, None)
    return generation


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{get_generation(prefix)}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=120, key_prefix="dashboard_kpis")
        def get_expensive_data(day):
            # expensive query here
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


def invalidate_prefix(prefix):
    """Invalidate every key built with make_cache_key(prefix, ...)"""
    key = GENERATION_KEY.format(prefix=prefix)
    try:
        cache.incr(key)
    except ValueError:
        # Counter missing or evicted; start a fresh generation
        cache.set(key, int(time.time() * 1000), None)
    logger.debug(f"Invalidated cache prefix: {prefix}")


def invalidate_dashboard_cache():
    """Invalidate dashboard KPIs cache"""
    invalidate_prefix("dashboard_kpis")


def invalidate_reports_cache():
    """Invalidate cached report results"""
    invalidate_prefix("reports_summary")
