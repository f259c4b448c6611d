"""
Caching helpers for expensive report queries.

Keys carry a per-namespace version number; bumping the version invalidates
every key in the namespace.
"""
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
DASHBOARD_CACHE_TTL = 300  # 5 minutes
REPORTS_CACHE_TTL = 600  # 10 minutes

REPORTS_NAMESPACE = 'reports'


def _version_key(namespace):
    return f"{namespace}:version"


def get_namespace_version(namespace):
    version = cache.get(_version_key(namespace))
    if version is None:
        cache.add(_version_key(namespace), 1, None)
        version = cache.get(_version_key(namespace)) or 1
    return version


def invalidate_namespace(namespace):
    """Make every cached entry of ``namespace`` unreachable"""
    try:
        cache.incr(_version_key(namespace))
    except ValueError:
        cache.set(_version_key(namespace), 2, None)
    logger.debug(f"Invalidated cache namespace: {namespace}")


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query", namespace=REPORTS_NAMESPACE):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=600, key_prefix="analytics")
        def build_analytics(start, end):
            return data
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            version = get_namespace_version(namespace)
            cache_key = make_cache_key(f"{namespace}:v{version}:{key_prefix}", *args, **kwargs)

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
