"""
Redis cache for read-mostly lookups (purchase form data).

Keys: {CACHE_KEY_PREFIX}:{module}:{key}

Redis is optional: when disabled, unreachable or failing, every operation
degrades to a cache miss / no-op and callers fall through to the database.
"""

import functools
import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional

import redis
from redis.exceptions import RedisError
from flask import Flask

logger = logging.getLogger(__name__)

DECIMAL_TAG = '__decimal__'


def _encode(value: Any) -> str:
    """JSON-encode, tagging Decimals so they come back exact."""
    def default(obj):
        if isinstance(obj, Decimal):
            return {DECIMAL_TAG: str(obj)}
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
    return json.dumps(value, default=default)


def _decode(raw: str) -> Any:
    def object_hook(obj):
        if DECIMAL_TAG in obj:
            return Decimal(obj[DECIMAL_TAG])
        return obj
    return json.loads(raw, object_hook=object_hook)


def _degrade(fallback):
    """Skip the call when the cache is off; log and return ``fallback`` on failure."""
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            if not self.is_available():
                return fallback
            try:
                return method(self, *args, **kwargs)
            except (RedisError, TypeError, ValueError) as e:
                logger.warning(f"[CACHE] {method.__name__} failed: {e}")
                return fallback
        return wrapper
    return decorator


class CacheService:
    """Module-scoped cache-aside over Redis."""

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self.enabled = False
        self.prefix = 'backoffice'
        self.default_ttl = 60

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.enabled = app.config.get('CACHE_ENABLED', True)
        self.prefix = app.config.get('CACHE_KEY_PREFIX', self.prefix)
        self.default_ttl = app.config.get('CACHE_DEFAULT_TTL', self.default_ttl)

        if not self.enabled:
            logger.info("[CACHE] Disabled by configuration")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[CACHE] Redis connected: {redis_url}")
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unavailable ({e}); caching disabled")
            self.enabled = False
            self.client = None

    def is_available(self) -> bool:
        return self.enabled and self.client is not None

    def key(self, module: str, key: str) -> str:
        return f"{self.prefix}:{module}:{key}"

    @_degrade(None)
    def get(self, module: str, key: str) -> Optional[Any]:
        raw = self.client.get(self.key(module, key))
        return None if raw is None else _decode(raw)

    @_degrade(False)
    def set(self, module: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        self.client.setex(self.key(module, key), ttl or self.default_ttl, _encode(value))
        return True

    @_degrade(False)
    def delete(self, module: str, key: str) -> bool:
        return bool(self.client.delete(self.key(module, key)))

    @_degrade(0)
    def delete_pattern(self, module: str, pattern: str = '*') -> int:
        """Delete every key of ``module`` matching ``pattern`` (SCAN, not KEYS)."""
        match = self.key(module, pattern)
        deleted = 0
        for batch in self._scan_batches(match):
            deleted += self.client.delete(*batch)
        if deleted:
            logger.info(f"[CACHE] Invalidated {deleted} keys matching {match}")
        return deleted

    def _scan_batches(self, match: str, batch_size: int = 100):
        batch = []
        for name in self.client.scan_iter(match=match, count=batch_size):
            batch.append(name)
            if len(batch) >= batch_size:
                yield batch
                batch = []
        if batch:
            yield batch

    def memoize(self, module: str, key: str, loader_fn: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Return the cached value, or call ``loader_fn`` and cache its result."""
        cached = self.get(module, key)
        if cached is not None:
            return cached
        value = loader_fn()
        self.set(module, key, value, ttl)
        return value

    def invalidate_module(self, module: str) -> int:
        return self.delete_pattern(module, '*')


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> CacheService:
    """Create the process-wide cache service and attach it to the app."""
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service
    return _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("Cache not initialized; call init_cache(app) first.")
    return _cache_service
