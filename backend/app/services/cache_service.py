"""
Response cache for idempotent reads.

Two interchangeable backends implement ``ResponseCache``:

- ``InMemoryResponseCache``: per-process map guarded by one lock, lazy expiry
  on read plus a periodic sweep.
- ``RedisResponseCache``: shared across processes; Redis expires keys itself
  and prefix invalidation walks keys with SCAN.

Keys come from ``build_cache_key`` so equivalent queries in any parameter order
hit the same entry.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
import json
import logging
import math
import threading
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from redis import Redis
from redis.exceptions import RedisError

from ..core.clock import Clock, system_clock
from ..core.config import Settings, settings as app_settings
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..ratelimit.redis_backend import get_redis

logger = logging.getLogger(__name__)


class CacheTTL:
    """TTL presets in seconds."""

    SHORT = 30
    STANDARD = 60
    MEDIUM = 300
    LONG = 900
    STATIC = 3600


def _format_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def build_cache_key(prefix: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Deterministic key for a cached read.

    Examples:
        build_cache_key("studios", {"page": 2, "city": "Oslo"}) -> "studios:city=Oslo&page=2"
        build_cache_key("studios") -> "studios:default"

    Parameters whose value is None are dropped.
    """
    if not params:
        return f"{prefix}:default"
    pairs = sorted((k, _format_param(v)) for k, v in params.items() if v is not None)
    if not pairs:
        return f"{prefix}:default"
    return f"{prefix}:" + "&".join(f"{k}={v}" for k, v in pairs)


class ResponseCache(Protocol):
    def get(self, key: str) -> Optional[Any]:
        """Cached value, or None on a miss (absent or expired)."""
        ...

    def set(self, key: str, value: Any, ttl: float = CacheTTL.STANDARD) -> None:
        ...

    def delete(self, key: str) -> bool:
        ...

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``; returns how many went."""
        ...

    def clear(self) -> None:
        ...

    def sweep(self) -> int:
        """Drop expired entries; returns how many were removed."""
        ...


def _validate_ttl(ttl: float) -> None:
    if ttl <= 0:
        raise ValueError("ttl must be positive")


class InMemoryResponseCache:
    """Process-local TTL cache. Values are stored by reference."""

    backend = "memory"

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or system_clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[Any, datetime]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        now = self._clock.now()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now >= entry[1]:
                del self._entries[key]
                entry = None
        if entry is None:
            prometheus_metrics.record_cache(self.backend, "miss")
            return None
        prometheus_metrics.record_cache(self.backend, "hit")
        return entry[0]

    def set(self, key: str, value: Any, ttl: float = CacheTTL.STANDARD) -> None:
        _validate_ttl(ttl)
        expires_at = self._clock.now() + timedelta(seconds=ttl)
        with self._lock:
            self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        prometheus_metrics.record_cache(self.backend, "invalidate")
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        now = self._clock.now()
        with self._lock:
            expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))
        return len(expired)


def _escape_glob(value: str) -> str:
    return "".join(f"\\{ch}" if ch in "*?[]\\" else ch for ch in value)


class RedisResponseCache:
    """
    Redis-backed cache shared by every worker.

    Values are stored as JSON. Redis errors are logged and treated as a miss
    (reads) or a no-op (writes) so a cache outage never fails a request.
    """

    backend = "redis"

    def __init__(self, client: Redis, namespace: str = "studio"):
        self.redis = client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:cache:{key}"

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.redis.get(self._key(key))
        except RedisError as e:
            logger.error(f"Cache get error for key {key}: {e}")
            prometheus_metrics.record_cache(self.backend, "error")
            return None
        if raw is None:
            prometheus_metrics.record_cache(self.backend, "miss")
            return None
        prometheus_metrics.record_cache(self.backend, "hit")
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: float = CacheTTL.STANDARD) -> None:
        _validate_ttl(ttl)
        try:
            self.redis.psetex(
                self._key(key),
                max(1, math.ceil(ttl * 1000)),
                json.dumps(value, default=str),
            )
        except RedisError as e:
            logger.error(f"Cache set error for key {key}: {e}")
            prometheus_metrics.record_cache(self.backend, "error")

    def delete(self, key: str) -> bool:
        try:
            return bool(self.redis.delete(self._key(key)))
        except RedisError as e:
            logger.error(f"Cache delete error for key {key}: {e}")
            return False

    def invalidate_prefix(self, prefix: str) -> int:
        """Delete pattern from Redis using SCAN."""
        count = 0
        try:
            for key in self.redis.scan_iter(match=self._key(_escape_glob(prefix)) + "*"):
                if self.redis.delete(key):
                    count += 1
        except RedisError as e:
            logger.error(f"Cache delete pattern error for prefix {prefix}: {e}")
        prometheus_metrics.record_cache(self.backend, "invalidate")
        return count

    def clear(self) -> None:
        self.invalidate_prefix("")

    def sweep(self) -> int:
        # Redis expires keys on its own
        return 0


def build_response_cache(
    source: Optional[Settings] = None, clock: Optional[Clock] = None
) -> ResponseCache:
    """Redis-backed when a Redis URL is configured, otherwise in-process."""
    cfg = source or app_settings
    if cfg.redis_url:
        return RedisResponseCache(get_redis(cfg.redis_url), cfg.cache_namespace)
    return InMemoryResponseCache(clock)
