from datetime import timedelta
import logging
from typing import Optional

import redis
from redis.exceptions import RedisError

from app.core.clock import Clock, system_clock

from .fixed_window import Decision
from .metrics import rl_eval_errors

logger = logging.getLogger(__name__)


def get_redis(url: str) -> redis.Redis:
    return redis.Redis.from_url(url, decode_responses=True)


# Lua script implementing a fixed window counter
# KEYS[1] = storage key
# ARGV[1] = window_ms
# Returns: {count, ttl_ms}
FIXED_WINDOW_LUA = r"""
local key = KEYS[1]
local window_ms = tonumber(ARGV[1])

local count = redis.call('INCR', key)
if count == 1 then
  redis.call('PEXPIRE', key, window_ms)
end

local ttl_ms = redis.call('PTTL', key)
if ttl_ms < 0 then
  -- key lost its expiry (e.g. restored without TTL); start a fresh window
  redis.call('PEXPIRE', key, window_ms)
  ttl_ms = window_ms
end
return {count, ttl_ms}
"""


class RedisThrottleStore:
    """
    Fixed-window counters shared by every worker through Redis.

    INCR and PEXPIRE run in one Lua call so concurrent requests never see a
    counter without an expiry. Redis expires windows itself, so ``sweep`` has
    nothing to do. When Redis is unreachable the check fails open.
    """

    def __init__(
        self,
        client: redis.Redis,
        namespace: str = "studio",
        clock: Optional[Clock] = None,
    ):
        self.redis = client
        self.namespace = namespace
        self._clock = clock or system_clock

    def _namespaced_key(self, key: str) -> str:
        return f"{self.namespace}:rl:{key}"

    def check(self, key: str, limit: int, window_s: float) -> Decision:
        now = self._clock.now()
        window_ms = max(1, int(window_s * 1000))
        try:
            res = self.redis.eval(FIXED_WINDOW_LUA, 1, self._namespaced_key(key), window_ms)
            count = int(res[0])
            ttl_ms = int(res[1])
        except RedisError as exc:
            route_class = key.split(":", 1)[0]
            rl_eval_errors.labels(route_class=route_class).inc()
            logger.warning(
                "rate_limit_redis_unavailable",
                extra={"key": key, "error": str(exc), "error_type": type(exc).__name__},
            )
            return Decision(
                allowed=True,
                remaining=limit,
                limit=limit,
                reset_at=now + timedelta(milliseconds=window_ms),
                checked_at=now,
            )
        return Decision(
            allowed=count <= limit,
            remaining=max(0, limit - count),
            limit=limit,
            reset_at=now + timedelta(milliseconds=ttl_ms),
            checked_at=now,
        )

    def sweep(self) -> int:
        return 0

    def reset(self) -> None:
        for key in self.redis.scan_iter(match=self._namespaced_key("*")):
            self.redis.delete(key)


__all__ = ["get_redis", "FIXED_WINDOW_LUA", "RedisThrottleStore"]
