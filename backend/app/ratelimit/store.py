from typing import Optional, Protocol, Union

from app.core.clock import Clock
from app.core.config import Settings, settings as app_settings

from .fixed_window import Decision
from .memory_store import InMemoryThrottleStore
from .redis_backend import RedisThrottleStore, get_redis


class ThrottleStore(Protocol):
    def check(self, key: str, limit: int, window_s: float) -> Decision:
        ...

    def sweep(self) -> int:
        ...

    def reset(self) -> None:
        ...


def build_throttle_store(
    source: Optional[Settings] = None, clock: Optional[Clock] = None
) -> Union[InMemoryThrottleStore, RedisThrottleStore]:
    """Redis-backed when a Redis URL is configured, otherwise in-process."""
    cfg = source or app_settings
    if cfg.redis_url:
        return RedisThrottleStore(get_redis(cfg.redis_url), cfg.rate_limit_namespace, clock)
    return InMemoryThrottleStore(clock)
