"""In-process throttle store: one map, one lock, O(1) per check."""

import logging
import threading
from typing import Dict, Optional

from app.core.clock import Clock, system_clock

from .fixed_window import Decision, WindowState, fixed_window_decide
from .metrics import rl_swept_entries

logger = logging.getLogger(__name__)


class InMemoryThrottleStore:
    """
    Fixed-window counters keyed by ``<route class>:<client identity>``.

    Expired windows are replaced lazily on the next check and removed in bulk
    by ``sweep``. Counters are per process; multi-process deployments use
    ``RedisThrottleStore``.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or system_clock
        self._lock = threading.Lock()
        self._entries: Dict[str, WindowState] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def check(self, key: str, limit: int, window_s: float) -> Decision:
        now = self._clock.now()
        with self._lock:
            state, decision = fixed_window_decide(now, self._entries.get(key), limit, window_s)
            self._entries[key] = state
        return decision

    def sweep(self) -> int:
        now = self._clock.now()
        with self._lock:
            expired = [key for key, state in self._entries.items() if now >= state.reset_at]
            for key in expired:
                del self._entries[key]
        if expired:
            rl_swept_entries.inc(len(expired))
            logger.debug("Swept %d expired throttle entries", len(expired))
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
