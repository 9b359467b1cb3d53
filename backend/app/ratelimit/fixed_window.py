from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple


@dataclass(frozen=True)
class WindowState:
    count: int
    reset_at: datetime


@dataclass(frozen=True)
class Decision:
    allowed: bool
    remaining: int
    limit: int
    reset_at: datetime
    checked_at: datetime

    @property
    def retry_after_s(self) -> float:
        if self.allowed:
            return 0.0
        return max(0.0, (self.reset_at - self.checked_at).total_seconds())


def fixed_window_decide(
    now: datetime,
    state: Optional[WindowState],
    limit: int,
    window_s: float,
) -> Tuple[WindowState, Decision]:
    """
    Fixed-window counter pure decision function.

    Args:
        now: current instant (tz-aware)
        state: stored counter for the key, or None if never seen
        limit: requests allowed per window
        window_s: window length in seconds

    Returns:
        (new_state, Decision)

    A missing or expired window restarts at count=1 with reset_at=now+window.
    Every request inside a live window increments the counter; it is allowed
    while count <= limit.
    """
    if state is None or now >= state.reset_at:
        new_state = WindowState(count=1, reset_at=now + timedelta(seconds=window_s))
    else:
        new_state = WindowState(count=state.count + 1, reset_at=state.reset_at)

    decision = Decision(
        allowed=new_state.count <= limit,
        remaining=max(0, limit - new_state.count),
        limit=limit,
        reset_at=new_state.reset_at,
        checked_at=now,
    )
    return new_state, decision
