"""Fixed-window request throttling with in-memory and Redis stores."""

from .config import RouteClass, RoutePolicy
from .dependency import rate_limit
from .fixed_window import Decision, fixed_window_decide

__all__ = [
    "Decision",
    "RouteClass",
    "RoutePolicy",
    "fixed_window_decide",
    "rate_limit",
]
