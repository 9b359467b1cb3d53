from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from app.core.config import Settings, settings as app_settings


class RouteClass(str, Enum):
    """Named throttle buckets; each carries its own budget."""

    AUTH = "auth"
    UPLOAD = "upload"
    PAYMENT = "payment"
    WRITE = "write"
    READ = "read"
    SEARCH = "search"


@dataclass(frozen=True)
class RoutePolicy:
    limit: int
    window_s: int


def build_buckets(source: Optional[Settings] = None) -> Dict[RouteClass, RoutePolicy]:
    """Budgets per route class from settings (defaults: auth/upload 10, payment 20, else 100)."""
    cfg = source or app_settings
    return {
        route_class: RoutePolicy(
            limit=int(getattr(cfg, f"rate_limit_{route_class.value}_limit")),
            window_s=int(getattr(cfg, f"rate_limit_{route_class.value}_window_s")),
        )
        for route_class in RouteClass
    }


BUCKETS = build_buckets()


def get_policy(route_class: RouteClass) -> RoutePolicy:
    return BUCKETS[route_class]
