from prometheus_client import Counter, Histogram

from app.monitoring.prometheus_metrics import REGISTRY

rl_decisions = Counter(
    "studio_rl_decisions_total",
    "rate-limit decisions",
    ["route_class", "action"],
    registry=REGISTRY,
)
rl_retry_after = Histogram(
    "studio_rl_retry_after_seconds",
    "retry-after values on rejected requests",
    ["route_class"],
    registry=REGISTRY,
    buckets=(0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0),
)
rl_eval_errors = Counter(
    "studio_rl_eval_errors_total",
    "errors during rate-limit evaluation (e.g., Redis failures)",
    ["route_class"],
    registry=REGISTRY,
)
rl_swept_entries = Counter(
    "studio_rl_swept_entries_total",
    "expired throttle entries removed by the sweeper",
    [],
    registry=REGISTRY,
)

__all__ = [
    "rl_decisions",
    "rl_retry_after",
    "rl_eval_errors",
    "rl_swept_entries",
]
