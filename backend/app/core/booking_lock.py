from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
from typing import Dict, Iterator, Optional

from app.core.config import settings
from app.core.exceptions import DependencyFailureException
from app.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_STUDIO_LOCKS: Dict[str, threading.Lock] = {}
_REGISTRY_LOCK = threading.Lock()


def _studio_mutex(studio_id: str) -> threading.Lock:
    with _REGISTRY_LOCK:
        mutex = _STUDIO_LOCKS.get(studio_id)
        if mutex is None:
            mutex = threading.Lock()
            _STUDIO_LOCKS[studio_id] = mutex
        return mutex


@contextmanager
def studio_lock_sync(studio_id: str, timeout_s: Optional[float] = None) -> Iterator[None]:
    """
    Serialize conflict-check-and-write for one studio within this process.

    Cross-process safety comes from the store (advisory lock and exclusion
    constraint on PostgreSQL); this mutex covers SQLite and threaded workers.
    Waiting is bounded and a timeout surfaces as a dependency failure.
    """
    wait = settings.reservation_lock_timeout_s if timeout_s is None else timeout_s
    mutex = _studio_mutex(studio_id)
    if not mutex.acquire(timeout=wait):
        prometheus_metrics.record_booking_lock("acquire", "timeout")
        logger.warning("studio_lock_timeout", extra={"studio_id": studio_id, "timeout_s": wait})
        raise DependencyFailureException(
            "Booking store is busy, please retry",
            code="RESERVATION_LOCK_TIMEOUT",
            details={"studio_id": studio_id},
        )
    prometheus_metrics.record_booking_lock("acquire", "success")
    try:
        yield
    finally:
        mutex.release()
        prometheus_metrics.record_booking_lock("release", "success")
