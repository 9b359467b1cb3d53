"""Shared test helpers: fixed instants, ids, recording notification sinks, engines."""

from datetime import datetime, timedelta, timezone
from typing import Any, List

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from app.database import Base
import app.models  # noqa: F401  (populate metadata)
from app.services.notification_service import Notification

# Monday 2025-06-02 09:00 UTC
T0 = datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)

HOST_ID = "host-0000000000000000000001"
RENTER_ID = "renter-00000000000000000001"


def at(days: float = 0, hours: float = 0) -> datetime:
    """An instant relative to T0."""
    return T0 + timedelta(days=days, hours=hours)


class RecordingSink:
    """Notification sink that keeps deliveries in memory."""

    def __init__(self) -> None:
        self.delivered: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.delivered.append(notification)

    def for_user(self, user_id: str) -> List[Notification]:
        return [n for n in self.delivered if n.user_id == user_id]


class FailingSink:
    def notify(self, notification: Notification) -> None:
        raise ConnectionError("push provider down")


def make_engine(url: str = "sqlite://", **connect_args: Any) -> Engine:
    kwargs: dict = {"connect_args": {"check_same_thread": False, **connect_args}}
    if url == "sqlite://":
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    Base.metadata.create_all(engine)
    return engine
