# backend/tests/conftest.py
"""
Pytest configuration for the reservation core.

Every test gets its own in-memory SQLite database (StaticPool keeps the single
connection alive across threads) and a FrozenClock, so nothing sleeps and no
external service is touched.
"""

import os
import sys

# Set before any app import so Settings and the module-level engine pick them up
os.environ.setdefault("CI", "true")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CREATE_SCHEMA_ON_STARTUP"] = "false"
os.environ.pop("REDIS_URL", None)
os.environ.pop("STRIPE_SECRET_KEY", None)

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from decimal import Decimal
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest
from sqlalchemy.orm import Session, sessionmaker

from app.core.clock import FrozenClock
from app.database import Base
from app.models.studio import CancellationPolicy, Studio
from app.principal import PrincipalRole, UserPrincipal
from app.services.booking_service import BookingService
from app.services.cache_service import InMemoryResponseCache
from app.services.notification_service import NotificationService
from app.services.payment_gateway import PaymentGateway, RefundOutcome

from .support import HOST_ID, RENTER_ID, T0, RecordingSink, make_engine


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(T0)


@pytest.fixture
def db_engine():
    engine = make_engine()
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(db_engine) -> Session:
    session = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def cache(clock) -> InMemoryResponseCache:
    return InMemoryResponseCache(clock)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def gateway() -> MagicMock:
    mock = MagicMock(spec=PaymentGateway)
    mock.refund_payment.side_effect = lambda reference, amount, idempotency_key=None: (
        RefundOutcome(refund_id="re_test", amount=amount, status="succeeded")
    )
    return mock


@pytest.fixture
def notification_service(db, sink, clock) -> NotificationService:
    return NotificationService(db, sink=sink, clock=clock)


@pytest.fixture
def booking_service(db, cache, clock, notification_service, gateway) -> BookingService:
    return BookingService(
        db,
        cache=cache,
        clock=clock,
        notification_service=notification_service,
        payment_gateway=gateway,
    )


@pytest.fixture
def make_studio(db) -> Callable[..., Studio]:
    def _make(**overrides: Any) -> Studio:
        values = {
            "host_id": HOST_ID,
            "title": "Daylight Loft",
            "hourly_rate": Decimal("50.00"),
            "cancellation_policy": CancellationPolicy.MODERATE,
            "instant_book": False,
            "minimum_hours": 1,
            "maximum_hours": None,
            "timezone": "UTC",
        }
        values.update(overrides)
        studio = Studio(**values)
        db.add(studio)
        db.commit()
        return studio

    return _make


@pytest.fixture
def studio(make_studio) -> Studio:
    return make_studio()


@pytest.fixture
def renter() -> UserPrincipal:
    return UserPrincipal(user_id=RENTER_ID, role=PrincipalRole.RENTER)


@pytest.fixture
def host() -> UserPrincipal:
    return UserPrincipal(user_id=HOST_ID, role=PrincipalRole.HOST)


@pytest.fixture
def stranger() -> UserPrincipal:
    return UserPrincipal(user_id="someone-else-000000000000001", role=PrincipalRole.RENTER)


@pytest.fixture
def admin() -> UserPrincipal:
    return UserPrincipal(user_id="admin-000000000000000000001", role=PrincipalRole.ADMIN)

