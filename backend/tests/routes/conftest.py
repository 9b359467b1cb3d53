from typing import Callable, Dict

from fastapi.testclient import TestClient
import pytest

from app.api.dependencies.database import get_db
from app.auth import create_access_token
from app.main import create_app
from app.principal import PrincipalRole
from app.ratelimit.memory_store import InMemoryThrottleStore


@pytest.fixture
def throttle_store(clock) -> InMemoryThrottleStore:
    return InMemoryThrottleStore(clock)


@pytest.fixture
def app(db, clock, cache, gateway, sink, throttle_store):
    application = create_app(
        clock=clock,
        throttle_store=throttle_store,
        response_cache=cache,
        payment_gateway=gateway,
        notification_sink=sink,
        run_background_tasks=False,
        init_schema=False,
    )

    def override_get_db():
        yield db

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> Callable[..., Dict[str, str]]:
    def _headers(principal) -> Dict[str, str]:
        token = create_access_token(principal.user_id, PrincipalRole(principal.role))
        return {"Authorization": f"Bearer {token}"}

    return _headers
