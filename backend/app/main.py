# backend/app/main.py
from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
import logging
import threading
from typing import AsyncGenerator, List, Optional, Tuple

from fastapi import APIRouter, FastAPI

from .core.clock import Clock, system_clock
from .core.config import settings
from .core.constants import API_TITLE, API_V1_PREFIX, API_VERSION, BRAND_NAME
from .core.request_context import attach_request_id_filter
from .core.sweeper import PeriodicTask
from .database import SessionLocal, init_db
from .errors import register_error_handlers
from .middleware.prometheus_middleware import PrometheusMiddleware
from .middleware.request_id import RequestIdMiddleware
from .ratelimit.store import ThrottleStore, build_throttle_store
from .routes.v1 import (
    admin_refunds as admin_refunds_v1,
    bookings as bookings_v1,
    health as health_v1,
    payments as payments_v1,
    prometheus as prometheus_v1,
    studios as studios_v1,
)
from .services.booking_service import BookingService
from .services.cache_service import ResponseCache, build_response_cache
from .services.notification_service import (
    LoggingNotificationSink,
    NotificationService,
    NotificationSink,
)
from .services.payment_gateway import PaymentGateway, StripePaymentGateway

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
)
attach_request_id_filter()

logger = logging.getLogger(__name__)


def _dispatch_notifications(app: FastAPI) -> int:
    db = SessionLocal()
    try:
        service = NotificationService(
            db, sink=app.state.notification_sink, clock=app.state.clock
        )
        return service.dispatch_pending()
    finally:
        db.close()


def _complete_past_bookings(app: FastAPI) -> int:
    db = SessionLocal()
    try:
        service = BookingService(
            db,
            cache=app.state.response_cache,
            clock=app.state.clock,
            notification_service=NotificationService(
                db, sink=app.state.notification_sink, clock=app.state.clock
            ),
            payment_gateway=app.state.payment_gateway,
        )
        return service.complete_past_bookings()
    finally:
        db.close()


def build_periodic_tasks(app: FastAPI) -> List[PeriodicTask]:
    """Maintenance loops run for the lifetime of the process."""
    return [
        PeriodicTask(
            "throttle_sweep", settings.throttle_sweep_interval_s, app.state.throttle_store.sweep
        ),
        PeriodicTask("cache_sweep", settings.cache_sweep_interval_s, app.state.response_cache.sweep),
        PeriodicTask(
            "notification_outbox",
            settings.outbox_poll_interval_s,
            lambda: _dispatch_notifications(app),
        ),
        PeriodicTask(
            "booking_completion",
            settings.completion_sweep_interval_s,
            lambda: _complete_past_bookings(app),
        ),
    ]


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")

    if app.state.init_schema:
        await asyncio.to_thread(init_db)

    running: List[Tuple[asyncio.Task[None], threading.Event]] = []
    if app.state.run_background_tasks:
        for task in build_periodic_tasks(app):
            stop_event = threading.Event()
            running.append(
                (asyncio.create_task(asyncio.to_thread(task.run_forever, stop_event)), stop_event)
            )

    yield

    logger.info(f"{BRAND_NAME} API shutting down...")
    for _, stop_event in running:
        stop_event.set()
    for worker, _ in running:
        with contextlib.suppress(BaseException):
            await worker


def create_app(
    *,
    clock: Optional[Clock] = None,
    throttle_store: Optional[ThrottleStore] = None,
    response_cache: Optional[ResponseCache] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    notification_sink: Optional[NotificationSink] = None,
    run_background_tasks: bool = True,
    init_schema: Optional[bool] = None,
) -> FastAPI:
    """
    Build the API application.

    Shared collaborators are placed on ``app.state`` so request dependencies
    and the periodic tasks use the same instances; tests pass their own.
    """
    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )

    app_clock = clock or system_clock
    app.state.clock = app_clock
    app.state.throttle_store = (
        throttle_store if throttle_store is not None else build_throttle_store(settings, app_clock)
    )
    app.state.response_cache = (
        response_cache if response_cache is not None else build_response_cache(settings, app_clock)
    )
    app.state.payment_gateway = payment_gateway or StripePaymentGateway()
    app.state.notification_sink = notification_sink or LoggingNotificationSink()
    app.state.run_background_tasks = run_background_tasks
    app.state.init_schema = (
        settings.create_schema_on_startup if init_schema is None else init_schema
    )

    register_error_handlers(app)

    # Added last runs first: request id is set before metrics are recorded
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(RequestIdMiddleware)

    api_v1 = APIRouter(prefix=API_V1_PREFIX)
    api_v1.include_router(studios_v1.router, prefix="/studios")
    api_v1.include_router(bookings_v1.router, prefix="/bookings")
    api_v1.include_router(payments_v1.router, prefix="/payments")
    api_v1.include_router(admin_refunds_v1.router, prefix="/admin/refunds")
    api_v1.include_router(health_v1.router, prefix="/health")
    api_v1.include_router(prometheus_v1.router, prefix="/metrics")
    app.include_router(api_v1)

    return app


app = create_app()
