# backend/app/core/config.py
from decimal import Decimal
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import BRAND_NAME


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)

_DEFAULT_SECRET_KEY = SecretStr("dev-only-secret-change-me")


class Settings(BaseSettings):
    app_name: str = Field(default=BRAND_NAME, description="Service name used in logs and docs")
    environment: str = Field(
        default="development",
        description="Deployment environment (development, staging, production)",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./studio_core.db",
        description="SQLAlchemy URL for the booking store",
    )
    db_statement_timeout_ms: int = Field(
        default=5000, description="Per-statement timeout applied to PostgreSQL connections"
    )
    db_connect_timeout_s: int = Field(
        default=5, description="Connection timeout for the booking store"
    )
    reservation_lock_timeout_s: float = Field(
        default=10.0,
        description="Longest a request waits for the per-studio reservation lock",
    )

    # Booking economics and lifecycle
    platform_fee_rate: Decimal = Field(
        default=Decimal("0.15"),
        description="Platform commission applied to the subtotal (0.15 means 15%)",
    )
    reschedule_min_notice_hours: int = Field(
        default=24, description="Minimum hours before the original start to allow rescheduling"
    )
    day_open_hour: int = Field(default=8, description="First bookable hour of a studio day")
    day_close_hour: int = Field(default=22, description="Hour at which the studio day ends")

    # Shared stores
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL; when set, throttle counters and response cache live in Redis",
    )
    cache_namespace: str = Field(default="studio", description="Prefix for response cache keys")
    cache_sweep_interval_s: int = Field(
        default=60, description="Seconds between in-memory cache expiry sweeps"
    )

    # Rate Limiting Configuration
    rate_limit_enabled: bool = Field(
        default=True, description="Enable rate limiting (disable for testing)"
    )
    rate_limit_namespace: str = Field(default="studio", description="Prefix for throttle keys")
    throttle_sweep_interval_s: int = Field(
        default=300, description="Seconds between in-memory throttle expiry sweeps"
    )
    rate_limit_auth_limit: int = Field(default=10, description="Auth requests per window")
    rate_limit_auth_window_s: int = Field(default=60)
    rate_limit_upload_limit: int = Field(default=10, description="Upload requests per window")
    rate_limit_upload_window_s: int = Field(default=60)
    rate_limit_payment_limit: int = Field(default=20, description="Payment requests per window")
    rate_limit_payment_window_s: int = Field(default=60)
    rate_limit_write_limit: int = Field(default=100, description="Generic writes per window")
    rate_limit_write_window_s: int = Field(default=60)
    rate_limit_read_limit: int = Field(default=100, description="Generic reads per window")
    rate_limit_read_window_s: int = Field(default=60)
    rate_limit_search_limit: int = Field(default=200, description="Listing/search reads per window")
    rate_limit_search_window_s: int = Field(default=60)

    # Payment gateway
    stripe_secret_key: Optional[SecretStr] = Field(
        default=None, description="Stripe secret key used for refunds"
    )
    payment_timeout_s: int = Field(default=8, description="Network timeout for Stripe calls")

    # Identity provider
    jwt_secret_key: SecretStr = Field(
        default=_DEFAULT_SECRET_KEY,
        description="Secret used to verify bearer tokens",
    )
    jwt_algorithm: str = "HS256"

    # Notification outbox
    notification_max_attempts: int = Field(
        default=5, description="Delivery attempts before an outbox row is marked FAILED"
    )
    notification_retry_backoff_s: int = Field(
        default=30, description="Base backoff between notification delivery attempts"
    )
    notification_claim_lease_s: int = Field(
        default=300,
        description="How long a dispatcher holds an outbox row before another may retry it",
    )
    outbox_poll_interval_s: int = Field(
        default=15, description="Seconds between notification outbox dispatch runs"
    )
    completion_sweep_interval_s: int = Field(
        default=300, description="Seconds between runs that complete finished bookings"
    )
    create_schema_on_startup: bool = Field(
        default=True, description="Run create_all against the booking store at startup"
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("platform_fee_rate")
    @classmethod
    def _validate_fee_rate(cls, value: Decimal) -> Decimal:
        if value < 0 or value >= 1:
            raise ValueError("platform_fee_rate must be in [0, 1)")
        return value

    @field_validator("day_close_hour")
    @classmethod
    def _validate_day_window(cls, value: int) -> int:
        if not 1 <= value <= 24:
            raise ValueError("day_close_hour must be between 1 and 24")
        return value


settings = Settings()
