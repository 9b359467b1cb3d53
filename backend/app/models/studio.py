# backend/app/models/studio.py
"""
Studio model.

Studios are owned by hosts and carry the pricing and cancellation terms that
the booking core reads at calculation time.
"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, Numeric, String
import ulid

from ..database import Base
from .base_enum import create_safe_enum
from .types import UTCDateTime


class CancellationPolicy(str, Enum):
    """Refund schedule a host picks for their studio."""

    FLEXIBLE = "flexible"
    MODERATE = "moderate"
    STRICT = "strict"


class Studio(Base):
    __tablename__ = "studios"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    host_id = Column(String(26), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    cancellation_policy = Column(
        create_safe_enum(CancellationPolicy, "cancellation_policy"),
        nullable=False,
        default=CancellationPolicy.MODERATE,
    )
    instant_book = Column(Boolean, nullable=False, default=False)
    minimum_hours = Column(Integer, nullable=False, default=1)
    maximum_hours = Column(Integer, nullable=True)
    # IANA zone used to lay out the 08:00-22:00 day
    timezone = Column(String(64), nullable=False, default="UTC")
    created_at = Column(UTCDateTime(), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint("hourly_rate > 0", name="check_studio_rate_positive"),
        CheckConstraint("minimum_hours >= 1", name="check_studio_minimum_hours"),
        CheckConstraint(
            "maximum_hours IS NULL OR maximum_hours >= minimum_hours",
            name="check_studio_maximum_hours",
        ),
    )

    def __repr__(self) -> str:
        return f"<Studio {self.id} '{self.title}' {self.cancellation_policy}>"
