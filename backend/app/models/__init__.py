"""
Database models for the studio reservation core.

- Studio: bookable resource with pricing and cancellation terms
- Booking: reservation of a studio interval and its lifecycle
- NotificationOutbox: queued notifications for best-effort delivery
"""

from .booking import Booking, BookingStatus, PaymentStatus, RefundStatus
from .notification_outbox import NotificationOutbox, NotificationOutboxStatus
from .studio import CancellationPolicy, Studio

__all__ = [
    "Booking",
    "BookingStatus",
    "CancellationPolicy",
    "NotificationOutbox",
    "NotificationOutboxStatus",
    "PaymentStatus",
    "RefundStatus",
    "Studio",
]
