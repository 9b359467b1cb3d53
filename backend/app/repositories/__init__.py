# backend/app/repositories/__init__.py
"""
Repository layer for the studio reservation core.

Key Components:
- BaseRepository: generic CRUD shared by every repository
- BookingRepository: interval conflict queries and the studio reservation lock
- StudioRepository: read access to studio terms
- NotificationOutboxRepository: outbox rows for best-effort notifications

Usage:
    from app.repositories import BookingRepository
    repo = BookingRepository(db)
    conflict = repo.find_conflict(studio_id, start, end)
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .notification_outbox_repository import NotificationOutboxRepository
from .studio_repository import StudioRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "NotificationOutboxRepository",
    "StudioRepository",
]
