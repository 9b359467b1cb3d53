# backend/app/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import admin_refunds, bookings, health, payments, prometheus, studios

__all__ = [
    "admin_refunds",
    "bookings",
    "health",
    "payments",
    "prometheus",
    "studios",
]
