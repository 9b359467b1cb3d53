"""Application-wide constants for the studio reservation core."""

from __future__ import annotations

BRAND_NAME = "StudioBook"

# Refund policy thresholds (hours before start)
FLEXIBLE_FULL_REFUND_HOURS = 24
MODERATE_FULL_REFUND_HOURS = 120
MODERATE_HALF_REFUND_HOURS = 24
STRICT_FULL_REFUND_HOURS = 168
STRICT_HALF_REFUND_HOURS = 48

# Booking numbers look like BK12345678
BOOKING_NUMBER_PREFIX = "BK"
BOOKING_NUMBER_DIGITS = 8

# Text constraints
MAX_REASON_LENGTH = 500
MAX_NOTES_LENGTH = 1000

# Availability queries
MAX_AVAILABILITY_RANGE_DAYS = 62

# Query limits
DEFAULT_QUERY_LIMIT = 100

# API metadata
API_TITLE = f"{BRAND_NAME} Reservation API"
API_VERSION = "1.0.0"
API_V1_PREFIX = "/api/v1"
