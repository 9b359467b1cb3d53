# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the studio reservation core.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from datetime import datetime
import math
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def headers(self) -> Optional[Dict[str, str]]:
        return None

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException carrying the standard error body."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
            headers=self.headers(),
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class UnauthorizedException(DomainException):
    """Raised when user is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def headers(self) -> Optional[Dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class InvalidTransitionException(DomainException):
    """Raised when a booking lifecycle transition is not allowed."""

    status_code = HTTP_422_UNPROCESSABLE


class DependencyFailureException(DomainException):
    """Raised when the booking store or payment gateway fails or times out."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": "2"}


class RateLimitedException(DomainException):
    """Raised when a client exhausts the budget for a route class."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, route_class: str, limit: int, reset_at: datetime, now: datetime) -> None:
        retry_after = max(1, math.ceil((reset_at - now).total_seconds()))
        super().__init__(
            message=f"Rate limit exceeded. Try again in {retry_after} seconds.",
            code="RATE_LIMIT_EXCEEDED",
            details={
                "route_class": route_class,
                "limit": limit,
                "reset_at": reset_at.isoformat(),
                "retry_after": retry_after,
            },
        )
        self.limit = limit
        self.reset_at = reset_at
        self.retry_after = retry_after

    def headers(self) -> Optional[Dict[str, str]]:
        return {
            "Retry-After": str(self.retry_after),
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(math.ceil(self.reset_at.timestamp())),
        }


# Specific business exceptions


class BookingConflictException(ConflictException):
    """Raised when a booking conflicts with existing bookings."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class BookingAlreadyProcessedException(ConflictException):
    """Raised when a transition targets a booking that has already moved on."""

    def __init__(self, booking_id: str, current_status: str):
        super().__init__(
            message="Booking not found or already processed",
            code="BOOKING_ALREADY_PROCESSED",
            details={"booking_id": booking_id, "status": current_status},
        )


class BookingAlreadyCancelledException(InvalidTransitionException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking is already cancelled",
            code="BOOKING_ALREADY_CANCELLED",
            details={"booking_id": booking_id},
        )


class BookingAlreadyCompletedException(InvalidTransitionException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Cannot change a completed booking",
            code="BOOKING_ALREADY_COMPLETED",
            details={"booking_id": booking_id},
        )


class RescheduleWindowException(InvalidTransitionException):
    """Raised when a reschedule is attempted too close to the original start."""

    def __init__(self, required_hours: int, provided_hours: float):
        super().__init__(
            message=(
                f"Rescheduling must be done at least {required_hours} hours before the session"
            ),
            code="RESCHEDULE_WINDOW_VIOLATED",
            details={
                "required_hours": required_hours,
                "provided_hours": round(provided_hours, 2),
            },
        )


class BookingNotFinishedException(InvalidTransitionException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking cannot be completed before it has ended",
            code="BOOKING_NOT_FINISHED",
            details={"booking_id": booking_id},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
