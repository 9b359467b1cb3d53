# backend/app/services/base.py
"""
Base Service Pattern for the studio reservation core.

Provides common functionality for all service classes including:
- Transaction management
- Logging
- Cache invalidation
- Performance monitoring
"""

import asyncio
from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import Clock, system_clock
from ..core.exceptions import DependencyFailureException, RepositoryException
from ..monitoring.prometheus_metrics import prometheus_metrics

if TYPE_CHECKING:
    from .cache_service import ResponseCache

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """
    Base class for all service layer components.

    Provides common patterns for:
    - Database session management
    - Response cache invalidation
    - Logging and performance monitoring
    """

    def __init__(
        self,
        db: Session,
        cache: Optional["ResponseCache"] = None,
        clock: Optional[Clock] = None,
    ):
        self.db = db
        self.cache = cache
        self.clock = clock or system_clock
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Context manager for database transactions.

        Commits on success. Store failures are rolled back and surfaced as
        DependencyFailureException; domain exceptions pass through untouched.
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except (SQLAlchemyError, RepositoryException) as e:
            self.logger.error(f"Transaction failed: {str(e)}")
            self.db.rollback()
            raise DependencyFailureException(
                "Booking store operation failed", code="STORE_UNAVAILABLE"
            ) from e
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("create_booking")
            def create_booking(self, data):
                ...
        """

        def decorator(func: F) -> F:
            if asyncio.iscoroutinefunction(func):

                @wraps(func)
                async def async_wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                    start_time = time.monotonic()
                    error_type: Optional[str] = None
                    try:
                        return await func(self, *args, **kwargs)
                    except Exception as e:
                        error_type = type(e).__name__
                        raise
                    finally:
                        _record(self, operation_name, time.monotonic() - start_time, error_type)

                return cast(F, async_wrapper)

            @wraps(func)
            def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                start_time = time.monotonic()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    _record(self, operation_name, time.monotonic() - start_time, error_type)

            return cast(F, wrapper)

        return decorator

    def invalidate_pattern(self, prefix: str) -> None:
        """Invalidate all response cache keys starting with ``prefix``."""
        if self.cache is None:
            return

        count = self.cache.invalidate_prefix(prefix)
        self.logger.debug(f"Invalidated {count} keys matching prefix: {prefix}")

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log an operation with context."""
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})


def _record(service: Any, operation: str, elapsed: float, error_type: Optional[str]) -> None:
    if elapsed > SLOW_OPERATION_SECONDS:
        logger.warning(f"Slow operation detected: {operation} took {elapsed:.2f}s")
    prometheus_metrics.record_service_operation(
        service=service.__class__.__name__,
        operation=operation,
        duration=elapsed,
        status="error" if error_type else "success",
        error_type=error_type,
    )
