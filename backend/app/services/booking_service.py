# backend/app/services/booking_service.py
"""
Booking Service for the studio reservation core.

Owns the booking lifecycle:
- create: priced, conflict-checked and written under the studio's
  reservation lock so two overlapping requests can never both succeed
- confirm, cancel, reschedule and complete, each guarded by role and status
- refunds on cancellation, issued after the cancellation is committed
- reconciliation of refunds that failed at the gateway

Every committed transition invalidates the studio's cached availability and
hands notifications to the outbox.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
import logging
import secrets
import string
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.constants import BOOKING_NUMBER_DIGITS, BOOKING_NUMBER_PREFIX
from ..core.exceptions import (
    BookingAlreadyCancelledException,
    BookingAlreadyCompletedException,
    BookingAlreadyProcessedException,
    BookingConflictException,
    BookingNotFinishedException,
    DependencyFailureException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    RepositoryException,
    RescheduleWindowException,
    ValidationException,
)
from ..core.timezone_utils import get_studio_timezone, to_studio_local
from ..models.booking import (
    BOOKING_OVERLAP_CONSTRAINT,
    Booking,
    BookingStatus,
    PaymentStatus,
    RefundStatus,
)
from ..models.studio import Studio
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import UserPrincipal
from ..repositories.booking_repository import BookingRepository
from ..repositories.studio_repository import StudioRepository
from ..utils.time_helpers import billable_hours, duration_hours, validate_interval
from .availability_service import availability_cache_prefix
from .base import BaseService
from .cache_service import ResponseCache
from .notification_service import NotificationService, NotificationType, booking_link
from .payment_gateway import PaymentGateway, StripePaymentGateway
from .pricing_service import calculate_booking
from .refund_policy_engine import RefundDecision, RefundPolicyEngine

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "Time slot conflicts with existing booking"


@dataclass(frozen=True)
class RefundResult:
    percent: int
    amount: Decimal
    issued: bool
    status: RefundStatus
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "percentage": self.percent,
            "amount": str(self.amount),
            "issued": self.issued,
            "status": self.status.value,
            "error": self.error,
        }


@dataclass(frozen=True)
class CancellationResult:
    booking: Booking
    refund: RefundResult


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Transitions that can race (create, reschedule and every status change)
    run under ``BookingRepository.studio_reservation_lock`` and commit before
    releasing it.
    """

    repository: BookingRepository

    def __init__(
        self,
        db: Session,
        cache: Optional[ResponseCache] = None,
        clock: Optional[Clock] = None,
        notification_service: Optional[NotificationService] = None,
        payment_gateway: Optional[PaymentGateway] = None,
        refund_engine: Optional[RefundPolicyEngine] = None,
        repository: Optional[BookingRepository] = None,
        studio_repository: Optional[StudioRepository] = None,
    ):
        super().__init__(db, cache=cache, clock=clock)
        self.repository = repository or BookingRepository(db)
        self.studio_repository = studio_repository or StudioRepository(db)
        self.notification_service = notification_service or NotificationService(
            db, clock=self.clock
        )
        self.payment_gateway = payment_gateway or StripePaymentGateway()
        self.refund_engine = refund_engine or RefundPolicyEngine()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _is_deadlock_error(exc: OperationalError) -> bool:
        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if pgcode == "40P01":
            return True
        return "deadlock detected" in str(exc).lower()

    @staticmethod
    def _is_overlap_violation(exc: IntegrityError) -> bool:
        orig = getattr(exc, "orig", None)
        if getattr(orig, "pgcode", None) == "23P01":
            return True
        diag = getattr(orig, "diag", None)
        if diag is not None and getattr(diag, "constraint_name", None) == BOOKING_OVERLAP_CONSTRAINT:
            return True
        return BOOKING_OVERLAP_CONSTRAINT in str(orig)

    @staticmethod
    def _conflict_details(studio_id: str, start: datetime, end: datetime) -> Dict[str, str]:
        return {"studio_id": studio_id, "start": start.isoformat(), "end": end.isoformat()}

    @staticmethod
    def _booking_number() -> str:
        digits = "".join(secrets.choice(string.digits) for _ in range(BOOKING_NUMBER_DIGITS))
        return f"{BOOKING_NUMBER_PREFIX}{digits}"

    def _get_studio(self, studio_id: str) -> Studio:
        studio = self.studio_repository.get_by_id(studio_id)
        if not studio:
            raise NotFoundException("Studio not found", code="STUDIO_NOT_FOUND")
        return studio

    def _require_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    def _validate_window(self, studio: Studio, start: datetime, end: datetime) -> int:
        """Checks a candidate interval and returns its billable hours."""
        validate_interval(start, end)
        if start < self.clock.now():
            raise ValidationException(
                "Cannot book in the past",
                code="BOOKING_IN_PAST",
                details={"start": start.isoformat()},
            )
        hours = billable_hours(start, end)
        if hours < studio.minimum_hours or (
            studio.maximum_hours is not None and hours > studio.maximum_hours
        ):
            raise ValidationException(
                "Booking duration is outside the studio's allowed range",
                code="DURATION_OUT_OF_RANGE",
                details={
                    "hours": hours,
                    "minimum_hours": studio.minimum_hours,
                    "maximum_hours": studio.maximum_hours,
                },
            )
        return hours

    @staticmethod
    def _raise_if_terminal(booking: Booking) -> None:
        if not booking.is_terminal:
            return
        if booking.status == BookingStatus.CANCELLED:
            raise BookingAlreadyCancelledException(booking.id)
        raise BookingAlreadyCompletedException(booking.id)

    @contextmanager
    def _reservation(self, studio_id: str) -> Iterator[None]:
        """Studio reservation lock around a transaction that commits inside it."""
        try:
            with self.repository.studio_reservation_lock(studio_id):
                with self.transaction():
                    yield
        except RepositoryException as exc:
            self.db.rollback()
            raise DependencyFailureException(
                "Booking store operation failed", code="STORE_UNAVAILABLE"
            ) from exc

    @contextmanager
    def _locked_transition(self, booking: Booking) -> Iterator[Booking]:
        """
        Re-read ``booking`` under its studio's lock inside a transaction.

        Guards evaluated inside the block see the latest committed status.
        """
        with self._reservation(booking.studio_id):
            self.repository.refresh(booking)
            yield booking

    def _insert_booking(self, **values: Any) -> Booking:
        """Insert a booking, mapping store-level overlap rejections to a conflict."""
        start, end = values["start_at"], values["end_at"]
        try:
            return self.repository.create(**values)
        except IntegrityError as exc:
            if not self._is_overlap_violation(exc):
                raise
            prometheus_metrics.record_booking_transition("create", "conflict")
            raise BookingConflictException(
                CONFLICT_MESSAGE,
                details=self._conflict_details(values["studio_id"], start, end),
            ) from exc
        except OperationalError as exc:
            if not self._is_deadlock_error(exc):
                raise
            prometheus_metrics.record_booking_transition("create", "conflict")
            raise BookingConflictException(
                CONFLICT_MESSAGE,
                details=self._conflict_details(values["studio_id"], start, end),
            ) from exc

    def _format_window(self, booking: Booking) -> str:
        tz = get_studio_timezone(booking.studio.timezone if booking.studio else "UTC")
        start = to_studio_local(booking.start_at, tz)
        end = to_studio_local(booking.end_at, tz)
        return f"{start:%Y-%m-%d %H:%M} - {end:%H:%M}"

    def _notify(
        self,
        booking: Booking,
        user_id: str,
        notification_type: NotificationType,
        title: str,
    ) -> None:
        studio_title = booking.studio.title if booking.studio else "studio"
        self.notification_service.enqueue(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=f"{studio_title}: {self._format_window(booking)} ({booking.booking_number})",
            link=booking_link(booking),
        )

    def _after_commit(self, studio_id: str) -> None:
        # notifications queued in the transaction go out with the outbox task
        self.invalidate_pattern(availability_cache_prefix(studio_id))

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        principal: UserPrincipal,
        studio_id: str,
        start: datetime,
        end: datetime,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Reserve [start, end) on a studio for the calling renter.

        Raises:
            ValidationException: bad interval, start in the past, or duration
                outside the studio's minimum/maximum hours
            NotFoundException: unknown studio
            BookingConflictException: overlaps a non-cancelled booking
            DependencyFailureException: store or lock unavailable
        """
        self.log_operation("create_booking", studio_id=studio_id, renter_id=principal.id)
        studio = self._get_studio(studio_id)
        self._validate_window(studio, start, end)
        economics = calculate_booking(studio.hourly_rate, start, end)
        now = self.clock.now()
        instant = bool(studio.instant_book)

        with self._reservation(studio.id):
            if self.repository.find_conflict(studio.id, start, end):
                prometheus_metrics.record_booking_transition("create", "conflict")
                raise BookingConflictException(
                    CONFLICT_MESSAGE,
                    details=self._conflict_details(studio.id, start, end),
                )
            booking = self._insert_booking(
                booking_number=self._booking_number(),
                studio_id=studio.id,
                renter_id=principal.id,
                host_id=studio.host_id,
                start_at=start,
                end_at=end,
                status=BookingStatus.CONFIRMED if instant else BookingStatus.PENDING,
                confirmed_at=now if instant else None,
                notes=notes,
                **asdict(economics),
            )
            self._notify(
                booking,
                studio.host_id,
                NotificationType.BOOKING_REQUEST,
                "New booking confirmed" if instant else "New booking request",
            )

        prometheus_metrics.record_booking_transition("create", "success")
        self.logger.info(
            f"Created booking {booking.booking_number} on studio {studio.id} "
            f"({booking.status.value})"
        )
        self._after_commit(studio.id)
        return booking

    # ------------------------------------------------------------------
    # Confirm
    # ------------------------------------------------------------------

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(self, principal: UserPrincipal, booking_id: str) -> Booking:
        """Host accepts a pending, paid booking."""
        booking = self._require_booking(booking_id)
        if booking.host_id != principal.id:
            raise ForbiddenException(
                "Only the studio host can confirm this booking", code="NOT_BOOKING_HOST"
            )

        with self._locked_transition(booking):
            self._raise_if_terminal(booking)
            if booking.status != BookingStatus.PENDING:
                prometheus_metrics.record_booking_transition("confirm", "rejected")
                raise BookingAlreadyProcessedException(booking.id, booking.status.value)
            if not booking.is_paid:
                prometheus_metrics.record_booking_transition("confirm", "rejected")
                raise InvalidTransitionException(
                    "Booking cannot be confirmed before payment",
                    code="PAYMENT_REQUIRED",
                    details={"payment_status": booking.payment_status.value},
                )
            booking.status = BookingStatus.CONFIRMED
            booking.confirmed_at = self.clock.now()
            self._notify(
                booking, booking.renter_id, NotificationType.BOOKING_CONFIRMED, "Booking confirmed"
            )

        prometheus_metrics.record_booking_transition("confirm", "success")
        self._after_commit(booking.studio_id)
        return booking

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self,
        principal: UserPrincipal,
        booking_id: str,
        reason: Optional[str] = None,
    ) -> CancellationResult:
        """
        Cancel a booking and refund according to the studio's policy.

        The cancellation commits first; the gateway is called afterwards with
        no transaction open. A gateway failure leaves the booking cancelled
        with ``refund_status`` FAILED for later reconciliation.
        """
        booking = self._require_booking(booking_id)
        if not booking.can_be_modified_by(principal.id):
            raise ForbiddenException(
                "You don't have permission to cancel this booking", code="NOT_BOOKING_PARTICIPANT"
            )

        with self._locked_transition(booking):
            self._raise_if_terminal(booking)
            decision = self.refund_engine.evaluate(
                booking.studio.cancellation_policy,
                booking.start_at,
                booking.total_amount,
                self.clock.now(),
            )
            needs_refund = decision.amount > 0 and booking.payment_status == PaymentStatus.PAID
            booking.status = BookingStatus.CANCELLED
            booking.cancelled_at = self.clock.now()
            booking.cancelled_by = principal.id
            booking.cancellation_reason = reason
            booking.refund_percent = decision.percent
            booking.refund_amount = decision.amount
            booking.refund_status = (
                RefundStatus.PENDING if needs_refund else RefundStatus.NOT_APPLICABLE
            )
            other_party = booking.host_id if principal.id == booking.renter_id else booking.renter_id
            self._notify(
                booking, other_party, NotificationType.BOOKING_CANCELLED, "Booking cancelled"
            )

        prometheus_metrics.record_booking_transition("cancel", "success")
        self.logger.info(
            f"Cancelled booking {booking.booking_number}: "
            f"{decision.percent}% refund ({decision.amount})"
        )

        if needs_refund:
            refund = self._issue_refund(booking, decision)
        else:
            refund = RefundResult(
                percent=decision.percent,
                amount=decision.amount,
                issued=False,
                status=RefundStatus.NOT_APPLICABLE,
            )
            prometheus_metrics.record_refund(decision.policy.value, "not_applicable")

        self._after_commit(booking.studio_id)
        return CancellationResult(booking=booking, refund=refund)

    def _issue_refund(self, booking: Booking, decision: RefundDecision) -> RefundResult:
        error: Optional[str] = None
        if not booking.payment_reference:
            error = "missing_payment_reference"
        else:
            try:
                outcome = self.payment_gateway.refund_payment(
                    booking.payment_reference,
                    decision.amount,
                    idempotency_key=f"refund:{booking.id}",
                )
            except DependencyFailureException as exc:
                error = exc.code
                self.logger.error(
                    f"Refund for booking {booking.booking_number} failed: {exc.message}"
                )
            except Exception as exc:
                # the cancellation is already committed; record the failure for reconciliation
                error = type(exc).__name__
                self.logger.error(
                    f"Refund for booking {booking.booking_number} failed unexpectedly: {str(exc)}",
                    exc_info=True,
                )
            else:
                self.logger.info(
                    f"Refund {outcome.refund_id} issued for booking {booking.booking_number}"
                )

        with self.transaction():
            if error is None:
                booking.refund_status = RefundStatus.ISSUED
                booking.payment_status = PaymentStatus.REFUNDED
                booking.refund_error = None
            else:
                booking.refund_status = RefundStatus.FAILED
                booking.refund_error = error

        prometheus_metrics.record_refund(
            decision.policy.value, "issued" if error is None else "failed"
        )
        return RefundResult(
            percent=decision.percent,
            amount=decision.amount,
            issued=error is None,
            status=booking.refund_status,
            error=error,
        )

    # ------------------------------------------------------------------
    # Reschedule
    # ------------------------------------------------------------------

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self,
        principal: UserPrincipal,
        booking_id: str,
        new_start: datetime,
        new_end: datetime,
    ) -> Booking:
        """
        Move a booking to a new interval on the same studio.

        Allowed for the renter until ``reschedule_min_notice_hours`` before the
        current start. The first reschedule records the original interval.
        Status and price are unchanged; ``total_hours`` follows the new interval.
        """
        booking = self._require_booking(booking_id)
        if booking.renter_id != principal.id:
            raise ForbiddenException(
                "Only the renter can reschedule this booking", code="NOT_BOOKING_RENTER"
            )
        studio = booking.studio or self._get_studio(booking.studio_id)
        hours = self._validate_window(studio, new_start, new_end)

        with self._locked_transition(booking):
            self._raise_if_terminal(booking)
            notice = duration_hours(self.clock.now(), booking.start_at)
            required = settings.reschedule_min_notice_hours
            if notice < required:
                prometheus_metrics.record_booking_transition("reschedule", "rejected")
                raise RescheduleWindowException(required, notice)
            if self.repository.find_conflict(
                booking.studio_id, new_start, new_end, exclude_booking_id=booking.id
            ):
                prometheus_metrics.record_booking_transition("reschedule", "conflict")
                raise BookingConflictException(
                    CONFLICT_MESSAGE,
                    details=self._conflict_details(booking.studio_id, new_start, new_end),
                )
            if booking.original_start_at is None:
                booking.original_start_at = booking.start_at
                booking.original_end_at = booking.end_at
            booking.start_at = new_start
            booking.end_at = new_end
            booking.total_hours = hours
            self._notify(
                booking,
                booking.host_id,
                NotificationType.BOOKING_RESCHEDULED,
                "Booking rescheduled",
            )

        prometheus_metrics.record_booking_transition("reschedule", "success")
        self._after_commit(booking.studio_id)
        return booking

    # ------------------------------------------------------------------
    # Complete
    # ------------------------------------------------------------------

    @BaseService.measure_operation("complete_booking")
    def complete_booking(
        self,
        booking_id: str,
        review_submitted: bool = False,
        principal: Optional[UserPrincipal] = None,
    ) -> Booking:
        """
        Mark a confirmed booking completed once it has ended.

        A submitted review completes it early. The review signal is only
        honoured from admins and system callers (no principal), which is how
        the review flow reports it; participants can complete a booking only
        once it has ended.
        """
        booking = self._require_booking(booking_id)
        trusted = principal is None or principal.is_admin
        if not trusted and not booking.can_be_modified_by(principal.id):
            raise ForbiddenException(
                "You don't have permission to complete this booking",
                code="NOT_BOOKING_PARTICIPANT",
            )
        if review_submitted and not trusted:
            self.logger.info(
                f"Ignoring review flag from participant {principal.id} on booking {booking.id}"
            )

        with self._locked_transition(booking):
            self._complete_locked(booking, review_submitted and trusted)

        prometheus_metrics.record_booking_transition("complete", "success")
        self._after_commit(booking.studio_id)
        return booking

    def _complete_locked(self, booking: Booking, review_submitted: bool) -> None:
        self._raise_if_terminal(booking)
        if booking.status != BookingStatus.CONFIRMED:
            prometheus_metrics.record_booking_transition("complete", "rejected")
            raise InvalidTransitionException(
                "Only confirmed bookings can be completed",
                code="BOOKING_NOT_CONFIRMED",
                details={"booking_id": booking.id, "status": booking.status.value},
            )
        now = self.clock.now()
        if booking.end_at > now and not review_submitted:
            prometheus_metrics.record_booking_transition("complete", "rejected")
            raise BookingNotFinishedException(booking.id)
        booking.status = BookingStatus.COMPLETED
        booking.completed_at = now

    @BaseService.measure_operation("complete_past_bookings")
    def complete_past_bookings(self) -> int:
        """Complete every confirmed booking whose end has passed. Returns the count."""
        completed = 0
        touched = set()
        for booking in self.repository.list_due_for_completion(self.clock.now()):
            try:
                with self._locked_transition(booking):
                    self._complete_locked(booking, review_submitted=False)
            except InvalidTransitionException as exc:
                # Moved on between the listing and the lock
                self.logger.debug(f"Skipping completion of {booking.id}: {exc.code}")
                continue
            completed += 1
            touched.add(booking.studio_id)
            prometheus_metrics.record_booking_transition("complete", "success")

        for studio_id in touched:
            self.invalidate_pattern(availability_cache_prefix(studio_id))
        if completed:
            self.logger.info(f"Auto-completed {completed} past bookings")
        return completed

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    @BaseService.measure_operation("record_payment")
    def record_payment(
        self,
        booking_id: str,
        payment_reference: str,
        payment_status: PaymentStatus = PaymentStatus.PAID,
    ) -> Booking:
        """Attach a settled or authorized payment to a live booking."""
        booking = self._require_booking(booking_id)
        payment_status = PaymentStatus(payment_status)
        if payment_status == PaymentStatus.REFUNDED:
            raise ValidationException(
                "Refunds are recorded by cancellation", code="INVALID_PAYMENT_STATUS"
            )
        with self._locked_transition(booking):
            self._raise_if_terminal(booking)
            booking.payment_reference = payment_reference
            booking.payment_status = payment_status
        self.log_operation(
            "record_payment", booking_id=booking.id, payment_status=payment_status.value
        )
        return booking

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_booking(self, principal: UserPrincipal, booking_id: str) -> Booking:
        """A booking visible to the caller; strangers get a 404 rather than a 403."""
        booking = self.repository.get_by_id(booking_id)
        if not booking or not (principal.is_admin or booking.can_be_modified_by(principal.id)):
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    def list_bookings(
        self,
        principal: UserPrincipal,
        as_host: bool = False,
        status: Optional[BookingStatus] = None,
    ) -> List[Booking]:
        return self.repository.list_for_user(principal.id, as_host=as_host, status=status)

    def list_failed_refunds(self) -> List[Booking]:
        return self.repository.list_failed_refunds()

    @BaseService.measure_operation("retry_refund")
    def retry_refund(self, booking_id: str) -> RefundResult:
        """Re-attempt a refund that previously failed or never completed."""
        booking = self._require_booking(booking_id)
        if booking.status != BookingStatus.CANCELLED or booking.refund_status not in (
            RefundStatus.FAILED,
            RefundStatus.PENDING,
        ):
            raise InvalidTransitionException(
                "Booking has no outstanding refund",
                code="NO_OUTSTANDING_REFUND",
                details={
                    "booking_id": booking.id,
                    "refund_status": booking.refund_status.value if booking.refund_status else None,
                },
            )
        decision = RefundDecision(
            policy=booking.studio.cancellation_policy,
            hours_until_start=duration_hours(booking.cancelled_at, booking.start_at),
            percent=booking.refund_percent or 0,
            amount=Decimal(booking.refund_amount or 0),
        )
        return self._issue_refund(booking, decision)
