from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import (
    BookingAlreadyCancelledException,
    BookingAlreadyCompletedException,
    BookingAlreadyProcessedException,
    BookingConflictException,
    BookingNotFinishedException,
    DependencyFailureException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    RescheduleWindowException,
    ValidationException,
)
from app.models.booking import BookingStatus, PaymentStatus, RefundStatus
from app.models.notification_outbox import NotificationOutbox, NotificationOutboxStatus
from app.models.studio import CancellationPolicy
from app.services.booking_service import BookingService
from app.services.notification_service import NotificationService, NotificationType
from app.services.payment_gateway import RefundOutcome

from ..support import HOST_ID, RENTER_ID, FailingSink, at


def _paid(service, booking, reference="pi_test_1"):
    return service.record_payment(booking.id, reference, PaymentStatus.PAID)


# ----------------------------------------------------------------------
# Create
# ----------------------------------------------------------------------


def test_create_prices_and_stores_pending_booking(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3), notes="Band")

    assert booking.id
    assert booking.booking_number.startswith("BK")
    assert len(booking.booking_number) == 10
    assert booking.status == BookingStatus.PENDING
    assert booking.payment_status == PaymentStatus.PENDING
    assert booking.renter_id == RENTER_ID
    assert booking.host_id == HOST_ID
    assert booking.total_hours == 2
    assert booking.subtotal == Decimal("100.00")
    assert booking.service_fee == Decimal("15.00")
    assert booking.total_amount == Decimal("115.00")
    assert booking.host_payout == Decimal("85.00")
    assert booking.notes == "Band"
    assert booking.confirmed_at is None


def test_create_instant_book_confirms_immediately(booking_service, make_studio, renter, clock):
    studio = make_studio(instant_book=True)

    booking = booking_service.create_booking(renter, studio.id, at(1), at(1, 1))

    assert booking.status == BookingStatus.CONFIRMED
    assert booking.confirmed_at == clock.now()


def test_create_notifies_host(booking_service, notification_service, studio, renter, sink):
    booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    notification_service.dispatch_pending()

    delivered = sink.for_user(HOST_ID)
    assert len(delivered) == 1
    assert delivered[0].notification_type == NotificationType.BOOKING_REQUEST.value
    assert delivered[0].title == "New booking request"
    assert "Daylight Loft" in delivered[0].message
    assert sink.for_user(RENTER_ID) == []


def test_create_rejects_overlap(booking_service, studio, renter):
    booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))

    with pytest.raises(BookingConflictException) as exc:
        booking_service.create_booking(renter, studio.id, at(1, 2), at(1, 4))

    assert exc.value.code == "BOOKING_CONFLICT"
    assert exc.value.message == "Time slot conflicts with existing booking"
    assert exc.value.details["studio_id"] == studio.id


def test_create_allows_touching_bookings(booking_service, studio, renter):
    first = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    second = booking_service.create_booking(renter, studio.id, at(1, 3), at(1, 5))

    assert first.end_at == second.start_at


def test_create_allows_overlap_on_other_studio(booking_service, make_studio, renter):
    a = make_studio()
    b = make_studio(title="Basement")

    booking_service.create_booking(renter, a.id, at(1, 1), at(1, 3))
    booking = booking_service.create_booking(renter, b.id, at(1, 1), at(1, 3))

    assert booking.studio_id == b.id


def test_cancelled_booking_frees_the_slot(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    booking_service.cancel_booking(renter, booking.id)

    again = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))

    assert again.status == BookingStatus.PENDING


def test_create_rejects_past_start(booking_service, studio, renter):
    with pytest.raises(ValidationException) as exc:
        booking_service.create_booking(renter, studio.id, at(hours=-1), at(hours=1))
    assert exc.value.code == "BOOKING_IN_PAST"


def test_create_rejects_naive_and_inverted_intervals(booking_service, studio, renter):
    naive = datetime(2025, 6, 3, 10, 0)
    with pytest.raises(ValidationException) as exc:
        booking_service.create_booking(renter, studio.id, naive, naive + timedelta(hours=1))
    assert exc.value.code == "INVALID_INTERVAL"

    with pytest.raises(ValidationException) as exc:
        booking_service.create_booking(renter, studio.id, at(1, 3), at(1, 1))
    assert exc.value.code == "INVALID_INTERVAL"


def test_create_enforces_studio_hour_limits(booking_service, make_studio, renter):
    studio = make_studio(minimum_hours=2, maximum_hours=4)

    with pytest.raises(ValidationException) as exc:
        booking_service.create_booking(renter, studio.id, at(1), at(1, 1))
    assert exc.value.code == "DURATION_OUT_OF_RANGE"

    with pytest.raises(ValidationException):
        booking_service.create_booking(renter, studio.id, at(1), at(1, 5))

    # 90 minutes bills as 2 hours and satisfies the minimum
    booking = booking_service.create_booking(renter, studio.id, at(1), at(1, 1.5))
    assert booking.total_hours == 2


def test_create_unknown_studio(booking_service, renter):
    with pytest.raises(NotFoundException) as exc:
        booking_service.create_booking(renter, "01HZZZZZZZZZZZZZZZZZZZZZZZ", at(1), at(1, 1))
    assert exc.value.code == "STUDIO_NOT_FOUND"


def test_create_invalidates_cached_availability(booking_service, studio, renter, cache):
    cache.set(f"availability:{studio.id}:start_date=2025-06-03", {"days": []})
    cache.set("availability:other:default", {"days": []})

    booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))

    assert cache.get(f"availability:{studio.id}:start_date=2025-06-03") is None
    assert cache.get("availability:other:default") == {"days": []}


def test_notification_failure_does_not_fail_booking(db, cache, clock, gateway, studio, renter):
    notifications = NotificationService(db, sink=FailingSink(), clock=clock)
    service = BookingService(
        db,
        cache=cache,
        clock=clock,
        notification_service=notifications,
        payment_gateway=gateway,
    )

    booking = service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    assert notifications.dispatch_pending() == 0

    assert booking.status == BookingStatus.PENDING
    row = db.query(NotificationOutbox).filter(NotificationOutbox.user_id == HOST_ID).one()
    assert row.status == NotificationOutboxStatus.PENDING.value
    assert row.attempt_count == 1
    assert "push provider down" in row.last_error


def test_transitions_only_queue_notifications(
    booking_service, notification_service, studio, renter, sink
):
    for n in range(10):
        notification_service.enqueue(
            f"other-user-{n:015d}", NotificationType.BOOKING_CONFIRMED, "Booking confirmed", "x"
        )
    notification_service.db.commit()

    booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))

    assert sink.delivered == []
    pending = notification_service.db.query(NotificationOutbox).filter(
        NotificationOutbox.status == NotificationOutboxStatus.PENDING.value
    )
    assert pending.count() == 11
    assert notification_service.dispatch_pending() == 11


# ----------------------------------------------------------------------
# Confirm
# ----------------------------------------------------------------------


def test_host_confirms_paid_booking(
    booking_service, notification_service, studio, renter, host, sink, clock
):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    _paid(booking_service, booking)

    confirmed = booking_service.confirm_booking(host, booking.id)
    notification_service.dispatch_pending()

    assert confirmed.status == BookingStatus.CONFIRMED
    assert confirmed.confirmed_at == clock.now()
    assert [n.notification_type for n in sink.for_user(RENTER_ID)] == [
        NotificationType.BOOKING_CONFIRMED.value
    ]


def test_confirm_requires_host(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    _paid(booking_service, booking)

    with pytest.raises(ForbiddenException) as exc:
        booking_service.confirm_booking(renter, booking.id)
    assert exc.value.code == "NOT_BOOKING_HOST"


def test_confirm_requires_payment(booking_service, studio, renter, host):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))

    with pytest.raises(InvalidTransitionException) as exc:
        booking_service.confirm_booking(host, booking.id)
    assert exc.value.code == "PAYMENT_REQUIRED"


def test_authorized_payment_is_enough_to_confirm(booking_service, studio, renter, host):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    booking_service.record_payment(booking.id, "pi_auth", PaymentStatus.AUTHORIZED)

    assert booking_service.confirm_booking(host, booking.id).status == BookingStatus.CONFIRMED


def test_confirm_twice_is_rejected(booking_service, studio, renter, host):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    _paid(booking_service, booking)
    booking_service.confirm_booking(host, booking.id)

    with pytest.raises(BookingAlreadyProcessedException):
        booking_service.confirm_booking(host, booking.id)


def test_confirm_cancelled_booking_is_rejected(booking_service, studio, renter, host):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    booking_service.cancel_booking(renter, booking.id)

    with pytest.raises(BookingAlreadyCancelledException):
        booking_service.confirm_booking(host, booking.id)


# ----------------------------------------------------------------------
# Cancel and refunds
# ----------------------------------------------------------------------


def test_full_refund_well_ahead_of_start(booking_service, studio, renter, gateway):
    # moderate policy, six days out
    booking = booking_service.create_booking(renter, studio.id, at(6), at(6, 2))
    _paid(booking_service, booking)

    result = booking_service.cancel_booking(renter, booking.id, reason="Plans changed")

    assert result.booking.status == BookingStatus.CANCELLED
    assert result.booking.cancelled_by == RENTER_ID
    assert result.booking.cancellation_reason == "Plans changed"
    assert result.refund.percent == 100
    assert result.refund.amount == Decimal("115.00")
    assert result.refund.issued is True
    assert result.refund.status == RefundStatus.ISSUED
    assert result.booking.payment_status == PaymentStatus.REFUNDED
    gateway.refund_payment.assert_called_once_with(
        "pi_test_1", Decimal("115.00"), idempotency_key=f"refund:{booking.id}"
    )


def test_half_refund_under_moderate_policy(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(2), at(2, 2))
    _paid(booking_service, booking)

    result = booking_service.cancel_booking(renter, booking.id)

    assert result.refund.percent == 50
    assert result.refund.amount == Decimal("57.50")
    assert result.booking.refund_amount == Decimal("57.50")
    assert result.refund.to_payload() == {
        "percentage": 50,
        "amount": "57.50",
        "issued": True,
        "status": "issued",
        "error": None,
    }


def test_strict_policy_seventy_two_hours_out_refunds_half(
    booking_service, make_studio, renter
):
    studio = make_studio(cancellation_policy=CancellationPolicy.STRICT)
    booking = booking_service.create_booking(renter, studio.id, at(hours=72), at(hours=74))
    _paid(booking_service, booking)

    result = booking_service.cancel_booking(renter, booking.id)

    assert result.refund.percent == 50
    assert result.refund.amount == Decimal("57.50")


def test_flexible_policy_refunds_by_notice_given(
    booking_service, make_studio, renter, clock, gateway
):
    studio = make_studio(cancellation_policy=CancellationPolicy.FLEXIBLE)
    # Tuesday 08:00-10:00, two hours at 50/h plus the 15% fee
    start, end = at(1, -1), at(1, 1)

    clock.set(start - timedelta(hours=30))
    early = booking_service.create_booking(renter, studio.id, start, end)
    assert early.total_amount == Decimal("115.00")
    _paid(booking_service, early)
    full = booking_service.cancel_booking(renter, early.id)

    late = booking_service.create_booking(renter, studio.id, start, end)
    _paid(booking_service, late, reference="pi_test_2")
    clock.set(start - timedelta(hours=10))
    half = booking_service.cancel_booking(renter, late.id)

    assert (full.refund.percent, full.refund.amount) == (100, Decimal("115.00"))
    assert (half.refund.percent, half.refund.amount) == (50, Decimal("57.50"))
    assert full.refund.status == half.refund.status == RefundStatus.ISSUED
    assert [c.args[:2] for c in gateway.refund_payment.call_args_list] == [
        ("pi_test_1", Decimal("115.00")),
        ("pi_test_2", Decimal("57.50")),
    ]


def test_no_refund_inside_moderate_cutoff(booking_service, studio, renter, gateway):
    booking = booking_service.create_booking(renter, studio.id, at(hours=5), at(hours=7))
    _paid(booking_service, booking)

    result = booking_service.cancel_booking(renter, booking.id)

    assert result.refund.percent == 0
    assert result.refund.amount == Decimal("0.00")
    assert result.refund.status == RefundStatus.NOT_APPLICABLE
    assert result.booking.payment_status == PaymentStatus.PAID
    gateway.refund_payment.assert_not_called()


def test_unpaid_cancellation_skips_gateway(booking_service, studio, renter, gateway):
    booking = booking_service.create_booking(renter, studio.id, at(6), at(6, 2))

    result = booking_service.cancel_booking(renter, booking.id)

    assert result.refund.percent == 100
    assert result.refund.issued is False
    assert result.booking.refund_status == RefundStatus.NOT_APPLICABLE
    gateway.refund_payment.assert_not_called()


def test_host_can_cancel_and_renter_is_notified(
    booking_service, notification_service, studio, renter, host, sink
):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))

    booking_service.cancel_booking(host, booking.id)
    notification_service.dispatch_pending()

    assert [n.notification_type for n in sink.for_user(RENTER_ID)] == [
        NotificationType.BOOKING_CANCELLED.value
    ]


def test_stranger_cannot_cancel(booking_service, studio, renter, stranger):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))

    with pytest.raises(ForbiddenException) as exc:
        booking_service.cancel_booking(stranger, booking.id)
    assert exc.value.code == "NOT_BOOKING_PARTICIPANT"


def test_cancel_twice_is_rejected(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    booking_service.cancel_booking(renter, booking.id)

    with pytest.raises(BookingAlreadyCancelledException):
        booking_service.cancel_booking(renter, booking.id)


def test_gateway_failure_keeps_cancellation_and_records_error(
    booking_service, studio, renter, gateway
):
    booking = booking_service.create_booking(renter, studio.id, at(6), at(6, 2))
    _paid(booking_service, booking)
    gateway.refund_payment.side_effect = DependencyFailureException(
        "Refund failed: card_declined", code="PAYMENT_GATEWAY_ERROR"
    )

    result = booking_service.cancel_booking(renter, booking.id)

    assert result.booking.status == BookingStatus.CANCELLED
    assert result.refund.issued is False
    assert result.refund.status == RefundStatus.FAILED
    assert result.refund.error == "PAYMENT_GATEWAY_ERROR"
    assert result.booking.refund_error == "PAYMENT_GATEWAY_ERROR"
    assert result.booking.payment_status == PaymentStatus.PAID
    assert [b.id for b in booking_service.list_failed_refunds()] == [booking.id]


def test_unexpected_gateway_error_still_completes_cancellation(
    booking_service, studio, renter, gateway
):
    booking = booking_service.create_booking(renter, studio.id, at(6), at(6, 2))
    _paid(booking_service, booking)
    gateway.refund_payment.side_effect = TimeoutError("read timed out")

    result = booking_service.cancel_booking(renter, booking.id)

    assert result.booking.status == BookingStatus.CANCELLED
    assert result.refund.issued is False
    assert result.refund.status == RefundStatus.FAILED
    assert result.booking.refund_status == RefundStatus.FAILED
    assert result.booking.refund_error == "TimeoutError"
    assert [b.id for b in booking_service.list_failed_refunds()] == [booking.id]


def test_retry_refund_after_gateway_recovers(booking_service, studio, renter, gateway):
    booking = booking_service.create_booking(renter, studio.id, at(6), at(6, 2))
    _paid(booking_service, booking)
    gateway.refund_payment.side_effect = DependencyFailureException(
        "timeout", code="PAYMENT_GATEWAY_ERROR"
    )
    booking_service.cancel_booking(renter, booking.id)

    gateway.refund_payment.side_effect = None
    gateway.refund_payment.return_value = RefundOutcome("re_2", Decimal("115.00"), "succeeded")
    result = booking_service.retry_refund(booking.id)

    assert result.issued is True
    assert result.amount == Decimal("115.00")
    assert booking.refund_status == RefundStatus.ISSUED
    assert booking.refund_error is None
    assert booking_service.list_failed_refunds() == []


def test_retry_refund_without_outstanding_refund(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(6), at(6, 2))
    booking_service.cancel_booking(renter, booking.id)

    with pytest.raises(InvalidTransitionException) as exc:
        booking_service.retry_refund(booking.id)
    assert exc.value.code == "NO_OUTSTANDING_REFUND"


# ----------------------------------------------------------------------
# Reschedule
# ----------------------------------------------------------------------


def test_reschedule_moves_booking_and_keeps_original(
    booking_service, notification_service, studio, renter, sink
):
    booking = booking_service.create_booking(renter, studio.id, at(3, 1), at(3, 3))

    moved = booking_service.reschedule_booking(renter, booking.id, at(4, 1), at(4, 4))
    notification_service.dispatch_pending()

    assert moved.start_at == at(4, 1)
    assert moved.end_at == at(4, 4)
    assert moved.original_start_at == at(3, 1)
    assert moved.original_end_at == at(3, 3)
    assert moved.total_hours == 3
    assert moved.total_amount == Decimal("115.00")
    assert moved.status == BookingStatus.PENDING
    assert NotificationType.BOOKING_RESCHEDULED.value in [
        n.notification_type for n in sink.for_user(HOST_ID)
    ]


def test_second_reschedule_keeps_first_original(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(3, 1), at(3, 3))
    booking_service.reschedule_booking(renter, booking.id, at(4, 1), at(4, 3))

    moved = booking_service.reschedule_booking(renter, booking.id, at(5, 1), at(5, 3))

    assert moved.original_start_at == at(3, 1)
    assert moved.start_at == at(5, 1)


def test_reschedule_may_overlap_its_own_interval(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(3, 1), at(3, 3))

    moved = booking_service.reschedule_booking(renter, booking.id, at(3, 2), at(3, 4))

    assert moved.start_at == at(3, 2)


def test_reschedule_into_other_booking_conflicts(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(3, 1), at(3, 3))
    booking_service.create_booking(renter, studio.id, at(4, 1), at(4, 3))

    with pytest.raises(BookingConflictException):
        booking_service.reschedule_booking(renter, booking.id, at(4, 2), at(4, 4))
    assert booking.start_at == at(3, 1)


def test_reschedule_inside_notice_window_is_rejected(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(hours=20), at(hours=22))

    with pytest.raises(RescheduleWindowException) as exc:
        booking_service.reschedule_booking(renter, booking.id, at(3, 1), at(3, 3))
    assert exc.value.details["required_hours"] == 24


def test_only_renter_can_reschedule(booking_service, studio, renter, host):
    booking = booking_service.create_booking(renter, studio.id, at(3, 1), at(3, 3))

    with pytest.raises(ForbiddenException) as exc:
        booking_service.reschedule_booking(host, booking.id, at(4, 1), at(4, 3))
    assert exc.value.code == "NOT_BOOKING_RENTER"


def test_reschedule_cancelled_booking_is_rejected(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(3, 1), at(3, 3))
    booking_service.cancel_booking(renter, booking.id)

    with pytest.raises(BookingAlreadyCancelledException):
        booking_service.reschedule_booking(renter, booking.id, at(4, 1), at(4, 3))


# ----------------------------------------------------------------------
# Complete
# ----------------------------------------------------------------------


def _confirmed(service, studio, renter, host, start, end):
    booking = service.create_booking(renter, studio.id, start, end)
    _paid(service, booking)
    return service.confirm_booking(host, booking.id)


def test_complete_after_end(booking_service, studio, renter, host, clock):
    booking = _confirmed(booking_service, studio, renter, host, at(1, 1), at(1, 3))
    clock.advance(days=2)

    completed = booking_service.complete_booking(booking.id, principal=host)

    assert completed.status == BookingStatus.COMPLETED
    assert completed.completed_at == clock.now()


def test_complete_before_end_needs_review(booking_service, studio, renter, host, admin):
    booking = _confirmed(booking_service, studio, renter, host, at(1, 1), at(1, 3))

    with pytest.raises(BookingNotFinishedException):
        booking_service.complete_booking(booking.id, principal=renter)

    completed = booking_service.complete_booking(booking.id, review_submitted=True, principal=admin)
    assert completed.status == BookingStatus.COMPLETED


def test_participants_cannot_vouch_for_their_own_review(booking_service, studio, renter, host):
    booking = _confirmed(booking_service, studio, renter, host, at(1, 1), at(1, 3))

    for participant in (renter, host):
        with pytest.raises(BookingNotFinishedException):
            booking_service.complete_booking(
                booking.id, review_submitted=True, principal=participant
            )
    assert booking.status == BookingStatus.CONFIRMED


def test_complete_pending_booking_is_rejected(booking_service, studio, renter, clock):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    clock.advance(days=2)

    with pytest.raises(InvalidTransitionException) as exc:
        booking_service.complete_booking(booking.id)
    assert exc.value.code == "BOOKING_NOT_CONFIRMED"


def test_complete_cancelled_booking_is_rejected(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    booking_service.cancel_booking(renter, booking.id)

    with pytest.raises(BookingAlreadyCancelledException):
        booking_service.complete_booking(booking.id, review_submitted=True)


def test_completed_booking_cannot_be_cancelled_or_moved(
    booking_service, studio, renter, host, clock
):
    booking = _confirmed(booking_service, studio, renter, host, at(3, 1), at(3, 3))
    booking_service.complete_booking(booking.id, review_submitted=True)

    with pytest.raises(BookingAlreadyCompletedException):
        booking_service.cancel_booking(renter, booking.id)
    with pytest.raises(BookingAlreadyCompletedException):
        booking_service.reschedule_booking(renter, booking.id, at(5, 1), at(5, 3))


def test_stranger_cannot_complete(booking_service, studio, renter, host, stranger, admin, clock):
    booking = _confirmed(booking_service, studio, renter, host, at(1, 1), at(1, 3))
    clock.advance(days=2)

    with pytest.raises(ForbiddenException):
        booking_service.complete_booking(booking.id, principal=stranger)
    assert booking_service.complete_booking(booking.id, principal=admin).status == (
        BookingStatus.COMPLETED
    )


def test_complete_past_bookings_sweep(booking_service, studio, renter, host, clock):
    done = _confirmed(booking_service, studio, renter, host, at(1, 1), at(1, 3))
    later = _confirmed(booking_service, studio, renter, host, at(5, 1), at(5, 3))
    pending = booking_service.create_booking(renter, studio.id, at(1, 5), at(1, 6))
    clock.advance(days=2)

    assert booking_service.complete_past_bookings() == 1
    assert done.status == BookingStatus.COMPLETED
    assert later.status == BookingStatus.CONFIRMED
    assert pending.status == BookingStatus.PENDING


# ----------------------------------------------------------------------
# Payments and reads
# ----------------------------------------------------------------------


def test_record_payment_rejects_refunded_status(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))

    with pytest.raises(ValidationException) as exc:
        booking_service.record_payment(booking.id, "pi_x", PaymentStatus.REFUNDED)
    assert exc.value.code == "INVALID_PAYMENT_STATUS"


def test_record_payment_on_cancelled_booking_is_rejected(booking_service, studio, renter):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    booking_service.cancel_booking(renter, booking.id)

    with pytest.raises(BookingAlreadyCancelledException):
        _paid(booking_service, booking)


def test_get_booking_visibility(booking_service, studio, renter, host, stranger, admin):
    booking = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))

    assert booking_service.get_booking(renter, booking.id).id == booking.id
    assert booking_service.get_booking(host, booking.id).id == booking.id
    assert booking_service.get_booking(admin, booking.id).id == booking.id
    with pytest.raises(NotFoundException):
        booking_service.get_booking(stranger, booking.id)


def test_list_bookings_by_role_and_status(booking_service, studio, renter, host):
    first = booking_service.create_booking(renter, studio.id, at(1, 1), at(1, 3))
    second = booking_service.create_booking(renter, studio.id, at(2, 1), at(2, 3))
    booking_service.cancel_booking(renter, first.id)

    assert {b.id for b in booking_service.list_bookings(renter)} == {first.id, second.id}
    assert booking_service.list_bookings(host) == []
    hosted = booking_service.list_bookings(host, as_host=True, status=BookingStatus.PENDING)
    assert [b.id for b in hosted] == [second.id]
