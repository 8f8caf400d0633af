"""Payment protocol: checkout creation and confirmation.

Confirmation is idempotent. The processor session is authoritative: the
booking is found through the session's metadata, never through anything the
client sends besides the session id. Every applied session is recorded, so
replaying any of them, not only the latest, changes nothing and dispatches
nothing.
"""

import logging
from dataclasses import dataclass, field
from datetime import tzinfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hallbook.core.errors import InvariantError, NotFoundError, ValidationError
from hallbook.models.booking import Booking, BookingPayment, EventStatus, PaymentMethod
from hallbook.services.calendar import format_date_for_display, format_time_for_display
from hallbook.services.lifecycle import DomainEvent, transition
from hallbook.services.pricing import assert_booking_total
from hallbook.services.stripe_service import PURPOSE_REMAINING_BALANCE, CheckoutSession, PaymentGateway
from hallbook.services.tokens import ensure_management_token

logger = logging.getLogger(__name__)

PAID = "paid"


@dataclass
class PaymentConfirmation:
    booking: Booking
    events: list[DomainEvent] = field(default_factory=list)
    replayed: bool = False
    payment_cents: int = 0


def _check_payable(booking: Booking) -> None:
    if not booking.is_event:
        raise ValidationError("Only event bookings can be paid online.")
    if booking.is_cancelled:
        raise ValidationError("This booking has been cancelled.", code="cancelled")
    if booking.total_cents <= 0:
        raise ValidationError("This booking has nothing to pay.")


def _describe(booking: Booking, tz: tzinfo) -> str:
    return (
        f"{format_date_for_display(booking.event_date, tz)} "
        f"{format_time_for_display(booking.start_time, tz)} - {format_time_for_display(booking.end_time, tz)}"
    )


async def start_checkout(
    gateway: PaymentGateway,
    booking: Booking,
    *,
    success_url: str,
    cancel_url: str,
    business_name: str,
    tz: tzinfo,
) -> CheckoutSession:
    """Open a checkout session for the full booking total."""
    _check_payable(booking)
    if booking.stripe_payment_status == PAID:
        raise ValidationError("This booking is already paid.", code="already_paid")
    assert_booking_total(booking)
    if not success_url or not cancel_url:
        raise InvariantError("Checkout success/cancel URLs are not configured.")

    session = await gateway.create_checkout_session(
        booking_id=booking.id,
        amount_cents=booking.total_cents,
        product_name=f"{business_name} event booking",
        description=_describe(booking, tz),
        success_url=success_url,
        cancel_url=cancel_url,
    )
    booking.stripe_checkout_session_id = session.id
    booking.stripe_payment_status = session.payment_status or "unpaid"
    booking.payment_method = PaymentMethod.STRIPE
    logger.info("Checkout session opened for booking %s (%s cents)", booking.id, booking.total_cents)
    return session


async def start_balance_checkout(
    gateway: PaymentGateway,
    booking: Booking,
    *,
    success_url: str,
    cancel_url: str,
    business_name: str,
    tz: tzinfo,
) -> CheckoutSession:
    """Open a checkout session for whatever is still owed on the booking."""
    _check_payable(booking)
    assert_booking_total(booking)
    remaining = booking.balance_due_cents
    if remaining <= 0:
        raise ValidationError("There is no remaining balance to pay.", code="already_paid")
    if not success_url or not cancel_url:
        raise InvariantError("Checkout success/cancel URLs are not configured.")

    session = await gateway.create_checkout_session(
        booking_id=booking.id,
        amount_cents=remaining,
        product_name=f"{business_name} remaining balance",
        description=_describe(booking, tz),
        success_url=success_url,
        cancel_url=cancel_url,
        purpose=PURPOSE_REMAINING_BALANCE,
    )
    booking.stripe_checkout_session_id = session.id
    booking.stripe_payment_status = session.payment_status or "unpaid"
    booking.payment_method = PaymentMethod.STRIPE
    logger.info("Balance checkout opened for booking %s (%s cents)", booking.id, remaining)
    return session


async def confirm_payment(db: AsyncSession, gateway: PaymentGateway, session_id: str | None) -> PaymentConfirmation:
    """Apply a completed checkout session to its booking.

    Nothing is written unless the processor reports the session as paid.
    The booking row is locked for the read-modify-write so concurrent
    confirmations of the same session serialize.
    """
    if not session_id or not session_id.strip():
        raise ValidationError("Missing sessionId.")

    session = await gateway.retrieve_checkout_session(session_id)
    if session.payment_status != PAID:
        raise ValidationError("Payment not completed.", code="payment_incomplete")

    booking_id = session.metadata.get("bookingId")
    if not booking_id:
        raise ValidationError("Booking metadata missing from payment session.")

    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking not found.")
    if not booking.is_event:
        raise ValidationError("Only event bookings can be paid online.")

    applied = await db.execute(
        select(BookingPayment).where(BookingPayment.stripe_checkout_session_id == session.id)
    )
    if applied.scalar_one_or_none() is not None:
        logger.info("Payment session already applied to booking %s", booking.id)
        await ensure_management_token(db, booking)
        return PaymentConfirmation(booking=booking, replayed=True)

    amount = session.amount_total or 0
    balance_payment = session.metadata.get("type") == PURPOSE_REMAINING_BALANCE
    expected = booking.balance_due_cents if balance_payment else booking.total_cents
    if amount != expected:
        logger.error(
            "Payment amount mismatch for booking %s: session %s charged %s, expected %s",
            booking.id,
            session.id,
            amount,
            expected,
        )

    booking.amount_paid_cents = (booking.amount_paid_cents + amount) if balance_payment else amount
    db.add(
        BookingPayment(
            booking_id=booking.id,
            stripe_checkout_session_id=session.id,
            amount_cents=amount,
            purpose=session.metadata.get("type"),
        )
    )
    booking.stripe_checkout_session_id = session.id
    booking.stripe_payment_status = PAID
    booking.payment_method = PaymentMethod.STRIPE

    events: list[DomainEvent] = []
    if booking.is_cancelled:
        logger.warning("Payment received for cancelled booking %s; status left unchanged", booking.id)
    elif booking.status != EventStatus.CONFIRMED.value:
        events.extend(transition(booking, EventStatus.CONFIRMED.value).events)
    events.append(DomainEvent.PAYMENT_RECEIVED)

    await ensure_management_token(db, booking)
    await db.flush()
    logger.info("Payment of %s cents applied to booking %s", amount, booking.id)
    return PaymentConfirmation(booking=booking, events=events, payment_cents=amount)
