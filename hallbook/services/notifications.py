"""Notification port and dispatcher.

The state machine and payment protocol emit DomainEvents. This module maps
each event to the notification kinds it triggers and delivers them through a
Notifier. Delivery is fire-and-forget: it runs after the transaction commits,
each failure is logged, and nothing is retried or re-raised.
"""

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from fastapi import BackgroundTasks

from hallbook.models.booking import BookingType
from hallbook.services.lifecycle import DomainEvent

logger = logging.getLogger(__name__)


class NotificationKind(enum.StrEnum):
    EVENT_CONFIRMATION = "event_confirmation"
    SHOWING_CONFIRMATION = "showing_confirmation"
    EVENT_CANCELLATION = "event_cancellation"
    SHOWING_CANCELLATION = "showing_cancellation"
    BOOKING_UPDATED = "booking_updated"
    PAYMENT_RECEIPT = "payment_receipt"
    ADMIN_NEW_BOOKING = "admin_new_booking"
    ADMIN_CONFIRMATION = "admin_confirmation"
    ADMIN_CANCELLATION = "admin_cancellation"


ADMIN_KINDS = frozenset(
    {NotificationKind.ADMIN_NEW_BOOKING, NotificationKind.ADMIN_CONFIRMATION, NotificationKind.ADMIN_CANCELLATION}
)


@dataclass(frozen=True)
class AddOnNotice:
    name: str
    description: str | None
    quantity: int
    price_at_booking: int


@dataclass(frozen=True)
class BookingNotice:
    """Immutable snapshot of a booking taken when the transaction commits."""

    id: str
    booking_type: BookingType
    status: str
    event_date: datetime
    start_time: datetime
    end_time: datetime
    contact_name: str
    contact_email: str
    contact_phone: str | None = None
    event_type: str | None = None
    guest_count: int | None = None
    notes: str | None = None
    rect_tables_requested: int | None = None
    round_tables_requested: int | None = None
    chairs_requested: int | None = None
    setup_notes: str | None = None
    total_cents: int = 0
    amount_paid_cents: int = 0
    stripe_payment_status: str | None = None
    management_token: str | None = None
    last_payment_cents: int = 0
    add_ons: tuple[AddOnNotice, ...] = field(default_factory=tuple)

    @classmethod
    def from_booking(cls, booking, last_payment_cents: int = 0) -> "BookingNotice":
        return cls(
            id=booking.id,
            booking_type=BookingType(booking.booking_type),
            status=booking.status,
            event_date=booking.event_date,
            start_time=booking.start_time,
            end_time=booking.end_time,
            contact_name=booking.contact_name,
            contact_email=booking.contact_email,
            contact_phone=booking.contact_phone,
            event_type=booking.event_type,
            guest_count=booking.guest_count,
            notes=booking.notes,
            rect_tables_requested=booking.rect_tables_requested,
            round_tables_requested=booking.round_tables_requested,
            chairs_requested=booking.chairs_requested,
            setup_notes=booking.setup_notes,
            total_cents=booking.total_cents,
            amount_paid_cents=booking.amount_paid_cents,
            stripe_payment_status=booking.stripe_payment_status,
            management_token=booking.management_token,
            last_payment_cents=last_payment_cents,
            add_ons=tuple(
                AddOnNotice(
                    name=line.add_on.name if line.add_on else "",
                    description=line.add_on.description if line.add_on else None,
                    quantity=line.quantity,
                    price_at_booking=line.price_at_booking,
                )
                for line in booking.add_ons
            ),
        )

    @property
    def is_event(self) -> bool:
        return self.booking_type == BookingType.EVENT


class Notifier(Protocol):
    async def send(self, kind: NotificationKind, notice: BookingNotice) -> None: ...


def notifications_for(event: DomainEvent, booking_type: BookingType) -> list[NotificationKind]:
    """Templates triggered by one domain event."""
    is_event = booking_type == BookingType.EVENT
    if event == DomainEvent.BOOKING_CREATED:
        if is_event:
            return [NotificationKind.ADMIN_NEW_BOOKING]
        return [NotificationKind.SHOWING_CONFIRMATION, NotificationKind.ADMIN_NEW_BOOKING]
    if event == DomainEvent.BOOKING_CONFIRMED:
        if is_event:
            return [NotificationKind.EVENT_CONFIRMATION, NotificationKind.ADMIN_CONFIRMATION]
        return []
    if event == DomainEvent.PAYMENT_RECEIVED:
        return [NotificationKind.PAYMENT_RECEIPT] if is_event else []
    if event == DomainEvent.BOOKING_CANCELLED:
        customer = NotificationKind.EVENT_CANCELLATION if is_event else NotificationKind.SHOWING_CANCELLATION
        return [customer, NotificationKind.ADMIN_CANCELLATION]
    if event == DomainEvent.BOOKING_UPDATED:
        return [NotificationKind.BOOKING_UPDATED]
    return []


async def dispatch(notifier: Notifier, events: Iterable[DomainEvent], notice: BookingNotice) -> int:
    """Send every notification the events trigger. Returns how many were delivered."""
    delivered = 0
    for event in events:
        for kind in notifications_for(event, notice.booking_type):
            try:
                await notifier.send(kind, notice)
            except Exception:
                logger.exception("Notification %s failed for booking %s", kind.value, notice.id)
                continue
            delivered += 1
    return delivered


def schedule_notifications(
    background: BackgroundTasks,
    notifier: Notifier,
    booking,
    events: Iterable[DomainEvent],
    last_payment_cents: int = 0,
) -> None:
    """Queue dispatch to run after the response. Call only once the transaction has committed."""
    events = list(events)
    if not events:
        return
    background.add_task(dispatch, notifier, events, BookingNotice.from_booking(booking, last_payment_cents))
