"""Booking status state machine.

EVENT and SHOWING bookings share one status column but follow different
machines. The booking type picks the machine before any transition is tried.
Transitions never talk to collaborators: they return the domain events the
caller should hand to the notification dispatcher after commit.

    EVENT:   PENDING -> CONFIRMED, PENDING -> CANCELLED, CONFIRMED -> CANCELLED,
             CONFIRMED -> PENDING (admin only)
    SHOWING: PENDING -> COMPLETED, PENDING -> CANCELLED, COMPLETED -> CANCELLED
    CANCELLED is terminal for both.
"""

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime

from hallbook.core.errors import ValidationError
from hallbook.models.booking import BookingType, EventStatus, ShowingStatus


class DomainEvent(enum.StrEnum):
    BOOKING_CREATED = "booking_created"
    BOOKING_CONFIRMED = "booking_confirmed"
    PAYMENT_RECEIVED = "payment_received"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_UPDATED = "booking_updated"


_EVENT_TRANSITIONS: dict[EventStatus, set[EventStatus]] = {
    EventStatus.PENDING: {EventStatus.CONFIRMED, EventStatus.CANCELLED},
    EventStatus.CONFIRMED: {EventStatus.CANCELLED},
    EventStatus.CANCELLED: set(),
}
_EVENT_ADMIN_TRANSITIONS: dict[EventStatus, set[EventStatus]] = {
    EventStatus.CONFIRMED: {EventStatus.PENDING},
}

_SHOWING_TRANSITIONS: dict[ShowingStatus, set[ShowingStatus]] = {
    ShowingStatus.PENDING: {ShowingStatus.COMPLETED, ShowingStatus.CANCELLED},
    ShowingStatus.COMPLETED: {ShowingStatus.CANCELLED},
    ShowingStatus.CANCELLED: set(),
}


@dataclass
class TransitionResult:
    previous: str
    current: str
    changed: bool
    already_cancelled: bool = False
    events: list[DomainEvent] = field(default_factory=list)


def parse_status(booking_type: BookingType, value: str) -> EventStatus | ShowingStatus:
    """Parse a raw status into the variant for this booking type."""
    normalized = (value or "").strip().upper()
    variant = EventStatus if booking_type == BookingType.EVENT else ShowingStatus
    try:
        return variant(normalized)
    except ValueError:
        allowed = ", ".join(s.value for s in variant)
        raise ValidationError(
            f"Invalid status {value!r} for {booking_type.value.lower()} bookings. Allowed: {allowed}.",
            code="invalid_status",
        ) from None


def initial_status(booking_type: BookingType) -> EventStatus | ShowingStatus:
    return EventStatus.PENDING if booking_type == BookingType.EVENT else ShowingStatus.PENDING


def allowed_targets(booking_type: BookingType, current: str, admin: bool = False) -> set[str]:
    status = parse_status(booking_type, current)
    if booking_type == BookingType.EVENT:
        targets = set(_EVENT_TRANSITIONS[status])
        if admin:
            targets |= _EVENT_ADMIN_TRANSITIONS.get(status, set())
    else:
        targets = set(_SHOWING_TRANSITIONS[status])
    return {t.value for t in targets}


def can_transition(booking_type: BookingType, current: str, target: str, admin: bool = False) -> bool:
    target_status = parse_status(booking_type, target)
    return target_status.value in allowed_targets(booking_type, current, admin=admin)


def transition(booking, target: str, *, admin: bool = False, now: datetime | None = None) -> TransitionResult:
    """Move a booking to target status, returning the events to dispatch.

    Setting the current status again is a no-op. Cancelling an already
    cancelled booking short-circuits with already_cancelled=True. Any other
    move out of CANCELLED, or any move the machine does not allow, raises
    ValidationError.
    """
    booking_type = BookingType(booking.booking_type)
    current = parse_status(booking_type, booking.status)
    wanted = parse_status(booking_type, target)

    if current == wanted:
        return TransitionResult(
            previous=current.value,
            current=current.value,
            changed=False,
            already_cancelled=current.value == EventStatus.CANCELLED.value,
        )

    if current.value == EventStatus.CANCELLED.value:
        raise ValidationError("This booking has been cancelled and can no longer be changed.", code="cancelled")

    if wanted.value not in allowed_targets(booking_type, current.value, admin=admin):
        raise ValidationError(
            f"Cannot change a {booking_type.value.lower()} booking from {current.value} to {wanted.value}.",
            code="invalid_transition",
        )

    booking.status = wanted.value
    events: list[DomainEvent] = []
    if wanted.value == EventStatus.CANCELLED.value:
        booking.cancelled_at = now or datetime.now(UTC)
        events.append(DomainEvent.BOOKING_CANCELLED)
    elif booking_type == BookingType.EVENT and wanted == EventStatus.CONFIRMED:
        events.append(DomainEvent.BOOKING_CONFIRMED)

    return TransitionResult(previous=current.value, current=wanted.value, changed=True, events=events)


def cancel(booking, *, now: datetime | None = None) -> TransitionResult:
    return transition(booking, EventStatus.CANCELLED.value, now=now)


def ensure_editable(booking) -> None:
    """Edits to contact, setup or add-ons are refused once cancelled."""
    if booking.status == EventStatus.CANCELLED.value:
        raise ValidationError("You can't edit a cancelled booking.", code="cancelled")
