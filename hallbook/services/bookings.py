"""Booking orchestration: create, edit, cancel and re-price bookings.

Each operation runs admission, then pricing, then writes, inside the caller's
transaction. Operations return the domain events the caller dispatches after
commit; nothing here talks to the notifier.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, tzinfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hallbook.core.errors import ConflictError, ValidationError
from hallbook.models import AddOn, Booking, BookingAddOn, BookingType, EventStatus
from hallbook.services.availability import check_event_admission, check_showing_admission, get_showing_config
from hallbook.services.calendar import (
    date_string,
    format_end_hhmm,
    format_time_hhmm,
    local_datetime,
    midnight,
    parse_date,
)
from hallbook.services.lifecycle import (
    DomainEvent,
    TransitionResult,
    cancel,
    ensure_editable,
    initial_status,
    parse_status,
    transition,
)
from hallbook.services.pricing import (
    AddOnLine,
    RateCard,
    apply_breakdown,
    assert_booking_total,
    calculate_pricing,
    price_add_on_lines,
    sanitize_add_on_requests,
)
from hallbook.services.tokens import ensure_management_token

logger = logging.getLogger(__name__)

CONTACT_FIELDS = ("contact_name", "contact_email", "contact_phone", "notes")
SETUP_FIELDS = (
    "event_type",
    "guest_count",
    "rect_tables_requested",
    "round_tables_requested",
    "chairs_requested",
    "setup_notes",
)
_REQUIRED_FIELDS = frozenset({"contact_name", "contact_email"})


@dataclass(frozen=True)
class BookingContext:
    """Everything the engine needs from configuration, passed in explicitly."""

    tz: tzinfo
    rates: RateCard
    default_showing_duration_minutes: int = 30
    allow_showings_on_event_days: bool = True

    @classmethod
    def from_settings(cls, config) -> "BookingContext":
        return cls(
            tz=config.tz,
            rates=RateCard.from_settings(config),
            default_showing_duration_minutes=config.default_showing_duration_minutes,
            allow_showings_on_event_days=config.allow_showings_on_event_days,
        )


@dataclass
class BookingOutcome:
    booking: Booking
    events: list[DomainEvent] = field(default_factory=list)
    already_cancelled: bool = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _event_instants(date_str: str | None, start_str: str | None, end_str: str | None, tz: tzinfo):
    day = parse_date(date_str)
    if day is None:
        raise ValidationError("Invalid date format (YYYY-MM-DD).", code="invalid_date")
    if not start_str or not end_str:
        raise ValidationError("Start and end times are required for event bookings.")
    start = local_datetime(date_str, start_str, tz)
    end = local_datetime(date_str, end_str, tz)
    if start is None or end is None:
        raise ValidationError("Invalid time format (HH:MM).", code="invalid_time")
    return day, start, end


def _apply_fields(booking: Booking, patch: dict, names: Iterable[str]) -> bool:
    changed = False
    for name in names:
        if name not in patch:
            continue
        value = patch[name]
        if isinstance(value, str):
            value = value.strip()
        if name in _REQUIRED_FIELDS and not value:
            raise ValidationError(f"{name.replace('_', ' ').capitalize()} cannot be empty.")
        if getattr(booking, name) != value:
            setattr(booking, name, value)
            changed = True
    return changed


def _initial_status(booking_type: BookingType, status: str | None):
    if not status:
        return initial_status(booking_type)
    initial = parse_status(booking_type, status)
    if initial.value == EventStatus.CANCELLED.value:
        raise ValidationError("A booking cannot be created as cancelled.")
    return initial


async def _flush_guarded(db: AsyncSession) -> None:
    """Flush, translating a one-event-per-day violation into a conflict."""
    try:
        await db.flush()
    except IntegrityError as exc:
        logger.info("Concurrent event booking rejected by the store: %s", exc.orig)
        raise ConflictError("This date is already booked for an event.", code="booked") from exc


async def resolve_add_on_lines(
    db: AsyncSession, raw, frozen_prices: dict[str, int] | None = None
) -> tuple[list[AddOnLine], dict[str, AddOn]]:
    """Sanitize requested lines and price them against the catalog.

    Inactive add-ons are only accepted when already on the booking (their id
    is in frozen_prices); unknown ids are dropped.
    """
    requests = sanitize_add_on_requests(raw)
    if not requests:
        return [], {}

    frozen = frozen_prices or {}
    result = await db.execute(select(AddOn).where(AddOn.id.in_([add_on_id for add_on_id, _ in requests])))
    catalog = {row.id: row for row in result.scalars().all() if row.active or row.id in frozen}
    return price_add_on_lines(requests, catalog, frozen), catalog


def _add_on_rows(lines: Iterable[AddOnLine], catalog: dict[str, AddOn]) -> list[BookingAddOn]:
    return [
        BookingAddOn(
            add_on_id=line.add_on_id,
            add_on=catalog[line.add_on_id],
            quantity=line.quantity,
            price_at_booking=line.price_at_booking,
        )
        for line in lines
    ]


def _current_lines(booking: Booking) -> list[AddOnLine]:
    return [
        AddOnLine(add_on_id=line.add_on_id, quantity=line.quantity, price_at_booking=line.price_at_booking)
        for line in booking.add_ons
    ]


def _line_key(lines: Iterable) -> list[tuple[str, int, int]]:
    return sorted((line.add_on_id, line.quantity, line.price_at_booking) for line in lines)


async def replace_add_ons(db: AsyncSession, booking: Booking, raw) -> bool:
    """Replace every add-on line on the booking and re-total it.

    Lines already on the booking keep their frozen price. Returns True if the
    set of lines changed.
    """
    frozen = {line.add_on_id: line.price_at_booking for line in booking.add_ons}
    lines, catalog = await resolve_add_on_lines(db, raw, frozen)
    changed = _line_key(lines) != _line_key(booking.add_ons)

    booking.add_ons = _add_on_rows(lines, catalog)
    booking.total_cents = (
        booking.base_amount_cents
        + booking.extra_setup_cents
        + booking.deposit_cents
        + sum(line.subtotal_cents for line in lines)
    )
    assert_booking_total(booking)
    return changed


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def create_event(
    db: AsyncSession,
    ctx: BookingContext,
    data,
    *,
    status: str | None = None,
    payment_method=None,
    amount_paid_cents: int = 0,
    admin_notes: str | None = None,
    issue_token: bool = False,
) -> BookingOutcome:
    """Admit, price and insert an EVENT booking."""
    day, start, end = _event_instants(data.event_date, data.start_time, data.end_time, ctx.tz)
    await check_event_admission(db, data.event_date, ctx.tz)

    lines, catalog = await resolve_add_on_lines(db, data.add_ons)
    breakdown = calculate_pricing(
        day, start, end, data.extra_setup_hours, BookingType.EVENT, lines, ctx.rates, ctx.tz
    )
    initial = _initial_status(BookingType.EVENT, status)

    booking = Booking(
        booking_type=BookingType.EVENT,
        event_date=midnight(day, ctx.tz),
        start_time=start,
        end_time=end,
        status=initial.value,
        payment_method=payment_method,
        amount_paid_cents=amount_paid_cents,
        admin_notes=admin_notes,
    )
    _apply_fields(booking, data.model_dump(include=set(CONTACT_FIELDS + SETUP_FIELDS)), CONTACT_FIELDS + SETUP_FIELDS)
    apply_breakdown(booking, breakdown)
    booking.add_ons = _add_on_rows(lines, catalog)
    assert_booking_total(booking)

    db.add(booking)
    await _flush_guarded(db)

    events = [DomainEvent.BOOKING_CREATED]
    if initial == EventStatus.CONFIRMED:
        events.append(DomainEvent.BOOKING_CONFIRMED)
    if issue_token or initial == EventStatus.CONFIRMED:
        await ensure_management_token(db, booking)

    logger.info("Event booking %s created for %s (%s cents)", booking.id, data.event_date, booking.total_cents)
    return BookingOutcome(booking=booking, events=events)


async def create_showing(
    db: AsyncSession,
    ctx: BookingContext,
    data,
    *,
    status: str | None = None,
    admin_notes: str | None = None,
) -> BookingOutcome:
    """Admit and insert a SHOWING. Showings are free and always get a management token."""
    time_str = data.appointment_time or data.start_time
    if not time_str:
        raise ValidationError("Appointment time is required for showings.")

    config = await get_showing_config(db, ctx.default_showing_duration_minutes)
    slot = await check_showing_admission(
        db,
        data.event_date,
        time_str,
        ctx.tz,
        config=config,
        allow_on_event_days=ctx.allow_showings_on_event_days,
    )
    day = parse_date(data.event_date)
    breakdown = calculate_pricing(
        day, slot.start, slot.end, 0, BookingType.SHOWING, [], ctx.rates, ctx.tz, config.default_duration_minutes
    )
    initial = _initial_status(BookingType.SHOWING, status)

    booking = Booking(
        booking_type=BookingType.SHOWING,
        event_date=midnight(day, ctx.tz),
        start_time=slot.start,
        end_time=slot.end,
        status=initial.value,
        admin_notes=admin_notes,
    )
    _apply_fields(booking, data.model_dump(include=set(CONTACT_FIELDS)), CONTACT_FIELDS)
    apply_breakdown(booking, breakdown)
    booking.add_ons = []

    db.add(booking)
    await _flush_guarded(db)
    await ensure_management_token(db, booking)

    logger.info("Showing %s booked for %s %s", booking.id, data.event_date, time_str)
    return BookingOutcome(booking=booking, events=[DomainEvent.BOOKING_CREATED])


# ---------------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------------


async def update_managed_booking(db: AsyncSession, booking: Booking, patch: dict) -> BookingOutcome:
    """Customer self-service edit of contact, setup and add-ons."""
    ensure_editable(booking)

    changed = _apply_fields(booking, patch, CONTACT_FIELDS)
    if booking.is_event:
        changed |= _apply_fields(booking, patch, SETUP_FIELDS)
        if "add_ons" in patch:
            changed |= await replace_add_ons(db, booking, patch["add_ons"] or [])

    await db.flush()
    return BookingOutcome(booking=booking, events=[DomainEvent.BOOKING_UPDATED] if changed else [])


async def _apply_transition(db: AsyncSession, booking: Booking, result: TransitionResult) -> None:
    if result.changed:
        logger.info("Booking %s status %s -> %s", booking.id, result.previous, result.current)
    if DomainEvent.BOOKING_CONFIRMED in result.events:
        await ensure_management_token(db, booking)
    await db.flush()


async def change_status(db: AsyncSession, booking: Booking, target: str, *, admin: bool = False) -> TransitionResult:
    result = transition(booking, target, admin=admin)
    await _apply_transition(db, booking, result)
    return result


async def cancel_booking(db: AsyncSession, booking: Booking, now: datetime | None = None) -> TransitionResult:
    result = cancel(booking, now=now)
    await _apply_transition(db, booking, result)
    return result


async def admin_update_event(db: AsyncSession, ctx: BookingContext, booking: Booking, patch: dict) -> BookingOutcome:
    """Admin edit of an EVENT. Date, time, setup hours or add-on changes re-run admission and pricing."""
    if not booking.is_event:
        raise ValidationError("This booking is not an event.")
    ensure_editable(booking)

    tz = ctx.tz
    moves = any(patch.get(name) for name in ("event_date", "start_time", "end_time"))
    new_setup = patch.get("extra_setup_hours")
    reprice = moves or new_setup is not None or "add_ons" in patch
    changed = False

    if reprice:
        date_str = patch.get("event_date") or date_string(booking.start_time, tz)
        start_str = patch.get("start_time") or format_time_hhmm(booking.start_time, tz)
        end_str = patch.get("end_time") or format_end_hhmm(booking.start_time, booking.end_time, tz)
        day, start, end = _event_instants(date_str, start_str, end_str, tz)
        if moves:
            await check_event_admission(db, date_str, tz, exclude_booking_id=booking.id)

        if "add_ons" in patch:
            frozen = {line.add_on_id: line.price_at_booking for line in booking.add_ons}
            lines, catalog = await resolve_add_on_lines(db, patch["add_ons"] or [], frozen)
        else:
            lines, catalog = _current_lines(booking), None

        breakdown = calculate_pricing(
            day,
            start,
            end,
            booking.extra_setup_hours if new_setup is None else new_setup,
            BookingType.EVENT,
            lines,
            ctx.rates,
            tz,
        )
        before = (booking.start_time, booking.end_time, booking.total_cents, _line_key(booking.add_ons))
        booking.event_date = midnight(day, tz)
        booking.start_time = start
        booking.end_time = end
        if catalog is not None:
            booking.add_ons = _add_on_rows(lines, catalog)
        apply_breakdown(booking, breakdown)
        assert_booking_total(booking)
        changed = before != (start, end, booking.total_cents, _line_key(lines))

    changed |= _apply_fields(booking, patch, CONTACT_FIELDS + SETUP_FIELDS)
    _apply_fields(booking, patch, ("admin_notes", "payment_method"))
    if patch.get("amount_paid_cents") is not None:
        booking.amount_paid_cents = patch["amount_paid_cents"]

    events: list[DomainEvent] = []
    if patch.get("status"):
        result = transition(booking, patch["status"], admin=True)
        if result.changed:
            logger.info("Booking %s status %s -> %s", booking.id, result.previous, result.current)
        events.extend(result.events)
        if DomainEvent.BOOKING_CONFIRMED in result.events:
            await ensure_management_token(db, booking)

    await _flush_guarded(db)
    if changed and DomainEvent.BOOKING_CANCELLED not in events:
        events.insert(0, DomainEvent.BOOKING_UPDATED)
    return BookingOutcome(booking=booking, events=events)


async def admin_update_showing(
    db: AsyncSession, ctx: BookingContext, booking: Booking, patch: dict
) -> BookingOutcome:
    """Admin edit of a SHOWING. A new date or time re-runs showing admission, excluding itself."""
    if booking.is_event:
        raise ValidationError("This booking is not a showing.")
    ensure_editable(booking)

    tz = ctx.tz
    changed = False
    if patch.get("event_date") or patch.get("appointment_time"):
        date_str = patch.get("event_date") or date_string(booking.start_time, tz)
        time_str = patch.get("appointment_time") or format_time_hhmm(booking.start_time, tz)
        config = await get_showing_config(db, ctx.default_showing_duration_minutes)
        slot = await check_showing_admission(
            db,
            date_str,
            time_str,
            tz,
            config=config,
            allow_on_event_days=ctx.allow_showings_on_event_days,
            exclude_booking_id=booking.id,
        )
        changed = (slot.start, slot.end) != (booking.start_time, booking.end_time)
        booking.event_date = midnight(parse_date(date_str), tz)
        booking.start_time = slot.start
        booking.end_time = slot.end

    changed |= _apply_fields(booking, patch, CONTACT_FIELDS)
    _apply_fields(booking, patch, ("admin_notes",))

    events: list[DomainEvent] = []
    if patch.get("status"):
        result = transition(booking, patch["status"], admin=True)
        if result.changed:
            logger.info("Booking %s status %s -> %s", booking.id, result.previous, result.current)
        events.extend(result.events)

    await db.flush()
    if changed and DomainEvent.BOOKING_CANCELLED not in events:
        events.insert(0, DomainEvent.BOOKING_UPDATED)
    return BookingOutcome(booking=booking, events=events)

