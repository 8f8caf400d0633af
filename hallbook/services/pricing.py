"""Pricing engine for hall bookings.

Pure calculation module. Maps (date, start, end, extra setup hours, booking
type, add-ons) to a PricingBreakdown. Rates come from a RateCard built by the
caller, so identical inputs always give an identical breakdown.

Weekend pricing covers Friday, Saturday and Sunday.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo

from hallbook.core.errors import InvariantError, PricingError
from hallbook.models.booking import BookingType, DayType

logger = logging.getLogger(__name__)

_SECONDS_PER_HOUR = 3600


@dataclass(frozen=True)
class RateCard:
    weekday_rate_cents: int
    weekend_rate_cents: int
    extra_setup_hourly_cents: int
    security_deposit_cents: int
    weekend_minimum_hours: int = 4
    open_hour: int = 8
    close_hour: int = 24

    @classmethod
    def from_settings(cls, config) -> "RateCard":
        return cls(
            weekday_rate_cents=config.weekday_rate_cents,
            weekend_rate_cents=config.weekend_rate_cents,
            extra_setup_hourly_cents=config.extra_setup_hourly_cents,
            security_deposit_cents=config.security_deposit_cents,
            weekend_minimum_hours=config.weekend_minimum_hours,
            open_hour=config.business_open_hour,
            close_hour=config.business_close_hour,
        )


@dataclass(frozen=True)
class AddOnLine:
    """A validated add-on line priced at booking time."""

    add_on_id: str
    quantity: int
    price_at_booking: int
    name: str = ""

    @property
    def subtotal_cents(self) -> int:
        return self.quantity * self.price_at_booking


@dataclass(frozen=True)
class PricingBreakdown:
    day_type: DayType
    hourly_rate_cents: int
    event_hours: int
    base_amount_cents: int
    extra_setup_hours: int
    extra_setup_cents: int
    deposit_cents: int
    add_ons_cents: int
    total_cents: int
    duration_minutes: int
    add_ons: tuple[AddOnLine, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict:
        return {
            "day_type": self.day_type.value,
            "hourly_rate_cents": self.hourly_rate_cents,
            "event_hours": self.event_hours,
            "base_amount_cents": self.base_amount_cents,
            "extra_setup_hours": self.extra_setup_hours,
            "extra_setup_cents": self.extra_setup_cents,
            "deposit_cents": self.deposit_cents,
            "add_ons_cents": self.add_ons_cents,
            "total_cents": self.total_cents,
        }


def get_day_type(event_date: date) -> DayType:
    """Monday-Thursday is weekday pricing; Friday-Sunday is weekend pricing."""
    # date.weekday(): 0=Mon .. 4=Fri, 5=Sat, 6=Sun
    return DayType.WEEKEND if event_date.weekday() >= 4 else DayType.WEEKDAY


def normalize_extra_setup_hours(value) -> int:
    """Truncate towards zero and clamp at zero. Garbage counts as zero."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, math.trunc(number))


def normalize_quantity(value) -> int | None:
    """Integer quantity > 0, or None if the line should be dropped."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    quantity = math.trunc(number)
    return quantity if quantity > 0 else None


def sanitize_add_on_requests(raw: Iterable | None) -> list[tuple[str, int]]:
    """Clean requested add-on lines into (add_on_id, quantity) pairs.

    Lines without a string id or with a non-positive/non-finite quantity are
    dropped, never rejected. Repeated ids are merged.
    """
    merged: dict[str, int] = {}
    for item in raw or []:
        if isinstance(item, Mapping):
            add_on_id, quantity = item.get("add_on_id", item.get("addOnId")), item.get("quantity")
        else:
            add_on_id, quantity = getattr(item, "add_on_id", None), getattr(item, "quantity", None)
        if not isinstance(add_on_id, str) or not add_on_id.strip():
            continue
        qty = normalize_quantity(quantity)
        if qty is None:
            continue
        merged[add_on_id] = merged.get(add_on_id, 0) + qty
    return list(merged.items())


def price_add_on_lines(
    requests: Iterable[tuple[str, int]],
    catalog: Mapping[str, object],
    frozen_prices: Mapping[str, int] | None = None,
) -> list[AddOnLine]:
    """Attach a price to each requested line.

    catalog maps add-on id to an AddOn row. Ids missing from the catalog are
    silently dropped. frozen_prices holds prices already on the booking, which
    win over the current catalog price.
    """
    frozen = frozen_prices or {}
    lines: list[AddOnLine] = []
    for add_on_id, quantity in requests:
        item = catalog.get(add_on_id)
        if item is None:
            continue
        price = frozen.get(add_on_id, item.price_cents)
        lines.append(AddOnLine(add_on_id=add_on_id, quantity=quantity, price_at_booking=price, name=item.name))
    return lines


def calculate_pricing(
    event_date: date,
    start: datetime,
    end: datetime | None,
    extra_setup_hours,
    booking_type: BookingType,
    add_ons: Iterable[AddOnLine],
    rates: RateCard,
    tz: tzinfo,
    showing_duration_minutes: int = 30,
) -> PricingBreakdown:
    """Validate an EVENT or SHOWING request and compute its price.

    Raises PricingError when a rule rejects the request.
    """
    if start.tzinfo is None or (end is not None and end.tzinfo is None):
        raise PricingError("Start and end times must be timezone-aware instants.")

    day_type = get_day_type(event_date)

    if booking_type == BookingType.SHOWING:
        return PricingBreakdown(
            day_type=day_type,
            hourly_rate_cents=0,
            event_hours=0,
            base_amount_cents=0,
            extra_setup_hours=0,
            extra_setup_cents=0,
            deposit_cents=0,
            add_ons_cents=0,
            total_cents=0,
            duration_minutes=showing_duration_minutes,
        )

    if end is None:
        raise PricingError("Event end time is required.")
    if end <= start:
        raise PricingError("Event end time must be after start time.")

    _check_same_day(event_date, start, end, tz)
    _check_operating_hours(event_date, start, end, tz, rates)

    seconds = (end - start).total_seconds()
    if seconds % _SECONDS_PER_HOUR:
        raise PricingError("Event duration must be a positive whole number of hours.")
    event_hours = int(seconds // _SECONDS_PER_HOUR)

    if day_type == DayType.WEEKEND and event_hours < rates.weekend_minimum_hours:
        raise PricingError(f"Weekend bookings must be at least {rates.weekend_minimum_hours} hours.")

    hourly_rate_cents = rates.weekend_rate_cents if day_type == DayType.WEEKEND else rates.weekday_rate_cents
    setup_hours = normalize_extra_setup_hours(extra_setup_hours)
    lines = tuple(line for line in add_ons if line.quantity > 0)

    base_amount_cents = event_hours * hourly_rate_cents
    extra_setup_cents = setup_hours * rates.extra_setup_hourly_cents
    deposit_cents = rates.security_deposit_cents
    add_ons_cents = sum(line.subtotal_cents for line in lines)

    return PricingBreakdown(
        day_type=day_type,
        hourly_rate_cents=hourly_rate_cents,
        event_hours=event_hours,
        base_amount_cents=base_amount_cents,
        extra_setup_hours=setup_hours,
        extra_setup_cents=extra_setup_cents,
        deposit_cents=deposit_cents,
        add_ons_cents=add_ons_cents,
        total_cents=base_amount_cents + extra_setup_cents + deposit_cents + add_ons_cents,
        duration_minutes=event_hours * 60,
        add_ons=lines,
    )


def _check_same_day(event_date: date, start: datetime, end: datetime, tz: tzinfo) -> None:
    start_local = start.astimezone(tz)
    end_local = end.astimezone(tz)
    ends_at_midnight = end_local.date() == event_date + timedelta(days=1) and end_local.time() == datetime.min.time()
    if start_local.date() != event_date or (end_local.date() != event_date and not ends_at_midnight):
        raise PricingError("Event date, start time, and end time must be on the same day.")


def _check_operating_hours(event_date: date, start: datetime, end: datetime, tz: tzinfo, rates: RateCard) -> None:
    start_local = start.astimezone(tz)
    end_local = end.astimezone(tz)
    start_minutes = start_local.hour * 60 + start_local.minute
    end_minutes = 24 * 60 if end_local.date() != event_date else end_local.hour * 60 + end_local.minute
    if start_minutes < rates.open_hour * 60 or end_minutes > rates.close_hour * 60:
        raise PricingError(
            f"Event time must be within operating hours ({rates.open_hour}:00-{rates.close_hour}:00)."
        )


def expected_total_cents(booking) -> int:
    """The documented sum for a booking's stored pricing snapshot."""
    return booking.base_amount_cents + booking.extra_setup_cents + booking.deposit_cents + booking.add_ons_cents


def assert_booking_total(booking) -> None:
    """Raise InvariantError if the stored total no longer matches its parts."""
    expected = expected_total_cents(booking)
    if booking.total_cents != expected:
        logger.error(
            "Pricing invariant violated for booking %s: stored total %s != computed %s",
            booking.id,
            booking.total_cents,
            expected,
        )
        raise InvariantError("Booking total does not match its pricing breakdown.")


def apply_breakdown(booking, breakdown: PricingBreakdown) -> None:
    """Copy a breakdown's snapshot fields onto a booking row (add-on lines excluded)."""
    booking.day_type = breakdown.day_type
    booking.hourly_rate_cents = breakdown.hourly_rate_cents
    booking.event_hours = breakdown.event_hours
    booking.extra_setup_hours = breakdown.extra_setup_hours
    booking.base_amount_cents = breakdown.base_amount_cents
    booking.extra_setup_cents = breakdown.extra_setup_cents
    booking.deposit_cents = breakdown.deposit_cents
    booking.total_cents = breakdown.total_cents
