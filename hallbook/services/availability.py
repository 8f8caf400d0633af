"""Availability resolver: may this day (and, for showings, this time) be booked?

Each check raises a specific error (blocked, booked, outside window, slot
taken) so the booking form can tell the customer whether to pick another date
or another time. Pre-checks are advisory for races: the one-event-per-day
rule is also enforced by a unique index on bookings.
"""

import enum
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta, tzinfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hallbook.core.errors import ConflictError, ValidationError
from hallbook.models.booking import BLOCKING_EVENT_STATUSES, Booking, BookingType, EventStatus
from hallbook.models.schedule import SHOWING_CONFIG_KEY, BlockedDate, ShowingAvailability, ShowingConfig
from hallbook.services.calendar import (
    day_boundaries,
    hhmm,
    local_datetime,
    minutes_of,
    parse_date,
    parse_time,
    sunday_based_weekday,
)


class DayStatus(enum.StrEnum):
    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class ShowingSlot:
    start: datetime
    end: datetime
    window: ShowingAvailability


@dataclass
class SlotOption:
    time: str
    available: bool
    reason: str | None = None


@dataclass
class ShowingDay:
    date: str
    slots: list[SlotOption] = field(default_factory=list)
    blocked: bool = False
    reason: str | None = None


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def generate_time_slots(start: str, end: str, duration_minutes: int) -> list[str]:
    """Slot starts from start to end, stepping by duration. Every slot fits wholly."""
    if duration_minutes <= 0:
        return []
    current = minutes_of(start)
    end_minutes = minutes_of(end)
    slots: list[str] = []
    while current + duration_minutes <= end_minutes:
        slots.append(hhmm(current))
        current += duration_minutes
    return slots


def window_contains(window: ShowingAvailability, minutes: int) -> bool:
    """window.start <= t < window.end"""
    return minutes_of(window.start_time) <= minutes < minutes_of(window.end_time)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap."""
    return a_start < b_end and a_end > b_start


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def _parse_day(date_str: str, tz: tzinfo) -> tuple[date, datetime, datetime]:
    parsed = parse_date(date_str)
    bounds = day_boundaries(date_str, tz)
    if parsed is None or bounds is None:
        raise ValidationError("A valid date is required (YYYY-MM-DD).", code="invalid_date")
    return parsed, bounds[0], bounds[1]


async def find_blocked_date(db: AsyncSession, start: datetime, end: datetime) -> BlockedDate | None:
    result = await db.execute(select(BlockedDate).where(BlockedDate.date >= start, BlockedDate.date < end).limit(1))
    return result.scalar_one_or_none()


async def find_blocking_event(
    db: AsyncSession, start: datetime, end: datetime, exclude_booking_id: str | None = None
) -> Booking | None:
    """The PENDING or CONFIRMED event occupying [start, end), if any."""
    query = select(Booking).where(
        Booking.booking_type == BookingType.EVENT,
        Booking.event_date >= start,
        Booking.event_date < end,
        Booking.status.in_(BLOCKING_EVENT_STATUSES),
    )
    if exclude_booking_id:
        query = query.where(Booking.id != exclude_booking_id)
    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none()


async def list_active_showings(
    db: AsyncSession, start: datetime, end: datetime, exclude_booking_id: str | None = None
) -> list[Booking]:
    query = select(Booking).where(
        Booking.booking_type == BookingType.SHOWING,
        Booking.event_date >= start,
        Booking.event_date < end,
        Booking.status != EventStatus.CANCELLED.value,
    )
    if exclude_booking_id:
        query = query.where(Booking.id != exclude_booking_id)
    result = await db.execute(query.order_by(Booking.start_time))
    return list(result.scalars().all())


async def list_windows(db: AsyncSession, day_of_week: int) -> list[ShowingAvailability]:
    result = await db.execute(
        select(ShowingAvailability)
        .where(ShowingAvailability.day_of_week == day_of_week, ShowingAvailability.enabled.is_(True))
        .order_by(ShowingAvailability.start_time)
    )
    return list(result.scalars().all())


async def get_showing_config(db: AsyncSession, default_duration_minutes: int = 30) -> ShowingConfig:
    """The singleton config row, or an unsaved default if none exists yet."""
    result = await db.execute(select(ShowingConfig).where(ShowingConfig.key == SHOWING_CONFIG_KEY))
    config = result.scalar_one_or_none()
    if config is None:
        config = ShowingConfig(
            key=SHOWING_CONFIG_KEY,
            default_duration_minutes=default_duration_minutes,
            max_slots_per_window=999,
        )
    return config


async def get_day_status(db: AsyncSession, date_str: str, tz: tzinfo) -> tuple[DayStatus, BlockedDate | None]:
    """available | booked | blocked for the event calendar."""
    _, start, end = _parse_day(date_str, tz)
    blocked = await find_blocked_date(db, start, end)
    if blocked is not None:
        return DayStatus.BLOCKED, blocked
    if await find_blocking_event(db, start, end) is not None:
        return DayStatus.BOOKED, None
    return DayStatus.AVAILABLE, None


# ---------------------------------------------------------------------------
# Admission
# ---------------------------------------------------------------------------


async def check_event_admission(
    db: AsyncSession, date_str: str, tz: tzinfo, exclude_booking_id: str | None = None
) -> None:
    """Raise ConflictError if the day is blocked or already holds an event."""
    _, start, end = _parse_day(date_str, tz)

    if await find_blocked_date(db, start, end) is not None:
        raise ConflictError("This date is blocked. Please choose another date.", code="blocked")

    if await find_blocking_event(db, start, end, exclude_booking_id) is not None:
        raise ConflictError("This date is already booked for an event.", code="booked")


async def check_showing_admission(
    db: AsyncSession,
    date_str: str,
    time_str: str,
    tz: tzinfo,
    *,
    config: ShowingConfig,
    allow_on_event_days: bool = True,
    exclude_booking_id: str | None = None,
) -> ShowingSlot:
    """Admit a showing at date_str/time_str or raise with the specific reason."""
    day, start_of_day, end_of_day = _parse_day(date_str, tz)
    parsed_time = parse_time(time_str)
    if parsed_time is None:
        raise ValidationError("Invalid appointment time format (HH:MM).", code="invalid_time")

    if await find_blocked_date(db, start_of_day, end_of_day) is not None:
        raise ConflictError("This date is blocked and not available for showings.", code="blocked")

    if not allow_on_event_days and await find_blocking_event(db, start_of_day, end_of_day) is not None:
        raise ConflictError(
            "This date has an event booking. Showings are not available on event dates.", code="event_day"
        )

    minutes = parsed_time.hour * 60 + parsed_time.minute
    windows = [w for w in await list_windows(db, sunday_based_weekday(day)) if window_contains(w, minutes)]
    if not windows:
        raise ValidationError("This time slot is not available for showings on this day.", code="outside_window")

    start = local_datetime(date_str, time_str, tz)
    end = start + timedelta(minutes=config.default_duration_minutes)

    window = next((w for w in windows if end <= local_datetime(date_str, w.end_time, tz)), None)
    if window is None:
        raise ValidationError(
            "This showing would run past the end of the available showing window.", code="exceeds_window"
        )

    existing = await list_active_showings(db, start_of_day, end_of_day, exclude_booking_id)
    in_window = [s for s in existing if _starts_in_window(s, window, date_str, tz)]
    if len(in_window) >= config.max_slots_per_window:
        raise ConflictError("This showing window is fully booked. Please choose another time.", code="window_full")

    if any(intervals_overlap(start, end, s.start_time, s.end_time) for s in existing):
        raise ConflictError("This time slot is already booked. Please choose another time.", code="slot_taken")

    return ShowingSlot(start=start, end=end, window=window)


def _starts_in_window(showing: Booking, window: ShowingAvailability, date_str: str, tz: tzinfo) -> bool:
    return local_datetime(date_str, window.start_time, tz) <= showing.start_time < local_datetime(
        date_str, window.end_time, tz
    )


async def list_showing_slots(
    db: AsyncSession,
    date_str: str,
    tz: tzinfo,
    *,
    config: ShowingConfig,
    allow_on_event_days: bool = True,
    now: datetime | None = None,
) -> ShowingDay:
    """Every slot start for the day with its availability and a reason when unavailable."""
    day, start_of_day, end_of_day = _parse_day(date_str, tz)
    result = ShowingDay(date=date_str)

    blocked = await find_blocked_date(db, start_of_day, end_of_day)
    if blocked is not None:
        result.blocked = True
        result.reason = blocked.reason or "This date is blocked."
        return result

    if not allow_on_event_days and await find_blocking_event(db, start_of_day, end_of_day) is not None:
        result.blocked = True
        result.reason = "This date has an event booking. Showings are not available on event dates."
        return result

    windows = await list_windows(db, sunday_based_weekday(day))
    if not windows:
        return result

    existing = await list_active_showings(db, start_of_day, end_of_day)
    duration = timedelta(minutes=config.default_duration_minutes)
    current = now or datetime.now(UTC)
    seen: set[str] = set()

    for window in windows:
        booked_in_window = sum(1 for s in existing if _starts_in_window(s, window, date_str, tz))
        window_full = booked_in_window >= config.max_slots_per_window
        for slot in generate_time_slots(window.start_time, window.end_time, config.default_duration_minutes):
            if slot in seen:
                continue
            seen.add(slot)
            slot_start = local_datetime(date_str, slot, tz)
            slot_end = slot_start + duration
            if slot_start <= current:
                result.slots.append(SlotOption(time=slot, available=False, reason="In the past"))
            elif any(intervals_overlap(slot_start, slot_end, s.start_time, s.end_time) for s in existing):
                result.slots.append(SlotOption(time=slot, available=False, reason="Already booked"))
            elif window_full:
                result.slots.append(SlotOption(time=slot, available=False, reason="Fully booked"))
            else:
                result.slots.append(SlotOption(time=slot, available=True))

    result.slots.sort(key=lambda s: minutes_of(s.time))
    return result
