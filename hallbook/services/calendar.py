"""Calendar and wall-clock helpers in the business timezone.

Pure calculation module: no database, no async, no FastAPI dependencies.
Every wall-clock string ("YYYY-MM-DD", "HH:MM") is local time in the business
timezone passed in by the caller, never UTC and never the host timezone.
Parsing "YYYY-MM-DD" as UTC midnight shifts the calendar day for any zone west
of UTC, so all conversions go through here.
"""

import re
from datetime import date, datetime, time, timedelta, tzinfo

_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")

MIDNIGHT_END = "24:00"


def parse_date(value: str | None) -> date | None:
    """Parse "YYYY-MM-DD". Returns None for malformed or impossible dates."""
    if not value:
        return None
    match = _DATE_RE.match(value.strip())
    if not match:
        return None
    year, month, day = (int(g) for g in match.groups())
    if not 1 <= month <= 12 or not 1 <= day <= 31:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_time(value: str | None) -> time | None:
    """Parse "HH:MM" (seconds tolerated and ignored). Hour 0-23, minute 0-59."""
    if not value:
        return None
    match = _TIME_RE.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if not 0 <= hours <= 23 or not 0 <= minutes <= 59:
        return None
    return time(hours, minutes)


def local_date(date_str: str, tz: tzinfo) -> datetime | None:
    """The instant of local midnight on date_str."""
    parsed = parse_date(date_str)
    if parsed is None:
        return None
    return midnight(parsed, tz)


def local_datetime(date_str: str, time_str: str, tz: tzinfo) -> datetime | None:
    """The instant of time_str on date_str, local time.

    "24:00" is accepted as the end of the day (the following local midnight)
    so events may run until midnight.
    """
    parsed_date = parse_date(date_str)
    if parsed_date is None:
        return None
    if time_str and time_str.strip() == MIDNIGHT_END:
        return midnight(parsed_date + timedelta(days=1), tz)
    parsed_time = parse_time(time_str)
    if parsed_time is None:
        return None
    return datetime.combine(parsed_date, parsed_time, tzinfo=tz)


def midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time(0, 0), tzinfo=tz)


def weekday(date_str: str) -> int | None:
    """Day of week for a local date string, 0=Sunday..6=Saturday."""
    parsed = parse_date(date_str)
    if parsed is None:
        return None
    return sunday_based_weekday(parsed)


def sunday_based_weekday(day: date) -> int:
    # date.weekday() is 0=Monday
    return (day.weekday() + 1) % 7


def day_boundaries(date_str: str, tz: tzinfo) -> tuple[datetime, datetime] | None:
    """Half-open [start_of_day, start_of_next_day) for range queries.

    Computed from local midnights, so DST days are 23 or 25 hours long.
    """
    parsed = parse_date(date_str)
    if parsed is None:
        return None
    return midnight(parsed, tz), midnight(parsed + timedelta(days=1), tz)


def to_local(instant: datetime, tz: tzinfo) -> datetime:
    return instant.astimezone(tz)


def local_date_of(instant: datetime, tz: tzinfo) -> date:
    """The business-timezone calendar date an instant falls on."""
    return instant.astimezone(tz).date()


def date_string(instant: datetime, tz: tzinfo) -> str:
    return local_date_of(instant, tz).isoformat()


def format_date_for_display(instant: datetime, tz: tzinfo, fmt: str = "%A, %B {day}, %Y") -> str:
    """e.g. "Friday, December 5, 2025" in the business timezone."""
    local = instant.astimezone(tz)
    return local.strftime(fmt.replace("{day}", str(local.day)))


def format_time_for_display(instant: datetime, tz: tzinfo) -> str:
    """e.g. "12:00 PM" in the business timezone."""
    local = instant.astimezone(tz)
    hour = local.hour % 12 or 12
    return f"{hour}:{local.minute:02d} {'AM' if local.hour < 12 else 'PM'}"


def format_time_hhmm(instant: datetime, tz: tzinfo) -> str:
    """24-hour "HH:MM" in the business timezone."""
    return instant.astimezone(tz).strftime("%H:%M")


def format_end_hhmm(start: datetime, end: datetime, tz: tzinfo) -> str:
    """Like format_time_hhmm, but an end on the following local midnight reads "24:00"."""
    if local_date_of(end, tz) > local_date_of(start, tz):
        return MIDNIGHT_END
    return format_time_hhmm(end, tz)


def minutes_of(value: str) -> int:
    """Minutes since midnight for a validated "HH:MM" string ("24:00" = 1440)."""
    if value.strip() == MIDNIGHT_END:
        return 24 * 60
    parsed = parse_time(value)
    if parsed is None:
        raise ValueError(f"Invalid time {value!r}")
    return parsed.hour * 60 + parsed.minute


def hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
