"""Calendar helpers: wall-clock parsing and business-timezone conversion."""

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from hallbook.services.calendar import (
    day_boundaries,
    format_date_for_display,
    format_end_hhmm,
    format_time_for_display,
    local_date,
    local_date_of,
    local_datetime,
    minutes_of,
    parse_date,
    parse_time,
    weekday,
)

NY = ZoneInfo("America/New_York")
TOKYO = ZoneInfo("Asia/Tokyo")


class TestParsing:
    def test_valid_date(self):
        assert parse_date("2030-01-05") == date(2030, 1, 5)

    def test_invalid_dates(self):
        for value in ("", None, "2030-13-01", "2030-00-10", "2030-02-30", "2030/01/05", "tomorrow"):
            assert parse_date(value) is None

    def test_valid_time(self):
        assert parse_time("09:30").hour == 9
        assert parse_time("23:59").minute == 59

    def test_invalid_times(self):
        for value in ("24:00", "12:60", "7pm", "", None, "-1:00"):
            assert parse_time(value) is None

    def test_minutes_of_midnight_end(self):
        assert minutes_of("24:00") == 1440
        assert minutes_of("17:45") == 17 * 60 + 45


class TestLocalInstants:
    def test_local_midnight_is_not_utc_midnight(self):
        instant = local_date("2030-01-05", NY)
        assert instant.astimezone(UTC) == datetime(2030, 1, 5, 5, 0, tzinfo=UTC)

    def test_date_survives_round_trip_west_of_utc(self):
        instant = local_date("2030-01-05", NY)
        assert local_date_of(instant, NY) == date(2030, 1, 5)

    def test_local_datetime(self):
        instant = local_datetime("2030-07-04", "18:00", NY)
        # EDT in July
        assert instant.astimezone(UTC) == datetime(2030, 7, 4, 22, 0, tzinfo=UTC)

    def test_end_of_day(self):
        end = local_datetime("2030-01-05", "24:00", NY)
        assert end == local_date("2030-01-06", NY)

    def test_invalid_input(self):
        assert local_datetime("2030-01-05", "25:00", NY) is None
        assert local_datetime("bad", "10:00", NY) is None


class TestWeekday:
    def test_sunday_is_zero(self):
        assert weekday("2030-01-06") == 0
        assert weekday("2030-01-05") == 6
        assert weekday("2030-01-03") == 4

    def test_independent_of_zone(self):
        # Weekday comes from the local calendar date, not an instant
        assert weekday("2030-01-04") == 5


class TestDayBoundaries:
    def test_half_open_day(self):
        start, end = day_boundaries("2030-01-05", NY)
        assert start == local_date("2030-01-05", NY)
        assert end == local_date("2030-01-06", NY)

    def test_dst_spring_forward_day_is_23_hours(self):
        start, end = day_boundaries("2030-03-10", NY)
        assert (end - start).total_seconds() == 23 * 3600

    def test_invalid(self):
        assert day_boundaries("2030-02-31", NY) is None


class TestDisplay:
    def test_renders_in_business_zone(self):
        instant = datetime(2030, 1, 5, 3, 30, tzinfo=UTC)  # 22:30 on the 4th in New York
        assert format_date_for_display(instant, NY) == "Friday, January 4, 2030"
        assert format_time_for_display(instant, NY) == "10:30 PM"

    def test_same_instant_other_zone(self):
        instant = datetime(2030, 1, 5, 3, 30, tzinfo=UTC)
        assert format_date_for_display(instant, TOKYO) == "Saturday, January 5, 2030"

    def test_noon_and_midnight(self):
        assert format_time_for_display(local_datetime("2030-01-05", "12:00", NY), NY) == "12:00 PM"
        assert format_time_for_display(local_datetime("2030-01-05", "00:15", NY), NY) == "12:15 AM"

    def test_end_at_midnight_reads_24(self):
        start = local_datetime("2030-01-05", "18:00", NY)
        end = local_datetime("2030-01-05", "24:00", NY)
        assert format_end_hhmm(start, end, NY) == "24:00"
        assert format_end_hhmm(start, local_datetime("2030-01-05", "22:00", NY), NY) == "22:00"
