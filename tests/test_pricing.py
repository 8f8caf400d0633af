"""Pricing engine: rate selection, duration rules, add-ons and totals."""

from datetime import date
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from hallbook.core.errors import InvariantError, PricingError, ValidationError
from hallbook.models import BookingType, DayType
from hallbook.services.calendar import local_datetime
from hallbook.services.pricing import (
    AddOnLine,
    RateCard,
    assert_booking_total,
    calculate_pricing,
    get_day_type,
    normalize_extra_setup_hours,
    price_add_on_lines,
    sanitize_add_on_requests,
)

NY = ZoneInfo("America/New_York")

RATES = RateCard(
    weekday_rate_cents=12500,
    weekend_rate_cents=17500,
    extra_setup_hourly_cents=5000,
    security_deposit_cents=30000,
)


def _price(date_str, start, end, extra=0, add_ons=(), booking_type=BookingType.EVENT, rates=RATES):
    y, m, d = (int(p) for p in date_str.split("-"))
    return calculate_pricing(
        date(y, m, d),
        local_datetime(date_str, start, NY),
        local_datetime(date_str, end, NY),
        extra,
        booking_type,
        list(add_ons),
        rates,
        NY,
    )


class TestDayType:
    def test_monday_to_thursday_weekday(self):
        for day in (7, 8, 9, 10):  # Mon 2030-01-07 .. Thu 2030-01-10
            assert get_day_type(date(2030, 1, day)) == DayType.WEEKDAY

    def test_friday_to_sunday_weekend(self):
        for day in (4, 5, 6):
            assert get_day_type(date(2030, 1, day)) == DayType.WEEKEND


class TestEventPricing:
    def test_weekday_six_hours_with_setup(self):
        breakdown = _price("2030-01-02", "12:00", "18:00", extra=1)
        assert breakdown.day_type == DayType.WEEKDAY
        assert breakdown.event_hours == 6
        assert breakdown.hourly_rate_cents == 12500
        assert breakdown.base_amount_cents == 75000
        assert breakdown.extra_setup_cents == 5000
        assert breakdown.deposit_cents == 30000
        assert breakdown.total_cents == 110000

    def test_saturday_three_hours_rejected(self):
        with pytest.raises(PricingError, match="Weekend bookings must be at least 4 hours"):
            _price("2030-01-05", "14:00", "17:00")

    def test_friday_counts_as_weekend(self):
        with pytest.raises(PricingError):
            _price("2030-01-04", "18:00", "21:00")
        breakdown = _price("2030-01-04", "18:00", "22:00")
        assert breakdown.day_type == DayType.WEEKEND
        assert breakdown.base_amount_cents == 4 * 17500

    def test_weekend_exactly_four_hours_accepted(self):
        assert _price("2030-01-06", "10:00", "14:00").event_hours == 4

    def test_weekday_short_event_allowed(self):
        assert _price("2030-01-02", "10:00", "11:00").event_hours == 1

    def test_end_before_start_rejected(self):
        with pytest.raises(PricingError, match="after start"):
            _price("2030-01-02", "18:00", "12:00")
        with pytest.raises(PricingError):
            _price("2030-01-02", "12:00", "12:00")

    def test_partial_hours_rejected(self):
        with pytest.raises(PricingError, match="whole number of hours"):
            _price("2030-01-02", "12:00", "15:30")

    def test_outside_operating_hours_rejected(self):
        with pytest.raises(PricingError, match="operating hours"):
            _price("2030-01-02", "06:00", "10:00")

    def test_may_run_until_midnight(self):
        breakdown = _price("2030-01-05", "18:00", "24:00")
        assert breakdown.event_hours == 6

    def test_extra_setup_hours_clamped_and_truncated(self):
        assert _price("2030-01-02", "12:00", "14:00", extra=-3).extra_setup_cents == 0
        assert _price("2030-01-02", "12:00", "14:00", extra=2.9).extra_setup_hours == 2
        assert _price("2030-01-02", "12:00", "14:00", extra="abc").extra_setup_hours == 0

    def test_deposit_always_added(self):
        breakdown = _price("2030-01-02", "12:00", "13:00")
        assert breakdown.total_cents == 12500 + 30000

    def test_add_ons_in_total(self):
        lines = [AddOnLine("chairs", 10, 2500), AddOnLine("linens", 2, 1500)]
        breakdown = _price("2030-01-02", "12:00", "14:00", add_ons=lines)
        assert breakdown.add_ons_cents == 28000
        assert breakdown.total_cents == 2 * 12500 + 30000 + 28000

    def test_pricing_is_deterministic(self):
        first = _price("2030-01-05", "12:00", "20:00", extra=3)
        second = _price("2030-01-05", "12:00", "20:00", extra=3)
        assert first == second
        assert first.total_cents == (
            first.base_amount_cents + first.extra_setup_cents + first.deposit_cents + first.add_ons_cents
        )

    def test_pricing_error_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            _price("2030-01-05", "14:00", "16:00")


class TestShowingPricing:
    def test_showing_is_free(self):
        breakdown = _price("2030-01-05", "14:00", "14:30", extra=5, booking_type=BookingType.SHOWING)
        assert breakdown.total_cents == 0
        assert breakdown.deposit_cents == 0
        assert breakdown.duration_minutes == 30


class TestAddOnSanitizing:
    def test_drops_invalid_lines(self):
        raw = [
            {"add_on_id": "a", "quantity": 2},
            {"add_on_id": "b", "quantity": 0},
            {"add_on_id": "c", "quantity": -1},
            {"add_on_id": "d", "quantity": float("inf")},
            {"add_on_id": "", "quantity": 1},
            {"quantity": 1},
            "garbage",
            {"addOnId": "e", "quantity": "3"},
        ]
        assert sanitize_add_on_requests(raw) == [("a", 2), ("e", 3)]

    def test_merges_repeated_ids(self):
        assert sanitize_add_on_requests([{"add_on_id": "a", "quantity": 1}, {"add_on_id": "a", "quantity": 2}]) == [
            ("a", 3)
        ]

    def test_unknown_ids_dropped(self):
        catalog = {"a": SimpleNamespace(name="Chair", price_cents=2500)}
        lines = price_add_on_lines([("a", 2), ("missing", 1)], catalog)
        assert [(line.add_on_id, line.price_at_booking) for line in lines] == [("a", 2500)]

    def test_frozen_price_wins(self):
        catalog = {"a": SimpleNamespace(name="Chair", price_cents=3000)}
        lines = price_add_on_lines([("a", 1)], catalog, frozen_prices={"a": 2500})
        assert lines[0].price_at_booking == 2500


class TestTotalInvariant:
    def _booking(self, total):
        return SimpleNamespace(
            id="b1",
            base_amount_cents=75000,
            extra_setup_cents=5000,
            deposit_cents=30000,
            add_ons_cents=0,
            total_cents=total,
        )

    def test_consistent_total_passes(self):
        assert_booking_total(self._booking(110000))

    def test_mismatch_raises(self, caplog):
        with pytest.raises(InvariantError):
            assert_booking_total(self._booking(109999))
        assert "Pricing invariant violated" in caplog.text

    def test_normalize_extra_setup_hours(self):
        assert normalize_extra_setup_hours(None) == 0
        assert normalize_extra_setup_hours(True) == 0
        assert normalize_extra_setup_hours("4") == 4
