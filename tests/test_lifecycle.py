"""Booking status machines for events and showings."""

from datetime import UTC, datetime

import pytest

from hallbook.core.errors import ValidationError
from hallbook.models import Booking, BookingType
from hallbook.services.lifecycle import (
    DomainEvent,
    allowed_targets,
    can_transition,
    cancel,
    ensure_editable,
    parse_status,
    transition,
)


def _booking(booking_type=BookingType.EVENT, status="PENDING"):
    return Booking(booking_type=booking_type, status=status, contact_name="A", contact_email="a@example.com")


class TestEventMachine:
    def test_pending_to_confirmed_emits_confirmation(self):
        booking = _booking()
        result = transition(booking, "CONFIRMED")
        assert result.changed
        assert booking.status == "CONFIRMED"
        assert result.events == [DomainEvent.BOOKING_CONFIRMED]

    def test_confirmed_again_is_noop(self):
        booking = _booking(status="CONFIRMED")
        result = transition(booking, "CONFIRMED")
        assert not result.changed
        assert result.events == []

    def test_confirmed_to_pending_admin_only(self):
        with pytest.raises(ValidationError) as exc:
            transition(_booking(status="CONFIRMED"), "PENDING")
        assert exc.value.code == "invalid_transition"

        booking = _booking(status="CONFIRMED")
        result = transition(booking, "PENDING", admin=True)
        assert booking.status == "PENDING"
        assert result.events == []

    def test_cancel_sets_timestamp_and_emits_once(self):
        booking = _booking(status="CONFIRMED")
        now = datetime(2030, 1, 1, tzinfo=UTC)
        result = cancel(booking, now=now)
        assert booking.status == "CANCELLED"
        assert booking.cancelled_at == now
        assert result.events == [DomainEvent.BOOKING_CANCELLED]

    def test_repeat_cancel_short_circuits(self):
        booking = _booking(status="CANCELLED")
        result = cancel(booking)
        assert result.already_cancelled
        assert not result.changed
        assert result.events == []

    def test_cancelled_is_terminal(self):
        for target in ("PENDING", "CONFIRMED"):
            with pytest.raises(ValidationError) as exc:
                transition(_booking(status="CANCELLED"), target, admin=True)
            assert exc.value.code == "cancelled"

    def test_completed_not_valid_for_events(self):
        with pytest.raises(ValidationError):
            transition(_booking(), "COMPLETED")


class TestShowingMachine:
    def test_pending_to_completed(self):
        booking = _booking(BookingType.SHOWING)
        result = transition(booking, "COMPLETED")
        assert booking.status == "COMPLETED"
        assert result.events == []

    def test_completed_can_be_cancelled(self):
        booking = _booking(BookingType.SHOWING, "COMPLETED")
        assert cancel(booking).events == [DomainEvent.BOOKING_CANCELLED]

    def test_confirmed_not_valid_for_showings(self):
        with pytest.raises(ValidationError):
            transition(_booking(BookingType.SHOWING), "CONFIRMED", admin=True)

    def test_completed_cannot_reopen(self):
        assert not can_transition(BookingType.SHOWING, "COMPLETED", "PENDING", admin=True)


class TestHelpers:
    def test_status_parsing_is_case_insensitive(self):
        assert parse_status(BookingType.EVENT, " confirmed ").value == "CONFIRMED"

    def test_allowed_targets(self):
        assert allowed_targets(BookingType.EVENT, "PENDING") == {"CONFIRMED", "CANCELLED"}
        assert allowed_targets(BookingType.EVENT, "CONFIRMED", admin=True) == {"CANCELLED", "PENDING"}
        assert allowed_targets(BookingType.SHOWING, "CANCELLED") == set()

    def test_cancelled_booking_not_editable(self):
        with pytest.raises(ValidationError, match="cancelled"):
            ensure_editable(_booking(status="CANCELLED"))
        ensure_editable(_booking(status="CONFIRMED"))
