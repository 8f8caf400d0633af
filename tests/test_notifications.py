"""Notification dispatch and email templates."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest

from hallbook.core.config import Settings
from hallbook.core.errors import UpstreamError
from hallbook.models import BookingType
from hallbook.services.email import EmailNotifier, format_cents, render, secure_base_url
from hallbook.services.lifecycle import DomainEvent
from hallbook.services.notifications import (
    AddOnNotice,
    BookingNotice,
    NotificationKind,
    dispatch,
    notifications_for,
)

from conftest import FakeNotifier


def _notice(booking_type=BookingType.EVENT, **overrides):
    data = dict(
        id="booking-1",
        booking_type=booking_type,
        status="CONFIRMED",
        event_date=datetime(2030, 1, 5, 5, 0, tzinfo=UTC),
        start_time=datetime(2030, 1, 5, 17, 0, tzinfo=UTC),  # 12:00 PM New York
        end_time=datetime(2030, 1, 5, 23, 0, tzinfo=UTC),
        contact_name="Dana Whitfield",
        contact_email="dana@example.com",
        event_type="Birthday",
        guest_count=60,
        chairs_requested=60,
        total_cents=135000,
        amount_paid_cents=135000,
        management_token="a" * 64,
        last_payment_cents=135000,
        add_ons=(AddOnNotice(name="Wicker Chair", description=None, quantity=10, price_at_booking=2500),),
    )
    data.update(overrides)
    return BookingNotice(**data)


@pytest.fixture
def config():
    return Settings(
        business_name="Greenwood Hall",
        business_timezone="America/New_York",
        public_base_url="http://hall.test/",
        admin_notification_email="owner@hall.test",
    )


class TestEventMapping:
    def test_event_confirmation_goes_to_customer_and_admin(self):
        kinds = notifications_for(DomainEvent.BOOKING_CONFIRMED, BookingType.EVENT)
        assert kinds == [NotificationKind.EVENT_CONFIRMATION, NotificationKind.ADMIN_CONFIRMATION]

    def test_cancellation_is_flavoured_by_type(self):
        assert notifications_for(DomainEvent.BOOKING_CANCELLED, BookingType.SHOWING) == [
            NotificationKind.SHOWING_CANCELLATION,
            NotificationKind.ADMIN_CANCELLATION,
        ]
        assert notifications_for(DomainEvent.BOOKING_CANCELLED, BookingType.EVENT)[0] == (
            NotificationKind.EVENT_CANCELLATION
        )

    def test_new_showing_confirms_immediately(self):
        assert NotificationKind.SHOWING_CONFIRMATION in notifications_for(
            DomainEvent.BOOKING_CREATED, BookingType.SHOWING
        )

    def test_new_event_only_tells_admin(self):
        assert notifications_for(DomainEvent.BOOKING_CREATED, BookingType.EVENT) == [
            NotificationKind.ADMIN_NEW_BOOKING
        ]


@pytest.mark.asyncio
async def test_dispatch_sends_every_kind():
    notifier = FakeNotifier()
    delivered = await dispatch(notifier, [DomainEvent.BOOKING_CONFIRMED, DomainEvent.PAYMENT_RECEIVED], _notice())
    assert delivered == 3
    assert notifier.kinds() == [
        NotificationKind.EVENT_CONFIRMATION,
        NotificationKind.ADMIN_CONFIRMATION,
        NotificationKind.PAYMENT_RECEIPT,
    ]


@pytest.mark.asyncio
async def test_dispatch_failure_is_logged_not_raised(caplog):
    notifier = FakeNotifier()
    notifier.fail = True
    delivered = await dispatch(notifier, [DomainEvent.BOOKING_CANCELLED], _notice())
    assert delivered == 0
    assert "Notification event_cancellation failed for booking booking-1" in caplog.text
    assert "a" * 64 not in caplog.text


class TestTemplates:
    def test_event_confirmation_body(self, config):
        subject, body = render(NotificationKind.EVENT_CONFIRMATION, _notice(), config)
        assert subject == "Your event at Greenwood Hall is confirmed"
        assert "Saturday, January 5, 2030, 12:00 PM - 6:00 PM" in body
        assert "Wicker Chair x10 ($250.00)" in body
        assert "Payment received: $1,350.00 of $1,350.00" in body
        assert "Chairs: 60" in body

    def test_management_link_is_https(self, config):
        _, body = render(NotificationKind.SHOWING_CONFIRMATION, _notice(BookingType.SHOWING), config)
        assert f"https://hall.test/manage/booking/{'a' * 64}" in body
        assert "http://" not in body

    def test_receipt_shows_balance(self, config):
        notice = _notice(amount_paid_cents=100000, last_payment_cents=100000)
        _, body = render(NotificationKind.PAYMENT_RECEIPT, notice, config)
        assert "We received your payment of $1,000.00" in body
        assert "Balance due: $350.00" in body

    def test_admin_notice(self, config):
        subject, body = render(NotificationKind.ADMIN_NEW_BOOKING, _notice(status="PENDING"), config)
        assert subject == "New booking: Dana Whitfield (event)"
        assert "Status: PENDING" in body

    def test_helpers(self):
        assert format_cents(110000) == "$1,100.00"
        assert secure_base_url("hall.test/") == "https://hall.test"
        assert secure_base_url("https://hall.test") == "https://hall.test"


@pytest.mark.asyncio
@patch("hallbook.services.email.aiosmtplib.send", new_callable=AsyncMock)
async def test_email_notifier_routes_recipients(mock_send, config):
    notifier = EmailNotifier(config)
    await notifier.send(NotificationKind.EVENT_CONFIRMATION, _notice())
    await notifier.send(NotificationKind.ADMIN_CONFIRMATION, _notice())

    recipients = [call.args[0]["To"] for call in mock_send.call_args_list]
    assert recipients == ["dana@example.com", "owner@hall.test"]


@pytest.mark.asyncio
@patch("hallbook.services.email.aiosmtplib.send", new_callable=AsyncMock)
async def test_smtp_failure_is_upstream_error(mock_send, config):
    mock_send.side_effect = aiosmtplib.SMTPConnectError("refused")
    with pytest.raises(UpstreamError):
        await EmailNotifier(config).send(NotificationKind.EVENT_CONFIRMATION, _notice())
