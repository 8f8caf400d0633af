"""Email sending via SMTP.

EmailNotifier renders one plain-text template per NotificationKind and sends
it with aiosmtplib. Customer templates go to the booking's contact address;
admin templates go to the configured notification address.
"""

import logging
from email.message import EmailMessage

import aiosmtplib

from hallbook.core.config import Settings, settings
from hallbook.core.errors import UpstreamError
from hallbook.services.calendar import format_date_for_display, format_time_for_display
from hallbook.services.notifications import ADMIN_KINDS, BookingNotice, NotificationKind
from hallbook.services.tokens import management_url

logger = logging.getLogger(__name__)


async def send_email(to: str, subject: str, body: str, config: Settings = settings) -> None:
    """Send a plain-text email via SMTP."""
    message = EmailMessage()
    message["From"] = config.smtp_from
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)

    try:
        await aiosmtplib.send(message, hostname=config.smtp_host, port=config.smtp_port)
    except aiosmtplib.SMTPException as exc:
        raise UpstreamError(f"Could not send email: {exc}") from exc


def format_cents(cents: int, currency: str = "usd") -> str:
    symbol = "$" if currency.lower() == "usd" else ""
    return f"{symbol}{cents / 100:,.2f}"


def secure_base_url(base_url: str) -> str:
    """Management links are always sent over HTTPS."""
    url = base_url.strip().rstrip("/")
    if url.startswith("http://"):
        return "https://" + url.removeprefix("http://")
    if not url.startswith("https://"):
        return "https://" + url
    return url


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def _when(notice: BookingNotice, config: Settings) -> str:
    tz = config.tz
    return (
        f"{format_date_for_display(notice.event_date, tz)}, "
        f"{format_time_for_display(notice.start_time, tz)} - {format_time_for_display(notice.end_time, tz)}"
    )


def _manage_line(notice: BookingNotice, config: Settings) -> str:
    if not notice.management_token:
        return ""
    link = management_url(secure_base_url(config.public_base_url), notice.management_token)
    return f"View or manage your booking:\n{link}\n\n"


def _setup_lines(notice: BookingNotice) -> str:
    lines = []
    if notice.event_type:
        lines.append(f"Event type: {notice.event_type}")
    if notice.guest_count is not None:
        lines.append(f"Guests: {notice.guest_count}")
    if notice.rect_tables_requested is not None:
        lines.append(f"Rectangular tables: {notice.rect_tables_requested}")
    if notice.round_tables_requested is not None:
        lines.append(f"Round tables: {notice.round_tables_requested}")
    if notice.chairs_requested is not None:
        lines.append(f"Chairs: {notice.chairs_requested}")
    if notice.setup_notes:
        lines.append(f"Setup notes: {notice.setup_notes}")
    return "\n".join(lines) + "\n\n" if lines else ""


def _add_on_lines(notice: BookingNotice, currency: str) -> str:
    if not notice.add_ons:
        return ""
    lines = ["Add-ons:"]
    for item in notice.add_ons:
        subtotal = format_cents(item.quantity * item.price_at_booking, currency)
        lines.append(f"  {item.name} x{item.quantity} ({subtotal})")
    return "\n".join(lines) + "\n\n"


def render_event_confirmation(notice: BookingNotice, config: Settings) -> tuple[str, str]:
    currency = config.currency
    paid = (
        f"Payment received: {format_cents(notice.amount_paid_cents, currency)} "
        f"of {format_cents(notice.total_cents, currency)}\n\n"
    )
    body = (
        f"Hi {notice.contact_name},\n\n"
        f"Your event at {config.business_name} is confirmed.\n\n"
        f"When: {_when(notice, config)}\n\n"
        f"{_setup_lines(notice)}"
        f"{_add_on_lines(notice, currency)}"
        f"{paid}"
        f"{_manage_line(notice, config)}"
        f"{config.business_name}"
    )
    return f"Your event at {config.business_name} is confirmed", body


def render_showing_confirmation(notice: BookingNotice, config: Settings) -> tuple[str, str]:
    body = (
        f"Hi {notice.contact_name},\n\n"
        f"Your showing at {config.business_name} is booked.\n\n"
        f"When: {_when(notice, config)}\n\n"
        f"{_manage_line(notice, config)}"
        f"{config.business_name}"
    )
    return f"Your showing at {config.business_name}", body


def render_cancellation(notice: BookingNotice, config: Settings) -> tuple[str, str]:
    label = "event" if notice.is_event else "showing"
    body = (
        f"Hi {notice.contact_name},\n\n"
        f"Your {label} at {config.business_name} on {_when(notice, config)} has been cancelled.\n\n"
        f"If this is unexpected, reply to this email and we'll help.\n\n"
        f"{config.business_name}"
    )
    return f"Your {label} at {config.business_name} was cancelled", body


def render_booking_updated(notice: BookingNotice, config: Settings) -> tuple[str, str]:
    body = (
        f"Hi {notice.contact_name},\n\n"
        f"Your booking at {config.business_name} has been updated.\n\n"
        f"When: {_when(notice, config)}\n\n"
        f"{_setup_lines(notice)}"
        f"{_add_on_lines(notice, config.currency)}"
        f"{_manage_line(notice, config)}"
        f"{config.business_name}"
    )
    return f"Your booking at {config.business_name} was updated", body


def render_payment_receipt(notice: BookingNotice, config: Settings) -> tuple[str, str]:
    currency = config.currency
    balance = max(notice.total_cents - notice.amount_paid_cents, 0)
    body = (
        f"Hi {notice.contact_name},\n\n"
        f"We received your payment of {format_cents(notice.last_payment_cents, currency)}.\n\n"
        f"Total: {format_cents(notice.total_cents, currency)}\n"
        f"Paid to date: {format_cents(notice.amount_paid_cents, currency)}\n"
        f"Balance due: {format_cents(balance, currency)}\n\n"
        f"{_manage_line(notice, config)}"
        f"{config.business_name}"
    )
    return f"Payment receipt from {config.business_name}", body


def render_admin_notice(kind: NotificationKind, notice: BookingNotice, config: Settings) -> tuple[str, str]:
    headline = {
        NotificationKind.ADMIN_NEW_BOOKING: "New booking",
        NotificationKind.ADMIN_CONFIRMATION: "Booking confirmed",
        NotificationKind.ADMIN_CANCELLATION: "Booking cancelled",
    }[kind]
    body = (
        f"{headline}: {notice.booking_type.value} {notice.id}\n\n"
        f"When: {_when(notice, config)}\n"
        f"Status: {notice.status}\n"
        f"Contact: {notice.contact_name} <{notice.contact_email}>"
        f"{f' {notice.contact_phone}' if notice.contact_phone else ''}\n"
        f"Total: {format_cents(notice.total_cents, config.currency)}\n\n"
        f"{_setup_lines(notice)}"
        f"{_add_on_lines(notice, config.currency)}"
        f"{f'Notes: {notice.notes}' if notice.notes else ''}"
    )
    return f"{headline}: {notice.contact_name} ({notice.booking_type.value.lower()})", body.rstrip() + "\n"


def render(kind: NotificationKind, notice: BookingNotice, config: Settings) -> tuple[str, str]:
    if kind in ADMIN_KINDS:
        return render_admin_notice(kind, notice, config)
    if kind == NotificationKind.EVENT_CONFIRMATION:
        return render_event_confirmation(notice, config)
    if kind == NotificationKind.SHOWING_CONFIRMATION:
        return render_showing_confirmation(notice, config)
    if kind in (NotificationKind.EVENT_CANCELLATION, NotificationKind.SHOWING_CANCELLATION):
        return render_cancellation(notice, config)
    if kind == NotificationKind.BOOKING_UPDATED:
        return render_booking_updated(notice, config)
    if kind == NotificationKind.PAYMENT_RECEIPT:
        return render_payment_receipt(notice, config)
    raise ValueError(f"No template for notification {kind}")


class EmailNotifier:
    """Notifier that delivers over SMTP."""

    def __init__(self, config: Settings = settings):
        self.config = config

    async def send(self, kind: NotificationKind, notice: BookingNotice) -> None:
        to = self.config.admin_notification_email if kind in ADMIN_KINDS else notice.contact_email
        if not to:
            logger.warning("No recipient for %s on booking %s", kind.value, notice.id)
            return
        subject, body = render(kind, notice, self.config)
        await send_email(to, subject, body, self.config)
        logger.info("Sent %s email for booking %s", kind.value, notice.id)
