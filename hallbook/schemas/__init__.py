"""Pydantic schemas for API serialisation."""

from datetime import datetime, tzinfo
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from hallbook.models.booking import Booking, BookingType, PaymentMethod
from hallbook.services.calendar import date_string, format_end_hhmm, format_time_hhmm

# --- Auth ---


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


# --- Catalog ---


class AddOnOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None
    price_cents: int
    active: bool
    sort_order: int


class AddOnCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    price_cents: int = Field(ge=0)
    active: bool = True
    sort_order: int = 0


class AddOnUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    price_cents: int | None = Field(default=None, ge=0)
    active: bool | None = None
    sort_order: int | None = None


# --- Booking requests ---


class BookingCreate(BaseModel):
    booking_type: BookingType
    event_date: str
    start_time: str | None = None
    end_time: str | None = None
    appointment_time: str | None = None

    contact_name: str = Field(min_length=1, max_length=200)
    contact_email: EmailStr
    contact_phone: str | None = None
    notes: str | None = None

    event_type: str | None = None
    guest_count: int | None = Field(default=None, ge=0)
    extra_setup_hours: Any = 0
    rect_tables_requested: int | None = Field(default=None, ge=0)
    round_tables_requested: int | None = Field(default=None, ge=0)
    chairs_requested: int | None = Field(default=None, ge=0)
    setup_notes: str | None = None
    # Raw lines; malformed entries are dropped rather than rejected.
    add_ons: list[Any] | None = None


class AdminBookingCreate(BookingCreate):
    status: str | None = None
    payment_method: PaymentMethod | None = None
    amount_paid_cents: int = Field(default=0, ge=0)
    admin_notes: str | None = None


class ManagedBookingPatch(BaseModel):
    contact_name: str | None = Field(default=None, min_length=1, max_length=200)
    contact_email: EmailStr | None = None
    contact_phone: str | None = None
    notes: str | None = None
    event_type: str | None = None
    guest_count: int | None = Field(default=None, ge=0)
    rect_tables_requested: int | None = Field(default=None, ge=0)
    round_tables_requested: int | None = Field(default=None, ge=0)
    chairs_requested: int | None = Field(default=None, ge=0)
    setup_notes: str | None = None
    add_ons: list[Any] | None = None


class AdminEventPatch(ManagedBookingPatch):
    event_date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    extra_setup_hours: Any = None
    payment_method: PaymentMethod | None = None
    amount_paid_cents: int | None = Field(default=None, ge=0)
    admin_notes: str | None = None
    status: str | None = None


class AdminShowingPatch(BaseModel):
    event_date: str | None = None
    appointment_time: str | None = None
    contact_name: str | None = Field(default=None, min_length=1, max_length=200)
    contact_email: EmailStr | None = None
    contact_phone: str | None = None
    notes: str | None = None
    admin_notes: str | None = None
    status: str | None = None


class StatusUpdate(BaseModel):
    status: str


class ContractAccept(BaseModel):
    signer_name: str | None = None


# --- Booking responses ---


class BookingAddOnOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    add_on_id: str
    name: str = ""
    quantity: int
    price_at_booking: int


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_type: BookingType
    status: str
    event_date: str = ""
    start_time: str = ""
    end_time: str = ""
    starts_at: datetime
    ends_at: datetime
    cancelled_at: datetime | None

    day_type: str
    hourly_rate_cents: int
    event_hours: int
    extra_setup_hours: int
    base_amount_cents: int
    extra_setup_cents: int
    deposit_cents: int
    add_ons_cents: int
    total_cents: int

    payment_method: PaymentMethod | None
    stripe_payment_status: str | None
    amount_paid_cents: int
    balance_due_cents: int

    contract_accepted: bool
    contract_accepted_at: datetime | None
    contract_signer_name: str | None
    contract_version: str | None

    event_type: str | None
    guest_count: int | None
    rect_tables_requested: int | None
    round_tables_requested: int | None
    chairs_requested: int | None
    setup_notes: str | None

    contact_name: str
    contact_email: str
    contact_phone: str | None
    notes: str | None

    add_ons: list[BookingAddOnOut] = []
    created_at: datetime


class AdminBookingOut(BookingOut):
    admin_notes: str | None
    contract_text: str | None
    stripe_checkout_session_id: str | None
    management_token: str | None


def serialize_booking(booking: Booking, tz: tzinfo, schema: type[BookingOut] = BookingOut) -> BookingOut:
    """Build a response with wall-clock fields rendered in the business timezone."""
    data = {name: getattr(booking, name) for name in schema.model_fields if hasattr(booking, name)}
    data["starts_at"] = booking.start_time
    data["ends_at"] = booking.end_time
    data["event_date"] = date_string(booking.start_time, tz)
    data["start_time"] = format_time_hhmm(booking.start_time, tz)
    data["end_time"] = format_end_hhmm(booking.start_time, booking.end_time, tz)
    data["add_ons"] = [
        BookingAddOnOut(
            add_on_id=line.add_on_id,
            name=line.add_on.name if line.add_on else "",
            quantity=line.quantity,
            price_at_booking=line.price_at_booking,
        )
        for line in booking.add_ons
    ]
    return schema.model_validate(data)


class BookingCreated(BaseModel):
    booking_id: str
    booking: BookingOut
    management_token: str | None = None


class CheckoutRequest(BaseModel):
    booking_id: str


class CheckoutOut(BaseModel):
    session_id: str
    url: str | None


class PaymentConfirmRequest(BaseModel):
    session_id: str | None = None


class PaymentConfirmOut(BaseModel):
    success: bool = True
    already_processed: bool = False
    booking: BookingOut
    management_token: str | None


class CancelOut(BaseModel):
    success: bool = True
    already_cancelled: bool = False
    booking: BookingOut


# --- Availability ---


class AvailabilityOut(BaseModel):
    date: str
    status: str
    reason: str | None = None


class SlotOut(BaseModel):
    time: str
    available: bool
    reason: str | None = None


class ShowingSlotsOut(BaseModel):
    date: str
    blocked: bool
    reason: str | None
    duration_minutes: int
    slots: list[SlotOut]


class DaySummaryBooking(BaseModel):
    id: str
    booking_type: BookingType
    status: str
    start_time: str
    end_time: str
    contact_name: str


class DaySummaryOut(BaseModel):
    date: str
    status: str
    reason: str | None
    bookings: list[DaySummaryBooking]


# --- Admin schedule ---


class BlockedDateCreate(BaseModel):
    date: str
    reason: str | None = None


class BlockedDateOut(BaseModel):
    id: str
    date: str
    reason: str | None


class ShowingWindow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    enabled: bool = True


class ShowingSettings(BaseModel):
    windows: list[ShowingWindow]
    default_duration_minutes: int = Field(default=30, ge=5, le=240)
    max_slots_per_window: int = Field(default=999, ge=1)


class CalendarOut(BaseModel):
    start: str
    end: str
    bookings: list[AdminBookingOut]
    blocked_dates: list[BlockedDateOut]


def blocked_date_out(row, tz: tzinfo) -> BlockedDateOut:
    return BlockedDateOut(id=row.id, date=date_string(row.date, tz), reason=row.reason)
