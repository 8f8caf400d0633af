"""Booking models.

A booking reserves the hall either for a paid multi-hour EVENT or for a free
SHOWING (a short tour). Both kinds share one table; the booking type selects
which status machine and which columns apply.
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, Enum, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hallbook.models.base import Base, IdMixin, TimestampMixin, UTCDateTime, new_id, utcnow
from hallbook.models.catalog import AddOn


class BookingType(enum.StrEnum):
    EVENT = "EVENT"
    SHOWING = "SHOWING"


class EventStatus(enum.StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class ShowingStatus(enum.StrEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DayType(enum.StrEnum):
    WEEKDAY = "weekday"
    WEEKEND = "weekend"


class PaymentMethod(enum.StrEnum):
    STRIPE = "STRIPE"
    CASH = "CASH"
    CHECK = "CHECK"
    COMP = "COMP"
    OTHER = "OTHER"


# Statuses that occupy the calendar day for an EVENT
BLOCKING_EVENT_STATUSES = (EventStatus.PENDING.value, EventStatus.CONFIRMED.value)

_ONE_EVENT_PER_DAY = "booking_type = 'EVENT' AND status IN ('PENDING', 'CONFIRMED')"


def _enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    return Enum(enum_cls, name=name, values_callable=lambda e: [x.value for x in e])


class Booking(IdMixin, TimestampMixin, Base):
    __tablename__ = "bookings"

    booking_type: Mapped[BookingType] = mapped_column(_enum(BookingType, "booking_type"), nullable=False)

    # When: event_date is local midnight of the booked day, as an instant
    event_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # Pricing snapshot (all zero for showings)
    day_type: Mapped[DayType] = mapped_column(_enum(DayType, "day_type"), default=DayType.WEEKDAY, nullable=False)
    hourly_rate_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    event_hours: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    extra_setup_hours: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    base_amount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    extra_setup_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    deposit_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # EventStatus or ShowingStatus value, depending on booking_type
    status: Mapped[str] = mapped_column(String(20), default=EventStatus.PENDING.value, nullable=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    # Payment (events only)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(_enum(PaymentMethod, "payment_method"))
    stripe_checkout_session_id: Mapped[str | None] = mapped_column(String(255))
    stripe_payment_status: Mapped[str | None] = mapped_column(String(50))
    amount_paid_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Contract audit snapshot (events only)
    contract_accepted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    contract_accepted_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    contract_signer_name: Mapped[str | None] = mapped_column(String(200))
    contract_version: Mapped[str | None] = mapped_column(String(20))
    contract_text: Mapped[str | None] = mapped_column(Text)

    # Setup preferences (events only)
    event_type: Mapped[str | None] = mapped_column(String(100))
    guest_count: Mapped[int | None] = mapped_column(Integer)
    rect_tables_requested: Mapped[int | None] = mapped_column(Integer)
    round_tables_requested: Mapped[int | None] = mapped_column(Integer)
    chairs_requested: Mapped[int | None] = mapped_column(Integer)
    setup_notes: Mapped[str | None] = mapped_column(Text)

    # Contact
    contact_name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_email: Mapped[str] = mapped_column(String(254), nullable=False)
    contact_phone: Mapped[str | None] = mapped_column(String(50))
    notes: Mapped[str | None] = mapped_column(Text)
    admin_notes: Mapped[str | None] = mapped_column(Text)

    # Self-service capability
    management_token: Mapped[str | None] = mapped_column(String(128), unique=True)
    management_token_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    add_ons: Mapped[list["BookingAddOn"]] = relationship(
        back_populates="booking",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BookingAddOn.created_at",
    )

    __table_args__ = (
        # At most one blocking event per calendar day. The availability pre-check
        # is not atomic with the insert, so the store enforces it too.
        Index(
            "uq_bookings_one_event_per_day",
            "event_date",
            unique=True,
            postgresql_where=text(_ONE_EVENT_PER_DAY),
            sqlite_where=text(_ONE_EVENT_PER_DAY),
        ),
        Index("ix_bookings_type_date", "booking_type", "event_date"),
    )

    @property
    def is_event(self) -> bool:
        return self.booking_type == BookingType.EVENT

    @property
    def is_cancelled(self) -> bool:
        return self.status == EventStatus.CANCELLED.value

    @property
    def add_ons_cents(self) -> int:
        return sum(line.quantity * line.price_at_booking for line in self.add_ons)

    @property
    def balance_due_cents(self) -> int:
        return max(0, self.total_cents - self.amount_paid_cents)

    def __repr__(self) -> str:
        return f"<Booking {self.booking_type} {self.event_date:%Y-%m-%d} status={self.status}>"


class BookingAddOn(Base):
    """An add-on line on a booking, with the price frozen at booking time."""

    __tablename__ = "booking_add_ons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    booking_id: Mapped[str] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    add_on_id: Mapped[str] = mapped_column(ForeignKey("add_ons.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    price_at_booking: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    booking: Mapped["Booking"] = relationship(back_populates="add_ons")
    add_on: Mapped["AddOn"] = relationship(lazy="selectin")

    def __repr__(self) -> str:
        return f"<BookingAddOn {self.add_on_id} x{self.quantity} @ {self.price_at_booking}>"


class BookingPayment(Base):
    """A checkout session applied to a booking. Each session is applied at most once."""

    __tablename__ = "booking_payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    booking_id: Mapped[str] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    stripe_checkout_session_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    purpose: Mapped[str | None] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<BookingPayment {self.stripe_checkout_session_id} {self.amount_cents}c>"
