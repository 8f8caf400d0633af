"""All models imported here for metadata discovery."""

from hallbook.models.base import Base
from hallbook.models.booking import (
    BLOCKING_EVENT_STATUSES,
    Booking,
    BookingAddOn,
    BookingPayment,
    BookingType,
    DayType,
    EventStatus,
    PaymentMethod,
    ShowingStatus,
)
from hallbook.models.catalog import AddOn
from hallbook.models.schedule import SHOWING_CONFIG_KEY, BlockedDate, ShowingAvailability, ShowingConfig

__all__ = [
    "Base",
    "Booking",
    "BookingAddOn",
    "BookingPayment",
    "BookingType",
    "EventStatus",
    "ShowingStatus",
    "DayType",
    "PaymentMethod",
    "BLOCKING_EVENT_STATUSES",
    "AddOn",
    "BlockedDate",
    "ShowingAvailability",
    "ShowingConfig",
    "SHOWING_CONFIG_KEY",
]
