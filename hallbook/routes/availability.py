"""Public availability routes: day status, showing slots, day summary, add-on catalog."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hallbook.core.database import get_db
from hallbook.core.dependencies import get_booking_context
from hallbook.models import AddOn, Booking, EventStatus
from hallbook.schemas import (
    AddOnOut,
    AvailabilityOut,
    DaySummaryBooking,
    DaySummaryOut,
    ShowingSlotsOut,
    SlotOut,
)
from hallbook.services.availability import get_day_status, get_showing_config, list_showing_slots
from hallbook.services.bookings import BookingContext
from hallbook.services.calendar import day_boundaries, format_end_hhmm, format_time_hhmm

router = APIRouter(tags=["availability"])


@router.get("/availability", response_model=AvailabilityOut)
async def availability(
    date_str: str = Query(alias="date"),
    ctx: BookingContext = Depends(get_booking_context),
    db: AsyncSession = Depends(get_db),
):
    status, blocked = await get_day_status(db, date_str, ctx.tz)
    return AvailabilityOut(date=date_str, status=status.value, reason=blocked.reason if blocked else None)


@router.get("/showing-slots", response_model=ShowingSlotsOut)
async def showing_slots(
    date_str: str = Query(alias="date"),
    ctx: BookingContext = Depends(get_booking_context),
    db: AsyncSession = Depends(get_db),
):
    config = await get_showing_config(db, ctx.default_showing_duration_minutes)
    day = await list_showing_slots(
        db,
        date_str,
        ctx.tz,
        config=config,
        allow_on_event_days=ctx.allow_showings_on_event_days,
        now=datetime.now(UTC),
    )
    return ShowingSlotsOut(
        date=day.date,
        blocked=day.blocked,
        reason=day.reason,
        duration_minutes=config.default_duration_minutes,
        slots=[SlotOut(time=s.time, available=s.available, reason=s.reason) for s in day.slots],
    )


@router.get("/day-summary", response_model=DaySummaryOut)
async def day_summary(
    date_str: str = Query(alias="date"),
    ctx: BookingContext = Depends(get_booking_context),
    db: AsyncSession = Depends(get_db),
):
    status, blocked = await get_day_status(db, date_str, ctx.tz)
    start, end = day_boundaries(date_str, ctx.tz)

    result = await db.execute(
        select(Booking)
        .where(
            Booking.start_time >= start,
            Booking.start_time < end,
            Booking.status != EventStatus.CANCELLED.value,
        )
        .order_by(Booking.start_time)
    )
    bookings = [
        DaySummaryBooking(
            id=b.id,
            booking_type=b.booking_type,
            status=b.status,
            start_time=format_time_hhmm(b.start_time, ctx.tz),
            end_time=format_end_hhmm(b.start_time, b.end_time, ctx.tz),
            contact_name=b.contact_name,
        )
        for b in result.scalars().all()
    ]
    return DaySummaryOut(
        date=date_str,
        status=status.value,
        reason=blocked.reason if blocked else None,
        bookings=bookings,
    )


@router.get("/addons", response_model=list[AddOnOut])
async def list_add_ons(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(AddOn).where(AddOn.active.is_(True)).order_by(AddOn.sort_order, AddOn.name)
    )
    return result.scalars().all()
