"""Admin booking routes: calendar, detail, create, status and edits.

Every route requires an admin bearer token.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hallbook.core.database import get_db
from hallbook.core.dependencies import get_booking_context, get_notifier, require_admin
from hallbook.core.errors import ValidationError
from hallbook.models import BlockedDate, Booking, BookingType
from hallbook.routes.bookings import get_booking_or_404
from hallbook.schemas import (
    AdminBookingCreate,
    AdminBookingOut,
    AdminEventPatch,
    AdminShowingPatch,
    BookingCreated,
    CalendarOut,
    StatusUpdate,
    blocked_date_out,
    serialize_booking,
)
from hallbook.services.bookings import (
    BookingContext,
    admin_update_event,
    admin_update_showing,
    change_status,
    create_event,
    create_showing,
)
from hallbook.services.calendar import day_boundaries
from hallbook.services.notifications import Notifier, schedule_notifications

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/calendar", response_model=CalendarOut)
async def calendar(
    start: str = Query(),
    end: str = Query(),
    ctx: BookingContext = Depends(get_booking_context),
    db: AsyncSession = Depends(get_db),
):
    """Bookings and blocked dates from start to end, both days inclusive."""
    first = day_boundaries(start, ctx.tz)
    last = day_boundaries(end, ctx.tz)
    if first is None or last is None:
        raise ValidationError("Invalid date format (YYYY-MM-DD).", code="invalid_date")
    range_start, range_end = first[0], last[1]
    if range_end <= range_start:
        raise ValidationError("End date must not be before start date.")

    bookings = await db.execute(
        select(Booking)
        .where(Booking.start_time >= range_start, Booking.start_time < range_end)
        .order_by(Booking.start_time)
    )
    blocked = await db.execute(
        select(BlockedDate)
        .where(BlockedDate.date >= range_start, BlockedDate.date < range_end)
        .order_by(BlockedDate.date)
    )
    return CalendarOut(
        start=start,
        end=end,
        bookings=[serialize_booking(b, ctx.tz, AdminBookingOut) for b in bookings.scalars().all()],
        blocked_dates=[blocked_date_out(row, ctx.tz) for row in blocked.scalars().all()],
    )


@router.get("/bookings/{booking_id}", response_model=AdminBookingOut)
async def booking_detail(
    booking_id: str,
    ctx: BookingContext = Depends(get_booking_context),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking_or_404(db, booking_id)
    return serialize_booking(booking, ctx.tz, AdminBookingOut)


@router.post("/bookings", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: AdminBookingCreate,
    background: BackgroundTasks,
    ctx: BookingContext = Depends(get_booking_context),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    if body.booking_type == BookingType.EVENT:
        outcome = await create_event(
            db,
            ctx,
            body,
            status=body.status,
            payment_method=body.payment_method,
            amount_paid_cents=body.amount_paid_cents,
            admin_notes=body.admin_notes,
            issue_token=True,
        )
    else:
        outcome = await create_showing(db, ctx, body, status=body.status, admin_notes=body.admin_notes)

    await db.commit()
    schedule_notifications(background, notifier, outcome.booking, outcome.events)

    booking = outcome.booking
    return BookingCreated(
        booking_id=booking.id,
        booking=serialize_booking(booking, ctx.tz),
        management_token=booking.management_token,
    )


@router.patch("/bookings/{booking_id}/status", response_model=AdminBookingOut)
async def update_status(
    booking_id: str,
    body: StatusUpdate,
    background: BackgroundTasks,
    admin: str = Depends(require_admin),
    ctx: BookingContext = Depends(get_booking_context),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking_or_404(db, booking_id)
    result = await change_status(db, booking, body.status, admin=True)
    if result.changed:
        logger.info("Admin %s set booking %s to %s", admin, booking.id, result.current)

    await db.commit()
    schedule_notifications(background, notifier, booking, result.events)
    return serialize_booking(booking, ctx.tz, AdminBookingOut)


@router.patch("/events/{booking_id}", response_model=AdminBookingOut)
async def update_event(
    booking_id: str,
    body: AdminEventPatch,
    background: BackgroundTasks,
    ctx: BookingContext = Depends(get_booking_context),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking_or_404(db, booking_id)
    outcome = await admin_update_event(db, ctx, booking, body.model_dump(exclude_unset=True))

    await db.commit()
    schedule_notifications(background, notifier, booking, outcome.events)
    return serialize_booking(booking, ctx.tz, AdminBookingOut)


@router.patch("/showings/{booking_id}", response_model=AdminBookingOut)
async def update_showing(
    booking_id: str,
    body: AdminShowingPatch,
    background: BackgroundTasks,
    ctx: BookingContext = Depends(get_booking_context),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking_or_404(db, booking_id)
    outcome = await admin_update_showing(db, ctx, booking, body.model_dump(exclude_unset=True))

    await db.commit()
    schedule_notifications(background, notifier, booking, outcome.events)
    return serialize_booking(booking, ctx.tz, AdminBookingOut)
