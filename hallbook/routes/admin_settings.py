"""Admin settings routes: blocked dates, add-on catalog and showing availability."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hallbook.core.database import get_db
from hallbook.core.dependencies import get_booking_context, require_admin
from hallbook.core.errors import ConflictError, NotFoundError, ValidationError
from hallbook.models import SHOWING_CONFIG_KEY, AddOn, BlockedDate, BookingAddOn, ShowingAvailability, ShowingConfig
from hallbook.schemas import (
    AddOnCreate,
    AddOnOut,
    AddOnUpdate,
    BlockedDateCreate,
    BlockedDateOut,
    ShowingSettings,
    ShowingWindow,
    blocked_date_out,
)
from hallbook.services.availability import get_showing_config
from hallbook.services.bookings import BookingContext
from hallbook.services.calendar import MIDNIGHT_END, hhmm, local_date, minutes_of, parse_time

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ---------------------------------------------------------------------------
# Blocked dates
# ---------------------------------------------------------------------------


@router.get("/blocked-dates", response_model=list[BlockedDateOut])
async def list_blocked_dates(
    ctx: BookingContext = Depends(get_booking_context),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(BlockedDate).order_by(BlockedDate.date))
    return [blocked_date_out(row, ctx.tz) for row in result.scalars().all()]


@router.post("/blocked-dates", response_model=BlockedDateOut, status_code=status.HTTP_201_CREATED)
async def create_blocked_date(
    body: BlockedDateCreate,
    ctx: BookingContext = Depends(get_booking_context),
    db: AsyncSession = Depends(get_db),
):
    day = local_date(body.date, ctx.tz)
    if day is None:
        raise ValidationError("Invalid date format (YYYY-MM-DD).", code="invalid_date")

    existing = await db.execute(select(BlockedDate).where(BlockedDate.date == day))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("This date is already blocked.", code="blocked")

    row = BlockedDate(date=day, reason=(body.reason or "").strip() or None)
    db.add(row)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError("This date is already blocked.", code="blocked") from exc

    logger.info("Blocked %s", body.date)
    return blocked_date_out(row, ctx.tz)


@router.delete("/blocked-dates/{blocked_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blocked_date(blocked_id: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(BlockedDate).where(BlockedDate.id == blocked_id))
    row = result.scalar_one_or_none()
    if row is None:
        raise NotFoundError("Blocked date not found.")
    await db.delete(row)


# ---------------------------------------------------------------------------
# Add-on catalog
# ---------------------------------------------------------------------------


async def _get_add_on(db: AsyncSession, add_on_id: str) -> AddOn:
    result = await db.execute(select(AddOn).where(AddOn.id == add_on_id))
    add_on = result.scalar_one_or_none()
    if add_on is None:
        raise NotFoundError("Add-on not found.")
    return add_on


@router.get("/addons", response_model=list[AddOnOut])
async def list_add_ons(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(AddOn).order_by(AddOn.sort_order, AddOn.name))
    return result.scalars().all()


@router.post("/addons", response_model=AddOnOut, status_code=status.HTTP_201_CREATED)
async def create_add_on(body: AddOnCreate, db: AsyncSession = Depends(get_db)):
    add_on = AddOn(**body.model_dump())
    db.add(add_on)
    await db.flush()
    return add_on


@router.patch("/addons/{add_on_id}", response_model=AddOnOut)
async def update_add_on(add_on_id: str, body: AddOnUpdate, db: AsyncSession = Depends(get_db)):
    add_on = await _get_add_on(db, add_on_id)
    for name, value in body.model_dump(exclude_unset=True).items():
        if value is None and name in ("name", "price_cents", "active", "sort_order"):
            continue
        setattr(add_on, name, value)
    await db.flush()
    return add_on


@router.delete("/addons/{add_on_id}")
async def delete_add_on(add_on_id: str, db: AsyncSession = Depends(get_db)):
    """Delete an unused add-on. One already on a booking is deactivated instead."""
    add_on = await _get_add_on(db, add_on_id)
    used = await db.scalar(select(func.count()).select_from(BookingAddOn).where(BookingAddOn.add_on_id == add_on.id))
    if used:
        add_on.active = False
        await db.flush()
        return {"deleted": False, "deactivated": True}

    await db.delete(add_on)
    return {"deleted": True, "deactivated": False}


# ---------------------------------------------------------------------------
# Showing availability
# ---------------------------------------------------------------------------


def _normalize_window(window: ShowingWindow) -> ShowingWindow:
    """Validate a window and return it with zero-padded HH:MM times. An end of 24:00 is allowed."""
    if parse_time(window.start_time) is None or (
        parse_time(window.end_time) is None and window.end_time.strip() != MIDNIGHT_END
    ):
        raise ValidationError("Showing window times must be HH:MM.", code="invalid_time")
    start, end = minutes_of(window.start_time), minutes_of(window.end_time)
    if start >= end:
        raise ValidationError("Showing window start must be before its end.")
    return window.model_copy(update={"start_time": hhmm(start), "end_time": hhmm(end)})


async def _showing_settings(db: AsyncSession, ctx: BookingContext) -> ShowingSettings:
    windows = await db.execute(
        select(ShowingAvailability).order_by(ShowingAvailability.day_of_week, ShowingAvailability.start_time)
    )
    config = await get_showing_config(db, ctx.default_showing_duration_minutes)
    return ShowingSettings(
        windows=[ShowingWindow.model_validate(w) for w in windows.scalars().all()],
        default_duration_minutes=config.default_duration_minutes,
        max_slots_per_window=config.max_slots_per_window,
    )


@router.get("/showing-availability", response_model=ShowingSettings)
async def get_showing_availability(
    ctx: BookingContext = Depends(get_booking_context),
    db: AsyncSession = Depends(get_db),
):
    return await _showing_settings(db, ctx)


@router.put("/showing-availability", response_model=ShowingSettings)
async def replace_showing_availability(
    body: ShowingSettings,
    ctx: BookingContext = Depends(get_booking_context),
    db: AsyncSession = Depends(get_db),
):
    """Replace every weekly window and upsert the showing config."""
    unique: dict[tuple[int, str, str], ShowingWindow] = {}
    for window in map(_normalize_window, body.windows):
        unique[(window.day_of_week, window.start_time, window.end_time)] = window

    await db.execute(delete(ShowingAvailability))
    db.add_all(
        ShowingAvailability(
            day_of_week=w.day_of_week,
            start_time=w.start_time,
            end_time=w.end_time,
            enabled=w.enabled,
        )
        for w in unique.values()
    )

    result = await db.execute(select(ShowingConfig).where(ShowingConfig.key == SHOWING_CONFIG_KEY))
    config = result.scalar_one_or_none()
    if config is None:
        config = ShowingConfig(key=SHOWING_CONFIG_KEY)
        db.add(config)
    config.default_duration_minutes = body.default_duration_minutes
    config.max_slots_per_window = body.max_slots_per_window

    await db.flush()
    logger.info("Showing availability replaced: %d windows", len(unique))
    return await _showing_settings(db, ctx)
