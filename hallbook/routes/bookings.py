"""Booking routes: public create, lookup and contract acceptance."""

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hallbook.core.config import Settings
from hallbook.core.database import get_db
from hallbook.core.dependencies import get_booking_context, get_notifier, get_settings
from hallbook.core.errors import NotFoundError
from hallbook.models import Booking, BookingType
from hallbook.schemas import BookingCreate, BookingCreated, BookingOut, ContractAccept, serialize_booking
from hallbook.services.bookings import BookingContext, create_event, create_showing
from hallbook.services.contract import accept_contract
from hallbook.services.notifications import Notifier, schedule_notifications

router = APIRouter(prefix="/bookings", tags=["bookings"])


async def get_booking_or_404(db: AsyncSession, booking_id: str) -> Booking:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking not found.")
    return booking


@router.post("", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: BookingCreate,
    background: BackgroundTasks,
    ctx: BookingContext = Depends(get_booking_context),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    if body.booking_type == BookingType.EVENT:
        outcome = await create_event(db, ctx, body)
    else:
        outcome = await create_showing(db, ctx, body)

    await db.commit()
    schedule_notifications(background, notifier, outcome.booking, outcome.events)

    booking = outcome.booking
    return BookingCreated(
        booking_id=booking.id,
        booking=serialize_booking(booking, ctx.tz),
        management_token=booking.management_token,
    )


@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(
    booking_id: str,
    ctx: BookingContext = Depends(get_booking_context),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking_or_404(db, booking_id)
    return serialize_booking(booking, ctx.tz)


@router.post("/{booking_id}/accept-contract")
async def accept_booking_contract(
    booking_id: str,
    body: ContractAccept,
    config: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking_or_404(db, booking_id)
    accept_contract(
        booking,
        body.signer_name,
        business_name=config.business_name,
        deposit_cents=config.security_deposit_cents,
    )
    await db.flush()
    return {"success": True, "contract_version": booking.contract_version}
