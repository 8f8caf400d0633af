"""Customer self-service routes, authorised by a management token in the path."""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hallbook.core.config import Settings
from hallbook.core.database import get_db
from hallbook.core.dependencies import get_notifier, get_payment_gateway, get_settings
from hallbook.schemas import BookingOut, CancelOut, CheckoutOut, ManagedBookingPatch, serialize_booking
from hallbook.services.bookings import cancel_booking, update_managed_booking
from hallbook.services.notifications import Notifier, schedule_notifications
from hallbook.services.payments import start_balance_checkout
from hallbook.services.stripe_service import PaymentGateway
from hallbook.services.tokens import resolve_management_token

router = APIRouter(prefix="/manage/bookings", tags=["manage"])


@router.get("/{token}", response_model=BookingOut)
async def get_managed_booking(
    token: str,
    config: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    booking = await resolve_management_token(db, token)
    return serialize_booking(booking, config.tz)


@router.patch("/{token}", response_model=BookingOut)
async def update_booking(
    token: str,
    body: ManagedBookingPatch,
    background: BackgroundTasks,
    config: Settings = Depends(get_settings),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    booking = await resolve_management_token(db, token)
    outcome = await update_managed_booking(db, booking, body.model_dump(exclude_unset=True))

    await db.commit()
    schedule_notifications(background, notifier, booking, outcome.events)
    return serialize_booking(booking, config.tz)


@router.post("/{token}/cancel", response_model=CancelOut)
async def cancel(
    token: str,
    background: BackgroundTasks,
    config: Settings = Depends(get_settings),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    booking = await resolve_management_token(db, token)
    result = await cancel_booking(db, booking)

    await db.commit()
    schedule_notifications(background, notifier, booking, result.events)
    return CancelOut(already_cancelled=result.already_cancelled, booking=serialize_booking(booking, config.tz))


@router.post("/{token}/create-checkout-session", response_model=CheckoutOut)
async def create_balance_checkout(
    token: str,
    config: Settings = Depends(get_settings),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    booking = await resolve_management_token(db, token)
    session = await start_balance_checkout(
        gateway,
        booking,
        success_url=config.stripe_success_url,
        cancel_url=config.stripe_cancel_url,
        business_name=config.business_name,
        tz=config.tz,
    )
    return CheckoutOut(session_id=session.id, url=session.url)
