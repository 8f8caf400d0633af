"""Payment routes: open a checkout session and confirm a completed one."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hallbook.core.config import Settings
from hallbook.core.database import get_db
from hallbook.core.dependencies import get_notifier, get_payment_gateway, get_settings
from hallbook.routes.bookings import get_booking_or_404
from hallbook.schemas import CheckoutOut, CheckoutRequest, PaymentConfirmOut, PaymentConfirmRequest, serialize_booking
from hallbook.services.notifications import Notifier, schedule_notifications
from hallbook.services.payments import confirm_payment, start_checkout
from hallbook.services.stripe_service import PaymentGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/create-checkout-session", response_model=CheckoutOut)
async def create_checkout_session(
    body: CheckoutRequest,
    config: Settings = Depends(get_settings),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking_or_404(db, body.booking_id)
    session = await start_checkout(
        gateway,
        booking,
        success_url=config.stripe_success_url,
        cancel_url=config.stripe_cancel_url,
        business_name=config.business_name,
        tz=config.tz,
    )
    return CheckoutOut(session_id=session.id, url=session.url)


@router.post("/confirm", response_model=PaymentConfirmOut)
async def confirm(
    body: PaymentConfirmRequest,
    background: BackgroundTasks,
    config: Settings = Depends(get_settings),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    result = await confirm_payment(db, gateway, body.session_id)
    await db.commit()
    schedule_notifications(background, notifier, result.booking, result.events, result.payment_cents)

    return PaymentConfirmOut(
        already_processed=result.replayed,
        booking=serialize_booking(result.booking, config.tz),
        management_token=result.booking.management_token,
    )
