"""Stripe webhook handler.

Runs the same confirmation protocol as the browser redirect for
checkout.session.completed, so whichever arrives second is a no-op.
"""

import logging

import stripe
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from hallbook.core.database import get_db
from hallbook.core.dependencies import get_notifier, get_payment_gateway
from hallbook.core.errors import NotFoundError, ValidationError
from hallbook.services.notifications import Notifier, schedule_notifications
from hallbook.services.payments import confirm_payment
from hallbook.services.stripe_service import CHECKOUT_COMPLETED, PaymentGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    background: BackgroundTasks,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    try:
        event = gateway.construct_webhook_event(payload, sig_header)
    except (ValueError, stripe.SignatureVerificationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature") from None

    if event["type"] != CHECKOUT_COMPLETED:
        return {"status": "ignored"}

    session_id = event["data"]["object"]["id"]
    try:
        result = await confirm_payment(db, gateway, session_id)
    except (ValidationError, NotFoundError) as exc:
        logger.warning("Webhook for session %s not applied: %s", session_id, exc.message)
        return {"status": "ignored"}

    await db.commit()
    schedule_notifications(background, notifier, result.booking, result.events, result.payment_cents)
    return {"status": "ok"}
