"""Stripe integration for hosted checkout.

Wraps the Stripe Python SDK behind the PaymentGateway protocol so routes and
tests can swap the processor. All amounts are in cents.
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

import stripe

from hallbook.core.errors import UpstreamError

logger = logging.getLogger(__name__)

PURPOSE_REMAINING_BALANCE = "remaining-balance"
CHECKOUT_COMPLETED = "checkout.session.completed"


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    payment_status: str | None
    amount_total: int | None
    metadata: dict[str, str] = field(default_factory=dict)
    url: str | None = None


class PaymentGateway(Protocol):
    async def create_checkout_session(
        self,
        *,
        booking_id: str,
        amount_cents: int,
        product_name: str,
        description: str,
        success_url: str,
        cancel_url: str,
        purpose: str | None = None,
    ) -> CheckoutSession: ...

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession: ...

    def construct_webhook_event(self, payload: bytes, sig_header: str): ...


def _plain(obj) -> dict:
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def _to_session(session) -> CheckoutSession:
    return CheckoutSession(
        id=session.id,
        payment_status=session.payment_status,
        amount_total=session.amount_total,
        metadata={str(k): str(v) for k, v in _plain(session.metadata).items()},
        url=getattr(session, "url", None),
    )


class StripeGateway:
    def __init__(self, api_key: str, webhook_secret: str = "", currency: str = "usd"):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency

    def _require_key(self) -> None:
        if not self.api_key:
            raise UpstreamError("Stripe is not configured.")

    async def create_checkout_session(
        self,
        *,
        booking_id: str,
        amount_cents: int,
        product_name: str,
        description: str,
        success_url: str,
        cancel_url: str,
        purpose: str | None = None,
    ) -> CheckoutSession:
        """Create a hosted Checkout Session for a single charge.

        The booking id (and the purpose, for balance payments) travel in the
        session metadata; confirmation trusts only what Stripe hands back.
        """
        self._require_key()
        metadata = {"bookingId": booking_id}
        if purpose:
            metadata["type"] = purpose

        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency,
                            "product_data": {"name": product_name, "description": description},
                            "unit_amount": amount_cents,
                        },
                        "quantity": 1,
                    }
                ],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe checkout creation failed for booking %s: %s", booking_id, exc)
            raise UpstreamError("Could not start checkout with the payment processor.") from exc

        return _to_session(session)

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        self._require_key()
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.warning("Stripe session lookup failed for %s: %s", session_id, exc)
            raise UpstreamError("Could not verify payment with the payment processor.") from exc
        return _to_session(session)

    def construct_webhook_event(self, payload: bytes, sig_header: str) -> stripe.Event:
        """Verify and construct a Stripe webhook event."""
        return stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)
