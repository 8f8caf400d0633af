"""FastAPI dependencies for injection into route handlers."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from hallbook.core.auth import decode_token
from hallbook.core.config import Settings, settings
from hallbook.services.bookings import BookingContext
from hallbook.services.email import EmailNotifier
from hallbook.services.notifications import Notifier
from hallbook.services.stripe_service import PaymentGateway, StripeGateway

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings() -> Settings:
    return settings


# ---------------------------------------------------------------------------
# Collaborators (overridden with test doubles in tests)
# ---------------------------------------------------------------------------


def get_payment_gateway(config: Settings = Depends(get_settings)) -> PaymentGateway:
    return StripeGateway(
        api_key=config.stripe_secret_key,
        webhook_secret=config.stripe_webhook_secret,
        currency=config.currency,
    )


def get_notifier(config: Settings = Depends(get_settings)) -> Notifier:
    return EmailNotifier(config)


def get_booking_context(config: Settings = Depends(get_settings)) -> BookingContext:
    return BookingContext.from_settings(config)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Validate the admin bearer token and return the admin subject."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    try:
        payload = decode_token(credentials.credentials)
        if payload.get("type") != "admin":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
        subject = str(payload["sub"])
    except (JWTError, KeyError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from None

    return subject
