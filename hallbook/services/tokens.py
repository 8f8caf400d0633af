"""Management tokens: bearer capabilities for customer self-service.

A token grants full read/write access to exactly one booking without any
other authentication. Tokens come from the OS CSPRNG and are never logged.
"""

import secrets
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hallbook.core.errors import ExpiredError, NotFoundError
from hallbook.models.booking import Booking

TOKEN_BYTES = 32


def generate_management_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


async def ensure_management_token(db: AsyncSession, booking: Booking) -> str:
    """Return the booking's token, issuing one if it has none.

    An existing token is never rotated.
    """
    if booking.management_token:
        return booking.management_token

    booking.management_token = generate_management_token()
    booking.management_token_expires_at = None
    await db.flush()
    return booking.management_token


async def resolve_management_token(db: AsyncSession, token: str, now: datetime | None = None) -> Booking:
    """Load the booking a token grants access to.

    Raises NotFoundError for an unknown token and ExpiredError for a known
    token past its expiry, so the UI can tell the two apart.
    """
    if not token or not token.strip():
        raise NotFoundError("Booking not found.")

    result = await db.execute(select(Booking).where(Booking.management_token == token))
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking not found.")

    expires_at = booking.management_token_expires_at
    if expires_at is not None and expires_at <= (now or datetime.now(UTC)):
        raise ExpiredError("This management link has expired.")

    return booking


def management_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/manage/booking/{token}"
