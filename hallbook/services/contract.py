"""Rental agreement text and acceptance.

The accepted version and text are an audit snapshot: written the first time a
contract is accepted and never changed afterwards.
"""

from datetime import UTC, datetime

from hallbook.core.errors import ValidationError
from hallbook.models.booking import Booking

CURRENT_CONTRACT_VERSION = "v1.0"


def contract_sections(business_name: str, deposit_cents: int) -> list[tuple[str, str]]:
    deposit = f"${deposit_cents / 100:,.0f}"
    return [
        (
            "The Space",
            f"{business_name} provides the hall, tables, chairs, kitchen access and restrooms. "
            "The renter brings all food, drinks, decorations and service staff.",
        ),
        (
            "Security Deposit",
            f"A refundable security deposit of {deposit} reserves the date. It may be kept in whole or "
            "in part for damage, rule violations or cancellations within 30 days of the event.",
        ),
        (
            "Cleanup",
            "The renter leaves the hall reasonably clean, removes all trash and takes all personal "
            "items at the end of the event. A cleaning fee may apply otherwise.",
        ),
        (
            "Decorations and Damage",
            "Nothing may be nailed, stapled or stuck to walls, ceilings or fixtures with damaging "
            "adhesive. Confetti and glitter are not permitted. The renter is responsible for damage "
            "caused by guests, vendors or decorations.",
        ),
        (
            "Noise and Conduct",
            "The renter follows local noise ordinances and keeps guests respectful of neighbours and "
            "staff. Disorderly conduct may end the event early without refund.",
        ),
        (
            "Liability",
            f"The renter is responsible for the conduct and safety of guests and vendors. {business_name} "
            "is not liable for loss, theft or injury except as required by law.",
        ),
        (
            "Cancellations",
            "Cancelling within 30 days of the event date may forfeit part or all of the deposit and "
            "any prepaid fees.",
        ),
    ]


def build_contract_text(business_name: str, deposit_cents: int) -> str:
    sections = "\n\n".join(f"{heading}\n{body}" for heading, body in contract_sections(business_name, deposit_cents))
    return f"{business_name} Rental Agreement\n\n{sections}"


def accept_contract(
    booking: Booking,
    signer_name: str | None,
    *,
    business_name: str,
    deposit_cents: int,
    now: datetime | None = None,
) -> None:
    """Record acceptance. A repeat acceptance may change the signer, never the snapshot."""
    if not booking.is_event:
        raise ValidationError("Contract acceptance is only available for event bookings.")
    if booking.is_cancelled:
        raise ValidationError("This booking has been cancelled.", code="cancelled")
    if not signer_name or not signer_name.strip():
        raise ValidationError("Signer name is required.")

    booking.contract_accepted = True
    booking.contract_accepted_at = now or datetime.now(UTC)
    booking.contract_signer_name = signer_name.strip()
    if booking.contract_version is None:
        booking.contract_version = CURRENT_CONTRACT_VERSION
    if booking.contract_text is None:
        booking.contract_text = build_contract_text(business_name, deposit_cents)
