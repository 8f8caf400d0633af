"""Booking engine error taxonomy.

Every error the engine raises on purpose derives from BookingError and carries
the HTTP status the boundary layer should answer with. Anything else that
escapes a request is an unexpected failure (500).
"""


class BookingError(Exception):
    status_code = 500
    default_code = "booking_error"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)


class ValidationError(BookingError):
    """Malformed or missing input."""

    status_code = 400
    default_code = "validation"


class PricingError(ValidationError):
    """A pricing rule rejected the requested date/time."""

    default_code = "pricing"


class ConflictError(BookingError):
    """The date or slot is blocked, already booked, or otherwise taken."""

    status_code = 409
    default_code = "conflict"


class NotFoundError(BookingError):
    status_code = 404
    default_code = "not_found"


class ExpiredError(BookingError):
    """A management token exists but is past its expiry."""

    status_code = 410
    default_code = "expired"


class UpstreamError(BookingError):
    """Payment or email collaborator failure. Safe for the caller to retry."""

    status_code = 500
    default_code = "upstream"


class InvariantError(BookingError):
    """Impossible state, e.g. a stored total that no longer matches its parts."""

    status_code = 500
    default_code = "invariant"
