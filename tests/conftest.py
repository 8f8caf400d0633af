"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database. The app's get_db, settings,
payment gateway and notifier dependencies are overridden with test doubles.
"""

import dataclasses
import json

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hallbook.core.auth import create_access_token
from hallbook.core.config import Settings
from hallbook.core.database import get_db
from hallbook.core.dependencies import get_notifier, get_payment_gateway, get_settings
from hallbook.core.errors import UpstreamError
from hallbook.main import app
from hallbook.models import AddOn, Base, BlockedDate, ShowingAvailability, ShowingConfig
from hallbook.services.bookings import BookingContext
from hallbook.services.calendar import local_date
from hallbook.services.stripe_service import CheckoutSession

# 2030-01-01 is a Tuesday
WEDNESDAY = "2030-01-02"
THURSDAY = "2030-01-03"
FRIDAY = "2030-01-04"
SATURDAY = "2030-01-05"
MONDAY = "2030-01-07"


class FakeGateway:
    """In-memory stand-in for Stripe Checkout."""

    def __init__(self):
        self.sessions: dict[str, CheckoutSession] = {}
        self.created: list[dict] = []
        self.unavailable = False

    async def create_checkout_session(
        self, *, booking_id, amount_cents, product_name, description, success_url, cancel_url, purpose=None
    ) -> CheckoutSession:
        if self.unavailable:
            raise UpstreamError("Could not start checkout with the payment processor.")
        session_id = f"cs_test_{len(self.created) + 1}"
        metadata = {"bookingId": booking_id}
        if purpose:
            metadata["type"] = purpose
        self.created.append({"id": session_id, "amount_cents": amount_cents, "metadata": metadata})
        session = CheckoutSession(
            id=session_id,
            payment_status="unpaid",
            amount_total=amount_cents,
            metadata=metadata,
            url=f"https://checkout.test/{session_id}",
        )
        self.sessions[session_id] = session
        return session

    def add_session(self, session_id, booking_id, amount_cents, payment_status="paid", purpose=None):
        metadata = {"bookingId": booking_id} if booking_id else {}
        if purpose:
            metadata["type"] = purpose
        self.sessions[session_id] = CheckoutSession(
            id=session_id, payment_status=payment_status, amount_total=amount_cents, metadata=metadata
        )

    def pay(self, session_id):
        self.sessions[session_id] = dataclasses.replace(self.sessions[session_id], payment_status="paid")

    async def retrieve_checkout_session(self, session_id) -> CheckoutSession:
        if self.unavailable or session_id not in self.sessions:
            raise UpstreamError("Could not verify payment with the payment processor.")
        return self.sessions[session_id]

    def construct_webhook_event(self, payload, sig_header):
        if sig_header != "valid-signature":
            raise ValueError("No signatures found matching the expected signature for payload")
        return json.loads(payload)


class FakeNotifier:
    """Records every notification. Set fail=True to make every send raise."""

    def __init__(self):
        self.sent = []
        self.fail = False

    async def send(self, kind, notice):
        if self.fail:
            raise RuntimeError("SMTP unavailable")
        self.sent.append((kind, notice))

    def kinds(self):
        return [kind for kind, _ in self.sent]


@pytest.fixture
def test_settings():
    return Settings(
        business_timezone="America/New_York",
        weekday_rate_cents=15000,
        weekend_rate_cents=17500,
        extra_setup_hourly_cents=10000,
        security_deposit_cents=20000,
        allow_showings_on_event_days=True,
        stripe_success_url="https://hall.test/booking/complete",
        stripe_cancel_url="https://hall.test/booking/cancelled",
        public_base_url="https://hall.test",
        admin_notification_email="owner@hall.test",
    )


@pytest.fixture
def ctx(test_settings):
    return BookingContext.from_settings(test_settings)


@pytest.fixture
def tz(test_settings):
    return test_settings.tz


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
async def client(session_factory, test_settings, gateway, notifier):
    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token('admin@hall.test')}"}


@pytest.fixture
def seed(session_factory):
    """Persist rows in their own committed transaction."""

    async def _seed(*rows):
        async with session_factory() as session:
            session.add_all(rows)
            await session.commit()
        return rows

    return _seed


@pytest.fixture
async def showing_schedule(seed):
    """Thursday 15:00-18:00 and Monday 09:00-12:00 windows, 30 minute showings."""
    await seed(
        ShowingAvailability(day_of_week=4, start_time="15:00", end_time="18:00", enabled=True),
        ShowingAvailability(day_of_week=1, start_time="09:00", end_time="12:00", enabled=True),
        ShowingConfig(key="default", default_duration_minutes=30, max_slots_per_window=999),
    )


@pytest.fixture
async def add_ons(seed):
    chairs = AddOn(name="Wicker Chair", price_cents=2500, sort_order=1)
    linens = AddOn(name="White Table Cloth", price_cents=1500, sort_order=2)
    retired = AddOn(name="Disco Ball", price_cents=9900, sort_order=3, active=False)
    await seed(chairs, linens, retired)
    return {"chairs": chairs, "linens": linens, "retired": retired}


@pytest.fixture
def block_day(seed, tz):
    async def _block(date_str, reason="Private function"):
        row = BlockedDate(date=local_date(date_str, tz), reason=reason)
        await seed(row)
        return row

    return _block


def event_payload(date_str=WEDNESDAY, start="12:00", end="18:00", **overrides):
    payload = {
        "booking_type": "EVENT",
        "event_date": date_str,
        "start_time": start,
        "end_time": end,
        "contact_name": "Dana Whitfield",
        "contact_email": "dana@example.com",
        "contact_phone": "555-0100",
        "extra_setup_hours": 0,
    }
    payload.update(overrides)
    return payload


def showing_payload(date_str=THURSDAY, time="17:00", **overrides):
    payload = {
        "booking_type": "SHOWING",
        "event_date": date_str,
        "appointment_time": time,
        "contact_name": "Sam Ortiz",
        "contact_email": "sam@example.com",
    }
    payload.update(overrides)
    return payload
