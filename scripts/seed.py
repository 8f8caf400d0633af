"""Seed the database with the default catalog and showing schedule.

Run with: python -m scripts.seed
Creates tables, the add-on catalog, weekday showing windows and the showing config.
Safe to re-run: rows that already exist are left alone.
"""

import asyncio

from sqlalchemy import select

from hallbook.core.database import async_session_factory, engine
from hallbook.models import SHOWING_CONFIG_KEY, AddOn, Base, ShowingAvailability, ShowingConfig

ADD_ONS = [
    {
        "name": "Wicker Chair",
        "description": "Additional wicker chairs for your event",
        "price_cents": 2500,
        "sort_order": 1,
    },
    {
        "name": "White Table Cloth",
        "description": "Linen table cloth for a rectangular or round table",
        "price_cents": 1500,
        "sort_order": 2,
    },
    {
        "name": "Floral Centerpiece",
        "description": "Seasonal fresh flower arrangement",
        "price_cents": 3500,
        "sort_order": 3,
    },
]

# Monday-Friday (0=Sunday), morning and afternoon windows
SHOWING_WINDOWS = [
    (day, start, end) for day in range(1, 6) for start, end in (("09:00", "12:00"), ("13:00", "17:00"))
]


async def seed():
    # Create tables (in dev; production runs migrations)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        existing = set((await db.execute(select(AddOn.name))).scalars().all())
        new_add_ons = [AddOn(**data) for data in ADD_ONS if data["name"] not in existing]
        db.add_all(new_add_ons)

        windows = await db.execute(
            select(ShowingAvailability.day_of_week, ShowingAvailability.start_time, ShowingAvailability.end_time)
        )
        existing_windows = {tuple(row) for row in windows.all()}
        new_windows = [
            ShowingAvailability(day_of_week=day, start_time=start, end_time=end, enabled=True)
            for day, start, end in SHOWING_WINDOWS
            if (day, start, end) not in existing_windows
        ]
        db.add_all(new_windows)

        config = await db.execute(select(ShowingConfig).where(ShowingConfig.key == SHOWING_CONFIG_KEY))
        created_config = config.scalar_one_or_none() is None
        if created_config:
            db.add(ShowingConfig(key=SHOWING_CONFIG_KEY, default_duration_minutes=30, max_slots_per_window=999))

        await db.commit()

        print("Seeded:")
        print(f"  {len(new_add_ons)} add-ons")
        print(f"  {len(new_windows)} showing windows")
        print(f"  showing config {'created' if created_config else 'already present'}")


if __name__ == "__main__":
    asyncio.run(seed())
