"""Calendar configuration models: blocked days and showing windows."""

from datetime import datetime

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hallbook.models.base import Base, IdMixin, TimestampMixin, UTCDateTime

SHOWING_CONFIG_KEY = "default"


class BlockedDate(IdMixin, TimestampMixin, Base):
    """A calendar day closed to both events and showings."""

    __tablename__ = "blocked_dates"

    # Local midnight of the blocked day
    date: Mapped[datetime] = mapped_column(UTCDateTime, unique=True, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<BlockedDate {self.date:%Y-%m-%d}>"


class ShowingAvailability(IdMixin, TimestampMixin, Base):
    """A weekly window in which showings may start."""

    __tablename__ = "showing_availability"

    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)  # 0=Sun..6=Sat
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM local
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM local
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_showing_window_unique", "day_of_week", "start_time", "end_time", unique=True),
    )

    def __repr__(self) -> str:
        return f"<ShowingAvailability day={self.day_of_week} {self.start_time}-{self.end_time}>"


class ShowingConfig(IdMixin, TimestampMixin, Base):
    """Singleton row (key='default') holding showing length and window capacity."""

    __tablename__ = "showing_config"

    key: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, default=SHOWING_CONFIG_KEY)
    default_duration_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    max_slots_per_window: Mapped[int] = mapped_column(Integer, default=999, nullable=False)

    def __repr__(self) -> str:
        return f"<ShowingConfig {self.default_duration_minutes}min max={self.max_slots_per_window}>"
