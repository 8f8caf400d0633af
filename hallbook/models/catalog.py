"""Add-on catalog model."""

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hallbook.models.base import Base, IdMixin, TimestampMixin


class AddOn(IdMixin, TimestampMixin, Base):
    """An optional extra an event can order (chairs, linens, ...).

    Deactivating hides it from new bookings. Existing bookings keep the price
    they were booked at.
    """

    __tablename__ = "add_ons"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<AddOn {self.name} {self.price_cents}c>"
