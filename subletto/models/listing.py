"""Listing model."""
from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, Date, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UTCDateTime, utcnow

if TYPE_CHECKING:
    from .slot import RoomSlot


class Listing(Base):
    """Room listing whose bedrooms are offered one spot at a time."""

    __tablename__ = "listings"
    __table_args__ = (CheckConstraint("total_slots >= 1", name="ck_listings_total_slots"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    address_line1: Mapped[str | None] = mapped_column(String)
    city: Mapped[str | None] = mapped_column(String)
    state: Mapped[str | None] = mapped_column(String)
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)
    price_monthly: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_spot: Mapped[int | None] = mapped_column(Integer)
    bedrooms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    bathrooms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    furnished: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    utilities_included: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    lease_term_months: Mapped[int | None] = mapped_column(Integer)
    requirements_text: Mapped[str | None] = mapped_column(Text)
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    total_slots: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    slots: Mapped[list["RoomSlot"]] = relationship(
        "RoomSlot",
        back_populates="listing",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="RoomSlot.slot_number",
    )

    @property
    def spot_price(self) -> int:
        """Monthly rent for a single spot."""

        return self.price_per_spot if self.price_per_spot is not None else self.price_monthly
