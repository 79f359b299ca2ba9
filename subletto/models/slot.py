"""Room slot model."""
from __future__ import annotations

from datetime import datetime
import enum
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UTCDateTime, enum_values, utcnow

if TYPE_CHECKING:
    from .listing import Listing


class SlotStatus(str, enum.Enum):
    AVAILABLE = "available"
    LOCKED = "locked"
    FILLED = "filled"


class RoomSlot(Base):
    """One interchangeable spot within a listing."""

    __tablename__ = "room_slots"
    __table_args__ = (UniqueConstraint("listing_id", "slot_number", name="uq_room_slots_listing_number"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    listing_id: Mapped[str] = mapped_column(ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    slot_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[SlotStatus] = mapped_column(
        Enum(SlotStatus, name="slot_status", values_callable=enum_values),
        default=SlotStatus.AVAILABLE,
        nullable=False,
    )
    locked_by_user_id: Mapped[str | None] = mapped_column(String)
    locked_until: Mapped[datetime | None] = mapped_column(UTCDateTime)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    listing: Mapped["Listing"] = relationship("Listing", back_populates="slots")
