"""Checkout session model."""
from __future__ import annotations

from datetime import date, datetime
import enum

from sqlalchemy import Date, Enum, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime, enum_values, utcnow

_ACTIVE = text("state = 'ACTIVE'")


class CheckoutState(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class CheckoutSession(Base):
    """Short booking window riding on a locked slot."""

    __tablename__ = "checkout_sessions"
    __table_args__ = (
        Index("uq_checkout_sessions_active_user", "user_id", unique=True, sqlite_where=_ACTIVE, postgresql_where=_ACTIVE),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    listing_id: Mapped[str] = mapped_column(ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    slot_id: Mapped[str] = mapped_column(ForeignKey("room_slots.id", ondelete="CASCADE"), nullable=False)
    commitment_id: Mapped[str] = mapped_column(ForeignKey("commitments.id", ondelete="CASCADE"), nullable=False)
    state: Mapped[CheckoutState] = mapped_column(
        Enum(CheckoutState, name="checkout_state", values_callable=enum_values),
        default=CheckoutState.ACTIVE,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    price_snapshot: Mapped[int] = mapped_column(Integer, nullable=False)
    move_in_date: Mapped[date | None] = mapped_column(Date)
    lease_months: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
