"""Commitment (slot lock) model."""
from __future__ import annotations

from datetime import datetime
import enum

from sqlalchemy import JSON, Enum, ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime, enum_values, utcnow

_ACTIVE = text("status = 'active'")


class CommitmentStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    COMPLETED = "completed"


class Commitment(Base):
    """Time-boxed hold of one slot by one user."""

    __tablename__ = "commitments"
    __table_args__ = (
        Index("uq_commitments_active_user", "user_id", unique=True, sqlite_where=_ACTIVE, postgresql_where=_ACTIVE),
        Index("uq_commitments_active_slot", "slot_id", unique=True, sqlite_where=_ACTIVE, postgresql_where=_ACTIVE),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    listing_id: Mapped[str] = mapped_column(ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    slot_id: Mapped[str] = mapped_column(ForeignKey("room_slots.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[CommitmentStatus] = mapped_column(
        Enum(CommitmentStatus, name="commitment_status", values_callable=enum_values),
        default=CommitmentStatus.ACTIVE,
        nullable=False,
    )
    locked_until: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    checklist_answers: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), default=dict, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    @property
    def expires_at(self) -> datetime:
        return self.locked_until
