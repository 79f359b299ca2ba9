"""Schemas for holds, checkout sessions, bookings and interests."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..models.booking import BookingStatus
from ..models.checkout_session import CheckoutState
from ..models.commitment import CommitmentStatus


class LockRequest(BaseModel):
    checklist_answers: dict[str, bool] = Field(default_factory=dict, description="Host requirement checklist")


class CommitmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    listing_id: str
    slot_id: str
    status: CommitmentStatus
    locked_until: datetime
    checklist_answers: dict[str, Any] | None = None
    created_at: datetime
    time_left: str | None = None


class CheckoutStartRequest(BaseModel):
    listing_id: str


class CheckoutCompleteRequest(BaseModel):
    start_date: date
    end_date: date | None = None


class CountdownOut(BaseModel):
    minutes: int
    seconds: int
    total_seconds: int
    is_expired: bool
    is_warning: bool


class CheckoutSessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_id: str
    user_id: str
    slot_id: str
    commitment_id: str
    state: CheckoutState
    expires_at: datetime
    price_snapshot: int
    move_in_date: date | None = None
    lease_months: int | None = None
    created_at: datetime
    countdown: CountdownOut | None = None


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_id: str
    renter_id: str
    host_id: str
    slot_id: str
    checkout_session_id: str
    status: BookingStatus
    start_date: date
    end_date: date | None = None
    monthly_rent: int
    created_at: datetime


class InterestOut(BaseModel):
    listing_id: str
    interested: bool


class InterestedUsersOut(BaseModel):
    listing_id: str
    user_ids: list[str]


class UserInterestsOut(BaseModel):
    listing_ids: list[str]
