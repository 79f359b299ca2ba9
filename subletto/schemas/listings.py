"""Schemas for listings, their slots and availability projections."""
from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.slot import SlotStatus


class ListingCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None
    address_line1: str | None = None
    city: str | None = None
    state: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    price_monthly: int = Field(ge=0)
    price_per_spot: int | None = Field(default=None, ge=0)
    bedrooms: int = Field(default=0, ge=0)
    bathrooms: int = Field(default=0, ge=0)
    furnished: bool = False
    utilities_included: bool = False
    lease_term_months: int | None = Field(default=None, ge=1)
    requirements_text: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    total_slots: int | None = Field(default=None, ge=1, description="Defaults to bedrooms, or 1")

    @model_validator(mode="after")
    def _check_dates(self) -> "ListingCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class ListingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    description: str | None = None
    city: str | None = None
    state: str | None = None
    price_monthly: int
    price_per_spot: int | None = None
    bedrooms: int
    bathrooms: int
    lease_term_months: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool
    total_slots: int
    created_at: datetime


class SlotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_id: str
    slot_number: int
    status: SlotStatus
    locked_by_user_id: str | None = None
    locked_until: datetime | None = None


class ListingWithSlots(ListingOut):
    slots: list[SlotOut] = Field(default_factory=list)


class AvailabilityOut(BaseModel):
    listing_id: str
    total: int
    available: int
    locked: int
    filled: int
    status: str
    progress: str
    spots_left: str
    spots_left_full: str


class CanBookOut(BaseModel):
    can_book: bool
    reason: str | None = None


class SlotSummaryOut(BaseModel):
    filled: int
    total: int
