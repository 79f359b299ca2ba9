"""Create database schema and seed sample listings with their spots for development."""
from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

from sqlalchemy import func, select

from subletto.db.session import SessionLocal, engine
from subletto.models.base import Base
from subletto.models.listing import Listing
from subletto.models.slot import RoomSlot
from subletto.repositories import slots as slots_repo

LISTINGS = [
	{
		"id": "listing-mission-4br",
		"user_id": "host-maya",
		"title": "4BR Victorian share near Dolores Park",
		"city": "San Francisco",
		"state": "CA",
		"address_line1": "3550 20th St",
		"price_monthly": 7200,
		"price_per_spot": 1800,
		"bedrooms": 4,
		"bathrooms": 2,
		"furnished": True,
		"utilities_included": True,
		"lease_term_months": 12,
		"requirements_text": "No smoking. Quiet hours after 10pm.",
		"start_date": date(2026, 11, 1),
		"total_slots": 4,
	},
	{
		"id": "listing-eastvillage-2br",
		"user_id": "host-omar",
		"title": "Sunny 2BR walk-up, two spots",
		"city": "New York",
		"state": "NY",
		"address_line1": "211 E 7th St",
		"price_monthly": 4600,
		"price_per_spot": 2300,
		"bedrooms": 2,
		"bathrooms": 1,
		"furnished": False,
		"utilities_included": False,
		"lease_term_months": 6,
		"start_date": date(2026, 12, 1),
		"total_slots": 2,
	},
	{
		"id": "listing-austin-studio",
		"user_id": "host-lena",
		"title": "Entire studio near campus",
		"city": "Austin",
		"state": "TX",
		"address_line1": "2501 Nueces St",
		"price_monthly": 1350,
		"bedrooms": 0,
		"bathrooms": 1,
		"furnished": True,
		"utilities_included": True,
		"lease_term_months": 9,
		"start_date": date(2027, 1, 15),
		"total_slots": 1,
	},
]


async def create_schema() -> None:
	"""Create the database schema if it does not already exist."""

	async with engine.begin() as conn:
		await conn.run_sync(Base.metadata.create_all)


async def seed_listings() -> None:
	"""Insert or update demo listings; slots are only created for new listings."""

	now = datetime.now(timezone.utc)
	async with SessionLocal() as session:
		async with session.begin():
			for data in LISTINGS:
				listing = await session.get(Listing, data["id"])
				if listing is None:
					listing = Listing(created_at=now, **data)
					session.add(listing)
					await session.flush()
				else:
					for key, value in data.items():
						if key not in ("id", "total_slots"):
							setattr(listing, key, value)

				existing = await session.scalar(
					select(func.count(RoomSlot.id)).where(RoomSlot.listing_id == data["id"])
				)
				if not existing:
					await slots_repo.create_slots(
						session,
						listing_id=data["id"],
						total_slots=listing.total_slots,
						now=now,
					)


async def main() -> None:
	await create_schema()
	await seed_listings()
	print("Database schema ensured and demo listings seeded.")


if __name__ == "__main__":
	asyncio.run(main())
