"""Seed script for the StayDesk development database."""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from staydesk.config import settings
from staydesk.database import build_engine, build_session_factory, create_all
from staydesk.dependencies import create_access_token
from staydesk.enums import AdjustmentType, Permission, TaxApplicableOn
from staydesk.models.hotel import ActivityAddon, Hotel, HotelAddon, Room, RoomType
from staydesk.models.pricing import CancellationPolicy, Coupon, TaxRule

# ── Hotel ──────────────────────────────────────────────────────────────────────

HOTEL = {
    "name": "Harbourview Hotel",
    "address": "1 Quay Street",
    "currency": "USD",
    "timezone": "America/New_York",
    "check_in_time": "15:00",
    "check_out_time": "11:00",
}

# name, description, max_adults, max_children, base_price, room numbers
ROOM_TYPES = [
    ("Standard Queen", "Queen bed, city view", 2, 1, Decimal("120.00"), ["101", "102", "103", "104"]),
    ("Deluxe King", "King bed, harbour view", 2, 2, Decimal("180.00"), ["201", "202", "203"]),
    ("Family Suite", "Two bedrooms, kitchenette", 4, 3, Decimal("260.00"), ["301", "302"]),
]

HOTEL_ADDONS = [
    ("Breakfast", Decimal("18.00"), True),
    ("Parking", Decimal("25.00"), False),
]

ACTIVITY_ADDONS = [
    ("Harbour Cruise", Decimal("45.00"), True, 120),
    ("Spa Session", Decimal("90.00"), True, 60),
]

# ── Rules ──────────────────────────────────────────────────────────────────────

CANCELLATION_POLICIES = [
    ("Free cancellation", 48, Decimal("100")),
    ("Late cancellation", 24, Decimal("50")),
]

TAX_RULES = [
    ("Occupancy Tax", AdjustmentType.PERCENTAGE, Decimal("10"), TaxApplicableOn.ROOM),
    ("City Fee", AdjustmentType.FIXED, Decimal("5"), TaxApplicableOn.TOTAL),
]


async def seed(session_factory: async_sessionmaker[AsyncSession]) -> None:
    async with session_factory() as db:
        # Check if already seeded
        result = await db.execute(select(Hotel).where(Hotel.name == HOTEL["name"]))
        if result.scalar_one_or_none():
            print("Database already seeded. Skipping.")
            return

        hotel = Hotel(**HOTEL)
        db.add(hotel)
        await db.flush()

        # ── Room types and rooms ──
        room_count = 0
        for name, description, max_adults, max_children, price, numbers in ROOM_TYPES:
            room_type = RoomType(
                hotel_id=hotel.id,
                name=name,
                description=description,
                max_adults=max_adults,
                max_children=max_children,
                base_price=price,
            )
            db.add(room_type)
            await db.flush()
            for number in numbers:
                db.add(Room(hotel_id=hotel.id, room_type_id=room_type.id, room_number=number, floor=int(number[0])))
                room_count += 1
        print(f"Created {len(ROOM_TYPES)} room types with {room_count} rooms")

        # ── Add-ons ──
        for name, price, per_guest in HOTEL_ADDONS:
            db.add(HotelAddon(hotel_id=hotel.id, name=name, base_price=price, per_guest=per_guest))
        for name, price, per_guest, minutes in ACTIVITY_ADDONS:
            db.add(
                ActivityAddon(
                    hotel_id=hotel.id, name=name, base_price=price, per_guest=per_guest, duration_minutes=minutes
                )
            )
        print(f"Created {len(HOTEL_ADDONS)} hotel add-ons and {len(ACTIVITY_ADDONS)} activities")

        # ── Pricing rules ──
        for name, hours, pct in CANCELLATION_POLICIES:
            db.add(CancellationPolicy(hotel_id=hotel.id, name=name, hours_before_check_in=hours, refund_percentage=pct))
        for name, tax_type, value, applicable_on in TAX_RULES:
            db.add(
                TaxRule(
                    hotel_id=hotel.id,
                    tax_name=name,
                    tax_type=tax_type.value,
                    tax_value=value,
                    applicable_on=applicable_on.value,
                    start_date=date(2024, 1, 1),
                )
            )
        db.add(
            Coupon(
                code="WELCOME10",
                description="10% off, up to 50",
                discount_type=AdjustmentType.PERCENTAGE.value,
                discount_value=Decimal("10"),
                max_discount_amount=Decimal("50"),
                usage_limit=100,
                start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
                end_date=datetime(2030, 1, 1, tzinfo=timezone.utc),
            )
        )
        print(f"Created {len(CANCELLATION_POLICIES)} cancellation policies, {len(TAX_RULES)} tax rules, 1 coupon")

        await db.commit()
        print(f"Seed complete. Hotel id: {hotel.id}")


async def main() -> None:
    engine = build_engine(settings)
    await create_all(engine)
    await seed(build_session_factory(engine))
    await engine.dispose()

    token = create_access_token(settings, "admin", [p.value for p in Permission])
    print(f"Admin token (all permissions):\n{token}")


if __name__ == "__main__":
    asyncio.run(main())
