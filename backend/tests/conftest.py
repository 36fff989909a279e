"""Shared fixtures for the backend tests.

- Every test gets its own SQLite file; the schema comes from ORM metadata.
- HTTP calls go through the local ASGI app via httpx.ASGITransport.
- AnyIO runs the async tests (@pytest.mark.anyio) on asyncio.
"""

import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx
import pytest
from httpx import ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.config import Settings
from staydesk.database import create_all
from staydesk.dependencies import create_access_token
from staydesk.enums import AdjustmentType, Permission
from staydesk.main import configure_state, create_app
from staydesk.models.hotel import ActivityAddon, Hotel, HotelAddon, Room, RoomType
from staydesk.models.pricing import CancellationPolicy, Coupon


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'staydesk_test.db'}",
        secret_key="test-secret",
        scheduler_enabled=False,
        seed_on_startup=False,
    )


@pytest.fixture
async def app(settings: Settings, anyio_backend) -> AsyncGenerator[Any, None]:
    """App with storage wired on app.state (ASGITransport does not run the lifespan)."""
    application = create_app(settings)
    configure_state(application, settings)
    await create_all(application.state.engine)
    try:
        yield application
    finally:
        await application.state.events.drain()
        await application.state.engine.dispose()


@pytest.fixture
async def db(app) -> AsyncGenerator[AsyncSession, None]:
    async with app.state.session_factory() as session:
        yield session


@pytest.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def auth_headers(settings: Settings):
    """Bearer headers for a principal; all permissions unless some are named."""

    def _headers(*permissions: Permission, subject: str = "staff-1", idempotency_key: str | None = None) -> dict:
        granted = [p.value for p in (permissions or tuple(Permission))]
        headers = {"Authorization": f"Bearer {create_access_token(settings, subject, granted)}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    return _headers


@dataclass
class SeededHotel:
    """Plain ids only: a rollback expires ORM instances held by the test session."""

    hotel_id: uuid.UUID
    room_type_id: uuid.UUID
    room_ids: list[uuid.UUID] = field(default_factory=list)
    hotel_addon_ids: list[uuid.UUID] = field(default_factory=list)
    activity_addon_ids: list[uuid.UUID] = field(default_factory=list)


@pytest.fixture
def seed_hotel(db: AsyncSession):
    """Factory: one hotel (UTC, check-in 14:00) with one room type and ``rooms`` rooms."""

    async def _seed(
        rooms: int = 2,
        base_price: Decimal = Decimal("100.00"),
        max_adults: int = 2,
        max_children: int = 1,
        name: str = "Test Hotel",
    ) -> SeededHotel:
        hotel = Hotel(name=name, currency="USD", timezone="UTC", check_in_time="14:00", check_out_time="11:00")
        db.add(hotel)
        await db.flush()

        room_type = RoomType(
            hotel_id=hotel.id,
            name="Standard",
            max_adults=max_adults,
            max_children=max_children,
            base_price=base_price,
            is_active=True,
        )
        db.add(room_type)
        await db.flush()

        room_list = [
            Room(
                hotel_id=hotel.id,
                room_type_id=room_type.id,
                room_number=f"{101 + i}",
                status="Available",
                is_active=True,
            )
            for i in range(rooms)
        ]
        breakfast = HotelAddon(hotel_id=hotel.id, name="Breakfast", base_price=Decimal("15.00"), per_guest=True, is_active=True)
        parking = HotelAddon(hotel_id=hotel.id, name="Parking", base_price=Decimal("20.00"), per_guest=False, is_active=True)
        tour = ActivityAddon(hotel_id=hotel.id, name="City Tour", base_price=Decimal("40.00"), per_guest=True, is_active=True)
        db.add_all([*room_list, breakfast, parking, tour])
        await db.flush()

        seeded = SeededHotel(
            hotel_id=hotel.id,
            room_type_id=room_type.id,
            room_ids=[r.id for r in room_list],
            hotel_addon_ids=[breakfast.id, parking.id],
            activity_addon_ids=[tour.id],
        )
        await db.commit()
        return seeded

    return _seed


@pytest.fixture
def add_policy(db: AsyncSession):
    async def _add(hotel_id: uuid.UUID, hours: int, pct: str, name: str | None = None, priority: int = 0):
        policy = CancellationPolicy(
            hotel_id=hotel_id,
            name=name or f"{pct}% at {hours}h",
            hours_before_check_in=hours,
            refund_percentage=Decimal(pct),
            priority=priority,
            is_active=True,
        )
        db.add(policy)
        await db.commit()
        return policy

    return _add


@pytest.fixture
def add_coupon(db: AsyncSession):
    async def _add(
        code: str = "SAVE10",
        discount_type: AdjustmentType = AdjustmentType.PERCENTAGE,
        value: str = "10",
        usage_limit: int = -1,
        max_discount: str | None = None,
        minimum_spend: str = "0",
        start: datetime = datetime(2020, 1, 1, tzinfo=timezone.utc),
        end: datetime = datetime(2099, 1, 1, tzinfo=timezone.utc),
        is_active: bool = True,
    ) -> Coupon:
        coupon = Coupon(
            code=code,
            discount_type=discount_type.value,
            discount_value=Decimal(value),
            max_discount_amount=Decimal(max_discount) if max_discount else None,
            minimum_spend=Decimal(minimum_spend),
            usage_limit=usage_limit,
            usage_count=0,
            start_date=start,
            end_date=end,
            is_active=is_active,
        )
        db.add(coupon)
        await db.commit()
        return coupon

    return _add
