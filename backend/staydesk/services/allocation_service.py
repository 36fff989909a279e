"""Availability search and room allocation over the per-night inventory table.

A night is taken when a ``room_availability`` row for (room, date) has
``is_booked = true``; a missing row means free. Claiming a night is a
conditional write: flip an existing free row, or insert a new booked row and
let the unique (room_id, date) constraint reject a concurrent claim. A claim
that loses either race, or is refused the write lock, raises
``AvailabilityConflict`` and the caller's transaction rolls back whole.
"""

import logging
import uuid
from collections import defaultdict
from datetime import date

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.data.money import money_str
from staydesk.enums import RoomStatus
from staydesk.errors import AvailabilityConflict, InvalidDateRange, NoRoomAvailable, NotFoundError
from staydesk.models.hotel import Hotel, Room, RoomAvailability, RoomType
from staydesk.services.rate_engine import stay_nights

logger = logging.getLogger(__name__)


class AllocationService:
    async def candidate_rooms(
        self, db: AsyncSession, hotel_id: uuid.UUID, room_type_id: uuid.UUID, lock: bool = False
    ) -> list[uuid.UUID]:
        """Active, sellable rooms of a type in a stable order."""
        stmt = (
            select(Room.id)
            .where(
                Room.hotel_id == hotel_id,
                Room.room_type_id == room_type_id,
                Room.is_active == True,
                Room.status == RoomStatus.AVAILABLE.value,
            )
            .order_by(Room.room_number, Room.id)
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def booked_room_ids(
        self, db: AsyncSession, room_ids: list[uuid.UUID], check_in: date, check_out: date
    ) -> set[uuid.UUID]:
        if not room_ids:
            return set()
        result = await db.execute(
            select(RoomAvailability.room_id)
            .where(
                RoomAvailability.room_id.in_(room_ids),
                RoomAvailability.is_booked == True,
                RoomAvailability.date >= check_in,
                RoomAvailability.date < check_out,
            )
            .distinct()
        )
        return set(result.scalars().all())

    async def search_availability(
        self,
        db: AsyncSession,
        hotel_id: uuid.UUID,
        check_in: date,
        check_out: date,
        adults: int,
        children: int = 0,
    ) -> list[dict]:
        """Free-room count per room type that fits the party. Types with no free room are left out."""
        if check_out <= check_in:
            raise InvalidDateRange("Check-out must be after check-in")

        hotel = await db.get(Hotel, hotel_id)
        if not hotel:
            raise NotFoundError("Hotel not found", details={"hotel_id": str(hotel_id)})

        rt_result = await db.execute(
            select(RoomType)
            .where(
                RoomType.hotel_id == hotel_id,
                RoomType.is_active == True,
                RoomType.max_adults >= adults,
                RoomType.max_children >= children,
            )
            .order_by(RoomType.base_price, RoomType.name)
        )
        room_types = rt_result.scalars().all()
        if not room_types:
            return []

        room_result = await db.execute(
            select(Room.id, Room.room_type_id).where(
                Room.room_type_id.in_([rt.id for rt in room_types]),
                Room.is_active == True,
                Room.status == RoomStatus.AVAILABLE.value,
            )
        )
        rooms_by_type: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
        for room_id, room_type_id in room_result.all():
            rooms_by_type[room_type_id].append(room_id)

        all_room_ids = [rid for ids in rooms_by_type.values() for rid in ids]
        booked = await self.booked_room_ids(db, all_room_ids, check_in, check_out)

        results = []
        for rt in room_types:
            free = [rid for rid in rooms_by_type.get(rt.id, []) if rid not in booked]
            if not free:
                continue
            results.append({
                "room_type_id": str(rt.id),
                "name": rt.name,
                "description": rt.description,
                "max_adults": rt.max_adults,
                "max_children": rt.max_children,
                "base_price": money_str(rt.base_price),
                "currency": hotel.currency,
                "available_rooms": len(free),
            })
        return results

    async def allocate(
        self,
        db: AsyncSession,
        hotel_id: uuid.UUID,
        room_type_id: uuid.UUID,
        check_in: date,
        check_out: date,
    ) -> uuid.UUID:
        """Pick the first free room of the type and claim every night of the stay.

        Must run inside the caller's transaction; nothing is committed here.
        """
        candidates = await self.candidate_rooms(db, hotel_id, room_type_id, lock=True)
        if not candidates:
            raise NoRoomAvailable(
                "No rooms available of this type", details={"room_type_id": str(room_type_id)}
            )

        booked = await self.booked_room_ids(db, candidates, check_in, check_out)
        selected = next((rid for rid in candidates if rid not in booked), None)
        if selected is None:
            raise NoRoomAvailable(
                "No rooms available for the selected dates",
                details={
                    "room_type_id": str(room_type_id),
                    "check_in": check_in.isoformat(),
                    "check_out": check_out.isoformat(),
                },
            )

        await self.claim_nights(db, selected, check_in, check_out)
        logger.info(f"Allocated room {selected} for {check_in}→{check_out}")
        return selected

    async def claim_nights(self, db: AsyncSession, room_id: uuid.UUID, check_in: date, check_out: date) -> None:
        for night in stay_nights(check_in, check_out):
            try:
                await self.claim_night(db, room_id, night)
            except OperationalError as exc:
                # write lock held by a concurrent claim
                raise AvailabilityConflict(
                    "Room is being claimed by another request",
                    details={"room_id": str(room_id), "date": night.isoformat()},
                ) from exc

    async def claim_night(self, db: AsyncSession, room_id: uuid.UUID, night: date) -> None:
        flipped = await db.execute(
            update(RoomAvailability)
            .where(
                RoomAvailability.room_id == room_id,
                RoomAvailability.date == night,
                RoomAvailability.is_booked == False,
            )
            .values(is_booked=True)
            .execution_options(synchronize_session=False)
        )
        if flipped.rowcount == 1:
            return

        existing = await db.execute(
            select(RoomAvailability.id).where(
                RoomAvailability.room_id == room_id,
                RoomAvailability.date == night,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise AvailabilityConflict(
                "Room became unavailable during processing",
                details={"room_id": str(room_id), "date": night.isoformat()},
            )

        try:
            await db.execute(
                insert(RoomAvailability).values(
                    id=uuid.uuid4(), room_id=room_id, date=night, is_booked=True
                )
            )
        except IntegrityError as exc:
            raise AvailabilityConflict(
                "Room became unavailable during processing",
                details={"room_id": str(room_id), "date": night.isoformat()},
            ) from exc

    async def link_to_booking(
        self,
        db: AsyncSession,
        room_id: uuid.UUID,
        check_in: date,
        check_out: date,
        booking_id: uuid.UUID,
    ) -> int:
        result = await db.execute(
            update(RoomAvailability)
            .where(
                RoomAvailability.room_id == room_id,
                RoomAvailability.date >= check_in,
                RoomAvailability.date < check_out,
                RoomAvailability.is_booked == True,
                RoomAvailability.booking_id.is_(None),
            )
            .values(booking_id=booking_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def release(self, db: AsyncSession, booking_id: uuid.UUID) -> int:
        """Free every night held by a booking."""
        result = await db.execute(
            update(RoomAvailability)
            .where(RoomAvailability.booking_id == booking_id)
            .values(is_booked=False, booking_id=None)
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Released {result.rowcount} nights held by booking {booking_id}")
        return result.rowcount


allocation_service = AllocationService()
