import asyncio
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import select

from staydesk.errors import AvailabilityConflict, InvalidDateRange, NoRoomAvailable
from staydesk.models.booking import Booking
from staydesk.models.hotel import RoomAvailability
from staydesk.services.allocation_service import allocation_service
from staydesk.services.booking_service import BookingRequest, booking_service
from staydesk.services.pricing_service import QuoteRequest

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


def _request(seeded, check_in: date, check_out: date, guest: str = "Ada Guest") -> BookingRequest:
    return BookingRequest(
        quote=QuoteRequest(seeded.hotel_id, seeded.room_type_id, check_in, check_out, adults=1),
        guest_name=guest,
        guest_email="guest@example.com",
    )


@pytest.mark.anyio
async def test_single_room_cannot_be_double_booked(db, seed_hotel):
    seeded = await seed_hotel(rooms=1)

    first = await booking_service.create_booking(db, _request(seeded, date(2030, 2, 1), date(2030, 2, 4)), now=NOW)
    assert first.room_id == seeded.room_ids[0]

    with pytest.raises(NoRoomAvailable):
        await booking_service.create_booking(
            db, _request(seeded, date(2030, 2, 3), date(2030, 2, 5), "Second Guest"), now=NOW
        )

    # back-to-back stay shares no night
    adjacent = await booking_service.create_booking(
        db, _request(seeded, date(2030, 2, 4), date(2030, 2, 6), "Third Guest"), now=NOW
    )
    assert adjacent.room_id == seeded.room_ids[0]


@pytest.mark.anyio
async def test_nights_are_linked_to_booking(db, seed_hotel):
    seeded = await seed_hotel(rooms=1)
    booking = await booking_service.create_booking(db, _request(seeded, date(2030, 2, 1), date(2030, 2, 4)), now=NOW)

    rows = (
        await db.execute(select(RoomAvailability).where(RoomAvailability.booking_id == booking.id))
    ).scalars().all()
    assert sorted(r.date for r in rows) == [date(2030, 2, 1), date(2030, 2, 2), date(2030, 2, 3)]
    assert all(r.is_booked for r in rows)


@pytest.mark.anyio
async def test_search_counts_free_rooms_and_hides_full_types(db, seed_hotel):
    seeded = await seed_hotel(rooms=2)

    results = await allocation_service.search_availability(
        db, seeded.hotel_id, date(2030, 2, 1), date(2030, 2, 3), adults=1
    )
    assert results[0]["available_rooms"] == 2

    await booking_service.create_booking(db, _request(seeded, date(2030, 2, 1), date(2030, 2, 3)), now=NOW)
    results = await allocation_service.search_availability(
        db, seeded.hotel_id, date(2030, 2, 1), date(2030, 2, 3), adults=1
    )
    assert results[0]["available_rooms"] == 1

    await booking_service.create_booking(db, _request(seeded, date(2030, 2, 2), date(2030, 2, 3), "B"), now=NOW)
    results = await allocation_service.search_availability(
        db, seeded.hotel_id, date(2030, 2, 1), date(2030, 2, 3), adults=1
    )
    assert results == []


@pytest.mark.anyio
async def test_search_filters_by_capacity_and_dates(db, seed_hotel):
    seeded = await seed_hotel(max_adults=2)

    assert await allocation_service.search_availability(
        db, seeded.hotel_id, date(2030, 2, 1), date(2030, 2, 3), adults=3
    ) == []
    with pytest.raises(InvalidDateRange):
        await allocation_service.search_availability(db, seeded.hotel_id, date(2030, 2, 3), date(2030, 2, 1), 1)


@pytest.mark.anyio
async def test_cancel_frees_nights_for_the_next_guest(db, seed_hotel):
    seeded = await seed_hotel(rooms=1)
    booking = await booking_service.create_booking(db, _request(seeded, date(2030, 2, 1), date(2030, 2, 3)), now=NOW)

    outcome = await booking_service.cancel_booking(db, booking.id, now=NOW)
    assert outcome.released_nights == 2

    results = await allocation_service.search_availability(
        db, seeded.hotel_id, date(2030, 2, 1), date(2030, 2, 3), adults=1
    )
    assert results[0]["available_rooms"] == 1

    again = await booking_service.create_booking(
        db, _request(seeded, date(2030, 2, 1), date(2030, 2, 3), "Next Guest"), now=NOW
    )
    assert again.room_id == seeded.room_ids[0]


@pytest.mark.anyio
async def test_claim_on_taken_night_conflicts(db, seed_hotel):
    seeded = await seed_hotel(rooms=1)
    room_id = seeded.room_ids[0]
    db.add(RoomAvailability(room_id=room_id, date=date(2030, 2, 2), is_booked=True))
    await db.commit()

    with pytest.raises(AvailabilityConflict):
        await allocation_service.claim_nights(db, room_id, date(2030, 2, 1), date(2030, 2, 3))
    await db.rollback()

    rows = (await db.execute(select(RoomAvailability).where(RoomAvailability.room_id == room_id))).scalars().all()
    assert [(r.date, r.is_booked) for r in rows] == [(date(2030, 2, 2), True)]


@pytest.mark.anyio
async def test_concurrent_overlapping_bookings_have_one_winner(app, db, seed_hotel):
    seeded = await seed_hotel(rooms=1)

    async def attempt(guest: str, check_in: date, check_out: date):
        async with app.state.session_factory() as session:
            return await booking_service.create_booking(
                session, _request(seeded, check_in, check_out, guest), now=NOW
            )

    results = await asyncio.gather(
        attempt("First Guest", date(2030, 2, 1), date(2030, 2, 4)),
        attempt("Second Guest", date(2030, 2, 2), date(2030, 2, 5)),
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, Booking)]
    losers = [r for r in results if not isinstance(r, Booking)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], (NoRoomAvailable, AvailabilityConflict))
    assert losers[0].retryable is True

    rows = (await db.execute(select(RoomAvailability))).scalars().all()
    assert rows
    assert all(r.booking_id == winners[0].id for r in rows)
    assert len(rows) == 3
