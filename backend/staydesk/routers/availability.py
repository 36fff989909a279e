import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.database import get_db
from staydesk.services.allocation_service import allocation_service

router = APIRouter()


@router.get("/search")
async def search_availability(
    hotel_id: uuid.UUID,
    check_in: date,
    check_out: date,
    adults: int = Query(1, ge=1),
    children: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    room_types = await allocation_service.search_availability(
        db, hotel_id, check_in, check_out, adults, children
    )
    return {
        "hotel_id": str(hotel_id),
        "check_in": check_in.isoformat(),
        "check_out": check_out.isoformat(),
        "room_types": room_types,
    }
