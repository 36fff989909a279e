"""Booking router — create, view and cancel reservations."""

import logging
import uuid

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.data.money import money_str
from staydesk.database import get_db
from staydesk.dependencies import Principal, get_events, get_idempotency, require_permission
from staydesk.enums import Permission
from staydesk.schemas.booking import BookingCancel, BookingCreate, BookingResponse, CancellationResponse
from staydesk.schemas.payment import RefundResponse
from staydesk.services.booking_service import booking_service
from staydesk.services.event_dispatcher import EventDispatcher
from staydesk.services.idempotency_service import IdempotencyService
from staydesk.services.ledger import list_transactions

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=201, response_model=BookingResponse)
async def create_booking(
    req: BookingCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission(Permission.BOOKING_CREATE)),
    events: EventDispatcher = Depends(get_events),
    idempotency: IdempotencyService = Depends(get_idempotency),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
):
    async def compute():
        booking = await booking_service.create_booking(db, req.to_booking_request(), principal.id, events)
        booking = await booking_service.get_booking(db, booking.id)
        return 201, BookingResponse.model_validate(booking).model_dump(mode="json")

    status_code, body = await idempotency.store_or_replay(
        request.app.state.session_factory,
        scope="Booking",
        key=idempotency_key,
        method=request.method,
        path=request.url.path,
        request_body=req.model_dump(mode="json"),
        compute_response_fn=compute,
    )
    return JSONResponse(status_code=status_code, content=body)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission(Permission.BOOKING_VIEW)),
):
    return await booking_service.get_booking(db, booking_id)


@router.post("/{booking_id}/cancel", response_model=CancellationResponse)
async def cancel_booking(
    booking_id: uuid.UUID,
    req: BookingCancel | None = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission(Permission.BOOKING_CANCEL)),
    events: EventDispatcher = Depends(get_events),
):
    outcome = await booking_service.cancel_booking(
        db, booking_id, principal.id, reason=req.reason if req else None, events=events
    )
    booking = await booking_service.get_booking(db, booking_id)
    return CancellationResponse(
        booking=BookingResponse.model_validate(booking),
        refund_amount=outcome.refund_amount,
        policy_id=outcome.policy.id if outcome.policy else None,
        policy_name=outcome.policy.name if outcome.policy else None,
        hours_before_check_in=outcome.hours_before_check_in,
        released_nights=outcome.released_nights,
        refunds=[RefundResponse.model_validate(r) for r in outcome.refunds],
    )


@router.get("/{booking_id}/transactions")
async def get_booking_transactions(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission(Permission.TRANSACTION_VIEW)),
):
    """Signed ledger rows for a booking, oldest first."""
    await booking_service.get_booking(db, booking_id)
    rows = await list_transactions(db, booking_id)
    return {
        "booking_id": str(booking_id),
        "transactions": [
            {
                "id": str(t.id),
                "transaction_type": t.transaction_type,
                "amount": money_str(t.amount),
                "currency": t.currency,
                "payment_id": str(t.payment_id) if t.payment_id else None,
                "refund_id": str(t.refund_id) if t.refund_id else None,
                "transaction_date": t.transaction_date.isoformat(),
                "notes": t.notes,
            }
            for t in rows
        ],
    }
