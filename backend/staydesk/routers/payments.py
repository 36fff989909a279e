"""Payments router — record payments and refunds, list payments."""

import uuid

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.database import get_db
from staydesk.dependencies import Principal, get_events, get_idempotency, require_permission
from staydesk.enums import Permission
from staydesk.models.booking import Booking
from staydesk.models.payment import Payment
from staydesk.schemas.payment import (
    PaymentCreate,
    PaymentResponse,
    PaymentResult,
    RefundCreate,
    RefundResponse,
    RefundResult,
)
from staydesk.services.event_dispatcher import EventDispatcher
from staydesk.services.idempotency_service import IdempotencyService
from staydesk.services.payment_service import payment_service

router = APIRouter()


@router.post("/payments", status_code=201, response_model=PaymentResult)
async def record_payment(
    req: PaymentCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission(Permission.PAYMENT_PROCESS)),
    events: EventDispatcher = Depends(get_events),
    idempotency: IdempotencyService = Depends(get_idempotency),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
):
    async def compute():
        payment = await payment_service.record_payment(
            db,
            req.booking_id,
            req.amount,
            req.payment_mode,
            actor_id=principal.id,
            transaction_ref=req.transaction_ref,
            gateway_name=req.gateway_name,
            gateway_response=req.gateway_response,
            events=events,
        )
        booking = await db.get(Booking, payment.booking_id)
        result = PaymentResult(
            payment=PaymentResponse.model_validate(payment),
            booking_status=booking.status,
            booking_payment_status=booking.payment_status,
        )
        return 201, result.model_dump(mode="json")

    status_code, body = await idempotency.store_or_replay(
        request.app.state.session_factory,
        scope="Payment",
        key=idempotency_key,
        method=request.method,
        path=request.url.path,
        request_body=req.model_dump(mode="json"),
        compute_response_fn=compute,
    )
    return JSONResponse(status_code=status_code, content=body)


@router.get("/payments", response_model=list[PaymentResponse])
async def list_payments(
    booking_id: uuid.UUID | None = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission(Permission.TRANSACTION_VIEW)),
):
    return await payment_service.list_payments(db, booking_id)


@router.post("/refunds", status_code=201, response_model=RefundResult)
async def record_refund(
    req: RefundCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission(Permission.PAYMENT_REFUND)),
    events: EventDispatcher = Depends(get_events),
    idempotency: IdempotencyService = Depends(get_idempotency),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
):
    async def compute():
        refund = await payment_service.record_refund(
            db,
            req.payment_id,
            req.amount,
            reason=req.reason,
            actor_id=principal.id,
            refund_transaction_ref=req.refund_transaction_ref,
            gateway_response=req.gateway_response,
            events=events,
        )
        payment = await db.get(Payment, refund.payment_id)
        booking = await db.get(Booking, payment.booking_id)
        result = RefundResult(
            refund=RefundResponse.model_validate(refund),
            booking_id=booking.id,
            booking_payment_status=booking.payment_status,
        )
        return 201, result.model_dump(mode="json")

    status_code, body = await idempotency.store_or_replay(
        request.app.state.session_factory,
        scope="Refund",
        key=idempotency_key,
        method=request.method,
        path=request.url.path,
        request_body=req.model_dump(mode="json"),
        compute_response_fn=compute,
    )
    return JSONResponse(status_code=status_code, content=body)
