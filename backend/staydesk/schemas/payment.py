import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from staydesk.enums import PaymentMode


class PaymentCreate(BaseModel):
    booking_id: uuid.UUID
    amount: Decimal = Field(gt=0, decimal_places=2)
    payment_mode: PaymentMode
    transaction_ref: str | None = None
    gateway_name: str | None = None
    gateway_response: dict | None = None

    model_config = {"use_enum_values": True}


class RefundCreate(BaseModel):
    payment_id: uuid.UUID
    amount: Decimal = Field(gt=0, decimal_places=2)
    reason: str | None = None
    refund_transaction_ref: str | None = None
    gateway_response: dict | None = None


class PaymentResponse(BaseModel):
    id: uuid.UUID
    booking_id: uuid.UUID
    amount: Decimal
    payment_mode: str
    payment_status: str
    payment_date: datetime
    transaction_ref: str | None
    gateway_name: str | None

    model_config = {"from_attributes": True}


class RefundResponse(BaseModel):
    id: uuid.UUID
    payment_id: uuid.UUID
    amount: Decimal
    status: str
    refund_date: datetime
    reason: str | None
    refund_transaction_ref: str | None

    model_config = {"from_attributes": True}


class PaymentResult(BaseModel):
    payment: PaymentResponse
    booking_status: str
    booking_payment_status: str


class RefundResult(BaseModel):
    refund: RefundResponse
    booking_id: uuid.UUID
    booking_payment_status: str
