import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from staydesk.enums import BookedBy
from staydesk.schemas.payment import PaymentResponse, RefundResponse
from staydesk.schemas.pricing import QuoteRequestBody
from staydesk.services.booking_service import BookingRequest


class BookingCreate(QuoteRequestBody):
    guest_name: str = Field(min_length=1, max_length=200)
    guest_email: str | None = None
    guest_phone: str | None = None
    booked_by: BookedBy = BookedBy.GUEST

    def to_booking_request(self) -> BookingRequest:
        return BookingRequest(
            quote=self.to_quote_request(),
            guest_name=self.guest_name,
            guest_email=self.guest_email,
            guest_phone=self.guest_phone,
            booked_by=self.booked_by,
        )


class BookingCancel(BaseModel):
    reason: str | None = None


class BookingAddonResponse(BaseModel):
    addon_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    model_config = {"from_attributes": True}


class BookingCouponResponse(BaseModel):
    coupon_id: uuid.UUID
    coupon_code: str
    discount_amount: Decimal

    model_config = {"from_attributes": True}


class BookingPaymentResponse(PaymentResponse):
    refunds: list[RefundResponse] = []


class BookingResponse(BaseModel):
    id: uuid.UUID
    hotel_id: uuid.UUID
    room_type_id: uuid.UUID
    room_id: uuid.UUID
    check_in_date: date
    check_out_date: date
    num_adults: int
    num_children: int
    guest_name: str
    guest_email: str | None
    guest_phone: str | None
    booked_by: str
    status: str
    payment_status: str
    status_changed_at: datetime | None
    status_reason: str | None
    base_room_price: Decimal
    room_price_total: Decimal
    hotel_addons_total: Decimal
    activity_addons_total: Decimal
    subtotal_price: Decimal
    tax_total: Decimal
    total_discount: Decimal
    total_price: Decimal
    price_breakdown: dict
    coupon_code: str | None
    created_at: datetime
    payments: list[BookingPaymentResponse] = []
    hotel_addons: list[BookingAddonResponse] = []
    activity_addons: list[BookingAddonResponse] = []
    coupon_application: BookingCouponResponse | None = None

    model_config = {"from_attributes": True}


class CancellationResponse(BaseModel):
    booking: BookingResponse
    refund_amount: Decimal
    policy_id: uuid.UUID | None = None
    policy_name: str | None = None
    hours_before_check_in: float | None = None
    released_nights: int
    refunds: list[RefundResponse] = []
