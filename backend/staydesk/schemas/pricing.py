import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from staydesk.enums import AdjustmentType, PricingEntityType, TaxApplicableOn
from staydesk.services.pricing_service import QuoteRequest


class QuoteRequestBody(BaseModel):
    hotel_id: uuid.UUID
    room_type_id: uuid.UUID
    check_in: date
    check_out: date
    adults: int = Field(1, ge=1)
    children: int = Field(0, ge=0)
    hotel_addon_ids: list[uuid.UUID] = []
    activity_addon_ids: list[uuid.UUID] = []
    coupon_code: str | None = None

    def to_quote_request(self) -> QuoteRequest:
        return QuoteRequest(
            hotel_id=self.hotel_id,
            room_type_id=self.room_type_id,
            check_in=self.check_in,
            check_out=self.check_out,
            adults=self.adults,
            children=self.children,
            hotel_addon_ids=list(self.hotel_addon_ids),
            activity_addon_ids=list(self.activity_addon_ids),
            coupon_code=self.coupon_code or None,
        )


# ── Rule administration ──


class DynamicPricingCreate(BaseModel):
    entity_type: PricingEntityType
    entity_id: uuid.UUID
    start_date: date
    end_date: date
    price: Decimal = Field(ge=0)
    priority: int = 0
    is_active: bool = True
    notes: str | None = None

    model_config = {"use_enum_values": True}


class DynamicPricingResponse(BaseModel):
    id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    start_date: date
    end_date: date
    price: Decimal
    priority: int
    is_active: bool
    notes: str | None

    model_config = {"from_attributes": True}


class TaxRuleCreate(BaseModel):
    hotel_id: uuid.UUID
    tax_name: str = Field(min_length=1)
    tax_type: AdjustmentType
    tax_value: Decimal = Field(ge=0)
    applicable_on: TaxApplicableOn
    start_date: date
    end_date: date | None = None
    is_active: bool = True
    notes: str | None = None

    model_config = {"use_enum_values": True}


class TaxRuleResponse(BaseModel):
    id: uuid.UUID
    hotel_id: uuid.UUID
    tax_name: str
    tax_type: str
    tax_value: Decimal
    applicable_on: str
    start_date: date
    end_date: date | None
    is_active: bool

    model_config = {"from_attributes": True}


class CouponCreate(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    description: str | None = None
    discount_type: AdjustmentType
    discount_value: Decimal = Field(ge=0)
    max_discount_amount: Decimal | None = Field(None, ge=0)
    minimum_spend: Decimal = Field(Decimal("0"), ge=0)
    usage_limit: int = Field(-1, ge=-1)
    start_date: datetime
    end_date: datetime
    is_active: bool = True

    model_config = {"use_enum_values": True}


class CouponResponse(BaseModel):
    id: uuid.UUID
    code: str
    description: str | None
    discount_type: str
    discount_value: Decimal
    max_discount_amount: Decimal | None
    minimum_spend: Decimal
    usage_limit: int
    usage_count: int
    start_date: datetime
    end_date: datetime
    is_active: bool

    model_config = {"from_attributes": True}


class CancellationPolicyCreate(BaseModel):
    hotel_id: uuid.UUID
    name: str = Field(min_length=1)
    hours_before_check_in: int = Field(ge=0)
    refund_percentage: Decimal = Field(ge=0, le=100)
    priority: int = 0
    is_active: bool = True


class CancellationPolicyResponse(BaseModel):
    id: uuid.UUID
    hotel_id: uuid.UUID
    name: str
    hours_before_check_in: int
    refund_percentage: Decimal
    priority: int
    is_active: bool

    model_config = {"from_attributes": True}
