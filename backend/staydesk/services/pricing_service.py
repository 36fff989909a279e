"""Pricing aggregator — one priced quote from the rate engine and the charge engine.

Read-only: the same request priced twice yields the same quote and writes nothing.
Booking creation reuses it unchanged.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.data.clock import utcnow
from staydesk.data.money import ZERO, money_str, to_money
from staydesk.errors import InvalidDateRange, NotFoundError
from staydesk.models.hotel import Hotel, RoomType
from staydesk.models.pricing import Coupon
from staydesk.services.charges import ChargeSummary, apply_charges, charge_engine, validate_coupon
from staydesk.services.rate_engine import StayRate, rate_engine

logger = logging.getLogger(__name__)


@dataclass
class QuoteRequest:
    hotel_id: uuid.UUID
    room_type_id: uuid.UUID
    check_in: date
    check_out: date
    adults: int
    children: int = 0
    hotel_addon_ids: list[uuid.UUID] = field(default_factory=list)
    activity_addon_ids: list[uuid.UUID] = field(default_factory=list)
    coupon_code: str | None = None


@dataclass
class PricedQuote:
    hotel: Hotel
    room_type: RoomType
    check_in: date
    check_out: date
    stay: StayRate
    charges: ChargeSummary
    coupon: Coupon | None = None

    @property
    def nights(self) -> int:
        return self.stay.night_count

    @property
    def coupon_id(self) -> uuid.UUID | None:
        return self.coupon.id if self.coupon else None

    @property
    def coupon_code(self) -> str | None:
        return self.coupon.code if self.coupon else None

    def price_breakdown(self) -> dict:
        return {
            "nights": self.nights,
            "breakdown": [n.to_dict() for n in self.stay.nights],
            "addons": [l.to_dict() for l in self.charges.addon_lines],
            "tax_breakdown": [t.to_dict() for t in self.charges.tax_lines],
            "coupon": (
                {"code": self.coupon.code, "discount": money_str(self.charges.discount)}
                if self.coupon
                else None
            ),
        }

    def booking_fields(self) -> dict:
        """Monetary columns persisted on a booking."""
        return {
            "base_room_price": self.stay.base_price,
            "room_price_total": self.charges.room_price_total,
            "hotel_addons_total": self.charges.hotel_addons_total,
            "activity_addons_total": self.charges.activity_addons_total,
            "subtotal_price": self.charges.subtotal,
            "tax_total": self.charges.tax_total,
            "total_discount": self.charges.discount,
            "total_price": self.charges.total,
            "price_breakdown": self.price_breakdown(),
            "coupon_code": self.coupon_code,
        }

    def to_dict(self) -> dict:
        return {
            "hotel_id": str(self.hotel.id),
            "room_type_id": str(self.room_type.id),
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "currency": self.hotel.currency,
            "nights": self.nights,
            "base_room_price": money_str(self.stay.base_price),
            "room_price_total": money_str(self.charges.room_price_total),
            "hotel_addons_total": money_str(self.charges.hotel_addons_total),
            "activity_addons_total": money_str(self.charges.activity_addons_total),
            "subtotal_price": money_str(self.charges.subtotal),
            "total_discount": money_str(self.charges.discount),
            "tax_total": money_str(self.charges.tax_total),
            "total_price": money_str(self.charges.total),
            "coupon_code": self.coupon_code,
            "price_breakdown": self.price_breakdown(),
        }


class PricingService:
    async def quote(self, db: AsyncSession, req: QuoteRequest, now: datetime | None = None) -> PricedQuote:
        now = now or utcnow()

        nights = (req.check_out - req.check_in).days
        if nights <= 0:
            raise InvalidDateRange(
                "Check-out must be after check-in",
                details={"check_in": req.check_in.isoformat(), "check_out": req.check_out.isoformat()},
            )

        room_type = await db.get(RoomType, req.room_type_id)
        if not room_type or room_type.hotel_id != req.hotel_id:
            raise NotFoundError("Room type not found", details={"room_type_id": str(req.room_type_id)})

        hotel = await db.get(Hotel, req.hotel_id)
        if not hotel:
            raise NotFoundError("Hotel not found", details={"hotel_id": str(req.hotel_id)})

        stay = await rate_engine.price_stay(db, room_type, req.check_in, req.check_out)

        addon_lines = await charge_engine.load_addon_lines(
            db,
            hotel.id,
            req.hotel_addon_ids,
            req.activity_addon_ids,
            req.adults,
            req.children,
        )

        coupon = None
        if req.coupon_code:
            subtotal = to_money(stay.total + sum((l.total for l in addon_lines), ZERO))
            coupon = validate_coupon(await charge_engine.find_coupon(db, req.coupon_code), subtotal, now)

        tax_rules = await charge_engine.load_tax_rules(db, hotel.id, req.check_in, req.check_out)
        charges = apply_charges(stay.total, addon_lines, coupon, tax_rules)

        logger.info(
            f"Quote {hotel.name}/{room_type.name} {req.check_in}→{req.check_out}: "
            f"subtotal={money_str(charges.subtotal)} discount={money_str(charges.discount)} "
            f"tax={money_str(charges.tax_total)} total={money_str(charges.total)}"
        )
        return PricedQuote(
            hotel=hotel,
            room_type=room_type,
            check_in=req.check_in,
            check_out=req.check_out,
            stay=stay,
            charges=charges,
            coupon=coupon,
        )


pricing_service = PricingService()
