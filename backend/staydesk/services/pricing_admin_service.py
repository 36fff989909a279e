"""Pricing administration — dynamic price overrides, tax rules, coupons and cancellation policies."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.data.money import money_str
from staydesk.enums import PricingEntityType
from staydesk.errors import ConflictError, NotFoundError, ValidationError
from staydesk.models.hotel import ActivityAddon, Hotel, HotelAddon, RoomType
from staydesk.models.pricing import CancellationPolicy, Coupon, DynamicPricing, TaxRule

logger = logging.getLogger(__name__)

ENTITY_MODELS = {
    PricingEntityType.ROOM_TYPE.value: RoomType,
    PricingEntityType.HOTEL_ADDON.value: HotelAddon,
    PricingEntityType.ACTIVITY_ADDON.value: ActivityAddon,
}


class PricingAdminService:
    # ── Dynamic pricing ──

    async def create_dynamic_pricing(self, db: AsyncSession, data: dict, actor_id: str | None = None) -> DynamicPricing:
        entity_type = data["entity_type"]
        model = ENTITY_MODELS.get(entity_type)
        if model is None:
            raise ValidationError("Unknown pricing entity type", details={"entity_type": entity_type})
        if data["end_date"] <= data["start_date"]:
            raise ValidationError("end_date must be after start_date")

        target = await db.get(model, data["entity_id"])
        if not target:
            raise NotFoundError(f"{entity_type} not found", details={"entity_id": str(data["entity_id"])})

        if data.get("is_active", True):
            result = await db.execute(
                select(DynamicPricing).where(
                    DynamicPricing.entity_type == entity_type,
                    DynamicPricing.entity_id == data["entity_id"],
                    DynamicPricing.is_active == True,
                    DynamicPricing.start_date < data["end_date"],
                    DynamicPricing.end_date > data["start_date"],
                )
            )
            clash = result.scalars().first()
            if clash:
                raise ConflictError(
                    "Date range overlaps with an existing rule",
                    code="pricing_rule_overlap",
                    details={
                        "rule_id": str(clash.id),
                        "start_date": clash.start_date.isoformat(),
                        "end_date": clash.end_date.isoformat(),
                    },
                )

        rule = DynamicPricing(
            entity_type=entity_type,
            entity_id=data["entity_id"],
            start_date=data["start_date"],
            end_date=data["end_date"],
            price=data["price"],
            priority=data.get("priority", 0),
            is_active=data.get("is_active", True),
            notes=data.get("notes"),
            created_by=actor_id,
        )
        db.add(rule)
        await db.commit()
        await db.refresh(rule)
        logger.info(
            f"Dynamic price {money_str(rule.price)} for {entity_type} {rule.entity_id} "
            f"{rule.start_date}→{rule.end_date} (priority {rule.priority})"
        )
        return rule

    async def list_dynamic_pricing(
        self,
        db: AsyncSession,
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
        active_only: bool = False,
    ) -> list[DynamicPricing]:
        stmt = select(DynamicPricing).order_by(DynamicPricing.start_date, DynamicPricing.priority.desc())
        if entity_type:
            stmt = stmt.where(DynamicPricing.entity_type == entity_type)
        if entity_id:
            stmt = stmt.where(DynamicPricing.entity_id == entity_id)
        if active_only:
            stmt = stmt.where(DynamicPricing.is_active == True)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ── Tax rules ──

    async def create_tax_rule(self, db: AsyncSession, data: dict, actor_id: str | None = None) -> TaxRule:
        await self._require_hotel(db, data["hotel_id"])
        if data.get("end_date") and data["end_date"] <= data["start_date"]:
            raise ValidationError("end_date must be after start_date")

        rule = TaxRule(
            hotel_id=data["hotel_id"],
            tax_name=data["tax_name"],
            tax_type=data["tax_type"],
            tax_value=data["tax_value"],
            applicable_on=data["applicable_on"],
            start_date=data["start_date"],
            end_date=data.get("end_date"),
            is_active=data.get("is_active", True),
            notes=data.get("notes"),
            created_by=actor_id,
        )
        db.add(rule)
        await db.commit()
        await db.refresh(rule)
        logger.info(f"Tax rule '{rule.tax_name}' created for hotel {rule.hotel_id}")
        return rule

    async def list_tax_rules(self, db: AsyncSession, hotel_id: uuid.UUID | None = None) -> list[TaxRule]:
        stmt = select(TaxRule).order_by(TaxRule.created_at)
        if hotel_id:
            stmt = stmt.where(TaxRule.hotel_id == hotel_id)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ── Coupons ──

    async def create_coupon(self, db: AsyncSession, data: dict, actor_id: str | None = None) -> Coupon:
        code = data["code"].strip().upper()
        if data["end_date"] <= data["start_date"]:
            raise ValidationError("end_date must be after start_date")

        existing = await db.execute(select(Coupon.id).where(Coupon.code == code))
        if existing.scalar_one_or_none():
            raise ConflictError("Coupon code already exists", code="duplicate_coupon", details={"code": code})

        coupon = Coupon(
            code=code,
            description=data.get("description"),
            discount_type=data["discount_type"],
            discount_value=data["discount_value"],
            max_discount_amount=data.get("max_discount_amount"),
            minimum_spend=data.get("minimum_spend") or 0,
            usage_limit=data.get("usage_limit", -1),
            usage_count=0,
            start_date=data["start_date"],
            end_date=data["end_date"],
            is_active=data.get("is_active", True),
            created_by=actor_id,
        )
        db.add(coupon)
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise ConflictError("Coupon code already exists", code="duplicate_coupon", details={"code": code}) from exc
        await db.refresh(coupon)
        logger.info(f"Coupon {code} created")
        return coupon

    async def list_coupons(self, db: AsyncSession, active_only: bool = False) -> list[Coupon]:
        stmt = select(Coupon).order_by(Coupon.code)
        if active_only:
            stmt = stmt.where(Coupon.is_active == True)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ── Cancellation policies ──

    async def create_cancellation_policy(self, db: AsyncSession, data: dict) -> CancellationPolicy:
        await self._require_hotel(db, data["hotel_id"])
        policy = CancellationPolicy(
            hotel_id=data["hotel_id"],
            name=data["name"],
            hours_before_check_in=data["hours_before_check_in"],
            refund_percentage=data["refund_percentage"],
            priority=data.get("priority", 0),
            is_active=data.get("is_active", True),
        )
        db.add(policy)
        await db.commit()
        await db.refresh(policy)
        logger.info(
            f"Cancellation policy '{policy.name}' for hotel {policy.hotel_id}: "
            f"{policy.refund_percentage}% at ≥{policy.hours_before_check_in}h"
        )
        return policy

    async def list_cancellation_policies(self, db: AsyncSession, hotel_id: uuid.UUID | None = None) -> list[CancellationPolicy]:
        stmt = select(CancellationPolicy).order_by(CancellationPolicy.hours_before_check_in.desc())
        if hotel_id:
            stmt = stmt.where(CancellationPolicy.hotel_id == hotel_id)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def _require_hotel(self, db: AsyncSession, hotel_id: uuid.UUID) -> Hotel:
        hotel = await db.get(Hotel, hotel_id)
        if not hotel:
            raise NotFoundError("Hotel not found", details={"hotel_id": str(hotel_id)})
        return hotel


pricing_admin_service = PricingAdminService()
