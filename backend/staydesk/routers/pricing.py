"""Pricing router — public price quotes and admin management of pricing rules."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.database import get_db
from staydesk.dependencies import Principal, require_permission
from staydesk.enums import Permission
from staydesk.schemas.pricing import (
    CancellationPolicyCreate,
    CancellationPolicyResponse,
    CouponCreate,
    CouponResponse,
    DynamicPricingCreate,
    DynamicPricingResponse,
    QuoteRequestBody,
    TaxRuleCreate,
    TaxRuleResponse,
)
from staydesk.services.pricing_admin_service import pricing_admin_service
from staydesk.services.pricing_service import pricing_service

router = APIRouter()

manage_pricing = require_permission(Permission.PRICING_MANAGE)


@router.post("/quote")
async def quote_price(req: QuoteRequestBody, db: AsyncSession = Depends(get_db)):
    """Price a stay without booking it."""
    quote = await pricing_service.quote(db, req.to_quote_request())
    return quote.to_dict()


# ── Dynamic pricing ──


@router.post("/dynamic-pricing", status_code=201, response_model=DynamicPricingResponse)
async def create_dynamic_pricing(
    req: DynamicPricingCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(manage_pricing),
):
    return await pricing_admin_service.create_dynamic_pricing(db, req.model_dump(), principal.id)


@router.get("/dynamic-pricing", response_model=list[DynamicPricingResponse])
async def list_dynamic_pricing(
    entity_type: str | None = None,
    entity_id: uuid.UUID | None = None,
    active_only: bool = False,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(manage_pricing),
):
    return await pricing_admin_service.list_dynamic_pricing(db, entity_type, entity_id, active_only)


# ── Tax rules ──


@router.post("/tax-rules", status_code=201, response_model=TaxRuleResponse)
async def create_tax_rule(
    req: TaxRuleCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(manage_pricing),
):
    return await pricing_admin_service.create_tax_rule(db, req.model_dump(), principal.id)


@router.get("/tax-rules", response_model=list[TaxRuleResponse])
async def list_tax_rules(
    hotel_id: uuid.UUID | None = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(manage_pricing),
):
    return await pricing_admin_service.list_tax_rules(db, hotel_id)


# ── Coupons ──


@router.post("/coupons", status_code=201, response_model=CouponResponse)
async def create_coupon(
    req: CouponCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(manage_pricing),
):
    return await pricing_admin_service.create_coupon(db, req.model_dump(), principal.id)


@router.get("/coupons", response_model=list[CouponResponse])
async def list_coupons(
    active_only: bool = False,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(manage_pricing),
):
    return await pricing_admin_service.list_coupons(db, active_only)


# ── Cancellation policies ──


@router.post("/cancellation-policies", status_code=201, response_model=CancellationPolicyResponse)
async def create_cancellation_policy(
    req: CancellationPolicyCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(manage_pricing),
):
    return await pricing_admin_service.create_cancellation_policy(db, req.model_dump())


@router.get("/cancellation-policies", response_model=list[CancellationPolicyResponse])
async def list_cancellation_policies(
    hotel_id: uuid.UUID | None = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(manage_pricing),
):
    return await pricing_admin_service.list_cancellation_policies(db, hotel_id)
