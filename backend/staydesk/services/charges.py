"""Surcharge / discount engine — add-ons, coupon discount and taxes on top of the room total.

Order of application is fixed: add-ons → subtotal → coupon → taxes → total.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.data.clock import as_utc
from staydesk.data.money import ZERO, money_str, percent_of, to_money
from staydesk.enums import UNLIMITED_USAGE, AdjustmentType, TaxApplicableOn
from staydesk.errors import InvalidCoupon, NotFoundError
from staydesk.models.hotel import ActivityAddon, HotelAddon
from staydesk.models.pricing import Coupon, TaxRule

logger = logging.getLogger(__name__)


@dataclass
class AddonLine:
    addon_id: uuid.UUID
    name: str
    kind: str  # hotel | activity
    quantity: int
    unit_price: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "addon_id": str(self.addon_id),
            "name": self.name,
            "kind": self.kind,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "total": money_str(self.total),
        }


@dataclass
class TaxLine:
    tax_rule_id: uuid.UUID
    name: str
    applicable_on: str
    basis: Decimal
    amount: Decimal

    def to_dict(self) -> dict:
        return {
            "tax_rule_id": str(self.tax_rule_id),
            "name": self.name,
            "applicable_on": self.applicable_on,
            "basis": money_str(self.basis),
            "amount": money_str(self.amount),
        }


@dataclass
class ChargeSummary:
    room_price_total: Decimal
    hotel_addons_total: Decimal = ZERO
    activity_addons_total: Decimal = ZERO
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    tax_total: Decimal = ZERO
    total: Decimal = ZERO
    addon_lines: list[AddonLine] = field(default_factory=list)
    tax_lines: list[TaxLine] = field(default_factory=list)

    @property
    def price_after_discount(self) -> Decimal:
        return to_money(self.subtotal - self.discount)


# ── Pure calculations ─────────────────────────────────────────────────────────


def addon_charge(addon: HotelAddon | ActivityAddon, kind: str, adults: int, children: int) -> AddonLine:
    """Add-ons are charged once per stay, per guest when flagged."""
    quantity = (adults + children) if addon.per_guest else 1
    unit_price = to_money(addon.base_price)
    return AddonLine(
        addon_id=addon.id,
        name=addon.name,
        kind=kind,
        quantity=quantity,
        unit_price=unit_price,
        total=to_money(unit_price * quantity),
    )


def validate_coupon(coupon: Coupon | None, subtotal: Decimal, now: datetime) -> Coupon:
    if coupon is None:
        raise InvalidCoupon("Invalid coupon code")
    if not coupon.is_active:
        raise InvalidCoupon("Coupon is inactive", details={"code": coupon.code})
    if not (as_utc(coupon.start_date) <= now < as_utc(coupon.end_date)):
        raise InvalidCoupon("Coupon is expired or not yet active", details={"code": coupon.code})
    if coupon.usage_limit != UNLIMITED_USAGE and coupon.usage_count >= coupon.usage_limit:
        raise InvalidCoupon("Coupon usage limit exceeded", details={"code": coupon.code})
    minimum = to_money(coupon.minimum_spend)
    if subtotal < minimum:
        raise InvalidCoupon(
            f"Minimum spend of {money_str(minimum)} required",
            details={"code": coupon.code, "minimum_spend": money_str(minimum)},
        )
    return coupon


def compute_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    if coupon.discount_type == AdjustmentType.PERCENTAGE:
        discount = percent_of(subtotal, coupon.discount_value)
        if coupon.max_discount_amount is not None:
            discount = min(discount, to_money(coupon.max_discount_amount))
    else:
        discount = to_money(coupon.discount_value)
    return min(discount, subtotal)


def tax_basis(rule: TaxRule, summary: ChargeSummary) -> Decimal:
    if rule.applicable_on == TaxApplicableOn.TOTAL:
        return summary.price_after_discount
    if rule.applicable_on == TaxApplicableOn.ROOM:
        return summary.room_price_total
    if rule.applicable_on == TaxApplicableOn.HOTEL_ADDON:
        return summary.hotel_addons_total
    if rule.applicable_on == TaxApplicableOn.ACTIVITY_ADDON:
        return summary.activity_addons_total
    return ZERO


def compute_taxes(rules: list[TaxRule], summary: ChargeSummary) -> list[TaxLine]:
    lines = []
    for rule in rules:
        basis = tax_basis(rule, summary)
        if basis <= 0:
            continue
        if rule.tax_type == AdjustmentType.PERCENTAGE:
            amount = percent_of(basis, rule.tax_value)
        else:
            amount = to_money(rule.tax_value)
        lines.append(
            TaxLine(
                tax_rule_id=rule.id,
                name=rule.tax_name,
                applicable_on=rule.applicable_on,
                basis=basis,
                amount=amount,
            )
        )
    return lines


def apply_charges(
    room_price_total: Decimal,
    addon_lines: list[AddonLine],
    coupon: Coupon | None,
    tax_rules: list[TaxRule],
) -> ChargeSummary:
    """Combine room total, add-on lines, an already-validated coupon and tax rules."""
    summary = ChargeSummary(room_price_total=to_money(room_price_total), addon_lines=addon_lines)
    summary.hotel_addons_total = to_money(sum((l.total for l in addon_lines if l.kind == "hotel"), ZERO))
    summary.activity_addons_total = to_money(
        sum((l.total for l in addon_lines if l.kind == "activity"), ZERO)
    )
    summary.subtotal = to_money(
        summary.room_price_total + summary.hotel_addons_total + summary.activity_addons_total
    )
    if coupon is not None:
        summary.discount = compute_discount(coupon, summary.subtotal)

    summary.tax_lines = compute_taxes(tax_rules, summary)
    summary.tax_total = to_money(sum((t.amount for t in summary.tax_lines), ZERO))
    summary.total = to_money(summary.price_after_discount + summary.tax_total)
    return summary


# ── Loaders ───────────────────────────────────────────────────────────────────


class ChargeEngine:
    """Fetches add-ons, coupons and tax rules for a hotel."""

    async def load_addon_lines(
        self,
        db: AsyncSession,
        hotel_id: uuid.UUID,
        hotel_addon_ids: list[uuid.UUID],
        activity_addon_ids: list[uuid.UUID],
        adults: int,
        children: int,
    ) -> list[AddonLine]:
        lines: list[AddonLine] = []
        for model, kind, ids in (
            (HotelAddon, "hotel", hotel_addon_ids),
            (ActivityAddon, "activity", activity_addon_ids),
        ):
            wanted = list(dict.fromkeys(ids or []))
            if not wanted:
                continue
            result = await db.execute(
                select(model).where(
                    model.id.in_(wanted),
                    model.hotel_id == hotel_id,
                    model.is_active == True,
                )
            )
            found = {a.id: a for a in result.scalars().all()}
            missing = [str(i) for i in wanted if i not in found]
            if missing:
                raise NotFoundError(f"{kind.title()} add-on not found", details={"addon_ids": missing})
            lines.extend(addon_charge(found[i], kind, adults, children) for i in wanted)
        return lines

    async def find_coupon(self, db: AsyncSession, code: str) -> Coupon | None:
        result = await db.execute(select(Coupon).where(Coupon.code == code.strip().upper()))
        return result.scalar_one_or_none()

    async def load_tax_rules(
        self, db: AsyncSession, hotel_id: uuid.UUID, check_in: date, check_out: date
    ) -> list[TaxRule]:
        result = await db.execute(
            select(TaxRule)
            .where(
                TaxRule.hotel_id == hotel_id,
                TaxRule.is_active == True,
                TaxRule.start_date <= check_out,
                or_(TaxRule.end_date.is_(None), TaxRule.end_date >= check_in),
            )
            .order_by(TaxRule.created_at, TaxRule.tax_name)
        )
        return list(result.scalars().all())


charge_engine = ChargeEngine()
