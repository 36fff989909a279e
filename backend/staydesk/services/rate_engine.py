"""Rate engine — resolves the nightly room price from base price and date-ranged overrides."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.data.money import ZERO, money_str, to_money
from staydesk.enums import PricingEntityType
from staydesk.models.hotel import RoomType
from staydesk.models.pricing import DynamicPricing

logger = logging.getLogger(__name__)

DEFAULT_RULE_LABEL = "Dynamic Price"


@dataclass
class NightlyRate:
    date: date
    price: Decimal
    rule: str | None = None
    rule_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "price": money_str(self.price),
            "rule": self.rule,
            "rule_id": self.rule_id,
        }


@dataclass
class StayRate:
    base_price: Decimal
    nights: list[NightlyRate] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return to_money(sum((n.price for n in self.nights), ZERO))

    @property
    def night_count(self) -> int:
        return len(self.nights)


def stay_nights(check_in: date, check_out: date) -> list[date]:
    """Every night of a [check_in, check_out) stay."""
    return [check_in + timedelta(days=i) for i in range((check_out - check_in).days)]


def rule_precedence(rule: DynamicPricing) -> tuple:
    """Sort key: highest priority, then narrowest range, then latest start, then id."""
    span = (rule.end_date - rule.start_date).days
    return (-(rule.priority or 0), span, -rule.start_date.toordinal(), str(rule.id))


def resolve_rule(rules: list[DynamicPricing], night: date) -> DynamicPricing | None:
    for rule in sorted(rules, key=rule_precedence):
        if rule.is_active and rule.start_date <= night < rule.end_date:
            return rule
    return None


def nightly_price(room_type: RoomType, night: date, rules: list[DynamicPricing]) -> NightlyRate:
    rule = resolve_rule(rules, night)
    if rule is None:
        return NightlyRate(date=night, price=to_money(room_type.base_price))
    return NightlyRate(
        date=night,
        price=to_money(rule.price),
        rule=rule.notes or DEFAULT_RULE_LABEL,
        rule_id=str(rule.id),
    )


def price_stay(
    room_type: RoomType, check_in: date, check_out: date, rules: list[DynamicPricing]
) -> StayRate:
    stay = StayRate(base_price=to_money(room_type.base_price))
    for night in stay_nights(check_in, check_out):
        stay.nights.append(nightly_price(room_type, night, rules))
    return stay


class RateEngine:
    """Loads override rules for a room type and prices each night of a stay."""

    async def load_rules(
        self, db: AsyncSession, room_type_id: uuid.UUID, check_in: date, check_out: date
    ) -> list[DynamicPricing]:
        result = await db.execute(
            select(DynamicPricing).where(
                DynamicPricing.entity_type == PricingEntityType.ROOM_TYPE.value,
                DynamicPricing.entity_id == room_type_id,
                DynamicPricing.is_active == True,
                DynamicPricing.start_date < check_out,
                DynamicPricing.end_date > check_in,
            )
        )
        return list(result.scalars().all())

    async def price_stay(
        self, db: AsyncSession, room_type: RoomType, check_in: date, check_out: date
    ) -> StayRate:
        rules = await self.load_rules(db, room_type.id, check_in, check_out)
        stay = price_stay(room_type, check_in, check_out, rules)
        logger.debug(
            f"Priced {stay.night_count} nights for room type {room_type.id}: "
            f"{money_str(stay.total)} ({len(rules)} override rules)"
        )
        return stay


rate_engine = RateEngine()
