import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from staydesk.enums import AdjustmentType, PricingEntityType, TaxApplicableOn
from staydesk.errors import ConflictError, NotFoundError, ValidationError
from staydesk.services.pricing_admin_service import pricing_admin_service


def _rule(room_type_id, start, end, price="150.00", **extra) -> dict:
    return {
        "entity_type": PricingEntityType.ROOM_TYPE.value,
        "entity_id": room_type_id,
        "start_date": start,
        "end_date": end,
        "price": Decimal(price),
        **extra,
    }


@pytest.mark.anyio
async def test_overlapping_active_rules_are_rejected(db, seed_hotel):
    seeded = await seed_hotel()
    first = await pricing_admin_service.create_dynamic_pricing(
        db, _rule(seeded.room_type_id, date(2030, 3, 1), date(2030, 3, 10)), actor_id="admin"
    )
    assert first.created_by == "admin"

    with pytest.raises(ConflictError) as exc:
        await pricing_admin_service.create_dynamic_pricing(
            db, _rule(seeded.room_type_id, date(2030, 3, 9), date(2030, 3, 12))
        )
    assert exc.value.code == "pricing_rule_overlap"

    # touching ranges share no night
    await pricing_admin_service.create_dynamic_pricing(
        db, _rule(seeded.room_type_id, date(2030, 3, 10), date(2030, 3, 12))
    )
    # an inactive rule may overlap
    await pricing_admin_service.create_dynamic_pricing(
        db, _rule(seeded.room_type_id, date(2030, 3, 1), date(2030, 3, 12), is_active=False)
    )

    rules = await pricing_admin_service.list_dynamic_pricing(db, entity_id=seeded.room_type_id, active_only=True)
    assert len(rules) == 2


@pytest.mark.anyio
async def test_dynamic_pricing_validation(db, seed_hotel):
    seeded = await seed_hotel()
    with pytest.raises(ValidationError):
        await pricing_admin_service.create_dynamic_pricing(
            db, _rule(seeded.room_type_id, date(2030, 3, 5), date(2030, 3, 5))
        )
    with pytest.raises(NotFoundError):
        await pricing_admin_service.create_dynamic_pricing(db, _rule(uuid.uuid4(), date(2030, 3, 1), date(2030, 3, 5)))
    with pytest.raises(ValidationError):
        await pricing_admin_service.create_dynamic_pricing(
            db, {**_rule(seeded.room_type_id, date(2030, 3, 1), date(2030, 3, 5)), "entity_type": "Spa"}
        )


@pytest.mark.anyio
async def test_addon_price_rules_are_accepted(db, seed_hotel):
    seeded = await seed_hotel()
    rule = await pricing_admin_service.create_dynamic_pricing(
        db,
        {
            "entity_type": PricingEntityType.HOTEL_ADDON.value,
            "entity_id": seeded.hotel_addon_ids[0],
            "start_date": date(2030, 3, 1),
            "end_date": date(2030, 3, 5),
            "price": Decimal("12.00"),
        },
    )
    assert rule.entity_type == "HotelAddOn"


@pytest.mark.anyio
async def test_coupon_codes_are_unique_case_insensitively(db):
    data = {
        "code": "summer25",
        "discount_type": AdjustmentType.PERCENTAGE.value,
        "discount_value": Decimal("25"),
        "start_date": datetime(2030, 6, 1, tzinfo=timezone.utc),
        "end_date": datetime(2030, 9, 1, tzinfo=timezone.utc),
    }
    coupon = await pricing_admin_service.create_coupon(db, data)
    assert coupon.code == "SUMMER25"
    assert coupon.usage_limit == -1

    with pytest.raises(ConflictError) as exc:
        await pricing_admin_service.create_coupon(db, {**data, "code": "Summer25"})
    assert exc.value.code == "duplicate_coupon"


@pytest.mark.anyio
async def test_tax_rules_and_policies_need_a_hotel(db, seed_hotel):
    with pytest.raises(NotFoundError):
        await pricing_admin_service.create_cancellation_policy(
            db, {"hotel_id": uuid.uuid4(), "name": "Free", "hours_before_check_in": 48, "refund_percentage": Decimal("100")}
        )

    seeded = await seed_hotel()
    rule = await pricing_admin_service.create_tax_rule(
        db,
        {
            "hotel_id": seeded.hotel_id,
            "tax_name": "City Tax",
            "tax_type": AdjustmentType.FIXED.value,
            "tax_value": Decimal("3.50"),
            "applicable_on": TaxApplicableOn.ROOM.value,
            "start_date": date(2030, 1, 1),
        },
    )
    assert [r.id for r in await pricing_admin_service.list_tax_rules(db, seeded.hotel_id)] == [rule.id]
