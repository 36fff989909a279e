from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from staydesk.enums import AdjustmentType, PricingEntityType, TaxApplicableOn
from staydesk.errors import InvalidCoupon, InvalidDateRange, NotFoundError
from staydesk.models.booking import Booking
from staydesk.models.pricing import DynamicPricing, TaxRule
from staydesk.services.pricing_service import QuoteRequest, pricing_service

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.anyio
async def test_four_nights_at_base_price(db, seed_hotel):
    seeded = await seed_hotel()
    req = QuoteRequest(seeded.hotel_id, seeded.room_type_id, date(2030, 2, 1), date(2030, 2, 5), adults=2)

    quote = await pricing_service.quote(db, req, now=NOW)

    assert quote.nights == 4
    assert quote.charges.total == Decimal("400.00")
    assert quote.to_dict()["total_price"] == "400.00"


@pytest.mark.anyio
async def test_override_coupon_and_tax_on_total(db, seed_hotel, add_coupon):
    seeded = await seed_hotel()
    db.add(
        DynamicPricing(
            entity_type=PricingEntityType.ROOM_TYPE.value,
            entity_id=seeded.room_type_id,
            start_date=date(2030, 2, 1),
            end_date=date(2030, 2, 2),
            price=Decimal("200.00"),
            priority=10,
            is_active=True,
        )
    )
    db.add(
        TaxRule(
            hotel_id=seeded.hotel_id,
            tax_name="VAT",
            tax_type=AdjustmentType.PERCENTAGE.value,
            tax_value=Decimal("10"),
            applicable_on=TaxApplicableOn.TOTAL.value,
            start_date=date(2029, 1, 1),
            is_active=True,
        )
    )
    await db.commit()
    await add_coupon("SAVE10", value="10")

    req = QuoteRequest(
        seeded.hotel_id, seeded.room_type_id, date(2030, 2, 1), date(2030, 2, 3), adults=2, coupon_code="save10"
    )
    quote = await pricing_service.quote(db, req, now=NOW)

    assert [n.price for n in quote.stay.nights] == [Decimal("200.00"), Decimal("100.00")]
    assert quote.charges.subtotal == Decimal("300.00")
    assert quote.charges.discount == Decimal("30.00")
    assert quote.charges.tax_total == Decimal("27.00")
    assert quote.charges.total == Decimal("297.00")
    assert quote.coupon_code == "SAVE10"


@pytest.mark.anyio
async def test_quote_includes_addons(db, seed_hotel):
    seeded = await seed_hotel()
    req = QuoteRequest(
        seeded.hotel_id,
        seeded.room_type_id,
        date(2030, 2, 1),
        date(2030, 2, 3),
        adults=2,
        hotel_addon_ids=seeded.hotel_addon_ids,
        activity_addon_ids=seeded.activity_addon_ids,
    )

    quote = await pricing_service.quote(db, req, now=NOW)

    # add-ons are charged once per stay
    assert quote.charges.hotel_addons_total == Decimal("50.00")
    assert quote.charges.activity_addons_total == Decimal("80.00")
    assert quote.charges.subtotal == Decimal("330.00")
    assert len(quote.price_breakdown()["addons"]) == 3


@pytest.mark.anyio
async def test_quote_is_read_only_and_repeatable(db, seed_hotel, add_coupon):
    seeded = await seed_hotel()
    coupon = await add_coupon("ONCE", usage_limit=1)
    req = QuoteRequest(
        seeded.hotel_id, seeded.room_type_id, date(2030, 2, 1), date(2030, 2, 3), adults=1, coupon_code="ONCE"
    )

    first = await pricing_service.quote(db, req, now=NOW)
    second = await pricing_service.quote(db, req, now=NOW)

    assert first.to_dict() == second.to_dict()
    await db.refresh(coupon)
    assert coupon.usage_count == 0
    assert (await db.execute(select(func.count(Booking.id)))).scalar_one() == 0


@pytest.mark.anyio
async def test_quote_rejects_bad_input(db, seed_hotel, add_coupon):
    seeded = await seed_hotel()

    with pytest.raises(InvalidDateRange):
        await pricing_service.quote(
            db, QuoteRequest(seeded.hotel_id, seeded.room_type_id, date(2030, 2, 3), date(2030, 2, 3), 1), now=NOW
        )

    other = await seed_hotel(name="Other Hotel")
    with pytest.raises(NotFoundError):
        await pricing_service.quote(
            db, QuoteRequest(other.hotel_id, seeded.room_type_id, date(2030, 2, 1), date(2030, 2, 3), 1), now=NOW
        )

    with pytest.raises(InvalidCoupon):
        await pricing_service.quote(
            db,
            QuoteRequest(seeded.hotel_id, seeded.room_type_id, date(2030, 2, 1), date(2030, 2, 3), 1, coupon_code="NOPE"),
            now=NOW,
        )
