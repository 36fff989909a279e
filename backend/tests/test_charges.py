import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from staydesk.enums import AdjustmentType, TaxApplicableOn
from staydesk.errors import InvalidCoupon
from staydesk.models.hotel import HotelAddon
from staydesk.models.pricing import Coupon, TaxRule
from staydesk.services.charges import addon_charge, apply_charges, compute_discount, validate_coupon

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


def _coupon(**overrides) -> Coupon:
    fields = dict(
        id=uuid.uuid4(),
        code="SAVE10",
        discount_type=AdjustmentType.PERCENTAGE.value,
        discount_value=Decimal("10"),
        max_discount_amount=None,
        minimum_spend=Decimal("0"),
        usage_limit=-1,
        usage_count=0,
        start_date=datetime(2029, 1, 1, tzinfo=timezone.utc),
        end_date=datetime(2031, 1, 1, tzinfo=timezone.utc),
        is_active=True,
    )
    fields.update(overrides)
    return Coupon(**fields)


def _tax(applicable_on: TaxApplicableOn, value: str = "10", tax_type=AdjustmentType.PERCENTAGE) -> TaxRule:
    return TaxRule(
        id=uuid.uuid4(),
        hotel_id=uuid.uuid4(),
        tax_name=f"Tax on {applicable_on.value}",
        tax_type=tax_type.value,
        tax_value=Decimal(value),
        applicable_on=applicable_on.value,
        start_date=date(2029, 1, 1),
        is_active=True,
    )


def test_room_only_total():
    summary = apply_charges(Decimal("400.00"), [], None, [])
    assert summary.subtotal == Decimal("400.00")
    assert summary.discount == Decimal("0.00")
    assert summary.tax_total == Decimal("0.00")
    assert summary.total == Decimal("400.00")


def test_coupon_then_tax_on_total():
    summary = apply_charges(Decimal("300.00"), [], _coupon(), [_tax(TaxApplicableOn.TOTAL)])
    assert summary.subtotal == Decimal("300.00")
    assert summary.discount == Decimal("30.00")
    assert summary.tax_total == Decimal("27.00")
    assert summary.total == Decimal("297.00")


def test_room_tax_ignores_discount_and_addons():
    addon = HotelAddon(id=uuid.uuid4(), name="Parking", base_price=Decimal("20.00"), per_guest=False)
    lines = [addon_charge(addon, "hotel", 2, 0)]
    summary = apply_charges(Decimal("200.00"), lines, _coupon(), [_tax(TaxApplicableOn.ROOM)])
    assert summary.hotel_addons_total == Decimal("20.00")
    assert summary.subtotal == Decimal("220.00")
    assert summary.discount == Decimal("22.00")
    assert summary.tax_lines[0].basis == Decimal("200.00")
    assert summary.tax_total == Decimal("20.00")
    assert summary.total == Decimal("218.00")


def test_tax_with_zero_basis_is_skipped():
    summary = apply_charges(Decimal("100.00"), [], None, [_tax(TaxApplicableOn.ACTIVITY_ADDON)])
    assert summary.tax_lines == []
    assert summary.total == Decimal("100.00")


def test_fixed_tax_is_flat():
    summary = apply_charges(Decimal("100.00"), [], None, [_tax(TaxApplicableOn.TOTAL, "5", AdjustmentType.FIXED)])
    assert summary.tax_total == Decimal("5.00")
    assert summary.total == Decimal("105.00")


def test_per_guest_addon_quantity():
    addon = HotelAddon(id=uuid.uuid4(), name="Breakfast", base_price=Decimal("15.00"), per_guest=True)
    line = addon_charge(addon, "hotel", 2, 1)
    assert line.quantity == 3
    assert line.total == Decimal("45.00")


def test_percentage_discount_is_capped():
    coupon = _coupon(discount_value=Decimal("50"), max_discount_amount=Decimal("25"))
    assert compute_discount(coupon, Decimal("200.00")) == Decimal("25.00")


def test_fixed_discount_never_exceeds_subtotal():
    coupon = _coupon(discount_type=AdjustmentType.FIXED.value, discount_value=Decimal("80"))
    assert compute_discount(coupon, Decimal("50.00")) == Decimal("50.00")


def test_discount_rounds_half_up():
    coupon = _coupon(discount_value=Decimal("10"))
    assert compute_discount(coupon, Decimal("10.05")) == Decimal("1.01")


@pytest.mark.parametrize(
    "coupon, message",
    [
        (None, "Invalid coupon code"),
        (_coupon(is_active=False), "Coupon is inactive"),
        (_coupon(start_date=datetime(2030, 6, 1, tzinfo=timezone.utc)), "Coupon is expired or not yet active"),
        (_coupon(end_date=datetime(2029, 6, 1, tzinfo=timezone.utc)), "Coupon is expired or not yet active"),
        (_coupon(usage_limit=3, usage_count=3), "Coupon usage limit exceeded"),
        (_coupon(minimum_spend=Decimal("500")), "Minimum spend of 500.00 required"),
    ],
)
def test_coupon_rejections(coupon, message):
    with pytest.raises(InvalidCoupon) as exc:
        validate_coupon(coupon, Decimal("300.00"), NOW)
    assert exc.value.message == message


def test_unlimited_coupon_is_accepted():
    coupon = _coupon(usage_limit=-1, usage_count=10_000)
    assert validate_coupon(coupon, Decimal("300.00"), NOW) is coupon
