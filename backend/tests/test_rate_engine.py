import uuid
from datetime import date
from decimal import Decimal

from staydesk.enums import PricingEntityType
from staydesk.models.hotel import RoomType
from staydesk.models.pricing import DynamicPricing
from staydesk.services.rate_engine import price_stay, resolve_rule, stay_nights


def _room_type(base: str = "100.00") -> RoomType:
    return RoomType(id=uuid.uuid4(), hotel_id=uuid.uuid4(), name="Standard", base_price=Decimal(base))


def _rule(room_type: RoomType, start: date, end: date, price: str, priority: int = 0, **kw) -> DynamicPricing:
    return DynamicPricing(
        id=kw.pop("id", uuid.uuid4()),
        entity_type=PricingEntityType.ROOM_TYPE.value,
        entity_id=room_type.id,
        start_date=start,
        end_date=end,
        price=Decimal(price),
        priority=priority,
        is_active=kw.pop("is_active", True),
        notes=kw.pop("notes", None),
    )


def test_stay_nights_excludes_checkout():
    nights = stay_nights(date(2030, 3, 1), date(2030, 3, 4))
    assert nights == [date(2030, 3, 1), date(2030, 3, 2), date(2030, 3, 3)]


def test_base_price_when_no_rules():
    rt = _room_type()
    stay = price_stay(rt, date(2030, 3, 1), date(2030, 3, 5), [])
    assert stay.night_count == 4
    assert stay.total == Decimal("400.00")
    assert all(n.rule is None for n in stay.nights)


def test_rule_end_date_is_exclusive():
    rt = _room_type()
    rule = _rule(rt, date(2030, 3, 1), date(2030, 3, 2), "200.00", notes="Weekend")
    stay = price_stay(rt, date(2030, 3, 1), date(2030, 3, 3), [rule])
    assert [n.price for n in stay.nights] == [Decimal("200.00"), Decimal("100.00")]
    assert stay.nights[0].rule == "Weekend"
    assert stay.nights[0].rule_id == str(rule.id)


def test_higher_priority_wins():
    rt = _room_type()
    low = _rule(rt, date(2030, 3, 1), date(2030, 3, 10), "150.00", priority=1)
    high = _rule(rt, date(2030, 3, 1), date(2030, 3, 10), "180.00", priority=5)
    assert resolve_rule([low, high], date(2030, 3, 4)) is high


def test_equal_priority_prefers_narrower_range():
    rt = _room_type()
    wide = _rule(rt, date(2030, 3, 1), date(2030, 3, 31), "150.00")
    narrow = _rule(rt, date(2030, 3, 3), date(2030, 3, 6), "170.00")
    assert resolve_rule([wide, narrow], date(2030, 3, 4)) is narrow


def test_equal_priority_and_span_prefers_later_start_then_id():
    rt = _room_type()
    early = _rule(rt, date(2030, 3, 1), date(2030, 3, 6), "150.00")
    late = _rule(rt, date(2030, 3, 2), date(2030, 3, 7), "160.00")
    assert resolve_rule([early, late], date(2030, 3, 4)) is late

    first = _rule(rt, date(2030, 3, 1), date(2030, 3, 6), "150.00", id=uuid.UUID(int=1))
    second = _rule(rt, date(2030, 3, 1), date(2030, 3, 6), "160.00", id=uuid.UUID(int=2))
    assert resolve_rule([second, first], date(2030, 3, 4)) is first
    assert resolve_rule([first, second], date(2030, 3, 4)) is first


def test_inactive_rule_is_ignored():
    rt = _room_type()
    rule = _rule(rt, date(2030, 3, 1), date(2030, 3, 5), "999.00", is_active=False)
    stay = price_stay(rt, date(2030, 3, 1), date(2030, 3, 3), [rule])
    assert stay.total == Decimal("200.00")
