import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from staydesk.enums import BookingStatus, PaymentStatus
from staydesk.errors import BusinessRuleViolation, NotFoundError, RefundExceedsBalance, ValidationError
from staydesk.services.booking_service import BookingRequest, booking_service
from staydesk.services.ledger import derive_payment_status, list_transactions, net_paid
from staydesk.services.payment_service import payment_service
from staydesk.services.pricing_service import QuoteRequest

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


async def _booking(db, seeded):
    """A 2-night stay at 100 a night (total 200)."""
    booking = await booking_service.create_booking(
        db,
        BookingRequest(
            quote=QuoteRequest(seeded.hotel_id, seeded.room_type_id, date(2030, 2, 1), date(2030, 2, 3), adults=1),
            guest_name="Ada Guest",
        ),
        now=NOW,
    )
    return booking.id


def test_derive_payment_status():
    total = Decimal("200.00")
    assert derive_payment_status(Decimal("0"), total, has_payments=False) == PaymentStatus.PENDING.value
    assert derive_payment_status(Decimal("50"), total, has_payments=True) == PaymentStatus.PARTIALLY_PAID.value
    assert derive_payment_status(Decimal("200"), total, has_payments=True) == PaymentStatus.FULLY_PAID.value
    assert derive_payment_status(Decimal("250"), total, has_payments=True) == PaymentStatus.FULLY_PAID.value
    assert derive_payment_status(Decimal("0"), total, has_payments=True) == PaymentStatus.REFUNDED.value


@pytest.mark.anyio
async def test_partial_then_full_payment_confirms(db, seed_hotel):
    seeded = await seed_hotel()
    booking_id = await _booking(db, seeded)

    await payment_service.record_payment(db, booking_id, Decimal("50.00"), "Cash", now=NOW)
    booking = await booking_service.get_booking(db, booking_id)
    assert booking.payment_status == PaymentStatus.PARTIALLY_PAID.value
    assert booking.status == BookingStatus.PENDING.value

    await payment_service.record_payment(db, booking_id, Decimal("150.00"), "Card", now=NOW)
    booking = await booking_service.get_booking(db, booking_id)
    assert booking.payment_status == PaymentStatus.FULLY_PAID.value
    assert booking.status == BookingStatus.CONFIRMED.value
    assert len(booking.payments) == 2

    ledger = await list_transactions(db, booking_id)
    assert sum(t.amount for t in ledger) == Decimal("200.00")


@pytest.mark.anyio
async def test_refund_above_payment_balance_is_rejected(db, seed_hotel):
    seeded = await seed_hotel()
    booking_id = await _booking(db, seeded)
    payment = await payment_service.record_payment(db, booking_id, Decimal("50.00"), "Cash", now=NOW)
    payment_id = payment.id

    with pytest.raises(BusinessRuleViolation) as exc:
        await payment_service.record_refund(db, payment_id, Decimal("51.00"), now=NOW)
    assert isinstance(exc.value, RefundExceedsBalance)
    assert exc.value.details["refundable"] == "50.00"

    net, count = await net_paid(db, booking_id)
    assert net == Decimal("50.00")
    assert count == 1
    assert len(await list_transactions(db, booking_id)) == 1


@pytest.mark.anyio
async def test_partial_refunds_until_exhausted(db, seed_hotel):
    seeded = await seed_hotel()
    booking_id = await _booking(db, seeded)
    payment = await payment_service.record_payment(db, booking_id, Decimal("200.00"), "Card", now=NOW)
    payment_id = payment.id

    await payment_service.record_refund(
        db, payment_id, Decimal("120.00"), reason="Early checkout", now=NOW + timedelta(hours=1)
    )
    booking = await booking_service.get_booking(db, booking_id)
    assert booking.payment_status == PaymentStatus.PARTIALLY_PAID.value

    await payment_service.record_refund(db, payment_id, Decimal("80.00"), now=NOW + timedelta(hours=2))
    booking = await booking_service.get_booking(db, booking_id)
    assert booking.payment_status == PaymentStatus.REFUNDED.value
    # refunds never move the lifecycle status back
    assert booking.status == BookingStatus.CONFIRMED.value

    with pytest.raises(RefundExceedsBalance):
        await payment_service.record_refund(db, payment_id, Decimal("0.01"), now=NOW)

    ledger = await list_transactions(db, booking_id)
    assert [t.amount for t in ledger] == [Decimal("200.00"), Decimal("-120.00"), Decimal("-80.00")]


@pytest.mark.anyio
async def test_payment_rules(db, seed_hotel):
    seeded = await seed_hotel()
    booking_id = await _booking(db, seeded)

    with pytest.raises(ValidationError):
        await payment_service.record_payment(db, booking_id, Decimal("0"), "Cash", now=NOW)
    with pytest.raises(NotFoundError):
        await payment_service.record_payment(db, uuid.uuid4(), Decimal("10.00"), "Cash", now=NOW)
    with pytest.raises(NotFoundError):
        await payment_service.record_refund(db, uuid.uuid4(), Decimal("10.00"), now=NOW)

    await booking_service.cancel_booking(db, booking_id, now=NOW)
    with pytest.raises(BusinessRuleViolation):
        await payment_service.record_payment(db, booking_id, Decimal("10.00"), "Cash", now=NOW)


@pytest.mark.anyio
async def test_list_payments_newest_first(db, seed_hotel):
    seeded = await seed_hotel()
    booking_id = await _booking(db, seeded)
    await payment_service.record_payment(db, booking_id, Decimal("20.00"), "Cash", now=NOW)
    await payment_service.record_payment(
        db, booking_id, Decimal("30.00"), "Card", now=datetime(2030, 1, 2, tzinfo=timezone.utc)
    )

    payments = await payment_service.list_payments(db, booking_id)
    assert [p.amount for p in payments] == [Decimal("30.00"), Decimal("20.00")]
