"""Ledger helpers shared by the payment and cancellation paths.

Net paid is always recomputed from storage: completed payments minus their
completed refunds. Booking payment status is a function of net paid and the
booking total, never an incremental counter.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.data.money import money_str, to_money
from staydesk.enums import PaymentStatus, TransactionType
from staydesk.models.booking import Booking
from staydesk.models.hotel import Hotel
from staydesk.models.payment import LedgerTransaction, Payment, Refund


def derive_payment_status(net_paid: Decimal, total_due: Decimal, has_payments: bool) -> str:
    if not has_payments:
        return PaymentStatus.PENDING.value
    if net_paid >= total_due:
        return PaymentStatus.FULLY_PAID.value
    if net_paid <= 0:
        return PaymentStatus.REFUNDED.value
    return PaymentStatus.PARTIALLY_PAID.value


async def refunded_on_payment(db: AsyncSession, payment_id: uuid.UUID) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(Refund.amount), 0)).where(
            Refund.payment_id == payment_id,
            Refund.status == PaymentStatus.COMPLETED.value,
        )
    )
    return to_money(result.scalar_one())


async def completed_payments(db: AsyncSession, booking_id: uuid.UUID, lock: bool = False) -> list[Payment]:
    """Completed payments for a booking, oldest first."""
    stmt = (
        select(Payment)
        .where(Payment.booking_id == booking_id, Payment.payment_status == PaymentStatus.COMPLETED.value)
        .order_by(Payment.payment_date, Payment.created_at, Payment.id)
    )
    if lock:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def net_paid(db: AsyncSession, booking_id: uuid.UUID) -> tuple[Decimal, int]:
    """(net paid, number of completed payments) for a booking."""
    paid_result = await db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0), func.count(Payment.id)).where(
            Payment.booking_id == booking_id,
            Payment.payment_status == PaymentStatus.COMPLETED.value,
        )
    )
    paid, count = paid_result.one()

    refunded_result = await db.execute(
        select(func.coalesce(func.sum(Refund.amount), 0))
        .join(Payment, Refund.payment_id == Payment.id)
        .where(
            Payment.booking_id == booking_id,
            Payment.payment_status == PaymentStatus.COMPLETED.value,
            Refund.status == PaymentStatus.COMPLETED.value,
        )
    )
    refunded = refunded_result.scalar_one()
    return to_money(to_money(paid) - to_money(refunded)), count


async def recompute_payment_status(db: AsyncSession, booking: Booking) -> str:
    """Flush pending writes, recompute and set booking.payment_status."""
    await db.flush()
    net, count = await net_paid(db, booking.id)
    booking.payment_status = derive_payment_status(net, to_money(booking.total_price), count > 0)
    return booking.payment_status


async def hotel_currency(db: AsyncSession, hotel_id: uuid.UUID) -> str:
    result = await db.execute(select(Hotel.currency).where(Hotel.id == hotel_id))
    return result.scalar_one_or_none() or "USD"


async def write_ledger(
    db: AsyncSession,
    booking: Booking,
    amount: Decimal,
    transaction_type: TransactionType,
    now: datetime,
    payment_id: uuid.UUID | None = None,
    refund_id: uuid.UUID | None = None,
    notes: str | None = None,
) -> LedgerTransaction:
    """Append one signed ledger row. Refunds are stored negative."""
    amount = to_money(amount)
    signed = -abs(amount) if transaction_type == TransactionType.REFUND else abs(amount)
    row = LedgerTransaction(
        booking_id=booking.id,
        payment_id=payment_id,
        refund_id=refund_id,
        transaction_type=transaction_type.value,
        amount=signed,
        currency=await hotel_currency(db, booking.hotel_id),
        transaction_date=now,
        notes=notes or f"{transaction_type.value} of {money_str(amount)}",
    )
    db.add(row)
    return row


async def list_transactions(db: AsyncSession, booking_id: uuid.UUID) -> list[LedgerTransaction]:
    result = await db.execute(
        select(LedgerTransaction)
        .where(LedgerTransaction.booking_id == booking_id)
        .order_by(LedgerTransaction.transaction_date, LedgerTransaction.id)
    )
    return list(result.scalars().all())
