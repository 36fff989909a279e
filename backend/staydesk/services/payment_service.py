"""Payment service — records payments and refunds and keeps booking payment status in step."""

import logging
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.data.clock import utcnow
from staydesk.data.money import money_str, to_money
from staydesk.enums import BookingStatus, PaymentStatus, TransactionType
from staydesk.errors import BusinessRuleViolation, NotFoundError, RefundExceedsBalance, ValidationError
from staydesk.models.booking import Booking
from staydesk.models.payment import Payment, Refund
from staydesk.services.audit_service import audit_service
from staydesk.services.event_dispatcher import EventDispatcher
from staydesk.services.ledger import recompute_payment_status, refunded_on_payment, write_ledger
from staydesk.services.notification_service import notification_service

logger = logging.getLogger(__name__)


class PaymentService:
    async def record_payment(
        self,
        db: AsyncSession,
        booking_id: uuid.UUID,
        amount: Decimal,
        payment_mode: str,
        actor_id: str | None = None,
        transaction_ref: str | None = None,
        gateway_name: str | None = None,
        gateway_response: dict | None = None,
        events: EventDispatcher | None = None,
        now: datetime | None = None,
    ) -> Payment:
        """Record a completed payment. A booking that becomes fully paid moves Pending → Confirmed."""
        now = now or utcnow()
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be positive", details={"amount": money_str(amount)})

        try:
            result = await db.execute(select(Booking).where(Booking.id == booking_id).with_for_update())
            booking = result.scalar_one_or_none()
            if not booking:
                raise NotFoundError("Booking not found", details={"booking_id": str(booking_id)})
            if booking.status == BookingStatus.CANCELLED.value:
                raise BusinessRuleViolation(
                    "Cannot record a payment against a cancelled booking",
                    details={"booking_id": str(booking_id)},
                )

            payment = Payment(
                booking_id=booking.id,
                amount=amount,
                payment_mode=payment_mode,
                payment_status=PaymentStatus.COMPLETED.value,
                payment_date=now,
                transaction_ref=transaction_ref,
                gateway_name=gateway_name,
                gateway_response=gateway_response,
                created_by=actor_id,
            )
            db.add(payment)
            await db.flush()

            await write_ledger(
                db,
                booking,
                amount,
                TransactionType.PAYMENT,
                now,
                payment_id=payment.id,
                notes=f"Payment of {money_str(amount)} via {payment_mode}",
            )

            previous_status = booking.status
            payment_status = await recompute_payment_status(db, booking)
            confirmed = (
                payment_status == PaymentStatus.FULLY_PAID.value
                and booking.status == BookingStatus.PENDING.value
            )
            if confirmed:
                booking.status = BookingStatus.CONFIRMED.value
                booking.status_changed_at = now

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            f"Payment {payment.id}: {money_str(amount)} on booking {booking.id} "
            f"→ {booking.payment_status}"
        )

        if events:
            snapshot = {"amount": money_str(amount), "payment_status": booking.payment_status}
            events.emit(
                "audit:record_payment",
                lambda s: audit_service.record(
                    s, "RECORD_PAYMENT", "Payment", str(payment.id), actor_id, after_state=snapshot
                ),
            )
            if confirmed:
                events.emit(
                    "audit:confirm_booking",
                    lambda s: audit_service.record(
                        s,
                        "CONFIRM_BOOKING",
                        "Booking",
                        str(booking.id),
                        actor_id,
                        before_state={"status": previous_status},
                        after_state={"status": booking.status},
                    ),
                )
                events.emit(
                    "notify:booking_confirmed",
                    lambda s: notification_service.send_booking_confirmed(s, booking),
                )
        return payment

    async def record_refund(
        self,
        db: AsyncSession,
        payment_id: uuid.UUID,
        amount: Decimal,
        reason: str | None = None,
        actor_id: str | None = None,
        refund_transaction_ref: str | None = None,
        gateway_response: dict | None = None,
        events: EventDispatcher | None = None,
        now: datetime | None = None,
    ) -> Refund:
        """Refund part or all of one payment, bounded by what remains unrefunded on it."""
        now = now or utcnow()
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Refund amount must be positive", details={"amount": money_str(amount)})

        try:
            result = await db.execute(select(Payment).where(Payment.id == payment_id).with_for_update())
            payment = result.scalar_one_or_none()
            if not payment:
                raise NotFoundError("Payment not found", details={"payment_id": str(payment_id)})
            if payment.payment_status != PaymentStatus.COMPLETED.value:
                raise BusinessRuleViolation(
                    "Payment not completed", details={"payment_status": payment.payment_status}
                )

            balance = to_money(payment.amount) - await refunded_on_payment(db, payment.id)
            if amount > balance:
                raise RefundExceedsBalance(
                    f"Refund amount exceeds refundable balance of {money_str(balance)}",
                    details={"requested": money_str(amount), "refundable": money_str(balance)},
                )

            booking = await db.get(Booking, payment.booking_id)
            refund = await self.apply_refund(
                db, booking, payment, amount, reason, actor_id, now, refund_transaction_ref, gateway_response
            )
            await recompute_payment_status(db, booking)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            f"Refund {refund.id}: {money_str(amount)} on payment {payment.id} "
            f"→ booking {booking.id} {booking.payment_status}"
        )

        if events:
            snapshot = {"amount": money_str(amount), "payment_status": booking.payment_status}
            events.emit(
                "audit:record_refund",
                lambda s: audit_service.record(
                    s, "RECORD_REFUND", "Refund", str(refund.id), actor_id, after_state=snapshot
                ),
            )
        return refund

    async def apply_refund(
        self,
        db: AsyncSession,
        booking: Booking,
        payment: Payment,
        amount: Decimal,
        reason: str | None,
        actor_id: str | None,
        now: datetime,
        refund_transaction_ref: str | None = None,
        gateway_response: dict | None = None,
    ) -> Refund:
        """Create a completed refund and its ledger row. The caller has checked the balance."""
        refund = Refund(
            payment_id=payment.id,
            amount=amount,
            status=PaymentStatus.COMPLETED.value,
            refund_date=now,
            reason=reason,
            refund_transaction_ref=refund_transaction_ref,
            gateway_response=gateway_response,
            created_by=actor_id,
        )
        db.add(refund)
        await db.flush()

        await write_ledger(
            db,
            booking,
            amount,
            TransactionType.REFUND,
            now,
            payment_id=payment.id,
            refund_id=refund.id,
            notes=reason or f"Refund of {money_str(amount)} for payment {payment.id}",
        )
        return refund

    async def list_payments(self, db: AsyncSession, booking_id: uuid.UUID | None = None) -> list[Payment]:
        stmt = select(Payment).order_by(Payment.payment_date.desc())
        if booking_id:
            stmt = stmt.where(Payment.booking_id == booking_id)
        result = await db.execute(stmt)
        return list(result.scalars().all())


payment_service = PaymentService()
