"""Booking lifecycle — create, read, cancel and complete reservations.

States: Pending → Confirmed → Completed, with Cancelled reachable from Pending
or Confirmed only. Every state change commits as one transaction; audit and
guest notifications are emitted only after that commit.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from staydesk.data.clock import as_utc, start_of_day, utcnow
from staydesk.data.money import ZERO, money_str, percent_of, to_money
from staydesk.enums import UNLIMITED_USAGE, BookedBy, BookingStatus
from staydesk.errors import InvalidCoupon, InvalidTransition, NotFoundError, ValidationError
from staydesk.models.booking import Booking, BookingActivityAddon, BookingCoupon, BookingHotelAddon
from staydesk.models.payment import Payment, Refund
from staydesk.models.pricing import CancellationPolicy, Coupon
from staydesk.services.allocation_service import allocation_service
from staydesk.services.audit_service import audit_service
from staydesk.services.event_dispatcher import EventDispatcher
from staydesk.services.ledger import completed_payments, recompute_payment_status, refunded_on_payment
from staydesk.services.notification_service import notification_service
from staydesk.services.payment_service import payment_service
from staydesk.services.pricing_service import PricedQuote, QuoteRequest, pricing_service

logger = logging.getLogger(__name__)

CANCELLABLE = {BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value}


@dataclass
class BookingRequest:
    quote: QuoteRequest
    guest_name: str
    guest_email: str | None = None
    guest_phone: str | None = None
    booked_by: BookedBy = BookedBy.GUEST


@dataclass
class CancellationOutcome:
    booking: Booking
    refund_amount: Decimal = ZERO
    policy: CancellationPolicy | None = None
    hours_before_check_in: float | None = None
    refunds: list[Refund] = field(default_factory=list)
    released_nights: int = 0


def hours_before_check_in(booking: Booking, now: datetime) -> float:
    """Hours from ``now`` until the start of the check-in date (UTC)."""
    check_in_at = start_of_day(booking.check_in_date)
    return (check_in_at - as_utc(now)).total_seconds() / 3600


def select_cancellation_policy(policies: list[CancellationPolicy], hours: float) -> CancellationPolicy | None:
    """The most generous active policy whose threshold has been reached."""
    ordered = sorted(
        (p for p in policies if p.is_active),
        key=lambda p: (-p.hours_before_check_in, -(p.priority or 0), str(p.id)),
    )
    for policy in ordered:
        if hours >= policy.hours_before_check_in:
            return policy
    return None


def booking_snapshot(booking: Booking) -> dict:
    return {
        "status": booking.status,
        "payment_status": booking.payment_status,
        "room_id": str(booking.room_id),
        "check_in_date": booking.check_in_date.isoformat(),
        "check_out_date": booking.check_out_date.isoformat(),
        "total_price": money_str(booking.total_price),
    }


class BookingService:
    def validate_party(self, quote: PricedQuote, adults: int, children: int) -> None:
        room_type = quote.room_type
        if not room_type.is_active:
            raise ValidationError("Room type is not available for booking", details={"room_type_id": str(room_type.id)})
        if adults < 1:
            raise ValidationError("At least one adult is required")
        if adults > room_type.max_adults or children > room_type.max_children:
            raise ValidationError(
                "Guest count exceeds room type capacity",
                details={
                    "max_adults": room_type.max_adults,
                    "max_children": room_type.max_children,
                    "adults": adults,
                    "children": children,
                },
            )

    async def create_booking(
        self,
        db: AsyncSession,
        req: BookingRequest,
        actor_id: str | None = None,
        events: EventDispatcher | None = None,
        now: datetime | None = None,
    ) -> Booking:
        now = now or utcnow()
        stay = req.quote
        if stay.check_in < as_utc(now).date():
            raise ValidationError(
                "Check-in date cannot be in the past", details={"check_in": stay.check_in.isoformat()}
            )

        # Pricing fails fast before anything is written
        quote = await pricing_service.quote(db, stay, now=now)
        self.validate_party(quote, stay.adults, stay.children)

        try:
            room_id = await allocation_service.allocate(
                db, stay.hotel_id, stay.room_type_id, stay.check_in, stay.check_out
            )

            booking = Booking(
                hotel_id=stay.hotel_id,
                room_type_id=stay.room_type_id,
                room_id=room_id,
                check_in_date=stay.check_in,
                check_out_date=stay.check_out,
                num_adults=stay.adults,
                num_children=stay.children,
                guest_name=req.guest_name,
                guest_email=req.guest_email,
                guest_phone=req.guest_phone,
                booked_by=BookedBy(req.booked_by).value,
                created_by=actor_id,
                status=BookingStatus.PENDING.value,
                status_changed_at=now,
                **quote.booking_fields(),
            )
            db.add(booking)
            await db.flush()

            if quote.coupon is not None:
                await self.redeem_coupon(db, quote, booking)

            for line in quote.charges.addon_lines:
                model = BookingHotelAddon if line.kind == "hotel" else BookingActivityAddon
                db.add(
                    model(
                        booking_id=booking.id,
                        addon_id=line.addon_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        total_price=line.total,
                    )
                )

            await allocation_service.link_to_booking(db, room_id, stay.check_in, stay.check_out, booking.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            f"Booking {booking.id} created: room {room_id}, {stay.check_in}→{stay.check_out}, "
            f"total {money_str(booking.total_price)}"
        )

        if events:
            snapshot = booking_snapshot(booking)
            events.emit(
                "audit:create_booking",
                lambda s: audit_service.record(
                    s, "CREATE_BOOKING", "Booking", str(booking.id), actor_id, after_state=snapshot
                ),
            )
            events.emit(
                "notify:booking_created",
                lambda s: notification_service.send_booking_created(s, booking),
            )
        return booking

    async def redeem_coupon(self, db: AsyncSession, quote: PricedQuote, booking: Booking) -> BookingCoupon:
        """Count one use of the quoted coupon, only while it still has uses left."""
        result = await db.execute(
            update(Coupon)
            .where(
                Coupon.id == quote.coupon_id,
                Coupon.is_active == True,
                or_(Coupon.usage_limit == UNLIMITED_USAGE, Coupon.usage_count < Coupon.usage_limit),
            )
            .values(usage_count=Coupon.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidCoupon("Coupon usage limit exceeded", details={"code": quote.coupon_code})

        application = BookingCoupon(
            booking_id=booking.id,
            coupon_id=quote.coupon_id,
            coupon_code=quote.coupon_code,
            discount_amount=quote.charges.discount,
        )
        db.add(application)
        return application

    async def get_booking(self, db: AsyncSession, booking_id: uuid.UUID) -> Booking:
        result = await db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .options(
                selectinload(Booking.payments).selectinload(Payment.refunds),
                selectinload(Booking.hotel_addons),
                selectinload(Booking.activity_addons),
                selectinload(Booking.coupon_application),
            )
            .execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking not found", details={"booking_id": str(booking_id)})
        return booking

    async def cancel_booking(
        self,
        db: AsyncSession,
        booking_id: uuid.UUID,
        actor_id: str | None = None,
        reason: str | None = None,
        events: EventDispatcher | None = None,
        now: datetime | None = None,
    ) -> CancellationOutcome:
        now = now or utcnow()

        try:
            result = await db.execute(select(Booking).where(Booking.id == booking_id).with_for_update())
            booking = result.scalar_one_or_none()
            if not booking:
                raise NotFoundError("Booking not found", details={"booking_id": str(booking_id)})
            if booking.status not in CANCELLABLE:
                raise InvalidTransition(
                    f"Booking cannot be cancelled from status {booking.status}",
                    details={"status": booking.status},
                )

            before = booking_snapshot(booking)
            outcome = CancellationOutcome(booking=booking)

            payments = await completed_payments(db, booking.id, lock=True)
            total_paid = to_money(sum((to_money(p.amount) for p in payments), ZERO))
            refund_reason = "Cancellation"
            if total_paid > 0:
                hours = hours_before_check_in(booking, now)
                policies = await self.list_cancellation_policies(db, booking.hotel_id)
                policy = select_cancellation_policy(policies, hours)
                outcome.hours_before_check_in = hours
                outcome.policy = policy
                if policy is not None:
                    pct = to_money(policy.refund_percentage)
                    outcome.refund_amount = min(percent_of(total_paid, pct), total_paid)
                    refund_reason = f"Policy {policy.name}: {pct}% refund ({hours:.1f}h before check-in)"
                else:
                    refund_reason = "No matching cancellation policy"

            booking.status = BookingStatus.CANCELLED.value
            booking.status_changed_at = now
            booking.status_reason = reason or "Cancelled on request"

            outcome.released_nights = await allocation_service.release(db, booking.id)

            if outcome.refund_amount > 0:
                outcome.refunds = await self.refund_oldest_first(
                    db, booking, payments, outcome.refund_amount, refund_reason, actor_id, now
                )
                outcome.refund_amount = to_money(sum((r.amount for r in outcome.refunds), ZERO))
                await recompute_payment_status(db, booking)

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            f"Booking {booking.id} cancelled: released {outcome.released_nights} nights, "
            f"refunded {money_str(outcome.refund_amount)}"
        )

        if events:
            after = booking_snapshot(booking)
            refund_amount = outcome.refund_amount
            events.emit(
                "audit:cancel_booking",
                lambda s: audit_service.record(
                    s, "CANCEL_BOOKING", "Booking", str(booking.id), actor_id, before_state=before, after_state=after
                ),
            )
            events.emit(
                "notify:booking_cancelled",
                lambda s: notification_service.send_booking_cancelled(s, booking, refund_amount),
            )
        return outcome

    async def refund_oldest_first(
        self,
        db: AsyncSession,
        booking: Booking,
        payments: list[Payment],
        amount: Decimal,
        reason: str,
        actor_id: str | None,
        now: datetime,
    ) -> list[Refund]:
        """Spread a refund over completed payments, oldest first, each bounded by its unrefunded balance."""
        refunds = []
        remaining = to_money(amount)
        for payment in payments:
            if remaining <= 0:
                break
            balance = to_money(payment.amount) - await refunded_on_payment(db, payment.id)
            take = min(balance, remaining)
            if take <= 0:
                continue
            refunds.append(
                await payment_service.apply_refund(db, booking, payment, take, reason, actor_id, now)
            )
            remaining = to_money(remaining - take)
        return refunds

    async def list_cancellation_policies(self, db: AsyncSession, hotel_id: uuid.UUID) -> list[CancellationPolicy]:
        result = await db.execute(
            select(CancellationPolicy)
            .where(CancellationPolicy.hotel_id == hotel_id, CancellationPolicy.is_active == True)
            .order_by(CancellationPolicy.hours_before_check_in.desc(), CancellationPolicy.priority.desc())
        )
        return list(result.scalars().all())

    async def complete_finished_stays(
        self, db: AsyncSession, today: date | None = None, now: datetime | None = None
    ) -> int:
        """Move Confirmed bookings whose check-out date has passed to Completed."""
        now = now or utcnow()
        today = today or as_utc(now).date()
        result = await db.execute(
            update(Booking)
            .where(Booking.status == BookingStatus.CONFIRMED.value, Booking.check_out_date < today)
            .values(
                status=BookingStatus.COMPLETED.value,
                status_changed_at=now,
                status_reason="Stay completed",
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        if result.rowcount:
            logger.info(f"Completed {result.rowcount} finished stays (check-out before {today})")
        return result.rowcount


booking_service = BookingService()
