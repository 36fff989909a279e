"""Notification service — queues guest notifications for booking and payment events."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.data.money import money_str
from staydesk.models.booking import Booking
from staydesk.models.events import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """Creates Pending notification rows; delivery is handled elsewhere."""

    async def send_booking_created(self, db: AsyncSession, booking: Booking) -> Notification:
        return await self._create(
            db,
            recipient=booking.guest_email,
            template_key="BOOKING_CREATED",
            title="Booking Received",
            body=(
                f"Your booking {booking.id} for {booking.check_in_date.isoformat()} to "
                f"{booking.check_out_date.isoformat()} has been received. "
                f"Total due: {money_str(booking.total_price)}."
            ),
            payload={"total_price": money_str(booking.total_price)},
            booking=booking,
        )

    async def send_booking_cancelled(self, db: AsyncSession, booking: Booking, refund_amount=None) -> Notification:
        body = f"Your booking {booking.id} has been cancelled."
        if refund_amount:
            body += f" A refund of {money_str(refund_amount)} has been issued."
        return await self._create(
            db,
            recipient=booking.guest_email,
            template_key="BOOKING_CANCELLED",
            title="Booking Cancelled",
            body=body,
            payload={"refund_amount": money_str(refund_amount) if refund_amount else None},
            booking=booking,
        )

    async def send_booking_confirmed(self, db: AsyncSession, booking: Booking) -> Notification:
        return await self._create(
            db,
            recipient=booking.guest_email,
            template_key="BOOKING_CONFIRMED",
            title="Booking Confirmed",
            body=f"Your booking {booking.id} is fully paid and confirmed.",
            booking=booking,
        )

    async def list_for_booking(self, db: AsyncSession, booking_id) -> list[Notification]:
        result = await db.execute(
            select(Notification)
            .where(Notification.reference_type == "Booking", Notification.reference_id == str(booking_id))
            .order_by(Notification.created_at)
        )
        return list(result.scalars().all())

    async def _create(
        self,
        db: AsyncSession,
        recipient: str | None,
        template_key: str,
        title: str,
        body: str,
        booking: Booking,
        payload: dict | None = None,
        channel: str = "Email",
    ) -> Notification:
        notification = Notification(
            recipient_type="Guest",
            recipient=recipient,
            channel=channel,
            template_key=template_key,
            title=title,
            body=body,
            payload=payload,
            reference_type="Booking",
            reference_id=str(booking.id),
        )
        db.add(notification)
        await db.flush()
        logger.info(f"Notification queued for {recipient or 'guest'}: {template_key}")
        return notification


notification_service = NotificationService()
