from staydesk.models.hotel import (
    ActivityAddon,
    Hotel,
    HotelAddon,
    Room,
    RoomAvailability,
    RoomType,
)
from staydesk.models.pricing import CancellationPolicy, Coupon, DynamicPricing, TaxRule
from staydesk.models.booking import (
    Booking,
    BookingActivityAddon,
    BookingCoupon,
    BookingHotelAddon,
)
from staydesk.models.payment import LedgerTransaction, Payment, Refund
from staydesk.models.events import AuditLog, IdempotencyKey, Notification

__all__ = [
    "ActivityAddon",
    "AuditLog",
    "Booking",
    "BookingActivityAddon",
    "BookingCoupon",
    "BookingHotelAddon",
    "CancellationPolicy",
    "Coupon",
    "DynamicPricing",
    "Hotel",
    "HotelAddon",
    "IdempotencyKey",
    "LedgerTransaction",
    "Notification",
    "Payment",
    "Refund",
    "Room",
    "RoomAvailability",
    "RoomType",
    "TaxRule",
]
