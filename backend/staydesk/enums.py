from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"
    PARTIALLY_PAID = "PartiallyPaid"
    FULLY_PAID = "FullyPaid"


class PaymentMode(str, Enum):
    CASH = "Cash"
    CARD = "Card"
    UPI = "UPI"
    WALLET = "Wallet"
    BANK_TRANSFER = "BankTransfer"
    OTHER = "Other"


class RoomStatus(str, Enum):
    AVAILABLE = "Available"
    MAINTENANCE = "Maintenance"
    OUT_OF_SERVICE = "OutOfService"


class PricingEntityType(str, Enum):
    ROOM_TYPE = "RoomType"
    HOTEL_ADDON = "HotelAddOn"
    ACTIVITY_ADDON = "ActivityAddOn"


class AdjustmentType(str, Enum):
    PERCENTAGE = "Percentage"
    FIXED = "Fixed"


class TaxApplicableOn(str, Enum):
    ROOM = "Room"
    HOTEL_ADDON = "HotelAddOn"
    ACTIVITY_ADDON = "ActivityAddOn"
    TOTAL = "Total"


class TransactionType(str, Enum):
    PAYMENT = "Payment"
    REFUND = "Refund"


class BookedBy(str, Enum):
    GUEST = "Guest"
    RECEPTIONIST = "Receptionist"


class Permission(str, Enum):
    BOOKING_CREATE = "BOOKING_CREATE"
    BOOKING_VIEW = "BOOKING_VIEW"
    BOOKING_CANCEL = "BOOKING_CANCEL"
    PAYMENT_PROCESS = "PAYMENT_PROCESS"
    PAYMENT_REFUND = "PAYMENT_REFUND"
    TRANSACTION_VIEW = "TRANSACTION_VIEW"
    PRICING_MANAGE = "PRICING_MANAGE"


# Coupon.usage_limit value meaning "no limit"
UNLIMITED_USAGE = -1
