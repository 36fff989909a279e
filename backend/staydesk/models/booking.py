import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from staydesk.database import Base, JSONType


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    hotel_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hotels.id"), nullable=False, index=True
    )
    room_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("room_types.id"), nullable=False
    )
    room_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("rooms.id"), nullable=False)
    check_in_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_out_date: Mapped[date] = mapped_column(Date, nullable=False)
    num_adults: Mapped[int] = mapped_column(Integer, nullable=False)
    num_children: Mapped[int] = mapped_column(Integer, default=0)
    guest_name: Mapped[str] = mapped_column(String(200), nullable=False)
    guest_email: Mapped[str | None] = mapped_column(String(255))
    guest_phone: Mapped[str | None] = mapped_column(String(50))
    booked_by: Mapped[str] = mapped_column(String(20), default="Guest")  # Guest | Receptionist
    created_by: Mapped[str | None] = mapped_column(String(64))

    status: Mapped[str] = mapped_column(String(20), default="Pending")
    payment_status: Mapped[str] = mapped_column(String(20), default="Pending")
    status_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    status_reason: Mapped[str | None] = mapped_column(Text)

    # Priced breakdown, frozen at creation
    base_room_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    room_price_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    hotel_addons_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    activity_addons_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    subtotal_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    tax_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    total_discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_breakdown: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    coupon_code: Mapped[str | None] = mapped_column(String(50))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    payments: Mapped[list["Payment"]] = relationship(
        back_populates="booking", order_by="Payment.payment_date"
    )
    hotel_addons: Mapped[list["BookingHotelAddon"]] = relationship(cascade="all, delete-orphan")
    activity_addons: Mapped[list["BookingActivityAddon"]] = relationship(cascade="all, delete-orphan")
    coupon_application: Mapped["BookingCoupon"] = relationship(uselist=False, cascade="all, delete-orphan")


class BookingCoupon(Base):
    __tablename__ = "booking_coupons"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    coupon_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("coupons.id"), nullable=False)
    coupon_code: Mapped[str] = mapped_column(String(50), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class BookingHotelAddon(Base):
    __tablename__ = "booking_hotel_addons"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    addon_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("hotel_addons.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)


class BookingActivityAddon(Base):
    __tablename__ = "booking_activity_addons"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    addon_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("activity_addons.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
