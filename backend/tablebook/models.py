from __future__ import annotations

from datetime import date, datetime, time
from enum import StrEnum
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, CheckConstraint, Enum, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.sqltypes import BigInteger, Date, DateTime, Integer, String, Text, Time


class Base(DeclarativeBase):
    pass


class ReservationType(StrEnum):
    OMAKASE = "omakase"
    DINING = "dining"


class BookingStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SEATED = "seated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class PaymentStatus(StrEnum):
    PAID = "paid"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class AdminSetting(Base):
    """One row per settings concern, keyed by a fixed setting key."""

    __tablename__ = "admin_settings"

    setting_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    setting_value: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("party_size >= 1", name="chk_bookings_party_size"),
        CheckConstraint(
            "cancellation_refund_percentage >= 0 AND cancellation_refund_percentage <= 100",
            name="chk_bookings_refund_percentage",
        ),
        Index("idx_bookings_date_type", "reservation_date", "reservation_type"),
        Index("idx_bookings_confirmation_code", "confirmation_code"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    reservation_type: Mapped[ReservationType] = mapped_column(_str_enum(ReservationType), nullable=False)
    reservation_date: Mapped[date] = mapped_column(Date, nullable=False)
    reservation_time: Mapped[time] = mapped_column(Time, nullable=False)
    party_size: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[BookingStatus] = mapped_column(
        _str_enum(BookingStatus),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    confirmation_code: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    special_requests: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Prepayment (omakase) and no-show fee (dining) bookkeeping. Amounts are cents.
    payment_status: Mapped[Optional[PaymentStatus]] = mapped_column(_str_enum(PaymentStatus), nullable=True)
    prepayment_amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cancellation_refund_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    charge_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_method_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    no_show_fee_charged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    no_show_fee_amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    no_show_fee_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
