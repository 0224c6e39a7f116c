from datetime import date, time
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .domain.admission import AdmissionDecision, RejectionReason
from .domain.resolution import SettingSource
from .models import Booking, BookingStatus, PaymentStatus, ReservationType
from .usecases.reservations import AvailabilityCheck, PaymentOutcome, StatusChange

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class AvailabilityQuery(BaseModel):
    reservation_type: ReservationType
    reservation_date: date
    reservation_time: time
    party_size: int = Field(ge=1)


class AdmissionDecisionRead(BaseModel):
    accepted: bool
    reason: Optional[RejectionReason]
    available_seats: int
    total_capacity: int
    reserved_seats: int
    shortfall: int = 0
    reserved_parties: int = 0
    max_parties: Optional[int] = None

    @classmethod
    def from_decision(cls, decision: AdmissionDecision) -> "AdmissionDecisionRead":
        return cls(
            accepted=decision.accepted,
            reason=decision.reason,
            available_seats=decision.available_seats,
            total_capacity=decision.total_capacity,
            reserved_seats=decision.reserved_seats,
            shortfall=decision.shortfall,
            reserved_parties=decision.reserved_parties,
            max_parties=decision.max_parties,
        )


class AvailabilityRead(AdmissionDecisionRead):
    alternative_times: list[str] = Field(default_factory=list)

    @classmethod
    def from_check(cls, check: AvailabilityCheck) -> "AvailabilityRead":
        base = AdmissionDecisionRead.from_decision(check.decision)
        return cls(**base.model_dump(), alternative_times=list(check.alternative_times))


class ReservationCreate(BaseModel):
    """Guest booking request. Payment state is owned by the payment flow, never the request body."""

    model_config = ConfigDict(extra="forbid")

    reservation_type: ReservationType
    reservation_date: date
    reservation_time: time
    party_size: int = Field(ge=1)
    customer_name: str = Field(min_length=1, max_length=255)
    customer_email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    customer_phone: str = Field(min_length=1, max_length=50)
    special_requests: Optional[str] = Field(default=None, max_length=2000)


class AdminReservationCreate(ReservationCreate):
    status: Optional[BookingStatus] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    payment_status: Optional[PaymentStatus] = None
    prepayment_amount: Optional[int] = Field(default=None, ge=0)
    charge_reference: Optional[str] = None
    customer_reference: Optional[str] = None
    payment_method_reference: Optional[str] = None


class ReservationRead(BaseModel):
    reservation_id: int
    reservation_type: ReservationType
    reservation_date: date
    reservation_time: time
    party_size: int
    duration_minutes: Optional[int]
    status: BookingStatus
    confirmation_code: Optional[str]
    customer_name: str
    customer_email: str
    customer_phone: str
    special_requests: Optional[str] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    prepayment_amount: Optional[int] = None
    cancellation_refund_percentage: int = 0
    no_show_fee_charged: bool = False
    no_show_fee_amount: Optional[int] = None
    version: int

    @field_serializer("reservation_time")
    def _ser_time(self, value: time) -> str:
        return value.strftime("%H:%M")

    @classmethod
    def from_db(cls, *, booking: Booking) -> "ReservationRead":
        return cls(
            reservation_id=booking.id,
            reservation_type=booking.reservation_type,
            reservation_date=booking.reservation_date,
            reservation_time=booking.reservation_time,
            party_size=booking.party_size,
            duration_minutes=booking.duration_minutes,
            status=booking.status,
            confirmation_code=booking.confirmation_code,
            customer_name=booking.customer_name,
            customer_email=booking.customer_email,
            customer_phone=booking.customer_phone,
            special_requests=booking.special_requests,
            notes=booking.notes,
            cancellation_reason=booking.cancellation_reason,
            payment_status=booking.payment_status,
            prepayment_amount=booking.prepayment_amount,
            cancellation_refund_percentage=booking.cancellation_refund_percentage or 0,
            no_show_fee_charged=bool(booking.no_show_fee_charged),
            no_show_fee_amount=booking.no_show_fee_amount,
            version=booking.version,
        )


class ReservationCreated(BaseModel):
    reservation: ReservationRead
    auto_confirmed: bool
    decision: AdmissionDecisionRead


class ReservationStatusUpdate(BaseModel):
    status: BookingStatus
    reason: Optional[str] = Field(default=None, max_length=500)
    version: Optional[int] = Field(default=None, ge=1)


class ReservationLookup(BaseModel):
    confirmation_code: str = Field(min_length=1, max_length=32)
    customer_email: str = Field(min_length=1, max_length=255)


class ReservationCancel(ReservationLookup):
    reason: str = Field(default="Cancelled by guest", min_length=1, max_length=500)
    version: Optional[int] = Field(default=None, ge=1)


class RefundRequest(BaseModel):
    percentage: int = Field(gt=0, le=100)
    reason: str = Field(default="Manual refund", min_length=1, max_length=500)


class NoShowFeeRefundRequest(BaseModel):
    reason: str = Field(default="No-show fee refunded", min_length=1, max_length=500)


class PaymentOutcomeRead(BaseModel):
    attempted: bool
    succeeded: bool
    amount_cents: int = 0
    percentage: int = 0
    reference: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: PaymentOutcome) -> "PaymentOutcomeRead":
        return cls(
            attempted=outcome.attempted,
            succeeded=outcome.succeeded,
            amount_cents=outcome.amount_cents,
            percentage=outcome.percentage,
            reference=outcome.reference,
            error=outcome.error,
        )


class StatusChangeRead(BaseModel):
    reservation: ReservationRead
    previous_status: BookingStatus
    refund: Optional[PaymentOutcomeRead] = None

    @classmethod
    def from_change(cls, change: StatusChange) -> "StatusChangeRead":
        return cls(
            reservation=ReservationRead.from_db(booking=change.booking),
            previous_status=change.previous_status,
            refund=PaymentOutcomeRead.from_outcome(change.refund) if change.refund is not None else None,
        )


class PaymentActionRead(BaseModel):
    reservation: ReservationRead
    payment: PaymentOutcomeRead


class SettingRead(BaseModel):
    value: dict[str, Any]
    source: SettingSource
