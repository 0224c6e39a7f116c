from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..models import BookingStatus, PaymentStatus, ReservationType
from .errors import CancelNotAllowedError, PaymentNotAllowedError, ValidationError

FULL_REFUND_AFTER_HOURS = 48
PARTIAL_REFUND_AFTER_HOURS = 24
FULL_REFUND = 100
PARTIAL_REFUND = 50
NO_REFUND = 0

NOT_CANCELLABLE = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})
REFUNDABLE_PAYMENT_STATUSES = frozenset({PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED})


@dataclass(frozen=True)
class PrepaymentState:
    reservation_type: ReservationType
    payment_status: Optional[PaymentStatus]
    prepayment_amount: Optional[int]
    charge_reference: Optional[str]
    refunded_percentage: int = 0


@dataclass(frozen=True)
class RefundPlan:
    tier_percentage: int
    refund_percentage: int
    refund_amount_cents: int
    cumulative_percentage: int
    payment_status: Optional[PaymentStatus]
    attempt_refund: bool


def refund_percentage(reservation_at: datetime, cancelled_at: datetime) -> int:
    """100 when more than 48h ahead, 50 when more than 24h ahead, otherwise 0."""
    if reservation_at.tzinfo is None or cancelled_at.tzinfo is None:
        raise ValidationError("reservation and cancellation instants must be timezone-aware")
    hours = (reservation_at - cancelled_at).total_seconds() / 3600
    if hours > FULL_REFUND_AFTER_HOURS:
        return FULL_REFUND
    if hours > PARTIAL_REFUND_AFTER_HOURS:
        return PARTIAL_REFUND
    return NO_REFUND


def accumulate_refund(refunded_percentage: int, percentage: int) -> tuple[int, Optional[PaymentStatus]]:
    """Cumulative refunded share and the payment status once this refund lands."""
    cumulative = min(FULL_REFUND, refunded_percentage + percentage)
    if cumulative >= FULL_REFUND:
        return cumulative, PaymentStatus.REFUNDED
    if cumulative > 0:
        return cumulative, PaymentStatus.PARTIALLY_REFUNDED
    return cumulative, None


def _refund_plan(
    state: PrepaymentState,
    tier: int,
    *,
    allowed_statuses: frozenset[PaymentStatus] = REFUNDABLE_PAYMENT_STATUSES,
) -> RefundPlan:
    effective = max(0, min(tier, FULL_REFUND - state.refunded_percentage))
    payable = (
        effective > 0
        and state.payment_status in allowed_statuses
        and bool(state.charge_reference)
        and bool(state.prepayment_amount)
    )
    if not payable:
        return RefundPlan(
            tier_percentage=tier,
            refund_percentage=0,
            refund_amount_cents=0,
            cumulative_percentage=state.refunded_percentage,
            payment_status=state.payment_status,
            attempt_refund=False,
        )
    cumulative, status = accumulate_refund(state.refunded_percentage, effective)
    return RefundPlan(
        tier_percentage=tier,
        refund_percentage=effective,
        refund_amount_cents=(state.prepayment_amount or 0) * effective // 100,
        cumulative_percentage=cumulative,
        payment_status=status,
        attempt_refund=True,
    )


def plan_cancellation_refund(
    state: PrepaymentState,
    *,
    previous_status: BookingStatus,
    reservation_at: datetime,
    cancelled_at: datetime,
) -> Optional[RefundPlan]:
    """
    Refund owed for a cancellation. Only confirmed omakase bookings run the time tier;
    the plan attempts a refund only for a paid prepayment with a charge on file.
    """
    if previous_status != BookingStatus.CONFIRMED or state.reservation_type != ReservationType.OMAKASE:
        return None
    return _refund_plan(
        state,
        refund_percentage(reservation_at, cancelled_at),
        allowed_statuses=frozenset({PaymentStatus.PAID}),
    )


def plan_manual_refund(state: PrepaymentState, percentage: int) -> RefundPlan:
    if not 0 < percentage <= FULL_REFUND:
        raise ValidationError("refund percentage must be between 1 and 100")
    if state.payment_status not in REFUNDABLE_PAYMENT_STATUSES:
        raise PaymentNotAllowedError("booking has no captured payment to refund")
    if not state.charge_reference or not state.prepayment_amount:
        raise PaymentNotAllowedError("booking has no charge on file")
    if state.refunded_percentage >= FULL_REFUND:
        raise PaymentNotAllowedError("booking has already been fully refunded")
    return _refund_plan(state, percentage)


def ensure_guest_can_cancel(status: BookingStatus) -> None:
    if status == BookingStatus.CANCELLED:
        raise CancelNotAllowedError("reservation is already cancelled")
    if status in NOT_CANCELLABLE:
        raise CancelNotAllowedError(f"cannot cancel a {status} reservation")


def no_show_fee_amount(
    *,
    reservation_type: ReservationType,
    status: BookingStatus,
    party_size: int,
    fee_per_guest_cents: int,
    customer_reference: Optional[str],
    payment_method_reference: Optional[str],
    already_charged: bool,
) -> int:
    """Flat per-guest no-show fee for a dining booking; not time-tiered."""
    if reservation_type != ReservationType.DINING:
        raise PaymentNotAllowedError("no-show fees apply to dining reservations only")
    if status != BookingStatus.NO_SHOW:
        raise PaymentNotAllowedError("reservation is not marked as a no-show")
    if not customer_reference or not payment_method_reference:
        raise PaymentNotAllowedError("No payment method on file for this reservation")
    if already_charged:
        raise PaymentNotAllowedError("No-show fee has already been charged for this reservation")
    amount = fee_per_guest_cents * party_size
    if amount <= 0:
        raise PaymentNotAllowedError("no-show fee is not configured")
    return amount


def ensure_no_show_fee_refundable(*, already_charged: bool, fee_reference: Optional[str]) -> None:
    if not already_charged or not fee_reference:
        raise PaymentNotAllowedError("No no-show fee has been charged for this reservation")
