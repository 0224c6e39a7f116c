from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional

from ..config import Settings
from ..domain.admission import AdmissionDecision, BookedParty, RejectionReason, check_admission
from ..domain.cancellation import (
    PrepaymentState,
    RefundPlan,
    ensure_guest_can_cancel,
    ensure_no_show_fee_refundable,
    no_show_fee_amount,
    plan_cancellation_refund,
    plan_manual_refund,
)
from ..domain.capacity import bookable_start_times
from ..domain.confirmation import (
    InitialAssignment,
    assign_initial_status,
    confirmation_code_for_update,
    dining_duration_minutes,
)
from ..domain.errors import BookingNotFoundError, CancelNotAllowedError, ValidationError, VersionConflictError
from ..domain.repositories import BookingRepository, PaymentGateway, SettingsRepository
from ..models import Booking, BookingStatus, PaymentStatus, ReservationType
from ..utils.time import (
    local_now,
    local_today,
    parse_hhmm,
    parse_iso_date,
    reservation_datetime,
    restaurant_zone,
    to_minutes,
    utc_now_naive,
)
from .settings import PolicySnapshot, load_policy_snapshot

logger = logging.getLogger(__name__)

_CAPACITY_REASONS = (RejectionReason.INSUFFICIENT_CAPACITY, RejectionReason.PARTY_LIMIT_REACHED)


@dataclass(frozen=True)
class NewReservation:
    reservation_type: ReservationType
    reservation_date: date
    reservation_time: time
    party_size: int
    customer_name: str
    customer_email: str
    customer_phone: str
    special_requests: Optional[str] = None
    notes: Optional[str] = None
    requested_status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    prepayment_amount: Optional[int] = None
    charge_reference: Optional[str] = None
    customer_reference: Optional[str] = None
    payment_method_reference: Optional[str] = None


@dataclass(frozen=True)
class AvailabilityCheck:
    decision: AdmissionDecision
    alternative_times: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReservationOutcome:
    decision: AdmissionDecision
    booking: Optional[Booking] = None
    assignment: Optional[InitialAssignment] = None


@dataclass(frozen=True)
class PaymentOutcome:
    attempted: bool
    succeeded: bool
    amount_cents: int = 0
    percentage: int = 0
    reference: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class StatusChange:
    booking: Booking
    previous_status: BookingStatus
    refund: Optional[PaymentOutcome] = None


def to_booked_party(booking: Booking) -> BookedParty:
    return BookedParty(
        reservation_type=booking.reservation_type,
        reservation_date=booking.reservation_date,
        reservation_time=booking.reservation_time,
        party_size=booking.party_size,
        status=booking.status,
    )


def _admit(
    policies: PolicySnapshot,
    bookings: list[Booking],
    *,
    reservation_type: ReservationType,
    reservation_date: date,
    reservation_time: time,
    party_size: int,
    today: date,
) -> AdmissionDecision:
    return check_admission(
        [to_booked_party(b) for b in bookings],
        reservation_date=reservation_date,
        reservation_type=reservation_type,
        reservation_time=reservation_time,
        party_size=party_size,
        capacity_model=policies.capacity_model,
        today=today,
        closures=policies.closures,
        availability=policies.availability,
    )


def _check_party_size(party_size: int, config: Settings) -> None:
    if not 1 <= party_size <= config.max_party_size:
        raise ValidationError(f"Party size must be between 1 and {config.max_party_size}")


async def check_availability(
    settings_repo: SettingsRepository,
    booking_repo: BookingRepository,
    *,
    config: Settings,
    reservation_type: ReservationType,
    reservation_date: date | str,
    reservation_time: time | str,
    party_size: int,
    today: Optional[date] = None,
) -> AvailabilityCheck:
    _check_party_size(party_size, config)
    day = parse_iso_date(reservation_date)
    at = parse_hhmm(reservation_time)
    today = today or local_today(restaurant_zone(config.restaurant_timezone))
    policies = await load_policy_snapshot(settings_repo, config=config)
    bookings = await booking_repo.list_for_date(day, reservation_type)

    admit = dict(
        reservation_type=reservation_type,
        reservation_date=day,
        party_size=party_size,
        today=today,
    )
    decision = _admit(policies, bookings, reservation_time=at, **admit)
    alternatives: list[str] = []
    if decision.reason in _CAPACITY_REASONS:
        for candidate in bookable_start_times(policies.capacity_model, reservation_type):
            if to_minutes(candidate) == to_minutes(at):
                continue
            if _admit(policies, bookings, reservation_time=parse_hhmm(candidate), **admit).accepted:
                alternatives.append(candidate)
    return AvailabilityCheck(decision=decision, alternative_times=alternatives)


async def create_reservation(
    settings_repo: SettingsRepository,
    booking_repo: BookingRepository,
    *,
    config: Settings,
    request: NewReservation,
    today: Optional[date] = None,
) -> ReservationOutcome:
    """
    Admit and insert in one unit of work. The day's bookings are read FOR UPDATE so a
    concurrent insert for the same date/type waits for this transaction.
    """
    _check_party_size(request.party_size, config)
    today = today or local_today(restaurant_zone(config.restaurant_timezone))
    policies = await load_policy_snapshot(settings_repo, config=config)
    bookings = await booking_repo.list_for_date(request.reservation_date, request.reservation_type, for_update=True)

    decision = _admit(
        policies,
        bookings,
        reservation_type=request.reservation_type,
        reservation_date=request.reservation_date,
        reservation_time=request.reservation_time,
        party_size=request.party_size,
        today=today,
    )
    if not decision.accepted:
        logger.info(
            "rejected %s reservation on %s at %s for %s: %s",
            request.reservation_type,
            request.reservation_date,
            request.reservation_time,
            request.party_size,
            decision.reason,
        )
        return ReservationOutcome(decision=decision)

    assignment = assign_initial_status(
        policies.auto_confirmation,
        request.reservation_type,
        requested_status=request.requested_status,
    )
    booking = await booking_repo.create(
        reservation_type=request.reservation_type,
        reservation_date=request.reservation_date,
        reservation_time=request.reservation_time,
        party_size=request.party_size,
        status=assignment.status,
        confirmation_code=assignment.confirmation_code,
        customer_name=request.customer_name,
        customer_email=request.customer_email,
        customer_phone=request.customer_phone,
        special_requests=request.special_requests,
        notes=request.notes,
        duration_minutes=(
            dining_duration_minutes(request.party_size)
            if request.reservation_type == ReservationType.DINING
            else None
        ),
        payment_status=request.payment_status,
        prepayment_amount=request.prepayment_amount,
        charge_reference=request.charge_reference,
        customer_reference=request.customer_reference,
        payment_method_reference=request.payment_method_reference,
    )
    return ReservationOutcome(decision=decision, booking=booking, assignment=assignment)


async def list_reservations(
    booking_repo: BookingRepository,
    *,
    reservation_date: date,
    reservation_type: ReservationType | None = None,
) -> list[Booking]:
    return await booking_repo.list_for_date(reservation_date, reservation_type)


async def get_reservation(booking_repo: BookingRepository, *, booking_id: int) -> Booking:
    booking = await booking_repo.get(booking_id)
    if booking is None:
        raise BookingNotFoundError("reservation not found")
    return booking


def _email_matches(booking: Booking, customer_email: str) -> bool:
    return booking.customer_email.strip().lower() == customer_email.strip().lower()


async def find_by_confirmation_code(
    booking_repo: BookingRepository,
    *,
    confirmation_code: str,
    customer_email: str,
) -> Booking:
    """Guest lookup. A wrong email reads the same as an unknown code."""
    booking = await booking_repo.get_by_confirmation_code(confirmation_code.strip().upper())
    if booking is None or not _email_matches(booking, customer_email):
        raise BookingNotFoundError("reservation not found")
    return booking


# -- lifecycle ---------------------------------------------------------------------


async def _locked(booking_repo: BookingRepository, booking_id: int, expected_version: Optional[int]) -> Booking:
    booking = await booking_repo.get_for_update(booking_id)
    if booking is None:
        raise BookingNotFoundError("reservation not found")
    if expected_version is not None and booking.version != expected_version:
        raise VersionConflictError("version mismatch")
    return booking


def _touch(booking: Booking) -> None:
    booking.version += 1
    booking.updated_at = utc_now_naive()


def _prepayment_state(booking: Booking) -> PrepaymentState:
    return PrepaymentState(
        reservation_type=booking.reservation_type,
        payment_status=booking.payment_status,
        prepayment_amount=booking.prepayment_amount,
        charge_reference=booking.charge_reference,
        refunded_percentage=booking.cancellation_refund_percentage or 0,
    )


async def _execute_refund(
    booking: Booking,
    plan: RefundPlan,
    payments: PaymentGateway,
    *,
    reason: str,
) -> PaymentOutcome:
    if not plan.attempt_refund or booking.charge_reference is None:
        return PaymentOutcome(attempted=False, succeeded=False, percentage=plan.tier_percentage)

    result = await payments.refund(
        booking.charge_reference,
        plan.refund_amount_cents,
        metadata={
            "reservation_id": str(booking.id),
            "reason": reason,
            "refund_percentage": str(plan.refund_percentage),
        },
    )
    if result.succeeded:
        booking.payment_status = plan.payment_status
        booking.cancellation_refund_percentage = plan.cumulative_percentage
    else:
        # The status change stands; the refund is left for manual reconciliation.
        logger.warning("refund for reservation %s failed: %s", booking.id, result.error)
    return PaymentOutcome(
        attempted=True,
        succeeded=result.succeeded,
        amount_cents=plan.refund_amount_cents,
        percentage=plan.refund_percentage,
        reference=result.reference,
        error=result.error,
    )


async def _transition(
    booking: Booking,
    new_status: BookingStatus,
    payments: PaymentGateway,
    *,
    config: Settings,
    reason: Optional[str],
    now: Optional[datetime],
) -> StatusChange:
    previous = booking.status
    if new_status == previous:
        return StatusChange(booking=booking, previous_status=previous)

    booking.confirmation_code = confirmation_code_for_update(previous, new_status, booking.confirmation_code)
    booking.status = new_status
    booking.cancellation_reason = reason if new_status == BookingStatus.CANCELLED else None

    refund: Optional[PaymentOutcome] = None
    if new_status == BookingStatus.CANCELLED:
        zone = restaurant_zone(config.restaurant_timezone)
        plan = plan_cancellation_refund(
            _prepayment_state(booking),
            previous_status=previous,
            reservation_at=reservation_datetime(booking.reservation_date, booking.reservation_time, zone),
            cancelled_at=now or local_now(zone),
        )
        if plan is not None:
            refund = await _execute_refund(booking, plan, payments, reason=reason or "cancellation")
    _touch(booking)
    return StatusChange(booking=booking, previous_status=previous, refund=refund)


async def update_status(
    booking_repo: BookingRepository,
    payments: PaymentGateway,
    *,
    config: Settings,
    booking_id: int,
    new_status: BookingStatus,
    reason: Optional[str] = None,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
) -> StatusChange:
    booking = await _locked(booking_repo, booking_id, expected_version)
    change = await _transition(booking, new_status, payments, config=config, reason=reason, now=now)
    if change.booking.status != change.previous_status:
        await booking_repo.save(change.booking)
    return change


async def cancel_reservation(
    booking_repo: BookingRepository,
    payments: PaymentGateway,
    *,
    config: Settings,
    confirmation_code: str,
    customer_email: str,
    reason: str,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
) -> StatusChange:
    """
    Guest cancellation. The booking is addressed by its confirmation code and the email it
    was made with; pending bookings have no code yet and are cancelled by staff.
    """
    booking = await booking_repo.get_by_confirmation_code(confirmation_code.strip().upper(), for_update=True)
    if booking is None:
        raise BookingNotFoundError("reservation not found")
    if not _email_matches(booking, customer_email):
        raise CancelNotAllowedError("Email does not match reservation")
    if expected_version is not None and booking.version != expected_version:
        raise VersionConflictError("version mismatch")
    ensure_guest_can_cancel(booking.status)
    change = await _transition(
        booking,
        BookingStatus.CANCELLED,
        payments,
        config=config,
        reason=reason,
        now=now,
    )
    await booking_repo.save(change.booking)
    return change


async def refund_prepayment(
    booking_repo: BookingRepository,
    payments: PaymentGateway,
    *,
    booking_id: int,
    percentage: int,
    reason: str,
) -> tuple[Booking, PaymentOutcome]:
    booking = await _locked(booking_repo, booking_id, None)
    plan = plan_manual_refund(_prepayment_state(booking), percentage)
    outcome = await _execute_refund(booking, plan, payments, reason=reason)
    if outcome.succeeded:
        _touch(booking)
        await booking_repo.save(booking)
    return booking, outcome


async def charge_no_show_fee(
    booking_repo: BookingRepository,
    payments: PaymentGateway,
    *,
    config: Settings,
    booking_id: int,
) -> tuple[Booking, PaymentOutcome]:
    booking = await _locked(booking_repo, booking_id, None)
    amount = no_show_fee_amount(
        reservation_type=booking.reservation_type,
        status=booking.status,
        party_size=booking.party_size,
        fee_per_guest_cents=config.no_show_fee_per_guest_cents,
        customer_reference=booking.customer_reference,
        payment_method_reference=booking.payment_method_reference,
        already_charged=bool(booking.no_show_fee_charged),
    )
    result = await payments.charge(
        booking.customer_reference or "",
        booking.payment_method_reference or "",
        amount,
        metadata={
            "reservation_id": str(booking.id),
            "charge_type": "no_show",
            "reservation_date": booking.reservation_date.isoformat(),
            "party_size": str(booking.party_size),
        },
    )
    if result.succeeded:
        booking.no_show_fee_charged = True
        booking.no_show_fee_amount = amount
        booking.no_show_fee_reference = result.reference
        _touch(booking)
        await booking_repo.save(booking)
    else:
        logger.warning("no-show fee for reservation %s failed: %s", booking.id, result.error)
    return booking, PaymentOutcome(
        attempted=True,
        succeeded=result.succeeded,
        amount_cents=amount,
        reference=result.reference,
        error=result.error,
    )


async def refund_no_show_fee(
    booking_repo: BookingRepository,
    payments: PaymentGateway,
    *,
    booking_id: int,
    reason: str,
) -> tuple[Booking, PaymentOutcome]:
    booking = await _locked(booking_repo, booking_id, None)
    ensure_no_show_fee_refundable(
        already_charged=bool(booking.no_show_fee_charged),
        fee_reference=booking.no_show_fee_reference,
    )
    amount = booking.no_show_fee_amount or 0
    result = await payments.refund(
        booking.no_show_fee_reference or "",
        amount,
        metadata={"reservation_id": str(booking.id), "reason": reason, "refund_type": "dining_no_show_fee"},
    )
    if result.succeeded:
        booking.no_show_fee_charged = False
        _touch(booking)
        await booking_repo.save(booking)
    else:
        logger.warning("no-show fee refund for reservation %s failed: %s", booking.id, result.error)
    return booking, PaymentOutcome(
        attempted=True,
        succeeded=result.succeeded,
        amount_cents=amount,
        reference=result.reference,
        error=result.error,
    )
