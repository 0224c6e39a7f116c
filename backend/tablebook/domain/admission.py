from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from enum import StrEnum
from typing import Iterable, Optional

from ..models import BookingStatus, ReservationType
from ..utils.time import parse_hhmm, parse_iso_date
from .calendar import (
    DEFAULT_AVAILABILITY_SETTINGS,
    DEFAULT_CLOSURE_SETTINGS,
    AvailabilitySettings,
    ClosureSettings,
    is_date_closed,
    is_shift_closed,
    is_type_available,
    shift_for_time,
)
from .capacity import CapacityModel, bucket_for
from .errors import ValidationError


class RejectionReason(StrEnum):
    PAST_DATE = "past_date"
    CLOSED_DATE = "closed_date"
    CLOSED_SHIFT = "closed_shift"
    TYPE_UNAVAILABLE = "type_unavailable"
    INSUFFICIENT_CAPACITY = "insufficient_capacity"
    PARTY_LIMIT_REACHED = "party_limit_reached"


@dataclass(frozen=True)
class BookedParty:
    reservation_type: ReservationType
    reservation_date: date
    reservation_time: time
    party_size: int
    status: BookingStatus


@dataclass(frozen=True)
class AdmissionDecision:
    accepted: bool
    reason: Optional[RejectionReason]
    available_seats: int
    total_capacity: int
    reserved_seats: int
    shortfall: int = 0
    reserved_parties: int = 0
    max_parties: Optional[int] = None


def reserved_in_bucket(
    existing: Iterable[BookedParty],
    *,
    reservation_date: date,
    reservation_type: ReservationType,
    reservation_time: time,
    capacity_model: CapacityModel,
) -> tuple[int, int]:
    """Seats and parties already held in the bucket the query instant falls into."""
    target = bucket_for(capacity_model, reservation_type, reservation_time)
    if target is None:
        return 0, 0
    seats = parties = 0
    for booking in existing:
        if booking.status == BookingStatus.CANCELLED:
            continue
        if booking.reservation_date != reservation_date or booking.reservation_type != reservation_type:
            continue
        bucket = bucket_for(capacity_model, reservation_type, booking.reservation_time)
        if bucket is None or bucket.key != target.key:
            continue
        seats += booking.party_size
        parties += 1
    return seats, parties


def check_admission(
    existing: Iterable[BookedParty],
    *,
    reservation_date: date | str,
    reservation_type: ReservationType,
    reservation_time: time | str,
    party_size: int,
    capacity_model: CapacityModel,
    today: date,
    closures: ClosureSettings = DEFAULT_CLOSURE_SETTINGS,
    availability: AvailabilitySettings = DEFAULT_AVAILABILITY_SETTINGS,
) -> AdmissionDecision:
    """
    Decide whether a party fits. Rejection is a normal outcome and is returned, not raised;
    only malformed input raises ValidationError. The decision is advisory: callers must
    re-check and insert atomically to rule out concurrent overbooking.
    """
    if party_size < 1:
        raise ValidationError("party_size must be at least 1")
    day = parse_iso_date(reservation_date)
    at = parse_hhmm(reservation_time)

    bucket = bucket_for(capacity_model, reservation_type, at)
    total = bucket.capacity if bucket is not None else 0
    max_parties = bucket.max_parties if bucket is not None else None
    reserved, parties = reserved_in_bucket(
        existing,
        reservation_date=day,
        reservation_type=reservation_type,
        reservation_time=at,
        capacity_model=capacity_model,
    )
    available = total - reserved

    def decide(reason: Optional[RejectionReason], shortfall: int = 0) -> AdmissionDecision:
        return AdmissionDecision(
            accepted=reason is None,
            reason=reason,
            available_seats=available,
            total_capacity=total,
            reserved_seats=reserved,
            shortfall=shortfall,
            reserved_parties=parties,
            max_parties=max_parties,
        )

    if day < today:
        return decide(RejectionReason.PAST_DATE)
    if is_date_closed(closures, day):
        return decide(RejectionReason.CLOSED_DATE)
    if is_shift_closed(closures, day, shift_for_time(at)):
        return decide(RejectionReason.CLOSED_SHIFT)
    if not is_type_available(availability, reservation_type, day, at):
        return decide(RejectionReason.TYPE_UNAVAILABLE)
    if available < party_size:
        return decide(RejectionReason.INSUFFICIENT_CAPACITY, shortfall=party_size - available)
    if max_parties is not None and parties >= max_parties:
        return decide(RejectionReason.PARTY_LIMIT_REACHED)
    return decide(None)
