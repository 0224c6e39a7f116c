from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..models import BookingStatus, ReservationType
from .errors import ValidationError

CONFIRMATION_CODE_LENGTH = 8
DINING_SHORT_SEATING_MINUTES = 60
DINING_LONG_SEATING_MINUTES = 90


@dataclass(frozen=True)
class AutoConfirmation:
    omakase: bool = False
    dining: bool = True

    def for_type(self, reservation_type: ReservationType) -> bool:
        return self.omakase if reservation_type == ReservationType.OMAKASE else self.dining


DEFAULT_AUTO_CONFIRMATION = AutoConfirmation()


@dataclass(frozen=True)
class InitialAssignment:
    status: BookingStatus
    confirmation_code: Optional[str]
    auto_confirmed: bool


def generate_confirmation_code() -> str:
    return uuid.uuid4().hex[:CONFIRMATION_CODE_LENGTH].upper()


def initial_status(settings: AutoConfirmation, reservation_type: ReservationType) -> BookingStatus:
    return BookingStatus.CONFIRMED if settings.for_type(reservation_type) else BookingStatus.PENDING


def assign_initial_status(
    settings: AutoConfirmation,
    reservation_type: ReservationType,
    *,
    requested_status: Optional[BookingStatus] = None,
) -> InitialAssignment:
    """
    Status and code for a new booking. A requested status (staff entering a booking by hand)
    overrides auto-confirm; a code is issued exactly when the result is confirmed.
    """
    if requested_status is not None and requested_status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
        raise ValidationError(f"new bookings start pending or confirmed, not {requested_status}")
    auto = requested_status is None
    status = initial_status(settings, reservation_type) if auto else requested_status
    code = generate_confirmation_code() if status == BookingStatus.CONFIRMED else None
    return InitialAssignment(status=status, confirmation_code=code, auto_confirmed=auto and code is not None)


def confirmation_code_for_update(
    current_status: BookingStatus,
    new_status: BookingStatus,
    current_code: Optional[str],
) -> Optional[str]:
    if new_status != BookingStatus.CONFIRMED:
        return current_code
    if current_status == BookingStatus.CANCELLED or not current_code:
        return generate_confirmation_code()
    return current_code


def dining_duration_minutes(party_size: int) -> int:
    return DINING_SHORT_SEATING_MINUTES if party_size <= 4 else DINING_LONG_SEATING_MINUTES


def auto_confirmation_from_dict(payload: Mapping[str, Any]) -> AutoConfirmation:
    omakase = payload.get("autoConfirmOmakase", DEFAULT_AUTO_CONFIRMATION.omakase)
    dining = payload.get("autoConfirmDining", DEFAULT_AUTO_CONFIRMATION.dining)
    if not isinstance(omakase, bool) or not isinstance(dining, bool):
        raise ValidationError("autoConfirmOmakase and autoConfirmDining must be booleans")
    return AutoConfirmation(omakase=omakase, dining=dining)


def auto_confirmation_to_dict(settings: AutoConfirmation) -> dict[str, Any]:
    return {"autoConfirmOmakase": settings.omakase, "autoConfirmDining": settings.dining}
