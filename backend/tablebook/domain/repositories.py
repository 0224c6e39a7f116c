from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Any, Optional, Protocol

from ..models import Booking, BookingStatus, PaymentStatus, ReservationType


class SettingsRepository(Protocol):
    async def get(self, setting_key: str) -> dict[str, Any] | None: ...

    async def upsert(self, setting_key: str, setting_value: dict[str, Any]) -> None: ...


class BookingRepository(Protocol):
    async def list_for_date(
        self,
        reservation_date: date,
        reservation_type: ReservationType | None = None,
        *,
        for_update: bool = False,
    ) -> list[Booking]: ...

    async def get(self, booking_id: int) -> Booking | None: ...

    async def get_for_update(self, booking_id: int) -> Booking | None: ...

    async def get_by_confirmation_code(self, confirmation_code: str, *, for_update: bool = False) -> Booking | None: ...

    async def create(
        self,
        *,
        reservation_type: ReservationType,
        reservation_date: date,
        reservation_time: time,
        party_size: int,
        status: BookingStatus,
        confirmation_code: str | None,
        customer_name: str,
        customer_email: str,
        customer_phone: str,
        special_requests: str | None = None,
        notes: str | None = None,
        duration_minutes: int | None = None,
        payment_status: PaymentStatus | None = None,
        prepayment_amount: int | None = None,
        charge_reference: str | None = None,
        customer_reference: str | None = None,
        payment_method_reference: str | None = None,
    ) -> Booking: ...

    async def save(self, booking: Booking) -> Booking: ...


@dataclass(frozen=True)
class RefundResult:
    succeeded: bool
    reference: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ChargeResult:
    succeeded: bool
    reference: Optional[str] = None
    error: Optional[str] = None


class PaymentGateway(Protocol):
    """Third-party processor. Failures come back in the result; implementations do not raise."""

    async def refund(
        self,
        charge_reference: str,
        amount_cents: int,
        *,
        metadata: dict[str, str] | None = None,
    ) -> RefundResult: ...

    async def charge(
        self,
        customer_reference: str,
        payment_method_reference: str,
        amount_cents: int,
        *,
        metadata: dict[str, str] | None = None,
    ) -> ChargeResult: ...
