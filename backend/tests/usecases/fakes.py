from datetime import date, datetime, time
from typing import Any, Optional

from tablebook.domain.repositories import ChargeResult, RefundResult
from tablebook.models import Booking, BookingStatus, PaymentStatus, ReservationType

CREATED_AT = datetime(2026, 10, 1, 9, 0)


def make_booking(
    booking_id: int = 1,
    *,
    reservation_type: ReservationType = ReservationType.OMAKASE,
    reservation_date: date = date(2026, 10, 22),
    reservation_time: time = time(19, 0),
    party_size: int = 2,
    status: BookingStatus = BookingStatus.CONFIRMED,
    payment_status: Optional[PaymentStatus] = None,
    prepayment_amount: Optional[int] = None,
    charge_reference: Optional[str] = None,
    **fields: Any,
) -> Booking:
    values: dict[str, Any] = {
        "id": booking_id,
        "reservation_type": reservation_type,
        "reservation_date": reservation_date,
        "reservation_time": reservation_time,
        "party_size": party_size,
        "duration_minutes": None,
        "status": status,
        "confirmation_code": "ABCD1234" if status == BookingStatus.CONFIRMED else None,
        "customer_name": "Ada Guest",
        "customer_email": "ada@example.com",
        "customer_phone": "555-0100",
        "payment_status": payment_status,
        "prepayment_amount": prepayment_amount,
        "charge_reference": charge_reference,
        "cancellation_refund_percentage": 0,
        "no_show_fee_charged": False,
        "version": 1,
        "created_at": CREATED_AT,
        "updated_at": CREATED_AT,
    }
    values.update(fields)
    return Booking(**values)


class FakeSettingsRepo:
    def __init__(self, stored: Optional[dict[str, dict[str, Any]]] = None) -> None:
        self.stored: dict[str, dict[str, Any]] = dict(stored or {})
        self.upserts: list[str] = []

    async def get(self, setting_key: str) -> Optional[dict[str, Any]]:
        return self.stored.get(setting_key)

    async def upsert(self, setting_key: str, setting_value: dict[str, Any]) -> None:
        self.upserts.append(setting_key)
        self.stored[setting_key] = setting_value


class FakeBookingRepo:
    def __init__(self, bookings: Optional[list[Booking]] = None) -> None:
        self.bookings: list[Booking] = list(bookings or [])
        self.saved: list[Booking] = []
        self.locked_reads = 0

    async def list_for_date(
        self,
        reservation_date: date,
        reservation_type: Optional[ReservationType] = None,
        *,
        for_update: bool = False,
    ) -> list[Booking]:
        if for_update:
            self.locked_reads += 1
        return [
            b
            for b in self.bookings
            if b.reservation_date == reservation_date
            and (reservation_type is None or b.reservation_type == reservation_type)
        ]

    async def get(self, booking_id: int) -> Optional[Booking]:
        return next((b for b in self.bookings if b.id == booking_id), None)

    async def get_for_update(self, booking_id: int) -> Optional[Booking]:
        return await self.get(booking_id)

    async def get_by_confirmation_code(self, confirmation_code: str, *, for_update: bool = False) -> Optional[Booking]:
        if for_update:
            self.locked_reads += 1
        return next((b for b in self.bookings if b.confirmation_code == confirmation_code), None)

    async def create(self, **fields: Any) -> Booking:
        booking = make_booking(len(self.bookings) + 1, **fields)
        self.bookings.append(booking)
        return booking

    async def save(self, booking: Booking) -> Booking:
        self.saved.append(booking)
        return booking


class FakePayments:
    def __init__(self, *, succeed: bool = True) -> None:
        self.succeed = succeed
        self.refunds: list[tuple[str, int]] = []
        self.charges: list[tuple[str, str, int]] = []

    async def refund(
        self,
        charge_reference: str,
        amount_cents: int,
        *,
        metadata: Optional[dict[str, str]] = None,
    ) -> RefundResult:
        self.refunds.append((charge_reference, amount_cents))
        if not self.succeed:
            return RefundResult(succeeded=False, error="card_declined")
        return RefundResult(succeeded=True, reference=f"re_{len(self.refunds)}")

    async def charge(
        self,
        customer_reference: str,
        payment_method_reference: str,
        amount_cents: int,
        *,
        metadata: Optional[dict[str, str]] = None,
    ) -> ChargeResult:
        self.charges.append((customer_reference, payment_method_reference, amount_cents))
        if not self.succeed:
            return ChargeResult(succeeded=False, error="card_declined")
        return ChargeResult(succeeded=True, reference=f"pi_{len(self.charges)}")
