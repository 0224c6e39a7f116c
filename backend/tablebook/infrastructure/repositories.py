from __future__ import annotations

from datetime import date, time
from typing import Any, List, Optional

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import BookingRepository, SettingsRepository
from ..models import AdminSetting, Booking, BookingStatus, PaymentStatus, ReservationType
from ..utils.time import utc_now_naive


class SqlAlchemySettingsRepository(SettingsRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, setting_key: str) -> Optional[dict[str, Any]]:
        row = await self.session.get(AdminSetting, setting_key)
        if row is None or not row.setting_value:
            return None
        return dict(row.setting_value)

    async def upsert(self, setting_key: str, setting_value: dict[str, Any]) -> None:
        now = utc_now_naive()
        row = await self.session.get(AdminSetting, setting_key, with_for_update=True)
        if row is None:
            self.session.add(AdminSetting(setting_key=setting_key, setting_value=setting_value, updated_at=now))
        else:
            row.setting_value = setting_value
            row.updated_at = now
        await self.session.flush()


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_date(
        self,
        reservation_date: date,
        reservation_type: ReservationType | None = None,
        *,
        for_update: bool = False,
    ) -> List[Booking]:
        stmt: Select[tuple[Booking]] = (
            select(Booking)
            .where(Booking.reservation_date == reservation_date)
            .order_by(Booking.reservation_time, Booking.id)
        )
        if reservation_type is not None:
            stmt = stmt.where(Booking.reservation_type == reservation_type)
        if for_update:
            stmt = stmt.with_for_update()
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def get(self, booking_id: int) -> Booking | None:
        return await self.session.get(Booking, booking_id)

    async def get_for_update(self, booking_id: int) -> Booking | None:
        result = await self.session.scalar(select(Booking).where(Booking.id == booking_id).with_for_update())
        return result if isinstance(result, Booking) else None

    async def get_by_confirmation_code(self, confirmation_code: str, *, for_update: bool = False) -> Booking | None:
        stmt = select(Booking).where(Booking.confirmation_code == confirmation_code)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Booking) else None

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
    ) -> Booking:
        now = utc_now_naive()
        booking = Booking(
            reservation_type=reservation_type,
            reservation_date=reservation_date,
            reservation_time=reservation_time,
            party_size=party_size,
            duration_minutes=duration_minutes,
            status=status,
            confirmation_code=confirmation_code,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            special_requests=special_requests,
            notes=notes,
            payment_status=payment_status,
            prepayment_amount=prepayment_amount,
            cancellation_refund_percentage=0,
            charge_reference=charge_reference,
            customer_reference=customer_reference,
            payment_method_reference=payment_method_reference,
            no_show_fee_charged=False,
            version=1,
            created_at=now,
            updated_at=now,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def save(self, booking: Booking) -> Booking:
        self.session.add(booking)
        await self.session.flush()
        return booking
