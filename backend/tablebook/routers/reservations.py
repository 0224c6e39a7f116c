import logging
from datetime import date
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..deps import get_config, get_current_admin_id, get_payment_gateway, get_session
from ..domain.errors import DomainError
from ..domain.repositories import PaymentGateway
from ..infrastructure.repositories import SqlAlchemyBookingRepository, SqlAlchemySettingsRepository
from ..models import Booking, ReservationType
from ..schemas import (
    AdminReservationCreate,
    AdmissionDecisionRead,
    NoShowFeeRefundRequest,
    PaymentActionRead,
    PaymentOutcomeRead,
    RefundRequest,
    ReservationCancel,
    ReservationCreate,
    ReservationCreated,
    ReservationLookup,
    ReservationRead,
    ReservationStatusUpdate,
    StatusChangeRead,
)
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import AuditInitiator, emit_audit_log
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reservations", tags=["reservations"])


def _extract_version(if_match: Optional[str], payload: Any) -> Optional[int]:
    """
    Expected version from `If-Match` ("3" or W/"3"), falling back to the body. Neither
    present means the caller skips the optimistic check.
    """
    if if_match is not None:
        raw = if_match.strip()
        if raw.startswith("W/"):
            raw = raw[2:]
        raw = raw.strip('"')
        if not raw.isdigit() or int(raw) < 1:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid If-Match header")
        return int(raw)

    version = getattr(payload, "version", None) if payload is not None else None
    if version is None:
        return None
    if not isinstance(version, int) or version < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="version must be a positive integer")
    return version


def _audit(booking: Booking, **fields: Any) -> None:
    try:
        emit_audit_log(
            reservation_id=booking.id,
            reservation_type=booking.reservation_type,
            reservation_date=booking.reservation_date,
            party_size=booking.party_size,
            version=booking.version,
            **fields,
        )
    except RuntimeError:
        logger.warning("audit log failed for reservation %s", booking.id, exc_info=True)


async def _create(
    request: reservation_usecase.NewReservation,
    session: AsyncSession,
    config: Settings,
    *,
    initiator: AuditInitiator,
    admin_id: Optional[int] = None,
) -> ReservationCreated:
    settings_repo = SqlAlchemySettingsRepository(session)
    booking_repo = SqlAlchemyBookingRepository(session)
    async with session.begin():
        try:
            outcome = await reservation_usecase.create_reservation(
                settings_repo,
                booking_repo,
                config=config,
                request=request,
            )
        except DomainError as exc:
            raise to_http_exception(exc)

    decision = AdmissionDecisionRead.from_decision(outcome.decision)
    if outcome.booking is None or outcome.assignment is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": "reservation not accepted", "decision": decision.model_dump(mode="json")},
        )

    _audit(
        outcome.booking,
        action="reservation.created",
        initiator=initiator,
        admin_id=admin_id,
        status_to=outcome.booking.status,
        extra={"auto_confirmed": outcome.assignment.auto_confirmed},
    )
    return ReservationCreated(
        reservation=ReservationRead.from_db(booking=outcome.booking),
        auto_confirmed=outcome.assignment.auto_confirmed,
        decision=decision,
    )


@router.post("", response_model=ReservationCreated, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    config: Settings = Depends(get_config),
) -> ReservationCreated:
    request = reservation_usecase.NewReservation(
        reservation_type=payload.reservation_type,
        reservation_date=payload.reservation_date,
        reservation_time=payload.reservation_time,
        party_size=payload.party_size,
        customer_name=payload.customer_name,
        customer_email=payload.customer_email,
        customer_phone=payload.customer_phone,
        special_requests=payload.special_requests,
    )
    return await _create(request, session, config, initiator="customer")


@router.post("/admin", response_model=ReservationCreated, status_code=status.HTTP_201_CREATED)
async def create_reservation_as_admin(
    payload: AdminReservationCreate,
    session: AsyncSession = Depends(get_session),
    config: Settings = Depends(get_config),
    admin_id: int = Depends(get_current_admin_id),
) -> ReservationCreated:
    request = reservation_usecase.NewReservation(
        reservation_type=payload.reservation_type,
        reservation_date=payload.reservation_date,
        reservation_time=payload.reservation_time,
        party_size=payload.party_size,
        customer_name=payload.customer_name,
        customer_email=payload.customer_email,
        customer_phone=payload.customer_phone,
        special_requests=payload.special_requests,
        notes=payload.notes,
        requested_status=payload.status,
        payment_status=payload.payment_status,
        prepayment_amount=payload.prepayment_amount,
        charge_reference=payload.charge_reference,
        customer_reference=payload.customer_reference,
        payment_method_reference=payload.payment_method_reference,
    )
    return await _create(request, session, config, initiator="admin", admin_id=admin_id)


@router.post("/lookup", response_model=ReservationRead, response_model_exclude={"notes"})
async def lookup_reservation(
    payload: ReservationLookup,
    session: AsyncSession = Depends(get_session),
) -> ReservationRead:
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        booking = await reservation_usecase.find_by_confirmation_code(
            booking_repo,
            confirmation_code=payload.confirmation_code,
            customer_email=payload.customer_email,
        )
    except DomainError as exc:
        raise to_http_exception(exc)
    return ReservationRead.from_db(booking=booking)


@router.post(
    "/lookup/cancel",
    response_model=StatusChangeRead,
    response_model_exclude={"reservation": {"notes"}},
)
async def cancel_reservation(
    payload: ReservationCancel,
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    session: AsyncSession = Depends(get_session),
    config: Settings = Depends(get_config),
    payments: PaymentGateway = Depends(get_payment_gateway),
) -> StatusChangeRead:
    expected_version = _extract_version(if_match, payload)
    booking_repo = SqlAlchemyBookingRepository(session)
    async with session.begin():
        try:
            change = await reservation_usecase.cancel_reservation(
                booking_repo,
                payments,
                config=config,
                confirmation_code=payload.confirmation_code,
                customer_email=payload.customer_email,
                reason=payload.reason,
                expected_version=expected_version,
            )
        except DomainError as exc:
            raise to_http_exception(exc)

    extra = {"refund_succeeded": change.refund.succeeded} if change.refund is not None else None
    _audit(
        change.booking,
        action="reservation.cancelled",
        initiator="customer",
        status_from=change.previous_status,
        status_to=change.booking.status,
        message=payload.reason,
        extra=extra,
    )
    return StatusChangeRead.from_change(change)


@router.get("", response_model=List[ReservationRead])
async def list_reservations(
    reservation_date: date = Query(..., alias="date"),
    reservation_type: Optional[ReservationType] = Query(default=None, alias="type"),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> list[ReservationRead]:
    booking_repo = SqlAlchemyBookingRepository(session)
    rows = await reservation_usecase.list_reservations(
        booking_repo,
        reservation_date=reservation_date,
        reservation_type=reservation_type,
    )
    return [ReservationRead.from_db(booking=row) for row in rows]


@router.get("/{reservation_id}", response_model=ReservationRead)
async def get_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> ReservationRead:
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        booking = await reservation_usecase.get_reservation(booking_repo, booking_id=reservation_id)
    except DomainError as exc:
        raise to_http_exception(exc)
    return ReservationRead.from_db(booking=booking)


@router.patch("/{reservation_id}/status", response_model=StatusChangeRead)
async def update_status(
    payload: ReservationStatusUpdate,
    reservation_id: int = Path(..., ge=1),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    session: AsyncSession = Depends(get_session),
    config: Settings = Depends(get_config),
    payments: PaymentGateway = Depends(get_payment_gateway),
    admin_id: int = Depends(get_current_admin_id),
) -> StatusChangeRead:
    expected_version = _extract_version(if_match, payload)
    booking_repo = SqlAlchemyBookingRepository(session)
    async with session.begin():
        try:
            change = await reservation_usecase.update_status(
                booking_repo,
                payments,
                config=config,
                booking_id=reservation_id,
                new_status=payload.status,
                reason=payload.reason,
                expected_version=expected_version,
            )
        except DomainError as exc:
            raise to_http_exception(exc)

    if change.booking.status != change.previous_status:
        extra = {"refund_succeeded": change.refund.succeeded} if change.refund is not None else None
        _audit(
            change.booking,
            action="reservation.status_changed",
            initiator="admin",
            admin_id=admin_id,
            status_from=change.previous_status,
            status_to=change.booking.status,
            message=payload.reason,
            extra=extra,
        )
    return StatusChangeRead.from_change(change)


@router.post("/{reservation_id}/refunds", response_model=PaymentActionRead)
async def refund_prepayment(
    payload: RefundRequest,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    payments: PaymentGateway = Depends(get_payment_gateway),
    admin_id: int = Depends(get_current_admin_id),
) -> PaymentActionRead:
    booking_repo = SqlAlchemyBookingRepository(session)
    async with session.begin():
        try:
            booking, outcome = await reservation_usecase.refund_prepayment(
                booking_repo,
                payments,
                booking_id=reservation_id,
                percentage=payload.percentage,
                reason=payload.reason,
            )
        except DomainError as exc:
            raise to_http_exception(exc)

    if outcome.succeeded:
        _audit(
            booking,
            action="reservation.refunded",
            initiator="admin",
            admin_id=admin_id,
            message=payload.reason,
            extra={"refund_percentage": outcome.percentage, "amount_cents": outcome.amount_cents},
        )
    return PaymentActionRead(
        reservation=ReservationRead.from_db(booking=booking),
        payment=PaymentOutcomeRead.from_outcome(outcome),
    )


@router.post("/{reservation_id}/no-show-fee", response_model=PaymentActionRead)
async def charge_no_show_fee(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    config: Settings = Depends(get_config),
    payments: PaymentGateway = Depends(get_payment_gateway),
    admin_id: int = Depends(get_current_admin_id),
) -> PaymentActionRead:
    booking_repo = SqlAlchemyBookingRepository(session)
    async with session.begin():
        try:
            booking, outcome = await reservation_usecase.charge_no_show_fee(
                booking_repo,
                payments,
                config=config,
                booking_id=reservation_id,
            )
        except DomainError as exc:
            raise to_http_exception(exc)

    if outcome.succeeded:
        _audit(
            booking,
            action="reservation.no_show_charged",
            initiator="admin",
            admin_id=admin_id,
            extra={"amount_cents": outcome.amount_cents},
        )
    return PaymentActionRead(
        reservation=ReservationRead.from_db(booking=booking),
        payment=PaymentOutcomeRead.from_outcome(outcome),
    )


@router.post("/{reservation_id}/no-show-fee/refund", response_model=PaymentActionRead)
async def refund_no_show_fee(
    payload: NoShowFeeRefundRequest,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    payments: PaymentGateway = Depends(get_payment_gateway),
    admin_id: int = Depends(get_current_admin_id),
) -> PaymentActionRead:
    booking_repo = SqlAlchemyBookingRepository(session)
    async with session.begin():
        try:
            booking, outcome = await reservation_usecase.refund_no_show_fee(
                booking_repo,
                payments,
                booking_id=reservation_id,
                reason=payload.reason,
            )
        except DomainError as exc:
            raise to_http_exception(exc)

    if outcome.succeeded:
        _audit(
            booking,
            action="reservation.no_show_refunded",
            initiator="admin",
            admin_id=admin_id,
            message=payload.reason,
            extra={"amount_cents": outcome.amount_cents},
        )
    return PaymentActionRead(
        reservation=ReservationRead.from_db(booking=booking),
        payment=PaymentOutcomeRead.from_outcome(outcome),
    )
