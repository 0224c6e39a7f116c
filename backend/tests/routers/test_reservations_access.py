from datetime import date, datetime, time
from typing import Any, AsyncIterator, Iterator, Optional

import pytest
from fastapi.testclient import TestClient
from tablebook.config import Settings
from tablebook.deps import get_config, get_current_admin_id, get_session
from tablebook.domain.admission import AdmissionDecision
from tablebook.domain.confirmation import InitialAssignment
from tablebook.main import app
from tablebook.models import Booking, BookingStatus, PaymentStatus, ReservationType
from tablebook.routers import reservations as router
from tablebook.usecases.reservations import NewReservation, ReservationOutcome

ACCEPTED = AdmissionDecision(accepted=True, reason=None, available_seats=20, total_capacity=24, reserved_seats=4)


class DummySession:
    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


class CodeLookupRepo:
    def __init__(self, bookings: list[Booking]) -> None:
        self.bookings = bookings
        self.saved: list[Booking] = []

    async def get_by_confirmation_code(self, confirmation_code: str, *, for_update: bool = False) -> Optional[Booking]:
        return next((b for b in self.bookings if b.confirmation_code == confirmation_code), None)

    async def save(self, booking: Booking) -> Booking:
        self.saved.append(booking)
        return booking


def _booking(**fields: Any) -> Booking:
    now = datetime(2026, 10, 18, 9, 0)
    values: dict[str, Any] = {
        "id": 100,
        "reservation_type": ReservationType.DINING,
        "reservation_date": date(2026, 10, 22),
        "reservation_time": time(18, 0),
        "party_size": 2,
        "duration_minutes": 60,
        "status": BookingStatus.CONFIRMED,
        "confirmation_code": "ABCD1234",
        "customer_name": "Ada Guest",
        "customer_email": "ada@example.com",
        "customer_phone": "555-0100",
        "notes": "regular, prefers the counter",
        "cancellation_refund_percentage": 0,
        "no_show_fee_charged": False,
        "version": 1,
        "created_at": now,
        "updated_at": now,
    }
    values.update(fields)
    return Booking(**values)


def _create_body(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "reservation_type": "dining",
        "reservation_date": "2026-10-22",
        "reservation_time": "18:00",
        "party_size": 2,
        "customer_name": "Ada Guest",
        "customer_email": "ada@example.com",
        "customer_phone": "555-0100",
    }
    body.update(overrides)
    return body


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> list[NewReservation]:
    requests: list[NewReservation] = []

    async def fake_create(*args: object, request: NewReservation, **kwargs: object) -> ReservationOutcome:
        requests.append(request)
        status = request.requested_status or BookingStatus.CONFIRMED
        booking = _booking(
            status=status,
            confirmation_code="ABCD1234" if status == BookingStatus.CONFIRMED else None,
            notes=request.notes,
            payment_status=request.payment_status,
            prepayment_amount=request.prepayment_amount,
        )
        assignment = InitialAssignment(status, booking.confirmation_code, request.requested_status is None)
        return ReservationOutcome(decision=ACCEPTED, booking=booking, assignment=assignment)

    monkeypatch.setattr(router, "SqlAlchemySettingsRepository", lambda session: session)
    monkeypatch.setattr(router, "SqlAlchemyBookingRepository", lambda session: session)
    monkeypatch.setattr(router.reservation_usecase, "create_reservation", fake_create)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: None)
    return requests


@pytest.fixture
def client() -> Iterator[TestClient]:
    async def override_get_session() -> AsyncIterator[DummySession]:
        yield DummySession()

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_config] = lambda: Settings(restaurant_timezone="UTC")
    yield TestClient(app)
    app.dependency_overrides.clear()


def _as_admin() -> None:
    async def override_admin() -> int:
        return 7

    app.dependency_overrides[get_current_admin_id] = override_admin


def test_public_create_rejects_payment_fields(client: TestClient, captured: list[NewReservation]) -> None:
    body = _create_body(payment_status="paid", prepayment_amount=999999, charge_reference="ch_someone_else")
    res = client.post("/reservations", json=body)
    assert res.status_code == 422
    assert captured == []


def test_public_create_rejects_status_and_notes(client: TestClient, captured: list[NewReservation]) -> None:
    assert client.post("/reservations", json=_create_body(status="confirmed")).status_code == 422
    assert client.post("/reservations", json=_create_body(notes="vip")).status_code == 422
    assert captured == []


def test_public_create_carries_no_payment_state(client: TestClient, captured: list[NewReservation]) -> None:
    res = client.post("/reservations", json=_create_body(special_requests="window seat"))
    assert res.status_code == 201
    request = captured[0]
    assert request.special_requests == "window seat"
    assert request.payment_status is None
    assert request.prepayment_amount is None
    assert request.charge_reference is None
    assert request.requested_status is None
    assert request.notes is None


def test_admin_create_requires_token(client: TestClient, captured: list[NewReservation]) -> None:
    res = client.post("/reservations/admin", json=_create_body(status="pending"))
    assert res.status_code == 401
    assert captured == []


def test_admin_create_passes_status_notes_and_payment(client: TestClient, captured: list[NewReservation]) -> None:
    _as_admin()
    body = _create_body(
        reservation_type="omakase",
        status="pending",
        notes="phoned in, deposit taken at the counter",
        payment_status="paid",
        prepayment_amount=20000,
        charge_reference="ch_1",
    )
    res = client.post("/reservations/admin", json=body)
    assert res.status_code == 201
    request = captured[0]
    assert request.requested_status == BookingStatus.PENDING
    assert request.notes == "phoned in, deposit taken at the counter"
    assert request.payment_status == PaymentStatus.PAID
    assert request.prepayment_amount == 20000
    assert request.charge_reference == "ch_1"
    created = res.json()
    assert created["auto_confirmed"] is False
    assert created["reservation"]["status"] == "pending"
    assert created["reservation"]["notes"] == "phoned in, deposit taken at the counter"


@pytest.fixture
def code_repo(monkeypatch: pytest.MonkeyPatch) -> CodeLookupRepo:
    repo = CodeLookupRepo([_booking()])
    monkeypatch.setattr(router, "SqlAlchemyBookingRepository", lambda session: repo)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: None)
    return repo


def test_lookup_by_code_hides_staff_notes(client: TestClient, code_repo: CodeLookupRepo) -> None:
    res = client.post("/reservations/lookup", json={"confirmation_code": "abcd1234", "customer_email": "ADA@example.com"})
    assert res.status_code == 200
    body = res.json()
    assert body["reservation_id"] == 100
    assert body["confirmation_code"] == "ABCD1234"
    assert "notes" not in body


def test_lookup_wrong_code_is_404(client: TestClient, code_repo: CodeLookupRepo) -> None:
    res = client.post("/reservations/lookup", json={"confirmation_code": "ZZZZ9999", "customer_email": "ada@example.com"})
    assert res.status_code == 404


def test_lookup_wrong_email_is_404(client: TestClient, code_repo: CodeLookupRepo) -> None:
    res = client.post("/reservations/lookup", json={"confirmation_code": "ABCD1234", "customer_email": "eve@example.com"})
    assert res.status_code == 404


def test_guest_cancel_requires_email(client: TestClient, code_repo: CodeLookupRepo) -> None:
    res = client.post("/reservations/lookup/cancel", json={"confirmation_code": "ABCD1234"})
    assert res.status_code == 422
    assert code_repo.saved == []


def test_guest_cancel_wrong_code_is_404(client: TestClient, code_repo: CodeLookupRepo) -> None:
    body = {"confirmation_code": "ZZZZ9999", "customer_email": "ada@example.com"}
    res = client.post("/reservations/lookup/cancel", json=body)
    assert res.status_code == 404
    assert code_repo.saved == []


def test_guest_cancel_email_mismatch_is_409(client: TestClient, code_repo: CodeLookupRepo) -> None:
    body = {"confirmation_code": "ABCD1234", "customer_email": "eve@example.com"}
    res = client.post("/reservations/lookup/cancel", json=body)
    assert res.status_code == 409
    assert code_repo.saved == []
    assert code_repo.bookings[0].status == BookingStatus.CONFIRMED


def test_guest_cancel_by_code(client: TestClient, code_repo: CodeLookupRepo) -> None:
    body = {"confirmation_code": "ABCD1234", "customer_email": "ada@example.com", "reason": "change of plans"}
    res = client.post("/reservations/lookup/cancel", json=body)
    assert res.status_code == 200
    change = res.json()
    assert change["previous_status"] == "confirmed"
    assert change["reservation"]["status"] == "cancelled"
    assert "notes" not in change["reservation"]
    assert code_repo.saved[0].cancellation_reason == "change of plans"


def test_cancel_by_id_is_not_public(client: TestClient, code_repo: CodeLookupRepo) -> None:
    res = client.post("/reservations/100/cancel", json={"reason": "change of plans"})
    assert res.status_code in (404, 405)
    assert code_repo.saved == []
