import json
from datetime import date
from typing import Any, List

import pytest
from tablebook.models import BookingStatus, ReservationType
from tablebook.utils import audit_log
from tablebook.utils.request_id import set_request_id


def test_emit_audit_log_outputs_json(monkeypatch: pytest.MonkeyPatch) -> None:
    messages: List[str] = []

    class DummyLogger:
        def info(self, message: str) -> None:
            messages.append(message)

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())

    set_request_id("req-123")
    audit_log.emit_audit_log(
        action="reservation.created",
        initiator="customer",
        reservation_id=1,
        reservation_type=ReservationType.DINING,
        reservation_date=date(2026, 10, 22),
        party_size=2,
        status_to=BookingStatus.CONFIRMED,
        version=1,
        extra={"auto_confirmed": True},
    )
    set_request_id(None)

    assert len(messages) == 1
    payload = json.loads(messages[0])
    assert payload["action"] == "reservation.created"
    assert payload["initiator"] == "customer"
    assert payload["request_id"] == "req-123"
    assert payload["reservation_type"] == "dining"
    assert payload["reservation_date"] == "2026-10-22"
    assert payload["status_to"] == "confirmed"
    assert payload["auto_confirmed"] is True
    assert "status_from" not in payload
    assert "timestamp" in payload


def test_settings_update_needs_no_reservation(monkeypatch: pytest.MonkeyPatch) -> None:
    messages: List[str] = []

    class DummyLogger:
        def info(self, message: str) -> None:
            messages.append(message)

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())
    audit_log.emit_audit_log(action="settings.updated", initiator="admin", admin_id=3, extra={"setting_key": "seat_capacity"})
    payload = json.loads(messages[0])
    assert payload["admin_id"] == 3
    assert payload["setting_key"] == "seat_capacity"
    assert "reservation_id" not in payload


def test_emit_audit_log_raises_on_logger_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    class DummyLogger:
        def info(self, _: Any) -> None:
            raise ValueError("fail")

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())

    with pytest.raises(RuntimeError):
        audit_log.emit_audit_log(
            action="reservation.cancelled",
            initiator="customer",
            reservation_id=1,
            status_from=BookingStatus.CONFIRMED,
            status_to=BookingStatus.CANCELLED,
            version=2,
        )
