from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "reservation.created",
    "reservation.status_changed",
    "reservation.cancelled",
    "reservation.refunded",
    "reservation.no_show_charged",
    "reservation.no_show_refunded",
    "settings.updated",
]
AuditInitiator = Literal["customer", "admin", "system"]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(_handler)
_audit_logger.propagate = False


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    reservation_id: Optional[int] = None,
    reservation_type: Optional[str] = None,
    reservation_date: Optional[date] = None,
    party_size: Optional[int] = None,
    status_from: Optional[str] = None,
    status_to: Optional[str] = None,
    version: Optional[int] = None,
    admin_id: Optional[int] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Write one JSON line to the `audit` logger. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "reservation_id": reservation_id,
        "reservation_type": reservation_type,
        "reservation_date": reservation_date,
        "party_size": party_size,
        "status_from": status_from,
        "status_to": status_to,
        "version": version,
        "admin_id": admin_id,
        "message": message,
    }
    if extra:
        payload.update(extra)

    compact = {key: _plain(value) for key, value in payload.items() if value is not None}
    try:
        _audit_logger.info(json.dumps(compact, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
