from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from enum import StrEnum
from typing import Any, Iterable, Mapping, Optional

from ..models import ReservationType
from ..utils.time import parse_hhmm, parse_iso_date, sunday_weekday
from .errors import ValidationError

LUNCH_CUTOFF_HOUR = 15
ALL_WEEKDAYS: frozenset[int] = frozenset(range(7))
THURSDAY = 4


class Shift(StrEnum):
    LUNCH = "lunch"
    DINNER = "dinner"


class ShiftClosureKind(StrEnum):
    FULL_DAY = "full_day"
    LUNCH_ONLY = "lunch_only"
    DINNER_ONLY = "dinner_only"


@dataclass(frozen=True)
class Holiday:
    date: str
    closed: bool = True
    name: Optional[str] = None


@dataclass(frozen=True)
class ShiftClosure:
    date: str
    kind: ShiftClosureKind
    reason: Optional[str] = None


@dataclass(frozen=True)
class ClosureSettings:
    explicit_dates: frozenset[str] = frozenset()
    closed_weekdays: frozenset[int] = frozenset()
    holidays: tuple[Holiday, ...] = ()
    shift_closures: tuple[ShiftClosure, ...] = ()


@dataclass(frozen=True)
class AvailabilitySettings:
    omakase_available_days: frozenset[int] = frozenset({THURSDAY})
    dining_available_days: frozenset[int] = ALL_WEEKDAYS
    # Weekday -> shifts. A weekday missing from the mapping is not shift-gated.
    dining_available_shifts: Mapping[int, frozenset[Shift]] = field(
        default_factory=lambda: {day: frozenset(Shift) for day in ALL_WEEKDAYS}
    )


DEFAULT_CLOSURE_SETTINGS = ClosureSettings()
DEFAULT_AVAILABILITY_SETTINGS = AvailabilitySettings()


def shift_for_time(value: time | str) -> Shift:
    """Coarse lunch/dinner bucket: anything before 15:00 is lunch."""
    return Shift.LUNCH if parse_hhmm(value).hour < LUNCH_CUTOFF_HOUR else Shift.DINNER


def is_date_closed(closures: ClosureSettings, value: date | str) -> bool:
    day = parse_iso_date(value)
    key = day.isoformat()
    if key in closures.explicit_dates:
        return True
    if sunday_weekday(day) in closures.closed_weekdays:
        return True
    if any(h.date == key and h.closed for h in closures.holidays):
        return True
    return any(sc.date == key and sc.kind == ShiftClosureKind.FULL_DAY for sc in closures.shift_closures)


def is_shift_closed(closures: ClosureSettings, value: date | str, shift: Shift) -> bool:
    if is_date_closed(closures, value):
        return True
    key = parse_iso_date(value).isoformat()
    closing_kind = ShiftClosureKind.LUNCH_ONLY if shift == Shift.LUNCH else ShiftClosureKind.DINNER_ONLY
    return any(sc.date == key and sc.kind == closing_kind for sc in closures.shift_closures)


def is_type_available(
    availability: AvailabilitySettings,
    reservation_type: ReservationType,
    value: date | str,
    reservation_time: time | str | None = None,
) -> bool:
    weekday = sunday_weekday(parse_iso_date(value))
    if reservation_type == ReservationType.OMAKASE:
        return weekday in availability.omakase_available_days

    if weekday not in availability.dining_available_days:
        return False
    if reservation_time is None or weekday not in availability.dining_available_shifts:
        return True
    return shift_for_time(reservation_time) in availability.dining_available_shifts[weekday]


# -- validation -------------------------------------------------------------


def _check_iso_date(value: str, label: str, violations: list[str]) -> None:
    try:
        parse_iso_date(value)
    except ValidationError as exc:
        violations.append(f"{label}: {exc}")


def _check_weekdays(days: Iterable[int], label: str, violations: list[str]) -> None:
    for day in sorted(days):
        if not 0 <= day <= 6:
            violations.append(f"{label} must contain numbers between 0-6 (0=Sunday, 6=Saturday), got {day}")


def validate_closure_settings(closures: ClosureSettings) -> list[str]:
    violations: list[str] = []
    for value in sorted(closures.explicit_dates):
        _check_iso_date(value, "closedDates", violations)
    _check_weekdays(closures.closed_weekdays, "closedWeekdays", violations)
    for holiday in closures.holidays:
        _check_iso_date(holiday.date, "holidays", violations)
    for closure in closures.shift_closures:
        _check_iso_date(closure.date, "shiftClosures", violations)
    return violations


def validate_availability_settings(availability: AvailabilitySettings) -> list[str]:
    violations: list[str] = []
    _check_weekdays(availability.omakase_available_days, "omakaseAvailableDays", violations)
    _check_weekdays(availability.dining_available_days, "diningAvailableDays", violations)
    if not availability.dining_available_days:
        violations.append("Dining must be available on at least one day")
    _check_weekdays(availability.dining_available_shifts.keys(), "diningAvailableShifts", violations)
    return violations


# -- wire format --------------------------------------------------------------


def _list_field(payload: Mapping[str, Any], key: str) -> list[Any]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be an array")
    return value


def _weekday_set(values: list[Any], key: str) -> frozenset[int]:
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{key} must contain numbers between 0-6 (0=Sunday, 6=Saturday)")
    return frozenset(values)


def _date_string(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{key} must contain YYYY-MM-DD date strings")
    return value


def closure_settings_from_dict(payload: Mapping[str, Any]) -> ClosureSettings:
    holidays = []
    for entry in _list_field(payload, "holidays"):
        if not isinstance(entry, Mapping) or not isinstance(entry.get("closed", True), bool):
            raise ValidationError("holidays must be objects with a date and a boolean 'closed'")
        holidays.append(
            Holiday(
                date=_date_string(entry.get("date"), "holidays"),
                closed=entry.get("closed", True),
                name=entry.get("name"),
            )
        )

    shift_closures = []
    for entry in _list_field(payload, "shiftClosures"):
        if not isinstance(entry, Mapping):
            raise ValidationError("shiftClosures must be objects with a date and a type")
        try:
            kind = ShiftClosureKind(entry.get("type"))
        except ValueError as exc:
            raise ValidationError(f"unknown shift closure type: {entry.get('type')!r}") from exc
        shift_closures.append(
            ShiftClosure(
                date=_date_string(entry.get("date"), "shiftClosures"),
                kind=kind,
                reason=entry.get("reason"),
            )
        )

    return ClosureSettings(
        explicit_dates=frozenset(_date_string(d, "closedDates") for d in _list_field(payload, "dates")),
        closed_weekdays=_weekday_set(_list_field(payload, "closedWeekdays"), "closedWeekdays"),
        holidays=tuple(holidays),
        shift_closures=tuple(shift_closures),
    )


def closure_settings_to_dict(closures: ClosureSettings) -> dict[str, Any]:
    return {
        "dates": sorted(closures.explicit_dates),
        "closedWeekdays": sorted(closures.closed_weekdays),
        "holidays": [
            {k: v for k, v in {"date": h.date, "name": h.name, "closed": h.closed}.items() if v is not None}
            for h in closures.holidays
        ],
        "shiftClosures": [
            {k: v for k, v in {"date": sc.date, "type": sc.kind.value, "reason": sc.reason}.items() if v is not None}
            for sc in closures.shift_closures
        ],
    }


def availability_settings_from_dict(payload: Mapping[str, Any]) -> AvailabilitySettings:
    defaults = DEFAULT_AVAILABILITY_SETTINGS
    omakase = payload.get("omakaseAvailableDays")
    dining = payload.get("diningAvailableDays")
    raw_shifts = payload.get("diningAvailableShifts")

    shifts: dict[int, frozenset[Shift]] = dict(defaults.dining_available_shifts)
    if raw_shifts is not None:
        if not isinstance(raw_shifts, Mapping):
            raise ValidationError("diningAvailableShifts must map weekdays to shift lists")
        shifts = {}
        for day, names in raw_shifts.items():
            try:
                weekday = int(day)
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"diningAvailableShifts has a non-numeric weekday: {day!r}") from exc
            if not isinstance(names, list):
                raise ValidationError("diningAvailableShifts values must be arrays of 'lunch'/'dinner'")
            try:
                shifts[weekday] = frozenset(Shift(name) for name in names)
            except ValueError as exc:
                raise ValidationError(f"unknown shift in diningAvailableShifts: {names!r}") from exc

    return AvailabilitySettings(
        omakase_available_days=(
            defaults.omakase_available_days
            if omakase is None
            else _weekday_set(_list_field(payload, "omakaseAvailableDays"), "omakaseAvailableDays")
        ),
        dining_available_days=(
            defaults.dining_available_days
            if dining is None
            else _weekday_set(_list_field(payload, "diningAvailableDays"), "diningAvailableDays")
        ),
        dining_available_shifts=shifts,
    )


def availability_settings_to_dict(availability: AvailabilitySettings) -> dict[str, Any]:
    return {
        "omakaseAvailableDays": sorted(availability.omakase_available_days),
        "diningAvailableDays": sorted(availability.dining_available_days),
        "diningAvailableShifts": {
            str(day): sorted(shift.value for shift in shifts)
            for day, shifts in sorted(availability.dining_available_shifts.items())
        },
    }
