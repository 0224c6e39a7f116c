from datetime import date

import pytest
from tablebook.domain.calendar import (
    DEFAULT_AVAILABILITY_SETTINGS,
    AvailabilitySettings,
    ClosureSettings,
    Holiday,
    Shift,
    ShiftClosure,
    ShiftClosureKind,
    availability_settings_from_dict,
    availability_settings_to_dict,
    closure_settings_from_dict,
    closure_settings_to_dict,
    is_date_closed,
    is_shift_closed,
    is_type_available,
    shift_for_time,
    validate_availability_settings,
    validate_closure_settings,
)
from tablebook.domain.errors import ValidationError
from tablebook.models import ReservationType

SUNDAY = date(2026, 10, 18)
WEDNESDAY = date(2026, 10, 21)
THURSDAY = date(2026, 10, 22)


def test_explicit_date_closes_day() -> None:
    closures = ClosureSettings(explicit_dates=frozenset({"2026-12-25"}))
    assert is_date_closed(closures, "2026-12-25") is True
    assert is_date_closed(closures, "2026-12-26") is False


def test_closed_weekday_uses_sunday_zero() -> None:
    closures = ClosureSettings(closed_weekdays=frozenset({0}))
    assert is_date_closed(closures, SUNDAY) is True
    assert is_date_closed(closures, WEDNESDAY) is False


def test_holiday_closes_only_when_flagged() -> None:
    closures = ClosureSettings(
        holidays=(
            Holiday(date="2026-11-26", closed=True, name="Thanksgiving"),
            Holiday(date="2026-12-31", closed=False, name="New Year's Eve"),
        )
    )
    assert is_date_closed(closures, "2026-11-26") is True
    assert is_date_closed(closures, "2026-12-31") is False


def test_shift_closures() -> None:
    closures = ClosureSettings(
        shift_closures=(
            ShiftClosure(date="2026-10-21", kind=ShiftClosureKind.LUNCH_ONLY, reason="private event"),
            ShiftClosure(date="2026-10-22", kind=ShiftClosureKind.FULL_DAY),
        )
    )
    assert is_date_closed(closures, WEDNESDAY) is False
    assert is_shift_closed(closures, WEDNESDAY, Shift.LUNCH) is True
    assert is_shift_closed(closures, WEDNESDAY, Shift.DINNER) is False
    assert is_date_closed(closures, THURSDAY) is True
    assert is_shift_closed(closures, THURSDAY, Shift.DINNER) is True


def test_malformed_date_raises() -> None:
    with pytest.raises(ValidationError):
        is_date_closed(ClosureSettings(), "2026/10/21")


def test_shift_for_time_boundary() -> None:
    assert shift_for_time("14:59") == Shift.LUNCH
    assert shift_for_time("15:00") == Shift.DINNER


def test_omakase_only_on_configured_weekdays() -> None:
    assert is_type_available(DEFAULT_AVAILABILITY_SETTINGS, ReservationType.OMAKASE, THURSDAY) is True
    assert is_type_available(DEFAULT_AVAILABILITY_SETTINGS, ReservationType.OMAKASE, WEDNESDAY) is False


def test_dining_shift_gating() -> None:
    availability = AvailabilitySettings(
        dining_available_days=frozenset(range(7)),
        dining_available_shifts={3: frozenset({Shift.DINNER}), 0: frozenset()},
    )
    # Wednesday is gated to dinner only
    assert is_type_available(availability, ReservationType.DINING, WEDNESDAY, "12:30") is False
    assert is_type_available(availability, ReservationType.DINING, WEDNESDAY, "18:00") is True
    # without a time, shifts are not consulted
    assert is_type_available(availability, ReservationType.DINING, WEDNESDAY) is True
    # an empty list closes dining for that weekday
    assert is_type_available(availability, ReservationType.DINING, SUNDAY, "18:00") is False
    # Thursday has no key, so it is not gated
    assert is_type_available(availability, ReservationType.DINING, THURSDAY, "12:30") is True


def test_dining_unavailable_weekday() -> None:
    availability = AvailabilitySettings(dining_available_days=frozenset({1, 2}))
    assert is_type_available(availability, ReservationType.DINING, WEDNESDAY, "18:00") is False


def test_validate_closure_settings_reports_bad_values() -> None:
    closures = ClosureSettings(
        explicit_dates=frozenset({"2026-02-30"}),
        closed_weekdays=frozenset({7}),
    )
    violations = validate_closure_settings(closures)
    assert len(violations) == 2
    assert any("closedWeekdays" in v for v in violations)


def test_validate_availability_requires_dining_day() -> None:
    violations = validate_availability_settings(AvailabilitySettings(dining_available_days=frozenset()))
    assert "Dining must be available on at least one day" in violations


def test_closure_wire_format() -> None:
    payload = {
        "dates": ["2026-12-25", "2026-12-24"],
        "closedWeekdays": [1],
        "holidays": [{"date": "2026-11-26", "name": "Thanksgiving", "closed": True}],
        "shiftClosures": [{"date": "2026-10-21", "type": "dinner_only"}],
    }
    closures = closure_settings_from_dict(payload)
    assert closures.shift_closures[0].kind == ShiftClosureKind.DINNER_ONLY
    out = closure_settings_to_dict(closures)
    assert out["dates"] == ["2026-12-24", "2026-12-25"]
    assert closure_settings_from_dict(out) == closures


def test_closure_wire_format_rejects_unknown_shift_type() -> None:
    with pytest.raises(ValidationError):
        closure_settings_from_dict({"shiftClosures": [{"date": "2026-10-21", "type": "brunch_only"}]})


def test_availability_missing_keys_fall_back_to_defaults() -> None:
    availability = availability_settings_from_dict({"omakaseAvailableDays": [4, 5]})
    assert availability.omakase_available_days == frozenset({4, 5})
    assert availability.dining_available_days == DEFAULT_AVAILABILITY_SETTINGS.dining_available_days
    assert availability.dining_available_shifts == DEFAULT_AVAILABILITY_SETTINGS.dining_available_shifts


def test_availability_shift_keys_serialise_as_strings() -> None:
    availability = availability_settings_from_dict({"diningAvailableShifts": {"3": ["dinner"]}})
    assert availability.dining_available_shifts == {3: frozenset({Shift.DINNER})}
    assert availability_settings_to_dict(availability)["diningAvailableShifts"] == {"3": ["dinner"]}


def test_availability_rejects_non_array_days() -> None:
    with pytest.raises(ValidationError):
        availability_settings_from_dict({"diningAvailableDays": "weekdays"})
