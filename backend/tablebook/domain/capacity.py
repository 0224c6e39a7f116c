from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from enum import StrEnum
from itertools import combinations
from typing import Any, ClassVar, Mapping, Optional, Union

from ..models import ReservationType
from ..utils.time import MINUTES_PER_DAY, format_hhmm, to_minutes
from .errors import ValidationError

FLAT_SEAT_LIMIT = 200
LEGACY_FLAT_SEAT_LIMIT = 100
SLOT_CEILING_LIMIT = 999
INTERVAL_CAPACITY_LIMIT = 200
SLOT_DURATIONS = (15, 30)

OMAKASE_SLOT_TIMES = ("17:00", "19:00")
OMAKASE_SLOT_MINUTES = 120
DINING_SERVICE_PERIODS = (("12:00", "15:00"), ("17:00", "22:00"))


class CapacityKind(StrEnum):
    FLAT = "flat"
    SLOT_BASED = "slot_based"
    TIME_INTERVAL = "time_interval"


@dataclass(frozen=True)
class FlatCapacity:
    kind: ClassVar[CapacityKind] = CapacityKind.FLAT

    omakase_seats: int = 12
    dining_seats: int = 24

    def seats_for(self, reservation_type: ReservationType) -> int:
        return self.omakase_seats if reservation_type == ReservationType.OMAKASE else self.dining_seats


@dataclass(frozen=True)
class TimeSlot:
    time: str
    max_covers: int
    max_parties: int
    enabled: bool = True


@dataclass(frozen=True)
class SlotGridCapacity:
    kind: ClassVar[CapacityKind] = CapacityKind.SLOT_BASED

    slot_duration_minutes: int
    omakase: tuple[TimeSlot, ...] = ()
    dining: tuple[TimeSlot, ...] = ()

    def slots_for(self, reservation_type: ReservationType) -> tuple[TimeSlot, ...]:
        return self.omakase if reservation_type == ReservationType.OMAKASE else self.dining


@dataclass(frozen=True)
class CapacityInterval:
    id: str
    start_time: str
    end_time: str
    capacity: int


@dataclass(frozen=True)
class TimeIntervalCapacity:
    kind: ClassVar[CapacityKind] = CapacityKind.TIME_INTERVAL

    omakase: tuple[CapacityInterval, ...] = ()
    dining: tuple[CapacityInterval, ...] = ()

    def intervals_for(self, reservation_type: ReservationType) -> tuple[CapacityInterval, ...]:
        return self.omakase if reservation_type == ReservationType.OMAKASE else self.dining


CapacityModel = Union[FlatCapacity, SlotGridCapacity, TimeIntervalCapacity]

DEFAULT_CAPACITY_MODEL: CapacityModel = FlatCapacity()


@dataclass(frozen=True)
class CapacityBucket:
    """
    The unit a query instant is admitted against: the whole day (flat), one slot,
    or one interval. Bookings share capacity only when they fall in the same bucket.
    """

    key: str
    capacity: int
    max_parties: Optional[int] = None


# -- grid generation ------------------------------------------------------------


def generate_slot_times(reservation_type: ReservationType, slot_duration_minutes: int) -> list[str]:
    if reservation_type == ReservationType.OMAKASE:
        return list(OMAKASE_SLOT_TIMES)
    if slot_duration_minutes <= 0:
        raise ValidationError("slot duration must be positive")
    times: list[str] = []
    for start, end in DINING_SERVICE_PERIODS:
        current, stop = to_minutes(start), to_minutes(end)
        while current < stop:
            times.append(format_hhmm(current))
            current += slot_duration_minutes
    return sorted(times)


def default_slot_grid(slot_duration_minutes: int = 30) -> SlotGridCapacity:
    return SlotGridCapacity(
        slot_duration_minutes=slot_duration_minutes,
        omakase=tuple(
            TimeSlot(time=t, max_covers=12, max_parties=3)
            for t in generate_slot_times(ReservationType.OMAKASE, slot_duration_minutes)
        ),
        dining=tuple(
            TimeSlot(time=t, max_covers=20, max_parties=5)
            for t in generate_slot_times(ReservationType.DINING, slot_duration_minutes)
        ),
    )


def slot_width_minutes(model: SlotGridCapacity, reservation_type: ReservationType) -> int:
    if reservation_type == ReservationType.OMAKASE:
        return OMAKASE_SLOT_MINUTES
    return model.slot_duration_minutes


# -- interval arithmetic ----------------------------------------------------------


def _span(start: str, end: str) -> tuple[int, int]:
    start_min, end_min = to_minutes(start), to_minutes(end)
    if end_min <= start_min:
        end_min += MINUTES_PER_DAY
    return start_min, end_min


def intervals_overlap(first_start: str, first_end: str, second_start: str, second_end: str) -> bool:
    """[start, end) overlap on a 24h clock; an end at or before its start runs past midnight."""
    s1, e1 = _span(first_start, first_end)
    s2, e2 = _span(second_start, second_end)
    # Compare against the second interval on the previous, same and next day.
    return any(s1 < e2 + shift and s2 + shift < e1 for shift in (-MINUTES_PER_DAY, 0, MINUTES_PER_DAY))


def interval_contains(interval: CapacityInterval, value: time | str) -> bool:
    start, end = _span(interval.start_time, interval.end_time)
    minutes = to_minutes(value)
    if minutes < start and end > MINUTES_PER_DAY:
        minutes += MINUTES_PER_DAY
    return start <= minutes < end


# -- capacity lookup ----------------------------------------------------------------


def bucket_for(model: CapacityModel, reservation_type: ReservationType, value: time | str) -> Optional[CapacityBucket]:
    """Resolve the bucket for a query instant, or None when no slot/interval covers it."""
    if isinstance(model, FlatCapacity):
        return CapacityBucket(key="day", capacity=max(0, model.seats_for(reservation_type)))

    if isinstance(model, SlotGridCapacity):
        minutes = to_minutes(value)
        width = slot_width_minutes(model, reservation_type)
        covering = [
            slot
            for slot in model.slots_for(reservation_type)
            if to_minutes(slot.time) <= minutes < to_minutes(slot.time) + width
        ]
        if not covering:
            return None
        enabled = [slot for slot in covering if slot.enabled]
        if not enabled:
            latest = max(covering, key=lambda s: to_minutes(s.time))
            return CapacityBucket(key=f"slot:{latest.time}", capacity=0, max_parties=0)
        slot = max(enabled, key=lambda s: to_minutes(s.time))
        return CapacityBucket(
            key=f"slot:{slot.time}",
            capacity=max(0, slot.max_covers),
            max_parties=max(0, slot.max_parties),
        )

    for interval in model.intervals_for(reservation_type):
        if interval_contains(interval, value):
            return CapacityBucket(key=f"interval:{interval.id}", capacity=max(0, interval.capacity))
    return None


def capacity_at(model: CapacityModel, reservation_type: ReservationType, value: time | str) -> int:
    """Seat ceiling that applies to a reservation of this type at this time of day."""
    bucket = bucket_for(model, reservation_type, value)
    return bucket.capacity if bucket is not None else 0


def bookable_start_times(model: CapacityModel, reservation_type: ReservationType) -> list[str]:
    """Start times worth offering as alternatives; empty for the flat model."""
    if isinstance(model, FlatCapacity):
        return []
    if isinstance(model, SlotGridCapacity):
        return [slot.time for slot in model.slots_for(reservation_type) if slot.enabled]
    return sorted(
        (i.start_time for i in model.intervals_for(reservation_type) if i.capacity > 0),
        key=to_minutes,
    )


# -- validation -----------------------------------------------------------------------


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _valid_time(value: str) -> bool:
    try:
        to_minutes(value)
    except ValidationError:
        return False
    return True


def _label(reservation_type: ReservationType) -> str:
    return reservation_type.value.capitalize()


def _validate_flat(model: FlatCapacity, seat_limit: int) -> list[str]:
    violations = []
    for name, seats in (("omakaseSeats", model.omakase_seats), ("diningSeats", model.dining_seats)):
        if not _is_count(seats) or not 0 <= seats <= seat_limit:
            violations.append(f"{name} must be between 0 and {seat_limit}, got {seats!r}")
    return violations


def _validate_slot_grid(model: SlotGridCapacity) -> list[str]:
    violations = []
    if model.slot_duration_minutes not in SLOT_DURATIONS:
        violations.append(f"slotDuration must be 15 or 30 minutes, got {model.slot_duration_minutes!r}")
        return violations

    for reservation_type in ReservationType:
        label = _label(reservation_type)
        grid = set(generate_slot_times(reservation_type, model.slot_duration_minutes))
        previous: Optional[int] = None
        seen: set[str] = set()
        for slot in model.slots_for(reservation_type):
            if not _valid_time(slot.time):
                violations.append(f"{label}: invalid slot time {slot.time!r}")
                continue
            if slot.time in seen:
                violations.append(f"{label}: duplicate slot time {slot.time}")
            seen.add(slot.time)
            minutes = to_minutes(slot.time)
            if previous is not None and minutes <= previous:
                violations.append(f"{label}: slot times must be strictly increasing at {slot.time}")
            previous = minutes
            if slot.time not in grid:
                violations.append(f"{label}: slot {slot.time} is not on the {model.slot_duration_minutes}-minute grid")
            for name, ceiling in (("covers", slot.max_covers), ("parties", slot.max_parties)):
                if not _is_count(ceiling) or not 0 <= ceiling <= SLOT_CEILING_LIMIT:
                    violations.append(
                        f"{label}: slot {slot.time} {name} must be between 0 and {SLOT_CEILING_LIMIT}, got {ceiling!r}"
                    )
    return violations


def _validate_intervals(model: TimeIntervalCapacity) -> list[str]:
    violations = []
    for reservation_type in ReservationType:
        label = _label(reservation_type)
        intervals = model.intervals_for(reservation_type)
        if not intervals:
            violations.append(f"{label}: At least one time interval is required")
            continue

        ids = [interval.id for interval in intervals]
        if len(set(ids)) != len(ids):
            violations.append(f"{label}: interval ids must be unique")

        well_formed = []
        for interval in intervals:
            if not _valid_time(interval.start_time) or not _valid_time(interval.end_time):
                violations.append(
                    f"{label}: interval {interval.start_time!r}-{interval.end_time!r} must use HH:MM times"
                )
                continue
            if not _is_count(interval.capacity) or not 0 <= interval.capacity <= INTERVAL_CAPACITY_LIMIT:
                violations.append(
                    f"{label}: Capacity must be between 0 and {INTERVAL_CAPACITY_LIMIT}, got {interval.capacity!r}"
                )
            if to_minutes(interval.start_time) == to_minutes(interval.end_time):
                violations.append(
                    f"{label}: Start and end times cannot be the same ({interval.start_time})"
                )
                continue
            well_formed.append(interval)

        for first, second in combinations(well_formed, 2):
            if intervals_overlap(first.start_time, first.end_time, second.start_time, second.end_time):
                violations.append(
                    f"{label}: Time intervals overlap: {first.start_time}-{first.end_time} "
                    f"and {second.start_time}-{second.end_time}"
                )
    return violations


def validate_capacity_model(model: CapacityModel, *, flat_seat_limit: int = FLAT_SEAT_LIMIT) -> list[str]:
    """Return every violation found; an empty list means the model is valid."""
    if isinstance(model, FlatCapacity):
        return _validate_flat(model, flat_seat_limit)
    if isinstance(model, SlotGridCapacity):
        return _validate_slot_grid(model)
    return _validate_intervals(model)


# -- wire format ------------------------------------------------------------------------


def _require_int(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    if not _is_count(value):
        raise ValidationError(f"{key} must be an integer")
    return value


def _slots_from_list(raw: Any, label: str) -> tuple[TimeSlot, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValidationError(f"{label} slots must be an array")
    slots = []
    for entry in raw:
        if not isinstance(entry, Mapping) or not isinstance(entry.get("time"), str):
            raise ValidationError(f"{label} slots must be objects with a 'time'")
        slots.append(
            TimeSlot(
                time=entry["time"],
                max_covers=_require_int(entry, "covers"),
                max_parties=_require_int(entry, "parties"),
                enabled=bool(entry.get("enabled", True)),
            )
        )
    return tuple(slots)


def _intervals_from_dict(raw: Any, label: str) -> tuple[CapacityInterval, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, Mapping) or not isinstance(raw.get("intervals", []), list):
        raise ValidationError(f"{label} must be an object with an 'intervals' array")
    intervals = []
    for entry in raw.get("intervals", []):
        if not isinstance(entry, Mapping):
            raise ValidationError(f"{label} intervals must be objects")
        start, end = entry.get("startTime"), entry.get("endTime")
        if not isinstance(start, str) or not isinstance(end, str):
            raise ValidationError("All intervals must have start and end times")
        intervals.append(
            CapacityInterval(
                id=str(entry.get("id") or f"{start}-{end}"),
                start_time=start,
                end_time=end,
                capacity=_require_int(entry, "capacity"),
            )
        )
    return tuple(intervals)


def capacity_model_from_dict(payload: Mapping[str, Any]) -> CapacityModel:
    kind = payload.get("type", CapacityKind.FLAT.value)
    if kind == CapacityKind.SLOT_BASED:
        return SlotGridCapacity(
            slot_duration_minutes=_require_int(payload, "slotDuration"),
            omakase=_slots_from_list(payload.get("omakase"), "omakase"),
            dining=_slots_from_list(payload.get("dining"), "dining"),
        )
    if kind == CapacityKind.TIME_INTERVAL:
        return TimeIntervalCapacity(
            omakase=_intervals_from_dict(payload.get("omakase"), "omakase"),
            dining=_intervals_from_dict(payload.get("dining"), "dining"),
        )
    if kind == CapacityKind.FLAT:
        # Older rows were saved as omakaseCapacity/diningCapacity.
        omakase_key = "omakaseSeats" if "omakaseSeats" in payload else "omakaseCapacity"
        dining_key = "diningSeats" if "diningSeats" in payload else "diningCapacity"
        return FlatCapacity(
            omakase_seats=_require_int(payload, omakase_key),
            dining_seats=_require_int(payload, dining_key),
        )
    raise ValidationError(f"unknown capacity model type: {kind!r}")


def capacity_model_to_dict(model: CapacityModel) -> dict[str, Any]:
    if isinstance(model, FlatCapacity):
        return {"type": model.kind.value, "omakaseSeats": model.omakase_seats, "diningSeats": model.dining_seats}
    if isinstance(model, SlotGridCapacity):
        return {
            "type": model.kind.value,
            "slotDuration": model.slot_duration_minutes,
            **{
                reservation_type.value: [
                    {"time": s.time, "covers": s.max_covers, "parties": s.max_parties, "enabled": s.enabled}
                    for s in model.slots_for(reservation_type)
                ]
                for reservation_type in ReservationType
            },
        }
    return {
        "type": model.kind.value,
        **{
            reservation_type.value: {
                "intervals": [
                    {"id": i.id, "startTime": i.start_time, "endTime": i.end_time, "capacity": i.capacity}
                    for i in model.intervals_for(reservation_type)
                ]
            }
            for reservation_type in ReservationType
        },
    }
