from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import Settings
from ..domain.calendar import (
    DEFAULT_AVAILABILITY_SETTINGS,
    DEFAULT_CLOSURE_SETTINGS,
    AvailabilitySettings,
    ClosureSettings,
    availability_settings_from_dict,
    availability_settings_to_dict,
    closure_settings_from_dict,
    closure_settings_to_dict,
    validate_availability_settings,
    validate_closure_settings,
)
from ..domain.capacity import (
    DEFAULT_CAPACITY_MODEL,
    FLAT_SEAT_LIMIT,
    CapacityModel,
    FlatCapacity,
    capacity_model_from_dict,
    capacity_model_to_dict,
    validate_capacity_model,
)
from ..domain.confirmation import (
    DEFAULT_AUTO_CONFIRMATION,
    AutoConfirmation,
    auto_confirmation_from_dict,
    auto_confirmation_to_dict,
)
from ..domain.errors import SettingsRejectedError
from ..domain.repositories import SettingsRepository
from ..domain.resolution import Resolved, SettingSource, resolve_setting

logger = logging.getLogger(__name__)

CLOSURES_KEY = "closed_dates"
AVAILABILITY_KEY = "availability_settings"
CAPACITY_KEY = "seat_capacity"
AUTO_CONFIRMATION_KEY = "auto_confirmation"


@dataclass(frozen=True)
class PolicySnapshot:
    """Settings read once per request; the engine never sees them change mid-operation."""

    closures: ClosureSettings
    availability: AvailabilitySettings
    capacity_model: CapacityModel
    auto_confirmation: AutoConfirmation


def _log_fallback(name: str, resolved: Resolved[object]) -> None:
    if resolved.source != SettingSource.DATABASE:
        logger.info("no stored %s, using %s value", name, resolved.source)


def _environment_capacity(config: Settings) -> Optional[CapacityModel]:
    if config.omakase_seats is None and config.dining_seats is None:
        return None
    default = FlatCapacity()
    return FlatCapacity(
        omakase_seats=config.omakase_seats if config.omakase_seats is not None else default.omakase_seats,
        dining_seats=config.dining_seats if config.dining_seats is not None else default.dining_seats,
    )


def _environment_auto_confirmation(config: Settings) -> Optional[AutoConfirmation]:
    if config.auto_confirm_omakase is None and config.auto_confirm_dining is None:
        return None
    return AutoConfirmation(
        omakase=(
            config.auto_confirm_omakase
            if config.auto_confirm_omakase is not None
            else DEFAULT_AUTO_CONFIRMATION.omakase
        ),
        dining=(
            config.auto_confirm_dining if config.auto_confirm_dining is not None else DEFAULT_AUTO_CONFIRMATION.dining
        ),
    )


async def load_closure_settings(repo: SettingsRepository) -> Resolved[ClosureSettings]:
    stored = await repo.get(CLOSURES_KEY)
    resolved = resolve_setting(
        closure_settings_from_dict(stored) if stored is not None else None,
        None,
        DEFAULT_CLOSURE_SETTINGS,
    )
    _log_fallback("closure settings", resolved)
    return resolved


async def load_availability_settings(repo: SettingsRepository) -> Resolved[AvailabilitySettings]:
    stored = await repo.get(AVAILABILITY_KEY)
    resolved = resolve_setting(
        availability_settings_from_dict(stored) if stored is not None else None,
        None,
        DEFAULT_AVAILABILITY_SETTINGS,
    )
    _log_fallback("availability settings", resolved)
    return resolved


async def load_capacity_model(repo: SettingsRepository, *, config: Settings) -> Resolved[CapacityModel]:
    stored = await repo.get(CAPACITY_KEY)
    resolved = resolve_setting(
        capacity_model_from_dict(stored) if stored is not None else None,
        _environment_capacity(config),
        DEFAULT_CAPACITY_MODEL,
    )
    _log_fallback("seat capacity", resolved)
    return resolved


async def load_auto_confirmation(repo: SettingsRepository, *, config: Settings) -> Resolved[AutoConfirmation]:
    stored = await repo.get(AUTO_CONFIRMATION_KEY)
    resolved = resolve_setting(
        auto_confirmation_from_dict(stored) if stored is not None else None,
        _environment_auto_confirmation(config),
        DEFAULT_AUTO_CONFIRMATION,
    )
    _log_fallback("auto-confirmation settings", resolved)
    return resolved


async def load_policy_snapshot(repo: SettingsRepository, *, config: Settings) -> PolicySnapshot:
    return PolicySnapshot(
        closures=(await load_closure_settings(repo)).value,
        availability=(await load_availability_settings(repo)).value,
        capacity_model=(await load_capacity_model(repo, config=config)).value,
        auto_confirmation=(await load_auto_confirmation(repo, config=config)).value,
    )


async def save_closure_settings(repo: SettingsRepository, closures: ClosureSettings) -> ClosureSettings:
    violations = validate_closure_settings(closures)
    if violations:
        raise SettingsRejectedError(violations)
    await repo.upsert(CLOSURES_KEY, closure_settings_to_dict(closures))
    return closures


async def save_availability_settings(
    repo: SettingsRepository,
    availability: AvailabilitySettings,
) -> AvailabilitySettings:
    violations = validate_availability_settings(availability)
    if violations:
        raise SettingsRejectedError(violations)
    await repo.upsert(AVAILABILITY_KEY, availability_settings_to_dict(availability))
    return availability


async def save_capacity_model(repo: SettingsRepository, model: CapacityModel) -> CapacityModel:
    violations = validate_capacity_model(model, flat_seat_limit=FLAT_SEAT_LIMIT)
    if violations:
        raise SettingsRejectedError(violations)
    await repo.upsert(CAPACITY_KEY, capacity_model_to_dict(model))
    return model


async def save_auto_confirmation(repo: SettingsRepository, settings: AutoConfirmation) -> AutoConfirmation:
    await repo.upsert(AUTO_CONFIRMATION_KEY, auto_confirmation_to_dict(settings))
    return settings
