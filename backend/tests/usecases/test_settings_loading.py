import pytest
from fakes import FakeSettingsRepo
from tablebook.config import Settings
from tablebook.domain.calendar import ClosureSettings, DEFAULT_AVAILABILITY_SETTINGS
from tablebook.domain.capacity import FlatCapacity, TimeIntervalCapacity
from tablebook.domain.confirmation import AutoConfirmation
from tablebook.domain.errors import SettingsRejectedError
from tablebook.domain.resolution import SettingSource
from tablebook.usecases import settings as uc


@pytest.mark.asyncio
async def test_defaults_when_nothing_configured() -> None:
    repo = FakeSettingsRepo()
    snapshot = await uc.load_policy_snapshot(repo, config=Settings())
    assert snapshot.closures == ClosureSettings()
    assert snapshot.availability == DEFAULT_AVAILABILITY_SETTINGS
    assert snapshot.capacity_model == FlatCapacity(12, 24)
    assert snapshot.auto_confirmation == AutoConfirmation(omakase=False, dining=True)


@pytest.mark.asyncio
async def test_environment_tier_fills_missing_half_from_default() -> None:
    repo = FakeSettingsRepo()
    resolved = await uc.load_capacity_model(repo, config=Settings(omakase_seats=8))
    assert resolved.source == SettingSource.ENVIRONMENT
    assert resolved.value == FlatCapacity(omakase_seats=8, dining_seats=24)

    auto = await uc.load_auto_confirmation(repo, config=Settings(auto_confirm_omakase=True))
    assert auto.source == SettingSource.ENVIRONMENT
    assert auto.value == AutoConfirmation(omakase=True, dining=True)


@pytest.mark.asyncio
async def test_stored_value_beats_environment() -> None:
    repo = FakeSettingsRepo({uc.CAPACITY_KEY: {"type": "flat", "omakaseSeats": 6, "diningSeats": 30}})
    resolved = await uc.load_capacity_model(repo, config=Settings(omakase_seats=8, dining_seats=10))
    assert resolved.source == SettingSource.DATABASE
    assert resolved.value == FlatCapacity(6, 30)


@pytest.mark.asyncio
async def test_stored_closures_are_parsed() -> None:
    repo = FakeSettingsRepo({uc.CLOSURES_KEY: {"dates": ["2026-12-25"], "closedWeekdays": [1]}})
    resolved = await uc.load_closure_settings(repo)
    assert resolved.source == SettingSource.DATABASE
    assert resolved.value.explicit_dates == frozenset({"2026-12-25"})


@pytest.mark.asyncio
async def test_invalid_capacity_rejected_without_write() -> None:
    repo = FakeSettingsRepo()
    model = TimeIntervalCapacity()
    with pytest.raises(SettingsRejectedError) as excinfo:
        await uc.save_capacity_model(repo, model)
    assert len(excinfo.value.violations) == 2
    assert repo.upserts == []


@pytest.mark.asyncio
async def test_valid_closures_saved_in_wire_format() -> None:
    repo = FakeSettingsRepo()
    closures = ClosureSettings(explicit_dates=frozenset({"2026-12-25", "2026-12-24"}))
    await uc.save_closure_settings(repo, closures)
    assert repo.stored[uc.CLOSURES_KEY]["dates"] == ["2026-12-24", "2026-12-25"]


@pytest.mark.asyncio
async def test_invalid_closures_rejected() -> None:
    repo = FakeSettingsRepo()
    with pytest.raises(SettingsRejectedError):
        await uc.save_closure_settings(repo, ClosureSettings(closed_weekdays=frozenset({9})))
    assert uc.CLOSURES_KEY not in repo.stored


@pytest.mark.asyncio
async def test_auto_confirmation_saved() -> None:
    repo = FakeSettingsRepo()
    await uc.save_auto_confirmation(repo, AutoConfirmation(omakase=True, dining=False))
    assert repo.stored[uc.AUTO_CONFIRMATION_KEY] == {"autoConfirmOmakase": True, "autoConfirmDining": False}
