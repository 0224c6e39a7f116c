from tablebook.domain.resolution import SettingSource, resolve_setting


def test_stored_value_wins() -> None:
    resolved = resolve_setting(10, 20, 30)
    assert resolved.value == 10
    assert resolved.source == SettingSource.DATABASE


def test_environment_then_default() -> None:
    assert resolve_setting(None, 20, 30).source == SettingSource.ENVIRONMENT
    fallback = resolve_setting(None, None, 30)
    assert fallback.value == 30
    assert fallback.source == SettingSource.DEFAULT


def test_falsy_stored_value_is_still_configured() -> None:
    assert resolve_setting(0, 20, 30).value == 0
