import pytest

from gameday_briefing.core import config
from gameday_briefing.core.errors import ConfigError


def test_defaults_validate() -> None:
    config.validate_startup_config()


def test_enhancer_without_key_fails_fast(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "ENHANCER_ENABLED", True)
    monkeypatch.setattr(config, "ENHANCER_API_KEY", "")
    with pytest.raises(ConfigError, match="ENHANCER_API_KEY"):
        config.validate_startup_config()


def test_non_positive_limits_are_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "RATE_LIMIT_RESERVOIR", 0)
    with pytest.raises(ConfigError, match="RATE_LIMIT_RESERVOIR"):
        config.validate_startup_config()


def test_excerpt_band_must_be_ordered(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "EXCERPT_MIN_CHARS", 900)
    with pytest.raises(ConfigError):
        config.validate_startup_config()


def test_env_helpers_fall_back_on_bad_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GB_TEST_INT", "ten")
    monkeypatch.setenv("GB_TEST_FLOAT", "")
    monkeypatch.setenv("GB_TEST_BOOL", "yes")
    monkeypatch.setenv("GB_TEST_CSV", "BUF, MIA,,KC ")
    assert config._env_int("GB_TEST_INT", 3) == 3
    assert config._env_float("GB_TEST_FLOAT", 1.5) == 1.5
    assert config._env_bool("GB_TEST_BOOL", False) is True
    assert config._parse_csv_env("GB_TEST_CSV") == ["BUF", "MIA", "KC"]
