import pytest

from config import (
    DevelopmentSettings,
    ProductionSettings,
    Settings,
    TestingSettings,
    get_settings_for_environment,
)


class TestSettings:
    """Test settings presets and environment overrides."""

    @pytest.mark.parametrize("env, settings_class", [
        ("development", DevelopmentSettings),
        ("Production", ProductionSettings),
        ("testing", TestingSettings),
        ("staging", Settings),
    ])
    def test_settings_for_environment(self, env, settings_class):
        assert type(get_settings_for_environment(env)) is settings_class

    def test_testing_settings_disable_rate_limit(self):
        settings = TestingSettings()

        assert settings.enable_rate_limit is False
        assert settings.log_level == "WARNING"

    def test_testing_settings_is_not_collected(self):
        assert TestingSettings.__test__ is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PAYMENTS_RATE_LIMIT_PER_MINUTE", "7")
        monkeypatch.setenv("PAYMENTS_SORT_OUTPUT", "false")

        settings = Settings()

        assert settings.rate_limit_per_minute == 7
        assert settings.sort_output is False
