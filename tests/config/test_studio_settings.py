"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from studio.config import settings as settings_module
from studio.config.settings import Settings, get_system_timezone


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in (
        "STUDIO_TIMEZONE",
        "TZ",
        "CLASS_CAPACITY",
        "DISPLAY_START_HOUR",
        "DISPLAY_END_HOUR",
        "GENERATION_HORIZON_DAYS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setattr(settings_module, "LOCALTIME_PATH", tmp_path / "localtime")
    monkeypatch.setattr(settings_module, "TIMEZONE_FILE_PATH", tmp_path / "timezone")
    return monkeypatch


class TestSettings:
    def test_defaults(self, clean_env):
        settings = Settings(_env_file=None)

        assert settings.studio_timezone == "UTC"
        assert settings.class_capacity == 10
        assert (settings.display_start_hour, settings.display_end_hour) == (7, 20)
        assert settings.generation_horizon_days == 28
        assert settings.regeneration_horizon_days == 60

    def test_zone_falls_back_to_process_timezone(self, clean_env):
        clean_env.setenv("TZ", "America/Sao_Paulo")
        assert Settings(_env_file=None).studio_timezone == "America/Sao_Paulo"

    def test_zone_from_localtime_link(self, clean_env, tmp_path):
        zone_file = tmp_path / "zoneinfo" / "America" / "Sao_Paulo"
        zone_file.parent.mkdir(parents=True)
        zone_file.write_bytes(b"TZif")
        (tmp_path / "localtime").symlink_to(zone_file)

        assert get_system_timezone() == "America/Sao_Paulo"
        assert Settings(_env_file=None).studio_timezone == "America/Sao_Paulo"

    def test_zone_from_timezone_file(self, clean_env, tmp_path):
        (tmp_path / "timezone").write_text("Europe/Lisbon\n")
        assert get_system_timezone() == "Europe/Lisbon"

    def test_tz_variable_wins_over_host_files(self, clean_env, tmp_path):
        (tmp_path / "timezone").write_text("Europe/Lisbon\n")
        clean_env.setenv("TZ", ":America/Sao_Paulo")
        assert get_system_timezone() == "America/Sao_Paulo"

    def test_explicit_zone_wins(self, clean_env):
        clean_env.setenv("TZ", "America/Sao_Paulo")
        clean_env.setenv("STUDIO_TIMEZONE", "Europe/Lisbon")
        assert Settings(_env_file=None).studio_timezone == "Europe/Lisbon"

    def test_non_positive_capacity_defaults(self, clean_env):
        clean_env.setenv("CLASS_CAPACITY", "0")
        assert Settings(_env_file=None).class_capacity == 10

    def test_inverted_hour_range_defaults(self, clean_env):
        clean_env.setenv("DISPLAY_START_HOUR", "21")
        clean_env.setenv("DISPLAY_END_HOUR", "6")
        settings = Settings(_env_file=None)
        assert (settings.display_start_hour, settings.display_end_hour) == (7, 20)

    def test_non_positive_horizon_rejected(self, clean_env):
        clean_env.setenv("GENERATION_HORIZON_DAYS", "0")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_invalid_log_level_defaults_to_info(self, clean_env):
        clean_env.setenv("LOG_LEVEL", "chatty")
        assert Settings(_env_file=None).log_level == "INFO"
