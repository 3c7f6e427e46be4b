"""Tests for configuration loading and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from tickerbase.core.config import (
    IngestionConfig,
    LoggingConfig,
    ProviderConfig,
    SchedulerConfig,
    TickerbaseConfig,
    _auto_cast,
    _is_string_field,
    _merge_env_vars,
    load_config,
)
from tickerbase.core.exceptions import ConfigError
from tickerbase.core.models import PacingStrategy


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate from the developer's environment and working directory."""
    import os

    for key in list(os.environ):
        if key.startswith("TICKERBASE_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


class TestDefaults:
    def test_reference_pacing_values(self):
        cfg = IngestionConfig()
        assert cfg.symbol_delay == 1.0
        assert cfg.registration_batch_size == 10
        assert cfg.registration_pause == 1.0
        assert cfg.history_batch_size == 5
        assert cfg.history_batch_pause == 3.0
        assert cfg.daily_batch_size == 3
        assert cfg.daily_batch_pause == 2.0
        assert cfg.default_range == "5y"
        assert cfg.pacing == PacingStrategy.FIXED
        assert cfg.fail_on_unpersisted is True

    def test_scheduler_defaults(self):
        cfg = SchedulerConfig()
        assert cfg.market_close_cron == "30 21 * * 1-5"
        assert cfg.health_check_cron == "0 * * * *"
        assert cfg.timezone == "UTC"

    def test_root_defaults(self):
        cfg = TickerbaseConfig()
        assert cfg.storage.sqlite_path == "./data/tickerbase.db"
        assert cfg.api.port == 3000
        assert cfg.api.api_key is None

    def test_base_url_trailing_slash_stripped(self):
        cfg = ProviderConfig(base_url="https://example.test/")
        assert cfg.base_url == "https://example.test"


class TestValidation:
    def test_negative_delay_rejected(self):
        with pytest.raises(ValidationError):
            IngestionConfig(symbol_delay=-1)

    def test_zero_batch_size_rejected(self):
        with pytest.raises(ValidationError):
            IngestionConfig(history_batch_size=0)

    def test_unknown_range_rejected(self):
        with pytest.raises(ValidationError, match="default_range"):
            IngestionConfig(default_range="3w")

    def test_bad_cron_rejected(self):
        with pytest.raises(ValidationError):
            SchedulerConfig(market_close_cron="not a cron")

    def test_out_of_range_weekday_rejected(self):
        with pytest.raises(ValidationError):
            SchedulerConfig(market_close_cron="30 21 * * 1-8")

    def test_named_weekdays_accepted(self):
        assert SchedulerConfig(market_close_cron="30 21 * * mon-fri").market_close_cron == "30 21 * * mon-fri"

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValidationError):
            SchedulerConfig(timezone="Mars/Olympus_Mons")

    def test_log_level_uppercased(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="chatty")

    def test_config_is_frozen(self):
        cfg = IngestionConfig()
        with pytest.raises(ValidationError):
            cfg.symbol_delay = 5.0


class TestLoadConfig:
    def test_no_file_gives_defaults(self):
        cfg = load_config()
        assert cfg == TickerbaseConfig()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "custom.yml"
        path.write_text(
            "storage:\n  sqlite_path: /tmp/x.db\n"
            "ingestion:\n  symbol_delay: 2.5\n  default_range: 1y\n"
        )
        cfg = load_config(str(path))
        assert cfg.storage.sqlite_path == "/tmp/x.db"
        assert cfg.ingestion.symbol_delay == 2.5
        assert cfg.ingestion.default_range == "1y"

    def test_default_file_in_cwd(self, tmp_path):
        (tmp_path / "tickerbase.yml").write_text("api:\n  port: 8080\n")
        assert load_config().api.port == 8080

    def test_config_env_var_points_at_file(self, tmp_path, monkeypatch):
        path = tmp_path / "elsewhere.yml"
        path.write_text("api:\n  port: 9090\n")
        monkeypatch.setenv("TICKERBASE_CONFIG", str(path))
        assert load_config().api.port == 9090

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yml"
        path.write_text("ingestion:\n  symbol_delay: 2.5\n")
        monkeypatch.setenv("TICKERBASE_INGESTION__SYMBOL_DELAY", "0")
        monkeypatch.setenv("TICKERBASE_SCHEDULER__ENABLED", "false")
        cfg = load_config(str(path))
        assert cfg.ingestion.symbol_delay == 0
        assert cfg.scheduler.enabled is False

    def test_missing_file_raises(self):
        with pytest.raises(ConfigError, match="not found"):
            load_config("/nonexistent/tickerbase.yml")

    def test_non_mapping_yaml_raises(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(str(path))

    def test_invalid_value_wrapped_in_config_error(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("ingestion:\n  history_batch_size: 0\n")
        with pytest.raises(ConfigError):
            load_config(str(path))


class TestEnvHelpers:
    @pytest.mark.parametrize(
        "raw, expected",
        [("true", True), ("FALSE", False), ("42", 42), ("1.5", 1.5), ("UTC", "UTC")],
    )
    def test_auto_cast(self, raw, expected):
        assert _auto_cast(raw) == expected

    def test_merge_nested(self, monkeypatch):
        monkeypatch.setenv("TICKERBASE_API__PORT", "4000")
        merged = _merge_env_vars({"api": {"host": "127.0.0.1"}}, "TICKERBASE_")
        assert merged == {"api": {"host": "127.0.0.1", "port": 4000}}

    def test_numeric_api_key_stays_string(self, monkeypatch):
        monkeypatch.setenv("TICKERBASE_API__API_KEY", "12345")
        monkeypatch.setenv("TICKERBASE_API__PORT", "8081")
        cfg = load_config()
        assert cfg.api.api_key == "12345"
        assert cfg.api.port == 8081

    def test_numeric_string_fields_not_cast(self, monkeypatch):
        monkeypatch.setenv("TICKERBASE_STORAGE__SQLITE_PATH", "2024")
        monkeypatch.setenv("TICKERBASE_INGESTION__SYMBOL_DELAY", "2")
        merged = _merge_env_vars({}, "TICKERBASE_")
        assert merged == {"storage": {"sqlite_path": "2024"}, "ingestion": {"symbol_delay": 2}}

    @pytest.mark.parametrize(
        "parts, expected",
        [
            (["api", "api_key"], True),
            (["api", "host"], True),
            (["api", "port"], False),
            (["scheduler", "enabled"], False),
            (["api"], False),
            (["nope", "x"], False),
        ],
    )
    def test_is_string_field(self, parts, expected):
        assert _is_string_field(parts) is expected

    def test_config_pointer_is_not_a_setting(self, monkeypatch):
        monkeypatch.setenv("TICKERBASE_CONFIG", "/some/file.yml")
        assert _merge_env_vars({}, "TICKERBASE_") == {}
