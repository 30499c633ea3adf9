"""Settings schema, YAML loading and environment overrides."""

from pathlib import Path

import pytest
import yaml

from relief_config import get_active_settings
from relief_config.loader import apply_env_overrides, load_settings, load_yaml_file
from relief_config.schema import DEFAULT_DATABASE_URL, LedgerSettings


class TestLedgerSettings:

    def test_defaults(self):
        settings = LedgerSettings.with_defaults()
        assert settings.database.url == DEFAULT_DATABASE_URL
        assert settings.ledger.max_update_attempts == 3
        assert settings.ledger.default_min_stock_level == 10
        assert settings.ledger.default_critical_level == 5
        assert settings.analytics.shelter_tight_low_count == 3
        assert settings.logging.level == "INFO"

    def test_from_dict_fills_missing_sections(self):
        settings = LedgerSettings.from_dict({"ledger": {"max_update_attempts": 5}})
        assert settings.ledger.max_update_attempts == 5
        assert settings.ledger.default_min_stock_level == 10
        assert settings.database.url == DEFAULT_DATABASE_URL

    def test_from_empty_document(self):
        assert LedgerSettings.from_dict(None) == LedgerSettings.with_defaults()

    def test_log_level_normalized(self):
        assert LedgerSettings.from_dict({"logging": {"level": "debug"}}).logging.level == "DEBUG"

    @pytest.mark.parametrize(
        "data",
        [
            {"ledger": {"max_update_attempts": 0}},
            {"ledger": {"default_min_stock_level": 5, "default_critical_level": 5}},
            {"database": {"url": ""}},
            {"database": {"pool_size": -1}},
            {"database": {"lock_timeout_seconds": 0}},
            {"logging": {"level": "LOUD"}},
            {"analytics": {"shelter_tight_low_count": 0}},
        ],
    )
    def test_invalid_values_rejected(self, data):
        with pytest.raises(ValueError):
            LedgerSettings.from_dict(data)

    def test_unknown_section_rejected(self):
        with pytest.raises(ValueError, match="Unknown settings sections"):
            LedgerSettings.from_dict({"metrics": {}})

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="Unknown keys in 'ledger'"):
            LedgerSettings.from_dict({"ledger": {"retries": 2}})

    def test_checksum_is_deterministic(self):
        a = LedgerSettings.from_dict({"ledger": {"max_update_attempts": 4}})
        b = LedgerSettings.from_dict({"ledger": {"max_update_attempts": 4}})
        assert a.checksum == b.checksum
        assert a.checksum != LedgerSettings.with_defaults().checksum


class TestLoader:

    def test_packaged_defaults_match_schema_defaults(self):
        assert load_settings(environ={}) == LedgerSettings.with_defaults()

    def test_load_yaml_file(self, tmp_path: Path):
        path = tmp_path / "ledger.yaml"
        path.write_text(yaml.safe_dump({"analytics": {"trend_days": 14}}))
        assert load_yaml_file(path) == {"analytics": {"trend_days": 14}}
        assert load_settings(path, environ={}).analytics.trend_days == 14

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path, environ={}) == LedgerSettings.with_defaults()

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml", environ={})

    def test_env_overrides(self):
        environ = {
            "RELIEF_DATABASE_URL": "postgresql://relief@db/relief",
            "RELIEF_LOG_LEVEL": "warning",
        }
        settings = load_settings(environ=environ)
        assert settings.database.url == "postgresql://relief@db/relief"
        assert settings.logging.level == "WARNING"

    def test_env_overrides_do_not_mutate_input(self):
        data = {"database": {"url": "sqlite:///a.db"}}
        merged = apply_env_overrides(data, {"RELIEF_DATABASE_URL": "sqlite:///b.db"})
        assert data["database"]["url"] == "sqlite:///a.db"
        assert merged["database"]["url"] == "sqlite:///b.db"

    def test_empty_env_value_ignored(self):
        merged = apply_env_overrides({}, {"RELIEF_LOG_LEVEL": ""})
        assert merged == {}


class TestGetActiveSettings:

    def test_emits_trace(self, captured_logs):
        settings = get_active_settings(environ={})
        traces = [r for r in captured_logs() if r["message"] == "RELIEF_CONFIG_TRACE"]
        assert traces
        assert traces[-1]["checksum"] == settings.checksum
        assert traces[-1]["source"] == "defaults"
