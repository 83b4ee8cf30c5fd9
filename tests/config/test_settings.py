"""Tests for settings loading, validation, and the kernel bridges."""

from dataclasses import replace

import pytest
import yaml

from supply_config import (
    CONFIG_PATH_ENV,
    DATABASE_URL_ENV,
    DEFAULT_CONFIG_PATH,
    get_active_settings,
)
from supply_config.bridges import (
    build_orchestrator,
    dashboard_limits_from_settings,
    engine_kwargs_from_settings,
    listing_options_from_settings,
    stock_policy_from_settings,
)
from supply_config.loader import compute_checksum, load_yaml_file, parse_settings
from supply_config.validator import validate_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)


@pytest.fixture
def write_config(tmp_path):
    def _write(data, name="ledger.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


class TestDefaults:
    def test_shipped_defaults(self):
        settings = get_active_settings()
        assert settings.config_id == "default"
        assert settings.stock.low_stock_threshold == 5
        assert settings.stock.expiring_window_days == 30
        assert settings.dashboard.trend_months == 6
        assert settings.data_log.max_page_size == 200
        assert settings.inventory.total_count_includes_batch_facets is False
        assert settings.database.sqlite_timeout == 30.0

    def test_checksum_matches_file(self):
        settings = get_active_settings()
        assert settings.checksum == compute_checksum(load_yaml_file(DEFAULT_CONFIG_PATH))

    def test_trace_logged(self, captured_logs):
        get_active_settings()
        traces = [r for r in captured_logs() if r["message"] == "SUPPLY_CONFIG_TRACE"]
        assert traces[0]["config_id"] == "default"
        assert traces[0]["source"].endswith("ledger.yaml")


class TestOverrides:
    def test_partial_file_keeps_other_defaults(self, write_config):
        path = write_config({"config_id": "ward-7", "stock": {"low_stock_threshold": 12}})
        settings = get_active_settings(path)
        assert settings.config_id == "ward-7"
        assert settings.stock.low_stock_threshold == 12
        assert settings.stock.expiring_window_days == 30

    def test_path_from_environment(self, write_config, monkeypatch):
        monkeypatch.setenv(CONFIG_PATH_ENV, str(write_config({"config_id": "from-env"})))
        assert get_active_settings().config_id == "from-env"

    def test_database_url_from_environment(self, monkeypatch, captured_logs):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://ledger@db/ledger")
        settings = get_active_settings()
        assert settings.database.url == "postgresql://ledger@db/ledger"
        traces = [r for r in captured_logs() if r["message"] == "SUPPLY_CONFIG_TRACE"]
        assert traces[0]["database_url_overridden"] is True

    def test_int_accepted_for_float(self, write_config):
        settings = get_active_settings(write_config({"database": {"sqlite_timeout": 5}}))
        assert settings.database.sqlite_timeout == 5.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_settings(tmp_path / "absent.yaml")


class TestRejection:
    @pytest.mark.parametrize(
        "data",
        [
            {"stock": {"low_stock_treshold": 3}},
            {"reporting": {}},
            {"stock": {"low_stock_threshold": "5"}},
            {"inventory": {"total_count_includes_batch_facets": 1}},
            {"dashboard": {"trend_months": True}},
            {"stock": [1, 2]},
            {"version": "2"},
        ],
    )
    def test_parse_errors(self, data):
        with pytest.raises(ValueError):
            parse_settings(data)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            get_active_settings(path)

    def test_validation_errors_raised(self, write_config):
        path = write_config({"data_log": {"default_page_size": 500, "max_page_size": 200}})
        with pytest.raises(ValueError, match="default_page_size"):
            get_active_settings(path)

    def test_validator_collects_every_error(self):
        settings = parse_settings(
            {
                "stock": {"low_stock_threshold": 0},
                "dashboard": {"alert_limit": 0},
                "logging": {"level": "LOUD"},
            }
        )
        result = validate_settings(settings)
        assert not result.is_valid
        assert len(result.errors) == 3

    def test_warnings_do_not_fail(self, write_config, captured_logs):
        path = write_config({"database": {"url": "sqlite:///:memory:"}, "logging": {"level": "debug"}})
        settings = get_active_settings(path)
        assert settings.logging.level == "debug"
        warnings = [r for r in captured_logs() if r["message"] == "config_warning"]
        assert len(warnings) == 2


class TestBridges:
    def test_policy_and_limits(self):
        settings = parse_settings(
            {"stock": {"low_stock_threshold": 8, "expiring_window_days": 14},
             "dashboard": {"alert_limit": 3},
             "inventory": {"total_count_includes_batch_facets": True}}
        )
        assert stock_policy_from_settings(settings).low_stock_threshold == 8
        assert stock_policy_from_settings(settings).expiring_window_days == 14
        assert dashboard_limits_from_settings(settings).alert_limit == 3
        assert listing_options_from_settings(settings).total_count_includes_batch_facets

    def test_engine_kwargs(self):
        settings = get_active_settings()
        settings = replace(settings, database=replace(settings.database, pool_size=4))
        kwargs = engine_kwargs_from_settings(settings)
        assert kwargs["pool_size"] == 4
        assert kwargs["sqlite_timeout"] == 30.0

    def test_build_orchestrator(self, session, deterministic_clock):
        settings = parse_settings({"stock": {"low_stock_threshold": 9}, "data_log": {"default_page_size": 20}})
        ledger = build_orchestrator(session, settings, clock=deterministic_clock)
        assert ledger.policy.low_stock_threshold == 9
        assert ledger.inventory.policy.low_stock_threshold == 9
        assert ledger.default_page_size == 20
        assert ledger.data_log.max_page_size == 200
