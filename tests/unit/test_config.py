"""
Tests for environment-driven configuration.
"""

from __future__ import annotations

import logging

import pytest

from app.config import AppConfig, load_config, setup_logging, validate_config
from app.domain.exceptions import ConfigurationError

FLEET_VARS = (
    "FLEET_ENV",
    "FLEET_API_BASE_URL",
    "FLEET_API_KEY",
    "FLEET_APP_ID",
    "FLEET_RETRY_MAX",
    "FLEET_BATCH_MAX_WORKERS",
    "FLEET_DEBUG",
    "FLEET_RECURRENCE_MAX_OCCURRENCES",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in FLEET_VARS:
        monkeypatch.delenv(name, raising=False)


class TestAppConfig:
    def test_defaults(self):
        config = AppConfig()

        assert config.environment == "development"
        assert config.offline
        assert config.retry_max == 3
        assert config.batch_max_workers >= 1
        assert config.recurrence_max_iterations == 1000
        assert config.recurrence_max_occurrences == 365
        assert not config.DEBUG

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("FLEET_API_BASE_URL", "https://api.example.com")
        monkeypatch.setenv("FLEET_API_KEY", "secret")
        monkeypatch.setenv("FLEET_RETRY_MAX", "5")
        monkeypatch.setenv("FLEET_DEBUG", "yes")

        config = AppConfig()

        assert not config.offline
        assert config.retry_max == 5
        assert config.DEBUG
        assert "secret" not in repr(config)

    def test_invalid_integer(self, monkeypatch):
        monkeypatch.setenv("FLEET_RETRY_MAX", "three")
        with pytest.raises(ConfigurationError, match="FLEET_RETRY_MAX"):
            AppConfig()

    def test_production_requires_api(self, monkeypatch):
        monkeypatch.setenv("FLEET_ENV", "production")
        with pytest.raises(ConfigurationError, match="FLEET_API_BASE_URL"):
            AppConfig()


class TestValidateConfig:
    def test_offline_warning(self):
        warnings = validate_config(AppConfig())
        assert any("in-memory" in w for w in warnings)

    def test_missing_api_key_warning(self):
        warnings = validate_config(AppConfig(api_base_url="https://api.example.com"))
        assert any("FLEET_API_KEY" in w for w in warnings)

    def test_high_worker_count_warning(self):
        warnings = validate_config(AppConfig(api_base_url="https://x", api_key="k", batch_max_workers=12))
        assert any("Batch workers (12)" in w for w in warnings)

    def test_clean_config(self):
        assert validate_config(AppConfig(api_base_url="https://x", api_key="k", batch_max_workers=4)) == []

    def test_invalid_values_raise(self):
        config = AppConfig(retry_max=-1, batch_max_workers=0)
        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(config)
        assert len(exc_info.value.detail["errors"]) == 2


def test_load_config_logs_warnings(caplog):
    with caplog.at_level("WARNING", logger="config_loader"):
        config = load_config()
    assert config.offline
    assert any("in-memory" in r.getMessage() for r in caplog.records)


def test_setup_logging_is_idempotent(tmp_path):
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    log_file = tmp_path / "logs" / "fleet.log"
    try:
        setup_logging(debug=True, log_file=str(log_file))
        setup_logging(debug=False, log_file=str(log_file), level="warning")

        ours = [h for h in root.handlers if h.name in {"fleet_console", "fleet_file"}]
        assert sorted(h.name for h in ours) == ["fleet_console", "fleet_file"]
        assert all(h.level == logging.WARNING for h in ours)
        assert log_file.exists()
        assert logging.getLogger("urllib3").level == logging.WARNING
    finally:
        for handler in root.handlers:
            if handler not in before:
                handler.close()
        root.handlers = before
        root.setLevel(level)
