"""
Tests for environment-based configuration
"""

import pytest
from pydantic import ValidationError

from token_ledger import config as config_module
from token_ledger.config import LedgerConfig, get_config, reload_config


class TestLedgerConfig:

    def test_defaults(self, monkeypatch):
        for name in ("STORAGE_BACKEND", "DATABASE_PATH", "LOG_LEVEL", "LOG_FORMAT",
                     "ENABLE_EVENT_LOG", "EVENT_LOG_TABLE"):
            monkeypatch.delenv(f"TOKEN_LEDGER_{name}", raising=False)

        config = LedgerConfig(_env_file=None)

        assert config.storage_backend == "memory"
        assert config.database_path == "token_ledger.db"
        assert config.log_level == "INFO"
        assert config.log_format == "json"
        assert config.enable_event_log is True
        assert config.event_log_table == "ledger_events"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("TOKEN_LEDGER_STORAGE_BACKEND", "SQLite")
        monkeypatch.setenv("TOKEN_LEDGER_DATABASE_PATH", "/tmp/tokens.db")
        monkeypatch.setenv("TOKEN_LEDGER_ENABLE_EVENT_LOG", "false")

        config = LedgerConfig(_env_file=None)

        assert config.storage_backend == "sqlite"
        assert config.database_path == "/tmp/tokens.db"
        assert config.enable_event_log is False

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            LedgerConfig(storage_backend="postgres", _env_file=None)

    def test_unknown_log_format_rejected(self):
        with pytest.raises(ValidationError):
            LedgerConfig(log_format="xml", _env_file=None)

    def test_reload_config(self, monkeypatch):
        original = get_config()
        try:
            monkeypatch.setenv("TOKEN_LEDGER_LOG_LEVEL", "DEBUG")
            reloaded = reload_config()
            assert reloaded.log_level == "DEBUG"
            assert get_config() is reloaded
        finally:
            config_module.config = original
