"""Tests for configuration loading."""

from pathlib import Path

import pytest

from perpledger.config import (
    CONFIG_ENV_VAR,
    ConfigError,
    LedgerConfig,
    get_config_path,
    load_config,
)
from perpledger.feeds.base import DEFAULT_PRICES
from perpledger.ledger.accounts import STARTING_BALANCE


class TestLoadConfig:
    """
    **Feature: perpledger, Property 25: Configuration Loading**
    """

    def test_missing_file_gives_defaults(self, tmp_path: Path):
        config = load_config(tmp_path / "missing.toml")

        assert config == LedgerConfig()
        assert config.ledger.starting_balance == STARTING_BALANCE
        assert config.ledger.history_limit == 100
        assert config.ledger.leaderboard_size == 50
        assert config.logging.level == "WARNING"
        assert config.prices == DEFAULT_PRICES

    def test_values_override_defaults(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[ledger]\n'
            'starting_balance = 2500.0\n'
            f'db_path = "{tmp_path / "ledger.db"}"\n'
            '\n'
            '[logging]\n'
            'level = "DEBUG"\n'
            '\n'
            '[prices]\n'
            'btcusdt = 42000.0\n'
            'PEPEUSDT = 0.00001\n'
        )

        config = load_config(path)

        assert config.ledger.starting_balance == 2500.0
        assert config.db_path == tmp_path / "ledger.db"
        assert config.logging.level == "DEBUG"
        assert config.prices["BTCUSDT"] == 42000.0
        assert config.prices["PEPEUSDT"] == 0.00001
        assert config.prices["ETHUSDT"] == DEFAULT_PRICES["ETHUSDT"]

    def test_invalid_toml(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        path.write_text("[ledger\nstarting_balance = ")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_invalid_value(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        path.write_text("[ledger]\nstarting_balance = -5\n")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_prices_must_be_a_table(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        path.write_text("prices = 5\n")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_non_positive_price_rejected(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        path.write_text("[prices]\nBTCUSDT = -1\n")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_env_var_overrides_path(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "custom.toml"))

        assert get_config_path() == tmp_path / "custom.toml"

    def test_default_path(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)

        assert get_config_path().name == "config.toml"
        assert get_config_path().parent.name == "perpledger"
