"""Configuration loading for PerpLedger.

Settings live in a TOML file, by default ``~/.config/perpledger/config.toml``.
The ``PERPLEDGER_CONFIG`` environment variable points at another file.
"""

import os
from pathlib import Path
from typing import Optional

import toml
from pydantic import BaseModel, Field, PositiveFloat, ValidationError

from perpledger.feeds.base import DEFAULT_PRICES
from perpledger.ledger.accounts import STARTING_BALANCE
from perpledger.ledger.ranking import DEFAULT_LEADERBOARD_SIZE
from perpledger.ledger.settlement import DEFAULT_HISTORY_LIMIT

CONFIG_DIR = Path.home() / ".config" / "perpledger"
CONFIG_ENV_VAR = "PERPLEDGER_CONFIG"


class ConfigError(Exception):
    """Raised when a configuration file cannot be parsed."""


class LedgerSettings(BaseModel):
    """Ledger behaviour settings."""

    starting_balance: float = Field(default=STARTING_BALANCE, gt=0)
    history_limit: int = Field(default=DEFAULT_HISTORY_LIMIT, ge=1)
    leaderboard_size: int = Field(default=DEFAULT_LEADERBOARD_SIZE, ge=1)
    db_path: Path = Field(default=CONFIG_DIR / "ledger.db")


class LoggingSettings(BaseModel):
    """Logging settings."""

    level: str = Field(default="WARNING")


class LedgerConfig(BaseModel):
    """Top-level configuration."""

    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    prices: dict[str, PositiveFloat] = Field(default_factory=lambda: dict(DEFAULT_PRICES))

    @property
    def db_path(self) -> Path:
        return self.ledger.db_path.expanduser()


def get_config_path() -> Path:
    """Get the configuration file path, honouring PERPLEDGER_CONFIG."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return CONFIG_DIR / "config.toml"


def load_config(path: Optional[Path] = None) -> LedgerConfig:
    """Load configuration from a TOML file.

    Args:
        path: Config file path. Defaults to ``get_config_path()``.

    Returns:
        Parsed configuration; defaults when the file does not exist.

    Raises:
        ConfigError: If the file is not valid TOML or has invalid values.
    """
    path = path or get_config_path()
    if not path.exists():
        return LedgerConfig()

    try:
        data = toml.load(path)
    except (toml.TomlDecodeError, OSError) as e:
        raise ConfigError(f"Could not read {path}: {e}") from e

    overrides = data.get("prices", {})
    if not isinstance(overrides, dict):
        raise ConfigError(f"Invalid configuration in {path}: [prices] must be a table")
    prices = {**DEFAULT_PRICES, **{k.upper(): v for k, v in overrides.items()}}
    try:
        return LedgerConfig(
            ledger=data.get("ledger", {}),
            logging=data.get("logging", {}),
            prices=prices,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e
