"""Configuration loading for TradeJournal.

Settings live in ``~/.config/tradejournal/config.toml`` unless the
``TRADEJOURNAL_CONFIG`` environment variable points elsewhere::

    [database]
    path = "~/.config/tradejournal/tradejournal.db"

    [account]
    user_id = "default"
    timezone = "America/New_York"

    [fees.TOPSTEP]
    commission_per_round_trip = 1.34

    [contracts.M2K]
    multiplier = 5.0
    tick_size = 0.1
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import toml

from tradejournal.registry import ContractSpec, FeeRegistry, FeeSchedule, default_registry

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "tradejournal"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.toml"
DEFAULT_DB_PATH = CONFIG_DIR / "tradejournal.db"
DEFAULT_USER_ID = "default"


def config_path() -> Path:
    return Path(os.environ.get("TRADEJOURNAL_CONFIG", DEFAULT_CONFIG_PATH)).expanduser()


def load_config(path: Optional[Path] = None) -> Optional[dict[str, Any]]:
    """Load the TOML configuration.

    Args:
        path: Config file. Defaults to ``config_path()``.

    Returns:
        Parsed configuration, or None when the file does not exist.

    Raises:
        toml.TomlDecodeError: If the file exists but is not valid TOML.
    """
    path = path or config_path()
    if not path.exists():
        return None
    return toml.load(path)


def db_path(config: Optional[dict[str, Any]]) -> Path:
    """Database location from config, falling back to the default."""
    configured = (config or {}).get("database", {}).get("path")
    return Path(configured).expanduser() if configured else DEFAULT_DB_PATH


def default_user_id(config: Optional[dict[str, Any]]) -> str:
    return (config or {}).get("account", {}).get("user_id", DEFAULT_USER_ID)


def default_timezone(config: Optional[dict[str, Any]]) -> str:
    return (config or {}).get("account", {}).get("timezone", "UTC")


def build_registry(config: Optional[dict[str, Any]]) -> FeeRegistry:
    """Layer ``[fees]`` and ``[contracts]`` tables over the built-in registry.

    Args:
        config: Parsed configuration, may be None.

    Returns:
        The default registry when nothing is overridden, otherwise a new one.
    """
    config = config or {}
    fee_tables = config.get("fees", {})
    contract_tables = config.get("contracts", {})
    if not fee_tables and not contract_tables:
        return default_registry

    fee_schedules = {
        broker.upper(): FeeSchedule(**values) for broker, values in fee_tables.items()
    }
    contracts = {}
    for symbol, values in contract_tables.items():
        values = dict(values)
        values.setdefault("symbol", symbol.upper())
        if "tick_value" not in values and "multiplier" in values and "tick_size" in values:
            values["tick_value"] = values["multiplier"] * values["tick_size"]
        contracts[symbol.upper()] = ContractSpec(**values)

    logger.debug(
        "Registry overrides: %d fee schedules, %d contracts", len(fee_schedules), len(contracts)
    )
    return default_registry.with_overrides(contracts=contracts, fee_schedules=fee_schedules)
