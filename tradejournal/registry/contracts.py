"""Contract specifications for common futures instruments."""

import re

from pydantic import BaseModel, Field

FUTURES_MARKETS = frozenset({"FUTURES"})

# Month code plus one or two year digits, e.g. the "U5" in MNQU5.
_EXPIRY_SUFFIX = re.compile(r"[FGHJKMNQUVXZ]\d{1,2}$")


class ContractSpec(BaseModel):
    """Point value and tick size for a tradable instrument."""

    symbol: str = Field(..., min_length=1, description="Trading symbol")
    name: str = Field(default="", description="Display name")
    contract_type: str = Field(default="STANDARD", description="Contract class")
    multiplier: float = Field(default=1.0, gt=0, description="Dollars per point")
    tick_size: float = Field(default=1.0, gt=0, description="Minimum price increment")
    tick_value: float = Field(default=1.0, gt=0, description="Dollars per tick")
    exchange: str = Field(default="", description="Listing exchange")

    model_config = {"frozen": True}


def _spec(symbol: str, name: str, contract_type: str, multiplier: float, tick_size: float) -> ContractSpec:
    return ContractSpec(
        symbol=symbol,
        name=name,
        contract_type=contract_type,
        multiplier=multiplier,
        tick_size=tick_size,
        tick_value=multiplier * tick_size,
        exchange="CME",
    )


DEFAULT_CONTRACTS: dict[str, ContractSpec] = {
    "MNQ": _spec("MNQ", "Micro E-mini NASDAQ-100", "MICRO_FUTURES", 2.0, 0.25),
    "MES": _spec("MES", "Micro E-mini S&P 500", "MICRO_FUTURES", 5.0, 0.25),
    "MYM": _spec("MYM", "Micro E-mini Dow", "MICRO_FUTURES", 0.5, 1.0),
    "NQ": _spec("NQ", "E-mini NASDAQ-100", "STANDARD_FUTURES", 20.0, 0.25),
    "ES": _spec("ES", "E-mini S&P 500", "STANDARD_FUTURES", 50.0, 0.25),
    "YM": _spec("YM", "E-mini Dow", "STANDARD_FUTURES", 5.0, 1.0),
}


def base_symbol(symbol: str) -> str:
    """Strip a futures expiry suffix: MNQU5 -> MNQ, ESZ24 -> ES.

    Symbols that would be left empty are returned unchanged.
    """
    normalized = symbol.strip().upper()
    stripped = _EXPIRY_SUFFIX.sub("", normalized)
    return stripped or normalized


def default_spec(symbol: str) -> ContractSpec:
    """Fallback spec for instruments with no registered contract."""
    return ContractSpec(symbol=symbol or "UNKNOWN")
