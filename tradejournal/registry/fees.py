"""Fee schedules, broker detection and the registry that serves them.

Contract and fee tables are read-only configuration handed to a
``FeeRegistry`` at construction. The module-level helpers delegate to a
registry built from the defaults below; pass your own registry wherever an
alternate schedule is needed.
"""

import logging
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from tradejournal.errors import InvalidTradeInput
from tradejournal.models.account import EVALUATION_DRAWDOWN_AMOUNTS
from tradejournal.money import round_currency
from tradejournal.registry.contracts import (
    DEFAULT_CONTRACTS,
    FUTURES_MARKETS,
    ContractSpec,
    base_symbol,
    default_spec,
)

logger = logging.getLogger(__name__)

GENERIC_BROKER = "GENERIC"


class FeeSchedule(BaseModel):
    """Per-unit fees charged by a broker."""

    commission_per_round_trip: float = Field(default=0.0, ge=0, description="Per unit, entry+exit")
    entry_fee_per_unit: float = Field(default=0.0, ge=0, description="Per unit on entry")
    exit_fee_per_unit: float = Field(default=0.0, ge=0, description="Per unit on exit")

    model_config = {"frozen": True}

    @property
    def per_unit_total(self) -> float:
        return self.commission_per_round_trip + self.entry_fee_per_unit + self.exit_fee_per_unit


class FeeBreakdown(BaseModel):
    """Fees for one trade, rounded to cents."""

    broker: str = Field(..., description="Broker the schedule came from")
    commission: float = Field(..., ge=0)
    entry_fees: float = Field(..., ge=0)
    exit_fees: float = Field(..., ge=0)
    total_fees: float = Field(..., ge=0)

    model_config = {"frozen": True}


# Schedules are keyed by broker id, optionally narrowed to a base symbol as
# "BROKER:SYMBOL". TopStep and Tradovate both bill $1.34 all-in per
# round-turn micro contract.
DEFAULT_FEE_SCHEDULES: dict[str, FeeSchedule] = {
    "TOPSTEP": FeeSchedule(commission_per_round_trip=1.34),
    "TRADOVATE": FeeSchedule(commission_per_round_trip=1.34),
    GENERIC_BROKER: FeeSchedule(),
}

# Substrings of a trade's data_source tag that identify its broker.
DEFAULT_DATA_SOURCE_BROKERS: dict[str, str] = {
    "topstep": "TOPSTEP",
    "tradovate": "TRADOVATE",
}

# Prop-firm account types route to TopStep fee schedules.
DEFAULT_ACCOUNT_TYPE_BROKERS: dict[str, str] = {
    **{account_type: "TOPSTEP" for account_type in EVALUATION_DRAWDOWN_AMOUNTS},
    "EVALUATION": "TOPSTEP",
    "LIVE_FUNDED": "TOPSTEP",
    # Records written before the evaluation tiers were renamed.
    "TOPSTEP_50K": "TOPSTEP",
    "TOPSTEP_100K": "TOPSTEP",
    "TOPSTEP_150K": "TOPSTEP",
}


class FeeRegistry:
    """Static lookups of contract specs and broker fee schedules."""

    def __init__(
        self,
        contracts: Optional[Mapping[str, ContractSpec]] = None,
        fee_schedules: Optional[Mapping[str, FeeSchedule]] = None,
        data_source_brokers: Optional[Mapping[str, str]] = None,
        account_type_brokers: Optional[Mapping[str, str]] = None,
    ):
        """Initialize the registry.

        Args:
            contracts: Contract specs keyed by symbol. Defaults to the CME
                micro and E-mini index contracts.
            fee_schedules: Fee schedules keyed by broker id or "BROKER:SYMBOL".
            data_source_brokers: data_source substrings mapped to broker ids.
            account_type_brokers: Account types mapped to broker ids.
        """
        self.contracts = MappingProxyType(
            {k.upper(): v for k, v in (contracts if contracts is not None else DEFAULT_CONTRACTS).items()}
        )
        schedules = dict(fee_schedules if fee_schedules is not None else DEFAULT_FEE_SCHEDULES)
        schedules.setdefault(GENERIC_BROKER, FeeSchedule())
        self.fee_schedules = MappingProxyType({k.upper(): v for k, v in schedules.items()})
        self.data_source_brokers = MappingProxyType(
            dict(data_source_brokers if data_source_brokers is not None else DEFAULT_DATA_SOURCE_BROKERS)
        )
        self.account_type_brokers = MappingProxyType(
            dict(account_type_brokers if account_type_brokers is not None else DEFAULT_ACCOUNT_TYPE_BROKERS)
        )

    def with_overrides(
        self,
        contracts: Optional[Mapping[str, ContractSpec]] = None,
        fee_schedules: Optional[Mapping[str, FeeSchedule]] = None,
    ) -> "FeeRegistry":
        """Return a new registry with extra entries layered over this one."""
        return FeeRegistry(
            contracts={**self.contracts, **(contracts or {})},
            fee_schedules={**self.fee_schedules, **(fee_schedules or {})},
            data_source_brokers=self.data_source_brokers,
            account_type_brokers=self.account_type_brokers,
        )

    # ==================== Contracts ====================

    def find_contract_spec(self, symbol: str) -> Optional[ContractSpec]:
        """Get the registered spec for a symbol, or None if unmapped."""
        key = (symbol or "").strip().upper()
        if key in self.contracts:
            return self.contracts[key]
        base = base_symbol(key)
        if base in self.contracts:
            return self.contracts[base].model_copy(update={"symbol": key})
        return None

    def lookup_contract_spec(self, symbol: str) -> ContractSpec:
        """Get the spec for a symbol, falling back to multiplier=1, tick_value=1."""
        spec = self.find_contract_spec(symbol)
        if spec is None:
            logger.info("No contract spec for %r, using default multiplier", symbol)
            return default_spec(symbol)
        return spec

    def contract_multiplier(self, symbol: str, market: str = "FUTURES") -> float:
        """Get the point multiplier; non-futures markets always use 1.0."""
        if market not in FUTURES_MARKETS:
            return 1.0
        return self.lookup_contract_spec(symbol).multiplier

    def is_futures_contract(self, symbol: str) -> bool:
        return self.find_contract_spec(symbol) is not None

    # ==================== Fees ====================

    def lookup_fee_schedule(self, broker: Optional[str], symbol: Optional[str] = None) -> FeeSchedule:
        """Get the fee schedule for a broker, narrowed to a symbol when one is registered.

        Unknown brokers resolve to the zero-fee GENERIC schedule.
        """
        broker_key = (broker or GENERIC_BROKER).upper()
        if symbol:
            narrowed = self.fee_schedules.get(f"{broker_key}:{base_symbol(symbol)}")
            if narrowed is not None:
                return narrowed
        schedule = self.fee_schedules.get(broker_key)
        if schedule is None:
            logger.info("Unknown broker %r, using %s fee schedule", broker, GENERIC_BROKER)
            return self.fee_schedules[GENERIC_BROKER]
        return schedule

    def detect_broker(self, account_type: Optional[str] = None, data_source: Optional[str] = None) -> str:
        """Map an account type and/or trade data source to a broker id.

        A data source that names a broker takes precedence over the account
        type. Anything unmatched is GENERIC.
        """
        if data_source:
            tag = data_source.lower()
            for needle, broker in self.data_source_brokers.items():
                if needle in tag:
                    return broker
        if account_type and account_type in self.account_type_brokers:
            return self.account_type_brokers[account_type]
        return GENERIC_BROKER

    def calculate_fees(self, symbol: str, quantity: float, broker: Optional[str]) -> FeeBreakdown:
        """Compute the fees for trading ``quantity`` units of ``symbol``.

        Raises:
            InvalidTradeInput: If quantity is not positive.
        """
        if quantity is None or not quantity > 0:
            raise InvalidTradeInput(f"Quantity must be positive, got {quantity!r}")
        schedule = self.lookup_fee_schedule(broker, symbol)
        commission = round_currency(schedule.commission_per_round_trip * quantity)
        entry_fees = round_currency(schedule.entry_fee_per_unit * quantity)
        exit_fees = round_currency(schedule.exit_fee_per_unit * quantity)
        return FeeBreakdown(
            broker=(broker or GENERIC_BROKER).upper(),
            commission=commission,
            entry_fees=entry_fees,
            exit_fees=exit_fees,
            total_fees=round_currency(commission + entry_fees + exit_fees),
        )


default_registry = FeeRegistry()


def lookup_contract_spec(symbol: str) -> ContractSpec:
    return default_registry.lookup_contract_spec(symbol)


def lookup_fee_schedule(broker: Optional[str]) -> FeeSchedule:
    return default_registry.lookup_fee_schedule(broker)


def detect_broker(account_type: Optional[str] = None, data_source: Optional[str] = None) -> str:
    return default_registry.detect_broker(account_type, data_source)


def calculate_fees(symbol: str, quantity: float, broker: Optional[str]) -> FeeBreakdown:
    return default_registry.calculate_fees(symbol, quantity, broker)
