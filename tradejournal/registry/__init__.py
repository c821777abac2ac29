"""Contract and fee schedule registry for TradeJournal."""

from tradejournal.registry.contracts import ContractSpec, base_symbol
from tradejournal.registry.fees import (
    GENERIC_BROKER,
    FeeBreakdown,
    FeeRegistry,
    FeeSchedule,
    calculate_fees,
    default_registry,
    detect_broker,
    lookup_contract_spec,
    lookup_fee_schedule,
)

__all__ = [
    "ContractSpec",
    "FeeBreakdown",
    "FeeRegistry",
    "FeeSchedule",
    "GENERIC_BROKER",
    "base_symbol",
    "calculate_fees",
    "default_registry",
    "detect_broker",
    "lookup_contract_spec",
    "lookup_fee_schedule",
]
