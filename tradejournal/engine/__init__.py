"""P&L reconciliation, account metrics and consistency validation."""

from tradejournal.engine.metrics import (
    build_daily_snapshot,
    compute_metrics,
    high_water_marks,
    trailing_limit_policy,
)
from tradejournal.engine.pnl import ReconciledPnL, apply_reconciliation, close_trade, reconcile
from tradejournal.engine.trade_validation import (
    TradeValidationResult,
    find_duplicate,
    trade_fingerprint,
    validate_trade_data,
)
from tradejournal.engine.validator import ConsistencyValidator, validate, validate_all

__all__ = [
    "ConsistencyValidator",
    "ReconciledPnL",
    "TradeValidationResult",
    "apply_reconciliation",
    "build_daily_snapshot",
    "close_trade",
    "compute_metrics",
    "find_duplicate",
    "high_water_marks",
    "reconcile",
    "trade_fingerprint",
    "trailing_limit_policy",
    "validate",
    "validate_all",
    "validate_trade_data",
]
