"""Data models for TradeJournal."""

from tradejournal.models.account import (
    EVALUATION_DRAWDOWN_AMOUNTS,
    EVALUATION_STARTING_BALANCES,
    AccountConfiguration,
    default_drawdown_amount,
    default_starting_balance,
    validate_account_config,
)
from tradejournal.models.metrics import AccountMetrics, DailySnapshot
from tradejournal.models.report import (
    ValidationCheck,
    ValidationReport,
    ValidationSummary,
)
from tradejournal.models.trade import Trade

__all__ = [
    "AccountConfiguration",
    "AccountMetrics",
    "DailySnapshot",
    "EVALUATION_DRAWDOWN_AMOUNTS",
    "EVALUATION_STARTING_BALANCES",
    "Trade",
    "ValidationCheck",
    "ValidationReport",
    "ValidationSummary",
    "default_drawdown_amount",
    "default_starting_balance",
    "validate_account_config",
]
