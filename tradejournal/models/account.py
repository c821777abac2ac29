"""Account configuration model and evaluation presets."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from tradejournal.timezones import is_valid_timezone

AccountType = Literal[
    "EVALUATION_50K",
    "EVALUATION_100K",
    "EVALUATION_150K",
    "EVALUATION",
    "LIVE_FUNDED",
    "CUSTOM",
]

# Trailing drawdown amounts for the fixed-size evaluation tiers. The other
# types are configured by hand.
EVALUATION_DRAWDOWN_AMOUNTS: dict[str, float] = {
    "EVALUATION_50K": 2000.0,
    "EVALUATION_100K": 3000.0,
    "EVALUATION_150K": 4500.0,
}

EVALUATION_STARTING_BALANCES: dict[str, float] = {
    "EVALUATION_50K": 50000.0,
    "EVALUATION_100K": 100000.0,
    "EVALUATION_150K": 150000.0,
}

# Account types whose risk rules include a trailing drawdown.
TRAILING_ACCOUNT_TYPES = frozenset(
    list(EVALUATION_DRAWDOWN_AMOUNTS) + ["EVALUATION", "LIVE_FUNDED"]
)

# Retired names for the trailing drawdown amount.
_LEGACY_DRAWDOWN_KEYS = ("max_loss_limit", "maxLossLimit", "mll", "current_mll")


def default_drawdown_amount(account_type: str) -> float:
    """Get the preset trailing drawdown amount for an account type (0 if none)."""
    return EVALUATION_DRAWDOWN_AMOUNTS.get(account_type, 0.0)


def default_starting_balance(account_type: str) -> float:
    """Get the preset starting balance for an account type (0 if none)."""
    return EVALUATION_STARTING_BALANCES.get(account_type, 0.0)


class AccountConfiguration(BaseModel):
    """Risk configuration for a single trading account."""

    user_id: str = Field(default="default", min_length=1, description="Account owner")
    starting_balance: float = Field(..., gt=0, description="Balance at account start")
    account_start_date: Optional[datetime] = Field(
        default=None, description="Trades entered before this are ignored"
    )
    trailing_drawdown_amount: float = Field(
        default=0.0, ge=0, description="Fixed distance below the high-water mark"
    )
    daily_loss_limit: Optional[float] = Field(
        default=None, gt=0, description="Maximum loss allowed in one trading day"
    )
    account_type: AccountType = Field(default="CUSTOM", description="Account tier")
    is_live_funded: bool = Field(default=False, description="Funded live account")
    first_payout_received: bool = Field(
        default=False, description="A payout has been taken from the account"
    )
    timezone: str = Field(default="UTC", description="IANA zone for trading-day boundaries")

    model_config = {"frozen": True}

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        if not is_valid_timezone(value):
            raise ValueError(f"Unknown timezone: {value}")
        return value

    @property
    def uses_trailing_drawdown(self) -> bool:
        return self.account_type in TRAILING_ACCOUNT_TYPES

    def with_first_payout(self) -> "AccountConfiguration":
        """Return a copy with the first payout recorded."""
        return self.model_copy(update={"first_payout_received": True})

    @classmethod
    def from_legacy(cls, data: dict[str, Any]) -> "AccountConfiguration":
        """Build a configuration from a record that may use retired field names.

        Older records stored the trailing drawdown amount under one of the
        "max loss limit" names. The first non-empty legacy value is used only
        when the canonical field is absent; an evaluation preset fills the
        gap when neither is present.
        """
        values = {k: v for k, v in data.items() if k not in _LEGACY_DRAWDOWN_KEYS}
        if not values.get("trailing_drawdown_amount"):
            for key in _LEGACY_DRAWDOWN_KEYS:
                if data.get(key):
                    values["trailing_drawdown_amount"] = data[key]
                    break
            else:
                values["trailing_drawdown_amount"] = default_drawdown_amount(
                    values.get("account_type", "CUSTOM")
                )
        return cls(**values)


def validate_account_config(config: AccountConfiguration) -> list[str]:
    """Check an account configuration against its tier rules.

    Args:
        config: Configuration to check.

    Returns:
        List of error messages; empty when the configuration is valid.
    """
    errors: list[str] = []
    account_type = config.account_type

    if account_type in EVALUATION_STARTING_BALANCES:
        expected_balance = EVALUATION_STARTING_BALANCES[account_type]
        expected_drawdown = EVALUATION_DRAWDOWN_AMOUNTS[account_type]
        if config.starting_balance != expected_balance:
            errors.append(
                f"{account_type} accounts must have a starting balance of ${expected_balance:,.0f}"
            )
        if config.trailing_drawdown_amount != expected_drawdown:
            errors.append(
                f"{account_type} accounts must have a trailing drawdown of ${expected_drawdown:,.0f}"
            )

    if config.uses_trailing_drawdown and config.trailing_drawdown_amount <= 0:
        errors.append(f"{account_type} accounts require a positive trailing drawdown amount")

    if config.trailing_drawdown_amount >= config.starting_balance:
        errors.append("Trailing drawdown amount must be less than the starting balance")

    return errors
