"""AccountMetrics and DailySnapshot data models."""

from datetime import date as date_type
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AccountMetrics(BaseModel):
    """Derived snapshot of an account's balance and risk limits.

    Always re-derivable from an AccountConfiguration and its trades.
    """

    user_id: str = Field(..., description="Account owner")
    as_of: datetime = Field(..., description="Moment the snapshot was computed")
    broker: str = Field(..., description="Detected broker id")
    trade_count: int = Field(..., ge=0, description="Trades considered")

    starting_balance: float = Field(..., description="Configured starting balance")
    current_balance: float = Field(..., description="Starting balance plus closed net P&L")
    account_high: float = Field(..., description="Highest balance ever reached")
    net_pnl_to_date: float = Field(..., description="Closed net P&L since start")

    trailing_drawdown_amount: float = Field(..., ge=0, description="Configured trailing distance")
    trailing_limit: float = Field(..., description="Minimum balance under the trailing rule")
    within_trailing_limit: bool = Field(..., description="Balance at or above trailing limit")
    trailing_buffer: float = Field(..., description="Balance minus trailing limit (signed)")

    daily_pnl: float = Field(..., description="Net P&L of trades entered today")
    day_start_balance: float = Field(..., description="Balance at the start of today")
    daily_loss_limit: Optional[float] = Field(default=None, description="Configured daily loss amount")
    daily_limit: Optional[float] = Field(default=None, description="Minimum balance for today")
    within_daily_limit: bool = Field(default=True, description="Balance at or above daily limit")
    daily_buffer: Optional[float] = Field(default=None, description="Balance minus daily limit (signed)")

    total_fees_to_date: float = Field(..., description="All fees across all trades, swap included")
    daily_fees: float = Field(..., description="Fees on trades entered today")
    gross_pnl_to_date: float = Field(..., description="Closed gross P&L since start")
    gross_daily_pnl: float = Field(..., description="Gross P&L of trades entered today")
    average_fee_per_trade: float = Field(..., description="Total fees over trade count")
    fee_impact_percentage: float = Field(..., description="Daily fees as a share of daily gross")

    model_config = {"frozen": True}

    @property
    def display_trailing_buffer(self) -> float:
        """Trailing buffer clamped at zero for display."""
        return max(self.trailing_buffer, 0.0)

    @property
    def display_daily_buffer(self) -> Optional[float]:
        if self.daily_buffer is None:
            return None
        return max(self.daily_buffer, 0.0)


class DailySnapshot(BaseModel):
    """End-of-day account snapshot."""

    user_id: str = Field(..., description="Account owner")
    date: date_type = Field(..., description="Trading day in the account timezone")
    end_of_day_balance: float = Field(..., description="Balance at end of day")
    account_high: float = Field(..., description="High-water mark at end of day")
    trailing_limit: float = Field(..., description="Trailing limit at end of day")
    net_pnl_to_date: float = Field(..., description="Cumulative net P&L")
    daily_pnl: float = Field(..., description="Net P&L for the day")
    trades_count: int = Field(..., ge=0, description="Trades entered that day")

    model_config = {"frozen": True}
