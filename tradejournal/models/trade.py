"""Trade data model."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

Side = Literal["LONG", "SHORT"]
TradeStatus = Literal["OPEN", "CLOSED", "CANCELLED"]
Market = Literal["FUTURES", "STOCK", "FOREX", "CRYPTO", "OPTIONS"]


class Trade(BaseModel):
    """Represents one executed position, open or closed.

    Prices and quantity are not range-checked here: rows loaded from storage
    may be corrupt and still need to reach the consistency validator. Writes
    are guarded by the P&L calculator and ``validate_trade_data``.
    """

    id: Optional[int] = Field(default=None, description="Database ID")
    user_id: str = Field(default="default", min_length=1, description="Owning account")
    symbol: str = Field(..., min_length=1, description="Trading symbol")
    side: Side = Field(..., description="Position side")
    quantity: float = Field(..., description="Contracts or shares traded")
    entry_price: float = Field(..., description="Average entry price")
    exit_price: Optional[float] = Field(default=None, description="Average exit price")
    entry_date: datetime = Field(..., description="Entry timestamp")
    exit_date: Optional[datetime] = Field(default=None, description="Exit timestamp")
    market: Market = Field(default="FUTURES", description="Instrument class")
    status: TradeStatus = Field(default="OPEN", description="Lifecycle status")
    gross_pnl: Optional[float] = Field(default=None, description="P&L before fees")
    net_pnl: Optional[float] = Field(default=None, description="P&L after fees")
    commission: float = Field(default=0.0, ge=0, description="Round-trip commission")
    entry_fees: float = Field(default=0.0, ge=0, description="Fees charged on entry")
    exit_fees: float = Field(default=0.0, ge=0, description="Fees charged on exit")
    swap: float = Field(default=0.0, description="Swap / overnight financing")
    contract_multiplier: float = Field(
        default=1.0, gt=0, description="Multiplier captured at calculation time"
    )
    data_source: str = Field(default="manual", description="How the trade entered the system")

    model_config = {"frozen": True}

    @property
    def total_fees(self) -> float:
        """Commission plus entry, exit and swap fees."""
        return self.commission + self.entry_fees + self.exit_fees + self.swap

    @property
    def is_closed(self) -> bool:
        return self.status == "CLOSED"

    @property
    def side_sign(self) -> int:
        return 1 if self.side == "LONG" else -1
