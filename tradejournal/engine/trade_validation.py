"""Write-boundary checks for trade financial data."""

import hashlib
import math
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from tradejournal.models import Trade
from tradejournal.money import TOLERANCE
from tradejournal.timezones import to_utc

# Price moves beyond this share of entry are flagged for review.
LARGE_MOVE_PERCENT = 50.0
# Fees beyond this share of the notional are flagged for review.
HIGH_FEE_PERCENT = 10.0


class TradeValidationResult(BaseModel):
    """Outcome of validating a trade before it is saved."""

    is_valid: bool = Field(..., description="No blocking errors")
    errors: list[str] = Field(default_factory=list, description="Blocking problems")
    warnings: list[str] = Field(default_factory=list, description="Suspicious but allowed")


def validate_trade_data(trade: Trade) -> TradeValidationResult:
    """Check a trade's prices, quantity, fees and P&L before persisting it.

    Args:
        trade: Trade to validate.

    Returns:
        TradeValidationResult listing errors (which block the save) and
        warnings (which should be shown to the user).
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not trade.entry_price > 0:
        errors.append("Entry price must be a positive number")
    if not trade.quantity > 0:
        errors.append("Quantity must be a positive number")
    if trade.exit_price is not None and not trade.exit_price > 0:
        errors.append("Exit price must be positive if provided")
    if trade.status == "CLOSED" and (trade.exit_price is None or trade.exit_date is None):
        errors.append("Closed trades require an exit price and exit date")
    if trade.exit_date is not None and to_utc(trade.exit_date) < to_utc(trade.entry_date):
        errors.append("Exit date cannot be before entry date")

    for label, value in (("gross_pnl", trade.gross_pnl), ("net_pnl", trade.net_pnl)):
        if value is not None and not math.isfinite(value):
            errors.append(f"{label} must be a valid number")

    if errors:
        return TradeValidationResult(is_valid=False, errors=errors, warnings=warnings)

    if trade.exit_price is not None:
        move = abs(trade.exit_price - trade.entry_price) / trade.entry_price * 100
        if move > LARGE_MOVE_PERCENT:
            warnings.append(
                f"Large price change detected: {move:.2f}%. Please verify entry and exit prices."
            )

    fees = trade.commission + trade.entry_fees + trade.exit_fees
    notional = trade.entry_price * trade.quantity * trade.contract_multiplier
    if fees > 0 and fees / notional * 100 > HIGH_FEE_PERCENT:
        warnings.append(
            f"High fees detected: {fees / notional * 100:.2f}% of trade value. "
            "Please verify fee calculations."
        )

    if trade.gross_pnl is not None and trade.net_pnl is not None:
        expected_net = trade.gross_pnl - trade.total_fees
        if abs(trade.net_pnl - expected_net) > TOLERANCE:
            warnings.append(
                f"P&L calculation mismatch: net P&L ({trade.net_pnl:.2f}) does not match "
                f"gross P&L ({trade.gross_pnl:.2f}) minus fees ({trade.total_fees:.2f})."
            )

    return TradeValidationResult(is_valid=True, errors=errors, warnings=warnings)


def trade_fingerprint(trade: Trade) -> str:
    """Hash the fields that identify a fill: account, symbol, side, entry day, price, size."""
    parts = [
        trade.user_id,
        trade.symbol.strip().upper(),
        trade.side,
        to_utc(trade.entry_date).date().isoformat(),
        f"{trade.entry_price:.4f}",
        f"{trade.quantity:.4f}",
    ]
    return hashlib.sha256("|".join(parts).encode()).hexdigest()


def find_duplicate(trade: Trade, existing: Iterable[Trade]) -> Optional[Trade]:
    """Get the first existing trade with the same fingerprint, if any."""
    fingerprint = trade_fingerprint(trade)
    for other in existing:
        if other.id is not None and other.id == trade.id:
            continue
        if trade_fingerprint(other) == fingerprint:
            return other
    return None
