"""P&L reconciliation: derive gross and net figures for a trade.

Two paths produce the same stored shape:

* forward (manual entry): gross from prices, net = gross - fees
* back-calculation (imports): the broker's net already has fees taken out,
  so gross = net + fees. Subtracting fees again here would double-deduct.
"""

import logging
import math
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from tradejournal.errors import InvalidTradeInput
from tradejournal.models import Trade
from tradejournal.money import round_currency
from tradejournal.registry import FeeBreakdown, FeeRegistry, default_registry

logger = logging.getLogger(__name__)

ReconcileMode = Literal["FORWARD", "BACK"]


class ReconciledPnL(BaseModel):
    """Cent-rounded P&L and fee figures ready to persist on a trade."""

    mode: ReconcileMode = Field(..., description="Which policy produced the figures")
    gross_pnl: float = Field(..., description="P&L before fees")
    net_pnl: float = Field(..., description="P&L after fees")
    commission: float = Field(..., ge=0)
    entry_fees: float = Field(..., ge=0)
    exit_fees: float = Field(..., ge=0)
    swap: float = Field(default=0.0)
    total_fees: float = Field(..., description="Commission, entry, exit and swap")
    contract_multiplier: float = Field(..., gt=0)
    broker: str = Field(..., description="Broker whose schedule was applied")

    model_config = {"frozen": True}


def _require_positive(value: Optional[float], label: str) -> float:
    if value is None or not value > 0:
        raise InvalidTradeInput(f"{label} must be a positive number, got {value!r}")
    return value


def resolve_multiplier(trade: Trade, registry: FeeRegistry) -> float:
    """Use the trade's stored multiplier unless it is the 1.0 default."""
    if trade.contract_multiplier != 1.0:
        return trade.contract_multiplier
    return registry.contract_multiplier(trade.symbol, trade.market)


def forward_gross(trade: Trade, multiplier: float) -> float:
    """(exit - entry) x quantity x multiplier, signed by side."""
    return (trade.exit_price - trade.entry_price) * trade.quantity * multiplier * trade.side_sign


def reconcile(
    trade: Trade,
    known_net: Optional[float] = None,
    fees: Optional[FeeBreakdown] = None,
    *,
    broker: Optional[str] = None,
    registry: Optional[FeeRegistry] = None,
) -> ReconciledPnL:
    """Compute consistent gross/net P&L and fee fields for a trade.

    Args:
        trade: Trade supplying quantity, symbol, prices and swap.
        known_net: Externally supplied net P&L with fees already deducted.
            When given, gross is back-calculated; otherwise it is derived
            from entry and exit prices.
        fees: Explicit fee breakdown. Computed from the registry when None.
        broker: Broker id for the fee schedule; detected from the trade's
            data source when None.
        registry: Contract/fee registry, defaults to the built-in tables.

    Returns:
        ReconciledPnL with every monetary figure rounded to cents.

    Raises:
        InvalidTradeInput: On non-positive quantity, missing or non-positive
            prices, or a non-finite known net.
    """
    registry = registry or default_registry
    _require_positive(trade.quantity, "Quantity")
    _require_positive(trade.entry_price, "Entry price")
    if trade.exit_price is not None:
        _require_positive(trade.exit_price, "Exit price")

    if fees is None:
        broker = broker or registry.detect_broker(None, trade.data_source)
        fees = registry.calculate_fees(trade.symbol, trade.quantity, broker)

    total_fees = round_currency(fees.commission + fees.entry_fees + fees.exit_fees + trade.swap)
    multiplier = resolve_multiplier(trade, registry)

    if known_net is not None:
        if not math.isfinite(known_net):
            raise InvalidTradeInput(f"Net P&L must be a finite number, got {known_net!r}")
        mode: ReconcileMode = "BACK"
        net_pnl = round_currency(known_net)
        gross_pnl = round_currency(net_pnl + total_fees)
    else:
        _require_positive(trade.exit_price, "Exit price")
        mode = "FORWARD"
        gross_pnl = round_currency(forward_gross(trade, multiplier))
        net_pnl = round_currency(gross_pnl - total_fees)

    logger.debug(
        "Reconciled %s %s x%s (%s): gross=%.2f net=%.2f fees=%.2f",
        trade.side, trade.symbol, trade.quantity, mode, gross_pnl, net_pnl, total_fees,
    )
    return ReconciledPnL(
        mode=mode,
        gross_pnl=gross_pnl,
        net_pnl=net_pnl,
        commission=fees.commission,
        entry_fees=fees.entry_fees,
        exit_fees=fees.exit_fees,
        swap=trade.swap,
        total_fees=total_fees,
        contract_multiplier=multiplier,
        broker=fees.broker,
    )


def apply_reconciliation(trade: Trade, result: ReconciledPnL) -> Trade:
    """Return a copy of the trade carrying the reconciled figures."""
    return trade.model_copy(
        update={
            "gross_pnl": result.gross_pnl,
            "net_pnl": result.net_pnl,
            "commission": result.commission,
            "entry_fees": result.entry_fees,
            "exit_fees": result.exit_fees,
            "contract_multiplier": result.contract_multiplier,
        }
    )


def close_trade(
    trade: Trade,
    exit_price: float,
    exit_date: datetime,
    *,
    known_net: Optional[float] = None,
    broker: Optional[str] = None,
    registry: Optional[FeeRegistry] = None,
) -> Trade:
    """Close an open trade and fill in its P&L.

    Raises:
        InvalidTradeInput: If the exit price is not positive or the trade
            is already cancelled.
    """
    if trade.status == "CANCELLED":
        raise InvalidTradeInput("Cannot close a cancelled trade")
    _require_positive(exit_price, "Exit price")
    closed = trade.model_copy(
        update={"exit_price": exit_price, "exit_date": exit_date, "status": "CLOSED"}
    )
    result = reconcile(closed, known_net, broker=broker, registry=registry)
    return apply_reconciliation(closed, result)
