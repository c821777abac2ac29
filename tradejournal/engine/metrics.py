"""Account metrics: balance, high-water mark, trailing and daily loss limits."""

import logging
import math
from datetime import datetime
from typing import Iterable, Iterator, Optional

import pytz

from tradejournal.errors import NoAccountConfigured
from tradejournal.models import AccountConfiguration, AccountMetrics, DailySnapshot, Trade
from tradejournal.models.account import default_drawdown_amount
from tradejournal.money import round_currency
from tradejournal.registry import FeeRegistry, default_registry
from tradejournal.timezones import day_window, in_window, to_utc

logger = logging.getLogger(__name__)

# Floor for the fee-impact denominator.
FEE_IMPACT_EPSILON = 0.01


def _closed_at(trade: Trade) -> datetime:
    return to_utc(trade.exit_date or trade.entry_date)


def relevant_trades(config: AccountConfiguration, trades: Iterable[Trade]) -> list[Trade]:
    """Drop trades entered before the account start date, if one is set."""
    if config.account_start_date is None:
        return list(trades)
    start = to_utc(config.account_start_date)
    return [t for t in trades if to_utc(t.entry_date) >= start]


def closed_in_order(trades: Iterable[Trade]) -> list[Trade]:
    """CLOSED trades ordered by when they were closed."""
    closed = [t for t in trades if t.is_closed]
    return sorted(closed, key=lambda t: (_closed_at(t), to_utc(t.entry_date)))


def replay(starting_balance: float, closed_trades: Iterable[Trade]) -> Iterator[tuple[float, float]]:
    """Yield (balance, high-water mark) after each closed trade, in order.

    Every intermediate peak counts, so the mark never decreases even when a
    later loss pulls the balance back down.
    """
    balance = starting_balance
    high = starting_balance
    for trade in closed_trades:
        balance += trade.net_pnl or 0.0
        high = max(high, balance)
        yield balance, high


def high_water_marks(starting_balance: float, closed_trades: Iterable[Trade]) -> Iterator[float]:
    """Yield the high-water mark after each closed trade, in order."""
    for _, high in replay(starting_balance, closed_trades):
        yield high


def balance_and_high(starting_balance: float, closed_trades: Iterable[Trade]) -> tuple[float, float]:
    balance = high = starting_balance
    for balance, high in replay(starting_balance, closed_trades):
        pass
    return balance, high


def trailing_limit_policy(
    account_high: float,
    trailing_drawdown_amount: float,
    is_live_funded: bool,
    first_payout_received: bool,
) -> float:
    """Minimum balance permitted by the trailing-drawdown rule.

    Once a live-funded account has paid out, the limit is pinned to zero:
    the trailing rule can no longer claw the account back.
    """
    if is_live_funded and first_payout_received:
        return 0.0
    return account_high - trailing_drawdown_amount


def effective_drawdown_amount(config: AccountConfiguration) -> float:
    """Configured trailing amount, or the tier preset when none is set."""
    return config.trailing_drawdown_amount or default_drawdown_amount(config.account_type)


def _sum_net(trades: Iterable[Trade]) -> float:
    return math.fsum(t.net_pnl or 0.0 for t in trades)


def compute_metrics(
    config: Optional[AccountConfiguration],
    trades: Iterable[Trade],
    now: Optional[datetime] = None,
    registry: Optional[FeeRegistry] = None,
) -> AccountMetrics:
    """Compute balance, risk limits and fee figures for an account.

    Args:
        config: Account configuration. Required.
        trades: All of the account's trades, in any order.
        now: Reference moment for the daily window. Defaults to the current time.
        registry: Registry used for broker detection.

    Returns:
        AccountMetrics snapshot. An empty trade list yields zero P&L and an
        account high equal to the starting balance.

    Raises:
        NoAccountConfigured: If ``config`` is None.
    """
    if config is None:
        raise NoAccountConfigured()
    registry = registry or default_registry
    now = to_utc(now or datetime.now(pytz.utc))
    window = day_window(now, config.timezone)

    trades = relevant_trades(config, trades)
    closed = closed_in_order(trades)
    starting = config.starting_balance

    # One replay yields both, so the high never trails the balance.
    balance, high = balance_and_high(starting, closed)
    current_balance = round_currency(balance)
    account_high = round_currency(high)

    drawdown_amount = effective_drawdown_amount(config)
    trailing_limit = round_currency(
        trailing_limit_policy(
            account_high, drawdown_amount, config.is_live_funded, config.first_payout_received
        )
    )

    day_start, _ = window
    day_start_balance = round_currency(
        starting + _sum_net(t for t in closed if _closed_at(t) < day_start)
    )
    todays_closed = [t for t in closed if in_window(t.entry_date, window)]
    daily_pnl = round_currency(_sum_net(todays_closed))

    daily_limit = None
    daily_buffer = None
    within_daily_limit = True
    if config.daily_loss_limit:
        daily_limit = round_currency(day_start_balance - config.daily_loss_limit)
        daily_buffer = round_currency(current_balance - daily_limit)
        within_daily_limit = current_balance >= daily_limit

    total_fees = round_currency(math.fsum(t.total_fees for t in trades))
    daily_fees = round_currency(
        math.fsum(t.total_fees for t in trades if in_window(t.entry_date, window))
    )
    gross_to_date = round_currency(
        math.fsum(t.gross_pnl if t.gross_pnl is not None else (t.net_pnl or 0.0) for t in closed)
    )
    gross_daily = round_currency(
        math.fsum(
            t.gross_pnl if t.gross_pnl is not None else (t.net_pnl or 0.0) for t in todays_closed
        )
    )
    fee_impact = 0.0
    if daily_fees:
        fee_impact = round_currency(daily_fees / max(gross_daily, FEE_IMPACT_EPSILON) * 100)

    metrics = AccountMetrics(
        user_id=config.user_id,
        as_of=now,
        broker=registry.detect_broker(config.account_type, None),
        trade_count=len(trades),
        starting_balance=starting,
        current_balance=current_balance,
        account_high=account_high,
        net_pnl_to_date=round_currency(current_balance - starting),
        trailing_drawdown_amount=drawdown_amount,
        trailing_limit=trailing_limit,
        within_trailing_limit=current_balance >= trailing_limit,
        trailing_buffer=round_currency(current_balance - trailing_limit),
        daily_pnl=daily_pnl,
        day_start_balance=day_start_balance,
        daily_loss_limit=config.daily_loss_limit,
        daily_limit=daily_limit,
        within_daily_limit=within_daily_limit,
        daily_buffer=daily_buffer,
        total_fees_to_date=total_fees,
        daily_fees=daily_fees,
        gross_pnl_to_date=gross_to_date,
        gross_daily_pnl=gross_daily,
        average_fee_per_trade=round_currency(total_fees / len(trades)) if trades else 0.0,
        fee_impact_percentage=fee_impact,
    )
    if not metrics.within_trailing_limit:
        logger.warning(
            "Account %s is below its trailing limit: balance %.2f < %.2f",
            config.user_id, current_balance, trailing_limit,
        )
    return metrics


def build_daily_snapshot(
    config: Optional[AccountConfiguration],
    trades: Iterable[Trade],
    now: Optional[datetime] = None,
    registry: Optional[FeeRegistry] = None,
) -> DailySnapshot:
    """Summarise the account at the end of the trading day containing ``now``.

    Raises:
        NoAccountConfigured: If ``config`` is None.
    """
    if config is None:
        raise NoAccountConfigured()
    trades = list(trades)
    metrics = compute_metrics(config, trades, now=now, registry=registry)
    window = day_window(metrics.as_of, config.timezone)
    local_day = window[0].astimezone(pytz.timezone(config.timezone)).date()
    return DailySnapshot(
        user_id=config.user_id,
        date=local_day,
        end_of_day_balance=metrics.current_balance,
        account_high=metrics.account_high,
        trailing_limit=metrics.trailing_limit,
        net_pnl_to_date=metrics.net_pnl_to_date,
        daily_pnl=metrics.daily_pnl,
        trades_count=sum(
            1 for t in relevant_trades(config, trades) if in_window(t.entry_date, window)
        ),
    )
