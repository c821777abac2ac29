"""Trade commands for TradeJournal CLI.

Handles trade entry (manual or from a broker's net figure), closing open
trades, listing trades and fee previews.
"""

from datetime import datetime, timezone
from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from tradejournal.cli.context import fail, get_data_store, get_registry, get_user_id, money
from tradejournal.cli.main import console
from tradejournal.timezones import to_utc

MARKETS = ["FUTURES", "STOCK", "FOREX", "CRYPTO", "OPTIONS"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _utc_or_now(value: Optional[datetime]) -> datetime:
    """Option dates are entered without a zone and read as UTC."""
    return to_utc(value) if value is not None else _now()


def _print_result(title: str, trade, warnings: list[str]) -> None:
    lines = [
        f"[bold]Trade:[/bold] #{trade.id} {trade.side} {trade.quantity:g} {trade.symbol} "
        f"@ {trade.entry_price:g}" + (f" → {trade.exit_price:g}" if trade.exit_price else ""),
        f"[bold]Status:[/bold] {trade.status}",
    ]
    if trade.gross_pnl is not None:
        lines.append(f"[bold]Gross P&L:[/bold] {money(trade.gross_pnl, signed=True)}")
        lines.append(
            f"[bold]Fees:[/bold] {money(trade.total_fees)} "
            f"(commission {money(trade.commission)}, entry {money(trade.entry_fees)}, "
            f"exit {money(trade.exit_fees)})"
        )
        lines.append(f"[bold]Net P&L:[/bold] {money(trade.net_pnl, signed=True)}")
    console.print(Panel("\n".join(lines), title=f"[bold green]{title}[/bold green]", border_style="green"))
    for warning in warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")


@click.command()
@click.argument("symbol")
@click.argument("side", type=click.Choice(["LONG", "SHORT"], case_sensitive=False))
@click.argument("qty", type=float)
@click.argument("entry_price", type=float)
@click.option("--exit", "exit_price", type=float, default=None, help="Exit price; closes the trade.")
@click.option("--net", "known_net", type=float, default=None, help="Broker-reported net P&L (fees already deducted).")
@click.option("--market", type=click.Choice(MARKETS, case_sensitive=False), default="FUTURES", show_default=True)
@click.option("--source", "data_source", default="manual", show_default=True, help="Data source tag.")
@click.option("--broker", default=None, help="Fee schedule to apply (detected when omitted).")
@click.option("--entry-date", type=click.DateTime(), default=None, help="Entry time (UTC). Defaults to now.")
@click.option("--exit-date", type=click.DateTime(), default=None, help="Exit time (UTC). Defaults to now.")
@click.option("--swap", type=float, default=0.0, help="Swap / overnight fee.")
@click.option("--allow-duplicate", is_flag=True, default=False, help="Save even if an identical fill exists.")
@click.pass_context
def add(
    ctx: click.Context,
    symbol: str,
    side: str,
    qty: float,
    entry_price: float,
    exit_price: Optional[float],
    known_net: Optional[float],
    market: str,
    data_source: str,
    broker: Optional[str],
    entry_date: Optional[datetime],
    exit_date: Optional[datetime],
    swap: float,
    allow_duplicate: bool,
) -> None:
    """Record a trade, computing fees and P&L.

    With --exit the gross P&L is computed from prices and fees are
    subtracted. With --net the broker's net figure is kept and gross is
    back-calculated by adding fees.

    \b
    Examples:
      tradejournal add MNQU5 LONG 2 20000 --exit 20010
      tradejournal add MNQU5 LONG 2 20000 --exit 20037.5 --net 147.12 --source tradovate_csv
    """
    from pydantic import ValidationError

    from tradejournal.engine import (
        apply_reconciliation,
        find_duplicate,
        reconcile,
        validate_trade_data,
    )
    from tradejournal.errors import InvalidTradeInput
    from tradejournal.models import Trade

    store = get_data_store(ctx)
    registry = get_registry(ctx)
    user_id = get_user_id(ctx)
    config = store.get_account_config(user_id)
    market = market.upper()

    closing = exit_price is not None or known_net is not None
    try:
        trade = Trade(
            user_id=user_id,
            symbol=symbol.upper(),
            side=side.upper(),
            quantity=qty,
            entry_price=entry_price,
            exit_price=exit_price,
            entry_date=_utc_or_now(entry_date),
            exit_date=_utc_or_now(exit_date) if closing else None,
            market=market,
            status="CLOSED" if closing else "OPEN",
            swap=swap,
            contract_multiplier=registry.contract_multiplier(symbol, market),
            data_source=data_source,
        )
    except ValidationError as e:
        fail(f"Invalid trade:\n{e}")

    broker = broker or registry.detect_broker(
        config.account_type if config else None, data_source
    )
    try:
        fees = registry.calculate_fees(trade.symbol, trade.quantity, broker)
        if closing:
            trade = apply_reconciliation(
                trade, reconcile(trade, known_net, fees, registry=registry)
            )
        else:
            trade = trade.model_copy(
                update={
                    "commission": fees.commission,
                    "entry_fees": fees.entry_fees,
                    "exit_fees": fees.exit_fees,
                }
            )
    except InvalidTradeInput as e:
        fail(str(e), title="Trade Rejected")

    result = validate_trade_data(trade)
    if not result.is_valid:
        fail("\n".join(f"• {error}" for error in result.errors), title="Trade Rejected")

    if not allow_duplicate:
        duplicate = find_duplicate(trade, store.get_trades(user_id))
        if duplicate is not None:
            fail(
                f"Trade matches existing trade #{duplicate.id}. Use --allow-duplicate to save anyway.",
                title="Duplicate Trade",
            )

    trade = trade.model_copy(update={"id": store.save_trade(trade)})
    _print_result("Trade Saved", trade, result.warnings)


@click.command()
@click.argument("trade_id", type=int)
@click.argument("exit_price", type=float)
@click.option("--net", "known_net", type=float, default=None, help="Broker-reported net P&L (fees already deducted).")
@click.option("--exit-date", type=click.DateTime(), default=None, help="Exit time (UTC). Defaults to now.")
@click.pass_context
def close(
    ctx: click.Context,
    trade_id: int,
    exit_price: float,
    known_net: Optional[float],
    exit_date: Optional[datetime],
) -> None:
    """Close an open trade and compute its P&L."""
    from tradejournal.engine import close_trade, validate_trade_data
    from tradejournal.errors import InvalidTradeInput

    store = get_data_store(ctx)
    registry = get_registry(ctx)
    trade = store.get_trade(trade_id)
    if trade is None or trade.user_id != get_user_id(ctx):
        fail(f"Trade #{trade_id} not found.")
    if trade.status != "OPEN":
        fail(f"Trade #{trade_id} is {trade.status}, not OPEN.")

    config = store.get_account_config(trade.user_id)
    broker = registry.detect_broker(config.account_type if config else None, trade.data_source)
    try:
        closed = close_trade(
            trade,
            exit_price,
            _utc_or_now(exit_date),
            known_net=known_net,
            broker=broker,
            registry=registry,
        )
    except InvalidTradeInput as e:
        fail(str(e), title="Trade Rejected")

    result = validate_trade_data(closed)
    if not result.is_valid:
        fail("\n".join(f"• {error}" for error in result.errors), title="Trade Rejected")

    store.update_trade(closed)
    _print_result("Trade Closed", closed, result.warnings)


@click.command("trades")
@click.option(
    "--status",
    type=click.Choice(["OPEN", "CLOSED", "CANCELLED"], case_sensitive=False),
    default=None,
    help="Only show trades with this status.",
)
@click.option("--limit", type=int, default=50, show_default=True, help="Most recent N trades.")
@click.pass_context
def list_trades(ctx: click.Context, status: Optional[str], limit: int) -> None:
    """List recorded trades."""
    store = get_data_store(ctx)
    trades = store.get_trades(get_user_id(ctx), status=status.upper() if status else None)

    if not trades:
        console.print(Panel("[dim]No trades found[/dim]", title="[bold]Trades[/bold]", border_style="dim"))
        return

    table = Table(title="Trades", show_header=True, header_style="bold cyan")
    table.add_column("ID", justify="right")
    table.add_column("Entry", style="dim")
    table.add_column("Symbol", style="bold")
    table.add_column("Side")
    table.add_column("Qty", justify="right")
    table.add_column("Entry Px", justify="right")
    table.add_column("Exit Px", justify="right")
    table.add_column("Status")
    table.add_column("Gross", justify="right")
    table.add_column("Fees", justify="right")
    table.add_column("Net", justify="right")

    for trade in trades[-limit:]:
        table.add_row(
            str(trade.id),
            trade.entry_date.strftime("%Y-%m-%d %H:%M"),
            trade.symbol,
            trade.side,
            f"{trade.quantity:g}",
            f"{trade.entry_price:g}",
            f"{trade.exit_price:g}" if trade.exit_price is not None else "-",
            trade.status,
            money(trade.gross_pnl, signed=True) if trade.gross_pnl is not None else "-",
            money(trade.total_fees),
            money(trade.net_pnl, signed=True) if trade.net_pnl is not None else "-",
        )
    console.print(table)


@click.command()
@click.argument("symbol")
@click.argument("qty", type=float)
@click.option("--broker", default=None, help="Broker id (detected from the account when omitted).")
@click.pass_context
def fees(ctx: click.Context, symbol: str, qty: float, broker: Optional[str]) -> None:
    """Preview the contract spec and fees for trading QTY of SYMBOL."""
    from tradejournal.errors import InvalidTradeInput

    registry = get_registry(ctx)
    if broker is None:
        config = get_data_store(ctx).get_account_config(get_user_id(ctx))
        broker = registry.detect_broker(config.account_type if config else None, None)

    spec = registry.lookup_contract_spec(symbol)
    try:
        breakdown = registry.calculate_fees(symbol, qty, broker)
    except InvalidTradeInput as e:
        fail(str(e))

    console.print(Panel(
        f"[bold]Contract:[/bold] {spec.symbol} {spec.name or '(unmapped, defaults)'}\n"
        f"[bold]Multiplier:[/bold] {spec.multiplier:g}  [bold]Tick value:[/bold] {money(spec.tick_value)}\n"
        f"[bold]Broker:[/bold] {breakdown.broker}\n"
        f"[bold]Commission:[/bold] {money(breakdown.commission)}\n"
        f"[bold]Entry fees:[/bold] {money(breakdown.entry_fees)}\n"
        f"[bold]Exit fees:[/bold] {money(breakdown.exit_fees)}\n"
        f"[bold]Total:[/bold] {money(breakdown.total_fees)}",
        title="[bold cyan]Fee Preview[/bold cyan]",
        border_style="cyan",
    ))
