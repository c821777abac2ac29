"""Account commands for TradeJournal CLI.

Handles account setup, the first-payout transition, the metrics dashboard
and end-of-day snapshots.
"""

from datetime import datetime
from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from tradejournal.cli.context import (
    fail,
    get_config,
    get_data_store,
    get_registry,
    get_user_id,
    money,
    onboarding_prompt,
)
from tradejournal.cli.main import console

ACCOUNT_TYPES = [
    "EVALUATION_50K",
    "EVALUATION_100K",
    "EVALUATION_150K",
    "EVALUATION",
    "LIVE_FUNDED",
    "CUSTOM",
]


@click.command()
@click.option(
    "--type",
    "account_type",
    type=click.Choice(ACCOUNT_TYPES, case_sensitive=False),
    default="CUSTOM",
    show_default=True,
    help="Account tier. Evaluation tiers fill in balance and drawdown.",
)
@click.option("--balance", type=float, default=None, help="Starting balance.")
@click.option("--drawdown", type=float, default=None, help="Trailing drawdown amount.")
@click.option("--daily-limit", type=float, default=None, help="Daily loss limit amount.")
@click.option("--start-date", type=click.DateTime(), default=None, help="Ignore trades before this date.")
@click.option("--funded", is_flag=True, default=False, help="Account is live funded.")
@click.option("--timezone", default=None, help="IANA timezone for trading days.")
@click.pass_context
def setup(
    ctx: click.Context,
    account_type: str,
    balance: Optional[float],
    drawdown: Optional[float],
    daily_limit: Optional[float],
    start_date: Optional[datetime],
    funded: bool,
    timezone: Optional[str],
) -> None:
    """Configure the account's starting balance and risk limits.

    \b
    Examples:
      tradejournal setup --type EVALUATION_50K
      tradejournal setup --balance 25000 --drawdown 1500 --daily-limit 500
    """
    from pydantic import ValidationError

    from tradejournal.config import default_timezone
    from tradejournal.models import (
        AccountConfiguration,
        default_drawdown_amount,
        default_starting_balance,
        validate_account_config,
    )

    account_type = account_type.upper()
    balance = balance or default_starting_balance(account_type)
    if not balance:
        fail("A starting balance is required for this account type (use --balance).")

    try:
        config = AccountConfiguration(
            user_id=get_user_id(ctx),
            starting_balance=balance,
            account_start_date=start_date,
            trailing_drawdown_amount=(
                drawdown if drawdown is not None else default_drawdown_amount(account_type)
            ),
            daily_loss_limit=daily_limit,
            account_type=account_type,
            is_live_funded=funded or account_type == "LIVE_FUNDED",
            timezone=timezone or default_timezone(get_config(ctx)),
        )
    except ValidationError as e:
        fail(f"Invalid account configuration:\n{e}")

    errors = validate_account_config(config)
    if errors:
        fail("\n".join(f"• {error}" for error in errors), title="Invalid Account Configuration")

    get_data_store(ctx).save_account_config(config)
    console.print(Panel(
        f"[bold]Type:[/bold] {config.account_type}\n"
        f"[bold]Starting balance:[/bold] {money(config.starting_balance)}\n"
        f"[bold]Trailing drawdown:[/bold] {money(config.trailing_drawdown_amount)}\n"
        f"[bold]Daily loss limit:[/bold] {money(config.daily_loss_limit)}\n"
        f"[bold]Timezone:[/bold] {config.timezone}",
        title="[bold green]Account Configured[/bold green]",
        border_style="green",
    ))


@click.command()
@click.pass_context
def payout(ctx: click.Context) -> None:
    """Record the first payout on a live-funded account.

    From then on the trailing drawdown limit is pinned to $0.
    """
    store = get_data_store(ctx)
    user_id = get_user_id(ctx)
    config = store.get_account_config(user_id)
    if config is None:
        onboarding_prompt(user_id)
    if not config.is_live_funded:
        fail("Only live funded accounts track payouts. Re-run setup with --funded.")
    if config.first_payout_received:
        console.print("[dim]First payout was already recorded.[/dim]")
        return

    store.mark_first_payout(user_id)
    console.print(Panel(
        "First payout recorded. Trailing drawdown limit is now [bold]$0.00[/bold].",
        title="[bold green]Payout[/bold green]",
        border_style="green",
    ))


@click.command()
@click.pass_context
def metrics(ctx: click.Context) -> None:
    """Display balance, high-water mark, risk limits and fees."""
    from tradejournal.engine import compute_metrics
    from tradejournal.errors import NoAccountConfigured

    store = get_data_store(ctx)
    user_id = get_user_id(ctx)
    try:
        m = compute_metrics(
            store.get_account_config(user_id),
            store.get_trades(user_id),
            registry=get_registry(ctx),
        )
    except NoAccountConfigured:
        onboarding_prompt(user_id)

    table = Table(title=f"Account Metrics ({user_id})", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Current Balance", money(m.current_balance))
    table.add_row("Account High", money(m.account_high))
    table.add_row("Net P&L to Date", money(m.net_pnl_to_date, signed=True))
    table.add_row("Trailing Limit", money(m.trailing_limit))
    table.add_row("Trailing Buffer", money(m.display_trailing_buffer))
    table.add_row(
        "Within Trailing Limit",
        "[green]Yes[/green]" if m.within_trailing_limit else "[bold red]NO[/bold red]",
    )
    table.add_row("Today's P&L", money(m.daily_pnl, signed=True))
    if m.daily_limit is not None:
        table.add_row("Daily Limit", money(m.daily_limit))
        table.add_row("Daily Buffer", money(m.display_daily_buffer))
        table.add_row(
            "Within Daily Limit",
            "[green]Yes[/green]" if m.within_daily_limit else "[bold red]NO[/bold red]",
        )
    table.add_row("Total Fees", money(m.total_fees_to_date))
    table.add_row("Avg Fee / Trade", money(m.average_fee_per_trade))
    table.add_row("Fee Impact Today", f"{m.fee_impact_percentage:.2f}%")
    table.add_row("Broker", m.broker)
    console.print(table)

    if not m.within_trailing_limit:
        console.print(Panel(
            f"Balance {money(m.current_balance)} is below the trailing limit "
            f"{money(m.trailing_limit)} by {money(-m.trailing_buffer)}.",
            title="[bold red]Trailing Drawdown Violated[/bold red]",
            border_style="red",
        ))


@click.command()
@click.option("--history", "days", type=int, default=None, help="Show the last N days of snapshots.")
@click.pass_context
def eod(ctx: click.Context, days: Optional[int]) -> None:
    """Save today's end-of-day snapshot, or show snapshot history.

    \b
    Examples:
      tradejournal eod               # Snapshot today
      tradejournal eod --history 30  # Last 30 days
    """
    from tradejournal.engine import build_daily_snapshot
    from tradejournal.errors import NoAccountConfigured

    store = get_data_store(ctx)
    user_id = get_user_id(ctx)

    if days is not None:
        snapshots = store.get_daily_snapshots(user_id, days=days)
        if not snapshots:
            console.print(Panel("[dim]No snapshots found[/dim]", title="[bold]History[/bold]", border_style="dim"))
            return
        table = Table(title="End-of-Day History", show_header=True, header_style="bold cyan")
        table.add_column("Date", style="bold")
        table.add_column("Balance", justify="right")
        table.add_column("High", justify="right")
        table.add_column("Trailing Limit", justify="right")
        table.add_column("Day P&L", justify="right")
        table.add_column("Trades", justify="right")
        for snap in snapshots:
            table.add_row(
                snap.date.isoformat(),
                money(snap.end_of_day_balance),
                money(snap.account_high),
                money(snap.trailing_limit),
                money(snap.daily_pnl, signed=True),
                str(snap.trades_count),
            )
        console.print(table)
        return

    try:
        snapshot = build_daily_snapshot(
            store.get_account_config(user_id),
            store.get_trades(user_id),
            registry=get_registry(ctx),
        )
    except NoAccountConfigured:
        onboarding_prompt(user_id)
    store.save_daily_snapshot(snapshot)
    console.print(
        f"[green]Saved snapshot for {snapshot.date.isoformat()}:[/green] "
        f"balance {money(snapshot.end_of_day_balance)}, day {money(snapshot.daily_pnl, signed=True)}"
    )
