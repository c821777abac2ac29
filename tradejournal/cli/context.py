"""Shared helpers for CLI commands."""

from typing import Optional

import click
from rich.panel import Panel

from tradejournal.cli.main import console


def _options(ctx: click.Context) -> dict:
    return ctx.find_root().obj or {}


def get_config(ctx: click.Context) -> Optional[dict]:
    """Lazily load configuration, caching it on the context."""
    from tradejournal.config import load_config

    obj = ctx.find_root().ensure_object(dict)
    if "config" not in obj:
        try:
            obj["config"] = load_config()
        except Exception as e:
            console.print(f"[yellow]Ignoring unreadable config file: {e}[/yellow]")
            obj["config"] = None
    return obj["config"]


def get_data_store(ctx: click.Context):
    """Get the data store instance."""
    from tradejournal.config import db_path
    from tradejournal.db.store import DataStore

    path = _options(ctx).get("db_path") or db_path(get_config(ctx))
    return DataStore(path)


def get_registry(ctx: click.Context):
    """Get the fee registry with any config overrides applied."""
    from tradejournal.config import build_registry

    return build_registry(get_config(ctx))


def get_user_id(ctx: click.Context) -> str:
    from tradejournal.config import default_user_id

    return _options(ctx).get("user_id") or default_user_id(get_config(ctx))


def fail(message: str, title: str = "Error") -> None:
    """Print an error panel and exit with status 1."""
    console.print(Panel(message, title=f"[bold red]{title}[/bold red]", border_style="red"))
    raise SystemExit(1)


def onboarding_prompt(user_id: str) -> None:
    """Tell the user to configure the account, then exit."""
    fail(
        f"[yellow]No account configured for '{user_id}'.[/yellow]\n\n"
        "Run [cyan]tradejournal setup[/cyan] to set the starting balance and risk limits.",
        title="Account Not Configured",
    )


def money(value: Optional[float], signed: bool = False) -> str:
    """Format a dollar amount, optionally coloured by sign."""
    if value is None:
        return "-"
    text = f"${abs(value):,.2f}"
    if not signed:
        return f"-{text}" if value < 0 else text
    color = "green" if value >= 0 else "red"
    sign = "+" if value >= 0 else "-"
    return f"[{color}]{sign}{text}[/{color}]"
