"""Diagnostics command for TradeJournal CLI."""

import json

import click
from rich.panel import Panel
from rich.table import Table

from tradejournal.cli.context import get_data_store, get_registry, get_user_id
from tradejournal.cli.main import console

STATUS_STYLES = {
    "PASS": "green",
    "WARNING": "yellow",
    "FAIL": "red",
    "VALID": "green",
    "ERROR": "red",
}


def _print_report(report) -> None:
    table = Table(
        title=f"Consistency Report ({report.user_id})",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Check", style="bold")
    table.add_column("Status")
    table.add_column("Description")
    table.add_column("Expected", justify="right")
    table.add_column("Actual", justify="right")

    for check in report.checks:
        style = STATUS_STYLES[check.status]
        description = check.description
        if check.details:
            description += f"\n[dim]{check.details}[/dim]"
        table.add_row(
            check.type,
            f"[{style}]{check.status}[/{style}]",
            description,
            f"{check.expected_value:,.2f}" if check.expected_value is not None else "-",
            f"{check.actual_value:,.2f}" if check.actual_value is not None else "-",
        )
    console.print(table)

    style = STATUS_STYLES[report.overall_status]
    summary = report.summary
    console.print(Panel(
        f"[{style}]{report.overall_status}[/{style}]  "
        f"{summary.passed_checks} passed, {summary.warning_checks} warnings, "
        f"{summary.failed_checks} failed of {summary.total_checks} checks",
        border_style=style,
    ))


@click.command()
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the report as JSON.")
@click.option("--all", "all_accounts", is_flag=True, default=False, help="Validate every account.")
@click.option("--strict", is_flag=True, default=False, help="Exit 1 when any report is ERROR.")
@click.pass_context
def validate(ctx: click.Context, as_json: bool, all_accounts: bool, strict: bool) -> None:
    """Cross-check stored P&L, balance, fees and drawdown figures.

    Read-only: nothing in the database is changed.

    \b
    Examples:
      tradejournal validate
      tradejournal validate --all --json
    """
    from tradejournal.engine import validate as run_validation
    from tradejournal.engine import validate_all

    store = get_data_store(ctx)
    registry = get_registry(ctx)
    if all_accounts:
        reports = validate_all(store, registry=registry)
    else:
        reports = [run_validation(get_user_id(ctx), store, registry=registry)]

    if as_json:
        payload = [r.to_dict() for r in reports]
        click.echo(json.dumps(payload if all_accounts else payload[0], indent=2))
    else:
        if not reports:
            console.print("[dim]No configured accounts to validate.[/dim]")
        for report in reports:
            _print_report(report)

    if strict and any(r.overall_status == "ERROR" for r in reports):
        raise SystemExit(1)
