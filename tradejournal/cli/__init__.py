"""CLI commands for TradeJournal.

This package provides the command-line interface for account setup,
trade entry, metrics and consistency validation.
"""

from tradejournal.cli.main import cli, main

__all__ = ["cli", "main"]
