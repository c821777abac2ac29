"""TradeJournal - account risk and P&L reconciliation for a trading journal."""

__version__ = "0.1.0"
