"""Error taxonomy for TradeJournal."""


class TradeJournalError(Exception):
    """Base class for TradeJournal errors."""


class InvalidTradeInput(TradeJournalError, ValueError):
    """Raised when a trade has non-positive prices or quantity.

    Callers must reject the write before it reaches storage.
    """


class NoAccountConfigured(TradeJournalError, LookupError):
    """Raised when metrics are requested for an account with no configuration."""

    def __init__(self, user_id: str | None = None):
        self.user_id = user_id
        message = "No account configuration found"
        if user_id:
            message += f" for user '{user_id}'"
        super().__init__(message)
