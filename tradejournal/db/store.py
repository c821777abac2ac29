"""SQLite data store for TradeJournal."""

import logging
import sqlite3
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from tradejournal.models import AccountConfiguration, DailySnapshot, Trade
from tradejournal.timezones import to_utc

logger = logging.getLogger(__name__)

_TRADE_COLUMNS = (
    "user_id, symbol, side, quantity, entry_price, exit_price, entry_date, exit_date, "
    "market, status, gross_pnl, net_pnl, commission, entry_fees, exit_fees, swap, "
    "contract_multiplier, data_source"
)

# Columns earlier releases used for the trailing drawdown amount.
_LEGACY_DRAWDOWN_COLUMNS = ("max_loss_limit", "current_mll")

# Columns missing from accounts tables created by earlier releases.
_ADDED_ACCOUNT_COLUMNS = {
    "account_start_date": "TEXT",
    "account_type": "TEXT NOT NULL DEFAULT 'CUSTOM'",
    "is_live_funded": "INTEGER NOT NULL DEFAULT 0",
    "trailing_drawdown_amount": "REAL NOT NULL DEFAULT 0",
    "daily_loss_limit": "REAL",
    "first_payout_received": "INTEGER NOT NULL DEFAULT 0",
    "timezone": "TEXT NOT NULL DEFAULT 'UTC'",
}


def _dt(value: Optional[datetime]) -> Optional[str]:
    return to_utc(value).isoformat() if value is not None else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _reason(error: Exception) -> str:
    if isinstance(error, ValidationError):
        first = error.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        return f"{field}: {first['msg']}" if field else first["msg"]
    return str(error)


class DataStore:
    """SQLite-based store for accounts, trades and daily snapshots."""

    REQUIRED_TABLES = [
        "accounts",
        "trades",
        "daily_snapshots",
    ]

    def __init__(self, db_path: Path):
        """Initialize the data store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._ensure_db_dir()
        self._init_schema()
        self._migrate_legacy_columns()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()

            # Accounts table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    user_id TEXT PRIMARY KEY,
                    starting_balance REAL NOT NULL,
                    account_start_date TEXT,
                    trailing_drawdown_amount REAL NOT NULL DEFAULT 0,
                    daily_loss_limit REAL,
                    account_type TEXT NOT NULL DEFAULT 'CUSTOM',
                    is_live_funded INTEGER NOT NULL DEFAULT 0,
                    first_payout_received INTEGER NOT NULL DEFAULT 0,
                    timezone TEXT NOT NULL DEFAULT 'UTC'
                )
            """)

            # Trades table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS trades (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    quantity REAL NOT NULL,
                    entry_price REAL NOT NULL,
                    exit_price REAL,
                    entry_date TEXT NOT NULL,
                    exit_date TEXT,
                    market TEXT NOT NULL DEFAULT 'FUTURES',
                    status TEXT NOT NULL DEFAULT 'OPEN',
                    gross_pnl REAL,
                    net_pnl REAL,
                    commission REAL NOT NULL DEFAULT 0,
                    entry_fees REAL NOT NULL DEFAULT 0,
                    exit_fees REAL NOT NULL DEFAULT 0,
                    swap REAL NOT NULL DEFAULT 0,
                    contract_multiplier REAL NOT NULL DEFAULT 1,
                    data_source TEXT NOT NULL DEFAULT 'manual'
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_trades_user_entry ON trades (user_id, entry_date)"
            )

            # Daily snapshots table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS daily_snapshots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    date TEXT NOT NULL,
                    end_of_day_balance REAL NOT NULL,
                    account_high REAL NOT NULL,
                    trailing_limit REAL NOT NULL,
                    net_pnl_to_date REAL NOT NULL,
                    daily_pnl REAL NOT NULL,
                    trades_count INTEGER NOT NULL,
                    UNIQUE(user_id, date)
                )
            """)

            conn.commit()
        finally:
            conn.close()

    def _migrate_legacy_columns(self) -> None:
        """Copy retired "max loss limit" columns into trailing_drawdown_amount once."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("PRAGMA table_info(accounts)")
            columns = {row["name"] for row in cursor.fetchall()}
            for column, ddl in _ADDED_ACCOUNT_COLUMNS.items():
                if column not in columns:
                    cursor.execute(f"ALTER TABLE accounts ADD COLUMN {column} {ddl}")
            for legacy in _LEGACY_DRAWDOWN_COLUMNS:
                if legacy not in columns:
                    continue
                cursor.execute(
                    f"""
                    UPDATE accounts SET trailing_drawdown_amount = {legacy}
                    WHERE (trailing_drawdown_amount IS NULL OR trailing_drawdown_amount = 0)
                    AND {legacy} IS NOT NULL AND {legacy} > 0
                    """
                )
                if cursor.rowcount:
                    logger.info("Migrated %d accounts from legacy column %s", cursor.rowcount, legacy)
            conn.commit()
        finally:
            conn.close()

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]
        finally:
            conn.close()

    # ==================== Accounts ====================

    def save_account_config(self, config: AccountConfiguration) -> None:
        """Create or replace an account configuration.

        Args:
            config: Configuration to save.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR REPLACE INTO accounts
                (user_id, starting_balance, account_start_date, trailing_drawdown_amount,
                 daily_loss_limit, account_type, is_live_funded, first_payout_received, timezone)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    config.user_id,
                    config.starting_balance,
                    _dt(config.account_start_date),
                    config.trailing_drawdown_amount,
                    config.daily_loss_limit,
                    config.account_type,
                    1 if config.is_live_funded else 0,
                    1 if config.first_payout_received else 0,
                    config.timezone,
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_account_config(self, user_id: str) -> Optional[AccountConfiguration]:
        """Get an account configuration.

        Args:
            user_id: Account owner.

        Returns:
            AccountConfiguration if configured, None otherwise.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM accounts WHERE user_id = ?", (user_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            return AccountConfiguration(
                user_id=row["user_id"],
                starting_balance=row["starting_balance"],
                account_start_date=_parse_dt(row["account_start_date"]),
                trailing_drawdown_amount=row["trailing_drawdown_amount"] or 0.0,
                daily_loss_limit=row["daily_loss_limit"],
                account_type=row["account_type"],
                is_live_funded=bool(row["is_live_funded"]),
                first_payout_received=bool(row["first_payout_received"]),
                timezone=row["timezone"],
            )
        finally:
            conn.close()

    def mark_first_payout(self, user_id: str) -> Optional[AccountConfiguration]:
        """Record the first payout for an account.

        Returns:
            The updated configuration, or None if the account does not exist.
        """
        config = self.get_account_config(user_id)
        if config is None:
            return None
        updated = config.with_first_payout()
        self.save_account_config(updated)
        logger.info("Recorded first payout for %s", user_id)
        return updated

    def get_user_ids(self) -> list[str]:
        """Get all configured account owners."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT user_id FROM accounts ORDER BY user_id")
            return [row["user_id"] for row in cursor.fetchall()]
        finally:
            conn.close()

    # ==================== Trades ====================

    def _trade_values(self, trade: Trade) -> tuple:
        return (
            trade.user_id,
            trade.symbol,
            trade.side,
            trade.quantity,
            trade.entry_price,
            trade.exit_price,
            _dt(trade.entry_date),
            _dt(trade.exit_date),
            trade.market,
            trade.status,
            trade.gross_pnl,
            trade.net_pnl,
            trade.commission,
            trade.entry_fees,
            trade.exit_fees,
            trade.swap,
            trade.contract_multiplier,
            trade.data_source,
        )

    @staticmethod
    def _row_to_trade(row: sqlite3.Row) -> Trade:
        return Trade(
            id=row["id"],
            user_id=row["user_id"],
            symbol=row["symbol"],
            side=row["side"],
            quantity=row["quantity"],
            entry_price=row["entry_price"],
            exit_price=row["exit_price"],
            entry_date=datetime.fromisoformat(row["entry_date"]),
            exit_date=_parse_dt(row["exit_date"]),
            market=row["market"],
            status=row["status"],
            gross_pnl=row["gross_pnl"],
            net_pnl=row["net_pnl"],
            commission=row["commission"],
            entry_fees=row["entry_fees"],
            exit_fees=row["exit_fees"],
            swap=row["swap"],
            contract_multiplier=row["contract_multiplier"],
            data_source=row["data_source"],
        )

    def save_trade(self, trade: Trade) -> int:
        """Insert a trade.

        Args:
            trade: Trade to save. Its id is ignored.

        Returns:
            The ID of the saved trade.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                INSERT INTO trades ({_TRADE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                self._trade_values(trade),
            )
            conn.commit()
            return cursor.lastrowid or 0
        finally:
            conn.close()

    def update_trade(self, trade: Trade) -> None:
        """Overwrite a stored trade with new field values.

        Raises:
            ValueError: If the trade has no id.
        """
        if trade.id is None:
            raise ValueError("Cannot update a trade without an id")
        assignments = ", ".join(f"{col.strip()} = ?" for col in _TRADE_COLUMNS.split(","))
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                f"UPDATE trades SET {assignments} WHERE id = ?",
                (*self._trade_values(trade), trade.id),
            )
            conn.commit()
        finally:
            conn.close()

    def get_trade(self, trade_id: int) -> Optional[Trade]:
        """Get a trade by ID.

        Returns:
            Trade if found, None otherwise.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(f"SELECT id, {_TRADE_COLUMNS} FROM trades WHERE id = ?", (trade_id,))
            row = cursor.fetchone()
            return self._row_to_trade(row) if row else None
        finally:
            conn.close()

    def get_trades(
        self,
        user_id: str,
        status: Optional[str] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        rejected: Optional[list[tuple[int, str]]] = None,
    ) -> list[Trade]:
        """Get an account's trades ordered by entry date.

        Args:
            user_id: Account owner.
            status: Optional status filter (OPEN, CLOSED, CANCELLED).
            from_date: Optional inclusive lower bound on entry date.
            to_date: Optional exclusive upper bound on entry date.
            rejected: When given, rows that no longer load as a Trade are
                skipped and appended here as (id, reason) instead of raising.

        Returns:
            List of trades.
        """
        query = f"SELECT id, {_TRADE_COLUMNS} FROM trades WHERE user_id = ?"
        params: list = [user_id]
        if status:
            query += " AND status = ?"
            params.append(status)
        if from_date:
            query += " AND entry_date >= ?"
            params.append(_dt(from_date))
        if to_date:
            query += " AND entry_date < ?"
            params.append(_dt(to_date))
        query += " ORDER BY entry_date, id"

        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(query, params)
            if rejected is None:
                return [self._row_to_trade(row) for row in cursor.fetchall()]

            trades = []
            for row in cursor.fetchall():
                try:
                    trades.append(self._row_to_trade(row))
                except ValueError as e:
                    logger.warning("Skipping unreadable trade #%s: %s", row["id"], e)
                    rejected.append((row["id"], _reason(e)))
            return trades
        finally:
            conn.close()

    def delete_trade(self, trade_id: int) -> None:
        """Delete a trade.

        Args:
            trade_id: ID of the trade to delete.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM trades WHERE id = ?", (trade_id,))
            conn.commit()
        finally:
            conn.close()

    # ==================== Daily Snapshots ====================

    def save_daily_snapshot(self, snapshot: DailySnapshot) -> None:
        """Save or replace the snapshot for an account and day.

        Args:
            snapshot: Snapshot to save.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR REPLACE INTO daily_snapshots
                (user_id, date, end_of_day_balance, account_high, trailing_limit,
                 net_pnl_to_date, daily_pnl, trades_count)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    snapshot.user_id,
                    snapshot.date.isoformat(),
                    snapshot.end_of_day_balance,
                    snapshot.account_high,
                    snapshot.trailing_limit,
                    snapshot.net_pnl_to_date,
                    snapshot.daily_pnl,
                    snapshot.trades_count,
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_daily_snapshots(
        self, user_id: str, days: int = 30, today: Optional[date] = None
    ) -> list[DailySnapshot]:
        """Get recent snapshots, oldest first.

        Args:
            user_id: Account owner.
            days: How many days back to include.
            today: Reference day. Defaults to today.

        Returns:
            List of snapshots.
        """
        since = (today or date.today()) - timedelta(days=days)
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT user_id, date, end_of_day_balance, account_high, trailing_limit,
                       net_pnl_to_date, daily_pnl, trades_count
                FROM daily_snapshots
                WHERE user_id = ? AND date >= ?
                ORDER BY date
                """,
                (user_id, since.isoformat()),
            )
            return [
                DailySnapshot(
                    user_id=row["user_id"],
                    date=date.fromisoformat(row["date"]),
                    end_of_day_balance=row["end_of_day_balance"],
                    account_high=row["account_high"],
                    trailing_limit=row["trailing_limit"],
                    net_pnl_to_date=row["net_pnl_to_date"],
                    daily_pnl=row["daily_pnl"],
                    trades_count=row["trades_count"],
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    # ==================== Stats ====================

    def get_stats(self) -> dict:
        """Get database statistics.

        Returns:
            Dictionary with table record counts.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            stats = {}
            for table in self.REQUIRED_TABLES:
                cursor.execute(f"SELECT COUNT(*) as count FROM {table}")
                stats[table] = cursor.fetchone()["count"]
            return stats
        finally:
            conn.close()
