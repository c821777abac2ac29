"""Property-based tests for the database store.

**Feature: trade-journal-store**
"""

import sqlite3
import tempfile
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest
import pytz
from hypothesis import given, settings
from hypothesis import strategies as st

from tradejournal.db.store import DataStore
from tradejournal.models import AccountConfiguration, DailySnapshot, Trade


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        yield DataStore(db_path)


def make_trade(**overrides) -> Trade:
    values = dict(
        user_id="trader1",
        symbol="MNQU5",
        side="LONG",
        quantity=1,
        entry_price=20000.0,
        exit_price=20010.0,
        entry_date=datetime(2025, 7, 1, 14, 30, tzinfo=pytz.utc),
        exit_date=datetime(2025, 7, 1, 15, 0, tzinfo=pytz.utc),
        status="CLOSED",
        gross_pnl=20.0,
        net_pnl=18.66,
        commission=1.34,
        contract_multiplier=2.0,
    )
    values.update(overrides)
    return Trade(**values)


class TestDatabaseSchemaCompleteness:
    """
    *For any* fresh database, all required tables (accounts, trades,
    daily_snapshots) should exist.
    """

    def test_schema_completeness(self, temp_db: DataStore):
        """Test that all required tables exist in a fresh database."""
        tables = temp_db.get_tables()

        for table in DataStore.REQUIRED_TABLES:
            assert table in tables, f"Required table '{table}' is missing"

    @given(st.integers(min_value=1, max_value=5))
    @settings(max_examples=10)
    def test_schema_completeness_multiple_instances(self, num_instances: int):
        """Reopening a database is harmless and keeps every table."""
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = Path(tmpdir) / "test.db"
            for i in range(num_instances):
                store = DataStore(db_path)
                tables = store.get_tables()

                for table in DataStore.REQUIRED_TABLES:
                    assert table in tables, f"Required table '{table}' missing on open {i}"


class TestAccountConfigPersistence:
    """
    *For any* saved account configuration, reading it back yields the same
    configuration.
    """

    @given(
        starting_balance=st.floats(min_value=1000, max_value=1_000_000, allow_nan=False),
        drawdown=st.floats(min_value=0, max_value=999, allow_nan=False),
        daily_loss_limit=st.one_of(st.none(), st.floats(min_value=1, max_value=5000, allow_nan=False)),
        is_live_funded=st.booleans(),
        first_payout=st.booleans(),
        timezone=st.sampled_from(["UTC", "America/New_York", "America/Chicago", "Europe/London"]),
    )
    @settings(max_examples=50)
    def test_round_trip(
        self,
        starting_balance: float,
        drawdown: float,
        daily_loss_limit,
        is_live_funded: bool,
        first_payout: bool,
        timezone: str,
    ):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = DataStore(Path(tmpdir) / "test.db")
            config = AccountConfiguration(
                user_id="trader1",
                starting_balance=starting_balance,
                trailing_drawdown_amount=drawdown,
                daily_loss_limit=daily_loss_limit,
                is_live_funded=is_live_funded,
                first_payout_received=first_payout,
                timezone=timezone,
            )
            store.save_account_config(config)
            assert store.get_account_config("trader1") == config

    def test_start_date_is_stored_in_utc(self, temp_db: DataStore):
        config = AccountConfiguration(
            user_id="trader1",
            starting_balance=50000.0,
            account_start_date=datetime(2025, 7, 1, 9, 30),
        )
        temp_db.save_account_config(config)
        loaded = temp_db.get_account_config("trader1")
        assert loaded.account_start_date == datetime(2025, 7, 1, 9, 30, tzinfo=pytz.utc)

    def test_missing_account(self, temp_db: DataStore):
        assert temp_db.get_account_config("nobody") is None

    def test_save_replaces(self, temp_db: DataStore):
        temp_db.save_account_config(AccountConfiguration(user_id="trader1", starting_balance=50000.0))
        temp_db.save_account_config(AccountConfiguration(user_id="trader1", starting_balance=75000.0))
        assert temp_db.get_account_config("trader1").starting_balance == 75000.0
        assert temp_db.get_user_ids() == ["trader1"]

    def test_mark_first_payout(self, temp_db: DataStore):
        temp_db.save_account_config(
            AccountConfiguration(user_id="trader1", starting_balance=50000.0, is_live_funded=True)
        )
        updated = temp_db.mark_first_payout("trader1")
        assert updated.first_payout_received is True
        assert temp_db.get_account_config("trader1").first_payout_received is True
        assert temp_db.mark_first_payout("nobody") is None


class TestLegacyMigration:
    """Older databases keep the drawdown amount in a "max loss limit" column."""

    def _legacy_db(self, path: Path, column: str, value: float) -> None:
        conn = sqlite3.connect(path)
        try:
            conn.execute(
                f"""
                CREATE TABLE accounts (
                    user_id TEXT PRIMARY KEY,
                    starting_balance REAL NOT NULL,
                    account_type TEXT NOT NULL,
                    is_live_funded INTEGER NOT NULL DEFAULT 0,
                    {column} REAL
                )
                """
            )
            conn.execute(
                f"INSERT INTO accounts (user_id, starting_balance, account_type, {column}) "
                "VALUES ('legacy', 50000, 'EVALUATION_50K', ?)",
                (value,),
            )
            conn.commit()
        finally:
            conn.close()

    @pytest.mark.parametrize("column", ["max_loss_limit", "current_mll"])
    def test_legacy_column_is_migrated(self, column: str):
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = Path(tmpdir) / "legacy.db"
            self._legacy_db(db_path, column, 2000.0)

            store = DataStore(db_path)
            config = store.get_account_config("legacy")

            assert config.trailing_drawdown_amount == 2000.0
            assert config.account_type == "EVALUATION_50K"
            assert config.timezone == "UTC"
            assert config.first_payout_received is False

    def test_migration_does_not_override_new_value(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = Path(tmpdir) / "legacy.db"
            self._legacy_db(db_path, "max_loss_limit", 2000.0)
            store = DataStore(db_path)
            store.save_account_config(
                store.get_account_config("legacy").model_copy(update={"trailing_drawdown_amount": 2500.0})
            )

            reopened = DataStore(db_path)
            assert reopened.get_account_config("legacy").trailing_drawdown_amount == 2500.0


class TestTradePersistence:
    """
    *For any* saved trade, reading it back by id yields the same values with
    timestamps normalised to UTC.
    """

    @given(
        side=st.sampled_from(["LONG", "SHORT"]),
        quantity=st.integers(min_value=1, max_value=100),
        entry_price=st.floats(min_value=0.01, max_value=100000, allow_nan=False),
        net_pnl=st.one_of(st.none(), st.floats(min_value=-10000, max_value=10000, allow_nan=False)),
        status=st.sampled_from(["OPEN", "CLOSED", "CANCELLED"]),
    )
    @settings(max_examples=50)
    def test_round_trip(self, side, quantity, entry_price, net_pnl, status):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = DataStore(Path(tmpdir) / "test.db")
            trade = make_trade(
                side=side, quantity=quantity, entry_price=entry_price, net_pnl=net_pnl, status=status
            )
            trade_id = store.save_trade(trade)
            assert trade_id > 0
            assert store.get_trade(trade_id) == trade.model_copy(update={"id": trade_id})

    def test_naive_timestamps_are_read_as_utc(self, temp_db: DataStore):
        trade_id = temp_db.save_trade(make_trade(entry_date=datetime(2025, 7, 1, 14, 30), exit_date=None))
        loaded = temp_db.get_trade(trade_id)
        assert loaded.entry_date == datetime(2025, 7, 1, 14, 30, tzinfo=pytz.utc)
        assert loaded.exit_date is None

    def test_aware_timestamps_are_converted(self, temp_db: DataStore):
        ny = pytz.timezone("America/New_York")
        entry = ny.localize(datetime(2025, 7, 1, 10, 30))
        trade_id = temp_db.save_trade(make_trade(entry_date=entry))
        loaded = temp_db.get_trade(trade_id)
        assert loaded.entry_date == entry
        assert loaded.entry_date.utcoffset() == timedelta(0)

    def test_get_trades_filters(self, temp_db: DataStore):
        base = datetime(2025, 7, 1, 14, 0, tzinfo=pytz.utc)
        for day in range(5):
            temp_db.save_trade(make_trade(entry_date=base + timedelta(days=day), exit_date=None,
                                          status="OPEN" if day == 4 else "CLOSED"))
        temp_db.save_trade(make_trade(user_id="someone_else"))

        assert len(temp_db.get_trades("trader1")) == 5
        assert len(temp_db.get_trades("trader1", status="OPEN")) == 1
        window = temp_db.get_trades(
            "trader1", from_date=base + timedelta(days=1), to_date=base + timedelta(days=3)
        )
        assert [t.entry_date for t in window] == [base + timedelta(days=1), base + timedelta(days=2)]

    def test_get_trades_orders_by_entry(self, temp_db: DataStore):
        base = datetime(2025, 7, 1, 14, 0, tzinfo=pytz.utc)
        temp_db.save_trade(make_trade(entry_date=base + timedelta(hours=2), exit_date=None))
        temp_db.save_trade(make_trade(entry_date=base, exit_date=None))
        dates = [t.entry_date for t in temp_db.get_trades("trader1")]
        assert dates == sorted(dates)

    def test_update_trade(self, temp_db: DataStore):
        trade_id = temp_db.save_trade(make_trade(status="OPEN", exit_price=None, exit_date=None))
        stored = temp_db.get_trade(trade_id)
        temp_db.update_trade(stored.model_copy(update={"status": "CLOSED", "exit_price": 20010.0}))
        updated = temp_db.get_trade(trade_id)
        assert updated.status == "CLOSED"
        assert updated.exit_price == 20010.0

    def test_update_requires_id(self, temp_db: DataStore):
        with pytest.raises(ValueError):
            temp_db.update_trade(make_trade())

    def test_delete_trade(self, temp_db: DataStore):
        trade_id = temp_db.save_trade(make_trade())
        temp_db.delete_trade(trade_id)
        assert temp_db.get_trade(trade_id) is None

    def test_unreadable_rows_are_collected_when_asked(self, temp_db: DataStore):
        temp_db.save_trade(make_trade())
        bad_id = temp_db.save_trade(make_trade())
        conn = sqlite3.connect(temp_db.db_path)
        conn.execute("UPDATE trades SET commission = -1 WHERE id = ?", (bad_id,))
        conn.commit()
        conn.close()

        with pytest.raises(ValueError):
            temp_db.get_trades("trader1")

        rejected: list = []
        trades = temp_db.get_trades("trader1", rejected=rejected)
        assert len(trades) == 1
        assert [row_id for row_id, _ in rejected] == [bad_id]
        assert rejected[0][1].startswith("commission:")


class TestDailySnapshots:
    def _snapshot(self, day: date, balance: float) -> DailySnapshot:
        return DailySnapshot(
            user_id="trader1",
            date=day,
            end_of_day_balance=balance,
            account_high=max(balance, 50000.0),
            trailing_limit=max(balance, 50000.0) - 2000.0,
            net_pnl_to_date=balance - 50000.0,
            daily_pnl=0.0,
            trades_count=0,
        )

    def test_snapshot_upsert(self, temp_db: DataStore):
        today = date(2025, 7, 20)
        temp_db.save_daily_snapshot(self._snapshot(today, 50100.0))
        temp_db.save_daily_snapshot(self._snapshot(today, 50200.0))

        snapshots = temp_db.get_daily_snapshots("trader1", today=today)
        assert len(snapshots) == 1
        assert snapshots[0].end_of_day_balance == 50200.0

    def test_snapshot_window(self, temp_db: DataStore):
        today = date(2025, 7, 20)
        for offset in (0, 5, 40):
            temp_db.save_daily_snapshot(self._snapshot(today - timedelta(days=offset), 50000.0 + offset))

        snapshots = temp_db.get_daily_snapshots("trader1", days=30, today=today)
        assert [s.date for s in snapshots] == [today - timedelta(days=5), today]


class TestStats:
    def test_counts(self, temp_db: DataStore):
        temp_db.save_account_config(AccountConfiguration(user_id="trader1", starting_balance=50000.0))
        temp_db.save_trade(make_trade())
        temp_db.save_trade(make_trade())
        assert temp_db.get_stats() == {"accounts": 1, "trades": 2, "daily_snapshots": 0}
