"""Tests for write-boundary trade checks and duplicate detection.

**Feature: trade-validation**
"""

from datetime import datetime, timedelta

import pytest
import pytz
from hypothesis import given, settings
from hypothesis import strategies as st

from tradejournal.engine import find_duplicate, trade_fingerprint, validate_trade_data
from tradejournal.models import Trade

ENTRY = datetime(2025, 7, 1, 14, 30)


def make_trade(**overrides) -> Trade:
    values = dict(
        symbol="MNQU5",
        side="LONG",
        quantity=1,
        entry_price=20000.0,
        exit_price=20010.0,
        entry_date=ENTRY,
        exit_date=ENTRY + timedelta(minutes=30),
        status="CLOSED",
        gross_pnl=20.0,
        net_pnl=18.66,
        commission=1.34,
        contract_multiplier=2.0,
    )
    values.update(overrides)
    return Trade(**values)


class TestBlockingErrors:
    def test_valid_trade(self):
        result = validate_trade_data(make_trade())
        assert result.is_valid is True
        assert result.errors == []
        assert result.warnings == []

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"entry_price": 0.0}, "Entry price must be a positive number"),
            ({"quantity": -1}, "Quantity must be a positive number"),
            ({"exit_price": -3.0}, "Exit price must be positive if provided"),
            ({"exit_price": None}, "Closed trades require an exit price and exit date"),
            ({"exit_date": None}, "Closed trades require an exit price and exit date"),
            ({"exit_date": ENTRY - timedelta(minutes=1)}, "Exit date cannot be before entry date"),
            ({"net_pnl": float("nan")}, "net_pnl must be a valid number"),
            ({"gross_pnl": float("inf")}, "gross_pnl must be a valid number"),
        ],
    )
    def test_errors(self, overrides, message):
        result = validate_trade_data(make_trade(**overrides))
        assert result.is_valid is False
        assert message in result.errors

    def test_naive_entry_with_aware_exit(self):
        exit_date = pytz.utc.localize(ENTRY + timedelta(minutes=30))
        assert validate_trade_data(make_trade(exit_date=exit_date)).is_valid is True

    def test_aware_exit_before_naive_entry(self):
        # 10:00 in New York is 14:00 UTC, half an hour before the naive entry.
        exit_date = pytz.timezone("America/New_York").localize(datetime(2025, 7, 1, 10, 0))
        result = validate_trade_data(make_trade(exit_date=exit_date))
        assert result.is_valid is False
        assert "Exit date cannot be before entry date" in result.errors

    def test_open_trade_needs_no_exit(self):
        result = validate_trade_data(
            make_trade(status="OPEN", exit_price=None, exit_date=None, gross_pnl=None, net_pnl=None)
        )
        assert result.is_valid is True


class TestWarnings:
    def test_large_move(self):
        result = validate_trade_data(make_trade(exit_price=31000.0, gross_pnl=22000.0, net_pnl=21998.66))
        assert result.is_valid is True
        assert any("Large price change" in w for w in result.warnings)

    def test_high_fees(self):
        trade = make_trade(
            symbol="PENNY", entry_price=1.0, exit_price=1.1, contract_multiplier=1.0,
            gross_pnl=0.1, net_pnl=-1.24,
        )
        result = validate_trade_data(trade)
        assert any("High fees detected" in w for w in result.warnings)

    def test_pnl_mismatch(self):
        result = validate_trade_data(make_trade(net_pnl=20.0))
        assert result.is_valid is True
        assert any("P&L calculation mismatch" in w for w in result.warnings)


class TestDuplicateDetection:
    """
    *For any* trade, a second trade with the same account, symbol, side,
    entry day, price and size is reported as its duplicate.
    """

    @given(
        symbol=st.sampled_from(["MNQU5", "ES", "AAPL"]),
        price=st.floats(min_value=0.01, max_value=100000, allow_nan=False),
        quantity=st.integers(min_value=1, max_value=100),
    )
    @settings(max_examples=50)
    def test_same_fill_is_duplicate(self, symbol, price, quantity):
        stored = make_trade(id=1, symbol=symbol, entry_price=price, quantity=quantity)
        incoming = make_trade(symbol=symbol.lower(), entry_price=price, quantity=quantity,
                              entry_date=ENTRY + timedelta(hours=1))
        assert find_duplicate(incoming, [stored]) == stored

    def test_different_side_is_not_duplicate(self):
        stored = make_trade(id=1)
        assert find_duplicate(make_trade(side="SHORT"), [stored]) is None

    def test_different_day_is_not_duplicate(self):
        stored = make_trade(id=1)
        assert find_duplicate(make_trade(entry_date=ENTRY + timedelta(days=1)), [stored]) is None

    def test_trade_is_not_its_own_duplicate(self):
        stored = make_trade(id=7)
        assert find_duplicate(stored, [stored]) is None

    def test_naive_and_aware_entries_share_a_utc_day(self):
        # 22:30 in New York on June 30 is 02:30 UTC on July 1.
        evening = pytz.timezone("America/New_York").localize(datetime(2025, 6, 30, 22, 30))
        stored = make_trade(id=1, entry_date=evening, exit_date=evening + timedelta(minutes=30))
        assert find_duplicate(make_trade(), [stored]) == stored

    def test_fingerprint_is_stable(self):
        assert trade_fingerprint(make_trade()) == trade_fingerprint(make_trade(net_pnl=1.0))
        assert len(trade_fingerprint(make_trade())) == 64
