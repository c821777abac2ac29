"""Tests for the consistency validator.

**Feature: consistency-validator**
"""

import json
import sqlite3
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest
import pytz

from tradejournal.db.store import DataStore
from tradejournal.engine import ConsistencyValidator, validate, validate_all
from tradejournal.engine import validator as validator_module
from tradejournal.models import AccountConfiguration, Trade
from tradejournal.registry import FeeRegistry, FeeSchedule

NOW = datetime(2025, 7, 20, 18, 0, tzinfo=pytz.utc)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        yield DataStore(db_path)


@pytest.fixture
def itemized_registry():
    return FeeRegistry(
        fee_schedules={
            "TOPSTEP": FeeSchedule(
                commission_per_round_trip=1.34,
                entry_fee_per_unit=0.05,
                exit_fee_per_unit=0.05,
            )
        }
    )


def make_config(**overrides) -> AccountConfiguration:
    values = dict(
        user_id="trader1",
        starting_balance=50000.0,
        trailing_drawdown_amount=2000.0,
        account_type="EVALUATION_50K",
    )
    values.update(overrides)
    return AccountConfiguration(**values)


def make_trade(day: int = 1, **overrides) -> Trade:
    entry = datetime(2025, 7, day, 14, 0, tzinfo=pytz.utc)
    values = dict(
        user_id="trader1",
        symbol="MNQU5",
        side="LONG",
        quantity=1,
        entry_price=20000.0,
        exit_price=20010.0,
        entry_date=entry,
        exit_date=entry + timedelta(minutes=30),
        status="CLOSED",
        gross_pnl=20.0,
        net_pnl=18.66,
        commission=1.34,
    )
    values.update(overrides)
    return Trade(**values)


def seed(store: DataStore, config=None, trades=()) -> None:
    if config is not None:
        store.save_account_config(config)
    for trade in trades:
        store.save_trade(trade)


def checks_of(report, check_type: str) -> list:
    return [c for c in report.checks if c.type == check_type]


class TestValidAccount:
    def test_consistent_account_is_valid(self, temp_db: DataStore):
        seed(temp_db, make_config(), [make_trade(1), make_trade(2)])
        report = validate("trader1", temp_db, now=NOW)

        assert report.overall_status == "VALID"
        assert report.user_id == "trader1"
        assert report.timestamp == NOW
        assert [c.type for c in report.checks] == [
            "P&L_CONSISTENCY",
            "BALANCE_CONSISTENCY",
            "FEE_CONSISTENCY",
            "DRAWDOWN_CONSISTENCY",
            "DATA_INTEGRITY",
            "DATA_INTEGRITY",
        ]
        assert all(c.status == "PASS" for c in report.checks)
        assert report.summary.total_checks == 6
        assert report.summary.passed_checks == 6

        balance = checks_of(report, "BALANCE_CONSISTENCY")[0]
        assert balance.expected_value == 50037.32
        assert balance.actual_value == 50037.32

    def test_empty_account_is_valid(self, temp_db: DataStore):
        seed(temp_db, make_config())
        report = validate("trader1", temp_db, now=NOW)
        assert report.overall_status == "VALID"


class TestPnLTolerance:
    """net must equal gross - fees within one cent."""

    def _trade(self, net: float) -> Trade:
        return make_trade(
            quantity=2,
            exit_price=20037.5,
            gross_pnl=150.0,
            net_pnl=net,
            commission=2.68,
            entry_fees=0.10,
            exit_fees=0.10,
        )

    def test_two_cent_gap_fails(self, temp_db: DataStore, itemized_registry):
        seed(temp_db, make_config(), [self._trade(147.10)])
        report = validate("trader1", temp_db, registry=itemized_registry, now=NOW)

        pnl = checks_of(report, "P&L_CONSISTENCY")[0]
        assert pnl.status == "FAIL"
        assert pnl.expected_value == 147.12
        assert pnl.actual_value == 147.10
        assert pnl.tolerance == 0.01
        assert "1 out of 1" in pnl.description
        assert report.overall_status == "ERROR"

    def test_half_cent_gap_passes(self, temp_db: DataStore, itemized_registry):
        seed(temp_db, make_config(), [self._trade(147.115)])
        report = validate("trader1", temp_db, registry=itemized_registry, now=NOW)

        assert checks_of(report, "P&L_CONSISTENCY")[0].status == "PASS"
        assert checks_of(report, "FEE_CONSISTENCY")[0].status == "PASS"
        assert report.overall_status == "VALID"

    def test_open_trades_are_not_checked(self, temp_db: DataStore):
        seed(temp_db, make_config(), [make_trade(status="OPEN", net_pnl=999.0)])
        report = validate("trader1", temp_db, now=NOW)
        assert checks_of(report, "P&L_CONSISTENCY")[0].status == "PASS"


class TestFeeConsistency:
    def test_fee_mismatch_only_warns(self, temp_db: DataStore):
        trade = make_trade(commission=2.00, net_pnl=18.0)
        seed(temp_db, make_config(), [make_trade(1), trade])
        report = validate("trader1", temp_db, now=NOW)

        fee = checks_of(report, "FEE_CONSISTENCY")[0]
        assert fee.status == "WARNING"
        assert "1 out of 2" in fee.description
        assert report.overall_status == "WARNING"

    def test_non_futures_trades_are_skipped(self, temp_db: DataStore):
        stock = make_trade(symbol="AAPL", market="STOCK", commission=0.0, gross_pnl=10.0, net_pnl=10.0)
        seed(temp_db, make_config(), [stock])
        report = validate("trader1", temp_db, now=NOW)
        fee = checks_of(report, "FEE_CONSISTENCY")[0]
        assert fee.status == "PASS"
        assert "All 0 futures trades" in fee.description


class TestDrawdownConsistency:
    def test_payout_pins_expected_limit(self, temp_db: DataStore):
        config = make_config(account_type="LIVE_FUNDED", is_live_funded=True, first_payout_received=True)
        seed(temp_db, config, [make_trade(1)])
        report = validate("trader1", temp_db, now=NOW)
        drawdown = checks_of(report, "DRAWDOWN_CONSISTENCY")
        assert [c.status for c in drawdown] == ["PASS"]
        assert drawdown[0].expected_value == 0.0

    def test_wrong_limit_fails(self, temp_db: DataStore, monkeypatch):
        seed(temp_db, make_config(), [make_trade(1)])
        real = validator_module.compute_metrics

        def skewed(*args, **kwargs):
            return real(*args, **kwargs).model_copy(update={"trailing_limit": 47000.0})

        monkeypatch.setattr(validator_module, "compute_metrics", skewed)
        report = validate("trader1", temp_db, now=NOW)

        drawdown = checks_of(report, "DRAWDOWN_CONSISTENCY")[0]
        assert drawdown.status == "FAIL"
        assert drawdown.expected_value == 48018.66
        assert drawdown.actual_value == 47000.0
        assert report.overall_status == "ERROR"

    def test_stale_high_warns(self, temp_db: DataStore, monkeypatch):
        seed(temp_db, make_config(), [make_trade(1)])
        real = validator_module.compute_metrics

        def stale(*args, **kwargs):
            metrics = real(*args, **kwargs)
            return metrics.model_copy(
                update={"account_high": 50000.0, "trailing_limit": 48000.0}
            )

        monkeypatch.setattr(validator_module, "compute_metrics", stale)
        report = validate("trader1", temp_db, now=NOW)

        drawdown = checks_of(report, "DRAWDOWN_CONSISTENCY")
        assert [c.status for c in drawdown] == ["WARNING", "PASS"]
        assert drawdown[0].description == "Account high is less than current balance"
        assert report.overall_status == "WARNING"


class TestBalanceConsistency:
    def test_reported_balance_mismatch_fails(self, temp_db: DataStore, monkeypatch):
        seed(temp_db, make_config(), [make_trade(1)])
        real = validator_module.compute_metrics

        def skewed(*args, **kwargs):
            return real(*args, **kwargs).model_copy(update={"current_balance": 50100.0})

        monkeypatch.setattr(validator_module, "compute_metrics", skewed)
        report = validate("trader1", temp_db, now=NOW)

        balance = checks_of(report, "BALANCE_CONSISTENCY")[0]
        assert balance.status == "FAIL"
        assert balance.expected_value == 50018.66
        assert balance.actual_value == 50100.0
        assert "81.34" in balance.details


class TestDataIntegrity:
    def test_invalid_prices_fail(self, temp_db: DataStore):
        bad = make_trade(entry_price=-5.0, gross_pnl=None, net_pnl=None)
        seed(temp_db, make_config(), [make_trade(1), bad])
        report = validate("trader1", temp_db, now=NOW)

        integrity = checks_of(report, "DATA_INTEGRITY")
        assert integrity[0].status == "FAIL"
        assert "1 trades" in integrity[0].description
        assert report.overall_status == "ERROR"

    def test_incomplete_closed_trade_warns(self, temp_db: DataStore):
        incomplete = make_trade(exit_date=None, gross_pnl=None, net_pnl=None, commission=1.34)
        seed(temp_db, make_config(), [incomplete])
        report = validate("trader1", temp_db, now=NOW)

        integrity = checks_of(report, "DATA_INTEGRITY")
        assert [c.status for c in integrity] == ["PASS", "WARNING"]
        assert report.overall_status == "WARNING"

    def test_unreadable_row_is_named_and_others_still_checked(self, temp_db: DataStore):
        seed(temp_db, make_config(), [make_trade(1, net_pnl=10.0), make_trade(2)])
        conn = sqlite3.connect(temp_db.db_path)
        conn.execute("UPDATE trades SET contract_multiplier = 0 WHERE id = 2")
        conn.commit()
        conn.close()

        report = validate("trader1", temp_db, now=NOW)

        unreadable = checks_of(report, "DATA_INTEGRITY")[0]
        assert unreadable.status == "FAIL"
        assert unreadable.description == "1 stored trades could not be read"
        assert "Trades: 2." in unreadable.details
        assert "contract_multiplier" in unreadable.details

        pnl = checks_of(report, "P&L_CONSISTENCY")[0]
        assert pnl.status == "FAIL"
        assert pnl.details.endswith("trades: 1")
        balance = checks_of(report, "BALANCE_CONSISTENCY")[0]
        assert balance.status == "PASS"
        assert balance.expected_value == 50010.0
        assert not any(c.description.startswith("Failed to run") for c in report.checks)


class TestIsolation:
    """A check that cannot complete never stops the others."""

    def test_missing_config_degrades_to_warnings(self, temp_db: DataStore):
        seed(temp_db, None, [make_trade(1, data_source="topstep")])
        report = validate("trader1", temp_db, now=NOW)

        assert checks_of(report, "BALANCE_CONSISTENCY")[0].status == "WARNING"
        assert checks_of(report, "DRAWDOWN_CONSISTENCY")[0].status == "WARNING"
        assert checks_of(report, "P&L_CONSISTENCY")[0].status == "PASS"
        assert checks_of(report, "FEE_CONSISTENCY")[0].status == "PASS"
        assert report.summary.failed_checks == 0
        assert report.overall_status == "WARNING"

    def test_failing_trade_read_becomes_fail_checks(self):
        class BrokenTradesStore:
            def get_account_config(self, user_id):
                return make_config()

            def get_trades(self, user_id, rejected=None):
                raise RuntimeError("database is locked")

        report = ConsistencyValidator(BrokenTradesStore()).run("trader1", now=NOW)

        assert report.overall_status == "ERROR"
        assert {c.type for c in report.checks} == {
            "P&L_CONSISTENCY",
            "BALANCE_CONSISTENCY",
            "FEE_CONSISTENCY",
            "DRAWDOWN_CONSISTENCY",
            "DATA_INTEGRITY",
        }
        assert all(c.status == "FAIL" for c in report.checks)
        assert all(c.details == "database is locked" for c in report.checks)

    def test_failing_config_read_leaves_trade_checks_running(self):
        class BrokenConfigStore:
            def get_account_config(self, user_id):
                raise RuntimeError("corrupt row")

            def get_trades(self, user_id, rejected=None):
                return [make_trade(1)]

        report = ConsistencyValidator(BrokenConfigStore()).run("trader1", now=NOW)

        assert checks_of(report, "P&L_CONSISTENCY")[0].status == "PASS"
        assert [c.status for c in checks_of(report, "DATA_INTEGRITY")] == ["PASS", "PASS"]
        assert checks_of(report, "BALANCE_CONSISTENCY")[0].status == "FAIL"
        assert report.overall_status == "ERROR"

    def test_validation_does_not_write(self, temp_db: DataStore):
        seed(temp_db, make_config(), [make_trade(1), make_trade(2, net_pnl=5.0)])
        before = temp_db.db_path.read_bytes()
        validate("trader1", temp_db, now=NOW)
        assert temp_db.db_path.read_bytes() == before


class TestReportShape:
    def test_to_dict_uses_camel_case(self, temp_db: DataStore):
        seed(temp_db, make_config(), [make_trade(1)])
        data = validate("trader1", temp_db, now=NOW).to_dict()

        assert set(data) == {"userId", "timestamp", "overallStatus", "checks", "summary"}
        assert data["overallStatus"] == "VALID"
        assert data["summary"] == {
            "totalChecks": 6,
            "passedChecks": 6,
            "warningChecks": 0,
            "failedChecks": 0,
        }
        balance = data["checks"][1]
        assert balance["type"] == "BALANCE_CONSISTENCY"
        assert balance["expectedValue"] == 50018.66
        assert "details" not in balance
        assert "tolerance" not in balance
        json.dumps(data)

    def test_status_precedence(self):
        from tradejournal.models import ValidationCheck, ValidationReport

        def check(status):
            return ValidationCheck(type="DATA_INTEGRITY", status=status, description=status)

        assert ValidationReport.from_checks("u", [check("PASS")], NOW).overall_status == "VALID"
        assert ValidationReport.from_checks("u", [check("PASS"), check("WARNING")], NOW).overall_status == "WARNING"
        assert (
            ValidationReport.from_checks("u", [check("WARNING"), check("FAIL")], NOW).overall_status
            == "ERROR"
        )


class TestValidateAll:
    def test_reports_every_account(self, temp_db: DataStore):
        seed(temp_db, make_config(), [make_trade(1)])
        seed(temp_db, make_config(user_id="trader2"), [make_trade(1, user_id="trader2")])
        reports = validate_all(temp_db, now=NOW)
        assert [r.user_id for r in reports] == ["trader1", "trader2"]
        assert all(r.overall_status == "VALID" for r in reports)

    def test_crashed_run_becomes_error_report(self, temp_db: DataStore, monkeypatch):
        seed(temp_db, make_config(), [make_trade(1)])
        seed(temp_db, make_config(user_id="trader2"))
        real_run = ConsistencyValidator.run

        def run(self, user_id, now=None):
            if user_id == "trader1":
                raise RuntimeError("boom")
            return real_run(self, user_id, now=now)

        monkeypatch.setattr(ConsistencyValidator, "run", run)
        reports = validate_all(temp_db, now=NOW)

        assert reports[0].overall_status == "ERROR"
        assert reports[0].checks[0].details == "boom"
        assert reports[1].overall_status == "VALID"
