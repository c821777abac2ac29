"""Read-only consistency checks over stored trades and account metrics.

Each check runs in isolation: a check that cannot complete records a
WARNING or FAIL entry and the remaining checks still run. Nothing here
writes to the store.
"""

import logging
from datetime import datetime
from functools import cached_property
from typing import Callable, Optional

import pytz

from tradejournal.errors import InvalidTradeInput, NoAccountConfigured
from tradejournal.models import AccountConfiguration, Trade, ValidationCheck, ValidationReport
from tradejournal.models.report import CheckType
from tradejournal.engine.metrics import compute_metrics, relevant_trades
from tradejournal.money import TOLERANCE, check_tolerance, round_currency
from tradejournal.registry import FeeRegistry, default_registry

logger = logging.getLogger(__name__)

# How many offending trade ids to list in a check's details.
MAX_LISTED_IDS = 10


def _list_ids(ids: list) -> str:
    listed = ", ".join(str(i) for i in ids[:MAX_LISTED_IDS])
    if len(ids) > MAX_LISTED_IDS:
        listed += f" (+{len(ids) - MAX_LISTED_IDS} more)"
    return listed


def _ids(trades: list[Trade]) -> str:
    return _list_ids([t.id for t in trades])


class _RunContext:
    """Reads for one validator run, fetched on first use.

    A failed read is not cached, so every check that needs it sees the
    error for itself.
    """

    def __init__(self, store, user_id: str, registry: FeeRegistry, now: datetime):
        self.store = store
        self.user_id = user_id
        self.registry = registry
        self.now = now

    @cached_property
    def config(self) -> Optional[AccountConfiguration]:
        return self.store.get_account_config(self.user_id)

    @cached_property
    def _loaded(self) -> tuple[list[Trade], list[tuple[int, str]]]:
        rejected: list[tuple[int, str]] = []
        trades = self.store.get_trades(self.user_id, rejected=rejected)
        return trades, rejected

    @property
    def trades(self) -> list[Trade]:
        return self._loaded[0]

    @property
    def unreadable(self) -> list[tuple[int, str]]:
        """Stored rows skipped because they no longer load as trades."""
        return self._loaded[1]

    @cached_property
    def metrics(self):
        if self.config is None:
            raise NoAccountConfigured(self.user_id)
        return compute_metrics(self.config, self.trades, now=self.now, registry=self.registry)


class ConsistencyValidator:
    """Cross-checks persisted P&L, balance, fee and drawdown figures.

    The store must provide ``get_account_config(user_id)`` and
    ``get_trades(user_id, rejected=list)``. Rows the store cannot load are
    reported by the data integrity check and left out of the others.
    """

    def __init__(self, store, registry: Optional[FeeRegistry] = None):
        """Initialize the validator.

        Args:
            store: Read access to trades and account configuration.
            registry: Fee registry used to recompute expected fees.
        """
        self.store = store
        self.registry = registry or default_registry

    def run(self, user_id: str, now: Optional[datetime] = None) -> ValidationReport:
        """Run every check for one account.

        Args:
            user_id: Account to validate.
            now: Reference moment for metrics and the report timestamp.

        Returns:
            ValidationReport; never raises for bad data.
        """
        now = now or datetime.now(pytz.utc)
        ctx = _RunContext(self.store, user_id, self.registry, now)
        checks: list[ValidationCheck] = []
        for check_type, check in self._checks():
            checks.extend(self._isolated(check_type, check, ctx))

        report = ValidationReport.from_checks(user_id, checks, timestamp=now)
        logger.info(
            "Validation for %s: %s (%d passed, %d warnings, %d failed)",
            user_id,
            report.overall_status,
            report.summary.passed_checks,
            report.summary.warning_checks,
            report.summary.failed_checks,
        )
        return report

    def _checks(self) -> list[tuple[CheckType, Callable[[_RunContext], list[ValidationCheck]]]]:
        return [
            ("P&L_CONSISTENCY", self.check_pnl_consistency),
            ("BALANCE_CONSISTENCY", self.check_balance_consistency),
            ("FEE_CONSISTENCY", self.check_fee_consistency),
            ("DRAWDOWN_CONSISTENCY", self.check_drawdown_consistency),
            ("DATA_INTEGRITY", self.check_data_integrity),
        ]

    def _isolated(self, check_type: CheckType, check, ctx: _RunContext) -> list[ValidationCheck]:
        try:
            return check(ctx)
        except Exception as e:
            logger.warning("%s check failed for %s: %s", check_type, ctx.user_id, e, exc_info=True)
            return [
                ValidationCheck(
                    type=check_type,
                    status="FAIL",
                    description=f"Failed to run {check_type.lower().replace('_', ' ')} check",
                    details=str(e) or type(e).__name__,
                )
            ]

    # ==================== Checks ====================

    def check_pnl_consistency(self, ctx: _RunContext) -> list[ValidationCheck]:
        """Closed trades must satisfy net = gross - fees within tolerance."""
        candidates = [
            t for t in ctx.trades
            if t.is_closed and t.gross_pnl is not None and t.net_pnl is not None
        ]
        inconsistent = []
        first_violation = None
        for trade in candidates:
            violation = check_tolerance(trade.gross_pnl - trade.total_fees, trade.net_pnl)
            if violation is not None:
                inconsistent.append(trade)
                first_violation = first_violation or violation

        if not inconsistent:
            return [
                ValidationCheck(
                    type="P&L_CONSISTENCY",
                    status="PASS",
                    description=f"All {len(candidates)} closed trades have consistent P&L calculations",
                )
            ]
        return [
            ValidationCheck(
                type="P&L_CONSISTENCY",
                status="FAIL",
                description=(
                    f"{len(inconsistent)} out of {len(candidates)} trades have P&L "
                    "calculation inconsistencies"
                ),
                details=f"Net P&L != gross P&L - fees for trades: {_ids(inconsistent)}",
                expected_value=first_violation.expected,
                actual_value=first_violation.actual,
                tolerance=TOLERANCE,
            )
        ]

    def check_balance_consistency(self, ctx: _RunContext) -> list[ValidationCheck]:
        """Starting balance plus closed net P&L must match the reported balance."""
        if ctx.config is None:
            return [
                ValidationCheck(
                    type="BALANCE_CONSISTENCY",
                    status="WARNING",
                    description="No account configuration available for balance validation",
                )
            ]

        closed = [t for t in relevant_trades(ctx.config, ctx.trades) if t.is_closed]
        expected = round_currency(
            ctx.config.starting_balance + sum(t.net_pnl or 0.0 for t in closed)
        )
        actual = ctx.metrics.current_balance
        violation = check_tolerance(expected, actual)
        if violation is None:
            return [
                ValidationCheck(
                    type="BALANCE_CONSISTENCY",
                    status="PASS",
                    description="Account balance is consistent with trade calculations",
                    expected_value=expected,
                    actual_value=actual,
                )
            ]
        return [
            ValidationCheck(
                type="BALANCE_CONSISTENCY",
                status="FAIL",
                description="Account balance inconsistent with trade calculations",
                details=f"Difference of ${violation.difference:.2f}",
                expected_value=expected,
                actual_value=actual,
                tolerance=TOLERANCE,
            )
        ]

    def check_fee_consistency(self, ctx: _RunContext) -> list[ValidationCheck]:
        """Stored futures fees should match the registry; mismatches only warn."""
        account_type = ctx.config.account_type if ctx.config is not None else None
        futures = [t for t in ctx.trades if t.market == "FUTURES" and t.is_closed]

        mismatched = []
        skipped = 0
        for trade in futures:
            broker = self.registry.detect_broker(account_type, trade.data_source)
            try:
                expected = self.registry.calculate_fees(trade.symbol, trade.quantity, broker)
            except InvalidTradeInput:
                # Reported by the data integrity check.
                skipped += 1
                continue
            stored = trade.commission + trade.entry_fees + trade.exit_fees
            if check_tolerance(expected.total_fees, stored) is not None:
                mismatched.append(trade)

        checked = len(futures) - skipped
        if not mismatched:
            return [
                ValidationCheck(
                    type="FEE_CONSISTENCY",
                    status="PASS",
                    description=f"All {checked} futures trades have consistent fee calculations",
                )
            ]
        return [
            ValidationCheck(
                type="FEE_CONSISTENCY",
                status="WARNING",
                description=(
                    f"{len(mismatched)} out of {checked} futures trades have fee "
                    "calculation discrepancies"
                ),
                details=(
                    "Manual fee overrides or negotiated broker rates may differ from the "
                    f"standard schedule. Trades: {_ids(mismatched)}"
                ),
                tolerance=TOLERANCE,
            )
        ]

    def check_drawdown_consistency(self, ctx: _RunContext) -> list[ValidationCheck]:
        """Reported trailing limit must equal account high minus the drawdown amount."""
        if ctx.config is None:
            return [
                ValidationCheck(
                    type="DRAWDOWN_CONSISTENCY",
                    status="WARNING",
                    description="No account configuration available for drawdown validation",
                )
            ]

        metrics = ctx.metrics
        checks: list[ValidationCheck] = []
        # compute_metrics keeps the high at or above the balance; this catches
        # metrics cached or persisted from an older run.
        if metrics.account_high < metrics.current_balance:
            checks.append(
                ValidationCheck(
                    type="DRAWDOWN_CONSISTENCY",
                    status="WARNING",
                    description="Account high is less than current balance",
                    details="Account high may need to be updated to reflect current balance",
                    expected_value=metrics.current_balance,
                    actual_value=metrics.account_high,
                )
            )

        if ctx.config.is_live_funded and ctx.config.first_payout_received:
            expected = 0.0
            formula = "Limit is pinned to $0 after the first payout"
        else:
            expected = round_currency(metrics.account_high - metrics.trailing_drawdown_amount)
            formula = (
                f"Account high (${metrics.account_high:,.2f}) - drawdown amount "
                f"(${metrics.trailing_drawdown_amount:,.2f}) = ${expected:,.2f}"
            )
        actual = metrics.trailing_limit
        if check_tolerance(expected, actual) is None:
            checks.append(
                ValidationCheck(
                    type="DRAWDOWN_CONSISTENCY",
                    status="PASS",
                    description="Trailing drawdown limit calculation is correct",
                    expected_value=expected,
                    actual_value=actual,
                )
            )
        else:
            checks.append(
                ValidationCheck(
                    type="DRAWDOWN_CONSISTENCY",
                    status="FAIL",
                    description="Trailing drawdown limit calculation is incorrect",
                    details=f"Expected: {formula}",
                    expected_value=expected,
                    actual_value=actual,
                    tolerance=TOLERANCE,
                )
            )
        return checks

    def check_data_integrity(self, ctx: _RunContext) -> list[ValidationCheck]:
        """Prices and quantity must be positive; closed trades need exit data."""
        checks: list[ValidationCheck] = []
        if ctx.unreadable:
            ids = [row_id for row_id, _ in ctx.unreadable]
            checks.append(
                ValidationCheck(
                    type="DATA_INTEGRITY",
                    status="FAIL",
                    description=f"{len(ids)} stored trades could not be read",
                    details=f"Trades: {_list_ids(ids)}. First problem: {ctx.unreadable[0][1]}",
                )
            )
        invalid = [
            t for t in ctx.trades
            if not t.entry_price > 0
            or not t.quantity > 0
            or (t.exit_price is not None and not t.exit_price > 0)
        ]
        if invalid:
            checks.append(
                ValidationCheck(
                    type="DATA_INTEGRITY",
                    status="FAIL",
                    description=f"{len(invalid)} trades have invalid price or quantity data",
                    details=(
                        "Entry price, exit price, and quantity must be positive values. "
                        f"Trades: {_ids(invalid)}"
                    ),
                )
            )
        else:
            checks.append(
                ValidationCheck(
                    type="DATA_INTEGRITY",
                    status="PASS",
                    description="All trades have valid price and quantity data",
                )
            )

        incomplete = [
            t for t in ctx.trades if t.is_closed and (t.exit_price is None or t.exit_date is None)
        ]
        if incomplete:
            checks.append(
                ValidationCheck(
                    type="DATA_INTEGRITY",
                    status="WARNING",
                    description=f"{len(incomplete)} closed trades are missing exit price or date",
                    details=f"Closed trades should have both exit price and exit date. Trades: {_ids(incomplete)}",
                )
            )
        else:
            checks.append(
                ValidationCheck(
                    type="DATA_INTEGRITY",
                    status="PASS",
                    description="All closed trades have complete exit data",
                )
            )
        return checks


def validate(
    user_id: str,
    store,
    registry: Optional[FeeRegistry] = None,
    now: Optional[datetime] = None,
) -> ValidationReport:
    """Run all consistency checks for one account."""
    return ConsistencyValidator(store, registry).run(user_id, now=now)


def validate_all(
    store,
    registry: Optional[FeeRegistry] = None,
    now: Optional[datetime] = None,
) -> list[ValidationReport]:
    """Validate every account known to the store.

    A run that crashes outright is reported as a single failed check for
    that account.
    """
    now = now or datetime.now(pytz.utc)
    validator = ConsistencyValidator(store, registry)
    reports = []
    for user_id in store.get_user_ids():
        try:
            reports.append(validator.run(user_id, now=now))
        except Exception as e:
            logger.error("Validation crashed for %s: %s", user_id, e, exc_info=True)
            check = ValidationCheck(
                type="DATA_INTEGRITY",
                status="FAIL",
                description="Failed to run validation",
                details=str(e) or type(e).__name__,
            )
            reports.append(ValidationReport.from_checks(user_id, [check], timestamp=now))
    return reports
