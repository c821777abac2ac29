"""Validation report data models."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

CheckType = Literal[
    "P&L_CONSISTENCY",
    "BALANCE_CONSISTENCY",
    "FEE_CONSISTENCY",
    "DRAWDOWN_CONSISTENCY",
    "DATA_INTEGRITY",
]
CheckStatus = Literal["PASS", "WARNING", "FAIL"]
OverallStatus = Literal["VALID", "WARNING", "ERROR"]


class ValidationCheck(BaseModel):
    """Outcome of a single consistency check."""

    type: CheckType = Field(..., description="Check category")
    status: CheckStatus = Field(..., description="Check outcome")
    description: str = Field(..., description="Human-readable summary")
    details: Optional[str] = Field(default=None, description="Extra context")
    expected_value: Optional[float] = Field(
        default=None, serialization_alias="expectedValue", description="Recomputed value"
    )
    actual_value: Optional[float] = Field(
        default=None, serialization_alias="actualValue", description="Stored value"
    )
    tolerance: Optional[float] = Field(default=None, description="Allowed difference")

    model_config = {"frozen": True}


class ValidationSummary(BaseModel):
    """Check counts by outcome."""

    total_checks: int = Field(..., ge=0, serialization_alias="totalChecks")
    passed_checks: int = Field(..., ge=0, serialization_alias="passedChecks")
    warning_checks: int = Field(..., ge=0, serialization_alias="warningChecks")
    failed_checks: int = Field(..., ge=0, serialization_alias="failedChecks")

    model_config = {"frozen": True}

    @classmethod
    def from_checks(cls, checks: list[ValidationCheck]) -> "ValidationSummary":
        return cls(
            total_checks=len(checks),
            passed_checks=sum(1 for c in checks if c.status == "PASS"),
            warning_checks=sum(1 for c in checks if c.status == "WARNING"),
            failed_checks=sum(1 for c in checks if c.status == "FAIL"),
        )


class ValidationReport(BaseModel):
    """Aggregated result of a validator run for one account."""

    user_id: str = Field(..., serialization_alias="userId")
    timestamp: datetime = Field(..., description="When the run finished")
    overall_status: OverallStatus = Field(..., serialization_alias="overallStatus")
    checks: list[ValidationCheck] = Field(default_factory=list)
    summary: ValidationSummary

    model_config = {"frozen": True}

    @classmethod
    def from_checks(
        cls, user_id: str, checks: list[ValidationCheck], timestamp: datetime
    ) -> "ValidationReport":
        """Build a report, deriving the summary and overall status."""
        summary = ValidationSummary.from_checks(checks)
        if summary.failed_checks:
            overall: OverallStatus = "ERROR"
        elif summary.warning_checks:
            overall = "WARNING"
        else:
            overall = "VALID"
        return cls(
            user_id=user_id,
            timestamp=timestamp,
            overall_status=overall,
            checks=checks,
            summary=summary,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-shaped dict with camelCase keys and unset optionals dropped."""
        data = self.model_dump(mode="json", by_alias=True)
        data["checks"] = [
            {k: v for k, v in check.items() if v is not None} for check in data["checks"]
        ]
        return data
