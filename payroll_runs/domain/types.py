"""
payroll_runs.domain.types -- Pure frozen dataclasses for payroll runs.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.

Invariants enforced:
    - Balance: net + employee deductions == gross, by construction
      (``CalculationResult`` derives its totals from its lines).
    - Employer cost == gross + employer contributions, by construction.
    - Determinism: ``CalculationResult.to_dict()`` contains no timestamps
      or generated identifiers, so identical inputs serialize identically.
    - Calculation state machine: see ``ALLOWED_TRANSITIONS``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from payroll_kernel.domain.values import Currency, Money, sum_money
from payroll_kernel.exceptions import InvalidStatusTransitionError
from payroll_kernel.utils.hashing import hash_payload

from payroll_engines.accrual import AccrualResult
from payroll_engines.contribution import ContributionResult
from payroll_engines.earnings import AllowanceLine, GrossPay
from payroll_engines.income_tax import IncomeTaxResult
from payroll_engines.leave_allowance import LeaveAllowanceComputation, ReferenceWage
from payroll_engines.minimum_wage import ComplianceFinding, FindingSeverity


# =============================================================================
# Status enums
# =============================================================================


class CalculationStatus(str, Enum):
    """Lifecycle of one calculation attempt for one employee."""

    PENDING = "pending"  # Snapshot received
    RESOLVED = "resolved"  # Configuration resolved
    COMPUTED = "computed"  # Result assembled
    APPROVED = "approved"  # Run approved; result frozen
    SUPERSEDED = "superseded"  # Replaced by a later attempt
    FAILED = "failed"  # Fatal error


ALLOWED_TRANSITIONS: dict[CalculationStatus, frozenset[CalculationStatus]] = {
    CalculationStatus.PENDING: frozenset(
        {CalculationStatus.RESOLVED, CalculationStatus.FAILED}
    ),
    CalculationStatus.RESOLVED: frozenset(
        {CalculationStatus.COMPUTED, CalculationStatus.FAILED}
    ),
    CalculationStatus.COMPUTED: frozenset(
        {CalculationStatus.APPROVED, CalculationStatus.SUPERSEDED}
    ),
    CalculationStatus.APPROVED: frozenset(),
    CalculationStatus.SUPERSEDED: frozenset(),
    CalculationStatus.FAILED: frozenset(),
}


def validate_transition(current: CalculationStatus, target: CalculationStatus) -> None:
    """Raise if ``current -> target`` is not an allowed transition."""
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current.value, target.value)


class PayrollRunStatus(str, Enum):
    DRAFT = "draft"  # Results may be recalculated
    APPROVED = "approved"  # Read-only


class AuditKind(str, Enum):
    CONFIGURATION = "configuration"
    EARNINGS = "earnings"
    CONTRIBUTION_SCHEME = "contribution_scheme"
    TAXABLE_INCOME = "taxable_income"
    TAX_BRACKET = "tax_bracket"
    INCOME_TAX = "income_tax"
    COMPLIANCE_FINDING = "compliance_finding"
    ACCRUAL_RULE = "accrual_rule"
    LEAVE_ALLOWANCE = "leave_allowance"


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class EmployeeCompensationSnapshot:
    """Read-only compensation inputs for one employee and one period."""

    employee_id: str
    country_code: str
    period_start: date
    period_end: date
    calculation_date: date
    base_salary: Money
    fiscal_parts: Decimal
    age: int
    seniority_years: int
    category: str
    sector_code: str | None = None
    city: str | None = None
    allowances: tuple[AllowanceLine, ...] = ()
    overtime_amount: Money | None = None
    bonus_amount: Money | None = None

    def amounts(self) -> list[tuple[str, Money]]:
        """Every monetary input with its field name."""
        named = [("base_salary", self.base_salary)]
        named.extend((f"allowances.{a.code}", a.amount) for a in self.allowances)
        if self.overtime_amount is not None:
            named.append(("overtime_amount", self.overtime_amount))
        if self.bonus_amount is not None:
            named.append(("bonus_amount", self.bonus_amount))
        return named


@dataclass(frozen=True)
class LeaveAllowanceRequest:
    """Ask for the special leave allowance to be computed with the payslip."""

    reference_wages: tuple[ReferenceWage, ...]
    leave_days: Decimal
    payment_date: date | None = None  # defaults to the calculation date
    non_deductible_absence_days: Decimal = Decimal("0")
    last_leave_return: date | None = None  # first day back from the previous leave
    hire_date: date | None = None


@dataclass(frozen=True)
class CalculationOptions:
    validate_minimum_wage: bool = True
    resolve_accrual: bool = True
    leave_allowance: LeaveAllowanceRequest | None = None


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class AuditEntry:
    """One rule, bracket or scheme applied, with its resolved parameters."""

    kind: AuditKind
    reference: str
    parameters: tuple[tuple[str, str], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "reference": self.reference,
            "parameters": dict(self.parameters),
        }


@dataclass(frozen=True)
class LeaveAllowanceFailure:
    """Why a requested special leave allowance was not computed.

    The payslip itself is still valid; no payment is recorded.
    """

    error_code: str
    error_message: str

    def to_dict(self) -> dict[str, str]:
        return {"error_code": self.error_code, "error_message": self.error_message}


def _amount(money: Money) -> str:
    return str(money.amount)


@dataclass(frozen=True)
class CalculationResult:
    """
    Complete payslip calculation for one employee and one period.

    Immutable.  A recalculation produces a new result that supersedes this
    one; it never edits it.
    """

    employee_id: str
    country_code: str
    period_start: date
    period_end: date
    calculation_date: date
    config_version: str
    config_checksum: str
    currency: Currency
    earnings: GrossPay
    contributions: ContributionResult
    taxable_income: Money
    income_tax: IncomeTaxResult
    net_salary: Money
    findings: tuple[ComplianceFinding, ...] = ()
    accrual: AccrualResult | None = None
    leave_allowance: LeaveAllowanceComputation | None = None
    leave_allowance_error: LeaveAllowanceFailure | None = None
    audit: tuple[AuditEntry, ...] = ()

    @property
    def gross_salary(self) -> Money:
        return self.earnings.total

    @property
    def income_tax_amount(self) -> Money:
        return self.income_tax.tax

    @property
    def total_employee_deductions(self) -> Money:
        return self.contributions.employee_total + self.income_tax.tax

    @property
    def total_employer_contributions(self) -> Money:
        return self.contributions.employer_total

    @property
    def total_employer_cost(self) -> Money:
        return self.gross_salary + self.total_employer_contributions

    @property
    def has_violations(self) -> bool:
        return any(f.severity is FindingSeverity.VIOLATION for f in self.findings)

    def to_dict(self) -> dict[str, Any]:
        """Canonical serialization (strings for every Decimal)."""
        return {
            "employee_id": self.employee_id,
            "country_code": self.country_code,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "calculation_date": self.calculation_date.isoformat(),
            "configuration": {
                "version": self.config_version,
                "checksum": self.config_checksum,
            },
            "currency": self.currency.code,
            "earnings": [
                {"code": line.code, "amount": _amount(line.amount)}
                for line in self.earnings.lines
            ],
            "gross_salary": _amount(self.gross_salary),
            "contributions": [
                {
                    "scheme_code": line.scheme_code,
                    "kind": line.kind.value,
                    "base_amount": _amount(line.base_amount),
                    "effective_base": _amount(line.effective_base),
                    "employee_rate": str(line.employee_rate),
                    "employer_rate": str(line.employer_rate),
                    "employee_amount": _amount(line.employee_amount),
                    "employer_amount": _amount(line.employer_amount),
                    "capped": line.capped,
                    "floored": line.floored,
                    "reduces_taxable_income": line.reduces_taxable_income,
                }
                for line in self.contributions.lines
            ],
            "taxable_income": _amount(self.taxable_income),
            "income_tax": {
                "tax_code": self.income_tax.tax_code,
                "fiscal_parts": str(self.income_tax.fiscal_parts),
                "quotient": str(self.income_tax.quotient),
                "tax_before_rounding": str(self.income_tax.tax_before_rounding),
                "amount": _amount(self.income_tax.tax),
            },
            "net_salary": _amount(self.net_salary),
            "total_employee_deductions": _amount(self.total_employee_deductions),
            "total_employer_contributions": _amount(self.total_employer_contributions),
            "total_employer_cost": _amount(self.total_employer_cost),
            "findings": [f.to_dict() for f in self.findings],
            "accrual": (
                {
                    "monthly_days": str(self.accrual.monthly_days),
                    "bonus_days": str(self.accrual.bonus_days),
                    "applied_rules": list(self.accrual.applied_rule_ids),
                    "suppressed_rules": list(self.accrual.suppressed_rule_ids),
                }
                if self.accrual is not None
                else None
            ),
            "leave_allowance": (
                self.leave_allowance.to_dict() if self.leave_allowance is not None else None
            ),
            "leave_allowance_error": (
                self.leave_allowance_error.to_dict()
                if self.leave_allowance_error is not None
                else None
            ),
            "audit": [entry.to_dict() for entry in self.audit],
        }

    @property
    def fingerprint(self) -> str:
        """SHA-256 of the canonical serialization."""
        return hash_payload(self.to_dict())


@dataclass(frozen=True)
class EmployeeOutcome:
    """Per-employee result of a multi-employee calculation."""

    employee_id: str
    result: CalculationResult | None = None
    error_code: str | None = None
    error_component: str | None = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


# =============================================================================
# Persistence DTOs
# =============================================================================


@dataclass(frozen=True)
class PayrollRun:
    run_id: UUID
    country_code: str
    period_start: date
    period_end: date
    calculation_date: date
    status: PayrollRunStatus
    config_version: str
    config_checksum: str
    created_at: datetime | None = None
    created_by: UUID | None = None
    approved_at: datetime | None = None
    approved_by: UUID | None = None

    @property
    def is_mutable(self) -> bool:
        return self.status is PayrollRunStatus.DRAFT


@dataclass(frozen=True)
class StoredCalculation:
    """A persisted calculation attempt."""

    record_id: UUID
    run_id: UUID
    employee_id: str
    attempt: int
    status: CalculationStatus
    is_live: bool
    fingerprint: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    error_code: str | None = None
    error_component: str | None = None
    error_message: str | None = None
    computed_at: datetime | None = None
    superseded_at: datetime | None = None


@dataclass(frozen=True)
class LeaveAllowancePaymentRecord:
    """Immutable record of a special leave allowance paid in a run."""

    payment_id: UUID
    employee_id: str
    run_id: UUID
    payment_date: date
    leave_days: Decimal
    amount: Money
    computation: dict[str, Any] = field(default_factory=dict)
    recorded_at: datetime | None = None


@dataclass(frozen=True)
class RunProcessingSummary:
    run_id: UUID
    outcomes: tuple[EmployeeOutcome, ...]

    @property
    def computed_count(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    def total(self, attribute: str, currency: Currency) -> Money:
        """Sum a Money property (e.g. ``"net_salary"``) over computed results."""
        return sum_money(
            [getattr(o.result, attribute) for o in self.outcomes if o.result is not None],
            currency,
        )
