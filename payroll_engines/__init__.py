"""
Module: payroll_engines
Responsibility:
    Package entrypoint that re-exports the pure payroll calculators.  This
    is the canonical import surface for ``payroll_runs``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import payroll_kernel (values, exceptions, logging) and
    payroll_config.schema.  MUST NOT import payroll_runs.

Invariants enforced:
    - Purity: engines never read the clock.  The calculation date and every
      rule arrive as parameters.
    - Decimal-only arithmetic through Money; floats are rejected.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entrypoints are wrapped by ``@traced_engine``, emitting
    PAYROLL_ENGINE_TRACE records with engine name, version, input
    fingerprint, and duration.
"""

from payroll_engines.accrual import AccrualResult, AccrualRuleEngine, years_of_service
from payroll_engines.contribution import (
    ContributionCalculator,
    ContributionLine,
    ContributionResult,
    clamp_base,
)
from payroll_engines.earnings import AllowanceLine, EarningsLine, GrossPay, compute_gross
from payroll_engines.income_tax import (
    BracketSlice,
    IncomeTaxCalculator,
    IncomeTaxResult,
    calculate_fiscal_parts,
    progressive_tax,
)
from payroll_engines.leave_allowance import (
    LeaveAllowanceComputation,
    ReferenceWage,
    SpecialLeaveAllowanceCalculator,
    window_start_for,
)
from payroll_engines.minimum_wage import (
    ComplianceFinding,
    FindingSeverity,
    FindingType,
    MinimumWageValidator,
)

__all__ = [
    "AccrualResult",
    "AccrualRuleEngine",
    "AllowanceLine",
    "BracketSlice",
    "ComplianceFinding",
    "ContributionCalculator",
    "ContributionLine",
    "ContributionResult",
    "EarningsLine",
    "FindingSeverity",
    "FindingType",
    "GrossPay",
    "IncomeTaxCalculator",
    "IncomeTaxResult",
    "LeaveAllowanceComputation",
    "MinimumWageValidator",
    "ReferenceWage",
    "SpecialLeaveAllowanceCalculator",
    "calculate_fiscal_parts",
    "clamp_base",
    "compute_gross",
    "progressive_tax",
    "window_start_for",
    "years_of_service",
]
