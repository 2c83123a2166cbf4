"""
CountryConfiguration schema.

The statutory rule set of one country for one effective date window,
expressed as data.  YAML sets are parsed into these types by the loader,
checked by the validator, and handed to the engines unchanged.  Adding a
jurisdiction means adding a YAML set, never code.

All amounts are plain Decimals in the configuration's currency; engines
wrap them in Money at the point of use.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import (
    ROUND_DOWN,
    ROUND_HALF_EVEN,
    ROUND_HALF_UP,
    ROUND_UP,
    Decimal,
)
from enum import Enum

from payroll_kernel.domain.values import Money

from payroll_config.lifecycle import RESOLVABLE_STATUSES, ConfigStatus

# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------


class RoundingMode(str, Enum):
    """Rounding direction for a configured amount."""

    HALF_UP = "half_up"
    HALF_EVEN = "half_even"
    DOWN = "down"
    UP = "up"

    @property
    def decimal_rounding(self) -> str:
        return _DECIMAL_ROUNDING[self]


_DECIMAL_ROUNDING: dict[RoundingMode, str] = {
    RoundingMode.HALF_UP: ROUND_HALF_UP,
    RoundingMode.HALF_EVEN: ROUND_HALF_EVEN,
    RoundingMode.DOWN: ROUND_DOWN,
    RoundingMode.UP: ROUND_UP,
}


@dataclass(frozen=True)
class RoundingPolicy:
    """Round to a multiple of ``increment`` using ``mode``."""

    increment: Decimal = Decimal("1")
    mode: RoundingMode = RoundingMode.HALF_UP

    def apply(self, amount: Money) -> Money:
        return amount.round_to(self.increment, self.mode.decimal_rounding)

    def describe(self) -> str:
        return f"{self.mode.value}:{self.increment}"


# ---------------------------------------------------------------------------
# Contributions
# ---------------------------------------------------------------------------


class ContributionKind(str, Enum):
    RATE = "rate"
    FIXED = "fixed"


class ContributionBase(str, Enum):
    """Which amount a rate-based scheme is assessed on."""

    GROSS = "gross"
    BASE_SALARY = "base_salary"


@dataclass(frozen=True)
class ContributionScheme:
    """One mandatory social contribution (pension, family, health, levy)."""

    code: str
    name: str
    kind: ContributionKind = ContributionKind.RATE
    base: ContributionBase = ContributionBase.GROSS
    employee_rate: Decimal = Decimal("0")
    employer_rate: Decimal = Decimal("0")
    floor: Decimal | None = None
    ceiling: Decimal | None = None
    rounding: RoundingPolicy = field(default_factory=RoundingPolicy)
    reduces_taxable_income: bool = True
    fixed_employee_amount: Decimal = Decimal("0")
    fixed_employer_amount: Decimal = Decimal("0")
    sector_employer_rates: tuple[tuple[str, Decimal], ...] = ()

    def employer_rate_for(self, sector_code: str | None) -> Decimal:
        """Employer rate, using the sector override when one is configured."""
        if sector_code is not None:
            for sector, rate in self.sector_employer_rates:
                if sector == sector_code:
                    return rate
        return self.employer_rate


# ---------------------------------------------------------------------------
# Income tax
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxBracket:
    """Marginal bracket [lower, upper). ``upper=None`` is the open top bracket."""

    lower: Decimal
    upper: Decimal | None
    rate: Decimal

    def overlap(self, amount: Decimal) -> Decimal:
        """Portion of ``amount`` falling inside this bracket."""
        if amount <= self.lower:
            return Decimal("0")
        top = amount if self.upper is None else min(amount, self.upper)
        return top - self.lower


class BracketPeriod(str, Enum):
    """Period the bracket thresholds are expressed in."""

    MONTHLY = "monthly"
    ANNUAL = "annual"

    @property
    def months(self) -> int:
        return 12 if self is BracketPeriod.ANNUAL else 1


@dataclass(frozen=True)
class FamilyTaxCredit:
    """Tax credit granted for a number of fiscal parts."""

    fiscal_parts: Decimal
    amount: Decimal


@dataclass(frozen=True)
class IncomeTaxRules:
    """Progressive income tax with family quotient."""

    code: str
    brackets: tuple[TaxBracket, ...]
    rounding: RoundingPolicy = field(default_factory=RoundingPolicy)
    bracket_period: BracketPeriod = BracketPeriod.MONTHLY
    abatement_rate: Decimal = Decimal("0")
    abatement_ceiling: Decimal | None = None
    family_tax_credits: tuple[FamilyTaxCredit, ...] = ()

    def credit_for(self, fiscal_parts: Decimal) -> FamilyTaxCredit | None:
        """Credit for the largest configured parts not above ``fiscal_parts``."""
        eligible = [
            c for c in self.family_tax_credits if c.fiscal_parts <= fiscal_parts
        ]
        if not eligible:
            return None
        return max(eligible, key=lambda c: c.fiscal_parts)


# ---------------------------------------------------------------------------
# Minimum wage and transport allowance tables
# ---------------------------------------------------------------------------

WILDCARD_SECTOR = "*"
DEFAULT_CITY = "OTHER"


@dataclass(frozen=True)
class MinimumWageEntry:
    category: str
    sector: str
    monthly_minimum: Decimal


@dataclass(frozen=True)
class MinimumWageTable:
    """Minimum monthly base salary keyed by (category, sector)."""

    entries: tuple[MinimumWageEntry, ...] = ()

    def lookup(self, category: str, sector: str | None) -> MinimumWageEntry | None:
        """Exact (category, sector) entry, else the explicit wildcard entry."""
        wildcard = None
        for entry in self.entries:
            if entry.category != category:
                continue
            if sector is not None and entry.sector == sector:
                return entry
            if entry.sector == WILDCARD_SECTOR:
                wildcard = entry
        return wildcard


@dataclass(frozen=True)
class TransportAllowanceEntry:
    city: str
    monthly_minimum: Decimal


@dataclass(frozen=True)
class TransportAllowanceTable:
    """Minimum monthly transport allowance keyed by city."""

    entries: tuple[TransportAllowanceEntry, ...] = ()
    allowance_code: str = "transport"

    def lookup(self, city: str | None) -> TransportAllowanceEntry | None:
        """Entry for ``city`` (case-insensitive), else the explicit OTHER entry."""
        by_city = {e.city.upper(): e for e in self.entries}
        if city is not None and city.upper() in by_city:
            return by_city[city.upper()]
        return by_city.get(DEFAULT_CITY)


# ---------------------------------------------------------------------------
# Leave accrual
# ---------------------------------------------------------------------------


class AccrualTrigger(str, Enum):
    AGE_BELOW = "age_below"
    AGE_AT_LEAST = "age_at_least"
    SENIORITY_AT_LEAST = "seniority_at_least"

    @property
    def is_age(self) -> bool:
        return self is not AccrualTrigger.SENIORITY_AT_LEAST


class AccrualEffect(str, Enum):
    REPLACE_RATE = "replace_rate"
    ADD_DAYS = "add_days"


class YouthSeniorityPolicy(str, Enum):
    """How a youth rate override combines with a seniority bonus."""

    STACK = "stack"
    YOUTH_ONLY = "youth_only"


@dataclass(frozen=True)
class AccrualRule:
    rule_id: str
    trigger: AccrualTrigger
    threshold: Decimal
    effect: AccrualEffect
    value: Decimal
    precedence: int = 0
    description: str = ""

    def matches(self, age: int, seniority_years: int) -> bool:
        if self.trigger is AccrualTrigger.AGE_BELOW:
            return Decimal(age) < self.threshold
        if self.trigger is AccrualTrigger.AGE_AT_LEAST:
            return Decimal(age) >= self.threshold
        return Decimal(seniority_years) >= self.threshold


@dataclass(frozen=True)
class AccrualRuleSet:
    standard_monthly_days: Decimal
    rules: tuple[AccrualRule, ...] = ()
    youth_seniority_policy: YouthSeniorityPolicy | None = None


# ---------------------------------------------------------------------------
# Special leave allowance (ACP)
# ---------------------------------------------------------------------------


class ReferencePeriod(str, Enum):
    """Where the ACP wage window starts."""

    TRAILING_MONTHS = "trailing_months"  # payment date - reference_months
    SINCE_LAST_LEAVE = "since_last_leave"  # return from last leave, else hire


@dataclass(frozen=True)
class LeaveAllowancePolicy:
    reference_months: int = 12
    reference_period: ReferencePeriod = ReferencePeriod.TRAILING_MONTHS
    paid_days_per_month: Decimal = Decimal("30")
    minimum_history_months: int = 1
    rounding: RoundingPolicy = field(default_factory=RoundingPolicy)


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CountryConfiguration:
    """
    Versioned statutory rule set for one country.

    Immutable once published; a law change is a new version with a later
    ``effective_from``.  ``checksum`` is computed by the loader over the
    source data and pinned on every payroll run that uses this version.
    """

    country_code: str
    version: str
    currency: str
    effective_from: date
    income_tax: IncomeTaxRules
    effective_to: date | None = None
    status: ConfigStatus = ConfigStatus.PUBLISHED
    contribution_schemes: tuple[ContributionScheme, ...] = ()
    minimum_wages: MinimumWageTable = field(default_factory=MinimumWageTable)
    transport_allowances: TransportAllowanceTable = field(
        default_factory=TransportAllowanceTable
    )
    accrual_rules: AccrualRuleSet = field(
        default_factory=lambda: AccrualRuleSet(standard_monthly_days=Decimal("2.5"))
    )
    leave_allowance: LeaveAllowancePolicy = field(default_factory=LeaveAllowancePolicy)
    checksum: str = ""
    description: str = ""

    def is_effective(self, as_of: date) -> bool:
        return self.effective_from <= as_of and (
            self.effective_to is None or as_of <= self.effective_to
        )

    @property
    def is_resolvable(self) -> bool:
        return self.status in RESOLVABLE_STATUSES

    @property
    def reference(self) -> str:
        return f"{self.country_code}/{self.version}"
