"""
Contribution Engine - Mandatory social contributions per scheme.

For each configured scheme, in configuration order:

    effective base  = clamp(base amount, floor or 0, ceiling or +inf)
    employee amount = round(effective base * employee rate)
    employer amount = round(effective base * employer rate for sector)

Fixed schemes (flat health coverage and similar) contribute their
configured amounts unchanged.

Every line keeps its own effective base, rates and capped/floored flags, so
a ceiling that bites is visible on the line itself rather than only in an
aggregate.  Before rounding, amount / effective base never exceeds the
nominal rate; rounding moves an amount by at most one increment.

Usage:
    from payroll_engines.contribution import ContributionCalculator

    result = ContributionCalculator().calculate(
        gross=Money.of("500000", "XOF"),
        base_salary=Money.of("500000", "XOF"),
        schemes=config.contribution_schemes,
        sector_code="SERVICES",
    )
    result.employee_total  # Money
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from payroll_kernel.domain.values import Currency, Money, sum_money
from payroll_kernel.logging_config import get_logger

from payroll_config.schema import (
    ContributionBase,
    ContributionKind,
    ContributionScheme,
)
from payroll_engines.tracer import traced_engine

logger = get_logger("engines.contribution")

_ZERO = Decimal("0")


def clamp_base(
    amount: Decimal,
    floor: Decimal | None,
    ceiling: Decimal | None,
) -> tuple[Decimal, bool, bool]:
    """Clamp ``amount`` into [floor, ceiling].

    Returns:
        (effective base, capped, floored)
    """
    lower = floor if floor is not None else _ZERO
    if ceiling is not None and amount > ceiling:
        return ceiling, True, False
    if amount < lower:
        return lower, False, lower > _ZERO
    return amount, False, False


@dataclass(frozen=True)
class ContributionLine:
    """
    Calculated contribution for a single scheme.

    ``base_amount`` is the amount the scheme is assessed on before clamping;
    ``effective_base`` is after the floor and ceiling.
    """

    scheme_code: str
    scheme_name: str
    kind: ContributionKind
    base_amount: Money
    effective_base: Money
    employee_rate: Decimal
    employer_rate: Decimal
    employee_amount_unrounded: Money
    employer_amount_unrounded: Money
    employee_amount: Money
    employer_amount: Money
    capped: bool = False
    floored: bool = False
    reduces_taxable_income: bool = True
    rounding: str = ""

    @property
    def effective_employee_rate(self) -> Decimal:
        """Employee amount relative to the un-clamped base."""
        if self.base_amount.is_zero:
            return _ZERO
        return self.employee_amount.amount / self.base_amount.amount

    @property
    def effective_employer_rate(self) -> Decimal:
        if self.base_amount.is_zero:
            return _ZERO
        return self.employer_amount.amount / self.base_amount.amount


@dataclass(frozen=True)
class ContributionResult:
    lines: tuple[ContributionLine, ...]
    currency: Currency

    @property
    def employee_total(self) -> Money:
        return sum_money([line.employee_amount for line in self.lines], self.currency)

    @property
    def employer_total(self) -> Money:
        return sum_money([line.employer_amount for line in self.lines], self.currency)

    @property
    def taxable_income_reduction(self) -> Money:
        """Employee contributions that are deductible from taxable income."""
        return sum_money(
            [
                line.employee_amount
                for line in self.lines
                if line.reduces_taxable_income
            ],
            self.currency,
        )

    def line_for(self, scheme_code: str) -> ContributionLine | None:
        for line in self.lines:
            if line.scheme_code == scheme_code:
                return line
        return None


class ContributionCalculator:
    """
    Calculate employee and employer contributions.

    Pure functions - no I/O, schemes provided as parameters.
    """

    @traced_engine(
        "contribution", "1.0",
        fingerprint_fields=("gross", "base_salary", "schemes", "sector_code"),
    )
    def calculate(
        self,
        *,
        gross: Money,
        base_salary: Money,
        schemes: Sequence[ContributionScheme],
        sector_code: str | None = None,
    ) -> ContributionResult:
        """
        Calculate every scheme against the period's earnings.

        Args:
            gross: Gross salary for the period.
            base_salary: Base (category) salary, for BASE_SALARY schemes.
            schemes: Schemes in configuration order.
            sector_code: Employer sector, for sector employer-rate overrides.

        Returns:
            ContributionResult with one line per scheme, in input order.
        """
        t0 = time.monotonic()
        logger.info("contribution_calculation_started", extra={
            "gross": str(gross.amount),
            "currency": gross.currency.code,
            "scheme_count": len(schemes),
            "sector_code": sector_code,
        })

        lines = tuple(
            self._calculate_scheme(scheme, gross, base_salary, sector_code)
            for scheme in schemes
        )
        result = ContributionResult(lines=lines, currency=gross.currency)

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("contribution_calculation_completed", extra={
            "employee_total": str(result.employee_total.amount),
            "employer_total": str(result.employer_total.amount),
            "capped_schemes": [l.scheme_code for l in lines if l.capped],
            "floored_schemes": [l.scheme_code for l in lines if l.floored],
            "duration_ms": duration_ms,
        })
        return result

    def _calculate_scheme(
        self,
        scheme: ContributionScheme,
        gross: Money,
        base_salary: Money,
        sector_code: str | None,
    ) -> ContributionLine:
        currency = gross.currency
        zero = Money.zero(currency)

        if scheme.kind is ContributionKind.FIXED:
            employee = Money(scheme.fixed_employee_amount, currency)
            employer = Money(scheme.fixed_employer_amount, currency)
            return ContributionLine(
                scheme_code=scheme.code,
                scheme_name=scheme.name,
                kind=scheme.kind,
                base_amount=zero,
                effective_base=zero,
                employee_rate=_ZERO,
                employer_rate=_ZERO,
                employee_amount_unrounded=employee,
                employer_amount_unrounded=employer,
                employee_amount=employee,
                employer_amount=employer,
                reduces_taxable_income=scheme.reduces_taxable_income,
                rounding="fixed",
            )

        base = base_salary if scheme.base is ContributionBase.BASE_SALARY else gross
        effective, capped, floored = clamp_base(base.amount, scheme.floor, scheme.ceiling)
        effective_base = Money(effective, currency)
        employer_rate = scheme.employer_rate_for(sector_code)

        employee_raw = effective_base * scheme.employee_rate
        employer_raw = effective_base * employer_rate

        if capped or floored:
            logger.debug("contribution_base_clamped", extra={
                "scheme_code": scheme.code,
                "base_amount": str(base.amount),
                "effective_base": str(effective),
                "capped": capped,
                "floored": floored,
            })

        return ContributionLine(
            scheme_code=scheme.code,
            scheme_name=scheme.name,
            kind=scheme.kind,
            base_amount=base,
            effective_base=effective_base,
            employee_rate=scheme.employee_rate,
            employer_rate=employer_rate,
            employee_amount_unrounded=employee_raw,
            employer_amount_unrounded=employer_raw,
            employee_amount=scheme.rounding.apply(employee_raw),
            employer_amount=scheme.rounding.apply(employer_raw),
            capped=capped,
            floored=floored,
            reduces_taxable_income=scheme.reduces_taxable_income,
            rounding=scheme.rounding.describe(),
        )
