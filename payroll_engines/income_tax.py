"""
Income Tax Engine - Progressive income tax with family quotient.

    base      = taxable income * months in bracket period, less abatement
    quotient  = base / fiscal parts
    tax(q)    = sum(rate_i * overlap(q, bracket_i))
    tax       = max(tax(q) * fiscal parts - family credit, 0) / months
    tax       = round(tax) per the configured rounding policy

Marginal brackets mean each rate applies only to the slice of income inside
its bracket, so the unrounded tax is continuous at every boundary.  A
quotient below the first threshold produces zero tax.

Usage:
    from payroll_engines.income_tax import IncomeTaxCalculator

    result = IncomeTaxCalculator().calculate(
        taxable_income=Money.of("167660", "XOF"),
        fiscal_parts=Decimal("1"),
        rules=config.income_tax,
    )
    result.tax           # rounded Money
    result.slices        # per-bracket breakdown for the audit trail
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from payroll_kernel.domain.values import Money
from payroll_kernel.exceptions import InvalidFiscalPartsError
from payroll_kernel.logging_config import get_logger

from payroll_config.schema import IncomeTaxRules, TaxBracket
from payroll_engines.tracer import traced_engine

logger = get_logger("engines.income_tax")

_ZERO = Decimal("0")
_ONE = Decimal("1")
_HALF = Decimal("0.5")


@dataclass(frozen=True)
class BracketSlice:
    """Portion of the quotient taxed inside one bracket."""

    bracket_index: int
    lower: Decimal
    upper: Decimal | None
    rate: Decimal
    taxable_slice: Decimal
    tax: Decimal


@dataclass(frozen=True)
class IncomeTaxResult:
    """
    Complete income tax calculation.

    Amounts on the quotient side (``quotient``, ``slices``,
    ``tax_on_quotient``) are expressed in the bracket period; ``tax`` and
    ``tax_before_rounding`` are for the pay period.
    """

    tax_code: str
    taxable_income: Money
    fiscal_parts: Decimal
    bracket_base: Decimal
    abatement: Decimal
    quotient: Decimal
    slices: tuple[BracketSlice, ...]
    tax_on_quotient: Decimal
    family_credit: Decimal
    tax_before_rounding: Decimal
    tax: Money
    rounding: str = ""

    @property
    def marginal_rate(self) -> Decimal:
        """Rate of the highest bracket the quotient reaches."""
        taxed = [s for s in self.slices if s.taxable_slice > _ZERO]
        return taxed[-1].rate if taxed else _ZERO

    @property
    def effective_rate(self) -> Decimal:
        if self.taxable_income.amount <= _ZERO:
            return _ZERO
        return self.tax.amount / self.taxable_income.amount


def progressive_tax(
    amount: Decimal,
    brackets: Sequence[TaxBracket],
) -> tuple[Decimal, tuple[BracketSlice, ...]]:
    """Apply marginal brackets to ``amount``.

    Returns:
        (total tax, slices for every bracket the amount reaches)
    """
    total = _ZERO
    slices: list[BracketSlice] = []
    for index, bracket in enumerate(brackets):
        portion = bracket.overlap(amount)
        if portion <= _ZERO:
            break
        tax = portion * bracket.rate
        total += tax
        slices.append(
            BracketSlice(
                bracket_index=index,
                lower=bracket.lower,
                upper=bracket.upper,
                rate=bracket.rate,
                taxable_slice=portion,
                tax=tax,
            )
        )
    return total, tuple(slices)


def calculate_fiscal_parts(
    married: bool,
    dependent_children: int,
    max_parts: Decimal = Decimal("5"),
) -> Decimal:
    """Fiscal parts: 1 (2 if married) plus 0.5 per dependent child, capped.

    Raises:
        ValueError: If dependent_children is negative.
    """
    if dependent_children < 0:
        raise ValueError(f"dependent_children must be >= 0, got {dependent_children}")
    parts = (Decimal("2") if married else _ONE) + _HALF * dependent_children
    return min(parts, max_parts)


class IncomeTaxCalculator:
    """
    Calculate progressive income tax.

    Pure functions - no I/O, rules provided as parameters.
    """

    @traced_engine(
        "income_tax", "1.0",
        fingerprint_fields=("taxable_income", "fiscal_parts", "rules"),
    )
    def calculate(
        self,
        *,
        taxable_income: Money,
        fiscal_parts: Decimal,
        rules: IncomeTaxRules,
    ) -> IncomeTaxResult:
        """
        Calculate income tax for one pay period.

        Preconditions:
            - rules.brackets are contiguous, sorted, starting at zero.

        Raises:
            InvalidFiscalPartsError: If fiscal_parts <= 0.
        """
        if fiscal_parts <= _ZERO:
            logger.error("income_tax_invalid_fiscal_parts", extra={
                "fiscal_parts": str(fiscal_parts),
            })
            raise InvalidFiscalPartsError(str(fiscal_parts))

        t0 = time.monotonic()
        months = rules.bracket_period.months
        period_base = max(taxable_income.amount, _ZERO) * months

        abatement = period_base * rules.abatement_rate
        if rules.abatement_ceiling is not None:
            abatement = min(abatement, rules.abatement_ceiling)
        bracket_base = period_base - abatement

        quotient = bracket_base / fiscal_parts
        tax_on_quotient, slices = progressive_tax(quotient, rules.brackets)

        credit = rules.credit_for(fiscal_parts)
        credit_amount = credit.amount if credit else _ZERO
        period_tax = max(tax_on_quotient * fiscal_parts - credit_amount, _ZERO)
        tax_before_rounding = period_tax / months

        tax = rules.rounding.apply(Money(tax_before_rounding, taxable_income.currency))

        result = IncomeTaxResult(
            tax_code=rules.code,
            taxable_income=taxable_income,
            fiscal_parts=fiscal_parts,
            bracket_base=bracket_base,
            abatement=abatement,
            quotient=quotient,
            slices=slices,
            tax_on_quotient=tax_on_quotient,
            family_credit=credit_amount,
            tax_before_rounding=tax_before_rounding,
            tax=tax,
            rounding=rules.rounding.describe(),
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("income_tax_calculation_completed", extra={
            "tax_code": rules.code,
            "taxable_income": str(taxable_income.amount),
            "fiscal_parts": str(fiscal_parts),
            "quotient": str(quotient),
            "brackets_reached": len(slices),
            "tax": str(tax.amount),
            "duration_ms": duration_ms,
        })
        return result
