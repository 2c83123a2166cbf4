"""
Earnings Engine - Gross pay from compensation components.

gross = base salary + allowances + overtime + bonus

Pure function; amounts arrive as Money already at currency precision.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from payroll_kernel.domain.values import Currency, Money, sum_money


@dataclass(frozen=True)
class AllowanceLine:
    """A named allowance paid in the period (transport, housing, ...)."""

    code: str
    amount: Money


@dataclass(frozen=True)
class EarningsLine:
    code: str
    amount: Money


@dataclass(frozen=True)
class GrossPay:
    lines: tuple[EarningsLine, ...]
    total: Money


def compute_gross(
    base_salary: Money,
    allowances: Sequence[AllowanceLine] = (),
    overtime_amount: Money | None = None,
    bonus_amount: Money | None = None,
) -> GrossPay:
    """Sum the earnings components, keeping one line per component."""
    currency: Currency = base_salary.currency
    lines = [EarningsLine("base_salary", base_salary)]
    lines.extend(EarningsLine(f"allowance:{a.code}", a.amount) for a in allowances)
    if overtime_amount is not None and not overtime_amount.is_zero:
        lines.append(EarningsLine("overtime", overtime_amount))
    if bonus_amount is not None and not bonus_amount.is_zero:
        lines.append(EarningsLine("bonus", bonus_amount))

    return GrossPay(
        lines=tuple(lines),
        total=sum_money([line.amount for line in lines], currency),
    )
