"""
Special Leave Allowance Engine (ACP) - average-wage leave payment.

    window      = [window start, payment date)
    paid days   = months in window * paid days per month - absences
    daily wage  = sum(wages in window) / paid days
    allowance   = round(daily wage * leave days)

The payment date is the leave departure date, so the last day covered is
the day before it.  Where the window starts depends on the policy's
``reference_period``:

    trailing_months   payment date - reference_months
    since_last_leave  return from the previous leave, else the hire date,
                      else the trailing window

Either way the window never starts before the hire date.  An employee with
fewer months of history than the window spans is averaged over the months
actually available; fewer than ``minimum_history_months`` (or none at all)
is an error.

The engine is pure.  Guarding against paying the allowance twice for the
same (employee, run) is the job of
``payroll_runs.services.LeaveAllowanceService``.
"""

from __future__ import annotations

import calendar
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from payroll_kernel.domain.values import Money, sum_money
from payroll_kernel.exceptions import (
    CurrencyMismatchError,
    InsufficientHistoryError,
    InvalidLeaveDaysError,
)
from payroll_kernel.logging_config import get_logger

from payroll_config.schema import LeaveAllowancePolicy, ReferencePeriod
from payroll_engines.tracer import traced_engine

logger = get_logger("engines.leave_allowance")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class ReferenceWage:
    """Gross taxable wage for one past month, identified by its period end."""

    period_end: date
    amount: Money


@dataclass(frozen=True)
class LeaveAllowanceComputation:
    window_start: date
    window_end: date
    wages_used: tuple[ReferenceWage, ...]
    months_used: int
    reference_total: Money
    paid_days: Decimal
    daily_wage: Decimal
    leave_days: Decimal
    amount: Money
    rounding: str = ""
    reference_period: ReferencePeriod = ReferencePeriod.TRAILING_MONTHS

    def to_dict(self) -> dict[str, object]:
        return {
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "reference_period": self.reference_period.value,
            "months_used": self.months_used,
            "reference_total": str(self.reference_total.amount),
            "paid_days": str(self.paid_days),
            "daily_wage": str(self.daily_wage),
            "leave_days": str(self.leave_days),
            "amount": str(self.amount.amount),
            "rounding": self.rounding,
            "wages_used": [
                {"period_end": w.period_end.isoformat(), "amount": str(w.amount.amount)}
                for w in self.wages_used
            ],
        }


def subtract_months(day: date, months: int) -> date:
    """Same day ``months`` earlier, clamped to the end of shorter months."""
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def window_start_for(
    policy: LeaveAllowancePolicy,
    payment_date: date,
    last_leave_return: date | None = None,
    hire_date: date | None = None,
) -> date:
    """First day of the reference window for a payment on ``payment_date``."""
    start = subtract_months(payment_date, policy.reference_months)
    if policy.reference_period is ReferencePeriod.SINCE_LAST_LEAVE:
        anchor = last_leave_return or hire_date
        if anchor is not None:
            start = anchor
    if hire_date is not None and start < hire_date:
        start = hire_date
    return start


class SpecialLeaveAllowanceCalculator:
    """Compute the ACP from reference wages."""

    @traced_engine(
        "leave_allowance", "1.1",
        fingerprint_fields=(
            "reference_wages", "leave_days", "payment_date", "policy",
            "last_leave_return", "hire_date",
        ),
    )
    def calculate(
        self,
        *,
        reference_wages: Sequence[ReferenceWage],
        leave_days: Decimal,
        payment_date: date,
        policy: LeaveAllowancePolicy,
        non_deductible_absence_days: Decimal = _ZERO,
        last_leave_return: date | None = None,
        hire_date: date | None = None,
    ) -> LeaveAllowanceComputation:
        """
        Compute the allowance for ``leave_days`` paid on ``payment_date``.

        ``last_leave_return`` is only read under ``since_last_leave``;
        ``hire_date`` bounds the window under either reference period.

        Raises:
            InvalidLeaveDaysError: If leave_days is not positive.
            CurrencyMismatchError: If the wages in the window mix currencies.
            InsufficientHistoryError: If the window holds fewer months than
                the policy minimum, or no paid days remain.
        """
        if leave_days <= _ZERO:
            raise InvalidLeaveDaysError(str(leave_days))

        window_start = window_start_for(policy, payment_date, last_leave_return, hire_date)
        in_window = tuple(
            sorted(
                (w for w in reference_wages if window_start <= w.period_end < payment_date),
                key=lambda w: w.period_end,
            )
        )
        months = {(w.period_end.year, w.period_end.month) for w in in_window}
        required = max(policy.minimum_history_months, 1)

        if len(months) < required:
            logger.warning("leave_allowance_insufficient_history", extra={
                "window_start": window_start.isoformat(),
                "window_end": payment_date.isoformat(),
                "reference_period": policy.reference_period.value,
                "months_found": len(months),
                "months_required": required,
            })
            raise InsufficientHistoryError(
                window_start.isoformat(), payment_date.isoformat(), len(months), required,
            )

        currency = in_window[0].amount.currency
        for wage in in_window:
            if wage.amount.currency != currency:
                raise CurrencyMismatchError(
                    currency.code, wage.amount.currency.code, "reference_wages",
                )

        paid_days = len(months) * policy.paid_days_per_month - non_deductible_absence_days
        if paid_days <= _ZERO:
            raise InsufficientHistoryError(
                window_start.isoformat(), payment_date.isoformat(), len(months), required,
            )

        total = sum_money([w.amount for w in in_window], currency)
        daily_wage = total.amount / paid_days
        amount = policy.rounding.apply(Money(daily_wage * leave_days, currency))

        logger.info("leave_allowance_computed", extra={
            "reference_period": policy.reference_period.value,
            "window_start": window_start.isoformat(),
            "months_used": len(months),
            "reference_total": str(total.amount),
            "paid_days": str(paid_days),
            "daily_wage": str(daily_wage),
            "leave_days": str(leave_days),
            "amount": str(amount.amount),
        })

        return LeaveAllowanceComputation(
            window_start=window_start,
            window_end=payment_date,
            wages_used=in_window,
            months_used=len(months),
            reference_total=total,
            paid_days=paid_days,
            daily_wage=daily_wage,
            leave_days=leave_days,
            amount=amount,
            rounding=policy.rounding.describe(),
            reference_period=policy.reference_period,
        )
