"""
Pure domain layer.

Value objects and the clock abstraction.  No ORM, no database, no I/O.
"""

from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payroll_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from payroll_kernel.domain.values import Currency, Money, sum_money

__all__ = [
    "Clock",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DeterministicClock",
    "Money",
    "SystemClock",
    "sum_money",
]
