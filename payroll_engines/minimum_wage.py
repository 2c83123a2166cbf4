"""
Minimum Wage Engine - statutory floor checks.

Compares the employee's base salary to the minimum configured for their
(category, sector), and the transport allowance to the minimum for their
city.  Results are findings, not exceptions: a violation is reported to
the caller and never aborts the calculation.  A missing table entry is an
explicit "unmapped" warning; compliance is never assumed.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from payroll_kernel.domain.values import Currency, Money, sum_money
from payroll_kernel.logging_config import get_logger

from payroll_config.schema import MinimumWageTable, TransportAllowanceTable
from payroll_engines.earnings import AllowanceLine

logger = get_logger("engines.minimum_wage")


class FindingType(str, Enum):
    MINIMUM_WAGE_VIOLATION = "minimum_wage_violation"
    UNMAPPED_CATEGORY = "unmapped_category"
    TRANSPORT_ALLOWANCE_BELOW_MINIMUM = "transport_allowance_below_minimum"
    UNMAPPED_CITY = "unmapped_city"


class FindingSeverity(str, Enum):
    VIOLATION = "violation"
    WARNING = "warning"


@dataclass(frozen=True)
class ComplianceFinding:
    """A non-fatal compliance result attached to a calculation."""

    finding_type: FindingType
    severity: FindingSeverity
    message: str
    details: tuple[tuple[str, str], ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "finding_type": self.finding_type.value,
            "severity": self.severity.value,
            "message": self.message,
            "details": dict(self.details),
        }


class MinimumWageValidator:
    """Pure checks against the configured minimum tables."""

    def validate_base_salary(
        self,
        *,
        base_salary: Money,
        category: str,
        sector_code: str | None,
        table: MinimumWageTable,
    ) -> tuple[ComplianceFinding, ...]:
        entry = table.lookup(category, sector_code)
        if entry is None:
            logger.warning("minimum_wage_unmapped_category", extra={
                "category": category,
                "sector_code": sector_code,
            })
            return (
                ComplianceFinding(
                    finding_type=FindingType.UNMAPPED_CATEGORY,
                    severity=FindingSeverity.WARNING,
                    message=(
                        f"No minimum wage configured for category {category!r} "
                        f"in sector {sector_code!r}"
                    ),
                    details=(
                        ("category", category),
                        ("sector_code", sector_code or ""),
                    ),
                ),
            )

        minimum = Money(entry.monthly_minimum, base_salary.currency)
        if base_salary >= minimum:
            return ()

        shortfall = minimum - base_salary
        logger.warning("minimum_wage_violation", extra={
            "category": category,
            "sector_code": sector_code,
            "base_salary": str(base_salary.amount),
            "minimum": str(minimum.amount),
        })
        return (
            ComplianceFinding(
                finding_type=FindingType.MINIMUM_WAGE_VIOLATION,
                severity=FindingSeverity.VIOLATION,
                message=(
                    f"Base salary {base_salary} is below the minimum {minimum} "
                    f"for category {category!r}"
                ),
                details=(
                    ("category", category),
                    ("sector_code", entry.sector),
                    ("minimum", str(minimum.amount)),
                    ("base_salary", str(base_salary.amount)),
                    ("shortfall", str(shortfall.amount)),
                ),
            ),
        )

    def validate_transport_allowance(
        self,
        *,
        allowances: Sequence[AllowanceLine],
        city: str | None,
        table: TransportAllowanceTable,
        currency: Currency,
    ) -> tuple[ComplianceFinding, ...]:
        """Check the transport allowance against the city minimum.

        A country with an empty table mandates no minimum.
        """
        if not table.entries:
            return ()

        entry = table.lookup(city)
        if entry is None:
            logger.warning("transport_allowance_unmapped_city", extra={"city": city})
            return (
                ComplianceFinding(
                    finding_type=FindingType.UNMAPPED_CITY,
                    severity=FindingSeverity.WARNING,
                    message=f"No transport allowance minimum configured for city {city!r}",
                    details=(("city", city or ""),),
                ),
            )

        paid = sum_money(
            [a.amount for a in allowances if a.code == table.allowance_code],
            currency,
        )
        minimum = Money(entry.monthly_minimum, currency)
        if paid >= minimum:
            return ()

        logger.warning("transport_allowance_below_minimum", extra={
            "city": city,
            "resolved_city": entry.city,
            "paid": str(paid.amount),
            "minimum": str(minimum.amount),
        })
        return (
            ComplianceFinding(
                finding_type=FindingType.TRANSPORT_ALLOWANCE_BELOW_MINIMUM,
                severity=FindingSeverity.VIOLATION,
                message=(
                    f"Transport allowance {paid} is below the minimum {minimum} "
                    f"for {entry.city}"
                ),
                details=(
                    ("city", city or ""),
                    ("resolved_city", entry.city),
                    ("minimum", str(minimum.amount)),
                    ("paid", str(paid.amount)),
                ),
            ),
        )
