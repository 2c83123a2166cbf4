"""
Accrual Rule Engine - monthly paid-leave accrual by age and seniority.

Resolution, starting from the rule set's standard monthly rate:

1. Age-triggered REPLACE_RATE rules (youth overrides) that match replace
   the monthly rate; the highest precedence wins.
2. Age-triggered ADD_DAYS rules that match add their bonus days.
3. Among matching seniority rules, the single best by precedence (ties
   broken by the higher threshold) adds its bonus days -- seniority ladders
   select one tier, they do not sum.
4. When a youth override and a seniority bonus both apply, the rule set's
   ``youth_seniority_policy`` decides: STACK keeps both, YOUTH_ONLY drops
   the seniority bonus.  No policy configured is an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from payroll_kernel.exceptions import AccrualPolicyUndefinedError, InvalidSnapshotError
from payroll_kernel.logging_config import get_logger

from payroll_config.schema import (
    AccrualEffect,
    AccrualRule,
    AccrualRuleSet,
    AccrualTrigger,
    YouthSeniorityPolicy,
)
from payroll_engines.tracer import traced_engine

logger = get_logger("engines.accrual")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class AccrualResult:
    standard_monthly_days: Decimal
    monthly_days: Decimal
    bonus_days: Decimal
    rate_rule_id: str | None = None
    bonus_rule_ids: tuple[str, ...] = ()
    suppressed_rule_ids: tuple[str, ...] = ()
    policy: YouthSeniorityPolicy | None = None

    @property
    def annual_days(self) -> Decimal:
        return self.monthly_days * 12 + self.bonus_days

    @property
    def applied_rule_ids(self) -> tuple[str, ...]:
        head = (self.rate_rule_id,) if self.rate_rule_id else ()
        return head + self.bonus_rule_ids


def years_of_service(hire_date: date, as_of: date) -> int:
    """Completed years between ``hire_date`` and ``as_of``.

    Raises:
        ValueError: If ``as_of`` precedes ``hire_date``.
    """
    if as_of < hire_date:
        raise ValueError(f"as_of {as_of} is before hire date {hire_date}")
    years = as_of.year - hire_date.year
    if (as_of.month, as_of.day) < (hire_date.month, hire_date.day):
        years -= 1
    return years


def _best(rules: list[AccrualRule]) -> AccrualRule | None:
    if not rules:
        return None
    return max(rules, key=lambda r: (r.precedence, r.threshold, r.rule_id))


class AccrualRuleEngine:
    """Resolve the leave-accrual rate for one employee."""

    @traced_engine(
        "accrual", "1.0",
        fingerprint_fields=("age", "seniority_years", "rule_set"),
    )
    def resolve(
        self,
        *,
        age: int,
        seniority_years: int,
        rule_set: AccrualRuleSet,
    ) -> AccrualResult:
        """
        Resolve monthly accrual days and annual bonus days.

        Raises:
            InvalidSnapshotError: If age or seniority is negative.
            AccrualPolicyUndefinedError: If a youth override and a seniority
                bonus both apply and no combination policy is configured.
        """
        if age < 0:
            raise InvalidSnapshotError("age", str(age))
        if seniority_years < 0:
            raise InvalidSnapshotError("seniority_years", str(seniority_years))

        matched = [r for r in rule_set.rules if r.matches(age, seniority_years)]

        rate_rule = _best([r for r in matched if r.effect is AccrualEffect.REPLACE_RATE])
        age_bonuses = sorted(
            (
                r for r in matched
                if r.effect is AccrualEffect.ADD_DAYS and r.trigger.is_age
            ),
            key=lambda r: r.rule_id,
        )
        seniority_rule = _best([
            r for r in matched
            if r.trigger is AccrualTrigger.SENIORITY_AT_LEAST
            and r.effect is AccrualEffect.ADD_DAYS
        ])

        suppressed: list[str] = []
        policy = rule_set.youth_seniority_policy
        if rate_rule is not None and seniority_rule is not None:
            if policy is None:
                logger.error("accrual_policy_undefined", extra={
                    "youth_rule_id": rate_rule.rule_id,
                    "seniority_rule_id": seniority_rule.rule_id,
                })
                raise AccrualPolicyUndefinedError(rate_rule.rule_id, seniority_rule.rule_id)
            if policy is YouthSeniorityPolicy.YOUTH_ONLY:
                suppressed.append(seniority_rule.rule_id)
                seniority_rule = None

        bonus_rules = list(age_bonuses)
        if seniority_rule is not None:
            bonus_rules.append(seniority_rule)

        result = AccrualResult(
            standard_monthly_days=rule_set.standard_monthly_days,
            monthly_days=rate_rule.value if rate_rule else rule_set.standard_monthly_days,
            bonus_days=sum((r.value for r in bonus_rules), _ZERO),
            rate_rule_id=rate_rule.rule_id if rate_rule else None,
            bonus_rule_ids=tuple(r.rule_id for r in bonus_rules),
            suppressed_rule_ids=tuple(suppressed),
            policy=policy,
        )

        logger.info("accrual_resolved", extra={
            "age": age,
            "seniority_years": seniority_years,
            "monthly_days": str(result.monthly_days),
            "bonus_days": str(result.bonus_days),
            "applied_rules": list(result.applied_rule_ids),
            "suppressed_rules": suppressed,
        })
        return result
