"""
Configuration Validator (``payroll_config.validator``).

Responsibility
--------------
Validates a ``CountryConfiguration`` before it may be resolved, and checks
that the versions of one country never overlap in time.

Architecture position
---------------------
**Config layer** -- load-time validation.  Called by the configuration
sources after parsing.  No dependency on engines or runs.

Invariants enforced
-------------------
* Tax brackets start at zero, are sorted, contiguous and non-overlapping;
  only the top bracket is open.
* Rates lie in [0, 1]; floors never exceed ceilings.
* Scheme codes, minimum-wage keys, cities and accrual rule ids are unique.
* Rounding increments are multiples of the currency's minor unit.
* Two resolvable versions of one country never cover the same date.

Failure modes
-------------
* Validation errors  -> configuration MUST NOT be used.
* Validation warnings  -> configuration may be used but should be reviewed
  (configured contribution floors, undeclared youth/seniority policy).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from payroll_kernel.domain.currency import CurrencyRegistry

from payroll_config.schema import (
    AccrualEffect,
    AccrualTrigger,
    ContributionKind,
    CountryConfiguration,
    RoundingPolicy,
)

_ZERO = Decimal("0")
_ONE = Decimal("1")


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.  Warnings
    do not block use but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_country_configuration(
    config: CountryConfiguration,
) -> ConfigValidationResult:
    """
    Validate a single configuration version.

    Postconditions:
        - Returns a ``ConfigValidationResult`` with errors and warnings.
        - A configuration with errors MUST NOT be resolved.
    """
    result = ConfigValidationResult()

    _validate_identity(config, result)
    _validate_contributions(config, result)
    _validate_income_tax(config, result)
    _validate_minimum_wages(config, result)
    _validate_transport_allowances(config, result)
    _validate_accrual_rules(config, result)
    _validate_leave_allowance(config, result)

    return result


def validate_version_set(
    configs: Iterable[CountryConfiguration],
) -> ConfigValidationResult:
    """Check that resolvable versions of each country never overlap."""
    result = ConfigValidationResult()
    by_country: dict[str, list[CountryConfiguration]] = {}
    for config in configs:
        if config.is_resolvable:
            by_country.setdefault(config.country_code, []).append(config)

    for country, versions in sorted(by_country.items()):
        ordered = sorted(versions, key=lambda c: c.effective_from)
        for earlier, later in zip(ordered, ordered[1:]):
            if earlier.effective_to is None or earlier.effective_to >= later.effective_from:
                result.add_error(
                    f"{country}: version {earlier.version} "
                    f"({earlier.effective_from}..{earlier.effective_to or 'open'}) "
                    f"overlaps version {later.version} "
                    f"starting {later.effective_from}"
                )
    return result


def _validate_rounding(
    label: str,
    rounding: RoundingPolicy,
    minor_unit: Decimal | None,
    result: ConfigValidationResult,
) -> None:
    if rounding.increment <= _ZERO:
        result.add_error(f"{label}: rounding increment must be positive")
        return
    if minor_unit is not None and rounding.increment % minor_unit != _ZERO:
        result.add_error(
            f"{label}: rounding increment {rounding.increment} is finer than "
            f"the currency minor unit {minor_unit}"
        )


def _minor_unit(config: CountryConfiguration) -> Decimal | None:
    info = CurrencyRegistry.get_info(config.currency)
    return info.minor_unit if info else None


def _validate_identity(
    config: CountryConfiguration, result: ConfigValidationResult,
) -> None:
    if not config.country_code:
        result.add_error("country_code is required")
    if not config.version:
        result.add_error("version is required")
    if not CurrencyRegistry.is_valid(config.currency):
        result.add_error(f"Unknown currency: {config.currency}")
    if config.effective_to is not None and config.effective_to < config.effective_from:
        result.add_error(
            f"effective_to {config.effective_to} is before "
            f"effective_from {config.effective_from}"
        )


def _validate_rate(label: str, rate: Decimal, result: ConfigValidationResult) -> None:
    if rate < _ZERO or rate > _ONE:
        result.add_error(f"{label}: rate {rate} outside [0, 1]")


def _validate_contributions(
    config: CountryConfiguration, result: ConfigValidationResult,
) -> None:
    """Check rate bounds, floor/ceiling ordering and kind consistency."""
    minor_unit = _minor_unit(config)
    seen: set[str] = set()
    for scheme in config.contribution_schemes:
        label = f"contribution {scheme.code}"
        if scheme.code in seen:
            result.add_error(f"Duplicate contribution scheme code: {scheme.code}")
        seen.add(scheme.code)

        _validate_rounding(label, scheme.rounding, minor_unit, result)

        if scheme.kind is ContributionKind.FIXED:
            if scheme.employee_rate or scheme.employer_rate or scheme.sector_employer_rates:
                result.add_error(f"{label}: fixed scheme must not declare rates")
            if scheme.fixed_employee_amount < _ZERO or scheme.fixed_employer_amount < _ZERO:
                result.add_error(f"{label}: fixed amounts must be non-negative")
            continue

        if scheme.fixed_employee_amount or scheme.fixed_employer_amount:
            result.add_error(f"{label}: rate scheme must not declare fixed amounts")
        _validate_rate(f"{label}.employee_rate", scheme.employee_rate, result)
        _validate_rate(f"{label}.employer_rate", scheme.employer_rate, result)
        for sector, rate in scheme.sector_employer_rates:
            _validate_rate(f"{label}.sector[{sector}]", rate, result)

        if scheme.ceiling is not None and scheme.ceiling <= _ZERO:
            result.add_error(f"{label}: ceiling must be positive")
        if scheme.floor is not None:
            if scheme.floor < _ZERO:
                result.add_error(f"{label}: floor must be non-negative")
            if scheme.ceiling is not None and scheme.floor > scheme.ceiling:
                result.add_error(
                    f"{label}: floor {scheme.floor} exceeds ceiling {scheme.ceiling}"
                )
            result.add_warning(
                f"{label}: contribution floor {scheme.floor} configured; "
                "confirm the statutory basis"
            )


def _validate_income_tax(
    config: CountryConfiguration, result: ConfigValidationResult,
) -> None:
    """Brackets must tile [0, +inf) in ascending order."""
    rules = config.income_tax
    _validate_rounding(f"income_tax {rules.code}", rules.rounding, _minor_unit(config), result)

    if not rules.brackets:
        result.add_error("income_tax: at least one bracket is required")
        return

    if rules.brackets[0].lower != _ZERO:
        result.add_error(
            f"income_tax: first bracket must start at 0, starts at {rules.brackets[0].lower}"
        )

    for index, bracket in enumerate(rules.brackets):
        _validate_rate(f"income_tax bracket {index}", bracket.rate, result)
        is_last = index == len(rules.brackets) - 1
        if bracket.upper is None:
            if not is_last:
                result.add_error(f"income_tax: bracket {index} is open but not the last")
            continue
        if bracket.upper <= bracket.lower:
            result.add_error(
                f"income_tax: bracket {index} upper {bracket.upper} "
                f"not above lower {bracket.lower}"
            )
        if is_last:
            result.add_error("income_tax: top bracket must be open (upper: null)")
        else:
            following = rules.brackets[index + 1]
            if following.lower != bracket.upper:
                result.add_error(
                    f"income_tax: bracket {index + 1} starts at {following.lower}, "
                    f"expected {bracket.upper} (brackets must be contiguous)"
                )

    if rules.abatement_rate < _ZERO or rules.abatement_rate >= _ONE:
        result.add_error(f"income_tax: abatement_rate {rules.abatement_rate} outside [0, 1)")
    if rules.abatement_ceiling is not None and rules.abatement_ceiling < _ZERO:
        result.add_error("income_tax: abatement_ceiling must be non-negative")

    parts_seen: set[Decimal] = set()
    for credit in rules.family_tax_credits:
        if credit.fiscal_parts in parts_seen:
            result.add_error(f"income_tax: duplicate family credit for {credit.fiscal_parts} parts")
        parts_seen.add(credit.fiscal_parts)
        if credit.fiscal_parts <= _ZERO or credit.amount < _ZERO:
            result.add_error(
                f"income_tax: invalid family credit {credit.fiscal_parts} -> {credit.amount}"
            )


def _validate_minimum_wages(
    config: CountryConfiguration, result: ConfigValidationResult,
) -> None:
    seen: set[tuple[str, str]] = set()
    for entry in config.minimum_wages.entries:
        key = (entry.category, entry.sector)
        if key in seen:
            result.add_error(f"Duplicate minimum wage entry: {key}")
        seen.add(key)
        if entry.monthly_minimum <= _ZERO:
            result.add_error(f"Minimum wage {key} must be positive")


def _validate_transport_allowances(
    config: CountryConfiguration, result: ConfigValidationResult,
) -> None:
    seen: set[str] = set()
    for entry in config.transport_allowances.entries:
        city = entry.city.upper()
        if city in seen:
            result.add_error(f"Duplicate transport allowance city: {entry.city}")
        seen.add(city)
        if entry.monthly_minimum < _ZERO:
            result.add_error(f"Transport minimum for {entry.city} must be non-negative")


def _validate_accrual_rules(
    config: CountryConfiguration, result: ConfigValidationResult,
) -> None:
    rule_set = config.accrual_rules
    if rule_set.standard_monthly_days <= _ZERO:
        result.add_error("accrual: standard_monthly_days must be positive")

    seen: set[str] = set()
    has_youth_override = False
    has_seniority = False
    for rule in rule_set.rules:
        if rule.rule_id in seen:
            result.add_error(f"accrual: duplicate rule id {rule.rule_id}")
        seen.add(rule.rule_id)
        if rule.value < _ZERO:
            result.add_error(f"accrual: rule {rule.rule_id} value must be non-negative")
        if rule.effect is AccrualEffect.REPLACE_RATE:
            if not rule.trigger.is_age:
                result.add_error(
                    f"accrual: rule {rule.rule_id} replaces the rate but is not age-triggered"
                )
            has_youth_override = True
        if rule.trigger is AccrualTrigger.SENIORITY_AT_LEAST:
            has_seniority = True

    if has_youth_override and has_seniority and rule_set.youth_seniority_policy is None:
        result.add_warning(
            "accrual: youth override and seniority rules configured without "
            "youth_seniority_policy; calculations where both apply will fail"
        )


def _validate_leave_allowance(
    config: CountryConfiguration, result: ConfigValidationResult,
) -> None:
    policy = config.leave_allowance
    if policy.reference_months < 1:
        result.add_error("leave_allowance: reference_months must be at least 1")
    if not 1 <= policy.minimum_history_months <= max(policy.reference_months, 1):
        result.add_error(
            "leave_allowance: minimum_history_months must be between 1 and reference_months"
        )
    if policy.paid_days_per_month <= _ZERO:
        result.add_error("leave_allowance: paid_days_per_month must be positive")
    _validate_rounding("leave_allowance", policy.rounding, _minor_unit(config), result)
