"""
Configuration Loader (``payroll_config.loader``).

Responsibility
--------------
Loads country configuration YAML files and parses them into the frozen
``payroll_config.schema`` dataclasses.  Runtime callers obtain
configurations through ``ConfigurationResolver`` (or
``payroll_config.get_active_configuration()``), never by calling the loader
directly.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Consumed by
``payroll_config.sources.YamlDirectorySource``.  Depends only on the kernel
value types.

Invariants enforced
-------------------
* No silent defaults for required fields: a missing key raises ``KeyError``
  naming the key.
* Rates and amounts are parsed to ``Decimal`` via their string form, never
  kept as float.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the rule
  content (lifecycle keys excluded); it is stored on the configuration.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid dates, enums or numbers  -> ``ValueError``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from payroll_kernel.utils.hashing import hash_payload

from payroll_config.lifecycle import ConfigStatus
from payroll_config.schema import (
    AccrualEffect,
    AccrualRule,
    AccrualRuleSet,
    AccrualTrigger,
    BracketPeriod,
    ContributionBase,
    ContributionKind,
    ContributionScheme,
    CountryConfiguration,
    FamilyTaxCredit,
    IncomeTaxRules,
    LeaveAllowancePolicy,
    MinimumWageEntry,
    MinimumWageTable,
    ReferencePeriod,
    RoundingMode,
    RoundingPolicy,
    TaxBracket,
    TransportAllowanceEntry,
    TransportAllowanceTable,
    YouthSeniorityPolicy,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a Decimal from a YAML scalar (quoted string, int, or float)."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{field_name}: invalid number {value!r}") from e


def _optional_decimal(data: dict[str, Any], key: str) -> Decimal | None:
    value = data.get(key)
    if value is None:
        return None
    return parse_decimal(value, key)


def parse_rounding(data: dict[str, Any] | None) -> RoundingPolicy:
    """Parse a rounding policy; absent means whole currency units, half-up."""
    if not data:
        return RoundingPolicy()
    return RoundingPolicy(
        increment=parse_decimal(data.get("increment", "1"), "rounding.increment"),
        mode=RoundingMode(data.get("mode", RoundingMode.HALF_UP.value)),
    )


def parse_contribution(data: dict[str, Any]) -> ContributionScheme:
    """
    Parse a ``ContributionScheme`` from a dict.

    Preconditions:
        - ``data`` contains ``code`` and ``name``.
    Raises:
        KeyError: if required keys are missing.
        ValueError: if an enum or number cannot be parsed.
    """
    code = data["code"]
    sector_rates = data.get("sector_employer_rates") or {}
    return ContributionScheme(
        code=code,
        name=data["name"],
        kind=ContributionKind(data.get("kind", ContributionKind.RATE.value)),
        base=ContributionBase(data.get("base", ContributionBase.GROSS.value)),
        employee_rate=parse_decimal(data.get("employee_rate", "0"), f"{code}.employee_rate"),
        employer_rate=parse_decimal(data.get("employer_rate", "0"), f"{code}.employer_rate"),
        floor=_optional_decimal(data, "floor"),
        ceiling=_optional_decimal(data, "ceiling"),
        rounding=parse_rounding(data.get("rounding")),
        reduces_taxable_income=bool(data.get("reduces_taxable_income", True)),
        fixed_employee_amount=parse_decimal(
            data.get("fixed_employee_amount", "0"), f"{code}.fixed_employee_amount",
        ),
        fixed_employer_amount=parse_decimal(
            data.get("fixed_employer_amount", "0"), f"{code}.fixed_employer_amount",
        ),
        sector_employer_rates=tuple(
            (str(sector), parse_decimal(rate, f"{code}.sector_employer_rates.{sector}"))
            for sector, rate in sorted(sector_rates.items())
        ),
    )


def parse_income_tax(data: dict[str, Any]) -> IncomeTaxRules:
    """Parse ``IncomeTaxRules`` including brackets and family tax credits."""
    brackets = tuple(
        TaxBracket(
            lower=parse_decimal(b["lower"], "bracket.lower"),
            upper=_optional_decimal(b, "upper"),
            rate=parse_decimal(b["rate"], "bracket.rate"),
        )
        for b in data["brackets"]
    )
    credits = tuple(
        FamilyTaxCredit(
            fiscal_parts=parse_decimal(c["fiscal_parts"], "family_tax_credits.fiscal_parts"),
            amount=parse_decimal(c["amount"], "family_tax_credits.amount"),
        )
        for c in data.get("family_tax_credits") or []
    )
    return IncomeTaxRules(
        code=data["code"],
        brackets=brackets,
        rounding=parse_rounding(data.get("rounding")),
        bracket_period=BracketPeriod(data.get("bracket_period", BracketPeriod.MONTHLY.value)),
        abatement_rate=parse_decimal(data.get("abatement_rate", "0"), "abatement_rate"),
        abatement_ceiling=_optional_decimal(data, "abatement_ceiling"),
        family_tax_credits=credits,
    )


def parse_minimum_wages(rows: list[dict[str, Any]] | None) -> MinimumWageTable:
    return MinimumWageTable(
        entries=tuple(
            MinimumWageEntry(
                category=str(row["category"]),
                sector=str(row["sector"]),
                monthly_minimum=parse_decimal(row["monthly_minimum"], "monthly_minimum"),
            )
            for row in rows or []
        )
    )


def parse_transport_allowances(data: dict[str, Any] | None) -> TransportAllowanceTable:
    if not data:
        return TransportAllowanceTable()
    return TransportAllowanceTable(
        entries=tuple(
            TransportAllowanceEntry(
                city=str(row["city"]),
                monthly_minimum=parse_decimal(row["monthly_minimum"], "monthly_minimum"),
            )
            for row in data.get("cities") or []
        ),
        allowance_code=data.get("allowance_code", "transport"),
    )


def parse_accrual_rules(data: dict[str, Any]) -> AccrualRuleSet:
    rules = tuple(
        AccrualRule(
            rule_id=row["rule_id"],
            trigger=AccrualTrigger(row["trigger"]),
            threshold=parse_decimal(row["threshold"], f"{row['rule_id']}.threshold"),
            effect=AccrualEffect(row["effect"]),
            value=parse_decimal(row["value"], f"{row['rule_id']}.value"),
            precedence=int(row.get("precedence", 0)),
            description=row.get("description", ""),
        )
        for row in data.get("rules") or []
    )
    policy = data.get("youth_seniority_policy")
    return AccrualRuleSet(
        standard_monthly_days=parse_decimal(
            data["standard_monthly_days"], "standard_monthly_days",
        ),
        rules=rules,
        youth_seniority_policy=YouthSeniorityPolicy(policy) if policy else None,
    )


def parse_leave_allowance(data: dict[str, Any] | None) -> LeaveAllowancePolicy:
    if not data:
        return LeaveAllowancePolicy()
    return LeaveAllowancePolicy(
        reference_months=int(data.get("reference_months", 12)),
        reference_period=ReferencePeriod(
            data.get("reference_period", ReferencePeriod.TRAILING_MONTHS.value)
        ),
        paid_days_per_month=parse_decimal(
            data.get("paid_days_per_month", "30"), "paid_days_per_month",
        ),
        minimum_history_months=int(data.get("minimum_history_months", 1)),
        rounding=parse_rounding(data.get("rounding")),
    )


def parse_country_configuration(data: dict[str, Any]) -> CountryConfiguration:
    """
    Parse a full ``CountryConfiguration`` from a YAML mapping.

    Postconditions:
        - ``checksum`` is the SHA-256 of the canonical rule content.
    Raises:
        KeyError: if required keys are missing.
        ValueError: if dates, enums, or numbers are malformed.
    """
    return CountryConfiguration(
        country_code=str(data["country_code"]).upper(),
        version=str(data["version"]),
        currency=str(data["currency"]).upper(),
        status=ConfigStatus(data.get("status", ConfigStatus.DRAFT.value)),
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_date(data["effective_to"]) if data.get("effective_to") else None,
        contribution_schemes=tuple(
            parse_contribution(row) for row in data.get("contributions") or []
        ),
        income_tax=parse_income_tax(data["income_tax"]),
        minimum_wages=parse_minimum_wages(data.get("minimum_wages")),
        transport_allowances=parse_transport_allowances(data.get("transport_allowances")),
        accrual_rules=parse_accrual_rules(data["accrual"]),
        leave_allowance=parse_leave_allowance(data.get("leave_allowance")),
        checksum=compute_checksum(data),
        description=data.get("description", ""),
    )


def load_country_configuration(path: Path) -> CountryConfiguration:
    """Load and parse one configuration file."""
    return parse_country_configuration(load_yaml_file(path))


# Closing a version (status, effective_to) or rewording it must not
# invalidate runs already pinned to its rules.
LIFECYCLE_KEYS: frozenset[str] = frozenset({"status", "effective_to", "description"})


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 of the canonical JSON of the rule content.

    Lifecycle keys (``LIFECYCLE_KEYS``) are left out; every other key,
    including ``version`` and ``effective_from``, is covered.
    """
    return hash_payload(
        {key: value for key, value in data.items() if key not in LIFECYCLE_KEYS}
    )
