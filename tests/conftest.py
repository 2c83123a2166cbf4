"""
Pytest fixtures for the payroll engine test suite.

Provides:
- Structured logging configuration and a ``captured_logs`` fixture
- Sample configurations: the packaged YAML sets and a small in-memory set
- Snapshot factory for compensation inputs
- In-memory SQLite sessions for run persistence tests
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from payroll_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.domain.values import Money
from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

from payroll_config import DEFAULT_CONFIG_DIR
from payroll_config.resolver import ConfigurationResolver
from payroll_config.schema import (
    AccrualEffect,
    AccrualRule,
    AccrualRuleSet,
    AccrualTrigger,
    ContributionKind,
    ContributionScheme,
    CountryConfiguration,
    IncomeTaxRules,
    MinimumWageEntry,
    MinimumWageTable,
    RoundingPolicy,
    TaxBracket,
)
from payroll_config.sources import InMemoryConfigurationSource, YamlDirectorySource
from payroll_engines.earnings import AllowanceLine
from payroll_runs.domain.types import EmployeeCompensationSnapshot


# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

CI_DATE = date(2024, 3, 31)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture payroll_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.calculate(snapshot, config)
            logs = captured_logs()
            assert any(r["message"] == "calculation_computed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payroll_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "db: mark test as using the SQLite persistence fixtures"
    )


# =============================================================================
# Configuration fixtures
# =============================================================================


def make_config(**overrides) -> CountryConfiguration:
    """A small XOF configuration: one 6.3% scheme, one flat 1,000 scheme.

    Brackets (monthly): 0-75,000 at 0%, 75,000-240,000 at 16%, above at 21%.
    """
    values = dict(
        country_code="TS",
        version="test.1",
        currency="XOF",
        effective_from=date(2024, 1, 1),
        income_tax=IncomeTaxRules(
            code="TEST_IT",
            brackets=(
                TaxBracket(Decimal("0"), Decimal("75000"), Decimal("0")),
                TaxBracket(Decimal("75000"), Decimal("240000"), Decimal("0.16")),
                TaxBracket(Decimal("240000"), None, Decimal("0.21")),
            ),
            rounding=RoundingPolicy(Decimal("10")),
        ),
        contribution_schemes=(
            ContributionScheme(
                code="PENSION",
                name="Pension",
                employee_rate=Decimal("0.063"),
                employer_rate=Decimal("0.077"),
            ),
            ContributionScheme(
                code="HEALTH",
                name="Flat health coverage",
                kind=ContributionKind.FIXED,
                fixed_employee_amount=Decimal("1000"),
                fixed_employer_amount=Decimal("500"),
            ),
        ),
        minimum_wages=MinimumWageTable((
            MinimumWageEntry("A", "*", Decimal("75000")),
            MinimumWageEntry("B", "INDUSTRY", Decimal("90000")),
        )),
        accrual_rules=AccrualRuleSet(
            standard_monthly_days=Decimal("2.0"),
            rules=(
                AccrualRule(
                    rule_id="YOUTH",
                    trigger=AccrualTrigger.AGE_BELOW,
                    threshold=Decimal("21"),
                    effect=AccrualEffect.REPLACE_RATE,
                    value=Decimal("2.5"),
                ),
            ),
        ),
        checksum="test-checksum",
    )
    values.update(overrides)
    return CountryConfiguration(**values)


def make_snapshot(**overrides) -> EmployeeCompensationSnapshot:
    """Snapshot for the small test configuration; override any field."""
    currency = overrides.pop("currency", "XOF")
    values = dict(
        employee_id="EMP-001",
        country_code="TS",
        period_start=date(2024, 3, 1),
        period_end=CI_DATE,
        calculation_date=CI_DATE,
        base_salary=Money.of("180000", currency),
        fiscal_parts=Decimal("1"),
        age=30,
        seniority_years=0,
        category="A",
    )
    values.update(overrides)
    return EmployeeCompensationSnapshot(**values)


def transport(amount: str, currency: str = "XOF") -> AllowanceLine:
    return AllowanceLine("transport", Money.of(amount, currency))


@pytest.fixture
def test_config() -> CountryConfiguration:
    return make_config()


@pytest.fixture(scope="session")
def yaml_source() -> YamlDirectorySource:
    return YamlDirectorySource(DEFAULT_CONFIG_DIR)


@pytest.fixture
def resolver(yaml_source) -> ConfigurationResolver:
    """Resolver over the packaged YAML sets."""
    return ConfigurationResolver(yaml_source)


@pytest.fixture
def ci_config(resolver) -> CountryConfiguration:
    return resolver.resolve("CI", CI_DATE)


@pytest.fixture
def sn_config(resolver) -> CountryConfiguration:
    return resolver.resolve("SN", CI_DATE)


@pytest.fixture
def memory_resolver(test_config) -> ConfigurationResolver:
    """Resolver over the small in-memory configuration."""
    return ConfigurationResolver(InMemoryConfigurationSource([test_config]))


# =============================================================================
# Persistence fixtures
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(
        start=datetime(2024, 4, 2, 9, 0, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def db_session():
    """In-memory SQLite session with every payroll table created."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    session = get_session()
    try:
        yield session
    finally:
        session.close()
        drop_tables()
        reset_engine()
