"""Tests for minimum wage and transport allowance findings."""

from decimal import Decimal

from payroll_kernel.domain.values import Currency, Money

from payroll_config.schema import (
    MinimumWageEntry,
    MinimumWageTable,
    TransportAllowanceEntry,
    TransportAllowanceTable,
)
from payroll_engines.earnings import AllowanceLine
from payroll_engines.minimum_wage import (
    FindingSeverity,
    FindingType,
    MinimumWageValidator,
)

XOF = Currency("XOF")

WAGES = MinimumWageTable((
    MinimumWageEntry("1A", "*", Decimal("75000")),
    MinimumWageEntry("1A", "AGRICULTURE", Decimal("70000")),
    MinimumWageEntry("2B", "INDUSTRY", Decimal("90000")),
))

TRANSPORT = TransportAllowanceTable((
    TransportAllowanceEntry("ABIDJAN", Decimal("30000")),
    TransportAllowanceEntry("OTHER", Decimal("20000")),
))


def xof(amount: str) -> Money:
    return Money.of(amount, XOF)


class TestBaseSalary:

    def setup_method(self):
        self.validator = MinimumWageValidator()

    def test_compliant(self):
        findings = self.validator.validate_base_salary(
            base_salary=xof("75000"), category="1A", sector_code=None, table=WAGES,
        )
        assert findings == ()

    def test_violation(self):
        (finding,) = self.validator.validate_base_salary(
            base_salary=xof("60000"), category="1A", sector_code="SERVICES", table=WAGES,
        )
        assert finding.finding_type is FindingType.MINIMUM_WAGE_VIOLATION
        assert finding.severity is FindingSeverity.VIOLATION
        details = dict(finding.details)
        assert details["minimum"] == "75000"
        assert details["shortfall"] == "15000"
        assert details["sector_code"] == "*"

    def test_exact_sector_entry_preferred(self):
        findings = self.validator.validate_base_salary(
            base_salary=xof("72000"), category="1A", sector_code="AGRICULTURE", table=WAGES,
        )
        assert findings == ()

    def test_unmapped_category_is_a_warning(self):
        (finding,) = self.validator.validate_base_salary(
            base_salary=xof("500000"), category="9Z", sector_code=None, table=WAGES,
        )
        assert finding.finding_type is FindingType.UNMAPPED_CATEGORY
        assert finding.severity is FindingSeverity.WARNING

    def test_no_wildcard_means_unmapped(self):
        (finding,) = self.validator.validate_base_salary(
            base_salary=xof("500000"), category="2B", sector_code="SERVICES", table=WAGES,
        )
        assert finding.finding_type is FindingType.UNMAPPED_CATEGORY

    def test_to_dict(self):
        (finding,) = self.validator.validate_base_salary(
            base_salary=xof("60000"), category="1A", sector_code=None, table=WAGES,
        )
        payload = finding.to_dict()
        assert payload["finding_type"] == "minimum_wage_violation"
        assert payload["severity"] == "violation"
        assert payload["details"]["base_salary"] == "60000"


class TestTransportAllowance:

    def setup_method(self):
        self.validator = MinimumWageValidator()

    def test_city_minimum_met(self):
        findings = self.validator.validate_transport_allowance(
            allowances=(AllowanceLine("transport", xof("30000")),),
            city="abidjan",
            table=TRANSPORT,
            currency=XOF,
        )
        assert findings == ()

    def test_below_city_minimum(self):
        (finding,) = self.validator.validate_transport_allowance(
            allowances=(AllowanceLine("transport", xof("25000")),),
            city="ABIDJAN",
            table=TRANSPORT,
            currency=XOF,
        )
        assert finding.finding_type is FindingType.TRANSPORT_ALLOWANCE_BELOW_MINIMUM
        assert dict(finding.details)["paid"] == "25000"

    def test_unknown_city_uses_other(self):
        (finding,) = self.validator.validate_transport_allowance(
            allowances=(), city="KORHOGO", table=TRANSPORT, currency=XOF,
        )
        assert dict(finding.details)["resolved_city"] == "OTHER"
        assert dict(finding.details)["minimum"] == "20000"

    def test_other_allowances_do_not_count(self):
        (finding,) = self.validator.validate_transport_allowance(
            allowances=(AllowanceLine("housing", xof("50000")),),
            city="ABIDJAN",
            table=TRANSPORT,
            currency=XOF,
        )
        assert finding.severity is FindingSeverity.VIOLATION

    def test_no_table_no_findings(self):
        assert self.validator.validate_transport_allowance(
            allowances=(), city=None, table=TransportAllowanceTable(), currency=XOF,
        ) == ()

    def test_no_other_entry_is_unmapped(self):
        table = TransportAllowanceTable((TransportAllowanceEntry("DAKAR", Decimal("26000")),))
        (finding,) = self.validator.validate_transport_allowance(
            allowances=(), city="THIES", table=table, currency=XOF,
        )
        assert finding.finding_type is FindingType.UNMAPPED_CITY
        assert finding.severity is FindingSeverity.WARNING
