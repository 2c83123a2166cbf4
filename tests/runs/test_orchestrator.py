"""
Tests for PayrollCalculationOrchestrator.

Covers:
- Cote d'Ivoire and Senegal end-to-end payslips from the packaged sets
- Balance and employer cost identities
- Input rejection (currency, base salary, fiscal parts, age, seniority)
- Configuration coverage checks
- Audit trail and calculation state logs
- Special leave allowance that the wage history cannot support
- Multi-employee calculation with failure isolation
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from payroll_kernel.domain.values import Currency, Money
from payroll_kernel.exceptions import (
    ConfigurationNotFoundError,
    CurrencyMismatchError,
    InvalidBaseSalaryError,
    InvalidFiscalPartsError,
    InvalidLeaveDaysError,
    InvalidSnapshotError,
)

from payroll_config.schema import ReferencePeriod
from payroll_engines.leave_allowance import ReferenceWage, subtract_months
from payroll_engines.minimum_wage import FindingType
from payroll_runs.domain.types import (
    AuditKind,
    CalculationOptions,
    LeaveAllowanceRequest,
)
from payroll_runs.orchestrator import PayrollCalculationOrchestrator
from tests.conftest import CI_DATE, make_config, make_snapshot, transport

XOF = Currency("XOF")


def xof(amount: str) -> Money:
    return Money.of(amount, XOF)


def ci_snapshot(**overrides):
    values = dict(country_code="CI", category="1A")
    values.update(overrides)
    return make_snapshot(**values)


class TestCoteDIvoire:

    def setup_method(self):
        self.orchestrator = PayrollCalculationOrchestrator()

    def test_reference_payslip(self, ci_config):
        result = self.orchestrator.calculate(ci_snapshot(), ci_config)

        assert result.gross_salary == xof("180000")
        assert result.contributions.line_for("CNPS_PENSION").employee_amount == xof("11340")
        assert result.contributions.line_for("CMU").employee_amount == xof("1000")
        assert result.taxable_income == xof("167660")
        assert result.income_tax.tax == xof("14830")
        assert result.net_salary == xof("152830")
        assert result.total_employer_contributions == xof("21585")
        assert result.total_employer_cost == xof("201585")
        assert result.config_version == "2024.1"

    def test_missing_transport_is_a_violation(self, ci_config):
        result = self.orchestrator.calculate(ci_snapshot(), ci_config)
        (finding,) = result.findings
        assert finding.finding_type is FindingType.TRANSPORT_ALLOWANCE_BELOW_MINIMUM
        assert dict(finding.details)["resolved_city"] == "OTHER"
        assert result.has_violations

    def test_transport_paid_clears_finding(self, ci_config):
        result = self.orchestrator.calculate(
            ci_snapshot(city="ABIDJAN", allowances=(transport("30000"),)), ci_config,
        )
        assert result.findings == ()
        assert result.gross_salary == xof("210000")

    def test_checks_can_be_disabled(self, ci_config):
        result = self.orchestrator.calculate(
            ci_snapshot(),
            ci_config,
            CalculationOptions(validate_minimum_wage=False, resolve_accrual=False),
        )
        assert result.findings == ()
        assert result.accrual is None

    def test_accrual_for_young_senior_employee(self, ci_config):
        result = self.orchestrator.calculate(
            ci_snapshot(age=20, seniority_years=5), ci_config,
        )
        assert result.accrual.monthly_days == Decimal("2.5")
        assert result.accrual.bonus_days == Decimal("1")

    def test_resolved_through_resolver(self, resolver):
        result = PayrollCalculationOrchestrator(resolver).calculate(ci_snapshot())
        assert result.config_version == "2024.1"

    def test_previous_version_for_earlier_date(self, resolver):
        snapshot = ci_snapshot(
            period_start=date(2023, 6, 1),
            period_end=date(2023, 6, 30),
            calculation_date=date(2023, 6, 30),
        )
        result = PayrollCalculationOrchestrator(resolver).calculate(snapshot)
        assert result.config_version == "2023.1"


class TestSenegal:

    def test_reference_payslip(self, sn_config):
        snapshot = make_snapshot(
            country_code="SN",
            base_salary=xof("400000"),
            allowances=(transport("26000"),),
            fiscal_parts=Decimal("2"),
            category="3",
            city="DAKAR",
        )
        result = PayrollCalculationOrchestrator().calculate(snapshot, sn_config)

        assert result.gross_salary == xof("426000")
        lines = result.contributions
        assert lines.line_for("IPRES_GENERAL").employee_amount == xof("23856")
        assert lines.line_for("IPRES_GENERAL").employer_amount == xof("35784")
        assert lines.line_for("CSS_FAMILY").employer_amount == xof("4410")
        assert lines.line_for("CSS_WORK_ACCIDENT").employer_amount == xof("630")
        assert lines.line_for("CFCE").employer_amount == xof("12780")
        assert result.taxable_income == xof("402144")
        assert result.income_tax.tax == xof("52143")
        assert result.net_salary == xof("350001")
        assert result.total_employer_cost == xof("479604")
        assert result.findings == ()


class TestIdentities:

    @pytest.mark.parametrize("base", ["75000", "180000", "650000", "5000000"])
    def test_balance_and_employer_cost(self, ci_config, base):
        result = PayrollCalculationOrchestrator().calculate(
            ci_snapshot(base_salary=xof(base), allowances=(transport("30000"),)),
            ci_config,
        )
        assert (
            result.net_salary
            + result.contributions.employee_total
            + result.income_tax.tax
        ) == result.gross_salary
        assert result.total_employer_cost == (
            result.gross_salary + result.total_employer_contributions
        )

    def test_same_inputs_same_result(self, ci_config):
        orchestrator = PayrollCalculationOrchestrator()
        a = orchestrator.calculate(ci_snapshot(), ci_config)
        b = orchestrator.calculate(ci_snapshot(), ci_config)
        assert a.to_dict() == b.to_dict()


class TestInputRejection:

    def setup_method(self):
        self.orchestrator = PayrollCalculationOrchestrator()

    def test_currency_mismatch(self, test_config):
        snapshot = make_snapshot(allowances=(transport("100", "EUR"),))
        with pytest.raises(CurrencyMismatchError) as exc_info:
            self.orchestrator.calculate(snapshot, test_config)
        assert exc_info.value.field == "allowances.transport"
        assert exc_info.value.expected == "XOF"

    def test_base_salary_in_wrong_currency(self, test_config):
        with pytest.raises(CurrencyMismatchError):
            self.orchestrator.calculate(make_snapshot(currency="EUR"), test_config)

    @pytest.mark.parametrize("base", ["0", "-1000"])
    def test_non_positive_base_salary(self, test_config, base):
        with pytest.raises(InvalidBaseSalaryError):
            self.orchestrator.calculate(
                make_snapshot(base_salary=xof(base)), test_config,
            )

    def test_invalid_fiscal_parts(self, test_config):
        with pytest.raises(InvalidFiscalPartsError) as exc_info:
            self.orchestrator.calculate(
                make_snapshot(fiscal_parts=Decimal("0")), test_config,
            )
        assert exc_info.value.employee_id == "EMP-001"

    @pytest.mark.parametrize("field", ["age", "seniority_years"])
    def test_negative_age_or_seniority(self, test_config, field):
        with pytest.raises(InvalidSnapshotError) as exc_info:
            self.orchestrator.calculate(make_snapshot(**{field: -1}), test_config)
        assert exc_info.value.field == field
        assert exc_info.value.employee_id == "EMP-001"
        assert exc_info.value.code == "INVALID_SNAPSHOT"

    def test_configuration_for_other_country(self, test_config):
        with pytest.raises(ConfigurationNotFoundError):
            self.orchestrator.calculate(make_snapshot(country_code="CI"), test_config)

    def test_configuration_not_yet_effective(self, test_config):
        snapshot = make_snapshot(calculation_date=date(2023, 12, 31))
        with pytest.raises(ConfigurationNotFoundError):
            self.orchestrator.calculate(snapshot, test_config)

    def test_no_configuration_and_no_resolver(self):
        with pytest.raises(ValueError):
            self.orchestrator.calculate(make_snapshot())


class TestAuditTrail:

    def test_entries_cover_every_step(self, ci_config):
        result = PayrollCalculationOrchestrator().calculate(
            ci_snapshot(age=19), ci_config,
        )
        kinds = [entry.kind for entry in result.audit]
        assert kinds[0] is AuditKind.CONFIGURATION
        assert kinds.count(AuditKind.CONTRIBUTION_SCHEME) == 6
        assert kinds.count(AuditKind.TAX_BRACKET) == 2
        assert AuditKind.TAXABLE_INCOME in kinds
        assert AuditKind.INCOME_TAX in kinds
        assert AuditKind.COMPLIANCE_FINDING in kinds

        (accrual,) = [e for e in result.audit if e.kind is AuditKind.ACCRUAL_RULE]
        assert accrual.reference == "CI_YOUTH_UNDER_21"

        pension = next(
            e for e in result.audit
            if e.kind is AuditKind.CONTRIBUTION_SCHEME and e.reference == "CNPS_PENSION"
        )
        params = dict(pension.parameters)
        assert params["employee_rate"] == "0.063"
        assert params["capped"] == "False"

    def test_configuration_entry_names_checksum(self, ci_config):
        result = PayrollCalculationOrchestrator().calculate(ci_snapshot(), ci_config)
        params = dict(result.audit[0].parameters)
        assert params["version"] == "2024.1"
        assert params["checksum"] == ci_config.checksum


class TestLeaveAllowance:

    def test_computed_with_payslip(self, test_config):
        wages = tuple(
            ReferenceWage(subtract_months(CI_DATE, back), xof("180000"))
            for back in range(1, 13)
        )
        result = PayrollCalculationOrchestrator().calculate(
            make_snapshot(),
            test_config,
            CalculationOptions(
                leave_allowance=LeaveAllowanceRequest(
                    reference_wages=wages, leave_days=Decimal("10"),
                ),
            ),
        )
        # 2,160,000 / 360 days = 6,000 per day
        assert result.leave_allowance.amount == xof("60000")
        assert result.leave_allowance.window_end == CI_DATE
        # The allowance is reported separately; it does not change net pay.
        assert result.net_salary == xof("152830")
        assert result.audit[-1].kind is AuditKind.LEAVE_ALLOWANCE

    def test_no_history_keeps_payslip(self, captured_logs, test_config):
        result = PayrollCalculationOrchestrator().calculate(
            make_snapshot(),
            test_config,
            CalculationOptions(
                leave_allowance=LeaveAllowanceRequest(
                    reference_wages=(), leave_days=Decimal("5"),
                ),
            ),
        )
        assert result.net_salary == xof("152830")
        assert result.leave_allowance is None
        assert result.leave_allowance_error.error_code == "INSUFFICIENT_HISTORY"
        assert result.to_dict()["leave_allowance_error"]["error_code"] == "INSUFFICIENT_HISTORY"

        entry = result.audit[-1]
        assert entry.kind is AuditKind.LEAVE_ALLOWANCE
        assert dict(entry.parameters)["skipped"] == "True"

        messages = [r["message"] for r in captured_logs()]
        assert "leave_allowance_skipped" in messages
        assert "calculation_computed" in messages
        assert "calculation_failed" not in messages

    def test_non_positive_leave_days_fails_payslip(self, test_config):
        with pytest.raises(InvalidLeaveDaysError):
            PayrollCalculationOrchestrator().calculate(
                make_snapshot(),
                test_config,
                CalculationOptions(
                    leave_allowance=LeaveAllowanceRequest(
                        reference_wages=(), leave_days=Decimal("0"),
                    ),
                ),
            )

    def test_since_last_leave_window(self, test_config):
        config = replace(
            test_config,
            leave_allowance=replace(
                test_config.leave_allowance,
                reference_period=ReferencePeriod.SINCE_LAST_LEAVE,
            ),
        )
        wages = tuple(
            ReferenceWage(subtract_months(CI_DATE, back), xof("180000"))
            for back in range(1, 13)
        )
        result = PayrollCalculationOrchestrator().calculate(
            make_snapshot(),
            config,
            CalculationOptions(
                leave_allowance=LeaveAllowanceRequest(
                    reference_wages=wages,
                    leave_days=Decimal("10"),
                    last_leave_return=date(2023, 12, 1),
                ),
            ),
        )
        # December to February: 540,000 / 90 days = 6,000 per day
        assert result.leave_allowance.months_used == 3
        assert result.leave_allowance.window_start == date(2023, 12, 1)
        assert result.leave_allowance.amount == xof("60000")


class TestStateLogging:

    def test_computed_path(self, captured_logs, test_config):
        PayrollCalculationOrchestrator().calculate(make_snapshot(), test_config)
        records = [r for r in captured_logs() if r["message"].startswith("calculation_")]
        assert [r["message"] for r in records] == [
            "calculation_pending", "calculation_resolved", "calculation_computed",
        ]
        assert all(r["employee_id"] == "EMP-001" for r in records)
        assert records[2]["status_from"] == "resolved"
        assert records[2]["net_salary"] == "152830"

    def test_failed_path(self, captured_logs, test_config):
        with pytest.raises(InvalidBaseSalaryError):
            PayrollCalculationOrchestrator().calculate(
                make_snapshot(base_salary=xof("0")), test_config,
            )
        (failed,) = [r for r in captured_logs() if r["message"] == "calculation_failed"]
        assert failed["level"] == "ERROR"
        assert failed["error_code"] == "INVALID_BASE_SALARY"
        assert failed["status_from"] == "resolved"


class TestCalculateMany:

    def _snapshots(self):
        snapshots = [
            make_snapshot(employee_id=f"EMP-{i:03d}", base_salary=xof(str(100000 + i * 1000)))
            for i in range(8)
        ]
        snapshots[3] = make_snapshot(employee_id="EMP-003", base_salary=xof("0"))
        return snapshots

    @pytest.mark.parametrize("workers", [1, 4])
    def test_order_preserved_and_failure_isolated(self, test_config, workers):
        outcomes = PayrollCalculationOrchestrator().calculate_many(
            self._snapshots(), test_config, max_workers=workers,
        )
        assert [o.employee_id for o in outcomes] == [f"EMP-{i:03d}" for i in range(8)]
        assert [o.succeeded for o in outcomes].count(False) == 1
        failed = outcomes[3]
        assert failed.error_code == "INVALID_BASE_SALARY"
        assert failed.error_component == "payroll_orchestrator"

    def test_parallel_matches_sequential(self, test_config):
        orchestrator = PayrollCalculationOrchestrator()
        sequential = orchestrator.calculate_many(self._snapshots(), test_config)
        parallel = orchestrator.calculate_many(
            self._snapshots(), test_config, max_workers=4,
        )
        assert [o.result.fingerprint for o in sequential if o.succeeded] == [
            o.result.fingerprint for o in parallel if o.succeeded
        ]

    def test_batch_logs(self, captured_logs, test_config):
        PayrollCalculationOrchestrator().calculate_many(self._snapshots(), test_config)
        (done,) = [
            r for r in captured_logs() if r["message"] == "calculation_batch_completed"
        ]
        assert done["computed"] == 7
        assert done["failed"] == 1

    def test_negative_age_isolated(self, captured_logs, test_config):
        snapshots = self._snapshots()
        snapshots[5] = make_snapshot(employee_id="EMP-005", age=-1)
        outcomes = PayrollCalculationOrchestrator().calculate_many(snapshots, test_config)

        assert outcomes[5].error_code == "INVALID_SNAPSHOT"
        assert outcomes[5].error_component == "payroll_orchestrator"
        assert [o.succeeded for o in outcomes].count(False) == 2
        failed = [r for r in captured_logs() if r["message"] == "calculation_failed"]
        assert {r["error_code"] for r in failed} == {"INVALID_BASE_SALARY", "INVALID_SNAPSHOT"}

    @pytest.mark.parametrize("workers", [1, 4])
    def test_engine_defect_propagates(self, captured_logs, test_config, workers):
        class BrokenAccrualEngine:
            def resolve(self, **kwargs):
                raise RuntimeError("accrual table corrupted")

        orchestrator = PayrollCalculationOrchestrator(accrual_engine=BrokenAccrualEngine())
        with pytest.raises(RuntimeError, match="accrual table corrupted"):
            orchestrator.calculate_many(self._snapshots(), test_config, max_workers=workers)
        assert any(
            r["message"] == "calculation_unhandled_exception" for r in captured_logs()
        )
