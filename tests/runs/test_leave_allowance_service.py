"""Tests for exactly-once special leave allowance payments."""

from datetime import date
from decimal import Decimal

import pytest

from payroll_kernel.domain.values import Money
from payroll_kernel.exceptions import (
    DuplicateLeaveAllowancePaymentError,
    InsufficientHistoryError,
    RunNotMutableError,
)

from payroll_engines.leave_allowance import ReferenceWage, subtract_months
from payroll_runs.domain.types import CalculationOptions, LeaveAllowanceRequest
from payroll_runs.services.run_service import PayrollRunService
from tests.conftest import CI_DATE, TEST_ACTOR_ID, make_snapshot

pytestmark = pytest.mark.db


def _request(**overrides) -> LeaveAllowanceRequest:
    values = dict(
        reference_wages=tuple(
            ReferenceWage(subtract_months(CI_DATE, back), Money.of("300000", "XOF"))
            for back in range(1, 13)
        ),
        leave_days=Decimal("26"),
    )
    values.update(overrides)
    return LeaveAllowanceRequest(**values)


@pytest.fixture
def service(db_session, memory_resolver, clock):
    return PayrollRunService(db_session, memory_resolver, clock=clock)


@pytest.fixture
def run(service):
    return service.open_run("TS", date(2024, 3, 1), CI_DATE, CI_DATE, TEST_ACTOR_ID)


class TestPayLeaveAllowance:

    def test_paid_once(self, service, run):
        payment = service.pay_leave_allowance(run.run_id, "EMP-001", _request(), TEST_ACTOR_ID)
        assert payment.amount == Money.of("260000", "XOF")
        # Defaults to the run's calculation date
        assert payment.payment_date == CI_DATE
        assert payment.computation["months_used"] == 12

        stored = service.leave_allowances.get_payment("EMP-001", run.run_id)
        assert stored.payment_id == payment.payment_id
        assert stored.amount == payment.amount
        assert stored.leave_days == Decimal("26")

    def test_duplicate_rejected(self, service, run, captured_logs):
        service.pay_leave_allowance(run.run_id, "EMP-001", _request(), TEST_ACTOR_ID)
        with pytest.raises(DuplicateLeaveAllowancePaymentError) as exc_info:
            service.pay_leave_allowance(
                run.run_id, "EMP-001", _request(leave_days=Decimal("5")), TEST_ACTOR_ID,
            )
        assert exc_info.value.employee_id == "EMP-001"
        assert exc_info.value.code == "DUPLICATE_LEAVE_ALLOWANCE"
        assert any(
            r["message"] == "leave_allowance_duplicate_rejected" for r in captured_logs()
        )
        # The first payment stands
        stored = service.leave_allowances.get_payment("EMP-001", run.run_id)
        assert stored.leave_days == Decimal("26")

    def test_duplicate_via_payslip_calculation(self, service, run):
        service.pay_leave_allowance(run.run_id, "EMP-001", _request(), TEST_ACTOR_ID)
        with pytest.raises(DuplicateLeaveAllowancePaymentError):
            service.calculate_employee(
                run.run_id,
                make_snapshot(),
                TEST_ACTOR_ID,
                CalculationOptions(leave_allowance=_request()),
            )
        assert service.results.get_live(run.run_id, "EMP-001") is None

    def test_other_employee_unaffected(self, service, run):
        service.pay_leave_allowance(run.run_id, "EMP-001", _request(), TEST_ACTOR_ID)
        payment = service.pay_leave_allowance(run.run_id, "EMP-002", _request(), TEST_ACTOR_ID)
        assert payment.employee_id == "EMP-002"

    def test_insufficient_history_records_nothing(self, service, run):
        with pytest.raises(InsufficientHistoryError):
            service.pay_leave_allowance(
                run.run_id, "EMP-001", _request(reference_wages=()), TEST_ACTOR_ID,
            )
        assert service.leave_allowances.get_payment("EMP-001", run.run_id) is None

    def test_rejected_on_approved_run(self, service, run):
        service.approve_run(run.run_id, TEST_ACTOR_ID)
        with pytest.raises(RunNotMutableError):
            service.pay_leave_allowance(run.run_id, "EMP-001", _request(), TEST_ACTOR_ID)

    def test_hire_date_bounds_window(self, service, run):
        payment = service.pay_leave_allowance(
            run.run_id, "EMP-001", _request(hire_date=date(2023, 12, 15)), TEST_ACTOR_ID,
        )
        assert payment.computation["window_start"] == "2023-12-15"
        assert payment.computation["months_used"] == 3
