"""
LeaveAllowanceService -- exactly-once special leave allowance payments.

Contract:
    ``pay()`` computes the ACP for one employee in one run and records the
    payment.  A second payment for the same (employee, run) raises
    ``DuplicateLeaveAllowancePaymentError``, whether it is caught by the
    pre-check or by the UNIQUE constraint under a concurrent writer.

Architecture: payroll_runs/services.  Imports payroll_engines for the pure
    computation and payroll_runs.models for persistence.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.exceptions import DuplicateLeaveAllowancePaymentError
from payroll_kernel.logging_config import get_logger

from payroll_config.schema import LeaveAllowancePolicy
from payroll_engines.leave_allowance import (
    LeaveAllowanceComputation,
    SpecialLeaveAllowanceCalculator,
)
from payroll_runs.domain.types import LeaveAllowancePaymentRecord, LeaveAllowanceRequest
from payroll_runs.models.runs import LeaveAllowancePaymentModel

logger = get_logger("runs.leave_allowance")


class LeaveAllowanceService:
    """Record special leave allowance payments.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT check run mutability -- ``PayrollRunService`` does, under
          the run row lock.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        calculator: SpecialLeaveAllowanceCalculator | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._calculator = calculator or SpecialLeaveAllowanceCalculator()

    def ensure_not_paid(self, employee_id: str, run_id: UUID) -> None:
        """Raise if a payment already exists for (employee, run)."""
        if self.get_payment(employee_id, run_id) is not None:
            logger.warning("leave_allowance_duplicate_rejected", extra={
                "employee_id": employee_id,
                "run_id": str(run_id),
            })
            raise DuplicateLeaveAllowancePaymentError(employee_id, str(run_id))

    def pay(
        self,
        run_id: UUID,
        employee_id: str,
        request: LeaveAllowanceRequest,
        policy: LeaveAllowancePolicy,
        actor_id: UUID,
    ) -> LeaveAllowancePaymentRecord:
        """Compute and record the allowance.

        Raises:
            DuplicateLeaveAllowancePaymentError: Already paid in this run.
            InsufficientHistoryError: No wage history in the window.
        """
        self.ensure_not_paid(employee_id, run_id)
        payment_date = request.payment_date
        if payment_date is None:
            raise ValueError("payment_date is required to pay a leave allowance")

        computation = self._calculator.calculate(
            reference_wages=request.reference_wages,
            leave_days=request.leave_days,
            payment_date=payment_date,
            policy=policy,
            non_deductible_absence_days=request.non_deductible_absence_days,
            last_leave_return=request.last_leave_return,
            hire_date=request.hire_date,
        )
        return self.record_payment(run_id, employee_id, computation, actor_id)

    def record_payment(
        self,
        run_id: UUID,
        employee_id: str,
        computation: LeaveAllowanceComputation,
        actor_id: UUID,
    ) -> LeaveAllowancePaymentRecord:
        """Persist an already computed allowance exactly once."""
        self.ensure_not_paid(employee_id, run_id)

        record = LeaveAllowancePaymentRecord(
            payment_id=uuid4(),
            employee_id=employee_id,
            run_id=run_id,
            payment_date=computation.window_end,
            leave_days=computation.leave_days,
            amount=computation.amount,
            computation=computation.to_dict(),
            recorded_at=self._clock.now(),
        )
        model = LeaveAllowancePaymentModel.from_dto(record, created_by_id=actor_id)
        model.created_at = record.recorded_at

        savepoint = self._session.begin_nested()
        try:
            self._session.add(model)
            self._session.flush()
        except IntegrityError as exc:
            savepoint.rollback()
            logger.warning("leave_allowance_duplicate_rejected", extra={
                "employee_id": employee_id,
                "run_id": str(run_id),
            })
            raise DuplicateLeaveAllowancePaymentError(employee_id, str(run_id)) from exc
        savepoint.commit()

        logger.info("leave_allowance_paid", extra={
            "employee_id": employee_id,
            "run_id": str(run_id),
            "amount": str(record.amount.amount),
            "leave_days": str(record.leave_days),
            "months_used": computation.months_used,
        })
        return record

    def get_payment(
        self, employee_id: str, run_id: UUID,
    ) -> LeaveAllowancePaymentRecord | None:
        model = self._session.execute(
            select(LeaveAllowancePaymentModel).where(
                LeaveAllowancePaymentModel.employee_id == employee_id,
                LeaveAllowancePaymentModel.run_id == run_id,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None
