"""
PayrollRunService -- payroll run lifecycle: open, process, approve.

Contract:
    - ``open_run()`` resolves the configuration ONCE and pins its version
      and checksum on the run.
    - ``process_run()`` re-reads the pinned configuration (never the
      "current" one), calculates every employee, and stores each outcome
      in its own SAVEPOINT.
    - ``calculate_employee()`` recalculates one employee; the new attempt
      supersedes the previous one.
    - ``approve_run()`` freezes the run once every live attempt is
      COMPUTED.

Architecture: payroll_runs/services.  Composes the orchestrator, the
    result store and the leave allowance service.

Invariants enforced:
    - One configuration per run.
    - No writes against an APPROVED run (RunNotMutableError).
    - Per-employee SAVEPOINT isolation: one failure never aborts the run.
    - All timestamps from the injected Clock.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import replace
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.exceptions import (
    PayrollEngineError,
    RunApprovalBlockedError,
    RunNotFoundError,
)
from payroll_kernel.logging_config import LogContext, get_logger

from payroll_config.resolver import ConfigurationResolver
from payroll_config.schema import CountryConfiguration
from payroll_runs.domain.types import (
    CalculationOptions,
    CalculationStatus,
    EmployeeCompensationSnapshot,
    EmployeeOutcome,
    LeaveAllowancePaymentRecord,
    LeaveAllowanceRequest,
    PayrollRun,
    PayrollRunStatus,
    RunProcessingSummary,
    StoredCalculation,
)
from payroll_runs.models.runs import PayrollRunModel
from payroll_runs.orchestrator import PayrollCalculationOrchestrator
from payroll_runs.services.leave_allowance_service import LeaveAllowanceService
from payroll_runs.services.result_store import CalculationResultStore

logger = get_logger("runs.service")


class PayrollRunService:
    """Payroll run lifecycle over a SQLAlchemy session.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(
        self,
        session: Session,
        resolver: ConfigurationResolver,
        orchestrator: PayrollCalculationOrchestrator | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._resolver = resolver
        self._orchestrator = orchestrator or PayrollCalculationOrchestrator(resolver)
        self._clock = clock or SystemClock()
        self._store = CalculationResultStore(session, self._clock)
        self._leave_allowance = LeaveAllowanceService(session, self._clock)

    @property
    def results(self) -> CalculationResultStore:
        return self._store

    @property
    def leave_allowances(self) -> LeaveAllowanceService:
        return self._leave_allowance

    # -------------------------------------------------------------------------
    # Open
    # -------------------------------------------------------------------------

    def open_run(
        self,
        country_code: str,
        period_start: date,
        period_end: date,
        calculation_date: date,
        actor_id: UUID,
    ) -> PayrollRun:
        """Create a DRAFT run pinned to the configuration in force.

        Raises:
            ValueError: If the period is inverted.
            ConfigurationNotFoundError: No configuration covers the date.
            ConfigurationAmbiguousError: Several configurations do.
        """
        if period_end < period_start:
            raise ValueError(f"period_end {period_end} precedes period_start {period_start}")

        config = self._resolver.resolve(country_code, calculation_date)
        now = self._clock.now()

        run = PayrollRun(
            run_id=uuid4(),
            country_code=config.country_code,
            period_start=period_start,
            period_end=period_end,
            calculation_date=calculation_date,
            status=PayrollRunStatus.DRAFT,
            config_version=config.version,
            config_checksum=config.checksum,
            created_at=now,
            created_by=actor_id,
        )
        model = PayrollRunModel.from_dto(run, created_by_id=actor_id)
        model.created_at = now
        self._session.add(model)
        self._session.flush()

        logger.info("payroll_run_opened", extra={
            "run_id": str(run.run_id),
            "country_code": run.country_code,
            "period_start": period_start.isoformat(),
            "period_end": period_end.isoformat(),
            "config_version": run.config_version,
            "config_checksum": run.config_checksum,
        })
        return run

    # -------------------------------------------------------------------------
    # Process
    # -------------------------------------------------------------------------

    def process_run(
        self,
        run_id: UUID,
        snapshots: Sequence[EmployeeCompensationSnapshot],
        actor_id: UUID,
        options: CalculationOptions | None = None,
        max_workers: int = 1,
    ) -> RunProcessingSummary:
        """Calculate and store every employee under the pinned configuration.

        The special leave allowance is per employee; request it through
        ``calculate_employee`` or ``pay_leave_allowance``.

        Raises:
            RunNotFoundError: If the run does not exist.
            RunNotMutableError: If the run is APPROVED.
            ConfigurationIntegrityError: If the pinned set has changed.
        """
        options = options or CalculationOptions()
        if options.leave_allowance is not None:
            raise ValueError("process_run does not accept a leave allowance request")

        t0 = time.monotonic()
        with LogContext.bind(run_id=str(run_id), actor_id=str(actor_id)):
            run_model = self._store.lock_mutable_run(run_id, "process run")
            config = self._pinned_configuration(run_model)

            logger.info("payroll_run_processing_started", extra={
                "employee_count": len(snapshots),
                "config_version": config.version,
            })

            computed = self._orchestrator.calculate_many(
                snapshots, config, options, max_workers=max_workers,
            )

            outcomes: list[EmployeeOutcome] = []
            for outcome in computed:
                savepoint = self._session.begin_nested()
                try:
                    self._store_outcome(run_id, outcome, actor_id)
                except IntegrityError as exc:
                    savepoint.rollback()
                    logger.warning("payroll_run_store_conflict", extra={
                        "employee_id": outcome.employee_id,
                        "error": str(exc.orig),
                    })
                    outcome = EmployeeOutcome(
                        employee_id=outcome.employee_id,
                        error_code="LIVE_RESULT_CONFLICT",
                        error_component="calculation_result_store",
                        error_message=str(exc.orig),
                    )
                else:
                    savepoint.commit()
                outcomes.append(outcome)

            summary = RunProcessingSummary(run_id=run_id, outcomes=tuple(outcomes))
            logger.info("payroll_run_processing_completed", extra={
                "employee_count": len(outcomes),
                "computed": summary.computed_count,
                "failed": summary.failed_count,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })
        return summary

    def calculate_employee(
        self,
        run_id: UUID,
        snapshot: EmployeeCompensationSnapshot,
        actor_id: UUID,
        options: CalculationOptions | None = None,
    ) -> StoredCalculation:
        """(Re)calculate one employee in a DRAFT run.

        A typed calculation error is stored as the live FAILED attempt and
        then re-raised.  When ``options`` carries a leave allowance request,
        the payment is recorded alongside the result; an allowance the
        wage history cannot support is left on ``leave_allowance_error``
        and nothing is paid.

        Raises:
            RunNotFoundError: If the run does not exist.
            RunNotMutableError: If the run is APPROVED.
            DuplicateLeaveAllowancePaymentError: ACP already paid in the run.
            PayrollEngineError: Any typed calculation error.
        """
        options = options or CalculationOptions()
        with LogContext.bind(run_id=str(run_id), actor_id=str(actor_id)):
            run_model = self._store.lock_mutable_run(run_id, "calculate employee")
            config = self._pinned_configuration(run_model)

            if options.leave_allowance is not None:
                self._leave_allowance.ensure_not_paid(snapshot.employee_id, run_id)

            try:
                result = self._orchestrator.calculate(snapshot, config, options)
            except PayrollEngineError as exc:
                self._store.save_failure(
                    run_id,
                    snapshot.employee_id,
                    exc.code,
                    exc.component,
                    str(exc),
                    actor_id,
                )
                raise

            stored = self._store.save(run_id, result, actor_id)
            if result.leave_allowance is not None:
                self._leave_allowance.record_payment(
                    run_id, snapshot.employee_id, result.leave_allowance, actor_id,
                )
        return stored

    def pay_leave_allowance(
        self,
        run_id: UUID,
        employee_id: str,
        request: LeaveAllowanceRequest,
        actor_id: UUID,
    ) -> LeaveAllowancePaymentRecord:
        """Pay the special leave allowance outside a payslip calculation.

        The payment date defaults to the run's calculation date.

        Raises:
            RunNotMutableError: If the run is APPROVED.
            DuplicateLeaveAllowancePaymentError: Already paid in this run.
            InsufficientHistoryError: No wage history in the window.
        """
        with LogContext.bind(
            run_id=str(run_id), employee_id=employee_id, actor_id=str(actor_id),
        ):
            run_model = self._store.lock_mutable_run(run_id, "pay leave allowance")
            config = self._pinned_configuration(run_model)
            if request.payment_date is None:
                request = replace(request, payment_date=run_model.calculation_date)
            return self._leave_allowance.pay(
                run_id, employee_id, request, config.leave_allowance, actor_id,
            )

    # -------------------------------------------------------------------------
    # Approve
    # -------------------------------------------------------------------------

    def approve_run(self, run_id: UUID, actor_id: UUID) -> PayrollRun:
        """Freeze the run and every live result.

        Raises:
            RunNotFoundError: If the run does not exist.
            RunNotMutableError: If the run is already APPROVED.
            RunApprovalBlockedError: If any live attempt is not COMPUTED.
        """
        with LogContext.bind(run_id=str(run_id), actor_id=str(actor_id)):
            run_model = self._store.lock_mutable_run(run_id, "approve run")

            live = self._store.list_live(run_id)
            blocking = [
                record.employee_id
                for record in live
                if record.status is not CalculationStatus.COMPUTED
            ]
            if blocking:
                logger.warning("payroll_run_approval_blocked", extra={
                    "blocking_employee_ids": blocking,
                })
                raise RunApprovalBlockedError(str(run_id), blocking)

            approved = self._store.approve_live(run_id, actor_id)
            now = self._clock.now()
            run_model.status = PayrollRunStatus.APPROVED.value
            run_model.approved_at = now
            run_model.approved_by_id = actor_id
            run_model.updated_by_id = actor_id
            self._session.flush()

            logger.info("payroll_run_approved", extra={
                "approved_results": approved,
                "config_version": run_model.config_version,
            })
            return run_model.to_dto()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_run(self, run_id: UUID) -> PayrollRun:
        """Raises RunNotFoundError if the run does not exist."""
        model = self._session.execute(
            select(PayrollRunModel).where(PayrollRunModel.id == run_id)
        ).scalar_one_or_none()
        if model is None:
            raise RunNotFoundError(str(run_id))
        return model.to_dto()

    def _pinned_configuration(self, run_model: PayrollRunModel) -> CountryConfiguration:
        return self._resolver.resolve_pinned(
            run_model.country_code,
            run_model.config_version,
            run_model.config_checksum,
        )

    def _store_outcome(
        self, run_id: UUID, outcome: EmployeeOutcome, actor_id: UUID,
    ) -> None:
        if outcome.result is not None:
            self._store.save(run_id, outcome.result, actor_id)
        else:
            self._store.save_failure(
                run_id,
                outcome.employee_id,
                outcome.error_code or "UNKNOWN",
                outcome.error_component,
                outcome.error_message or "",
                actor_id,
            )
