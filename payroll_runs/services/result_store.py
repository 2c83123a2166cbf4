"""
CalculationResultStore -- append-only history of calculation attempts.

Contract:
    ``save()`` / ``save_failure()`` record a new attempt for (run, employee)
    and make it the live one; the previous live attempt is superseded, never
    updated in place.  Re-saving the same result is idempotent.

Architecture: payroll_runs/services.  Imports payroll_runs.domain and
    payroll_runs.models.

Invariants enforced:
    - At most one live attempt per (run, employee): the run row is locked
      (FOR UPDATE) and ``live_key`` is UNIQUE.
    - History is append-only; earlier attempts keep their payload.
    - No writes against an APPROVED run (RunNotMutableError).
    - All timestamps from the injected Clock.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.exceptions import RunNotFoundError, RunNotMutableError
from payroll_kernel.logging_config import get_logger

from payroll_runs.domain.types import (
    CalculationResult,
    CalculationStatus,
    PayrollRunStatus,
    StoredCalculation,
    validate_transition,
)
from payroll_runs.models.runs import (
    CalculationRecordModel,
    PayrollRunModel,
    live_key_for,
)

logger = get_logger("runs.result_store")


class CalculationResultStore:
    """Persist calculation attempts for payroll runs.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def save(
        self,
        run_id: UUID,
        result: CalculationResult,
        actor_id: UUID,
    ) -> StoredCalculation:
        """Record ``result`` as the live attempt for its employee.

        If the live attempt already holds a result with the same fingerprint,
        it is returned unchanged and nothing is written.

        Raises:
            RunNotFoundError: If the run does not exist.
            RunNotMutableError: If the run is APPROVED.
        """
        self.lock_mutable_run(run_id, "save calculation")
        fingerprint = result.fingerprint

        live = self._live_model(run_id, result.employee_id)
        if (
            live is not None
            and live.status == CalculationStatus.COMPUTED.value
            and live.fingerprint == fingerprint
        ):
            logger.info("calculation_save_idempotent", extra={
                "run_id": str(run_id),
                "employee_id": result.employee_id,
                "attempt": live.attempt,
            })
            return live.to_dto()

        return self._append(
            run_id,
            result.employee_id,
            actor_id,
            live,
            status=CalculationStatus.COMPUTED,
            fingerprint=fingerprint,
            payload=result.to_dict(),
            gross_salary=result.gross_salary.amount,
            net_salary=result.net_salary.amount,
            employer_cost=result.total_employer_cost.amount,
        )

    def save_failure(
        self,
        run_id: UUID,
        employee_id: str,
        error_code: str,
        error_component: str | None,
        error_message: str,
        actor_id: UUID,
    ) -> StoredCalculation:
        """Record a FAILED attempt as the live one, blocking approval.

        Raises:
            RunNotFoundError: If the run does not exist.
            RunNotMutableError: If the run is APPROVED.
        """
        self.lock_mutable_run(run_id, "save calculation")
        live = self._live_model(run_id, employee_id)
        return self._append(
            run_id,
            employee_id,
            actor_id,
            live,
            status=CalculationStatus.FAILED,
            error_code=error_code,
            error_component=error_component,
            error_message=error_message,
        )

    def approve_live(self, run_id: UUID, actor_id: UUID) -> int:
        """Move every live COMPUTED attempt to APPROVED.  Returns the count."""
        models = self._session.execute(
            select(CalculationRecordModel).where(
                CalculationRecordModel.run_id == run_id,
                CalculationRecordModel.live_key.is_not(None),
            )
        ).scalars().all()
        for model in models:
            validate_transition(
                CalculationStatus(model.status), CalculationStatus.APPROVED,
            )
            model.status = CalculationStatus.APPROVED.value
            model.updated_by_id = actor_id
        self._session.flush()
        return len(models)

    def lock_mutable_run(self, run_id: UUID, operation: str) -> PayrollRunModel:
        """Lock the run row and require it to be DRAFT.

        Raises:
            RunNotFoundError: If the run does not exist.
            RunNotMutableError: If the run is APPROVED.
        """
        run = self._session.execute(
            select(PayrollRunModel)
            .where(PayrollRunModel.id == run_id)
            .with_for_update()
        ).scalar_one_or_none()
        if run is None:
            raise RunNotFoundError(str(run_id))
        if run.status != PayrollRunStatus.DRAFT.value:
            logger.warning("run_write_rejected", extra={
                "run_id": str(run_id),
                "status": run.status,
                "operation": operation,
            })
            raise RunNotMutableError(str(run_id), run.status, operation)
        return run

    def _append(
        self,
        run_id: UUID,
        employee_id: str,
        actor_id: UUID,
        live: CalculationRecordModel | None,
        status: CalculationStatus,
        **values: object,
    ) -> StoredCalculation:
        now = self._clock.now()
        attempt = self._next_attempt(run_id, employee_id)

        if live is not None:
            self._retire(live, actor_id, now)

        model = CalculationRecordModel(
            run_id=run_id,
            employee_id=employee_id,
            attempt=attempt,
            status=status.value,
            live_key=live_key_for(run_id, employee_id),
            computed_at=now,
            created_by_id=actor_id,
            updated_by_id=None,
            **values,
        )
        model.created_at = now

        savepoint = self._session.begin_nested()
        try:
            self._session.add(model)
            self._session.flush()
        except IntegrityError:
            # Another writer made a live attempt between our read and insert.
            savepoint.rollback()
            logger.warning("calculation_live_conflict", extra={
                "run_id": str(run_id),
                "employee_id": employee_id,
                "attempt": attempt,
            })
            raise
        savepoint.commit()

        logger.info("calculation_saved", extra={
            "run_id": str(run_id),
            "employee_id": employee_id,
            "attempt": attempt,
            "status": model.status,
            "superseded_attempt": live.attempt if live is not None else None,
        })
        return model.to_dto()

    def _retire(
        self, live: CalculationRecordModel, actor_id: UUID, now: datetime,
    ) -> None:
        # A FAILED attempt is terminal: it only loses its live flag.
        if live.status != CalculationStatus.FAILED.value:
            validate_transition(
                CalculationStatus(live.status), CalculationStatus.SUPERSEDED,
            )
            live.status = CalculationStatus.SUPERSEDED.value
        live.live_key = None
        live.superseded_at = now
        live.updated_by_id = actor_id
        self._session.flush()

    def _next_attempt(self, run_id: UUID, employee_id: str) -> int:
        current = self._session.execute(
            select(func.max(CalculationRecordModel.attempt)).where(
                CalculationRecordModel.run_id == run_id,
                CalculationRecordModel.employee_id == employee_id,
            )
        ).scalar_one()
        return (current or 0) + 1

    def _live_model(self, run_id: UUID, employee_id: str) -> CalculationRecordModel | None:
        return self._session.execute(
            select(CalculationRecordModel).where(
                CalculationRecordModel.live_key == live_key_for(run_id, employee_id),
            )
        ).scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_live(self, run_id: UUID, employee_id: str) -> StoredCalculation | None:
        model = self._live_model(run_id, employee_id)
        return model.to_dto() if model is not None else None

    def list_live(self, run_id: UUID) -> tuple[StoredCalculation, ...]:
        models = self._session.execute(
            select(CalculationRecordModel)
            .where(
                CalculationRecordModel.run_id == run_id,
                CalculationRecordModel.live_key.is_not(None),
            )
            .order_by(CalculationRecordModel.employee_id)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)

    def history(self, run_id: UUID, employee_id: str) -> tuple[StoredCalculation, ...]:
        """Every attempt for (run, employee), oldest first."""
        models = self._session.execute(
            select(CalculationRecordModel)
            .where(
                CalculationRecordModel.run_id == run_id,
                CalculationRecordModel.employee_id == employee_id,
            )
            .order_by(CalculationRecordModel.attempt)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)
