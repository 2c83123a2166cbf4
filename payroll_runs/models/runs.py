"""
ORM models for payroll run persistence.

Contract:
    PayrollRunModel, CalculationRecordModel, and LeaveAllowancePaymentModel
    persist runs, per-employee calculation attempts, and special leave
    allowance payments.  Each has ``to_dto()`` / ``from_dto()`` round-trip
    methods.

Architecture: payroll_runs/models. Imports from payroll_kernel.db.base only.

Invariants enforced:
    - At most one live calculation per (run, employee): ``live_key`` is
      UNIQUE and NULL on every non-live attempt.
    - (run, employee, attempt) is UNIQUE; attempts are append-only.
    - At most one leave allowance payment per (employee, run).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from payroll_runs.domain.types import (
        LeaveAllowancePaymentRecord,
        PayrollRun,
        StoredCalculation,
    )


def live_key_for(run_id: UUID, employee_id: str) -> str:
    return f"{run_id}:{employee_id}"


class PayrollRunModel(TrackedBase):
    """A payroll run pinned to one configuration version."""

    __tablename__ = "payroll_runs"

    __table_args__ = (
        Index("ix_payroll_runs_status", "status"),
        Index("ix_payroll_runs_country_period", "country_code", "period_start"),
    )

    country_code: Mapped[str] = mapped_column(String(10), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    calculation_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    config_version: Mapped[str] = mapped_column(String(100), nullable=False)
    config_checksum: Mapped[str] = mapped_column(String(64), nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def to_dto(self) -> PayrollRun:
        from payroll_runs.domain.types import PayrollRun, PayrollRunStatus

        return PayrollRun(
            run_id=self.id,
            country_code=self.country_code,
            period_start=self.period_start,
            period_end=self.period_end,
            calculation_date=self.calculation_date,
            status=PayrollRunStatus(self.status),
            config_version=self.config_version,
            config_checksum=self.config_checksum,
            created_at=self.created_at,
            created_by=self.created_by_id,
            approved_at=self.approved_at,
            approved_by=self.approved_by_id,
        )

    @classmethod
    def from_dto(cls, dto: PayrollRun, created_by_id: UUID) -> PayrollRunModel:
        return cls(
            id=dto.run_id,
            country_code=dto.country_code,
            period_start=dto.period_start,
            period_end=dto.period_end,
            calculation_date=dto.calculation_date,
            status=dto.status.value,
            config_version=dto.config_version,
            config_checksum=dto.config_checksum,
            approved_at=dto.approved_at,
            approved_by_id=dto.approved_by,
            created_by_id=created_by_id,
            updated_by_id=None,
        )


class CalculationRecordModel(TrackedBase):
    """One calculation attempt for one employee within a run."""

    __tablename__ = "payroll_calculations"

    __table_args__ = (
        UniqueConstraint(
            "run_id", "employee_id", "attempt",
            name="uq_payroll_calculations_attempt",
        ),
        Index("ix_payroll_calculations_run_employee", "run_id", "employee_id"),
        Index("ix_payroll_calculations_run_status", "run_id", "status"),
    )

    run_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_runs.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[str] = mapped_column(String(100), nullable=False)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    live_key: Mapped[str | None] = mapped_column(
        String(250), nullable=True, unique=True,
    )
    fingerprint: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    gross_salary: Mapped[Decimal | None] = mapped_column(nullable=True)
    net_salary: Mapped[Decimal | None] = mapped_column(nullable=True)
    employer_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_component: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    computed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    superseded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    def to_dto(self) -> StoredCalculation:
        from payroll_runs.domain.types import CalculationStatus, StoredCalculation

        return StoredCalculation(
            record_id=self.id,
            run_id=self.run_id,
            employee_id=self.employee_id,
            attempt=self.attempt,
            status=CalculationStatus(self.status),
            is_live=self.live_key is not None,
            fingerprint=self.fingerprint,
            payload=self.payload or {},
            error_code=self.error_code,
            error_component=self.error_component,
            error_message=self.error_message,
            computed_at=self.computed_at,
            superseded_at=self.superseded_at,
        )


class LeaveAllowancePaymentModel(TrackedBase):
    """Special leave allowance paid to one employee in one run."""

    __tablename__ = "leave_allowance_payments"

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "run_id",
            name="uq_leave_allowance_payments_employee_run",
        ),
    )

    employee_id: Mapped[str] = mapped_column(String(100), nullable=False)
    run_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_runs.id", ondelete="CASCADE"),
        nullable=False,
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    leave_days: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    computation: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    recorded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    def to_dto(self) -> LeaveAllowancePaymentRecord:
        from payroll_kernel.domain.values import Money

        from payroll_runs.domain.types import LeaveAllowancePaymentRecord

        computation = self.computation or {}
        # The JSON payload holds the exact decimal strings; Numeric columns
        # are for querying and may come back rescaled.
        amount = computation.get("amount", self.amount)
        leave_days = computation.get("leave_days", self.leave_days)
        return LeaveAllowancePaymentRecord(
            payment_id=self.id,
            employee_id=self.employee_id,
            run_id=self.run_id,
            payment_date=self.payment_date,
            leave_days=Decimal(str(leave_days)),
            amount=Money.of(str(amount), self.currency),
            computation=computation,
            recorded_at=self.recorded_at,
        )

    @classmethod
    def from_dto(
        cls, dto: LeaveAllowancePaymentRecord, created_by_id: UUID,
    ) -> LeaveAllowancePaymentModel:
        return cls(
            id=dto.payment_id,
            employee_id=dto.employee_id,
            run_id=dto.run_id,
            payment_date=dto.payment_date,
            leave_days=dto.leave_days,
            amount=dto.amount.amount,
            currency=dto.amount.currency.code,
            computation=dto.computation or None,
            recorded_at=dto.recorded_at,
            created_by_id=created_by_id,
            updated_by_id=None,
        )
