"""
payroll_runs.models -- ORM models for payroll run persistence.

Architecture: payroll_runs/models. Imports from payroll_kernel.db.base only.
"""

from payroll_runs.models.runs import (
    CalculationRecordModel,
    LeaveAllowancePaymentModel,
    PayrollRunModel,
    live_key_for,
)

__all__ = [
    "CalculationRecordModel",
    "LeaveAllowancePaymentModel",
    "PayrollRunModel",
    "live_key_for",
]
