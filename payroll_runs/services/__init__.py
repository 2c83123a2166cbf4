"""
payroll_runs.services -- Run lifecycle and result persistence.

Services flush but never commit; the caller owns the transaction.
"""

from payroll_runs.services.leave_allowance_service import LeaveAllowanceService
from payroll_runs.services.result_store import CalculationResultStore
from payroll_runs.services.run_service import PayrollRunService

__all__ = [
    "CalculationResultStore",
    "LeaveAllowanceService",
    "PayrollRunService",
]
