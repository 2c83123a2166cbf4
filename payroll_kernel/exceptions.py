"""
Typed Exception Hierarchy for the Payroll Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A payroll failure has to be actionable by a caller that cannot read log
messages: a run service must know whether the configuration is missing, the
input is malformed, or the run is frozen.  Every error therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. A COMPONENT attribute naming the sub-component that raised it
  4. Structured DATA (the offending inputs), not just a message string

Example:
    try:
        result = orchestrator.calculate(snapshot)
    except ConfigurationNotFoundError as e:
        respond(code=e.code, country=e.country_code, as_of=e.as_of_date)

Business findings (minimum wage below floor, unmapped category) are NOT
exceptions.  They travel inside the calculation result as findings and never
abort a calculation.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollEngineError (base)
    |
    +-- ConfigurationError
    |   +-- ConfigurationNotFoundError
    |   +-- ConfigurationAmbiguousError
    |   +-- ConfigurationIntegrityError
    |   +-- InvalidConfigurationError
    |
    +-- InputError
    |   +-- InvalidFiscalPartsError
    |   +-- InvalidBaseSalaryError
    |   +-- CurrencyMismatchError
    |   +-- InvalidSnapshotError
    |   +-- InvalidLeaveDaysError
    |
    +-- AccrualError
    |   +-- AccrualPolicyUndefinedError
    |
    +-- LeaveAllowanceError
    |   +-- InsufficientHistoryError
    |   +-- DuplicateLeaveAllowancePaymentError
    |
    +-- RunError
        +-- RunNotFoundError
        +-- RunNotMutableError
        +-- RunApprovalBlockedError
        +-- InvalidStatusTransitionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|----------------------------------------
Configuration   | CONFIGURATION_NOT_FOUND       | No version covers (country, date)
                | CONFIGURATION_AMBIGUOUS       | Several versions cover (country, date)
                | CONFIGURATION_INTEGRITY       | Pinned checksum differs from stored set
                | INVALID_CONFIGURATION         | Rule set failed validation
----------------|-------------------------------|----------------------------------------
Input           | INVALID_FISCAL_PARTS          | Fiscal parts <= 0
                | INVALID_BASE_SALARY           | Base salary <= 0
                | CURRENCY_MISMATCH             | Snapshot currency != configuration
                | INVALID_SNAPSHOT              | Negative age or seniority
                | INVALID_LEAVE_DAYS            | Leave allowance requested for <= 0 days
----------------|-------------------------------|----------------------------------------
Accrual         | ACCRUAL_POLICY_UNDEFINED      | Youth and seniority rules both apply,
                |                               | no combination policy configured
----------------|-------------------------------|----------------------------------------
Leave allowance | INSUFFICIENT_HISTORY          | Too few wage months in the window
                | DUPLICATE_LEAVE_ALLOWANCE     | Payment exists for (employee, run)
----------------|-------------------------------|----------------------------------------
Run             | RUN_NOT_FOUND                 | Unknown run id
                | RUN_NOT_MUTABLE               | Write against an approved run
                | RUN_APPROVAL_BLOCKED          | Live results not all computed
                | INVALID_STATUS_TRANSITION     | Illegal calculation state change
"""

from __future__ import annotations


class PayrollEngineError(Exception):
    """
    Base exception for all payroll engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification and a `component` naming the raising sub-component.
    """

    code: str = "PAYROLL_ENGINE_ERROR"
    component: str = "payroll_engine"


# Configuration errors


class ConfigurationError(PayrollEngineError):
    """Base exception for configuration resolution and validation errors."""

    code: str = "CONFIGURATION_ERROR"
    component: str = "configuration_resolver"


class ConfigurationNotFoundError(ConfigurationError):
    """No configuration version is effective for the country on the date.

    Never recovered by falling back to a default or most-recent version.
    """

    code: str = "CONFIGURATION_NOT_FOUND"

    def __init__(self, country_code: str, as_of_date: str):
        self.country_code = country_code
        self.as_of_date = as_of_date
        super().__init__(
            f"No configuration effective for {country_code} on {as_of_date}"
        )


class ConfigurationAmbiguousError(ConfigurationError):
    """More than one configuration version is effective on the date."""

    code: str = "CONFIGURATION_AMBIGUOUS"

    def __init__(
        self, country_code: str, as_of_date: str, versions: list[str],
    ):
        self.country_code = country_code
        self.as_of_date = as_of_date
        self.versions = versions
        super().__init__(
            f"Configuration for {country_code} on {as_of_date} is ambiguous: "
            f"{', '.join(versions)}"
        )


class ConfigurationIntegrityError(ConfigurationError):
    """A pinned configuration no longer matches its recorded checksum."""

    code: str = "CONFIGURATION_INTEGRITY"

    def __init__(
        self,
        country_code: str,
        version: str,
        expected_checksum: str,
        actual_checksum: str,
    ):
        self.country_code = country_code
        self.version = version
        self.expected_checksum = expected_checksum
        self.actual_checksum = actual_checksum
        super().__init__(
            f"Configuration {country_code}/{version} checksum mismatch: "
            f"expected {expected_checksum[:12]}, got {actual_checksum[:12]}"
        )


class InvalidConfigurationError(ConfigurationError):
    """A configuration set failed validation and cannot be used."""

    code: str = "INVALID_CONFIGURATION"
    component: str = "configuration_loader"

    def __init__(self, source: str, errors: list[str]):
        self.source = source
        self.errors = errors
        super().__init__(
            f"Invalid configuration {source}: " + "; ".join(errors)
        )


# Input errors


class InputError(PayrollEngineError):
    """Base exception for rejected compensation inputs."""

    code: str = "INPUT_ERROR"
    component: str = "payroll_orchestrator"


class InvalidFiscalPartsError(InputError):
    """Fiscal parts must be strictly positive."""

    code: str = "INVALID_FISCAL_PARTS"
    component: str = "income_tax_calculator"

    def __init__(self, fiscal_parts: str, employee_id: str | None = None):
        self.fiscal_parts = fiscal_parts
        self.employee_id = employee_id
        super().__init__(
            f"Fiscal parts must be greater than zero, got {fiscal_parts}"
        )


class InvalidBaseSalaryError(InputError):
    """Base salary must be strictly positive."""

    code: str = "INVALID_BASE_SALARY"

    def __init__(self, employee_id: str, base_salary: str):
        self.employee_id = employee_id
        self.base_salary = base_salary
        super().__init__(
            f"Invalid base salary for employee {employee_id}: {base_salary}"
        )


class CurrencyMismatchError(InputError):
    """Input amounts are not in the configuration's currency."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, actual: str, field: str):
        self.expected = expected
        self.actual = actual
        self.field = field
        super().__init__(
            f"Currency mismatch on {field}: expected {expected}, got {actual}"
        )


class InvalidSnapshotError(InputError):
    """A snapshot field holds a value no rule can apply to."""

    code: str = "INVALID_SNAPSHOT"

    def __init__(self, field: str, value: str, employee_id: str | None = None):
        self.field = field
        self.value = value
        self.employee_id = employee_id
        super().__init__(f"Invalid {field}: {value} must not be negative")


class InvalidLeaveDaysError(InputError):
    """Leave allowance requested for zero or negative leave days."""

    code: str = "INVALID_LEAVE_DAYS"
    component: str = "leave_allowance_calculator"

    def __init__(self, leave_days: str):
        self.leave_days = leave_days
        super().__init__(f"leave_days must be greater than zero, got {leave_days}")


# Accrual errors


class AccrualError(PayrollEngineError):
    """Base exception for leave-accrual rule errors."""

    code: str = "ACCRUAL_ERROR"
    component: str = "accrual_rule_engine"


class AccrualPolicyUndefinedError(AccrualError):
    """Youth override and seniority bonus both apply with no policy set."""

    code: str = "ACCRUAL_POLICY_UNDEFINED"

    def __init__(self, youth_rule_id: str, seniority_rule_id: str):
        self.youth_rule_id = youth_rule_id
        self.seniority_rule_id = seniority_rule_id
        super().__init__(
            f"Rules {youth_rule_id} and {seniority_rule_id} both apply but "
            "the rule set declares no youth_seniority_policy"
        )


# Special leave allowance errors


class LeaveAllowanceError(PayrollEngineError):
    """Base exception for special leave allowance errors."""

    code: str = "LEAVE_ALLOWANCE_ERROR"
    component: str = "leave_allowance_calculator"


class InsufficientHistoryError(LeaveAllowanceError):
    """Not enough wage history in the reference window."""

    code: str = "INSUFFICIENT_HISTORY"

    def __init__(
        self,
        window_start: str,
        window_end: str,
        months_found: int,
        months_required: int,
    ):
        self.window_start = window_start
        self.window_end = window_end
        self.months_found = months_found
        self.months_required = months_required
        super().__init__(
            f"Insufficient wage history between {window_start} and "
            f"{window_end}: {months_found} month(s), "
            f"{months_required} required"
        )


class DuplicateLeaveAllowancePaymentError(LeaveAllowanceError):
    """A special leave allowance was already paid for (employee, run)."""

    code: str = "DUPLICATE_LEAVE_ALLOWANCE"
    component: str = "leave_allowance_service"

    def __init__(self, employee_id: str, run_id: str):
        self.employee_id = employee_id
        self.run_id = run_id
        super().__init__(
            f"Leave allowance already paid to employee {employee_id} "
            f"in run {run_id}"
        )


# Payroll run errors


class RunError(PayrollEngineError):
    """Base exception for payroll run lifecycle errors."""

    code: str = "RUN_ERROR"
    component: str = "payroll_run_service"


class RunNotFoundError(RunError):
    """Payroll run does not exist."""

    code: str = "RUN_NOT_FOUND"

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Payroll run not found: {run_id}")


class RunNotMutableError(RunError):
    """Attempted to write to an approved payroll run."""

    code: str = "RUN_NOT_MUTABLE"

    def __init__(self, run_id: str, status: str, operation: str):
        self.run_id = run_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} on payroll run {run_id}: run is {status}"
        )


class RunApprovalBlockedError(RunError):
    """Run has live results that are not in the computed state."""

    code: str = "RUN_APPROVAL_BLOCKED"

    def __init__(self, run_id: str, blocking_employee_ids: list[str]):
        self.run_id = run_id
        self.blocking_employee_ids = blocking_employee_ids
        super().__init__(
            f"Payroll run {run_id} cannot be approved: "
            f"{len(blocking_employee_ids)} employee(s) without a computed result"
        )


class InvalidStatusTransitionError(RunError):
    """Calculation status transition is not allowed."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid calculation status transition: {from_status} -> {to_status}"
        )
