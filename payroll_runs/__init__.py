"""
payroll_runs -- Payroll calculation orchestration and run persistence.

Composes the pure engines into one payslip per employee, and persists
payroll runs with an append-only history of calculation attempts.

Architecture:
    payroll_runs/ is a top-level package.  Nothing in payroll_kernel,
    payroll_config or payroll_engines imports from payroll_runs.

Invariants:
    - One configuration version per run, pinned by checksum
    - SAVEPOINT isolation per employee
    - At most one live result per (run, employee)
    - Approved runs are read-only
    - Clock injection (no datetime.now() calls)
    - At most one special leave allowance payment per (employee, run)
"""
