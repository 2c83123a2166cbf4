"""Pure domain types for payroll runs (no I/O)."""
