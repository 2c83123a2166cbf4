"""
Payroll Kernel

Shared foundation for the statutory payroll engine:
- Money and Currency value objects (Decimal only, ISO 4217 precision)
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with request-scoped context
- Injectable clock
- SQLAlchemy declarative base and engine/session management
- Deterministic hashing
"""

__version__ = "0.1.0"
