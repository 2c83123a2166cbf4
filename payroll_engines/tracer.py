"""
payroll_engines.tracer -- PAYROLL_ENGINE_TRACE records for calculator calls.

``@traced_engine`` wraps a calculator entrypoint.  Each call logs one
PAYROLL_ENGINE_TRACE record with the engine name and version, a short
fingerprint of the selected keyword inputs, the duration, and whether the
call returned or raised.  Exceptions propagate unchanged.

Inputs are reduced to plain data before hashing: dataclasses by field,
Money through its amount and currency code, Decimal normalized.  The same
salary and the same rule set therefore always give the same fingerprint,
which lets two traces be matched across runs.

    @traced_engine("income_tax", "1.0", fingerprint_fields=("taxable_income",))
    def calculate(self, *, taxable_income, fiscal_parts, rules):
        ...
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Mapping
from dataclasses import fields, is_dataclass
from typing import Any

from payroll_kernel.logging_config import get_logger
from payroll_kernel.utils.hashing import hash_payload

_logger = get_logger("engines.tracer")

_FINGERPRINT_LENGTH = 16


def _plain(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """16-hex-character digest of the named keyword inputs; missing ones count as None."""
    selected = {name: _plain(kwargs.get(name)) for name in fingerprint_fields}
    return hash_payload(selected)[:_FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs)
                if fingerprint_fields else ""
            )
            started = time.monotonic()
            outcome = "error"
            try:
                result = func(*args, **kwargs)
                outcome = "ok"
                return result
            finally:
                _logger.info(
                    "PAYROLL_ENGINE_TRACE",
                    extra={
                        "trace_type": "PAYROLL_ENGINE_TRACE",
                        "engine_name": engine_name,
                        "engine_version": engine_version,
                        "function": func.__qualname__,
                        "input_fingerprint": fingerprint,
                        "duration_ms": round((time.monotonic() - started) * 1000, 2),
                        "outcome": outcome,
                    },
                )

        return wrapper

    return decorator
