"""Tests for gross pay composition and the engine tracer."""

from decimal import Decimal

import pytest

from payroll_kernel.domain.values import Money

from payroll_config.schema import RoundingPolicy
from payroll_engines.earnings import AllowanceLine, compute_gross
from payroll_engines.tracer import compute_input_fingerprint, traced_engine


def xof(amount: str) -> Money:
    return Money.of(amount, "XOF")


class TestComputeGross:

    def test_base_only(self):
        gross = compute_gross(xof("180000"))
        assert gross.total == xof("180000")
        assert [line.code for line in gross.lines] == ["base_salary"]

    def test_all_components(self):
        gross = compute_gross(
            xof("400000"),
            allowances=(
                AllowanceLine("transport", xof("26000")),
                AllowanceLine("housing", xof("50000")),
            ),
            overtime_amount=xof("12000"),
            bonus_amount=xof("30000"),
        )
        assert gross.total == xof("518000")
        assert [line.code for line in gross.lines] == [
            "base_salary", "allowance:transport", "allowance:housing", "overtime", "bonus",
        ]

    def test_zero_overtime_and_bonus_skipped(self):
        gross = compute_gross(
            xof("100000"), overtime_amount=xof("0"), bonus_amount=xof("0"),
        )
        assert len(gross.lines) == 1

    def test_mixed_currency_rejected(self):
        with pytest.raises(ValueError):
            compute_gross(
                xof("100000"),
                allowances=(AllowanceLine("transport", Money.of("10", "EUR")),),
            )


class TestFingerprint:

    def test_deterministic_and_short(self):
        kwargs = {"amount": Decimal("1.50"), "policy": RoundingPolicy()}
        first = compute_input_fingerprint(("amount", "policy"), kwargs)
        second = compute_input_fingerprint(("amount", "policy"), dict(kwargs))
        assert first == second
        assert len(first) == 16

    def test_decimal_scale_ignored(self):
        a = compute_input_fingerprint(("x",), {"x": Decimal("1.50")})
        b = compute_input_fingerprint(("x",), {"x": Decimal("1.5")})
        assert a == b

    def test_missing_field_recorded_as_null(self):
        a = compute_input_fingerprint(("x",), {})
        b = compute_input_fingerprint(("x",), {"x": None})
        assert a == b

    def test_inputs_change_fingerprint(self):
        a = compute_input_fingerprint(("x",), {"x": 1})
        b = compute_input_fingerprint(("x",), {"x": 2})
        assert a != b


class _Doubler:

    @traced_engine("doubler", "0.1", fingerprint_fields=("value",))
    def run(self, *, value):
        if value < 0:
            raise ValueError("negative")
        return value * 2


class TestTracedEngine:

    def test_ok_trace(self, captured_logs):
        assert _Doubler().run(value=4) == 8
        (trace,) = [r for r in captured_logs() if r["message"] == "PAYROLL_ENGINE_TRACE"]
        assert trace["engine_name"] == "doubler"
        assert trace["engine_version"] == "0.1"
        assert trace["outcome"] == "ok"
        assert trace["function"] == "_Doubler.run"

    def test_error_trace_and_propagation(self, captured_logs):
        with pytest.raises(ValueError, match="negative"):
            _Doubler().run(value=-1)
        (trace,) = [r for r in captured_logs() if r["message"] == "PAYROLL_ENGINE_TRACE"]
        assert trace["outcome"] == "error"
