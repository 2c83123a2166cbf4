"""Tests for the calculate_payroll and validate_config command-line scripts."""

from __future__ import annotations

import json
import sys

import pytest

from scripts import calculate_payroll, validate_config


class TestCalculatePayroll:

    def test_prints_payslip(self, capsys) -> None:
        code = calculate_payroll.main([
            "--country", "CI", "--date", "2024-03-31",
            "--base-salary", "180000", "--category", "1A",
            "--allowance", "transport=30000", "--city", "ABIDJAN",
        ])
        assert code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["gross_salary"] == "210000"
        assert payload["configuration"]["version"] == "2024.1"
        assert payload["findings"] == []
        assert len(payload["fingerprint"]) == 64
        assert payload["audit"]

    def test_no_audit(self, capsys) -> None:
        calculate_payroll.main([
            "--country", "SN", "--date", "2024-03-31",
            "--base-salary", "400000", "--category", "3",
            "--allowance", "transport=26000", "--city", "DAKAR",
            "--fiscal-parts", "2", "--no-audit",
        ])
        payload = json.loads(capsys.readouterr().out)
        assert "audit" not in payload
        assert payload["net_salary"] == "350001"

    def test_typed_error_reported(self, capsys) -> None:
        code = calculate_payroll.main([
            "--country", "CI", "--date", "2019-01-31",
            "--base-salary", "180000", "--category", "1A",
        ])
        assert code == 1
        error = json.loads(capsys.readouterr().err)
        assert error["error"] == "CONFIGURATION_NOT_FOUND"
        assert error["component"] == "configuration_resolver"

    def test_bad_allowance_rejected(self) -> None:
        with pytest.raises(SystemExit):
            calculate_payroll.main([
                "--country", "CI", "--date", "2024-03-31",
                "--base-salary", "180000", "--category", "1A",
                "--allowance", "transport",
            ])


class TestValidateConfig:

    def test_packaged_sets_valid(self, capsys, monkeypatch) -> None:
        monkeypatch.setattr(sys, "argv", ["validate_config.py"])
        validate_config.main()
        out = capsys.readouterr().out
        assert "All sets valid." in out
        assert "version:   2024.1" in out

    def test_invalid_set_fails(self, capsys, monkeypatch, tmp_path) -> None:
        bad = tmp_path / "bad.yaml"
        bad.write_text(
            "country_code: ZZ\n"
            "version: '1'\n"
            "currency: XOF\n"
            "effective_from: 2024-01-01\n"
            "income_tax:\n"
            "  code: T\n"
            "  brackets:\n"
            "    - {lower: '100', upper: null, rate: '0.1'}\n"
            "accrual:\n"
            "  standard_monthly_days: '2'\n"
        )
        monkeypatch.setattr(sys, "argv", ["validate_config.py", str(bad)])
        with pytest.raises(SystemExit) as exc_info:
            validate_config.main()
        assert exc_info.value.code == 1
        assert "ERROR" in capsys.readouterr().out
