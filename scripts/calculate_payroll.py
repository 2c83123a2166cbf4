#!/usr/bin/env python3
"""
Calculate one payslip from the command line and print it as JSON.

Resolves the configuration effective on the calculation date from a YAML
set directory (the packaged sets by default), runs the full calculation,
and prints ``CalculationResult.to_dict()``.

Usage:
    python3 scripts/calculate_payroll.py --country CI --date 2024-03-31 \\
        --base-salary 180000 --category 1A
    python3 scripts/calculate_payroll.py --country SN --date 2024-03-31 \\
        --base-salary 400000 --category 3 --allowance transport=26000 \\
        --fiscal-parts 2 --age 34 --seniority 6 --city DAKAR
    python3 scripts/calculate_payroll.py ... --log-level INFO   # JSON logs to stderr
"""

import argparse
import json
import logging
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from payroll_kernel.domain.values import Money
from payroll_kernel.exceptions import PayrollEngineError
from payroll_kernel.logging_config import configure_logging

from payroll_config import DEFAULT_CONFIG_DIR
from payroll_config.resolver import ConfigurationResolver
from payroll_config.sources import YamlDirectorySource
from payroll_engines.earnings import AllowanceLine
from payroll_runs.domain.types import CalculationOptions, EmployeeCompensationSnapshot
from payroll_runs.orchestrator import PayrollCalculationOrchestrator


def _decimal(text: str) -> Decimal:
    try:
        return Decimal(text)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a decimal amount: {text!r}")


def _allowance(text: str) -> tuple[str, Decimal]:
    code, sep, amount = text.partition("=")
    if not sep or not code:
        raise argparse.ArgumentTypeError(f"expected CODE=AMOUNT, got {text!r}")
    return code, _decimal(amount)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[0])
    parser.add_argument("--country", required=True, help="Country code, e.g. CI")
    parser.add_argument("--date", required=True, type=date.fromisoformat,
                        help="Calculation date (YYYY-MM-DD)")
    parser.add_argument("--period-start", type=date.fromisoformat,
                        help="Defaults to the first day of the calculation month")
    parser.add_argument("--period-end", type=date.fromisoformat,
                        help="Defaults to the calculation date")
    parser.add_argument("--employee-id", default="EMP-CLI")
    parser.add_argument("--currency", help="Defaults to the configuration currency")
    parser.add_argument("--base-salary", required=True, type=_decimal)
    parser.add_argument("--allowance", action="append", type=_allowance, default=[],
                        metavar="CODE=AMOUNT", help="Repeatable")
    parser.add_argument("--overtime", type=_decimal)
    parser.add_argument("--bonus", type=_decimal)
    parser.add_argument("--fiscal-parts", type=_decimal, default=Decimal("1"))
    parser.add_argument("--age", type=int, default=30)
    parser.add_argument("--seniority", type=int, default=0)
    parser.add_argument("--category", required=True)
    parser.add_argument("--sector")
    parser.add_argument("--city")
    parser.add_argument("--config-dir", type=Path, default=DEFAULT_CONFIG_DIR)
    parser.add_argument("--no-audit", action="store_true",
                        help="Omit the audit trail from the output")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=getattr(logging, args.log_level), stream=sys.stderr)

    resolver = ConfigurationResolver(YamlDirectorySource(args.config_dir))
    orchestrator = PayrollCalculationOrchestrator(resolver)

    try:
        config = resolver.resolve(args.country, args.date)
        currency = args.currency or config.currency

        def money(amount: Decimal | None) -> Money | None:
            return None if amount is None else Money.of(amount, currency)

        snapshot = EmployeeCompensationSnapshot(
            employee_id=args.employee_id,
            country_code=args.country,
            period_start=args.period_start or args.date.replace(day=1),
            period_end=args.period_end or args.date,
            calculation_date=args.date,
            base_salary=Money.of(args.base_salary, currency),
            fiscal_parts=args.fiscal_parts,
            age=args.age,
            seniority_years=args.seniority,
            category=args.category,
            sector_code=args.sector,
            city=args.city,
            allowances=tuple(
                AllowanceLine(code, Money.of(amount, currency))
                for code, amount in args.allowance
            ),
            overtime_amount=money(args.overtime),
            bonus_amount=money(args.bonus),
        )
        result = orchestrator.calculate(snapshot, config, CalculationOptions())
    except PayrollEngineError as exc:
        print(json.dumps({
            "error": exc.code,
            "component": exc.component,
            "message": str(exc),
        }, indent=2), file=sys.stderr)
        return 1

    payload = result.to_dict()
    if args.no_audit:
        payload.pop("audit")
    payload["fingerprint"] = result.fingerprint
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
