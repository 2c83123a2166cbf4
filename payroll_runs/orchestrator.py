"""
PayrollCalculationOrchestrator -- composes the engines into one payslip.

Contract:
    ``calculate()`` turns one ``EmployeeCompensationSnapshot`` and one
    ``CountryConfiguration`` into an immutable ``CalculationResult``:

        earnings -> contributions -> taxable income -> income tax
                 -> minimum wage / transport findings (optional)
                 -> leave accrual (optional)
                 -> special leave allowance (optional)

    ``calculate_many()`` computes employees independently, optionally on a
    thread pool, under ONE configuration object.

Architecture: payroll_runs (top-level).  Imports payroll_config and
    payroll_engines; performs no persistence.  Configuration I/O happens
    only through the injected ``ConfigurationResolver``.

Invariants enforced:
    - net + employee contributions + income tax == gross.
    - employer cost == gross + employer contributions.
    - Same snapshot + same configuration => identical ``to_dict()``.
    - The attempt's state machine is logged; a fatal error logs ``failed``
      and re-raises the typed error unchanged.
"""

from __future__ import annotations

import contextvars
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from payroll_kernel.domain.values import Currency, Money, sum_money
from payroll_kernel.exceptions import (
    ConfigurationNotFoundError,
    CurrencyMismatchError,
    InvalidBaseSalaryError,
    InvalidFiscalPartsError,
    InvalidSnapshotError,
    LeaveAllowanceError,
    PayrollEngineError,
)
from payroll_kernel.logging_config import LogContext, get_logger

from payroll_config.resolver import ConfigurationResolver
from payroll_config.schema import CountryConfiguration
from payroll_engines.accrual import AccrualResult, AccrualRuleEngine
from payroll_engines.contribution import ContributionCalculator, ContributionResult
from payroll_engines.earnings import GrossPay, compute_gross
from payroll_engines.income_tax import IncomeTaxCalculator, IncomeTaxResult
from payroll_engines.leave_allowance import (
    LeaveAllowanceComputation,
    SpecialLeaveAllowanceCalculator,
)
from payroll_engines.minimum_wage import ComplianceFinding, MinimumWageValidator
from payroll_runs.domain.types import (
    AuditEntry,
    AuditKind,
    CalculationOptions,
    CalculationResult,
    CalculationStatus,
    EmployeeCompensationSnapshot,
    EmployeeOutcome,
    LeaveAllowanceFailure,
    validate_transition,
)

logger = get_logger("runs.orchestrator")

_ZERO = Decimal("0")


def _params(**values: object) -> tuple[tuple[str, str], ...]:
    return tuple(
        (key, "" if value is None else str(value)) for key, value in values.items()
    )


class _Attempt:
    """Tracks one calculation attempt through ``CalculationStatus``."""

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        self.status = CalculationStatus.PENDING
        logger.info("calculation_pending", extra={"status": self.status.value})

    def advance(self, target: CalculationStatus, **extra: object) -> None:
        validate_transition(self.status, target)
        previous, self.status = self.status, target
        level = logger.error if target is CalculationStatus.FAILED else logger.info
        level(
            f"calculation_{target.value}",
            extra={"status_from": previous.value, "status": target.value, **extra},
        )


class PayrollCalculationOrchestrator:
    """Single-employee and multi-employee payroll calculation.

    Non-goals:
        - Does NOT persist results -- ``PayrollRunService`` does.
        - Does NOT read the clock -- the calculation date is on the snapshot.
    """

    def __init__(
        self,
        resolver: ConfigurationResolver | None = None,
        contribution_calculator: ContributionCalculator | None = None,
        income_tax_calculator: IncomeTaxCalculator | None = None,
        minimum_wage_validator: MinimumWageValidator | None = None,
        accrual_engine: AccrualRuleEngine | None = None,
        leave_allowance_calculator: SpecialLeaveAllowanceCalculator | None = None,
    ):
        self._resolver = resolver
        self._contributions = contribution_calculator or ContributionCalculator()
        self._income_tax = income_tax_calculator or IncomeTaxCalculator()
        self._minimum_wage = minimum_wage_validator or MinimumWageValidator()
        self._accrual = accrual_engine or AccrualRuleEngine()
        self._leave_allowance = (
            leave_allowance_calculator or SpecialLeaveAllowanceCalculator()
        )

    # -------------------------------------------------------------------------
    # Single employee
    # -------------------------------------------------------------------------

    def calculate(
        self,
        snapshot: EmployeeCompensationSnapshot,
        configuration: CountryConfiguration | None = None,
        options: CalculationOptions | None = None,
    ) -> CalculationResult:
        """
        Calculate one payslip.

        Args:
            snapshot: Compensation inputs for one employee and period.
            configuration: Rules to apply.  Resolved from the snapshot's
                country and calculation date when omitted.
            options: Optional checks and the special leave allowance request.

        Raises:
            ConfigurationError: No single configuration governs the date, or
                the one passed does not cover the snapshot.
            InputError: Base salary, fiscal parts, or currencies invalid.
            AccrualPolicyUndefinedError: Conflicting accrual rules.
            InvalidSnapshotError: Negative age or seniority.
            InvalidLeaveDaysError: ACP requested for zero or negative days.

        An ACP that cannot be computed for lack of wage history does not
        fail the payslip: it is reported on ``leave_allowance_error``.
        """
        options = options or CalculationOptions()
        with LogContext.bind(
            employee_id=snapshot.employee_id,
            country_code=snapshot.country_code,
        ):
            attempt = _Attempt(snapshot.employee_id)
            try:
                return self._calculate(snapshot, configuration, options, attempt)
            except PayrollEngineError as exc:
                attempt.advance(
                    CalculationStatus.FAILED,
                    error_code=exc.code,
                    error_component=exc.component,
                    error_message=str(exc),
                )
                raise

    def _calculate(
        self,
        snapshot: EmployeeCompensationSnapshot,
        configuration: CountryConfiguration | None,
        options: CalculationOptions,
        attempt: _Attempt,
    ) -> CalculationResult:
        t0 = time.monotonic()
        config = self._configuration_for(snapshot, configuration)
        attempt.advance(
            CalculationStatus.RESOLVED,
            config_version=config.version,
            config_checksum=config.checksum,
        )

        self._validate_snapshot(snapshot, config)
        currency = Currency(config.currency)

        earnings = compute_gross(
            snapshot.base_salary,
            snapshot.allowances,
            snapshot.overtime_amount,
            snapshot.bonus_amount,
        )
        contributions = self._contributions.calculate(
            gross=earnings.total,
            base_salary=snapshot.base_salary,
            schemes=config.contribution_schemes,
            sector_code=snapshot.sector_code,
        )

        deductible = contributions.taxable_income_reduction
        taxable = earnings.total - deductible
        if taxable.is_negative:
            taxable = Money.zero(currency)

        income_tax = self._income_tax.calculate(
            taxable_income=taxable,
            fiscal_parts=snapshot.fiscal_parts,
            rules=config.income_tax,
        )

        findings: list[ComplianceFinding] = []
        if options.validate_minimum_wage:
            findings.extend(self._minimum_wage.validate_base_salary(
                base_salary=snapshot.base_salary,
                category=snapshot.category,
                sector_code=snapshot.sector_code,
                table=config.minimum_wages,
            ))
            findings.extend(self._minimum_wage.validate_transport_allowance(
                allowances=snapshot.allowances,
                city=snapshot.city,
                table=config.transport_allowances,
                currency=currency,
            ))

        accrual = None
        if options.resolve_accrual:
            accrual = self._accrual.resolve(
                age=snapshot.age,
                seniority_years=snapshot.seniority_years,
                rule_set=config.accrual_rules,
            )

        leave_allowance = None
        leave_allowance_error = None
        request = options.leave_allowance
        if request is not None:
            try:
                leave_allowance = self._leave_allowance.calculate(
                    reference_wages=request.reference_wages,
                    leave_days=request.leave_days,
                    payment_date=request.payment_date or snapshot.calculation_date,
                    policy=config.leave_allowance,
                    non_deductible_absence_days=request.non_deductible_absence_days,
                    last_leave_return=request.last_leave_return,
                    hire_date=request.hire_date,
                )
            except LeaveAllowanceError as exc:
                # The payslip stands without the allowance
                logger.warning("leave_allowance_skipped", extra={
                    "error_code": exc.code,
                    "error_message": str(exc),
                })
                leave_allowance_error = LeaveAllowanceFailure(exc.code, str(exc))

        net = earnings.total - contributions.employee_total - income_tax.tax

        result = CalculationResult(
            employee_id=snapshot.employee_id,
            country_code=config.country_code,
            period_start=snapshot.period_start,
            period_end=snapshot.period_end,
            calculation_date=snapshot.calculation_date,
            config_version=config.version,
            config_checksum=config.checksum,
            currency=currency,
            earnings=earnings,
            contributions=contributions,
            taxable_income=taxable,
            income_tax=income_tax,
            net_salary=net,
            findings=tuple(findings),
            accrual=accrual,
            leave_allowance=leave_allowance,
            leave_allowance_error=leave_allowance_error,
            audit=self._build_audit(
                config, earnings, contributions, deductible, income_tax,
                tuple(findings), accrual, leave_allowance, leave_allowance_error,
            ),
        )

        attempt.advance(
            CalculationStatus.COMPUTED,
            gross_salary=str(result.gross_salary.amount),
            net_salary=str(net.amount),
            employer_cost=str(result.total_employer_cost.amount),
            finding_count=len(findings),
            duration_ms=round((time.monotonic() - t0) * 1000, 2),
        )
        return result

    def _configuration_for(
        self,
        snapshot: EmployeeCompensationSnapshot,
        configuration: CountryConfiguration | None,
    ) -> CountryConfiguration:
        if configuration is None:
            if self._resolver is None:
                raise ValueError("No configuration given and no resolver configured")
            return self._resolver.resolve(snapshot.country_code, snapshot.calculation_date)

        covers = (
            configuration.country_code == snapshot.country_code.upper()
            and configuration.is_effective(snapshot.calculation_date)
        )
        if not covers:
            logger.warning("configuration_does_not_cover_snapshot", extra={
                "config_country": configuration.country_code,
                "config_version": configuration.version,
                "calculation_date": snapshot.calculation_date.isoformat(),
            })
            raise ConfigurationNotFoundError(
                snapshot.country_code.upper(),
                snapshot.calculation_date.isoformat(),
            )
        return configuration

    def _validate_snapshot(
        self,
        snapshot: EmployeeCompensationSnapshot,
        config: CountryConfiguration,
    ) -> None:
        expected = Currency(config.currency)
        for field_name, amount in snapshot.amounts():
            if amount.currency != expected:
                raise CurrencyMismatchError(expected.code, amount.currency.code, field_name)

        if snapshot.base_salary.amount <= _ZERO:
            raise InvalidBaseSalaryError(
                snapshot.employee_id, str(snapshot.base_salary.amount),
            )
        if snapshot.fiscal_parts <= _ZERO:
            raise InvalidFiscalPartsError(
                str(snapshot.fiscal_parts), snapshot.employee_id,
            )
        for field_name in ("age", "seniority_years"):
            value = getattr(snapshot, field_name)
            if value < 0:
                raise InvalidSnapshotError(field_name, str(value), snapshot.employee_id)

    # -------------------------------------------------------------------------
    # Audit trail
    # -------------------------------------------------------------------------

    def _build_audit(
        self,
        config: CountryConfiguration,
        earnings: GrossPay,
        contributions: ContributionResult,
        deductible: Money,
        income_tax: IncomeTaxResult,
        findings: tuple[ComplianceFinding, ...],
        accrual: AccrualResult | None,
        leave_allowance: LeaveAllowanceComputation | None,
        leave_allowance_error: LeaveAllowanceFailure | None,
    ) -> tuple[AuditEntry, ...]:
        entries = [
            AuditEntry(
                AuditKind.CONFIGURATION,
                config.reference,
                _params(
                    version=config.version,
                    checksum=config.checksum,
                    effective_from=config.effective_from.isoformat(),
                    effective_to=(
                        config.effective_to.isoformat() if config.effective_to else None
                    ),
                    currency=config.currency,
                ),
            )
        ]

        entries.extend(
            AuditEntry(AuditKind.EARNINGS, line.code, _params(amount=line.amount.amount))
            for line in earnings.lines
        )

        for line in contributions.lines:
            entries.append(AuditEntry(
                AuditKind.CONTRIBUTION_SCHEME,
                line.scheme_code,
                _params(
                    kind=line.kind.value,
                    base_amount=line.base_amount.amount,
                    effective_base=line.effective_base.amount,
                    employee_rate=line.employee_rate,
                    employer_rate=line.employer_rate,
                    capped=line.capped,
                    floored=line.floored,
                    employee_amount_unrounded=line.employee_amount_unrounded.amount,
                    employer_amount_unrounded=line.employer_amount_unrounded.amount,
                    employee_amount=line.employee_amount.amount,
                    employer_amount=line.employer_amount.amount,
                    rounding=line.rounding,
                ),
            ))

        entries.append(AuditEntry(
            AuditKind.TAXABLE_INCOME,
            income_tax.tax_code,
            _params(
                gross=earnings.total.amount,
                deductible_contributions=deductible.amount,
                taxable_income=income_tax.taxable_income.amount,
            ),
        ))

        entries.extend(
            AuditEntry(
                AuditKind.TAX_BRACKET,
                f"{income_tax.tax_code}[{s.bracket_index}]",
                _params(
                    lower=s.lower,
                    upper=s.upper,
                    rate=s.rate,
                    taxable_slice=s.taxable_slice,
                    tax=s.tax,
                ),
            )
            for s in income_tax.slices
        )

        entries.append(AuditEntry(
            AuditKind.INCOME_TAX,
            income_tax.tax_code,
            _params(
                fiscal_parts=income_tax.fiscal_parts,
                bracket_period=config.income_tax.bracket_period.value,
                abatement=income_tax.abatement,
                quotient=income_tax.quotient,
                tax_on_quotient=income_tax.tax_on_quotient,
                family_credit=income_tax.family_credit,
                tax_before_rounding=income_tax.tax_before_rounding,
                tax=income_tax.tax.amount,
                rounding=income_tax.rounding,
            ),
        ))

        entries.extend(
            AuditEntry(AuditKind.COMPLIANCE_FINDING, f.finding_type.value, f.details)
            for f in findings
        )

        if accrual is not None:
            for rule_id in accrual.applied_rule_ids:
                entries.append(AuditEntry(
                    AuditKind.ACCRUAL_RULE,
                    rule_id,
                    _params(
                        monthly_days=accrual.monthly_days,
                        bonus_days=accrual.bonus_days,
                        policy=accrual.policy.value if accrual.policy else None,
                    ),
                ))
            for rule_id in accrual.suppressed_rule_ids:
                entries.append(AuditEntry(
                    AuditKind.ACCRUAL_RULE,
                    rule_id,
                    _params(suppressed=True, policy=accrual.policy.value),
                ))

        if leave_allowance is not None:
            entries.append(AuditEntry(
                AuditKind.LEAVE_ALLOWANCE,
                "special_leave_allowance",
                _params(
                    reference_period=leave_allowance.reference_period.value,
                    window_start=leave_allowance.window_start.isoformat(),
                    window_end=leave_allowance.window_end.isoformat(),
                    months_used=leave_allowance.months_used,
                    reference_total=leave_allowance.reference_total.amount,
                    paid_days=leave_allowance.paid_days,
                    daily_wage=leave_allowance.daily_wage,
                    leave_days=leave_allowance.leave_days,
                    amount=leave_allowance.amount.amount,
                    rounding=leave_allowance.rounding,
                ),
            ))
        elif leave_allowance_error is not None:
            entries.append(AuditEntry(
                AuditKind.LEAVE_ALLOWANCE,
                "special_leave_allowance",
                _params(
                    skipped=True,
                    error_code=leave_allowance_error.error_code,
                    error_message=leave_allowance_error.error_message,
                ),
            ))

        return tuple(entries)

    # -------------------------------------------------------------------------
    # Many employees
    # -------------------------------------------------------------------------

    def calculate_many(
        self,
        snapshots: Sequence[EmployeeCompensationSnapshot],
        configuration: CountryConfiguration,
        options: CalculationOptions | None = None,
        max_workers: int = 1,
    ) -> tuple[EmployeeOutcome, ...]:
        """
        Calculate every snapshot under one configuration.

        One employee's typed payroll error is recorded on its outcome and
        never aborts the others; any other exception propagates.  Outcomes
        are returned in snapshot order.
        """
        t0 = time.monotonic()
        logger.info("calculation_batch_started", extra={
            "employee_count": len(snapshots),
            "config_version": configuration.version,
            "max_workers": max_workers,
        })

        if max_workers > 1 and len(snapshots) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                # Each task runs in a copy of the caller's context so LogContext
                # fields (run_id, correlation_id) reach the worker threads.
                futures = [
                    pool.submit(
                        contextvars.copy_context().run,
                        self._outcome_for, snapshot, configuration, options,
                    )
                    for snapshot in snapshots
                ]
                outcomes = tuple(f.result() for f in futures)
        else:
            outcomes = tuple(
                self._outcome_for(snapshot, configuration, options)
                for snapshot in snapshots
            )

        computed = [o.result for o in outcomes if o.result is not None]
        logger.info("calculation_batch_completed", extra={
            "employee_count": len(outcomes),
            "computed": len(computed),
            "failed": len(outcomes) - len(computed),
            "gross_total": str(
                sum_money(
                    [r.gross_salary for r in computed], Currency(configuration.currency),
                ).amount
            ),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return outcomes

    def _outcome_for(
        self,
        snapshot: EmployeeCompensationSnapshot,
        configuration: CountryConfiguration,
        options: CalculationOptions | None,
    ) -> EmployeeOutcome:
        try:
            result = self.calculate(snapshot, configuration, options)
        except PayrollEngineError as exc:
            return EmployeeOutcome(
                employee_id=snapshot.employee_id,
                error_code=exc.code,
                error_component=exc.component,
                error_message=str(exc),
            )
        except Exception:
            # Engine defects propagate
            logger.exception("calculation_unhandled_exception", extra={
                "employee_id": snapshot.employee_id,
            })
            raise
        return EmployeeOutcome(employee_id=snapshot.employee_id, result=result)
