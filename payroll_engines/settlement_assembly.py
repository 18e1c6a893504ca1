"""
Settlement Assembly - deterministic fold from calculator outputs to totals.

Combines accrual, tax and rights outputs into the figures a settlement
document carries: earnings components, gross, INSS, IRRF, other deductions
and net.  The fold is side-effect free and always recomputes every total
from its inputs, so ``net == gross - inss - irrf - other`` holds by
construction.

Two document-level calculators sit on top of ``assemble``:

- ``assemble_thirteenth`` for the 13th-salary installments and single
  payments;
- ``assemble_termination`` for the TRCT (termination settlement).

Usage:
    totals = assemble(
        earnings=[SettlementComponent("thirteenth_total", Decimal("3000.00"))],
        inss=Decimal("258.82"),
        irrf=Decimal("36.15"),
    )
    totals.net_value  # Decimal("2705.03")
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Sequence

from payroll_engines.accrual import (
    MONTHS_PER_YEAR,
    AccrualInput,
    average_variable_income,
    first_installment,
    months_worked,
    proportional_13th,
    proportional_amount,
    proportional_vacation_days,
)
from payroll_engines.brackets import StatutoryTables, WithholdingMethod, withhold
from payroll_engines.termination_rights import (
    TerminationType,
    coerce_termination_type,
    fgts_balance,
    fgts_penalty,
    is_unemployment_eligible,
    monthly_fgts_deposit,
    notice_indemnity_due,
    resolve,
    unemployment_guides,
)
from payroll_kernel.domain.values import ZERO, round_money, to_decimal
from payroll_kernel.exceptions import ValidationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.settlement_assembly")

DAYS_PER_SALARY_MONTH = 30
VACATION_BONUS_DIVISOR = 3


class ThirteenthKind(str, Enum):
    """Which part of the 13th salary a document settles."""

    FIRST_INSTALLMENT = "FIRST_INSTALLMENT"
    SECOND_INSTALLMENT = "SECOND_INSTALLMENT"
    FULL = "FULL"
    PROPORTIONAL = "PROPORTIONAL"


@dataclass(frozen=True)
class SettlementComponent:
    """One earnings line of a settlement (e.g. ``salary_balance``)."""

    code: str
    amount: Decimal


@dataclass(frozen=True)
class SettlementTotals:
    """Result of the fold.  Never built outside ``assemble``."""

    components: tuple[SettlementComponent, ...]
    gross_value: Decimal
    inss_deduction: Decimal
    irrf_deduction: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_value: Decimal

    def component(self, code: str) -> Decimal:
        for c in self.components:
            if c.code == code:
                return c.amount
        return ZERO


@dataclass(frozen=True)
class TaxMethods:
    """Which withholding mode each tax uses."""

    inss: WithholdingMethod = WithholdingMethod.PROGRESSIVE
    irrf: WithholdingMethod = WithholdingMethod.SINGLE_LOOKUP
    apply_dependent_deduction: bool = True


def assemble(
    earnings: Sequence[SettlementComponent],
    *,
    inss: Decimal,
    irrf: Decimal,
    other_deductions: Decimal = ZERO,
) -> SettlementTotals:
    """Fold earnings and deductions into settlement totals."""
    components = tuple(
        SettlementComponent(c.code, to_decimal(c.amount, c.code)) for c in earnings
    )
    inss = to_decimal(inss, "inss_deduction")
    irrf = to_decimal(irrf, "irrf_deduction")
    other = to_decimal(other_deductions, "other_deductions")

    gross = sum((c.amount for c in components), ZERO)
    total_deductions = inss + irrf + other
    return SettlementTotals(
        components=components,
        gross_value=gross,
        inss_deduction=inss,
        irrf_deduction=irrf,
        other_deductions=other,
        total_deductions=total_deductions,
        net_value=gross - total_deductions,
    )


def _irrf_base(
    taxable: Decimal,
    inss: Decimal,
    dependents_count: int,
    tables: StatutoryTables,
    methods: TaxMethods,
) -> Decimal:
    base = taxable - inss
    if methods.apply_dependent_deduction and dependents_count:
        base -= tables.irrf_dependent_deduction * dependents_count
    return max(base, ZERO)


# ---------------------------------------------------------------------------
# 13th salary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ThirteenthBreakdown:
    kind: ThirteenthKind
    months_worked: int
    average_variable_income: Decimal
    base_value: Decimal
    total_value: Decimal
    first_installment_gross: Decimal
    inss_base: Decimal
    irrf_base: Decimal
    totals: SettlementTotals


def assemble_thirteenth(
    kind: ThirteenthKind | str,
    accrual: AccrualInput,
    tables: StatutoryTables,
    *,
    methods: TaxMethods = TaxMethods(),
    first_installment_gross: Decimal = ZERO,
    dependents_count: int = 0,
    other_deductions: Decimal = ZERO,
) -> ThirteenthBreakdown:
    """Compute one 13th-salary document.

    - FIRST_INSTALLMENT: half of the proportional 13th, no deductions.
    - SECOND_INSTALLMENT: the remainder after the first installment; INSS
      and IRRF levied on the whole 13th are deducted here.
    - FULL / PROPORTIONAL: the whole 13th in one payment, taxed in full.
    """
    kind = ThirteenthKind(kind)
    if dependents_count < 0:
        raise ValidationError("dependents_count", dependents_count, "must not be negative")

    months = months_worked(
        accrual.admission_date,
        accrual.reference_date,
        capped=True,
        cap=min(
            MONTHS_PER_YEAR
            if accrual.months_considered_cap is None
            else accrual.months_considered_cap,
            MONTHS_PER_YEAR,
        ),
    )
    if kind is ThirteenthKind.FULL and months != MONTHS_PER_YEAR:
        raise ValidationError("kind", kind.value, f"FULL requires 12 months, got {months}")

    average = average_variable_income(accrual.variable_income_samples)
    base_value = accrual.base_salary + average
    total = proportional_13th(base_value, months)
    first_gross = to_decimal(first_installment_gross, "first_installment_gross")

    if kind is ThirteenthKind.FIRST_INSTALLMENT:
        earnings = [SettlementComponent("thirteenth_first_installment", first_installment(total))]
        inss_base = ZERO
        irrf_base = ZERO
        inss = ZERO
        irrf = ZERO
        first_gross = ZERO
    else:
        if kind is ThirteenthKind.SECOND_INSTALLMENT:
            if first_gross > total:
                raise ValidationError(
                    "first_installment_gross",
                    str(first_gross),
                    f"exceeds the 13th total {total}",
                )
            earnings = [
                SettlementComponent("thirteenth_second_installment", total - first_gross)
            ]
        else:
            first_gross = ZERO
            earnings = [SettlementComponent("thirteenth_total", total)]
        inss_base = total
        inss = withhold(inss_base, tables.inss, methods.inss)
        irrf_base = _irrf_base(total, inss, dependents_count, tables, methods)
        irrf = withhold(irrf_base, tables.irrf, methods.irrf)

    totals = assemble(earnings, inss=inss, irrf=irrf, other_deductions=other_deductions)
    return ThirteenthBreakdown(
        kind=kind,
        months_worked=months,
        average_variable_income=average,
        base_value=base_value,
        total_value=total,
        first_installment_gross=first_gross,
        inss_base=inss_base,
        irrf_base=irrf_base,
        totals=totals,
    )


# ---------------------------------------------------------------------------
# Termination (TRCT)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TerminationInput:
    """Frozen inputs of a termination settlement."""

    termination_type: TerminationType
    base_salary: Decimal
    admission_date: date
    termination_date: date
    notice_period_days: int
    notice_period_indemnified: bool = False
    dependents_count: int = 0
    other_deductions: Decimal = ZERO

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "termination_type", coerce_termination_type(self.termination_type)
        )
        object.__setattr__(self, "base_salary", to_decimal(self.base_salary, "base_salary"))
        object.__setattr__(
            self, "other_deductions", to_decimal(self.other_deductions, "other_deductions")
        )
        if self.termination_date < self.admission_date:
            raise ValidationError(
                "termination_date",
                self.termination_date.isoformat(),
                f"precedes admission_date {self.admission_date.isoformat()}",
            )
        if self.notice_period_days < 0:
            raise ValidationError(
                "notice_period_days", self.notice_period_days, "must not be negative"
            )
        if self.dependents_count < 0:
            raise ValidationError("dependents_count", self.dependents_count, "must not be negative")


@dataclass(frozen=True)
class TerminationBreakdown:
    tenure_months: int
    months_in_year: int
    salary_balance: Decimal
    notice_value: Decimal
    vacation_balance: Decimal
    vacation_proportional: Decimal
    vacation_proportional_days: int
    vacation_one_third: Decimal
    thirteenth_proportional: Decimal
    fgts_balance: Decimal
    fgts_penalty: Decimal
    inss_base: Decimal
    irrf_base: Decimal
    eligible_for_unemployment: bool
    unemployment_guides: int
    totals: SettlementTotals


def assemble_termination(
    termination: TerminationInput,
    tables: StatutoryTables,
    *,
    methods: TaxMethods = TaxMethods(),
    vacation_annual_days: int = 30,
) -> TerminationBreakdown:
    """Compute every TRCT figure for ``termination``."""
    t0 = time.monotonic()
    salary = termination.base_salary
    ttype = termination.termination_type
    profile = resolve(ttype)
    daily = salary / DAYS_PER_SALARY_MONTH

    tenure = months_worked(termination.admission_date, termination.termination_date, capped=False)
    year_start = date(termination.termination_date.year, 1, 1)
    months_in_year = months_worked(
        max(termination.admission_date, year_start),
        termination.termination_date,
        capped=True,
    )

    salary_balance = round_money(daily * termination.termination_date.day)
    notice_value = ZERO
    if notice_indemnity_due(ttype, termination.notice_period_indemnified):
        notice_value = round_money(daily * termination.notice_period_days)

    vacation_balance = round_money(salary) if tenure >= MONTHS_PER_YEAR else ZERO
    months_in_period = tenure % MONTHS_PER_YEAR
    vacation_proportional = proportional_amount(salary, months_in_period)
    vacation_one_third = round_money(
        (vacation_balance + vacation_proportional) / VACATION_BONUS_DIVISOR
    )

    if ttype is TerminationType.DISMISSAL_WITH_CAUSE:
        thirteenth = ZERO
    else:
        thirteenth = proportional_13th(salary, months_in_year)

    balance = fgts_balance(monthly_fgts_deposit(salary, tables.fgts_deposit_rate), tenure)
    penalty = fgts_penalty(balance, profile)

    inss_base = salary_balance + notice_value
    inss = withhold(inss_base, tables.inss, methods.inss)
    irrf_base = _irrf_base(inss_base, inss, termination.dependents_count, tables, methods)
    irrf = withhold(irrf_base, tables.irrf, methods.irrf)

    earnings = [
        SettlementComponent("salary_balance", salary_balance),
        SettlementComponent("notice_indemnity", notice_value),
        SettlementComponent("vacation_balance", vacation_balance),
        SettlementComponent("vacation_proportional", vacation_proportional),
        SettlementComponent("vacation_one_third", vacation_one_third),
        SettlementComponent("thirteenth_proportional", thirteenth),
        SettlementComponent("fgts_penalty", penalty),
    ]
    totals = assemble(
        earnings,
        inss=inss,
        irrf=irrf,
        other_deductions=termination.other_deductions,
    )

    breakdown = TerminationBreakdown(
        tenure_months=tenure,
        months_in_year=months_in_year,
        salary_balance=salary_balance,
        notice_value=notice_value,
        vacation_balance=vacation_balance,
        vacation_proportional=vacation_proportional,
        vacation_proportional_days=proportional_vacation_days(
            months_in_period, vacation_annual_days
        ),
        vacation_one_third=vacation_one_third,
        thirteenth_proportional=thirteenth,
        fgts_balance=balance,
        fgts_penalty=penalty,
        inss_base=inss_base,
        irrf_base=irrf_base,
        eligible_for_unemployment=is_unemployment_eligible(profile, tenure),
        unemployment_guides=unemployment_guides(profile, tenure),
        totals=totals,
    )

    logger.info(
        "termination_assembled",
        extra={
            "termination_type": ttype.value,
            "tenure_months": tenure,
            "gross_value": str(totals.gross_value),
            "net_value": str(totals.net_value),
            "fgts_penalty": str(penalty),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        },
    )
    return breakdown
