"""
Accrual Calculator - proportional entitlements keyed to calendar rules.

Computes months worked (with the 15-day rule), the proportional 13th
salary, proportional vacation days, the average of variable income
(overtime, commissions) and the 13th-salary installment split.

Month counting follows the labor rule used for both the 13th salary and
vacation: whole calendar months between the two dates count, and the
partial month at either end counts when at least 15 days were worked in
it.  Both dates are inclusive (an employee working Jan 1..Jan 15 has
worked 15 days).

Pure functions with no I/O.
"""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Sequence

from payroll_kernel.domain.values import ZERO, round_money, to_decimal
from payroll_kernel.exceptions import ValidationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.accrual")

MONTHS_PER_YEAR = 12
MONTH_FRACTION_THRESHOLD_DAYS = 15
DEFAULT_VACATION_DAYS = 30
HALF = Decimal("0.5")


@dataclass(frozen=True)
class AccrualInput:
    """Inputs for one employee's accrual calculation.

    ``admission_date`` is the start of the counted period: the admission
    itself for tenure, or ``max(admission, Jan 1)`` for the 13th salary.
    """

    base_salary: Decimal
    admission_date: date
    reference_date: date
    months_considered_cap: int | None = MONTHS_PER_YEAR
    variable_income_samples: tuple[Decimal, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_salary", to_decimal(self.base_salary, "base_salary"))
        object.__setattr__(
            self,
            "variable_income_samples",
            tuple(
                to_decimal(s, "variable_income_samples")
                for s in self.variable_income_samples
            ),
        )
        if self.reference_date < self.admission_date:
            raise ValidationError(
                "reference_date",
                self.reference_date.isoformat(),
                f"precedes admission_date {self.admission_date.isoformat()}",
            )
        if self.months_considered_cap is not None and self.months_considered_cap < 0:
            raise ValidationError(
                "months_considered_cap", self.months_considered_cap, "must not be negative"
            )


@dataclass(frozen=True)
class AccrualResult:
    """Derived entitlements for one AccrualInput."""

    months_worked: int
    average_variable_income: Decimal
    base_value: Decimal
    proportional_13th: Decimal
    proportional_vacation_days: int


def _counted(days_in_fragment: int) -> int:
    return 1 if days_in_fragment >= MONTH_FRACTION_THRESHOLD_DAYS else 0


def months_worked(
    start: date,
    reference: date,
    *,
    capped: bool = True,
    cap: int = MONTHS_PER_YEAR,
) -> int:
    """Calendar months worked between ``start`` and ``reference`` (inclusive).

    Every calendar month strictly between the two dates counts.  The month
    of ``start`` and the month of ``reference`` are judged on their own:
    each counts when the days worked inside it reach 15.  With ``capped``
    the result never exceeds ``cap`` (13th-salary mode); without it the
    full tenure is returned.
    """
    if reference < start:
        raise ValidationError(
            "reference_date",
            reference.isoformat(),
            f"precedes start date {start.isoformat()}",
        )
    if (start.year, start.month) == (reference.year, reference.month):
        months = _counted(reference.day - start.day + 1)
    else:
        first_month_days = monthrange(start.year, start.month)[1] - start.day + 1
        between = (
            (reference.year - start.year) * MONTHS_PER_YEAR
            + reference.month - start.month - 1
        )
        months = between + _counted(first_month_days) + _counted(reference.day)
    if capped:
        months = min(months, cap)
    return months


def _validated_months(months: int, *, upper: int | None = None) -> int:
    if isinstance(months, bool) or not isinstance(months, int):
        raise ValidationError("months_worked", months, "must be an integer")
    if months < 0:
        raise ValidationError("months_worked", months, "must not be negative")
    if upper is not None and months > upper:
        raise ValidationError("months_worked", months, f"must not exceed {upper}")
    return months


def proportional_amount(monthly_value: Decimal, months: int) -> Decimal:
    """``monthly_value / 12 * months`` rounded to centavos."""
    value = to_decimal(monthly_value, "monthly_value")
    months = _validated_months(months)
    # Multiply before dividing so that 12/12 reproduces the salary exactly.
    return round_money(value * months / MONTHS_PER_YEAR)


def proportional_13th(salary: Decimal, months: int) -> Decimal:
    """Proportional 13th salary: ``salary / 12 * months`` (months in 0..12)."""
    _validated_months(months, upper=MONTHS_PER_YEAR)
    return proportional_amount(salary, months)


def proportional_vacation_days(months: int, annual_days: int = DEFAULT_VACATION_DAYS) -> int:
    """``floor(months / 12 * annual_days)``."""
    months = _validated_months(months)
    if annual_days < 0:
        raise ValidationError("annual_days", annual_days, "must not be negative")
    return months * annual_days // MONTHS_PER_YEAR


def average_variable_income(samples: Sequence[Decimal]) -> Decimal:
    """Arithmetic mean of the monthly variable-income samples (0 when empty)."""
    values = [to_decimal(s, "variable_income_samples") for s in samples]
    if not values:
        return ZERO
    return round_money(sum(values, ZERO) / len(values))


def first_installment(value: Decimal) -> Decimal:
    """First 13th installment: half of the (proportional) 13th, no deductions."""
    return round_money(to_decimal(value, "thirteenth_value") * HALF)


def second_installment(value: Decimal, first: Decimal, inss: Decimal) -> Decimal:
    """Second 13th installment: ``value - first - inss``.

    INSS (and IRRF) on the 13th are levied on the full value and settled
    entirely here.
    """
    value = to_decimal(value, "thirteenth_value")
    first = to_decimal(first, "first_installment")
    inss = to_decimal(inss, "inss")
    if first > value:
        raise ValidationError(
            "first_installment", str(first), f"exceeds the 13th value {value}"
        )
    return value - first - inss


class AccrualCalculator:
    """Derives every proportional entitlement for an AccrualInput."""

    def __init__(self, vacation_annual_days: int = DEFAULT_VACATION_DAYS):
        self._vacation_annual_days = vacation_annual_days

    def compute(self, accrual: AccrualInput) -> AccrualResult:
        capped = accrual.months_considered_cap is not None
        months = months_worked(
            accrual.admission_date,
            accrual.reference_date,
            capped=capped,
            cap=accrual.months_considered_cap if capped else MONTHS_PER_YEAR,
        )
        average = average_variable_income(accrual.variable_income_samples)
        base_value = accrual.base_salary + average
        proportional = proportional_amount(base_value, min(months, MONTHS_PER_YEAR))

        result = AccrualResult(
            months_worked=months,
            average_variable_income=average,
            base_value=base_value,
            proportional_13th=proportional,
            proportional_vacation_days=proportional_vacation_days(
                months % MONTHS_PER_YEAR if not capped else months,
                self._vacation_annual_days,
            ),
        )
        logger.debug(
            "accrual_computed",
            extra={
                "months_worked": months,
                "base_value": str(base_value),
                "average_variable_income": str(average),
                "proportional_13th": str(proportional),
            },
        )
        return result
