"""
Bracket Tax Calculator - statutory withholding from bracket tables.

Applies an INSS or IRRF bracket table to a base amount.  Two modes are
supported and the caller selects one per tax:

- ``SINGLE_LOOKUP``: find the bracket whose upper bound is the smallest
  bound >= base and compute ``base * rate - fixed_deduction`` (IRRF form).
- ``PROGRESSIVE``: walk the brackets in order and tax each slice at its own
  rate, ``min(remaining, width) * rate``, until the base is consumed
  (INSS form).

Pure functions with no I/O - tables are provided as parameters.

Usage:
    from payroll_engines.brackets import BracketTable, Bracket, withhold, WithholdingMethod

    inss = BracketTable(
        name="inss",
        brackets=(
            Bracket(Decimal("1412.00"), Decimal("0.075")),
            Bracket(Decimal("2666.68"), Decimal("0.09"), Decimal("21.18")),
            Bracket(UNBOUNDED, Decimal("0.12"), Decimal("101.18")),
        ),
    )
    withhold(Decimal("2000.00"), inss, WithholdingMethod.PROGRESSIVE)  # 158.82
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from payroll_kernel.domain.values import ZERO, round_money, to_decimal
from payroll_kernel.exceptions import ValidationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.brackets")

UNBOUNDED = Decimal("Infinity")
ONE = Decimal("1")


class WithholdingMethod(str, Enum):
    """How a bracket table is applied to a base."""

    SINGLE_LOOKUP = "single_lookup"
    PROGRESSIVE = "progressive"


@dataclass(frozen=True)
class Bracket:
    """One row of a bracket table.

    ``fixed_deduction`` is only used by single-lookup withholding.
    """

    upper_bound: Decimal
    rate: Decimal
    fixed_deduction: Decimal = ZERO

    @property
    def is_unbounded(self) -> bool:
        return self.upper_bound == UNBOUNDED


@dataclass(frozen=True)
class BracketTable:
    """Ordered, immutable bracket table.

    Invariants:
        - at least one bracket;
        - upper bounds strictly increasing;
        - only the last bracket is unbounded, and it must be;
        - rates in [0, 1], deductions >= 0, ceiling (when set) >= 0.
    """

    name: str
    brackets: tuple[Bracket, ...]
    ceiling: Decimal | None = None

    def __post_init__(self) -> None:
        if not self.brackets:
            raise ValidationError("brackets", self.name, "table has no brackets")
        previous = ZERO
        for index, bracket in enumerate(self.brackets):
            last = index == len(self.brackets) - 1
            if bracket.is_unbounded != last:
                raise ValidationError(
                    "upper_bound",
                    str(bracket.upper_bound),
                    "only the last bracket may (and must) be unbounded",
                )
            if not bracket.is_unbounded and bracket.upper_bound <= previous:
                raise ValidationError(
                    "upper_bound",
                    str(bracket.upper_bound),
                    f"must be greater than {previous}",
                )
            if not (ZERO <= bracket.rate <= ONE):
                raise ValidationError("rate", str(bracket.rate), "must be within [0, 1]")
            if bracket.fixed_deduction < 0:
                raise ValidationError(
                    "fixed_deduction", str(bracket.fixed_deduction), "must not be negative"
                )
            previous = bracket.upper_bound
        if self.ceiling is not None and self.ceiling < 0:
            raise ValidationError("ceiling", str(self.ceiling), "must not be negative")

    def bracket_for(self, base: Decimal) -> Bracket:
        """Bracket with the smallest upper bound >= ``base``.

        Any finite base has one since the last bracket is unbounded.
        """
        value = to_decimal(base, "base", allow_negative=True)
        return next(b for b in self.brackets if value <= b.upper_bound)


def _validated_base(base: Decimal) -> Decimal:
    value = to_decimal(base, "base", allow_negative=True)
    if value < 0:
        raise ValidationError("base", base, "withholding base must not be negative")
    return value


def _apply_ceiling(amount: Decimal, table: BracketTable) -> Decimal:
    if table.ceiling is not None and amount > table.ceiling:
        return table.ceiling
    return amount


def single_lookup_withholding(base: Decimal, table: BracketTable) -> Decimal:
    """``base * rate - fixed_deduction`` for the bracket containing ``base``.

    The result is rounded to centavos and floored at zero.
    """
    value = _validated_base(base)
    if value == 0:
        return ZERO
    bracket = table.bracket_for(value)
    amount = round_money(value * bracket.rate - bracket.fixed_deduction)
    amount = _apply_ceiling(amount, table)
    return max(amount, ZERO)


def progressive_withholding(base: Decimal, table: BracketTable) -> Decimal:
    """Sum of each bracket's slice of ``base`` taxed at that bracket's rate.

    Each slice is rounded to centavos before summing.
    """
    value = _validated_base(base)
    if value == 0:
        return ZERO

    total = ZERO
    remaining = value
    lower = ZERO
    for bracket in table.brackets:
        width = bracket.upper_bound - lower
        taken = min(remaining, width)
        total += round_money(taken * bracket.rate)
        remaining -= taken
        lower = bracket.upper_bound
        if remaining == 0:
            break

    total = _apply_ceiling(total, table)
    return max(total, ZERO)


def withhold(
    base: Decimal,
    table: BracketTable,
    method: WithholdingMethod = WithholdingMethod.SINGLE_LOOKUP,
) -> Decimal:
    """Withheld amount for ``base`` under ``table`` using ``method``."""
    method = WithholdingMethod(method)
    if method is WithholdingMethod.PROGRESSIVE:
        amount = progressive_withholding(base, table)
    else:
        amount = single_lookup_withholding(base, table)

    logger.debug(
        "bracket_withholding_computed",
        extra={
            "table": table.name,
            "method": method.value,
            "base": str(base),
            "amount": str(amount),
        },
    )
    return amount


@dataclass(frozen=True)
class StatutoryTables:
    """Every statutory parameter the settlement calculators need for one year."""

    year: int
    inss: BracketTable
    irrf: BracketTable
    irrf_dependent_deduction: Decimal
    fgts_deposit_rate: Decimal
    checksum: str = ""
