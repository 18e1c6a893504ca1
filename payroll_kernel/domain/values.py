"""
Money values -- Decimal helpers for cent-exact settlement arithmetic.

Responsibility:
    Normalizes caller input into ``Decimal`` and rounds monetary results to
    the centavo.  Every engine and service goes through these helpers so
    that rounding is identical across INSS, IRRF, accrual and FGTS math.

Architecture position:
    Kernel > Domain.  Pure functions, zero I/O.

Invariants enforced:
    - No floats: ``to_decimal`` rejects ``float`` input outright.
    - NaN and infinities are rejected at the boundary.
    - ``round_money`` (ROUND_HALF_UP to 0.01) is the only rounding applied
      to monetary results.

Failure modes:
    - ValidationError on float, NaN, infinite, negative (when disallowed)
      or non-numeric input.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from payroll_kernel.exceptions import ValidationError

ZERO = Decimal("0")
CENT = Decimal("0.01")
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Any, field: str, *, allow_negative: bool = False) -> Decimal:
    """
    Convert ``value`` to a finite Decimal.

    Accepts Decimal, int and numeric strings.  Floats are refused because
    their binary representation already lost the centavos.

    Raises:
        ValidationError: if the value is a float, not numeric, NaN/infinite,
            or negative while ``allow_negative`` is False.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(field, value, "must be Decimal, int or numeric string")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise ValidationError(field, value, "not a number") from None
    else:
        raise ValidationError(field, value, "must be Decimal, int or numeric string")

    if not result.is_finite():
        raise ValidationError(field, value, "must be finite")
    if not allow_negative and result < 0:
        raise ValidationError(field, value, "must not be negative")
    return result


def round_money(value: Decimal) -> Decimal:
    """Round a monetary value to centavos (ROUND_HALF_UP)."""
    return value.quantize(CENT, rounding=DEFAULT_ROUNDING)
