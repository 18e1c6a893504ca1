"""
Termination Rights Resolver - entitlement profile per termination type.

Maps each ``TerminationType`` to its immutable ``RightsProfile`` (FGTS
penalty rate, whether notice is owed, unemployment-insurance eligibility)
and computes the FGTS balance/penalty, the notice period length and the
number of unemployment-insurance guides.

The rights table is a total, read-only mapping: every termination type
has exactly one profile and there is no fallback.

Pure functions with no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from payroll_kernel.domain.values import round_money, to_decimal
from payroll_kernel.exceptions import ValidationError

FGTS_DEPOSIT_RATE = Decimal("0.08")
BASE_NOTICE_DAYS = 30
NOTICE_DAYS_PER_YEAR = 3
MAX_NOTICE_YEARS = 20
UNEMPLOYMENT_MIN_MONTHS = 12
UNEMPLOYMENT_MONTHS_PER_GUIDE = 6
UNEMPLOYMENT_MAX_GUIDES = 5


class TerminationType(str, Enum):
    """How the employment contract ended."""

    RESIGNATION = "RESIGNATION"
    DISMISSAL_WITH_CAUSE = "DISMISSAL_WITH_CAUSE"
    DISMISSAL_NO_CAUSE = "DISMISSAL_NO_CAUSE"
    MUTUAL_AGREEMENT = "MUTUAL_AGREEMENT"
    CONTRACT_END = "CONTRACT_END"
    RETIREMENT = "RETIREMENT"
    DEATH = "DEATH"


@dataclass(frozen=True)
class RightsProfile:
    """Statutory entitlements attached to a termination type."""

    fgts_penalty_rate: Decimal
    notice_period_owed: bool
    unemployment_eligible: bool


RIGHTS_TABLE: Mapping[TerminationType, RightsProfile] = MappingProxyType({
    TerminationType.RESIGNATION: RightsProfile(Decimal("0"), True, False),
    TerminationType.DISMISSAL_WITH_CAUSE: RightsProfile(Decimal("0"), False, False),
    TerminationType.DISMISSAL_NO_CAUSE: RightsProfile(Decimal("0.40"), True, True),
    TerminationType.MUTUAL_AGREEMENT: RightsProfile(Decimal("0.20"), True, False),
    TerminationType.CONTRACT_END: RightsProfile(Decimal("0"), False, False),
    TerminationType.RETIREMENT: RightsProfile(Decimal("0"), False, False),
    TerminationType.DEATH: RightsProfile(Decimal("0"), False, False),
})


def coerce_termination_type(value: TerminationType | str) -> TerminationType:
    try:
        return TerminationType(value)
    except ValueError:
        raise ValidationError("termination_type", value, "unknown termination type") from None


def resolve(termination_type: TerminationType | str) -> RightsProfile:
    """Rights profile for ``termination_type``."""
    return RIGHTS_TABLE[coerce_termination_type(termination_type)]


def monthly_fgts_deposit(salary: Decimal, rate: Decimal = FGTS_DEPOSIT_RATE) -> Decimal:
    """Employer FGTS deposit for one month of ``salary``."""
    return to_decimal(salary, "salary") * to_decimal(rate, "fgts_deposit_rate")


def fgts_balance(monthly_deposit: Decimal, months: int) -> Decimal:
    """Accumulated FGTS balance after ``months`` deposits."""
    if months < 0:
        raise ValidationError("months_worked", months, "must not be negative")
    return round_money(to_decimal(monthly_deposit, "monthly_deposit") * months)


def fgts_penalty(balance: Decimal, profile: RightsProfile) -> Decimal:
    """Employer penalty on the FGTS balance."""
    return round_money(to_decimal(balance, "fgts_balance") * profile.fgts_penalty_rate)


def notice_period_days(years_of_service: int) -> int:
    """``30 + min(years, 20) * 3``: 30 days at hire, 90 from 20 years on."""
    if years_of_service < 0:
        raise ValidationError("years_of_service", years_of_service, "must not be negative")
    return BASE_NOTICE_DAYS + min(years_of_service, MAX_NOTICE_YEARS) * NOTICE_DAYS_PER_YEAR


def notice_indemnity_due(
    termination_type: TerminationType | str,
    indemnified: bool,
) -> bool:
    """Whether an indemnified notice period is paid to the employee.

    On RESIGNATION the notice is owed by the employee, so it never credits
    the settlement.
    """
    termination_type = coerce_termination_type(termination_type)
    if not indemnified or termination_type is TerminationType.RESIGNATION:
        return False
    return resolve(termination_type).notice_period_owed


def unemployment_guides(profile: RightsProfile, tenure_months: int) -> int:
    """Number of unemployment-insurance guides issued (0 when not eligible)."""
    if not profile.unemployment_eligible or tenure_months < UNEMPLOYMENT_MIN_MONTHS:
        return 0
    return min(UNEMPLOYMENT_MAX_GUIDES, tenure_months // UNEMPLOYMENT_MONTHS_PER_GUIDE)


def is_unemployment_eligible(profile: RightsProfile, tenure_months: int) -> bool:
    return profile.unemployment_eligible and tenure_months >= UNEMPLOYMENT_MIN_MONTHS


__all__ = [
    "FGTS_DEPOSIT_RATE",
    "RIGHTS_TABLE",
    "RightsProfile",
    "TerminationType",
    "coerce_termination_type",
    "fgts_balance",
    "fgts_penalty",
    "is_unemployment_eligible",
    "monthly_fgts_deposit",
    "notice_indemnity_due",
    "notice_period_days",
    "resolve",
    "unemployment_guides",
]
