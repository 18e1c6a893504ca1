"""
Tests for the termination rights resolver.

Covers:
- The rights table is total and read-only
- FGTS balance and penalty per termination type
- Notice period length (30 + 3 per year, up to 90)
- Notice indemnity and unemployment-insurance rules
"""

from decimal import Decimal

import pytest

from payroll_engines.termination_rights import (
    RIGHTS_TABLE,
    TerminationType,
    fgts_balance,
    fgts_penalty,
    is_unemployment_eligible,
    monthly_fgts_deposit,
    notice_indemnity_due,
    notice_period_days,
    resolve,
    unemployment_guides,
)
from payroll_kernel.exceptions import ValidationError

ZERO_PENALTY_TYPES = [
    TerminationType.RESIGNATION,
    TerminationType.DISMISSAL_WITH_CAUSE,
    TerminationType.CONTRACT_END,
    TerminationType.RETIREMENT,
    TerminationType.DEATH,
]


class TestRightsTable:

    @pytest.mark.parametrize("ttype", list(TerminationType))
    def test_every_type_has_a_profile(self, ttype):
        assert ttype in RIGHTS_TABLE
        assert resolve(ttype) is RIGHTS_TABLE[ttype]

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            RIGHTS_TABLE[TerminationType.DEATH] = RIGHTS_TABLE[TerminationType.RESIGNATION]

    def test_resolve_accepts_value_string(self):
        assert resolve("DISMISSAL_NO_CAUSE").fgts_penalty_rate == Decimal("0.40")

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve("LAYOFF")
        assert exc_info.value.field == "termination_type"

    def test_only_no_cause_dismissal_grants_unemployment(self):
        eligible = [t for t in TerminationType if resolve(t).unemployment_eligible]
        assert eligible == [TerminationType.DISMISSAL_NO_CAUSE]


class TestFgts:

    def test_balance(self):
        deposit = monthly_fgts_deposit(Decimal("3000.00"))
        assert deposit == Decimal("240.0000")
        assert fgts_balance(deposit, 24) == Decimal("5760.00")

    def test_penalty_no_cause(self):
        assert fgts_penalty(Decimal("5760.00"), resolve(TerminationType.DISMISSAL_NO_CAUSE)) == Decimal("2304.00")

    def test_penalty_mutual_agreement(self):
        assert fgts_penalty(Decimal("5760.00"), resolve(TerminationType.MUTUAL_AGREEMENT)) == Decimal("1152.00")

    @pytest.mark.parametrize("ttype", ZERO_PENALTY_TYPES)
    def test_no_penalty(self, ttype):
        assert fgts_penalty(Decimal("5760.00"), resolve(ttype)) == Decimal("0")

    def test_negative_months_rejected(self):
        with pytest.raises(ValidationError):
            fgts_balance(Decimal("240"), -1)


class TestNoticePeriod:

    @pytest.mark.parametrize(
        "years, days",
        [(0, 30), (1, 33), (5, 45), (19, 87), (20, 90), (25, 90)],
    )
    def test_days(self, years, days):
        assert notice_period_days(years) == days

    def test_negative_years_rejected(self):
        with pytest.raises(ValidationError):
            notice_period_days(-1)

    def test_indemnity_for_no_cause_dismissal(self):
        assert notice_indemnity_due(TerminationType.DISMISSAL_NO_CAUSE, True)

    def test_no_indemnity_when_not_indemnified(self):
        assert not notice_indemnity_due(TerminationType.DISMISSAL_NO_CAUSE, False)

    def test_resignation_never_credits_notice(self):
        assert not notice_indemnity_due(TerminationType.RESIGNATION, True)

    def test_not_owed_for_cause(self):
        assert not notice_indemnity_due(TerminationType.DISMISSAL_WITH_CAUSE, True)


class TestUnemploymentInsurance:

    @pytest.mark.parametrize(
        "tenure, guides",
        [(11, 0), (12, 2), (24, 4), (28, 4), (30, 5), (120, 5)],
    )
    def test_guides_for_no_cause(self, tenure, guides):
        profile = resolve(TerminationType.DISMISSAL_NO_CAUSE)
        assert unemployment_guides(profile, tenure) == guides
        assert is_unemployment_eligible(profile, tenure) == (guides > 0)

    def test_resignation_not_eligible(self):
        profile = resolve(TerminationType.RESIGNATION)
        assert unemployment_guides(profile, 60) == 0
        assert not is_unemployment_eligible(profile, 60)
