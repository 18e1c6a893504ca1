"""
Tests for the settlement assembly fold.

Covers:
- ``assemble``: gross, deductions and net recomputed from inputs
- 13th salary: first/second installment, full and proportional payments
- IRRF dependent deduction and the tax-method switches
- TRCT: every component for several termination types
"""

from datetime import date
from decimal import Decimal

import pytest

from payroll_config import get_statutory_tables
from payroll_engines.accrual import AccrualInput
from payroll_engines.brackets import WithholdingMethod
from payroll_engines.settlement_assembly import (
    SettlementComponent,
    TaxMethods,
    TerminationInput,
    ThirteenthKind,
    assemble,
    assemble_termination,
    assemble_thirteenth,
)
from payroll_engines.termination_rights import TerminationType
from payroll_kernel.exceptions import ValidationError


@pytest.fixture
def tables():
    return get_statutory_tables(2024)


def _accrual(salary="3000.00", admission=date(2024, 1, 1), samples=()):
    return AccrualInput(
        base_salary=Decimal(salary),
        admission_date=admission,
        reference_date=date(2024, 12, 31),
        variable_income_samples=tuple(Decimal(s) for s in samples),
    )


def _termination(ttype, **overrides):
    values = dict(
        termination_type=ttype,
        base_salary=Decimal("3000.00"),
        admission_date=date(2022, 3, 1),
        termination_date=date(2024, 6, 20),
        notice_period_days=36,
        notice_period_indemnified=True,
    )
    values.update(overrides)
    return TerminationInput(**values)


class TestAssemble:

    def test_net_is_gross_minus_deductions(self):
        totals = assemble(
            [
                SettlementComponent("a", Decimal("1000.00")),
                SettlementComponent("b", Decimal("500.50")),
            ],
            inss=Decimal("100.00"),
            irrf=Decimal("20.25"),
            other_deductions=Decimal("10.00"),
        )
        assert totals.gross_value == Decimal("1500.50")
        assert totals.total_deductions == Decimal("130.25")
        assert totals.net_value == Decimal("1370.25")
        assert totals.component("b") == Decimal("500.50")
        assert totals.component("missing") == Decimal("0")

    def test_negative_component_rejected(self):
        with pytest.raises(ValidationError):
            assemble(
                [SettlementComponent("a", Decimal("-1"))],
                inss=Decimal("0"),
                irrf=Decimal("0"),
            )


class TestThirteenth:

    def test_first_installment_has_no_deductions(self, tables):
        result = assemble_thirteenth(ThirteenthKind.FIRST_INSTALLMENT, _accrual(), tables)
        assert result.months_worked == 12
        assert result.total_value == Decimal("3000.00")
        assert result.totals.gross_value == Decimal("1500.00")
        assert result.totals.inss_deduction == Decimal("0")
        assert result.totals.irrf_deduction == Decimal("0")
        assert result.totals.net_value == Decimal("1500.00")
        assert result.totals.component("thirteenth_first_installment") == Decimal("1500.00")

    def test_second_installment_after_first(self, tables):
        result = assemble_thirteenth(
            ThirteenthKind.SECOND_INSTALLMENT,
            _accrual(),
            tables,
            first_installment_gross=Decimal("1500.00"),
        )
        assert result.inss_base == Decimal("3000.00")
        assert result.irrf_base == Decimal("2741.18")
        assert result.totals.gross_value == Decimal("1500.00")
        assert result.totals.inss_deduction == Decimal("258.82")
        assert result.totals.irrf_deduction == Decimal("36.15")
        assert result.totals.net_value == Decimal("1205.03")

    def test_second_installment_without_first(self, tables):
        result = assemble_thirteenth(ThirteenthKind.SECOND_INSTALLMENT, _accrual(), tables)
        assert result.totals.gross_value == Decimal("3000.00")
        assert result.totals.net_value == Decimal("2705.03")

    def test_first_larger_than_total_rejected(self, tables):
        with pytest.raises(ValidationError):
            assemble_thirteenth(
                ThirteenthKind.SECOND_INSTALLMENT,
                _accrual(),
                tables,
                first_installment_gross=Decimal("3000.01"),
            )

    def test_full_payment(self, tables):
        result = assemble_thirteenth(ThirteenthKind.FULL, _accrual(), tables)
        assert result.totals.component("thirteenth_total") == Decimal("3000.00")
        assert result.totals.net_value == Decimal("2705.03")

    def test_full_requires_twelve_months(self, tables):
        with pytest.raises(ValidationError):
            assemble_thirteenth(ThirteenthKind.FULL, _accrual(admission=date(2024, 5, 1)), tables)

    def test_proportional_payment(self, tables):
        result = assemble_thirteenth(
            ThirteenthKind.PROPORTIONAL, _accrual(admission=date(2024, 5, 1)), tables,
        )
        assert result.months_worked == 8
        assert result.totals.gross_value == Decimal("2000.00")
        assert result.totals.inss_deduction == Decimal("158.82")
        assert result.totals.irrf_deduction == Decimal("0")
        assert result.totals.net_value == Decimal("1841.18")

    def test_variable_income_average_joins_base(self, tables):
        result = assemble_thirteenth(
            ThirteenthKind.FIRST_INSTALLMENT,
            _accrual(samples=("500.00", "700.00")),
            tables,
        )
        assert result.average_variable_income == Decimal("600.00")
        assert result.base_value == Decimal("3600.00")
        assert result.totals.gross_value == Decimal("1800.00")

    def test_dependent_deduction(self, tables):
        result = assemble_thirteenth(
            ThirteenthKind.FULL, _accrual(salary="5000.00"), tables, dependents_count=1,
        )
        assert result.totals.inss_deduction == Decimal("518.82")
        assert result.irrf_base == Decimal("4291.59")
        assert result.totals.irrf_deduction == Decimal("302.84")

    def test_dependent_deduction_disabled(self, tables):
        result = assemble_thirteenth(
            ThirteenthKind.FULL,
            _accrual(salary="5000.00"),
            tables,
            dependents_count=1,
            methods=TaxMethods(apply_dependent_deduction=False),
        )
        assert result.irrf_base == Decimal("4481.18")
        assert result.totals.irrf_deduction == Decimal("345.50")

    def test_single_lookup_inss(self, tables):
        result = assemble_thirteenth(
            ThirteenthKind.FULL,
            _accrual(),
            tables,
            methods=TaxMethods(inss=WithholdingMethod.SINGLE_LOOKUP),
        )
        assert result.totals.inss_deduction == Decimal("258.82")

    def test_negative_dependents_rejected(self, tables):
        with pytest.raises(ValidationError):
            assemble_thirteenth(ThirteenthKind.FULL, _accrual(), tables, dependents_count=-1)


class TestTermination:

    def test_dismissal_without_cause(self, tables):
        result = assemble_termination(_termination(TerminationType.DISMISSAL_NO_CAUSE), tables)

        assert result.tenure_months == 28
        assert result.months_in_year == 6
        assert result.salary_balance == Decimal("2000.00")
        assert result.notice_value == Decimal("3600.00")
        assert result.vacation_balance == Decimal("3000.00")
        assert result.vacation_proportional == Decimal("1000.00")
        assert result.vacation_proportional_days == 10
        assert result.vacation_one_third == Decimal("1333.33")
        assert result.thirteenth_proportional == Decimal("1500.00")
        assert result.fgts_balance == Decimal("6720.00")
        assert result.fgts_penalty == Decimal("2688.00")
        assert result.inss_base == Decimal("5600.00")
        assert result.eligible_for_unemployment
        assert result.unemployment_guides == 4

        totals = result.totals
        assert totals.gross_value == Decimal("15121.33")
        assert totals.inss_deduction == Decimal("602.82")
        assert totals.irrf_deduction == Decimal("478.22")
        assert totals.net_value == Decimal("14040.29")

    def test_resignation(self, tables):
        result = assemble_termination(_termination(TerminationType.RESIGNATION), tables)
        assert result.notice_value == Decimal("0")
        assert result.fgts_penalty == Decimal("0.00")
        assert not result.eligible_for_unemployment
        assert result.unemployment_guides == 0
        assert result.totals.gross_value == Decimal("8833.33")
        assert result.totals.inss_deduction == Decimal("158.82")
        assert result.totals.net_value == Decimal("8674.51")

    def test_dismissal_with_cause_loses_13th_and_notice(self, tables):
        result = assemble_termination(_termination(TerminationType.DISMISSAL_WITH_CAUSE), tables)
        assert result.thirteenth_proportional == Decimal("0")
        assert result.notice_value == Decimal("0")
        assert result.fgts_penalty == Decimal("0.00")

    def test_mutual_agreement_penalty(self, tables):
        result = assemble_termination(_termination(TerminationType.MUTUAL_AGREEMENT), tables)
        assert result.fgts_penalty == Decimal("1344.00")
        assert not result.eligible_for_unemployment

    def test_short_tenure_has_no_vested_vacation(self, tables):
        result = assemble_termination(
            _termination(
                TerminationType.DISMISSAL_NO_CAUSE,
                admission_date=date(2024, 2, 10),
                notice_period_indemnified=False,
            ),
            tables,
        )
        # Feb 10-29 is 20 days, so February counts
        assert result.tenure_months == 5
        assert result.months_in_year == 5
        assert result.vacation_balance == Decimal("0")
        assert result.vacation_proportional == Decimal("1250.00")
        assert result.vacation_one_third == Decimal("416.67")
        assert not result.eligible_for_unemployment

    def test_short_fragments_in_adjacent_months_earn_no_13th(self, tables):
        result = assemble_termination(
            _termination(
                TerminationType.DISMISSAL_NO_CAUSE,
                admission_date=date(2024, 1, 20),
                termination_date=date(2024, 2, 10),
            ),
            tables,
        )
        assert result.tenure_months == 0
        assert result.months_in_year == 0
        assert result.thirteenth_proportional == Decimal("0.00")

    def test_long_fragments_in_adjacent_months_each_earn_a_month(self, tables):
        result = assemble_termination(
            _termination(
                TerminationType.DISMISSAL_NO_CAUSE,
                admission_date=date(2024, 1, 17),
                termination_date=date(2024, 2, 16),
            ),
            tables,
        )
        assert result.months_in_year == 2
        assert result.thirteenth_proportional == Decimal("500.00")

    def test_other_deductions_reduce_net(self, tables):
        base = assemble_termination(_termination(TerminationType.DISMISSAL_NO_CAUSE), tables)
        with_other = assemble_termination(
            _termination(TerminationType.DISMISSAL_NO_CAUSE, other_deductions=Decimal("100.00")),
            tables,
        )
        assert with_other.totals.other_deductions == Decimal("100.00")
        assert with_other.totals.net_value == base.totals.net_value - Decimal("100.00")

    def test_dependents_lower_irrf(self, tables):
        result = assemble_termination(
            _termination(TerminationType.DISMISSAL_NO_CAUSE, dependents_count=2), tables,
        )
        assert result.irrf_base == Decimal("4997.18") - Decimal("379.18")

    def test_termination_before_admission_rejected(self):
        with pytest.raises(ValidationError):
            _termination(
                TerminationType.RESIGNATION,
                admission_date=date(2024, 7, 1),
            )

    def test_negative_notice_rejected(self):
        with pytest.raises(ValidationError):
            _termination(TerminationType.RESIGNATION, notice_period_days=-1)
