"""
Payroll Engines - pure settlement calculators.

Every engine is a stateless function set with ZERO I/O.  Statutory tables
and amounts are passed in; results are frozen dataclasses.

Engines:
    - brackets: INSS/IRRF withholding (single-lookup and progressive modes)
    - accrual: months worked, proportional 13th, vacation days, installments
    - termination_rights: rights profile per termination type, FGTS, notice
    - settlement_assembly: fold into gross/deductions/net for 13th and TRCT
"""

from payroll_engines.accrual import (
    AccrualCalculator,
    AccrualInput,
    AccrualResult,
    average_variable_income,
    first_installment,
    months_worked,
    proportional_13th,
    proportional_vacation_days,
    second_installment,
)
from payroll_engines.brackets import (
    UNBOUNDED,
    Bracket,
    BracketTable,
    StatutoryTables,
    WithholdingMethod,
    withhold,
)
from payroll_engines.settlement_assembly import (
    SettlementComponent,
    SettlementTotals,
    TaxMethods,
    TerminationBreakdown,
    TerminationInput,
    ThirteenthBreakdown,
    ThirteenthKind,
    assemble,
    assemble_termination,
    assemble_thirteenth,
)
from payroll_engines.termination_rights import (
    RIGHTS_TABLE,
    RightsProfile,
    TerminationType,
    fgts_balance,
    fgts_penalty,
    notice_period_days,
    resolve,
)

__all__ = [
    "AccrualCalculator",
    "AccrualInput",
    "AccrualResult",
    "Bracket",
    "BracketTable",
    "RIGHTS_TABLE",
    "RightsProfile",
    "SettlementComponent",
    "SettlementTotals",
    "StatutoryTables",
    "TaxMethods",
    "TerminationBreakdown",
    "TerminationInput",
    "TerminationType",
    "ThirteenthBreakdown",
    "ThirteenthKind",
    "UNBOUNDED",
    "WithholdingMethod",
    "assemble",
    "assemble_termination",
    "assemble_thirteenth",
    "average_variable_income",
    "fgts_balance",
    "fgts_penalty",
    "first_installment",
    "months_worked",
    "notice_period_days",
    "proportional_13th",
    "proportional_vacation_days",
    "resolve",
    "second_installment",
    "withhold",
]
