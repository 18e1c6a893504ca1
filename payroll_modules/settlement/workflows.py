"""Settlement Workflows.

State machines for 13th-salary installments and termination settlements.
The transition tables are fixed by labor law, not user-configurable.
"""

from payroll_kernel.domain.workflow import Guard, Transition, Workflow
from payroll_kernel.logging_config import get_logger
from payroll_modules.settlement.models import SettlementCategory, SettlementStatus

logger = get_logger("modules.settlement.workflows")

PENDING = SettlementStatus.PENDING.value
DRAFT = SettlementStatus.DRAFT.value
CALCULATED = SettlementStatus.CALCULATED.value
APPROVED = SettlementStatus.APPROVED.value
PAID = SettlementStatus.PAID.value
HOMOLOGATED = SettlementStatus.HOMOLOGATED.value
CANCELLED = SettlementStatus.CANCELLED.value


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

CALCULATION_CURRENT = Guard(
    name="calculation_current",
    description="Document was calculated and net equals gross minus deductions",
)

PAYMENT_DATE_RECORDED = Guard(
    name="payment_date_recorded",
    description="A payment date accompanies the payment transition",
)


# -----------------------------------------------------------------------------
# 13th salary
# -----------------------------------------------------------------------------

THIRTEENTH_WORKFLOW = Workflow(
    name="thirteenth_salary",
    description="13th-salary installment lifecycle",
    initial_state=PENDING,
    states=(PENDING, CALCULATED, PAID, CANCELLED),
    transitions=(
        Transition(PENDING, CALCULATED, action="calculate", recalculates=True),
        Transition(CALCULATED, PENDING, action="reset"),
        Transition(CALCULATED, PAID, action="pay", guard=CALCULATION_CURRENT),
        Transition(PENDING, CANCELLED, action="cancel"),
        Transition(CALCULATED, CANCELLED, action="cancel"),
    ),
    terminal_states=(PAID, CANCELLED),
)


# -----------------------------------------------------------------------------
# Termination (TRCT)
# -----------------------------------------------------------------------------

TERMINATION_WORKFLOW = Workflow(
    name="termination_settlement",
    description="Termination settlement (TRCT) lifecycle",
    initial_state=DRAFT,
    states=(DRAFT, CALCULATED, APPROVED, PAID, HOMOLOGATED, CANCELLED),
    transitions=(
        Transition(DRAFT, CALCULATED, action="calculate", recalculates=True),
        Transition(CALCULATED, DRAFT, action="reset"),
        Transition(CALCULATED, APPROVED, action="approve", guard=CALCULATION_CURRENT),
        Transition(APPROVED, PAID, action="pay", guard=PAYMENT_DATE_RECORDED),
        Transition(PAID, HOMOLOGATED, action="homologate"),
        Transition(DRAFT, CANCELLED, action="cancel"),
        Transition(CALCULATED, CANCELLED, action="cancel"),
        Transition(APPROVED, CANCELLED, action="cancel"),
    ),
    terminal_states=(HOMOLOGATED, CANCELLED),
)

WORKFLOWS_BY_CATEGORY: dict[SettlementCategory, Workflow] = {
    SettlementCategory.THIRTEENTH: THIRTEENTH_WORKFLOW,
    SettlementCategory.TERMINATION: TERMINATION_WORKFLOW,
}


def workflow_for(category: SettlementCategory | str) -> Workflow:
    return WORKFLOWS_BY_CATEGORY[SettlementCategory(category)]


logger.info(
    "settlement_workflows_registered",
    extra={
        "workflows": [w.name for w in WORKFLOWS_BY_CATEGORY.values()],
        "guards": [CALCULATION_CURRENT.name, PAYMENT_DATE_RECORDED.name],
    },
)
