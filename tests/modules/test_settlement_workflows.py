"""
Tests for the settlement workflow definitions.

The transition tables are fixed by labor law; these tests pin them.
"""

import pytest

from payroll_kernel.domain.workflow import Transition, Workflow
from payroll_modules.settlement.models import SettlementCategory
from payroll_modules.settlement.workflows import (
    CALCULATION_CURRENT,
    PAYMENT_DATE_RECORDED,
    TERMINATION_WORKFLOW,
    THIRTEENTH_WORKFLOW,
    workflow_for,
)


def _edges(workflow):
    return {(t.from_state, t.to_state) for t in workflow.transitions}


class TestThirteenthWorkflow:

    def test_edges(self):
        assert _edges(THIRTEENTH_WORKFLOW) == {
            ("PENDING", "CALCULATED"),
            ("CALCULATED", "PENDING"),
            ("CALCULATED", "PAID"),
            ("PENDING", "CANCELLED"),
            ("CALCULATED", "CANCELLED"),
        }

    def test_terminal_states(self):
        assert set(THIRTEENTH_WORKFLOW.terminal_states) == {"PAID", "CANCELLED"}
        assert THIRTEENTH_WORKFLOW.initial_state == "PENDING"

    def test_calculate_recalculates(self):
        assert THIRTEENTH_WORKFLOW.find_transition("PENDING", "CALCULATED").recalculates
        assert not THIRTEENTH_WORKFLOW.find_transition("CALCULATED", "PENDING").recalculates

    def test_payment_guarded(self):
        assert THIRTEENTH_WORKFLOW.find_transition("CALCULATED", "PAID").guard == CALCULATION_CURRENT


class TestTerminationWorkflow:

    def test_edges(self):
        assert _edges(TERMINATION_WORKFLOW) == {
            ("DRAFT", "CALCULATED"),
            ("CALCULATED", "DRAFT"),
            ("CALCULATED", "APPROVED"),
            ("APPROVED", "PAID"),
            ("PAID", "HOMOLOGATED"),
            ("DRAFT", "CANCELLED"),
            ("CALCULATED", "CANCELLED"),
            ("APPROVED", "CANCELLED"),
        }

    def test_terminal_states(self):
        assert set(TERMINATION_WORKFLOW.terminal_states) == {"HOMOLOGATED", "CANCELLED"}
        assert TERMINATION_WORKFLOW.initial_state == "DRAFT"

    def test_guards(self):
        assert TERMINATION_WORKFLOW.find_transition("CALCULATED", "APPROVED").guard == CALCULATION_CURRENT
        assert TERMINATION_WORKFLOW.find_transition("APPROVED", "PAID").guard == PAYMENT_DATE_RECORDED

    def test_paid_is_not_cancellable(self):
        assert TERMINATION_WORKFLOW.find_transition("PAID", "CANCELLED") is None


class TestWorkflowLookup:

    def test_by_category(self):
        assert workflow_for(SettlementCategory.THIRTEENTH) is THIRTEENTH_WORKFLOW
        assert workflow_for("TERMINATION") is TERMINATION_WORKFLOW

    def test_unknown_category(self):
        with pytest.raises(ValueError):
            workflow_for("BONUS")

    @pytest.mark.parametrize("workflow", [THIRTEENTH_WORKFLOW, TERMINATION_WORKFLOW])
    def test_terminal_states_have_no_targets(self, workflow):
        for state in workflow.terminal_states:
            assert workflow.allowed_targets(state) == ()


class TestWorkflowConstruction:

    def test_unknown_state_in_transition(self):
        with pytest.raises(ValueError):
            Workflow(
                name="bad",
                description="",
                initial_state="A",
                states=("A", "B"),
                transitions=(Transition("A", "C", action="go"),),
            )

    def test_unknown_initial_state(self):
        with pytest.raises(ValueError):
            Workflow(
                name="bad", description="", initial_state="Z", states=("A",), transitions=(),
            )

    def test_unknown_terminal_state(self):
        with pytest.raises(ValueError):
            Workflow(
                name="bad",
                description="",
                initial_state="A",
                states=("A",),
                transitions=(),
                terminal_states=("B",),
            )

    def test_edge_out_of_terminal_is_constructible(self):
        workflow = Workflow(
            name="malformed",
            description="",
            initial_state="A",
            states=("A", "B"),
            transitions=(Transition("A", "B", action="go"), Transition("B", "A", action="back")),
            terminal_states=("B",),
        )
        assert workflow.find_transition("B", "A") is not None
        assert workflow.allowed_targets("B") == ()


class TestDomainExports:

    def test_public_names(self):
        import payroll_kernel.domain as domain

        assert set(domain.__all__) == {
            "CENT",
            "Clock",
            "DeterministicClock",
            "Guard",
            "SystemClock",
            "Transition",
            "Workflow",
            "ZERO",
            "round_money",
            "to_decimal",
        }
        for name in domain.__all__:
            assert hasattr(domain, name)
