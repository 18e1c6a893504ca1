"""
payroll_services.workflow_executor -- Settlement transition checking.

Responsibility:
    Decides whether a requested status change on a settlement document is
    legal.  Consults the workflow's terminal states first, then its
    transition table, then the guard declared on the matching transition.
    Every attempt, allowed or refused, emits a ``workflow_transition``
    trace record.

Architecture position:
    Services layer.  Imports from payroll_kernel only; the settlement
    module calls ``SettlementWorkflowExecutor.check`` before any status
    write and owns persistence.

Invariants enforced:
    - A transition out of a terminal state always fails, whatever the
      transition table says.
    - Only (from, to) pairs listed in the table are accepted.
    - A guard without a registered evaluator fails closed.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Callable
from uuid import UUID

from payroll_kernel.domain.workflow import Guard, Transition, Workflow
from payroll_kernel.exceptions import InvalidTransitionError, TerminalStateError
from payroll_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.workflow_executor")

TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_GUARD_FAILED = "guard_failed"
OUTCOME_NO_TRANSITION = "no_transition"
OUTCOME_TERMINAL_STATE = "terminal_state"


def _emit_workflow_trace(
    workflow_name: str,
    action: str | None,
    entity_type: str,
    entity_id: UUID,
    from_state: str,
    target_state: str,
    outcome: str,
    reason: str,
    duration_ms: float,
    recalculates: bool = False,
    outcome_sink: Callable[[dict], None] | None = None,
) -> None:
    """Emit a structured workflow transition record."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "ts": datetime.now(UTC).isoformat(),
        "workflow": workflow_name,
        "action": action,
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "from_state": from_state,
        "target_state": target_state,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
        "recalculates": recalculates,
    }
    record.update(LogContext.get_all())
    logger.info("workflow_transition", extra=record)
    if outcome_sink is not None:
        outcome_sink(record)


# ---------------------------------------------------------------------------
# Guard evaluation
# ---------------------------------------------------------------------------


def _get_attr(context: Any, key: str, default: Any = None) -> Any:
    """Get attribute from context (object or dict)."""
    if context is None:
        return default
    if hasattr(context, "get") and callable(getattr(context, "get")):
        return context.get(key, default)
    return getattr(context, key, default)


def _as_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _calculation_current(context: Any) -> bool:
    """Document was calculated and its net still equals gross minus deductions."""
    if _get_attr(context, "calculated_at") is None:
        return False
    fields = ("gross_value", "inss_deduction", "irrf_deduction", "other_deductions", "net_value")
    values = [_get_attr(context, name) for name in fields]
    if any(v is None for v in values):
        return False
    gross, inss, irrf, other, net = (_as_decimal(v) for v in values)
    return net == gross - inss - irrf - other


def _payment_date_recorded(context: Any) -> bool:
    """Termination payment: a payment date must accompany the transition."""
    return _get_attr(context, "payment_date") is not None


class GuardExecutor:
    """Evaluates workflow guards against context.

    Guards are declared on transitions (name + description).  This executor
    holds the evaluation logic per guard name.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[Any], bool]] = {}

    def register(self, guard_name: str, evaluator: Callable[[Any], bool]) -> None:
        """Register an evaluator for a guard by name."""
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: Any = None) -> bool:
        """Evaluate a guard against context. Returns True if guard passes."""
        fn = self._evaluators.get(guard.name)
        if fn is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard.name})
            return False
        try:
            return bool(fn(context))
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "guard_evaluation_error",
                extra={"guard_name": guard.name, "error": str(e)},
            )
            return False


def default_guard_executor() -> GuardExecutor:
    """Return a GuardExecutor with the settlement guards registered."""
    ex = GuardExecutor()
    ex.register("calculation_current", _calculation_current)
    ex.register("payment_date_recorded", _payment_date_recorded)
    return ex


# ---------------------------------------------------------------------------
# SettlementWorkflowExecutor
# ---------------------------------------------------------------------------


class SettlementWorkflowExecutor:
    """Checks settlement status transitions against a workflow definition.

    ``check`` returns the matching ``Transition`` when the change is legal
    and raises otherwise.  It never writes; the caller applies the new
    status (and re-runs the calculation when ``transition.recalculates``).
    """

    def __init__(self, guard_executor: GuardExecutor | None = None) -> None:
        self._guard_executor = guard_executor or default_guard_executor()

    def check(
        self,
        workflow: Workflow,
        entity_type: str,
        entity_id: UUID,
        current_state: str,
        target_state: str,
        context: Any = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> Transition:
        """Validate ``current_state -> target_state`` for one document.

        Raises:
            TerminalStateError: ``current_state`` is terminal.
            InvalidTransitionError: the pair is not in the table, or the
                transition's guard is not satisfied.
        """
        t0 = time.monotonic()

        def trace(outcome: str, reason: str, transition: Transition | None = None) -> None:
            _emit_workflow_trace(
                workflow_name=workflow.name,
                action=transition.action if transition else None,
                entity_type=entity_type,
                entity_id=entity_id,
                from_state=current_state,
                target_state=target_state,
                outcome=outcome,
                reason=reason,
                duration_ms=(time.monotonic() - t0) * 1000,
                recalculates=transition.recalculates if transition else False,
                outcome_sink=outcome_sink,
            )

        # 1. Terminal states are checked before the table is consulted
        if workflow.is_terminal(current_state):
            trace(OUTCOME_TERMINAL_STATE, f"'{current_state}' is terminal")
            raise TerminalStateError(workflow.name, current_state, target_state)

        # 2. Table lookup
        transition = workflow.find_transition(current_state, target_state)
        if transition is None:
            allowed = ", ".join(workflow.allowed_targets(current_state)) or "none"
            reason = f"not in transition table (allowed: {allowed})"
            trace(OUTCOME_NO_TRANSITION, reason)
            raise InvalidTransitionError(
                workflow.name, current_state, target_state, reason=reason,
            )

        # 3. Guard
        guard = transition.guard
        if guard is not None and not self._guard_executor.evaluate(guard, context):
            reason = f"Guard not satisfied: {guard.name}"
            trace(OUTCOME_GUARD_FAILED, reason, transition)
            raise InvalidTransitionError(
                workflow.name, current_state, target_state, reason=reason,
            )

        trace(OUTCOME_SUCCESS, "transition allowed", transition)
        return transition
