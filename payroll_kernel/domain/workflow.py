"""
Canonical workflow types (``payroll_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the settlement state machines.  Both the 13th-salary
and the termination workflows are declared with these types so that Guard,
Transition and Workflow are defined once.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` and every terminal state are members of ``states``.
* Terminal states are a property of the workflow, not of its transition
  table: a table that (wrongly) lists an edge out of a terminal state
  still constructs, and the executor refuses that edge.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the GuardExecutor does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``recalculates=True`` marks transitions that must re-run the settlement
    fold before the new status is written.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    recalculates: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        known = set(self.states)
        if self.initial_state not in known:
            raise ValueError(
                f"Workflow '{self.name}': initial state '{self.initial_state}' "
                "is not a declared state"
            )
        for state in self.terminal_states:
            if state not in known:
                raise ValueError(
                    f"Workflow '{self.name}': terminal state '{state}' "
                    "is not a declared state"
                )
        for t in self.transitions:
            if t.from_state not in known or t.to_state not in known:
                raise ValueError(
                    f"Workflow '{self.name}': transition "
                    f"{t.from_state} -> {t.to_state} references an unknown state"
                )

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def find_transition(self, from_state: str, to_state: str) -> Transition | None:
        """Return the table entry for ``from_state -> to_state``, if any."""
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def allowed_targets(self, from_state: str) -> tuple[str, ...]:
        """States reachable in one step from ``from_state``.

        Always empty for terminal states.
        """
        if self.is_terminal(from_state):
            return ()
        return tuple(t.to_state for t in self.transitions if t.from_state == from_state)
