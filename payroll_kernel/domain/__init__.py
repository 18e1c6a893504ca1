"""
Pure domain layer.

Immutable value objects and pure helpers with NO dependencies on the ORM,
the database, or I/O (the system clock excepted).
"""

from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payroll_kernel.domain.values import CENT, ZERO, round_money, to_decimal
from payroll_kernel.domain.workflow import (
    Guard,
    Transition,
    Workflow,
)

__all__ = [
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
]
