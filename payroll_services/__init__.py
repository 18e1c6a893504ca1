"""Settlement services: guard evaluation and workflow transition checks."""

from payroll_services.workflow_executor import (
    GuardExecutor,
    SettlementWorkflowExecutor,
    default_guard_executor,
)

__all__ = ["GuardExecutor", "SettlementWorkflowExecutor", "default_guard_executor"]
