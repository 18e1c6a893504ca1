"""
payroll_batch -- per-employee batch execution for settlement runs.

Public API:
    BatchExecutor   -- runs one work function per item, SAVEPOINT-isolated
                       or on a thread pool with one session per item.
    BatchRunResult  -- per-item report with a derived run status.
"""

from payroll_batch.domain.types import (
    BatchItem,
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
)
from payroll_batch.executor import UNHANDLED_EXCEPTION, BatchExecutor, batch_items

__all__ = [
    "BatchExecutor",
    "BatchItem",
    "BatchItemResult",
    "BatchItemStatus",
    "BatchRunResult",
    "BatchRunStatus",
    "UNHANDLED_EXCEPTION",
    "batch_items",
]
