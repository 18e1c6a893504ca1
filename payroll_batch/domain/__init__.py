from payroll_batch.domain.types import (
    BatchItem,
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
    derive_run_status,
)

__all__ = [
    "BatchItem",
    "BatchItemResult",
    "BatchItemStatus",
    "BatchRunResult",
    "BatchRunStatus",
    "derive_run_status",
]
