"""
payroll_batch.domain.types -- Pure frozen dataclasses for batch runs.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.

Invariants enforced:
    - Every item of a run produces exactly one ``BatchItemResult``; a failed
      item never removes another item's result from the report.
    - ``BatchRunResult.status`` is derived from the item counts only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class BatchRunStatus(str, Enum):
    """Run-level outcome."""

    COMPLETED = "completed"  # Every item succeeded (or there were none)
    FAILED = "failed"  # No item succeeded
    PARTIALLY_COMPLETED = "partially_completed"  # Some items failed


class BatchItemStatus(str, Enum):
    """Per-item outcome within a run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchItem:
    """One unit of work: a position in the run plus a business key."""

    item_index: int
    item_key: str  # e.g. employee_id
    payload: Any = None


@dataclass(frozen=True)
class BatchItemResult:
    """Immutable result of processing a single batch item.

    On success ``output`` holds whatever the work function returned; on
    failure ``error_code`` carries the exception's ``code`` attribute
    (``UNHANDLED_EXCEPTION`` when it has none).
    """

    item_index: int
    item_key: str
    status: BatchItemStatus
    output: Any = None
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == BatchItemStatus.SUCCEEDED


@dataclass(frozen=True)
class BatchRunResult:
    """Immutable result of executing a complete batch run."""

    batch_id: UUID
    batch_name: str
    status: BatchRunStatus
    total_items: int
    succeeded: int
    failed: int
    item_results: tuple[BatchItemResult, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    correlation_id: str | None = None

    @property
    def outputs(self) -> tuple[Any, ...]:
        """Outputs of the succeeded items, in item order."""
        return tuple(r.output for r in self.item_results if r.succeeded)

    @property
    def failures(self) -> tuple[BatchItemResult, ...]:
        return tuple(r for r in self.item_results if not r.succeeded)


def derive_run_status(succeeded: int, failed: int) -> BatchRunStatus:
    """COMPLETED when nothing failed, FAILED when nothing succeeded."""
    if failed == 0:
        return BatchRunStatus.COMPLETED
    if succeeded == 0:
        return BatchRunStatus.FAILED
    return BatchRunStatus.PARTIALLY_COMPLETED
