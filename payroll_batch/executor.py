"""
BatchExecutor -- per-item isolated execution of settlement batches.

Contract:
    Runs one work function per item and reports a result per item.  A
    failing item never aborts the run.

Architecture: payroll_batch.  Imports from payroll_batch.domain and the
    kernel (clock, logging) only; knows nothing about settlements.

Invariants enforced:
    - Sequential mode: each item runs in its own SAVEPOINT on the caller's
      session.  A failed item's writes are rolled back to the savepoint;
      the caller owns the outer commit.
    - Parallel mode: each item runs on its own session from
      ``session_factory`` and commits (or rolls back) independently.
    - All timestamps come from the injected Clock.
    - ``item_results`` are ordered by ``item_index`` in both modes.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Sequence
from uuid import uuid4

from sqlalchemy.orm import Session, sessionmaker

from payroll_batch.domain.types import (
    BatchItem,
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    derive_run_status,
)
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.logging_config import LogContext, get_logger

logger = get_logger("batch.executor")

UNHANDLED_EXCEPTION = "UNHANDLED_EXCEPTION"

WorkFn = Callable[[Session, BatchItem], Any]


def _error_code(exc: Exception) -> str:
    return getattr(exc, "code", None) or UNHANDLED_EXCEPTION


class BatchExecutor:
    """Batch execution with per-item isolation.

    Contract:
        - ``run()`` processes every item and returns a ``BatchRunResult``.
        - With ``parallel=False`` work happens on ``session`` inside one
          SAVEPOINT per item.
        - With ``parallel=True`` up to ``max_workers`` items run at once,
          each on a fresh session from ``session_factory``.

    Non-goals:
        - Does NOT commit ``session`` in sequential mode -- caller controls
          boundaries.
        - Does NOT retry failed items.
    """

    def __init__(
        self,
        session: Session | None = None,
        session_factory: sessionmaker | None = None,
        clock: Clock | None = None,
        max_workers: int = 4,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._session = session
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._max_workers = max_workers

    def run(
        self,
        batch_name: str,
        items: Sequence[BatchItem],
        work: WorkFn,
        *,
        parallel: bool = False,
    ) -> BatchRunResult:
        """Run ``work`` for every item and collect per-item results."""
        if parallel and self._session_factory is None:
            raise ValueError("parallel execution requires a session_factory")
        if not parallel and self._session is None:
            raise ValueError("sequential execution requires a session")

        batch_id = uuid4()
        start_time = time.monotonic()
        started_at = self._clock.now()

        logger.info(
            "batch_run_started",
            extra={
                "batch_id": str(batch_id),
                "batch_name": batch_name,
                "total_items": len(items),
                "parallel": parallel,
            },
        )

        with LogContext.bind(batch_id=batch_id):
            if parallel:
                item_results = self._run_parallel(items, work)
            else:
                item_results = [self._run_in_savepoint(item, work) for item in items]

        item_results.sort(key=lambda r: r.item_index)
        succeeded = sum(1 for r in item_results if r.succeeded)
        failed = len(item_results) - succeeded
        status = derive_run_status(succeeded, failed)
        total_duration = int((time.monotonic() - start_time) * 1000)

        logger.info(
            "batch_run_completed",
            extra={
                "batch_id": str(batch_id),
                "batch_name": batch_name,
                "status": status.value,
                "succeeded": succeeded,
                "failed": failed,
                "duration_ms": total_duration,
            },
        )

        return BatchRunResult(
            batch_id=batch_id,
            batch_name=batch_name,
            status=status,
            total_items=len(items),
            succeeded=succeeded,
            failed=failed,
            item_results=tuple(item_results),
            started_at=started_at,
            completed_at=self._clock.now(),
            duration_ms=total_duration,
            correlation_id=LogContext.get_all().get("correlation_id"),
        )

    # -------------------------------------------------------------------------
    # Modes
    # -------------------------------------------------------------------------

    def _run_in_savepoint(self, item: BatchItem, work: WorkFn) -> BatchItemResult:
        item_start = time.monotonic()
        item_started_at = self._clock.now()

        savepoint = self._session.begin_nested()
        try:
            output = work(self._session, item)
            savepoint.commit()
        except Exception as exc:
            savepoint.rollback()
            return self._failed(item, exc, item_start, item_started_at)
        return self._succeeded(item, output, item_start, item_started_at)

    def _run_parallel(self, items: Sequence[BatchItem], work: WorkFn) -> list[BatchItemResult]:
        context = LogContext.get_all()

        def run_one(item: BatchItem) -> BatchItemResult:
            # Worker threads start with an empty context
            with LogContext.bind(**context):
                return self._run_in_own_session(item, work)

        with ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="settlement-batch",
        ) as pool:
            return list(pool.map(run_one, items))

    def _run_in_own_session(self, item: BatchItem, work: WorkFn) -> BatchItemResult:
        item_start = time.monotonic()
        item_started_at = self._clock.now()

        session = self._session_factory()
        try:
            output = work(session, item)
            session.commit()
        except Exception as exc:
            session.rollback()
            return self._failed(item, exc, item_start, item_started_at)
        finally:
            session.close()
        return self._succeeded(item, output, item_start, item_started_at)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _succeeded(
        self, item: BatchItem, output: Any, item_start: float, started_at: Any,
    ) -> BatchItemResult:
        return BatchItemResult(
            item_index=item.item_index,
            item_key=item.item_key,
            status=BatchItemStatus.SUCCEEDED,
            output=output,
            duration_ms=int((time.monotonic() - item_start) * 1000),
            started_at=started_at,
            completed_at=self._clock.now(),
        )

    def _failed(
        self, item: BatchItem, exc: Exception, item_start: float, started_at: Any,
    ) -> BatchItemResult:
        code = _error_code(exc)
        logger.warning(
            "batch_item_failed",
            extra={
                "item_index": item.item_index,
                "item_key": item.item_key,
                "error_code": code,
                "error": str(exc),
            },
        )
        return BatchItemResult(
            item_index=item.item_index,
            item_key=item.item_key,
            status=BatchItemStatus.FAILED,
            error_code=code,
            error_message=str(exc),
            duration_ms=int((time.monotonic() - item_start) * 1000),
            started_at=started_at,
            completed_at=self._clock.now(),
        )


def batch_items(keys: Sequence[Any], payloads: Sequence[Any] | None = None) -> list[BatchItem]:
    """Build ``BatchItem`` objects from business keys (and optional payloads)."""
    if payloads is None:
        payloads = [None] * len(keys)
    return [
        BatchItem(item_index=i, item_key=str(key), payload=payload)
        for i, (key, payload) in enumerate(zip(keys, payloads, strict=True))
    ]

