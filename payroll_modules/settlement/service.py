"""
Settlement Module Service (``payroll_modules.settlement.service``).

Responsibility
--------------
Orchestrates statutory settlements -- 13th-salary installments and
termination settlements (TRCT) -- by reading employee/pay records through
an ``EmployeeDirectory``, loading the year's statutory tables, delegating
every figure to the pure ``payroll_engines`` fold, and moving documents
through the settlement workflows.

Architecture position
---------------------
**Modules layer** -- thin orchestration.  ``SettlementService`` is the sole
public entry point for settlement operations.  It composes
``payroll_engines.settlement_assembly`` (figures), ``payroll_config``
(tables), ``payroll_services.workflow_executor`` (transition legality)
and ``payroll_batch`` (per-employee isolation).

Invariants enforced
-------------------
* Each public method owns the transaction boundary (``commit`` on success,
  ``rollback`` and re-raise on any exception), so a failed calculation
  leaves the document exactly as it was.
* Status changes go through ``SettlementWorkflowExecutor.check``; a
  transition into CALCULATED re-runs the whole fold before the status is
  written.
* Documents are locked (``SELECT ... FOR UPDATE``) before any write and
  carry a version column; a lost race surfaces as ``OptimisticLockError``.
* A termination document's ``other_deductions`` input lives on its detail,
  so uncalculated documents keep all-zero totals.

Failure modes
-------------
* Unknown employee/document  -> ``EmployeeNotFoundError`` /
  ``DocumentNotFoundError``.
* Illegal transition or write to a terminal document  ->
  ``InvalidTransitionError`` / ``TerminalStateError``.
* No statutory tables for the year  -> ``BracketTableNotFoundError``
  (fatal; a batch run is not started).
* Batch runs never raise for a single employee: the failure is reported in
  that employee's ``BatchItemResult``.

Audit relevance
---------------
Structured log events are emitted for document creation, every
calculation (with gross/net), every status change and every rejected
transition.  The workflow executor adds a ``workflow_transition`` trace for
each attempt.

Usage::

    service = SettlementService(session, clock=clock, session_factory=factory)
    run = service.calculate_first_installment(company_id, 2024, actor_id)
    for failure in run.failures:
        print(failure.item_key, failure.error_code)
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Callable, Iterator
from uuid import UUID, uuid4

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from payroll_batch import BatchExecutor, BatchItem, BatchRunResult, batch_items
from payroll_config import get_statutory_tables
from payroll_engines.accrual import MONTHS_PER_YEAR, AccrualInput, months_worked
from payroll_engines.brackets import StatutoryTables
from payroll_engines.settlement_assembly import (
    SettlementTotals,
    TerminationInput,
    ThirteenthKind,
    assemble_termination,
    assemble_thirteenth,
)
from payroll_engines.termination_rights import coerce_termination_type, notice_period_days
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.values import ZERO, to_decimal
from payroll_kernel.exceptions import (
    DocumentNotFoundError,
    DuplicateTerminationError,
    EmployeeNotFoundError,
    InvalidTransitionError,
    OptimisticLockError,
    TerminalStateError,
    ValidationError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_modules.settlement.config import SettlementConfig
from payroll_modules.settlement.directory import EmployeeDirectory, OrmEmployeeDirectory
from payroll_modules.settlement.models import (
    EmployeeRecord,
    SettlementCategory,
    SettlementDocument,
    SettlementStatus,
    TerminationDetail,
    TerminationRequest,
)
from payroll_modules.settlement.orm import SettlementDocumentModel
from payroll_modules.settlement.workflows import workflow_for
from payroll_services.workflow_executor import GuardExecutor, SettlementWorkflowExecutor

logger = get_logger("modules.settlement.service")

ENTITY_TYPE = "settlement_document"

_RESET_TARGET = {
    SettlementCategory.THIRTEENTH.value: SettlementStatus.PENDING,
    SettlementCategory.TERMINATION.value: SettlementStatus.DRAFT,
}


class SettlementService:
    """
    Orchestrates 13th-salary and termination settlements.

    Contract
    --------
    * Batch operations return a ``BatchRunResult`` whose ``outputs`` are the
      calculated ``SettlementDocument`` DTOs and whose ``failures`` carry one
      entry per employee that could not be calculated.
    * Single-document operations return the updated ``SettlementDocument``.

    Guarantees
    ----------
    * Re-running a 13th-salary batch for the same year and kind recomputes
      and overwrites the open document instead of creating another one.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT own employee master data (delegated to ``EmployeeDirectory``).
    * Does NOT produce regulatory files (SPED, GRRF, eSocial).
    """

    def __init__(
        self,
        session: Session,
        directory: EmployeeDirectory | None = None,
        config: SettlementConfig | None = None,
        clock: Clock | None = None,
        guard_executor: GuardExecutor | None = None,
        tables_loader: Callable[[int], StatutoryTables] | None = None,
        session_factory: sessionmaker | None = None,
    ):
        self._session = session
        self._directory = directory or OrmEmployeeDirectory()
        self._config = config or SettlementConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._workflow_executor = SettlementWorkflowExecutor(guard_executor)
        self._tables_loader = tables_loader or get_statutory_tables
        self._session_factory = session_factory

    # =========================================================================
    # 13th salary
    # =========================================================================

    def calculate_first_installment(
        self, company_id: UUID, year: int, actor_id: UUID, *, parallel: bool = False,
    ) -> BatchRunResult:
        """First installment (half of the proportional 13th, no deductions)."""
        return self._run_thirteenth_batch(
            company_id, year, actor_id, ThirteenthKind.FIRST_INSTALLMENT, parallel,
        )

    def calculate_second_installment(
        self, company_id: UUID, year: int, actor_id: UUID, *, parallel: bool = False,
    ) -> BatchRunResult:
        """Second installment: the remainder, with INSS/IRRF on the whole 13th."""
        return self._run_thirteenth_batch(
            company_id, year, actor_id, ThirteenthKind.SECOND_INSTALLMENT, parallel,
        )

    def calculate_single_payment(
        self, company_id: UUID, year: int, actor_id: UUID, *, parallel: bool = False,
    ) -> BatchRunResult:
        """Whole 13th in one payment: FULL for 12 months, else PROPORTIONAL."""
        return self._run_thirteenth_batch(company_id, year, actor_id, None, parallel)

    def _run_thirteenth_batch(
        self,
        company_id: UUID,
        year: int,
        actor_id: UUID,
        kind: ThirteenthKind | None,
        parallel: bool,
    ) -> BatchRunResult:
        label = kind.value if kind is not None else "SINGLE_PAYMENT"
        with LogContext.bind(company_id=company_id, actor_id=actor_id):
            # Missing tables abort the run before any employee is touched
            tables = self._tables_loader(year)
            year_end = date(year, 12, 31)

            logger.info(
                "thirteenth_batch_started",
                extra={"year": year, "kind": label, "parallel": parallel},
            )

            def work(session: Session, item: BatchItem) -> SettlementDocument:
                with LogContext.bind(employee_id=item.item_key):
                    return self._calculate_thirteenth(
                        session, item.payload, year, kind, tables, actor_id,
                    )

            try:
                employees = [
                    e for e in self._directory.list_active(self._session, company_id)
                    if e.admission_date <= year_end
                ]
                if parallel:
                    # Release this session's read transaction before workers write
                    self._session.commit()
                executor = BatchExecutor(
                    session=self._session,
                    session_factory=self._session_factory,
                    clock=self._clock,
                    max_workers=self._config.batch_max_workers,
                )
                result = executor.run(
                    f"thirteenth_{label.lower()}_{year}",
                    batch_items([e.id for e in employees], employees),
                    work,
                    parallel=parallel,
                )
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "thirteenth_batch_completed",
                extra={
                    "year": year,
                    "kind": label,
                    "status": result.status.value,
                    "succeeded": result.succeeded,
                    "failed": result.failed,
                    "gross_total": str(sum((d.gross_value for d in result.outputs), ZERO)),
                },
            )
            return result

    def _calculate_thirteenth(
        self,
        session: Session,
        employee: EmployeeRecord,
        year: int,
        kind: ThirteenthKind | None,
        tables: StatutoryTables,
        actor_id: UUID,
    ) -> SettlementDocument:
        """Create or refresh one employee's 13th document for ``kind``."""
        if kind is None:
            kind = self._single_payment_kind(employee, year)

        model = self._find_open_thirteenth(session, employee.id, year, kind)
        if model is None:
            model = SettlementDocumentModel(
                id=uuid4(),
                company_id=employee.company_id,
                employee_id=employee.id,
                category=SettlementCategory.THIRTEENTH.value,
                kind=kind.value,
                year=year,
                status=SettlementStatus.PENDING.value,
                due_date=self._config.due_date(kind, year),
                created_by_id=actor_id,
            )
            session.add(model)
            session.flush()
            logger.info(
                "settlement_document_created",
                extra={
                    "document_id": str(model.id),
                    "category": model.category,
                    "kind": model.kind,
                    "year": year,
                },
            )
        elif model.status == SettlementStatus.CALCULATED.value:
            self._apply_transition(session, model, SettlementStatus.PENDING, actor_id)

        self._apply_transition(
            session, model, SettlementStatus.CALCULATED, actor_id,
            tables=tables, employee=employee,
        )
        return model.to_dto()

    def _single_payment_kind(self, employee: EmployeeRecord, year: int) -> ThirteenthKind:
        months = months_worked(
            max(employee.admission_date, date(year, 1, 1)), date(year, 12, 31),
        )
        if months == MONTHS_PER_YEAR:
            return ThirteenthKind.FULL
        return ThirteenthKind.PROPORTIONAL

    def _find_open_thirteenth(
        self, session: Session, employee_id: UUID, year: int, kind: ThirteenthKind,
    ) -> SettlementDocumentModel | None:
        """Latest non-cancelled 13th document of ``kind``, locked for update."""
        return session.execute(
            select(SettlementDocumentModel)
            .where(
                SettlementDocumentModel.employee_id == employee_id,
                SettlementDocumentModel.year == year,
                SettlementDocumentModel.category == SettlementCategory.THIRTEENTH.value,
                SettlementDocumentModel.kind == kind.value,
                SettlementDocumentModel.status != SettlementStatus.CANCELLED.value,
            )
            .order_by(SettlementDocumentModel.created_at.desc())
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().first()

    def _first_installment_gross(self, session: Session, employee_id: UUID, year: int) -> Decimal:
        gross = session.execute(
            select(SettlementDocumentModel.gross_value)
            .where(
                SettlementDocumentModel.employee_id == employee_id,
                SettlementDocumentModel.year == year,
                SettlementDocumentModel.category == SettlementCategory.THIRTEENTH.value,
                SettlementDocumentModel.kind == ThirteenthKind.FIRST_INSTALLMENT.value,
                SettlementDocumentModel.status != SettlementStatus.CANCELLED.value,
            )
            .order_by(SettlementDocumentModel.created_at.desc())
        ).scalars().first()
        return gross if gross is not None else ZERO

    # =========================================================================
    # Termination
    # =========================================================================

    def create_termination(
        self, company_id: UUID, request: TerminationRequest, actor_id: UUID,
    ) -> SettlementDocument:
        """Open a DRAFT termination settlement; ``recalculate`` computes it.

        Raises:
            EmployeeNotFoundError: unknown employee, or one of another company.
            DuplicateTerminationError: the employee already has an open one.
            ValidationError: terminated employee or inconsistent dates.
        """
        with LogContext.bind(
            company_id=company_id, actor_id=actor_id, employee_id=request.employee_id,
        ):
            ttype = coerce_termination_type(request.termination_type)
            other = to_decimal(request.other_deductions, "other_deductions")

            with self._unit_of_work():
                employee = self._directory.get_employee(
                    self._session, request.employee_id, for_update=True,
                )
                if employee.company_id != company_id:
                    raise EmployeeNotFoundError(str(request.employee_id))
                if not employee.is_active:
                    raise ValidationError(
                        "employee_id", str(employee.id), "employee is already terminated",
                    )
                self._validate_termination_dates(request, employee)

                existing = self._session.execute(
                    select(SettlementDocumentModel.id).where(
                        SettlementDocumentModel.employee_id == employee.id,
                        SettlementDocumentModel.category == SettlementCategory.TERMINATION.value,
                        SettlementDocumentModel.status != SettlementStatus.CANCELLED.value,
                    )
                ).scalars().first()
                if existing is not None:
                    raise DuplicateTerminationError(str(employee.id), str(existing))

                notice_days = request.notice_days
                if notice_days is None:
                    years = relativedelta(request.termination_date, employee.admission_date).years
                    notice_days = notice_period_days(years)
                elif notice_days < 0:
                    raise ValidationError("notice_days", notice_days, "must not be negative")

                document = SettlementDocument(
                    id=uuid4(),
                    company_id=company_id,
                    employee_id=employee.id,
                    category=SettlementCategory.TERMINATION,
                    kind=ttype.value,
                    year=request.termination_date.year,
                    status=SettlementStatus.DRAFT,
                    base_value=employee.base_salary,
                    dependents_count=employee.dependents_count,
                    termination=TerminationDetail(
                        termination_type=ttype,
                        admission_date=employee.admission_date,
                        termination_date=request.termination_date,
                        last_work_day=request.last_work_day or request.termination_date,
                        base_salary=employee.base_salary,
                        notice_days=notice_days,
                        notice_worked=request.notice_worked,
                        notice_indemnified=request.notice_indemnified,
                        notice_date=request.notice_date,
                        reason=request.reason,
                        notes=request.notes,
                        other_deductions=other,
                    ),
                )
                model = SettlementDocumentModel.from_dto(document, created_by_id=actor_id)
                self._session.add(model)
                self._session.flush()
                LogContext.attach_document(model)

            logger.info(
                "termination_created",
                extra={
                    "document_id": str(model.id),
                    "termination_type": ttype.value,
                    "termination_date": request.termination_date.isoformat(),
                    "notice_days": notice_days,
                    "base_salary": str(employee.base_salary),
                },
            )
            return model.to_dto()

    def _validate_termination_dates(
        self, request: TerminationRequest, employee: EmployeeRecord,
    ) -> None:
        if request.termination_date < employee.admission_date:
            raise ValidationError(
                "termination_date",
                request.termination_date.isoformat(),
                f"precedes admission_date {employee.admission_date.isoformat()}",
            )
        last = request.last_work_day
        if last is not None and not (employee.admission_date <= last <= request.termination_date):
            raise ValidationError(
                "last_work_day",
                last.isoformat(),
                "must fall between admission and termination dates",
            )

    def update_other_deductions(
        self,
        document_id: UUID,
        amount: Decimal,
        actor_id: UUID,
        *,
        expected_version: int | None = None,
    ) -> SettlementDocument:
        """Change a termination's other deductions; a calculated document is
        recalculated in the same transaction."""
        amount = to_decimal(amount, "other_deductions")
        with LogContext.bind(document_id=document_id, actor_id=actor_id):
            with self._unit_of_work(document_id):
                model = self._lock_document(document_id, expected_version)
                workflow = workflow_for(model.category)
                if model.category != SettlementCategory.TERMINATION.value:
                    raise ValidationError(
                        "document_id", str(document_id), "not a termination settlement",
                    )
                if workflow.is_terminal(model.status):
                    raise TerminalStateError(workflow.name, model.status, model.status)
                if model.status not in (
                    SettlementStatus.DRAFT.value, SettlementStatus.CALCULATED.value,
                ):
                    raise InvalidTransitionError(
                        workflow.name,
                        model.status,
                        SettlementStatus.CALCULATED.value,
                        reason="inputs are frozen once approved",
                    )

                model.termination.other_deductions = amount
                model.updated_by_id = actor_id
                if model.status == SettlementStatus.CALCULATED.value:
                    self._apply_transition(self._session, model, SettlementStatus.DRAFT, actor_id)
                    self._apply_transition(
                        self._session, model, SettlementStatus.CALCULATED, actor_id,
                    )
                else:
                    self._session.flush()
            return model.to_dto()

    def mark_grrf_generated(
        self, document_id: UUID, actor_id: UUID, *, expected_version: int | None = None,
    ) -> SettlementDocument:
        """Flag that the FGTS collection guide (GRRF) was issued."""
        with LogContext.bind(document_id=document_id, actor_id=actor_id):
            with self._unit_of_work(document_id):
                model = self._lock_document(document_id, expected_version)
                if model.category != SettlementCategory.TERMINATION.value:
                    raise ValidationError(
                        "document_id", str(document_id), "not a termination settlement",
                    )
                workflow = workflow_for(model.category)
                if workflow.is_terminal(model.status):
                    raise TerminalStateError(workflow.name, model.status, model.status)
                model.termination.grrf_generated = True
                model.updated_by_id = actor_id
                self._session.flush()
            logger.info("grrf_marked_generated", extra={"document_id": str(document_id)})
            return model.to_dto()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def recalculate(
        self, document_id: UUID, actor_id: UUID, *, expected_version: int | None = None,
    ) -> SettlementDocument:
        """Re-run the settlement fold and leave the document CALCULATED.

        A CALCULATED document is reset and recalculated; a PENDING/DRAFT one
        is calculated.  Any other status is refused by the workflow.
        """
        with LogContext.bind(document_id=document_id, actor_id=actor_id):
            with self._unit_of_work(document_id):
                model = self._lock_document(document_id, expected_version)
                if model.status == SettlementStatus.CALCULATED.value:
                    self._apply_transition(
                        self._session, model, _RESET_TARGET[model.category], actor_id,
                    )
                self._apply_transition(
                    self._session, model, SettlementStatus.CALCULATED, actor_id,
                )
            return model.to_dto()

    def transition(
        self,
        document_id: UUID,
        target_status: SettlementStatus | str,
        actor_id: UUID,
        *,
        expected_version: int | None = None,
        payment_date: date | None = None,
        reason: str | None = None,
        homologation_date: date | None = None,
        trct_number: str | None = None,
    ) -> SettlementDocument:
        """Move a document to ``target_status`` if the workflow allows it.

        Raises:
            DocumentNotFoundError: unknown document.
            TerminalStateError: the document is in a terminal state.
            InvalidTransitionError: the pair is not in the table or its
                guard fails.
            OptimisticLockError: ``expected_version`` is stale or a
                concurrent writer won.
        """
        target = SettlementStatus(target_status)
        with LogContext.bind(document_id=document_id, actor_id=actor_id):
            with self._unit_of_work(document_id):
                model = self._lock_document(document_id, expected_version)
                self._apply_transition(
                    self._session, model, target, actor_id,
                    payment_date=payment_date,
                    reason=reason,
                    homologation_date=homologation_date,
                    trct_number=trct_number,
                )
            return model.to_dto()

    def approve(
        self, document_id: UUID, actor_id: UUID, *, expected_version: int | None = None,
    ) -> SettlementDocument:
        return self.transition(
            document_id, SettlementStatus.APPROVED, actor_id, expected_version=expected_version,
        )

    def register_payment(
        self,
        document_id: UUID,
        actor_id: UUID,
        payment_date: date | None = None,
        *,
        expected_version: int | None = None,
    ) -> SettlementDocument:
        """Record payment (today unless given).  Paying a termination marks the
        employee TERMINATED."""
        return self.transition(
            document_id,
            SettlementStatus.PAID,
            actor_id,
            expected_version=expected_version,
            payment_date=payment_date or self._clock.today(),
        )

    def register_homologation(
        self,
        document_id: UUID,
        actor_id: UUID,
        homologation_date: date | None = None,
        trct_number: str | None = None,
        *,
        expected_version: int | None = None,
    ) -> SettlementDocument:
        return self.transition(
            document_id,
            SettlementStatus.HOMOLOGATED,
            actor_id,
            expected_version=expected_version,
            homologation_date=homologation_date or self._clock.today(),
            trct_number=trct_number,
        )

    def cancel(
        self,
        document_id: UUID,
        actor_id: UUID,
        reason: str,
        *,
        expected_version: int | None = None,
    ) -> SettlementDocument:
        if not reason or not reason.strip():
            raise ValidationError("reason", reason, "a cancellation reason is required")
        return self.transition(
            document_id,
            SettlementStatus.CANCELLED,
            actor_id,
            expected_version=expected_version,
            reason=reason.strip(),
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_document(self, document_id: UUID) -> SettlementDocument:
        model = self._session.get(
            SettlementDocumentModel, document_id, populate_existing=True,
        )
        if model is None:
            raise DocumentNotFoundError(str(document_id))
        return model.to_dto()

    def list_documents(
        self,
        company_id: UUID,
        *,
        year: int | None = None,
        employee_id: UUID | None = None,
        category: SettlementCategory | str | None = None,
        kind: str | None = None,
        status: SettlementStatus | str | None = None,
    ) -> list[SettlementDocument]:
        """Documents of ``company_id`` matching every filter given."""
        stmt = select(SettlementDocumentModel).where(
            SettlementDocumentModel.company_id == company_id,
        )
        if year is not None:
            stmt = stmt.where(SettlementDocumentModel.year == year)
        if employee_id is not None:
            stmt = stmt.where(SettlementDocumentModel.employee_id == employee_id)
        if category is not None:
            stmt = stmt.where(
                SettlementDocumentModel.category == SettlementCategory(category).value,
            )
        if kind is not None:
            stmt = stmt.where(SettlementDocumentModel.kind == getattr(kind, "value", kind))
        if status is not None:
            stmt = stmt.where(SettlementDocumentModel.status == SettlementStatus(status).value)
        stmt = stmt.order_by(
            SettlementDocumentModel.year,
            SettlementDocumentModel.created_at,
            SettlementDocumentModel.id,
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    # =========================================================================
    # Internal helpers
    # =========================================================================

    @contextmanager
    def _unit_of_work(self, document_id: UUID | None = None) -> Iterator[None]:
        """Commit on success; roll back and re-raise on any failure."""
        try:
            yield
            self._session.commit()
        except StaleDataError as exc:
            self._session.rollback()
            logger.warning(
                "settlement_version_conflict",
                extra={"document_id": str(document_id)},
            )
            raise OptimisticLockError(ENTITY_TYPE, str(document_id)) from exc
        except Exception:
            self._session.rollback()
            raise

    def _lock_document(
        self, document_id: UUID, expected_version: int | None,
    ) -> SettlementDocumentModel:
        model = self._session.execute(
            select(SettlementDocumentModel)
            .where(SettlementDocumentModel.id == document_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise DocumentNotFoundError(str(document_id))
        if expected_version is not None and model.version != expected_version:
            raise OptimisticLockError(
                ENTITY_TYPE, str(document_id), expected_version, model.version,
            )
        LogContext.attach_document(model)
        return model

    def _guard_context(
        self, model: SettlementDocumentModel, payment_date: date | None,
    ) -> dict:
        return {
            "calculated_at": model.calculated_at,
            "gross_value": model.gross_value,
            "inss_deduction": model.inss_deduction,
            "irrf_deduction": model.irrf_deduction,
            "other_deductions": model.other_deductions,
            "net_value": model.net_value,
            "payment_date": payment_date,
        }

    def _apply_transition(
        self,
        session: Session,
        model: SettlementDocumentModel,
        target: SettlementStatus,
        actor_id: UUID,
        *,
        tables: StatutoryTables | None = None,
        employee: EmployeeRecord | None = None,
        payment_date: date | None = None,
        reason: str | None = None,
        homologation_date: date | None = None,
        trct_number: str | None = None,
    ) -> None:
        """Check ``model.status -> target`` and write it (with the fold when
        the transition recalculates)."""
        workflow = workflow_for(model.category)
        try:
            transition = self._workflow_executor.check(
                workflow,
                ENTITY_TYPE,
                model.id,
                model.status,
                target.value,
                context=self._guard_context(model, payment_date),
            )
        except InvalidTransitionError as exc:
            logger.warning(
                "settlement_transition_rejected",
                extra={
                    "document_id": str(model.id),
                    "from_status": model.status,
                    "to_status": target.value,
                    "error_code": exc.code,
                    "reason": exc.reason,
                },
            )
            raise

        if transition.recalculates:
            self._run_fold(session, model, tables=tables, employee=employee)

        previous = model.status
        now = self._clock.now()
        model.status = target.value
        model.updated_by_id = actor_id

        if target is SettlementStatus.APPROVED:
            model.approved_at = now
            model.approved_by_id = actor_id
        elif target is SettlementStatus.PAID:
            model.paid_at = payment_date or self._clock.today()
            if model.category == SettlementCategory.TERMINATION.value:
                self._directory.mark_terminated(
                    session, model.employee_id, model.termination.termination_date, actor_id,
                )
        elif target is SettlementStatus.HOMOLOGATED:
            model.termination.homologation_date = homologation_date or self._clock.today()
            model.termination.trct_number = trct_number
        elif target is SettlementStatus.CANCELLED:
            model.cancelled_at = now
            model.cancellation_reason = reason

        session.flush()
        logger.info(
            "settlement_status_changed",
            extra={
                "document_id": str(model.id),
                "action": transition.action,
                "from_status": previous,
                "to_status": model.status,
                "version": model.version,
            },
        )

    def _run_fold(
        self,
        session: Session,
        model: SettlementDocumentModel,
        *,
        tables: StatutoryTables | None = None,
        employee: EmployeeRecord | None = None,
    ) -> None:
        """Recompute every output field of ``model`` from its inputs."""
        tables = tables or self._tables_loader(model.year)
        if model.category == SettlementCategory.THIRTEENTH.value:
            totals = self._fold_thirteenth(session, model, tables, employee)
        else:
            totals = self._fold_termination(model, tables)

        model.gross_value = totals.gross_value
        model.inss_deduction = totals.inss_deduction
        model.irrf_deduction = totals.irrf_deduction
        model.other_deductions = totals.other_deductions
        model.net_value = totals.net_value
        model.set_components(totals.components)
        model.calculated_at = self._clock.now()

        logger.info(
            "settlement_document_calculated",
            extra={
                "document_id": str(model.id),
                "category": model.category,
                "kind": model.kind,
                "year": model.year,
                "months_worked": model.months_worked,
                "gross_value": totals.gross_value,
                "inss_deduction": totals.inss_deduction,
                "irrf_deduction": totals.irrf_deduction,
                "net_value": totals.net_value,
                "components": totals.components,
                "tables_checksum": tables.checksum,
            },
        )

    def _fold_thirteenth(
        self,
        session: Session,
        model: SettlementDocumentModel,
        tables: StatutoryTables,
        employee: EmployeeRecord | None,
    ) -> SettlementTotals:
        employee = employee or self._directory.get_employee(session, model.employee_id)
        kind = ThirteenthKind(model.kind)
        accrual = AccrualInput(
            base_salary=employee.base_salary,
            admission_date=max(employee.admission_date, date(model.year, 1, 1)),
            reference_date=date(model.year, 12, 31),
            variable_income_samples=self._directory.variable_income(
                session, employee.id, model.year,
            ),
        )
        first_gross = ZERO
        if kind is ThirteenthKind.SECOND_INSTALLMENT:
            first_gross = self._first_installment_gross(session, employee.id, model.year)

        breakdown = assemble_thirteenth(
            kind,
            accrual,
            tables,
            methods=self._config.thirteenth_methods(),
            first_installment_gross=first_gross,
            dependents_count=employee.dependents_count,
        )
        model.base_value = breakdown.base_value
        model.months_worked = breakdown.months_worked
        model.dependents_count = employee.dependents_count
        return breakdown.totals

    def _fold_termination(
        self, model: SettlementDocumentModel, tables: StatutoryTables,
    ) -> SettlementTotals:
        detail = model.termination
        breakdown = assemble_termination(
            TerminationInput(
                termination_type=detail.termination_type,
                base_salary=detail.base_salary,
                admission_date=detail.admission_date,
                termination_date=detail.termination_date,
                notice_period_days=detail.notice_days,
                notice_period_indemnified=detail.notice_indemnified,
                dependents_count=model.dependents_count,
                other_deductions=detail.other_deductions,
            ),
            tables,
            methods=self._config.termination_methods(),
            vacation_annual_days=self._config.vacation_annual_days,
        )
        model.base_value = detail.base_salary
        model.months_worked = breakdown.tenure_months
        detail.tenure_months = breakdown.tenure_months
        detail.fgts_balance = breakdown.fgts_balance
        detail.fgts_penalty = breakdown.fgts_penalty
        detail.vacation_proportional_days = breakdown.vacation_proportional_days
        detail.eligible_for_unemployment = breakdown.eligible_for_unemployment
        detail.unemployment_guides = breakdown.unemployment_guides
        return breakdown.totals
