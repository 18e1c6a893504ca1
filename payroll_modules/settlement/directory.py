"""
Employee directory -- the employee/pay record collaborator.

``SettlementService`` reads employees, their variable income and writes the
TERMINATED status only through an ``EmployeeDirectory``.  Every method
takes the session explicitly so the same directory works on the service's
session and on per-worker sessions in parallel batches.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Protocol, Sequence, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_kernel.domain.values import to_decimal
from payroll_kernel.exceptions import EmployeeNotFoundError
from payroll_kernel.logging_config import get_logger
from payroll_modules.settlement.models import EmployeeRecord, EmployeeStatus
from payroll_modules.settlement.orm import EmployeeModel, VariableIncomeModel

logger = get_logger("modules.settlement.directory")


@runtime_checkable
class EmployeeDirectory(Protocol):
    def get_employee(
        self, session: Session, employee_id: UUID, *, for_update: bool = False,
    ) -> EmployeeRecord: ...

    def list_active(self, session: Session, company_id: UUID) -> Sequence[EmployeeRecord]: ...

    def variable_income(
        self, session: Session, employee_id: UUID, year: int,
    ) -> tuple[Decimal, ...]: ...

    def mark_terminated(
        self, session: Session, employee_id: UUID, termination_date: date, actor_id: UUID,
    ) -> None: ...


class OrmEmployeeDirectory:
    """``EmployeeDirectory`` backed by the ``payroll_employees`` tables."""

    def _model(self, session: Session, employee_id: UUID, for_update: bool) -> EmployeeModel:
        stmt = select(EmployeeModel).where(EmployeeModel.id == employee_id)
        if for_update:
            stmt = stmt.with_for_update()
        model = session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise EmployeeNotFoundError(str(employee_id))
        return model

    def get_employee(
        self, session: Session, employee_id: UUID, *, for_update: bool = False,
    ) -> EmployeeRecord:
        return self._model(session, employee_id, for_update).to_dto()

    def list_active(self, session: Session, company_id: UUID) -> list[EmployeeRecord]:
        """Employees of ``company_id`` that are not TERMINATED, by number."""
        models = session.execute(
            select(EmployeeModel)
            .where(
                EmployeeModel.company_id == company_id,
                EmployeeModel.status != EmployeeStatus.TERMINATED.value,
            )
            .order_by(EmployeeModel.employee_number)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def variable_income(
        self, session: Session, employee_id: UUID, year: int,
    ) -> tuple[Decimal, ...]:
        """Monthly variable-income amounts recorded in ``year``, in month order."""
        amounts = session.execute(
            select(VariableIncomeModel.amount)
            .where(
                VariableIncomeModel.employee_id == employee_id,
                VariableIncomeModel.reference_month >= date(year, 1, 1),
                VariableIncomeModel.reference_month <= date(year, 12, 31),
            )
            .order_by(VariableIncomeModel.reference_month)
        ).scalars().all()
        return tuple(amounts)

    def mark_terminated(
        self, session: Session, employee_id: UUID, termination_date: date, actor_id: UUID,
    ) -> None:
        model = self._model(session, employee_id, for_update=True)
        model.status = EmployeeStatus.TERMINATED.value
        model.termination_date = termination_date
        model.updated_by_id = actor_id
        session.flush()
        logger.info(
            "employee_marked_terminated",
            extra={
                "employee_id": str(employee_id),
                "termination_date": termination_date.isoformat(),
            },
        )

    # -------------------------------------------------------------------------
    # Registration (used by loaders and tests)
    # -------------------------------------------------------------------------

    def add_employee(self, session: Session, record: EmployeeRecord, actor_id: UUID) -> EmployeeRecord:
        to_decimal(record.base_salary, "base_salary")
        model = EmployeeModel.from_dto(record, created_by_id=actor_id)
        session.add(model)
        session.flush()
        logger.info(
            "employee_registered",
            extra={
                "employee_id": str(record.id),
                "employee_number": record.employee_number,
                "base_salary": str(record.base_salary),
            },
        )
        return model.to_dto()

    def add_variable_income(
        self,
        session: Session,
        employee_id: UUID,
        reference_month: date,
        amount: Decimal,
        actor_id: UUID,
        description: str | None = None,
    ) -> None:
        self._model(session, employee_id, for_update=False)
        session.add(
            VariableIncomeModel(
                employee_id=employee_id,
                reference_month=reference_month.replace(day=1),
                amount=to_decimal(amount, "amount"),
                description=description,
                created_by_id=actor_id,
            )
        )
        session.flush()
