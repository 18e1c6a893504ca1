"""
Settlement ORM Persistence Models (``payroll_modules.settlement.orm``).

Responsibility:
    SQLAlchemy ORM models that persist the frozen dataclass DTOs defined in
    ``payroll_modules.settlement.models``.  Each ORM class mirrors a DTO and
    provides ``to_dto()`` / ``from_dto()`` conversion.

Architecture position:
    **Modules layer** -- persistence companions to the pure DTO models.
    Inherits from ``TrackedBase`` (kernel DB base) which provides:
    id (UUID PK, auto-generated), created_at, updated_at,
    created_by_id (NOT NULL UUID), updated_by_id (nullable UUID).

Invariants enforced:
    - All monetary fields use Decimal (maps to Numeric(38,9)) -- NEVER float.
    - Enum fields stored as String(50) containing the enum .value string.
    - ``settlement_documents.version`` is the mapper's ``version_id_col``:
      every UPDATE is qualified by the version read, so two writers racing
      on the same document cannot both succeed.
    - One termination detail row per termination document.

Audit relevance:
    TrackedBase audit columns (created_at, updated_at, created_by_id,
    updated_by_id) are inherited by every model.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_kernel.db.base import TrackedBase

# ---------------------------------------------------------------------------
# EmployeeModel
# ---------------------------------------------------------------------------


class EmployeeModel(TrackedBase):
    """
    ORM model for ``EmployeeRecord``.

    Guarantees:
        - ``employee_number`` is unique within a company.
        - ``status`` stores the ``EmployeeStatus`` .value string.
    """

    __tablename__ = "payroll_employees"

    company_id: Mapped[UUID] = mapped_column(nullable=False)
    employee_number: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    base_salary: Mapped[Decimal] = mapped_column(nullable=False)
    admission_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="ACTIVE")
    dependents_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    variable_income: Mapped[list["VariableIncomeModel"]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="VariableIncomeModel.reference_month",
    )

    __table_args__ = (
        UniqueConstraint("company_id", "employee_number", name="uq_payroll_employee_number"),
        Index("idx_payroll_employee_company_status", "company_id", "status"),
    )

    def to_dto(self):
        from payroll_modules.settlement.models import EmployeeRecord, EmployeeStatus
        return EmployeeRecord(
            id=self.id,
            company_id=self.company_id,
            employee_number=self.employee_number,
            name=self.name,
            base_salary=self.base_salary,
            admission_date=self.admission_date,
            status=EmployeeStatus(self.status),
            dependents_count=self.dependents_count,
            termination_date=self.termination_date,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "EmployeeModel":
        return cls(
            id=dto.id,
            company_id=dto.company_id,
            employee_number=dto.employee_number,
            name=dto.name,
            base_salary=dto.base_salary,
            admission_date=dto.admission_date,
            status=dto.status.value if hasattr(dto.status, "value") else dto.status,
            dependents_count=dto.dependents_count,
            termination_date=dto.termination_date,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<EmployeeModel {self.employee_number}: {self.name} ({self.status})>"


# ---------------------------------------------------------------------------
# VariableIncomeModel
# ---------------------------------------------------------------------------


class VariableIncomeModel(TrackedBase):
    """
    Overtime, commissions and other variable pay for one month.

    One row per employee and month; the 13th-salary base adds the average of
    a year's rows to the salary.
    """

    __tablename__ = "payroll_variable_income"

    employee_id: Mapped[UUID] = mapped_column(ForeignKey("payroll_employees.id"), nullable=False)
    reference_month: Mapped[date] = mapped_column(Date, nullable=False)  # first day of month
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(String(200), nullable=True)

    employee: Mapped["EmployeeModel"] = relationship(back_populates="variable_income")

    __table_args__ = (
        UniqueConstraint("employee_id", "reference_month", name="uq_payroll_variable_income_month"),
    )


# ---------------------------------------------------------------------------
# SettlementDocumentModel
# ---------------------------------------------------------------------------


class SettlementDocumentModel(TrackedBase):
    """
    ORM model for ``SettlementDocument``.

    Contract:
        Written only by ``SettlementService``.  Monetary fields are outputs
        of the settlement fold; a termination's deduction input lives on its
        ``TerminationDetailModel``.

    Guarantees:
        - ``version`` increments on every UPDATE (optimistic lock).
        - ``components`` holds ``[{"code": ..., "amount": "..."}]`` with
          amounts as strings so no float ever enters the JSON.
    """

    __tablename__ = "settlement_documents"

    company_id: Mapped[UUID] = mapped_column(nullable=False)
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("payroll_employees.id"), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)

    base_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    months_worked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gross_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    inss_deduction: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    irrf_deduction: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    other_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    net_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    dependents_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    components: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    calculated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    paid_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    termination: Mapped["TerminationDetailModel | None"] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_settlement_doc_lookup", "employee_id", "year", "category", "kind"),
        Index("idx_settlement_doc_company_year", "company_id", "year"),
        Index("idx_settlement_doc_status", "status"),
    )

    def set_components(self, components) -> None:
        self.components = [{"code": c.code, "amount": str(c.amount)} for c in components]

    def to_dto(self):
        from payroll_engines.settlement_assembly import SettlementComponent
        from payroll_modules.settlement.models import (
            SettlementCategory,
            SettlementDocument,
            SettlementStatus,
        )
        return SettlementDocument(
            id=self.id,
            company_id=self.company_id,
            employee_id=self.employee_id,
            category=SettlementCategory(self.category),
            kind=self.kind,
            year=self.year,
            status=SettlementStatus(self.status),
            base_value=self.base_value,
            months_worked=self.months_worked,
            gross_value=self.gross_value,
            inss_deduction=self.inss_deduction,
            irrf_deduction=self.irrf_deduction,
            other_deductions=self.other_deductions,
            net_value=self.net_value,
            dependents_count=self.dependents_count,
            components=tuple(
                SettlementComponent(c["code"], Decimal(c["amount"]))
                for c in (self.components or [])
            ),
            due_date=self.due_date,
            calculated_at=self.calculated_at,
            approved_at=self.approved_at,
            approved_by_id=self.approved_by_id,
            paid_at=self.paid_at,
            cancelled_at=self.cancelled_at,
            cancellation_reason=self.cancellation_reason,
            created_at=self.created_at,
            version=self.version,
            termination=self.termination.to_dto() if self.termination is not None else None,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "SettlementDocumentModel":
        model = cls(
            id=dto.id,
            company_id=dto.company_id,
            employee_id=dto.employee_id,
            category=dto.category.value,
            kind=dto.kind,
            year=dto.year,
            status=dto.status.value,
            base_value=dto.base_value,
            months_worked=dto.months_worked,
            gross_value=dto.gross_value,
            inss_deduction=dto.inss_deduction,
            irrf_deduction=dto.irrf_deduction,
            other_deductions=dto.other_deductions,
            net_value=dto.net_value,
            dependents_count=dto.dependents_count,
            due_date=dto.due_date,
            created_by_id=created_by_id,
        )
        model.set_components(dto.components)
        if dto.termination is not None:
            model.termination = TerminationDetailModel.from_dto(
                dto.termination, created_by_id=created_by_id,
            )
        return model

    def __repr__(self) -> str:
        return (
            f"<SettlementDocumentModel {self.category}/{self.kind} "
            f"{self.year} ({self.status}) v{self.version}>"
        )


# ---------------------------------------------------------------------------
# TerminationDetailModel
# ---------------------------------------------------------------------------


class TerminationDetailModel(TrackedBase):
    """
    ORM model for ``TerminationDetail`` -- TRCT inputs and figures.

    Guarantees:
        - ``document_id`` is unique (one detail per termination document).
        - ``base_salary`` and ``admission_date`` are frozen at creation so a
          later salary change never alters an open settlement.
    """

    __tablename__ = "termination_details"

    document_id: Mapped[UUID] = mapped_column(
        ForeignKey("settlement_documents.id"), nullable=False,
    )
    termination_type: Mapped[str] = mapped_column(String(50), nullable=False)
    admission_date: Mapped[date] = mapped_column(Date, nullable=False)
    termination_date: Mapped[date] = mapped_column(Date, nullable=False)
    last_work_day: Mapped[date] = mapped_column(Date, nullable=False)
    base_salary: Mapped[Decimal] = mapped_column(nullable=False)
    notice_days: Mapped[int] = mapped_column(Integer, nullable=False)
    notice_worked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notice_indemnified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notice_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    other_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    tenure_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fgts_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    fgts_penalty: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    vacation_proportional_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    eligible_for_unemployment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    unemployment_guides: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    homologation_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    trct_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    grrf_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    document: Mapped["SettlementDocumentModel"] = relationship(back_populates="termination")

    __table_args__ = (
        UniqueConstraint("document_id", name="uq_termination_detail_document"),
    )

    def to_dto(self):
        from payroll_engines.termination_rights import TerminationType
        from payroll_modules.settlement.models import TerminationDetail
        return TerminationDetail(
            termination_type=TerminationType(self.termination_type),
            admission_date=self.admission_date,
            termination_date=self.termination_date,
            last_work_day=self.last_work_day,
            base_salary=self.base_salary,
            notice_days=self.notice_days,
            notice_worked=self.notice_worked,
            notice_indemnified=self.notice_indemnified,
            notice_date=self.notice_date,
            reason=self.reason,
            notes=self.notes,
            other_deductions=self.other_deductions,
            tenure_months=self.tenure_months,
            fgts_balance=self.fgts_balance,
            fgts_penalty=self.fgts_penalty,
            vacation_proportional_days=self.vacation_proportional_days,
            eligible_for_unemployment=self.eligible_for_unemployment,
            unemployment_guides=self.unemployment_guides,
            homologation_date=self.homologation_date,
            trct_number=self.trct_number,
            grrf_generated=self.grrf_generated,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "TerminationDetailModel":
        return cls(
            termination_type=dto.termination_type.value,
            admission_date=dto.admission_date,
            termination_date=dto.termination_date,
            last_work_day=dto.last_work_day,
            base_salary=dto.base_salary,
            notice_days=dto.notice_days,
            notice_worked=dto.notice_worked,
            notice_indemnified=dto.notice_indemnified,
            notice_date=dto.notice_date,
            reason=dto.reason,
            notes=dto.notes,
            other_deductions=dto.other_deductions,
            created_by_id=created_by_id,
        )
