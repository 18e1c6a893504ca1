"""
Settlement Domain Models (``payroll_modules.settlement.models``).

Responsibility
--------------
Frozen dataclass value objects for the nouns of statutory settlement:
employees as seen by the settlement engine, 13th-salary and termination
settlement documents, and termination (TRCT) details.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Returned by
``SettlementService`` to callers; the ORM models in ``orm.py`` convert to
and from them.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``SettlementDocument.net_value`` equals gross minus every deduction for
  any document produced by the service; ``net_is_consistent`` checks it.

Audit relevance
---------------
* Settlement documents are the legal record of what was owed and withheld.
* Termination details carry the homologation date and TRCT number that
  close the statutory process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from payroll_engines.settlement_assembly import SettlementComponent, ThirteenthKind
from payroll_engines.termination_rights import TerminationType
from payroll_kernel.domain.values import ZERO


class EmployeeStatus(Enum):
    """Employment status as far as settlements are concerned."""
    ACTIVE = "ACTIVE"
    ON_LEAVE = "ON_LEAVE"
    TERMINATED = "TERMINATED"


class SettlementCategory(Enum):
    """Which workflow governs a document."""
    THIRTEENTH = "THIRTEENTH"
    TERMINATION = "TERMINATION"


class SettlementStatus(Enum):
    """Union of the 13th-salary and termination lifecycle states."""
    PENDING = "PENDING"
    DRAFT = "DRAFT"
    CALCULATED = "CALCULATED"
    APPROVED = "APPROVED"
    PAID = "PAID"
    HOMOLOGATED = "HOMOLOGATED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class EmployeeRecord:
    """Employee/pay record consumed by the settlement engine."""
    id: UUID
    company_id: UUID
    employee_number: str
    name: str
    base_salary: Decimal
    admission_date: date
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    dependents_count: int = 0
    termination_date: date | None = None

    @property
    def is_active(self) -> bool:
        return self.status is not EmployeeStatus.TERMINATED


@dataclass(frozen=True)
class TerminationRequest:
    """Caller input for ``SettlementService.create_termination``.

    ``notice_days`` defaults to the statutory notice for the employee's
    completed years of service.  ``last_work_day`` defaults to the
    termination date.
    """
    employee_id: UUID
    termination_type: TerminationType
    termination_date: date
    last_work_day: date | None = None
    notice_date: date | None = None
    notice_worked: bool = False
    notice_indemnified: bool = False
    notice_days: int | None = None
    reason: str | None = None
    notes: str | None = None
    other_deductions: Decimal = ZERO


@dataclass(frozen=True)
class TerminationDetail:
    """TRCT inputs (frozen at creation) plus the figures of the last calculation."""
    termination_type: TerminationType
    admission_date: date
    termination_date: date
    last_work_day: date
    base_salary: Decimal
    notice_days: int
    notice_worked: bool = False
    notice_indemnified: bool = False
    notice_date: date | None = None
    reason: str | None = None
    notes: str | None = None
    other_deductions: Decimal = ZERO
    tenure_months: int = 0
    fgts_balance: Decimal = ZERO
    fgts_penalty: Decimal = ZERO
    vacation_proportional_days: int = 0
    eligible_for_unemployment: bool = False
    unemployment_guides: int = 0
    homologation_date: date | None = None
    trct_number: str | None = None
    grrf_generated: bool = False


@dataclass(frozen=True)
class SettlementDocument:
    """A 13th-salary installment or a termination settlement."""
    id: UUID
    company_id: UUID
    employee_id: UUID
    category: SettlementCategory
    kind: str  # ThirteenthKind or TerminationType value
    year: int
    status: SettlementStatus
    base_value: Decimal = ZERO
    months_worked: int = 0
    gross_value: Decimal = ZERO
    inss_deduction: Decimal = ZERO
    irrf_deduction: Decimal = ZERO
    other_deductions: Decimal = ZERO
    net_value: Decimal = ZERO
    dependents_count: int = 0
    components: tuple[SettlementComponent, ...] = field(default_factory=tuple)
    due_date: date | None = None
    calculated_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by_id: UUID | None = None
    paid_at: date | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None
    version: int = 1
    termination: TerminationDetail | None = None

    @property
    def total_deductions(self) -> Decimal:
        return self.inss_deduction + self.irrf_deduction + self.other_deductions

    @property
    def net_is_consistent(self) -> bool:
        return self.net_value == self.gross_value - self.total_deductions

    @property
    def thirteenth_kind(self) -> ThirteenthKind | None:
        if self.category is not SettlementCategory.THIRTEENTH:
            return None
        return ThirteenthKind(self.kind)

    @property
    def termination_type(self) -> TerminationType | None:
        if self.category is not SettlementCategory.TERMINATION:
            return None
        return TerminationType(self.kind)

    def component(self, code: str) -> Decimal:
        """Amount of the named component (zero when absent)."""
        for c in self.components:
            if c.code == code:
                return c.amount
        return ZERO
