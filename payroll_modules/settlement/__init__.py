"""
Settlement Module (``payroll_modules.settlement``).

Responsibility
--------------
Brazilian statutory settlements: the two 13th-salary installments (or a
single full/proportional payment) and termination settlements (TRCT), from
calculation through payment and homologation.

Architecture position
---------------------
**Modules layer** -- DTOs, ORM models, workflows, config schema, the
employee directory collaborator and the ``SettlementService`` facade.  All
figures come from ``payroll_engines``; tables from ``payroll_config``.

Invariants enforced
-------------------
* Net equals gross minus INSS, IRRF and other deductions on every document.
* Terminal documents (PAID 13th, HOMOLOGATED, CANCELLED) are never written.
* One open termination settlement per employee.
"""

from payroll_modules.settlement.config import SettlementConfig
from payroll_modules.settlement.directory import EmployeeDirectory, OrmEmployeeDirectory
from payroll_modules.settlement.models import (
    EmployeeRecord,
    EmployeeStatus,
    SettlementCategory,
    SettlementDocument,
    SettlementStatus,
    TerminationDetail,
    TerminationRequest,
)
from payroll_modules.settlement.service import SettlementService
from payroll_modules.settlement.workflows import TERMINATION_WORKFLOW, THIRTEENTH_WORKFLOW

__all__ = [
    "EmployeeDirectory",
    "EmployeeRecord",
    "EmployeeStatus",
    "OrmEmployeeDirectory",
    "SettlementCategory",
    "SettlementConfig",
    "SettlementDocument",
    "SettlementService",
    "SettlementStatus",
    "TERMINATION_WORKFLOW",
    "THIRTEENTH_WORKFLOW",
    "TerminationDetail",
    "TerminationRequest",
]
