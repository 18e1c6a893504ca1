"""
Tests for the termination (TRCT) operations of SettlementService.

Covers:
- create_termination: defaults, validation, one open settlement per employee
- recalculate: full fold written to the document and its detail
- approve / register_payment / register_homologation / cancel
- update_other_deductions and mark_grrf_generated
- Terminal-state protection and failed calculations leaving no trace
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_engines.termination_rights import TerminationType
from payroll_kernel.exceptions import (
    BracketTableNotFoundError,
    DocumentNotFoundError,
    DuplicateTerminationError,
    EmployeeNotFoundError,
    InvalidTransitionError,
    TerminalStateError,
    ValidationError,
)
from payroll_modules.settlement.models import (
    EmployeeStatus,
    SettlementCategory,
    SettlementStatus,
    TerminationRequest,
)
from payroll_modules.settlement.service import SettlementService


@pytest.fixture
def employee(create_employee):
    return create_employee("3000.00", date(2022, 3, 1))


@pytest.fixture
def request_for(employee):
    def _request(ttype=TerminationType.DISMISSAL_NO_CAUSE, **overrides):
        values = dict(
            employee_id=employee.id,
            termination_type=ttype,
            termination_date=date(2024, 6, 20),
            notice_indemnified=True,
        )
        values.update(overrides)
        return TerminationRequest(**values)
    return _request


@pytest.fixture
def draft(settlement_service, request_for, company_id, test_actor_id):
    return settlement_service.create_termination(company_id, request_for(), test_actor_id)


@pytest.fixture
def calculated(settlement_service, draft, test_actor_id):
    return settlement_service.recalculate(draft.id, test_actor_id)


class TestCreateTermination:

    def test_draft_defaults(self, draft, employee, company_id):
        assert draft.status is SettlementStatus.DRAFT
        assert draft.category is SettlementCategory.TERMINATION
        assert draft.termination_type is TerminationType.DISMISSAL_NO_CAUSE
        assert draft.company_id == company_id
        assert draft.employee_id == employee.id
        assert draft.year == 2024
        assert draft.due_date is None
        assert draft.gross_value == Decimal("0")
        assert draft.net_value == Decimal("0")
        assert draft.net_is_consistent
        assert draft.calculated_at is None

        detail = draft.termination
        assert detail.notice_days == 36  # two completed years
        assert detail.last_work_day == date(2024, 6, 20)
        assert detail.admission_date == date(2022, 3, 1)
        assert detail.base_salary == Decimal("3000.00")
        assert not detail.grrf_generated

    def test_explicit_notice_and_last_day(self, settlement_service, request_for, company_id, test_actor_id):
        document = settlement_service.create_termination(
            company_id,
            request_for(notice_days=30, last_work_day=date(2024, 6, 14), reason="restructuring"),
            test_actor_id,
        )
        assert document.termination.notice_days == 30
        assert document.termination.last_work_day == date(2024, 6, 14)
        assert document.termination.reason == "restructuring"

    def test_duplicate_rejected(self, settlement_service, draft, request_for, company_id, test_actor_id):
        with pytest.raises(DuplicateTerminationError) as exc_info:
            settlement_service.create_termination(
                company_id, request_for(TerminationType.RESIGNATION), test_actor_id,
            )
        assert exc_info.value.existing_document_id == str(draft.id)
        assert exc_info.value.code == "DUPLICATE_TERMINATION"

    def test_new_one_allowed_after_cancel(
        self, settlement_service, draft, request_for, company_id, test_actor_id,
    ):
        settlement_service.cancel(draft.id, test_actor_id, "wrong type")
        replacement = settlement_service.create_termination(
            company_id, request_for(TerminationType.RESIGNATION), test_actor_id,
        )
        assert replacement.id != draft.id

    def test_unknown_employee(self, settlement_service, company_id, test_actor_id):
        request = TerminationRequest(
            employee_id=uuid4(),
            termination_type=TerminationType.RESIGNATION,
            termination_date=date(2024, 6, 20),
        )
        with pytest.raises(EmployeeNotFoundError):
            settlement_service.create_termination(company_id, request, test_actor_id)

    def test_employee_of_other_company(self, settlement_service, request_for, test_actor_id):
        with pytest.raises(EmployeeNotFoundError):
            settlement_service.create_termination(uuid4(), request_for(), test_actor_id)

    def test_terminated_employee(self, settlement_service, create_employee, company_id, test_actor_id):
        gone = create_employee("3000.00", date(2020, 1, 1), status=EmployeeStatus.TERMINATED)
        request = TerminationRequest(
            employee_id=gone.id,
            termination_type=TerminationType.RESIGNATION,
            termination_date=date(2024, 6, 20),
        )
        with pytest.raises(ValidationError):
            settlement_service.create_termination(company_id, request, test_actor_id)

    def test_termination_before_admission(self, settlement_service, request_for, company_id, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            settlement_service.create_termination(
                company_id, request_for(termination_date=date(2022, 2, 28)), test_actor_id,
            )
        assert exc_info.value.field == "termination_date"

    def test_last_work_day_after_termination(self, settlement_service, request_for, company_id, test_actor_id):
        with pytest.raises(ValidationError):
            settlement_service.create_termination(
                company_id, request_for(last_work_day=date(2024, 6, 21)), test_actor_id,
            )

    def test_unknown_type(self, settlement_service, request_for, company_id, test_actor_id):
        with pytest.raises(ValidationError):
            settlement_service.create_termination(company_id, request_for("LAYOFF"), test_actor_id)

    def test_negative_notice_days(self, settlement_service, request_for, company_id, test_actor_id):
        with pytest.raises(ValidationError):
            settlement_service.create_termination(company_id, request_for(notice_days=-1), test_actor_id)

    def test_failed_create_leaves_nothing(self, settlement_service, request_for, company_id, test_actor_id):
        with pytest.raises(ValidationError):
            settlement_service.create_termination(
                company_id, request_for(last_work_day=date(2024, 6, 21)), test_actor_id,
            )
        assert settlement_service.list_documents(company_id) == []


class TestRecalculate:

    def test_figures(self, calculated):
        assert calculated.status is SettlementStatus.CALCULATED
        assert calculated.months_worked == 28
        assert calculated.component("salary_balance") == Decimal("2000.00")
        assert calculated.component("notice_indemnity") == Decimal("3600.00")
        assert calculated.component("vacation_balance") == Decimal("3000.00")
        assert calculated.component("vacation_proportional") == Decimal("1000.00")
        assert calculated.component("vacation_one_third") == Decimal("1333.33")
        assert calculated.component("thirteenth_proportional") == Decimal("1500.00")
        assert calculated.component("fgts_penalty") == Decimal("2688.00")
        assert calculated.gross_value == Decimal("15121.33")
        assert calculated.inss_deduction == Decimal("602.82")
        assert calculated.irrf_deduction == Decimal("478.22")
        assert calculated.net_value == Decimal("14040.29")
        assert calculated.net_is_consistent

    def test_detail_figures(self, calculated):
        detail = calculated.termination
        assert detail.tenure_months == 28
        assert detail.fgts_balance == Decimal("6720.00")
        assert detail.fgts_penalty == Decimal("2688.00")
        assert detail.vacation_proportional_days == 10
        assert detail.eligible_for_unemployment
        assert detail.unemployment_guides == 4

    def test_recalculating_calculated_document(self, settlement_service, calculated, test_actor_id):
        again = settlement_service.recalculate(calculated.id, test_actor_id)
        assert again.status is SettlementStatus.CALCULATED
        assert again.net_value == calculated.net_value
        assert again.version > calculated.version

    def test_other_deductions_input(self, settlement_service, request_for, company_id, test_actor_id):
        draft = settlement_service.create_termination(
            company_id, request_for(other_deductions=Decimal("250.00")), test_actor_id,
        )
        assert draft.other_deductions == Decimal("0")
        assert draft.termination.other_deductions == Decimal("250.00")

        calculated = settlement_service.recalculate(draft.id, test_actor_id)
        assert calculated.other_deductions == Decimal("250.00")
        assert calculated.net_value == Decimal("13790.29")

    def test_missing_tables_leave_document_untouched(
        self, session, directory, deterministic_clock, draft, test_actor_id,
    ):
        def no_tables(year):
            raise BracketTableNotFoundError(year)

        service = SettlementService(
            session, directory=directory, clock=deterministic_clock, tables_loader=no_tables,
        )
        with pytest.raises(BracketTableNotFoundError):
            service.recalculate(draft.id, test_actor_id)

        document = service.get_document(draft.id)
        assert document.status is SettlementStatus.DRAFT
        assert document.calculated_at is None
        assert document.gross_value == Decimal("0")

    def test_unknown_document(self, settlement_service, test_actor_id):
        with pytest.raises(DocumentNotFoundError):
            settlement_service.recalculate(uuid4(), test_actor_id)


class TestLifecycle:

    def test_full_lifecycle(self, settlement_service, directory, session, calculated, employee, test_actor_id):
        approved = settlement_service.approve(calculated.id, test_actor_id)
        assert approved.status is SettlementStatus.APPROVED
        assert approved.approved_by_id == test_actor_id
        assert approved.approved_at is not None

        paid = settlement_service.register_payment(approved.id, test_actor_id, date(2024, 6, 30))
        assert paid.status is SettlementStatus.PAID
        assert paid.paid_at == date(2024, 6, 30)

        terminated = directory.get_employee(session, employee.id)
        assert terminated.status is EmployeeStatus.TERMINATED
        assert terminated.termination_date == date(2024, 6, 20)

        homologated = settlement_service.register_homologation(
            paid.id, test_actor_id, trct_number="TRCT-2024-0001",
        )
        assert homologated.status is SettlementStatus.HOMOLOGATED
        assert homologated.termination.trct_number == "TRCT-2024-0001"
        assert homologated.termination.homologation_date == date(2024, 12, 1)

    def test_payment_defaults_to_today(self, settlement_service, calculated, test_actor_id):
        settlement_service.approve(calculated.id, test_actor_id)
        paid = settlement_service.register_payment(calculated.id, test_actor_id)
        assert paid.paid_at == date(2024, 12, 1)

    def test_payment_without_date_refused_by_guard(self, settlement_service, calculated, test_actor_id):
        settlement_service.approve(calculated.id, test_actor_id)
        with pytest.raises(InvalidTransitionError, match="payment_date_recorded"):
            settlement_service.transition(calculated.id, SettlementStatus.PAID, test_actor_id)

    def test_approve_draft_refused(self, settlement_service, draft, test_actor_id, captured_logs):
        with pytest.raises(InvalidTransitionError) as exc_info:
            settlement_service.approve(draft.id, test_actor_id)
        assert exc_info.value.current_status == "DRAFT"
        assert settlement_service.get_document(draft.id).status is SettlementStatus.DRAFT
        assert any(r["message"] == "settlement_transition_rejected" for r in captured_logs())

    def test_transition_logs_carry_document_identifiers(
        self, settlement_service, calculated, employee, company_id, test_actor_id, captured_logs,
    ):
        settlement_service.approve(calculated.id, test_actor_id)

        changed = next(r for r in captured_logs() if r["message"] == "settlement_status_changed")
        assert changed["document_id"] == str(calculated.id)
        assert changed["employee_id"] == str(employee.id)
        assert changed["company_id"] == str(company_id)
        assert changed["actor_id"] == str(test_actor_id)

    def test_fold_log_lists_components(self, settlement_service, draft, employee, test_actor_id, captured_logs):
        settlement_service.recalculate(draft.id, test_actor_id)

        calc = next(r for r in captured_logs() if r["message"] == "settlement_document_calculated")
        assert calc["employee_id"] == str(employee.id)
        assert calc["net_value"] == "14040.29"
        assert {"code": "salary_balance", "amount": "2000.00"} in calc["components"]

    def test_reset_to_draft(self, settlement_service, calculated, test_actor_id):
        reset = settlement_service.transition(calculated.id, "DRAFT", test_actor_id)
        assert reset.status is SettlementStatus.DRAFT

    def test_cancel_requires_reason(self, settlement_service, draft, test_actor_id):
        with pytest.raises(ValidationError):
            settlement_service.cancel(draft.id, test_actor_id, "   ")

    def test_cancel_records_reason(self, settlement_service, calculated, test_actor_id):
        cancelled = settlement_service.cancel(calculated.id, test_actor_id, " employee stayed ")
        assert cancelled.status is SettlementStatus.CANCELLED
        assert cancelled.cancellation_reason == "employee stayed"
        assert cancelled.cancelled_at is not None

    def test_paid_cannot_be_cancelled(self, settlement_service, calculated, test_actor_id):
        settlement_service.approve(calculated.id, test_actor_id)
        settlement_service.register_payment(calculated.id, test_actor_id)
        with pytest.raises(InvalidTransitionError):
            settlement_service.cancel(calculated.id, test_actor_id, "too late")


class TestTerminalProtection:

    @pytest.fixture
    def homologated(self, settlement_service, calculated, test_actor_id):
        settlement_service.approve(calculated.id, test_actor_id)
        settlement_service.register_payment(calculated.id, test_actor_id)
        return settlement_service.register_homologation(calculated.id, test_actor_id)

    @pytest.mark.parametrize("target", list(SettlementStatus))
    def test_homologated_refuses_every_target(self, settlement_service, homologated, target, test_actor_id):
        with pytest.raises(TerminalStateError):
            settlement_service.transition(
                homologated.id, target, test_actor_id, payment_date=date(2024, 12, 1),
            )

    def test_recalculate_refused(self, settlement_service, homologated, test_actor_id):
        with pytest.raises(TerminalStateError):
            settlement_service.recalculate(homologated.id, test_actor_id)

    @pytest.mark.parametrize("target", list(SettlementStatus))
    def test_cancelled_refuses_every_target(self, settlement_service, draft, target, test_actor_id):
        settlement_service.cancel(draft.id, test_actor_id, "duplicate")
        with pytest.raises(TerminalStateError):
            settlement_service.transition(draft.id, target, test_actor_id)

    def test_grrf_refused_on_terminal(self, settlement_service, draft, test_actor_id):
        settlement_service.cancel(draft.id, test_actor_id, "duplicate")
        with pytest.raises(TerminalStateError):
            settlement_service.mark_grrf_generated(draft.id, test_actor_id)


class TestOtherDeductions:

    def test_update_on_draft(self, settlement_service, draft, test_actor_id):
        updated = settlement_service.update_other_deductions(draft.id, Decimal("80.00"), test_actor_id)
        assert updated.status is SettlementStatus.DRAFT
        assert updated.termination.other_deductions == Decimal("80.00")
        assert updated.other_deductions == Decimal("0")

    def test_update_recalculates_calculated(self, settlement_service, calculated, test_actor_id):
        updated = settlement_service.update_other_deductions(
            calculated.id, Decimal("40.29"), test_actor_id,
        )
        assert updated.status is SettlementStatus.CALCULATED
        assert updated.other_deductions == Decimal("40.29")
        assert updated.net_value == Decimal("14000.00")
        assert updated.net_is_consistent

    def test_update_refused_once_approved(self, settlement_service, calculated, test_actor_id):
        settlement_service.approve(calculated.id, test_actor_id)
        with pytest.raises(InvalidTransitionError):
            settlement_service.update_other_deductions(calculated.id, Decimal("10"), test_actor_id)
        assert settlement_service.get_document(calculated.id).other_deductions == Decimal("0")

    def test_negative_amount_rejected(self, settlement_service, draft, test_actor_id):
        with pytest.raises(ValidationError):
            settlement_service.update_other_deductions(draft.id, Decimal("-1"), test_actor_id)

    def test_thirteenth_document_rejected(
        self, settlement_service, create_employee, company_id, test_actor_id,
    ):
        create_employee("3000.00", date(2020, 1, 1))
        (document,) = settlement_service.calculate_first_installment(company_id, 2024, test_actor_id).outputs
        with pytest.raises(ValidationError):
            settlement_service.update_other_deductions(document.id, Decimal("10"), test_actor_id)


class TestGrrf:

    def test_mark_generated(self, settlement_service, calculated, test_actor_id):
        marked = settlement_service.mark_grrf_generated(calculated.id, test_actor_id)
        assert marked.termination.grrf_generated
        assert marked.status is SettlementStatus.CALCULATED


class TestQueries:

    def test_list_filters(self, settlement_service, draft, company_id, test_actor_id):
        settlement_service.calculate_first_installment(company_id, 2024, test_actor_id)

        assert len(settlement_service.list_documents(company_id)) == 2
        assert [d.id for d in settlement_service.list_documents(company_id, category="TERMINATION")] == [draft.id]
        assert [d.id for d in settlement_service.list_documents(company_id, status=SettlementStatus.DRAFT)] == [draft.id]
        assert [d.id for d in settlement_service.list_documents(company_id, employee_id=draft.employee_id)] == [draft.id]
        thirteenth = settlement_service.list_documents(company_id, kind="FIRST_INSTALLMENT")
        assert len(thirteenth) == 1
        assert settlement_service.list_documents(company_id, year=2023) == []
        assert settlement_service.list_documents(uuid4()) == []

    def test_get_unknown_document(self, settlement_service):
        with pytest.raises(DocumentNotFoundError):
            settlement_service.get_document(uuid4())
