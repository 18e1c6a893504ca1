"""
Typed Exception Hierarchy for the Settlement Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Settlement calculations feed legal documents (TRCT, 13th salary receipts).
Callers must react to failures by TYPE and CODE, never by parsing messages:

    try:
        service.transition(document_id, SettlementStatus.APPROVED, ...)
    except InvalidTransitionError as e:
        # Recoverable: query e.current_status and retry with a legal target
        return {"error": e.code, "current": e.current_status}
    except BracketTableNotFoundError as e:
        # Fatal: configuration gap for e.year, do not retry
        alert_operations(e.year)

Every exception:
  1. has a ``code`` class attribute (machine-readable, API-safe);
  2. carries its context as attributes (not only in the message).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SettlementEngineError (base)
    |
    +-- ValidationError
    |   +-- DuplicateTerminationError
    |
    +-- ConfigurationError
    |   +-- BracketTableNotFoundError
    |
    +-- InvalidTransitionError
    |   +-- TerminalStateError
    |
    +-- NotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- DocumentNotFoundError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CATEGORIES
===============================================================================

    ValidationError       malformed input, rejected before any calculation
    ConfigurationError    missing/malformed statutory tables; fatal, not retried
    InvalidTransitionError  workflow violation; caller may re-read and retry
    NotFoundError         unknown employee or document
    ConcurrencyError      another transaction changed the document first
===============================================================================
"""

from __future__ import annotations

from typing import Any


class SettlementEngineError(Exception):
    """
    Base exception for all settlement engine errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "SETTLEMENT_ENGINE_ERROR"


# Validation


class ValidationError(SettlementEngineError):
    """Input rejected before any calculation ran."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")


class DuplicateTerminationError(ValidationError):
    """The employee already has a termination settlement that is not cancelled."""

    code: str = "DUPLICATE_TERMINATION"

    def __init__(self, employee_id: str, existing_document_id: str):
        self.employee_id = employee_id
        self.existing_document_id = existing_document_id
        super().__init__(
            "employee_id",
            employee_id,
            f"termination {existing_document_id} is already open",
        )


# Configuration


class ConfigurationError(SettlementEngineError):
    """Statutory configuration is missing or malformed."""

    code: str = "CONFIGURATION_ERROR"


class BracketTableNotFoundError(ConfigurationError):
    """No statutory bracket tables are configured for the requested year."""

    code: str = "BRACKET_TABLE_NOT_FOUND"

    def __init__(self, year: int, available_years: tuple[int, ...] = ()):
        self.year = year
        self.available_years = available_years
        super().__init__(
            f"No statutory tables configured for {year} "
            f"(available: {', '.join(str(y) for y in available_years) or 'none'})"
        )


# Workflow


class InvalidTransitionError(SettlementEngineError):
    """Requested status change is not in the workflow transition table."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        workflow: str,
        current_status: str,
        target_status: str,
        reason: str | None = None,
    ):
        self.workflow = workflow
        self.current_status = current_status
        self.target_status = target_status
        self.reason = reason
        message = (
            f"Transition {current_status} -> {target_status} "
            f"not allowed in workflow '{workflow}'"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class TerminalStateError(InvalidTransitionError):
    """Document is in a terminal state; nothing may change it."""

    code: str = "TERMINAL_STATE"

    def __init__(self, workflow: str, current_status: str, target_status: str):
        super().__init__(
            workflow,
            current_status,
            target_status,
            reason=f"'{current_status}' is terminal",
        )


# Lookup


class NotFoundError(SettlementEngineError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"


class EmployeeNotFoundError(NotFoundError):
    """Employee record not found for the given company."""

    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__(f"Employee not found: {employee_id}")


class DocumentNotFoundError(NotFoundError):
    """Settlement document not found for the given company."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Settlement document not found: {document_id}")


# Concurrency


class ConcurrencyError(SettlementEngineError):
    """Base exception for concurrent-modification conflicts."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
