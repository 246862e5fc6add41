"""Typed error hierarchy shared by forms, services and the HTTP layer.

    BudgetOfficeError
    +-- AuthorizationError     actor lacks the capability (never logged)
    +-- ValidationError        field violations (never logged as a failure)
    +-- NotFoundError          target record missing
    +-- DomainInvariantError   business rule rejection
    +-- OperationalError       store failure inside a transaction
"""

from __future__ import annotations


class BudgetOfficeError(Exception):
    """Base class for every error raised by the application core."""

    code: str = "BUDGET_OFFICE_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthorizationError(BudgetOfficeError):
    code = "NOT_AUTHORIZED"

    def __init__(self, message: str = "This action is unauthorized.") -> None:
        super().__init__(message)


class ValidationError(BudgetOfficeError):
    """One or more field violations.

    ``errors`` maps a field name to the list of messages for that field.
    """

    code = "VALIDATION_FAILED"

    def __init__(self, errors: dict[str, list[str]], message: str = "The given data was invalid.") -> None:
        super().__init__(message)
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, message: str) -> ValidationError:
        return cls({field: [message]})


class NotFoundError(BudgetOfficeError):
    code = "NOT_FOUND"


class DomainInvariantError(BudgetOfficeError):
    code = "DOMAIN_INVARIANT"


class OperationalError(BudgetOfficeError):
    code = "OPERATIONAL_ERROR"
