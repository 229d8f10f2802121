"""Domain exceptions raised by the scheduling and credit ledgers.

Services raise these; routes turn them into HTTP errors with
``to_http_exception()`` so the status code lives next to the error kind.
"""

from typing import Any

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base class for every ledger error."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable = False

    def __init__(self, message: str, code: str | None = None, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                'message': self.message,
                'code': self.code,
                'details': self.details,
                'retryable': self.retryable,
            },
        )


class ValidationException(DomainException):
    """Malformed input: time range, weekday, time of day, missing field."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Record is absent or not owned by the caller."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Request clashes with current state; another input may succeed."""

    status_code = status.HTTP_409_CONFLICT


class InsufficientCreditException(DomainException):
    """Member has no pack credit left for the session."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED


class UpstreamPaymentException(DomainException):
    """Payment provider call failed. Safe to retry."""

    status_code = status.HTTP_502_BAD_GATEWAY
    retryable = True
