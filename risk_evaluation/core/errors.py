"""
Domain-specific exceptions for the Transaction Risk Evaluation service.

These exceptions represent pipeline failures and business rule violations
and are mapped to appropriate HTTP status codes in the API layer.
"""

from typing import Any


class RiskEvaluationError(Exception):
    """Base exception for all risk evaluation domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(RiskEvaluationError):
    """
    Raised when transaction input fails validation before the pipeline runs.

    Examples:
    - Non-positive amount
    - Empty payment method

    HTTP Status: 400 Bad Request
    """

    pass


class NotFoundError(RiskEvaluationError):
    """
    Raised when a requested resource does not exist.

    Examples:
    - Transaction ID not found
    - Owning user not found
    - No evaluation recorded for a transaction

    HTTP Status: 404 Not Found
    """

    pass


class ConflictError(RiskEvaluationError):
    """
    Raised when an operation conflicts with current state.

    HTTP Status: 409 Conflict
    """

    pass


class ConsistencyViolationError(ConflictError):
    """
    Raised when a transaction that already left ``pending`` is evaluated again.

    The attempt is rejected without touching any durable state.

    HTTP Status: 409 Conflict
    """

    pass


class EvaluationFailedError(RiskEvaluationError):
    """
    Raised when a write inside the evaluation unit of work fails.

    Every change made by the attempt has been rolled back and the
    transaction is still ``pending``; callers may retry the evaluation.

    HTTP Status: 503 Service Unavailable
    """

    pass


class EvaluationTimeoutError(EvaluationFailedError):
    """
    Raised when the evaluation unit of work exceeds its time budget.

    Handled exactly like any other mid-commit failure.

    HTTP Status: 503 Service Unavailable
    """

    pass


ERROR_STATUS_MAP = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    EvaluationFailedError: 503,
}


def get_status_code(error: Exception) -> int:
    """
    Get the HTTP status code for a given exception.

    Subclasses resolve to the code of their nearest mapped ancestor.

    Args:
        error: The exception instance

    Returns:
        HTTP status code (defaults to 500 for unknown errors)
    """
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS_MAP:
            return ERROR_STATUS_MAP[cls]
    return 500
