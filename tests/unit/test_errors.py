"""Unit tests for errors module."""

import pytest

from risk_evaluation.core.errors import (
    ERROR_STATUS_MAP,
    ConflictError,
    ConsistencyViolationError,
    EvaluationFailedError,
    EvaluationTimeoutError,
    NotFoundError,
    RiskEvaluationError,
    ValidationError,
    get_status_code,
)


class TestRiskEvaluationError:
    """Test base exception class."""

    def test_base_exception_creation(self):
        """Test creating base exception with message."""
        error = RiskEvaluationError("Test error message")
        assert error.message == "Test error message"
        assert error.details == {}
        assert str(error) == "Test error message"

    def test_base_exception_with_details(self):
        """Test creating base exception with details."""
        error = RiskEvaluationError("Test error", details={"transaction_id": "abc", "extra": 123})
        assert error.details == {"transaction_id": "abc", "extra": 123}


class TestErrorHierarchy:
    """Test exception subclassing."""

    def test_consistency_violation_is_conflict(self):
        assert issubclass(ConsistencyViolationError, ConflictError)

    def test_timeout_is_evaluation_failure(self):
        """Timeouts are handled like any other failed unit of work."""
        assert issubclass(EvaluationTimeoutError, EvaluationFailedError)

    @pytest.mark.parametrize(
        "error_cls",
        [ValidationError, NotFoundError, ConflictError, EvaluationFailedError],
    )
    def test_all_domain_errors_share_base(self, error_cls):
        assert issubclass(error_cls, RiskEvaluationError)


class TestGetStatusCode:
    """Test get_status_code function."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (ValidationError("bad amount"), 400),
            (NotFoundError("missing"), 404),
            (ConflictError("conflict"), 409),
            (ConsistencyViolationError("already evaluated"), 409),
            (EvaluationFailedError("rolled back"), 503),
            (EvaluationTimeoutError("timed out"), 503),
        ],
    )
    def test_domain_errors(self, error, expected):
        assert get_status_code(error) == expected

    def test_base_error_defaults_to_500(self):
        assert get_status_code(RiskEvaluationError("unknown")) == 500

    def test_non_domain_error_defaults_to_500(self):
        assert get_status_code(ValueError("nope")) == 500

    def test_error_status_map_contains_all_mapped_errors(self):
        assert set(ERROR_STATUS_MAP) == {
            ValidationError,
            NotFoundError,
            ConflictError,
            EvaluationFailedError,
        }
