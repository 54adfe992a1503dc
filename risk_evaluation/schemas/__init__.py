"""Schemas package for request/response models."""

from risk_evaluation.schemas.transaction import (
    ErrorResponse,
    EvaluationResponse,
    TransactionCreate,
    TransactionEvaluationResponse,
    TransactionResponse,
)

__all__ = [
    "TransactionCreate",
    "TransactionResponse",
    "EvaluationResponse",
    "TransactionEvaluationResponse",
    "ErrorResponse",
]
