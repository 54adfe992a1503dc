"""Transaction risk evaluation API routes.

Endpoints:
- POST /v1/transactions - Submit a transaction and evaluate it
- POST /v1/transactions/{id}/evaluation - Evaluate an existing pending transaction
- GET /v1/transactions/{id}/evaluation - Get the evaluation outcome
"""

import logging
from uuid import UUID

from fastapi import APIRouter, status

from risk_evaluation.core.dependencies import DbSession, Orchestrator
from risk_evaluation.persistence.models import FraudEvaluation, Transaction
from risk_evaluation.schemas.transaction import (
    ErrorResponse,
    EvaluationResponse,
    TransactionCreate,
    TransactionEvaluationResponse,
    TransactionResponse,
)
from risk_evaluation.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["Transactions"])

EVALUATION_ERROR_RESPONSES: dict[int | str, dict] = {
    404: {"model": ErrorResponse, "description": "Transaction or user not found"},
    409: {"model": ErrorResponse, "description": "Transaction already evaluated"},
    503: {"model": ErrorResponse, "description": "Evaluation failed and was rolled back"},
}


def _evaluation_response(
    transaction: Transaction, evaluation: FraudEvaluation
) -> EvaluationResponse:
    return EvaluationResponse(
        transaction_id=transaction.id,
        status=transaction.status,
        risk_score=evaluation.risk_score,
        triggered_rules=evaluation.rules,
        evaluated_at=evaluation.created_at,
    )


@router.post(
    "",
    response_model=TransactionEvaluationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit transaction",
    description="Create a pending transaction and run the risk evaluation on it.",
    responses={422: {"description": "Validation error"}, **EVALUATION_ERROR_RESPONSES},
)
async def submit_transaction(
    payload: TransactionCreate,
    session: DbSession,
    orchestrator: Orchestrator,
) -> TransactionEvaluationResponse:
    """Submit a transaction for evaluation.

    The pending transaction is committed before evaluation starts, so a
    failed evaluation leaves it in ``pending`` for a later retry.
    """
    service = TransactionService(session)
    transaction = await service.create_pending(payload)
    await session.commit()

    await orchestrator.evaluate(transaction.id)

    await session.refresh(transaction)
    transaction, evaluation = await service.get_evaluation(transaction.id)
    return TransactionEvaluationResponse(
        transaction=TransactionResponse.model_validate(transaction),
        evaluation=_evaluation_response(transaction, evaluation),
    )


@router.post(
    "/{transaction_id}/evaluation",
    response_model=EvaluationResponse,
    summary="Evaluate transaction",
    description="Run the risk evaluation on an existing pending transaction.",
    responses=EVALUATION_ERROR_RESPONSES,
)
async def evaluate_transaction(
    transaction_id: UUID,
    session: DbSession,
    orchestrator: Orchestrator,
) -> EvaluationResponse:
    """Evaluate a pending transaction."""
    await orchestrator.evaluate(transaction_id)

    transaction, evaluation = await TransactionService(session).get_evaluation(transaction_id)
    return _evaluation_response(transaction, evaluation)


@router.get(
    "/{transaction_id}/evaluation",
    response_model=EvaluationResponse,
    summary="Get evaluation",
    description="Get the evaluation outcome of a transaction.",
    responses={404: {"model": ErrorResponse, "description": "Transaction not found or not evaluated"}},
)
async def get_evaluation(transaction_id: UUID, session: DbSession) -> EvaluationResponse:
    """Get the persisted evaluation of a transaction."""
    transaction, evaluation = await TransactionService(session).get_evaluation(transaction_id)
    return _evaluation_response(transaction, evaluation)
