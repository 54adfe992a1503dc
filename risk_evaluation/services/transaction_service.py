"""Transaction intake and evaluation lookup service."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from risk_evaluation.core.errors import NotFoundError
from risk_evaluation.persistence.evaluation_repository import FraudEvaluationRepository
from risk_evaluation.persistence.models import FraudEvaluation, Transaction
from risk_evaluation.persistence.transaction_repository import TransactionRepository
from risk_evaluation.schemas.transaction import TransactionCreate

logger = logging.getLogger(__name__)


class TransactionService:
    """Creates pending transactions and reads back their evaluations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = TransactionRepository(session)
        self.evaluations = FraudEvaluationRepository(session)

    async def create_pending(self, payload: TransactionCreate) -> Transaction:
        """Persist a new transaction in ``pending`` status.

        Raises:
            NotFoundError: the user does not exist
        """
        if await self.repository.get_user(payload.user_id) is None:
            raise NotFoundError("User not found", details={"user_id": str(payload.user_id)})

        transaction = await self.repository.create(
            user_id=payload.user_id,
            amount=payload.amount,
            payment_method=payload.payment_method.value,
            device_id=payload.device_id,
            ip_address=payload.ip_address,
        )
        logger.info(
            "Pending transaction created",
            extra={"transaction_id": str(transaction.id), "user_id": str(payload.user_id)},
        )
        return transaction

    async def get_transaction(self, transaction_id: UUID) -> Transaction:
        transaction = await self.repository.get_by_id(transaction_id)
        if transaction is None:
            raise NotFoundError(
                "Transaction not found", details={"transaction_id": str(transaction_id)}
            )
        return transaction

    async def get_evaluation(self, transaction_id: UUID) -> tuple[Transaction, FraudEvaluation]:
        """Get a transaction with its evaluation record.

        Raises:
            NotFoundError: unknown transaction, or it has not been evaluated yet
        """
        transaction = await self.get_transaction(transaction_id)
        evaluation = await self.evaluations.get_by_transaction_id(transaction_id)
        if evaluation is None:
            raise NotFoundError(
                "Transaction has not been evaluated",
                details={"transaction_id": str(transaction_id), "status": transaction.status},
            )
        return transaction, evaluation
