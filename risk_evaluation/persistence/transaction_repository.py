"""Transaction repository using SQLAlchemy 2.0 async.

Table: transactions
"""

import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from risk_evaluation.domain.models.transaction import TransactionStatus
from risk_evaluation.persistence.models import Transaction, User

logger = logging.getLogger(__name__)


class TransactionRepository:
    """Repository for transactions data access."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, transaction_id: UUID) -> Transaction | None:
        """Get transaction by ID."""
        return await self.session.get(Transaction, transaction_id)

    async def get_for_update(self, transaction_id: UUID) -> Transaction | None:
        """Get transaction by ID, locking the row for the rest of the unit of work."""
        result = await self.session.execute(
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_owner_id(self, transaction_id: UUID) -> UUID | None:
        """Get the owning user ID of a transaction."""
        result = await self.session.execute(
            select(Transaction.user_id).where(Transaction.id == transaction_id)
        )
        return result.scalar_one_or_none()

    async def get_user(self, user_id: UUID) -> User | None:
        return await self.session.get(User, user_id)

    async def create(
        self,
        user_id: UUID,
        amount: Decimal,
        payment_method: str,
        device_id: str | None = None,
        ip_address: str | None = None,
    ) -> Transaction:
        """Create a new pending transaction."""
        transaction = Transaction(
            user_id=user_id,
            amount=amount,
            payment_method=payment_method,
            device_id=device_id,
            ip_address=ip_address,
            status=TransactionStatus.PENDING.value,
            risk_score=0,
        )
        self.session.add(transaction)
        await self.session.flush()
        return transaction

    async def count_recent_for_user(
        self,
        user_id: UUID,
        since: datetime,
        exclude_transaction_id: UUID | None = None,
    ) -> int:
        """Count the user's transactions created strictly after ``since``."""
        conditions = [Transaction.user_id == user_id, Transaction.created_at > since]
        if exclude_transaction_id is not None:
            conditions.append(Transaction.id != exclude_transaction_id)

        result = await self.session.execute(select(func.count(Transaction.id)).where(*conditions))
        return result.scalar() or 0

    async def mark_evaluated(
        self,
        transaction: Transaction,
        status: TransactionStatus,
        risk_score: int,
    ) -> bool:
        """Move a pending transaction to its terminal status.

        The caller must hold the row lock from ``get_for_update``.
        Returns False when the transaction is no longer pending.
        """
        if transaction.status != TransactionStatus.PENDING.value:
            return False

        transaction.status = status.value
        transaction.risk_score = risk_score
        await self.session.flush()
        return True
