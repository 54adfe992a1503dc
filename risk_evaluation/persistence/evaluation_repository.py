"""Fraud evaluation and audit log repositories using SQLAlchemy 2.0 async.

Tables: fraud_evaluations, audit_logs

Both tables are append-only: rows are never updated or deleted here.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from risk_evaluation.persistence.models import AuditLog, FraudEvaluation

logger = logging.getLogger(__name__)


class FraudEvaluationRepository:
    """Repository for fraud_evaluations data access."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        transaction_id: UUID,
        risk_score: int,
        triggered_rules: list[str],
    ) -> FraudEvaluation:
        """Persist the evaluation record for a transaction."""
        evaluation = FraudEvaluation(
            transaction_id=transaction_id,
            risk_score=risk_score,
            rules_triggered=",".join(triggered_rules),
        )
        self.session.add(evaluation)
        await self.session.flush()
        return evaluation

    async def get_by_transaction_id(self, transaction_id: UUID) -> FraudEvaluation | None:
        result = await self.session.execute(
            select(FraudEvaluation).where(FraudEvaluation.transaction_id == transaction_id)
        )
        return result.scalar_one_or_none()


class AuditLogRepository:
    """Repository for audit_logs data access."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        event_type: str,
        entity_type: str,
        entity_id: str,
        description: str,
    ) -> AuditLog:
        """Append an entry to the audit trail."""
        entry = AuditLog(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_for_entity(self, entity_type: str, entity_id: str) -> list[AuditLog]:
        """Get the audit trail for an entity, oldest first."""
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at, AuditLog.id)
        )
        return list(result.scalars().all())
