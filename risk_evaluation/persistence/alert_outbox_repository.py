"""Alert outbox repository using SQLAlchemy 2.0 async.

Table: alert_outbox

Entries are written inside the evaluation unit of work, so an alert exists
if and only if the blocked outcome that produced it was committed. Delivery
state (dispatched_at, attempts, last_error) is updated afterwards in a
separate session.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from risk_evaluation.domain.models.transaction import AlertType
from risk_evaluation.persistence.models import AlertOutboxEntry

logger = logging.getLogger(__name__)


class AlertOutboxRepository:
    """Repository for alert_outbox data access."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def enqueue(
        self,
        transaction_id: UUID,
        user_id: UUID,
        alert_type: AlertType,
        payload: dict[str, Any],
    ) -> AlertOutboxEntry:
        entry = AlertOutboxEntry(
            transaction_id=transaction_id,
            user_id=user_id,
            alert_type=alert_type.value,
            payload=payload,
            attempts=0,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_undispatched(
        self,
        transaction_id: UUID | None = None,
        limit: int = 100,
    ) -> list[AlertOutboxEntry]:
        """List alerts not yet delivered, oldest first."""
        conditions = [AlertOutboxEntry.dispatched_at.is_(None)]
        if transaction_id is not None:
            conditions.append(AlertOutboxEntry.transaction_id == transaction_id)

        result = await self.session.execute(
            select(AlertOutboxEntry)
            .where(*conditions)
            .order_by(AlertOutboxEntry.created_at, AlertOutboxEntry.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_for_transaction(self, transaction_id: UUID) -> list[AlertOutboxEntry]:
        result = await self.session.execute(
            select(AlertOutboxEntry)
            .where(AlertOutboxEntry.transaction_id == transaction_id)
            .order_by(AlertOutboxEntry.created_at)
        )
        return list(result.scalars().all())

    async def mark_dispatched(self, entry: AlertOutboxEntry, at: datetime) -> AlertOutboxEntry:
        entry.attempts += 1
        entry.dispatched_at = at
        entry.last_error = None
        await self.session.flush()
        return entry

    async def record_failure(self, entry: AlertOutboxEntry, error: str) -> AlertOutboxEntry:
        entry.attempts += 1
        entry.last_error = error[:2000]
        await self.session.flush()
        return entry
