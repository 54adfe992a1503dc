"""User risk profile and trusted device repositories using SQLAlchemy 2.0 async.

Tables: user_transaction_stats, trusted_devices
"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from risk_evaluation.persistence.models import TrustedDevice, UserTransactionStat

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class UserRiskProfileRepository:
    """Repository for user_transaction_stats data access."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_update(self, user_id: UUID) -> UserTransactionStat | None:
        """Get the user's stats row, locking it for the rest of the unit of work."""
        result = await self.session.execute(
            select(UserTransactionStat)
            .where(UserTransactionStat.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_or_create_for_update(self, user_id: UUID) -> UserTransactionStat:
        """Get the user's stats row, creating an empty one if absent."""
        stats = await self.get_for_update(user_id)
        if stats is not None:
            return stats

        stats = UserTransactionStat(
            user_id=user_id,
            total_txns=0,
            total_amount=Decimal("0"),
            avg_amount=Decimal("0"),
        )
        self.session.add(stats)
        # Flush now so a concurrent creator hits the unique constraint inside this unit of work
        await self.session.flush()
        logger.debug("User risk profile created", extra={"user_id": str(user_id)})
        return stats

    async def record_success(
        self,
        stats: UserTransactionStat,
        amount: Decimal,
        at: datetime,
    ) -> UserTransactionStat:
        """Fold a successful transaction amount into the running baseline."""
        new_total_txns = stats.total_txns + 1
        new_total_amount = Decimal(stats.total_amount) + Decimal(amount)
        new_avg_amount = (new_total_amount / new_total_txns).quantize(CENTS, rounding=ROUND_HALF_UP)

        stats.total_txns = new_total_txns
        stats.total_amount = new_total_amount
        stats.avg_amount = new_avg_amount
        stats.last_updated_at = at
        await self.session.flush()
        return stats


class TrustedDeviceRepository:
    """Repository for trusted_devices data access."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_canonical(self, user_id: UUID) -> TrustedDevice | None:
        """Get the user's first registered device."""
        result = await self.session.execute(
            select(TrustedDevice)
            .where(TrustedDevice.user_id == user_id)
            .order_by(TrustedDevice.first_seen_at, TrustedDevice.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: UUID) -> list[TrustedDevice]:
        result = await self.session.execute(
            select(TrustedDevice)
            .where(TrustedDevice.user_id == user_id)
            .order_by(TrustedDevice.first_seen_at, TrustedDevice.id)
        )
        return list(result.scalars().all())

    async def register(self, user_id: UUID, device_id: str, first_seen_at: datetime) -> TrustedDevice:
        """Register a device as trusted for the user."""
        device = TrustedDevice(user_id=user_id, device_id=device_id, first_seen_at=first_seen_at)
        self.session.add(device)
        await self.session.flush()
        return device
