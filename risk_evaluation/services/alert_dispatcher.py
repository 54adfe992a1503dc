"""Background delivery of queued blocked-transaction alerts."""

import asyncio
import contextlib
import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from risk_evaluation.alerts.channels import AlertChannel, BlockedTransactionAlert
from risk_evaluation.persistence.alert_outbox_repository import AlertOutboxRepository
from risk_evaluation.persistence.models import AlertOutboxEntry

logger = logging.getLogger(__name__)


class AlertDispatcher:
    """Hands committed outbox entries to the alert channel.

    Runs after the evaluation unit of work has committed. Delivery failures
    are logged and recorded on the outbox entry; they are never raised to the
    evaluation caller.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        channel: AlertChannel,
        subject: str = "URGENT: Transaction Blocked - Security Alert",
    ):
        self.session_factory = session_factory
        self.channel = channel
        self.subject = subject
        self._tasks: set[asyncio.Task] = set()
        self._sweeper: asyncio.Task | None = None
        # Scheduled deliveries and sweeps must not send the same entry twice.
        self._lock = asyncio.Lock()

    def schedule(self, transaction_id: UUID) -> asyncio.Task:
        """Deliver the transaction's pending alerts in a background task."""
        task = asyncio.create_task(self._dispatch_safely(transaction_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for all scheduled deliveries (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def start_sweeper(self, interval_seconds: float) -> asyncio.Task:
        """Retry undelivered alerts now and then every ``interval_seconds``.

        Picks up entries whose delivery failed and entries committed by a
        process that stopped before dispatching them.
        """
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_periodically(interval_seconds))
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweeper
        self._sweeper = None

    async def sweep(self) -> int:
        """Deliver every undelivered alert; errors are logged, not raised."""
        try:
            return await self.dispatch_pending()
        except Exception as e:
            logger.exception("Alert sweep error", extra={"error": str(e)})
            return 0

    async def _sweep_periodically(self, interval_seconds: float) -> None:
        while True:
            await self.sweep()
            await asyncio.sleep(interval_seconds)

    async def dispatch_pending(self, transaction_id: UUID | None = None) -> int:
        """Deliver undispatched alerts, optionally for one transaction.

        Returns the number of alerts delivered.
        """
        delivered = 0
        async with self._lock, self.session_factory() as session:
            repo = AlertOutboxRepository(session)
            entries = await repo.list_undispatched(transaction_id=transaction_id)
            for entry in entries:
                try:
                    await self.channel.send(self._build_alert(entry))
                except Exception as e:
                    logger.exception(
                        "Alert delivery failed",
                        extra={
                            "alert_id": str(entry.id),
                            "transaction_id": str(entry.transaction_id),
                            "error": str(e),
                        },
                    )
                    await repo.record_failure(entry, str(e) or type(e).__name__)
                else:
                    await repo.mark_dispatched(entry, datetime.now(UTC))
                    delivered += 1
            await session.commit()

        if delivered:
            logger.info(
                "Alerts delivered",
                extra={"count": delivered, "transaction_id": str(transaction_id)},
            )
        return delivered

    async def _dispatch_safely(self, transaction_id: UUID) -> int:
        try:
            return await self.dispatch_pending(transaction_id)
        except Exception as e:
            logger.exception(
                "Alert dispatch error",
                extra={"transaction_id": str(transaction_id), "error": str(e)},
            )
            return 0

    def _build_alert(self, entry: AlertOutboxEntry) -> BlockedTransactionAlert:
        payload = entry.payload or {}
        return BlockedTransactionAlert(
            alert_id=entry.id,
            transaction_id=entry.transaction_id,
            user_id=entry.user_id,
            recipient=payload.get("recipient"),
            subject=self.subject,
            amount=payload.get("amount", 0.0),
            risk_score=payload.get("risk_score", 0),
            payment_method=payload.get("payment_method"),
            device_id=payload.get("device_id"),
            ip_address=payload.get("ip_address"),
        )
