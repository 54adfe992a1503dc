"""Post-evaluation side effects.

Every write goes through the caller's session and is flushed immediately, so
a failure at any step surfaces before the unit of work commits and the whole
sequence is discarded together.
"""

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from risk_evaluation.core.errors import ConsistencyViolationError
from risk_evaluation.domain.models.transaction import (
    AlertType,
    NotificationPriority,
    NotificationType,
    TransactionStatus,
)
from risk_evaluation.persistence.alert_outbox_repository import AlertOutboxRepository
from risk_evaluation.persistence.evaluation_repository import (
    AuditLogRepository,
    FraudEvaluationRepository,
)
from risk_evaluation.persistence.models import Transaction, User, UserTransactionStat
from risk_evaluation.persistence.notification_repository import NotificationRepository
from risk_evaluation.persistence.profile_repository import (
    TrustedDeviceRepository,
    UserRiskProfileRepository,
)
from risk_evaluation.persistence.transaction_repository import TransactionRepository

logger = logging.getLogger(__name__)

AUDIT_ENTITY_TYPE = "Transaction"

# (type, priority, title, verb phrase) per notifiable outcome
NOTIFICATION_TEMPLATES = {
    TransactionStatus.BLOCKED: (
        NotificationType.SECURITY,
        NotificationPriority.HIGH,
        "Transaction Blocked",
        "was blocked due to high risk",
    ),
    TransactionStatus.FLAGGED: (
        NotificationType.TRANSACTION,
        NotificationPriority.MEDIUM,
        "Transaction Flagged",
        "was flagged for review",
    ),
}


def format_amount(amount: Decimal) -> str:
    """Whole-rupee amount with thousands delimiters, e.g. 150000.50 -> '150,000'."""
    return f"{int(amount):,}"


def utc_now() -> datetime:
    return datetime.now(UTC)


class OutcomeCommitter:
    """Persists an evaluation outcome and all of its dependent side effects."""

    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.session = session
        self.clock = clock
        self.transactions = TransactionRepository(session)
        self.evaluations = FraudEvaluationRepository(session)
        self.audit_logs = AuditLogRepository(session)
        self.notifications = NotificationRepository(session)
        self.profiles = UserRiskProfileRepository(session)
        self.devices = TrustedDeviceRepository(session)
        self.alert_outbox = AlertOutboxRepository(session)

    async def commit(
        self,
        transaction: Transaction,
        user: User,
        stats: UserTransactionStat,
        risk_score: int,
        triggered_rules: Sequence[str],
        status: TransactionStatus,
    ) -> None:
        """Write the evaluation outcome. Raises on the first failed write."""
        await self.evaluations.create(
            transaction_id=transaction.id,
            risk_score=risk_score,
            triggered_rules=list(triggered_rules),
        )

        if not await self.transactions.mark_evaluated(transaction, status, risk_score):
            raise ConsistencyViolationError(
                "Transaction has already been evaluated",
                details={"transaction_id": str(transaction.id), "status": transaction.status},
            )

        if status == TransactionStatus.BLOCKED:
            await self._queue_blocked_alert(transaction, user, risk_score)

        if status in NOTIFICATION_TEMPLATES:
            await self._create_notification(transaction, user, risk_score, status)

        await self.audit_logs.append(
            event_type=f"TRANSACTION_{status.value.upper()}",
            entity_type=AUDIT_ENTITY_TYPE,
            entity_id=str(transaction.id),
            description=f"Triggered rules: {','.join(triggered_rules)}",
        )

        if status == TransactionStatus.SUCCESS:
            await self._learn_behavior(transaction, user, stats)

    async def _queue_blocked_alert(
        self, transaction: Transaction, user: User, risk_score: int
    ) -> None:
        await self.alert_outbox.enqueue(
            transaction_id=transaction.id,
            user_id=user.id,
            alert_type=AlertType.TRANSACTION_BLOCKED,
            payload={
                "transaction_id": str(transaction.id),
                "user_id": str(user.id),
                "recipient": user.email,
                "amount": float(transaction.amount),
                "risk_score": risk_score,
                "payment_method": transaction.payment_method,
                "device_id": transaction.device_id,
                "ip_address": transaction.ip_address,
            },
        )
        logger.info(
            "Blocked transaction alert queued",
            extra={"transaction_id": str(transaction.id), "user_id": str(user.id)},
        )

    async def _create_notification(
        self,
        transaction: Transaction,
        user: User,
        risk_score: int,
        status: TransactionStatus,
    ) -> None:
        notification_type, priority, title, outcome = NOTIFICATION_TEMPLATES[status]
        amount = Decimal(transaction.amount)
        await self.notifications.create(
            user_id=user.id,
            notification_type=notification_type,
            title=title,
            message=(
                f"A transaction of ₹{format_amount(amount)} {outcome} (Score: {risk_score})."
            ),
            priority=priority,
            data={
                "transaction_id": str(transaction.id),
                "amount": float(amount),
                "risk_score": risk_score,
                "status": status.value.upper(),
            },
        )

    async def _learn_behavior(
        self, transaction: Transaction, user: User, stats: UserTransactionStat
    ) -> None:
        now = self.clock()
        await self.profiles.record_success(stats, Decimal(transaction.amount), now)

        device_id = transaction.device_id
        if not device_id or not device_id.strip():
            return
        if await self.devices.get_canonical(user.id) is not None:
            return

        await self.devices.register(user.id, device_id, first_seen_at=now)
        logger.info(
            "Trusted device registered",
            extra={"user_id": str(user.id), "device_id": device_id},
        )
