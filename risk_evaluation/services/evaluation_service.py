"""Evaluation orchestrator: the single entry point of the risk pipeline.

One call evaluates one pending transaction inside one unit of work:

    lock user -> lock transaction row -> load/create profile (row lock)
    -> score -> classify -> commit side effects -> COMMIT

Any failure rolls the whole unit back, leaving the transaction ``pending``.
Evaluations for the same user are serialised by a per-user asyncio lock in
this process and by the profile row lock across processes.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from uuid import UUID

import pydantic
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from risk_evaluation.core.config import EvaluationConfig, Settings
from risk_evaluation.core.errors import (
    ConsistencyViolationError,
    EvaluationFailedError,
    EvaluationTimeoutError,
    NotFoundError,
    RiskEvaluationError,
    ValidationError,
)
from risk_evaluation.core.logging import (
    LoggerMixin,
    bind_evaluation_context,
    clear_evaluation_context,
)
from risk_evaluation.domain.models.transaction import (
    TransactionSnapshot,
    TransactionStatus,
    UserContext,
    UserStatsSnapshot,
)
from risk_evaluation.persistence.profile_repository import (
    TrustedDeviceRepository,
    UserRiskProfileRepository,
)
from risk_evaluation.persistence.transaction_repository import TransactionRepository
from risk_evaluation.services.alert_dispatcher import AlertDispatcher
from risk_evaluation.services.outcome_committer import OutcomeCommitter
from risk_evaluation.services.scoring_engine import (
    RuleSet,
    ScoringEngine,
    StatusClassifier,
)


def utc_now() -> datetime:
    return datetime.now(UTC)


class UserLockRegistry:
    """One asyncio.Lock per user, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._holders: dict[UUID, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: UUID) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._holders[user_id] = self._holders.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[user_id] -= 1
            if self._holders[user_id] == 0:
                del self._holders[user_id]
                del self._locks[user_id]

    def __len__(self) -> int:
        return len(self._locks)


class EvaluationOrchestrator(LoggerMixin):
    """Runs scoring, classification and the outcome commit as one unit of work."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scoring_engine: ScoringEngine | None = None,
        classifier: StatusClassifier | None = None,
        dispatcher: AlertDispatcher | None = None,
        config: EvaluationConfig | None = None,
        locks: UserLockRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory
        self.scoring_engine = scoring_engine or ScoringEngine()
        self.classifier = classifier or StatusClassifier.from_config(self.scoring_engine.rules.config)
        self.dispatcher = dispatcher
        self.config = config or EvaluationConfig()
        self.locks = locks or UserLockRegistry()
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: AlertDispatcher | None = None,
    ) -> "EvaluationOrchestrator":
        return cls(
            session_factory,
            scoring_engine=ScoringEngine(RuleSet(settings.rules)),
            classifier=StatusClassifier.from_config(settings.rules),
            dispatcher=dispatcher,
            config=settings.evaluation,
        )

    async def evaluate(self, transaction_id: UUID) -> TransactionStatus:
        """Evaluate a pending transaction and return its terminal status.

        Raises:
            NotFoundError: transaction or owning user does not exist
            ConsistencyViolationError: transaction is no longer pending
            EvaluationFailedError: a write failed or timed out; nothing was committed
        """
        user_id = await self._resolve_owner(transaction_id)

        bind_evaluation_context(transaction_id, user_id)
        try:
            self.logger.info("evaluation_started")
            async with self.locks.hold(user_id):
                status = await self._run_unit_of_work(transaction_id)
        finally:
            clear_evaluation_context()

        if status == TransactionStatus.BLOCKED and self.dispatcher is not None:
            self.dispatcher.schedule(transaction_id)
        return status

    async def _resolve_owner(self, transaction_id: UUID) -> UUID:
        async with self.session_factory() as session:
            user_id = await TransactionRepository(session).get_owner_id(transaction_id)
        if user_id is None:
            raise NotFoundError(
                "Transaction not found", details={"transaction_id": str(transaction_id)}
            )
        return user_id

    async def _run_unit_of_work(self, transaction_id: UUID) -> TransactionStatus:
        async with self.session_factory() as session:
            try:
                async with asyncio.timeout(self.config.timeout_seconds):
                    status = await self._evaluate_in_session(session, transaction_id)
                    await session.commit()
            except RiskEvaluationError as e:
                await session.rollback()
                self.logger.warning("evaluation_rejected", error=e.message, **e.details)
                raise
            except TimeoutError as e:
                await session.rollback()
                self.logger.error(
                    "evaluation_rolled_back",
                    reason="timeout",
                    timeout_seconds=self.config.timeout_seconds,
                )
                raise EvaluationTimeoutError(
                    "Transaction evaluation timed out",
                    details={
                        "transaction_id": str(transaction_id),
                        "timeout_seconds": self.config.timeout_seconds,
                    },
                ) from e
            except SQLAlchemyError as e:
                await session.rollback()
                self.logger.error("evaluation_rolled_back", reason="persistence", error=str(e))
                raise EvaluationFailedError(
                    "Transaction evaluation failed",
                    details={"transaction_id": str(transaction_id), "error": str(e)},
                ) from e
        return status

    async def _evaluate_in_session(
        self, session: AsyncSession, transaction_id: UUID
    ) -> TransactionStatus:
        transactions = TransactionRepository(session)

        transaction = await transactions.get_for_update(transaction_id)
        if transaction is None:
            raise NotFoundError(
                "Transaction not found", details={"transaction_id": str(transaction_id)}
            )
        if transaction.status != TransactionStatus.PENDING.value:
            raise ConsistencyViolationError(
                "Transaction has already been evaluated",
                details={"transaction_id": str(transaction_id), "status": transaction.status},
            )

        user = await transactions.get_user(transaction.user_id)
        if user is None:
            raise NotFoundError("User not found", details={"user_id": str(transaction.user_id)})

        stats = await UserRiskProfileRepository(session).get_or_create_for_update(user.id)
        trusted_device = await TrustedDeviceRepository(session).get_canonical(user.id)

        window = timedelta(seconds=self.scoring_engine.rules.config.velocity_window_seconds)
        recent_count = await transactions.count_recent_for_user(
            user.id,
            since=self.clock() - window,
            exclude_transaction_id=(
                None if self.config.count_in_flight_transaction else transaction.id
            ),
        )

        try:
            snapshot = TransactionSnapshot.model_validate(transaction)
        except pydantic.ValidationError as e:
            raise ValidationError(
                "Transaction is not valid for evaluation",
                details={
                    "transaction_id": str(transaction_id),
                    "errors": e.errors(include_url=False, include_context=False, include_input=False),
                },
            ) from e

        result = self.scoring_engine.score(
            snapshot,
            UserContext(
                user_id=user.id,
                trusted_device_id=trusted_device.device_id if trusted_device else None,
                recent_transaction_count=recent_count,
            ),
            UserStatsSnapshot.model_validate(stats),
        )
        status = self.classifier.classify(result.risk_score)

        await OutcomeCommitter(session, clock=self.clock).commit(
            transaction,
            user,
            stats,
            risk_score=result.risk_score,
            triggered_rules=result.triggered_rules,
            status=status,
        )

        self.logger.info(
            "transaction_evaluated",
            risk_score=result.risk_score,
            status=status.value,
            triggered_rules=list(result.triggered_rules),
            recent_transaction_count=recent_count,
        )
        return status
