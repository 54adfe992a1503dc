"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

ROOT = Path(__file__).resolve().parents[1]

# Add project root to path for imports
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Set test environment variables before importing the service
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("ALERTS_CHANNEL", "log")

from risk_evaluation.core.config import DatabaseConfig, EvaluationConfig  # noqa: E402
from risk_evaluation.core.database import (  # noqa: E402
    create_async_engine,
    create_session_factory,
    init_models,
)
from risk_evaluation.domain.models.transaction import (  # noqa: E402
    TransactionSnapshot,
    UserContext,
    UserStatsSnapshot,
)
from risk_evaluation.persistence.models import Transaction, User  # noqa: E402
from risk_evaluation.services.evaluation_service import EvaluationOrchestrator  # noqa: E402

UserFactory = Callable[..., Awaitable[UUID]]
TransactionFactory = Callable[..., Awaitable[UUID]]


# =============================================================================
# Scoring snapshots
# =============================================================================


def make_snapshot(
    amount: str | Decimal = "500",
    device_id: str | None = "device-1",
    payment_method: str = "upi",
    user_id: UUID | None = None,
) -> TransactionSnapshot:
    """Build a transaction snapshot for scoring tests."""
    return TransactionSnapshot(
        id=uuid4(),
        user_id=user_id or uuid4(),
        amount=Decimal(amount),
        payment_method=payment_method,
        device_id=device_id,
    )


def make_stats(total_txns: int = 0, avg_amount: str | Decimal = "0") -> UserStatsSnapshot:
    """Build a historical stats snapshot with a consistent total."""
    avg = Decimal(avg_amount)
    return UserStatsSnapshot(total_txns=total_txns, total_amount=avg * total_txns, avg_amount=avg)


def make_user_context(
    trusted_device_id: str | None = "device-1", recent_transaction_count: int = 0
) -> UserContext:
    return UserContext(
        user_id=uuid4(),
        trusted_device_id=trusted_device_id,
        recent_transaction_count=recent_transaction_count,
    )


# =============================================================================
# Database fixtures (on-disk SQLite via aiosqlite)
# =============================================================================


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Fresh SQLite database with all tables created."""
    config = DatabaseConfig(database_url_app=f"sqlite+aiosqlite:///{tmp_path / 'risk.db'}")
    engine = create_async_engine(config)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def make_user(session_factory: async_sessionmaker[AsyncSession]) -> UserFactory:
    """Factory that persists a user and returns its ID."""

    async def _make(email: str | None = None, full_name: str = "Test User") -> UUID:
        user = User(email=email or f"user-{uuid4().hex[:8]}@example.com", full_name=full_name)
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user.id

    return _make


@pytest.fixture
def make_transaction(session_factory: async_sessionmaker[AsyncSession]) -> TransactionFactory:
    """Factory that persists a pending transaction and returns its ID."""

    async def _make(
        user_id: UUID,
        amount: str | Decimal = "500.00",
        device_id: str | None = "device-1",
        payment_method: str = "upi",
        ip_address: str | None = "203.0.113.10",
        created_at: datetime | None = None,
    ) -> UUID:
        transaction = Transaction(
            user_id=user_id,
            amount=Decimal(amount),
            payment_method=payment_method,
            device_id=device_id,
            ip_address=ip_address,
        )
        if created_at is not None:
            transaction.created_at = created_at
        async with session_factory() as session:
            session.add(transaction)
            await session.commit()
        return transaction.id

    return _make


@pytest.fixture
def orchestrator(session_factory: async_sessionmaker[AsyncSession]) -> EvaluationOrchestrator:
    """Orchestrator with default rules and no alert dispatcher."""
    return EvaluationOrchestrator(session_factory, config=EvaluationConfig())


# =============================================================================
# Mock session
# =============================================================================


@pytest.fixture
def mock_session() -> MagicMock:
    """Mock AsyncSession for repository and service unit tests."""
    session = MagicMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.refresh = AsyncMock()
    session.get = AsyncMock()
    session.add = MagicMock()
    return session
