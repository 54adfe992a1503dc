"""Unit tests for database module."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

from risk_evaluation.core.config import DatabaseConfig
from risk_evaluation.core.database import (
    Base,
    create_async_engine,
    create_session_factory,
    drop_models,
    init_models,
)

EXPECTED_TABLES = {
    "users",
    "transactions",
    "user_transaction_stats",
    "trusted_devices",
    "fraud_evaluations",
    "audit_logs",
    "notifications",
    "alert_outbox",
}


async def _table_names(engine: AsyncEngine) -> set[str]:
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))


class TestCreateEngine:
    """Test database engine creation."""

    def test_sqlite_engine(self, tmp_path):
        """Test a SQLite URL builds an aiosqlite engine without pool options."""
        config = DatabaseConfig(database_url_app=f"sqlite+aiosqlite:///{tmp_path / 'x.db'}")
        engine = create_async_engine(config)
        assert engine.dialect.name == "sqlite"

    def test_postgres_engine_uses_asyncpg(self):
        """Test a postgresql:// URL is routed through asyncpg."""
        config = DatabaseConfig(database_url_app="postgresql://u:p@db.internal:5432/risk")
        engine = create_async_engine(config)
        assert engine.dialect.name == "postgresql"
        assert engine.dialect.driver == "asyncpg"


class TestSessionFactory:
    """Test session factory creation."""

    def test_create_session_factory_with_mock_engine(self):
        """Test session factory keeps objects usable after commit."""
        mock_engine = MagicMock(spec=AsyncEngine)
        factory = create_session_factory(mock_engine)
        assert factory.kw["expire_on_commit"] is False
        assert factory.kw["autoflush"] is False


class TestSchema:
    """Test schema creation from ORM metadata."""

    @pytest.mark.asyncio
    async def test_init_models_creates_all_tables(self, engine):
        assert EXPECTED_TABLES <= await _table_names(engine)

    @pytest.mark.asyncio
    async def test_drop_models_removes_tables(self, engine):
        await drop_models(engine)
        assert EXPECTED_TABLES.isdisjoint(await _table_names(engine))

        await init_models(engine)
        assert EXPECTED_TABLES <= await _table_names(engine)

    def test_base_metadata_registers_models(self):
        import risk_evaluation.persistence.models  # noqa: F401

        assert EXPECTED_TABLES <= set(Base.metadata.tables)
