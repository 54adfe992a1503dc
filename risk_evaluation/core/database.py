"""Database connection and session management."""

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.ext.asyncio import (
    create_async_engine as sqlalchemy_create_async_engine,
)
from sqlalchemy.orm import declarative_base

from risk_evaluation.core.config import DatabaseConfig

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_async_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create async database engine."""
    if config.is_sqlite:
        # SQLite has no server-side pool or connect-time server settings
        engine = sqlalchemy_create_async_engine(config.async_url, echo=config.echo)
    else:
        engine = sqlalchemy_create_async_engine(
            config.async_url,
            echo=config.echo,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
            pool_recycle=config.pool_recycle,
            pool_pre_ping=True,
            connect_args={
                "server_settings": {"timezone": "UTC"},
                "timeout": 30,
            },
        )
    logger.info(
        "Database engine created",
        extra={
            "host": config.host,
            "port": config.port,
            "database": config.name,
            "sqlite": config.is_sqlite,
        },
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables known to the ORM metadata."""
    # Model classes must be imported so Base.metadata is populated
    from risk_evaluation.persistence import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_models(engine: AsyncEngine) -> None:
    """Drop all tables known to the ORM metadata."""
    from risk_evaluation.persistence import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
