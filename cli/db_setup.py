"""
Database setup commands.

Creates, resets and verifies the service's tables from the ORM metadata,
using the DATABASE_* settings.

Usage:
    uv run db-init            # Create tables (idempotent)
    uv run db-init --demo     # Create tables and a demo user
    uv run db-reset --yes     # Drop and recreate tables
    uv run db-verify          # Check connectivity and tables
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from uuid import UUID

from sqlalchemy import inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from risk_evaluation.core.config import get_settings
from risk_evaluation.core.database import (
    Base,
    create_async_engine,
    create_session_factory,
    drop_models,
    init_models,
)
from risk_evaluation.persistence.models import User

DEMO_USER_ID = UUID("00000000-0000-4000-8000-000000000001")
DEMO_USER_EMAIL = "demo.user@example.com"


async def _seed_demo(engine: AsyncEngine) -> None:
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        existing = await session.execute(select(User).where(User.id == DEMO_USER_ID))
        if existing.scalar_one_or_none() is None:
            session.add(User(id=DEMO_USER_ID, email=DEMO_USER_EMAIL, full_name="Demo User"))
            await session.commit()
    print(f"  Demo user: {DEMO_USER_ID} <{DEMO_USER_EMAIL}>")


async def _init(engine: AsyncEngine, demo: bool) -> int:
    print("Initializing database schema...")
    await init_models(engine)
    if demo:
        await _seed_demo(engine)
    print("Database initialization complete.")
    return 0


async def _reset(engine: AsyncEngine, demo: bool) -> int:
    print("Resetting database tables...")
    await drop_models(engine)
    print("  Tables dropped.")
    return await _init(engine, demo)


async def _verify(engine: AsyncEngine) -> int:
    print("Verifying database setup...")
    async with engine.connect() as conn:
        existing = await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))

    missing = sorted(set(Base.metadata.tables) - existing)
    if missing:
        print(f"ERROR: Missing tables: {', '.join(missing)}")
        return 1

    print(f"  Found {len(Base.metadata.tables)} tables.")
    print("\nVerification PASSED.")
    return 0


async def _run(command: str, demo: bool) -> int:
    engine = create_async_engine(get_settings().database)
    try:
        if command == "init":
            return await _init(engine, demo)
        if command == "reset":
            return await _reset(engine, demo)
        return await _verify(engine)
    except SQLAlchemyError as e:
        print(f"ERROR: Database operation failed: {e}")
        return 1
    finally:
        await engine.dispose()


def _confirm(yes: bool) -> bool:
    if yes:
        return True
    response = input("This will destroy all risk evaluation data. Continue? [y/N]: ")
    return response.lower() == "y"


def _parse(argv: list[str], command: str) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog=f"db-{command}")
    if command in ("init", "reset"):
        parser.add_argument("--demo", action="store_true", help="Create a demo user")
    if command == "reset":
        parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompt")
    return parser.parse_args(argv)


def init() -> None:
    """Create tables (and optionally the demo user)."""
    args = _parse(sys.argv[1:], "init")
    sys.exit(asyncio.run(_run("init", args.demo)))


def reset() -> None:
    """Drop and recreate tables."""
    args = _parse(sys.argv[1:], "reset")
    if not _confirm(args.yes):
        print("Aborted.")
        sys.exit(1)
    sys.exit(asyncio.run(_run("reset", args.demo)))


def verify() -> None:
    """Check connectivity and that every table exists."""
    _parse(sys.argv[1:], "verify")
    sys.exit(asyncio.run(_run("verify", demo=False)))
