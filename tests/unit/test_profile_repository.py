"""Tests for user risk profile and trusted device repositories on SQLite."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from risk_evaluation.persistence.profile_repository import (
    TrustedDeviceRepository,
    UserRiskProfileRepository,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


class TestUserRiskProfileRepository:
    """Test lazy creation and running average."""

    @pytest.mark.asyncio
    async def test_get_or_create_creates_empty_profile(self, session_factory, make_user):
        user_id = await make_user()
        async with session_factory() as session:
            repo = UserRiskProfileRepository(session)
            stats = await repo.get_or_create_for_update(user_id)

            assert stats.total_txns == 0
            assert stats.total_amount == Decimal("0")
            assert stats.avg_amount == Decimal("0")
            assert await repo.get_or_create_for_update(user_id) is stats

    @pytest.mark.asyncio
    async def test_record_success_keeps_mean(self, session_factory, make_user):
        user_id = await make_user()
        async with session_factory() as session:
            repo = UserRiskProfileRepository(session)
            stats = await repo.get_or_create_for_update(user_id)
            for amount in ("100.00", "200.00", "400.00"):
                await repo.record_success(stats, Decimal(amount), NOW)
            await session.commit()

        async with session_factory() as session:
            stats = await UserRiskProfileRepository(session).get_for_update(user_id)

        assert stats.total_txns == 3
        assert stats.total_amount == Decimal("700.00")
        assert stats.avg_amount == Decimal("233.33")

    @pytest.mark.asyncio
    async def test_average_rounds_half_up(self, session_factory, make_user):
        user_id = await make_user()
        async with session_factory() as session:
            repo = UserRiskProfileRepository(session)
            stats = await repo.get_or_create_for_update(user_id)
            await repo.record_success(stats, Decimal("0.01"), NOW)
            await repo.record_success(stats, Decimal("0.02"), NOW)

            assert stats.avg_amount == Decimal("0.02")
            assert stats.last_updated_at == NOW


class TestTrustedDeviceRepository:
    """Test trusted device registration."""

    @pytest.mark.asyncio
    async def test_canonical_is_earliest(self, session_factory, make_user):
        user_id = await make_user()
        async with session_factory() as session:
            repo = TrustedDeviceRepository(session)
            await repo.register(user_id, "device-late", first_seen_at=NOW)
            await repo.register(user_id, "device-early", first_seen_at=NOW - timedelta(days=1))

            canonical = await repo.get_canonical(user_id)
            devices = await repo.list_for_user(user_id)

        assert canonical.device_id == "device-early"
        assert [d.device_id for d in devices] == ["device-early", "device-late"]

    @pytest.mark.asyncio
    async def test_no_device(self, session_factory, make_user):
        user_id = await make_user()
        async with session_factory() as session:
            assert await TrustedDeviceRepository(session).get_canonical(user_id) is None

    @pytest.mark.asyncio
    async def test_duplicate_device_rejected(self, session_factory, make_user):
        user_id = await make_user()
        async with session_factory() as session:
            repo = TrustedDeviceRepository(session)
            await repo.register(user_id, "device-1", first_seen_at=NOW)

            with pytest.raises(IntegrityError):
                await repo.register(user_id, "device-1", first_seen_at=NOW)
