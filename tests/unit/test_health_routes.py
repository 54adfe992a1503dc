"""Unit tests for health check routes."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from risk_evaluation import __version__
from risk_evaluation.api.routes.health import (
    HealthResponse,
    ReadyResponse,
    health_check,
    liveness_check,
    readiness_check,
    router,
)


class TestHealthRoutes:
    """Test health check routes."""

    def test_health_routes_in_router(self):
        """Test that health routes are defined in router."""
        paths = [r.path for r in router.routes]
        assert paths == ["/health", "/health/ready", "/health/live"]

    def test_ready_response_model(self):
        """Test ReadyResponse model."""
        response = ReadyResponse(status="ready", database="connected")
        assert response.status == "ready"
        assert response.database == "connected"

    @pytest.mark.asyncio
    async def test_health_check_reports_package_version(self):
        response = await health_check()
        assert response == HealthResponse(status="healthy", version=__version__)

    @pytest.mark.asyncio
    async def test_readiness_check_connected(self, mock_session):
        response = await readiness_check(mock_session)

        mock_session.execute.assert_awaited_once()
        assert response.status == "ready"

    @pytest.mark.asyncio
    async def test_readiness_check_database_down(self, mock_session):
        """Test readiness reports not_ready instead of raising."""
        mock_session.execute = AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("refused")))

        response = await readiness_check(mock_session)

        assert response == ReadyResponse(status="not_ready", database="unavailable")

    @pytest.mark.asyncio
    async def test_liveness_check(self):
        assert await liveness_check() == {"status": "alive"}
