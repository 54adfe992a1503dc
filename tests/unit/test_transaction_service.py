"""Unit tests for TransactionService."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from risk_evaluation.core.errors import NotFoundError
from risk_evaluation.schemas import TransactionCreate
from risk_evaluation.services.transaction_service import TransactionService


@pytest.fixture
def service(mock_session):
    service = TransactionService(mock_session)
    service.repository = MagicMock()
    service.repository.get_user = AsyncMock()
    service.repository.create = AsyncMock()
    service.repository.get_by_id = AsyncMock()
    service.evaluations = MagicMock()
    service.evaluations.get_by_transaction_id = AsyncMock()
    return service


class TestCreatePending:
    """Test transaction intake."""

    @pytest.mark.asyncio
    async def test_creates_with_enum_value(self, service):
        user_id = uuid4()
        created = MagicMock(id=uuid4())
        service.repository.create.return_value = created
        payload = TransactionCreate(
            user_id=user_id, amount="250.00", payment_method="wallet", device_id="dev-9"
        )

        with patch("risk_evaluation.services.transaction_service.logger") as mock_logger:
            result = await service.create_pending(payload)

        assert result is created
        service.repository.create.assert_awaited_once_with(
            user_id=user_id,
            amount=Decimal("250.00"),
            payment_method="wallet",
            device_id="dev-9",
            ip_address=None,
        )
        mock_logger.info.assert_called_once()

    @pytest.mark.asyncio
    async def test_unknown_user(self, service):
        service.repository.get_user.return_value = None
        payload = TransactionCreate(user_id=uuid4(), amount="1", payment_method="upi")

        with pytest.raises(NotFoundError, match="User not found"):
            await service.create_pending(payload)

        service.repository.create.assert_not_awaited()


class TestGetEvaluation:
    """Test evaluation lookup."""

    @pytest.mark.asyncio
    async def test_returns_transaction_and_evaluation(self, service):
        txn, evaluation = MagicMock(), MagicMock()
        service.repository.get_by_id.return_value = txn
        service.evaluations.get_by_transaction_id.return_value = evaluation

        assert await service.get_evaluation(uuid4()) == (txn, evaluation)

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, service):
        service.repository.get_by_id.return_value = None

        with pytest.raises(NotFoundError, match="Transaction not found"):
            await service.get_evaluation(uuid4())

    @pytest.mark.asyncio
    async def test_pending_transaction_has_no_evaluation(self, service):
        service.repository.get_by_id.return_value = MagicMock(status="pending")
        service.evaluations.get_by_transaction_id.return_value = None

        with pytest.raises(NotFoundError) as exc_info:
            await service.get_evaluation(uuid4())

        assert exc_info.value.details["status"] == "pending"
