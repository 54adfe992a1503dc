"""Transaction domain enums and scoring snapshots."""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class TransactionStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FLAGGED = "flagged"
    BLOCKED = "blocked"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class PaymentMethod(str, Enum):
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"
    WALLET = "wallet"


class NotificationType(str, Enum):
    SECURITY = "security"
    TRANSACTION = "transaction"
    SYSTEM = "system"
    INFO = "info"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertType(str, Enum):
    TRANSACTION_BLOCKED = "TRANSACTION_BLOCKED"


class RuleName(str, Enum):
    FIRST_TRANSACTION_HIGH_AMOUNT = "FIRST_TRANSACTION_HIGH_AMOUNT"
    AMOUNT_DEVIATION_HIGH = "AMOUNT_DEVIATION_HIGH"
    AMOUNT_DEVIATION_MEDIUM = "AMOUNT_DEVIATION_MEDIUM"
    AMOUNT_DEVIATION_LOW = "AMOUNT_DEVIATION_LOW"
    RAPID_MEDIUM_AMOUNT = "RAPID_MEDIUM_AMOUNT"
    RAPID_LARGE_AMOUNT = "RAPID_LARGE_AMOUNT"
    RAPID_VERY_LARGE_AMOUNT = "RAPID_VERY_LARGE_AMOUNT"
    UNTRUSTED_DEVICE = "UNTRUSTED_DEVICE"
    MISSING_DEVICE_ID = "MISSING_DEVICE_ID"


class TransactionSnapshot(BaseModel):
    """The fields of a transaction the scoring rules read."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID
    user_id: UUID
    amount: Decimal = Field(..., gt=0)
    payment_method: str
    device_id: str | None = None

    @property
    def has_device(self) -> bool:
        return bool(self.device_id and self.device_id.strip())


class UserContext(BaseModel):
    """Point-in-time view of the user's device and recent activity."""

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    trusted_device_id: str | None = None
    recent_transaction_count: int = Field(default=0, ge=0)


class UserStatsSnapshot(BaseModel):
    """Point-in-time view of the user's learned baseline."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    total_txns: int = Field(default=0, ge=0)
    total_amount: Decimal = Decimal("0")
    avg_amount: Decimal = Decimal("0")
