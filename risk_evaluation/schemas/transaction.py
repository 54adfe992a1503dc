"""Transaction intake and evaluation schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from risk_evaluation.domain.models.transaction import PaymentMethod, TransactionStatus


class TransactionCreate(BaseModel):
    """Schema for submitting a transaction for risk evaluation."""

    user_id: UUID = Field(..., description="Owning user ID")
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2, description="Amount in INR")
    payment_method: PaymentMethod = Field(..., description="card, upi, netbanking or wallet")
    device_id: str | None = Field(None, max_length=255, description="Client device fingerprint")
    ip_address: str | None = Field(None, max_length=64, description="Client IP address")

    @field_validator("device_id")
    @classmethod
    def normalize_device_id(cls, v: str | None) -> str | None:
        """Blank device IDs are treated as absent."""
        if v is None:
            return None
        v = v.strip()
        return v or None


class TransactionResponse(BaseModel):
    """Transaction with its current status and risk score."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    amount: Decimal
    payment_method: str
    device_id: str | None = None
    ip_address: str | None = None
    status: TransactionStatus
    risk_score: int
    created_at: datetime


class EvaluationResponse(BaseModel):
    """Outcome of a risk evaluation."""

    transaction_id: UUID
    status: TransactionStatus
    risk_score: int
    triggered_rules: list[str] = Field(default_factory=list)
    evaluated_at: datetime | None = None


class TransactionEvaluationResponse(BaseModel):
    """A newly submitted transaction together with its evaluation."""

    transaction: TransactionResponse
    evaluation: EvaluationResponse


class ErrorResponse(BaseModel):
    """Error response."""

    detail: str
    errors: dict[str, Any] | None = None
