"""Schemas for payment entities."""
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from payment_service.models.payment import PaymentStatus


class SortField(str, Enum):
    """Columns a payment listing may be ordered by."""

    created_at = "created_at"
    updated_at = "updated_at"
    amount = "amount"
    status = "status"
    currency = "currency"
    id = "id"


class SortDirection(str, Enum):
    asc = "asc"
    desc = "desc"


class PaymentCreate(BaseModel):
    """Validated input for a payment submission."""

    # 18 digits keep the amount in minor units within a signed 64-bit integer.
    amount: Decimal = Field(gt=Decimal("0"), max_digits=18, decimal_places=2)
    currency: str = Field(pattern="^[A-Z]{3}$")
    idempotency_key: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    merchant_id: str | None = Field(default=None, max_length=100)

    model_config = ConfigDict(extra="forbid")

    @field_validator("idempotency_key")
    @classmethod
    def _reject_blank_key(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Idempotency key is required")
        return cleaned


class PaymentRequest(BaseModel):
    """HTTP body for ``POST /api/v1/payments``.

    Field constraints live on :class:`PaymentCreate`; this model only shapes
    the JSON so the idempotency key can also arrive through the
    ``Idempotency-Key`` header.
    """

    amount: Decimal | None = None
    currency: str | None = None
    idempotency_key: str | None = None
    description: str | None = None
    merchant_id: str | None = None


class PaymentRead(BaseModel):
    id: int
    amount: Decimal
    currency: str
    status: PaymentStatus
    transaction_reference: str
    idempotency_key: str
    description: str | None
    merchant_id: str | None
    version: int
    created_at: datetime
    updated_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class PaymentCreated(PaymentRead):
    """Response to a successful submission."""

    message: str = "Payment processed successfully"


class PaymentPage(BaseModel):
    items: list[PaymentRead]
    total_count: int
    page: int
    size: int
    total_pages: int
