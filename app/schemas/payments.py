"""Payment schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer, field_validator

from app.core.timezones import as_utc


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentOrderCreate(BaseModel):
    """Schema for opening a payment order."""

    appointment_id: UUID
    amount: Decimal | None = Field(
        None,
        gt=0,
        description="Amount the client expects to pay; must match the fee",
    )


class PaymentOrderResponse(BaseModel):
    """Details the checkout widget needs to collect payment."""

    order_id: str
    payment_id: UUID
    appointment_id: UUID
    amount: Decimal
    currency: str
    key_id: str

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, value: Decimal) -> float:
        """Serialize Decimal to float for JSON."""
        return float(value)


class PaymentConfirmRequest(BaseModel):
    """Checkout result posted by the client."""

    order_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class PaymentResponse(BaseModel):
    """Payment response schema."""

    id: UUID
    appointment_id: UUID
    patient_id: UUID
    doctor_id: UUID
    amount: Decimal
    currency: str
    status: PaymentStatus
    processor_order_id: str
    processor_payment_id: str | None = None
    failure_reason: str | None = None
    refund_required: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, value: Decimal) -> float:
        """Serialize Decimal to float for JSON."""
        return float(value)


class WebhookAck(BaseModel):
    """Webhook acknowledgement."""

    status: str = "success"
    event: str | None = None
    processed: bool = False
