"""Appointment schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer, field_validator

from app.core.timezones import as_utc


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    AWAITING_PAYMENT = "awaiting_payment"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


# Statuses that still occupy a slot on the doctor's calendar
LIVE_STATUSES = frozenset(
    {
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.AWAITING_PAYMENT,
        AppointmentStatus.CONFIRMED,
    }
)

TERMINAL_STATUSES = frozenset(
    {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }
)


class TransitionActor(str, Enum):
    """Who drives a status transition."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    PAYMENT_SERVICE = "payment_service"


class ConsultationType(str, Enum):
    """Consultation type enumeration."""

    VIDEO = "video"
    IN_PERSON = "in-person"


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment."""

    doctor_id: UUID
    appointment_at: datetime = Field(..., description="Start instant; naive values are UTC")
    consultation_type: ConsultationType = ConsultationType.VIDEO
    notes: str | None = Field(None, max_length=1000)


class AppointmentUpdate(BaseModel):
    """
    Schema for editing appointment fields.

    Unknown keys are kept so the service can reject attempts to touch
    immutable fields explicitly instead of silently dropping them.
    """

    notes: str | None = Field(None, max_length=1000)
    prescription: str | None = Field(None, max_length=5000)

    model_config = {"extra": "allow"}


class AppointmentTransitionRequest(BaseModel):
    """Schema for requesting a status transition."""

    status: AppointmentStatus
    reason: str | None = Field(None, max_length=500)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    doctor_id: UUID
    appointment_at: datetime
    duration_minutes: int
    consultation_type: ConsultationType
    consultation_fee: Decimal
    status: AppointmentStatus
    notes: str | None = None
    prescription: str | None = None
    video_session_id: str | None = None
    version: int
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("appointment_at", "created_at", "updated_at", "cancelled_at")
    @classmethod
    def ensure_utc(cls, value: datetime | None) -> datetime | None:
        """Stored instants are UTC even when the driver returns them naive."""
        return as_utc(value) if value is not None else None

    @field_serializer("consultation_fee", when_used="json")
    def serialize_fee(self, value: Decimal) -> float:
        """Serialize Decimal to float for JSON."""
        return float(value)


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
