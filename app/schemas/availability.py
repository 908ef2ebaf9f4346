"""Availability schemas for request/response validation."""

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.core.weekdays import DayNumbering


class AvailabilityRuleBase(BaseModel):
    """Base schema for an availability rule."""

    day_of_week: int = Field(..., ge=0, le=7, description="Day number in `day_numbering`")
    start_time: time
    end_time: time
    is_available: bool = True
    day_numbering: DayNumbering = DayNumbering.ISO

    @model_validator(mode="after")
    def validate_window(self) -> "AvailabilityRuleBase":
        """Validate start time is before end time."""
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityRuleCreate(AvailabilityRuleBase):
    """Schema for creating a rule."""


class AvailabilityRuleUpdate(BaseModel):
    """Schema for editing a rule in place."""

    day_of_week: int | None = Field(None, ge=0, le=7)
    start_time: time | None = None
    end_time: time | None = None
    is_available: bool | None = None
    day_numbering: DayNumbering = DayNumbering.ISO


class AvailabilityRuleResponse(BaseModel):
    """Availability rule response schema."""

    id: UUID
    doctor_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    is_available: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OpenWindow(BaseModel):
    """Merged open interval within a day."""

    start_time: time
    end_time: time


class SlotCheckResponse(BaseModel):
    """Whether a doctor is open at an instant."""

    doctor_id: UUID
    at: datetime
    is_open: bool


class AvailableSlotsResponse(BaseModel):
    """Bookable slot start instants for one local date."""

    doctor_id: UUID
    date: date
    duration_minutes: int
    windows: list[OpenWindow]
    slots: list[datetime]
