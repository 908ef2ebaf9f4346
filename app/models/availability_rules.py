"""Availability rules table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Table,
    Time,
    Uuid,
    func,
)

metadata = MetaData()

# One recurring weekly open-hours window for a doctor
availability_rules = Table(
    "availability_rules",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("doctor_id", Uuid, nullable=False),
    # ISO numbering: Monday=1 .. Sunday=7
    Column("day_of_week", Integer, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("is_available", Boolean, nullable=False, default=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("day_of_week BETWEEN 1 AND 7", name="availability_rules_day_check"),
    CheckConstraint("start_time < end_time", name="availability_rules_window_check"),
    Index("idx_availability_rules_doctor_day", "doctor_id", "day_of_week"),
)
