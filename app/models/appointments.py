"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    Table,
    Text,
    Uuid,
    func,
    text,
)

# Metadata for all tables
metadata = MetaData()

LIVE_STATUS_SQL = "status IN ('scheduled', 'awaiting_payment', 'confirmed')"

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references
    Column("patient_id", Uuid, nullable=False, index=True),
    Column("doctor_id", Uuid, nullable=False, index=True),
    # Appointment details
    Column("appointment_at", DateTime(timezone=True), nullable=False),
    Column("duration_minutes", Integer, nullable=False),
    Column("consultation_type", Text, nullable=False),
    # Fixed at booking time
    Column("consultation_fee", Numeric(10, 2), nullable=False),
    # Status management
    Column("status", Text, nullable=False, server_default="scheduled"),
    Column("version", Integer, nullable=False, default=1),
    # Clinical
    Column("notes", Text, nullable=True),
    Column("prescription", Text, nullable=True),
    Column("video_session_id", Text, nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('scheduled', 'awaiting_payment', 'confirmed', 'completed', "
        "'cancelled', 'no-show')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "consultation_type IN ('video', 'in-person')",
        name="appointments_consultation_type_check",
    ),
    CheckConstraint("duration_minutes > 0", name="appointments_duration_check"),
    # A doctor cannot hold two live appointments starting at the same instant
    Index(
        "uq_appointments_doctor_live_slot",
        "doctor_id",
        "appointment_at",
        unique=True,
        postgresql_where=text(LIVE_STATUS_SQL),
        sqlite_where=text(LIVE_STATUS_SQL),
    ),
    Index("idx_appointments_doctor_time", "doctor_id", "appointment_at"),
)
