"""Payments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    func,
)

metadata = MetaData()

payments = Table(
    "payments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # One payment order per appointment
    Column("appointment_id", Uuid, nullable=False, unique=True),
    Column("patient_id", Uuid, nullable=False, index=True),
    Column("doctor_id", Uuid, nullable=False, index=True),
    Column("amount", Numeric(10, 2), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("status", String(20), nullable=False, server_default="pending"),
    # Processor identifiers
    Column("processor_order_id", Text, nullable=False, unique=True),
    Column("processor_payment_id", Text, nullable=True),
    Column("failure_reason", Text, nullable=True),
    # Money captured after the appointment stopped expecting it
    Column("refund_required", Boolean, nullable=False, default=False),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "status IN ('pending', 'completed', 'failed', 'refunded')",
        name="payments_status_check",
    ),
)
