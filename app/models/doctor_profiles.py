"""Doctor profile model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    func,
)

metadata = MetaData()

doctor_profiles = Table(
    "doctor_profiles",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # The doctor's user account; appointments and rules reference this id
    Column("user_id", Uuid, nullable=False, unique=True, index=True),
    Column("specialization", String(200)),
    Column("bio", Text),
    # Practice information
    Column("consultation_fee", Numeric(10, 2), nullable=False),
    Column("consultation_duration_minutes", Integer, nullable=False, default=30),
    Column("timezone", String(64)),
    # Set by administrator credential verification
    Column("is_approved", Boolean, nullable=False, default=False, index=True),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("consultation_fee >= 0", name="doctor_profiles_fee_check"),
    CheckConstraint(
        "consultation_duration_minutes BETWEEN 15 AND 180",
        name="doctor_profiles_duration_check",
    ),
)
