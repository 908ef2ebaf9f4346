"""Create scheduling tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LIVE_STATUS_SQL = "status IN ('scheduled', 'awaiting_payment', 'confirmed')"


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
    )


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.TIMESTAMP(timezone=True),
        server_default=None if nullable else sa.text("NOW()"),
        nullable=nullable,
    )


def upgrade() -> None:
    """Upgrade database schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), server_default="patient", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint("role IN ('patient', 'doctor', 'admin')", name="users_role_check"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "doctor_profiles",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(), nullable=False),
        sa.Column("specialization", sa.VARCHAR(length=200), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("consultation_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "consultation_duration_minutes",
            sa.Integer(),
            server_default=sa.text("30"),
            nullable=False,
        ),
        sa.Column("timezone", sa.VARCHAR(length=64), nullable=True),
        sa.Column("is_approved", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("consultation_fee >= 0", name="doctor_profiles_fee_check"),
        sa.CheckConstraint(
            "consultation_duration_minutes BETWEEN 15 AND 180",
            name="doctor_profiles_duration_check",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )
    op.create_index("ix_doctor_profiles_user_id", "doctor_profiles", ["user_id"])
    op.create_index("ix_doctor_profiles_is_approved", "doctor_profiles", ["is_approved"])

    op.create_table(
        "availability_rules",
        _uuid_pk(),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_available", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("day_of_week BETWEEN 1 AND 7", name="availability_rules_day_check"),
        sa.CheckConstraint("start_time < end_time", name="availability_rules_window_check"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_availability_rules_doctor_day", "availability_rules", ["doctor_id", "day_of_week"]
    )

    op.create_table(
        "appointments",
        _uuid_pk(),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("appointment_at", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("consultation_type", sa.Text(), nullable=False),
        sa.Column("consultation_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.Text(), server_default="scheduled", nullable=False),
        sa.Column("version", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("prescription", sa.Text(), nullable=True),
        sa.Column("video_session_id", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("cancelled_at", nullable=True),
        sa.CheckConstraint(
            "status IN ('scheduled', 'awaiting_payment', 'confirmed', 'completed', "
            "'cancelled', 'no-show')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "consultation_type IN ('video', 'in-person')",
            name="appointments_consultation_type_check",
        ),
        sa.CheckConstraint("duration_minutes > 0", name="appointments_duration_check"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("ix_appointments_doctor_id", "appointments", ["doctor_id"])
    op.create_index(
        "idx_appointments_doctor_time", "appointments", ["doctor_id", "appointment_at"]
    )
    op.create_index(
        "uq_appointments_doctor_live_slot",
        "appointments",
        ["doctor_id", "appointment_at"],
        unique=True,
        postgresql_where=sa.text(LIVE_STATUS_SQL),
    )

    op.create_table(
        "payments",
        _uuid_pk(),
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.VARCHAR(length=3), nullable=False),
        sa.Column("status", sa.VARCHAR(length=20), server_default="pending", nullable=False),
        sa.Column("processor_order_id", sa.Text(), nullable=False),
        sa.Column("processor_payment_id", sa.Text(), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column(
            "refund_required", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed', 'refunded')",
            name="payments_status_check",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("appointment_id"),
        sa.UniqueConstraint("processor_order_id"),
    )
    op.create_index("ix_payments_patient_id", "payments", ["patient_id"])
    op.create_index("ix_payments_doctor_id", "payments", ["doctor_id"])

    op.create_table(
        "notifications",
        _uuid_pk(),
        sa.Column("recipient_id", postgresql.UUID(), nullable=False),
        sa.Column("notification_type", sa.VARCHAR(length=50), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("appointment_id", postgresql.UUID(), nullable=True),
        sa.Column("is_read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_notifications_recipient", "notifications", ["recipient_id"])
    op.create_index("idx_notifications_appointment", "notifications", ["appointment_id"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table("notifications")
    op.drop_table("payments")
    op.drop_index("uq_appointments_doctor_live_slot", table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("availability_rules")
    op.drop_table("doctor_profiles")
    op.drop_table("users")
