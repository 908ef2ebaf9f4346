"""Notification trigger for appointment transitions."""

from contextlib import suppress
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timezones import as_utc
from app.models.notifications import notifications
from app.models.users import users
from app.schemas.appointments import AppointmentStatus, TransitionActor

logger = structlog.get_logger(__name__)


def _format_when(value: datetime) -> str:
    return as_utc(value).strftime("%b %d, %I:%M %p UTC")


class NotificationService:
    """
    Produces notifications for the notification delivery service.

    Rows are written to the ``notifications`` outbox; delivery and read
    state belong to the consumer.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def enqueue(
        self,
        recipient_id: UUID,
        notification_type: str,
        title: str,
        message: str,
        appointment_id: UUID | None = None,
    ) -> None:
        """
        Queue one notification. Does not commit.

        Args:
            recipient_id: User to notify
            notification_type: Type tag (payment_pending, appointment_cancelled, ...)
            title: Short title
            message: Human-readable body
            appointment_id: Related appointment, if any
        """
        await self.db.execute(
            insert(notifications).values(
                recipient_id=recipient_id,
                notification_type=notification_type,
                title=title,
                message=message,
                appointment_id=appointment_id,
                is_read=False,
            )
        )

    async def _names(self, *user_ids: UUID) -> dict[UUID, str]:
        result = await self.db.execute(
            select(users.c.id, users.c.full_name).where(users.c.id.in_(user_ids))
        )
        return {row.id: row.full_name or "Unknown" for row in result.fetchall()}

    async def _messages_for(
        self,
        appointment: dict[str, Any],
        previous_status: str,
        actor: TransitionActor,
    ) -> list[tuple[UUID, str, str, str]]:
        """Fixed mapping of transition to (recipient, type, title, message)."""
        patient_id = appointment["patient_id"]
        doctor_id = appointment["doctor_id"]
        names = await self._names(patient_id, doctor_id)
        doctor = f"Dr. {names.get(doctor_id, 'Unknown')}"
        patient = names.get(patient_id, "Unknown")
        when = _format_when(appointment["appointment_at"])
        fee = Decimal(appointment["consultation_fee"])
        status = AppointmentStatus(appointment["status"])

        if status == AppointmentStatus.AWAITING_PAYMENT:
            return [
                (
                    patient_id,
                    "payment_pending",
                    f"{doctor} Accepted Your Request!",
                    f"Please complete the payment of {fee:.2f} to confirm your "
                    f"appointment on {when}.",
                )
            ]
        if status == AppointmentStatus.CONFIRMED:
            return [
                (
                    patient_id,
                    "appointment_confirmed",
                    "Payment Confirmed!",
                    f"Your appointment with {doctor} on {when} is now confirmed.",
                ),
                (
                    doctor_id,
                    "appointment_confirmed",
                    "Appointment Confirmed",
                    f"{patient} has paid for the appointment on {when}.",
                ),
            ]
        if status == AppointmentStatus.CANCELLED:
            if actor == TransitionActor.PATIENT:
                return [
                    (
                        doctor_id,
                        "appointment_cancelled",
                        "Appointment Cancelled",
                        f"{patient} cancelled their appointment on {when}.",
                    )
                ]
            return [
                (
                    patient_id,
                    "appointment_cancelled",
                    "Appointment Cancelled",
                    f"{doctor} cancelled your appointment on {when}.",
                )
            ]
        if status == AppointmentStatus.COMPLETED:
            return [
                (
                    patient_id,
                    "appointment_completed",
                    "Consultation Completed",
                    f"Your consultation with {doctor} on {when} is complete.",
                )
            ]
        if status == AppointmentStatus.NO_SHOW:
            return [
                (
                    patient_id,
                    "appointment_no_show",
                    "Missed Appointment",
                    f"You were marked as absent for your appointment with {doctor} on {when}.",
                )
            ]

        logger.debug(
            "no_notification_for_transition",
            previous_status=previous_status,
            status=status.value,
        )
        return []

    async def notify_transition(
        self,
        appointment: dict[str, Any],
        previous_status: str,
        actor: TransitionActor,
    ) -> None:
        """
        Fire-and-forget notifications after a committed transition.

        Any failure is logged and swallowed; the transition stands.
        """
        try:
            messages = await self._messages_for(appointment, previous_status, actor)
            for recipient_id, notification_type, title, message in messages:
                await self.enqueue(
                    recipient_id=recipient_id,
                    notification_type=notification_type,
                    title=title,
                    message=message,
                    appointment_id=appointment["id"],
                )
            await self.db.commit()
        except Exception as e:
            logger.warning(
                "failed_to_send_transition_notification",
                appointment_id=str(appointment.get("id")),
                status=appointment.get("status"),
                error=str(e),
            )
            with suppress(Exception):
                await self.db.rollback()
