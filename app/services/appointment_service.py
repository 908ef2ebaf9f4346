"""Appointment service: lifecycle transitions, field edits and reads."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, select, true, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
)
from app.core.timezones import as_utc
from app.models.appointments import appointments
from app.schemas.appointments import (
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
    ConsultationType,
    TransitionActor,
)
from app.schemas.auth import Actor
from app.services.appointment_state_machine import check_transition
from app.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)

IMMUTABLE_FIELDS = frozenset({"consultation_fee", "patient_id", "doctor_id"})

EDITABLE_FIELDS: dict[TransitionActor, frozenset[str]] = {
    TransitionActor.PATIENT: frozenset({"notes"}),
    TransitionActor.DOCTOR: frozenset({"notes", "prescription"}),
}


class AppointmentService:
    """Service for managing appointments after booking."""

    def __init__(self, db: AsyncSession, notifier: NotificationService | None = None):
        """Initialize service with database session."""
        self.db = db
        self.notifier = notifier or NotificationService(db)

    async def _fetch(self, appointment_id: UUID) -> Row:
        result = await self.db.execute(
            select(appointments).where(appointments.c.id == appointment_id)
        )
        row = result.fetchone()
        if not row:
            raise NotFoundException("Appointment not found")
        return row

    @staticmethod
    def _party_role(row: Row, actor: Actor) -> TransitionActor:
        """Which side of the appointment the actor is on."""
        if actor.is_patient and row.patient_id == actor.id:
            return TransitionActor.PATIENT
        if actor.is_doctor and row.doctor_id == actor.id:
            return TransitionActor.DOCTOR
        raise ForbiddenException("Access denied to this appointment")

    async def get_appointment(self, appointment_id: UUID, actor: Actor) -> AppointmentResponse:
        """
        Get appointment by ID.

        Args:
            appointment_id: Appointment ID
            actor: Requesting user

        Returns:
            Appointment details

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If user is neither party nor admin
        """
        row = await self._fetch(appointment_id)
        if not actor.is_admin:
            self._party_role(row, actor)
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def list_appointments(
        self,
        actor: Actor,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List appointments visible to the actor with filtering and pagination.

        Patients see their own bookings, doctors their own calendar, admins
        everything.
        """
        conditions = []
        if actor.is_patient:
            conditions.append(appointments.c.patient_id == actor.id)
        elif actor.is_doctor:
            conditions.append(appointments.c.doctor_id == actor.id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.from_date:
            conditions.append(appointments.c.appointment_at >= as_utc(filters.from_date))

        if filters.to_date:
            conditions.append(appointments.c.appointment_at <= as_utc(filters.to_date))

        where = and_(true(), *conditions)

        count_stmt = select(func.count()).select_from(appointments).where(where)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        offset = (filters.page - 1) * filters.page_size
        stmt = (
            select(appointments)
            .where(where)
            .order_by(appointments.c.appointment_at.desc())
            .limit(filters.page_size)
            .offset(offset)
        )
        rows = (await self.db.execute(stmt)).fetchall()

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=[AppointmentResponse.model_validate(dict(row._mapping)) for row in rows],
        )

    async def update_fields(
        self,
        appointment_id: UUID,
        actor: Actor,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """
        Edit free-text fields within the actor's role.

        Patients may edit notes; doctors notes and prescription. Fee, parties
        and status are never writable here.

        Raises:
            ForbiddenException: On any field outside the actor's allowance
        """
        row = await self._fetch(appointment_id)
        role = self._party_role(row, actor)

        changes: dict[str, Any] = {
            **data.model_dump(exclude_unset=True),
            **(data.model_extra or {}),
        }
        for field in changes:
            if field in IMMUTABLE_FIELDS:
                raise ForbiddenException(f"Cannot modify {field}")
            if field == "status":
                raise ForbiddenException("Status changes must use the transitions endpoint")
        not_allowed = set(changes) - EDITABLE_FIELDS[role]
        if not_allowed:
            raise ForbiddenException(
                f"A {role.value} cannot modify: {', '.join(sorted(not_allowed))}"
            )

        if not changes:
            return AppointmentResponse.model_validate(dict(row._mapping))

        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(
                **changes,
                version=appointments.c.version + 1,
                updated_at=datetime.now(UTC),
            )
            .returning(appointments)
        )
        updated = (await self.db.execute(stmt)).fetchone()
        await self.db.commit()

        logger.info(
            "appointment_fields_updated",
            appointment_id=str(appointment_id),
            fields=sorted(changes),
            actor_role=role.value,
        )
        return AppointmentResponse.model_validate(dict(updated._mapping))

    async def apply_transition(
        self,
        row: Row,
        target: AppointmentStatus,
        actor: TransitionActor,
        reason: str | None = None,
    ) -> Row:
        """
        Validate and write a transition without committing.

        The write is a compare-and-set on the status and version that were
        read; if another writer got there first nothing is written and the
        transition is rejected.

        Raises:
            InvalidTransitionException: Illegal pair or lost race
            ForbiddenException: Actor not allowed for this pair
        """
        current = AppointmentStatus(row.status)
        check_transition(current, target, actor)

        now = datetime.now(UTC)
        values: dict[str, Any] = {
            "status": target.value,
            "version": row.version + 1,
            "updated_at": now,
        }
        if target == AppointmentStatus.CANCELLED:
            values["cancelled_at"] = now
            if reason:
                note = f"Cancelled: {reason}"
                values["notes"] = f"{row.notes}\n{note}" if row.notes else note

        stmt = (
            update(appointments)
            .where(
                appointments.c.id == row.id,
                appointments.c.status == current.value,
                appointments.c.version == row.version,
            )
            .values(**values)
            .returning(appointments)
        )
        updated = (await self.db.execute(stmt)).fetchone()
        if updated is None:
            fresh = await self._fetch(row.id)
            logger.info(
                "appointment_transition_lost_race",
                appointment_id=str(row.id),
                expected_status=current.value,
                actual_status=fresh.status,
                target_status=target.value,
            )
            raise InvalidTransitionException(fresh.status, target.value)

        logger.info(
            "appointment_transitioned",
            appointment_id=str(row.id),
            from_status=current.value,
            to_status=target.value,
            actor=actor.value,
        )
        return updated

    async def transition(
        self,
        appointment_id: UUID,
        actor: Actor,
        target: AppointmentStatus,
        reason: str | None = None,
    ) -> AppointmentResponse:
        """
        Move an appointment to ``target`` on behalf of one of its parties.

        Args:
            appointment_id: Appointment ID
            actor: Patient or doctor of the appointment
            target: Requested status
            reason: Optional cancellation reason

        Returns:
            Updated appointment
        """
        row = await self._fetch(appointment_id)
        role = self._party_role(row, actor)

        updated = await self.apply_transition(row, target, role, reason)
        await self.db.commit()

        await self.notifier.notify_transition(dict(updated._mapping), row.status, role)
        return AppointmentResponse.model_validate(dict(updated._mapping))

    async def attach_video_session(
        self,
        appointment_id: UUID,
        actor: Actor,
    ) -> AppointmentResponse:
        """
        Assign a video session identifier to a confirmed video consultation.

        Idempotent: an existing identifier is kept.
        """
        row = await self._fetch(appointment_id)
        if self._party_role(row, actor) != TransitionActor.DOCTOR:
            raise ForbiddenException("Only the doctor can open the video session")
        if row.consultation_type != ConsultationType.VIDEO.value:
            raise ConflictException("Appointment is not a video consultation")
        if row.status != AppointmentStatus.CONFIRMED.value:
            raise ConflictException("Video sessions are only available for confirmed appointments")
        if row.video_session_id:
            return AppointmentResponse.model_validate(dict(row._mapping))

        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id, appointments.c.video_session_id.is_(None))
            .values(
                video_session_id=f"consult-{appointment_id.hex}",
                version=appointments.c.version + 1,
                updated_at=datetime.now(UTC),
            )
            .returning(appointments)
        )
        updated = (await self.db.execute(stmt)).fetchone()
        await self.db.commit()
        if updated is None:
            updated = await self._fetch(appointment_id)

        logger.info("video_session_attached", appointment_id=str(appointment_id))
        return AppointmentResponse.model_validate(dict(updated._mapping))
