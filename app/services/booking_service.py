"""Booking engine: turns a requested time into a scheduled appointment."""

import asyncio
from datetime import datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    InvalidDateException,
    ServiceUnavailableException,
    SlotTakenException,
    SlotUnavailableException,
)
from app.core.locks import DoctorLockRegistry
from app.core.timezones import as_utc, utc_now
from app.models.appointments import appointments
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatus,
)
from app.services.doctor_service import DoctorService
from app.services.slot_resolver import SlotResolver, fetch_live_intervals, intervals_overlap

logger = structlog.get_logger(__name__)


class BookingService:
    """
    Creates appointments without ever double-booking a doctor.

    The overlap check and the insert run under the doctor's booking lock in
    one transaction; the live-slot unique index backs this up at the
    storage level.
    """

    def __init__(
        self,
        db: AsyncSession,
        slot_resolver: SlotResolver,
        locks: DoctorLockRegistry,
    ):
        """Initialize service with its collaborators."""
        self.db = db
        self.slots = slot_resolver
        self.locks = locks
        self.doctors = DoctorService(db)

    @staticmethod
    def _validate_when(when: datetime) -> datetime:
        when_utc = as_utc(when)
        if when_utc <= utc_now():
            raise InvalidDateException("Appointment time must be strictly in the future")
        return when_utc

    async def _ensure_slot_free(self, doctor_id: UUID, start: datetime, end: datetime) -> None:
        """
        Reject any live appointment overlapping ``[start, end)``.

        Only appointments starting within the longest possible appointment
        before ``start`` can reach into the slot, which bounds the query.

        Raises:
            SlotTakenException: On overlap
            ServiceUnavailableException: If the query times out
        """
        lookback = timedelta(minutes=settings.max_appointment_duration_minutes)
        try:
            taken = await asyncio.wait_for(
                fetch_live_intervals(self.db, doctor_id, start - lookback, end),
                timeout=settings.conflict_check_timeout_seconds,
            )
        except TimeoutError as e:
            logger.warning("booking_conflict_check_timeout", doctor_id=str(doctor_id))
            raise ServiceUnavailableException(
                "Could not verify slot availability, please retry"
            ) from e

        for taken_start, taken_end, appointment_id in taken:
            if intervals_overlap(start, end, taken_start, taken_end):
                logger.info(
                    "booking_slot_taken",
                    doctor_id=str(doctor_id),
                    requested_at=start.isoformat(),
                    conflicting_appointment_id=str(appointment_id),
                )
                raise SlotTakenException()

    async def book(self, patient_id: UUID, data: AppointmentCreate) -> AppointmentResponse:
        """
        Book an appointment.

        Args:
            patient_id: Booking patient
            data: Doctor, start instant, consultation type and notes

        Returns:
            Created appointment in ``scheduled`` status

        Raises:
            DoctorNotFoundException: Unknown or inactive doctor
            ProfileIncompleteException: Doctor has no profile
            NotApprovedException: Doctor not verified
            InvalidDateException: Time not in the future
            SlotUnavailableException: Outside the doctor's open hours
            SlotTakenException: Overlaps a live appointment
        """
        doctor_id = data.doctor_id
        profile = await self.doctors.get_bookable_doctor(doctor_id)
        when_utc = self._validate_when(data.appointment_at)

        tz = await self.slots.doctor_timezone(doctor_id, profile)
        if not await self.slots.is_open(doctor_id, when_utc, tz):
            raise SlotUnavailableException()

        duration = (
            profile.get("consultation_duration_minutes")
            or settings.default_consultation_duration_minutes
        )
        end_utc = when_utc + timedelta(minutes=duration)

        async with self.locks.hold(self.db, doctor_id):
            try:
                await self._ensure_slot_free(doctor_id, when_utc, end_utc)
                stmt = (
                    insert(appointments)
                    .values(
                        patient_id=patient_id,
                        doctor_id=doctor_id,
                        appointment_at=when_utc,
                        duration_minutes=duration,
                        consultation_type=data.consultation_type.value,
                        consultation_fee=profile["consultation_fee"],
                        status=AppointmentStatus.SCHEDULED.value,
                        version=1,
                        notes=data.notes,
                    )
                    .returning(appointments)
                )
                row = (await self.db.execute(stmt)).fetchone()
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                logger.info(
                    "booking_rejected_by_unique_slot",
                    doctor_id=str(doctor_id),
                    requested_at=when_utc.isoformat(),
                )
                raise SlotTakenException() from e
            except Exception:
                await self.db.rollback()
                raise

        logger.info(
            "appointment_booked",
            appointment_id=str(row.id),
            patient_id=str(patient_id),
            doctor_id=str(doctor_id),
            appointment_at=when_utc.isoformat(),
        )
        return AppointmentResponse.model_validate(dict(row._mapping))
