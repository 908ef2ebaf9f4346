"""Appointment endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import (
    Cache,
    CurrentActor,
    CurrentDoctor,
    CurrentPatient,
    DatabaseSession,
    DoctorLocks,
)
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentTransitionRequest,
    AppointmentUpdate,
)
from app.services.appointment_service import AppointmentService
from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService
from app.services.slot_resolver import SlotResolver

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    patient: CurrentPatient,
    db: DatabaseSession,
    cache: Cache,
    locks: DoctorLocks,
) -> AppointmentResponse:
    """
    Book an appointment for the authenticated patient.

    Args:
        data: Doctor, start instant and consultation type
        patient: Authenticated patient
        db: Database session

    Returns:
        Created appointment in ``scheduled`` status
    """
    resolver = SlotResolver(db, AvailabilityService(db, cache))
    service = BookingService(db, resolver, locks)
    return await service.book(patient.id, data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    actor: CurrentActor,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List appointments visible to the caller.

    Args:
        actor: Authenticated user
        db: Database session
        status_filter: Filter by status
        from_date: Earliest start instant
        to_date: Latest start instant
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )
    service = AppointmentService(db)
    return await service.list_appointments(actor, filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Get a specific appointment by ID."""
    service = AppointmentService(db)
    return await service.get_appointment(appointment_id, actor)


@router.patch(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Edit appointment notes or prescription",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Edit free-text fields.

    Patients may edit ``notes``; doctors ``notes`` and ``prescription``.
    """
    service = AppointmentService(db)
    return await service.update_fields(appointment_id, actor, data)


@router.post(
    "/{appointment_id}/transitions",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Change appointment status",
)
async def transition_appointment(
    appointment_id: UUID,
    data: AppointmentTransitionRequest,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Move an appointment through its lifecycle.

    Doctors accept (``awaiting_payment``), complete or mark no-show; either
    party may cancel. Confirmation happens only through payment.

    Raises:
        HTTPException: 409 on an illegal transition, 403 when the caller
            may not drive it
    """
    service = AppointmentService(db)
    return await service.transition(appointment_id, actor, data.status, data.reason)


@router.post(
    "/{appointment_id}/video-session",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Open video session",
)
async def open_video_session(
    appointment_id: UUID,
    doctor: CurrentDoctor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Attach a video session identifier to a confirmed video consultation."""
    service = AppointmentService(db)
    return await service.attach_video_session(appointment_id, doctor)
