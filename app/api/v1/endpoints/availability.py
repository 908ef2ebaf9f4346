"""Availability endpoints."""

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.config import settings
from app.core.weekdays import DayNumbering, from_iso, to_iso
from app.dependencies import Cache, CurrentActor, CurrentDoctor, DatabaseSession
from app.schemas.availability import (
    AvailabilityRuleCreate,
    AvailabilityRuleResponse,
    AvailabilityRuleUpdate,
    AvailableSlotsResponse,
    SlotCheckResponse,
)
from app.services.availability_service import AvailabilityService
from app.services.doctor_service import DoctorService
from app.services.slot_resolver import SlotResolver

router = APIRouter()


def _present(rule: AvailabilityRuleResponse, numbering: DayNumbering) -> AvailabilityRuleResponse:
    if numbering == DayNumbering.ISO:
        return rule
    return rule.model_copy(update={"day_of_week": from_iso(rule.day_of_week, numbering)})


@router.post(
    "/availability/rules",
    response_model=AvailabilityRuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add availability rule",
)
async def create_rule(
    data: AvailabilityRuleCreate,
    doctor: CurrentDoctor,
    db: DatabaseSession,
    cache: Cache,
) -> AvailabilityRuleResponse:
    """
    Add a weekly open window for the authenticated doctor.

    ``day_of_week`` is read in the numbering given by ``day_numbering``
    and echoed back the same way.
    """
    service = AvailabilityService(db, cache)
    rule = await service.set_rule(
        doctor.id,
        to_iso(data.day_of_week, data.day_numbering),
        data.start_time,
        data.end_time,
        data.is_available,
    )
    return _present(rule, data.day_numbering)


@router.put(
    "/availability/rules/{rule_id}",
    response_model=AvailabilityRuleResponse,
    status_code=status.HTTP_200_OK,
    summary="Edit availability rule",
)
async def update_rule(
    rule_id: UUID,
    data: AvailabilityRuleUpdate,
    doctor: CurrentDoctor,
    db: DatabaseSession,
    cache: Cache,
) -> AvailabilityRuleResponse:
    """Edit one of the authenticated doctor's rules."""
    changes = data.model_dump(exclude_unset=True, exclude={"day_numbering"})
    if changes.get("day_of_week") is not None:
        changes["day_of_week"] = to_iso(changes["day_of_week"], data.day_numbering)

    service = AvailabilityService(db, cache)
    rule = await service.update_rule(rule_id, doctor.id, changes)
    return _present(rule, data.day_numbering)


@router.delete(
    "/availability/rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove availability rule",
)
async def delete_rule(
    rule_id: UUID,
    doctor: CurrentDoctor,
    db: DatabaseSession,
    cache: Cache,
) -> None:
    """Remove one of the authenticated doctor's rules."""
    service = AvailabilityService(db, cache)
    await service.remove_rule(rule_id, doctor.id)


@router.get(
    "/doctors/{doctor_id}/availability",
    response_model=list[AvailabilityRuleResponse],
    status_code=status.HTTP_200_OK,
    summary="List doctor availability",
)
async def list_rules(
    doctor_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
    cache: Cache,
    day_of_week: int | None = Query(None, ge=0, le=7),
    day_numbering: DayNumbering = Query(DayNumbering.ISO),
) -> list[AvailabilityRuleResponse]:
    """
    List a doctor's weekly rules.

    Args:
        doctor_id: Doctor user ID
        day_of_week: Optional day filter, in ``day_numbering``
        day_numbering: ``iso`` (Monday=1..Sunday=7) or ``sunday_zero`` (Sunday=0..Saturday=6)
    """
    iso_day = to_iso(day_of_week, day_numbering) if day_of_week is not None else None
    service = AvailabilityService(db, cache)
    rules = await service.list_rules(doctor_id, iso_day)
    return [_present(rule, day_numbering) for rule in rules]


@router.get(
    "/doctors/{doctor_id}/availability/open",
    response_model=SlotCheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Check if doctor is open at an instant",
)
async def check_open(
    doctor_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
    cache: Cache,
    at: datetime = Query(..., description="Instant to check; naive values are UTC"),
) -> SlotCheckResponse:
    """Whether the instant falls inside the doctor's open hours."""
    resolver = SlotResolver(db, AvailabilityService(db, cache))
    return SlotCheckResponse(
        doctor_id=doctor_id,
        at=at,
        is_open=await resolver.is_open(doctor_id, at),
    )


@router.get(
    "/doctors/{doctor_id}/slots",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    summary="List bookable slots for a date",
)
async def list_slots(
    doctor_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
    cache: Cache,
    on: date = Query(..., description="Calendar date in the doctor's time zone"),
) -> AvailableSlotsResponse:
    """
    Bookable slot starts for one date.

    Slots are sized to the doctor's consultation length and already exclude
    live appointments and past times.
    """
    profile = await DoctorService(db).get_bookable_doctor(doctor_id)
    duration = (
        profile.get("consultation_duration_minutes")
        or settings.default_consultation_duration_minutes
    )
    resolver = SlotResolver(db, AvailabilityService(db, cache))
    tz = await resolver.doctor_timezone(doctor_id, profile)
    windows, slots = await resolver.available_slots(doctor_id, on, duration, tz)
    return AvailableSlotsResponse(
        doctor_id=doctor_id,
        date=on,
        duration_minutes=duration,
        windows=windows,
        slots=slots,
    )
