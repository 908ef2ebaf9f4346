"""Tests for the booking engine."""

import asyncio
from datetime import UTC, datetime, time, timedelta
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update

from app.config import settings
from app.core.exceptions import (
    DoctorNotFoundException,
    InvalidDateException,
    NotApprovedException,
    ProfileIncompleteException,
    ServiceUnavailableException,
    SlotTakenException,
    SlotUnavailableException,
)
from app.models.appointments import appointments
from app.models.doctor_profiles import doctor_profiles
from app.schemas.appointments import AppointmentCreate, AppointmentStatus


def _at(day, hour, minute=0):
    return datetime.combine(day, time(hour, minute), tzinfo=UTC)


def _request(doctor_id, when):
    return AppointmentCreate(doctor_id=doctor_id, appointment_at=when)


async def test_book_creates_scheduled_appointment(
    db_session, build_booking_service, bookable_doctor, make_user, next_monday
):
    patient_id = await make_user("patient")
    service = build_booking_service(db_session)

    appointment = await service.book(patient_id, _request(bookable_doctor, _at(next_monday, 11, 30)))

    assert appointment.status == AppointmentStatus.SCHEDULED
    assert appointment.patient_id == patient_id
    assert appointment.doctor_id == bookable_doctor
    assert appointment.consultation_fee == Decimal("500.00")
    assert appointment.duration_minutes == 30
    assert appointment.appointment_at == _at(next_monday, 11, 30)
    assert appointment.version == 1


async def test_overlapping_bookings_are_rejected(
    db_session, build_booking_service, bookable_doctor, make_user, next_monday
):
    """Mon 11:30 is taken; 11:45 overlaps it and 12:00 is free."""
    service = build_booking_service(db_session)
    first = await make_user("patient")
    second = await make_user("patient")

    await service.book(first, _request(bookable_doctor, _at(next_monday, 11, 30)))

    with pytest.raises(SlotTakenException):
        await service.book(second, _request(bookable_doctor, _at(next_monday, 11, 45)))

    noon = await service.book(second, _request(bookable_doctor, _at(next_monday, 12, 0)))
    assert noon.status == AppointmentStatus.SCHEDULED


async def test_cancelled_appointment_frees_the_slot(
    db_session, build_booking_service, bookable_doctor, make_user, next_monday
):
    service = build_booking_service(db_session)
    patient_id = await make_user("patient")
    first = await service.book(patient_id, _request(bookable_doctor, _at(next_monday, 10)))

    await db_session.execute(
        update(appointments)
        .where(appointments.c.id == first.id)
        .values(status=AppointmentStatus.CANCELLED.value)
    )
    await db_session.commit()

    again = await service.book(patient_id, _request(bookable_doctor, _at(next_monday, 10)))
    assert again.id != first.id


async def test_booking_uses_profile_duration(
    db_session, build_booking_service, make_doctor, add_rule, make_user, next_monday
):
    doctor_id = await make_doctor(duration=60, fee=Decimal("800.00"))
    await add_rule(doctor_id, 1, time(9, 0), time(17, 0))
    patient_id = await make_user("patient")
    service = build_booking_service(db_session)

    first = await service.book(patient_id, _request(doctor_id, _at(next_monday, 10)))
    assert first.duration_minutes == 60
    assert first.consultation_fee == Decimal("800.00")

    with pytest.raises(SlotTakenException):
        await service.book(patient_id, _request(doctor_id, _at(next_monday, 10, 45)))


async def test_booking_checks_only_the_start_instant(
    db_session, build_booking_service, bookable_doctor, make_user, next_monday
):
    """A consultation may start in the last minute of a window."""
    patient_id = await make_user("patient")
    service = build_booking_service(db_session)

    late = await service.book(patient_id, _request(bookable_doctor, _at(next_monday, 16, 50)))
    assert late.appointment_at == _at(next_monday, 16, 50)


async def test_unknown_doctor(db_session, build_booking_service, make_user, next_monday):
    patient_id = await make_user("patient")
    service = build_booking_service(db_session)

    with pytest.raises(DoctorNotFoundException):
        await service.book(patient_id, _request(uuid4(), _at(next_monday, 10)))


async def test_patient_id_is_not_a_doctor(db_session, build_booking_service, make_user, next_monday):
    patient_id = await make_user("patient")
    service = build_booking_service(db_session)

    with pytest.raises(DoctorNotFoundException):
        await service.book(patient_id, _request(patient_id, _at(next_monday, 10)))


async def test_doctor_without_profile(
    db_session, build_booking_service, make_doctor, make_user, next_monday
):
    doctor_id = await make_doctor(with_profile=False)
    patient_id = await make_user("patient")
    service = build_booking_service(db_session)

    with pytest.raises(ProfileIncompleteException):
        await service.book(patient_id, _request(doctor_id, _at(next_monday, 10)))


async def test_unapproved_doctor(
    db_session, build_booking_service, make_doctor, add_rule, make_user, next_monday
):
    doctor_id = await make_doctor(approved=False)
    await add_rule(doctor_id, 1, time(9, 0), time(17, 0))
    patient_id = await make_user("patient")
    service = build_booking_service(db_session)

    with pytest.raises(NotApprovedException):
        await service.book(patient_id, _request(doctor_id, _at(next_monday, 10)))


async def test_past_and_present_times_are_invalid(
    db_session, build_booking_service, bookable_doctor, make_user
):
    patient_id = await make_user("patient")
    service = build_booking_service(db_session)

    with pytest.raises(InvalidDateException):
        await service.book(patient_id, _request(bookable_doctor, datetime.now(UTC) - timedelta(hours=1)))


async def test_outside_open_hours(
    db_session, build_booking_service, bookable_doctor, make_user, next_monday
):
    patient_id = await make_user("patient")
    service = build_booking_service(db_session)

    with pytest.raises(SlotUnavailableException):
        await service.book(patient_id, _request(bookable_doctor, _at(next_monday, 17, 0)))
    with pytest.raises(SlotUnavailableException):
        await service.book(
            patient_id, _request(bookable_doctor, _at(next_monday + timedelta(days=1), 10))
        )


async def test_checks_run_in_order(
    db_session, build_booking_service, make_doctor, make_user, next_monday
):
    """An unapproved doctor is reported before a past date or closed hours."""
    doctor_id = await make_doctor(approved=False)
    patient_id = await make_user("patient")
    service = build_booking_service(db_session)

    with pytest.raises(NotApprovedException):
        await service.book(patient_id, _request(doctor_id, datetime(2000, 1, 3, 3, tzinfo=UTC)))


async def test_conflict_check_timeout(
    db_session, build_booking_service, bookable_doctor, make_user, next_monday
):
    patient_id = await make_user("patient")
    service = build_booking_service(db_session)

    async def stalled(*args, **kwargs):
        await asyncio.sleep(1)
        return []

    with (
        patch("app.services.booking_service.fetch_live_intervals", stalled),
        patch.object(settings, "conflict_check_timeout_seconds", 0.01),
    ):
        with pytest.raises(ServiceUnavailableException):
            await service.book(patient_id, _request(bookable_doctor, _at(next_monday, 10)))

    count = await db_session.execute(select(func.count()).select_from(appointments))
    assert count.scalar() == 0


async def test_concurrent_bookings_for_same_slot(
    session_factory, build_booking_service, bookable_doctor, make_user, next_monday
):
    """Of two simultaneous requests for one slot exactly one succeeds."""
    first_patient = await make_user("patient")
    second_patient = await make_user("patient")
    when = _at(next_monday, 15, 0)

    async def attempt(patient_id):
        async with session_factory() as session:
            service = build_booking_service(session)
            return await service.book(patient_id, _request(bookable_doctor, when))

    results = await asyncio.gather(
        attempt(first_patient),
        attempt(second_patient),
        return_exceptions=True,
    )

    booked = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, SlotTakenException)]
    assert len(booked) == 1
    assert len(rejected) == 1

    async with session_factory() as session:
        count = await session.execute(
            select(func.count())
            .select_from(appointments)
            .where(appointments.c.doctor_id == bookable_doctor)
        )
        assert count.scalar() == 1


async def test_fee_is_fixed_at_booking(
    db_session, build_booking_service, bookable_doctor, make_user, next_monday
):
    patient_id = await make_user("patient")
    service = build_booking_service(db_session)
    appointment = await service.book(patient_id, _request(bookable_doctor, _at(next_monday, 10)))

    await db_session.execute(
        update(doctor_profiles)
        .where(doctor_profiles.c.user_id == bookable_doctor)
        .values(consultation_fee=Decimal("900.00"))
    )
    await db_session.commit()

    stored = await db_session.execute(
        select(appointments.c.consultation_fee).where(appointments.c.id == appointment.id)
    )
    assert stored.scalar() == Decimal("500.00")


# API


async def test_book_endpoint(client: AsyncClient, bookable_doctor, make_user, headers_for, next_monday):
    patient_id = await make_user("patient")

    response = await client.post(
        "/api/v1/appointments/",
        json={
            "doctor_id": str(bookable_doctor),
            "appointment_at": _at(next_monday, 11, 30).isoformat(),
            "consultation_type": "in-person",
        },
        headers=headers_for(patient_id, "patient"),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "scheduled"
    assert data["consultation_type"] == "in-person"
    assert data["consultation_fee"] == 500.0
    assert datetime.fromisoformat(data["appointment_at"]) == _at(next_monday, 11, 30)
    assert datetime.fromisoformat(data["created_at"]).tzinfo is not None


async def test_book_endpoint_error_mapping(
    client: AsyncClient, bookable_doctor, make_user, headers_for, next_monday
):
    patient_id = await make_user("patient")
    headers = headers_for(patient_id, "patient")
    body = {"doctor_id": str(bookable_doctor), "appointment_at": _at(next_monday, 11, 30).isoformat()}

    assert (await client.post("/api/v1/appointments/", json=body, headers=headers)).status_code == 201

    taken = await client.post("/api/v1/appointments/", json=body, headers=headers)
    assert taken.status_code == 409
    assert taken.json()["error"] == "SlotTakenException"

    closed = await client.post(
        "/api/v1/appointments/",
        json={**body, "appointment_at": _at(next_monday, 20).isoformat()},
        headers=headers,
    )
    assert closed.status_code == 422

    missing = await client.post(
        "/api/v1/appointments/",
        json={**body, "doctor_id": str(uuid4())},
        headers=headers,
    )
    assert missing.status_code == 404


async def test_doctors_cannot_book(client: AsyncClient, bookable_doctor, headers_for, next_monday):
    response = await client.post(
        "/api/v1/appointments/",
        json={"doctor_id": str(bookable_doctor), "appointment_at": _at(next_monday, 10).isoformat()},
        headers=headers_for(bookable_doctor, "doctor"),
    )
    assert response.status_code == 403
