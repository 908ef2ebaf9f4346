"""Tests for the availability store and its endpoints."""

from datetime import time

import pytest
from httpx import AsyncClient

from app.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from app.services.availability_service import AvailabilityService


async def test_set_and_list_rules(db_session, make_doctor):
    doctor_id = await make_doctor()
    service = AvailabilityService(db_session)

    morning = await service.set_rule(doctor_id, 1, time(9, 0), time(12, 0))
    await service.set_rule(doctor_id, 3, time(14, 0), time(18, 0))

    assert morning.day_of_week == 1
    assert morning.is_available is True

    all_rules = await service.list_rules(doctor_id)
    assert [(r.day_of_week, r.start_time) for r in all_rules] == [
        (1, time(9, 0)),
        (3, time(14, 0)),
    ]

    monday = await service.list_rules(doctor_id, 1)
    assert [r.id for r in monday] == [morning.id]


async def test_unknown_doctor_has_no_rules(db_session, make_doctor):
    doctor_id = await make_doctor()
    service = AvailabilityService(db_session)

    assert await service.list_rules(doctor_id) == []


@pytest.mark.parametrize("day", [0, 8])
async def test_set_rule_rejects_non_iso_day(db_session, make_doctor, day):
    doctor_id = await make_doctor()
    service = AvailabilityService(db_session)

    with pytest.raises(ValidationException):
        await service.set_rule(doctor_id, day, time(9, 0), time(12, 0))


async def test_set_rule_rejects_empty_window(db_session, make_doctor):
    doctor_id = await make_doctor()
    service = AvailabilityService(db_session)

    with pytest.raises(ValidationException):
        await service.set_rule(doctor_id, 2, time(12, 0), time(12, 0))


async def test_update_rule_in_place(db_session, make_doctor):
    doctor_id = await make_doctor()
    service = AvailabilityService(db_session)
    rule = await service.set_rule(doctor_id, 2, time(9, 0), time(12, 0))

    updated = await service.update_rule(
        rule.id, doctor_id, {"end_time": time(13, 0), "is_available": False}
    )

    assert updated.id == rule.id
    assert updated.end_time == time(13, 0)
    assert updated.is_available is False

    with pytest.raises(ValidationException):
        await service.update_rule(rule.id, doctor_id, {"start_time": time(14, 0)})


async def test_rules_are_owned_by_their_doctor(db_session, make_doctor):
    owner = await make_doctor()
    other = await make_doctor(full_name="Vikram Shah")
    service = AvailabilityService(db_session)
    rule = await service.set_rule(owner, 2, time(9, 0), time(12, 0))

    with pytest.raises(ForbiddenException):
        await service.update_rule(rule.id, other, {"end_time": time(11, 0)})
    with pytest.raises(ForbiddenException):
        await service.remove_rule(rule.id, other)

    await service.remove_rule(rule.id, owner)
    with pytest.raises(NotFoundException):
        await service.get_rule(rule.id)


# API


async def test_create_rule_with_sunday_zero_numbering(
    client: AsyncClient, make_doctor, headers_for
):
    doctor_id = await make_doctor()
    headers = headers_for(doctor_id, "doctor")

    response = await client.post(
        "/api/v1/availability/rules",
        json={
            "day_of_week": 0,
            "start_time": "10:00:00",
            "end_time": "14:00:00",
            "day_numbering": "sunday_zero",
        },
        headers=headers,
    )
    assert response.status_code == 201
    assert response.json()["day_of_week"] == 0

    # Stored as ISO Sunday
    iso = await client.get(f"/api/v1/doctors/{doctor_id}/availability", headers=headers)
    assert iso.status_code == 200
    assert [r["day_of_week"] for r in iso.json()] == [7]

    js = await client.get(
        f"/api/v1/doctors/{doctor_id}/availability",
        params={"day_of_week": 0, "day_numbering": "sunday_zero"},
        headers=headers,
    )
    assert [r["day_of_week"] for r in js.json()] == [0]


async def test_create_rule_rejects_iso_zero(client: AsyncClient, make_doctor, headers_for):
    doctor_id = await make_doctor()

    response = await client.post(
        "/api/v1/availability/rules",
        json={"day_of_week": 0, "start_time": "10:00:00", "end_time": "14:00:00"},
        headers=headers_for(doctor_id, "doctor"),
    )
    assert response.status_code == 422


async def test_patients_cannot_write_rules(client: AsyncClient, make_user, headers_for):
    patient_id = await make_user("patient")

    response = await client.post(
        "/api/v1/availability/rules",
        json={"day_of_week": 1, "start_time": "10:00:00", "end_time": "14:00:00"},
        headers=headers_for(patient_id, "patient"),
    )
    assert response.status_code == 403


async def test_update_and_delete_rule_endpoints(client: AsyncClient, make_doctor, headers_for):
    doctor_id = await make_doctor()
    headers = headers_for(doctor_id, "doctor")
    created = await client.post(
        "/api/v1/availability/rules",
        json={"day_of_week": 1, "start_time": "09:00:00", "end_time": "12:00:00"},
        headers=headers,
    )
    rule_id = created.json()["id"]

    updated = await client.put(
        f"/api/v1/availability/rules/{rule_id}",
        json={"day_of_week": 6, "day_numbering": "sunday_zero"},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["day_of_week"] == 6

    deleted = await client.delete(f"/api/v1/availability/rules/{rule_id}", headers=headers)
    assert deleted.status_code == 204

    listing = await client.get(f"/api/v1/doctors/{doctor_id}/availability", headers=headers)
    assert listing.json() == []


async def test_requests_without_token_are_rejected(client: AsyncClient, make_doctor):
    doctor_id = await make_doctor()

    response = await client.get(f"/api/v1/doctors/{doctor_id}/availability")
    assert response.status_code in (401, 403)
