"""
Tests de los endpoints HTTP de disponibilidad, slots y citas.
"""

import pytest
from httpx import AsyncClient

API = "/api/v1"
MONDAY_0930 = "2026-03-09T09:30:00Z"


async def _create_monday_window(client: AsyncClient, doctor_id) -> dict:
    response = await client.post(f"{API}/availability", json={
        "kind": "recurring",
        "doctor_id": str(doctor_id),
        "day_of_week": 0,
        "start_time": "09:00",
        "end_time": "11:00",
        "slot_duration_minutes": 30,
    })
    assert response.status_code == 201
    return response.json()


async def _reserve(client: AsyncClient, doctor, patient, when: str = MONDAY_0930):
    return await client.post(f"{API}/appointments/reserve", json={
        "patient_id": str(patient.id),
        "doctor_id": str(doctor.id),
        "appointment_datetime": when,
        "reason": "Control anual",
    })


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ── Disponibilidad ───────────────────────────────────

@pytest.mark.asyncio
async def test_create_window_by_kind(client: AsyncClient, doctor):
    body = await _create_monday_window(client, doctor.id)

    assert body["kind"] == "recurring"
    assert body["day_name"] == "Lunes"
    assert body["specific_date"] is None

    response = await client.post(f"{API}/availability", json={
        "kind": "specific_date",
        "doctor_id": str(doctor.id),
        "specific_date": "2026-03-10",
        "start_time": "14:00",
        "end_time": "16:00",
    })
    assert response.status_code == 201
    assert response.json()["day_of_week"] is None


@pytest.mark.asyncio
async def test_overlapping_window_returns_conflict(client: AsyncClient, doctor):
    await _create_monday_window(client, doctor.id)

    response = await client.post(f"{API}/availability/recurring", json={
        "doctor_id": str(doctor.id),
        "day_of_week": 0,
        "start_time": "10:30",
        "end_time": "12:00",
    })

    assert response.status_code == 409
    assert response.json()["code"] == "conflict"


@pytest.mark.asyncio
async def test_window_for_unknown_doctor_is_not_found(client: AsyncClient, patient):
    response = await client.post(f"{API}/availability/recurring", json={
        "doctor_id": str(patient.id),
        "day_of_week": 0,
        "start_time": "09:00",
        "end_time": "10:00",
    })

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_inverted_window_is_rejected(client: AsyncClient, doctor):
    response = await client.post(f"{API}/availability/recurring", json={
        "doctor_id": str(doctor.id),
        "day_of_week": 0,
        "start_time": "11:00",
        "end_time": "09:00",
    })

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_summary_and_listing(client: AsyncClient, doctor):
    await _create_monday_window(client, doctor.id)
    await client.post(f"{API}/availability/mark-unavailable", json={
        "doctor_id": str(doctor.id),
        "unavailable_date": "2026-03-16",
    })

    listing = await client.get(f"{API}/availability/doctor/{doctor.id}")
    blocked = await client.get(f"{API}/availability/doctor/{doctor.id}/unavailable-dates")

    assert len(listing.json()) == 2
    assert [w["specific_date"] for w in blocked.json()] == ["2026-03-16"]


# ── Slots ────────────────────────────────────────────

@pytest.mark.asyncio
async def test_day_slots(client: AsyncClient, doctor):
    await _create_monday_window(client, doctor.id)

    response = await client.get(f"{API}/slots/doctor/{doctor.id}/2026-03-09")

    assert response.status_code == 200
    slots = response.json()["slots"]
    assert [s["start_time"] for s in slots] == ["09:00:00", "09:30:00", "10:00:00", "10:30:00"]
    assert all(s["is_available"] for s in slots)


@pytest.mark.asyncio
async def test_day_slots_for_blocked_date_are_empty(client: AsyncClient, doctor):
    await _create_monday_window(client, doctor.id)
    await client.post(f"{API}/availability/mark-unavailable", json={
        "doctor_id": str(doctor.id),
        "unavailable_date": "2026-03-09",
    })

    response = await client.get(f"{API}/slots/doctor/{doctor.id}/2026-03-09")

    assert response.status_code == 200
    assert response.json()["slots"] == []


@pytest.mark.asyncio
async def test_calendar(client: AsyncClient, doctor, patient):
    await _create_monday_window(client, doctor.id)
    await _reserve(client, doctor, patient)

    response = await client.get(
        f"{API}/slots/doctor/{doctor.id}/calendar",
        params={"start_date": "2026-03-09", "end_date": "2026-03-10"},
    )

    assert response.status_code == 200
    monday, tuesday = response.json()
    assert monday["availability_status"] == "partially_available"
    assert monday["booked_slots"] == 1
    assert monday["available_slots"] == 3
    assert tuesday["availability_status"] == "unavailable"
    assert tuesday["has_availability"] is False


@pytest.mark.asyncio
async def test_calendar_rejects_inverted_range(client: AsyncClient, doctor):
    response = await client.get(
        f"{API}/slots/doctor/{doctor.id}/calendar",
        params={"start_date": "2026-03-10", "end_date": "2026-03-09"},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_slot_check(client: AsyncClient, doctor, patient):
    await _create_monday_window(client, doctor.id)

    before = await client.get(
        f"{API}/slots/doctor/{doctor.id}/check", params={"when": MONDAY_0930}
    )
    await _reserve(client, doctor, patient)
    after = await client.get(
        f"{API}/slots/doctor/{doctor.id}/check", params={"when": MONDAY_0930}
    )

    assert before.json()["available"] is True
    assert after.json()["available"] is False


# ── Citas ────────────────────────────────────────────

@pytest.mark.asyncio
async def test_reserve_confirm_cancel_flow(client: AsyncClient, doctor, patient, notifications):
    reserved = await _reserve(client, doctor, patient)
    assert reserved.status_code == 201
    body = reserved.json()
    assert body["status"] == "reserved"
    assert body["reservation_expires_at"] is not None

    confirmed = await client.post(f"{API}/appointments/{body['id']}/confirm")
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"
    assert confirmed.json()["reservation_expires_at"] is None

    cancelled = await client.post(
        f"{API}/appointments/{body['id']}/cancel", json={"reason": "Viaje"}
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancellation_reason"] == "Viaje"

    fetched = await client.get(f"{API}/appointments/{body['id']}")
    assert fetched.json()["status"] == "cancelled"
    assert [call[1] for call in notifications.calls] == ["confirmation", "cancellation"]


@pytest.mark.asyncio
async def test_double_reservation_returns_conflict(
    client: AsyncClient, doctor, patient, other_patient
):
    await _reserve(client, doctor, patient)

    response = await _reserve(client, doctor, other_patient)

    assert response.status_code == 409
    assert response.json()["code"] == "conflict"


@pytest.mark.asyncio
async def test_confirm_after_hold_expires(client: AsyncClient, doctor, patient, clock):
    reserved = await _reserve(client, doctor, patient)
    appointment_id = reserved.json()["id"]
    clock.advance(minutes=11)

    response = await client.post(f"{API}/appointments/{appointment_id}/confirm")

    assert response.status_code == 409
    assert response.json()["code"] == "reservation_expired"
    missing = await client.get(f"{API}/appointments/{appointment_id}")
    assert missing.status_code == 404
    assert missing.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_reschedule_unconfirmed_is_policy_violation(client: AsyncClient, doctor, patient):
    reserved = await _reserve(client, doctor, patient)

    response = await client.post(
        f"{API}/appointments/{reserved.json()['id']}/reschedule",
        json={"new_datetime": "2026-03-10T09:30:00Z"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "policy_violation"


@pytest.mark.asyncio
async def test_invalid_duration_is_validation_error(client: AsyncClient, doctor, patient):
    response = await client.post(f"{API}/appointments/reserve", json={
        "patient_id": str(patient.id),
        "doctor_id": str(doctor.id),
        "appointment_datetime": MONDAY_0930,
        "duration_minutes": 10,
    })

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_malformed_request_is_rejected(client: AsyncClient, doctor):
    response = await client.post(f"{API}/appointments/reserve", json={
        "doctor_id": str(doctor.id),
        "appointment_datetime": MONDAY_0930,
    })

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_outcome_only_accepts_closing_states(client: AsyncClient, doctor, patient):
    reserved = await _reserve(client, doctor, patient)
    appointment_id = reserved.json()["id"]
    await client.post(f"{API}/appointments/{appointment_id}/confirm")

    rejected = await client.patch(
        f"{API}/appointments/{appointment_id}/outcome", json={"status": "cancelled"}
    )
    completed = await client.patch(
        f"{API}/appointments/{appointment_id}/outcome", json={"status": "completed"}
    )

    assert rejected.status_code == 422
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_booking_availability_check(client: AsyncClient, doctor, patient):
    await _reserve(client, doctor, patient)

    taken = await client.get(f"{API}/appointments/availability/check", params={
        "doctor_id": str(doctor.id),
        "appointment_datetime": "2026-03-09T09:45:00Z",
    })
    free = await client.get(f"{API}/appointments/availability/check", params={
        "doctor_id": str(doctor.id),
        "appointment_datetime": "2026-03-09T10:00:00Z",
    })

    assert taken.json()["available"] is False
    assert free.json()["available"] is True


@pytest.mark.asyncio
async def test_list_appointments(client: AsyncClient, doctor, patient):
    await _reserve(client, doctor, patient)
    await _reserve(client, doctor, patient, "2026-03-09T10:30:00Z")

    response = await client.get(
        f"{API}/appointments", params={"doctor_id": str(doctor.id), "size": 1}
    )

    body = response.json()
    assert body["total"] == 2
    assert body["pages"] == 2
    assert len(body["items"]) == 1
