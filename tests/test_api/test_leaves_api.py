"""Tests for leave endpoints."""

from httpx import AsyncClient

from tests.conftest import actor_headers


async def _request(client: AsyncClient, doctor_id: str, start="2024-01-02", end="2024-01-02") -> dict:
    resp = await client.post(
        f"/api/doctors/{doctor_id}/leaves",
        json={"startDate": start, "endDate": end, "reason": "Conference"},
    )
    assert resp.status_code == 201
    return resp.json()


async def test_request_leave_pending(api_client: AsyncClient, doctor):
    leave = await _request(api_client, doctor.id)
    assert leave["status"] == "PENDING"
    assert leave["doctorId"] == doctor.id

    listed = await api_client.get(f"/api/doctors/{doctor.id}/leaves", params={"status": "PENDING"})
    assert [lv["id"] for lv in listed.json()] == [leave["id"]]


async def test_inverted_range_is_400(api_client: AsyncClient, doctor):
    resp = await api_client.post(
        f"/api/doctors/{doctor.id}/leaves",
        json={"startDate": "2024-01-05", "endDate": "2024-01-02"},
    )
    assert resp.status_code == 400


async def test_unknown_doctor_is_404(api_client: AsyncClient):
    resp = await api_client.post(
        "/api/doctors/ghost/leaves", json={"startDate": "2024-01-02", "endDate": "2024-01-02"}
    )
    assert resp.status_code == 404


async def test_approve_blocks_slots_and_warns(api_client: AsyncClient, service, doctor, patient, template):
    booked = await service.booking.book_appointment(doctor.id, patient.id, "2024-01-02", "09:00", "09:30")
    leave = await _request(api_client, doctor.id)

    resp = await api_client.put(
        f"/api/doctors/{doctor.id}/leaves/{leave['id']}/approve", json={"approvedBy": "admin-1"}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "APPROVED"
    assert body["approvedBy"] == "admin-1"
    assert [a["id"] for a in body["warnings"]] == [booked.id]

    slots = await api_client.get(
        f"/api/doctors/{doctor.id}/schedule/available-slots", params={"date": "2024-01-02"}
    )
    assert not any(s["isAvailable"] for s in slots.json())


async def test_reject_then_approve_is_409(api_client: AsyncClient, doctor):
    leave = await _request(api_client, doctor.id)
    base = f"/api/doctors/{doctor.id}/leaves/{leave['id']}"

    rejected = await api_client.put(
        f"{base}/reject", json={"approvedBy": "admin-1", "rejectionReason": "Short staffed"}
    )
    assert rejected.json()["rejectionReason"] == "Short staffed"

    again = await api_client.put(f"{base}/approve", json={"approvedBy": "admin-1"})
    assert again.status_code == 409
    assert again.json()["error"] == "InvalidTransitionError"


async def test_decider_taken_from_actor_header(api_client: AsyncClient, doctor, admin):
    leave = await _request(api_client, doctor.id)
    resp = await api_client.put(
        f"/api/doctors/{doctor.id}/leaves/{leave['id']}/approve", json={}, headers=actor_headers(admin)
    )
    assert resp.json()["approvedBy"] == admin.id


async def test_patient_cannot_decide(api_client: AsyncClient, doctor, patient_actor):
    leave = await _request(api_client, doctor.id)
    resp = await api_client.put(
        f"/api/doctors/{doctor.id}/leaves/{leave['id']}/approve",
        json={"approvedBy": patient_actor.id},
        headers=actor_headers(patient_actor),
    )
    assert resp.status_code == 403


async def test_amend_pending_only(api_client: AsyncClient, doctor):
    leave = await _request(api_client, doctor.id)
    url = f"/api/doctors/{doctor.id}/leaves/{leave['id']}"

    amended = await api_client.put(url, json={"endDate": "2024-01-04"})
    assert amended.status_code == 200
    assert amended.json()["endDate"] == "2024-01-04"

    await api_client.put(f"{url}/approve", json={"approvedBy": "admin-1"})
    late = await api_client.put(url, json={"reason": "changed"})
    assert late.status_code == 409
