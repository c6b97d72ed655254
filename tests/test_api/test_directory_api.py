"""Tests for doctor and patient directory endpoints."""

from httpx import AsyncClient

from tests.conftest import actor_headers

DOCTOR = {
    "firstName": "Asha",
    "lastName": "Rao",
    "gender": "FEMALE",
    "email": "asha@example.com",
    "registrationNumber": "REG-1",
    "qualifications": ["MBBS"],
}


async def test_create_and_get_doctor(api_client: AsyncClient):
    created = await api_client.post("/api/doctors", json=DOCTOR)
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "ACTIVE"
    assert body["registrationNumber"] == "REG-1"

    fetched = await api_client.get(f"/api/doctors/{body['id']}")
    assert fetched.json()["firstName"] == "Asha"


async def test_snake_case_accepted(api_client: AsyncClient):
    payload = {
        "first_name": "Lin", "last_name": "Ko", "email": "lin@example.com",
        "registration_number": "REG-9",
    }
    resp = await api_client.post("/api/doctors", json=payload)
    assert resp.status_code == 201
    assert resp.json()["registrationNumber"] == "REG-9"


async def test_duplicate_registration_is_400(api_client: AsyncClient):
    await api_client.post("/api/doctors", json=DOCTOR)
    resp = await api_client.post("/api/doctors", json={**DOCTOR, "email": "other@example.com"})
    assert resp.status_code == 400


async def test_update_doctor_status(api_client: AsyncClient, doctor):
    resp = await api_client.put(f"/api/doctors/{doctor.id}", json={"status": "INACTIVE"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "INACTIVE"
    assert resp.json()["email"] == doctor.email


async def test_missing_doctor_is_404(api_client: AsyncClient):
    assert (await api_client.get("/api/doctors/ghost")).status_code == 404


async def test_patient_crud(api_client: AsyncClient):
    created = await api_client.post("/api/patients", json={
        "firstName": "Sam", "lastName": "Lee", "email": "sam@example.com", "dateOfBirth": "1988-03-14",
    })
    assert created.status_code == 201
    patient_id = created.json()["id"]

    updated = await api_client.put(f"/api/patients/{patient_id}", json={"address": "12 High St"})
    assert updated.json()["address"] == "12 High St"
    assert updated.json()["dateOfBirth"] == "1988-03-14"

    listed = await api_client.get("/api/patients")
    assert [p["id"] for p in listed.json()] == [patient_id]


async def test_my_profile(api_client: AsyncClient, patient, patient_actor, doctor_actor):
    mine = await api_client.get("/api/patients/me", headers=actor_headers(patient_actor))
    assert mine.json()["id"] == patient.id

    not_a_patient = await api_client.get("/api/patients/me", headers=actor_headers(doctor_actor))
    assert not_a_patient.status_code == 403


async def test_update_my_profile(api_client: AsyncClient, patient, patient_actor, admin):
    resp = await api_client.put("/api/patients/me", json={"phone": "555"}, headers=actor_headers(patient_actor))
    assert resp.status_code == 200
    assert resp.json()["id"] == patient.id
    assert resp.json()["phone"] == "555"

    forbidden = await api_client.put("/api/patients/me", json={"phone": "1"}, headers=actor_headers(admin))
    assert forbidden.status_code == 403
