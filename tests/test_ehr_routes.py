"""Tests for the mock EHR backend (data, store and routes)."""

from __future__ import annotations

import datetime as dt

import pytest
from fastapi.testclient import TestClient

from frontdesk.ehr import data
from frontdesk.ehr.store import EHRStore, get_store
from frontdesk.server import app

DATE = "2025-01-10"
PATIENT = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "dateOfBirth": "1990-12-10",
    "phone": "555-0100",
}


@pytest.fixture
def store():
    fresh = EHRStore()
    app.dependency_overrides[get_store] = lambda: fresh
    yield fresh
    app.dependency_overrides.pop(get_store, None)


@pytest.fixture
def client(store):
    return TestClient(app)


def _open_slot(client, clinician_id: str = "doc-1") -> dict:
    slots = client.get(f"/api/ehr/availability/{clinician_id}/{DATE}").json()["slots"]
    return slots[0]


def _book(client, slot_id: str, clinician_id: str = "doc-1", location_id: str = "loc-1"):
    return client.post(
        "/api/ehr/appointments",
        json={
            "patient": PATIENT,
            "clinicianId": clinician_id,
            "locationId": location_id,
            "timeSlotId": slot_id,
            "reason": "Annual check-up",
        },
    )


# ── Slot generation ──────────────────────────────────────────────────


class TestSlotGeneration:
    def test_twelve_half_hour_slots(self):
        slots = data.generate_time_slots("doc-1", dt.date(2025, 1, 10))
        assert len(slots) == 12
        assert (slots[0].start_time, slots[0].end_time) == ("09:00", "09:30")
        assert (slots[-1].start_time, slots[-1].end_time) == ("16:30", "17:00")

    def test_same_day_same_pattern(self):
        day = dt.date(2025, 1, 10)
        first = [s.available for s in data.generate_time_slots("doc-2", day)]
        second = [s.available for s in data.generate_time_slots("doc-2", day)]
        assert first == second

    def test_slot_id_round_trip(self):
        day = dt.date(2025, 1, 10)
        assert data.parse_slot_id(data.slot_id("doc-3", day, 4)) == ("doc-3", day, 4)

    @pytest.mark.parametrize(
        "value", ["slot-doc-1-2025-01-10-12", "slot-doc-1-2025-13-40-0", "garbage"],
    )
    def test_parse_slot_id_rejects_bad_ids(self, value):
        assert data.parse_slot_id(value) is None


# ── Reference data ───────────────────────────────────────────────────


class TestReferenceData:
    def test_list_locations(self, client):
        response = client.get("/api/ehr/locations")
        assert response.status_code == 200
        locations = response.json()
        assert [loc["id"] for loc in locations] == ["loc-1", "loc-2", "loc-3"]
        assert "zipCode" in locations[0]

    def test_unknown_location_404(self, client):
        assert client.get("/api/ehr/locations/loc-99").status_code == 404

    def test_clinicians_by_location(self, client):
        response = client.get("/api/ehr/clinicians/location/loc-1")
        assert [c["id"] for c in response.json()] == ["doc-1", "doc-2"]

    def test_get_clinician(self, client):
        response = client.get("/api/ehr/clinicians/doc-4")
        assert response.json()["locationId"] == "loc-2"
        assert client.get("/api/ehr/clinicians/doc-99").status_code == 404


# ── Availability ─────────────────────────────────────────────────────


class TestAvailability:
    def test_default_returns_only_open_slots(self, client):
        body = client.get(f"/api/ehr/availability/doc-1/{DATE}").json()
        assert body["clinicianId"] == "doc-1"
        assert body["slots"]
        assert all(s["available"] for s in body["slots"])

    def test_include_unavailable_returns_every_slot(self, client):
        body = client.get(
            f"/api/ehr/availability/doc-1/{DATE}", params={"includeUnavailable": "true"},
        ).json()
        assert len(body["slots"]) == 12

    def test_bad_date_rejected(self, client):
        assert client.get("/api/ehr/availability/doc-1/tomorrow").status_code == 422


# ── Patients ─────────────────────────────────────────────────────────


class TestPatients:
    def test_create_assigns_id(self, client):
        response = client.post("/api/ehr/patients", json=PATIENT)
        assert response.status_code == 201
        patient = response.json()["patient"]
        assert patient["id"].startswith("patient-")

        fetched = client.get(f"/api/ehr/patients/{patient['id']}")
        assert fetched.json()["firstName"] == "Ada"

    def test_missing_fields_rejected(self, client):
        response = client.post("/api/ehr/patients", json={"firstName": "Ada"})
        assert response.status_code == 422

    def test_unknown_patient_404(self, client):
        assert client.get("/api/ehr/patients/patient-nope").status_code == 404


# ── Appointments ─────────────────────────────────────────────────────


class TestAppointments:
    def test_booking_registers_patient_and_takes_slot(self, client, store):
        slot = _open_slot(client)

        response = _book(client, slot["id"])

        assert response.status_code == 201
        appointment = response.json()["appointment"]
        assert appointment["status"] == "scheduled"
        assert appointment["startTime"] == slot["startTime"]
        assert len(store.list_patients()) == 1

        open_ids = [s["id"] for s in client.get(f"/api/ehr/availability/doc-1/{DATE}").json()["slots"]]
        assert slot["id"] not in open_ids

    def test_double_booking_conflicts(self, client):
        slot = _open_slot(client)
        assert _book(client, slot["id"]).status_code == 201
        assert _book(client, slot["id"]).status_code == 409

    def test_slot_of_another_clinician_rejected(self, client):
        slot = _open_slot(client, "doc-2")
        assert _book(client, slot["id"], clinician_id="doc-1").status_code == 422

    def test_unknown_clinician_or_location(self, client):
        slot = _open_slot(client)
        assert _book(client, slot["id"], clinician_id="doc-99").status_code == 404
        assert _book(client, slot["id"], location_id="loc-99").status_code == 404

    def test_existing_patient_id_is_kept(self, client, store):
        patient_id = client.post("/api/ehr/patients", json=PATIENT).json()["patient"]["id"]
        slot = _open_slot(client)
        response = client.post(
            "/api/ehr/appointments",
            json={
                "patient": {**PATIENT, "id": patient_id},
                "clinicianId": "doc-1",
                "locationId": "loc-1",
                "timeSlotId": slot["id"],
                "reason": "Follow-up",
            },
        )
        assert response.json()["appointment"]["patientId"] == patient_id
        assert len(store.list_patients()) == 1

    def test_cancel_frees_slot(self, client):
        slot = _open_slot(client)
        appointment_id = _book(client, slot["id"]).json()["appointment"]["id"]

        response = client.put(
            f"/api/ehr/appointments/{appointment_id}/status", json={"status": "cancelled"},
        )
        assert response.json()["appointment"]["status"] == "cancelled"
        assert _book(client, slot["id"]).status_code == 201

    def test_reviving_cancelled_appointment_retakes_slot(self, client, store):
        slot = _open_slot(client)
        appointment_id = _book(client, slot["id"]).json()["appointment"]["id"]
        url = f"/api/ehr/appointments/{appointment_id}/status"

        client.put(url, json={"status": "cancelled"})
        response = client.put(url, json={"status": "confirmed"})

        assert response.status_code == 200
        assert _book(client, slot["id"]).status_code == 409
        live = [a for a in store.list_appointments() if a.status != "cancelled"]
        assert len(live) == 1

    def test_reviving_after_slot_rebooked_conflicts(self, client):
        slot = _open_slot(client)
        appointment_id = _book(client, slot["id"]).json()["appointment"]["id"]
        url = f"/api/ehr/appointments/{appointment_id}/status"
        client.put(url, json={"status": "cancelled"})
        assert _book(client, slot["id"]).status_code == 201

        response = client.put(url, json={"status": "scheduled"})

        assert response.status_code == 409
        assert client.get(f"/api/ehr/appointments/{appointment_id}").json()["status"] == "cancelled"

    def test_cancelling_twice_keeps_rebooked_slot(self, client):
        slot = _open_slot(client)
        appointment_id = _book(client, slot["id"]).json()["appointment"]["id"]
        url = f"/api/ehr/appointments/{appointment_id}/status"
        client.put(url, json={"status": "cancelled"})
        assert _book(client, slot["id"]).status_code == 201

        assert client.put(url, json={"status": "cancelled"}).status_code == 200

        assert _book(client, slot["id"]).status_code == 409

    def test_unknown_patient_id_rejected(self, client, store):
        slot = _open_slot(client)
        response = client.post(
            "/api/ehr/appointments",
            json={
                "patient": {**PATIENT, "id": "patient-ghost"},
                "clinicianId": "doc-1",
                "locationId": "loc-1",
                "timeSlotId": slot["id"],
                "reason": "Check-up",
            },
        )
        assert response.status_code == 404
        assert store.list_appointments() == []
        assert _book(client, slot["id"]).status_code == 201

    def test_unknown_appointment_404(self, client):
        assert client.get("/api/ehr/appointments/appt-nope").status_code == 404
        response = client.put(
            "/api/ehr/appointments/appt-nope/status", json={"status": "confirmed"},
        )
        assert response.status_code == 404

    def test_list_appointments(self, client):
        _book(client, _open_slot(client)["id"])
        assert len(client.get("/api/ehr/appointments").json()) == 1
